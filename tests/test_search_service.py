"""End-to-end tests for PullRequestSearchService against a fake GitHub."""

import asyncio
from datetime import date, timedelta

import pytest

from fakes import (
    NOW,
    FakeTransport,
    FixedClock,
    RecordingCache,
    build_service,
    detail_url,
    make_item,
    run_async,
)
from pr_finder.application.paginator import PAGE_SIZE, SEARCH_PATH
from pr_finder.application.rate_limit_guard import RATE_LIMIT_PATH
from pr_finder.application.result_cache import InMemoryResultCache
from pr_finder.domain.entities import DateRange, FilterCriteria, PRStatus
from pr_finder.domain.errors import (
    Cancelled,
    InvalidFilterError,
    QueryTooBroadError,
    RateLimitExceeded,
    RemoteServiceError,
    TransportError,
)
from pr_finder.domain.interfaces import CancellationToken

OPEN_IN_OCTO = FilterCriteria(
    repository="octo/repo",
    statuses=frozenset({PRStatus.OPEN}),
    date_range=DateRange(start=None, end=None),
    stale_only=False,
)


def test_hits_without_detail_locator_are_dropped():
    transport = FakeTransport(pages=[[make_item(3), make_item(2, is_pr=False), make_item(1)]])

    result = run_async(build_service(transport).search(OPEN_IN_OCTO))

    assert [pr.number for pr in result.items] == [3, 1]
    assert result.total_count == 3
    assert transport.search_calls[0]["q"] == "is:pr repo:octo/repo is:open"


def test_low_quota_fails_before_any_search_call():
    transport = FakeTransport(pages=[[make_item(1)]], remaining=1)

    with pytest.raises(RateLimitExceeded) as exc_info:
        run_async(build_service(transport).search(OPEN_IN_OCTO))

    assert exc_info.value.reset_at is not None
    assert transport.search_calls == []


def test_one_failed_detail_lookup_fails_the_whole_call():
    transport = FakeTransport(
        pages=[[make_item(1), make_item(2), make_item(3)]],
        failures={detail_url(2): TransportError("Server Error", status=500)},
    )

    with pytest.raises(RemoteServiceError):
        run_async(build_service(transport).search(OPEN_IN_OCTO))


def test_invalid_filter_makes_no_remote_call():
    transport = FakeTransport()

    with pytest.raises(InvalidFilterError):
        run_async(build_service(transport).search(FilterCriteria(repository="../etc")))

    assert transport.calls == []


def test_call_order_is_quota_then_search_then_details():
    transport = FakeTransport(pages=[[make_item(1)]])

    run_async(build_service(transport).search(OPEN_IN_OCTO))

    assert [path for path, _ in transport.calls] == [RATE_LIMIT_PATH, SEARCH_PATH, detail_url(1)]


def test_results_keep_remote_order_across_pages_and_total_is_capped():
    first = [make_item(n) for n in range(1000, 1000 - PAGE_SIZE, -1)]
    second = [make_item(n) for n in range(900, 880, -1)]
    transport = FakeTransport(pages=[first, second], total_count=4_321)

    result = run_async(build_service(transport).search(OPEN_IN_OCTO))

    assert [pr.number for pr in result.items] == list(range(1000, 880, -1))
    assert result.total_count == 500


def test_entities_are_enriched_and_flagged():
    old = make_item(1, created_at=NOW - timedelta(days=8))
    young = make_item(2, created_at=NOW - timedelta(days=6))
    transport = FakeTransport(pages=[[old, young]])

    result = run_async(build_service(transport).search(OPEN_IN_OCTO))

    assert [pr.is_at_risk for pr in result.items] == [True, False]
    assert result.items[0].repository.full_name == "octo/repo"
    assert result.items[0].stats.additions == 10


def test_stale_only_drops_records_younger_than_window():
    # Created on the cutoff day but less than 7 days before NOW
    boundary = make_item(1, created_at=NOW - timedelta(days=7) + timedelta(hours=3))
    stale = make_item(2, created_at=NOW - timedelta(days=10))
    transport = FakeTransport(pages=[[boundary, stale]])
    criteria = FilterCriteria(repository="octo/repo", stale_only=True)

    result = run_async(build_service(transport).search(criteria))

    assert [pr.number for pr in result.items] == [2]
    assert transport.search_calls[0]["q"] == "is:pr repo:octo/repo is:open created:<=2024-03-13"


def test_query_too_broad_is_surfaced():
    transport = FakeTransport(
        failures={(SEARCH_PATH, 1): TransportError("Validation Failed", status=422)}
    )
    criteria = FilterCriteria(
        repository="octo/repo",
        date_range=DateRange(start=date(2010, 1, 1), end=date(2024, 1, 1)),
    )

    with pytest.raises(QueryTooBroadError):
        run_async(build_service(transport).search(criteria))


class TestCaching:

    def test_second_identical_search_is_served_from_cache(self):
        transport = FakeTransport(pages=[[make_item(1)]])
        service = build_service(transport, cache=RecordingCache())

        async def twice():
            first = await service.search(OPEN_IN_OCTO)
            calls = len(transport.calls)
            second = await service.search(OPEN_IN_OCTO)
            return first, second, calls

        first, second, calls = run_async(twice())

        assert first == second
        assert len(transport.calls) == calls

    def test_failures_are_not_cached(self):
        transport = FakeTransport(remaining=0)
        cache = RecordingCache()

        with pytest.raises(RateLimitExceeded):
            run_async(build_service(transport, cache=cache).search(OPEN_IN_OCTO))

        assert cache.entries == {}

    def test_expired_entry_triggers_a_fresh_search(self):
        clock = FixedClock()
        transport = FakeTransport(pages=[[make_item(1)]])
        service = build_service(transport, clock=clock, cache=InMemoryResultCache(clock))

        async def scenario():
            await service.search(OPEN_IN_OCTO)
            clock.advance(timedelta(minutes=5))
            await service.search(OPEN_IN_OCTO)

        run_async(scenario())

        assert len(transport.search_calls) == 2

    def test_cached_result_is_flagged_against_the_current_clock(self):
        clock = FixedClock()
        almost_stale = make_item(1, created_at=NOW - timedelta(days=7) + timedelta(minutes=1))
        transport = FakeTransport(pages=[[almost_stale]])
        service = build_service(transport, clock=clock, cache=InMemoryResultCache(clock))

        async def scenario():
            first = await service.search(OPEN_IN_OCTO)
            clock.advance(timedelta(minutes=2))
            second = await service.search(OPEN_IN_OCTO)
            return first, second

        first, second = run_async(scenario())

        assert len(transport.search_calls) == 1
        assert first.items[0].is_at_risk is False
        assert second.items[0].is_at_risk is True
        assert second.total_count == first.total_count


class BlockingDetailTransport(FakeTransport):
    """Detail lookups hang until cancelled."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.detail_started = asyncio.Event()

    async def get(self, path, params=None):
        if path.startswith("https://"):
            self.calls.append((path, params))
            self.detail_started.set()
            await asyncio.Event().wait()
        return await super().get(path, params)


class TestCancellation:

    def test_cancel_before_start_issues_no_request(self):
        token = CancellationToken()
        token.cancel()
        transport = FakeTransport(pages=[[make_item(1)]])

        with pytest.raises(Cancelled):
            run_async(build_service(transport).search(OPEN_IN_OCTO, cancel=token))

        assert transport.calls == []

    def test_cancel_mid_flight_abandons_in_flight_requests(self):
        pages = [[make_item(n) for n in range(PAGE_SIZE)], [make_item(500)]]
        transport = BlockingDetailTransport(pages=pages)
        service = build_service(transport)

        async def scenario():
            token = CancellationToken()
            task = asyncio.create_task(service.search(OPEN_IN_OCTO, cancel=token))
            await transport.detail_started.wait()
            token.cancel()
            with pytest.raises(Cancelled):
                await task

        run_async(scenario())

        # The second page is never requested
        assert len(transport.search_calls) == 1

    def test_uncancelled_token_does_not_change_the_result(self):
        transport = FakeTransport(pages=[[make_item(1), make_item(2)]])

        result = run_async(
            build_service(transport).search(OPEN_IN_OCTO, cancel=CancellationToken())
        )

        assert [pr.number for pr in result.items] == [1, 2]
