"""Tests for the time-based result cache."""

from datetime import timedelta

from fakes import FixedClock, run_async
from pr_finder.application.result_cache import DEFAULT_TTL, InMemoryResultCache
from pr_finder.domain.entities import DateRange, FilterCriteria, PRStatus, ResultSet

EMPTY = ResultSet(items=(), total_count=0)


def _criteria(*statuses: PRStatus) -> FilterCriteria:
    return FilterCriteria(repository="octo/repo", statuses=frozenset(statuses))


def test_fresh_entry_is_served():
    cache = InMemoryResultCache(FixedClock())

    async def scenario():
        await cache.put(_criteria(), EMPTY)
        return await cache.get(_criteria())

    assert run_async(scenario()) is EMPTY


def test_key_is_the_full_criteria_value():
    cache = InMemoryResultCache(FixedClock())

    async def scenario():
        await cache.put(_criteria(PRStatus.OPEN, PRStatus.CLOSED), EMPTY)
        same = await cache.get(_criteria(PRStatus.CLOSED, PRStatus.OPEN))
        other = await cache.get(_criteria(PRStatus.OPEN))
        stale = await cache.get(
            FilterCriteria(
                repository="octo/repo",
                statuses=frozenset({PRStatus.OPEN, PRStatus.CLOSED}),
                stale_only=True,
            )
        )
        return same, other, stale

    same, other, stale = run_async(scenario())

    assert same is EMPTY
    assert other is None
    assert stale is None


def test_entry_expires_at_ttl_and_is_evicted():
    clock = FixedClock()
    cache = InMemoryResultCache(clock)

    async def scenario():
        await cache.put(_criteria(), EMPTY)
        clock.advance(DEFAULT_TTL - timedelta(seconds=1))
        before = await cache.get(_criteria())
        clock.advance(timedelta(seconds=1))
        after = await cache.get(_criteria())
        return before, after

    before, after = run_async(scenario())

    assert before is EMPTY
    assert after is None
    assert len(cache) == 0


def test_custom_ttl():
    clock = FixedClock()
    cache = InMemoryResultCache(clock, ttl=timedelta(seconds=10))
    criteria = FilterCriteria(repository="octo/repo", date_range=DateRange(start=None, end=None))

    async def scenario():
        await cache.put(criteria, EMPTY)
        clock.advance(timedelta(seconds=10))
        return await cache.get(criteria)

    assert run_async(scenario()) is None
