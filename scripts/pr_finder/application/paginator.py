"""
Search pagination as an explicit state machine.

    Fetching(page) --PageReceived--> Filtering --> Fetching(page + 1)
                   --FetchFailed---> Failed       +-> Done

step() is a pure transition function and knows nothing about asyncio, so
tests can walk the machine synchronously. Paginator.fetch_pages() is the
async driver that performs the I/O each state asks for.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Union

from pr_finder.domain.entities import SearchPage, SummaryRecord
from pr_finder.domain.errors import MalformedRecordError, PullRequestSearchError, TransportError
from pr_finder.domain.interfaces import CancellationToken, ITransport
from .error_classifier import classify
from .records import detail_locator, parse_summary

log = logging.getLogger(__name__)

SEARCH_PATH = "/search/issues"
PAGE_SIZE = 100          # GitHub search maximum
MAX_RESULTS = 500
MAX_PAGES = 5            # cost/latency bound, not a completeness guarantee
INTER_PAGE_DELAY = 1.0   # seconds, stays under burst limits


# States
@dataclass(frozen=True)
class Fetching:
    page:       int
    collected:  int = 0


@dataclass(frozen=True)
class Filtering:
    page:       int
    collected:  int
    items:      tuple[Any, ...]


@dataclass(frozen=True)
class Done:
    collected:  int
    reason:     str


@dataclass(frozen=True)
class Failed:
    error: PullRequestSearchError


PaginationState = Union[Fetching, Filtering, Done, Failed]


# Events
@dataclass(frozen=True)
class PageReceived:
    items: tuple[Any, ...]


@dataclass(frozen=True)
class FetchFailed:
    error: PullRequestSearchError


@dataclass(frozen=True)
class Transition:
    state:    PaginationState
    emitted:  tuple[Any, ...] = ()


def step(state: PaginationState, event: PageReceived | FetchFailed | None = None) -> Transition:
    """
    Advance the pagination machine by one transition.

    Filtering keeps only hits with a detail locator, truncates to the
    result cap, and decides whether another page is needed. The "short
    page" check uses the raw page length; discarded issues do not mean the
    remote ran out of results.
    """
    if isinstance(state, Fetching):
        if isinstance(event, PageReceived):
            return Transition(Filtering(state.page, state.collected, event.items))
        if isinstance(event, FetchFailed):
            return Transition(Failed(event.error))
        raise ValueError(f"Fetching expects PageReceived or FetchFailed, got {event!r}")

    if isinstance(state, Filtering):
        kept = tuple(item for item in state.items if detail_locator(item))
        kept = kept[: max(MAX_RESULTS - state.collected, 0)]
        collected = state.collected + len(kept)

        if len(state.items) < PAGE_SIZE:
            next_state: PaginationState = Done(collected, "last page")
        elif collected >= MAX_RESULTS:
            next_state = Done(collected, "result cap")
        elif state.page >= MAX_PAGES:
            next_state = Done(collected, "page cap")
        else:
            next_state = Fetching(state.page + 1, collected)
        return Transition(next_state, kept)

    raise ValueError(f"{type(state).__name__} is a terminal state")


class Paginator:
    """
    Drives sequential search-page fetches for one query.

    The sequence is lazy, finite and not restartable. Any failure aborts it;
    records already yielded are the caller's to discard.
    """

    def __init__(
        self,
        transport: ITransport,
        delay: float = INTER_PAGE_DELAY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._transport = transport
        self._delay     = delay
        self._sleep     = sleep

    async def fetch_pages(
        self,
        query: str,
        cancel: CancellationToken | None = None,
    ) -> AsyncIterator[SearchPage]:
        state: PaginationState = Fetching(page=1)
        total_count = 0

        while True:
            if isinstance(state, Fetching):
                if cancel is not None:
                    cancel.raise_if_cancelled()
                try:
                    data = await self._transport.get(
                        SEARCH_PATH,
                        params={
                            "q":        query,
                            "sort":     "created",
                            "order":    "desc",
                            "per_page": PAGE_SIZE,
                            "page":     state.page,
                        },
                    )
                except TransportError as exc:
                    failure = classify(exc)
                    failure.__cause__ = exc
                    state = step(state, FetchFailed(failure)).state
                    continue

                items, total_count = self._unpack(data)
                state = step(state, PageReceived(items)).state

            elif isinstance(state, Filtering):
                page_number = state.page
                raw_count   = len(state.items)
                transition  = step(state)
                state       = transition.state

                records = tuple(parse_summary(item) for item in transition.emitted)
                log.info(
                    "Page %d | %d/%d hits are pull requests | total_count=%d",
                    page_number, len(records), raw_count, total_count,
                )
                yield SearchPage(page_number, records, total_count)

                if isinstance(state, Fetching):
                    await self._sleep(self._delay)

            elif isinstance(state, Done):
                log.info("Pagination done (%s) | %d records", state.reason, state.collected)
                return

            else:
                log.warning("Pagination failed: %s", state.error)
                raise state.error

    async def fetch_all(
        self,
        query: str,
        cancel: CancellationToken | None = None,
    ) -> AsyncIterator[SummaryRecord]:
        async for page in self.fetch_pages(query, cancel):
            for record in page.records:
                yield record

    @staticmethod
    def _unpack(data: Any) -> tuple[tuple[Any, ...], int]:
        if not isinstance(data, dict) or not isinstance(data.get("items"), list):
            raise MalformedRecordError("Search response has no 'items' list")
        return tuple(data["items"]), int(data.get("total_count") or 0)
