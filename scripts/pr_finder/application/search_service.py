from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import datetime
from typing import Iterable

from pr_finder.domain.entities import FilterCriteria, PullRequest, ResultSet
from pr_finder.domain.errors import Cancelled
from pr_finder.domain.interfaces import CancellationToken, IClock, IResultCache
from .detail_enricher import DetailEnricher
from .paginator import MAX_RESULTS, Paginator
from .query_builder import build_query
from .rate_limit_guard import RateLimitGuard
from .transformer import transform

log = logging.getLogger(__name__)


class PullRequestSearchService:
    """
    The top-level use case: find pull requests matching a FilterCriteria.

    Receives all dependencies via constructor injection:
      - RateLimitGuard  → pre-flight quota check
      - Paginator       → search pages
      - DetailEnricher  → per-record detail lookups
      - IClock          → the single "now" used for one call
      - IResultCache    → optional, keyed by the full criteria value

    Every failure propagates unchanged; a call either returns a complete
    ResultSet or raises one classified error.
    """

    def __init__(
        self,
        guard: RateLimitGuard,
        paginator: Paginator,
        enricher: DetailEnricher,
        clock: IClock,
        cache: IResultCache | None = None,
    ) -> None:
        self._guard     = guard
        self._paginator = paginator
        self._enricher  = enricher
        self._clock     = clock
        self._cache     = cache

    async def search(
        self,
        criteria: FilterCriteria,
        cancel: CancellationToken | None = None,
    ) -> ResultSet:
        """
        Raises:
            InvalidFilterError: before any remote call.
            Cancelled: the token was cancelled; in-flight requests abandoned.
            PullRequestSearchError: any other classified failure.
        """
        now   = self._clock.now()
        query = build_query(criteria, now)

        if self._cache is not None:
            cached = await self._cache.get(criteria)
            if cached is not None:
                log.info("Cache hit for %s", criteria.repository)
                # The cached flags were computed with an earlier clock value
                return ResultSet(
                    items       = self._as_of(cached.items, criteria, now),
                    total_count = cached.total_count,
                )

        if cancel is None:
            result = await self._run(query, criteria, now, None)
        else:
            result = await self._run_cancellable(query, criteria, now, cancel)

        if self._cache is not None:
            await self._cache.put(criteria, result)
        return result

    @staticmethod
    def _as_of(
        items: Iterable[PullRequest],
        criteria: FilterCriteria,
        now: datetime,
    ) -> tuple[PullRequest, ...]:
        """
        Re-evaluate the at-risk flag against `now` and apply stale-only.

        The stale-only query uses a date-only cutoff, so records from the
        boundary day can still be younger than the window.
        """
        current = (replace(pr, is_at_risk=pr.at_risk_as_of(now)) for pr in items)
        if criteria.stale_only:
            return tuple(pr for pr in current if pr.is_at_risk)
        return tuple(current)

    async def _run_cancellable(
        self,
        query: str,
        criteria: FilterCriteria,
        now: datetime,
        cancel: CancellationToken,
    ) -> ResultSet:
        cancel.raise_if_cancelled()

        work    = asyncio.create_task(self._run(query, criteria, now, cancel))
        watcher = asyncio.create_task(cancel.wait())
        try:
            await asyncio.wait({work, watcher}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work.cancel()
            raise
        finally:
            watcher.cancel()

        if not work.done():
            # Abandon whatever is in flight; its results are discarded
            work.cancel()
            log.info("Search for %s cancelled", criteria.repository)
            raise Cancelled("Search cancelled by caller")
        return work.result()

    async def _run(
        self,
        query: str,
        criteria: FilterCriteria,
        now: datetime,
        cancel: CancellationToken | None,
    ) -> ResultSet:
        log.info("Searching pull requests | query=%s", query)
        await self._guard.check_quota()

        items: list[PullRequest] = []
        total_count = 0

        async for page in self._paginator.fetch_pages(query, cancel):
            total_count = page.total_count
            if cancel is not None:
                cancel.raise_if_cancelled()

            pairs = await self._enricher.enrich(page.records)
            items.extend(transform(summary, detail, now) for summary, detail in pairs)

        result = ResultSet(
            items       = self._as_of(items[:MAX_RESULTS], criteria, now),
            total_count = min(total_count, MAX_RESULTS),
        )
        log.info("Found %d pull requests (total_count=%d)", len(result.items), result.total_count)
        return result
