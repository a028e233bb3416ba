from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta

from pr_finder.domain.entities import FilterCriteria, ResultSet
from pr_finder.domain.interfaces import IClock, IResultCache

log = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(minutes=5)


class InMemoryResultCache(IResultCache):
    """
    Time-based result cache keyed by the full FilterCriteria value.

    An entry is served only while younger than the TTL and is evicted on the
    first read after it expires. There is no manual purge.
    The asyncio.Lock ensures two coroutines never update _entries simultaneously.
    """

    def __init__(self, clock: IClock, ttl: timedelta = DEFAULT_TTL) -> None:
        self._clock   = clock
        self._ttl     = ttl
        self._entries: dict[FilterCriteria, tuple[datetime, ResultSet]] = {}
        self._lock    = asyncio.Lock()

    async def get(self, criteria: FilterCriteria) -> ResultSet | None:
        async with self._lock:
            entry = self._entries.get(criteria)
            if entry is None:
                return None

            stored_at, result = entry
            if self._clock.now() - stored_at >= self._ttl:
                del self._entries[criteria]
                log.debug("Cache entry for %s expired", criteria.repository)
                return None
            return result

    async def put(self, criteria: FilterCriteria, result: ResultSet) -> None:
        async with self._lock:
            self._entries[criteria] = (self._clock.now(), result)

    def __len__(self) -> int:
        return len(self._entries)
