from __future__ import annotations

from datetime import datetime, timezone

from pr_finder.domain.interfaces import IClock


class SystemClock(IClock):
    """Wall-clock time in UTC. The only place that reads it."""

    def now(self) -> datetime:
        return datetime.now(tz=timezone.utc)
