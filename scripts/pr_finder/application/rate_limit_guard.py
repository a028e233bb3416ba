from __future__ import annotations

import logging
from datetime import datetime, timezone

from pr_finder.domain.entities import QuotaStatus
from pr_finder.domain.errors import MalformedRecordError, RateLimitExceeded, TransportError
from pr_finder.domain.interfaces import IClock, ITransport
from .error_classifier import classify

log = logging.getLogger(__name__)

RATE_LIMIT_PATH = "/rate_limit"

# One search call for the first page plus at least one slot in reserve.
MIN_REMAINING = 2


class RateLimitGuard:
    """
    Single, advisory pre-flight check of the search quota.

    A pass does not guarantee the following calls succeed; quota can be
    consumed concurrently elsewhere, so 403s are still classified
    reactively downstream.
    """

    def __init__(self, transport: ITransport, clock: IClock) -> None:
        self._transport = transport
        self._clock     = clock

    async def check_quota(self) -> QuotaStatus:
        """
        Raises:
            RateLimitExceeded: fewer than MIN_REMAINING search calls left.
            AuthenticationError: the credential was rejected (401).
        """
        try:
            data = await self._transport.get(RATE_LIMIT_PATH)
        except TransportError as exc:
            raise classify(exc) from exc

        quota = self._parse(data)
        wait  = (quota.reset_at - self._clock.now()).total_seconds()

        if quota.remaining < MIN_REMAINING:
            log.warning(
                "Search quota exhausted (%d remaining) — resets in %.0fs",
                quota.remaining, max(wait, 0),
            )
            raise RateLimitExceeded(
                f"GitHub search quota exhausted; resets at {quota.reset_at.isoformat()}",
                reset_at=quota.reset_at,
            )

        log.debug("Search quota ok | remaining=%d | reset in %.0fs", quota.remaining, max(wait, 0))
        return quota

    @staticmethod
    def _parse(data: dict) -> QuotaStatus:
        try:
            search = data["resources"]["search"]
            return QuotaStatus(
                remaining = int(search["remaining"]),
                reset_at  = datetime.fromtimestamp(int(search["reset"]), tz=timezone.utc),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise MalformedRecordError(f"Unexpected rate limit payload: {exc}") from exc
