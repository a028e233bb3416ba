"""
main.py — Dependency Wiring (Composition Root)
------------------------------------------------
This file has ONE job: wire all the pieces together and run a search.

It does NOT contain any business logic. It just:
  1. Reads configuration from environment variables and flags
  2. Creates concrete implementations of each interface
  3. Injects them into the classes that need them
  4. Calls the top-level use case (PullRequestSearchService.search)
  5. Prints the result set and exits

Dependency graph (what depends on what):
                      main.py  (wires everything)
                         │
                         ▼
              PullRequestSearchService ──── InMemoryResultCache
                         │                          │
        ┌────────────────┼────────────────┐         │
        ▼                ▼                ▼         ▼
  RateLimitGuard     Paginator      DetailEnricher  SystemClock
        │                │                │
        └────────────────┼────────────────┘
                         ▼
                  HttpxTransport (ITransport)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from datetime import date
from typing import Awaitable, Callable

import httpx

# Application layer
from pr_finder.application.detail_enricher import DetailEnricher
from pr_finder.application.paginator import Paginator
from pr_finder.application.rate_limit_guard import RateLimitGuard
from pr_finder.application.result_cache import InMemoryResultCache
from pr_finder.application.result_helpers import (
    SORT_KEYS,
    PERIODS,
    date_range_for_period,
    filter_by_term,
    format_stats,
    is_valid_date_range,
    sort_pull_requests,
)
from pr_finder.application.search_service import PullRequestSearchService

# Domain
from pr_finder.domain.entities import DateRange, FilterCriteria, PRStatus, ResultSet
from pr_finder.domain.errors import PullRequestSearchError

# Infrastructure layer
from pr_finder.infrastructure.clock import SystemClock
from pr_finder.infrastructure.github_transport import GITHUB_API_URL, HttpxTransport

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
    datefmt="%H:%M:%S",
)
log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

DEFAULT_RETRIES = 3


def _read_env() -> tuple[str, str]:
    """
    Read environment configuration.
    Fails fast with a clear error if the token is missing.
    """
    token    = os.environ.get("GITHUB_TOKEN")
    base_url = os.environ.get("GITHUB_API_URL", GITHUB_API_URL)

    if not token:
        log.error("GITHUB_TOKEN environment variable is required")
        sys.exit(1)

    return token, base_url


def _criteria_from_args(args: argparse.Namespace, clock: SystemClock) -> FilterCriteria:
    start, end = args.since, args.until
    if args.period:
        start, end = date_range_for_period(args.period, clock.now())

    if not is_valid_date_range(start, end):
        log.error("--since %s is after --until %s", start, end)
        sys.exit(2)

    return FilterCriteria(
        repository = args.repo,
        statuses   = frozenset(PRStatus(s) for s in args.status or ()),
        date_range = DateRange(start=start, end=end),
        stale_only = args.stale_only,
    )


# ---------------------------------------------------------------------------
# Dependency wiring
# ---------------------------------------------------------------------------

async def search_with_retry(
    service: PullRequestSearchService,
    criteria: FilterCriteria,
    retries: int,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> ResultSet:
    """
    Caller-side retry policy: only failures marked retryable (no response
    from GitHub) are retried, with exponential backoff. Rate limits and
    everything else surface immediately.
    """
    for attempt in range(retries + 1):
        try:
            return await service.search(criteria)
        except PullRequestSearchError as exc:
            if not exc.retryable or attempt == retries:
                raise
            wait = 2 ** attempt   # exponential backoff: 1s, 2s, 4s …
            log.warning("Attempt %d/%d failed: %s — retrying in %ds", attempt + 1, retries + 1, exc, wait)
            await sleep(wait)
    raise RuntimeError(f"Exhausted {retries} retries for {criteria.repository}")


async def build_and_run(token: str, base_url: str, args: argparse.Namespace) -> ResultSet:
    """
    Wires all dependencies together and executes the search use case.

    This is the Composition Root: the only place that knows which
    concrete class implements each interface.
    """
    clock    = SystemClock()
    criteria = _criteria_from_args(args, clock)

    async with httpx.AsyncClient() as client:
        transport = HttpxTransport(
            token    = token,
            client   = client,      # injected, HttpxTransport doesn't create this
            base_url = base_url,
        )
        service = PullRequestSearchService(
            guard     = RateLimitGuard(transport, clock),
            paginator = Paginator(transport),
            enricher  = DetailEnricher(transport),
            clock     = clock,
            cache     = InMemoryResultCache(clock),
        )
        return await search_with_retry(service, criteria, args.retries)


def _print_results(result: ResultSet, args: argparse.Namespace) -> None:
    items = filter_by_term(result.items, args.search)
    items = sort_pull_requests(items, args.sort, descending=not args.ascending)

    for pr in items:
        flag = "⚠" if pr.is_at_risk else " "
        print(
            f"{flag} #{pr.number:<6} {pr.status.value:<7} {format_stats(pr):<14} "
            f"{pr.dates.created_at:%Y-%m-%d}  @{pr.author.login:<20} {pr.title}"
        )
    print(f"\n{len(items)} shown | {len(result.items)} fetched | total_count={result.total_count}")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Find pull requests in a GitHub repository"
    )
    parser.add_argument("--repo", required=True, help="Repository as owner/name")
    parser.add_argument(
        "--status",
        action  = "append",
        choices = [s.value for s in PRStatus],
        help    = "Status filter, repeatable (statuses are ANDed by GitHub search)",
    )
    parser.add_argument("--since", type=date.fromisoformat, help="Created on or after YYYY-MM-DD")
    parser.add_argument("--until", type=date.fromisoformat, help="Created on or before YYYY-MM-DD")
    parser.add_argument("--period", choices=sorted(PERIODS), help="Preset date range ending today")
    parser.add_argument("--stale-only", action="store_true", help="Only open pull requests older than 7 days")
    parser.add_argument("--search", help="Client-side text filter on title, author, repository or number")
    parser.add_argument("--sort", choices=sorted(SORT_KEYS), default="created")
    parser.add_argument("--ascending", action="store_true")
    parser.add_argument(
        "--retries",
        type    = int,
        default = DEFAULT_RETRIES,
        help    = f"Retries on network failures (default: {DEFAULT_RETRIES})",
    )
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


if __name__ == "__main__":
    args = _parse_args()
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    token, base_url = _read_env()

    try:
        result = asyncio.run(build_and_run(token, base_url, args))
    except PullRequestSearchError as exc:
        log.error("❌ %s: %s", type(exc).__name__, exc)
        sys.exit(1)

    _print_results(result, args)
