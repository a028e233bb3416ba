"""Client-side helpers applied to an already fetched result set."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Callable, Iterable

from pr_finder.domain.entities import PullRequest

SORT_KEYS: dict[str, Callable[[PullRequest], object]] = {
    "created":  lambda pr: pr.dates.created_at,
    "changes":  lambda pr: pr.stats.changes,
    "number":   lambda pr: pr.number,
    "title":    lambda pr: pr.title.lower(),
    "comments": lambda pr: pr.stats.comments,
}

PERIODS = {
    "week":  timedelta(weeks=1),
    "month": timedelta(days=30),
    "year":  timedelta(days=365),
}


def filter_by_term(items: Iterable[PullRequest], term: str | None) -> list[PullRequest]:
    """Case-insensitive match on title, author, repository or number."""
    needle = (term or "").strip().lower()
    if not needle:
        return list(items)

    return [
        pr for pr in items
        if needle in pr.title.lower()
        or needle in pr.author.login.lower()
        or needle in pr.repository.full_name.lower()
        or needle in str(pr.number)
    ]


def sort_pull_requests(
    items: Iterable[PullRequest],
    sort_by: str = "created",
    descending: bool = True,
) -> list[PullRequest]:
    if sort_by not in SORT_KEYS:
        raise ValueError(f"Unknown sort key {sort_by!r}; choose from {sorted(SORT_KEYS)}")
    return sorted(items, key=SORT_KEYS[sort_by], reverse=descending)


def format_stats(pr: PullRequest) -> str:
    return f"+{pr.stats.additions} -{pr.stats.deletions}"


def date_range_for_period(period: str, now: datetime) -> tuple[date, date]:
    """Preset (start, end) window ending today, e.g. the last week."""
    try:
        span = PERIODS[period]
    except KeyError:
        raise ValueError(f"Unknown period {period!r}; choose from {sorted(PERIODS)}") from None
    today = now.date()
    return today - span, today


def is_valid_date_range(start: date | None, end: date | None) -> bool:
    if start is None or end is None:
        return True
    return start <= end
