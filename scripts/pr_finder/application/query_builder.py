from __future__ import annotations

import logging
import re
from datetime import date, datetime, timezone

from pr_finder.domain.entities import STALENESS_WINDOW, FilterCriteria, PRStatus
from pr_finder.domain.errors import InvalidFilterError

log = logging.getLogger(__name__)

# owner/name: ASCII word characters, dot and hyphen, exactly one slash.
REPO_PATTERN = re.compile(r"^[\w.-]+/[\w.-]+$", re.ASCII)

BASE_TERM = "is:pr"

# ---------------------------------------------------------------------------
# Search grammar
# ---------------------------------------------------------------------------
# Every selected status becomes its own `is:` predicate. GitHub ANDs
# independent predicates, so selecting open AND closed narrows the result
# (usually to nothing) instead of widening it. The grammar has no OR across
# `is:` terms; this is a known limitation, kept as is.
STATUS_TERMS = {
    PRStatus.OPEN:   "is:open",
    PRStatus.CLOSED: "is:closed",
    PRStatus.MERGED: "is:merged",
}


def validate_repository(repository: str | None) -> str:
    """Return the repository slug or raise InvalidFilterError."""
    if not repository:
        raise InvalidFilterError("A repository in 'owner/name' form is required")

    if not REPO_PATTERN.match(repository):
        raise InvalidFilterError(
            f"Invalid repository {repository!r}: expected 'owner/name'"
        )

    # `..` and friends pass the character class but are path tricks, not slugs
    if any(not part.strip(".") for part in repository.split("/")):
        raise InvalidFilterError(
            f"Invalid repository {repository!r}: owner and name must not be only dots"
        )
    return repository


def to_utc_date(value: date | datetime) -> date:
    """Drop the time-of-day component, normalising aware datetimes to UTC."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    return value


def build_query(criteria: FilterCriteria, now: datetime) -> str:
    """
    Translate filter criteria into a GitHub issue-search query string.

    Term order: base, repo, statuses, date bounds, stale term. Identical
    terms are emitted once, so the stale term's `is:open` does not repeat a
    user-selected open status.

    Raises:
        InvalidFilterError: bad repository or a start date after the end date.
    """
    repository = validate_repository(criteria.repository)

    start = criteria.date_range.start
    end   = criteria.date_range.end
    start_day = to_utc_date(start) if start is not None else None
    end_day   = to_utc_date(end) if end is not None else None

    if start_day and end_day and start_day > end_day:
        raise InvalidFilterError(
            f"Date range start {start_day.isoformat()} is after end {end_day.isoformat()}"
        )

    terms: list[str] = [BASE_TERM, f"repo:{repository}"]

    # Iterate the enum, not the set, so the output is deterministic
    terms.extend(STATUS_TERMS[status] for status in PRStatus if status in criteria.statuses)

    if start_day:
        terms.append(f"created:>={start_day.isoformat()}")
    if end_day:
        terms.append(f"created:<={end_day.isoformat()}")

    if criteria.stale_only:
        cutoff = to_utc_date(now - STALENESS_WINDOW)
        terms.append(STATUS_TERMS[PRStatus.OPEN])
        terms.append(f"created:<={cutoff.isoformat()}")

    query = " ".join(dict.fromkeys(terms))
    log.debug("Built search query: %s", query)
    return query
