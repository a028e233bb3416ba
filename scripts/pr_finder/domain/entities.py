from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum

# Open pull requests at least this old are "at risk".
STALENESS_WINDOW = timedelta(days=7)


class PRStatus(str, Enum):
    """Closed set of pull request states exposed by the domain."""
    OPEN   = "open"
    CLOSED = "closed"
    MERGED = "merged"


def is_at_risk(status: PRStatus, created_at: datetime, now: datetime) -> bool:
    """
    The single definition of the derived at-risk flag.

    Always takes `now` explicitly; nothing in the domain reads a wall clock.
    """
    return status is PRStatus.OPEN and now - created_at >= STALENESS_WINDOW


@dataclass(frozen=True)
class DateRange:
    """Inclusive UTC date bounds; either side may be open."""
    start: date | datetime | None = None
    end:   date | datetime | None = None


@dataclass(frozen=True)
class FilterCriteria:
    """
    Immutable input to one search call.

    Hashable on purpose: the full value is the result-cache key, so
    statuses is a frozenset rather than a list.
    """
    repository: str | None
    statuses:   frozenset[PRStatus] = frozenset()
    date_range: DateRange = DateRange()
    stale_only: bool = False


# Remote-shaped records. Created per call, discarded once transformed.
@dataclass(frozen=True)
class SummaryRecord:
    """One search hit. `detail_url` is None for plain issues."""
    id:             int
    number:         int
    title:          str
    state:          str
    author_login:   str
    author_avatar:  str | None
    created_at:     datetime
    closed_at:      datetime | None
    comments:       int
    detail_url:     str | None


@dataclass(frozen=True)
class DetailRecord:
    additions:       int
    deletions:       int
    repo_name:       str
    repo_full_name:  str
    merged_at:       datetime | None = None


@dataclass(frozen=True)
class SearchPage:
    number:       int
    records:      tuple[SummaryRecord, ...]
    total_count:  int


@dataclass(frozen=True)
class QuotaStatus:
    remaining: int
    reset_at:  datetime


# Domain entity
@dataclass(frozen=True)
class Repository:
    name:       str
    full_name:  str


@dataclass(frozen=True)
class Author:
    login:       str
    avatar_url:  str | None


@dataclass(frozen=True)
class PRStats:
    additions:  int
    deletions:  int
    comments:   int

    @property
    def changes(self) -> int:
        return self.additions + self.deletions


@dataclass(frozen=True)
class PRDates:
    created_at: datetime
    closed_at:  datetime | None


@dataclass(frozen=True)
class PullRequest:
    """
    Immutable domain entity representing one pull request.

    Field names are OURS, not GitHub's. The translation from the remote
    shapes happens in the transformer, nowhere else.

    `is_at_risk` is a snapshot taken at transformation time. Callers that
    hold on to an entity while the clock advances must use at_risk_as_of().
    """
    id:          int
    number:      int
    title:       str
    status:      PRStatus
    repository:  Repository
    author:      Author
    stats:       PRStats
    dates:       PRDates
    is_at_risk:  bool

    def at_risk_as_of(self, now: datetime) -> bool:
        return is_at_risk(self.status, self.dates.created_at, now)


@dataclass(frozen=True)
class ResultSet:
    """Value object returned by one pipeline call."""
    items:        tuple[PullRequest, ...]
    total_count:  int
