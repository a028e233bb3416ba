from __future__ import annotations

from datetime import datetime

from pr_finder.domain.entities import (
    Author,
    DetailRecord,
    PRDates,
    PRStats,
    PRStatus,
    PullRequest,
    Repository,
    SummaryRecord,
    is_at_risk,
)
from pr_finder.domain.errors import UnknownStatusError


def map_status(state: str, detail: DetailRecord) -> PRStatus:
    """
    Map the remote free-text state onto PRStatus.

    The search endpoint reports merged pull requests as "closed"; the detail
    record's merge timestamp tells them apart.
    """
    try:
        status = PRStatus(str(state).strip().lower())
    except ValueError:
        raise UnknownStatusError(state) from None

    if status is PRStatus.CLOSED and detail.merged_at is not None:
        return PRStatus.MERGED
    return status


def transform(summary: SummaryRecord, detail: DetailRecord, now: datetime) -> PullRequest:
    """
    Build the domain entity from a search hit and its detail record.

    Deterministic: `now` comes from the caller. Repository identity comes from
    the detail record, which is authoritative.
    """
    status = map_status(summary.state, detail)

    return PullRequest(
        id          = summary.id,
        number      = summary.number,
        title       = summary.title,
        status      = status,
        repository  = Repository(
            name       = detail.repo_name,
            full_name  = detail.repo_full_name,
        ),
        author      = Author(
            login       = summary.author_login,
            avatar_url  = summary.author_avatar,
        ),
        stats       = PRStats(
            additions  = detail.additions,
            deletions  = detail.deletions,
            comments   = summary.comments,
        ),
        dates       = PRDates(
            created_at  = summary.created_at,
            closed_at   = summary.closed_at,
        ),
        is_at_risk  = is_at_risk(status, summary.created_at, now),
    )
