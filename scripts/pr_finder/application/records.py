from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from pr_finder.domain.entities import DetailRecord, SummaryRecord
from pr_finder.domain.errors import MalformedRecordError

log = logging.getLogger(__name__)


# Anti-Corruption Layer
def parse_timestamp(value: str | None) -> datetime | None:
    """
    Convert GitHub's ISO datetime string to an aware Python datetime.

    Raises ValueError for a timestamp without an offset; it could not be
    compared with the aware clock.
    """
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        raise ValueError(f"Timestamp {value!r} has no timezone")
    return parsed


def detail_locator(item: Any) -> str | None:
    """
    The pull request detail URL of a search hit, or None.

    The issue-search endpoint mixes issues and pull requests; only pull
    requests carry a `pull_request.url`.
    """
    if not isinstance(item, dict):
        return None
    pull_request = item.get("pull_request")
    if not isinstance(pull_request, dict):
        return None
    return pull_request.get("url") or None


def parse_summary(item: dict) -> SummaryRecord:
    """
    Translate one raw search hit into a SummaryRecord.

    GitHub sends:           We store as:
      "user.login"       →  author_login
      "pull_request.url" →  detail_url

    If GitHub renames a field, fix it HERE only.
    """
    try:
        created_at = parse_timestamp(item["created_at"])
        if created_at is None:
            raise ValueError("created_at is empty")
        return SummaryRecord(
            id             = int(item["id"]),
            number         = int(item["number"]),
            title          = item["title"],
            state          = item["state"],
            author_login   = item["user"]["login"],
            author_avatar  = item["user"].get("avatar_url"),
            created_at     = created_at,
            closed_at      = parse_timestamp(item.get("closed_at")),
            comments       = int(item.get("comments") or 0),
            detail_url     = detail_locator(item),
        )
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise MalformedRecordError(
            f"Malformed search result {item.get('id') if isinstance(item, dict) else item!r}: {exc}"
        ) from exc


def parse_detail(data: dict) -> DetailRecord:
    """Translate a pull request detail payload into a DetailRecord."""
    try:
        repo = data["base"]["repo"]
        return DetailRecord(
            additions       = int(data["additions"]),
            deletions       = int(data["deletions"]),
            repo_name       = repo["name"],
            repo_full_name  = repo["full_name"],
            merged_at       = parse_timestamp(data.get("merged_at")),
        )
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise MalformedRecordError(f"Malformed pull request detail: {exc}") from exc
