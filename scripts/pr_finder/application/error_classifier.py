from __future__ import annotations

import logging

from pr_finder.domain.errors import (
    AuthenticationError,
    NetworkError,
    PullRequestSearchError,
    QueryTooBroadError,
    RateLimitExceeded,
    RemoteServiceError,
    TransportError,
)

log = logging.getLogger(__name__)

RATE_LIMIT_MARKER = "rate limit"
RATE_LIMIT_STATUSES = {403, 429}

QUERY_TOO_BROAD_HINT = (
    "GitHub could not evaluate this search. Narrow it: check the repository "
    "name is correct, shorten the date range, or select fewer statuses."
)


def classify(error: TransportError) -> PullRequestSearchError:
    """
    Map a raw transport failure onto the domain error taxonomy.

    No response       → NetworkError
    422               → QueryTooBroadError
    403 / 429 / "rate limit" in message → RateLimitExceeded
    401               → AuthenticationError
    anything else     → RemoteServiceError (message passed through verbatim)
    """
    status  = error.status
    message = error.message or ""

    if status is None:
        classified: PullRequestSearchError = NetworkError(
            f"Could not reach GitHub: {message}"
        )
    elif status == 422:
        classified = QueryTooBroadError(f"{QUERY_TOO_BROAD_HINT} ({message})")
    elif status in RATE_LIMIT_STATUSES or RATE_LIMIT_MARKER in message.lower():
        classified = RateLimitExceeded(
            f"GitHub rate limit exceeded: {message}", reset_at=error.reset_at
        )
    elif status == 401:
        classified = AuthenticationError(
            f"GitHub rejected the credential ({message}). Provide a valid token."
        )
    else:
        classified = RemoteServiceError(status, message)

    log.debug("Classified transport failure status=%s as %s", status, type(classified).__name__)
    return classified
