"""
Domain Layer — Error taxonomy
-----------------------------
Every failure that leaves the pipeline is one of these. The caller gets a
single classified error carrying enough detail (status, reset time or
remediation text) to act on without inspecting internals.

TransportError is the only raw failure; the error classifier turns it into
one of the domain errors at the component boundary.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any


class TransportError(Exception):
    """
    Raised by an ITransport when a request fails.

    status is None when no response was received at all.
    """

    def __init__(
        self,
        message: str,
        status: int | None = None,
        body: Any = None,
        reset_at: datetime | None = None,
    ) -> None:
        super().__init__(message)
        self.message  = message
        self.status   = status
        self.body     = body
        self.reset_at = reset_at


class PullRequestSearchError(Exception):
    """Base class for every classified error the pipeline raises."""
    retryable = False


class InvalidFilterError(PullRequestSearchError, ValueError):
    """Caller input is malformed. Raised before any remote call."""


class RateLimitExceeded(PullRequestSearchError):
    """Search quota exhausted. Wait until reset_at; never retried here."""

    def __init__(self, message: str, reset_at: datetime | None = None) -> None:
        super().__init__(message)
        self.reset_at = reset_at


class AuthenticationError(PullRequestSearchError):
    """Credential rejected or expired."""


class QueryTooBroadError(PullRequestSearchError):
    """The remote refused to evaluate the query (HTTP 422)."""


class RemoteServiceError(PullRequestSearchError):
    """Unclassified remote failure; message passed through verbatim."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(f"GitHub API error {status}: {message}")
        self.status  = status
        self.message = message


class NetworkError(PullRequestSearchError):
    """No response received. Safe for the caller to retry."""
    retryable = True


class MalformedRecordError(PullRequestSearchError):
    """The remote returned a record that breaks the expected shape."""


class UnknownStatusError(PullRequestSearchError):
    """The remote state field holds a value outside open/closed/merged."""

    def __init__(self, state: Any) -> None:
        super().__init__(f"Unknown pull request state: {state!r}")
        self.state = state


class Cancelled(PullRequestSearchError):
    """The caller cancelled the search."""
