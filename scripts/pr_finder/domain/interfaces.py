"""
Domain Layer — Interfaces (Abstract Contracts)
-----------------------------------------------
The collaborators the pipeline talks to, defined as abstractions so the
application layer never imports httpx or reads the system clock directly.

Tests swap HttpxTransport for a FakeTransport and SystemClock for a
FixedClock without touching a single line of application code.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from .entities import FilterCriteria, ResultSet
from .errors import Cancelled


class ITransport(ABC):
    """
    Contract that any HTTP transport must fulfil.
    Authentication headers are composed by the implementation, not the core.
    """

    @abstractmethod
    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """
        GET `path` (relative to the API root, or an absolute URL) and return
        the parsed JSON body.

        Raises:
            TransportError: on any non-success response or network failure.
        """
        ...


class IClock(ABC):

    @abstractmethod
    def now(self) -> datetime:
        """Return the current time as an aware UTC datetime."""
        ...


class IResultCache(ABC):
    """
    Contract for the result cache. Keyed by the full FilterCriteria value;
    expiry is time-based only.
    """

    @abstractmethod
    async def get(self, criteria: FilterCriteria) -> ResultSet | None:
        """Return a fresh cached result or None."""
        ...

    @abstractmethod
    async def put(self, criteria: FilterCriteria, result: ResultSet) -> None:
        ...


class CancellationToken:
    """
    Caller-owned cancellation signal shared with one pipeline call.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise Cancelled("Search cancelled by caller")

    async def wait(self) -> None:
        await self._event.wait()
