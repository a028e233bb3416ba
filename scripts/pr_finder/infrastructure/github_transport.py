from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from pr_finder.domain.errors import TransportError
from pr_finder.domain.interfaces import ITransport

log = logging.getLogger(__name__)

GITHUB_API_URL  = "https://api.github.com"
API_VERSION     = "2022-11-28"
REQUEST_TIMEOUT = 30.0


class HttpxTransport(ITransport):
    """
    Concrete implementation of ITransport for GitHub's REST API.

    The constructor receives an httpx.AsyncClient (injected) rather than
    creating one internally. This lets callers control the client lifecycle
    and makes testing trivial: pass a client built on httpx.MockTransport.

    No retries happen here; a failed request becomes a TransportError and
    the caller decides what to do with it.
    """

    def __init__(
        self,
        token: str,
        client: httpx.AsyncClient,
        base_url: str = GITHUB_API_URL,
    ) -> None:
        self._client   = client
        self._base_url = base_url.rstrip("/")
        self._headers  = {
            "Authorization":        f"Bearer {token}",
            "Accept":               "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
        }

    def _url(self, path: str) -> str:
        # Detail locators arrive as absolute URLs
        if path.startswith(("http://", "https://")):
            return path
        return f"{self._base_url}/{path.lstrip('/')}"

    @staticmethod
    def _reset_at(response: httpx.Response) -> datetime | None:
        reset = response.headers.get("X-RateLimit-Reset")
        if not reset or not reset.isdigit():
            return None
        return datetime.fromtimestamp(int(reset), tz=timezone.utc)

    @staticmethod
    def _error_body(response: httpx.Response) -> tuple[Any, str]:
        """Parsed error body and the remote message, falling back to text."""
        try:
            body = response.json()
        except ValueError:
            body = response.text
        if isinstance(body, dict) and body.get("message"):
            return body, str(body["message"])
        return body, response.reason_phrase or f"HTTP {response.status_code}"

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        url = self._url(path)
        try:
            response = await self._client.get(
                url,
                headers=self._headers,
                params=params,
                timeout=REQUEST_TIMEOUT,
            )
        except httpx.RequestError as exc:
            log.warning("Request to %s failed: %s", url, exc)
            raise TransportError(str(exc) or type(exc).__name__) from exc

        if response.is_success:
            log.debug(
                "GET %s → %d | rate remaining=%s",
                url, response.status_code, response.headers.get("X-RateLimit-Remaining"),
            )
            try:
                return response.json()
            except ValueError as exc:
                # Proxies and captive portals answer 200 with HTML
                log.warning("GET %s → %d with a non-JSON body", url, response.status_code)
                raise TransportError(
                    f"Response from {url} is not JSON",
                    status = response.status_code,
                    body   = response.text,
                ) from exc

        body, message = self._error_body(response)
        log.warning("GET %s → %d: %s", url, response.status_code, message)
        raise TransportError(
            message,
            status   = response.status_code,
            body     = body,
            reset_at = self._reset_at(response),
        )
