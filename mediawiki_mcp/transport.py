"""Resilient HTTP transport — the single network boundary of MediaWiki MCP.

Wraps one shared ``httpx.AsyncClient`` and adds:

- a per-call timeout (``MEDIAWIKI_HTTP_TIMEOUT``, default 30 s),
- retries with capped exponential backoff for network-level failures only
  (timeouts, refused connections, DNS errors),
- classification of every outcome into ``NetworkFailure``, ``HttpFailure``
  or ``DecodeFailure``.

A response with a non-2xx status is never retried: retrying a deterministic
4xx/5xx cannot change the outcome.

The client keeps cookies, so Action API login sessions for username/password
wikis live here too.  Tests swap the network for an ``httpx.MockTransport``.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import anyio
import httpx

from . import config
from .errors import DecodeFailure, HttpFailure, NetworkFailure

logger = logging.getLogger("MediaWiki")

SleepFn = Callable[[float], Awaitable[None]]

_DNS_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo",
    "name resolution",
    "no address associated",
)
_REFUSED_MARKERS = ("connection refused", "errno 111", "errno 61", "10061")


# ---------------------------------------------------------------------------
# Backoff + classification
# ---------------------------------------------------------------------------
def backoff_delay_ms(
    attempt: int,
    base_ms: int = config.BACKOFF_BASE_MS,
    cap_ms: int = config.BACKOFF_CAP_MS,
) -> int:
    """Delay before retry number *attempt* (0-based): ``min(base·2^attempt, cap)``."""
    return min(base_ms * (2**attempt), cap_ms)


def classify_network_error(exc: httpx.TransportError) -> str:
    """Name the failure category of a network-level httpx error."""
    if isinstance(exc, httpx.TimeoutException):
        return "timeout"
    text = str(exc).lower()
    if isinstance(exc, httpx.ConnectError):
        if any(marker in text for marker in _DNS_MARKERS):
            return "DNS"
        if any(marker in text for marker in _REFUSED_MARKERS):
            return "connection-refused"
    return "network"


def build_client(timeout: float = config.HTTP_TIMEOUT_SECONDS) -> httpx.AsyncClient:
    """Create the shared ``httpx.AsyncClient`` with MediaWiki MCP defaults."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout),
        follow_redirects=True,
        headers={
            "User-Agent": config.USER_AGENT,
            "Accept-Language": config.WIKI_LANGUAGE,
        },
    )


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------
class Transport:
    """Retrying, classifying wrapper around an ``httpx.AsyncClient``."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        max_retries: int = config.MAX_RETRIES,
        timeout: float = config.HTTP_TIMEOUT_SECONDS,
        sleep: SleepFn | None = None,
    ) -> None:
        self.client = client or build_client(timeout)
        self.max_retries = max(0, max_retries)
        self.timeout = timeout
        self._sleep = sleep or anyio.sleep

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _send(
        self,
        url: str,
        *,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        json_body: Any = None,
        data: dict[str, Any] | None = None,
        files: dict[str, Any] | None = None,
    ) -> httpx.Response:
        if url.startswith("//"):
            url = "https:" + url

        request_headers = {
            "User-Agent": config.USER_AGENT,
            "Accept-Language": config.WIKI_LANGUAGE,
        }
        if headers:
            request_headers.update(headers)

        last_error: httpx.TransportError | None = None
        for attempt in range(self.max_retries + 1):
            if attempt:
                delay = backoff_delay_ms(attempt - 1)
                logger.info(
                    "Retrying %s %s in %dms (attempt %d/%d)",
                    method,
                    url,
                    delay,
                    attempt + 1,
                    self.max_retries + 1,
                )
                await self._sleep(delay / 1000)
            try:
                response = await self.client.request(
                    method,
                    url,
                    headers=request_headers,
                    params=params,
                    json=json_body,
                    data=data,
                    files=files,
                    timeout=self.timeout,
                )
            except httpx.TransportError as exc:
                last_error = exc
                logger.warning(
                    "%s %s failed (%s): %s",
                    method,
                    url,
                    classify_network_error(exc),
                    exc,
                )
                continue

            if not response.is_success:
                body = response.text
                logger.debug("%s %s → HTTP %d", method, url, response.status_code)
                raise HttpFailure(response.status_code, body, str(response.url))
            return response

        assert last_error is not None
        category = classify_network_error(last_error)
        raise NetworkFailure(
            category,
            url,
            f"giving up after {self.max_retries + 1} attempts: {last_error}",
        ) from last_error

    async def request_json(self, url: str, **kwargs: Any) -> Any:
        """Perform a request and return the decoded JSON payload."""
        headers = {"Accept": "application/json", **(kwargs.pop("headers", None) or {})}
        response = await self._send(url, headers=headers, **kwargs)
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise DecodeFailure(response.text, str(response.url)) from exc

    async def request_text(self, url: str, **kwargs: Any) -> str:
        """Perform a request and return the body as text (HTML endpoints)."""
        response = await self._send(url, **kwargs)
        return response.text

    async def request_bytes(self, url: str, **kwargs: Any) -> bytes:
        """Perform a request and return the raw body (binary endpoints)."""
        response = await self._send(url, **kwargs)
        return response.content
