"""Shared fixtures for MediaWiki MCP tests.

The network is replaced by an ``httpx.MockTransport`` routed through
``FakeWiki``, so no test ever leaves the process.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any
from urllib.parse import parse_qs

import httpx
import pytest

from mediawiki_mcp.registry import SiteRegistry, registry_from_mapping
from mediawiki_mcp.services import WikiServices, build_services

# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------
WIKIPEDIA = "en.wikipedia.org"
EXAMPLE = "wiki.example.org"
BOTWIKI = "bot.example.org"

WIKIPEDIA_API = "https://en.wikipedia.org/w/api.php"
WIKIPEDIA_REST = "https://en.wikipedia.org/w/rest.php"
EXAMPLE_API = "https://wiki.example.org/w/api.php"
EXAMPLE_REST = "https://wiki.example.org/w/rest.php"
BOTWIKI_API = "https://bot.example.org/api.php"
BOTWIKI_REST = "https://bot.example.org/rest.php"

SAMPLE_CONFIG: dict[str, Any] = {
    "defaultWiki": WIKIPEDIA,
    "wikis": {
        WIKIPEDIA: {
            "sitename": "Wikipedia",
            "server": "https://en.wikipedia.org",
            "articlepath": "/wiki",
            "scriptpath": "/w",
        },
        EXAMPLE: {
            "sitename": "Example Wiki",
            "server": "https://wiki.example.org",
            "articlepath": "/wiki",
            "scriptpath": "/w",
            "token": "example-oauth-token",
        },
        BOTWIKI: {
            "sitename": "Bot Wiki",
            "server": "https://bot.example.org",
            "articlepath": "/index.php",
            "scriptpath": "",
            "username": "Admin@mcp",
            "password": "bot-password",
        },
    },
}


def siteinfo(
    sitename: str, server: str, scriptpath: str, servername: str, articlepath: str = "/wiki/$1"
) -> dict[str, Any]:
    """A minimal ``meta=siteinfo`` response."""
    return {
        "batchcomplete": "",
        "query": {
            "general": {
                "sitename": sitename,
                "server": server,
                "servername": servername,
                "scriptpath": scriptpath,
                "articlepath": articlepath,
            }
        },
    }


def csrf_payload(token: str = "csrf-token+\\") -> dict[str, Any]:
    return {"batchcomplete": "", "query": {"tokens": {"csrftoken": token}}}


def rest_page(page_id: int = 42, title: str = "Sandbox", rev_id: int = 1001) -> dict[str, Any]:
    return {
        "id": page_id,
        "key": title.replace(" ", "_"),
        "title": title,
        "latest": {"id": rev_id, "timestamp": "2025-01-01T00:00:00Z"},
        "content_model": "wikitext",
        "license": {"url": "https://creativecommons.org/licenses/by-sa/4.0/", "title": "CC BY-SA 4.0"},
        "html_url": f"https://wiki.example.org/w/rest.php/v1/page/{title}/html",
        "source": "Hello '''world'''",
    }


def request_params(request: httpx.Request) -> dict[str, str]:
    """Query string plus url-encoded form fields of *request*."""
    params = dict(request.url.params)
    if request.headers.get("content-type", "").startswith("application/x-www-form-urlencoded"):
        params.update({k: v[0] for k, v in parse_qs(request.content.decode()).items()})
    return params


Handler = Callable[[httpx.Request], httpx.Response]


class FakeWiki:
    """Routes mocked HTTP requests by method and URL (query string ignored).

    Later routes win over earlier ones for the same method and URL; an
    unrouted request gets a 404.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._routes: list[tuple[str, str, Handler]] = []

    def on(self, method: str, url: str, handler: Handler) -> None:
        self._routes.append((method.upper(), url, handler))

    def json(self, method: str, url: str, payload: Any, status: int = 200) -> None:
        self.on(method, url, lambda _req: httpx.Response(status, json=payload))

    def action(self, url: str, responses: dict[str, Any]) -> None:
        """Route an ``api.php`` by its ``action`` (or ``meta``/``list``) parameter."""

        def _dispatch(request: httpx.Request) -> httpx.Response:
            params = request_params(request)
            for name in (params.get("meta"), params.get("list"), params.get("action")):
                if name in responses:
                    payload = responses[name]
                    if callable(payload):
                        return payload(request)
                    return httpx.Response(200, json=payload)
            return httpx.Response(200, json={"error": {"code": "badvalue", "info": str(params)}})

        self.on("GET", url, _dispatch)
        self.on("POST", url, _dispatch)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url).split("?", 1)[0]
        for method, route_url, handler in reversed(self._routes):
            if method == request.method and route_url == url:
                return handler(request)
        return httpx.Response(404, text=f"no route for {request.method} {url}")

    def calls(self, url: str | None = None, method: str | None = None) -> list[httpx.Request]:
        return [
            r
            for r in self.requests
            if (url is None or str(r.url).split("?", 1)[0] == url)
            and (method is None or r.method == method.upper())
        ]

    def params_of(self, url: str | None = None, method: str | None = None) -> list[dict[str, str]]:
        return [request_params(r) for r in self.calls(url, method)]


class FakeClock:
    """Monotonic clock under test control."""

    def __init__(self, start: float = 10_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def fake_wiki() -> FakeWiki:
    return FakeWiki()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeps() -> list[float]:
    """Seconds passed to the transport's backoff sleep, in order."""
    return []


@pytest.fixture
def fake_sleep(sleeps):
    async def _sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return _sleep


@pytest.fixture
def mock_client(fake_wiki) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(fake_wiki))


@pytest.fixture
def registry() -> SiteRegistry:
    return registry_from_mapping(SAMPLE_CONFIG)


@pytest.fixture
def services(registry, mock_client, fake_sleep, clock) -> WikiServices:
    """Fully wired services talking to ``fake_wiki``."""
    return build_services(registry, client=mock_client, sleep=fake_sleep, csrf_timer=clock)
