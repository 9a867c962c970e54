"""Tests for MCP tool registration, server creation, and individual tools."""

from __future__ import annotations

import json
from typing import Any

import httpx
import pytest

from mediawiki_mcp.server import create_server, parse_args
from tests.conftest import (
    BOTWIKI,
    EXAMPLE,
    EXAMPLE_API,
    EXAMPLE_REST,
    WIKIPEDIA,
    WIKIPEDIA_API,
    WIKIPEDIA_REST,
    csrf_payload,
    rest_page,
    siteinfo,
)


class _DummySession:
    def __init__(self) -> None:
        self.resource_list_changed = 0

    async def send_resource_list_changed(self) -> None:
        self.resource_list_changed += 1


class _DummyCtx:
    def __init__(self) -> None:
        self.session = _DummySession()


def _tool_fn(mcp: Any, tool_name: str) -> Any:
    tools = getattr(getattr(mcp, "_tool_manager"), "_tools")
    return tools[tool_name].fn


def _list_tool_names(mcp: Any) -> set[str]:
    return {tool.name for tool in getattr(mcp, "_tool_manager").list_tools()}


async def _call(mcp: Any, tool_name: str, **kwargs: Any) -> dict[str, Any]:
    return json.loads(await _tool_fn(mcp, tool_name)(**kwargs))


@pytest.fixture
def mcp(services):
    return create_server(services=services)


@pytest.fixture
def ctx() -> _DummyCtx:
    return _DummyCtx()


# ---------------------------------------------------------------------------
# CLI args
# ---------------------------------------------------------------------------
class TestParseArgs:
    def test_defaults(self):
        args = parse_args([])
        assert args.transport == "stdio"
        assert args.port == 3000
        assert args.config is None
        assert args.verbose is False

    def test_sse(self):
        args = parse_args(["--sse", "--port", "8080"])
        assert args.transport == "sse"
        assert args.port == 8080

    def test_config(self):
        assert parse_args(["--config", "/etc/wikis.json"]).config == "/etc/wikis.json"


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------
class TestRegistration:
    def test_all_tools_registered(self, mcp):
        assert _list_tool_names(mcp) == {
            "add-wiki",
            "set-wiki",
            "remove-wiki",
            "search-page",
            "search-page-by-prefix",
            "get-page",
            "get-page-history",
            "get-revision",
            "get-file",
            "upload-file",
            "create-page",
            "update-page",
            "delete-page",
        }

    def test_create_server_loads_config(self, tmp_path, monkeypatch):
        monkeypatch.delenv("CONFIG", raising=False)
        monkeypatch.chdir(tmp_path)
        server = create_server()
        assert server.services.registry.current_key == WIKIPEDIA


class TestResources:
    @pytest.mark.asyncio
    async def test_lists_every_wiki(self, mcp):
        resources = await mcp.list_resources()
        by_uri = {str(r.uri): r for r in resources}
        assert set(by_uri) == {
            f"mcp://wikis/{WIKIPEDIA}",
            f"mcp://wikis/{EXAMPLE}",
            f"mcp://wikis/{BOTWIKI}",
        }
        assert by_uri[f"mcp://wikis/{EXAMPLE}"].name == f"wikis/{EXAMPLE}"
        assert by_uri[f"mcp://wikis/{EXAMPLE}"].title == "Example Wiki"

    @pytest.mark.asyncio
    async def test_read_is_sanitized(self, mcp):
        contents = list(await mcp.read_resource(f"mcp://wikis/{EXAMPLE}"))
        data = json.loads(contents[0].content)
        assert data["sitename"] == "Example Wiki"
        assert data["server"] == "https://wiki.example.org"
        assert "token" not in data
        assert "password" not in data


# ---------------------------------------------------------------------------
# Wiki management
# ---------------------------------------------------------------------------
class TestWikiManagement:
    @pytest.mark.asyncio
    async def test_add_wiki(self, mcp, services, fake_wiki, ctx):
        fake_wiki.json(
            "GET",
            "https://new.example.net/w/api.php",
            siteinfo("New Wiki", "https://new.example.net", "/w", "new.example.net"),
        )
        result = await _call(mcp, "add-wiki", wiki_url="https://new.example.net/wiki/Main", ctx=ctx)

        assert result["status"] == "ok"
        assert result["data"] == "New Wiki (mcp://wikis/new.example.net) has been added to MCP resources."
        assert "new.example.net" in services.registry
        assert services.registry.current_key == WIKIPEDIA
        assert ctx.session.resource_list_changed == 1

    @pytest.mark.asyncio
    async def test_add_wiki_discovery_failure(self, mcp, ctx):
        result = await _call(mcp, "add-wiki", wiki_url="https://nowhere.example/wiki/X", ctx=ctx)
        assert result["status"] == "error"
        assert result["code"] == "DISCOVERY_FAILED"
        assert ctx.session.resource_list_changed == 0

    @pytest.mark.asyncio
    async def test_add_existing_wiki(self, mcp, fake_wiki, ctx):
        fake_wiki.json(
            "GET",
            f"{EXAMPLE_API}",
            siteinfo("Example Wiki", "https://wiki.example.org", "/w", EXAMPLE),
        )
        result = await _call(mcp, "add-wiki", wiki_url="https://wiki.example.org/wiki/X", ctx=ctx)
        assert result["code"] == "REGISTRY"
        assert "already exists" in result["message"]

    @pytest.mark.asyncio
    async def test_add_wiki_invalid_url(self, mcp, ctx):
        result = await _call(mcp, "add-wiki", wiki_url="ftp://example.org", ctx=ctx)
        assert result["code"] == "VALIDATION"

    @pytest.mark.asyncio
    async def test_set_wiki(self, mcp, services):
        result = await _call(mcp, "set-wiki", wiki_url="https://wiki.example.org/wiki/Main_Page")
        assert result["data"] == "Wiki set to Example Wiki (https://wiki.example.org)"
        assert services.registry.current_key == EXAMPLE

    @pytest.mark.asyncio
    async def test_set_wiki_failure_keeps_current(self, mcp, services):
        result = await _call(mcp, "set-wiki", wiki_url="https://nowhere.example/wiki/X")
        assert result["code"] == "DISCOVERY_FAILED"
        assert services.registry.current_key == WIKIPEDIA

    @pytest.mark.asyncio
    async def test_remove_wiki(self, mcp, services, fake_wiki, ctx):
        fake_wiki.action(EXAMPLE_API, {"tokens": csrf_payload("csrf+\\")})
        site = services.registry.get(EXAMPLE)
        await services.csrf.get_token(site)

        result = await _call(mcp, "remove-wiki", uri=f"mcp://wikis/{EXAMPLE}", ctx=ctx)

        assert result["status"] == "ok"
        assert EXAMPLE not in services.registry
        assert ctx.session.resource_list_changed == 1
        # The cached token went with the wiki.
        await services.csrf.get_token(site)
        assert len(fake_wiki.calls(EXAMPLE_API)) == 2

    @pytest.mark.asyncio
    async def test_remove_current_refused(self, mcp, services, ctx):
        result = await _call(mcp, "remove-wiki", uri=f"mcp://wikis/{WIKIPEDIA}", ctx=ctx)
        assert result["code"] == "REGISTRY"
        assert "currently active" in result["message"]
        assert WIKIPEDIA in services.registry

    @pytest.mark.asyncio
    async def test_remove_unknown(self, mcp, ctx):
        result = await _call(mcp, "remove-wiki", uri="mcp://wikis/nowhere.example", ctx=ctx)
        assert result["code"] == "REGISTRY"
        assert "not found" in result["message"]

    @pytest.mark.asyncio
    async def test_remove_bad_uri(self, mcp, ctx):
        result = await _call(mcp, "remove-wiki", uri="https://en.wikipedia.org", ctx=ctx)
        assert result["code"] == "VALIDATION"


# ---------------------------------------------------------------------------
# Per-call targeting
# ---------------------------------------------------------------------------
class TestPerCallTargeting:
    @pytest.mark.asyncio
    async def test_failed_write_on_other_wiki_keeps_current(self, mcp, services, fake_wiki):
        fake_wiki.on(
            "POST",
            f"{EXAMPLE_REST}/v1/page",
            lambda _r: httpx.Response(409, json={"errorKey": "rest-update-conflict"}),
        )
        assert services.registry.current_key == WIKIPEDIA

        result = await _call(
            mcp,
            "create-page",
            source="Hello",
            title="Sandbox",
            wiki_url="https://wiki.example.org/wiki/Main_Page",
        )

        assert result["status"] == "error"
        assert result["code"] == "HTTP_ERROR"
        assert result["wiki"] == EXAMPLE
        assert result["message"].startswith("Failed to create page: HTTP error! status: 409")
        assert services.registry.current_key == WIKIPEDIA

    @pytest.mark.asyncio
    async def test_read_targets_other_wiki(self, mcp, services, fake_wiki):
        fake_wiki.json("GET", f"{EXAMPLE_REST}/v1/page/Sandbox", rest_page())
        result = await _call(
            mcp, "get-page", title="Sandbox", wiki_url="https://wiki.example.org/wiki/Sandbox"
        )
        assert result["data"] == "Hello '''world'''"
        assert result["wiki"] == EXAMPLE
        assert fake_wiki.calls(f"{WIKIPEDIA_REST}/v1/page/Sandbox") == []
        assert services.registry.current_key == WIKIPEDIA

    @pytest.mark.asyncio
    async def test_unknown_wiki_url(self, mcp, services):
        result = await _call(mcp, "get-page", title="X", wiki_url="https://nowhere.example/wiki/X")
        assert result["code"] == "DISCOVERY_FAILED"
        assert result["message"].startswith("Failed to determine wiki info for")
        assert services.registry.current_key == WIKIPEDIA

    @pytest.mark.asyncio
    async def test_invalid_wiki_url(self, mcp):
        result = await _call(mcp, "get-page", title="X", wiki_url="not-a-url")
        assert result["code"] == "VALIDATION"


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------
class TestSearch:
    @pytest.mark.asyncio
    async def test_search_page(self, mcp, fake_wiki):
        fake_wiki.json(
            "GET",
            f"{WIKIPEDIA_REST}/v1/search/page",
            {
                "pages": [
                    {
                        "id": 23862,
                        "key": "Python",
                        "title": "Python",
                        "description": "Programming language",
                        "thumbnail": {"url": "//upload.example/python.png"},
                    },
                    {"id": 1, "key": "Monty_Python", "title": "Monty Python"},
                ]
            },
        )
        result = await _call(mcp, "search-page", query="python", limit=2)

        assert result["status"] == "ok"
        assert result["meta"]["protocol"] == "rest"
        assert "Title: Python\nDescription: Programming language\nPage ID: 23862" in result["data"]
        assert "Page URL: https://en.wikipedia.org/wiki/Python" in result["data"]
        assert "Thumbnail URL: //upload.example/python.png" in result["data"]
        assert "Description: Not available" in result["data"]
        params = dict(fake_wiki.requests[0].url.params)
        assert params["q"] == "python"
        assert params["limit"] == "2"

    @pytest.mark.asyncio
    async def test_no_results(self, mcp, fake_wiki):
        fake_wiki.json("GET", f"{WIKIPEDIA_REST}/v1/search/page", {"pages": []})
        result = await _call(mcp, "search-page", query="zzzz")
        assert result["data"] == "No pages found for zzzz"

    @pytest.mark.asyncio
    async def test_limit_validated(self, mcp, fake_wiki):
        result = await _call(mcp, "search-page", query="x", limit=0)
        assert result["code"] == "VALIDATION"
        assert fake_wiki.requests == []

    @pytest.mark.asyncio
    async def test_network_failure(self, mcp, fake_wiki, sleeps):
        def _down(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("[Errno 111] Connection refused", request=request)

        fake_wiki.on("GET", f"{WIKIPEDIA_REST}/v1/search/page", _down)
        result = await _call(mcp, "search-page", query="x")
        assert result["code"] == "NETWORK"
        assert "connection-refused" in result["message"]
        assert len(sleeps) == 2

    @pytest.mark.asyncio
    async def test_prefix_search(self, mcp, fake_wiki):
        fake_wiki.action(
            WIKIPEDIA_API,
            {"allpages": {"query": {"allpages": [{"title": "Pyramid"}, {"title": "Pyrite"}]}}},
        )
        result = await _call(mcp, "search-page-by-prefix", prefix="Pyr", namespace=0)

        assert result["data"] == "Pyramid\nPyrite"
        assert result["meta"]["protocol"] == "legacy"
        params = fake_wiki.params_of(WIKIPEDIA_API)[0]
        assert params["apprefix"] == "Pyr"
        assert params["apnamespace"] == "0"
        assert params["aplimit"] == "10"

    @pytest.mark.asyncio
    async def test_prefix_search_empty(self, mcp, fake_wiki):
        fake_wiki.action(WIKIPEDIA_API, {"allpages": {"query": {"allpages": []}}})
        result = await _call(mcp, "search-page-by-prefix", prefix="Qqq")
        assert result["data"] == 'No pages found with the prefix "Qqq"'

    @pytest.mark.asyncio
    async def test_prefix_search_api_error(self, mcp, fake_wiki):
        fake_wiki.action(
            WIKIPEDIA_API, {"allpages": {"error": {"code": "badns", "info": "Bad namespace"}}}
        )
        result = await _call(mcp, "search-page-by-prefix", prefix="X", namespace=999)
        assert result["code"] == "API_ERROR"
        assert "badns" in result["message"]


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
class TestReads:
    @pytest.mark.asyncio
    async def test_get_page_source(self, mcp, fake_wiki):
        fake_wiki.json("GET", f"{WIKIPEDIA_REST}/v1/page/Sandbox", rest_page())
        result = await _call(mcp, "get-page", title="Sandbox")
        assert result["data"] == "Hello '''world'''"

    @pytest.mark.asyncio
    async def test_get_page_metadata(self, mcp, fake_wiki):
        fake_wiki.json("GET", f"{WIKIPEDIA_REST}/v1/page/Sandbox/bare", rest_page())
        result = await _call(mcp, "get-page", title="Sandbox", content="metadata")
        assert "Page ID: 42" in result["data"]
        assert "Latest revision ID: 1001" in result["data"]
        assert "License: https://creativecommons.org/licenses/by-sa/4.0/ CC BY-SA 4.0" in result["data"]

    @pytest.mark.asyncio
    async def test_get_page_html_and_metadata(self, mcp, fake_wiki):
        page = {**rest_page(), "html": "<p>Hello</p>"}
        page.pop("source")
        fake_wiki.json("GET", f"{WIKIPEDIA_REST}/v1/page/Sandbox/with_html", page)
        result = await _call(mcp, "get-page", title="Sandbox", content="htmlAndMetadata")
        assert "Page ID: 42" in result["data"]
        assert result["data"].endswith("HTML:\n<p>Hello</p>")
        assert "Source:" not in result["data"]

    @pytest.mark.asyncio
    async def test_get_page_missing(self, mcp, fake_wiki):
        fake_wiki.on(
            "GET",
            f"{WIKIPEDIA_REST}/v1/page/Nope",
            lambda _r: httpx.Response(404, json={"errorKey": "rest-nonexistent-title"}),
        )
        result = await _call(mcp, "get-page", title="Nope")
        assert result["code"] == "NOT_FOUND"
        assert result["message"].startswith("Failed to retrieve page data:")

    @pytest.mark.asyncio
    async def test_get_page_history(self, mcp, fake_wiki):
        fake_wiki.json(
            "GET",
            f"{WIKIPEDIA_REST}/v1/page/Sandbox/history",
            {
                "revisions": [
                    {
                        "id": 1001,
                        "timestamp": "2025-01-01T00:00:00Z",
                        "user": {"id": 7, "name": "Alice"},
                        "comment": "typo",
                        "size": 120,
                        "delta": -3,
                    }
                ]
            },
        )
        result = await _call(mcp, "get-page-history", title="Sandbox", older_than=2000)

        assert "Revision ID: 1001" in result["data"]
        assert "User: Alice (ID: 7)" in result["data"]
        assert "Delta: -3" in result["data"]
        assert dict(fake_wiki.requests[0].url.params)["older_than"] == "2000"

    @pytest.mark.asyncio
    async def test_get_page_history_empty(self, mcp, fake_wiki):
        fake_wiki.json("GET", f"{WIKIPEDIA_REST}/v1/page/Sandbox/history", {"revisions": []})
        result = await _call(mcp, "get-page-history", title="Sandbox")
        assert result["data"] == "No revisions found for page"

    @pytest.mark.asyncio
    async def test_get_revision(self, mcp, fake_wiki):
        fake_wiki.json(
            "GET",
            f"{WIKIPEDIA_REST}/v1/revision/1001",
            {"id": 1001, "page": {"id": 42, "title": "Sandbox"}, "source": "Old text"},
        )
        result = await _call(mcp, "get-revision", revision_id=1001)
        assert result["data"] == "Old text"

    @pytest.mark.asyncio
    async def test_get_file(self, mcp, fake_wiki):
        fake_wiki.json(
            "GET",
            f"{WIKIPEDIA_REST}/v1/file/File%3ACat.png",
            {
                "title": "Cat.png",
                "file_description_url": "//en.wikipedia.org/wiki/File:Cat.png",
                "latest": {"timestamp": "2025-01-01T00:00:00Z", "user": {"name": "Bob"}},
                "preferred": {"url": "https://upload.example/cat-800.png"},
                "original": {"url": "https://upload.example/cat.png"},
            },
        )
        result = await _call(mcp, "get-file", title="File:Cat.png")
        assert "File title: Cat.png" in result["data"]
        assert "Latest revision user: Bob" in result["data"]
        assert "Thumbnail URL: Not available" in result["data"]


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------
class TestWrites:
    @pytest.mark.asyncio
    async def test_create_page_via_fallback(self, mcp, fake_wiki):
        fake_wiki.on(
            "POST",
            f"{EXAMPLE_REST}/v1/page",
            lambda _r: httpx.Response(403, json={"errorKey": "rest-badtoken"}),
        )
        fake_wiki.action(
            EXAMPLE_API,
            {
                "tokens": csrf_payload("csrf+\\"),
                "edit": {"edit": {"result": "Success", "pageid": 777, "title": "Sandbox", "newrevid": 8888}},
            },
        )
        result = await _call(
            mcp,
            "create-page",
            source="Hello",
            title="Sandbox",
            wiki_url="https://wiki.example.org/wiki/Main_Page",
        )

        assert result["status"] == "ok"
        assert result["meta"]["protocol"] == "legacy"
        assert result["data"].startswith(
            "Page created successfully via legacy Action API: https://wiki.example.org/wiki/Sandbox"
        )
        assert "Page ID: 777" in result["data"]
        assert "Latest revision ID: 8888" in result["data"]

    @pytest.mark.asyncio
    async def test_update_page_rest(self, mcp, services, fake_wiki):
        services.registry.set_current(EXAMPLE)
        fake_wiki.json("PUT", f"{EXAMPLE_REST}/v1/page/Sandbox", rest_page(42, "Sandbox", 1002))
        result = await _call(mcp, "update-page", title="Sandbox", source="New", latest_id=1001)

        assert result["meta"]["protocol"] == "rest"
        assert result["data"].startswith("Page updated successfully: https://wiki.example.org/wiki/Sandbox")
        assert "Latest revision ID: 1002" in result["data"]

    @pytest.mark.asyncio
    async def test_write_without_credentials(self, mcp, fake_wiki):
        fake_wiki.on(
            "POST",
            f"{WIKIPEDIA_REST}/v1/page",
            lambda _r: httpx.Response(403, json={"errorKey": "rest-badtoken"}),
        )
        result = await _call(mcp, "create-page", source="x", title="Sandbox")
        assert result["code"] == "CSRF_UNAVAILABLE"

    @pytest.mark.asyncio
    async def test_delete_page(self, mcp, services, fake_wiki):
        services.registry.set_current(EXAMPLE)
        fake_wiki.action(
            EXAMPLE_API,
            {
                "tokens": csrf_payload("csrf+\\"),
                "delete": {"delete": {"title": "Sandbox", "logid": 5}},
            },
        )
        result = await _call(mcp, "delete-page", title="Sandbox")
        assert result["data"] == "Page deleted successfully: Sandbox\nLog ID: 5"

    @pytest.mark.asyncio
    async def test_upload_requires_credentials(self, mcp, tmp_path):
        path = tmp_path / "cat.png"
        path.write_bytes(b"\x89PNG")
        result = await _call(mcp, "upload-file", local_file_path=str(path), wiki_filename="Cat.png")
        assert result["code"] == "AUTH_REQUIRED"

    @pytest.mark.asyncio
    async def test_upload_missing_file(self, mcp, tmp_path):
        result = await _call(
            mcp,
            "upload-file",
            local_file_path=str(tmp_path / "missing.png"),
            wiki_filename="Cat.png",
        )
        assert result["code"] == "VALIDATION"
        assert "File not found or not readable" in result["message"]

    @pytest.mark.asyncio
    async def test_upload_file(self, mcp, fake_wiki, tmp_path):
        path = tmp_path / "cat.png"
        path.write_bytes(b"\x89PNG")

        def _dispatch(request: httpx.Request) -> httpx.Response:
            if request.method == "POST":
                return httpx.Response(
                    200,
                    json={
                        "upload": {
                            "result": "Success",
                            "filename": "Cat.png",
                            "imageinfo": {"size": 4, "url": "https://upload.example/Cat.png"},
                        }
                    },
                )
            return httpx.Response(200, json=csrf_payload("csrf+\\"))

        fake_wiki.on("GET", EXAMPLE_API, _dispatch)
        fake_wiki.on("POST", EXAMPLE_API, _dispatch)

        result = await _call(
            mcp,
            "upload-file",
            local_file_path=str(path),
            wiki_filename="File:Cat.png",
            wiki_url="https://wiki.example.org/wiki/Main_Page",
        )

        assert result["status"] == "ok"
        assert result["data"].startswith("File uploaded successfully: File:Cat.png")
        assert "File size: 4 bytes" in result["data"]
        post = fake_wiki.calls(EXAMPLE_API, "POST")[0]
        assert b'name="filename"\r\n\r\nCat.png' in post.content
