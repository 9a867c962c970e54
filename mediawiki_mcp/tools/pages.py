"""get-page / get-page-history / get-revision tools (REST reads)."""

from __future__ import annotations

import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from ..services import WikiServices
from ..types import ContentFormat, WikiContext
from ._helpers import NOT_AVAILABLE, render_page_metadata, render_revision, run_wiki_tool

logger = logging.getLogger("MediaWiki")


def render_page(page: dict[str, Any], content: ContentFormat) -> str:
    """Render a REST page or revision object for the requested format."""
    if content is ContentFormat.SOURCE:
        return page.get("source") or NOT_AVAILABLE
    if content is ContentFormat.HTML:
        return page.get("html") or NOT_AVAILABLE

    parts = [render_page_metadata(page)]
    if page.get("source") is not None:
        parts.append(f"Source:\n{page['source']}")
    if page.get("html") is not None:
        parts.append(f"HTML:\n{page['html']}")
    return "\n\n".join(parts)


def render_revision_object(revision: dict[str, Any], content: ContentFormat) -> str:
    if content is ContentFormat.SOURCE:
        return revision.get("source") or NOT_AVAILABLE
    if content is ContentFormat.HTML:
        return revision.get("html") or NOT_AVAILABLE

    page = revision.get("page") or {}
    parts = [
        f"Page: {page.get('title', NOT_AVAILABLE)} (ID: {page.get('id', NOT_AVAILABLE)})",
        render_revision(revision),
        f"Minor: {bool(revision.get('minor'))}",
    ]
    if revision.get("source") is not None:
        parts.append(f"Source:\n{revision['source']}")
    if revision.get("html") is not None:
        parts.append(f"HTML:\n{revision['html']}")
    return "\n\n".join(parts)


def register(mcp: FastMCP, services: WikiServices) -> None:
    """Register the page-reading tools on the MCP server."""

    @mcp.tool(name="get-page")
    async def get_page(
        title: str,
        content: ContentFormat = ContentFormat.SOURCE,
        wiki_url: str | None = None,
    ) -> str:
        """
        Returns a wiki page.

        **Use ``source`` for source text (e.g. wikitext) or ``html`` for HTML
        to get just the page content.**  Use ``sourceAndMetadata`` or
        ``htmlAndMetadata`` only when you need metadata (page ID, revision
        info, license), and ``metadata`` for metadata only.

        Args:
            title: Wiki page title.
            content: One of noContent, source, html, metadata,
                     sourceAndMetadata, htmlAndMetadata (default source).
            wiki_url: Optional URL of the wiki to use for this request.
        """
        content = ContentFormat(content)
        logger.info("get-page: %r (%s, wiki=%s)", title, content.value, wiki_url)

        async def _get(ctx: WikiContext) -> tuple[str, str | None]:
            page = await services.rest.get_page(ctx.site, title, content)
            return render_page(page or {}, content), "rest"

        return await run_wiki_tool(services, wiki_url, "retrieve page data", _get)

    @mcp.tool(name="get-page-history")
    async def get_page_history(
        title: str,
        older_than: int | None = None,
        newer_than: int | None = None,
        filter: str | None = None,  # pylint: disable=redefined-builtin
        wiki_url: str | None = None,
    ) -> str:
        """
        Returns information about the latest revisions to a wiki page, in
        segments of 20 revisions, starting with the latest revision.

        Args:
            title: Wiki page title.
            older_than: Only return revisions older than this revision ID.
            newer_than: Only return revisions newer than this revision ID.
            filter: Only return revisions with this tag
                    (reverted, anonymous, bot, minor). One filter per request.
            wiki_url: Optional URL of the wiki to use for this request.
        """
        logger.info("get-page-history: %r (wiki=%s)", title, wiki_url)

        async def _history(ctx: WikiContext) -> tuple[str, str | None]:
            data = await services.rest.get_page_history(
                ctx.site,
                title,
                older_than=older_than,
                newer_than=newer_than,
                filter=filter,
            )
            revisions = (data or {}).get("revisions") or []
            if not revisions:
                return "No revisions found for page", "rest"
            return "\n\n".join(render_revision(r) for r in revisions), "rest"

        return await run_wiki_tool(services, wiki_url, "retrieve page history", _history)

    @mcp.tool(name="get-revision")
    async def get_revision(
        revision_id: int,
        content: ContentFormat = ContentFormat.SOURCE,
        wiki_url: str | None = None,
    ) -> str:
        """
        Returns a single revision of a wiki page.

        Args:
            revision_id: Revision ID.
            content: One of noContent, source, html, metadata,
                     sourceAndMetadata, htmlAndMetadata (default source).
            wiki_url: Optional URL of the wiki to use for this request.
        """
        content = ContentFormat(content)
        logger.info("get-revision: %d (%s, wiki=%s)", revision_id, content.value, wiki_url)

        async def _revision(ctx: WikiContext) -> tuple[str, str | None]:
            revision = await services.rest.get_revision(ctx.site, revision_id, content)
            return render_revision_object(revision or {}, content), "rest"

        return await run_wiki_tool(services, wiki_url, "retrieve revision data", _revision)
