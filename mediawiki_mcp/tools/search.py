"""search-page / search-page-by-prefix tools.

Full-text search goes through the REST ``/v1/search/page`` endpoint;
prefix search uses the Action API's ``list=allpages``.
"""

from __future__ import annotations

import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .. import config
from ..services import WikiServices
from ..types import SiteDescriptor, ToolResponse, WikiContext, validate_limit
from ._helpers import NOT_AVAILABLE, run_wiki_tool

logger = logging.getLogger("MediaWiki")

SEARCH_MAX_LIMIT = 100
PREFIX_MAX_LIMIT = 500


def render_search_result(result: dict[str, Any], site: SiteDescriptor) -> str:
    """Render one REST search hit."""
    thumbnail = result.get("thumbnail") or {}
    key = result.get("key") or str(result.get("title", "")).replace(" ", "_")
    return "\n".join(
        [
            f"Title: {result.get('title')}",
            f"Description: {result.get('description') or NOT_AVAILABLE}",
            f"Page ID: {result.get('id')}",
            f"Page URL: {site.page_url(key)}",
            f"Thumbnail URL: {thumbnail.get('url') or NOT_AVAILABLE}",
        ]
    )


def register(mcp: FastMCP, services: WikiServices) -> None:
    """Register the search tools on the MCP server."""

    @mcp.tool(name="search-page")
    async def search_page(
        query: str,
        limit: int | None = None,
        wiki_url: str | None = None,
    ) -> str:
        """
        Search wiki page titles and contents for the provided search terms,
        and returns matching pages.

        Args:
            query: Search terms.
            limit: Maximum number of search results to return (1-100).
            wiki_url: Optional URL of the wiki to use for this request.
        """
        logger.info("search-page: %r (limit=%s, wiki=%s)", query, limit, wiki_url)
        if limit is not None:
            checked = validate_limit(limit, SEARCH_MAX_LIMIT)
            if isinstance(checked, ToolResponse):
                return checked.to_text()

        async def _search(ctx: WikiContext) -> tuple[str, str | None]:
            data = await services.rest.search_pages(ctx.site, query, limit)
            pages = (data or {}).get("pages") or []
            if not pages:
                return f"No pages found for {query}", "rest"
            return "\n\n".join(render_search_result(p, ctx.site) for p in pages), "rest"

        return await run_wiki_tool(services, wiki_url, "retrieve search data", _search)

    @mcp.tool(name="search-page-by-prefix")
    async def search_page_by_prefix(
        prefix: str,
        limit: int | None = None,
        namespace: int | None = None,
        wiki_url: str | None = None,
    ) -> str:
        """
        Perform a prefix search for page titles.

        Args:
            prefix: Search prefix.
            limit: Maximum number of results to return (1-500,
                   default ``MEDIAWIKI_SEARCH_DEFAULT_LIMIT``).
            namespace: Namespace number to search (default 0, main).
            wiki_url: Optional URL of the wiki to use for this request.
        """
        logger.info("search-page-by-prefix: %r (limit=%s, ns=%s)", prefix, limit, namespace)
        effective_limit = limit if limit is not None else config.SEARCH_DEFAULT_LIMIT
        checked = validate_limit(effective_limit, PREFIX_MAX_LIMIT)
        if isinstance(checked, ToolResponse):
            return checked.to_text()

        async def _prefix(ctx: WikiContext) -> tuple[str, str | None]:
            titles = await services.action_api.prefix_search(
                ctx.site, prefix, limit=checked, namespace=namespace
            )
            if not titles:
                return f'No pages found with the prefix "{prefix}"', "legacy"
            return "\n".join(titles), "legacy"

        return await run_wiki_tool(services, wiki_url, "perform prefix search", _prefix)
