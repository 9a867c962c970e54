"""create-page / update-page / delete-page tools.

Page writes go through ``WriteGateway``: REST first, with a single
Action API retry when the REST write is refused for CSRF/token reasons.
"""

from __future__ import annotations

import logging

from mcp.server.fastmcp import FastMCP

from ..services import WikiServices
from ..types import WikiContext, WriteResult
from ._helpers import run_wiki_tool

logger = logging.getLogger("MediaWiki")


def render_write_result(verb: str, result: WriteResult, page_url: str) -> str:
    """Render the outcome of a create/update, naming the protocol that served it."""
    header = f"Page {verb} successfully: {page_url}"
    if result.protocol == "legacy":
        header = f"Page {verb} successfully via legacy Action API: {page_url}"
    return "\n".join(
        [
            header,
            "",
            "Page object:",
            f"Page ID: {result.page_id if result.page_id is not None else 'Unknown'}",
            f"Title: {result.title}",
            f"Latest revision ID: {result.revision_id if result.revision_id is not None else 'Unknown'}",
            f"Latest revision timestamp: {result.timestamp or 'Unknown'}",
            f"Content model: {result.content_model}",
        ]
    )


def register(mcp: FastMCP, services: WikiServices) -> None:
    """Register the page-writing tools on the MCP server."""

    @mcp.tool(name="create-page")
    async def create_page(
        source: str,
        title: str,
        comment: str | None = None,
        content_model: str | None = None,
        wiki_url: str | None = None,
    ) -> str:
        """
        Creates a wiki page with the provided content.

        Args:
            source: Page content in the format given by ``content_model``.
            title: Wiki page title.
            comment: Reason for creating the page.
            content_model: Type of content on the page (default "wikitext").
            wiki_url: Optional URL of the wiki to use for this request.
        """
        logger.info("create-page: %r (wiki=%s)", title, wiki_url)

        async def _create(ctx: WikiContext) -> tuple[str, str | None]:
            result = await services.gateway.create_page(
                ctx, title, source, comment=comment, content_model=content_model
            )
            return (
                render_write_result("created", result, ctx.site.page_url(result.title)),
                result.protocol,
            )

        return await run_wiki_tool(services, wiki_url, "create page", _create)

    @mcp.tool(name="update-page")
    async def update_page(
        title: str,
        source: str,
        latest_id: int | None = None,
        comment: str | None = None,
        wiki_url: str | None = None,
    ) -> str:
        """
        Updates a wiki page. Replaces the existing content of a page with
        the provided content.

        Args:
            title: Wiki page title.
            source: Page content in the same content model of the existing page.
            latest_id: Identifier for the revision used as the base for the
                       new source; used to detect edit conflicts.
            comment: Summary of the edit.
            wiki_url: Optional URL of the wiki to use for this request.
        """
        logger.info("update-page: %r (base=%s, wiki=%s)", title, latest_id, wiki_url)

        async def _update(ctx: WikiContext) -> tuple[str, str | None]:
            result = await services.gateway.update_page(
                ctx, title, source, latest_id=latest_id, comment=comment
            )
            return (
                render_write_result("updated", result, ctx.site.page_url(result.title)),
                result.protocol,
            )

        return await run_wiki_tool(services, wiki_url, "update page", _update)

    @mcp.tool(name="delete-page")
    async def delete_page(
        title: str,
        comment: str | None = None,
        wiki_url: str | None = None,
    ) -> str:
        """
        Deletes a wiki page.

        Args:
            title: Wiki page title.
            comment: Reason for deleting the page.
            wiki_url: Optional URL of the wiki to use for this request.
        """
        logger.info("delete-page: %r (wiki=%s)", title, wiki_url)

        async def _delete(ctx: WikiContext) -> tuple[str, str | None]:
            deleted = await services.gateway.delete_page(ctx, title, comment=comment)
            lines = [f"Page deleted successfully: {deleted.get('title') or title}"]
            if deleted.get("logid") is not None:
                lines.append(f"Log ID: {deleted['logid']}")
            return "\n".join(lines), "legacy"

        return await run_wiki_tool(services, wiki_url, "delete page", _delete)
