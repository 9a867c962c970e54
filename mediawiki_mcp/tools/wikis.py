"""add-wiki / set-wiki / remove-wiki: manage which wikis the server knows."""

from __future__ import annotations

import logging

from mcp.server.fastmcp import Context, FastMCP

from ..errors import RegistryError, WikiDiscoveryError
from ..resources import parse_wiki_resource_uri, wiki_resource_uri
from ..services import WikiServices
from ..types import ErrorCode, ToolResponse, validate_wiki_url
from ._helpers import error_response

logger = logging.getLogger("MediaWiki")


async def notify_resource_list_changed(ctx: Context) -> None:
    """Tell the client the ``mcp://wikis/`` listing changed."""
    try:
        await ctx.session.send_resource_list_changed()
    except (AttributeError, RuntimeError, ValueError):
        logger.debug("Could not send resource list notification", exc_info=True)


def register(mcp: FastMCP, services: WikiServices) -> None:
    """Register the wiki management tools on the MCP server."""

    @mcp.tool(name="add-wiki")
    async def add_wiki(wiki_url: str, ctx: Context) -> str:
        """
        Adds a new wiki as an MCP resource from a URL.

        Args:
            wiki_url: Any URL from the target wiki
                      (e.g. https://en.wikipedia.org/wiki/Main_Page).
        """
        logger.info("add-wiki: %s", wiki_url)
        validated = validate_wiki_url(wiki_url)
        if isinstance(validated, ToolResponse):
            return validated.to_text()

        try:
            found = await services.discovery.discover(validated)
            if found is None:
                raise WikiDiscoveryError(
                    "Failed to determine wiki info. Please ensure the URL is "
                    "correct and the wiki is accessible."
                )
            services.registry.add(found.servername, found.site)
        except Exception as exc:  # pylint: disable=broad-except
            return error_response(exc, "add wiki").to_text()

        await notify_resource_list_changed(ctx)
        return ToolResponse.success(
            f"{found.site.sitename} ({wiki_resource_uri(found.servername)}) "
            "has been added to MCP resources.",
            wiki=found.servername,
        ).to_text()

    @mcp.tool(name="set-wiki")
    async def set_wiki(wiki_url: str) -> str:
        """
        Set the wiki to use for the current session.

        Every later call without an explicit ``wiki_url`` goes to this wiki.

        Args:
            wiki_url: Any URL from the target wiki
                      (e.g. https://en.wikipedia.org/wiki/Main_Page).
        """
        logger.info("set-wiki: %s", wiki_url)
        validated = validate_wiki_url(wiki_url)
        if isinstance(validated, ToolResponse):
            return validated.to_text()

        try:
            key = await services.resolver.resolve(validated)
            services.registry.set_current(key)
        except Exception as exc:  # pylint: disable=broad-except
            return error_response(exc, "set wiki").to_text()

        site = services.registry.current().site
        return ToolResponse.success(
            f"Wiki set to {site.sitename} ({site.server})", wiki=key
        ).to_text()

    @mcp.tool(name="remove-wiki")
    async def remove_wiki(uri: str, ctx: Context) -> str:
        """
        Removes a wiki from the MCP resources.

        The currently active wiki cannot be removed; switch with
        ``set-wiki`` first.

        Args:
            uri: MCP resource URI of the wiki to remove
                 (e.g. mcp://wikis/en.wikipedia.org).
        """
        logger.info("remove-wiki: %s", uri)
        try:
            key = parse_wiki_resource_uri(uri)
        except RegistryError as exc:
            return ToolResponse.error(ErrorCode.VALIDATION, str(exc)).to_text()

        if key not in services.registry:
            return ToolResponse.error(
                ErrorCode.REGISTRY, f"{wiki_resource_uri(key)} not found in MCP resources."
            ).to_text()

        try:
            site = services.registry.remove(key)
        except RegistryError as exc:
            return ToolResponse.error(ErrorCode.REGISTRY, str(exc), wiki=key).to_text()
        services.forget_wiki(key, site)

        await notify_resource_list_changed(ctx)
        return ToolResponse.success(
            f"{site.sitename} ({wiki_resource_uri(key)}) has been removed from MCP resources.",
        ).to_text()
