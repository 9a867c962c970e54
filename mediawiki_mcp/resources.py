"""``mcp://wikis/{wiki_key}`` resources: one per registered wiki.

Reading a resource returns the wiki's descriptor as JSON with every
credential field removed.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from mcp.types import Resource

from . import config
from .errors import RegistryError
from .registry import SiteRegistry

if TYPE_CHECKING:
    from mcp.server.fastmcp import FastMCP

    from .services import WikiServices

logger = logging.getLogger("MediaWiki")

WIKI_RESOURCE_TEMPLATE = f"{config.WIKI_RESOURCE_URI_PREFIX}{{wiki_key}}"


def wiki_resource_uri(key: str) -> str:
    return f"{config.WIKI_RESOURCE_URI_PREFIX}{key}"


def parse_wiki_resource_uri(uri: str) -> str:
    """Return the wiki key named by ``mcp://wikis/{key}``."""
    if not uri.startswith(config.WIKI_RESOURCE_URI_PREFIX):
        raise RegistryError(
            f'Invalid wiki resource URI. Must start with "{config.WIKI_RESOURCE_URI_PREFIX}".'
        )
    key = uri[len(config.WIKI_RESOURCE_URI_PREFIX) :].strip()
    if not key:
        raise RegistryError("Invalid wiki resource URI. Wiki key cannot be empty.")
    return key


def list_wiki_resources(registry: SiteRegistry) -> list[Resource]:
    """One listing entry per registered wiki."""
    return [
        Resource(
            uri=wiki_resource_uri(key),
            name=f"wikis/{key}",
            title=site.sitename,
            description=f'Wiki "{site.sitename}" hosted at {site.server}',
            mimeType="application/json",
        )
        for key, site in registry.get_all().items()
    ]


def register_resources(mcp: FastMCP, services: WikiServices) -> None:
    """Register the wiki resource template on the MCP server."""

    @mcp.resource(WIKI_RESOURCE_TEMPLATE, name="wikis", mime_type="application/json")
    def read_wiki(wiki_key: str) -> str:
        """Sanitized configuration of one registered wiki."""
        site = services.registry.get(wiki_key)
        if site is None:
            raise RegistryError(f"{wiki_resource_uri(wiki_key)} not found in MCP resources.")
        return json.dumps(site.sanitized(), indent=2)
