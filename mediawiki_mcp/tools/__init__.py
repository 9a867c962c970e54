"""Tool registration helpers for MediaWiki MCP.

13 tools available:
  - add-wiki / set-wiki / remove-wiki       — manage known wikis
  - search-page / search-page-by-prefix     — REST search, Action API prefix search
  - get-page / get-page-history / get-revision
  - get-file / upload-file
  - create-page / update-page / delete-page — writes with REST → Action API fallback

Every tool except the wiki management ones takes an optional ``wiki_url``
that targets another wiki for that one call.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mcp.server.fastmcp import FastMCP

    from ..services import WikiServices


def register_all_tools(mcp: FastMCP, services: WikiServices) -> None:
    """Register every MediaWiki tool on the given MCP server."""
    # pylint: disable=import-outside-toplevel
    # Lazy imports avoid circular dependencies at module load time.
    from .edits import register as register_edits
    from .files import register as register_files
    from .pages import register as register_pages
    from .search import register as register_search
    from .wikis import register as register_wikis

    register_wikis(mcp, services)
    register_search(mcp, services)
    register_pages(mcp, services)
    register_files(mcp, services)
    register_edits(mcp, services)
