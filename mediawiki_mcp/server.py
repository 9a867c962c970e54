"""MediaWiki MCP Server — modular server setup with CLI arguments."""

from __future__ import annotations

import argparse
import logging
import signal
import sys

import anyio
from mcp.server.fastmcp import FastMCP
from mcp.types import Resource

from . import config
from .errors import ConfigError
from .registry import load_registry
from .resources import list_wiki_resources, register_resources
from .services import WikiServices, build_services
from .tools import register_all_tools

# ---------------------------------------------------------------------------
# Logging (configurable via MEDIAWIKI_VERBOSE)
# ---------------------------------------------------------------------------
logger = logging.getLogger("MediaWiki")
logger.setLevel(logging.DEBUG if config.VERBOSE else logging.INFO)
_handler = logging.StreamHandler(sys.stderr)
_handler.setFormatter(logging.Formatter("[%(name)s %(levelname)s] %(message)s"))
logger.addHandler(_handler)


class MediaWikiMCP(FastMCP):
    """FastMCP server that lists one ``mcp://wikis/{key}`` resource per wiki."""

    def __init__(self, name: str, services: WikiServices, **settings) -> None:
        super().__init__(name, **settings)
        self.services = services

    async def list_resources(self) -> list[Resource]:
        resources = await super().list_resources()
        return resources + list_wiki_resources(self.services.registry)


# ---------------------------------------------------------------------------
# Graceful shutdown
# ---------------------------------------------------------------------------
def _close_services(services: WikiServices | None) -> None:
    if services is None:
        return
    try:
        anyio.run(services.aclose)
    except (RuntimeError, OSError):
        logger.debug("Suppressed exception during cleanup", exc_info=True)


def _shutdown(signum: int, _frame) -> None:
    """Handle SIGINT/SIGTERM — exit quietly; ``main`` closes the HTTP client."""
    sig_name = signal.Signals(signum).name
    logger.info("Received %s — shutting down…", sig_name)
    sys.exit(0)


# ---------------------------------------------------------------------------
# Server factory
# ---------------------------------------------------------------------------
def create_server(
    name: str = config.SERVER_NAME,
    *,
    transport: str = "stdio",
    config_path: str | None = None,
    services: WikiServices | None = None,
    **settings,
) -> MediaWikiMCP:
    """Create and configure the MCP server with all tools and resources registered.

    *services* is built from the wiki config (``--config`` / ``CONFIG`` /
    ``config.json`` / built-in defaults) unless one is passed in.
    """
    if services is None:
        services = build_services(load_registry(config_path))
    mcp = MediaWikiMCP(name, services, **settings)
    register_all_tools(mcp, services)
    register_resources(mcp, services)
    logger.info(
        "MediaWiki MCP server created (transport=%s, wikis=%d, current=%s)",
        transport,
        len(services.registry),
        services.registry.current_key,
    )
    return mcp


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------
def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="mediawiki-mcp",
        description="MediaWiki MCP Server — read, search and edit any MediaWiki wiki",
    )
    transport = parser.add_mutually_exclusive_group()
    transport.add_argument(
        "--stdio",
        action="store_const",
        const="stdio",
        dest="transport",
        help="Run with stdio transport (default)",
    )
    transport.add_argument(
        "--sse",
        action="store_const",
        const="sse",
        dest="transport",
        help="Run with SSE transport",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=3000,
        help="Port for SSE transport (default: 3000)",
    )
    parser.add_argument(
        "--config",
        default=None,
        help=f"Path to the wiki config JSON (default: ${config.CONFIG_ENV_VAR} "
        f"or {config.DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=config.VERBOSE,
        help="Enable verbose/debug logging",
    )
    parser.set_defaults(transport="stdio")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point — starts the MCP server with chosen transport."""
    args = parse_args(argv)

    from . import __version__  # pylint: disable=import-outside-toplevel

    print(f"MediaWiki MCP Server v{__version__}", file=sys.stderr, flush=True)

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    if args.verbose:
        logger.setLevel(logging.DEBUG)

    try:
        mcp = create_server(transport=args.transport, config_path=args.config, port=args.port)
    except ConfigError as exc:
        logger.error("%s", exc)
        sys.exit(1)

    try:
        if args.transport == "sse":
            logger.info("Starting SSE server on port %d...", args.port)
            mcp.run(transport="sse")
        else:
            mcp.run()
    except KeyboardInterrupt:
        pass
    except SystemExit:
        pass
    finally:
        _close_services(mcp.services)
        logger.info("MediaWiki MCP server stopped.")


if __name__ == "__main__":
    main()
