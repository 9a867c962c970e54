"""MediaWiki MCP Server — multi-wiki read/write access for MCP clients."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__: str = version("mediawiki-mcp")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"
