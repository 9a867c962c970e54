"""Environment-variable-driven configuration for MediaWiki MCP.

All settings have sensible defaults and can be overridden via env vars.
The wiki registry itself (which wikis exist, their credentials) lives in a
JSON file whose location is given by ``CONFIG``; see ``registry.py``.
"""

from __future__ import annotations

import os

from . import __version__


def _env_int(name: str, default: int) -> int:
    val = os.environ.get(name, "")
    if val.strip():
        try:
            return int(val)
        except ValueError:
            pass
    return default


def _env_float(name: str, default: float) -> float:
    val = os.environ.get(name, "")
    if val.strip():
        try:
            return float(val)
        except ValueError:
            pass
    return default


def _env_bool(name: str, default: bool) -> bool:
    val = os.environ.get(name, "").strip().lower()
    if val in ("1", "true", "yes"):
        return True
    if val in ("0", "false", "no"):
        return False
    return default


def _env_list(name: str, default: list[str]) -> list[str]:
    val = os.environ.get(name, "")
    items = [item.strip() for item in val.split(",") if item.strip()]
    return items or list(default)


# ---------------------------------------------------------------------------
# Wiki registry file
# ---------------------------------------------------------------------------
CONFIG_ENV_VAR: str = "CONFIG"
DEFAULT_CONFIG_PATH: str = "config.json"

# ---------------------------------------------------------------------------
# HTTP transport
# ---------------------------------------------------------------------------
HTTP_TIMEOUT_SECONDS: float = _env_float("MEDIAWIKI_HTTP_TIMEOUT", 30.0)
MAX_RETRIES: int = _env_int("MEDIAWIKI_MAX_RETRIES", 2)
BACKOFF_BASE_MS: int = _env_int("MEDIAWIKI_BACKOFF_BASE_MS", 1000)
BACKOFF_CAP_MS: int = _env_int("MEDIAWIKI_BACKOFF_CAP_MS", 5000)

# ---------------------------------------------------------------------------
# Wiki discovery
# ---------------------------------------------------------------------------
# Probed in order; "/w" is the Wikimedia convention, "" the bare-install one.
COMMON_SCRIPT_PATHS: tuple[str, ...] = ("/w", "")

# ---------------------------------------------------------------------------
# CSRF token cache (cachetools TTLCache)
# ---------------------------------------------------------------------------
CSRF_TOKEN_TTL_SECONDS: int = _env_int("MEDIAWIKI_CSRF_TTL", 1800)  # 30 minutes
CSRF_CACHE_MAX_SIZE: int = _env_int("MEDIAWIKI_CSRF_CACHE_MAX_SIZE", 32)

# The Action API hands this out instead of a real token to anonymous users.
ANONYMOUS_CSRF_TOKEN: str = "+\\"

# ---------------------------------------------------------------------------
# REST → Action API write fallback
# ---------------------------------------------------------------------------
# Any marker found in a failed REST write's message triggers the fallback.
CSRF_FALLBACK_MARKERS: list[str] = _env_list(
    "MEDIAWIKI_CSRF_FALLBACK_MARKERS",
    ["rest-badtoken", "CSRF"],
)
# A 403 only triggers the fallback if the message also mentions this word.
CSRF_FALLBACK_403_KEYWORD: str = os.environ.get(
    "MEDIAWIKI_CSRF_FALLBACK_403_KEYWORD", "token"
)

# ---------------------------------------------------------------------------
# Request decoration
# ---------------------------------------------------------------------------
SERVER_NAME: str = "mediawiki-mcp-server"
USER_AGENT: str = f"mediawiki-mcp/{__version__}"
WIKI_LANGUAGE: str = os.environ.get("MEDIAWIKI_LANGUAGE", "en")
EDIT_COMMENT_SUFFIX: str = " (via MediaWiki MCP)"
DEFAULT_CREATE_SUMMARY: str = "Created via MediaWiki MCP Server"
DEFAULT_UPDATE_SUMMARY: str = "Updated via MediaWiki MCP Server"
DEFAULT_UPLOAD_COMMENT: str = "Uploaded via MediaWiki MCP Server"
DEFAULT_DELETE_REASON: str = "Deleted via MediaWiki MCP Server"

# ---------------------------------------------------------------------------
# MCP resources
# ---------------------------------------------------------------------------
WIKI_RESOURCE_URI_PREFIX: str = "mcp://wikis/"

# ---------------------------------------------------------------------------
# Response
# ---------------------------------------------------------------------------
RESPONSE_MAX_CHARS: int = _env_int("MEDIAWIKI_RESPONSE_MAX_CHARS", 50000)
SEARCH_DEFAULT_LIMIT: int = _env_int("MEDIAWIKI_SEARCH_DEFAULT_LIMIT", 10)

# ---------------------------------------------------------------------------
# Debug
# ---------------------------------------------------------------------------
VERBOSE: bool = _env_bool("MEDIAWIKI_VERBOSE", False)
