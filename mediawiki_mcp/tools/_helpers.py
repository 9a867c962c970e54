"""Shared helpers for MediaWiki MCP tools.

Eliminates boilerplate duplicated across tool modules: resolving the
optional ``wiki_url`` into an explicit ``WikiContext``, mapping the failure
taxonomy onto ``ToolResponse`` error envelopes, response truncation and
rendering of REST objects into readable text.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from .. import config
from ..errors import (
    AuthenticationRequired,
    ConfigError,
    CsrfAcquisitionFailure,
    DecodeFailure,
    HttpFailure,
    LegacyApiError,
    MediaWikiError,
    NetworkFailure,
    RegistryError,
    WikiDiscoveryError,
)
from ..services import WikiServices
from ..types import (
    ErrorCode,
    ResponseMeta,
    ToolResponse,
    WikiContext,
    validate_wiki_url,
)

logger = logging.getLogger("MediaWiki")

NOT_AVAILABLE = "Not available"


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------
def error_code_for(exc: MediaWikiError) -> ErrorCode:
    """Pick the ``ErrorCode`` for a classified failure."""
    if isinstance(exc, WikiDiscoveryError):
        return ErrorCode.DISCOVERY_FAILED
    if isinstance(exc, NetworkFailure):
        return ErrorCode.NETWORK
    if isinstance(exc, HttpFailure):
        return ErrorCode.NOT_FOUND if exc.status == 404 else ErrorCode.HTTP_ERROR
    if isinstance(exc, DecodeFailure):
        return ErrorCode.DECODE_ERROR
    if isinstance(exc, AuthenticationRequired):
        return ErrorCode.AUTH_REQUIRED
    if isinstance(exc, CsrfAcquisitionFailure):
        return ErrorCode.CSRF_UNAVAILABLE
    if isinstance(exc, LegacyApiError):
        return ErrorCode.API_ERROR
    if isinstance(exc, (RegistryError, ConfigError)):
        return ErrorCode.REGISTRY
    return ErrorCode.INTERNAL


def error_response(
    exc: Exception, action: str, *, wiki: str | None = None
) -> ToolResponse:
    """Build the error envelope for *exc* raised while doing *action*.

    Discovery failures keep their own message; everything else is prefixed
    with ``Failed to <action>:``.  Unclassified exceptions are logged with
    a traceback and reported as ``INTERNAL``.
    """
    if isinstance(exc, WikiDiscoveryError):
        return ToolResponse.error(ErrorCode.DISCOVERY_FAILED, str(exc), wiki=wiki)
    if isinstance(exc, MediaWikiError):
        return ToolResponse.error(error_code_for(exc), f"Failed to {action}: {exc}", wiki=wiki)
    logger.exception("Unexpected error while trying to %s", action)
    return ToolResponse.error(ErrorCode.INTERNAL, f"Failed to {action}: {exc}", wiki=wiki)


# ---------------------------------------------------------------------------
# Truncation with word-boundary awareness
# ---------------------------------------------------------------------------
def truncate_response(data: str, max_chars: int = 0) -> tuple[str, bool]:
    """Truncate *data* at a line or word boundary near *max_chars*.

    Returns ``(text, was_truncated)``.  If *max_chars* is 0 or the text
    is shorter, returns the original text unchanged.
    """
    if not max_chars or len(data) <= max_chars:
        return data, False

    cut = data[:max_chars]
    last_nl = cut.rfind("\n")
    if last_nl > max_chars * 0.8:
        cut = cut[:last_nl]
    else:
        last_sp = cut.rfind(" ")
        if last_sp > max_chars * 0.8:
            cut = cut[:last_sp]

    return cut.rstrip() + "\n\n... [truncated]", True


# ---------------------------------------------------------------------------
# Tool runner
# ---------------------------------------------------------------------------
async def run_wiki_tool(
    services: WikiServices,
    wiki_url: str | None,
    action: str,
    body: Callable[[WikiContext], Awaitable[tuple[str, str | None]]],
) -> str:
    """Resolve the target wiki, run *body* and wrap the outcome.

    *body* returns ``(text, protocol)``.  The optional *wiki_url* only
    selects the wiki for this call; the registry's current wiki is left
    untouched whatever happens.
    """
    start = time.monotonic()
    if wiki_url:
        validated = validate_wiki_url(wiki_url)
        if isinstance(validated, ToolResponse):
            return validated.to_text()
        wiki_url = validated

    wiki: str | None = None
    try:
        ctx = await services.context_for(wiki_url)
        wiki = ctx.key
        text, protocol = await body(ctx)
    except Exception as exc:  # pylint: disable=broad-except
        return error_response(exc, action, wiki=wiki).to_text()

    text, truncated = truncate_response(text, config.RESPONSE_MAX_CHARS)
    return ToolResponse.success(
        text,
        wiki=wiki,
        meta=ResponseMeta(
            elapsed_ms=int((time.monotonic() - start) * 1000),
            truncated=truncated,
            protocol=protocol,
        ),
    ).to_text()


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------
def _or_na(value: Any) -> Any:
    return NOT_AVAILABLE if value is None or value == "" else value


def render_page_metadata(page: dict[str, Any]) -> str:
    latest = page.get("latest") or {}
    license_ = page.get("license") or {}
    return "\n".join(
        [
            f"Page ID: {_or_na(page.get('id'))}",
            f"Title: {_or_na(page.get('title'))}",
            f"Latest revision ID: {_or_na(latest.get('id'))}",
            f"Latest revision timestamp: {_or_na(latest.get('timestamp'))}",
            f"Content model: {_or_na(page.get('content_model'))}",
            f"License: {license_.get('url', '')} {license_.get('title', '')}".rstrip(),
            f"HTML URL: {_or_na(page.get('html_url'))}",
        ]
    )


def render_revision(revision: dict[str, Any]) -> str:
    user = revision.get("user") or {}
    return "\n".join(
        [
            f"Revision ID: {_or_na(revision.get('id'))}",
            f"Timestamp: {_or_na(revision.get('timestamp'))}",
            f"User: {_or_na(user.get('name'))} (ID: {_or_na(user.get('id'))})",
            f"Comment: {revision.get('comment') or ''}",
            f"Size: {_or_na(revision.get('size'))}",
            f"Delta: {_or_na(revision.get('delta'))}",
        ]
    )
