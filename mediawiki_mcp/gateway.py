"""Dual-protocol write gateway — REST first, Action API when the REST write
is rejected for CSRF/token reasons.

Background: the REST API does not recognise OAuth 2.0 bearer tokens as
CSRF-safe on some wikis and answers writes with ``rest-badtoken``.  The
Action API handles the same token fine.  Callers do not need to know
which protocol succeeded: both paths return a ``WriteResult``.

Per write call::

    AttemptPrimary ──ok──────────────────────────────▶ Success (protocol="rest")
        │
        ├─ other failure ───────────────────────────▶ raise unchanged
        │
        └─ should_fall_back() ─▶ AttemptFallback
                                    ├─ no CSRF token ──▶ CsrfAcquisitionFailure
                                    ├─ edit Success ───▶ Success (protocol="legacy")
                                    ├─ error object ───▶ LegacyApiError(code, info)
                                    └─ neither ────────▶ LegacyApiError("unknown", …)

Exactly one fallback attempt is made per write.

Deletes and uploads only exist on the Action API; they share the same
CSRF token handling.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from . import config
from .action_api import ActionApi
from .csrf import CsrfTokenCache
from .errors import (
    CsrfAcquisitionFailure,
    DecodeFailure,
    HttpFailure,
    LegacyApiError,
    MediaWikiError,
    NetworkFailure,
)
from .rest import RestClient
from .types import WikiContext, WriteResult

logger = logging.getLogger("MediaWiki")


# ---------------------------------------------------------------------------
# Fallback classification
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class FallbackPolicy:
    """Which REST write failures are retried over the Action API."""

    markers: tuple[str, ...] = field(default_factory=lambda: tuple(config.CSRF_FALLBACK_MARKERS))
    forbidden_keyword: str = config.CSRF_FALLBACK_403_KEYWORD


def should_fall_back(error: Exception, policy: FallbackPolicy | None = None) -> bool:
    """True if *error* looks like the REST/OAuth CSRF incompatibility.

    Matches any policy marker (``rest-badtoken``, ``CSRF``) in the error
    text, or a 403 together with the forbidden keyword (``token``).  For an
    ``HttpFailure`` only the status and response body count, never the
    request URL, so page titles cannot trigger a fallback.  Transport and
    decode failures never match.  Validation errors, edit conflicts and
    unrelated permission denials do not match: another protocol cannot fix
    those.
    """
    policy = policy or FallbackPolicy()
    if isinstance(error, HttpFailure):
        text = error.body.lower()
        is_403 = error.status == 403
    elif isinstance(error, (NetworkFailure, DecodeFailure)):
        return False
    else:
        text = str(error).lower()
        is_403 = "403" in text
    if any(marker.lower() in text for marker in policy.markers):
        return True
    return is_403 and policy.forbidden_keyword.lower() in text


def format_edit_comment(comment: str | None, default: str) -> str:
    """Append the MCP suffix to a user comment, or use *default*."""
    if comment:
        return f"{comment}{config.EDIT_COMMENT_SUFFIX}"
    return default


def _result_from_rest(payload: Any, title: str) -> WriteResult:
    page = payload if isinstance(payload, dict) else {}
    latest = page.get("latest") or {}
    return WriteResult(
        page_id=page.get("id"),
        title=page.get("title") or title,
        revision_id=latest.get("id"),
        timestamp=latest.get("timestamp") or "",
        content_model=page.get("content_model") or "wikitext",
        protocol="rest",
    )


def _api_error(payload: dict[str, Any], what: str) -> LegacyApiError:
    error = payload.get("error")
    if error:
        return LegacyApiError(str(error.get("code", "unknown")), str(error.get("info", "")))
    return LegacyApiError("unknown", f"Unknown error {what} via legacy API")


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------
class WriteGateway:
    """Page writes with automatic REST → Action API fallback."""

    def __init__(
        self,
        rest: RestClient,
        action_api: ActionApi,
        csrf: CsrfTokenCache,
        policy: FallbackPolicy | None = None,
    ) -> None:
        self.rest = rest
        self.action_api = action_api
        self.csrf = csrf
        self.policy = policy or FallbackPolicy()

    async def _require_token(self, ctx: WikiContext, message: str) -> str:
        token = await self.csrf.get_token(ctx.site)
        if token is None:
            raise CsrfAcquisitionFailure(message)
        return token

    async def _write(
        self,
        ctx: WikiContext,
        title: str,
        primary: Callable[[dict[str, Any]], Awaitable[Any]],
        body: dict[str, Any],
        legacy_params: dict[str, Any],
    ) -> WriteResult:
        # Only cookie (username/password) sessions send a CSRF token in the REST body.
        if ctx.site.has_login:
            body = {
                **body,
                "token": await self._require_token(
                    ctx, "Failed to obtain CSRF token for write operation"
                ),
            }

        try:
            payload = await primary(body)
        except MediaWikiError as exc:
            if not should_fall_back(exc, self.policy):
                raise
            logger.warning(
                "REST write to %s failed with a CSRF/token error, "
                "falling back to the Action API: %s",
                ctx.key,
                exc,
            )
            return await self._legacy_edit(ctx, title, legacy_params)
        return _result_from_rest(payload, title)

    async def _legacy_edit(
        self, ctx: WikiContext, title: str, params: dict[str, Any]
    ) -> WriteResult:
        token = await self._require_token(ctx, "Failed to obtain CSRF token")
        payload = await self.action_api.post(
            ctx.site, {"action": "edit", "title": title, **params, "token": token}
        )
        edit = payload.get("edit") or {}
        if edit.get("result") == "Success":
            return WriteResult(
                page_id=edit.get("pageid"),
                title=edit.get("title") or title,
                revision_id=edit.get("newrevid"),
                timestamp=edit.get("newtimestamp") or "",
                content_model=edit.get("contentmodel") or params.get("contentmodel") or "wikitext",
                protocol="legacy",
            )
        raise _api_error(payload, "editing page")

    # -- page writes --

    async def create_page(
        self,
        ctx: WikiContext,
        title: str,
        source: str,
        comment: str | None = None,
        content_model: str | None = None,
    ) -> WriteResult:
        body: dict[str, Any] = {
            "source": source,
            "title": title,
            "comment": format_edit_comment(comment, config.DEFAULT_CREATE_SUMMARY),
        }
        if content_model:
            body["content_model"] = content_model
        legacy = {
            "text": source,
            "summary": format_edit_comment(comment, config.DEFAULT_CREATE_SUMMARY),
            "contentmodel": content_model or "wikitext",
            "createonly": "1",
        }
        return await self._write(
            ctx, title, lambda b: self.rest.create_page(ctx.site, b), body, legacy
        )

    async def update_page(
        self,
        ctx: WikiContext,
        title: str,
        source: str,
        latest_id: int | None = None,
        comment: str | None = None,
    ) -> WriteResult:
        body: dict[str, Any] = {
            "source": source,
            "comment": format_edit_comment(comment, config.DEFAULT_UPDATE_SUMMARY),
        }
        if latest_id:
            body["latest"] = {"id": latest_id}
        legacy: dict[str, Any] = {
            "text": source,
            "summary": format_edit_comment(comment, config.DEFAULT_UPDATE_SUMMARY),
        }
        if latest_id:
            legacy["baserevid"] = str(latest_id)
            legacy["nocreate"] = "1"
        return await self._write(
            ctx, title, lambda b: self.rest.update_page(ctx.site, title, b), body, legacy
        )

    # -- Action API only --

    async def delete_page(
        self, ctx: WikiContext, title: str, comment: str | None = None
    ) -> dict[str, Any]:
        """Delete *title*; returns the ``delete`` object of the response."""
        token = await self._require_token(ctx, "Failed to obtain CSRF token for delete")
        payload = await self.action_api.post(
            ctx.site,
            {
                "action": "delete",
                "title": title,
                "reason": format_edit_comment(comment, config.DEFAULT_DELETE_REASON),
                "token": token,
            },
        )
        if isinstance(payload.get("delete"), dict):
            return payload["delete"]
        raise _api_error(payload, "deleting page")

    async def upload_file(
        self,
        ctx: WikiContext,
        *,
        filename: str,
        content: bytes,
        source_name: str,
        comment: str | None = None,
        ignore_warnings: bool = False,
    ) -> dict[str, Any]:
        """Multipart ``action=upload``; returns the ``upload`` object on success."""
        token = await self._require_token(ctx, "Failed to obtain CSRF token for file upload")
        params: dict[str, Any] = {
            "action": "upload",
            "filename": filename,
            "comment": comment or config.DEFAULT_UPLOAD_COMMENT,
            "token": token,
        }
        if ignore_warnings:
            params["ignorewarnings"] = "1"
        payload = await self.action_api.post(
            ctx.site,
            params,
            files={"file": (source_name, content, "application/octet-stream")},
        )

        upload = payload.get("upload") or {}
        if upload.get("result") == "Success":
            return upload
        if upload.get("warnings") and not ignore_warnings:
            warnings = ", ".join(upload["warnings"])
            raise LegacyApiError(
                "upload-warnings",
                f"Upload warnings: {warnings}. Use ignore_warnings=true to override.",
            )
        raise _api_error(payload, "uploading file")
