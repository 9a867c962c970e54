"""get-file / upload-file tools."""

from __future__ import annotations

import logging
from typing import Any

import anyio
from mcp.server.fastmcp import FastMCP

from ..errors import AuthenticationRequired
from ..services import WikiServices
from ..types import ErrorCode, ToolResponse, WikiContext
from ._helpers import NOT_AVAILABLE, run_wiki_tool

logger = logging.getLogger("MediaWiki")

FILE_NAMESPACE_PREFIX = "File:"


def render_file(data: dict[str, Any]) -> str:
    latest = data.get("latest") or {}
    user = latest.get("user") or {}
    return "\n".join(
        [
            f"File title: {data.get('title')}",
            f"File description URL: {data.get('file_description_url') or NOT_AVAILABLE}",
            f"Latest revision timestamp: {latest.get('timestamp') or NOT_AVAILABLE}",
            f"Latest revision user: {user.get('name') or NOT_AVAILABLE}",
            f"Preferred URL: {(data.get('preferred') or {}).get('url') or NOT_AVAILABLE}",
            f"Original URL: {(data.get('original') or {}).get('url') or NOT_AVAILABLE}",
            f"Thumbnail URL: {(data.get('thumbnail') or {}).get('url') or NOT_AVAILABLE}",
        ]
    )


def normalize_upload_filename(name: str) -> str:
    """Strip a leading ``File:`` namespace; the upload API wants the bare name."""
    name = name.strip()
    if name.startswith(FILE_NAMESPACE_PREFIX):
        name = name[len(FILE_NAMESPACE_PREFIX) :]
    return name


def register(mcp: FastMCP, services: WikiServices) -> None:
    """Register the file tools on the MCP server."""

    @mcp.tool(name="get-file")
    async def get_file(title: str, wiki_url: str | None = None) -> str:
        """
        Returns information about a file, including links to download the
        file in thumbnail, preview, and original formats.

        Args:
            title: File title.
            wiki_url: Optional URL of the wiki to use for this request.
        """
        logger.info("get-file: %r (wiki=%s)", title, wiki_url)

        async def _file(ctx: WikiContext) -> tuple[str, str | None]:
            data = await services.rest.get_file(ctx.site, title)
            return render_file(data or {}), "rest"

        return await run_wiki_tool(services, wiki_url, "retrieve file data", _file)

    @mcp.tool(name="upload-file")
    async def upload_file(
        local_file_path: str,
        wiki_filename: str,
        comment: str | None = None,
        ignore_warnings: bool = False,
        wiki_url: str | None = None,
    ) -> str:
        """
        Uploads a file from the local filesystem to MediaWiki.
        Requires authentication (OAuth token or bot password).

        Args:
            local_file_path: Absolute path to the file on the local filesystem.
            wiki_filename: Desired filename on the wiki
                           (e.g. "MyImage.png" or "File:MyImage.png").
            comment: Summary for the upload log entry.
            ignore_warnings: Ignore warnings such as overwriting an existing file.
            wiki_url: Optional URL of the wiki to use for this request.
        """
        logger.info("upload-file: %s → %s (wiki=%s)", local_file_path, wiki_filename, wiki_url)
        filename = normalize_upload_filename(wiki_filename)
        try:
            content = await anyio.Path(local_file_path).read_bytes()
        except OSError as exc:
            return ToolResponse.error(
                ErrorCode.VALIDATION,
                f"File not found or not readable: {local_file_path}. Error: {exc}",
            ).to_text()

        async def _upload(ctx: WikiContext) -> tuple[str, str | None]:
            if not ctx.site.bearer_token and not ctx.site.has_login:
                raise AuthenticationRequired(
                    f"Authentication required: no credentials configured for {ctx.key}. "
                    "Please configure an OAuth token or bot password for this wiki."
                )
            upload = await services.gateway.upload_file(
                ctx,
                filename=filename,
                content=content,
                source_name=anyio.Path(local_file_path).name,
                comment=comment,
                ignore_warnings=ignore_warnings,
            )
            info = upload.get("imageinfo") or {}
            name = upload.get("filename") or filename
            size = info.get("size")
            lines = [
                f"File uploaded successfully: File:{name}",
                "",
                "Upload details:",
                f"Filename: {name}",
                f"File size: {f'{size} bytes' if size else 'Unknown'}",
                f"File URL: {info.get('url') or ctx.site.page_url(f'File:{name}')}",
            ]
            return "\n".join(lines), "legacy"

        return await run_wiki_tool(services, wiki_url, "upload file", _upload)
