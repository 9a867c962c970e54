"""MediaWiki REST API (``rest.php``) client — the preferred read/write protocol.

Reads are plain GETs.  Writes send a JSON body with a bearer token when
one is configured; they are normally issued through ``WriteGateway`` so the
Action API fallback can kick in.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

from . import config
from .transport import Transport
from .types import ContentFormat, SiteDescriptor

logger = logging.getLogger("MediaWiki")


def encode_title(title: str) -> str:
    """Percent-encode a page title for use as a single REST path segment."""
    return quote(title, safe="")


class RestClient:
    """Request builder for ``{server}{scriptpath}/rest.php``."""

    def __init__(self, transport: Transport) -> None:
        self.transport = transport

    @staticmethod
    def _headers(site: SiteDescriptor, auth: bool) -> dict[str, str]:
        if auth and site.bearer_token:
            return {"Authorization": f"Bearer {site.bearer_token}"}
        return {}

    async def get(
        self,
        site: SiteDescriptor,
        path: str,
        params: dict[str, Any] | None = None,
        *,
        auth: bool = False,
    ) -> Any:
        return await self.transport.request_json(
            f"{site.rest_url}{path}",
            params={**(params or {}), "uselang": config.WIKI_LANGUAGE},
            headers=self._headers(site, auth or site.private),
        )

    async def send(
        self,
        site: SiteDescriptor,
        method: str,
        path: str,
        body: dict[str, Any],
    ) -> Any:
        """Authenticated JSON write (POST / PUT)."""
        headers = {"Content-Type": "application/json", **self._headers(site, True)}
        return await self.transport.request_json(
            f"{site.rest_url}{path}",
            method=method,
            params={"uselang": config.WIKI_LANGUAGE},
            json_body=body,
            headers=headers,
        )

    # -- reads --

    async def search_pages(
        self, site: SiteDescriptor, query: str, limit: int | None = None
    ) -> dict[str, Any]:
        params: dict[str, Any] = {"q": query}
        if limit:
            params["limit"] = limit
        return await self.get(site, "/v1/search/page", params)

    async def get_page(
        self, site: SiteDescriptor, title: str, content: ContentFormat = ContentFormat.SOURCE
    ) -> dict[str, Any]:
        return await self.get(site, f"/v1/page/{encode_title(title)}{content.sub_endpoint}")

    async def get_page_history(
        self,
        site: SiteDescriptor,
        title: str,
        *,
        older_than: int | None = None,
        newer_than: int | None = None,
        filter: str | None = None,  # pylint: disable=redefined-builtin
    ) -> dict[str, Any]:
        params: dict[str, Any] = {}
        if older_than:
            params["older_than"] = older_than
        if newer_than:
            params["newer_than"] = newer_than
        if filter:
            params["filter"] = filter
        return await self.get(site, f"/v1/page/{encode_title(title)}/history", params)

    async def get_revision(
        self,
        site: SiteDescriptor,
        revision_id: int,
        content: ContentFormat = ContentFormat.SOURCE,
    ) -> dict[str, Any]:
        return await self.get(site, f"/v1/revision/{revision_id}{content.sub_endpoint}")

    async def get_file(self, site: SiteDescriptor, title: str) -> dict[str, Any]:
        return await self.get(site, f"/v1/file/{encode_title(title)}")

    # -- writes --

    async def create_page(self, site: SiteDescriptor, body: dict[str, Any]) -> Any:
        return await self.send(site, "POST", "/v1/page", body)

    async def update_page(self, site: SiteDescriptor, title: str, body: dict[str, Any]) -> Any:
        return await self.send(site, "PUT", f"/v1/page/{encode_title(title)}", body)
