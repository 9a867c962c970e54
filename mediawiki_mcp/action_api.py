"""Legacy MediaWiki Action API (``api.php``) client.

Used for three things the REST API cannot do reliably for us:

- CSRF tokens (the REST API does not treat OAuth 2.0 bearer tokens as
  CSRF-safe, the Action API does),
- the fallback write path (``action=edit``) plus ``action=delete`` and
  multipart ``action=upload``,
- prefix search (``list=allpages``) and the bot-password login flow for
  username/password wikis.

Every request carries ``format=json`` and the interface language.
"""

from __future__ import annotations

import logging
from typing import Any

from . import config
from .errors import LegacyApiError
from .transport import Transport
from .types import SiteDescriptor

logger = logging.getLogger("MediaWiki")


def _auth_headers(site: SiteDescriptor, auth: bool) -> dict[str, str]:
    if auth and site.bearer_token:
        return {"Authorization": f"Bearer {site.bearer_token}"}
    return {}


class ActionApi:
    """Thin request builder for ``{server}{scriptpath}/api.php``."""

    def __init__(self, transport: Transport) -> None:
        self.transport = transport
        self._logged_in: set[str] = set()

    @staticmethod
    def _params(params: dict[str, Any]) -> dict[str, Any]:
        return {**params, "format": "json", "uselang": config.WIKI_LANGUAGE}

    async def get(
        self, site: SiteDescriptor, params: dict[str, Any], *, auth: bool = False
    ) -> dict[str, Any]:
        return await self.transport.request_json(
            site.api_url,
            params=self._params(params),
            headers=_auth_headers(site, auth),
        )

    async def post(
        self,
        site: SiteDescriptor,
        params: dict[str, Any],
        *,
        auth: bool = True,
        files: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Form-encoded (or multipart, when *files* is given) POST."""
        return await self.transport.request_json(
            site.api_url,
            method="POST",
            data=self._params(params),
            files=files,
            headers=_auth_headers(site, auth),
        )

    # -- sessions --

    def is_logged_in(self, site: SiteDescriptor) -> bool:
        return site.api_url in self._logged_in

    async def login(self, site: SiteDescriptor) -> None:
        """Log in with the site's bot-password credentials (cookie session).

        A no-op when the session is already established or when the site
        does not use username/password credentials.
        """
        if not site.has_login or self.is_logged_in(site):
            return
        payload = await self.get(site, {"action": "query", "meta": "tokens", "type": "login"})
        login_token = ((payload.get("query") or {}).get("tokens") or {}).get("logintoken")
        if not login_token:
            raise LegacyApiError("nologintoken", "The wiki did not return a login token")

        result = await self.post(
            site,
            {
                "action": "login",
                "lgname": site.username,
                "lgpassword": site.password,
                "lgtoken": login_token,
            },
            auth=False,
        )
        login = result.get("login") or {}
        if login.get("result") != "Success":
            raise LegacyApiError(
                str(login.get("result") or "loginfailed"),
                str(login.get("reason") or "Login was rejected by the wiki"),
            )
        self._logged_in.add(site.api_url)
        logger.info("Logged in to %s as %s", site.server, site.username)

    def forget_session(self, site: SiteDescriptor) -> None:
        self._logged_in.discard(site.api_url)

    # -- queries --

    async def prefix_search(
        self,
        site: SiteDescriptor,
        prefix: str,
        *,
        limit: int | None = None,
        namespace: int | None = None,
    ) -> list[str]:
        """Titles starting with *prefix* (``list=allpages``)."""
        params: dict[str, Any] = {"action": "query", "list": "allpages", "apprefix": prefix}
        if limit:
            params["aplimit"] = limit
        if namespace is not None:
            params["apnamespace"] = namespace
        payload = await self.get(site, params, auth=True)
        if payload.get("error"):
            error = payload["error"]
            raise LegacyApiError(str(error.get("code")), str(error.get("info")))
        pages = (payload.get("query") or {}).get("allpages") or []
        return [page.get("title", "") for page in pages if page.get("title")]
