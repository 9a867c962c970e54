"""Time-bounded cache of Action API CSRF tokens, one per wiki.

Tokens are fetched with ``action=query&meta=tokens&type=csrf`` and kept
in a cachetools ``TTLCache`` (30 minutes by default).  A token is usable
only while ``now < expires_at``; after that it is treated as absent and
fetched again.

Acquisition never raises: a missing credential, a network/HTTP/JSON
failure or the anonymous placeholder token all yield ``None`` and the
caller decides whether the write fails.  Tokens are not invalidated when
a write using them fails.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from cachetools import TTLCache

from . import config
from .action_api import ActionApi
from .errors import MediaWikiError
from .types import SiteDescriptor

logger = logging.getLogger("MediaWiki")


class CsrfTokenCache:
    """Caches CSRF tokens keyed by API endpoint."""

    def __init__(
        self,
        action_api: ActionApi,
        *,
        ttl: float = config.CSRF_TOKEN_TTL_SECONDS,
        maxsize: int = config.CSRF_CACHE_MAX_SIZE,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self.action_api = action_api
        self._tokens: TTLCache[str, str] = TTLCache(maxsize=maxsize, ttl=ttl, timer=timer)

    async def get_token(self, site: SiteDescriptor) -> str | None:
        """Return a usable CSRF token for *site*, or None if none can be had."""
        key = site.api_url
        cached = self._tokens.get(key)
        if cached is not None:
            logger.debug("CSRF-cache HIT for %s", key)
            return cached

        if not site.bearer_token and not site.has_login:
            logger.error("No OAuth token available for CSRF token request to %s", key)
            return None

        try:
            if site.has_login:
                await self.action_api.login(site)
            payload = await self.action_api.get(
                site,
                {"action": "query", "meta": "tokens", "type": "csrf"},
                auth=True,
            )
        except MediaWikiError as exc:
            logger.error("Error fetching CSRF token from %s: %s", key, exc)
            return None

        tokens = ((payload.get("query") or {}).get("tokens") or {}) if isinstance(payload, dict) else {}
        token = tokens.get("csrftoken")
        if not token or token == config.ANONYMOUS_CSRF_TOKEN:
            logger.error("No valid CSRF token in response from %s", key)
            return None

        self._tokens[key] = token
        logger.debug("CSRF-cache stored token for %s", key)
        return token

    def invalidate(self, site: SiteDescriptor) -> None:
        self._tokens.pop(site.api_url, None)

    def clear(self) -> None:
        self._tokens.clear()
