"""Wiki resolver — map a user-supplied wiki URL to a registry key.

A hostname that is already registered (including aliases from the config
file) always wins and is never re-probed.  Anything else goes through
discovery and is registered under the server name the wiki reports, which
can differ from the host the caller typed (redirects, ports).  The typed
host is remembered as an alias so the next call short-circuits too.
"""

from __future__ import annotations

import logging
from urllib.parse import ParseResult, urlparse

from .discovery import WikiDiscovery
from .errors import WikiDiscoveryError
from .registry import SiteRegistry

logger = logging.getLogger("MediaWiki")

_DEFAULT_PORTS = {"http": 80, "https": 443}


def _uses_default_port(parsed: ParseResult) -> bool:
    try:
        port = parsed.port
    except ValueError:
        return False
    return port is None or port == _DEFAULT_PORTS.get(parsed.scheme.lower())


class WikiResolver:
    """Orchestrates ``WikiDiscovery`` and ``SiteRegistry``."""

    def __init__(self, registry: SiteRegistry, discovery: WikiDiscovery) -> None:
        self.registry = registry
        self.discovery = discovery
        self._aliases: dict[str, str] = {}

    def lookup(self, wiki_url: str) -> str | None:
        """Return the registry key for *wiki_url* without any network access.

        The bare hostname is only tried when the URL uses its scheme's
        default port; ``example.org:8443`` is a different server.
        """
        parsed = urlparse(wiki_url)
        hosts = [parsed.netloc.lower()]
        if _uses_default_port(parsed):
            hosts.append((parsed.hostname or "").lower())
        for host in hosts:
            if not host:
                continue
            if host in self.registry:
                return host
            alias = self._aliases.get(host)
            if alias is not None and alias in self.registry:
                return alias
        return None

    async def resolve(self, wiki_url: str) -> str:
        """Return the registry key for *wiki_url*, discovering it if needed."""
        parsed = urlparse(wiki_url)
        if not parsed.scheme or not parsed.netloc:
            raise WikiDiscoveryError(
                f"Invalid wiki URL: {wiki_url}. Please provide an absolute http(s) URL."
            )

        key = self.lookup(wiki_url)
        if key is not None:
            return key

        logger.info("resolver: %s is not registered, discovering…", parsed.netloc)
        found = await self.discovery.discover(wiki_url)
        if found is None:
            raise WikiDiscoveryError(
                f"Failed to determine wiki info for {wiki_url}. "
                "Please ensure the URL is correct and the wiki is accessible."
            )

        key = found.servername
        if key not in self.registry:
            self.registry.add(key, found.site)
        if key != parsed.netloc.lower():
            self._aliases[parsed.netloc.lower()] = key
        return key

    def forget(self, key: str) -> None:
        """Drop every alias pointing at *key* (called when a wiki is removed)."""
        for alias in [a for a, target in self._aliases.items() if target == key]:
            del self._aliases[alias]
