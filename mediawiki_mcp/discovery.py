"""Wiki discovery — turn any URL on a MediaWiki site into a ``SiteDescriptor``.

MediaWiki installs differ in where ``api.php`` lives.  Discovery runs in
two stages, first success wins:

1. Probe the common script paths (``/w`` then the site root) with a
   ``meta=siteinfo`` query.  This covers almost every wiki without fetching
   any HTML.
2. Fetch the page at the original URL and read the script path off the
   search form's ``action`` attribute (``.../index.php``).  The scraped path
   is only a candidate: it is re-validated with a siteinfo query before it
   is trusted.  If the page has no usable search form, the common paths are
   probed once more.

A candidate that fails for any reason simply moves on to the next one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup
from pydantic import ValidationError

from . import config
from .errors import MediaWikiError
from .transport import Transport
from .types import SiteDescriptor

logger = logging.getLogger("MediaWiki")


@dataclass
class DiscoveredWiki:
    """A validated descriptor plus the server name the wiki reports for itself."""

    servername: str
    site: SiteDescriptor


def parse_origin(wiki_url: str) -> str:
    """Return ``scheme://host[:port]`` for *wiki_url*."""
    parsed = urlparse(wiki_url)
    if not parsed.scheme or not parsed.netloc:
        raise ValueError(f"Not an absolute URL: {wiki_url!r}")
    return f"{parsed.scheme}://{parsed.netloc}"


def _text_field(general: dict, name: str) -> str:
    value = general.get(name)
    return value if isinstance(value, str) else ""


# ---------------------------------------------------------------------------
# HTML scraping
# ---------------------------------------------------------------------------
def extract_script_path_from_html(html: str, server: str) -> str | None:
    """Read the script path from the ``<form id="searchform">`` action.

    ``action="/w/index.php"`` → ``"/w"``; ``action="/index.php"`` → ``""``.
    Returns None when there is no search form pointing at ``index.php``.
    """
    if not html:
        return None
    soup = BeautifulSoup(html, "html.parser")
    form = soup.find("form", id="searchform")
    if form is None:
        return None
    action = str(form.get("action") or "")
    if "index.php" not in action.lower():
        return None

    path = urlparse(urljoin(server + "/", action)).path
    idx = path.lower().rfind("/index.php")
    if idx == -1:
        return None
    return path[:idx]


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------
class WikiDiscovery:
    """Probes candidate API layouts through the shared transport."""

    def __init__(
        self,
        transport: Transport,
        candidates: tuple[str, ...] = config.COMMON_SCRIPT_PATHS,
    ) -> None:
        self.transport = transport
        self.candidates = tuple(candidates)

    async def fetch_site_info(self, server: str, scriptpath: str) -> DiscoveredWiki | None:
        """Query ``{server}{scriptpath}/api.php`` for general site info."""
        api_url = f"{server}{scriptpath}/api.php"
        try:
            payload = await self.transport.request_json(
                api_url,
                params={
                    "action": "query",
                    "meta": "siteinfo",
                    "siprop": "general",
                    "format": "json",
                    "origin": "*",
                },
            )
        except MediaWikiError as exc:
            logger.debug("discovery: %s is not an API endpoint: %s", api_url, exc)
            return None

        query = payload.get("query") if isinstance(payload, dict) else None
        general = query.get("general") if isinstance(query, dict) else None
        if not isinstance(general, dict) or not isinstance(general.get("scriptpath"), str):
            logger.debug("discovery: %s returned no usable siteinfo", api_url)
            return None

        sitename = _text_field(general, "sitename") or urlparse(server).netloc
        try:
            site = SiteDescriptor(
                sitename=sitename,
                server=_text_field(general, "server") or server,
                articlepath=_text_field(general, "articlepath"),
                scriptpath=general["scriptpath"],
            )
        except ValidationError as exc:
            logger.debug("discovery: %s returned malformed siteinfo: %s", api_url, exc)
            return None
        servername = _text_field(general, "servername") or urlparse(site.server).netloc
        logger.info("discovery: found %s at %s", site.sitename, site.api_url)
        return DiscoveredWiki(servername=servername, site=site)

    async def _probe(self, server: str, paths: tuple[str, ...]) -> DiscoveredWiki | None:
        for candidate in paths:
            found = await self.fetch_site_info(server, candidate)
            if found is not None:
                return found
        return None

    async def _probe_from_html(self, server: str, wiki_url: str) -> DiscoveredWiki | None:
        try:
            html = await self.transport.request_text(wiki_url)
        except MediaWikiError as exc:
            logger.debug("discovery: could not fetch %s: %s", wiki_url, exc)
            html = ""

        scraped = extract_script_path_from_html(html, server)
        if scraped is not None:
            logger.debug("discovery: search form suggests script path %r", scraped)
            return await self._probe(server, (scraped,))
        return await self._probe(server, self.candidates)

    async def discover(self, wiki_url: str) -> DiscoveredWiki | None:
        """Discover the wiki serving *wiki_url*; None if no API could be found."""
        server = parse_origin(wiki_url)
        found = await self._probe(server, self.candidates)
        if found is None:
            found = await self._probe_from_html(server, wiki_url)
        if found is None:
            logger.warning("discovery: no MediaWiki API found for %s", wiki_url)
        return found
