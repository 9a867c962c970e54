"""The shared collaborators every tool works with, built once per server."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

import httpx

from .action_api import ActionApi
from .csrf import CsrfTokenCache
from .discovery import WikiDiscovery
from .gateway import FallbackPolicy, WriteGateway
from .registry import SiteRegistry
from .resolver import WikiResolver
from .rest import RestClient
from .transport import SleepFn, Transport
from .types import SiteDescriptor, WikiContext

logger = logging.getLogger("MediaWiki")


@dataclass
class WikiServices:
    transport: Transport
    registry: SiteRegistry
    discovery: WikiDiscovery
    resolver: WikiResolver
    rest: RestClient
    action_api: ActionApi
    csrf: CsrfTokenCache
    gateway: WriteGateway

    async def context_for(self, wiki_url: str | None = None) -> WikiContext:
        """Resolve the wiki a call targets without changing the current wiki."""
        if not wiki_url:
            return self.registry.current()
        key = await self.resolver.resolve(wiki_url)
        return self.registry.context(key)

    def forget_wiki(self, key: str, site: SiteDescriptor | None = None) -> None:
        """Drop per-wiki state (CSRF token, login session, aliases) for *key*."""
        site = site or self.registry.get(key)
        if site is not None:
            self.csrf.invalidate(site)
            self.action_api.forget_session(site)
        self.resolver.forget(key)

    async def aclose(self) -> None:
        await self.transport.aclose()


def build_services(
    registry: SiteRegistry,
    *,
    client: httpx.AsyncClient | None = None,
    sleep: SleepFn | None = None,
    policy: FallbackPolicy | None = None,
    csrf_timer: Callable[[], float] = time.monotonic,
) -> WikiServices:
    """Wire the transport and every protocol client around *registry*."""
    transport = Transport(client, sleep=sleep)
    discovery = WikiDiscovery(transport)
    rest = RestClient(transport)
    action_api = ActionApi(transport)
    csrf = CsrfTokenCache(action_api, timer=csrf_timer)
    services = WikiServices(
        transport=transport,
        registry=registry,
        discovery=discovery,
        resolver=WikiResolver(registry, discovery),
        rest=rest,
        action_api=action_api,
        csrf=csrf,
        gateway=WriteGateway(rest, action_api, csrf, policy),
    )
    logger.debug("Services ready for %d wiki(s)", len(registry))
    return services
