"""Failure taxonomy shared by the transport, discovery and write layers.

Only ``NetworkFailure`` is ever retried (inside the transport).  Everything
else propagates unchanged to the tool layer, which turns it into a
``ToolResponse`` error envelope.
"""

from __future__ import annotations


class MediaWikiError(Exception):
    """Base class for every classified failure raised by this package."""


# ---------------------------------------------------------------------------
# Transport-level outcomes
# ---------------------------------------------------------------------------
class NetworkFailure(MediaWikiError):
    """Timeout, DNS or connection failure; retryable."""

    def __init__(self, category: str, url: str, detail: str = "") -> None:
        self.category = category
        self.url = url
        self.detail = detail
        message = f"Network error ({category}) while requesting {url}"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class HttpFailure(MediaWikiError):
    """A response arrived with a non-2xx status.  Never retried."""

    def __init__(self, status: int, body: str, url: str) -> None:
        self.status = status
        self.body = body
        self.url = url
        super().__init__(f"HTTP error! status: {status} for URL: {url}. Response: {body}")


class DecodeFailure(MediaWikiError):
    """A response body that should have been JSON could not be decoded."""

    def __init__(self, raw_body: str, url: str) -> None:
        self.raw_body = raw_body
        self.url = url
        preview = raw_body[:200]
        super().__init__(f"Invalid JSON in response from {url}: {preview!r}")


# ---------------------------------------------------------------------------
# Higher-level failures
# ---------------------------------------------------------------------------
class WikiDiscoveryError(MediaWikiError):
    """No usable API endpoint could be located for a URL."""


class CsrfAcquisitionFailure(MediaWikiError):
    """A CSRF token was needed for a write but could not be obtained."""

    def __init__(self, message: str = "Failed to obtain CSRF token") -> None:
        super().__init__(message)


class LegacyApiError(MediaWikiError):
    """The Action API answered with an ``error`` object (or nothing usable)."""

    def __init__(self, code: str, info: str) -> None:
        self.code = code
        self.info = info
        super().__init__(f"{code}: {info}")


class RegistryError(MediaWikiError):
    """Invalid add/remove/select against the wiki registry."""


class ConfigError(MediaWikiError):
    """The wiki registry config file is missing or malformed."""


class AuthenticationRequired(MediaWikiError):
    """The operation needs credentials the target wiki has not been given."""
