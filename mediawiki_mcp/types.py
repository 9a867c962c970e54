"""Pydantic schemas and structured response types for MediaWiki MCP."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from urllib.parse import quote, urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Site descriptor
# ---------------------------------------------------------------------------
_CREDENTIAL_FIELDS = {"token", "username", "password"}


def normalize_wiki_path(path: str) -> str:
    """Strip a trailing ``/$1`` placeholder and trailing slashes from *path*."""
    path = (path or "").strip()
    if path.endswith("/$1"):
        path = path[: -len("/$1")]
    return path.rstrip("/")


class SiteDescriptor(BaseModel):
    """How to reach one wiki: origin, entry-script path, article path, credentials."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    sitename: str
    server: str
    articlepath: str = "/wiki"
    scriptpath: str = ""
    token: str | None = None
    username: str | None = None
    password: str | None = None
    private: bool = False

    @field_validator("articlepath", "scriptpath")
    @classmethod
    def _normalize_path(cls, v: str) -> str:
        return normalize_wiki_path(v)

    @field_validator("server")
    @classmethod
    def _normalize_server(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        # Protocol-relative servers ("//example.org") come back from siteinfo.
        if v.startswith("//"):
            v = "https:" + v
        return v

    @property
    def bearer_token(self) -> str | None:
        """The OAuth2 access token, or None when not configured / blank."""
        return self.token or None

    @property
    def has_login(self) -> bool:
        """True for username/password (bot password) sessions."""
        return not self.bearer_token and bool(self.username and self.password)

    @property
    def api_url(self) -> str:
        return f"{self.server}{self.scriptpath}/api.php"

    @property
    def rest_url(self) -> str:
        return f"{self.server}{self.scriptpath}/rest.php"

    def page_url(self, title: str) -> str:
        """Return the canonical article URL for *title*."""
        return f"{self.server}{self.articlepath}/{quote(title.replace(' ', '_'), safe='/:')}"

    def sanitized(self) -> dict[str, object]:
        """Public view of the descriptor with every credential field removed."""
        return self.model_dump(exclude=_CREDENTIAL_FIELDS)

    def with_credentials(
        self,
        *,
        token: str | None = None,
        username: str | None = None,
        password: str | None = None,
    ) -> SiteDescriptor:
        """Return a copy with the credential fields replaced."""
        return self.model_copy(
            update={"token": token, "username": username, "password": password}
        )


@dataclass(frozen=True)
class WikiContext:
    """The wiki a single call operates on, passed explicitly to every operation."""

    key: str
    site: SiteDescriptor


@dataclass
class WriteResult:
    """Protocol-agnostic outcome of a page write."""

    page_id: int | None
    title: str
    revision_id: int | None
    timestamp: str = ""
    content_model: str = "wikitext"
    protocol: str = "rest"  # "rest" or "legacy"


# ---------------------------------------------------------------------------
# Input schemas
# ---------------------------------------------------------------------------
class ContentFormat(str, Enum):
    """What ``get-page`` / ``get-revision`` should return."""

    NO_CONTENT = "noContent"
    SOURCE = "source"
    HTML = "html"
    METADATA = "metadata"
    SOURCE_AND_METADATA = "sourceAndMetadata"
    HTML_AND_METADATA = "htmlAndMetadata"

    @property
    def sub_endpoint(self) -> str:
        """REST sub-path selecting how much of the page body to return."""
        if self in (ContentFormat.HTML, ContentFormat.HTML_AND_METADATA):
            return "/with_html"
        if self in (ContentFormat.METADATA, ContentFormat.NO_CONTENT):
            return "/bare"
        return ""


class WikiUrlInput(BaseModel):
    """Validated wiki URL — any page URL on the target wiki."""

    wiki_url: str = Field(
        ...,
        description="Any URL from the target wiki (e.g. https://en.wikipedia.org/wiki/Main_Page).",
    )

    @field_validator("wiki_url")
    @classmethod
    def _must_be_http_url(cls, v: str) -> str:
        v = v.strip()
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(
                f"Invalid wiki URL: '{v}'. Expected an absolute http(s) URL "
                "such as https://en.wikipedia.org/wiki/Main_Page."
            )
        return v


class LimitInput(BaseModel):
    """Bounded result-count argument."""

    limit: int = Field(..., ge=1, le=500)


# ---------------------------------------------------------------------------
# Structured response types
# ---------------------------------------------------------------------------
class ResponseStatus(str, Enum):
    OK = "ok"
    ERROR = "error"


class ErrorCode(str, Enum):
    VALIDATION = "VALIDATION"
    DISCOVERY_FAILED = "DISCOVERY_FAILED"
    NETWORK = "NETWORK"
    HTTP_ERROR = "HTTP_ERROR"
    DECODE_ERROR = "DECODE_ERROR"
    CSRF_UNAVAILABLE = "CSRF_UNAVAILABLE"
    API_ERROR = "API_ERROR"
    NOT_FOUND = "NOT_FOUND"
    AUTH_REQUIRED = "AUTH_REQUIRED"
    REGISTRY = "REGISTRY"
    INTERNAL = "INTERNAL"


class ResponseMeta(BaseModel):
    """Metadata about the response — timing, size, which protocol served it."""

    elapsed_ms: int = 0
    char_count: int = 0
    truncated: bool = False
    protocol: str | None = None  # "rest" or "legacy"


class ToolResponse(BaseModel):
    """Structured response from any MediaWiki tool."""

    status: ResponseStatus
    code: ErrorCode | None = None
    message: str | None = None
    data: str | None = None
    wiki: str | None = None
    meta: ResponseMeta = Field(default_factory=ResponseMeta)

    @property
    def is_error(self) -> bool:
        return self.status is ResponseStatus.ERROR

    def to_text(self) -> str:
        """Serialize to JSON string for MCP transport."""
        return json.dumps(self.model_dump(mode="json", exclude_none=True), indent=2)

    @classmethod
    def success(
        cls,
        data: str,
        *,
        wiki: str | None = None,
        meta: ResponseMeta | None = None,
    ) -> ToolResponse:
        m = meta or ResponseMeta()
        m.char_count = len(data)
        return cls(status=ResponseStatus.OK, data=data, wiki=wiki, meta=m)

    @classmethod
    def error(
        cls,
        code: ErrorCode,
        message: str,
        *,
        wiki: str | None = None,
        meta: ResponseMeta | None = None,
    ) -> ToolResponse:
        return cls(
            status=ResponseStatus.ERROR,
            code=code,
            message=message,
            wiki=wiki,
            meta=meta or ResponseMeta(),
        )


def validate_wiki_url(wiki_url: str) -> str | ToolResponse:
    """Validate *wiki_url*. Returns the normalized URL or a ToolResponse error."""
    try:
        return WikiUrlInput(wiki_url=wiki_url).wiki_url
    except Exception as exc:  # pylint: disable=broad-except
        return ToolResponse.error(ErrorCode.VALIDATION, str(exc))


def validate_limit(limit: int, maximum: int) -> int | ToolResponse:
    """Validate a result-count argument against ``1..maximum``."""
    try:
        value = LimitInput(limit=limit).limit
    except Exception as exc:  # pylint: disable=broad-except
        return ToolResponse.error(ErrorCode.VALIDATION, str(exc))
    if value > maximum:
        return ToolResponse.error(
            ErrorCode.VALIDATION, f"limit must be between 1 and {maximum}, got {value}"
        )
    return value
