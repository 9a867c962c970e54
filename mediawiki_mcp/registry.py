"""In-memory registry of known wikis, loaded once from a JSON config file.

Config file shape::

    {
      "defaultWiki": "en.wikipedia.org",
      "wikis": {
        "en.wikipedia.org": {
          "sitename": "Wikipedia",
          "server": "https://en.wikipedia.org",
          "articlepath": "/wiki",
          "scriptpath": "/w",
          "token": "${WIKIPEDIA_OAUTH_TOKEN}"
        }
      }
    }

``${VAR}`` values are substituted from the environment at load time.

Changes made at runtime (add/remove/credential updates) live in memory
only; the file is never rewritten.
"""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from . import config
from .errors import ConfigError, RegistryError
from .types import SiteDescriptor, WikiContext

logger = logging.getLogger("MediaWiki")

_ENV_REF = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")

DEFAULT_WIKIS: dict[str, dict[str, Any]] = {
    "en.wikipedia.org": {
        "sitename": "Wikipedia",
        "server": "https://en.wikipedia.org",
        "articlepath": "/wiki",
        "scriptpath": "/w",
        "token": None,
    },
    "localhost:8080": {
        "sitename": "Local MediaWiki Docker",
        "server": "http://localhost:8080",
        "articlepath": "/wiki",
        "scriptpath": "/w",
        "token": None,
    },
}
DEFAULT_WIKI_KEY = "en.wikipedia.org"


class SiteRegistry:
    """Known wikis keyed by hostname (or alias), with a default and a current key."""

    def __init__(self, wikis: dict[str, SiteDescriptor], default_key: str) -> None:
        if default_key not in wikis:
            raise ConfigError(f'Default wiki "{default_key}" not found in config')
        self._wikis: dict[str, SiteDescriptor] = dict(wikis)
        self.default_key = default_key
        self._current_key = default_key

    # -- lookup --

    def __contains__(self, key: object) -> bool:
        return key in self._wikis

    def __len__(self) -> int:
        return len(self._wikis)

    def get(self, key: str) -> SiteDescriptor | None:
        return self._wikis.get(key)

    def get_all(self) -> dict[str, SiteDescriptor]:
        return dict(self._wikis)

    @property
    def current_key(self) -> str:
        return self._current_key

    def current(self) -> WikiContext:
        return WikiContext(self._current_key, self._wikis[self._current_key])

    def context(self, key: str | None = None) -> WikiContext:
        """Build the explicit context for *key* (or the current wiki)."""
        if key is None:
            return self.current()
        site = self._wikis.get(key)
        if site is None:
            raise RegistryError(f'Wiki "{key}" not found in configuration')
        return WikiContext(key, site)

    # -- mutation --

    def add(self, key: str, site: SiteDescriptor) -> None:
        if not key or not key.strip():
            raise RegistryError("Wiki key cannot be empty")
        if key in self._wikis:
            raise RegistryError(f'Wiki "{key}" already exists in configuration')
        self._wikis[key] = site
        logger.info("Registered wiki %s (%s)", key, site.server)

    def remove(self, key: str) -> SiteDescriptor:
        site = self._wikis.get(key)
        if site is None:
            raise RegistryError(f'Wiki "{key}" not found in configuration')
        if key == self._current_key:
            raise RegistryError(
                "Cannot remove the currently active wiki. Please set a different "
                "wiki as the active wiki before removing this one."
            )
        del self._wikis[key]
        logger.info("Removed wiki %s", key)
        return site

    def set_current(self, key: str) -> None:
        if key not in self._wikis:
            raise RegistryError(f'Wiki "{key}" not found in configuration')
        self._current_key = key

    def reset(self) -> None:
        """Make the default wiki current again."""
        self.set_current(self.default_key)

    def update_credentials(
        self,
        key: str,
        *,
        token: str | None = None,
        username: str | None = None,
        password: str | None = None,
    ) -> SiteDescriptor:
        site = self._wikis.get(key)
        if site is None:
            raise RegistryError(f'Wiki "{key}" not found in configuration')
        updated = site.with_credentials(token=token, username=username, password=password)
        self._wikis[key] = updated
        return updated


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------
def _substitute_env(value: Any) -> Any:
    if isinstance(value, str):
        return _ENV_REF.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _substitute_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_substitute_env(v) for v in value]
    return value


def registry_from_mapping(data: dict[str, Any]) -> SiteRegistry:
    """Build a registry from the parsed config-file mapping."""
    raw_wikis = data.get("wikis")
    default_key = data.get("defaultWiki")
    if not isinstance(raw_wikis, dict) or not isinstance(default_key, str):
        raise ConfigError('Config must contain a "defaultWiki" string and a "wikis" object')

    wikis: dict[str, SiteDescriptor] = {}
    for key, fields in _substitute_env(raw_wikis).items():
        try:
            wikis[key] = SiteDescriptor.model_validate(fields)
        except ValidationError as exc:
            raise ConfigError(f'Invalid configuration for wiki "{key}": {exc}') from exc
    return SiteRegistry(wikis, default_key)


def default_registry() -> SiteRegistry:
    return registry_from_mapping({"defaultWiki": DEFAULT_WIKI_KEY, "wikis": DEFAULT_WIKIS})


def load_registry(path: str | os.PathLike[str] | None = None) -> SiteRegistry:
    """Load the wiki registry.

    *path* (or the ``CONFIG`` env var) names the file explicitly; a missing
    explicit file is a hard failure.  With neither set, ``config.json`` in the
    working directory is used if present, otherwise the built-in registry.
    """
    explicit = path if path is not None else os.environ.get(config.CONFIG_ENV_VAR)
    config_path = Path(explicit or config.DEFAULT_CONFIG_PATH)

    if not config_path.exists():
        if explicit:
            raise ConfigError(f"Config file not found: {config_path}")
        logger.info("No %s found, using built-in wiki registry", config_path)
        return default_registry()

    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Could not read config file {config_path}: {exc}") from exc

    registry = registry_from_mapping(data)
    logger.info("Loaded %d wiki(s) from %s", len(registry), config_path)
    return registry
