"""
npm configuration (.npmrc) lookup.

Only the keys norman needs are interpreted:

    registry=https://registry.npmjs.org/
    @acme:registry=https://npm.acme.dev/
    //npm.acme.dev/:_authToken=${ACME_TOKEN}

The workspace .npmrc takes precedence over the one in the user's home.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

from dotenv import dotenv_values

from norman.core.exceptions import ConfigError

logger = logging.getLogger(__name__)

NPMRC_FILENAME = ".npmrc"

DEFAULT_REGISTRY_KEY = "default"


def parse_npmrc(text: str) -> dict[str, str]:
    """
    Parse ``key=value`` lines of an npmrc file.

    ``;`` comments and ``[section]`` headers are dropped before the rest is
    read as a dotenv stream, which unquotes values, skips ``#`` comments and
    expands ``${VAR}`` references from the environment.
    """
    kept = [
        line
        for line in text.splitlines()
        if not line.lstrip().startswith((";", "["))
    ]
    values = dotenv_values(stream=io.StringIO("\n".join(kept)), interpolate=True)
    out: dict[str, str] = {}
    for k, v in values.items():
        if k is None or v is None:
            continue
        out[str(k)] = str(v)
    return out


@dataclass
class NpmConfig:
    """
    Registries and auth tokens from npm configuration.

    Attributes:
        registries: ``"default"`` or ``"@scope"`` -> registry URL
        tokens: Registry host (``host[:port]``) -> auth token
        other: Every other key, uninterpreted
    """

    registries: dict[str, str] = field(default_factory=dict)
    tokens: dict[str, str] = field(default_factory=dict)
    other: dict[str, str] = field(default_factory=dict)

    def scoped_registry(self, scope: str) -> str | None:
        """Registry configured for ``@scope`` (accepts the scope with or without ``@``)."""
        if not scope.startswith("@"):
            scope = "@" + scope
        return self.registries.get(scope)

    def scoped_registries(self) -> dict[str, str]:
        return {k: v for k, v in self.registries.items() if k != DEFAULT_REGISTRY_KEY}

    def registry_for_scope(self, scope: str | None) -> str | None:
        """Scope registry when one is configured, otherwise the default registry."""
        registry = self.scoped_registry(scope) if scope else None
        return registry or self.registries.get(DEFAULT_REGISTRY_KEY)

    def token_for_host(self, host: str) -> str | None:
        return self.tokens.get(host)

    def token_for_url(self, url: str) -> str | None:
        return self.token_for_host(urlparse(url).netloc)

    @classmethod
    def from_values(cls, values: dict[str, str]) -> NpmConfig:
        config = cls()
        for key, value in values.items():
            if key == "registry":
                config.registries[DEFAULT_REGISTRY_KEY] = value
            elif key.endswith(":registry"):
                config.registries[key[: key.index(":")]] = value
            elif key.endswith(":_authToken"):
                registry_url = key[: -len(":_authToken")]
                if registry_url.startswith("//"):
                    registry_url = "http:" + registry_url
                host = urlparse(registry_url).netloc
                if host:
                    config.tokens[host] = value
            else:
                config.other[key] = value
        return config

    def merged_with(self, override: NpmConfig) -> NpmConfig:
        """Return a config where ``override`` wins over ``self``."""
        return NpmConfig(
            registries={**self.registries, **override.registries},
            tokens={**self.tokens, **override.tokens},
            other={**self.other, **override.other},
        )


def load_npmrc_file(path: Path) -> NpmConfig:
    """Load a single npmrc file; a missing or unreadable file yields an empty config."""
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return NpmConfig()
    except OSError as e:
        logger.warning("Failed to load npm config file %s: %s", path, e)
        return NpmConfig()

    logger.debug("Loaded npm config from %s", path)
    return NpmConfig.from_values(parse_npmrc(text))


def load_npm_config(
    config_dir: Path,
    home_dir: Path | None = None,
    fallback_registry: str | None = None,
) -> NpmConfig:
    """
    Load npm configuration for a workspace.

    Args:
        config_dir: Workspace directory holding the project .npmrc
        home_dir: User home (defaults to ``Path.home()``)
        fallback_registry: Default registry used when neither file declares one

    Raises:
        ConfigError: If no default registry is configured anywhere
    """
    home = home_dir if home_dir is not None else Path.home()
    profile_config = load_npmrc_file(home / NPMRC_FILENAME)
    project_config = load_npmrc_file(config_dir / NPMRC_FILENAME)

    merged = profile_config.merged_with(project_config)
    if DEFAULT_REGISTRY_KEY not in merged.registries:
        if not fallback_registry:
            raise ConfigError(
                "No default npm registry found in npm config files. Make sure you have "
                f"{NPMRC_FILENAME} files with an explicit registry setting accessible",
                config_dir=str(config_dir),
            )
        merged.registries[DEFAULT_REGISTRY_KEY] = fallback_registry
    return merged
