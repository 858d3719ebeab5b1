"""
Packument documents: synthesized for local modules, rewritten for upstream ones.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from norman.core.modules.manifest import read_manifest
from norman.core.modules.models import LocalModule
from norman.core.registry.paths import local_tarball_url, proxy_tarball_url

ABBREVIATED_MEDIA_TYPE = "application/vnd.npm.install-v1+json"
JSON_MEDIA_TYPE = "application/json"

PACKUMENT_MEDIA_TYPES = frozenset({ABBREVIATED_MEDIA_TYPE, JSON_MEDIA_TYPE})

# Manifest fields copied into the version object of a local packument
VERSION_FIELDS = (
    "dependencies",
    "devDependencies",
    "optionalDependencies",
    "bundleDependencies",
    "peerDependencies",
    "bin",
    "engines",
)


def media_type(header_value: str) -> str:
    """Media type of a Content-Type or Accept entry, without parameters."""
    return header_value.split(";", 1)[0].strip().lower()


def accepted_media_types(accept: str | None) -> list[str]:
    """
    Media types of an Accept header ordered by preference.

    Entries are ordered by their ``q`` parameter (default 1); ties keep
    header order. Entries with ``q=0`` are dropped.
    """
    if not accept:
        return []

    entries: list[tuple[float, int, str]] = []
    for index, part in enumerate(accept.split(",")):
        part = part.strip()
        if not part:
            continue
        quality = 1.0
        for param in part.split(";")[1:]:
            key, _, value = param.partition("=")
            if key.strip().lower() == "q":
                try:
                    quality = float(value.strip())
                except ValueError:
                    quality = 0.0
        if quality > 0:
            entries.append((-quality, index, media_type(part)))

    return [mt for _, _, mt in sorted(entries)]


def negotiate_packument_type(accept: str | None) -> str:
    """The abbreviated type if it is the client's first preference, else full JSON."""
    accepted = accepted_media_types(accept)
    if accepted and accepted[0] == ABBREVIATED_MEDIA_TYPE:
        return ABBREVIATED_MEDIA_TYPE
    return JSON_MEDIA_TYPE


def local_packument(module: LocalModule, address: str) -> dict[str, Any]:
    """
    Single-version packument for a local module.

    The same document serves both the abbreviated and the full form.

    Raises:
        ConfigError: If the module manifest is missing or unparsable
    """
    manifest = read_manifest(module.path)
    version = manifest.get("version")
    name = module.name.name

    version_object: dict[str, Any] = {
        "name": name,
        "version": version,
        "directories": {},
        "_hasShrinkwrap": False,
        "dist": {"tarball": local_tarball_url(address, module)},
    }
    for key in VERSION_FIELDS:
        if manifest.get(key):
            version_object[key] = manifest[key]

    return {
        "name": name,
        "modified": datetime.now(timezone.utc).isoformat(),
        "dist-tags": {"latest": version},
        "versions": {version: version_object},
    }


def rewrite_tarball_urls(packument: dict[str, Any], package_name: str, address: str) -> dict[str, Any]:
    """Point every version's dist.tarball of an upstream packument at the proxy."""
    versions = packument.get("versions")
    if not isinstance(versions, dict):
        return packument
    for version_object in versions.values():
        if not isinstance(version_object, dict):
            continue
        dist = version_object.get("dist")
        if isinstance(dist, dict) and dist.get("tarball"):
            dist["tarball"] = proxy_tarball_url(address, package_name, dist["tarball"])
    return packument
