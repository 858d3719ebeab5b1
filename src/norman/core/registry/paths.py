"""
URL schemes shared by the registry proxy and lockfile maintenance.

Tarball URLs handed out by the proxy carry a ``norman`` query parameter:

    {address}/tarballs/@acme/lib?norman=local&name=%40acme%2Flib
    {address}/tarballs/left-pad?url=https%3A%2F%2F...&norman=remote

so they can be told apart from (and mapped back to) real registry URLs.
"""

from __future__ import annotations

from urllib.parse import parse_qs, quote, urlparse

from norman.core.exceptions import RegistryError
from norman.core.modules.models import LocalModule, ModuleName
from norman.core.modules.registry import ModuleRegistry
from norman.core.npmrc import NpmConfig

MARKER_PARAM = "norman"
LOCAL_MARKER = "local"
REMOTE_MARKER = "remote"


def local_tarball_url(address: str, module: LocalModule) -> str:
    """Proxy URL serving the packed tarball of a local module."""
    name = module.name.name
    return f"{address}/tarballs/{name}?{MARKER_PARAM}={LOCAL_MARKER}&name={quote(name, safe='')}"


def proxy_tarball_url(address: str, package_name: str, upstream_url: str) -> str:
    """Proxy URL passing a tarball download through to ``upstream_url``."""
    return (
        f"{address}/tarballs/{quote(package_name, safe='')}"
        f"?url={quote(upstream_url, safe='')}&{MARKER_PARAM}={REMOTE_MARKER}"
    )


def registry_for_package(package_name: str, npm_config: NpmConfig) -> str:
    """
    Upstream registry serving ``package_name``.

    Scoped packages use their scope's registry when one is configured,
    otherwise the default registry.

    Raises:
        RegistryError: If no registry is configured for the package
    """
    scope = package_name.split("/", 1)[0] if package_name.startswith("@") else None
    registry = npm_config.registry_for_scope(scope)
    if not registry:
        raise RegistryError(f"npm registry for package {package_name} not found")
    return registry


def registry_for_module(module: LocalModule, npm_config: NpmConfig) -> str:
    return registry_for_package(module.name.name, npm_config)


def build_tarball_url(registry: str, name: ModuleName, version: str) -> str:
    """Canonical registry tarball URL: ``{registry}/{name}/-/{pkg}-{version}.tgz``."""
    if not registry.endswith("/"):
        registry += "/"
    return f"{registry}{name.name}/-/{name.pkg}-{version}.tgz"


def resolve_registry_url(
    proxy_url: str,
    version: str,
    modules: ModuleRegistry,
    npm_config: NpmConfig,
) -> str:
    """
    Map a URL handed out by the proxy back to the real registry URL.

    URLs not produced by the proxy are returned unchanged.

    Raises:
        RegistryError: If a local-module URL names a module that is not configured
    """
    params = parse_qs(urlparse(proxy_url).query)
    markers = params.get(MARKER_PARAM)
    if not markers:
        return proxy_url

    if markers[0] == LOCAL_MARKER:
        module_name = params.get("name", [""])[0]
        module = modules.get(module_name)
        if module is None:
            raise RegistryError(
                f'Failed to resolve remote tarball URL for local module "{module_name}": '
                "local module not found"
            )
        return build_tarball_url(registry_for_module(module, npm_config), module.name, version)

    upstream = params.get("url")
    if not upstream:
        raise RegistryError(f"Proxy URL {proxy_url} has no upstream url parameter")
    return upstream[0]
