"""
Tests for proxy URL schemes, registry selection and packument helpers.
"""

import pytest

from norman.core.exceptions import RegistryError
from norman.core.modules.models import ModuleName
from norman.core.npmrc import NpmConfig
from norman.core.registry.packument import (
    ABBREVIATED_MEDIA_TYPE,
    JSON_MEDIA_TYPE,
    accepted_media_types,
    negotiate_packument_type,
    rewrite_tarball_urls,
)
from norman.core.registry.paths import (
    build_tarball_url,
    local_tarball_url,
    proxy_tarball_url,
    registry_for_package,
    resolve_registry_url,
)

ADDRESS = "http://127.0.0.1:4873"


@pytest.fixture
def npm_config():
    return NpmConfig.from_values(
        {"registry": "https://r.test/", "@acme:registry": "https://acme.test/npm"}
    )


class TestUrls:
    """Tests for tarball URL construction."""

    def test_build_tarball_url(self):
        assert (
            build_tarball_url("https://r.test", ModuleName.parse("@acme/lib"), "1.0.0")
            == "https://r.test/@acme/lib/-/lib-1.0.0.tgz"
        )

    def test_proxy_url_is_marked(self):
        url = proxy_tarball_url(ADDRESS, "@acme/lib", "https://r.test/x.tgz")

        assert url == (
            f"{ADDRESS}/tarballs/%40acme%2Flib?url=https%3A%2F%2Fr.test%2Fx.tgz&norman=remote"
        )

    def test_registry_selection(self, npm_config):
        assert registry_for_package("@acme/lib", npm_config) == "https://acme.test/npm"
        assert registry_for_package("@other/lib", npm_config) == "https://r.test/"
        assert registry_for_package("left-pad", npm_config) == "https://r.test/"

    def test_no_registry(self):
        with pytest.raises(RegistryError, match="not found"):
            registry_for_package("left-pad", NpmConfig.from_values({}))


class TestResolve:
    """Tests for mapping proxy URLs back to registry URLs."""

    @pytest.fixture
    def modules(self, workspace_dir, write_config, make_service, write_module):
        write_module(workspace_dir, "@acme/lib", version="2.0.0")
        write_config([{"name": "@acme/lib", "path": "acme-lib"}])
        return make_service().modules

    def test_local_module(self, modules, npm_config):
        url = local_tarball_url(ADDRESS, modules.get("@acme/lib"))

        assert resolve_registry_url(url, "2.0.0", modules, npm_config) == (
            "https://acme.test/npm/@acme/lib/-/lib-2.0.0.tgz"
        )

    def test_remote_package(self, modules, npm_config):
        url = proxy_tarball_url(ADDRESS, "left-pad", "https://r.test/left-pad/-/left-pad-1.3.0.tgz")

        assert resolve_registry_url(url, "1.3.0", modules, npm_config) == (
            "https://r.test/left-pad/-/left-pad-1.3.0.tgz"
        )

    def test_foreign_url_unchanged(self, modules, npm_config):
        url = "https://elsewhere.test/pkg.tgz?token=abc"

        assert resolve_registry_url(url, "1.0.0", modules, npm_config) == url


class TestNegotiation:
    """Tests for Accept header handling."""

    def test_quality_ordering(self):
        assert accepted_media_types("application/json; q=0.5, text/html, */*;q=0") == [
            "text/html",
            JSON_MEDIA_TYPE,
        ]

    @pytest.mark.parametrize(
        "accept,expected",
        [
            (None, JSON_MEDIA_TYPE),
            ("application/json", JSON_MEDIA_TYPE),
            (ABBREVIATED_MEDIA_TYPE, ABBREVIATED_MEDIA_TYPE),
            (f"application/json, {ABBREVIATED_MEDIA_TYPE}", JSON_MEDIA_TYPE),
            (f"application/json;q=0.8, {ABBREVIATED_MEDIA_TYPE}", ABBREVIATED_MEDIA_TYPE),
        ],
    )
    def test_negotiate(self, accept, expected):
        assert negotiate_packument_type(accept) == expected

    def test_rewrite_skips_versions_without_tarball(self):
        packument = {
            "versions": {
                "1.0.0": {"dist": {"tarball": "https://r.test/a-1.0.0.tgz"}},
                "0.1.0": {"dist": {}},
            }
        }

        result = rewrite_tarball_urls(packument, "a", ADDRESS)

        assert result["versions"]["1.0.0"]["dist"]["tarball"].startswith(f"{ADDRESS}/tarballs/a?url=")
        assert result["versions"]["0.1.0"]["dist"] == {}
