"""
Tests for the registry proxy app.

Upstream registries are replaced with an httpx.MockTransport; local
modules come from the workspace fixtures.
"""

from urllib.parse import quote

import httpx
import pytest
from fastapi.testclient import TestClient

from norman.core.exceptions import PackagingError
from norman.core.registry import RegistryServer, create_app
from norman.core.registry.packument import ABBREVIATED_MEDIA_TYPE

class FakeUpstream:
    """Records requests and answers like a tiny npm registry."""

    def __init__(self, registry: str):
        self.registry = registry
        self.left_pad_tarball = f"{registry}left-pad/-/left-pad-1.3.0.tgz"
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        if url == f"{self.registry}left-pad":
            return httpx.Response(
                200,
                json={
                    "name": "left-pad",
                    "versions": {
                        "1.3.0": {"name": "left-pad", "dist": {"tarball": self.left_pad_tarball}},
                    },
                },
            )
        if url == self.left_pad_tarball:
            return httpx.Response(200, content=b"tarball-bytes")
        return httpx.Response(404, json={"error": "Not found"})


@pytest.fixture
def upstream(upstream_registry):
    return FakeUpstream(upstream_registry)


@pytest.fixture
def service(workspace_dir, write_config, make_service, write_module):
    write_module(
        workspace_dir,
        "my-lib",
        version="1.2.0",
        dependencies={"left-pad": "^1.3.0"},
        files={"index.js": "module.exports = 1;\n"},
    )
    write_config([{"name": "my-lib", "path": "my-lib"}])
    return make_service()


@pytest.fixture
def client(service, upstream):
    app = create_app(service, transport=httpx.MockTransport(upstream))
    return TestClient(app)


class TestLocalPackuments:
    """Tests for packuments synthesized from local modules."""

    def test_single_version_document(self, client, upstream):
        response = client.get("/my-lib")

        assert response.status_code == 200
        body = response.json()
        assert body["name"] == "my-lib"
        assert body["dist-tags"] == {"latest": "1.2.0"}
        assert list(body["versions"]) == ["1.2.0"]
        version = body["versions"]["1.2.0"]
        assert version["dependencies"] == {"left-pad": "^1.3.0"}
        assert version["dist"]["tarball"].startswith("http://testserver/tarballs/my-lib?")
        assert upstream.requests == []

    def test_abbreviated_media_type_is_negotiated(self, client):
        response = client.get(
            "/my-lib",
            headers={"accept": f"{ABBREVIATED_MEDIA_TYPE}; q=1.0, application/json; q=0.8, */*"},
        )

        assert response.headers["content-type"].startswith(ABBREVIATED_MEDIA_TYPE)

    def test_plain_json_by_default(self, client):
        response = client.get("/my-lib", headers={"accept": "application/json"})

        assert response.headers["content-type"].startswith("application/json")


class TestUpstreamPackuments:
    """Tests for packuments proxied from upstream registries."""

    def test_tarball_urls_are_rewritten(self, client, upstream):
        response = client.get("/left-pad")

        assert response.status_code == 200
        tarball = response.json()["versions"]["1.3.0"]["dist"]["tarball"]
        assert tarball == (
            "http://testserver/tarballs/left-pad"
            f"?url={quote(upstream.left_pad_tarball, safe='')}&norman=remote"
        )

    def test_upstream_errors_are_forwarded(self, client):
        response = client.get("/does-not-exist")

        assert response.status_code == 404
        assert response.json() == {"error": "Not found"}

    def test_scoped_package_path(self, client, upstream):
        client.get("/@types/node")

        assert str(upstream.requests[-1].url) == f"{upstream.registry}@types/node"


class TestTarballs:
    """Tests for tarball downloads."""

    def test_upstream_tarball_is_cached(self, client, upstream):
        url = f"/tarballs/left-pad?url={quote(upstream.left_pad_tarball, safe='')}&norman=remote"

        first = client.get(url)
        second = client.get(url)

        assert first.status_code == 200
        assert first.content == b"tarball-bytes"
        assert second.content == b"tarball-bytes"
        assert len(upstream.requests) == 1

    def test_failed_download_is_not_cached(self, client, upstream):
        missing = f"{upstream.registry}gone/-/gone-1.0.0.tgz"
        url = f"/tarballs/gone?url={quote(missing, safe='')}&norman=remote"

        assert client.get(url).status_code == 404
        assert client.get(url).status_code == 404
        assert len(upstream.requests) == 2

    def test_unknown_package_without_url(self, client):
        response = client.get("/tarballs/left-pad")

        assert response.status_code == 404

    def test_local_module_is_packed(self, client, service, tmp_path, monkeypatch):
        tarball = tmp_path / "my-lib-1.2.0.tgz"
        tarball.write_bytes(b"local-tarball")
        packed = []

        def fake_pack(module):
            packed.append(module.name.name)
            return tarball

        monkeypatch.setattr(service.packager, "pack", fake_pack)

        response = client.get("/tarballs/my-lib?norman=local&name=my-lib")

        assert response.status_code == 200
        assert response.content == b"local-tarball"
        assert packed == ["my-lib"]

    def test_packaging_failure_is_an_internal_error(self, client, service, monkeypatch):
        def failing_pack(module):
            raise PackagingError("npm pack failed")

        monkeypatch.setattr(service.packager, "pack", failing_pack)

        response = client.get("/tarballs/my-lib?norman=local&name=my-lib")

        assert response.status_code == 500
        assert response.json() == {
            "error": "internal_error",
            "message": "An internal server error occurred",
        }


class TestAuthorization:
    """Tests for tokens attached to upstream requests."""

    def test_bearer_token_from_npmrc(self, write_config, isolated_env, make_service, upstream):
        (isolated_env / ".npmrc").write_text(
            f"registry={upstream.registry}\n//registry.example.test/:_authToken=s3cret\n"
        )
        write_config([])
        client = TestClient(create_app(make_service(), transport=httpx.MockTransport(upstream)))

        client.get("/left-pad", headers={"authorization": "Basic abc"})

        assert upstream.requests[0].headers["authorization"] == "Bearer s3cret"


class TestRegistryServer:
    """Tests for the background proxy used by npm-running commands."""

    def test_serves_on_ephemeral_port(self, service, upstream):
        with RegistryServer(service, transport=httpx.MockTransport(upstream)) as server:
            address = server.address
            assert service.registry_address == address
            response = httpx.get(f"{address}/my-lib", timeout=10.0, trust_env=False)

        assert response.status_code == 200
        tarball = response.json()["versions"]["1.2.0"]["dist"]["tarball"]
        assert tarball.startswith(f"{address}/tarballs/my-lib?")
        assert service.registry_address is None
