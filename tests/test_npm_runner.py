"""
Tests for running npm against the registry proxy.

run_command is patched, so npm never actually runs.
"""

import json
import time
from unittest.mock import patch

import pytest

from norman.core.exceptions import RegistryError
from norman.core.lockfile import Lockfile
from norman.core.npm import NpmRunner

ADDRESS = "http://127.0.0.1:4999"


@pytest.fixture
def service(workspace_dir, write_config, make_service, isolated_env, upstream_registry, write_module):
    (isolated_env / ".npmrc").write_text(
        f"registry={upstream_registry}\n@acme:registry=https://acme.test/\n"
    )
    write_module(workspace_dir, "@acme/lib-a", version="1.0.0")
    write_module(workspace_dir, "app", dependencies={"@acme/lib-a": "^1.0.0"})
    write_config(
        [
            {"name": "@acme/lib-a", "path": "acme-lib-a"},
            {"name": "app", "path": "app"},
        ]
    )
    ctx = make_service()
    ctx.registry_address = ADDRESS
    return ctx


class TestEnvironment:
    """Tests for the npm environment."""

    def test_registries_point_at_proxy(self, service):
        env = NpmRunner(service).build_env(service.modules.get("app"))

        assert env["npm_config_registry"] == ADDRESS
        assert env["npm_config_@acme:registry"] == ADDRESS
        assert env["npm_config_package-lock"] == "false"

    def test_requires_running_proxy(self, service):
        service.registry_address = None

        with pytest.raises(RegistryError, match="server not started"):
            NpmRunner(service).build_env(service.modules.get("app"))


class TestRun:
    """Tests for running npm commands."""

    def test_runs_in_module_directory(self, service):
        app = service.modules.get("app")

        with patch("norman.core.npm.run_command", return_value="") as mock_run:
            NpmRunner(service).run(app, ["ls", "--depth=0"])

        args, kwargs = mock_run.call_args
        assert args[1] == ["ls", "--depth=0"]
        assert kwargs["cwd"] == app.path
        assert kwargs["env"]["npm_config_registry"] == ADDRESS

    def test_install_then_prune(self, service):
        with patch("norman.core.npm.run_command", return_value="") as mock_run:
            NpmRunner(service).install(service.modules.get("app"))

        assert [c.args[1] for c in mock_run.call_args_list] == [["install"], ["prune"]]

    def test_upstream_run_bypasses_proxy(self, service):
        service.registry_address = None
        lib = service.modules.get("@acme/lib-a")

        with patch("norman.core.npm.run_command", return_value="{}") as mock_run:
            output = NpmRunner(service).run_upstream(lib, ["view", "--json"], capture=True)

        args, kwargs = mock_run.call_args
        assert output == "{}"
        assert args[1] == ["view", "--json"]
        assert kwargs["cwd"] == lib.path
        assert "env" not in kwargs

    def test_lockfile_integrity_and_resolved_urls(self, service, workspace_dir, set_mtime):
        app = service.modules.get("app")
        lock_path = app.lockfile_path
        lock_path.write_text(
            json.dumps(
                {
                    "lockfileVersion": 1,
                    "dependencies": {"@acme/lib-a": {"version": "1.0.0", "integrity": "sha512-old"}},
                }
            )
        )
        seen = {}

        def fake_npm(command, args, **kwargs):
            content = json.loads(lock_path.read_text())
            seen["integrity"] = content["dependencies"]["@acme/lib-a"]["integrity"]
            content["dependencies"]["@acme/lib-a"]["resolved"] = (
                f"{ADDRESS}/tarballs/@acme/lib-a?norman=local&name=%40acme%2Flib-a"
            )
            lock_path.write_text(json.dumps(content))
            set_mtime(lock_path, time.time() + 10)
            return ""

        with patch("norman.core.npm.run_command", side_effect=fake_npm):
            NpmRunner(service).run(app, "install", integrities={"@acme/lib-a": "sha512-fresh"})

        assert seen["integrity"] == "sha512-fresh"
        resolved = json.loads(lock_path.read_text())["dependencies"]["@acme/lib-a"]["resolved"]
        assert resolved == "https://acme.test/@acme/lib-a/-/lib-a-1.0.0.tgz"

    def test_unknown_integrities_are_packed(self, service):
        app = service.modules.get("app")
        app.lockfile_path.write_text(
            json.dumps(
                {
                    "lockfileVersion": 1,
                    "dependencies": {
                        "@acme/lib-a": {"version": "1.0.0", "integrity": "sha512-x"},
                        "left-pad": {"version": "1.3.0", "integrity": "sha512-y"},
                    },
                }
            )
        )
        runner = NpmRunner(service)

        with patch.object(service.packager, "integrity", return_value="sha512-packed") as mock_integrity:
            result = runner.local_integrities(Lockfile(app.lockfile_path))

        assert result == {"@acme/lib-a": "sha512-packed"}
        mock_integrity.assert_called_once_with(service.modules.get("@acme/lib-a"))
