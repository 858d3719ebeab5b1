"""
Tests for package-lock.json maintenance.
"""

import json

import pytest

from norman.core.exceptions import LockfileError, RegistryError
from norman.core.lockfile import Lockfile

PROXY = "http://127.0.0.1:4873"


def write_lockfile(directory, dependencies, version=1):
    path = directory / "package-lock.json"
    path.write_text(
        json.dumps({"name": "app", "lockfileVersion": version, "dependencies": dependencies})
    )
    return Lockfile(path)


@pytest.fixture
def app_dir(tmp_path):
    directory = tmp_path / "app"
    directory.mkdir()
    return directory


class TestLoad:
    """Tests for lockfile validation."""

    def test_unsupported_version(self, app_dir):
        lockfile = write_lockfile(app_dir, {}, version=2)

        with pytest.raises(LockfileError, match="unsupported version 2"):
            lockfile.load()

    def test_not_an_object(self, app_dir):
        (app_dir / "package-lock.json").write_text("[]")

        with pytest.raises(LockfileError, match="content not an object"):
            Lockfile.for_dir(app_dir).load()

    def test_invalid_json(self, app_dir):
        (app_dir / "package-lock.json").write_text("{")

        with pytest.raises(LockfileError, match="not valid JSON"):
            Lockfile.for_dir(app_dir).load()


class TestIteration:
    """Tests for walking nested dependency entries."""

    def test_nested_entries_come_first(self, app_dir):
        lockfile = write_lockfile(
            app_dir,
            {
                "a": {"version": "1.0.0", "dependencies": {"b": {"version": "2.0.0"}}},
                "c": {"version": "3.0.0"},
            },
        )

        paths = [dep_path for _, dep_path, _ in lockfile.iter_dependencies()]

        assert sorted(paths) == ["a", "a/b", "c"]
        assert paths.index("a/b") < paths.index("a")

    def test_integrities_filtered_by_name(self, app_dir):
        lockfile = write_lockfile(
            app_dir,
            {
                "lib-a": {"version": "1.0.0", "integrity": "sha512-top"},
                "x": {
                    "version": "1.0.0",
                    "integrity": "sha512-x",
                    "dependencies": {"lib-a": {"version": "0.9.0", "integrity": "sha512-nested"}},
                },
            },
        )

        result = lockfile.integrities({"lib-a"})

        assert sorted(result["lib-a"]) == ["sha512-nested", "sha512-top"]
        assert "x" not in result


class TestUpdateIntegrity:
    """Tests for rewriting integrity fields of local modules."""

    def test_matching_entries_are_updated(self, app_dir):
        lockfile = write_lockfile(
            app_dir,
            {
                "lib-a": {"version": "1.0.0", "integrity": "sha512-old"},
                "other": {"version": "1.0.0", "integrity": "sha512-other"},
            },
        )

        lockfile.update_integrity({"lib-a": "sha512-new"})

        content = json.loads(lockfile.path.read_text())
        assert content["dependencies"]["lib-a"]["integrity"] == "sha512-new"
        assert content["dependencies"]["other"]["integrity"] == "sha512-other"
        assert lockfile.path.read_text().endswith("}\n")

    def test_backup_removed_after_write(self, app_dir):
        lockfile = write_lockfile(app_dir, {"lib-a": {"version": "1.0.0"}})

        lockfile.update_integrity({"lib-a": "sha512-new"})

        assert not lockfile.backup_path.exists()

    def test_unchanged_lockfile_is_not_rewritten(self, app_dir):
        lockfile = write_lockfile(app_dir, {"lib-a": {"version": "1.0.0", "integrity": "sha512-same"}})
        before = lockfile.path.read_text()

        lockfile.update_integrity({"lib-a": "sha512-same", "missing": "sha512-x"})

        # write_lockfile emits compact JSON, a rewrite would indent it
        assert lockfile.path.read_text() == before
        assert not lockfile.backup_path.exists()

    def test_non_ascii_text_is_kept_verbatim(self, app_dir):
        path = app_dir / "package-lock.json"
        path.write_text(
            json.dumps(
                {
                    "name": "app",
                    "description": "Café größe",
                    "lockfileVersion": 1,
                    "dependencies": {"lib-a": {"version": "1.0.0", "integrity": "sha512-old"}},
                },
                ensure_ascii=False,
            ),
            encoding="utf-8",
        )

        Lockfile(path).update_integrity({"lib-a": "sha512-new"})

        text = path.read_text(encoding="utf-8")
        assert "Café größe" in text
        assert "\\u00e9" not in text

    def test_invalid_lockfile_is_left_untouched(self, app_dir):
        lockfile = write_lockfile(app_dir, {}, version=3)
        before = lockfile.path.read_text()

        with pytest.raises(LockfileError):
            lockfile.update_integrity({"lib-a": "sha512-new"})

        assert lockfile.path.read_text() == before


class TestUpdateResolved:
    """Tests for mapping proxy URLs back to registry URLs."""

    @pytest.fixture
    def service(self, workspace_dir, write_config, make_service, write_module):
        write_module(workspace_dir, "@acme/lib-a", version="1.0.0")
        write_config([{"name": "@acme/lib-a", "path": "acme-lib-a"}])
        return make_service()

    def test_local_and_remote_urls(self, service, app_dir, upstream_registry):
        upstream_url = f"{upstream_registry}left-pad/-/left-pad-1.3.0.tgz"
        lockfile = write_lockfile(
            app_dir,
            {
                "@acme/lib-a": {
                    "version": "1.0.0",
                    "resolved": f"{PROXY}/tarballs/@acme/lib-a?norman=local&name=%40acme%2Flib-a",
                },
                "left-pad": {
                    "version": "1.3.0",
                    "resolved": f"{PROXY}/tarballs/left-pad?url=https%3A%2F%2Fregistry.example.test"
                    "%2Fleft-pad%2F-%2Fleft-pad-1.3.0.tgz&norman=remote",
                },
                "untouched": {"version": "2.0.0", "resolved": "https://elsewhere.test/u.tgz"},
            },
        )

        lockfile.update_resolved(service.modules, service.npm_config)

        deps = json.loads(lockfile.path.read_text())["dependencies"]
        assert deps["@acme/lib-a"]["resolved"] == f"{upstream_registry}@acme/lib-a/-/lib-a-1.0.0.tgz"
        assert deps["left-pad"]["resolved"] == upstream_url
        assert deps["untouched"]["resolved"] == "https://elsewhere.test/u.tgz"

    def test_unknown_local_module(self, service, app_dir):
        lockfile = write_lockfile(
            app_dir,
            {"ghost": {"version": "1.0.0", "resolved": f"{PROXY}/tarballs/ghost?norman=local&name=ghost"}},
        )

        with pytest.raises(RegistryError, match='local module "ghost"'):
            lockfile.update_resolved(service.modules, service.npm_config)
