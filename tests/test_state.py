"""
Tests for module state snapshots and change detection.
"""

import time

import pytest

from norman.core.modules.subsets import BUILD_SUBSET, PUBLISH_SUBSET


@pytest.fixture
def service(workspace_dir, write_config, make_service, write_module):
    write_module(
        workspace_dir,
        "lib",
        files={"src/index.ts": "export {}\n", "README.md": "# lib\n", "node_modules/x/index.js": ""},
    )
    write_config([{"name": "lib", "path": "lib", "buildTriggers": ["src/**/*.ts"]}])
    return make_service()


@pytest.fixture
def lib(service):
    return service.modules.get("lib")


class TestActualState:
    """Tests for snapshotting module files."""

    def test_snapshot_is_idempotent(self, service, lib):
        first = service.state_manager.actual_state(lib, PUBLISH_SUBSET)
        second = service.state_manager.actual_state(lib, PUBLISH_SUBSET)
        assert first.files == second.files

    def test_snapshot_skips_node_modules_and_directories(self, service, lib):
        files = service.state_manager.actual_state(lib, PUBLISH_SUBSET).files
        assert str(lib.path / "src" / "index.ts") in files
        assert str(lib.path / "src") not in files
        assert not any("node_modules" in path for path in files)

    def test_build_subset_uses_triggers(self, service, lib):
        files = service.state_manager.actual_state(lib, BUILD_SUBSET).files
        assert list(files) == [str(lib.path / "src" / "index.ts")]


class TestHasChanged:
    """Tests for comparing saved and actual state."""

    def test_changed_without_saved_state(self, service, lib):
        assert service.state_manager.has_changed(lib, BUILD_SUBSET)

    def test_unchanged_after_save(self, service, lib):
        service.state_manager.save_actual(lib, BUILD_SUBSET)
        assert not service.state_manager.has_changed(lib, BUILD_SUBSET)

    def test_touching_untracked_file_is_not_a_change(self, service, lib, set_mtime):
        service.state_manager.save_actual(lib, BUILD_SUBSET)
        set_mtime(lib.path / "README.md", time.time() + 100)
        assert not service.state_manager.has_changed(lib, BUILD_SUBSET)

    def test_touching_tracked_file_is_a_change(self, service, lib, set_mtime):
        service.state_manager.save_actual(lib, BUILD_SUBSET)
        set_mtime(lib.path / "src" / "index.ts", time.time() + 100)
        assert service.state_manager.has_changed(lib, BUILD_SUBSET)

    def test_older_mtime_is_not_a_change(self, service, lib, set_mtime):
        service.state_manager.save_actual(lib, BUILD_SUBSET)
        set_mtime(lib.path / "src" / "index.ts", 1_000_000)
        assert not service.state_manager.has_changed(lib, BUILD_SUBSET)

    def test_new_file_is_a_change(self, service, lib):
        service.state_manager.save_actual(lib, BUILD_SUBSET)
        (lib.path / "src" / "extra.ts").write_text("export {}\n")
        assert service.state_manager.has_changed(lib, BUILD_SUBSET)

    def test_deleted_file_is_a_change(self, service, lib):
        service.state_manager.save_actual(lib, BUILD_SUBSET)
        (lib.path / "src" / "index.ts").unlink()
        assert service.state_manager.has_changed(lib, BUILD_SUBSET)

    def test_tags_are_independent(self, service, lib):
        service.state_manager.save_actual(lib, BUILD_SUBSET)
        assert service.state_manager.has_changed(lib, PUBLISH_SUBSET)
        assert not service.state_manager.has_changed(lib, BUILD_SUBSET)


class TestPersistence:
    """Tests for the on-disk state store."""

    def test_save_replaces_previous_record(self, service, lib):
        manager = service.state_manager
        manager.save_actual(lib, BUILD_SUBSET)
        (lib.path / "src" / "extra.ts").write_text("")
        manager.save_actual(lib, BUILD_SUBSET)

        saved = manager.saved_state(lib, BUILD_SUBSET.name)
        assert str(lib.path / "src" / "extra.ts") in saved.files
        assert saved.module == "lib"

    def test_corrupt_state_file_counts_as_missing(self, service, lib):
        path = service.state_manager.state_file_path(lib)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("{not json")

        assert service.state_manager.saved_state(lib, BUILD_SUBSET.name) is None
        assert service.state_manager.has_changed(lib, BUILD_SUBSET)

    def test_clean_removes_states(self, service, lib):
        service.state_manager.save_actual(lib, BUILD_SUBSET)
        service.state_manager.clean()
        assert service.state_manager.saved_state(lib, BUILD_SUBSET.name) is None
