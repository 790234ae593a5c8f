# Copyright (c) Microsoft. All rights reserved.

import json
from pathlib import Path

import pytest
from rich.console import Console

from monorepo_scripts import WorkspaceConfig, enumerate_workspaces, get_workspaces, locate_root
from monorepo_scripts._workspaces import read_package_manifest, read_root_manifest
from monorepo_scripts.exceptions import DescriptorParseError, WorkspaceRootNotFoundError


class TestLocateRoot:
    def test_finds_root_from_nested_directory(self, make_monorepo) -> None:
        root = make_monorepo({"packages/a": {"build": "true"}})
        nested = root / "packages" / "a" / "src"
        nested.mkdir(parents=True)

        assert locate_root(WorkspaceConfig(start_dir=nested)) == root

    def test_skips_package_json_without_workspaces(self, make_monorepo) -> None:
        root = make_monorepo({"packages/a": {"build": "true"}})

        # packages/a/package.json has no workspaces, so the walk continues upward
        assert locate_root(WorkspaceConfig(start_dir=root / "packages" / "a")) == root

    def test_skips_malformed_marker_file(self, make_monorepo) -> None:
        root = make_monorepo({})
        inner = root / "broken"
        inner.mkdir()
        (inner / "package.json").write_text("{not json", encoding="utf-8")

        assert locate_root(WorkspaceConfig(start_dir=inner)) == root

    def test_stops_at_dependency_directory(self, make_monorepo) -> None:
        root = make_monorepo({})
        installed = root / "node_modules" / "@repo" / "scripts"
        installed.mkdir(parents=True)

        with pytest.raises(WorkspaceRootNotFoundError, match="node_modules"):
            locate_root(WorkspaceConfig(start_dir=installed))

    def test_fails_at_filesystem_root(self, tmp_path: Path) -> None:
        lonely = tmp_path / "lonely"
        lonely.mkdir()

        with pytest.raises(WorkspaceRootNotFoundError):
            locate_root(WorkspaceConfig(start_dir=lonely, marker_file="no-such-marker.json"))


class TestManifests:
    def test_root_manifest_object_form(self, tmp_path: Path) -> None:
        path = tmp_path / "package.json"
        path.write_text(json.dumps({"workspaces": {"packages": ["packages/*"], "nohoist": ["**/x"]}}))

        manifest = read_root_manifest(path)

        assert manifest is not None
        assert manifest.workspaces == ["packages/*"]

    def test_root_manifest_without_workspaces(self, tmp_path: Path) -> None:
        path = tmp_path / "package.json"
        path.write_text(json.dumps({"name": "x"}))

        assert read_root_manifest(path) is None

    def test_package_manifest_without_scripts(self, tmp_path: Path) -> None:
        path = tmp_path / "package.json"
        path.write_text(json.dumps({"name": "a", "scripts": None}))

        assert read_package_manifest(path).scripts == {}

    def test_package_manifest_without_name(self, tmp_path: Path) -> None:
        path = tmp_path / "package.json"
        path.write_text(json.dumps({"version": "1.0.0"}))

        with pytest.raises(DescriptorParseError) as exc_info:
            read_package_manifest(path)
        assert exc_info.value.path == str(path)


class TestEnumerateWorkspaces:
    def test_pattern_order_then_sorted_matches(self, make_monorepo) -> None:
        root = make_monorepo(
            {"packages/b": {}, "packages/a": {}, "apps/web": {}},
            workspaces=["apps/*", "packages/*"],
        )

        workspaces = enumerate_workspaces(root, WorkspaceConfig(start_dir=root))

        assert [w.location for w in workspaces] == ["apps/web", "packages/a", "packages/b"]
        assert [w.name for w in workspaces] == ["@repo/web", "@repo/a", "@repo/b"]

    def test_duplicate_patterns_are_not_deduplicated(self, make_monorepo) -> None:
        root = make_monorepo({"packages/a": {}}, workspaces=["packages/*", "packages/a"])

        workspaces = enumerate_workspaces(root, WorkspaceConfig(start_dir=root))

        assert [w.location for w in workspaces] == ["packages/a", "packages/a"]

    def test_globstar_matches_nested_directories(self, make_monorepo) -> None:
        root = make_monorepo({"packages/x/deep": {}, "packages/y": {}}, workspaces=["packages/**"])

        workspaces = enumerate_workspaces(root, WorkspaceConfig(start_dir=root))

        assert [w.location for w in workspaces] == ["packages/x/deep", "packages/y"]
        assert [w.short_name for w in workspaces] == ["deep", "y"]

    def test_tools_are_excluded(self, make_monorepo) -> None:
        root = make_monorepo({"tools/lint": {}, "packages/a": {}}, workspaces=["tools/*", "packages/*"])

        workspaces = enumerate_workspaces(root, WorkspaceConfig(start_dir=root))

        assert [w.location for w in workspaces] == ["packages/a"]

    def test_malformed_descriptor_is_reported_and_skipped(self, make_monorepo, stderr_console: Console) -> None:
        root = make_monorepo({"packages/a": {}, "packages/c": {}})
        broken = root / "packages" / "b"
        broken.mkdir(parents=True)
        (broken / "package.json").write_text("{", encoding="utf-8")

        workspaces = enumerate_workspaces(root, WorkspaceConfig(start_dir=root), stderr_console)

        assert [w.location for w in workspaces] == ["packages/a", "packages/c"]
        assert stderr_console.file.getvalue().strip() == "packages/b/package.json"

    def test_short_name(self, make_monorepo) -> None:
        root = make_monorepo({"packages/nested/deep": {}}, workspaces=["packages/nested/*"])

        (workspace,) = enumerate_workspaces(root, WorkspaceConfig(start_dir=root))

        assert workspace.short_name == "deep"

    def test_get_workspaces_locates_root_first(self, make_monorepo) -> None:
        root = make_monorepo({"packages/a": {}})

        workspaces = get_workspaces(WorkspaceConfig(start_dir=root / "packages" / "a"))

        assert [w.location for w in workspaces] == ["packages/a"]
