# Copyright (c) Microsoft. All rights reserved.

"""Pytest fixtures for monorepo scripts tests.

This module provides:
- A factory that lays out a throwaway monorepo under ``tmp_path``
- A stand-in package manager that runs ``package.json`` scripts through ``sh``
- Capturing rich consoles
"""

import io
import json
import os
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
from rich.console import Console

from monorepo_scripts import WorkspaceConfig

FAKE_PACKAGE_MANAGER = """
import json
import os
import sys

_, command, *args = sys.argv[1:]
with open("package.json", encoding="utf-8") as f:
    scripts = json.load(f).get("scripts", {})
os.execv("/bin/sh", ["sh", "-c", scripts[command], "sh", *args])
"""


def write_json(path: Path, data: Any) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    return path


MakeMonorepo = Callable[..., Path]


@pytest.fixture
def make_monorepo(tmp_path: Path) -> MakeMonorepo:
    """Factory building a monorepo: ``make_monorepo({"packages/a": {"build": "echo a"}})``.

    A value of ``None`` creates the package without a ``scripts`` entry.
    """

    def factory(
        packages: dict[str, dict[str, str] | None],
        workspaces: list[str] | None = None,
        root: Path | None = None,
    ) -> Path:
        root = root or tmp_path / "repo"
        write_json(root / "package.json", {"name": "root", "private": True, "workspaces": workspaces or ["packages/*"]})
        for location, scripts in packages.items():
            descriptor: dict[str, Any] = {"name": f"@repo/{location.rsplit('/', 1)[-1]}", "version": "1.0.0"}
            if scripts is not None:
                descriptor["scripts"] = scripts
            write_json(root / location / "package.json", descriptor)
        return root

    return factory


@pytest.fixture
def fake_package_manager(tmp_path: Path) -> str:
    if sys.platform == "win32":
        pytest.skip("Scripts run through /bin/sh")
    script = tmp_path / "fake_pm.py"
    script.write_text(FAKE_PACKAGE_MANAGER, encoding="utf-8")
    return f'"{sys.executable}" "{script}"'


@pytest.fixture
def config_for(fake_package_manager: str) -> Callable[[Path], WorkspaceConfig]:
    def factory(root: Path) -> WorkspaceConfig:
        return WorkspaceConfig(start_dir=root, environ=dict(os.environ), package_manager=fake_package_manager)

    return factory


def make_capture_console() -> Console:
    return Console(
        file=io.StringIO(), force_terminal=False, color_system=None, width=200, highlight=False, soft_wrap=True
    )


@pytest.fixture
def stdout_console() -> Console:
    return make_capture_console()


@pytest.fixture
def stderr_console() -> Console:
    return make_capture_console()
