# Copyright (c) Microsoft. All rights reserved.

"""Workspace root discovery and workspace enumeration."""

from __future__ import annotations

import glob
import json
import logging
import posixpath
from pathlib import Path

from pydantic import ValidationError
from rich.console import Console

from ._models import PackageManifest, RootManifest, WorkspaceDescriptor
from ._output import make_console
from ._settings import WorkspaceConfig
from .exceptions import DescriptorParseError, WorkspaceRootNotFoundError

__all__ = ["enumerate_workspaces", "get_workspaces", "locate_root", "read_package_manifest", "read_root_manifest"]

logger = logging.getLogger(__name__)


def read_root_manifest(path: Path) -> RootManifest | None:
    """Parse a root marker file, or return None when it does not declare workspaces."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return RootManifest.model_validate(data)
    except (OSError, ValueError, ValidationError) as e:
        logger.debug(f"{path} does not declare workspaces: {e}")
        return None


def read_package_manifest(path: Path) -> PackageManifest:
    """Parse a workspace descriptor.

    Raises:
        DescriptorParseError: If the file cannot be read, is not JSON, or lacks a name.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return PackageManifest.model_validate(data)
    except (OSError, ValueError, ValidationError) as e:
        raise DescriptorParseError(f"Failed to parse package descriptor {path}: {e}", str(path), e) from e


def locate_root(config: WorkspaceConfig) -> Path:
    """Walk up from ``config.start_dir`` to the directory whose marker file declares workspaces.

    Raises:
        WorkspaceRootNotFoundError: If the walk reaches the filesystem root or a
            dependency directory first.
    """
    directory = config.start_dir
    while True:
        marker = directory / config.marker_file
        if marker.is_file() and read_root_manifest(marker) is not None:
            logger.debug(f"Workspace root: {directory}")
            return directory

        if directory.name == config.dependency_dir:
            raise WorkspaceRootNotFoundError(
                f"Unable to find workspace root: reached {config.dependency_dir} at {directory}"
            )
        parent = directory.parent
        if parent == directory:
            raise WorkspaceRootNotFoundError(f"Unable to find workspace root above {config.start_dir}")
        directory = parent


def _match_descriptors(root: Path, pattern: str, marker_file: str) -> list[str]:
    pattern = pattern.rstrip("/")
    matches = glob.glob(f"{pattern}/{marker_file}", root_dir=root, recursive=True)
    return sorted(posixpath.normpath(Path(match).as_posix()) for match in matches)


def enumerate_workspaces(
    root: Path, config: WorkspaceConfig, console: Console | None = None
) -> list[WorkspaceDescriptor]:
    """List the workspaces declared by the root manifest in *root*.

    Matches are concatenated in pattern order and are not de-duplicated. Descriptors
    that cannot be parsed are reported and left out, as is anything under
    ``config.reserved_prefix``.
    """
    manifest = read_root_manifest(root / config.marker_file)
    if manifest is None:
        raise WorkspaceRootNotFoundError(f"{root / config.marker_file} does not declare workspaces")

    console = console or make_console(stderr=True)
    workspaces: list[WorkspaceDescriptor] = []
    for pattern in manifest.workspaces:
        for filename in _match_descriptors(root, pattern, config.marker_file):
            location = posixpath.dirname(filename)
            if location.startswith(config.reserved_prefix):
                continue
            try:
                package = read_package_manifest(root / filename)
            except DescriptorParseError:
                console.print(filename, style="bold red", markup=False)
                continue
            workspaces.append(WorkspaceDescriptor(name=package.name, location=location))

    logger.debug(f"Found {len(workspaces)} workspace(s) in {root}")
    return workspaces


def get_workspaces(config: WorkspaceConfig, console: Console | None = None) -> list[WorkspaceDescriptor]:
    """Enumerate the workspaces of the monorepo containing ``config.start_dir``."""
    return enumerate_workspaces(locate_root(config), config, console)
