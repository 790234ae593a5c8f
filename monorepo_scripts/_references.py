# Copyright (c) Microsoft. All rights reserved.

"""Regenerate the project references of the shared tsconfig.json."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from rich.console import Console

from ._models import WorkspaceDescriptor
from ._settings import WorkspaceConfig
from ._workspaces import enumerate_workspaces, locate_root
from .exceptions import ReferenceConfigError

__all__ = ["render_references", "rewrite_references"]

logger = logging.getLogger(__name__)


def render_references(reference_config: dict[str, Any], workspaces: list[WorkspaceDescriptor]) -> str:
    """Replace ``references`` with one entry per workspace and serialize with 2-space indentation."""
    reference_config["references"] = [{"path": workspace.location} for workspace in workspaces]
    return json.dumps(reference_config, indent=2, ensure_ascii=False)


def rewrite_references(config: WorkspaceConfig, console: Console | None = None) -> Path:
    """Point the root reference file at every workspace.

    Returns:
        The path of the rewritten file.

    Raises:
        WorkspaceRootNotFoundError: If no workspace root is found.
        ReferenceConfigError: If the file is missing, is not a JSON object, or cannot be written.
    """
    root = locate_root(config)
    workspaces = enumerate_workspaces(root, config, console)
    path = root / config.reference_file

    try:
        reference_config = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ReferenceConfigError(f"Failed to read {path}: {e}", e) from e
    if not isinstance(reference_config, dict):
        raise ReferenceConfigError(f"Unexpected {config.reference_file} shape (expected object): {path}")

    try:
        path.write_text(render_references(reference_config, workspaces), encoding="utf-8")
    except OSError as e:
        raise ReferenceConfigError(f"Failed to write {path}: {e}", e) from e

    logger.info(f"Wrote {len(workspaces)} reference(s) to {path}")
    return path
