# Copyright (c) Microsoft. All rights reserved.

"""Monorepo scripts - run package scripts across workspaces and keep shared config in sync."""

import importlib.metadata

from ._logging import get_logger, setup_logging
from ._models import (
    PackageManifest,
    RootManifest,
    RunOptions,
    RunSummary,
    TaskResult,
    WorkspaceDescriptor,
)
from ._output import OutputStreamer, split_lines, strip_ansi_cursor
from ._references import rewrite_references
from ._runner import TaskRunner, run, select_workspaces
from ._settings import WorkspaceConfig, load_settings
from ._workspaces import enumerate_workspaces, get_workspaces, locate_root
from .exceptions import *  # noqa: F403

try:
    __version__ = importlib.metadata.version("monorepo-scripts")
except importlib.metadata.PackageNotFoundError:
    __version__ = "0.0.0"  # Fallback for development mode

__all__ = [
    "OutputStreamer",
    "PackageManifest",
    "RootManifest",
    "RunOptions",
    "RunSummary",
    "TaskResult",
    "TaskRunner",
    "WorkspaceConfig",
    "WorkspaceDescriptor",
    "__version__",
    "enumerate_workspaces",
    "get_logger",
    "get_workspaces",
    "load_settings",
    "locate_root",
    "rewrite_references",
    "run",
    "select_workspaces",
    "setup_logging",
    "split_lines",
    "strip_ansi_cursor",
]
