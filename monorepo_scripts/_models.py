# Copyright (c) Microsoft. All rights reserved.

"""Schema types for workspace manifests and run data."""

from __future__ import annotations

import posixpath
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RootManifest(BaseModel):
    """The root ``package.json``; only the workspace globs matter."""

    model_config = ConfigDict(extra="ignore")

    workspaces: list[str]

    @field_validator("workspaces", mode="before")
    @classmethod
    def unwrap_packages(cls, value: Any) -> Any:
        # yarn also accepts {"packages": [...], "nohoist": [...]}
        if isinstance(value, dict):
            return value.get("packages")
        return value


class PackageManifest(BaseModel):
    """A workspace ``package.json``."""

    model_config = ConfigDict(extra="ignore")

    name: str
    scripts: dict[str, str] = Field(default_factory=dict)

    @field_validator("scripts", mode="before")
    @classmethod
    def null_scripts(cls, value: Any) -> Any:
        return {} if value is None else value


class WorkspaceDescriptor(BaseModel):
    """A discovered workspace package."""

    model_config = ConfigDict(frozen=True)

    name: str
    location: str  # POSIX path relative to the workspace root

    @property
    def short_name(self) -> str:
        return posixpath.basename(self.location.rstrip("/"))


class RunOptions(BaseModel):
    """Options for one ``run`` invocation."""

    model_config = ConfigDict(frozen=True)

    parallel: bool = False
    silent: bool = False
    order: list[str] = Field(default_factory=list)
    exclude: list[str] = Field(default_factory=list)
    jobs: int | None = Field(default=None, ge=1)

    @field_validator("order", "exclude", mode="before")
    @classmethod
    def split_names(cls, value: Any) -> Any:
        # "a,b" on the command line
        if value is None:
            return []
        if isinstance(value, str):
            return [name for name in value.split(",") if name]
        return value


class TaskResult(BaseModel):
    """Outcome of running the script in one workspace."""

    workspace: str
    location: str
    exit_code: int | None = None  # None if the process never started
    error: str | None = None
    elapsed: float | None = None

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class RunSummary(BaseModel):
    results: list[TaskResult] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(result.ok for result in self.results)

    @property
    def failures(self) -> list[TaskResult]:
        return [result for result in self.results if not result.ok]
