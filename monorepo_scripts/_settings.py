# Copyright (c) Microsoft. All rights reserved.

"""Settings loader and the explicit configuration passed to every component.

``load_settings()`` populates a ``TypedDict`` from explicit overrides, environment
variables and a ``.env`` file, in that order of precedence. ``WorkspaceConfig`` is
the frozen result the locator, enumerator, runner and rewriter receive, so none of
them reads the working directory or the process environment on its own.

Usage::

    config = WorkspaceConfig.from_settings(package_manager="npm")
    root = locate_root(config)
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from contextlib import suppress
from pathlib import Path
from typing import Any, TypedDict, Union, get_args, get_origin, get_type_hints

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from .exceptions import SettingsValidationError

__all__ = ["ENV_PREFIX", "RunnerSettings", "WorkspaceConfig", "load_settings"]

ENV_PREFIX = "MONOREPO_SCRIPTS_"


class RunnerSettings(TypedDict, total=False):
    start_dir: Path | None
    package_manager: str
    packages_prefix: str
    reserved_prefix: str
    force_color: str
    marker_file: str
    dependency_dir: str
    reference_file: str
    log_level: str


# Class-level defaults are not allowed on a TypedDict, so they live here.
_DEFAULTS: dict[str, Any] = {
    "package_manager": "yarn",
    "packages_prefix": "packages/",
    "reserved_prefix": "tools/",
    "force_color": "3",
    "marker_file": "package.json",
    "dependency_dir": "node_modules",
    "reference_file": "tsconfig.json",
    "log_level": "WARNING",
}


def _coerce_value(value: str, target_type: Any) -> Any:
    """Coerce a string value to the target type."""
    origin = get_origin(target_type)
    args = get_args(target_type)

    # Union types (e.g. Path | None): try each non-None arm
    if args and type(None) in args and (origin is Union or origin is type(int | str)):
        for arg in args:
            if arg is not type(None):
                with suppress(ValueError, TypeError):
                    return _coerce_value(value, arg)
        return value

    if target_type is Path:
        return Path(value)

    return value


def _check_override_type(value: Any, field_type: Any, field_name: str) -> None:
    """Raise ``SettingsValidationError`` when an override clearly does not fit its field."""
    if value is None:
        return

    origin = get_origin(field_type)
    args = get_args(field_type)
    if origin is Union or origin is type(int | str):
        allowed = tuple(a for a in args if isinstance(a, type) and a is not type(None))
    elif isinstance(field_type, type):
        allowed = (field_type,)
    else:
        return

    if not allowed or isinstance(value, allowed):
        return
    # str is accepted for Path fields and coerced
    if isinstance(value, str) and Path in allowed:
        return

    allowed_names = ", ".join(t.__name__ for t in allowed)
    raise SettingsValidationError(
        f"Invalid type for setting '{field_name}': expected {allowed_names}, got {type(value).__name__}."
    )


def load_settings(
    settings_type: type[RunnerSettings],
    *,
    env_prefix: str = "",
    env_file_path: str | None = None,
    env_file_encoding: str | None = None,
    environ: Mapping[str, str] | None = None,
    defaults: Mapping[str, Any] | None = None,
    **overrides: Any,
) -> RunnerSettings:
    """Load settings from explicit overrides, environment variables and a ``.env`` file.

    Values are resolved in this order (highest priority first):

    1. Explicit keyword *overrides* (``None`` values are filtered out).
    2. Environment variables (``<env_prefix><FIELD_NAME>``) from *environ*,
       which defaults to ``os.environ``.
    3. A ``.env`` file (loaded via ``python-dotenv``; existing env vars take precedence).
    4. *defaults*, or ``None``.

    Args:
        settings_type: A ``TypedDict`` class describing the settings schema.
        env_prefix: Prefix for environment variable lookup.
        env_file_path: Path to the ``.env`` file. Defaults to ``".env"`` when omitted.
        env_file_encoding: Encoding of the ``.env`` file. Defaults to ``"utf-8"``.
        environ: Environment mapping to read instead of ``os.environ``.
        defaults: Fallback values per field.
        **overrides: Field values.

    Returns:
        A populated dict matching *settings_type*.

    Raises:
        SettingsValidationError: If an override value has an incompatible type.
    """
    encoding = env_file_encoding or "utf-8"

    env_path = env_file_path or ".env"
    if environ is None:
        if os.path.isfile(env_path):
            load_dotenv(dotenv_path=env_path, encoding=encoding)
        environ = os.environ

    overrides = {k: v for k, v in overrides.items() if v is not None}
    defaults = defaults or {}
    hints = get_type_hints(settings_type)

    unknown = set(overrides) - set(hints)
    if unknown:
        raise SettingsValidationError(f"Unknown setting(s): {', '.join(sorted(unknown))}.")

    result: dict[str, Any] = {}
    for field_name, field_type in hints.items():
        if field_name in overrides:
            value = overrides[field_name]
            _check_override_type(value, field_type, field_name)
            if isinstance(value, str):
                value = _coerce_value(value, field_type)
            result[field_name] = value
            continue

        env_value = environ.get(f"{env_prefix}{field_name.upper()}")
        if env_value is not None:
            result[field_name] = _coerce_value(env_value, field_type)
            continue

        result[field_name] = defaults.get(field_name)

    return result  # type: ignore[return-value]


class WorkspaceConfig(BaseModel):
    """Everything the workspace tools need to know about their surroundings."""

    model_config = ConfigDict(frozen=True)

    start_dir: Path
    environ: dict[str, str] = Field(default_factory=lambda: dict(os.environ))
    package_manager: str = _DEFAULTS["package_manager"]
    packages_prefix: str = _DEFAULTS["packages_prefix"]
    reserved_prefix: str = _DEFAULTS["reserved_prefix"]
    force_color: str = _DEFAULTS["force_color"]
    marker_file: str = _DEFAULTS["marker_file"]
    dependency_dir: str = _DEFAULTS["dependency_dir"]
    reference_file: str = _DEFAULTS["reference_file"]
    log_level: str = _DEFAULTS["log_level"]

    @classmethod
    def from_settings(
        cls,
        *,
        environ: Mapping[str, str] | None = None,
        env_file_path: str | None = None,
        **overrides: Any,
    ) -> WorkspaceConfig:
        """Build a configuration from overrides, ``MONOREPO_SCRIPTS_*`` variables and defaults.

        The working directory and the environment are captured once here.
        """
        settings = load_settings(
            RunnerSettings,
            env_prefix=ENV_PREFIX,
            env_file_path=env_file_path,
            environ=environ,
            defaults=_DEFAULTS,
            **overrides,
        )
        env = dict(os.environ if environ is None else environ)
        start_dir = settings.get("start_dir") or Path.cwd()
        values = {k: v for k, v in settings.items() if k != "start_dir" and v is not None}
        return cls(start_dir=Path(start_dir).resolve(), environ=env, **values)

    def child_environ(self) -> dict[str, str]:
        """Environment for script processes: the captured environment plus forced color."""
        return {**self.environ, "FORCE_COLOR": self.force_color}
