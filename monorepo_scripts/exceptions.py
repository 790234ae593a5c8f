# Copyright (c) Microsoft. All rights reserved.

import logging
from typing import Any, Literal

logger = logging.getLogger("monorepo_scripts")


class MonorepoScriptsException(Exception):
    """Base exception for monorepo scripts.

    Automatically logs the message as debug.
    """

    def __init__(
        self,
        message: str,
        inner_exception: Exception | None = None,
        log_level: Literal[0] | Literal[10] | Literal[20] | Literal[30] | Literal[40] | Literal[50] | None = 10,
        *args: Any,
        **kwargs: Any,
    ):
        """Create a MonorepoScriptsException.

        This emits a debug log (by default), with the inner_exception if provided.
        """
        if log_level is not None:
            logger.log(log_level, message, exc_info=inner_exception)
        if inner_exception:
            super().__init__(message, inner_exception, *args)  # type: ignore
        else:
            super().__init__(message, *args)  # type: ignore
        self.message = message

    def __str__(self) -> str:
        return self.message


# region Workspace Exceptions


class WorkspaceException(MonorepoScriptsException):
    """Base class for workspace discovery exceptions."""

    pass


class WorkspaceRootNotFoundError(WorkspaceException):
    """No directory declaring a workspace list was found."""

    pass


class DescriptorParseError(WorkspaceException):
    """A package descriptor could not be read or did not match the expected schema."""

    def __init__(self, message: str, path: str, inner_exception: Exception | None = None, **kwargs: Any):
        super().__init__(message, inner_exception, **kwargs)
        self.path = path


# endregion

# region Task Exceptions


class TaskException(MonorepoScriptsException):
    """Base class for exceptions raised while running a script in a workspace."""

    def __init__(self, message: str, workspace: str, inner_exception: Exception | None = None, **kwargs: Any):
        super().__init__(message, inner_exception, **kwargs)
        self.workspace = workspace


class ScriptMissingError(TaskException):
    """The workspace has no descriptor or no script with the requested name."""

    pass


class ChildExitError(TaskException):
    """The script process exited with a nonzero code."""

    def __init__(self, workspace: str, exit_code: int, **kwargs: Any):
        super().__init__(f"{workspace} exited with code {exit_code}", workspace, **kwargs)
        self.exit_code = exit_code


class ChildSpawnError(TaskException):
    """The script process could not be started."""

    pass


# endregion


class ReferenceConfigError(MonorepoScriptsException):
    """The shared reference configuration file could not be read or written."""

    pass


class SettingsValidationError(MonorepoScriptsException):
    """A setting override has an incompatible type."""

    pass


__all__ = [
    "ChildExitError",
    "ChildSpawnError",
    "DescriptorParseError",
    "MonorepoScriptsException",
    "ReferenceConfigError",
    "ScriptMissingError",
    "SettingsValidationError",
    "TaskException",
    "WorkspaceException",
    "WorkspaceRootNotFoundError",
]
