# Copyright (c) Microsoft. All rights reserved.

"""Run a package script across workspace packages, serially or in parallel."""

from __future__ import annotations

import asyncio
import logging
import shlex
import time
from collections.abc import Sequence
from contextlib import suppress
from pathlib import Path

from rich.console import Console
from rich.text import Text

from ._models import RunOptions, RunSummary, TaskResult, WorkspaceDescriptor
from ._output import OutputStreamer, make_console
from ._settings import WorkspaceConfig
from ._workspaces import enumerate_workspaces, locate_root, read_package_manifest
from .exceptions import ChildExitError, ChildSpawnError, DescriptorParseError, ScriptMissingError

__all__ = ["TaskRunner", "label_width", "run", "select_workspaces"]

logger = logging.getLogger(__name__)

EXIT_POLL_INTERVAL = 0.05
# How long output of exited scripts may keep flowing (from descendants holding the pipes) once the run is over.
OUTPUT_DRAIN_TIMEOUT = 1.0


async def wait_for_exit(process: asyncio.subprocess.Process) -> int:
    """Wait until *process* exits, without waiting for its output pipes to close.

    ``Process.wait()`` also waits for the pipes, which a backgrounded descendant can hold
    open long after the script itself is gone.
    """
    waiter = asyncio.ensure_future(process.wait())
    try:
        while process.returncode is None and not waiter.done():
            await asyncio.wait({waiter}, timeout=EXIT_POLL_INTERVAL)
    finally:
        if not waiter.done():
            waiter.cancel()
    assert process.returncode is not None
    return process.returncode


def select_workspaces(
    workspaces: Sequence[WorkspaceDescriptor], options: RunOptions, packages_prefix: str = "packages/"
) -> list[WorkspaceDescriptor]:
    """Filter to *packages_prefix*, order by ``options.order`` and drop ``options.exclude``.

    Short names listed in ``options.order`` come first in that order; the rest keep
    their relative order after them.
    """
    selected = [workspace for workspace in workspaces if workspace.location.startswith(packages_prefix)]

    def rank(workspace: WorkspaceDescriptor) -> int:
        try:
            return options.order.index(workspace.short_name)
        except ValueError:
            return len(options.order)

    selected.sort(key=rank)
    excluded = set(options.exclude)
    return [workspace for workspace in selected if workspace.short_name not in excluded]


def label_width(workspaces: Sequence[WorkspaceDescriptor]) -> int:
    return max((len(workspace.short_name) for workspace in workspaces), default=0)


class TaskRunner:
    """Runs one script in each selected workspace and streams the output.

    Serial mode uses a single worker over the ordered queue, so at most one script
    process is alive and processes start in queue order. Parallel mode uses one worker
    per workspace, or ``options.jobs`` workers.
    """

    def __init__(
        self,
        config: WorkspaceConfig,
        options: RunOptions | None = None,
        *,
        stdout: Console | None = None,
        stderr: Console | None = None,
    ):
        self.config = config
        self.options = options or RunOptions()
        self.stdout = stdout or make_console()
        self.stderr = stderr or make_console(stderr=True)
        self._processes: list[asyncio.subprocess.Process] = []
        self._pumps: list[asyncio.Task[None]] = []

    def worker_count(self, task_count: int) -> int:
        if task_count == 0:
            return 0
        if not self.options.parallel:
            return 1
        return min(task_count, self.options.jobs or task_count)

    async def run(
        self, command: str, *args: str, workspaces: Sequence[WorkspaceDescriptor] | None = None
    ) -> RunSummary:
        """Run *command* with *args* in every selected workspace.

        Args:
            command: The package script name.
            args: Arguments passed through to the script.
            workspaces: Pre-enumerated workspaces; enumerated from the root when omitted.

        Returns:
            A summary with one result per started task and the names of skipped workspaces.
        """
        root = locate_root(self.config)
        if workspaces is None:
            workspaces = enumerate_workspaces(root, self.config, self.stderr)

        selected = select_workspaces(workspaces, self.options, self.config.packages_prefix)
        width = label_width(selected)
        summary = RunSummary()
        results: dict[int, TaskResult] = {}

        queue: asyncio.Queue[tuple[int, WorkspaceDescriptor]] = asyncio.Queue()
        for item in enumerate(selected):
            queue.put_nowait(item)

        async def worker() -> None:
            while True:
                try:
                    index, workspace = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                label = workspace.short_name.ljust(width)
                result = await self._run_task(root, workspace, label, command, args)
                if result is None:
                    summary.skipped.append(workspace.name)
                else:
                    results[index] = result

        done = asyncio.Event()
        sweeper = asyncio.create_task(self._terminate_when_done(done))
        try:
            await asyncio.gather(*(worker() for _ in range(self.worker_count(len(selected)))))
        finally:
            done.set()
            await sweeper

        summary.results = [results[index] for index in sorted(results)]
        return summary

    async def _terminate_when_done(self, done: asyncio.Event) -> None:
        """Once the run settles, terminate any script process that is still alive and settle its output."""
        await done.wait()
        alive = [process for process in self._processes if process.returncode is None]
        for process in alive:
            logger.debug(f"Terminating leftover process {process.pid}")
            with suppress(ProcessLookupError):
                process.terminate()
        if alive:
            await asyncio.gather(*(wait_for_exit(process) for process in alive), return_exceptions=True)

        pending = [pump for pump in self._pumps if not pump.done()]
        if pending:
            _, pending = await asyncio.wait(pending, timeout=OUTPUT_DRAIN_TIMEOUT)
        for pump in pending:
            logger.debug("Dropping output still held open by a descendant of an exited script")
            pump.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    def _skip(self, error: ScriptMissingError) -> None:
        self.stderr.print(f"{error.workspace} skipped due to {error.message}", style="bright_black", markup=False)

    def _check_script(self, root: Path, workspace: WorkspaceDescriptor, command: str) -> None:
        package_path = root / workspace.location / self.config.marker_file
        if not package_path.is_file():
            raise ScriptMissingError(f"no {self.config.marker_file}", workspace.name)
        try:
            manifest = read_package_manifest(package_path)
        except DescriptorParseError as e:
            raise ScriptMissingError(f"unreadable {self.config.marker_file}", workspace.name, e) from e
        if not manifest.scripts.get(command):
            raise ScriptMissingError(f"no script named {command}", workspace.name)

    async def _run_task(
        self, root: Path, workspace: WorkspaceDescriptor, label: str, command: str, args: Sequence[str]
    ) -> TaskResult | None:
        try:
            self._check_script(root, workspace, command)
        except ScriptMissingError as e:
            self._skip(e)
            return None

        if not self.options.silent:
            self.stderr.print(Text(f"[{label}] {self.config.package_manager} run {command}", style="cyan"))

        argv = [*shlex.split(self.config.package_manager), "run", command, *args]
        start = time.monotonic()
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                cwd=root / workspace.location,
                env=self.config.child_environ(),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            error = ChildSpawnError(f"{workspace.name} failed to start {argv[0]}: {e}", workspace.name, e)
            self.stderr.print(error.message, style="red", markup=False)
            return TaskResult(workspace=workspace.name, location=workspace.location, error=error.message)

        logger.debug(f"Started pid {process.pid} for {workspace.name}: {argv}")
        self._processes.append(process)
        self._pumps.append(asyncio.create_task(OutputStreamer(label, self.stdout, self.stderr).pump_process(process)))
        exit_code = await wait_for_exit(process)
        elapsed = time.monotonic() - start

        if exit_code != 0:
            error = ChildExitError(workspace.name, exit_code)
            self.stderr.print(error.message, style="red", markup=False)
            return TaskResult(
                workspace=workspace.name,
                location=workspace.location,
                exit_code=exit_code,
                error=error.message,
                elapsed=elapsed,
            )
        return TaskResult(workspace=workspace.name, location=workspace.location, exit_code=0, elapsed=elapsed)


async def run(
    options: RunOptions,
    command: str,
    *args: str,
    config: WorkspaceConfig | None = None,
    stdout: Console | None = None,
    stderr: Console | None = None,
) -> RunSummary:
    """Run *command* across the workspaces of the monorepo containing the working directory."""
    config = config or WorkspaceConfig.from_settings()
    runner = TaskRunner(config, options, stdout=stdout, stderr=stderr)
    return await runner.run(command, *args)
