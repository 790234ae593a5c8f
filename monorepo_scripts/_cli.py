# Copyright (c) Microsoft. All rights reserved.

"""Command line interface for the monorepo scripts."""

import argparse
import asyncio
import logging
import sys

from rich.console import Console

from ._logging import setup_logging
from ._models import RunOptions
from ._output import make_console
from ._references import rewrite_references
from ._runner import TaskRunner
from ._settings import WorkspaceConfig
from .exceptions import MonorepoScriptsException

logger = logging.getLogger(__name__)


def positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value}")
    return number


class PassThroughParser(argparse.ArgumentParser):
    """Stops option parsing at the first positional and keeps everything after it verbatim.

    Applies to parsers that declare an ``args`` positional. argparse would otherwise
    consume a ``--`` following the command instead of passing it to the script.
    """

    passthrough_dest = "args"

    def parse_known_args(self, args=None, namespace=None):
        if not any(action.dest == self.passthrough_dest for action in self._actions):
            return super().parse_known_args(args, namespace)

        args = list(sys.argv[1:] if args is None else args)
        split = self._command_index(args)
        namespace, extras = super().parse_known_args(args[: split + 1], namespace)
        setattr(namespace, self.passthrough_dest, args[split + 1 :])
        return namespace, extras

    def _takes_value(self, option: str) -> bool:
        action = self._option_string_actions.get(option)
        return action is not None and action.nargs != 0

    def _command_index(self, args: list[str]) -> int:
        """Index of the command token, or ``len(args)`` when there is none."""
        index = 0
        while index < len(args):
            token = args[index]
            if token == "--":
                return index + 1
            if not token.startswith("-") or token == "-":
                return index
            if token.startswith("--"):
                if "=" not in token and self._takes_value(token):
                    index += 1
            else:
                # A cluster of short flags; a value-taking one swallows the rest or the next token.
                for position in range(1, len(token)):
                    if self._takes_value(f"-{token[position]}"):
                        if position == len(token) - 1:
                            index += 1
                        break
            index += 1
        return len(args)


def create_cli_parser() -> argparse.ArgumentParser:
    """Create the command line argument parser."""
    parser = argparse.ArgumentParser(
        prog="monorepo-scripts",
        description="Run package scripts across the workspaces of a monorepo.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  monorepo-scripts run build                  # One package at a time
  monorepo-scripts run -p test                # All packages at once
  monorepo-scripts run -o core,ui -e docs lint --fix
  monorepo-scripts generate tsconfig          # Rewrite tsconfig.json references
        """,
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: WARNING)",
    )
    subparsers = parser.add_subparsers(dest="tool", required=True, parser_class=PassThroughParser)

    run_parser = subparsers.add_parser("run", help="Run a package script in every workspace under packages/")
    run_parser.add_argument("--parallel", "-p", action="store_true", help="Start every script at once")
    run_parser.add_argument("--silent", "-s", action="store_true", help="Don't announce each script start")
    run_parser.add_argument("--order", "-o", default=None, help="Comma-separated short names to run first")
    run_parser.add_argument("--exclude", "-e", default=None, help="Comma-separated short names to skip")
    run_parser.add_argument(
        "--jobs", "-j", type=positive_int, default=None, help="Maximum concurrent scripts with --parallel"
    )
    run_parser.add_argument("command", help="Package script to run")
    run_parser.add_argument("args", nargs=argparse.REMAINDER, help="Arguments passed through to the script")

    generate_parser = subparsers.add_parser("generate", help="Regenerate shared configuration")
    generate_parser.add_argument("target", choices=["tsconfig"], help="File to regenerate")

    return parser


def run_command(args: argparse.Namespace, config: WorkspaceConfig, stderr: Console) -> int:
    options = RunOptions(
        parallel=args.parallel, silent=args.silent, order=args.order, exclude=args.exclude, jobs=args.jobs
    )
    runner = TaskRunner(config, options, stderr=stderr)
    summary = asyncio.run(runner.run(args.command, *args.args))
    if summary.ok:
        return 0
    stderr.print(f"\n{len(summary.failures)} task(s) failed:", style="red", markup=False)
    for result in summary.failures:
        timing = f" ({result.elapsed:.1f}s)" if result.elapsed is not None else ""
        stderr.print(f"  ✗ {result.workspace}{timing}: {result.error}", style="red", markup=False)
    return 1


def generate_command(args: argparse.Namespace, config: WorkspaceConfig, stderr: Console) -> int:
    rewrite_references(config, stderr)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = create_cli_parser()
    args = parser.parse_args(argv)
    stderr = make_console(stderr=True)

    try:
        config = WorkspaceConfig.from_settings(log_level=args.log_level)
        setup_logging(config.log_level)
        if args.tool == "run":
            return run_command(args, config, stderr)
        return generate_command(args, config, stderr)
    except KeyboardInterrupt:
        return 130
    except MonorepoScriptsException as e:
        logger.debug("Fatal error", exc_info=e)
        stderr.print(f"Error: {e}", style="bold red", markup=False)
        return 1


if __name__ == "__main__":
    sys.exit(main())
