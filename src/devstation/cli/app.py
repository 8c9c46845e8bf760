"""CLI application entry point and task routing for devstation.

This module is the **sole error boundary** for the ``devstation``
command.  It catches :class:`~devstation.exceptions.DevstationError`,
``KeyboardInterrupt``, and any unexpected ``Exception``, rendering
user-friendly messages via Rich and returning well-defined exit codes.

Architecture notes
------------------
* No installer logic lives here — all work is delegated to the task,
  infrastructure and core layers.
* This module is the only place that translates between the domain world
  and the OS process exit code.
"""

from __future__ import annotations

import argparse
import getpass
import logging
import os
import sys
from collections.abc import Sequence

from devstation.cli import exit_codes
from devstation.cli.console import console, print_error
from devstation.config import Settings
from devstation.exceptions import DevstationError, PrivilegeError
from devstation.infra.files import SystemFiles
from devstation.infra.shell import ShellRunner, current_uid
from devstation.logging import configure_logging
from devstation.tasks import TASKS, Task, TaskContext, get_task
from devstation.version import __version__

logger = logging.getLogger(__name__)

HELP_ALIASES = frozenset({"help", "-h", "--help"})


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------

def _task_listing() -> str:
    width = max(len(task.name) for task in TASKS)
    return "\n".join(f"  {task.name:<{width}}  {task.summary or task.title}" for task in TASKS)


def _build_parser() -> argparse.ArgumentParser:
    """Construct the top-level argument parser.

    * ``devstation``          — interactive task menu
    * ``devstation <task>``   — run one installer
    * ``devstation doctor``   — environment diagnostics
    * ``devstation help``     — usage and the task list
    """
    parser = argparse.ArgumentParser(
        prog="devstation",
        description="Provision a development workstation.",
        epilog="tasks:\n" + _task_listing() + "\n\nRun without a task for an interactive menu.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "task",
        nargs="?",
        default=None,
        help="Task to run, 'doctor' for diagnostics, or 'help'.",
    )
    parser.add_argument("--api-key", default=None, help="API key for the AI assistant tasks.")
    parser.add_argument("--base-url", default=None, help="Override the assistant's API base URL.")
    parser.add_argument("--user", default=None, help="Target account for 'init'.")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log the commands instead of running them.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show every executed command.",
    )
    return parser


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------

def _interactive() -> bool:
    return sys.stdin is not None and sys.stdin.isatty()


def _build_context(args: argparse.Namespace, settings: Settings) -> TaskContext:
    from devstation.cli.menu import prompt_secret

    runner = ShellRunner(dry_run=settings.dry_run)
    return TaskContext(
        settings=settings,
        runner=runner,
        files=SystemFiles(runner),
        username=getpass.getuser(),
        home=settings.home,
        requested_user=args.user,
        api_key=args.api_key,
        base_url=args.base_url,
        prompt_secret=prompt_secret if _interactive() else None,
        environ=dict(os.environ),
    )


# ---------------------------------------------------------------------------
# Command dispatch
# ---------------------------------------------------------------------------

def _handle_doctor() -> int:
    """Dispatch the ``doctor`` diagnostics command."""
    from devstation.cli.doctor import run_doctor

    return run_doctor()


def _run_task(task: Task, ctx: TaskContext) -> int:
    console.print(f"\n[bold]{task.title}[/bold]\n")
    task.run(ctx)
    console.print(f"\n[bold green]{task.name} finished.[/bold green]")
    return exit_codes.SUCCESS


def _run_menu(ctx: TaskContext) -> int:
    """Loop over the task menu until Quit.

    A failing task is reported and the menu is shown again.
    """
    from devstation.cli.menu import QUIT, prompt_task_selection

    while True:
        choice = prompt_task_selection(TASKS)
        if choice == QUIT:
            return exit_codes.SUCCESS
        try:
            _run_task(get_task(choice), ctx)
        except DevstationError as exc:
            print_error(str(exc), exc.hint)


def _refuse_root() -> None:
    if current_uid() == 0:
        raise PrivilegeError(
            "Do not run devstation as root.",
            hint="Run it as your regular user; privileged steps use sudo.",
        )


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------

def main(argv: Sequence[str] | None = None) -> int:
    """Run the devstation CLI.

    Parameters
    ----------
    argv:
        Explicit argument list.  When ``None`` (default), ``sys.argv[1:]``
        is used.

    Returns
    -------
    int
        OS process exit code.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    target: str | None = args.task
    if target is not None and target.lower() in HELP_ALIASES:
        parser.print_help()
        return exit_codes.SUCCESS

    if target is not None and target.lower() == "doctor":
        return _handle_doctor()

    task = get_task(target) if target is not None else None
    _refuse_root()

    settings = Settings.from_env()
    if args.dry_run:
        settings = settings.with_overrides(dry_run=True)
    ctx = _build_context(args, settings)

    if task is None:
        return _run_menu(ctx)
    return _run_task(task, ctx)


# ---------------------------------------------------------------------------
# Script-level error boundary
# ---------------------------------------------------------------------------

def run_guarded(entry: object, argv: Sequence[str] | None = None) -> int:
    """Call ``entry(argv)`` and map every outcome to an exit code."""
    try:
        return entry(argv)  # type: ignore[operator]
    except DevstationError as exc:
        print_error(str(exc), exc.hint)
        return exit_codes.GENERAL_ERROR
    except KeyboardInterrupt:
        console.print("\n[yellow]Aborted by user.[/yellow]")
        return exit_codes.KEYBOARD_INTERRUPT
    except Exception as exc:  # noqa: BLE001
        logger.debug("unexpected error", exc_info=True)
        console.print(
            "[bold red]Unexpected error.[/bold red] "
            "Please report this issue.\n"
            f"  {type(exc).__name__}: {exc}"
        )
        return exit_codes.UNEXPECTED_ERROR


def cli() -> None:
    """Top-level error boundary invoked by the console-script entry point.

    This function wraps :func:`main` and guarantees the process never
    exits with a raw stack trace during normal usage.
    """
    sys.exit(run_guarded(main))
