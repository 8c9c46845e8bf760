"""``devstation-kvm`` — drive the KVM-in-Docker VM."""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence
from pathlib import Path

from devstation.cli import exit_codes
from devstation.cli.app import run_guarded
from devstation.cli.console import console
from devstation.config import Settings
from devstation.infra.shell import ShellRunner
from devstation.kvm import COMMANDS, KvmController
from devstation.logging import configure_logging
from devstation.version import __version__

USAGE = """\
Usage: devstation-kvm <start|stop|status|shell|logs|vnc|ssh|vscode>
  logs: passes extra args to docker compose logs
  ssh:  devstation-kvm ssh [user] [extra ssh args...]
  vscode: devstation-kvm vscode [user] [host-alias] [remote-dir]
Or run without arguments for an interactive menu."""


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="devstation-kvm",
        description="Start, stop and connect to the KVM ubuntu VM.",
        epilog=USAGE,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument("--kvm-dir", type=Path, default=None, help="Directory holding docker-compose.yml.")
    parser.add_argument("--dry-run", action="store_true", help="Log the commands instead of running them.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show every executed command.")
    parser.add_argument("command", nargs="?", default=None, help="VM command.")
    parser.add_argument("args", nargs=argparse.REMAINDER, help="Arguments for the command.")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run one VM command, or prompt for one when none is given."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    command: str | None = args.command
    if command is None:
        from devstation.cli.menu import QUIT, prompt_kvm_command

        command = prompt_kvm_command(COMMANDS)
        if command == QUIT:
            return exit_codes.SUCCESS

    if command not in COMMANDS:
        console.print(USAGE, markup=False)
        return exit_codes.GENERAL_ERROR

    settings = Settings.from_env()
    if args.dry_run:
        settings = settings.with_overrides(dry_run=True)
    kvm_dir = args.kvm_dir if args.kvm_dir is not None else settings.kvm_dir

    controller = KvmController(
        ShellRunner(dry_run=settings.dry_run),
        kvm_dir,
        ssh_config=settings.home / ".ssh" / "config",
        default_user=settings.vm_user,
    )
    return controller.dispatch(command, list(args.args))


def cli() -> None:
    """Console-script entry point; shares the ``devstation`` error boundary."""
    sys.exit(run_guarded(main))
