"""``devstation doctor`` — environment diagnostics command.

Gathers system information and renders a Rich table summarising which
of the provisioned toolchains are present on this workstation.

This module lives in the CLI layer — it may import from ``infra``
and ``core``, and it renders via Rich.  No business logic resides
here; it purely collects and displays diagnostic data.
"""

from __future__ import annotations

import platform
import sys

from devstation.cli import exit_codes
from devstation.cli.console import console
from devstation.infra.shell import current_uid
from devstation.infra.tool_detector import detect_tool
from devstation.version import __version__

DOCTOR_TOOLS: tuple[str, ...] = (
    "node",
    "npm",
    "java",
    "go",
    "rustc",
    "docker",
    "code-server",
    "claude",
    "codex",
    "gemini",
    "uvx",
    "pipx",
    "yq",
    "vncviewer",
    "code",
)


# ---------------------------------------------------------------------------
# Diagnostic collectors
# ---------------------------------------------------------------------------

def _python_version_check() -> tuple[str, str, str]:
    """Return (label, value, status) for the Python version row."""
    version = platform.python_version()
    ok = sys.version_info[:2] >= (3, 10)
    status = "[green]OK[/green]" if ok else "[red]FAIL (>=3.10 required)[/red]"
    return "Python", version, status


def _os_check() -> tuple[str, str, str]:
    """Return (label, value, status) for the OS row."""
    system_raw = platform.system()
    release = platform.release()
    machine = platform.machine()
    value = f"{system_raw} {release} ({machine})"
    status = "[green]OK[/green]" if system_raw == "Linux" else "[yellow]WARN[/yellow]"
    return "OS", value, status


def _user_check() -> tuple[str, str, str]:
    if current_uid() == 0:
        return "User", "root", "[yellow]WARN (run as a regular user)[/yellow]"
    return "User", "regular", "[green]OK[/green]"


def _tool_check(name: str) -> tuple[str, str, str]:
    status_obj = detect_tool(name)
    if status_obj.found:
        path_str = str(status_obj.path) if status_obj.path else "found"
        return name, path_str, "[green]OK[/green]"
    return name, "not found", "[yellow]WARN[/yellow]"


def _devstation_version_check() -> tuple[str, str, str]:
    return "devstation", __version__, "[green]OK[/green]"


def collect_checks() -> list[tuple[str, str, str]]:
    checks = [
        _devstation_version_check(),
        _python_version_check(),
        _os_check(),
        _user_check(),
    ]
    checks.extend(_tool_check(name) for name in DOCTOR_TOOLS)
    return checks


def _status_plain(status: str) -> str:
    """Convert rich-markup status to plain text."""
    if "FAIL" in status:
        return "FAIL"
    if "WARN" in status:
        return "WARN"
    if "OK" in status:
        return "OK"
    return status


def _print_plain_doctor_table(checks: list[tuple[str, str, str]]) -> None:
    """Render doctor output without Rich."""
    print("\ndevstation doctor", file=sys.stderr)
    print("=" * 64, file=sys.stderr)
    print(f"{'Component':<12} {'Value':<40} {'Status':<8}", file=sys.stderr)
    print("-" * 64, file=sys.stderr)
    for label, value, status in checks:
        print(f"{label:<12} {value:<40} {_status_plain(status):<8}", file=sys.stderr)
    print(file=sys.stderr)


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------

def run_doctor() -> int:
    """Execute all diagnostic checks and render a summary table.

    Returns
    -------
    int
        :data:`exit_codes.SUCCESS` unless a check FAILs (missing tools
        only WARN), then :data:`exit_codes.GENERAL_ERROR`.
    """
    checks = collect_checks()
    has_failure = any("FAIL" in status for _, _, status in checks)
    missing = [label for label, _, status in checks if label in DOCTOR_TOOLS and "WARN" in status]

    rich_available = True
    try:
        from rich.table import Table
    except ModuleNotFoundError:
        rich_available = False

    if rich_available:
        table = Table(
            title="devstation doctor",
            show_header=True,
            header_style="bold cyan",
            border_style="dim",
        )
        table.add_column("Component", style="bold", min_width=12)
        table.add_column("Value", min_width=20)
        table.add_column("Status", justify="center", min_width=8)

        for label, value, status in checks:
            table.add_row(label, value, status)

        console.print()
        console.print(table)
        console.print()
    else:
        _print_plain_doctor_table(checks)

    if missing:
        console.print("Missing tools can be installed with:\n")
        for name in missing:
            console.print(f"  {name:<12} {detect_tool(name).install_hint}")
        console.print()

    if has_failure:
        console.print("[bold red]Some checks failed.[/bold red]")
        return exit_codes.GENERAL_ERROR

    console.print("[bold green]All checks passed.[/bold green]")
    return exit_codes.SUCCESS
