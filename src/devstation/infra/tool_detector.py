"""Infrastructure: tool detection and install guidance.

This module is responsible for locating provisioned executables on the
PATH and pointing at the devstation task that installs each one when it
is missing.

Rules
-----
* Detection via :func:`shutil.which` (or a runner's ``which``) only — no
  subprocess.
* No automatic installation.
* No ``print()`` — callers handle user-facing output.
"""

from __future__ import annotations

import shutil
from pathlib import Path

from devstation.core.models import ToolStatus
from devstation.core.protocols import CommandRunner
from devstation.exceptions import ToolNotFoundError

# ---------------------------------------------------------------------------
# Install guidance
# ---------------------------------------------------------------------------

TOOL_HINTS: dict[str, str] = {
    "node": "devstation nodejs",
    "npm": "devstation nodejs",
    "java": "devstation java",
    "go": "devstation golang",
    "rustc": "devstation rust",
    "docker": "devstation docker",
    "code-server": "devstation codeserver",
    "claude": "devstation claudecode",
    "codex": "devstation codex",
    "gemini": "devstation gemini",
    "uvx": "devstation mcp",
    "pipx": "devstation mcp",
    "yq": "devstation init",
    "vncviewer": "sudo apt-get install tigervnc-viewer",
    "code": "https://code.visualstudio.com/download",
    "ssh": "sudo apt-get install openssh-client",
}
"""Executable name → how to get it."""


def install_hint(name: str) -> str:
    return TOOL_HINTS.get(name, f"install {name} and make sure it is on PATH")


# ---------------------------------------------------------------------------
# Detection logic
# ---------------------------------------------------------------------------

def detect_tool(name: str, runner: CommandRunner | None = None) -> ToolStatus:
    """Probe PATH for *name*.

    Returns a :class:`ToolStatus` regardless of whether the tool is
    present — the caller decides whether to abort or merely warn.  When
    *runner* is given its PATH is searched, which includes directories
    prepended earlier in the same run.
    """
    if runner is not None:
        found = runner.which(name)
    else:
        located = shutil.which(name)
        found = Path(located) if located is not None else None

    return ToolStatus(
        name=name,
        found=found is not None,
        path=found,
        install_hint=install_hint(name),
    )


def require_tool(
    name: str,
    runner: CommandRunner | None = None,
    *,
    hint: str | None = None,
) -> Path:
    """Locate *name* or raise :class:`ToolNotFoundError`."""
    status = detect_tool(name, runner)
    if not status.found or status.path is None:
        raise ToolNotFoundError(
            f"{name} is not installed or not on PATH.",
            hint=hint or f"Install it with:\n    {status.install_hint}",
        )
    return status.path
