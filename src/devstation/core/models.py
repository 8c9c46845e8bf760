"""Domain models for devstation.

All models are **frozen** dataclasses — immutable value objects with no
behaviour beyond data access.  They carry zero I/O and zero dependencies
on external packages.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


# ---------------------------------------------------------------------------
# Command execution
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class CommandResult:
    """Outcome of one external command."""

    args: tuple[str, ...]
    """The argv actually executed (including any ``sudo`` prefix)."""

    returncode: int
    """Process exit status.  ``0`` in dry-run mode."""

    stdout: str = ""
    """Captured standard output, or ``""`` when not captured."""

    stderr: str = ""
    """Captured standard error, or ``""`` when not captured."""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def first_line(self) -> str:
        """First non-empty line of stdout, stripped."""
        for line in self.stdout.splitlines():
            if line.strip():
                return line.strip()
        return ""


# ---------------------------------------------------------------------------
# Tool detection
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class ToolStatus:
    """Result of probing PATH for one executable.

    Attributes
    ----------
    name : str
        Executable name (e.g. ``"docker"``).
    found : bool
        Whether the executable was located on PATH.
    path : Path | None
        Absolute path to the executable, or ``None``.
    install_hint : str
        The devstation command that provisions the tool.
    """

    name: str
    found: bool
    path: Path | None
    install_hint: str


# ---------------------------------------------------------------------------
# MCP servers
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class McpServer:
    """One Model Context Protocol server registered with an AI assistant."""

    name: str
    """Registration name (e.g. ``"context7"``)."""

    command: tuple[str, ...]
    """Launcher argv; the first element is ``uvx`` or ``npx``."""

    @property
    def launcher(self) -> str:
        return self.command[0]


# ---------------------------------------------------------------------------
# Managed shell-profile block
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class ManagedBlock:
    """A marker-delimited block of lines owned by devstation.

    The block is replaced wholesale on every run so that re-running a task
    never duplicates environment exports.
    """

    begin: str
    end: str
    body: tuple[str, ...]

    def render(self) -> str:
        return "\n".join((self.begin, *self.body, self.end)) + "\n"
