"""Shared plumbing for the installer tasks.

A task is a small object with a ``name``, a human ``title`` and a
``run(ctx)`` method.  Everything a task touches — settings, the command
runner, file access, the target user — arrives through
:class:`TaskContext`, which keeps every installer testable against a
recording runner and a temporary directory.
"""

from __future__ import annotations

import logging
import tempfile
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import ClassVar

from devstation.config import Settings
from devstation.core.models import ManagedBlock
from devstation.core.protocols import CommandRunner
from devstation.core.text_edits import remove_lines_matching, replace_managed_block
from devstation.exceptions import DownloadFailedError, ToolNotFoundError
from devstation.infra.files import SystemFiles

logger = logging.getLogger("devstation.tasks")

APT_GET: tuple[str, ...] = ("env", "DEBIAN_FRONTEND=noninteractive", "apt-get")
"""``sudo`` resets the environment, so the frontend is set through ``env``."""


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class TaskContext:
    """Everything one task run needs."""

    settings: Settings
    runner: CommandRunner
    files: SystemFiles
    username: str
    """Account the workstation is provisioned for."""

    home: Path
    """Home directory of :attr:`username`."""

    requested_user: str | None = None
    """Value of ``--user``, when given."""

    api_key: str | None = None
    base_url: str | None = None
    prompt_secret: Callable[[str], str | None] | None = None
    """Interactive secret prompt, or ``None`` when stdin is not a terminal."""

    environ: Mapping[str, str] = field(default_factory=dict)
    """Snapshot of the invoking environment (``OPENAI_API_KEY`` etc.)."""

    def bashrc(self) -> Path:
        return self.home / ".bashrc"

    def profile(self) -> Path:
        return self.home / ".profile"


class Task:
    """Base class for one installer."""

    name: ClassVar[str] = ""
    title: ClassVar[str] = ""
    summary: ClassVar[str] = ""
    """One-line description for the menu and ``help`` output."""

    def run(self, ctx: TaskContext) -> None:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r}>"


# ---------------------------------------------------------------------------
# Progress logging
# ---------------------------------------------------------------------------

def step(title: str) -> None:
    logger.info("==> %s", title)


def done(message: str) -> None:
    logger.info("[OK] %s", message)


# ---------------------------------------------------------------------------
# Command helpers
# ---------------------------------------------------------------------------

def command_exists(ctx: TaskContext, name: str) -> bool:
    return ctx.runner.which(name) is not None


def tool_version(ctx: TaskContext, *args: str) -> str:
    """Return the first output line of a ``--version`` style call.

    Falls back to ``"unknown"`` when the command fails or prints nothing.
    Some tools (``java -version``) print to stderr, which is consulted
    too.
    """
    result = ctx.runner.run(list(args), check=False, capture=True)
    if not result.ok:
        return "unknown"
    for stream in (result.stdout, result.stderr):
        for line in stream.splitlines():
            if line.strip():
                return line.strip()
    return "unknown"


def apt_update(ctx: TaskContext, *, check: bool = False) -> bool:
    result = ctx.runner.run([*APT_GET, "update", "-y"], sudo=True, check=check)
    if not result.ok:
        logger.warning("apt-get update may have failed")
    return result.ok


def apt_install(ctx: TaskContext, *packages: str, check: bool = False) -> bool:
    """Install *packages*; with ``check=False`` a failure only returns False."""
    result = ctx.runner.run(
        [*APT_GET, "install", "-y", *packages],
        sudo=True,
        check=check,
    )
    return result.ok


def package_installed(ctx: TaskContext, package: str) -> bool:
    return ctx.runner.run(["dpkg", "-s", package], check=False, capture=True).ok


def user_groups(ctx: TaskContext, username: str) -> set[str]:
    result = ctx.runner.run(["id", "-nG", username], check=False, capture=True)
    return set(result.stdout.split())


# ---------------------------------------------------------------------------
# Downloads
# ---------------------------------------------------------------------------

def download(ctx: TaskContext, url: str, destination: Path) -> bool:
    """Fetch *url* into *destination* with curl (or wget).

    Returns whether a non-empty file arrived.
    """
    if command_exists(ctx, "curl"):
        args = ["curl", "-fsSL", "--retry", "3", "--retry-delay", "1", "-o", str(destination), url]
    elif command_exists(ctx, "wget"):
        args = ["wget", "-q", "-O", str(destination), url]
    else:
        raise ToolNotFoundError(
            "curl or wget is required to download files.",
            hint="sudo apt-get install -y curl",
        )

    logger.info("Downloading %s", url)
    if not ctx.runner.run(args, check=False).ok:
        return False
    if ctx.runner.dry_run:
        return True
    return destination.is_file() and destination.stat().st_size > 0


def fetch_text(ctx: TaskContext, url: str) -> str:
    """Return the body of *url* (used for small version manifests)."""
    if command_exists(ctx, "curl"):
        args = ["curl", "-fsSL", url]
    elif command_exists(ctx, "wget"):
        args = ["wget", "-qO-", url]
    else:
        raise ToolNotFoundError(
            "curl or wget is required to query the network.",
            hint="sudo apt-get install -y curl",
        )
    result = ctx.runner.run(args, check=False, capture=True)
    if not result.ok:
        raise DownloadFailedError(f"could not fetch {url}")
    return result.stdout


def run_installer_script(ctx: TaskContext, url: str, *script_args: str) -> None:
    """Download a vendor ``install.sh`` to a temp file and run it with ``sh``.

    Raises
    ------
    DownloadFailedError
        If the script cannot be fetched.
    CommandFailedError
        If the script exits non-zero.
    """
    with tempfile.TemporaryDirectory(prefix="devstation-") as workdir:
        script = Path(workdir) / "install.sh"
        if not download(ctx, url, script):
            raise DownloadFailedError(
                f"could not download installer from {url}",
                hint="Check the network connection and retry.",
            )
        ctx.runner.run(["sh", str(script), *script_args])


# ---------------------------------------------------------------------------
# Shell profiles
# ---------------------------------------------------------------------------

def write_managed_block(
    ctx: TaskContext,
    path: Path,
    block: ManagedBlock,
    *,
    legacy: Iterable[str] = (),
    privileged: bool = False,
) -> bool:
    """Replace *block* in *path*, first dropping lines matching *legacy*.

    *legacy* patterns clean up exports written by older, unmarked
    versions of the same block.
    """
    patterns: Sequence[str] = tuple(legacy)

    def transform(text: str) -> str:
        if patterns:
            text = remove_lines_matching(text, patterns)
        return replace_managed_block(text, block)

    return ctx.files.edit(path, transform, privileged=privileged)
