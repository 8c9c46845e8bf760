"""pipx resolution shared by the ``mcp`` and ``cxx`` tasks."""

from __future__ import annotations

import logging
import shlex
from pathlib import Path

from devstation.core.text_edits import managed_block
from devstation.exceptions import ToolNotFoundError
from devstation.tasks.base import TaskContext, apt_install, apt_update, command_exists, write_managed_block

logger = logging.getLogger(__name__)

_LEGACY_PIPX_LINES: tuple[str, ...] = (
    r"^# pipx environment \(managed by initializer\)$",
    r"^export PIPX_HOME=",
    r"^export PIPX_BIN_DIR=",
    r"^export PATH=.*PIPX_BIN_DIR",
)


def pipx_dirs(ctx: TaskContext) -> tuple[Path, Path]:
    """Return ``(PIPX_HOME, PIPX_BIN_DIR)`` honouring the environment."""
    home = ctx.environ.get("PIPX_HOME") or str(ctx.home / ".local" / "pipx")
    bin_dir = ctx.environ.get("PIPX_BIN_DIR") or str(ctx.home / ".local" / "bin")
    return Path(home), Path(bin_dir)


def resolve_pipx(ctx: TaskContext, *, allow_override: bool = False) -> list[str]:
    """Return the pipx argv prefix, installing pipx through apt if needed.

    With *allow_override*, a ``PIPX_CMD`` environment variable (e.g.
    ``"python3 -m pipx"``) is used verbatim.

    Raises
    ------
    ToolNotFoundError
        If pipx is still unavailable after the apt attempt.
    """
    pipx_home, bin_dir = pipx_dirs(ctx)
    ctx.runner.set_env("PIPX_HOME", str(pipx_home))
    ctx.runner.set_env("PIPX_BIN_DIR", str(bin_dir))
    ctx.runner.prepend_path(bin_dir)

    override = ctx.environ.get("PIPX_CMD", "").strip() if allow_override else ""
    if override:
        return shlex.split(override)

    if not command_exists(ctx, "pipx"):
        logger.info("pipx not found, installing it with apt")
        apt_update(ctx)
        apt_install(ctx, "pipx")

    if not command_exists(ctx, "pipx") and not ctx.runner.dry_run:
        raise ToolNotFoundError(
            "pipx is not installed.",
            hint="sudo apt-get install -y pipx",
        )
    return ["pipx"]


def write_pipx_env(ctx: TaskContext) -> None:
    block = managed_block(
        "pipx environment",
        [
            'export PIPX_HOME="$HOME/.local/pipx"',
            'export PIPX_BIN_DIR="$HOME/.local/bin"',
            'export PATH="$PIPX_BIN_DIR:$PATH"',
        ],
    )
    write_managed_block(ctx, ctx.bashrc(), block, legacy=_LEGACY_PIPX_LINES)
