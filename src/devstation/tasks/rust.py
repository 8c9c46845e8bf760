"""``devstation rust`` — Rust via rustup."""

from __future__ import annotations

import logging

from devstation.core.text_edits import managed_block
from devstation.exceptions import EnvironmentCheckError
from devstation.infra.tool_detector import require_tool
from devstation.tasks.base import (
    APT_GET,
    Task,
    TaskContext,
    apt_install,
    apt_update,
    command_exists,
    done,
    run_installer_script,
    step,
    tool_version,
    write_managed_block,
)

logger = logging.getLogger(__name__)

RUSTUP_URL = "https://sh.rustup.rs"

RUST_BLOCK = managed_block(
    "rust environment",
    [
        'if [ -f "$HOME/.cargo/env" ]; then',
        '    . "$HOME/.cargo/env"',
        "fi",
    ],
    style="slash",
)


class RustTask(Task):
    name = "rust"
    title = "Rust development environment (rustup)"
    summary = "rustc, cargo and rustup"

    def run(self, ctx: TaskContext) -> None:
        step("Update the system (apt update && apt upgrade)")
        apt_update(ctx)
        if not ctx.runner.run([*APT_GET, "upgrade", "-y"], sudo=True, check=False).ok:
            logger.warning("apt-get upgrade may have failed (it can be handled later)")

        self.install(ctx)

        step("Write the Rust environment to ~/.profile")
        write_managed_block(ctx, ctx.profile(), RUST_BLOCK)
        done("~/.profile updated; run 'source ~/.profile' to use it in this terminal")

        ctx.runner.prepend_path(ctx.home / ".cargo" / "bin")
        if not ctx.runner.dry_run:
            require_tool("rustc", ctx.runner, hint="Run 'source ~/.profile' or log in again.")

        step("Verify Rust")
        for tool in ("rustc", "cargo", "rustup"):
            logger.info("%s: %s", tool, tool_version(ctx, tool, "--version"))
        done("Rust installed")

    def install(self, ctx: TaskContext) -> None:
        step("Install Rust (rustup)")
        if command_exists(ctx, "rustup") and command_exists(ctx, "rustc"):
            logger.info("Rust is already installed")
            return

        if command_exists(ctx, "curl"):
            logger.info("curl: %s", tool_version(ctx, "curl", "--version"))
        else:
            apt_install(ctx, "curl", "ca-certificates", check=True)

        logger.info("Running the rustup installer (default stable toolchain)")
        run_installer_script(ctx, RUSTUP_URL, "-y")

        cargo_env = ctx.home / ".cargo" / "env"
        if not cargo_env.is_file() and not ctx.runner.dry_run:
            raise EnvironmentCheckError(
                f"{cargo_env} not found, the Rust install may have failed",
            )
