"""``devstation claudecode`` — the Claude Code CLI and its relay endpoint."""

from __future__ import annotations

import logging

from devstation.core.credentials import first_non_empty
from devstation.core.text_edits import managed_block, shell_export
from devstation.tasks.assistants import register_mcp_servers, require_npm, resolve_api_key
from devstation.tasks.base import Task, TaskContext, command_exists, done, step, write_managed_block

logger = logging.getLogger(__name__)

NPM_PACKAGE = "@anthropic-ai/claude-code"


class ClaudeCodeTask(Task):
    name = "claudecode"
    title = "Claude Code"
    summary = "Claude Code CLI (optional: --api-key or CLAUDECODE_API_KEY)"

    def run(self, ctx: TaskContext) -> None:
        api_key = resolve_api_key(
            ctx,
            "CLAUDECODE_API_KEY",
            prompt="CLAUDECODE_API_KEY (Enter to skip):",
            required=False,
        )
        base_url = first_non_empty(
            ctx.base_url,
            ctx.environ.get("ANTHROPIC_BASE_URL"),
            ctx.settings.anthropic_base_url,
        )

        step(f"Install Claude Code ({NPM_PACKAGE})")
        require_npm(ctx)
        ctx.runner.run(["npm", "install", "-g", NPM_PACKAGE])
        if command_exists(ctx, "claude"):
            done("Claude Code installed")
        else:
            logger.warning("installed, but claude is not on PATH; check the npm global bin directory")

        step("Write Anthropic environment variables to ~/.bashrc")
        lines = [shell_export("ANTHROPIC_BASE_URL", base_url)]
        if api_key:
            lines.append(shell_export("ANTHROPIC_AUTH_TOKEN", api_key))
        block = managed_block("ANTHROPIC Environment Variables", lines)
        write_managed_block(ctx, ctx.bashrc(), block)
        done("~/.bashrc updated (new terminals pick it up)")

        register_mcp_servers(ctx, "claude")

        if not api_key:
            logger.warning(
                "no ANTHROPIC_AUTH_TOKEN written; re-run: devstation claudecode --api-key <key>"
            )
        logger.info("Start it in a project directory with: claude")
