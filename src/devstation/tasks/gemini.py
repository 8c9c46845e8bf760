"""``devstation gemini`` — the Gemini CLI with a relay base URL."""

from __future__ import annotations

import logging

from devstation.core.credentials import first_non_empty
from devstation.core.text_edits import managed_block, shell_export
from devstation.tasks.assistants import register_mcp_servers, require_npm, resolve_api_key
from devstation.tasks.base import Task, TaskContext, done, step, write_managed_block

logger = logging.getLogger(__name__)

NPM_PACKAGE = "@google/gemini-cli"

NEXT_STEPS: tuple[str, ...] = (
    "1) Open a new terminal, or run: source ~/.bashrc",
    "2) Start the CLI: gemini",
    "3) On the login screen choose: Use Gemini API Key",
    "4) Enable preview features: type /settings and set Preview Features to true",
    "5) Quit with /quit, start gemini again, type /model and pick Gemini 3 Pro",
)


class GeminiTask(Task):
    name = "gemini"
    title = "Gemini CLI"
    summary = "Gemini CLI (optional: --api-key or GEMINI_API_KEY, --base-url)"

    def run(self, ctx: TaskContext) -> None:
        api_key = resolve_api_key(
            ctx,
            "GEMINI_API_KEY",
            prompt="GEMINI_API_KEY (Enter to skip):",
            required=False,
        )
        base_url = first_non_empty(
            ctx.base_url,
            ctx.environ.get("GOOGLE_GEMINI_BASE_URL"),
            ctx.settings.gemini_base_url,
        )

        require_npm(ctx)
        self.install(ctx)
        self.write_shell_env(ctx, api_key, base_url)
        register_mcp_servers(ctx, "gemini", separator=False)

        step("Next steps (manual)")
        for line in NEXT_STEPS:
            logger.info(line)
        if not api_key:
            logger.warning(
                "GEMINI_API_KEY was not written; set it in ~/.bashrc or re-run: "
                "devstation gemini --api-key <key>"
            )

    def install(self, ctx: TaskContext) -> None:
        step(f"Install Gemini CLI ({NPM_PACKAGE})")
        ctx.runner.run(["npm", "install", "-g", NPM_PACKAGE])
        gemini = ctx.runner.which("gemini")
        if gemini is not None:
            done(f"Gemini CLI installed: {gemini}")
        else:
            logger.warning("installed, but gemini is not on PATH; check the npm global bin directory")

    def write_shell_env(self, ctx: TaskContext, api_key: str, base_url: str) -> None:
        step("Write Gemini environment variables to the shell profiles")
        lines = [shell_export("GOOGLE_GEMINI_BASE_URL", base_url)]
        if api_key:
            lines.append(shell_export("GEMINI_API_KEY", api_key))
        else:
            lines.append("export GEMINI_API_KEY=''  # set your API key here")
        block = managed_block("GEMINI Environment Variables", lines)

        write_managed_block(ctx, ctx.bashrc(), block)
        zshrc = ctx.home / ".zshrc"
        if zshrc.exists():
            write_managed_block(ctx, zshrc, block)
        done("Environment variables written; new terminals pick them up")
