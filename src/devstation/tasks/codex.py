"""``devstation codex`` — the OpenAI Codex CLI wired to the relay provider.

``~/.codex`` is recreated from scratch on every run: ``auth.json`` holds
the key and ``config.toml`` the provider definition.  The key is also
exported from a managed ``~/.bashrc`` block.
"""

from __future__ import annotations

import json
import logging

from devstation.core.credentials import first_non_empty
from devstation.core.text_edits import managed_block, shell_export
from devstation.exceptions import ToolNotFoundError, append_nodejs_suggestion
from devstation.infra.tool_detector import require_tool
from devstation.tasks.assistants import (
    ensure_npm_global_prefix_writable,
    register_mcp_servers,
    resolve_api_key,
)
from devstation.tasks.base import (
    Task,
    TaskContext,
    command_exists,
    done,
    step,
    tool_version,
    write_managed_block,
)

logger = logging.getLogger(__name__)

NPM_PACKAGE = "@openai/codex"
PROVIDER = "aicodemirror"


def render_auth_json(api_key: str) -> str:
    return json.dumps({"OPENAI_API_KEY": api_key}, indent=2) + "\n"


def render_config_toml(model: str, base_url: str) -> str:
    """Render ``config.toml``; JSON string quoting is valid TOML."""
    return (
        f"model_provider = {json.dumps(PROVIDER)}\n"
        f"model = {json.dumps(model)}\n"
        'model_reasoning_effort = "high"\n'
        "disable_response_storage = true\n"
        'preferred_auth_method = "apikey"\n'
        "\n"
        f"[model_providers.{PROVIDER}]\n"
        f"name = {json.dumps(PROVIDER)}\n"
        f"base_url = {json.dumps(base_url)}\n"
        'wire_api = "responses"\n'
    )


class CodexTask(Task):
    name = "codex"
    title = "Codex"
    summary = "OpenAI Codex CLI (requires --api-key or OPENAI_API_KEY)"

    def run(self, ctx: TaskContext) -> None:
        self.install(ctx)

        api_key = resolve_api_key(
            ctx,
            "OPENAI_API_KEY",
            prompt="OPENAI_API_KEY (written to ~/.codex/auth.json):",
            required=True,
        )
        base_url = first_non_empty(ctx.base_url, ctx.settings.openai_base_url)

        self.write_config(ctx, api_key, base_url)
        self.write_shell_env(ctx, api_key, base_url)
        self.verify(ctx)
        register_mcp_servers(ctx, "codex")

        logger.info("Start it in a project directory with: codex")

    def install(self, ctx: TaskContext) -> None:
        step(f"Install Codex ({NPM_PACKAGE})")
        if command_exists(ctx, "codex"):
            logger.info("codex already installed (%s), updating", tool_version(ctx, "codex", "-V"))

        if command_exists(ctx, "npm"):
            ensure_npm_global_prefix_writable(ctx)
            ctx.runner.run(["npm", "install", "-g", NPM_PACKAGE])
        elif command_exists(ctx, "brew"):
            logger.info("npm not found, installing codex with brew")
            ctx.runner.run(["brew", "install", "codex"])
        else:
            raise ToolNotFoundError(
                "npm or brew is required to install codex.",
                hint=append_nodejs_suggestion("Neither npm nor brew was found on PATH."),
            )

    def write_config(self, ctx: TaskContext, api_key: str, base_url: str) -> None:
        step("Write the Codex configuration (~/.codex)")
        codex_dir = ctx.home / ".codex"
        ctx.files.remove(codex_dir)
        ctx.files.mkdir(codex_dir, mode=0o700)
        ctx.files.write_text(codex_dir / "auth.json", render_auth_json(api_key), mode=0o600)
        ctx.files.write_text(
            codex_dir / "config.toml",
            render_config_toml(ctx.settings.codex_model, base_url),
            mode=0o600,
        )
        done(f"Wrote {codex_dir / 'auth.json'} and {codex_dir / 'config.toml'}")

    def write_shell_env(self, ctx: TaskContext, api_key: str, base_url: str) -> None:
        step("Write OpenAI environment variables to ~/.bashrc")
        block = managed_block(
            "OPENAI Environment Variables",
            [
                shell_export("OPENAI_BASE_URL", base_url),
                shell_export("OPENAI_API_KEY", api_key),
            ],
        )
        write_managed_block(ctx, ctx.bashrc(), block)
        done("~/.bashrc updated (new terminals pick it up)")

    def verify(self, ctx: TaskContext) -> None:
        step("Verify Codex")
        if ctx.runner.dry_run:
            return
        require_tool(
            "codex",
            ctx.runner,
            hint="Make sure the npm global bin directory is on PATH, or open a new terminal.",
        )
        ctx.runner.run(["codex", "-V"])
        done("Codex is ready; open a new terminal so PATH changes apply")
