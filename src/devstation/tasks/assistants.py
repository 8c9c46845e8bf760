"""Helpers shared by the AI assistant installers (Claude Code, Codex, Gemini)."""

from __future__ import annotations

import logging
import os

from devstation.core.credentials import first_non_empty, sanitize_api_key
from devstation.core.models import McpServer
from devstation.core.text_edits import has_line, managed_block
from devstation.exceptions import ApiKeyError, append_nodejs_suggestion
from devstation.infra.tool_detector import require_tool
from devstation.tasks.base import TaskContext, command_exists, done, step, write_managed_block

logger = logging.getLogger(__name__)

MCP_SERVERS: tuple[McpServer, ...] = (
    McpServer("fetch", ("uvx", "mcp-server-fetch")),
    McpServer("context7", ("npx", "-y", "@upstash/context7-mcp")),
    McpServer(
        "sequential-thinking",
        ("npx", "-y", "@modelcontextprotocol/server-sequential-thinking"),
    ),
    McpServer("puppeteer", ("npx", "-y", "@modelcontextprotocol/server-puppeteer")),
    McpServer("playwright", ("npx", "-y", "@playwright/mcp@latest")),
    McpServer("chrome-devtools", ("npx", "-y", "chrome-devtools-mcp@latest")),
)


def require_npm(ctx: TaskContext) -> None:
    require_tool(
        "npm",
        ctx.runner,
        hint=append_nodejs_suggestion("npm was not found on PATH."),
    )


def register_mcp_servers(ctx: TaskContext, cli: str, *, separator: bool = True) -> int:
    """Register every catalog server with ``<cli> mcp add``.

    Servers whose launcher is missing are skipped with a warning, and a
    failed registration (usually "already exists") only warns.  Returns
    the number of servers registered.

    Parameters
    ----------
    separator:
        Put ``--`` between the server name and its command, as ``claude``
        and ``codex`` expect.  ``gemini`` takes the command directly.
    """
    step(f"Configure {cli} MCP servers")

    if not command_exists(ctx, cli):
        logger.warning("%s not found on PATH, skipping MCP configuration", cli)
        return 0

    missing: set[str] = set()
    registered = 0
    for server in MCP_SERVERS:
        if not command_exists(ctx, server.launcher):
            if server.launcher not in missing:
                logger.warning(
                    "%s not found, skipping servers launched with it (run: devstation mcp)",
                    server.launcher,
                )
                missing.add(server.launcher)
            continue

        args = [cli, "mcp", "add", server.name]
        if separator:
            args.append("--")
        args.extend(server.command)
        if ctx.runner.run(args, check=False).ok:
            registered += 1
        else:
            logger.warning("could not register MCP server %s (it may already exist)", server.name)

    done("MCP server registration finished")
    return registered


def resolve_api_key(
    ctx: TaskContext,
    env_var: str,
    *,
    prompt: str,
    required: bool,
) -> str:
    """Return the API key from ``--api-key``, then *env_var*, then a prompt.

    Raises
    ------
    ApiKeyError
        If *required* and no key was supplied, or the key contains
        control characters.
    """
    candidate = first_non_empty(ctx.api_key, ctx.environ.get(env_var))
    if not candidate and ctx.prompt_secret is not None:
        candidate = first_non_empty(ctx.prompt_secret(prompt))

    if not candidate:
        if required:
            raise ApiKeyError(
                f"{env_var} was not provided.",
                hint=f"Set the {env_var} environment variable or pass --api-key.",
            )
        return ""
    return sanitize_api_key(candidate, name=env_var)


def ensure_npm_global_prefix_writable(ctx: TaskContext) -> None:
    """Switch npm to a per-user prefix when the global one is not writable."""
    prefix = ctx.runner.run(["npm", "prefix", "-g"], check=False, capture=True).first_line
    if not prefix:
        logger.warning("could not determine the npm global prefix, skipping the check")
        return
    if os.access(prefix, os.W_OK):
        return

    user_prefix = ctx.home / ".npm-global"
    step("Configure a per-user npm global prefix")
    logger.info("npm prefix %s is not writable, switching to %s", prefix, user_prefix)

    ctx.files.mkdir(user_prefix / "bin")
    if not ctx.runner.run(
        ["npm", "config", "set", "prefix", str(user_prefix), "--location=user"],
        check=False,
    ).ok:
        ctx.runner.run(["npm", "config", "set", "prefix", str(user_prefix)], check=False)

    bashrc = ctx.bashrc()
    if not has_line(ctx.files.read_text(bashrc), r"\.npm-global/bin"):
        block = managed_block("npm global bin", ['export PATH="$HOME/.npm-global/bin:$PATH"'])
        write_managed_block(ctx, bashrc, block)
        logger.info("Added ~/.npm-global/bin to ~/.bashrc")

    ctx.runner.prepend_path(user_prefix / "bin")
