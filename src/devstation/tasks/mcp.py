"""``devstation mcp`` — uv plus the npm and Python MCP server packages."""

from __future__ import annotations

import logging

from devstation.exceptions import ToolNotFoundError
from devstation.tasks.assistants import require_npm
from devstation.tasks.base import Task, TaskContext, command_exists, done, run_installer_script, step
from devstation.tasks.pipx import resolve_pipx

logger = logging.getLogger(__name__)

UV_INSTALLER_URL = "https://astral.sh/uv/install.sh"

NPM_MCP_PACKAGES: tuple[str, ...] = (
    "@playwright/mcp@latest",
    "@modelcontextprotocol/server-sequential-thinking",
    "@modelcontextprotocol/server-memory",
    "@modelcontextprotocol/server-filesystem",
    "mcp-mongo-server",
    "@modelcontextprotocol/server-redis",
    "@upstash/context7-mcp",
    "@modelcontextprotocol/server-puppeteer",
    "firecrawl-mcp",
    "@agentdeskai/browser-tools-mcp@latest",
    "chrome-devtools-mcp@latest",
)

PYTHON_MCP_PACKAGES: tuple[str, ...] = (
    "mcp-server-time",
    "mcp-server-fetch",
    "mcp-server-sqlite",
    "mysql-mcp-server",
    "mcp-server-qdrant",
)


class McpTask(Task):
    name = "mcp"
    title = "MCP dependencies"
    summary = "uv/uvx and the npm and pipx MCP server packages"

    def run(self, ctx: TaskContext) -> None:
        self.install_uv(ctx)
        self.install_packages(ctx)

    def install_uv(self, ctx: TaskContext) -> None:
        step("Install uvx")
        if command_exists(ctx, "uvx"):
            logger.info("uvx already installed, skipping")
            return
        if not command_exists(ctx, "curl"):
            raise ToolNotFoundError(
                "curl is required to download the uv installer.",
                hint="sudo apt-get install -y curl",
            )

        logger.info("Installing uv with the official installer")
        run_installer_script(ctx, UV_INSTALLER_URL)
        ctx.runner.prepend_path(ctx.home / ".local" / "bin")
        done("uvx installed")

    def install_packages(self, ctx: TaskContext) -> None:
        step("Install MCP packages")
        require_npm(ctx)

        registry = ctx.settings.npm_registry
        for package in NPM_MCP_PACKAGES:
            logger.info("npm install %s", package)
            if not ctx.runner.run(
                ["npm", "install", "-g", package, f"--registry={registry}"],
                check=False,
            ).ok:
                logger.warning("install failed: %s", package)

        pipx = resolve_pipx(ctx, allow_override=True)
        logger.info("Using pipx command: %s", " ".join(pipx))
        for package in PYTHON_MCP_PACKAGES:
            logger.info("pipx install %s", package)
            if not ctx.runner.run([*pipx, "install", "--force", package], check=False).ok:
                logger.warning("install failed: %s", package)

        done("MCP dependencies installed")
