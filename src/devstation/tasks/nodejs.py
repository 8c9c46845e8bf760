"""``devstation nodejs`` — Node.js from the bundled archive, plus yarn and pnpm."""

from __future__ import annotations

import logging

from devstation.core.text_edits import managed_block
from devstation.exceptions import AssetNotFoundError
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

_LEGACY_NODE_LINES: tuple[str, ...] = (
    r"^# node environment \(managed by initializer\)$",
    r"^export NODE_HOME=",
    r"^export PATH=.*NODE_HOME",
)

NODE_BLOCK = managed_block(
    "node environment",
    [
        'export NODE_HOME="$HOME/.local/node"',
        'export PATH="$NODE_HOME/bin:$HOME/.local/bin:$HOME/.npm-global/bin:$PATH"',
    ],
)


class NodejsTask(Task):
    name = "nodejs"
    title = "Node.js environment"
    summary = "Node.js, npm mirror, yarn and pnpm"

    def run(self, ctx: TaskContext) -> None:
        step("Install Node.js")
        settings = ctx.settings
        dist = f"node-v{settings.node_version}-linux-x64"
        archive = settings.assets_dir / f"{dist}.tar.xz"
        install_base = ctx.home / ".local"
        target = install_base / dist
        node_link = install_base / "node"

        if not archive.is_file():
            raise AssetNotFoundError(
                f"Node.js archive not found: {archive}",
                hint=f"Place {archive.name} in {settings.assets_dir}.",
            )

        ctx.files.mkdir(install_base / "bin")
        if target.is_dir():
            logger.info("Node.js already extracted at %s, skipping", target)
        else:
            logger.info("Extracting Node.js into %s", install_base)
            ctx.files.extract(archive, install_base)

        ctx.files.symlink(target, node_link)
        write_managed_block(ctx, ctx.bashrc(), NODE_BLOCK, legacy=_LEGACY_NODE_LINES)

        ctx.runner.set_env("NODE_HOME", str(node_link))
        ctx.runner.prepend_path(
            node_link / "bin",
            ctx.home / ".local" / "bin",
            ctx.home / ".npm-global" / "bin",
        )
        if not command_exists(ctx, "node"):
            logger.error("node is not on PATH after installation")

        logger.info("node version: %s", tool_version(ctx, "node", "-v"))
        logger.info("npm version: %s", tool_version(ctx, "npm", "-v"))

        self.configure_registries(ctx)
        done("Node.js, npm, yarn and pnpm are ready; run 'source ~/.bashrc' to use them")

    def configure_registries(self, ctx: TaskContext) -> None:
        registry = ctx.settings.npm_registry
        run = ctx.runner.run

        logger.info("Setting the npm registry to %s", registry)
        if not run(["npm", "config", "set", "registry", registry, "--location=global"], check=False).ok:
            run(["npm", "config", "set", "registry", registry, "-g"], check=False)

        logger.info("Installing yarn and pnpm globally")
        if not run(["npm", "install", "-g", "yarn", "pnpm", f"--registry={registry}"], check=False).ok:
            logger.warning("yarn/pnpm install failed")

        if command_exists(ctx, "yarn"):
            if not run(["yarn", "config", "set", "npmRegistryServer", registry, "-H"], check=False).ok:
                run(["yarn", "config", "set", "registry", registry], check=False)
            logger.info("yarn version: %s", tool_version(ctx, "yarn", "-v"))
        else:
            logger.warning("yarn is not installed or not on PATH")

        if command_exists(ctx, "pnpm"):
            run(["pnpm", "config", "set", "registry", registry, "--global"], check=False)
            logger.info("pnpm version: %s", tool_version(ctx, "pnpm", "-v"))
        else:
            logger.warning("pnpm is not installed or not on PATH")
