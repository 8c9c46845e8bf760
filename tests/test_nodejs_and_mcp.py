"""Tests for ``devstation nodejs`` and ``devstation mcp``."""

from __future__ import annotations

import io
import tarfile
from pathlib import Path

import pytest

from devstation.exceptions import AssetNotFoundError, ToolNotFoundError
from devstation.tasks.mcp import NPM_MCP_PACKAGES, PYTHON_MCP_PACKAGES, McpTask
from devstation.tasks.nodejs import NodejsTask

from conftest import FakeRunner


def _node_archive(settings) -> Path:
    """Write a tiny ``node-v<version>-linux-x64.tar.xz`` into assets/."""
    dist = f"node-v{settings.node_version}-linux-x64"
    archive = settings.assets_dir / f"{dist}.tar.xz"
    with tarfile.open(archive, "w:xz") as bundle:
        payload = b"#!/bin/sh\necho v22\n"
        info = tarfile.TarInfo(f"{dist}/bin/node")
        info.size = len(payload)
        info.mode = 0o755
        bundle.addfile(info, io.BytesIO(payload))
    return archive


# ---------------------------------------------------------------------------
# nodejs
# ---------------------------------------------------------------------------

class TestNodejs:
    def test_missing_archive(self, make_context) -> None:
        with pytest.raises(AssetNotFoundError, match="Node.js archive not found"):
            NodejsTask().run(make_context())

    def test_install(self, make_context, settings) -> None:
        _node_archive(settings)
        runner = FakeRunner(tools=["node", "npm", "yarn", "pnpm"])
        ctx = make_context(runner)
        NodejsTask().run(ctx)

        dist = ctx.home / ".local" / f"node-v{settings.node_version}-linux-x64"
        link = ctx.home / ".local" / "node"
        assert (dist / "bin" / "node").is_file()
        assert link.is_symlink()
        assert link.resolve() == dist.resolve()

        bashrc = (ctx.home / ".bashrc").read_text()
        assert 'export NODE_HOME="$HOME/.local/node"' in bashrc
        assert runner.env["NODE_HOME"] == str(link)
        assert runner.env["PATH"].startswith(str(link / "bin"))

        registry = settings.npm_registry
        assert runner.ran("npm", "config", "set", "registry", registry, "--location=global")
        assert runner.ran("npm", "install", "-g", "yarn", "pnpm", f"--registry={registry}")
        assert runner.ran("yarn", "config", "set", "npmRegistryServer", registry, "-H")
        assert runner.ran("pnpm", "config", "set", "registry", registry, "--global")

    def test_rerun_keeps_one_block(self, make_context, settings) -> None:
        _node_archive(settings)
        ctx = make_context(FakeRunner(tools=["node", "npm"]))
        NodejsTask().run(ctx)
        NodejsTask().run(ctx)
        assert (ctx.home / ".bashrc").read_text().count("export NODE_HOME=") == 1

    def test_registry_fallbacks(self, make_context, settings) -> None:
        _node_archive(settings)
        registry = settings.npm_registry
        runner = FakeRunner(
            tools=["yarn"],
            results={
                ("npm", "config", "set", "registry", registry, "--location=global"): 1,
                ("yarn", "config", "set", "npmRegistryServer"): 1,
            },
        )
        NodejsTask().run(make_context(runner))
        assert runner.ran("npm", "config", "set", "registry", registry, "-g")
        assert runner.ran("yarn", "config", "set", "registry", registry)
        assert not runner.ran("pnpm", "config")

    def test_legacy_exports_replaced(self, make_context, settings) -> None:
        _node_archive(settings)
        ctx = make_context()
        (ctx.home / ".bashrc").write_text('export NODE_HOME=/opt/node\nexport PATH="$NODE_HOME/bin:$PATH"\n')
        NodejsTask().run(ctx)
        text = (ctx.home / ".bashrc").read_text()
        assert "/opt/node" not in text
        assert text.count("NODE_HOME=") == 1


# ---------------------------------------------------------------------------
# mcp
# ---------------------------------------------------------------------------

class TestMcp:
    def test_uv_already_present(self, make_context) -> None:
        runner = FakeRunner(tools=["uvx", "npm", "pipx"])
        McpTask().run(make_context(runner))
        assert not runner.ran("sh")

    def test_uv_requires_curl(self, make_context) -> None:
        with pytest.raises(ToolNotFoundError, match="curl"):
            McpTask().install_uv(make_context())

    def test_uv_installed_in_dry_run(self, make_context) -> None:
        runner = FakeRunner(tools=["curl"], dry_run=True)
        ctx = make_context(runner)
        McpTask().install_uv(ctx)
        assert runner.commands[-1][0] == "sh"
        assert runner.env["PATH"].startswith(str(ctx.home / ".local" / "bin"))

    def test_packages(self, make_context, settings) -> None:
        runner = FakeRunner(tools=["uvx", "npm", "pipx"])
        McpTask().run(make_context(runner))
        for package in NPM_MCP_PACKAGES:
            assert runner.ran("npm", "install", "-g", package, f"--registry={settings.npm_registry}")
        for package in PYTHON_MCP_PACKAGES:
            assert runner.ran("pipx", "install", "--force", package)

    def test_failed_package_does_not_stop(self, make_context) -> None:
        runner = FakeRunner(
            tools=["uvx", "npm", "pipx"],
            results={("npm", "install", "-g", "firecrawl-mcp"): 1},
        )
        McpTask().run(make_context(runner))
        assert runner.ran("npm", "install", "-g", "chrome-devtools-mcp@latest")

    def test_pipx_override(self, make_context) -> None:
        runner = FakeRunner(tools=["uvx", "npm"])
        McpTask().run(make_context(runner, environ={"PIPX_CMD": "python3 -m pipx"}))
        assert runner.ran("python3", "-m", "pipx", "install", "--force", "mcp-server-time")

    def test_requires_npm(self, make_context) -> None:
        with pytest.raises(ToolNotFoundError, match="npm"):
            McpTask().run(make_context(FakeRunner(tools=["uvx"])))
