"""Tests for the AI assistant installers: claudecode, codex and gemini."""

from __future__ import annotations

import json
import stat

import pytest

from devstation.exceptions import ApiKeyError, ToolNotFoundError
from devstation.tasks.claudecode import ClaudeCodeTask
from devstation.tasks.codex import CodexTask, render_auth_json, render_config_toml
from devstation.tasks.gemini import GeminiTask

from conftest import FakeRunner

ASSISTANT_TOOLS = ("npm", "uvx", "npx")


# ---------------------------------------------------------------------------
# claudecode
# ---------------------------------------------------------------------------

class TestClaudeCode:
    def test_with_key(self, make_context, settings) -> None:
        runner = FakeRunner(tools=[*ASSISTANT_TOOLS, "claude"])
        ctx = make_context(runner, api_key="sk-ant-123")
        ClaudeCodeTask().run(ctx)

        assert runner.ran("npm", "install", "-g", "@anthropic-ai/claude-code")
        bashrc = (ctx.home / ".bashrc").read_text()
        assert f"export ANTHROPIC_BASE_URL={settings.anthropic_base_url}" in bashrc
        assert "export ANTHROPIC_AUTH_TOKEN=sk-ant-123" in bashrc
        assert runner.ran("claude", "mcp", "add", "context7", "--", "npx")

    def test_without_key(self, make_context) -> None:
        ctx = make_context(FakeRunner(tools=ASSISTANT_TOOLS))
        ClaudeCodeTask().run(ctx)
        assert "ANTHROPIC_AUTH_TOKEN" not in (ctx.home / ".bashrc").read_text()

    def test_base_url_precedence(self, make_context) -> None:
        ctx = make_context(
            FakeRunner(tools=ASSISTANT_TOOLS),
            base_url="https://flag.example",
            environ={"ANTHROPIC_BASE_URL": "https://env.example"},
        )
        ClaudeCodeTask().run(ctx)
        assert "https://flag.example" in (ctx.home / ".bashrc").read_text()

    def test_rerun_replaces_block(self, make_context) -> None:
        runner = FakeRunner(tools=ASSISTANT_TOOLS)
        ClaudeCodeTask().run(make_context(runner, api_key="old-key"))
        ctx = make_context(runner, api_key="new-key")
        ClaudeCodeTask().run(ctx)
        bashrc = (ctx.home / ".bashrc").read_text()
        assert "old-key" not in bashrc
        assert bashrc.count("ANTHROPIC_AUTH_TOKEN") == 1

    def test_requires_npm(self, make_context) -> None:
        with pytest.raises(ToolNotFoundError):
            ClaudeCodeTask().run(make_context())


# ---------------------------------------------------------------------------
# codex
# ---------------------------------------------------------------------------

class TestCodexRendering:
    def test_auth_json(self) -> None:
        assert json.loads(render_auth_json('sk-"q"')) == {"OPENAI_API_KEY": 'sk-"q"'}

    def test_config_toml(self) -> None:
        text = render_config_toml("gpt-5.2", "https://relay.example/codex")
        assert 'model_provider = "aicodemirror"' in text
        assert 'model = "gpt-5.2"' in text
        assert "[model_providers.aicodemirror]" in text
        assert 'base_url = "https://relay.example/codex"' in text
        assert 'wire_api = "responses"' in text


class TestCodex:
    def test_full_run(self, make_context, settings) -> None:
        runner = FakeRunner(tools=[*ASSISTANT_TOOLS, "codex"])
        ctx = make_context(runner, environ={"OPENAI_API_KEY": "sk-openai"})
        CodexTask().run(ctx)

        codex_dir = ctx.home / ".codex"
        assert json.loads((codex_dir / "auth.json").read_text()) == {"OPENAI_API_KEY": "sk-openai"}
        assert stat.S_IMODE((codex_dir / "auth.json").stat().st_mode) == 0o600
        assert stat.S_IMODE(codex_dir.stat().st_mode) == 0o700
        assert settings.openai_base_url in (codex_dir / "config.toml").read_text()

        bashrc = (ctx.home / ".bashrc").read_text()
        assert "export OPENAI_API_KEY=sk-openai" in bashrc
        assert runner.ran("npm", "install", "-g", "@openai/codex")
        assert runner.ran("codex", "-V")
        assert runner.ran("codex", "mcp", "add", "fetch", "--", "uvx", "mcp-server-fetch")

    def test_config_recreated(self, make_context) -> None:
        ctx = make_context(FakeRunner(tools=[*ASSISTANT_TOOLS, "codex"]), api_key="sk-1")
        stale = ctx.home / ".codex" / "history.jsonl"
        stale.parent.mkdir()
        stale.write_text("{}\n")
        CodexTask().run(ctx)
        assert not stale.exists()

    def test_base_url_flag(self, make_context) -> None:
        ctx = make_context(
            FakeRunner(tools=[*ASSISTANT_TOOLS, "codex"]),
            api_key="sk-1",
            base_url="https://relay.example",
        )
        CodexTask().run(ctx)
        assert 'base_url = "https://relay.example"' in (ctx.home / ".codex" / "config.toml").read_text()

    def test_key_required(self, make_context) -> None:
        with pytest.raises(ApiKeyError, match="OPENAI_API_KEY"):
            CodexTask().run(make_context(FakeRunner(tools=ASSISTANT_TOOLS)))

    def test_brew_fallback(self, make_context) -> None:
        runner = FakeRunner(tools=["brew", "codex"])
        CodexTask().run(make_context(runner, api_key="sk-1"))
        assert runner.ran("brew", "install", "codex")

    def test_no_installer(self, make_context) -> None:
        with pytest.raises(ToolNotFoundError, match="npm or brew") as exc_info:
            CodexTask().run(make_context(api_key="sk-1"))
        assert "devstation nodejs" in (exc_info.value.hint or "")

    def test_codex_missing_after_install(self, make_context) -> None:
        with pytest.raises(ToolNotFoundError, match="codex"):
            CodexTask().run(make_context(FakeRunner(tools=["npm"]), api_key="sk-1"))

    def test_dry_run_skips_verification(self, make_context) -> None:
        runner = FakeRunner(tools=["npm"], dry_run=True)
        CodexTask().run(make_context(runner, api_key="sk-1"))
        assert not runner.ran("codex", "-V")


# ---------------------------------------------------------------------------
# gemini
# ---------------------------------------------------------------------------

class TestGemini:
    def test_with_key(self, make_context, settings) -> None:
        runner = FakeRunner(tools=[*ASSISTANT_TOOLS, "gemini"])
        ctx = make_context(runner, api_key="g-key")
        GeminiTask().run(ctx)

        bashrc = (ctx.home / ".bashrc").read_text()
        assert f"export GOOGLE_GEMINI_BASE_URL={settings.gemini_base_url}" in bashrc
        assert "export GEMINI_API_KEY=g-key" in bashrc
        assert runner.ran("npm", "install", "-g", "@google/gemini-cli")
        assert runner.ran("gemini", "mcp", "add", "fetch", "uvx", "mcp-server-fetch")

    def test_placeholder_without_key(self, make_context) -> None:
        ctx = make_context(FakeRunner(tools=ASSISTANT_TOOLS))
        GeminiTask().run(ctx)
        assert "export GEMINI_API_KEY=''  # set your API key here" in (ctx.home / ".bashrc").read_text()

    def test_zshrc_updated_when_present(self, make_context) -> None:
        ctx = make_context(FakeRunner(tools=ASSISTANT_TOOLS), api_key="g-key")
        zshrc = ctx.home / ".zshrc"
        zshrc.write_text("# zsh\n")
        GeminiTask().run(ctx)
        assert "export GEMINI_API_KEY=g-key" in zshrc.read_text()

    def test_zshrc_not_created(self, make_context) -> None:
        ctx = make_context(FakeRunner(tools=ASSISTANT_TOOLS))
        GeminiTask().run(ctx)
        assert not (ctx.home / ".zshrc").exists()

    def test_env_base_url(self, make_context) -> None:
        ctx = make_context(
            FakeRunner(tools=ASSISTANT_TOOLS),
            environ={"GOOGLE_GEMINI_BASE_URL": "https://env.example/gemini"},
        )
        GeminiTask().run(ctx)
        assert "https://env.example/gemini" in (ctx.home / ".bashrc").read_text()
