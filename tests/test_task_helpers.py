"""Tests for the shared task plumbing (tasks/base.py, tasks/assistants.py, tasks/pipx.py).

All commands go to :class:`FakeRunner`; files live under ``tmp_path``.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from devstation.core.text_edits import managed_block
from devstation.exceptions import (
    ApiKeyError,
    DownloadFailedError,
    ToolNotFoundError,
)
from devstation.tasks.assistants import (
    MCP_SERVERS,
    ensure_npm_global_prefix_writable,
    register_mcp_servers,
    require_npm,
    resolve_api_key,
)
from devstation.tasks.base import (
    APT_GET,
    apt_install,
    download,
    fetch_text,
    run_installer_script,
    tool_version,
    user_groups,
    write_managed_block,
)
from devstation.tasks.pipx import pipx_dirs, resolve_pipx, write_pipx_env

from conftest import FakeRunner


# ---------------------------------------------------------------------------
# base
# ---------------------------------------------------------------------------

class TestToolVersion:
    def test_first_line(self, make_context) -> None:
        runner = FakeRunner(results={("node", "--version"): (0, "v22.18.0\n")})
        assert tool_version(make_context(runner), "node", "--version") == "v22.18.0"

    def test_failure_is_unknown(self, make_context) -> None:
        runner = FakeRunner(results={("go", "version"): 127})
        assert tool_version(make_context(runner), "go", "version") == "unknown"

    def test_captured_even_in_dry_run(self, make_context) -> None:
        runner = FakeRunner(dry_run=True)
        tool_version(make_context(runner), "rustc", "--version")
        assert runner.calls[0]["capture"] is True


class TestApt:
    def test_install_uses_noninteractive_sudo(self, make_context) -> None:
        runner = FakeRunner()
        assert apt_install(make_context(runner), "git", "curl") is True
        call = runner.calls[0]
        assert call["args"] == (*APT_GET, "install", "-y", "git", "curl")
        assert call["sudo"] is True

    def test_install_failure_returns_false(self, make_context) -> None:
        runner = FakeRunner(results={APT_GET: 100})
        assert apt_install(make_context(runner), "nope") is False

    def test_user_groups(self, make_context) -> None:
        runner = FakeRunner(results={("id", "-nG"): (0, "dev sudo docker\n")})
        assert user_groups(make_context(runner), "dev") == {"dev", "sudo", "docker"}


class TestDownload:
    def test_curl_preferred(self, make_context, tmp_path: Path) -> None:
        runner = FakeRunner(tools=["curl", "wget"])
        target = tmp_path / "file"
        target.write_text("payload")
        assert download(make_context(runner), "https://example.com/f", target) is True
        assert runner.commands[0][0] == "curl"
        assert runner.commands[0][-1] == "https://example.com/f"

    def test_wget_fallback(self, make_context, tmp_path: Path) -> None:
        runner = FakeRunner(tools=["wget"])
        target = tmp_path / "file"
        target.write_text("payload")
        assert download(make_context(runner), "https://example.com/f", target) is True
        assert runner.commands[0][:3] == ("wget", "-q", "-O")

    def test_empty_file_is_failure(self, make_context, tmp_path: Path) -> None:
        runner = FakeRunner(tools=["curl"])
        target = tmp_path / "file"
        target.write_text("")
        assert download(make_context(runner), "https://example.com/f", target) is False

    def test_no_downloader(self, make_context, tmp_path: Path) -> None:
        with pytest.raises(ToolNotFoundError, match="curl or wget"):
            download(make_context(FakeRunner()), "https://example.com/f", tmp_path / "f")

    def test_dry_run_reports_success(self, make_context, tmp_path: Path) -> None:
        runner = FakeRunner(tools=["curl"], dry_run=True)
        assert download(make_context(runner), "https://example.com/f", tmp_path / "f") is True


class TestFetchText:
    def test_body(self, make_context) -> None:
        runner = FakeRunner(tools=["curl"], results={("curl", "-fsSL"): (0, "go1.23.1\n")})
        assert fetch_text(make_context(runner), "https://go.dev/VERSION?m=text") == "go1.23.1\n"

    def test_failure(self, make_context) -> None:
        runner = FakeRunner(tools=["curl"], results={("curl",): 22})
        with pytest.raises(DownloadFailedError):
            fetch_text(make_context(runner), "https://example.com")


class TestRunInstallerScript:
    def test_download_failure(self, make_context) -> None:
        runner = FakeRunner(tools=["curl"])
        with pytest.raises(DownloadFailedError, match="could not download installer"):
            run_installer_script(make_context(runner), "https://example.com/install.sh")

    def test_dry_run_runs_with_sh(self, make_context) -> None:
        runner = FakeRunner(tools=["curl"], dry_run=True)
        run_installer_script(make_context(runner), "https://sh.rustup.rs", "-y")
        last = runner.commands[-1]
        assert last[0] == "sh"
        assert last[1].endswith("install.sh")
        assert last[2] == "-y"


class TestWriteManagedBlock:
    def test_idempotent(self, make_context) -> None:
        ctx = make_context()
        path = ctx.home / ".bashrc"
        path.write_text("alias ll='ls -l'\n")
        block = managed_block("demo", ["export A=1"])

        assert write_managed_block(ctx, path, block) is True
        first = path.read_text()
        assert write_managed_block(ctx, path, block) is False
        assert path.read_text() == first
        assert first.count("export A=1") == 1
        assert first.startswith("alias ll=")

    def test_legacy_lines_removed(self, make_context) -> None:
        ctx = make_context()
        path = ctx.home / ".bashrc"
        path.write_text("export OLD=1\nkeep\n")
        write_managed_block(ctx, path, managed_block("demo", ["export NEW=1"]), legacy=[r"^export OLD="])
        text = path.read_text()
        assert "OLD" not in text
        assert "keep" in text
        assert "export NEW=1" in text


# ---------------------------------------------------------------------------
# assistants
# ---------------------------------------------------------------------------

class TestRegisterMcpServers:
    def test_all_registered(self, make_context) -> None:
        runner = FakeRunner(tools=["claude", "uvx", "npx"])
        assert register_mcp_servers(make_context(runner), "claude") == len(MCP_SERVERS)
        assert ("claude", "mcp", "add", "fetch", "--", "uvx", "mcp-server-fetch") in runner.commands

    def test_missing_launcher_skips_its_servers(self, make_context) -> None:
        runner = FakeRunner(tools=["codex", "uvx"])
        assert register_mcp_servers(make_context(runner), "codex") == 1

    def test_without_separator(self, make_context) -> None:
        runner = FakeRunner(tools=["gemini", "uvx", "npx"])
        register_mcp_servers(make_context(runner), "gemini", separator=False)
        assert ("gemini", "mcp", "add", "fetch", "uvx", "mcp-server-fetch") in runner.commands

    def test_failed_registration_only_warns(self, make_context) -> None:
        runner = FakeRunner(
            tools=["claude", "uvx", "npx"],
            results={("claude", "mcp", "add", "fetch"): 1},
        )
        assert register_mcp_servers(make_context(runner), "claude") == len(MCP_SERVERS) - 1

    def test_cli_missing(self, make_context) -> None:
        runner = FakeRunner(tools=["uvx", "npx"])
        assert register_mcp_servers(make_context(runner), "claude") == 0
        assert runner.calls == []


class TestResolveApiKey:
    def test_flag_wins(self, make_context) -> None:
        ctx = make_context(api_key=" sk-flag ", environ={"OPENAI_API_KEY": "sk-env"})
        assert resolve_api_key(ctx, "OPENAI_API_KEY", prompt="key:", required=True) == "sk-flag"

    def test_environment(self, make_context) -> None:
        ctx = make_context(environ={"OPENAI_API_KEY": "sk-env\r\n"})
        assert resolve_api_key(ctx, "OPENAI_API_KEY", prompt="key:", required=True) == "sk-env"

    def test_prompt(self, make_context) -> None:
        prompts: list[str] = []

        def prompt(message: str) -> str:
            prompts.append(message)
            return "sk-typed"

        ctx = make_context(prompt_secret=prompt)
        assert resolve_api_key(ctx, "GEMINI_API_KEY", prompt="Gemini key:", required=False) == "sk-typed"
        assert prompts == ["Gemini key:"]

    def test_required_missing(self, make_context) -> None:
        with pytest.raises(ApiKeyError, match="OPENAI_API_KEY"):
            resolve_api_key(make_context(), "OPENAI_API_KEY", prompt="key:", required=True)

    def test_optional_missing(self, make_context) -> None:
        assert resolve_api_key(make_context(), "GEMINI_API_KEY", prompt="key:", required=False) == ""

    def test_control_characters_rejected(self, make_context) -> None:
        ctx = make_context(api_key="sk-\x00bad")
        with pytest.raises(ApiKeyError, match="control characters"):
            resolve_api_key(ctx, "OPENAI_API_KEY", prompt="key:", required=True)


class TestNpm:
    def test_require_npm_hint(self, make_context) -> None:
        with pytest.raises(ToolNotFoundError) as exc_info:
            require_npm(make_context())
        assert "devstation nodejs" in (exc_info.value.hint or "")

    def test_writable_prefix_untouched(self, make_context, tmp_path: Path) -> None:
        runner = FakeRunner(results={("npm", "prefix", "-g"): (0, f"{tmp_path}\n")})
        ensure_npm_global_prefix_writable(make_context(runner))
        assert len(runner.calls) == 1

    def test_unwritable_prefix_switched(self, make_context) -> None:
        runner = FakeRunner(results={("npm", "prefix", "-g"): (0, "/nonexistent/npm-prefix\n")})
        ctx = make_context(runner)
        ensure_npm_global_prefix_writable(ctx)

        user_prefix = ctx.home / ".npm-global"
        assert (user_prefix / "bin").is_dir()
        assert runner.ran("npm", "config", "set", "prefix", str(user_prefix), "--location=user")
        assert ".npm-global/bin" in (ctx.home / ".bashrc").read_text()
        assert runner.env["PATH"].startswith(str(user_prefix / "bin"))


# ---------------------------------------------------------------------------
# pipx
# ---------------------------------------------------------------------------

class TestPipx:
    def test_dirs_default_to_home(self, make_context) -> None:
        ctx = make_context()
        assert pipx_dirs(ctx) == (ctx.home / ".local" / "pipx", ctx.home / ".local" / "bin")

    def test_dirs_honour_environment(self, make_context) -> None:
        ctx = make_context(environ={"PIPX_HOME": "/opt/pipx", "PIPX_BIN_DIR": "/opt/bin"})
        assert pipx_dirs(ctx) == (Path("/opt/pipx"), Path("/opt/bin"))

    def test_present(self, make_context) -> None:
        runner = FakeRunner(tools=["pipx"])
        ctx = make_context(runner)
        assert resolve_pipx(ctx) == ["pipx"]
        assert runner.env["PIPX_HOME"] == str(ctx.home / ".local" / "pipx")
        assert runner.env["PATH"].startswith(str(ctx.home / ".local" / "bin"))
        assert runner.calls == []

    def test_override(self, make_context) -> None:
        ctx = make_context(environ={"PIPX_CMD": "python3 -m pipx"})
        assert resolve_pipx(ctx, allow_override=True) == ["python3", "-m", "pipx"]

    def test_override_ignored_without_flag(self, make_context) -> None:
        ctx = make_context(FakeRunner(tools=["pipx"]), environ={"PIPX_CMD": "python3 -m pipx"})
        assert resolve_pipx(ctx) == ["pipx"]

    def test_missing_after_apt(self, make_context) -> None:
        runner = FakeRunner()
        with pytest.raises(ToolNotFoundError, match="pipx"):
            resolve_pipx(make_context(runner))
        assert runner.ran("install", "-y", "pipx")

    def test_missing_in_dry_run(self, make_context) -> None:
        assert resolve_pipx(make_context(FakeRunner(dry_run=True))) == ["pipx"]

    def test_env_block(self, make_context) -> None:
        ctx = make_context()
        bashrc = ctx.home / ".bashrc"
        bashrc.write_text("export PIPX_HOME=/old\n")
        write_pipx_env(ctx)
        write_pipx_env(ctx)
        text = bashrc.read_text()
        assert "/old" not in text
        assert text.count('export PIPX_HOME="$HOME/.local/pipx"') == 1
