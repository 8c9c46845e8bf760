"""Tests for the interactive menus (cli/menu.py).

questionary is mocked — no terminal interaction.

Coverage:
* Task menu lists every task in order plus Quit.
* Cancel (None) maps to the quit sentinel.
* Plain ``input()`` fallback when questionary is missing.
* Secret prompt uses ``questionary.password``.
"""

from __future__ import annotations

import sys
from unittest.mock import MagicMock, patch

import pytest

from devstation.cli.menu import (
    QUIT,
    parse_choice,
    prompt_kvm_command,
    prompt_secret,
    prompt_task_selection,
)
from devstation.kvm import COMMANDS
from devstation.tasks import TASKS


def _questionary(answer: object) -> MagicMock:
    module = MagicMock()
    module.Choice.side_effect = lambda title, value: (title, value)
    module.select.return_value.ask.return_value = answer
    module.password.return_value.ask.return_value = answer
    return module


class TestParseChoice:
    options = ["start", "stop", "quit"]

    @pytest.mark.parametrize(
        ("reply", "expected"),
        [("1", "start"), (" 2 ", "stop"), ("stop", "stop"), ("3", "quit")],
    )
    def test_valid(self, reply: str, expected: str) -> None:
        assert parse_choice(reply, self.options) == expected

    @pytest.mark.parametrize("reply", ["", "0", "4", "STOP", "st"])
    def test_invalid(self, reply: str) -> None:
        assert parse_choice(reply, self.options) is None


class TestTaskMenu:
    def test_choices_follow_task_order(self) -> None:
        questionary = _questionary("golang")
        with patch("devstation.cli.menu._import_questionary", return_value=questionary):
            assert prompt_task_selection(TASKS) == "golang"

        choices = questionary.select.call_args.kwargs["choices"]
        values = [value for _, value in choices]
        assert values == [task.name for task in TASKS] + [QUIT]
        assert values[:3] == ["init", "nodejs", "mcp"]
        assert values[-2] == "rust"

    def test_cancel_is_quit(self) -> None:
        with patch("devstation.cli.menu._import_questionary", return_value=_questionary(None)):
            assert prompt_task_selection(TASKS) == QUIT


class TestKvmMenu:
    def test_selection(self) -> None:
        with patch("devstation.cli.menu._import_questionary", return_value=_questionary("vnc")):
            assert prompt_kvm_command(COMMANDS) == "vnc"

    def test_plain_fallback(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setitem(sys.modules, "questionary", None)
        replies = iter(["bogus", "42", "logs"])
        monkeypatch.setattr("builtins.input", lambda prompt: next(replies))
        assert prompt_kvm_command(COMMANDS) == "logs"

    def test_plain_fallback_quit_by_number(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setitem(sys.modules, "questionary", None)
        monkeypatch.setattr("builtins.input", lambda prompt: str(len(COMMANDS) + 1))
        assert prompt_kvm_command(COMMANDS) == QUIT

    def test_plain_fallback_eof(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setitem(sys.modules, "questionary", None)

        def _eof(prompt: str) -> str:
            raise EOFError

        monkeypatch.setattr("builtins.input", _eof)
        assert prompt_kvm_command(COMMANDS) == QUIT


class TestPromptSecret:
    def test_questionary_password(self) -> None:
        questionary = _questionary("sk-secret")
        with patch("devstation.cli.menu._import_questionary", return_value=questionary):
            assert prompt_secret("OPENAI_API_KEY:") == "sk-secret"
        questionary.password.assert_called_once_with("OPENAI_API_KEY:")

    def test_getpass_fallback(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setitem(sys.modules, "questionary", None)
        with patch("getpass.getpass", return_value="typed"):
            assert prompt_secret("KEY:") == "typed"
