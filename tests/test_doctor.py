"""Tests for the ``devstation doctor`` command (cli/doctor.py).

Tool detection is mocked — no system dependency, no internet.

Coverage:
* Individual check functions return correct tuples.
* Missing tools WARN but do not fail.
* A failed Python check returns GENERAL_ERROR.
* Running as root is reported.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from devstation.cli import exit_codes
from devstation.core.models import ToolStatus


def _status(name: str, found: bool) -> ToolStatus:
    return ToolStatus(
        name=name,
        found=found,
        path=Path(f"/usr/bin/{name}") if found else None,
        install_hint=f"devstation {name}",
    )


# ---------------------------------------------------------------------------
# Individual check functions
# ---------------------------------------------------------------------------

class TestChecks:
    def test_python_version(self) -> None:
        from devstation.cli.doctor import _python_version_check

        label, value, status = _python_version_check()
        assert label == "Python"
        assert isinstance(value, str)
        assert "OK" in status

    @patch("devstation.cli.doctor.detect_tool")
    def test_tool_found(self, mock_detect: MagicMock) -> None:
        from devstation.cli.doctor import _tool_check

        mock_detect.return_value = _status("node", True)
        assert _tool_check("node") == ("node", "/usr/bin/node", "[green]OK[/green]")

    @patch("devstation.cli.doctor.detect_tool")
    def test_tool_missing_warns(self, mock_detect: MagicMock) -> None:
        from devstation.cli.doctor import _tool_check

        mock_detect.return_value = _status("go", False)
        label, value, status = _tool_check("go")
        assert value == "not found"
        assert "WARN" in status

    @patch("devstation.cli.doctor.current_uid", return_value=0)
    def test_root_warns(self, _uid: MagicMock) -> None:
        from devstation.cli.doctor import _user_check

        assert "WARN" in _user_check()[2]

    @patch("devstation.cli.doctor.current_uid", return_value=1000)
    def test_regular_user_ok(self, _uid: MagicMock) -> None:
        from devstation.cli.doctor import _user_check

        assert "OK" in _user_check()[2]

    def test_all_tools_listed(self) -> None:
        from devstation.cli.doctor import DOCTOR_TOOLS, collect_checks

        labels = [label for label, _, _ in collect_checks()]
        for tool in DOCTOR_TOOLS:
            assert tool in labels


# ---------------------------------------------------------------------------
# run_doctor
# ---------------------------------------------------------------------------

class TestRunDoctor:
    @patch("devstation.cli.doctor.current_uid", return_value=1000)
    @patch("devstation.cli.doctor.detect_tool")
    def test_missing_tools_still_success(
        self, mock_detect: MagicMock, _uid: MagicMock, capsys: pytest.CaptureFixture[str]
    ) -> None:
        from devstation.cli.doctor import run_doctor

        mock_detect.side_effect = lambda name: _status(name, False)
        assert run_doctor() == exit_codes.SUCCESS
        assert "devstation docker" in capsys.readouterr().err

    @patch("devstation.cli.doctor.current_uid", return_value=1000)
    @patch("devstation.cli.doctor.detect_tool")
    @patch("devstation.cli.doctor._python_version_check")
    def test_python_failure(
        self, mock_python: MagicMock, mock_detect: MagicMock, _uid: MagicMock
    ) -> None:
        from devstation.cli.doctor import run_doctor

        mock_python.return_value = ("Python", "3.8.0", "[red]FAIL (>=3.10 required)[/red]")
        mock_detect.side_effect = lambda name: _status(name, True)
        assert run_doctor() == exit_codes.GENERAL_ERROR

    @patch("devstation.cli.doctor.current_uid", return_value=1000)
    @patch("devstation.cli.doctor.detect_tool")
    def test_plain_output_without_rich(
        self,
        mock_detect: MagicMock,
        _uid: MagicMock,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        import sys

        from devstation.cli.doctor import run_doctor

        monkeypatch.setitem(sys.modules, "rich", None)
        monkeypatch.setitem(sys.modules, "rich.table", None)
        monkeypatch.setitem(sys.modules, "rich.console", None)
        mock_detect.side_effect = lambda name: _status(name, True)

        assert run_doctor() == exit_codes.SUCCESS
        err = capsys.readouterr().err
        assert "devstation doctor" in err
        assert "All checks passed." in err
