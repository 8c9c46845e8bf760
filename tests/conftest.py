"""Shared pytest fixtures and configuration for the devstation test suite.

Guidelines
----------
* No internet access in any test.
* No real subprocess: tasks run against :class:`FakeRunner`, which
  records every command and answers from a canned table.
* System paths are mapped into ``tmp_path`` through
  ``Settings.system_root``.
* Core tests must be pure — no side effects.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import Any

import pytest

from devstation.config import Settings
from devstation.core.models import CommandResult
from devstation.infra.files import SystemFiles
from devstation.tasks.base import TaskContext


class FakeRunner:
    """In-memory :class:`~devstation.core.protocols.CommandRunner`.

    Parameters
    ----------
    tools:
        Executable names :meth:`which` reports as present.
    results:
        Maps an argv *prefix* to ``returncode`` or ``(returncode, stdout)``.
        The longest matching prefix wins; unmatched commands succeed with
        empty output.
    """

    def __init__(
        self,
        tools: Sequence[str] = (),
        results: Mapping[tuple[str, ...], Any] | None = None,
        *,
        is_root: bool = True,
        dry_run: bool = False,
    ) -> None:
        self.tools: set[str] = set(tools)
        self.results: dict[tuple[str, ...], Any] = dict(results or {})
        self.dry_run = dry_run
        self._is_root = is_root
        self._env: dict[str, str] = {"PATH": "/usr/bin"}
        self.calls: list[dict[str, Any]] = []

    # -- CommandRunner -------------------------------------------------

    @property
    def is_root(self) -> bool:
        return self._is_root

    @property
    def env(self) -> Mapping[str, str]:
        return self._env

    def set_env(self, key: str, value: str) -> None:
        self._env[key] = value

    def prepend_path(self, *directories: Path | str) -> None:
        self._env["PATH"] = ":".join([*(str(d) for d in directories), self._env["PATH"]])

    def which(self, name: str) -> Path | None:
        return Path("/usr/bin") / name if name in self.tools else None

    def run(
        self,
        args: Sequence[str],
        *,
        sudo: bool = False,
        check: bool = True,
        capture: bool = False,
        input_text: str | None = None,
        cwd: Path | None = None,
    ) -> CommandResult:
        argv = tuple(str(arg) for arg in args)
        self.calls.append(
            {"args": argv, "sudo": sudo, "check": check, "capture": capture, "input": input_text, "cwd": cwd}
        )
        returncode, stdout = 0, ""
        best = -1
        for prefix, outcome in self.results.items():
            if argv[: len(prefix)] == prefix and len(prefix) > best:
                best = len(prefix)
                returncode, stdout = outcome if isinstance(outcome, tuple) else (outcome, "")
        if returncode != 0 and check:
            from devstation.exceptions import CommandFailedError

            raise CommandFailedError(f"command failed (exit {returncode})", command=argv, returncode=returncode)
        return CommandResult(args=argv, returncode=returncode, stdout=stdout)

    # -- assertions helpers -------------------------------------------

    @property
    def commands(self) -> list[tuple[str, ...]]:
        return [call["args"] for call in self.calls]

    def find(self, *needle: str) -> dict[str, Any] | None:
        """Return the first call whose argv contains *needle* contiguously."""
        width = len(needle)
        for call in self.calls:
            argv = call["args"]
            for start in range(len(argv) - width + 1):
                if argv[start : start + width] == needle:
                    return call
        return None

    def ran(self, *needle: str) -> bool:
        return self.find(*needle) is not None


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    home = tmp_path / "home"
    home.mkdir()
    system_root = tmp_path / "root"
    system_root.mkdir()
    assets = tmp_path / "assets"
    (assets / "tools").mkdir(parents=True)
    return Settings(
        assets_dir=assets,
        kvm_dir=tmp_path / "kvm",
        home=home,
        system_root=system_root,
    )


@pytest.fixture()
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture()
def make_context(settings: Settings) -> Callable[..., TaskContext]:
    """Factory: ``make_context(runner, **fields)`` → :class:`TaskContext`."""

    def factory(runner: FakeRunner | None = None, **fields: Any) -> TaskContext:
        runner = runner if runner is not None else FakeRunner()
        values: dict[str, Any] = {
            "settings": settings,
            "runner": runner,
            "files": SystemFiles(runner),
            "username": "dev",
            "home": settings.home,
        }
        values.update(fields)
        return TaskContext(**values)

    return factory
