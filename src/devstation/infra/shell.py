"""Subprocess execution for every task and VM operation.

This module is the **only** place in the codebase that calls
:func:`subprocess.run`.  All raw ``OSError`` / ``FileNotFoundError``
exceptions are caught here and re-raised as
:class:`~devstation.exceptions.CommandFailedError` — nothing raw escapes
the infrastructure boundary.
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path

from devstation.core.models import CommandResult
from devstation.exceptions import CommandFailedError, PrivilegeError

logger = logging.getLogger(__name__)


def current_uid() -> int | None:
    """Return the effective uid, or ``None`` on platforms without one."""
    geteuid = getattr(os, "geteuid", None)
    return geteuid() if geteuid is not None else None


class ShellRunner:
    """Concrete :class:`~devstation.core.protocols.CommandRunner`.

    Usage::

        runner = ShellRunner()
        runner.run(["apt-get", "update", "-y"], sudo=True)
        version = runner.run(["node", "-v"], capture=True).first_line

    The runner owns a private copy of the environment so that tasks can
    extend PATH (e.g. after unpacking Node.js) without touching
    :data:`os.environ`.

    In dry-run mode only commands run with ``capture=True`` execute; they
    are the read-only probes (versions, package status) later steps branch
    on.  Everything else is logged and reported as successful.
    """

    def __init__(
        self,
        *,
        dry_run: bool = False,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self.dry_run: bool = dry_run
        self._env: dict[str, str] = dict(os.environ if env is None else env)

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    @property
    def is_root(self) -> bool:
        return current_uid() == 0

    @property
    def env(self) -> Mapping[str, str]:
        return self._env

    def set_env(self, key: str, value: str) -> None:
        self._env[key] = value

    def prepend_path(self, *directories: Path | str) -> None:
        entries = [str(directory) for directory in directories]
        current = self._env.get("PATH", "")
        if current:
            entries.append(current)
        self._env["PATH"] = os.pathsep.join(entries)

    def which(self, name: str) -> Path | None:
        found = shutil.which(name, path=self._env.get("PATH"))
        return Path(found) if found is not None else None

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _argv(self, args: Sequence[str], sudo: bool) -> list[str]:
        argv = [str(arg) for arg in args]
        if sudo and not self.is_root:
            if self.which("sudo") is None:
                raise PrivilegeError(
                    f"sudo is required to run: {shlex.join(argv)}",
                    hint="Install sudo or re-run as a user with sudo rights.",
                )
            argv = ["sudo", *argv]
        return argv

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
        argv = self._argv(args, sudo)
        display = shlex.join(argv)

        if self.dry_run and not capture:
            logger.info("[dry-run] %s", display)
            return CommandResult(args=tuple(argv), returncode=0)

        logger.debug("$ %s", display)
        try:
            completed = subprocess.run(
                argv,
                input=input_text,
                text=True,
                encoding="utf-8",
                errors="replace",
                capture_output=capture,
                cwd=cwd,
                env=self._env,
                check=False,
            )
        except FileNotFoundError as exc:
            if check:
                raise CommandFailedError(
                    f"command not found: {argv[0]}",
                    command=argv,
                    returncode=127,
                    hint="Check that the tool is installed and on PATH.",
                ) from exc
            return CommandResult(args=tuple(argv), returncode=127, stderr=str(exc))
        except OSError as exc:
            raise CommandFailedError(
                f"could not execute {argv[0]}: {exc}",
                command=argv,
            ) from exc

        result = CommandResult(
            args=tuple(argv),
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )
        if check and not result.ok:
            last_error = result.stderr.strip().splitlines()[-1:] or [""]
            raise CommandFailedError(
                f"command failed (exit {result.returncode}): {display}",
                command=argv,
                returncode=result.returncode,
                hint=last_error[0] or None,
            )
        return result
