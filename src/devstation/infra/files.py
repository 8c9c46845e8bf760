"""Configuration-file I/O with sudo escalation.

Tasks never open system files themselves.  They read through
:class:`SystemFiles`, transform the text with a pure function from
:mod:`devstation.core.text_edits`, and write the result back here.
Writes to root-owned locations go through ``sudo tee`` when the process
is not already root, so the CLI itself never needs to run as root.
"""

from __future__ import annotations

import logging
import shutil
import tarfile
from collections.abc import Callable
from pathlib import Path

from devstation.core.protocols import CommandRunner
from devstation.exceptions import EnvironmentCheckError, PrivilegeError

logger = logging.getLogger(__name__)


class SystemFiles:
    """Read, write and back up files on behalf of the task layer."""

    def __init__(self, runner: CommandRunner) -> None:
        self._runner = runner

    @property
    def _escalate(self) -> bool:
        return not self._runner.is_root

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def read_text(self, path: Path, default: str = "") -> str:
        """Return the file contents, or *default* when it does not exist.

        Files the current user cannot read are read with ``sudo cat``.
        """
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return default
        except PermissionError:
            result = self._runner.run(["cat", str(path)], sudo=True, capture=True)
            return result.stdout
        except OSError as exc:
            raise EnvironmentCheckError(f"cannot read {path}: {exc}") from exc

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def write_text(
        self,
        path: Path,
        content: str,
        *,
        privileged: bool = False,
        mode: int | None = None,
    ) -> None:
        if self._runner.dry_run:
            logger.info("[dry-run] write %s", path)
            return

        if privileged and self._escalate:
            self._runner.run(["mkdir", "-p", str(path.parent)], sudo=True)
            self._runner.run(["tee", str(path)], sudo=True, capture=True, input_text=content)
            if mode is not None:
                self._runner.run(["chmod", f"{mode:o}", str(path)], sudo=True)
            return

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
            if mode is not None:
                path.chmod(mode)
        except PermissionError as exc:
            raise PrivilegeError(
                f"permission denied writing {path}",
                hint="Re-run as a user with sudo rights.",
            ) from exc
        except OSError as exc:
            raise EnvironmentCheckError(f"cannot write {path}: {exc}") from exc
        logger.debug("wrote %s", path)

    def edit(
        self,
        path: Path,
        transform: Callable[[str], str],
        *,
        privileged: bool = False,
        mode: int | None = None,
    ) -> bool:
        """Apply *transform* to the file text; write only when it changed.

        Returns whether the file was (re)written.
        """
        current = self.read_text(path)
        updated = transform(current)
        if updated == current and path.exists():
            return False
        self.write_text(path, updated, privileged=privileged, mode=mode)
        return True

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------

    def copy(self, source: Path, target: Path, *, privileged: bool = False) -> None:
        if (privileged and self._escalate) or self._runner.dry_run:
            self._runner.run(["cp", "-p", str(source), str(target)], sudo=privileged)
            return
        try:
            shutil.copy2(source, target)
        except OSError as exc:
            raise EnvironmentCheckError(f"cannot copy {source} to {target}: {exc}") from exc

    def backup_once(self, path: Path, suffix: str, *, privileged: bool = False) -> Path | None:
        """Copy *path* to ``<path><suffix>`` unless that backup already exists.

        Returns the backup path when a copy was made.
        """
        backup = path.with_name(path.name + suffix)
        if not path.exists() or backup.exists():
            return None
        self.copy(path, backup, privileged=privileged)
        logger.info("Backed up %s to %s", path, backup)
        return backup

    def remove(self, path: Path, *, privileged: bool = False) -> None:
        if not path.exists() and not path.is_symlink():
            return
        if (privileged and self._escalate) or self._runner.dry_run:
            self._runner.run(["rm", "-rf", str(path)], sudo=privileged)
            return
        try:
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            else:
                path.unlink()
        except OSError as exc:
            raise EnvironmentCheckError(f"cannot remove {path}: {exc}") from exc

    def chown(self, path: Path, user: str, *, recursive: bool = False) -> None:
        args = ["chown", *(["-R"] if recursive else []), f"{user}:{user}", str(path)]
        self._runner.run(args, sudo=True)

    def mkdir(self, path: Path, *, privileged: bool = False, mode: int | None = None) -> None:
        if (privileged and self._escalate) or self._runner.dry_run:
            args = ["install", "-d", *(["-m", f"{mode:o}"] if mode is not None else []), str(path)]
            self._runner.run(args, sudo=privileged)
            return
        try:
            path.mkdir(parents=True, exist_ok=True)
            if mode is not None:
                path.chmod(mode)
        except OSError as exc:
            raise EnvironmentCheckError(f"cannot create {path}: {exc}") from exc

    def symlink(self, target: Path, link: Path, *, privileged: bool = False) -> None:
        """Point *link* at *target*, replacing whatever *link* was."""
        if (privileged and self._escalate) or self._runner.dry_run:
            self._runner.run(["ln", "-sfn", str(target), str(link)], sudo=privileged)
            return
        try:
            link.parent.mkdir(parents=True, exist_ok=True)
            if link.is_symlink() or link.is_file():
                link.unlink()
            link.symlink_to(target)
        except OSError as exc:
            raise EnvironmentCheckError(f"cannot link {link} to {target}: {exc}") from exc

    def extract(self, archive: Path, destination: Path) -> None:
        """Unpack a tar archive (any compression) into *destination*."""
        if self._runner.dry_run:
            logger.info("[dry-run] extract %s into %s", archive, destination)
            return
        try:
            destination.mkdir(parents=True, exist_ok=True)
            with tarfile.open(archive) as bundle:
                if hasattr(tarfile, "data_filter"):
                    bundle.extractall(destination, filter="data")
                else:
                    bundle.extractall(destination)
        except (tarfile.TarError, OSError) as exc:
            raise EnvironmentCheckError(
                f"cannot extract {archive.name}: {exc}",
                hint=f"Remove {archive} and download it again.",
            ) from exc
