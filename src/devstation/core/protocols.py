"""Protocols (interfaces) consumed by the task and kvm layers.

These define the contracts that infrastructure adapters must satisfy.
Tasks depend ONLY on these protocols — never on ``subprocess`` directly —
so that every installer can be exercised against a recording fake.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Protocol

from devstation.core.models import CommandResult


class CommandRunner(Protocol):
    """Contract for executing external commands.

    Any object that implements these members with the correct signatures
    satisfies this protocol structurally (no explicit inheritance
    required).
    """

    dry_run: bool
    """When true, only captured (read-only) commands execute; the rest are
    logged."""

    @property
    def is_root(self) -> bool:
        """Whether the current process already has uid 0."""
        ...  # pragma: no cover

    @property
    def env(self) -> Mapping[str, str]:
        """Environment passed to every child process."""
        ...  # pragma: no cover

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
        """Execute *args* and return a :class:`CommandResult`.

        Parameters
        ----------
        sudo:
            Prefix with ``sudo`` unless already root.
        check:
            Raise :class:`~devstation.exceptions.CommandFailedError` on a
            non-zero exit status.
        capture:
            Capture stdout/stderr instead of inheriting the terminal.
        input_text:
            Text written to the child's stdin.
        cwd:
            Working directory for the child.

        Raises
        ------
        CommandFailedError
            When *check* is true and the command fails, or the executable
            does not exist.
        """
        ...  # pragma: no cover

    def which(self, name: str) -> Path | None:
        """Locate *name* on the runner's PATH."""
        ...  # pragma: no cover

    def prepend_path(self, *directories: Path | str) -> None:
        """Put *directories* in front of PATH for subsequent commands."""
        ...  # pragma: no cover

    def set_env(self, key: str, value: str) -> None:
        """Set an environment variable for subsequent commands."""
        ...  # pragma: no cover
