"""Custom exception hierarchy for devstation.

All exceptions that cross layer boundaries must inherit from
:class:`DevstationError`.  Raw ``subprocess`` / ``OSError`` exceptions
must NEVER propagate beyond the infrastructure layer — they must be
caught and re-raised as a typed subclass defined here.

Hierarchy
---------
DevstationError
├── InvalidArgumentError
├── PrivilegeError
├── UserNotFoundError
├── ToolNotFoundError
├── AssetNotFoundError
├── CommandFailedError
├── DownloadFailedError
├── ApiKeyError
├── ComposeConfigError
└── EnvironmentError
    └── EnvironmentCheckError
"""

from __future__ import annotations

from collections.abc import Sequence


class DevstationError(Exception):
    """Base exception for all devstation errors.

    Every user-visible error condition must map to a subclass of this
    exception so that the CLI error boundary can render a clean message
    without leaking internal stack traces.
    """

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint: str | None = hint
        """Optional actionable guidance shown below the error message."""


# --- Invocation ------------------------------------------------------------

class InvalidArgumentError(DevstationError):
    """Raised for an unknown task / command or a malformed argument."""


class PrivilegeError(DevstationError):
    """Raised when the process runs with the wrong privileges."""


class UserNotFoundError(DevstationError):
    """Raised when the target account does not exist on this host."""


# --- Tools and assets ------------------------------------------------------

class ToolNotFoundError(DevstationError):
    """Raised when a required executable cannot be located on PATH."""


class AssetNotFoundError(DevstationError):
    """Raised when a bundled installer archive is missing from assets/."""


# --- Execution -------------------------------------------------------------

class CommandFailedError(DevstationError):
    """Raised when an external command exits non-zero."""

    def __init__(
        self,
        message: str,
        *,
        command: Sequence[str] = (),
        returncode: int | None = None,
        hint: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.command: tuple[str, ...] = tuple(command)
        self.returncode: int | None = returncode


class DownloadFailedError(DevstationError):
    """Raised when a remote archive or install script cannot be fetched."""


# --- Configuration ---------------------------------------------------------

class ApiKeyError(DevstationError):
    """Raised when an API key is missing or contains invalid characters."""


class ComposeConfigError(DevstationError):
    """Raised when the KVM compose file cannot provide a host port."""


# --- Environment / tooling -------------------------------------------------

class EnvironmentError(DevstationError):
    """Raised when a required runtime dependency is not available."""


class EnvironmentCheckError(EnvironmentError):
    """Raised when a required environment precondition is not met."""


def append_nodejs_suggestion(hint: str) -> str:
    """Append Node.js install guidance to an existing hint text.

    The suggestion is appended only once and preserves the original
    hint content verbatim.
    """
    marker = "Install Node.js first:"
    if marker in hint:
        return hint
    return "\n".join(
        (
            hint,
            marker,
            "    devstation nodejs",
        )
    )
