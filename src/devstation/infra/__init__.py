"""Infrastructure layer — external system integration.

This layer wraps all interaction with the operating system: child
processes, PATH lookups and configuration files.  Every raw OS exception
must be caught here and re-raised as a
:class:`~devstation.exceptions.DevstationError` subclass.

Rules
-----
* No imports from ``cli``.
* No user-facing output (no ``print()``, no Rich rendering).
* Must expose clean, typed interfaces consumed by the task layer.
"""

from devstation.infra.files import SystemFiles
from devstation.infra.shell import ShellRunner
from devstation.infra.tool_detector import detect_tool, require_tool

__all__: list[str] = [
    "ShellRunner",
    "SystemFiles",
    "detect_tool",
    "require_tool",
]
