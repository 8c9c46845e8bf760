"""Core layer — pure models and data transformations.

Rules
-----
* No ``print()`` calls.
* No filesystem, network or subprocess I/O.
* No imports from ``cli``, ``infra``, ``tasks`` or ``kvm``.
"""

from devstation.core.credentials import sanitize_api_key
from devstation.core.models import CommandResult, ManagedBlock, McpServer, ToolStatus
from devstation.core.ports import host_port_from_mapping
from devstation.core.protocols import CommandRunner

__all__: list[str] = [
    "CommandResult",
    "CommandRunner",
    "ManagedBlock",
    "McpServer",
    "ToolStatus",
    "host_port_from_mapping",
    "sanitize_api_key",
]
