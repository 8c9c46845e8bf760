"""Pure parsing of docker-compose port mappings.

Only the *host* side of a mapping matters here: it is the port the VM's
VNC and SSH services are reachable on from the workstation.
"""

from __future__ import annotations

from collections.abc import Mapping

from devstation.exceptions import ComposeConfigError


def host_port_from_mapping(mapping: object, label: str) -> int:
    """Return the host port of a compose ``ports`` entry.

    Short syntax rules (after stripping any ``/proto`` suffix):

    * ``"ip:host:container"`` → ``host``
    * ``"host:container"``    → ``host``
    * ``"port"``              → ``port``

    Long syntax (a mapping) uses its ``published`` field.

    Raises
    ------
    ComposeConfigError
        If the host side is not a plain decimal port in 1-65535.
    """
    if isinstance(mapping, Mapping):
        raw = str(mapping.get("published", ""))
    elif isinstance(mapping, (str, int)) and not isinstance(mapping, bool):
        text = str(mapping).split("/", 1)[0]
        parts = text.split(":")
        raw = parts[1] if len(parts) == 3 else parts[0] if len(parts) in (1, 2) else ""
    else:
        raw = ""

    if not raw.isdigit() or not raw.isascii():
        raise ComposeConfigError(
            f"unexpected port mapping format for {label}: {mapping}",
        )
    port = int(raw)
    if not 1 <= port <= 65535:
        raise ComposeConfigError(f"{label} port out of range: {port}")
    return port
