"""Host-port lookup in the VM's ``docker-compose.yml``."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import yaml

from devstation.core.ports import host_port_from_mapping
from devstation.exceptions import ComposeConfigError

COMPOSE_FILENAME = "docker-compose.yml"
SERVICE = "kvm"

VNC_PORT_INDEX = 2
SSH_PORT_INDEX = 3

_INT_TAG = "tag:yaml.org,2002:int"
_FLOAT_TAG = "tag:yaml.org,2002:float"


class ComposeLoader(yaml.SafeLoader):
    """``SafeLoader`` without YAML 1.1 base-60 numbers.

    Docker Compose reads ``- 2222:22`` as the string ``"2222:22"``; plain
    ``safe_load`` would turn it into the integer 133342.
    """


ComposeLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag not in (_INT_TAG, _FLOAT_TAG)]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
ComposeLoader.add_implicit_resolver(
    _INT_TAG,
    re.compile(
        r"""^(?:[-+]?0b[0-1_]+
        |[-+]?0[0-7_]+
        |[-+]?(?:0|[1-9][0-9_]*)
        |[-+]?0x[0-9a-fA-F_]+)$""",
        re.X,
    ),
    list("-+0123456789"),
)
ComposeLoader.add_implicit_resolver(
    _FLOAT_TAG,
    re.compile(
        r"""^(?:[-+]?(?:[0-9][0-9_]*)\.[0-9_]*(?:[eE][-+][0-9]+)?
        |\.[0-9][0-9_]*(?:[eE][-+][0-9]+)?
        |[-+]?\.(?:inf|Inf|INF)
        |\.(?:nan|NaN|NAN))$""",
        re.X,
    ),
    list("-+0123456789."),
)


class ComposeFile:
    """Lazily loaded view of ``<kvm_dir>/docker-compose.yml``.

    Only ``services.kvm.ports`` is ever consulted; the file is parsed on
    first use and cached for the lifetime of the object.
    """

    def __init__(self, kvm_dir: Path) -> None:
        self.path = kvm_dir / COMPOSE_FILENAME
        self._data: Any = None
        self._loaded = False

    def _load(self) -> Any:
        if self._loaded:
            return self._data
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise ComposeConfigError(
                f"compose file not found: {self.path}",
                hint="Pass --kvm-dir or set DEVSTATION_KVM_DIR.",
            ) from None
        except OSError as exc:
            raise ComposeConfigError(f"cannot read {self.path}: {exc}") from exc

        try:
            self._data = yaml.load(text, Loader=ComposeLoader)
        except yaml.YAMLError as exc:
            raise ComposeConfigError(f"invalid YAML in {self.path}: {exc}") from exc
        self._loaded = True
        return self._data

    def ports(self) -> list[Any]:
        data = self._load()
        try:
            ports = data["services"][SERVICE]["ports"]
        except (KeyError, TypeError):
            ports = None
        if not isinstance(ports, list):
            raise ComposeConfigError(
                f"could not read .services.{SERVICE}.ports from {self.path}",
            )
        return ports

    def host_port(self, index: int, label: str) -> int:
        """Return the host side of ``services.kvm.ports[index]``.

        Raises
        ------
        ComposeConfigError
            On a missing file, key or index, a null entry, or a mapping
            whose host side is not a plain port number.
        """
        ports = self.ports()
        mapping = ports[index] if 0 <= index < len(ports) else None
        if mapping is None or mapping == "":
            raise ComposeConfigError(
                f"could not read .services.{SERVICE}.ports[{index}] ({label}) from {self.path}",
            )
        return host_port_from_mapping(mapping, label)

    def vnc_port(self) -> int:
        return self.host_port(VNC_PORT_INDEX, "VNC")

    def ssh_port(self) -> int:
        return self.host_port(SSH_PORT_INDEX, "SSH")
