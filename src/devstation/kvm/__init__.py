"""Drive the KVM-in-Docker virtual machine under ``kvm/ubuntu``."""

from devstation.kvm.compose import SSH_PORT_INDEX, VNC_PORT_INDEX, ComposeFile
from devstation.kvm.controller import COMMANDS, KvmController
from devstation.kvm.ssh_config import ensure_ssh_host

__all__ = [
    "COMMANDS",
    "SSH_PORT_INDEX",
    "VNC_PORT_INDEX",
    "ComposeFile",
    "KvmController",
    "ensure_ssh_host",
]
