"""devstation — development workstation provisioning.

Installs toolchains, container tooling and AI CLI assistants on a fresh
Ubuntu host, and drives a KVM-in-Docker virtual machine.
"""

from devstation.version import __version__

__all__: list[str] = ["__version__"]
