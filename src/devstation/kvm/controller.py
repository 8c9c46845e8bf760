"""Operations on the KVM VM: compose lifecycle, VNC, SSH and VS Code Remote."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from devstation.core.protocols import CommandRunner
from devstation.exceptions import CommandFailedError, InvalidArgumentError
from devstation.infra.tool_detector import require_tool
from devstation.kvm.compose import ComposeFile
from devstation.kvm.ssh_config import ensure_ssh_host

logger = logging.getLogger(__name__)

COMMANDS: tuple[str, ...] = ("start", "stop", "status", "shell", "logs", "vnc", "ssh", "vscode")

_NO_HOST_CHECK: tuple[str, ...] = (
    "-o",
    "StrictHostKeyChecking=no",
    "-o",
    "UserKnownHostsFile=/dev/null",
)


def quote_single(value: str) -> str:
    """Wrap *value* in single quotes for a remote POSIX shell."""
    return "'" + value.replace("'", "'\\''") + "'"


def default_remote_dir(user: str) -> str:
    return "/root/work" if user == "root" else f"/home/{user}/work"


class KvmController:
    """Run one VM command and return the child's exit code.

    Every ``docker compose`` call runs inside *kvm_dir* so the compose
    project there is picked up.  Port numbers come from the same
    directory's ``docker-compose.yml``.
    """

    def __init__(
        self,
        runner: CommandRunner,
        kvm_dir: Path,
        *,
        ssh_config: Path,
        default_user: str = "virtualink",
    ) -> None:
        self._runner = runner
        self._kvm_dir = kvm_dir
        self._compose = ComposeFile(kvm_dir)
        self._ssh_config = ssh_config
        self._default_user = default_user

    # -- compose lifecycle ---------------------------------------------------

    def _compose_cmd(self, *args: str) -> int:
        return self._runner.run(["docker", "compose", *args], cwd=self._kvm_dir, check=False).returncode

    def start(self) -> int:
        logger.info("Starting KVM ubuntu...")
        return self._compose_cmd("up", "-d")

    def stop(self) -> int:
        logger.info("Stopping KVM ubuntu...")
        return self._compose_cmd("stop")

    def status(self) -> int:
        return self._compose_cmd("ps")

    def shell(self) -> int:
        return self._compose_cmd("exec", "kvm", "/bin/bash")

    def logs(self, extra: Sequence[str] = ()) -> int:
        return self._compose_cmd("logs", *extra)

    # -- remote access -------------------------------------------------------

    def vnc(self) -> int:
        port = self._compose.vnc_port()
        logger.info("Connecting to VNC on localhost:%d ...", port)
        return self._runner.run(["vncviewer", f"localhost::{port}"], check=False).returncode

    def ssh(self, user: str | None = None, extra: Sequence[str] = ()) -> int:
        port = self._compose.ssh_port()
        user = user or self._default_user
        logger.info("To copy your SSH public key into the VM, run:")
        logger.info("  ssh-copy-id -i ~/.ssh/id_rsa.pub -p %d %s@localhost", port, user)
        logger.info("Connecting to SSH on localhost:%d as %s ...", port, user)
        return self._runner.run(["ssh", "-p", str(port), f"{user}@localhost", *extra], check=False).returncode

    def vscode(
        self,
        user: str | None = None,
        host_alias: str | None = None,
        remote_dir: str | None = None,
    ) -> int:
        """Open *remote_dir* in VS Code over Remote-SSH.

        The ssh alias is added to ``~/.ssh/config`` when missing and the
        remote directory is created first, since Remote-SSH refuses to
        open a folder that does not exist.
        """
        require_tool("code", self._runner, hint="Install VS Code and enable the 'code' shell command.")

        port = self._compose.ssh_port()
        user = user or self._default_user
        alias = host_alias or "localhost"
        if remote_dir is None:
            remote_dir = default_remote_dir(user)

        ensure_ssh_host(self._ssh_config, alias, port, user)
        require_tool("ssh", self._runner)

        if not remote_dir:
            raise InvalidArgumentError("remote directory is empty")

        mkdir = self._runner.run(
            [
                "ssh",
                "-p",
                str(port),
                *_NO_HOST_CHECK,
                f"{user}@{alias}",
                f"mkdir -p -- {quote_single(remote_dir)}",
            ],
            check=False,
        )
        if not mkdir.ok:
            raise CommandFailedError(
                f"failed to ensure remote directory exists: {remote_dir}",
                command=mkdir.args,
                returncode=mkdir.returncode,
                hint="Is the VM running and reachable over ssh? Try: devstation-kvm status",
            )

        logger.info(
            "Opening VS Code Remote-SSH: %s:%s with user %s in port %d ...",
            alias,
            remote_dir,
            user,
            port,
        )
        uri = f"vscode-remote://ssh-remote+{user}@{alias}:{port}{remote_dir}"
        return self._runner.run(["code", f"--folder-uri={uri}"], check=False).returncode

    # -- dispatch ------------------------------------------------------------

    def dispatch(self, command: str, args: Sequence[str] = ()) -> int:
        """Run *command* with its positional *args*, as given on the CLI."""
        if command in ("start", "stop", "status", "shell"):
            return getattr(self, command)()
        if command == "logs":
            return self.logs(args)
        if command == "vnc":
            return self.vnc()
        if command == "ssh":
            user = args[0] if args else None
            return self.ssh(user, args[1:])
        if command == "vscode":
            padded = [*args[:3], None, None, None]
            return self.vscode(padded[0], padded[1], padded[2])
        raise InvalidArgumentError(
            f"Unknown command: {command!r}",
            hint="Available commands: " + ", ".join(COMMANDS),
        )
