"""``devstation docker`` — Docker Engine from the upstream APT repository."""

from __future__ import annotations

import json
import logging
import tempfile
from datetime import datetime
from pathlib import Path

from devstation.exceptions import DownloadFailedError
from devstation.tasks.base import (
    Task,
    TaskContext,
    apt_install,
    apt_update,
    command_exists,
    done,
    download,
    step,
    tool_version,
    user_groups,
)

logger = logging.getLogger(__name__)

DOCKER_GPG_URL = "https://download.docker.com/linux/ubuntu/gpg"
DOCKER_REPO_URL = "https://download.docker.com/linux/ubuntu"
DOCKER_KEY_ID = "7EA0A9C3F273FCD8"

PREREQUISITES: tuple[str, ...] = ("ca-certificates", "curl", "gnupg", "lsb-release")
ENGINE_PACKAGES: tuple[str, ...] = (
    "docker-ce",
    "docker-ce-cli",
    "containerd.io",
    "docker-buildx-plugin",
    "docker-compose-plugin",
)


def render_daemon_config(insecure_registries: tuple[str, ...]) -> str:
    config = {
        "insecure-registries": list(insecure_registries),
        "registry-mirrors": [],
        "log-driver": "json-file",
        "log-opts": {"max-size": "10m", "max-file": "3"},
    }
    return json.dumps(config, indent=2) + "\n"


class DockerTask(Task):
    name = "docker"
    title = "Docker"
    summary = "Docker Engine, compose plugin and daemon.json"

    def run(self, ctx: TaskContext) -> None:
        self.install_engine(ctx)
        self.configure_daemon(ctx)
        self.add_user_to_group(ctx)
        self.start_service(ctx)
        self.verify(ctx)
        logger.info("If docker is not usable yet, log in again or run 'newgrp docker'")

    def install_engine(self, ctx: TaskContext) -> None:
        step("Install Docker")
        if command_exists(ctx, "docker"):
            logger.info("Docker already installed: %s", tool_version(ctx, "docker", "--version"))
            return

        settings = ctx.settings
        sources_dir = settings.sys_path("/etc/apt/sources.list.d")
        if (sources_dir / "ubuntu.sources.backup").exists():
            logger.warning(
                "%s is ignored by apt; delete it if it is no longer needed",
                sources_dir / "ubuntu.sources.backup",
            )

        repo_file = sources_dir / "docker.list"
        if repo_file.exists():
            logger.warning("Removing the existing Docker source list to avoid conflicts")
            ctx.files.remove(repo_file, privileged=True)

        apt_update(ctx, check=True)
        apt_install(ctx, *PREREQUISITES, check=True)

        keyrings = settings.sys_path("/etc/apt/keyrings")
        keyring = keyrings / "docker.gpg"
        logger.info("Refreshing the Docker GPG key")
        ctx.files.mkdir(keyrings, privileged=True, mode=0o755)
        ctx.files.remove(keyring, privileged=True)
        with tempfile.TemporaryDirectory(prefix="devstation-") as workdir:
            armored = Path(workdir) / "docker.asc"
            if not download(ctx, DOCKER_GPG_URL, armored):
                raise DownloadFailedError(
                    "could not download the Docker GPG key",
                    hint="Check the network connection and retry.",
                )
            ctx.runner.run(["gpg", "--dearmor", "-o", str(keyring), str(armored)], sudo=True)
        ctx.runner.run(["chmod", "a+r", str(keyring)], sudo=True)

        arch = ctx.runner.run(["dpkg", "--print-architecture"], capture=True).first_line
        codename = ctx.runner.run(["lsb_release", "-cs"], capture=True).first_line
        logger.info("Writing the Docker source list")
        ctx.files.write_text(
            repo_file,
            f"deb [arch={arch} signed-by={keyring}] {DOCKER_REPO_URL} {codename} stable\n",
            privileged=True,
        )

        keys = ctx.runner.run(
            ["gpg", "--show-keys", "--keyid-format=long", str(keyring)],
            check=False,
            capture=True,
        )
        if not ctx.runner.dry_run and DOCKER_KEY_ID not in keys.stdout:
            raise DownloadFailedError(
                "Docker GPG key verification failed.",
                hint="Check the network, or fetch the key manually and retry.",
            )

        apt_update(ctx, check=True)
        apt_install(ctx, *ENGINE_PACKAGES, check=True)
        done(f"Docker installed: {tool_version(ctx, 'docker', '--version')}")

    def configure_daemon(self, ctx: TaskContext) -> None:
        step("Configure Docker")
        daemon_json = ctx.settings.sys_path("/etc/docker/daemon.json")
        if daemon_json.exists():
            stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            backup = daemon_json.with_name(f"{daemon_json.name}.backup.{stamp}")
            logger.info("Backing up the current configuration to %s", backup)
            ctx.files.copy(daemon_json, backup, privileged=True)

        ctx.files.write_text(
            daemon_json,
            render_daemon_config(ctx.settings.docker_insecure_registries),
            privileged=True,
        )
        done(f"Docker configuration written: {daemon_json}")

    def add_user_to_group(self, ctx: TaskContext) -> None:
        step("Add the user to the docker group")
        if "docker" in user_groups(ctx, ctx.username):
            logger.info("%s is already in the docker group", ctx.username)
            return

        ctx.runner.run(["usermod", "-aG", "docker", ctx.username], sudo=True)
        done(f"{ctx.username} added to the docker group")
        logger.warning("log in again or run 'newgrp docker' for the group to take effect")

    def start_service(self, ctx: TaskContext) -> None:
        step("Start the Docker service")
        for action in ("daemon-reload", "restart docker", "enable docker"):
            ctx.runner.run(["systemctl", *action.split()], sudo=True)
        done("Docker service started and enabled at boot")

    def verify(self, ctx: TaskContext) -> None:
        step("Verify Docker")
        logger.info("docker: %s", tool_version(ctx, "docker", "--version"))
        logger.info("compose: %s", tool_version(ctx, "docker", "compose", "version"))
        ctx.runner.run(["systemctl", "status", "docker", "--no-pager"], sudo=True, check=False)
        logger.info(
            "daemon.json:\n%s",
            ctx.files.read_text(ctx.settings.sys_path("/etc/docker/daemon.json")),
        )
        done("Docker installation verified")
