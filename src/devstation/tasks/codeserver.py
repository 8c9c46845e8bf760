"""``devstation codeserver`` — code-server as a per-user systemd service."""

from __future__ import annotations

import logging
import time
from pathlib import Path

import yaml

from devstation.tasks.base import (
    Task,
    TaskContext,
    command_exists,
    done,
    run_installer_script,
    step,
    tool_version,
)

logger = logging.getLogger(__name__)

INSTALLER_URL = "https://code-server.dev/install.sh"
STARTUP_WAIT_SECONDS = 2.0


def read_server_config(text: str) -> dict[str, str]:
    """Return ``bind-addr``, ``auth`` and ``password`` from a config.yaml.

    Missing keys are simply absent from the result.

    Raises
    ------
    yaml.YAMLError
        If *text* is not valid YAML.
    """
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        return {}
    return {
        key: str(data[key])
        for key in ("bind-addr", "auth", "password")
        if data.get(key) is not None
    }


class CodeServerTask(Task):
    name = "codeserver"
    title = "code-server"
    summary = "code-server with a systemd user service"

    def run(self, ctx: TaskContext) -> None:
        self.install(ctx)
        self.enable_service(ctx)
        self.report_config(ctx.home / ".config" / "code-server" / "config.yaml", ctx)

        done("code-server installed and configured")
        logger.info("URL: http://127.0.0.1:8080 (default)")
        logger.info("Status: systemctl status code-server@%s", ctx.username)
        logger.info("Settings: ~/.config/code-server/config.yaml (restart the service to apply)")

    def install(self, ctx: TaskContext) -> None:
        step("Install code-server")
        if command_exists(ctx, "code-server"):
            logger.info("code-server already installed: %s", tool_version(ctx, "code-server", "--version"))
            return
        run_installer_script(ctx, INSTALLER_URL)
        done("code-server installed")

    def enable_service(self, ctx: TaskContext) -> None:
        step("Enable the code-server service")
        ctx.runner.run(["systemctl", "enable", "--now", f"code-server@{ctx.username}"], sudo=True)
        done(f"code-server@{ctx.username} started and enabled at boot")

    def report_config(self, config_file: Path, ctx: TaskContext) -> None:
        if not ctx.runner.dry_run:
            # the service writes its config on first start
            time.sleep(STARTUP_WAIT_SECONDS)

        if not config_file.exists():
            logger.warning("config file not generated yet: %s", config_file)
            logger.info("run 'code-server' once by hand or check the service status")
            return

        logger.info("Config file: %s", config_file)
        try:
            values = read_server_config(ctx.files.read_text(config_file))
        except yaml.YAMLError as exc:
            logger.warning("could not parse %s: %s", config_file, exc)
            return

        for key in ("bind-addr", "auth", "password"):
            if key in values:
                logger.info("%s: %s", key, values[key])
