"""``devstation init`` — base system initialisation.

Runs as the invoking (non-root) user and escalates each privileged step
with ``sudo``.  The steps, in order:

1. resolve and validate the target account;
2. group membership and password-less sudo;
3. switch off unattended APT activity so later steps never wait on the
   dpkg lock;
4. point APT at the configured mirror;
5. base packages and ``updatedb`` pruning;
6. Python, the pip mirror and the automation packages;
7. bundled ``yq`` and ``gum``;
8. OpenSSH server configuration;
9. the UFW firewall.
"""

from __future__ import annotations

import logging
import pwd
from functools import partial
from pathlib import Path
from urllib.parse import urlparse

from devstation.config import Settings
from devstation.core.credentials import first_non_empty
from devstation.core.text_edits import (
    disable_exec_lines,
    ensure_prune_paths,
    rewrite_deb822_uris,
    rewrite_legacy_sources,
    set_sshd_option,
)
from devstation.exceptions import UserNotFoundError
from devstation.tasks.base import (
    APT_GET,
    Task,
    TaskContext,
    apt_install,
    apt_update,
    command_exists,
    done,
    package_installed,
    step,
    user_groups,
)

logger = logging.getLogger(__name__)

ADMIN_GROUPS: tuple[str, ...] = ("adm", "users", "sudo")

BASE_PACKAGES: tuple[str, ...] = (
    "build-essential",
    "tar",
    "python3",
    "python3-pip",
    "python3-venv",
    "unzip",
    "xz-utils",
    "zip",
    "jq",
    "coreutils",
    "curl",
    "gzip",
    "qrencode",
    "wget",
    "lsof",
    "ca-certificates",
    "software-properties-common",
    "git",
    "gnupg",
)

PYTHON_PACKAGES: tuple[str, ...] = ("ansible", "jmespath", "dnspython", "docker", "jinja2-cli")

APT_DAILY_UNITS: tuple[str, ...] = (
    "apt-daily.service",
    "apt-daily-upgrade.service",
    "apt-daily.timer",
    "apt-daily-upgrade.timer",
)
APT_NEWS_UNITS: tuple[str, ...] = ("apt-news.timer", "apt-news.service")

AUTO_UPGRADES = (
    'APT::Periodic::Update-Package-Lists "0";\n'
    'APT::Periodic::Unattended-Upgrade "0";\n'
)
PERIODIC = (
    'APT::Periodic::Enable "0";\n'
    'APT::Periodic::Update-Package-Lists "0";\n'
    'APT::Periodic::Download-Upgradeable-Packages "0";\n'
    'APT::Periodic::AutocleanInterval "0";\n'
)

SSHD_OPTIONS: tuple[tuple[str, str], ...] = (
    ("PermitRootLogin", "yes"),
    ("PasswordAuthentication", "yes"),
    ("PubkeyAuthentication", "yes"),
    ("AuthorizedKeysFile", ".ssh/authorized_keys"),
)

VENV_DIR = "/opt/initializer-venv"

_EXTERNALLY_MANAGED_PROBE = (
    "import os, sysconfig; "
    "print(os.path.join(sysconfig.get_path('stdlib'), 'EXTERNALLY-MANAGED'))"
)


def render_pip_conf(settings: Settings) -> str:
    return (
        "[global]\n"
        f"index-url={settings.pypi_index}\n"
        "disable-pip-version-check=true\n"
        "timeout=120\n"
        "\n"
        "[install]\n"
        f"trusted-host={settings.pypi_trusted_host}\n"
    )


def resolve_target_user(ctx: TaskContext) -> str:
    """``--user`` > ``INIT_USERNAME`` > ``USERNAME`` > the invoking user."""
    return first_non_empty(
        ctx.requested_user,
        ctx.environ.get("INIT_USERNAME"),
        ctx.environ.get("USERNAME"),
        ctx.username,
    )


def lookup_home(username: str) -> Path:
    """Return the account's home directory.

    Raises
    ------
    UserNotFoundError
        If the account does not exist.
    """
    try:
        entry = pwd.getpwnam(username)
    except KeyError as exc:
        raise UserNotFoundError(
            f"user does not exist: {username}",
            hint="Pass an existing account with --user.",
        ) from exc
    return Path(entry.pw_dir)


class SystemInitTask(Task):
    name = "init"
    title = "System base initialisation"
    summary = "APT/pip mirrors, base packages, Python, SSH and UFW"

    def run(self, ctx: TaskContext) -> None:
        username = resolve_target_user(ctx)
        user_home = lookup_home(username)
        logger.info("Initialising the system for user %s", username)

        self.configure_user_privileges(ctx, username)
        self.disable_automatic_updates(ctx)
        self.setup_repositories(ctx)
        self.install_basic_packages(ctx)
        self.setup_python(ctx, username, user_home)
        self.install_yq(ctx)
        self.install_gum(ctx)
        self.setup_ssh(ctx)
        self.setup_firewall(ctx)

        done("Initialisation complete")

    # ------------------------------------------------------------------

    def configure_user_privileges(self, ctx: TaskContext, username: str) -> None:
        step("Configure groups and sudo")

        groups = user_groups(ctx, username)
        for group in ADMIN_GROUPS:
            if group in groups:
                continue
            logger.info("Adding %s to the %s group", username, group)
            if not ctx.runner.run(["usermod", "-aG", group, username], sudo=True, check=False).ok:
                logger.warning("could not add %s to %s", username, group)

        sudoers = ctx.settings.sys_path(f"/etc/sudoers.d/{username}")
        logger.info("Granting password-less sudo in %s", sudoers)
        ctx.files.write_text(
            sudoers,
            f"{username} ALL=(ALL) NOPASSWD: ALL\n",
            privileged=True,
            mode=0o440,
        )

        if ctx.runner.run(["visudo", "-c"], sudo=True, check=False, capture=True).ok:
            done("sudoers configuration is valid")
        else:
            logger.error("sudoers validation failed, check %s", sudoers)

    def disable_automatic_updates(self, ctx: TaskContext) -> None:
        step("Disable automatic APT updates")
        run = partial(ctx.runner.run, sudo=True, check=False)

        listing = ctx.runner.run(
            ["systemctl", "list-unit-files"], check=False, capture=True
        ).stdout
        listed = {line.split()[0] for line in listing.splitlines() if line.strip()}
        for unit in APT_DAILY_UNITS:
            if unit not in listed:
                continue
            run(["systemctl", "stop", unit])
            run(["systemctl", "disable", unit])
            if unit.endswith(".service"):
                run(["systemctl", "mask", unit])

        for unit in APT_NEWS_UNITS:
            run(["systemctl", "stop", unit])
            run(["systemctl", "disable", unit])
            run(["systemctl", "mask", unit])

        run(["systemctl", "daemon-reload"])
        run(["systemctl", "reset-failed"])

        conf_dir = ctx.settings.sys_path("/etc/apt/apt.conf.d")
        ctx.files.write_text(conf_dir / "20auto-upgrades", AUTO_UPGRADES, privileged=True)
        ctx.files.write_text(conf_dir / "10periodic", PERIODIC, privileged=True)

        if package_installed(ctx, "unattended-upgrades"):
            run(["systemctl", "stop", "unattended-upgrades"])
            run(["systemctl", "disable", "unattended-upgrades"])

        apt_compat = ctx.settings.sys_path("/etc/cron.daily/apt-compat")
        if apt_compat.exists():
            ctx.files.edit(apt_compat, disable_exec_lines, privileged=True)
            run(["chmod", "-x", str(apt_compat)])

        done("Automatic APT updates disabled")

    def setup_repositories(self, ctx: TaskContext) -> None:
        step("Configure APT mirrors")
        settings = ctx.settings
        deb822 = settings.sys_path("/etc/apt/sources.list.d/ubuntu.sources")
        legacy = settings.sys_path("/etc/apt/sources.list")

        if deb822.exists():
            logger.info("Found deb822 sources: %s", deb822)
            ctx.files.backup_once(deb822, ".backup", privileged=True)
            ctx.files.edit(
                deb822,
                lambda text: rewrite_deb822_uris(text, settings.apt_mirror),
                privileged=True,
            )
            mirror_host = urlparse(settings.apt_mirror).hostname or settings.apt_mirror
            if mirror_host in ctx.files.read_text(deb822) or ctx.runner.dry_run:
                done(f"deb822 sources now use {mirror_host}")
            else:
                logger.warning("deb822 mirror rewrite may have failed (no URIs line matched)")
        else:
            logger.info("No deb822 sources file, trying the legacy sources.list")

        if legacy.exists():
            ctx.files.backup_once(legacy, ".backup", privileged=True)
            ctx.files.edit(
                legacy,
                lambda text: rewrite_legacy_sources(text, settings.apt_mirror_root),
                privileged=True,
            )

        if not apt_update(ctx):
            logger.error("apt source update failed")
        done("APT sources configured")

    def install_basic_packages(self, ctx: TaskContext) -> None:
        step("Install base packages")
        apt_update(ctx)
        if not apt_install(ctx, *BASE_PACKAGES):
            logger.warning("some base packages failed to install")

        if not command_exists(ctx, "updatedb"):
            if not apt_install(ctx, "plocate"):
                apt_install(ctx, "mlocate")

        updatedb_conf = ctx.settings.sys_path("/etc/updatedb.conf")
        ctx.files.edit(updatedb_conf, ensure_prune_paths, privileged=True, mode=0o644)

        if not ctx.runner.run(["updatedb"], sudo=True, check=False).ok:
            logger.warning("updatedb failed")
        done("Base packages installed")

    def setup_python(self, ctx: TaskContext, username: str, user_home: Path) -> None:
        step("Configure Python")
        settings = ctx.settings

        if not apt_install(ctx, "python3", "python3-dev", "python3-pip"):
            logger.warning("Python 3 install failed, using the system default")

        pip_conf = render_pip_conf(settings)
        ctx.files.write_text(settings.sys_path("/root/.pip/pip.conf"), pip_conf, privileged=True)
        if username != "root":
            ctx.files.write_text(user_home / ".pip" / "pip.conf", pip_conf, privileged=True)
            ctx.files.chown(user_home / ".pip", username, recursive=True)

        mirror_args = [
            "install",
            "-U",
            "-i",
            settings.pypi_index,
            "--trusted-host",
            settings.pypi_trusted_host,
            "--no-input",
        ]

        if self._externally_managed(ctx):
            venv = settings.sys_path(VENV_DIR)
            logger.info("PEP 668 managed interpreter, using the virtualenv %s", venv)
            apt_install(ctx, "python3-venv")
            if not venv.is_dir():
                ctx.runner.run(["python3", "-m", "venv", str(venv)], sudo=True)
            pip = [str(venv / "bin" / "pip")]
            ctx.files.write_text(
                settings.sys_path("/etc/profile.d/initializer_python.sh"),
                "# initializer python venv\n"
                f'if [ -d "{venv}" ]; then\n'
                f'    export PATH="{venv}/bin:$PATH"\n'
                "fi\n",
                privileged=True,
                mode=0o644,
            )
        else:
            logger.info("Interpreter is not externally managed, upgrading the system pip")
            pip = ["python3", "-m", "pip"]

        if not ctx.runner.run(
            [*pip, *mirror_args, "--upgrade", "pip", "wheel", "setuptools"],
            sudo=True,
            check=False,
        ).ok:
            logger.warning("pip/wheel/setuptools upgrade partly failed")

        if not ctx.runner.run([*pip, *mirror_args, *PYTHON_PACKAGES], sudo=True, check=False).ok:
            logger.warning("some Python packages failed to install")
        done("Python configured")

    @staticmethod
    def _externally_managed(ctx: TaskContext) -> bool:
        probe = ctx.runner.run(
            ["python3", "-c", _EXTERNALLY_MANAGED_PROBE],
            check=False,
            capture=True,
        )
        marker = probe.first_line
        return probe.ok and bool(marker) and Path(marker).is_file()

    def install_yq(self, ctx: TaskContext) -> None:
        step("Install yq")
        if command_exists(ctx, "yq"):
            logger.info("yq already installed, skipping")
            return

        binary = ctx.settings.tools_dir / "yq_linux_amd64"
        if not binary.is_file():
            logger.warning("yq binary not found: %s, skipping", binary)
            return

        target = ctx.settings.sys_path("/usr/local/bin/yq")
        if ctx.runner.run(["install", "-m", "0755", str(binary), str(target)], sudo=True, check=False).ok:
            done("yq installed")
        else:
            logger.warning("yq install failed")

    def install_gum(self, ctx: TaskContext) -> None:
        step("Install gum")
        package = ctx.settings.tools_dir / "gum_0.16.0_amd64.deb"
        if not package.is_file():
            logger.warning("gum package not found: %s", package)
            return

        if not ctx.runner.run(["dpkg", "-i", str(package)], sudo=True, check=False).ok:
            ctx.runner.run([*APT_GET, "install", "-f", "-y"], sudo=True, check=False)
        if command_exists(ctx, "gum"):
            done("gum installed")
        else:
            logger.warning("gum install may have failed")

    def setup_ssh(self, ctx: TaskContext) -> None:
        step("Configure the SSH server")
        if package_installed(ctx, "openssh-server"):
            logger.info("OpenSSH server already installed")
        elif not apt_install(ctx, "openssh-server"):
            logger.error("OpenSSH server install failed")

        sshd_config = ctx.settings.sys_path("/etc/ssh/sshd_config")
        ctx.files.backup_once(sshd_config, ".bak", privileged=True)

        def apply_options(text: str) -> str:
            for param, value in SSHD_OPTIONS:
                text = set_sshd_option(text, param, value)
            return text

        ctx.files.edit(sshd_config, apply_options, privileged=True)

        run = partial(ctx.runner.run, sudo=True, check=False)
        run(["systemctl", "enable", "ssh"])
        run(["systemctl", "restart", "ssh"])
        if run(["systemctl", "is-active", "--quiet", "ssh"]).ok:
            done("SSH service is running")
        else:
            logger.error("SSH service failed to start")

    def setup_firewall(self, ctx: TaskContext) -> None:
        step("Configure the firewall")
        if not command_exists(ctx, "ufw") and not apt_install(ctx, "ufw"):
            logger.warning("UFW install failed")

        if not command_exists(ctx, "ufw"):
            logger.warning("UFW unavailable, skipping firewall configuration")
            return

        run = partial(ctx.runner.run, sudo=True, check=False)
        if not run(["ufw", "allow", "OpenSSH"]).ok:
            run(["ufw", "allow", "ssh"])
        run(["ufw", "--force", "enable"])
        run(["ufw", "status", "verbose"])
        done("UFW configured")
