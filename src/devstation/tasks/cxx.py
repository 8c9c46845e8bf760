"""``devstation cxx`` — C/C++ toolchain, Qt5, xmake, vcpkg and conan."""

from __future__ import annotations

import logging

from devstation.core.text_edits import append_text, has_line, managed_block
from devstation.tasks.base import (
    Task,
    TaskContext,
    apt_install,
    apt_update,
    command_exists,
    done,
    step,
    tool_version,
    write_managed_block,
)
from devstation.tasks.pipx import resolve_pipx, write_pipx_env

logger = logging.getLogger(__name__)

TOOLCHAIN_PACKAGES: tuple[str, ...] = (
    "build-essential",
    "autoconf",
    "automake",
    "libtool",
    "make",
    "pkg-config",
    "g++",
    "bison",
    "flex",
    "git",
    "libssl-dev",
    "zlib1g-dev",
    "libcurl4-openssl-dev",
    "ninja-build",
    "cmake",
    "ca-certificates",
    "curl",
)

QT5_PACKAGES: tuple[str, ...] = (
    "qtbase5-dev",
    "qtchooser",
    "qt5-qmake",
    "qtbase5-dev-tools",
    "qml-module-qtquick-controls2",
    "qml-module-qtquick2",
    "qml-module-qtquick-layouts",
    "qml-module-qtquick-window2",
    "libqt5svg5-dev",
    "qml-module-qtmultimedia",
    "libqt5websockets5-dev",
    "libqt5serialport5-dev",
    "libqt5charts5-dev",
    "qml-module-qtlocation",
    "qml-module-qtgraphicaleffects",
    "qttools5-dev",
    "qttools5-dev-tools",
)

XMAKE_INSTALLER = "xmake-v3.0.0.gz.run"
XMAKE_PROFILE = (
    "# xmake environment (managed by initializer)\n"
    'if [ -z "${XMAKE_ROOT:-}" ]; then\n'
    "export XMAKE_ROOT=y\n"
    "fi\n"
)
VCPKG_REPO = "https://github.com/Microsoft/vcpkg.git"

_LEGACY_VCPKG_LINES: tuple[str, ...] = (
    r"^# vcpkg environment",
    r"^export VCPKG_ROOT=",
    r"^export PATH=.*VCPKG_ROOT",
)


def ensure_xmake_root(text: str) -> str:
    if has_line(text, r"^\s*export\s+XMAKE_ROOT=y\s*$"):
        return text
    return append_text(text, XMAKE_PROFILE)


class CxxTask(Task):
    name = "cxx"
    title = "C/C++ & Qt development environment"
    summary = "gcc/cmake/ninja, Qt5, xmake, vcpkg and conan"

    def run(self, ctx: TaskContext) -> None:
        if ctx.runner.is_root:
            logger.warning("running as a regular user is recommended (system packages use sudo)")

        self.install_toolchain(ctx)
        self.install_qt5(ctx)
        self.install_xmake(ctx)
        self.install_vcpkg(ctx)
        self.install_conan(ctx)
        done("C/C++ & Qt development environment installed")

    def install_toolchain(self, ctx: TaskContext) -> None:
        step("Install the C/C++ toolchain")
        apt_update(ctx)
        if not apt_install(ctx, *TOOLCHAIN_PACKAGES):
            logger.warning("build tools may not have installed completely")
        done("C/C++ toolchain installed")

    def install_qt5(self, ctx: TaskContext) -> None:
        step("Install Qt5 development packages")
        apt_update(ctx)
        if not apt_install(ctx, *QT5_PACKAGES):
            logger.warning("Qt5 packages may not have installed completely (Ubuntu releases differ)")
        done("Qt5 install finished")

    def install_xmake(self, ctx: TaskContext) -> None:
        step("Install xmake")
        if command_exists(ctx, "xmake"):
            logger.info("xmake already present: %s", tool_version(ctx, "xmake", "--version"))

        installer = ctx.settings.tools_dir / XMAKE_INSTALLER
        if not installer.is_file():
            logger.warning("xmake installer not found: %s", installer)
            return

        logger.info("Running the xmake installer %s", installer)
        ctx.runner.run(["chmod", "+x", str(installer)], check=False)
        if not ctx.runner.run([str(installer)], check=False).ok:
            logger.warning("xmake install failed")

        local_xmake = ctx.home / ".local" / "bin" / "xmake"
        if local_xmake.exists() or ctx.runner.dry_run:
            ctx.files.symlink(
                local_xmake,
                ctx.settings.sys_path("/usr/local/bin/xmake"),
                privileged=True,
            )
            done("xmake installed")
        else:
            logger.warning("%s not found, the install may be incomplete", local_xmake)

        profile = ctx.settings.sys_path("/etc/profile.d/xmake.sh")
        logger.info("Writing XMAKE_ROOT to %s", profile)
        ctx.files.edit(profile, ensure_xmake_root, privileged=True)
        ctx.runner.run(["chmod", "a+r", str(profile)], sudo=True, check=False)
        ctx.runner.set_env("XMAKE_ROOT", "y")

    def install_vcpkg(self, ctx: TaskContext) -> None:
        step("Install vcpkg")
        if not command_exists(ctx, "git"):
            logger.warning("git not found, installing it")
            apt_update(ctx)
            if not apt_install(ctx, "git"):
                logger.warning("git install failed")

        vcpkg_dir = ctx.home / ".vcpkg"
        if vcpkg_dir.is_dir():
            logger.info("vcpkg directory already exists: %s", vcpkg_dir)
        else:
            logger.info("Cloning vcpkg into %s", vcpkg_dir)
            if not ctx.runner.run(["git", "clone", VCPKG_REPO, str(vcpkg_dir)], check=False).ok:
                logger.warning("vcpkg clone failed")

        if not vcpkg_dir.is_dir() and not ctx.runner.dry_run:
            return

        if not ctx.runner.run(["./bootstrap-vcpkg.sh"], cwd=vcpkg_dir, check=False).ok:
            logger.warning("vcpkg bootstrap failed")

        block = managed_block(
            "vcpkg environment",
            [f'export VCPKG_ROOT="{vcpkg_dir}"', 'export PATH="$VCPKG_ROOT:$PATH"'],
        )
        write_managed_block(ctx, ctx.bashrc(), block, legacy=_LEGACY_VCPKG_LINES)
        ctx.runner.set_env("VCPKG_ROOT", str(vcpkg_dir))
        ctx.runner.prepend_path(vcpkg_dir)

        if (vcpkg_dir / "vcpkg").is_file():
            done("vcpkg installed; run 'source ~/.bashrc' to use it")

    def install_conan(self, ctx: TaskContext) -> None:
        step("Install conan")
        pipx = resolve_pipx(ctx)
        write_pipx_env(ctx)

        if not ctx.runner.run([*pipx, "install", "--force", "conan"], check=False).ok:
            logger.warning("conan install failed (pipx)")

        if command_exists(ctx, "conan"):
            done("conan installed")
        else:
            logger.warning("conan is not on PATH yet; open a new terminal or add ~/.local/bin to PATH")
