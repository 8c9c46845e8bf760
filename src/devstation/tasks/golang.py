"""``devstation golang`` — the latest official Go release under /usr/local/go."""

from __future__ import annotations

import logging
import platform
import tempfile
from pathlib import Path

from devstation.core.text_edits import managed_block
from devstation.core.versions import go_arch, is_go_version, parse_go_version
from devstation.exceptions import DownloadFailedError, EnvironmentCheckError
from devstation.infra.tool_detector import require_tool
from devstation.tasks.base import (
    Task,
    TaskContext,
    apt_install,
    apt_update,
    command_exists,
    done,
    download,
    fetch_text,
    step,
    tool_version,
    write_managed_block,
)

logger = logging.getLogger(__name__)

VERSION_URL = "https://go.dev/VERSION?m=text"
DOWNLOAD_URL = "https://go.dev/dl/{version}.linux-{arch}.tar.gz"

GO_BLOCK = managed_block(
    "go environment",
    [
        "export GOROOT=/usr/local/go",
        "export GOPATH=$HOME/go",
        "export PATH=$GOPATH/bin:$GOROOT/bin:$PATH",
    ],
    style="slash",
)


class GolangTask(Task):
    name = "golang"
    title = "Go development environment (official release)"
    summary = "latest Go toolchain in /usr/local/go"

    def run(self, ctx: TaskContext) -> None:
        step("Install Go (official release)")
        machine = platform.machine()
        arch = go_arch(machine)
        if arch is None:
            raise EnvironmentCheckError(f"unsupported architecture: {machine}")

        self.ensure_prerequisites(ctx)

        version = self.latest_version(ctx)
        goroot = ctx.settings.sys_path("/usr/local/go")
        current = ""
        if (goroot / "bin" / "go").exists():
            output = ctx.runner.run([str(goroot / "bin" / "go"), "version"], check=False, capture=True)
            current = parse_go_version(output.stdout)

        if current == version:
            logger.info("Go is already at the latest version %s, skipping the download", current)
        else:
            self.install_release(ctx, version, arch, goroot)

        gopath = ctx.home / "go"
        for sub in ("bin", "pkg", "src"):
            ctx.files.mkdir(gopath / sub)

        step("Write the Go environment to ~/.profile")
        write_managed_block(ctx, ctx.profile(), GO_BLOCK)
        done("~/.profile updated; run 'source ~/.profile' to use it in this terminal")

        ctx.runner.set_env("GOROOT", str(goroot))
        ctx.runner.set_env("GOPATH", str(gopath))
        ctx.runner.prepend_path(gopath / "bin", goroot / "bin")

        if not ctx.runner.dry_run:
            require_tool("go", ctx.runner, hint="Run 'source ~/.profile' or log in again.")
        logger.info("go version: %s", tool_version(ctx, "go", "version"))
        logger.info("GOROOT: %s", goroot)
        logger.info("GOPATH: %s", gopath)
        done("Go installed")

    def ensure_prerequisites(self, ctx: TaskContext) -> None:
        needed = [tool for tool in ("tar", "gzip") if not command_exists(ctx, tool)]
        if not command_exists(ctx, "curl") and not command_exists(ctx, "wget"):
            needed.append("curl")
        if needed:
            logger.info("Installing prerequisites: %s", " ".join(needed))
            apt_update(ctx)
            if not apt_install(ctx, *needed):
                logger.warning("prerequisite install may have failed: %s", " ".join(needed))

    def latest_version(self, ctx: TaskContext) -> str:
        lines = fetch_text(ctx, VERSION_URL).splitlines()
        version = lines[0].strip() if lines else ""
        if not is_go_version(version):
            raise DownloadFailedError(
                f"unexpected Go version string: {version!r}",
                hint=f"Check that {VERSION_URL} is reachable.",
            )
        return version

    def install_release(self, ctx: TaskContext, version: str, arch: str, goroot: Path) -> None:
        url = DOWNLOAD_URL.format(version=version, arch=arch)
        with tempfile.TemporaryDirectory(prefix="devstation-") as workdir:
            tarball = Path(workdir) / f"{version}.linux-{arch}.tar.gz"
            if not download(ctx, url, tarball):
                raise DownloadFailedError(
                    f"download failed or empty: {url}",
                    hint="Check the network connection and retry.",
                )

            logger.info("Installing into %s (replacing any previous version)", goroot)
            ctx.files.remove(goroot, privileged=True)
            ctx.runner.run(["tar", "-C", str(goroot.parent), "-xzf", str(tarball)], sudo=True)
