"""``devstation java`` — OpenJDK 17, Maven and Gradle with mirror settings."""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path

from devstation.core.versions import parse_gradle_version, parse_java_major, version_ge
from devstation.exceptions import EnvironmentCheckError
from devstation.tasks.base import (
    APT_GET,
    Task,
    TaskContext,
    apt_install,
    apt_update,
    command_exists,
    done,
    download,
    step,
)

logger = logging.getLogger(__name__)

JAVA_MAJOR = 17
GRADLE_FALLBACK_URL = "https://services.gradle.org/distributions"


def find_java_home(jvm_root: Path) -> Path | None:
    """Locate the Java 17 installation below ``/usr/lib/jvm``."""
    for name in ("java-17-openjdk-amd64", "java-17-openjdk"):
        if (jvm_root / name).is_dir():
            return jvm_root / name
    if not jvm_root.is_dir():
        return None
    for candidate in sorted(jvm_root.iterdir()):
        if candidate.is_dir() and ("java-17" in candidate.name or "java-1.17" in candidate.name):
            return candidate
    return None


def render_maven_settings(mirror: str) -> str:
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<settings xmlns="http://maven.apache.org/SETTINGS/1.0.0"
          xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance"
          xsi:schemaLocation="http://maven.apache.org/SETTINGS/1.0.0
          http://maven.apache.org/xsd/settings-1.0.0.xsd">
  <mirrors>
    <mirror>
      <id>aliyunmaven</id>
      <mirrorOf>*</mirrorOf>
      <name>Aliyun public repository</name>
      <url>{mirror}</url>
    </mirror>
  </mirrors>
</settings>
"""


def render_gradle_init(repo_base: str) -> str:
    """Point every project at the mirror's public, spring, google and plugin repos."""
    base = repo_base.rstrip("/")
    repos = "".join(
        f"        maven {{ url '{base}/{name}/' }}\n"
        for name in ("public", "spring", "google", "gradle-plugin", "spring-plugin")
    )
    return (
        "allprojects {\n"
        "    repositories {\n"
        f"{repos}"
        "        mavenCentral()\n"
        "        gradlePluginPortal()\n"
        "    }\n"
        "}\n"
    )


class JavaTask(Task):
    name = "java"
    title = "Java development environment (OpenJDK 17)"
    summary = "OpenJDK 17, Maven and Gradle"

    def run(self, ctx: TaskContext) -> None:
        if ctx.runner.is_root:
            logger.warning("running as a regular user is recommended (system packages use sudo)")

        self.install_openjdk(ctx)
        self.install_maven(ctx)
        self.install_gradle(ctx)
        self.print_versions(ctx)
        done("Java development environment installed")

    def install_openjdk(self, ctx: TaskContext) -> None:
        step("Install OpenJDK 17")
        apt_update(ctx)

        logger.info("Removing OpenJDK 8 if present")
        ctx.runner.run([*APT_GET, "remove", "-y", "--purge", "openjdk-8-*"], sudo=True, check=False)

        if not apt_install(ctx, "openjdk-17-jdk"):
            logger.error("OpenJDK 17 install failed")

        jvm_root = ctx.settings.sys_path("/usr/lib/jvm")
        java_home = find_java_home(jvm_root)
        if java_home is None:
            if not ctx.runner.dry_run:
                raise EnvironmentCheckError(
                    f"cannot find a Java 17 installation under {jvm_root}",
                    hint="Check the output of 'apt-get install openjdk-17-jdk'.",
                )
            java_home = jvm_root / "java-17-openjdk-amd64"
        logger.info("Java 17 home: %s", java_home)

        if (java_home / "bin" / "java").exists():
            probe = ctx.runner.run(["java", "-version"], check=False, capture=True)
            if parse_java_major(probe.stderr + probe.stdout) != JAVA_MAJOR:
                logger.info("Switching update-alternatives to Java 17")
                for tool in ("java", "javac"):
                    binary = str(java_home / "bin" / tool)
                    link = str(ctx.settings.sys_path(f"/usr/bin/{tool}"))
                    run = ctx.runner.run
                    run(["update-alternatives", "--install", link, tool, binary, "1"], sudo=True, check=False)
                    run(["update-alternatives", "--set", tool, binary], sudo=True, check=False)

        profile = ctx.settings.sys_path("/etc/profile.d/java.sh")
        logger.info("Writing the Java environment to %s", profile)
        ctx.files.write_text(
            profile,
            "# Java environment (managed by initializer)\n"
            f'export JAVA_HOME="{java_home}"\n'
            'export PATH="$JAVA_HOME/bin:$PATH"\n',
            privileged=True,
            mode=0o644,
        )
        ctx.runner.set_env("JAVA_HOME", str(java_home))
        ctx.runner.prepend_path(java_home / "bin")
        done("OpenJDK 17 installed and JAVA_HOME configured")

    def install_maven(self, ctx: TaskContext) -> None:
        step("Install Maven")
        apt_update(ctx)
        if not apt_install(ctx, "maven"):
            logger.warning("Maven install failed")

        logger.info("Configuring the Maven mirror")
        ctx.files.write_text(
            ctx.home / ".m2" / "settings.xml",
            render_maven_settings(ctx.settings.maven_mirror),
        )
        done("Maven configured")

    def installed_gradle_version(self, ctx: TaskContext) -> str:
        if not command_exists(ctx, "gradle"):
            return ""
        output = ctx.runner.run(["gradle", "-v"], check=False, capture=True).stdout
        return parse_gradle_version(output)

    def install_gradle(self, ctx: TaskContext) -> None:
        step("Check and install Gradle")
        required = ctx.settings.gradle_version
        installed = self.installed_gradle_version(ctx)

        if installed and version_ge(installed, required):
            logger.info("Gradle %s already satisfies >= %s, skipping", installed, required)
        else:
            self._download_gradle(ctx, required)

        logger.info("Configuring the Gradle mirror")
        ctx.files.write_text(
            ctx.home / ".gradle" / "init.gradle",
            render_gradle_init(ctx.settings.gradle_repo_base),
        )
        done("Gradle configured")

    def _download_gradle(self, ctx: TaskContext, version: str) -> None:
        apt_update(ctx)
        if not apt_install(ctx, "unzip"):
            logger.warning("unzip install failed")

        zip_name = f"gradle-{version}-bin.zip"
        urls = (
            f"{ctx.settings.gradle_mirror.rstrip('/')}/{zip_name}",
            f"{GRADLE_FALLBACK_URL}/{zip_name}",
        )
        opt = ctx.settings.sys_path("/opt")
        logger.info("Installing Gradle %s", version)

        with tempfile.TemporaryDirectory(prefix="devstation-") as workdir:
            archive = Path(workdir) / zip_name
            if not any(download(ctx, url, archive) for url in urls):
                logger.warning("Gradle download failed, skipping the install")
                return
            if not ctx.runner.run(["unzip", "-q", "-o", "-d", str(opt), str(archive)], sudo=True, check=False).ok:
                logger.warning("Gradle extraction failed, skipping the install")
                return

        ctx.files.symlink(
            opt / f"gradle-{version}" / "bin" / "gradle",
            ctx.settings.sys_path("/usr/local/bin/gradle"),
            privileged=True,
        )

        installed = self.installed_gradle_version(ctx)
        if installed and version_ge(installed, version):
            done(f"Gradle {installed} installed")
        elif command_exists(ctx, "gradle"):
            logger.warning("Gradle version check failed after install (found: %s)", installed or "unknown")
        else:
            logger.warning("Gradle is not available after install")

    def print_versions(self, ctx: TaskContext) -> None:
        step("Java/Maven/Gradle versions")
        for tool, args in (
            ("java", ["java", "-version"]),
            ("mvn", ["mvn", "-version"]),
            ("gradle", ["gradle", "-version"]),
        ):
            if command_exists(ctx, tool):
                ctx.runner.run(args, check=False)
            else:
                logger.warning("%s is not installed correctly", tool)
