"""Runtime settings for devstation.

Every value has a sensible default and may be overridden through a
``DEVSTATION_*`` environment variable.  Settings are read once per CLI
invocation by :meth:`Settings.from_env` and passed down explicitly —
no module reads the environment on its own.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path

ENV_PREFIX = "DEVSTATION_"

_TRUTHY = frozenset({"1", "true", "yes", "on"})


def _project_root() -> Path:
    """Directory holding ``assets/`` and ``kvm/`` (the working directory)."""
    return Path.cwd()


@dataclass(frozen=True, slots=True)
class Settings:
    """Resolved configuration for one devstation run."""

    # --- Mirrors -----------------------------------------------------------
    apt_mirror: str = "https://mirrors.aliyun.com/ubuntu"
    """Replacement for ``http://<host>/ubuntu`` in deb822 sources."""

    apt_mirror_root: str = "https://mirrors.aliyun.com"
    """Replacement host for legacy ``sources.list`` entries."""

    pypi_index: str = "https://mirrors.aliyun.com/pypi/simple/"
    pypi_trusted_host: str = "mirrors.aliyun.com"
    npm_registry: str = "https://registry.npmmirror.com"
    maven_mirror: str = "https://maven.aliyun.com/repository/public"
    gradle_repo_base: str = "https://maven.aliyun.com/repository"
    """Parent of the public, spring, google and plugin repositories that
    ``~/.gradle/init.gradle`` points at."""

    gradle_mirror: str = "https://mirrors.cloud.tencent.com/gradle"

    # --- Toolchain versions ------------------------------------------------
    node_version: str = "22.18.0"
    gradle_version: str = "8.9"

    # --- AI assistants -----------------------------------------------------
    openai_base_url: str = "https://api.aicodemirror.com/api/codex/backend-api/codex"
    gemini_base_url: str = "https://api.aicodemirror.com/api/gemini"
    anthropic_base_url: str = "https://api.aicodemirror.com/api/claudecode"
    codex_model: str = "gpt-5.2"

    # --- Docker ------------------------------------------------------------
    docker_insecure_registries: tuple[str, ...] = (
        "127.0.0.1:5000",
        "core.yuhuans.cn:5000",
    )

    # --- Paths -------------------------------------------------------------
    assets_dir: Path = field(default_factory=lambda: _project_root() / "assets")
    kvm_dir: Path = field(default_factory=lambda: _project_root() / "kvm" / "ubuntu")
    home: Path = field(default_factory=Path.home)
    system_root: Path = Path("/")
    """Prefix for absolute system paths such as ``/etc``.  Tests point it
    at a temporary directory."""

    # --- Behaviour ---------------------------------------------------------
    vm_user: str = "virtualink"
    dry_run: bool = False

    @property
    def tools_dir(self) -> Path:
        return self.assets_dir / "tools"

    def sys_path(self, absolute: str) -> Path:
        """Map an absolute system path onto :attr:`system_root`."""
        return self.system_root / absolute.lstrip("/")

    def with_overrides(self, **changes: object) -> Settings:
        return replace(self, **changes)  # type: ignore[arg-type]

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from defaults plus ``DEVSTATION_*`` overrides."""
        env = os.environ if environ is None else environ
        defaults = cls()
        overrides: dict[str, object] = {}

        for name in (
            "apt_mirror",
            "apt_mirror_root",
            "pypi_index",
            "pypi_trusted_host",
            "npm_registry",
            "maven_mirror",
            "gradle_repo_base",
            "gradle_mirror",
            "node_version",
            "gradle_version",
            "openai_base_url",
            "gemini_base_url",
            "anthropic_base_url",
            "codex_model",
            "vm_user",
        ):
            value = env.get(ENV_PREFIX + name.upper())
            if value:
                overrides[name] = value.strip()

        for name in ("assets_dir", "kvm_dir", "home", "system_root"):
            value = env.get(ENV_PREFIX + name.upper())
            if value:
                overrides[name] = Path(value).expanduser()

        registries = env.get(ENV_PREFIX + "DOCKER_INSECURE_REGISTRIES")
        if registries is not None:
            overrides["docker_insecure_registries"] = tuple(
                item.strip() for item in registries.split(",") if item.strip()
            )

        dry_run = env.get(ENV_PREFIX + "DRY_RUN")
        if dry_run is not None:
            overrides["dry_run"] = dry_run.strip().lower() in _TRUTHY

        return replace(defaults, **overrides)  # type: ignore[arg-type]
