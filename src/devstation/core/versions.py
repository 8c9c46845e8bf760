"""Pure version parsing and comparison helpers."""

from __future__ import annotations

import re

GO_VERSION_RE = re.compile(r"^go\d+\.\d+(\.\d+)?$")

_GO_ARCHES: dict[str, str] = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
}


def _numeric_parts(version: str) -> tuple[int, ...]:
    parts: list[int] = []
    for piece in re.split(r"[.\-+]", version.strip()):
        match = re.match(r"\d+", piece)
        if match is None:
            break
        parts.append(int(match.group()))
    return tuple(parts)


def version_ge(installed: str, required: str) -> bool:
    """Return ``installed >= required`` comparing numeric components.

    Missing components count as zero, so ``"8.9" >= "8.9.0"``.
    """
    left = _numeric_parts(installed)
    right = _numeric_parts(required)
    width = max(len(left), len(right))
    return left + (0,) * (width - len(left)) >= right + (0,) * (width - len(right))


def go_arch(machine: str) -> str | None:
    """Map ``platform.machine()`` output to a Go download architecture."""
    return _GO_ARCHES.get(machine.lower())


def is_go_version(text: str) -> bool:
    return GO_VERSION_RE.match(text) is not None


def parse_go_version(output: str) -> str:
    """Extract ``go1.x.y`` from ``go version`` output, or ``""``."""
    fields = output.split()
    return fields[2] if len(fields) >= 3 else ""


def parse_gradle_version(output: str) -> str:
    """Extract the version from ``gradle -v`` output, or ``""``."""
    for line in output.splitlines():
        fields = line.split()
        if len(fields) >= 2 and fields[0] == "Gradle":
            return fields[1]
    return ""


def parse_java_major(output: str) -> int | None:
    """Extract the major version from ``java -version`` output.

    Handles both ``"17.0.9"`` and legacy ``"1.8.0_392"`` forms.
    """
    match = re.search(r'"(\d+)(?:\.(\d+))?', output)
    if match is None:
        return None
    major = int(match.group(1))
    if major == 1 and match.group(2) is not None:
        return int(match.group(2))
    return major
