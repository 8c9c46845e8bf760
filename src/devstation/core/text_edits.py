"""Pure text transforms for system and shell configuration files.

Every function in this module is a **pure** transformation: text in,
text out.  No I/O, no side effects, fully deterministic.  The task layer
reads a file, runs one of these, and writes the result back, which keeps
each edit idempotent and trivially unit-testable.
"""

from __future__ import annotations

import re
import shlex
from collections.abc import Iterable, Sequence

from devstation.core.models import ManagedBlock

MANAGED_SUFFIX = "(managed by initializer)"


# ---------------------------------------------------------------------------
# Generic line handling
# ---------------------------------------------------------------------------

def _join(lines: Sequence[str], *, trailing_newline: bool) -> str:
    if not lines:
        return ""
    return "\n".join(lines) + ("\n" if trailing_newline else "")


def append_text(text: str, addition: str) -> str:
    """Append *addition*, inserting a newline if *text* lacks one."""
    if text and not text.endswith("\n"):
        text += "\n"
    return text + addition


def remove_lines_matching(text: str, patterns: Iterable[str]) -> str:
    """Drop every line on which any regex in *patterns* matches."""
    compiled = [re.compile(pattern) for pattern in patterns]
    kept = [
        line
        for line in text.splitlines()
        if not any(regex.search(line) for regex in compiled)
    ]
    return _join(kept, trailing_newline=True)


# ---------------------------------------------------------------------------
# Managed blocks
# ---------------------------------------------------------------------------

def remove_marked_block(text: str, begin: str, end: str) -> str:
    """Remove every ``begin`` … ``end`` block (markers included).

    Markers are compared against whole lines.  An unterminated block is
    removed through to the end of the text.
    """
    kept: list[str] = []
    skipping = False
    for line in text.splitlines():
        if not skipping and line == begin:
            skipping = True
            continue
        if skipping:
            if line == end:
                skipping = False
            continue
        kept.append(line)
    return _join(kept, trailing_newline=True)


def replace_managed_block(text: str, block: ManagedBlock) -> str:
    """Remove any previous copy of *block* and append the fresh one."""
    stripped = remove_marked_block(text, block.begin, block.end)
    return append_text(stripped, block.render())


def managed_block(topic: str, body: Sequence[str], *, style: str = "begin-end") -> ManagedBlock:
    """Build a :class:`ManagedBlock` with the conventional marker comments.

    ``style="begin-end"`` yields ``# <topic> (managed by initializer) - begin``
    / ``- end``; ``style="slash"`` yields ``# <topic> (managed …)`` /
    ``# /<topic> (managed …)``.
    """
    if style == "slash":
        begin = f"# {topic} {MANAGED_SUFFIX}"
        end = f"# /{topic} {MANAGED_SUFFIX}"
    else:
        begin = f"# {topic} {MANAGED_SUFFIX} - begin"
        end = f"# {topic} {MANAGED_SUFFIX} - end"
    return ManagedBlock(begin=begin, end=end, body=tuple(body))


def shell_export(name: str, value: str) -> str:
    """Render ``export NAME=<value>`` with *value* safely shell-quoted."""
    return f"export {name}={shlex.quote(value)}"


# ---------------------------------------------------------------------------
# sshd_config
# ---------------------------------------------------------------------------

def set_sshd_option(text: str, param: str, value: str) -> str:
    """Set ``param value`` in an sshd_config text.

    Active directives are rewritten in place; failing that, commented
    directives are uncommented and rewritten; failing that, the directive
    is appended.
    """
    name = re.escape(param)
    active = re.compile(rf"^\s*{name}(\s|$)")
    commented = re.compile(rf"^\s*#\s*{name}(\s|$)")
    replacement = f"{param} {value}"
    lines = text.splitlines()

    for pattern in (active, commented):
        if any(pattern.match(line) for line in lines):
            rewritten = [replacement if pattern.match(line) else line for line in lines]
            return _join(rewritten, trailing_newline=True)

    return append_text(text, replacement + "\n")


# ---------------------------------------------------------------------------
# /etc/updatedb.conf
# ---------------------------------------------------------------------------

_PRUNEPATHS_LINE = re.compile(r"^\s*PRUNEPATHS=")
_PRUNEPATHS_VALUE = re.compile(r'PRUNEPATHS="([^"]*)"')


def ensure_prune_paths(text: str, required: Sequence[str] = ("/mnt", "/tmp")) -> str:
    """Make every ``PRUNEPATHS=`` line include each path in *required*.

    Whitespace inside the value is normalised.  When no such line exists
    a default ``PRUNEPATHS="/tmp /mnt"`` line is appended.
    """
    lines = text.splitlines()
    found = False
    result: list[str] = []
    for line in lines:
        if _PRUNEPATHS_LINE.match(line):
            found = True
            match = _PRUNEPATHS_VALUE.search(line)
            paths = match.group(1).split() if match else []
            for path in required:
                if path not in paths:
                    paths.append(path)
            result.append(f'PRUNEPATHS="{" ".join(paths)}"')
        else:
            result.append(line)

    if not found:
        result.append('PRUNEPATHS="/tmp /mnt"')
    return _join(result, trailing_newline=True)


# ---------------------------------------------------------------------------
# APT sources
# ---------------------------------------------------------------------------

DEB822_HOSTS: tuple[str, ...] = (
    "archive.ubuntu.com",
    "security.ubuntu.com",
    "ports.ubuntu.com",
    "us.archive.ubuntu.com",
)

_LEGACY_HOST_PATTERNS: tuple[str, ...] = (
    r"http://cn\.archive\.ubuntu\.com",
    r"http://us\.archive\.ubuntu\.com",
    r"http://(?:archive|ports)\.ubuntu\.com",
    r"http://security\.ubuntu\.com",
)


def rewrite_deb822_uris(text: str, mirror: str, hosts: Sequence[str] = DEB822_HOSTS) -> str:
    """Point ``URIs: http://<host>/ubuntu`` lines of a deb822 file at *mirror*."""
    for host in hosts:
        text = re.sub(
            rf"^URIs: http://{re.escape(host)}/ubuntu",
            f"URIs: {mirror}",
            text,
            flags=re.MULTILINE,
        )
    return text


def rewrite_legacy_sources(text: str, mirror_root: str) -> str:
    """Point the Ubuntu archive hosts of a legacy ``sources.list`` at *mirror_root*."""
    for pattern in _LEGACY_HOST_PATTERNS:
        text = re.sub(pattern, mirror_root, text)
    return text


def disable_exec_lines(text: str) -> str:
    """Neutralise a cron script by replacing each ``exec …`` line."""
    return re.sub(
        r"^exec .*$",
        "exit 0 # disabled by initializer",
        text,
        flags=re.MULTILINE,
    )


# ---------------------------------------------------------------------------
# ~/.ssh/config
# ---------------------------------------------------------------------------

def has_ssh_host(text: str, alias: str) -> bool:
    """Return whether a ``Host <alias>`` stanza already exists."""
    pattern = re.compile(rf"^Host[ \t]+{re.escape(alias)}([ \t]|$)", re.MULTILINE)
    return pattern.search(text) is not None


def render_ssh_host(alias: str, port: int, user: str) -> str:
    """Render an ssh-config stanza pointing *alias* at the forwarded port."""
    return (
        "\n"
        f"Host {alias}\n"
        "  HostName localhost\n"
        f"  Port {port}\n"
        f"  User {user}\n"
        "  StrictHostKeyChecking no\n"
        "  UserKnownHostsFile /dev/null\n"
    )


def has_line(text: str, pattern: str) -> bool:
    """Return whether any line matches the regex *pattern*."""
    return re.search(pattern, text, flags=re.MULTILINE) is not None
