"""Keep a ``Host`` alias for the VM in ``~/.ssh/config``."""

from __future__ import annotations

import logging
from pathlib import Path

from devstation.core.text_edits import append_text, has_ssh_host, render_ssh_host
from devstation.exceptions import EnvironmentCheckError

logger = logging.getLogger(__name__)


def ensure_ssh_host(config_path: Path, alias: str, port: int, user: str) -> bool:
    """Append a stanza for *alias* unless one already exists.

    An existing ``Host <alias>`` entry is left untouched, even if its port
    differs: it belongs to the user.

    Returns
    -------
    bool
        ``True`` when the file was modified.
    """
    try:
        config_path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        config_path.touch(exist_ok=True)
        current = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise EnvironmentCheckError(f"cannot prepare {config_path}: {exc}") from exc

    if has_ssh_host(current, alias):
        logger.debug("ssh host %s already configured in %s", alias, config_path)
        return False

    try:
        config_path.write_text(
            append_text(current, render_ssh_host(alias, port, user)),
            encoding="utf-8",
        )
    except OSError as exc:
        raise EnvironmentCheckError(f"cannot write {config_path}: {exc}") from exc
    logger.info("Added ssh host %s (localhost:%d) to %s", alias, port, config_path)
    return True
