"""Allow ``python -m devstation`` invocation.

This module simply delegates to the CLI error-boundary entry point so
that ``python -m devstation`` behaves identically to the ``devstation``
console script.
"""

from __future__ import annotations

from devstation.cli.app import cli

if __name__ == "__main__":
    cli()
