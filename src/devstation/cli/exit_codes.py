"""Process exit codes shared by ``devstation`` and ``devstation-kvm``.

VM commands that shell out to ``docker compose``, ``ssh`` or
``vncviewer`` return the child's own status instead; these constants
cover the outcomes the CLI decides itself.
"""

from __future__ import annotations

SUCCESS: int = 0
"""Task finished, menu quit, or the VM command succeeded."""

GENERAL_ERROR: int = 1
"""A DevstationError was reported: unknown task, root refusal, failed step."""

UNEXPECTED_ERROR: int = 2
"""An exception outside the DevstationError hierarchy reached the boundary."""

KEYBOARD_INTERRUPT: int = 130
"""Ctrl+C (128 + SIGINT)."""
