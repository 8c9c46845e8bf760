"""CLI layer — argument parsing, user interaction, and error boundary.

This package is the outermost layer of the application.  It may import
from ``tasks``, ``kvm``, ``core`` and ``infra``, but no other layer may
import from ``cli``.
"""
