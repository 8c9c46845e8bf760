"""Single source of truth for the devstation version string."""

__version__: str = "0.4.0"
