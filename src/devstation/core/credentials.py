"""API-key sanitising for the AI assistant installers.

Keys are usually pasted from a browser, so stray carriage returns,
newlines and surrounding whitespace are stripped.  Anything that is
still a control character afterwards is rejected outright — such a key
would corrupt ``~/.bashrc`` or ``auth.json``.
"""

from __future__ import annotations

import unicodedata

from devstation.exceptions import ApiKeyError


def sanitize_api_key(raw: str, *, name: str = "API key") -> str:
    """Return *raw* without CR/LF and surrounding whitespace.

    Raises
    ------
    ApiKeyError
        If a control character remains after cleaning.
    """
    key = raw.replace("\r", "").replace("\n", "").strip()
    if any(unicodedata.category(char) == "Cc" for char in key):
        raise ApiKeyError(
            f"{name} contains control characters.",
            hint="Copy the key again without newlines or NUL characters.",
        )
    return key


def first_non_empty(*candidates: str | None) -> str:
    """Return the first candidate that is non-blank after stripping."""
    for candidate in candidates:
        if candidate is not None and candidate.strip():
            return candidate.strip()
    return ""
