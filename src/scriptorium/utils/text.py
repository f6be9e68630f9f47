"""Text helpers for positions and fingerprints."""

from __future__ import annotations

import hashlib


def line_and_column(text: str, offset: int) -> tuple[int, int]:
    """Convert a character offset into 1-based line and column numbers."""
    offset = max(0, min(offset, len(text)))
    line = text.count("\n", 0, offset) + 1
    line_start = text.rfind("\n", 0, offset) + 1
    return line, offset - line_start + 1


def sha256_text(text: str) -> str:
    """Compute the SHA256 hex digest of UTF-8 encoded text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()
