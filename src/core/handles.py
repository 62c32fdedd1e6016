"""Handle canonicalization helpers (core domain)."""

from __future__ import annotations

import re


def _collapse_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def normalize_handle(raw: str) -> str:
    """Return the display form of a handle: single spaces, trimmed."""

    return _collapse_whitespace(raw or "")


def handle_key(raw: str) -> str:
    """Return the comparison key for a handle.

    Two raw strings with the same key are the same entity. Empty or
    whitespace-only input yields an empty key, which every consumer rejects.
    """

    return normalize_handle(raw).lower()
