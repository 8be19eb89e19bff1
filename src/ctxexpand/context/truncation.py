"""Text shortening helpers shared by the expansion stages."""

from __future__ import annotations

ELLIPSIS = "..."
TRUNCATION_MARKER = "...[truncated]"
CHILDREN_TRUNCATION_SUFFIX = "\n    " + TRUNCATION_MARKER


def clip(text: str, limit: int, suffix: str = ELLIPSIS) -> str:
    """Cut ``text`` to ``limit`` characters and add ``suffix`` if it was longer."""
    if len(text) <= limit:
        return text
    return text[:max(0, limit)] + suffix


def clip_within(text: str, limit: int, marker: str = TRUNCATION_MARKER) -> str:
    """Cut ``text`` so that the result, marker included, fits in ``limit``.

    If even the marker alone does not fit, the marker is returned on its own
    so a shortened text is always recognisable as such.
    """
    if len(text) <= limit:
        return text
    keep = max(0, limit - len(marker))
    return text[:keep] + marker
