"""Inline block reference resolution.

Block text may embed another block by writing its 9-character uid between
double parentheses, e.g. ``see ((abcDEF123))``. Resolution swaps each such
reference for the referenced block's text. References inside inline code
(backticks) are left alone.
"""

from __future__ import annotations

import logging
import re

from ctxexpand.exceptions import HierarchyQueryError, ReferenceResolutionError
from ctxexpand.hierarchy.base import HierarchyFetcher, ReferenceResolver

logger = logging.getLogger("ctxexpand.references")

BLOCK_REF_RE = re.compile(r"(?<!`)\(\(([^)`\s]{9})\)\)(?!\)?`)")

# Hard stop for nested resolution, on top of the seen-set guard.
_MAX_NESTING = 10


class BlockReferenceResolver:
    """Resolves ``((uid))`` references through a hierarchy backend."""

    def __init__(self, fetcher: HierarchyFetcher) -> None:
        self.fetcher = fetcher

    async def resolve(self, text: str, once: bool = True) -> str:
        return await self._resolve(text, seen=set(), once=once, nesting=0)

    async def _resolve(self, text: str, seen: set[str], once: bool, nesting: int) -> str:
        if not text or not BLOCK_REF_RE.search(text):
            return text

        parts: list[str] = []
        last = 0
        for match in BLOCK_REF_RE.finditer(text):
            ref_uid = match.group(1)
            is_new = ref_uid not in seen
            seen.add(ref_uid)

            try:
                replacement = await self.fetcher.get_content(ref_uid)
            except HierarchyQueryError as e:
                raise ReferenceResolutionError(f"Could not load (({ref_uid})): {e}") from e

            if replacement is None:
                # Unknown uid: keep the reference as written
                replacement = match.group(0)
            elif not once and is_new and nesting < _MAX_NESTING:
                replacement = await self._resolve(replacement, seen, once, nesting + 1)

            parts.append(text[last:match.start()])
            parts.append(replacement)
            last = match.end()

        parts.append(text[last:])
        return "".join(parts)


async def resolve_or_keep(resolver: ReferenceResolver | None, text: str, item_id: str = "") -> str:
    """Resolve one level of references, keeping the raw text on failure."""
    if resolver is None or not text:
        return text
    try:
        return await resolver.resolve(text, once=True)
    except ReferenceResolutionError as e:
        logger.warning(f"Failed to resolve references in {item_id or 'text'}: {e}")
        return text

