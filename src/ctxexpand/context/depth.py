"""Depth planning and per-family expansion policy.

Block-level results (the Node family) and page-level results (the Container
family) go through the same traversal. What differs between them is captured
by a ``FamilyPolicy``: how deep to go, how many siblings to look at per level,
and whether content may be shortened at all.

Smaller matched sets can absorb deep, rich context without breaching the
global budget; larger sets must shrink depth to stay tractable. Balanced mode
is strictly more conservative than Full.
"""

from __future__ import annotations

from dataclasses import dataclass

from ctxexpand.context.models import AccessMode, NodeKind

# (max family size, depth) pairs, first match wins. Sizes above the last
# threshold get no descendant expansion at all.
BLOCK_DEPTH_TABLE: tuple[tuple[int, int], ...] = (
    (10, 99),  # effectively unbounded
    (20, 5),
    (100, 4),
    (200, 3),
    (300, 2),
    (500, 1),
)

# Balanced-mode caps applied on top of BLOCK_DEPTH_TABLE.
BALANCED_DEPTH_CAPS: tuple[tuple[int, int], ...] = (
    (10, 4),
    (25, 3),
    (50, 2),
    (200, 1),
)

PAGE_DEPTH_FULL = 999  # practically unbounded
PAGE_DEPTH_DEFAULT = 4


def _lookup(table: tuple[tuple[int, int], ...], size: int) -> int:
    for limit, depth in table:
        if size <= limit:
            return depth
    return 0


@dataclass(frozen=True)
class FamilyPolicy:
    """Traversal rules for one family of results."""

    kind: NodeKind
    sibling_cap: int  # children considered per level
    truncatable: bool  # False: content is never shortened for this family

    def max_depth(self, family_size: int, access_mode: AccessMode) -> int:
        """Maximum descendant depth for a family of ``family_size`` results."""
        if self.kind == NodeKind.CONTAINER:
            return PAGE_DEPTH_FULL if access_mode == AccessMode.FULL else PAGE_DEPTH_DEFAULT

        depth = _lookup(BLOCK_DEPTH_TABLE, family_size)
        if access_mode == AccessMode.BALANCED:
            depth = min(depth, _lookup(BALANCED_DEPTH_CAPS, family_size))
        return depth


BLOCK_POLICY = FamilyPolicy(kind=NodeKind.NODE, sibling_cap=10, truncatable=True)
PAGE_POLICY = FamilyPolicy(kind=NodeKind.CONTAINER, sibling_cap=100, truncatable=False)


def policy_for(kind: NodeKind) -> FamilyPolicy:
    return PAGE_POLICY if kind == NodeKind.CONTAINER else BLOCK_POLICY


def max_depth(family_size: int, access_mode: AccessMode, family: NodeKind) -> int:
    """Shortcut for ``policy_for(family).max_depth(...)``."""
    return policy_for(family).max_depth(family_size, access_mode)
