"""Descendant outlines with degressive per-level content limits.

An outline is the indented bullet rendering of an item's subtree::

      - first child
        - grandchild
      - second child

Children are fetched breadth-first for a whole family at once: one batched
``fetch_children`` call per level, so the number of backend round trips grows
with depth, not with the number of nodes. Rendering then walks the prefetched
tree with an explicit stack, bounded by ``max_depth`` and guarded against
cycles.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from ctxexpand.context.depth import FamilyPolicy
from ctxexpand.context.truncation import ELLIPSIS, TRUNCATION_MARKER, clip
from ctxexpand.exceptions import HierarchyQueryError
from ctxexpand.hierarchy.base import ChildEntry, HierarchyFetcher, ReferenceResolver
from ctxexpand.hierarchy.references import resolve_or_keep

logger = logging.getLogger("ctxexpand.outline")

INDENT_STEP = "  "

# Per-child content allowance at level 1, before scaling.
MIN_CHILD_CHARS = 100
MAX_CHILD_CHARS = 500
# Floors the allowance never shrinks below, however deep.
MIN_CHILD_FLOOR = 50
MAX_CHILD_FLOOR = 100
# Each level keeps 70% of the allowance of the level above.
DEPTH_DECAY = 0.7


def result_count_factor(family_size: int) -> float:
    """Fewer results leave room for more content per child."""
    if family_size <= 20:
        return 1.5
    if family_size <= 50:
        return 1.2
    if family_size <= 100:
        return 1.0
    return 0.8


def child_allowance(level: int, family_size: int, budget_hint: int, sibling_count: int) -> int:
    """Maximum characters of a single child's text at ``level``."""
    depth_factor = DEPTH_DECAY ** (level - 1)
    min_allow = max(MIN_CHILD_FLOOR, int(MIN_CHILD_CHARS * depth_factor))
    max_allow = max(MAX_CHILD_FLOOR, int(MAX_CHILD_CHARS * depth_factor))
    max_allow = int(max_allow * result_count_factor(family_size))
    per_child = budget_hint // max(1, sibling_count)
    return max(min_allow, min(max_allow, per_child))


@dataclass
class _Frame:
    parent_id: str
    level: int
    indent: str
    ancestors: frozenset[str]
    kids: list[ChildEntry]
    allowance: int | None
    pos: int = 0
    lines: list[str] = field(default_factory=list)


class OutlineBuilder:
    """Builds descendant outlines for a family of results."""

    def __init__(self, fetcher: HierarchyFetcher, resolver: ReferenceResolver | None = None) -> None:
        self.fetcher = fetcher
        self.resolver = resolver

    async def build(
        self,
        root_ids: Sequence[str],
        budget_hints: Mapping[str, int],
        max_depth: int,
        family_size: int,
        policy: FamilyPolicy,
        no_truncation: bool = False,
    ) -> dict[str, str]:
        """Outline every root in ``root_ids``; roots without children map to ``""``."""
        if max_depth <= 0 or not root_ids:
            return {rid: "" for rid in root_ids}

        tree = await self.prefetch(root_ids, max_depth, policy)
        resolved = await self._resolve_entries(tree)
        return {
            rid: self.render(
                rid,
                tree,
                resolved,
                budget_hint=budget_hints.get(rid, 0),
                max_depth=max_depth,
                family_size=family_size,
                policy=policy,
                no_truncation=no_truncation,
            )
            for rid in root_ids
        }

    async def outline(
        self,
        node_id: str,
        budget_hint: int,
        max_depth: int,
        family_size: int,
        policy: FamilyPolicy,
        no_truncation: bool = False,
    ) -> str:
        """Outline a single item."""
        outlines = await self.build(
            [node_id], {node_id: budget_hint}, max_depth, family_size, policy, no_truncation
        )
        return outlines[node_id]

    # -------------------------------------------------------------------
    # Fetching
    # -------------------------------------------------------------------

    async def prefetch(
        self, root_ids: Sequence[str], max_depth: int, policy: FamilyPolicy
    ) -> dict[str, list[ChildEntry]]:
        """Fetch children level by level down to ``max_depth``.

        Returns parent id -> ordered, sibling-capped children. Each id is
        fetched at most once, which also stops the walk on cyclic data.
        """
        tree: dict[str, list[ChildEntry]] = {}
        frontier = list(dict.fromkeys(root_ids))
        level = 1

        while frontier and level <= max_depth:
            fetched = await self._fetch_level(frontier)
            next_frontier: list[str] = []
            for pid in frontier:
                kids = sorted(fetched.get(pid, []), key=lambda e: e.order)
                kids = kids[:policy.sibling_cap]
                tree[pid] = kids
                for kid in kids:
                    if kid.child_id not in tree:
                        next_frontier.append(kid.child_id)
            logger.debug(
                f"Level {level}: {len(frontier)} parents, {len(next_frontier)} children"
            )
            frontier = list(dict.fromkeys(n for n in next_frontier if n not in tree))
            level += 1

        return tree

    async def _fetch_level(self, parent_ids: list[str]) -> dict[str, list[ChildEntry]]:
        try:
            return await self.fetcher.fetch_children(parent_ids)
        except HierarchyQueryError as e:
            logger.warning(
                f"Batched children query for {len(parent_ids)} ids failed ({e}), "
                f"retrying one by one"
            )

        children: dict[str, list[ChildEntry]] = {}
        for pid in parent_ids:
            try:
                children.update(await self.fetcher.fetch_children([pid]))
            except HierarchyQueryError as e:
                # Indistinguishable from "no children" in the rendered outline
                logger.warning(f"Children query failed for {pid}: {e}")
        return children

    async def _resolve_entries(self, tree: dict[str, list[ChildEntry]]) -> dict[str, str]:
        entries = {kid.child_id: kid.content for kids in tree.values() for kid in kids}
        if self.resolver is None:
            return entries
        ids = list(entries)
        texts = await asyncio.gather(
            *(resolve_or_keep(self.resolver, entries[i], i) for i in ids)
        )
        return dict(zip(ids, texts))

    # -------------------------------------------------------------------
    # Rendering
    # -------------------------------------------------------------------

    def render(
        self,
        root_id: str,
        tree: Mapping[str, list[ChildEntry]],
        resolved: Mapping[str, str],
        budget_hint: int,
        max_depth: int,
        family_size: int,
        policy: FamilyPolicy,
        no_truncation: bool = False,
        indent: str = INDENT_STEP,
    ) -> str:
        """Render the prefetched subtree of ``root_id`` as an indented outline."""
        capped = policy.truncatable and not no_truncation

        def open_frame(parent_id: str, level: int, indent: str, ancestors: frozenset[str]):
            if level > max_depth:
                return None
            kids = tree.get(parent_id) or []
            if not kids:
                return None
            allowance = (
                child_allowance(level, family_size, budget_hint, len(kids)) if capped else None
            )
            return _Frame(parent_id, level, indent, ancestors | {parent_id}, kids, allowance)

        def close_frame(frame: _Frame) -> str:
            text = "\n".join(frame.lines)
            if capped and len(text) > budget_hint:
                text = text[:budget_hint] + TRUNCATION_MARKER
            return text

        root = open_frame(root_id, 1, indent, frozenset())
        if root is None:
            return ""

        stack = [root]
        while True:
            frame = stack[-1]
            if frame.pos < len(frame.kids):
                kid = frame.kids[frame.pos]
                frame.pos += 1
                if kid.child_id in frame.ancestors:
                    continue
                text = resolved.get(kid.child_id, kid.content)
                if frame.allowance is not None:
                    text = clip(text, frame.allowance, ELLIPSIS)
                frame.lines.append(f"{frame.indent}- {text}")
                if frame.level < max_depth:
                    nested = open_frame(
                        kid.child_id, frame.level + 1, frame.indent + INDENT_STEP, frame.ancestors
                    )
                    if nested is not None:
                        stack.append(nested)
                continue

            outline = close_frame(frame)
            stack.pop()
            if not stack:
                return outline
            if outline:
                stack[-1].lines.append(outline)
