"""Adaptive context expansion.

Pipeline for one ``expand`` call:

  1. Compute the effective budget: what is left of the caller's budget,
     capped by the access mode ceiling.
  2. Split results into the block family and the page family. Each family
     is expanded on its own, sized by its own count:
       a. plan the descendant depth from family size and access mode
       b. resolve the items' own text (and parents, for blocks)
       c. build children outlines with degressive per-level limits
       d. format each item within ``effective_budget // family_size``
  3. Equalize: shrink block results until everything fits, never touching
     page results.

The engine keeps no state between calls; everything it builds is discarded
once the results are returned.
"""

from __future__ import annotations

import asyncio
import logging
import time

from ctxexpand.context.depth import BLOCK_POLICY, PAGE_POLICY, FamilyPolicy
from ctxexpand.context.equalizer import equalize
from ctxexpand.context.formatter import format_node, outline_budget_hint, per_result_budget
from ctxexpand.context.models import (
    MODE_BUDGETS,
    AccessMode,
    ExpandedNode,
    ExpandedResult,
    MatchedResult,
    NodeKind,
)
from ctxexpand.context.outline import OutlineBuilder
from ctxexpand.exceptions import ExpansionTimeoutError, HierarchyQueryError
from ctxexpand.hierarchy.base import HierarchyFetcher, ParentEntry, ReferenceResolver
from ctxexpand.hierarchy.references import BlockReferenceResolver, resolve_or_keep

logger = logging.getLogger("ctxexpand.engine")

_SOURCE_FIELDS = set(MatchedResult.model_fields) - {"content", "metadata"}


def effective_budget(
    total_budget: int, consumed: int, access_mode: AccessMode, no_truncation: bool = False
) -> int | None:
    """Characters available to the expansion, or None when unbounded."""
    if no_truncation:
        return None
    return min(max(0, total_budget - consumed), MODE_BUDGETS[access_mode])


class ContextExpander:
    """Expands matched results with their hierarchical context within a budget.

    Usage:
        expander = ContextExpander(store)
        results = await expander.expand(matches, total_budget=64000)
        for r in results:
            print(r.content)
    """

    def __init__(
        self,
        fetcher: HierarchyFetcher,
        resolver: ReferenceResolver | None = None,
        deadline_seconds: float | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.resolver = resolver or BlockReferenceResolver(fetcher)
        self.deadline_seconds = deadline_seconds
        self.outlines = OutlineBuilder(fetcher, self.resolver)

    # -------------------------------------------------------------------
    # Main entry point
    # -------------------------------------------------------------------

    async def expand(
        self,
        results: list[MatchedResult],
        total_budget: int,
        consumed: int = 0,
        access_mode: AccessMode = AccessMode.BALANCED,
        no_truncation: bool = False,
    ) -> list[ExpandedResult]:
        """Expand ``results`` with parent and children context.

        Args:
            results: Matched items, blocks and pages mixed, in display order.
            total_budget: Character budget for the whole response.
            consumed: Characters of that budget already used elsewhere.
            access_mode: Balanced or Full; sets the budget ceiling and depth caps.
            no_truncation: Ignore every budget and cap.

        Returns:
            Block results first, then page results, then any metadata-only
            records. Block results may be missing under extreme budget pressure.
        """
        if not results:
            return []

        coro = self._expand(results, total_budget, consumed, access_mode, no_truncation)
        if not self.deadline_seconds:
            return await coro
        try:
            return await asyncio.wait_for(coro, timeout=self.deadline_seconds)
        except asyncio.TimeoutError as e:
            raise ExpansionTimeoutError(self.deadline_seconds) from e

    async def _expand(
        self,
        results: list[MatchedResult],
        total_budget: int,
        consumed: int,
        access_mode: AccessMode,
        no_truncation: bool,
    ) -> list[ExpandedResult]:
        start_time = time.time()
        metadata_only = [r for r in results if not r.expandable]
        if len(metadata_only) == len(results):
            # Nothing to look up without identifiers
            return [_metadata_only(r) for r in results]

        budget = effective_budget(total_budget, consumed, access_mode, no_truncation)
        blocks = [r for r in results if r.expandable and r.kind == NodeKind.NODE]
        pages = [r for r in results if r.expandable and r.kind == NodeKind.CONTAINER]

        pairs: list[tuple[MatchedResult, ExpandedNode]] = []
        for family, policy in ((blocks, BLOCK_POLICY), (pages, PAGE_POLICY)):
            if family:
                pairs.extend(
                    await self._expand_family(family, policy, budget, access_mode, no_truncation)
                )

        survivors = equalize([node for _, node in pairs], budget or 0, no_truncation)
        kept = {id(node) for node in survivors}
        expanded = [_to_result(r, node) for r, node in pairs if id(node) in kept]
        expanded.extend(_metadata_only(r) for r in metadata_only)

        elapsed_ms = (time.time() - start_time) * 1000
        logger.info(
            f"Expanded {len(blocks)} blocks + {len(pages)} pages into "
            f"{sum(len(r.content) for r in expanded)} chars "
            f"(budget {budget if budget is not None else 'unbounded'}, {elapsed_ms:.1f}ms)"
        )
        return expanded

    # -------------------------------------------------------------------
    # Per-family expansion
    # -------------------------------------------------------------------

    async def _expand_family(
        self,
        family: list[MatchedResult],
        policy: FamilyPolicy,
        budget: int | None,
        access_mode: AccessMode,
        no_truncation: bool,
    ) -> list[tuple[MatchedResult, ExpandedNode]]:
        size = len(family)
        depth = policy.max_depth(size, access_mode)
        result_budget = per_result_budget(budget or 0, size)
        ids = [r.id for r in family]

        logger.info(
            f"Expanding {size} {policy.kind.value} results "
            f"(depth {depth}, {result_budget} chars per result)"
        )

        own_texts = await asyncio.gather(
            *(resolve_or_keep(self.resolver, r.own_text, r.id) for r in family)
        )
        parent_texts = await self._parent_texts(ids) if policy.kind == NodeKind.NODE else {}

        hints = {
            r.id: outline_budget_hint(result_budget, own) for r, own in zip(family, own_texts)
        }
        outlines = await self.outlines.build(
            ids, hints, depth, size, policy, no_truncation=no_truncation
        )

        pairs = []
        for r, own in zip(family, own_texts):
            node = ExpandedNode(
                id=r.id,
                kind=r.kind,
                original_text=own,
                parent_text=parent_texts.get(r.id),
                children_outline=outlines.get(r.id, ""),
            )
            node.set_text(
                format_node(
                    r.kind,
                    own,
                    node.parent_text,
                    node.children_outline,
                    result_budget,
                    no_truncation=no_truncation,
                )
            )
            pairs.append((r, node))
        return pairs

    async def _parent_texts(self, ids: list[str]) -> dict[str, str]:
        try:
            parents: dict[str, ParentEntry] = await self.fetcher.fetch_parents(ids)
        except HierarchyQueryError as e:
            logger.warning(f"Parent query for {len(ids)} blocks failed: {e}")
            return {}

        with_parent = [i for i in dict.fromkeys(ids) if i in parents and parents[i].content]
        texts = await asyncio.gather(
            *(
                resolve_or_keep(self.resolver, parents[i].content, parents[i].parent_id)
                for i in with_parent
            )
        )
        return dict(zip(with_parent, texts))


def _to_result(source: MatchedResult, node: ExpandedNode) -> ExpandedResult:
    metadata = {
        **source.metadata,
        "context_expansion": True,
        "original_length": len(source.content),
        "expanded_length": node.original_length,
    }
    if node.truncated:
        metadata.update(
            truncated=True,
            original_length=node.original_length,
            truncated_length=node.final_length,
        )
    return ExpandedResult(
        **source.model_dump(include=_SOURCE_FIELDS),
        content=node.final_text,
        metadata=metadata,
        expanded=node,
    )


def _metadata_only(source: MatchedResult) -> ExpandedResult:
    return ExpandedResult(
        **source.model_dump(include=_SOURCE_FIELDS),
        content=source.content,
        metadata=dict(source.metadata),
        is_metadata_only=True,
    )
