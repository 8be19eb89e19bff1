"""Final budget pass across both families.

Page-level results are never shortened. Block-level results absorb all of
the pressure, and when the pages alone fill the budget they are dropped
altogether.
"""

from __future__ import annotations

import logging

from ctxexpand.context.models import ExpandedNode, NodeKind
from ctxexpand.context.truncation import TRUNCATION_MARKER, clip_within

logger = logging.getLogger("ctxexpand.equalizer")

# Each block may take at most 90% of an even share of the block budget.
PER_NODE_SHARE = 0.9


def equalize(
    expanded: list[ExpandedNode], total_budget: int, no_truncation: bool = False
) -> list[ExpandedNode]:
    """Fit ``expanded`` into ``total_budget`` characters.

    Returns the surviving items in their original order. Shortened block
    items are flagged ``truncated`` and keep their pre-pass length in
    ``original_length``. A block whose share cannot hold the truncation
    marker is dropped.
    """
    for node in expanded:
        node.original_length = len(node.final_text)
        node.final_length = len(node.final_text)

    if no_truncation:
        return expanded

    pages = [n for n in expanded if n.kind == NodeKind.CONTAINER]
    blocks = [n for n in expanded if n.kind == NodeKind.NODE]
    page_total = sum(n.final_length for n in pages)
    block_total = sum(n.final_length for n in blocks)

    if page_total + block_total <= total_budget:
        return expanded

    logger.info(
        f"Total {page_total + block_total} chars > budget {total_budget}, "
        f"shrinking {len(blocks)} block results"
    )

    remaining_for_blocks = max(0, total_budget - page_total)
    if remaining_for_blocks == 0 or not blocks:
        if blocks:
            logger.info(
                f"Pages alone use {page_total} chars, dropping {len(blocks)} block results"
            )
        return pages

    ratio = remaining_for_blocks / max(1, block_total)
    per_block_cap = int(remaining_for_blocks / len(blocks) * PER_NODE_SHARE)

    dropped: set[int] = set()
    for node in blocks:
        target = min(int(node.final_length * ratio), per_block_cap)
        if node.final_length <= target:
            continue
        if target < len(TRUNCATION_MARKER):
            # No room for a marked excerpt
            dropped.add(id(node))
            continue
        node.set_text(clip_within(node.final_text, target))
        node.truncated = True

    if dropped:
        logger.info(f"Dropping {len(dropped)} block results too small to hold an excerpt")
    return [n for n in expanded if id(n) not in dropped]
