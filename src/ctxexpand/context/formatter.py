"""Per-item text assembly within a per-result sub-budget.

The item's own content is always kept whole. Whatever is left of the item's
share of the budget is split between its parent (a small, bounded slice) and
its children outline (the rest).
"""

from __future__ import annotations

from ctxexpand.context.models import NodeKind
from ctxexpand.context.truncation import CHILDREN_TRUNCATION_SUFFIX, ELLIPSIS, clip

# Room reserved for the "Parent: " / "Children:" labels.
LABEL_OVERHEAD = 30
# Context room an item always gets, however long its own content.
MIN_CONTEXT_CHARS = 200
# Parent slice: 20% of the context room, clamped to [100, 500].
PARENT_SHARE = 0.2
MIN_PARENT_CHARS = 100
MAX_PARENT_CHARS = 500
# Children outlines are never cut below this.
MIN_CHILDREN_CHARS = 300

# Children budget hint handed to the outline builder.
OUTLINE_RESERVE = 200
MIN_OUTLINE_BUDGET = 500


def per_result_budget(effective_budget: int, family_size: int) -> int:
    return effective_budget // max(1, family_size)


def outline_budget_hint(result_budget: int, own_content: str) -> int:
    """Budget hint for the children outline of one item."""
    return max(result_budget - len(own_content) - OUTLINE_RESERVE, MIN_OUTLINE_BUDGET)


def parent_allotment(remaining: int) -> int:
    return min(MAX_PARENT_CHARS, max(MIN_PARENT_CHARS, int(remaining * PARENT_SHARE)))


def format_node(
    kind: NodeKind,
    own_content: str,
    parent_text: str | None,
    children_outline: str,
    result_budget: int,
    no_truncation: bool = False,
) -> str:
    """Assemble the final text of one item."""
    parts: list[str] = []
    if own_content:
        parts.append(own_content)

    if kind == NodeKind.CONTAINER:
        # Pages have no parent, and their outline is never shortened
        if children_outline:
            parts.append(f"Children:\n{children_outline}")
        return "\n".join(parts)

    if no_truncation:
        if parent_text:
            parts.append(f"Parent: {parent_text}")
        if children_outline:
            parts.append(f"Children:\n{children_outline}")
        return "\n".join(parts)

    remaining = max(result_budget - len(own_content) - LABEL_OVERHEAD, MIN_CONTEXT_CHARS)

    parent_used = 0
    if parent_text:
        parent_used = parent_allotment(remaining)
        parts.append(f"Parent: {clip(parent_text, parent_used, ELLIPSIS)}")

    if children_outline:
        children_limit = max(MIN_CHILDREN_CHARS, remaining - parent_used)
        parts.append(
            "Children:\n" + clip(children_outline, children_limit, CHILDREN_TRUNCATION_SUFFIX)
        )

    return "\n".join(parts)
