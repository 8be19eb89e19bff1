"""Adaptive context expansion.

Enriches matched knowledge-graph results with parent and descendant context
while keeping the total within a character budget.

Usage:
    from ctxexpand.context import ContextExpander, MatchedResult

    expander = ContextExpander(fetcher)
    expanded = await expander.expand(results, total_budget=64000)
"""

from ctxexpand.context.depth import BLOCK_POLICY, PAGE_POLICY, FamilyPolicy, max_depth
from ctxexpand.context.engine import ContextExpander, effective_budget
from ctxexpand.context.models import (
    AccessMode,
    ExpandedNode,
    ExpandedResult,
    MatchedResult,
    NodeKind,
)
from ctxexpand.context.terms import TermCache, cached_terms

__all__ = [
    "AccessMode",
    "BLOCK_POLICY",
    "ContextExpander",
    "ExpandedNode",
    "ExpandedResult",
    "FamilyPolicy",
    "MatchedResult",
    "NodeKind",
    "PAGE_POLICY",
    "TermCache",
    "cached_terms",
    "effective_budget",
    "max_depth",
]
