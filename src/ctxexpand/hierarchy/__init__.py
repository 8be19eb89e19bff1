"""Hierarchy backends: batched parent/child lookups and reference resolution."""

from ctxexpand.hierarchy.base import ChildEntry, HierarchyFetcher, ParentEntry, ReferenceResolver
from ctxexpand.hierarchy.graph import GraphHierarchy, build_hierarchy_graph, load_snapshot
from ctxexpand.hierarchy.references import BlockReferenceResolver
from ctxexpand.hierarchy.store import HierarchyStore

__all__ = [
    "BlockReferenceResolver",
    "ChildEntry",
    "GraphHierarchy",
    "HierarchyFetcher",
    "HierarchyStore",
    "ParentEntry",
    "ReferenceResolver",
    "build_hierarchy_graph",
    "load_snapshot",
]
