"""In-memory hierarchy backed by a networkx DiGraph.

Snapshot format (JSON)::

    {"containers": [
        {"id": "page-1", "title": "Project notes", "children": [
            {"id": "abcDEF123", "content": "first block", "children": [...]},
            ...
        ]}
    ]}

Each graph node carries ``kind`` ("node" or "container"), ``content`` and, for
blocks, ``container_id``. Each parent -> child edge carries the child's
``order`` among its siblings.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import networkx as nx

from ctxexpand.context.models import MatchedResult, NodeKind
from ctxexpand.exceptions import SnapshotError
from ctxexpand.hierarchy.base import ChildEntry, ParentEntry


def load_snapshot(path: str | Path) -> nx.DiGraph:
    """Read a JSON snapshot file into a hierarchy graph."""
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise SnapshotError(f"Cannot read snapshot {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise SnapshotError(f"Snapshot {path} is not valid JSON: {e}") from e
    return build_hierarchy_graph(data)


def build_hierarchy_graph(data: dict[str, Any]) -> nx.DiGraph:
    """Build a hierarchy graph from a parsed snapshot."""
    if not isinstance(data, dict) or not isinstance(data.get("containers"), list):
        raise SnapshotError("Snapshot must be an object with a 'containers' list")

    graph = nx.DiGraph()
    for page in data["containers"]:
        page_id = _require_id(page)
        if graph.has_node(page_id):
            raise SnapshotError(f"Duplicate id in snapshot: {page_id}")
        title = page.get("title", "")
        graph.add_node(page_id, kind=NodeKind.CONTAINER.value, content=title, title=title)
        _add_children(graph, page_id, page_id, page.get("children", []))
    return graph


def _add_children(graph: nx.DiGraph, parent_id: str, page_id: str, children: list) -> None:
    # Explicit stack instead of recursion: snapshots can be arbitrarily deep
    stack = [(parent_id, children)]
    while stack:
        pid, kids = stack.pop()
        if not isinstance(kids, list):
            raise SnapshotError(f"'children' of {pid} must be a list")
        for position, child in enumerate(kids):
            child_id = _require_id(child)
            if graph.has_node(child_id):
                raise SnapshotError(f"Duplicate id in snapshot: {child_id}")
            graph.add_node(
                child_id,
                kind=NodeKind.NODE.value,
                content=child.get("content", ""),
                container_id=page_id,
            )
            graph.add_edge(pid, child_id, order=child.get("order", position))
            stack.append((child_id, child.get("children", [])))


def _require_id(entry: Any) -> str:
    if not isinstance(entry, dict) or not entry.get("id"):
        raise SnapshotError(f"Snapshot entry without an id: {entry!r}")
    return str(entry["id"])


class GraphHierarchy:
    """Hierarchy fetcher over an in-memory graph."""

    def __init__(self, graph: nx.DiGraph) -> None:
        self.graph = graph

    async def fetch_children(self, parent_ids: Sequence[str]) -> dict[str, list[ChildEntry]]:
        children: dict[str, list[ChildEntry]] = {}
        for pid in parent_ids:
            if not self.graph.has_node(pid):
                continue
            entries = [
                ChildEntry(
                    child_id=succ,
                    content=self.graph.nodes[succ].get("content", ""),
                    order=self.graph.edges[pid, succ].get("order", 0),
                )
                for succ in self.graph.successors(pid)
            ]
            if entries:
                entries.sort(key=lambda e: (e.order, e.child_id))
                children[pid] = entries
        return children

    async def fetch_parents(self, child_ids: Sequence[str]) -> dict[str, ParentEntry]:
        parents: dict[str, ParentEntry] = {}
        for cid in child_ids:
            if not self.graph.has_node(cid):
                continue
            for pred in self.graph.predecessors(cid):
                data = self.graph.nodes[pred]
                if data.get("kind") == NodeKind.NODE.value:
                    parents[cid] = ParentEntry(parent_id=pred, content=data.get("content", ""))
                break
        return parents

    async def get_content(self, node_id: str) -> str | None:
        if not self.graph.has_node(node_id):
            return None
        return self.graph.nodes[node_id].get("content", "")

    def lookup(self, ids: Sequence[str]) -> list[MatchedResult]:
        """Turn ids into matched results, skipping unknown ids."""
        return [
            graph_node_to_result(node_id, self.graph.nodes[node_id])
            for node_id in ids
            if self.graph.has_node(node_id)
        ]


def graph_node_to_result(node_id: str, data: dict[str, Any]) -> MatchedResult:
    if data.get("kind") == NodeKind.CONTAINER.value:
        return MatchedResult(
            id=node_id,
            kind=NodeKind.CONTAINER,
            content=data.get("content", ""),
            title=data.get("title", data.get("content", "")),
        )
    return MatchedResult(
        id=node_id,
        kind=NodeKind.NODE,
        content=data.get("content", ""),
        container_id=data.get("container_id"),
    )
