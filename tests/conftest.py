"""Shared test fixtures for ctxexpand."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Sequence
from pathlib import Path

import networkx as nx
import pytest

from ctxexpand.context.engine import ContextExpander
from ctxexpand.context.models import MatchedResult, NodeKind
from ctxexpand.exceptions import HierarchyQueryError
from ctxexpand.hierarchy.base import ChildEntry, ParentEntry
from ctxexpand.hierarchy.graph import GraphHierarchy, build_hierarchy_graph


@pytest.fixture
def snapshot_data() -> dict:
    """Two pages with a few levels of nested blocks and cross references."""
    return {
        "containers": [
            {
                "id": "page-alpha",
                "title": "Alpha Page",
                "children": [
                    {
                        "id": "blockA001",
                        "content": "Alpha root block",
                        "children": [
                            {
                                "id": "blockA011",
                                "content": "Alpha child one",
                                "children": [
                                    {
                                        "id": "blockA111",
                                        "content": "Alpha grandchild",
                                        "children": [
                                            {
                                                "id": "blockA211",
                                                "content": "Alpha great-grandchild",
                                            }
                                        ],
                                    }
                                ],
                            },
                            {
                                "id": "blockA012",
                                "content": "Alpha child two cites ((blockB001))",
                            },
                        ],
                    },
                    {"id": "blockA002", "content": "Second top block"},
                ],
            },
            {
                "id": "page-beta",
                "title": "Beta Page",
                "children": [
                    {"id": "blockB001", "content": "Beta referenced text"},
                    {"id": "blockB002", "content": "Beta points at ((blockA001))"},
                ],
            },
        ]
    }


@pytest.fixture
def snapshot_file(tmp_path: Path, snapshot_data: dict) -> Path:
    path = tmp_path / "snapshot.json"
    path.write_text(json.dumps(snapshot_data))
    return path


@pytest.fixture
def hierarchy_graph(snapshot_data: dict) -> nx.DiGraph:
    return build_hierarchy_graph(snapshot_data)


@pytest.fixture
def fetcher(hierarchy_graph: nx.DiGraph) -> GraphHierarchy:
    return GraphHierarchy(hierarchy_graph)


@pytest.fixture
def expander(fetcher: GraphHierarchy) -> ContextExpander:
    return ContextExpander(fetcher)


def block(uid: str, content: str, page: str = "page-alpha") -> MatchedResult:
    return MatchedResult(id=uid, kind=NodeKind.NODE, content=content, container_id=page)


def page(uid: str, title: str) -> MatchedResult:
    return MatchedResult(id=uid, kind=NodeKind.CONTAINER, title=title)


def deep_snapshot(roots: int, depth: int, root_len: int = 40, child_len: int = 0) -> dict:
    """One page holding ``roots`` top-level blocks, each the head of a chain
    ``depth`` levels deep. Chain entries read "r<i> level <n>"."""
    children = []
    for i in range(roots):
        chain: list = []
        for level in range(depth, 0, -1):
            text = f"r{i} level {level}"
            if child_len:
                text = text.ljust(child_len, "x")
            chain = [{"id": f"r{i:03d}L{level:04d}", "content": text, "children": chain}]
        root_text = f"root {i} ".ljust(root_len, "-")
        children.append({"id": f"root{i:05d}", "content": root_text, "children": chain})
    return {"containers": [{"id": "page-deep", "title": "Deep Page", "children": children}]}


class RecordingFetcher:
    """Wraps a fetcher and records every batched call."""

    def __init__(self, inner: GraphHierarchy) -> None:
        self.inner = inner
        self.children_calls: list[list[str]] = []
        self.parent_calls: list[list[str]] = []

    async def fetch_children(self, parent_ids: Sequence[str]) -> dict[str, list[ChildEntry]]:
        self.children_calls.append(list(parent_ids))
        return await self.inner.fetch_children(parent_ids)

    async def fetch_parents(self, child_ids: Sequence[str]) -> dict[str, ParentEntry]:
        self.parent_calls.append(list(child_ids))
        return await self.inner.fetch_parents(child_ids)

    async def get_content(self, node_id: str) -> str | None:
        return await self.inner.get_content(node_id)


class FailingFetcher(RecordingFetcher):
    """Fails any lookup touching one of ``bad_ids``; optionally all parent lookups."""

    def __init__(self, inner: GraphHierarchy, bad_ids: set[str], fail_parents: bool = False) -> None:
        super().__init__(inner)
        self.bad_ids = bad_ids
        self.fail_parents = fail_parents

    async def fetch_children(self, parent_ids: Sequence[str]) -> dict[str, list[ChildEntry]]:
        self.children_calls.append(list(parent_ids))
        if self.bad_ids & set(parent_ids):
            raise HierarchyQueryError(f"backend down for {sorted(self.bad_ids)}")
        return await self.inner.fetch_children(parent_ids)

    async def fetch_parents(self, child_ids: Sequence[str]) -> dict[str, ParentEntry]:
        if self.fail_parents:
            raise HierarchyQueryError("parents unavailable")
        return await self.inner.fetch_parents(child_ids)

    async def get_content(self, node_id: str) -> str | None:
        if node_id in self.bad_ids:
            raise HierarchyQueryError(f"cannot load {node_id}")
        return await self.inner.get_content(node_id)


class SlowFetcher(RecordingFetcher):
    """Takes ``delay`` seconds to answer children lookups."""

    def __init__(self, inner: GraphHierarchy, delay: float) -> None:
        super().__init__(inner)
        self.delay = delay

    async def fetch_children(self, parent_ids: Sequence[str]) -> dict[str, list[ChildEntry]]:
        await asyncio.sleep(self.delay)
        return await self.inner.fetch_children(parent_ids)
