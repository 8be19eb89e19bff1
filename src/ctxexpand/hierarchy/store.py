"""Persistent hierarchy storage using SQLite.

Nodes get integer row ids internally; the public API speaks in the text
uids used by the knowledge graph. Besides save/load of the whole graph,
the store answers the batched lookups of ``HierarchyFetcher`` with one
``IN (...)`` query per call.
"""

from __future__ import annotations

import asyncio
import json
import sqlite3
import threading
from collections.abc import Sequence
from pathlib import Path

import networkx as nx

from ctxexpand.context.models import MatchedResult, NodeKind
from ctxexpand.exceptions import HierarchyQueryError
from ctxexpand.hierarchy.base import ChildEntry, ParentEntry
from ctxexpand.hierarchy.graph import graph_node_to_result

# Stay well below SQLITE_MAX_VARIABLE_NUMBER on old builds
_MAX_BATCH = 500


class HierarchyStore:
    """Persists a hierarchy graph and serves batched parent/child lookups."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None
        # Fetcher queries run in worker threads and share one connection
        self._lock = threading.RLock()

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._create_tables()
        return self._conn

    def _create_tables(self) -> None:
        conn = self._get_conn()
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS nodes (
                nid INTEGER PRIMARY KEY,
                uid TEXT UNIQUE NOT NULL,
                kind TEXT NOT NULL,              -- 'node' or 'container'
                content TEXT NOT NULL DEFAULT '',
                title TEXT,                      -- containers only
                container_uid TEXT               -- nodes only
            );

            CREATE TABLE IF NOT EXISTS edges (
                parent_nid INTEGER NOT NULL REFERENCES nodes(nid),
                child_nid INTEGER NOT NULL REFERENCES nodes(nid),
                sibling_order INTEGER NOT NULL DEFAULT 0,
                PRIMARY KEY (parent_nid, child_nid)
            );

            CREATE TABLE IF NOT EXISTS metadata (
                key TEXT PRIMARY KEY,
                value TEXT
            );

            CREATE INDEX IF NOT EXISTS idx_nodes_kind ON nodes(kind);
            CREATE INDEX IF NOT EXISTS idx_edges_child ON edges(child_nid);
        """)
        conn.commit()

    # ------------------------------------------------------------------
    # Save / Load
    # ------------------------------------------------------------------

    def save(self, graph: nx.DiGraph, metadata: dict | None = None) -> None:
        """Replace the stored hierarchy with ``graph``."""
        conn = self._get_conn()
        conn.execute("DELETE FROM edges")
        conn.execute("DELETE FROM nodes")

        uid_to_nid: dict[str, int] = {}
        for nid, (uid, data) in enumerate(graph.nodes(data=True), start=1):
            conn.execute(
                """INSERT INTO nodes (nid, uid, kind, content, title, container_uid)
                VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    nid,
                    uid,
                    data.get("kind", NodeKind.NODE.value),
                    data.get("content", ""),
                    data.get("title"),
                    data.get("container_id"),
                ),
            )
            uid_to_nid[uid] = nid

        conn.executemany(
            "INSERT OR REPLACE INTO edges (parent_nid, child_nid, sibling_order) VALUES (?, ?, ?)",
            [
                (uid_to_nid[src], uid_to_nid[tgt], data.get("order", 0))
                for src, tgt, data in graph.edges(data=True)
            ],
        )

        if metadata:
            for key, value in metadata.items():
                conn.execute(
                    "INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)",
                    (key, json.dumps(value)),
                )
        conn.commit()

    def load(self) -> nx.DiGraph | None:
        """Rebuild the hierarchy graph, or None if nothing was saved yet."""
        conn = self._get_conn()
        rows = conn.execute("SELECT * FROM nodes").fetchall()
        if not rows:
            return None

        graph = nx.DiGraph()
        nid_to_uid: dict[int, str] = {}
        for row in rows:
            nid_to_uid[row["nid"]] = row["uid"]
            attrs = {"kind": row["kind"], "content": row["content"]}
            if row["kind"] == NodeKind.CONTAINER.value:
                attrs["title"] = row["title"] or ""
            else:
                attrs["container_id"] = row["container_uid"]
            graph.add_node(row["uid"], **attrs)

        for row in conn.execute("SELECT * FROM edges").fetchall():
            graph.add_edge(
                nid_to_uid[row["parent_nid"]],
                nid_to_uid[row["child_nid"]],
                order=row["sibling_order"],
            )
        return graph

    def stats(self) -> dict[str, int]:
        """Counts of stored blocks, pages and edges."""
        conn = self._get_conn()
        kinds = {
            row["kind"]: row["cnt"]
            for row in conn.execute(
                "SELECT kind, COUNT(*) AS cnt FROM nodes GROUP BY kind"
            ).fetchall()
        }
        edges = conn.execute("SELECT COUNT(*) AS cnt FROM edges").fetchone()["cnt"]
        return {
            "nodes": kinds.get(NodeKind.NODE.value, 0),
            "containers": kinds.get(NodeKind.CONTAINER.value, 0),
            "edges": edges,
        }

    def get_metadata(self, key: str):
        """Get a metadata value."""
        conn = self._get_conn()
        row = conn.execute("SELECT value FROM metadata WHERE key = ?", (key,)).fetchone()
        if row:
            return json.loads(row["value"])
        return None

    # ------------------------------------------------------------------
    # HierarchyFetcher
    # ------------------------------------------------------------------

    async def fetch_children(self, parent_ids: Sequence[str]) -> dict[str, list[ChildEntry]]:
        children: dict[str, list[ChildEntry]] = {}
        for chunk in _chunks(parent_ids):
            placeholders = ",".join("?" * len(chunk))
            rows = await asyncio.to_thread(
                self._query,
                f"""SELECT p.uid AS parent_uid, c.uid AS child_uid,
                           c.content AS content, e.sibling_order AS sibling_order
                    FROM edges e
                    JOIN nodes p ON p.nid = e.parent_nid
                    JOIN nodes c ON c.nid = e.child_nid
                    WHERE p.uid IN ({placeholders})
                    ORDER BY p.uid, e.sibling_order, c.uid""",  # noqa: S608
                chunk,
            )
            for row in rows:
                children.setdefault(row["parent_uid"], []).append(
                    ChildEntry(
                        child_id=row["child_uid"],
                        content=row["content"],
                        order=row["sibling_order"],
                    )
                )
        return children

    async def fetch_parents(self, child_ids: Sequence[str]) -> dict[str, ParentEntry]:
        parents: dict[str, ParentEntry] = {}
        for chunk in _chunks(child_ids):
            placeholders = ",".join("?" * len(chunk))
            rows = await asyncio.to_thread(
                self._query,
                f"""SELECT c.uid AS child_uid, p.uid AS parent_uid, p.content AS content
                    FROM edges e
                    JOIN nodes p ON p.nid = e.parent_nid AND p.kind = 'node'
                    JOIN nodes c ON c.nid = e.child_nid
                    WHERE c.uid IN ({placeholders})""",  # noqa: S608
                chunk,
            )
            for row in rows:
                parents[row["child_uid"]] = ParentEntry(
                    parent_id=row["parent_uid"], content=row["content"]
                )
        return parents

    async def get_content(self, node_id: str) -> str | None:
        rows = await asyncio.to_thread(
            self._query, "SELECT content FROM nodes WHERE uid = ?", [node_id]
        )
        return rows[0]["content"] if rows else None

    def lookup(self, ids: Sequence[str]) -> list[MatchedResult]:
        """Turn uids into matched results in the given order, skipping unknown ones."""
        found: dict[str, MatchedResult] = {}
        for chunk in _chunks(ids):
            placeholders = ",".join("?" * len(chunk))
            for row in self._query(
                f"SELECT * FROM nodes WHERE uid IN ({placeholders})",  # noqa: S608
                chunk,
            ):
                found[row["uid"]] = graph_node_to_result(
                    row["uid"],
                    {
                        "kind": row["kind"],
                        "content": row["content"],
                        "title": row["title"] or "",
                        "container_id": row["container_uid"],
                    },
                )
        return [found[uid] for uid in ids if uid in found]

    def _query(self, sql: str, params: Sequence[str]) -> list[sqlite3.Row]:
        try:
            with self._lock:
                return self._get_conn().execute(sql, list(params)).fetchall()
        except sqlite3.Error as e:
            raise HierarchyQueryError(f"Hierarchy query failed: {e}") from e

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None


def _chunks(ids: Sequence[str]) -> list[list[str]]:
    unique = list(dict.fromkeys(ids))
    return [unique[i:i + _MAX_BATCH] for i in range(0, len(unique), _MAX_BATCH)]
