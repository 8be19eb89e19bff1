"""Collaborator interfaces the expansion engine consumes."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class ChildEntry:
    """A direct child of some parent, with its position among siblings."""

    child_id: str
    content: str
    order: int


@dataclass(frozen=True)
class ParentEntry:
    """The direct (block-level) parent of some child."""

    parent_id: str
    content: str


@runtime_checkable
class HierarchyFetcher(Protocol):
    """Batched read access to parent/child relations and raw content.

    Every method takes the whole batch of ids and answers it in a single
    backend round trip. Implementations raise ``HierarchyQueryError`` when
    the backend fails; ids that simply have no relations are absent from
    the returned mapping.
    """

    async def fetch_children(self, parent_ids: Sequence[str]) -> dict[str, list[ChildEntry]]:
        ...

    async def fetch_parents(self, child_ids: Sequence[str]) -> dict[str, ParentEntry]:
        ...

    async def get_content(self, node_id: str) -> str | None:
        ...


@runtime_checkable
class ReferenceResolver(Protocol):
    """Expands inline references inside item text.

    With ``once=True`` only the references written in ``text`` are
    replaced; references inside the replacement text are left as they are.
    """

    async def resolve(self, text: str, once: bool = True) -> str:
        ...
