"""Data models for adaptive context expansion."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator


class AccessMode(str, Enum):
    """Operating profile trading richness against cost and privacy."""

    BALANCED = "balanced"
    FULL = "full"


class NodeKind(str, Enum):
    """Granularity of a matched item."""

    NODE = "node"  # Block-level item, always owned by a container
    CONTAINER = "container"  # Page-level item


# Character ceilings per access mode (~4 chars per token).
MODE_BUDGETS: dict[AccessMode, int] = {
    AccessMode.BALANCED: 80_000,  # ~20k tokens
    AccessMode.FULL: 200_000,  # ~50k tokens
}


class MatchedResult(BaseModel):
    """A single matched item as handed over by the search layer.

    A record without an ``id`` is metadata-only (usually just a page title):
    it can be shown but never expanded.
    """

    id: str = ""
    kind: NodeKind = NodeKind.NODE
    content: str = ""
    container_id: str | None = None
    title: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_ownership(self) -> MatchedResult:
        if not self.id:
            return self
        if self.kind == NodeKind.CONTAINER and self.container_id:
            raise ValueError(f"Container '{self.id}' cannot belong to another container")
        if self.kind == NodeKind.NODE and not self.container_id:
            raise ValueError(f"Node '{self.id}' has no owning container")
        return self

    @property
    def expandable(self) -> bool:
        """Only records with an identifier can be looked up in the hierarchy."""
        return bool(self.id)

    @property
    def own_text(self) -> str:
        """Raw text of the item itself, falling back to the title for pages."""
        return self.content or self.title


class ExpandedNode(BaseModel):
    """Working record for one item while it is being expanded."""

    id: str
    kind: NodeKind
    original_text: str
    parent_text: str | None = None
    children_outline: str = ""
    final_text: str = ""
    truncated: bool = False
    original_length: int = 0  # Formatted length before the final budget pass
    final_length: int = 0

    def set_text(self, text: str) -> None:
        self.final_text = text
        self.final_length = len(text)


class ExpandedResult(MatchedResult):
    """A matched item carrying its expanded text in ``content``."""

    is_metadata_only: bool = False
    expanded: ExpandedNode | None = None

    def summary_row(self) -> tuple[str, str, int, int, bool]:
        """(id, kind, original length, final length, truncated) for reporting."""
        meta = self.metadata
        return (
            self.id or self.title,
            self.kind.value,
            int(meta.get("original_length", len(self.content))),
            len(self.content),
            bool(meta.get("truncated", False)),
        )


class TokenEstimator:
    """Estimate token counts for rendered text."""

    # Rough heuristic: 1 token ≈ 4 characters
    CHARS_PER_TOKEN = 4.0

    @classmethod
    def estimate(cls, text: str) -> int:
        """Estimate token count for a string."""
        return max(1, int(len(text) / cls.CHARS_PER_TOKEN))
