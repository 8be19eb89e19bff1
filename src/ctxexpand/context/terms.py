"""Caller-owned cache for semantic expansion terms.

Generating alternative search terms (synonyms, related concepts, ...) takes
a language model call, so within one chat session the same term asked for
with the same strategy is generated only once. The cache belongs to the
caller's session and is handed in explicitly; this module never keeps one
of its own.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger("ctxexpand.terms")

TermGenerator = Callable[[str, str, str], Awaitable[list[str]]]

_STRATEGY_LABELS = {
    "fuzzy": "fuzzy",
    "synonyms": "synonyms",
    "related_concepts": "related terms",
    "broader_terms": "broader terms",
    "custom": "custom",
    "all": "all types",
}


def strategy_label(strategy: str) -> str:
    """User-facing name of an expansion strategy."""
    return _STRATEGY_LABELS.get(strategy, strategy or "unknown")


def clean_term(term: str) -> str:
    return term.strip().strip("\"'").strip()


class TermCache:
    """Expansion terms keyed by (term, strategy, mode, originating query)."""

    def __init__(self) -> None:
        self._entries: dict[tuple[str, str, str, str], list[str]] = {}

    @staticmethod
    def key(term: str, strategy: str, mode: str = "text", query: str = "") -> tuple[str, str, str, str]:
        return (clean_term(term), strategy, mode, query)

    def get(self, term: str, strategy: str, mode: str = "text", query: str = "") -> list[str] | None:
        terms = self._entries.get(self.key(term, strategy, mode, query))
        return list(terms) if terms is not None else None

    def put(
        self, term: str, strategy: str, terms: list[str], mode: str = "text", query: str = ""
    ) -> None:
        self._entries[self.key(term, strategy, mode, query)] = list(terms)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def clear(self) -> None:
        self._entries.clear()


async def cached_terms(
    cache: TermCache | None,
    term: str,
    strategy: str,
    generate: TermGenerator,
    mode: str = "text",
    query: str = "",
) -> list[str]:
    """Return expansion terms for ``term``, generating them at most once per key.

    ``generate`` is called as ``generate(cleaned_term, strategy, query)``.
    Without a cache every call generates.
    """
    cleaned = clean_term(term)
    if cache is not None:
        hit = cache.get(cleaned, strategy, mode, query)
        if hit is not None:
            logger.debug(f"Reusing cached {strategy_label(strategy)} expansion for '{cleaned}'")
            return hit

    terms = await generate(cleaned, strategy, query)
    if cache is not None:
        cache.put(cleaned, strategy, terms, mode, query)
        logger.debug(f"Cached {len(terms)} {strategy_label(strategy)} terms for '{cleaned}'")
    return terms
