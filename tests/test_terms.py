"""Tests for the expansion term cache."""

from __future__ import annotations

import pytest

from ctxexpand.context.terms import TermCache, cached_terms, clean_term, strategy_label


class CountingGenerator:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str, str]] = []

    async def __call__(self, term: str, strategy: str, query: str) -> list[str]:
        self.calls.append((term, strategy, query))
        return [f"{term}-{strategy}-{len(self.calls)}"]


class TestHelpers:
    def test_clean_term(self):
        assert clean_term('  "budget" ') == "budget"
        assert clean_term("'depth'") == "depth"

    @pytest.mark.parametrize(
        "strategy,label",
        [
            ("related_concepts", "related terms"),
            ("broader_terms", "broader terms"),
            ("all", "all types"),
            ("fuzzy", "fuzzy"),
            ("something_new", "something_new"),
            ("", "unknown"),
        ],
    )
    def test_strategy_label(self, strategy: str, label: str):
        assert strategy_label(strategy) == label


class TestTermCache:
    def test_put_and_get(self):
        cache = TermCache()
        cache.put("budget", "synonyms", ["allowance", "quota"])
        assert cache.get("budget", "synonyms") == ["allowance", "quota"]
        assert cache.get("budget", "fuzzy") is None
        assert len(cache) == 1

    def test_key_includes_mode_and_query(self):
        cache = TermCache()
        cache.put("budget", "synonyms", ["a"], mode="text", query="q1")
        assert cache.get("budget", "synonyms", mode="text", query="q2") is None
        assert cache.get("budget", "synonyms", mode="regex", query="q1") is None
        assert TermCache.key("budget", "synonyms", "text", "q1") in cache

    def test_key_uses_cleaned_term(self):
        cache = TermCache()
        cache.put(' "budget" ', "fuzzy", ["b"])
        assert cache.get("budget", "fuzzy") == ["b"]

    def test_returned_lists_are_copies(self):
        cache = TermCache()
        cache.put("budget", "fuzzy", ["b"])
        cache.get("budget", "fuzzy").append("mutated")
        assert cache.get("budget", "fuzzy") == ["b"]

    def test_clear(self):
        cache = TermCache()
        cache.put("budget", "fuzzy", ["b"])
        cache.clear()
        assert len(cache) == 0


class TestCachedTerms:
    @pytest.mark.asyncio
    async def test_generates_once_per_key(self):
        cache = TermCache()
        gen = CountingGenerator()
        first = await cached_terms(cache, "budget", "synonyms", gen, query="how much")
        second = await cached_terms(cache, ' "budget"', "synonyms", gen, query="how much")
        assert first == second == ["budget-synonyms-1"]
        assert gen.calls == [("budget", "synonyms", "how much")]

    @pytest.mark.asyncio
    async def test_different_strategy_generates_again(self):
        cache = TermCache()
        gen = CountingGenerator()
        await cached_terms(cache, "budget", "synonyms", gen)
        await cached_terms(cache, "budget", "broader_terms", gen)
        assert len(gen.calls) == 2
        assert len(cache) == 2

    @pytest.mark.asyncio
    async def test_without_cache(self):
        gen = CountingGenerator()
        await cached_terms(None, "budget", "fuzzy", gen)
        await cached_terms(None, "budget", "fuzzy", gen)
        assert len(gen.calls) == 2
