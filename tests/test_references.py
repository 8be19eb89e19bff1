"""Tests for inline block reference resolution."""

from __future__ import annotations

import pytest

from conftest import FailingFetcher
from ctxexpand.exceptions import ReferenceResolutionError
from ctxexpand.hierarchy.graph import GraphHierarchy, build_hierarchy_graph
from ctxexpand.hierarchy.references import BLOCK_REF_RE, BlockReferenceResolver, resolve_or_keep


def chain_fetcher() -> GraphHierarchy:
    data = {
        "containers": [
            {
                "id": "page-refs",
                "title": "Refs",
                "children": [
                    {"id": "refAAAAAA", "content": "A sees ((refBBBBBB))"},
                    {"id": "refBBBBBB", "content": "B sees ((refCCCCCC))"},
                    {"id": "refCCCCCC", "content": "C sees ((refAAAAAA))"},
                ],
            }
        ]
    }
    return GraphHierarchy(build_hierarchy_graph(data))


class TestPattern:
    def test_matches_nine_char_uid(self):
        assert BLOCK_REF_RE.findall("x ((abcDEF123)) y") == ["abcDEF123"]

    def test_ignores_other_lengths(self):
        assert BLOCK_REF_RE.findall("((short)) ((waytoolong12))") == []

    def test_ignores_inline_code(self):
        assert BLOCK_REF_RE.findall("`((abcDEF123))`") == []


class TestResolver:
    @pytest.mark.asyncio
    async def test_resolves_known_reference(self, fetcher):
        resolver = BlockReferenceResolver(fetcher)
        text = await resolver.resolve("see ((blockB001)) here")
        assert text == "see Beta referenced text here"

    @pytest.mark.asyncio
    async def test_unknown_reference_kept(self, fetcher):
        resolver = BlockReferenceResolver(fetcher)
        assert await resolver.resolve("see ((missing01))") == "see ((missing01))"

    @pytest.mark.asyncio
    async def test_plain_text_untouched(self, fetcher):
        resolver = BlockReferenceResolver(fetcher)
        assert await resolver.resolve("no refs at all") == "no refs at all"
        assert await resolver.resolve("") == ""

    @pytest.mark.asyncio
    async def test_several_references(self, fetcher):
        resolver = BlockReferenceResolver(fetcher)
        text = await resolver.resolve("((blockB001)) and ((blockA002))")
        assert text == "Beta referenced text and Second top block"

    @pytest.mark.asyncio
    async def test_single_level_by_default(self):
        resolver = BlockReferenceResolver(chain_fetcher())
        assert await resolver.resolve("((refAAAAAA))") == "A sees ((refBBBBBB))"

    @pytest.mark.asyncio
    async def test_nested_resolution_stops_on_cycle(self):
        resolver = BlockReferenceResolver(chain_fetcher())
        text = await resolver.resolve("((refAAAAAA))", once=False)
        assert text.startswith("A sees B sees C sees ")
        assert text.endswith("((refBBBBBB))")

    @pytest.mark.asyncio
    async def test_backend_failure_raises(self, fetcher):
        resolver = BlockReferenceResolver(FailingFetcher(fetcher, bad_ids={"blockB001"}))
        with pytest.raises(ReferenceResolutionError):
            await resolver.resolve("((blockB001))")


class TestResolveOrKeep:
    @pytest.mark.asyncio
    async def test_no_resolver(self):
        assert await resolve_or_keep(None, "((blockB001))") == "((blockB001))"

    @pytest.mark.asyncio
    async def test_failure_keeps_text(self, fetcher):
        resolver = BlockReferenceResolver(FailingFetcher(fetcher, bad_ids={"blockB001"}))
        assert await resolve_or_keep(resolver, "x ((blockB001))", "blockA012") == "x ((blockB001))"
