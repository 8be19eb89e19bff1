"""Tests for the final budget pass."""

from __future__ import annotations

from ctxexpand.context.equalizer import equalize
from ctxexpand.context.models import ExpandedNode, NodeKind
from ctxexpand.context.truncation import TRUNCATION_MARKER


def node(uid: str, length: int, kind: NodeKind = NodeKind.NODE) -> ExpandedNode:
    n = ExpandedNode(id=uid, kind=kind, original_text=uid)
    n.set_text("x" * length)
    return n


class TestEqualize:
    def test_under_budget_untouched(self):
        nodes = [node("a", 100), node("p", 100, NodeKind.CONTAINER)]
        out = equalize(nodes, 1_000)
        assert out == nodes
        assert not any(n.truncated for n in out)
        assert [n.original_length for n in out] == [100, 100]

    def test_exact_fit_untouched(self):
        nodes = [node("a", 500), node("b", 500)]
        out = equalize(nodes, 1_000)
        assert [n.final_length for n in out] == [500, 500]

    def test_blocks_shrink_pages_kept(self):
        page = node("p", 300, NodeKind.CONTAINER)
        blocks = [node("a", 1_000), node("b", 1_000)]
        out = equalize([blocks[0], page, blocks[1]], 1_000)

        assert [n.id for n in out] == ["a", "p", "b"]
        assert page.final_length == 300
        assert not page.truncated
        # 700 left for blocks, each capped at 90% of an even share
        for b in blocks:
            assert b.truncated
            assert b.final_length == 315
            assert b.final_text.endswith(TRUNCATION_MARKER)
            assert b.original_length == 1_000
        assert sum(n.final_length for n in out) <= 1_000

    def test_proportional_targets(self):
        big, small = node("big", 1_000), node("small", 10)
        out = equalize([big, small], 500)

        assert big.final_length == 225
        assert big.final_length <= big.original_length
        # A 4-char share cannot hold the marker: the block is dropped
        assert out == [big]
        assert sum(n.final_length for n in out) <= 500

    def test_never_grows_a_block(self):
        nodes = [node(f"b{i}", 30 + i) for i in range(10)]
        out = equalize(nodes, 250)
        assert len(out) == 10
        for n in out:
            assert n.final_length <= n.original_length
            assert n.final_text.endswith(TRUNCATION_MARKER)

    def test_many_small_blocks_stay_within_budget(self):
        out = equalize([node(f"b{i}", 50) for i in range(20)], 100)
        assert out == []

        out = equalize([node(f"c{i}", 200) for i in range(4)], 200)
        assert [n.final_length for n in out] == [45, 45, 45, 45]
        assert sum(n.final_length for n in out) <= 200

    def test_pages_kept_when_small_blocks_dropped(self):
        page = node("p", 80, NodeKind.CONTAINER)
        out = equalize([node(f"b{i}", 50) for i in range(10)] + [page], 100)
        assert out == [page]

    def test_no_room_for_blocks(self):
        page = node("p", 600, NodeKind.CONTAINER)
        out = equalize([node("a", 100), page], 500)
        assert out == [page]
        assert page.final_length == 600

    def test_pages_only_over_budget(self):
        pages = [node("p1", 600, NodeKind.CONTAINER), node("p2", 600, NodeKind.CONTAINER)]
        out = equalize(pages, 500)
        assert out == pages
        assert all(p.final_length == 600 for p in out)

    def test_no_truncation(self):
        nodes = [node("a", 5_000), node("b", 5_000)]
        out = equalize(nodes, 10, no_truncation=True)
        assert out == nodes
        assert all(n.final_length == 5_000 and not n.truncated for n in out)

    def test_empty(self):
        assert equalize([], 100) == []
