"""Tests for incremental/matcher.py"""
from mdmapper.converter.md_to_blocks import MarkdownParser
from mdmapper.incremental import matcher
from mdmapper.incremental.matcher import (
    assign_fresh_ids,
    carry_over_ids,
    compute_signature,
    lcs_match,
)
from mdmapper.models import Block, BlockType, ParagraphContent, SourceRange


def _unlabelled(text: str) -> list[Block]:
    return MarkdownParser().parse_span(text, 0, len(text)).blocks


def _labelled(text: str) -> list[Block]:
    return MarkdownParser().parse(text)


def _sigs(*texts: str):
    return [compute_signature(Block("", BlockType.PARAGRAPH, ParagraphContent(t), SourceRange(0, 0)))
            for t in texts]


class TestComputeSignature:
    def test_ignores_id_and_range(self):
        a = Block("a", BlockType.PARAGRAPH, ParagraphContent("x"), SourceRange(0, 1))
        b = Block("b", BlockType.PARAGRAPH, ParagraphContent("x"), SourceRange(9, 10))
        assert compute_signature(a) == compute_signature(b)

    def test_content_matters(self):
        assert _sigs("x") != _sigs("y")

    def test_children_matter(self):
        (a,) = _unlabelled("- one\n- two")
        (b,) = _unlabelled("- one\n- three")
        assert compute_signature(a) != compute_signature(b)
        assert compute_signature(a).children_hash is not None

    def test_leaf_has_no_children_hash(self):
        assert _sigs("x")[0].children_hash is None


class TestLcsMatch:
    def test_replacement(self):
        assert lcs_match(_sigs("a", "b", "c"), _sigs("a", "x", "c")) == [(0, 0), (2, 2)]

    def test_insertion(self):
        assert lcs_match(_sigs("a", "b"), _sigs("a", "x", "b")) == [(0, 0), (1, 2)]

    def test_deletion(self):
        assert lcs_match(_sigs("a", "b", "c"), _sigs("a", "c")) == [(0, 0), (2, 1)]

    def test_middle_match(self):
        assert lcs_match(_sigs("a", "m", "b"), _sigs("x", "m", "y")) == [(1, 1)]

    def test_empty(self):
        assert lcs_match([], _sigs("a")) == []

    def test_cell_limit_keeps_prefix_and_suffix(self, monkeypatch):
        monkeypatch.setattr(matcher, "LCS_CELL_LIMIT", 1)
        pairs = lcs_match(_sigs("a", "m", "n", "z"), _sigs("a", "n", "m", "z"))
        assert pairs == [(0, 0), (3, 3)]


class TestCarryOverIds:
    def test_unchanged_and_edited_blocks_keep_ids(self):
        old = _labelled("A\n\nB\n\nC")
        new = _unlabelled("A\n\nB edited\n\nC")
        used: set[str] = set()
        carry_over_ids(old, new, used)
        assert [b.id for b in new] == [b.id for b in old]

    def test_type_change_is_not_carried(self):
        old = _labelled("A\n\nB\n\nC")
        new = _unlabelled("A\n\n# B\n\nC")
        carry_over_ids(old, new, set())
        assert new[1].id == ""
        assert new[0].id == old[0].id

    def test_children_carried(self):
        old = _labelled("- a\n- b")
        new = _unlabelled("- a\n- b\n- c")
        carry_over_ids(old, new, set())
        assert new[0].id == old[0].id
        assert [c.id for c in new[0].children[:2]] == [c.id for c in old[0].children]
        assert new[0].children[2].id == ""

    def test_used_ids_not_reused(self):
        old = _labelled("A")
        new = _unlabelled("A")
        used = {old[0].id}
        carry_over_ids(old, new, used)
        assert new[0].id == ""


class TestAssignFreshIds:
    def test_unique(self):
        blocks = _unlabelled("same\n\nsame\n\nsame")
        assign_fresh_ids(blocks, set())
        ids = [b.id for b in blocks]
        assert len(set(ids)) == 3
        assert ids[1] == f"{ids[0]}_1"

    def test_existing_ids_kept(self):
        blocks = _unlabelled("a\n\nb")
        blocks[0].id = "keep"
        assign_fresh_ids(blocks, {"keep"})
        assert blocks[0].id == "keep"
        assert blocks[1].id.startswith("paragraph_")
