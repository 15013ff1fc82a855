"""Tests for incremental/changes.py"""
import pytest

from mdmapper.errors import MdMapperInputError
from mdmapper.incremental.changes import (
    apply_changes,
    batch_text_edits,
    changes_overlap,
    sort_changes,
    text_edit_to_document_change,
)
from mdmapper.models import DocumentChange, SourceRange, TextEdit


def _change(start: int, end: int, text: str) -> DocumentChange:
    return DocumentChange(SourceRange(start, end), text)


class TestApplyChanges:
    def test_pre_edit_offsets(self):
        changes = [_change(0, 5, "HELLO"), _change(6, 11, "there")]
        assert apply_changes("hello world", changes) == "HELLO there"

    def test_order_does_not_matter(self):
        changes = [_change(6, 11, "there"), _change(0, 5, "HI")]
        assert apply_changes("hello world", changes) == "HI there"

    def test_insert_and_delete(self):
        assert apply_changes("abc", [_change(1, 1, "XY"), _change(2, 3, "")]) == "aXYb"

    def test_no_changes(self):
        assert apply_changes("abc", []) == "abc"

    def test_overlap_rejected(self):
        with pytest.raises(MdMapperInputError):
            apply_changes("abcdef", [_change(0, 3, "x"), _change(2, 5, "y")])

    def test_outside_text_rejected(self):
        with pytest.raises(MdMapperInputError) as exc_info:
            apply_changes("abc", [_change(2, 9, "x")])
        assert exc_info.value.context == {"end": 9, "length": 3}


class TestOrdering:
    def test_sort(self):
        changes = [_change(5, 6, ""), _change(0, 2, ""), _change(0, 1, "")]
        assert [c.range for c in sort_changes(changes)] == [
            SourceRange(0, 1), SourceRange(0, 2), SourceRange(5, 6),
        ]

    def test_touching_changes_do_not_overlap(self):
        assert not changes_overlap([_change(0, 2, "a"), _change(2, 4, "b")])

    def test_overlap(self):
        assert changes_overlap([_change(0, 3, "a"), _change(2, 4, "b")])


class TestTextEdits:
    def test_convert(self):
        change = text_edit_to_document_change(TextEdit(1, 3, "x"))
        assert change == _change(1, 3, "x")

    def test_batch_sorted_descending(self):
        edits = [TextEdit(5, 6, "a"), TextEdit(1, 2, "b"), TextEdit(9, 9, "c")]
        assert [c.range.start for c in batch_text_edits(edits)] == [9, 5, 1]

    def test_batch_applies_cleanly(self):
        edits = [TextEdit(0, 1, "A"), TextEdit(4, 5, "E")]
        assert apply_changes("abcde", batch_text_edits(edits)) == "AbcdE"
