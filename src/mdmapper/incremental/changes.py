"""Helpers for :class:`~mdmapper.models.DocumentChange` lists.

Changes are expressed against the *pre-edit* text.  Applying them in
descending offset order keeps every earlier offset valid.
"""

from __future__ import annotations

from mdmapper.errors import MdMapperInputError
from mdmapper.models import DocumentChange, SourceRange, TextEdit


def sort_changes(changes: list[DocumentChange]) -> list[DocumentChange]:
    """Return *changes* ordered by ``(start, end)``."""
    return sorted(changes, key=lambda c: (c.range.start, c.range.end))


def changes_overlap(changes: list[DocumentChange]) -> bool:
    """Return ``True`` if any two changes replace overlapping text.

    *changes* must be sorted with :func:`sort_changes`.
    """
    return any(b.range.start < a.range.end for a, b in zip(changes, changes[1:]))


def apply_changes(text: str, changes: list[DocumentChange]) -> str:
    """Apply *changes* (pre-edit offsets) to *text*.

    Raises
    ------
    MdMapperInputError
        If a change lies outside *text* or two changes overlap.
    """
    ordered = sort_changes(changes)
    if changes_overlap(ordered):
        raise MdMapperInputError("Document changes overlap", context={"changes": len(changes)})
    for change in reversed(ordered):
        if change.range.end > len(text):
            raise MdMapperInputError(
                "Document change lies outside the text",
                context={"end": change.range.end, "length": len(text)},
            )
        text = text[:change.range.start] + change.text + text[change.range.end:]
    return text


def text_edit_to_document_change(edit: TextEdit) -> DocumentChange:
    """Convert an editor :class:`TextEdit` into a :class:`DocumentChange`."""
    return DocumentChange(range=SourceRange(edit.start, edit.end), text=edit.new_text)


def batch_text_edits(edits: list[TextEdit]) -> list[DocumentChange]:
    """Convert *edits* to changes, sorted descending for sequential application."""
    ordered = sorted(edits, key=lambda e: e.start, reverse=True)
    return [text_edit_to_document_change(e) for e in ordered]
