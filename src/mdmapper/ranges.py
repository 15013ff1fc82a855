"""Pure helpers over half-open ``[start, end)`` source ranges.

Every other component uses these to compare, merge and shift block ranges
and to translate offsets into editor positions.
"""

from __future__ import annotations

from mdmapper.models import Position, SourceRange


def contains_range(outer: SourceRange, inner: SourceRange) -> bool:
    """Return ``True`` iff *inner* lies entirely within *outer*."""
    return inner.start >= outer.start and inner.end <= outer.end


def ranges_overlap(a: SourceRange, b: SourceRange) -> bool:
    """Return ``True`` iff the open intervals of *a* and *b* intersect.

    Ranges that merely touch (``a.end == b.start``) do not overlap.
    """
    return a.start < b.end and b.start < a.end


def merge_ranges(*ranges: SourceRange) -> SourceRange:
    """Return the smallest range covering every input range.

    Raises
    ------
    ValueError
        If no ranges are given.
    """
    if not ranges:
        raise ValueError("merge_ranges() requires at least one range")
    return SourceRange(min(r.start for r in ranges), max(r.end for r in ranges))


def shift_range(rng: SourceRange, delta: int) -> SourceRange:
    """Move *rng* by *delta* characters."""
    if delta == 0:
        return rng
    return SourceRange(rng.start + delta, rng.end + delta)


def adjust_range_after_edit(
    rng: SourceRange, edit_start: int, edit_end: int, inserted_length: int
) -> SourceRange:
    """Recompute *rng* after ``[edit_start, edit_end)`` was replaced.

    *inserted_length* characters were inserted at *edit_start*.

    * A range ending at or before *edit_start* is unchanged.
    * A range starting at or after *edit_end* shifts by
      ``inserted_length - (edit_end - edit_start)``.
    * A range overlapping the edit absorbs the replacement: its start clamps
      to *edit_start* if it fell inside the deleted span, and its end moves
      with the text after the edit, or clamps to the end of the inserted
      text if it fell inside the deleted span.

    A pure insertion at ``rng.end`` leaves the range alone; one at
    ``rng.start`` of a non-empty range shifts it.
    """
    if edit_end < edit_start:
        raise ValueError(f"edit_end ({edit_end}) must be >= edit_start ({edit_start})")
    delta = inserted_length - (edit_end - edit_start)
    if rng.end <= edit_start:
        return rng
    if rng.start >= edit_end:
        return shift_range(rng, delta)
    start = min(rng.start, edit_start)
    end = rng.end + delta if rng.end > edit_end else edit_start + inserted_length
    return SourceRange(start, max(start, end))


def offset_to_position(text: str, offset: int) -> Position:
    """Convert a character offset into a 1-based line/column position.

    Offsets outside ``[0, len(text)]`` are clamped.
    """
    offset = max(0, min(offset, len(text)))
    line = text.count("\n", 0, offset) + 1
    line_start = text.rfind("\n", 0, offset) + 1
    return Position(line=line, column=offset - line_start + 1)


def position_to_offset(text: str, position: Position) -> int:
    """Inverse of :func:`offset_to_position`.

    Lines past the end clamp to ``len(text)``; columns past the end of a
    line clamp to the line end.
    """
    offset = 0
    for _ in range(max(position.line, 1) - 1):
        nl = text.find("\n", offset)
        if nl == -1:
            return len(text)
        offset = nl + 1
    line_end = text.find("\n", offset)
    if line_end == -1:
        line_end = len(text)
    return min(offset + max(position.column, 1) - 1, line_end)


def extract_range_text(text: str, rng: SourceRange) -> str:
    """Return the slice of *text* covered by *rng*."""
    return text[rng.start:rng.end]
