"""Incremental reconciliation of a block tree against text changes.

:func:`update_blocks` takes the blocks parsed from the old text, the
changes the host applied (pre-edit offsets) and the new text.  It returns
the blocks :func:`~mdmapper.converter.parse_markdown` would produce for the
new text, re-parsing only the windows around the changes:

1. Top-level blocks touching a change, plus one untouched neighbour on
   each side, form a window.  A window never splits the blocks built from
   one source region (see :class:`~mdmapper.models.BlockOrigin`); it grows
   to cover them.  Adjacent windows merge.
2. Each window's text is parsed in isolation.  The result is accepted only
   if its last block reproduces the trailing neighbour exactly and nothing
   in it depends on text outside the window (unbalanced toggles,
   unterminated fences), before or after the edit.
3. A rejected window is widened and retried; after the last attempt, or
   when the changes overlap or the windows grow too large, the whole
   document is re-parsed.

Blocks outside the windows are copied with shifted ranges.  Ids survive
wherever a block is unchanged (and for same-type blocks edited in place).
"""

from __future__ import annotations

import copy
from bisect import bisect_left, bisect_right
from dataclasses import dataclass, replace

from mdmapper.config import MapperSettings, resolve_settings
from mdmapper.converter.md_to_blocks import MarkdownParser
from mdmapper.ids import iter_blocks
from mdmapper.incremental.changes import changes_overlap, sort_changes
from mdmapper.incremental.matcher import assign_fresh_ids, carry_over_ids, compute_signature
from mdmapper.models import (
    Block,
    BlockContent,
    BlockOrigin,
    BlockType,
    DocumentChange,
    SourceRange,
)
from mdmapper.observability import get_logger, log_elapsed
from mdmapper.ranges import adjust_range_after_edit, shift_range

log = get_logger("mdmapper.updater")

# Neighbour padding per attempt before falling back to a full reparse.
_WINDOW_PADDING = (1, 2, 4)


class _ReconcileError(Exception):
    """A window could not be re-parsed in isolation."""


@dataclass
class _Window:
    lo: int
    hi: int


class _OffsetMap:
    """Maps pre-edit offsets outside every change to post-edit offsets."""

    def __init__(self, changes: list[DocumentChange]) -> None:
        self._ends = [c.range.end for c in changes]
        self._cumulative: list[int] = [0]
        for change in changes:
            self._cumulative.append(self._cumulative[-1] + change.delta)

    def delta_at(self, pos: int) -> int:
        return self._cumulative[bisect_right(self._ends, pos)]

    def __call__(self, pos: int) -> int:
        return pos + self.delta_at(pos)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def update_blocks(
    blocks: list[Block],
    changes: list[DocumentChange],
    text: str | None = None,
    *,
    settings: MapperSettings | None = None,
) -> list[Block]:
    """Reconcile *blocks* with *changes*.

    Parameters
    ----------
    blocks:
        Blocks parsed from the pre-edit text.  Not modified.
    changes:
        Replacements the host applied, in pre-edit offsets.
    text:
        The post-edit document.  Without it only range shifting is
        possible: single-line paragraphs and headings are patched with the
        inserted text, other blocks touched by a change keep their stale
        content, and every block receives clamped ranges.
    settings:
        Settings snapshot for re-parsing; defaults to the current settings.

    Returns
    -------
    list[Block]
        A new block tree; no block object is shared with *blocks*.
    """
    settings = resolve_settings(settings)
    if not changes:
        return copy.deepcopy(blocks)
    ordered = sort_changes(changes)
    if text is None:
        return _shift_only(blocks, ordered)

    if not blocks or changes_overlap(ordered):
        return _full_reparse(blocks, text, settings, reason="overlap" if blocks else "empty")

    offsets = _OffsetMap(ordered)
    if offsets(blocks[-1].source_range.end) > len(text):
        return _full_reparse(blocks, text, settings, reason="length_mismatch")

    parser = MarkdownParser(settings)
    with log_elapsed(log, "incremental update", changes=len(ordered)) as fields:
        for padding in _WINDOW_PADDING:
            windows = _compute_windows(blocks, ordered, padding)
            try:
                result = _reconcile(blocks, windows, text, offsets, parser, settings)
            except _ReconcileError as exc:
                log.debug(
                    "window rejected",
                    extra={"extra_fields": {"padding": padding, "reason": str(exc)}},
                )
                continue
            fields.update(
                windows=[(w.lo, w.hi) for w in windows],
                padding=padding,
                blocks=len(result),
            )
            return result
        fields["windows"] = None
    return _full_reparse(blocks, text, settings, reason="reconcile_failed")


# ---------------------------------------------------------------------------
# Windows
# ---------------------------------------------------------------------------

def _origin(block: Block) -> BlockOrigin:
    if block.origin is not None:
        return block.origin
    return BlockOrigin(block.source_range.start, block.source_range.end)


def _snap(blocks: list[Block], lo: int, hi: int) -> tuple[int, int]:
    """Widen ``[lo, hi]`` until no block outside shares a region with one inside."""
    start = min(_origin(b).start for b in blocks[lo:hi + 1])
    end = max(_origin(b).end for b in blocks[lo:hi + 1])
    moved = True
    while moved:
        moved = False
        if lo > 0 and _origin(blocks[lo - 1]).end > start:
            lo -= 1
            start = min(start, _origin(blocks[lo]).start)
            moved = True
        if hi < len(blocks) - 1 and _origin(blocks[hi + 1]).start < end:
            hi += 1
            end = max(end, _origin(blocks[hi]).end)
            moved = True
    return lo, hi


def _compute_windows(
    blocks: list[Block], changes: list[DocumentChange], padding: int,
) -> list[_Window]:
    n = len(blocks)
    ends = [b.source_range.end for b in blocks]
    windows: list[_Window] = []
    for change in changes:
        s, e = change.range.start, change.range.end
        first = next_idx = bisect_left(ends, s)
        last = first - 1
        while next_idx < n and blocks[next_idx].source_range.start <= e:
            last = next_idx
            next_idx += 1
        if last >= first:
            lo, hi = first - padding, last + padding
        else:
            # In a gap: the blocks on either side.
            lo, hi = first - padding, first + padding - 1
        lo, hi = _snap(blocks, max(0, lo), min(n - 1, hi))
        windows.append(_Window(lo, hi))

    windows.sort(key=lambda w: w.lo)
    merged: list[_Window] = []
    for w in windows:
        if merged and w.lo <= merged[-1].hi + 1:
            merged[-1].hi = max(merged[-1].hi, w.hi)
        else:
            merged.append(w)
    return merged


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------

def _reconcile(
    blocks: list[Block],
    windows: list[_Window],
    text: str,
    offsets: _OffsetMap,
    parser: MarkdownParser,
    settings: MapperSettings,
) -> list[Block]:
    n = len(blocks)
    spans: list[tuple[_Window, int, int]] = []
    for w in windows:
        start = 0 if w.lo == 0 else offsets(_origin(blocks[w.lo]).start)
        end = len(text) if w.hi == n - 1 else offsets(_origin(blocks[w.hi]).end)
        spans.append((w, start, end))
    if sum(end - start for _, start, end in spans) > settings.incremental_region_limit:
        raise _ReconcileError("region limit exceeded")
    # Toggle markers may pair with an unclosed opener or a stray closer
    # anywhere in the document.
    fragile = any(b.origin is None or b.origin.context_sensitive for b in blocks)

    result: list[Block] = []
    used: set[str] = set()
    reparsed: list[tuple[list[Block], list[Block]]] = []
    cursor = 0
    for w, start, end in spans:
        old = blocks[w.lo:w.hi + 1]
        if any(_origin(b).context_sensitive for b in old):
            raise _ReconcileError("window holds blocks that depend on surrounding text")
        result.extend(_shifted_copy(b, offsets.delta_at(b.source_range.start))
                      for b in blocks[cursor:w.lo])
        outcome = parser.parse_span(text, start, end)
        if outcome.context_sensitive:
            raise _ReconcileError("region depends on surrounding text")
        if outcome.toggle_markers and fragile:
            raise _ReconcileError("toggle markers near an unbalanced toggle")
        if w.hi < n - 1:
            _check_trailing_neighbour(blocks[w.hi], outcome.blocks, offsets)
        result.extend(outcome.blocks)
        reparsed.append((old, outcome.blocks))
        cursor = w.hi + 1
    result.extend(_shifted_copy(b, offsets.delta_at(b.source_range.start))
                  for b in blocks[cursor:])

    new_ids = {id(b) for _, new in reparsed for b in iter_blocks(new)}
    used.update(b.id for b in iter_blocks(result) if id(b) not in new_ids)
    for old, new in reparsed:
        carry_over_ids(old, new, used)
    assign_fresh_ids(result, used)
    return result


def _check_trailing_neighbour(
    old: Block, new_blocks: list[Block], offsets: _OffsetMap,
) -> None:
    if not new_blocks:
        raise _ReconcileError("window parsed to nothing")
    last = new_blocks[-1]
    delta = offsets.delta_at(old.source_range.start)
    if last.source_range != shift_range(old.source_range, delta):
        raise _ReconcileError("trailing neighbour moved")
    if _origin(last) != _origin(old).shifted(delta):
        raise _ReconcileError("trailing neighbour's region changed")
    if compute_signature(last) != compute_signature(old):
        raise _ReconcileError("trailing neighbour changed")


def _copy_content(content: BlockContent) -> BlockContent:
    """Copy *content*.  Table rows are copied; their frozen cells are shared."""
    clone = copy.copy(content)
    for name, value in list(vars(clone).items()):
        if isinstance(value, list):
            setattr(clone, name, [list(v) if isinstance(v, list) else v for v in value])
    return clone


def _shifted_copy(block: Block, delta: int) -> Block:
    return Block(
        id=block.id,
        type=block.type,
        content=_copy_content(block.content),
        source_range=shift_range(block.source_range, delta),
        children=(
            [_shifted_copy(c, delta) for c in block.children]
            if block.children is not None
            else None
        ),
        origin=block.origin.shifted(delta) if block.origin is not None else None,
    )


# ---------------------------------------------------------------------------
# Fallbacks
# ---------------------------------------------------------------------------

def _full_reparse(
    blocks: list[Block], text: str, settings: MapperSettings, *, reason: str,
) -> list[Block]:
    log.debug("full reparse", extra={"extra_fields": {"reason": reason, "chars": len(text)}})
    new_blocks = MarkdownParser(settings).parse_span(text, 0, len(text)).blocks
    used: set[str] = set()
    carry_over_ids(blocks, new_blocks, used)
    assign_fresh_ids(new_blocks, used)
    return new_blocks


def _patch_text(block: Block, hits: list[DocumentChange]) -> BlockContent | None:
    """Apply *hits* to a single-line paragraph or heading, or return ``None``.

    The text is assumed to end where the block's range ends, which holds
    for parsed paragraphs.  A heading must also start one space after its
    marker, which rules out closing sequences and padded text.
    """
    if block.type not in (BlockType.PARAGRAPH, BlockType.HEADING):
        return None
    text = block.content.text
    if "\n" in text or changes_overlap(hits):
        return None
    offset = block.source_range.end - len(text)
    if offset < block.source_range.start:
        return None
    if block.type == BlockType.HEADING and offset != block.source_range.start + block.content.level + 1:
        return None
    for change in reversed(hits):
        lo, hi = change.range.start - offset, change.range.end - offset
        if lo < 0 or hi > len(text) or "\n" in change.text:
            return None
        text = text[:lo] + change.text + text[hi:]
    return replace(block.content, text=text)


def _shift_only(blocks: list[Block], changes: list[DocumentChange]) -> list[Block]:
    stale = 0

    def touching(rng: SourceRange) -> list[DocumentChange]:
        return [c for c in changes if rng.start <= c.range.end and c.range.start <= rng.end]

    def adjust_span(start: int, end: int) -> SourceRange:
        rng = SourceRange(start, end)
        for change in reversed(changes):
            rng = adjust_range_after_edit(
                rng, change.range.start, change.range.end, len(change.text),
            )
        return rng

    def adjust(block: Block) -> Block:
        nonlocal stale
        rng = block.source_range
        content = _copy_content(block.content)
        hits = touching(rng)
        if hits:
            # Insertions on the range boundary move the range, not the text.
            inside = [c for c in hits if c.range.start < rng.end and rng.start < c.range.end]
            patched = _patch_text(block, hits) if len(inside) == len(hits) else None
            if patched is not None:
                content = patched
            elif not any(touching(c.source_range) for c in block.children or []):
                stale += 1
        origin = None
        if block.origin is not None:
            span = adjust_span(block.origin.start, block.origin.end)
            origin = BlockOrigin(span.start, span.end, block.origin.context_sensitive)
        return Block(
            id=block.id,
            type=block.type,
            content=content,
            source_range=adjust_span(rng.start, rng.end),
            children=[adjust(c) for c in block.children] if block.children is not None else None,
            origin=origin,
        )

    result = [adjust(b) for b in blocks]
    if stale:
        log.warning(
            "blocks touched by changes were shifted without document text",
            extra={"extra_fields": {"stale": stale, "changes": len(changes)}},
        )
    return result
