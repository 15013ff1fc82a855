"""Toggles: ``<details>`` / ``<summary>`` HTML handling.

Toggle HTML is handled in two steps instead of by a general HTML parser.

1. :func:`scan_toggle_html` runs a small state machine over one toggle-HTML
   region (pass 2).  It emits *markers* (:class:`ToggleMarker`) for
   ``<details><summary>…</summary>`` openers and ``</details>`` closers.
   Text between tags is parsed recursively into ordinary blocks.
2. :func:`fold_toggles` (pass 3) walks the flat stream of blocks and markers
   with a stack.  It moves every block between an opener and its closer
   into the toggle's ``children``.

Malformed HTML never raises:

* a ``<summary>`` without ``</summary>`` turns the region into a paragraph;
* a standalone ``<summary>X</summary>`` becomes a toggle with no children;
* an opener that is never closed becomes a paragraph holding its raw HTML,
  and the blocks after it stay at the enclosing level;
* a stray ``</details>`` produces no block;
* openers nested deeper than ``max_nesting_depth`` and their closers
  become paragraphs.

Top-level blocks carry a :class:`~mdmapper.models.BlockOrigin`.  A folded
toggle's origin spans from its opener's region to its closer's; blocks
whose shape hinges on an unclosed opener or a stray closer get an origin
marked context-sensitive.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from typing import Callable, Union

from mdmapper.models import (
    Block,
    BlockOrigin,
    BlockType,
    ConversionWarning,
    ParagraphContent,
    SourceRange,
    ToggleContent,
)

_TAG_RE = re.compile(r"<(/?)(details|summary)(?=[\s/>])[^>]*>", re.IGNORECASE)
_TOGGLE_START_RE = re.compile(r"^</?(?:details|summary)(?:[\s/>]|$)", re.IGNORECASE)


def is_toggle_html(line: str) -> bool:
    """Return ``True`` if stripped *line* starts with a details or summary tag."""
    return _TOGGLE_START_RE.match(line) is not None


@dataclass
class ToggleMarker:
    """An opener (``kind="open"``) or closer (``kind="close"``) of a toggle."""

    kind: str
    summary: str
    raw: str
    source_range: SourceRange
    origin: BlockOrigin | None = None


Item = Union[Block, ToggleMarker]

# (fragment_text, absolute_offset) -> items
FragmentParser = Callable[[str, int], list]


def _paragraph(text: str, start: int, end: int, origin: BlockOrigin | None = None) -> Block:
    return Block(
        id="",
        type=BlockType.PARAGRAPH,
        content=ParagraphContent(text),
        source_range=SourceRange(start, end),
        origin=origin,
    )


def _toggle(
    summary: str, start: int, end: int, children: list[Block], origin: BlockOrigin | None = None,
) -> Block:
    return Block(
        id="",
        type=BlockType.TOGGLE,
        content=ToggleContent(summary=summary),
        source_range=SourceRange(start, end),
        children=children,
        origin=origin,
    )


def _span(opener: BlockOrigin | None, closer: BlockOrigin | None) -> BlockOrigin | None:
    if opener is None or closer is None:
        return opener or closer
    return BlockOrigin(
        opener.start, closer.end, opener.context_sensitive or closer.context_sensitive,
    )


def _sensitive(origin: BlockOrigin | None) -> BlockOrigin | None:
    return replace(origin, context_sensitive=True) if origin is not None else None


# ---------------------------------------------------------------------------
# Pass 2: region state machine
# ---------------------------------------------------------------------------

def scan_toggle_html(text: str, base: int, parse_fragment: FragmentParser) -> list[Item] | None:
    """Split one toggle-HTML region into markers and content blocks.

    Parameters
    ----------
    text:
        The region text.
    base:
        Absolute offset of ``text[0]``.
    parse_fragment:
        Parses the text between tags into blocks (and markers).

    Returns
    -------
    list or None
        The items in document order, or ``None`` when the region must
        degrade to a plain paragraph (no tags at all, or an unterminated
        ``<summary>``).
    """
    tags = list(_TAG_RE.finditer(text))
    if not tags:
        return None

    items: list[Item] = []
    pos = 0  # end of the last consumed tag, relative to text
    pending: re.Match | None = None  # a <details> still waiting for its summary

    def flush_text(upto: int) -> None:
        chunk = text[pos:upto]
        if chunk.strip():
            items.extend(parse_fragment(chunk, base + pos))

    def flush_pending() -> None:
        nonlocal pending
        if pending is not None:
            items.append(ToggleMarker(
                kind="open",
                summary="",
                raw=pending.group(0),
                source_range=SourceRange(base + pending.start(), base + pending.end()),
            ))
            pending = None

    k = 0
    while k < len(tags):
        tag = tags[k]
        closing = tag.group(1) == "/"
        name = tag.group(2).lower()

        if name == "summary" and not closing:
            close_idx = next(
                (
                    m for m in range(k + 1, len(tags))
                    if tags[m].group(1) == "/" and tags[m].group(2).lower() == "summary"
                ),
                None,
            )
            if close_idx is None:
                return None
            end_tag = tags[close_idx]
            summary = " ".join(text[tag.end():end_tag.start()].split())
            if pending is not None and not text[pending.end():tag.start()].strip():
                start = pending.start()
                items.append(ToggleMarker(
                    kind="open",
                    summary=summary,
                    raw=text[start:end_tag.end()],
                    source_range=SourceRange(base + start, base + end_tag.end()),
                ))
                pending = None
            else:
                flush_pending()
                flush_text(tag.start())
                items.append(_toggle(summary, base + tag.start(), base + end_tag.end(), []))
            pos = end_tag.end()
            k = close_idx + 1
            continue

        if pending is not None:
            flush_pending()
        flush_text(tag.start())
        if name == "details" and not closing:
            pending = tag
        elif name == "details":
            items.append(ToggleMarker(
                kind="close",
                summary="",
                raw=tag.group(0),
                source_range=SourceRange(base + tag.start(), base + tag.end()),
            ))
        else:
            # A stray </summary> is kept as text.
            items.append(_paragraph(tag.group(0), base + tag.start(), base + tag.end()))
        pos = tag.end()
        k += 1

    flush_pending()
    flush_text(len(text))
    return items


# ---------------------------------------------------------------------------
# Pass 3: fold markers into toggle blocks
# ---------------------------------------------------------------------------

@dataclass
class _Frame:
    marker: ToggleMarker
    children: list[Block] | None = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return self.children is None


def fold_toggles(
    items: list[Item],
    max_depth: int,
    warnings: list[ConversionWarning] | None = None,
) -> list[Block]:
    """Fold toggle markers into toggle blocks with children.

    Parameters
    ----------
    items:
        Blocks and markers in document order.
    max_depth:
        Maximum number of toggles nested inside each other.
    warnings:
        Receives ``UNCLOSED_TOGGLE``, ``STRAY_TOGGLE_CLOSE`` and
        ``TOGGLE_TOO_DEEP`` warnings.

    Returns
    -------
    list[Block]
        The top-level blocks; no markers remain.
    """
    warnings = warnings if warnings is not None else []
    root: list[Block] = []
    stack: list[_Frame] = []
    sensitive: list[BlockOrigin] = []

    def target() -> list[Block]:
        for frame in reversed(stack):
            if not frame.degraded:
                return frame.children
        return root

    def depth() -> int:
        return sum(1 for frame in stack if not frame.degraded)

    for item in items:
        if isinstance(item, Block):
            target().append(item)
            continue
        rng = item.source_range
        if item.kind == "open":
            if depth() >= max_depth:
                warnings.append(ConversionWarning(
                    code="TOGGLE_TOO_DEEP",
                    message=f"Toggle nested deeper than {max_depth} kept as text.",
                    context={"offset": rng.start},
                ))
                target().append(_paragraph(item.raw, rng.start, rng.end, item.origin))
                stack.append(_Frame(item, children=None))
            else:
                stack.append(_Frame(item))
            continue
        if not stack:
            warnings.append(ConversionWarning(
                code="STRAY_TOGGLE_CLOSE",
                message="Closing </details> without an opener was dropped.",
                context={"offset": rng.start},
            ))
            if item.origin is not None:
                sensitive.append(item.origin)
            continue
        frame = stack.pop()
        if frame.degraded:
            target().append(_paragraph(item.raw, rng.start, rng.end, item.origin))
        else:
            target().append(_toggle(
                frame.marker.summary, frame.marker.source_range.start, rng.end, frame.children,
                _span(frame.marker.origin, item.origin),
            ))

    while stack:
        frame = stack.pop()
        if frame.degraded:
            continue
        rng = frame.marker.source_range
        warnings.append(ConversionWarning(
            code="UNCLOSED_TOGGLE",
            message="<details> without a closing tag kept as text.",
            context={"offset": rng.start},
        ))
        if frame.marker.origin is not None:
            sensitive.append(frame.marker.origin)
        opener = _paragraph(frame.marker.raw, rng.start, rng.end, frame.marker.origin)
        target().extend([opener, *frame.children])

    for block in root:
        origin = block.origin
        if origin is not None and any(
            s.start < origin.end and origin.start < s.end for s in sensitive
        ):
            block.origin = _sensitive(origin)
    return root
