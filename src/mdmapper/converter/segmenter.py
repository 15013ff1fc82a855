"""Pass 1 of the parser: split a document into top-level block regions.

Block recognition is markdown-it-py's.  The tokenizer runs the CommonMark
preset with GFM tables enabled and four rules switched off:

* ``lheading`` -- a ``---`` line under text is a divider, never a setext
  underline;
* ``code`` -- indented text is paragraph text; only fences make code;
* ``reference`` -- ``[label]: url`` lines stay visible as paragraphs;
* ``inline`` -- only block tokens and their line maps are needed.

Every top-level token group (an opener at nesting level 0 through its
closer, or a single self-contained token) becomes one :class:`Region`.  A
region keeps its tokens so that pass 2 can read list structure, heading
levels and table cells without scanning the lines again.

A region's offsets run from the start of its first line to the end of its
last non-blank line, excluding the line terminator.  An unterminated fence
runs to the end of the text.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Iterator

from markdown_it import MarkdownIt
from markdown_it.token import Token

from mdmapper.converter.toggles import is_toggle_html

# Top-level token type -> region kind.  Anything else is a paragraph.
_REGION_KINDS: dict[str, str] = {
    "heading_open": "heading",
    "fence": "fence",
    "hr": "hr",
    "blockquote_open": "quote",
    "bullet_list_open": "list",
    "ordered_list_open": "list",
    "table_open": "table",
    "paragraph_open": "paragraph",
}


@lru_cache(maxsize=1)
def block_tokenizer() -> MarkdownIt:
    """Return the shared block-level tokenizer."""
    md = MarkdownIt("commonmark").enable("table")
    md.disable(["lheading", "code", "reference", "inline"])
    return md


def tokenize(text: str) -> list[Token]:
    """Block tokens for *text*; ``map`` line numbers index ``text.split("\\n")``."""
    return block_tokenizer().parse(text.replace("\r", " "))


def top_level_groups(tokens: list[Token]) -> Iterator[list[Token]]:
    """Yield each top-level block as the slice of its tokens."""
    start = 0
    for idx, token in enumerate(tokens):
        if token.level == 0 and token.nesting != 1:
            yield tokens[start:idx + 1]
            start = idx + 1


# ---------------------------------------------------------------------------
# Source lines and regions
# ---------------------------------------------------------------------------

class SourceLines:
    """A document (or a fragment of one) split into lines with offsets.

    Parameters
    ----------
    text:
        The text to split.  ``\\r\\n`` line endings are tolerated; the
        ``\\r`` is dropped from line content and excluded from ranges.
    base:
        Absolute offset of ``text[0]`` in the enclosing document.
    """

    __slots__ = ("base", "lines", "starts", "text")

    def __init__(self, text: str, base: int = 0) -> None:
        self.text = text
        self.base = base
        self.lines: list[str] = []
        self.starts: list[int] = []
        pos = base
        for line in text.split("\n"):
            self.starts.append(pos)
            pos += len(line) + 1
            self.lines.append(line[:-1] if line.endswith("\r") else line)

    def end_of(self, index: int) -> int:
        """Absolute offset of the end of line *index* (terminator excluded)."""
        return self.starts[index] + len(self.lines[index])


@dataclass
class Region:
    """A contiguous run of lines that forms one top-level block.

    ``first`` and ``last`` are inclusive line indexes; ``start`` and
    ``end`` are absolute offsets.  ``tokens`` is the block's token group.
    """

    kind: str
    first: int
    last: int
    start: int
    end: int
    tokens: list[Token] = field(default_factory=list)
    meta: dict[str, Any] = field(default_factory=dict)


def _fence_closed(lines: list[str], first: int, last: int, markup: str) -> bool:
    if last <= first:
        return False
    line = lines[last]
    s = line.strip()
    indent = len(line) - len(line.lstrip(" "))
    return indent < 4 and len(s) >= len(markup) and s == markup[0] * len(s)


def _region(src: SourceLines, group: list[Token]) -> Region | None:
    head = group[0]
    if head.map is None:
        return None
    lines = src.lines
    first, last = head.map[0], head.map[1] - 1
    kind = _REGION_KINDS.get(head.type, "paragraph")
    meta: dict[str, Any] = {}

    if kind == "fence":
        info = head.info.strip()
        meta["language"] = info.split()[0] if info else ""
        meta["indent"] = len(lines[first]) - len(lines[first].lstrip(" "))
        meta["closed"] = _fence_closed(lines, first, last, head.markup)
        if not meta["closed"]:
            last = len(lines) - 1
    else:
        while last > first and not lines[last].strip():
            last -= 1
        if head.type == "html_block" and is_toggle_html(lines[first].strip()):
            kind = "toggle"

    return Region(kind, first, last, src.starts[first], src.end_of(last), group, meta)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def segment(src: SourceLines) -> list[Region]:
    """Split *src* into regions in document order.  Blank lines are skipped."""
    tokens = tokenize("\n".join(src.lines))
    regions: list[Region] = []
    for group in top_level_groups(tokens):
        region = _region(src, group)
        if region is not None:
            regions.append(region)
    return regions


def opens_block(line: str) -> bool:
    """Return ``True`` if *line* on its own parses as something other than a paragraph."""
    tokens = tokenize(line)
    return bool(tokens) and tokens[0].type != "paragraph_open"


def continues_paragraph(previous: str, line: str) -> bool:
    """Return ``True`` if *line* extends a paragraph whose last line is *previous*."""
    tokens = tokenize(f"x\n{previous}\n{line}")
    return tokens[0].type == "paragraph_open" and tokens[0].map == [0, 3]
