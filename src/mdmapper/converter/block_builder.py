"""Pass 2 of the parser: turn segmented regions into blocks.

Each region kind has a handler in :data:`_REGION_HANDLERS`:

- heading -> heading block (levels 4-6 clamp to 3)
- fence -> code block (language = first word of the info string)
- hr -> divider
- quote -> callout when the first line carries a marker, otherwise quote
- list -> list or taskList container with listItem / taskItem children;
  an item's ``indent`` is its nesting depth in the token tree
- table -> table block
- toggle -> toggle markers plus recursively parsed content
- paragraph -> image / link block when the text is exactly one image or
  link, otherwise paragraph

A handler that raises degrades its region to a paragraph holding the raw
text and records a ``BLOCK_FALLBACK`` warning, so no input can make the
parser fail.
"""

from __future__ import annotations

import re
from collections.abc import Callable as _Callable

from mdmapper.config import MapperSettings
from mdmapper.converter.callouts import detect_callout
from mdmapper.converter.inline import parse_standalone_media
from mdmapper.converter.segmenter import Region, SourceLines, segment
from mdmapper.converter.tables import build_table
from mdmapper.converter.toggles import Item, ToggleMarker, scan_toggle_html
from mdmapper.models import (
    Block,
    BlockOrigin,
    BlockType,
    CodeContent,
    ConversionWarning,
    DividerContent,
    HeadingContent,
    ImageContent,
    LinkContent,
    ListContent,
    ListItemContent,
    ParagraphContent,
    QuoteContent,
    SourceRange,
    TaskItemContent,
    TaskListContent,
)
from mdmapper.observability import get_logger

log = get_logger("mdmapper.parser")

_CHECKBOX_RE = re.compile(r"^\[([ xX])\](?:[ \t]+(.*))?$", re.DOTALL)

_LIST_CONTAINERS = frozenset({"bullet_list_open", "ordered_list_open", "list_item_open"})

# Toggle fragments are parsed recursively; text between tags never holds
# further tags, so one level is all a well-formed region needs.
_MAX_FRAGMENT_DEPTH = 2


class BuildContext:
    """Mutable accumulator shared by one parse call."""

    __slots__ = ("depth", "settings", "toggle_markers", "unterminated_fences", "warnings")

    def __init__(self, settings: MapperSettings) -> None:
        self.settings = settings
        self.warnings: list[ConversionWarning] = []
        self.depth = 0
        self.toggle_markers = 0
        self.unterminated_fences = 0

    def add_warning(self, code: str, message: str, **context: object) -> None:
        self.warnings.append(ConversionWarning(
            code=code, message=message, context=dict(context),
        ))


def _block(btype: BlockType, content, start: int, end: int, children=None) -> Block:
    return Block(
        id="",
        type=btype,
        content=content,
        source_range=SourceRange(start, end),
        children=children,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def build_items(src: SourceLines, ctx: BuildContext) -> list[Item]:
    """Segment *src* and build every region.

    Returns blocks interleaved with unfolded :class:`ToggleMarker` items.
    At the top level every item records the region it came from.
    """
    items: list[Item] = []
    for region in segment(src):
        built = _build_region(src, region, ctx)
        if ctx.depth == 0:
            origin = BlockOrigin(
                region.start, region.end, region.meta.get("context_sensitive", False),
            )
            for item in built:
                item.origin = origin
        items.extend(built)
    return items


def _build_region(src: SourceLines, region: Region, ctx: BuildContext) -> list[Item]:
    handler = _REGION_HANDLERS[region.kind]
    try:
        return handler(src, region, ctx)
    except Exception as exc:
        ctx.add_warning(
            "BLOCK_FALLBACK",
            f"Could not build {region.kind} block; kept as paragraph: {exc}",
            kind=region.kind,
            offset=region.start,
        )
        log.warning(
            "region fallback",
            extra={"extra_fields": {"kind": region.kind, "offset": region.start}},
            exc_info=True,
        )
        return [_build_paragraph_block(src, region)]


# ---------------------------------------------------------------------------
# Region handlers
# ---------------------------------------------------------------------------

def _build_heading(src: SourceLines, region: Region, ctx: BuildContext) -> list[Item]:
    opener, inline = region.tokens[0], region.tokens[1]
    level = min(len(opener.markup), 3)
    content = HeadingContent(level, inline.content.strip())
    return [_block(BlockType.HEADING, content, region.start, region.end)]


def _build_divider(src: SourceLines, region: Region, ctx: BuildContext) -> list[Item]:
    return [_block(BlockType.DIVIDER, DividerContent(), region.start, region.end)]


def _build_code(src: SourceLines, region: Region, ctx: BuildContext) -> list[Item]:
    indent = region.meta["indent"]
    last = region.last if region.meta["closed"] else region.last + 1
    body: list[str] = []
    for line in src.lines[region.first + 1:last]:
        strip = min(indent, len(line) - len(line.lstrip(" ")))
        body.append(line[strip:])
    if not region.meta["closed"]:
        ctx.unterminated_fences += 1
        region.meta["context_sensitive"] = True
        ctx.add_warning(
            "UNTERMINATED_FENCE",
            "Code fence is not closed; it runs to the end of the text.",
            offset=region.start,
        )
    content = CodeContent(language=region.meta["language"], code="\n".join(body))
    return [_block(BlockType.CODE, content, region.start, region.end)]


def _strip_quote_marker(line: str) -> str:
    s = line.lstrip()
    if not s.startswith(">"):
        # Lazy continuation line.
        return s
    s = s[1:]
    return s[1:] if s.startswith(" ") else s


def _build_quote(src: SourceLines, region: Region, ctx: BuildContext) -> list[Item]:
    lines = [_strip_quote_marker(line) for line in src.lines[region.first:region.last + 1]]
    callout = detect_callout(lines)
    if callout is not None:
        return [_block(BlockType.CALLOUT, callout, region.start, region.end)]
    return [_block(BlockType.QUOTE, QuoteContent("\n".join(lines)), region.start, region.end)]


def _list_entries(region: Region) -> list[tuple[int, int, int]]:
    """``(first line, marker width, depth)`` of each item, in order.

    Items nested inside a quote or other container of an item stay part
    of that item's text.
    """
    entries: list[tuple[int, int, int]] = []
    stack: list[str] = []
    for token in region.tokens:
        if token.nesting == -1:
            stack.pop()
            continue
        if token.type == "list_item_open" and all(t in _LIST_CONTAINERS for t in stack):
            line = token.map[0]
            if not entries or entries[-1][0] != line:
                width = len(token.info) + 1 if token.info else len(token.markup)
                entries.append((line, width, sum(1 for t in stack if t == "list_item_open")))
        if token.nesting == 1:
            stack.append(token.type)
    return entries


def _build_list(src: SourceLines, region: Region, ctx: BuildContext) -> list[Item]:
    entries = _list_entries(region)
    max_depth = ctx.settings.max_nesting_depth
    parsed = []
    for k, (first, width, depth) in enumerate(entries):
        last = entries[k + 1][0] - 1 if k + 1 < len(entries) else region.last
        while last > first and not src.lines[last].strip():
            last -= 1
        text_lines = [src.lines[first].lstrip()[width:].strip()]
        text_lines.extend(line.strip() for line in src.lines[first + 1:last + 1])
        parsed.append((min(depth, max_depth), "\n".join(text_lines), first, last))

    checks = [_CHECKBOX_RE.match(text) for _, text, _, _ in parsed]
    children: list[Block] = []
    if all(checks):
        for (indent, _, first, last), m in zip(parsed, checks):
            content = TaskItemContent(
                checked=m.group(1) in "xX", text=m.group(2) or "", indent=indent,
            )
            children.append(_block(
                BlockType.TASK_ITEM, content, src.starts[first], src.end_of(last),
            ))
        return [_block(BlockType.TASK_LIST, TaskListContent(), region.start, region.end, children)]

    opener = region.tokens[0]
    ordered = opener.type == "ordered_list_open"
    start = opener.attrGet("start")
    start_number = int(start) if ordered and start is not None else 1
    for indent, text, first, last in parsed:
        children.append(_block(
            BlockType.LIST_ITEM, ListItemContent(text, indent),
            src.starts[first], src.end_of(last),
        ))
    content = ListContent(ordered=ordered, start_number=start_number)
    return [_block(BlockType.LIST, content, region.start, region.end, children)]


def _build_table(src: SourceLines, region: Region, ctx: BuildContext) -> list[Item]:
    content = build_table(region.tokens)
    return [_block(BlockType.TABLE, content, region.start, region.end)]


def _build_toggle(src: SourceLines, region: Region, ctx: BuildContext) -> list[Item]:
    text = src.text[region.start - src.base:region.end - src.base]

    def parse_fragment(fragment: str, offset: int) -> list[Item]:
        if ctx.depth >= _MAX_FRAGMENT_DEPTH:
            return [_block(
                BlockType.PARAGRAPH, ParagraphContent(fragment.strip()),
                offset, offset + len(fragment),
            )]
        ctx.depth += 1
        try:
            return build_items(SourceLines(fragment, offset), ctx)
        finally:
            ctx.depth -= 1

    items = scan_toggle_html(text, region.start, parse_fragment)
    if items is None:
        ctx.add_warning(
            "MALFORMED_TOGGLE",
            "Toggle HTML could not be read; kept as paragraph.",
            offset=region.start,
        )
        return [_build_paragraph_block(src, region)]
    ctx.toggle_markers += sum(1 for item in items if isinstance(item, ToggleMarker))
    return items


def _build_paragraph_block(src: SourceLines, region: Region) -> Block:
    text = "\n".join(line.lstrip() for line in src.lines[region.first:region.last + 1])
    return _block(BlockType.PARAGRAPH, ParagraphContent(text), region.start, region.end)


def _build_paragraph(src: SourceLines, region: Region, ctx: BuildContext) -> list[Item]:
    block = _build_paragraph_block(src, region)
    text = block.content.text
    if region.first == region.last and text[:1] in ("!", "["):
        media = parse_standalone_media(text)
        if media is not None and media.kind == "image":
            block.type = BlockType.IMAGE
            block.content = ImageContent(src=media.url, alt=media.label, title=media.title)
        elif media is not None:
            block.type = BlockType.LINK
            block.content = LinkContent(text=media.label, href=media.url, title=media.title)
    return [block]


# ---------------------------------------------------------------------------
# Dispatch table
# ---------------------------------------------------------------------------

_RegionHandler = _Callable[[SourceLines, Region, BuildContext], list]

_REGION_HANDLERS: dict[str, _RegionHandler] = {
    "heading": _build_heading,
    "hr": _build_divider,
    "fence": _build_code,
    "quote": _build_quote,
    "list": _build_list,
    "table": _build_table,
    "toggle": _build_toggle,
    "paragraph": _build_paragraph,
}
