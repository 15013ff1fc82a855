"""Block tree to Markdown serializer.

Converts a list of :class:`~mdmapper.models.Block` into a Markdown string.
Top-level blocks are separated by exactly one blank line and the output has
no trailing newline, so reparsing reproduces the same block boundaries.
Callout and toggle syntax follow the current settings; UI-only fields
(``collapsed``, ``show_line_numbers``) are never written.

Usage::

    from mdmapper.converter.blocks_to_md import BlockSerializer

    serializer = BlockSerializer()
    md = serializer.serialize(blocks)
"""

from __future__ import annotations

import re
import textwrap
from collections.abc import Callable as _Callable

from mdmapper.config import MapperSettings, resolve_settings
from mdmapper.converter.callouts import detect_callout, render_callout
from mdmapper.converter.inline import render_media
from mdmapper.converter.segmenter import continues_paragraph, opens_block
from mdmapper.converter.tables import render_table
from mdmapper.models import (
    CONTAINER_TYPES,
    Block,
    BlockType,
    ConversionWarning,
    coerce_content,
)

_BACKTICK_RUN_RE = re.compile(r"`+")

_LIST_ITEM_TYPES = frozenset({BlockType.LIST_ITEM, BlockType.TASK_ITEM})

# First characters of a line that could open a block or end a paragraph.
_BLOCK_START_CHARS = frozenset("#>-*+_=`~<|:0123456789")

# Adjacent lists with the same marker merge into one; siblings alternate.
_BULLETS = ("-", "*")
_DELIMITERS = (".", ")")


class BlockSerializer:
    """Stateful serializer that converts blocks to Markdown.

    Non-fatal issues (children on a block type that cannot hold them,
    unexpected children inside lists, empty tables) are collected in
    :attr:`warnings` during each :meth:`serialize` call.

    Parameters
    ----------
    settings:
        A settings snapshot.  When ``None`` the process-wide settings are
        read at the start of every call.
    """

    def __init__(self, settings: MapperSettings | None = None) -> None:
        self._settings_override = settings
        self._settings = resolve_settings(settings)
        self._alternate = False
        self.warnings: list[ConversionWarning] = []

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def serialize(self, blocks: list[Block]) -> str:
        """Serialize *blocks* to Markdown.

        Raises
        ------
        MdMapperUnsupportedBlockError
            If a block's ``type`` is not a :class:`BlockType`.
        """
        self._settings = resolve_settings(self._settings_override)
        self.warnings = []
        return self._render_block_list(blocks)

    def serialize_block(self, block: Block) -> str:
        """Serialize a single block (and its children)."""
        self._settings = resolve_settings(self._settings_override)
        self._alternate = False
        return self._dispatch(block)

    # ------------------------------------------------------------------
    # Internal: dispatch
    # ------------------------------------------------------------------

    def _render_block_list(self, blocks: list[Block]) -> str:
        parts: list[str] = []
        previous_family: str | None = None
        previous_alternate = False
        for block in blocks:
            family = _list_family(block)
            alternate = family is not None and family == previous_family and not previous_alternate
            self._alternate = alternate
            part = self._dispatch(block)
            if part:
                parts.append(part)
                previous_family, previous_alternate = family, alternate
        return "\n\n".join(parts)

    def _dispatch(self, block: Block) -> str:
        content = coerce_content(block.type, block.content)
        btype = BlockType(block.type)
        if block.children and btype not in CONTAINER_TYPES:
            self._warn(
                "CHILDREN_IGNORED",
                f"{btype.value} blocks cannot have children; they were not written.",
                block_id=block.id,
            )
        renderer = _BLOCK_SERIALIZERS[btype]
        return renderer(self, block, content)

    def _warn(self, code: str, message: str, **context: object) -> None:
        self.warnings.append(ConversionWarning(code=code, message=message, context=dict(context)))

    # ------------------------------------------------------------------
    # Text blocks
    # ------------------------------------------------------------------

    def _render_paragraph(self, block: Block, content) -> str:
        escaped = _escape_paragraph_lines(content.text.split("\n"))
        return "\n".join(self._wrap_lines(escaped))

    def _render_heading(self, block: Block, content) -> str:
        marker = "#" * content.level
        text = " ".join(content.text.split("\n")).strip()
        return f"{marker} {text}" if text else marker

    def _render_quote(self, block: Block, content) -> str:
        lines = content.text.split("\n")
        if detect_callout(lines[:1]) is not None:
            lines[0] = "\\" + lines[0].lstrip()
        lines = self._wrap_lines(lines)
        return "\n".join(f"> {line}" if line else ">" for line in lines)

    def _render_code(self, block: Block, content) -> str:
        longest = max((len(run) for run in _BACKTICK_RUN_RE.findall(content.code)), default=0)
        fence = "`" * max(3, longest + 1)
        language = content.language.split()[0] if content.language.strip() else ""
        return f"{fence}{language}\n{content.code}\n{fence}"

    def _render_divider(self, block: Block, content) -> str:
        return "---"

    def _render_table(self, block: Block, content) -> str:
        md = render_table(content)
        if not md:
            self._warn("EMPTY_TABLE", "Table without columns was not written.", block_id=block.id)
        return md

    def _render_image(self, block: Block, content) -> str:
        return render_media("image", content.alt, content.src, content.title)

    def _render_link(self, block: Block, content) -> str:
        return render_media("link", content.text, content.href, content.title)

    def _render_callout(self, block: Block, content) -> str:
        return render_callout(content, self._settings.callout_style)

    # ------------------------------------------------------------------
    # Containers
    # ------------------------------------------------------------------

    def _render_list(self, block: Block, content) -> str:
        delimiter = _DELIMITERS[self._alternate]
        bullet = _BULLETS[self._alternate]
        lines: list[str] = []
        counters: dict[int, int] = {}
        columns: list[int] = []
        for child in block.children or []:
            if child.type not in _LIST_ITEM_TYPES:
                self._warn_child_skipped(block, child)
                continue
            item = coerce_content(child.type, child.content)
            indent = min(item.indent, len(columns))
            del columns[indent:]
            for deeper in [d for d in counters if d > indent]:
                del counters[deeper]
            if content.ordered:
                first = content.start_number if indent == 0 else 1
                number = counters.get(indent, first)
                counters[indent] = number + 1
                marker = f"{number}{delimiter}"
            else:
                marker = bullet
            pad = columns[-1] if columns else 0
            lines.extend(_item_lines(marker, item.text, pad))
            columns.append(pad + len(marker) + 1)
        return "\n".join(lines)

    def _render_task_list(self, block: Block, content) -> str:
        bullet = _BULLETS[self._alternate]
        lines: list[str] = []
        columns: list[int] = []
        for child in block.children or []:
            if child.type not in _LIST_ITEM_TYPES:
                self._warn_child_skipped(block, child)
                continue
            indent = min(coerce_content(child.type, child.content).indent, len(columns))
            del columns[indent:]
            pad = columns[-1] if columns else 0
            lines.extend(self._task_item_lines(child, bullet, pad))
            columns.append(pad + len(bullet) + 1)
        return "\n".join(lines)

    def _render_list_item(self, block: Block, content) -> str:
        return "\n".join(_item_lines("-", content.text, 2 * content.indent))

    def _render_task_item(self, block: Block, content) -> str:
        return "\n".join(self._task_item_lines(block, "-", 2 * content.indent))

    def _task_item_lines(self, child: Block, bullet: str, pad: int) -> list[str]:
        item = coerce_content(BlockType.TASK_ITEM, child.content)
        box = "[x]" if getattr(item, "checked", False) else "[ ]"
        return _item_lines(bullet, f"{box} {item.text}" if item.text else box, pad)

    def _render_toggle(self, block: Block, content) -> str:
        children_md = self._render_block_list(block.children or [])
        summary = " ".join(content.summary.split())
        if self._settings.toggle_syntax == "list":
            head = f"- {summary}" if summary else "-"
            if not children_md:
                return head
            body = "\n".join(f"  {line}" if line else "" for line in children_md.split("\n"))
            return f"{head}\n{body}"
        head = f"<details><summary>{summary}</summary>"
        if not children_md:
            return f"{head}</details>"
        return f"{head}\n\n{children_md}\n\n</details>"

    def _warn_child_skipped(self, parent: Block, child: Block) -> None:
        self._warn(
            "CHILD_SKIPPED",
            f"{BlockType(child.type).value} block inside {parent.type.value} was not written.",
            block_id=child.id,
            parent_id=parent.id,
        )

    # ------------------------------------------------------------------
    # Wrapping
    # ------------------------------------------------------------------

    def _wrap_lines(self, lines: list[str]) -> list[str]:
        width = self._settings.wrap_width
        if not width:
            return lines
        out: list[str] = []
        for line in lines:
            if len(line) <= width:
                out.append(line)
                continue
            wrapped = textwrap.wrap(
                line, width=width, break_long_words=False, break_on_hyphens=False,
            )
            if any(_ends_paragraph(wrapped[k], w) for k, w in enumerate(wrapped[1:])):
                out.append(line)
            else:
                out.extend(wrapped or [line])
        return out


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _list_family(block: Block) -> str | None:
    if block.type == BlockType.TASK_LIST:
        return "bullet"
    if block.type == BlockType.LIST:
        return "ordered" if coerce_content(block.type, block.content).ordered else "bullet"
    return None


def _item_lines(marker: str, text: str, pad: int) -> list[str]:
    """Lines of one list item; continuation lines align with its content column."""
    lead = " " * pad
    body = " " * (pad + len(marker) + 1)
    first, *rest = text.split("\n")
    lines = [f"{lead}{marker} {first}" if first else f"{lead}{marker}"]
    lines.extend(f"{body}{line}" if line else body for line in rest)
    return lines


def _opens_block(line: str) -> bool:
    s = line.strip()
    return bool(s) and s[0] in _BLOCK_START_CHARS and opens_block(s)


def _ends_paragraph(previous: str, line: str) -> bool:
    """Return ``True`` if *line*, after paragraph line *previous*, would not extend it."""
    s = line.strip()
    if not s:
        return True
    return s[0] in _BLOCK_START_CHARS and not continues_paragraph(previous.strip(), s)


def _escape_paragraph_lines(lines: list[str]) -> list[str]:
    """Escape each line that would not read back as part of the paragraph."""
    first = lines[0].strip()
    if first.startswith("<") and opens_block(first):
        # Raw HTML runs to the next blank line.
        return [lines[0], *(line if line.strip() else _escape_block_start(line) for line in lines[1:])]
    out = [_escape_block_start(lines[0]) if _opens_block(first) else lines[0]]
    for line in lines[1:]:
        out.append(_escape_block_start(line) if _ends_paragraph(out[-1], line) else line)
    return out


def _escape_block_start(line: str) -> str:
    """Backslash-escape the marker that would make *line* open a block."""
    body = line.lstrip()
    digits = len(body) - len(body.lstrip("0123456789"))
    if digits and body[digits:digits + 1] in (".", ")"):
        return f"{body[:digits]}\\{body[digits:]}"
    return f"\\{body}"


# ---------------------------------------------------------------------------
# Dispatch table -- one entry per BlockType
# ---------------------------------------------------------------------------

_BlockSerializerFn = _Callable[[BlockSerializer, Block, object], str]

_BLOCK_SERIALIZERS: dict[BlockType, _BlockSerializerFn] = {
    BlockType.PARAGRAPH: BlockSerializer._render_paragraph,
    BlockType.HEADING: BlockSerializer._render_heading,
    BlockType.LIST: BlockSerializer._render_list,
    BlockType.LIST_ITEM: BlockSerializer._render_list_item,
    BlockType.TASK_LIST: BlockSerializer._render_task_list,
    BlockType.TASK_ITEM: BlockSerializer._render_task_item,
    BlockType.QUOTE: BlockSerializer._render_quote,
    BlockType.CODE: BlockSerializer._render_code,
    BlockType.DIVIDER: BlockSerializer._render_divider,
    BlockType.TABLE: BlockSerializer._render_table,
    BlockType.IMAGE: BlockSerializer._render_image,
    BlockType.LINK: BlockSerializer._render_link,
    BlockType.CALLOUT: BlockSerializer._render_callout,
    BlockType.TOGGLE: BlockSerializer._render_toggle,
}


def serialize_blocks(blocks: list[Block], settings: MapperSettings | None = None) -> str:
    """Serialize *blocks* to Markdown under *settings* (or the current settings)."""
    return BlockSerializer(settings).serialize(blocks)
