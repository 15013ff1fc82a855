"""Block data model for mdmapper.

This module contains the block tree shared by the parser, the serializer
and the incremental updater: the closed :class:`BlockType` set, one content
dataclass per block type, :class:`Block` itself, source ranges, document
changes and conversion warnings.

Content is a tagged union discriminated by :attr:`Block.type`; the mapping
lives in :data:`CONTENT_TYPES`.  Every block converts to and from plain
JSON (``block_to_dict`` / ``block_from_dict``) so that it can cross a
process boundary to a UI layer.  The wire form uses camelCase keys.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field, fields, is_dataclass
from enum import Enum
from typing import Any, Literal, Union

from mdmapper.errors import MdMapperUnsupportedBlockError, MdMapperValidationError

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class BlockType(str, Enum):
    """The closed set of block types."""

    PARAGRAPH = "paragraph"
    HEADING = "heading"
    LIST = "list"
    LIST_ITEM = "listItem"
    TASK_LIST = "taskList"
    TASK_ITEM = "taskItem"
    QUOTE = "quote"
    CODE = "code"
    DIVIDER = "divider"
    TABLE = "table"
    IMAGE = "image"
    LINK = "link"
    CALLOUT = "callout"
    TOGGLE = "toggle"


class CalloutType(str, Enum):
    """Callout flavours shared by the admonition and emoji syntaxes."""

    NOTE = "note"
    TIP = "tip"
    WARNING = "warning"
    DANGER = "danger"
    INFO = "info"


CONTAINER_TYPES: frozenset[BlockType] = frozenset(
    {BlockType.LIST, BlockType.TASK_LIST, BlockType.TOGGLE}
)
"""Block types allowed to carry ``children``."""

Alignment = Literal["left", "center", "right"]


# ---------------------------------------------------------------------------
# Ranges, positions and edits
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SourceRange:
    """Half-open ``[start, end)`` character-offset span in a document.

    Attributes
    ----------
    start:
        Offset of the first character covered.
    end:
        Offset one past the last character covered.  ``end == start``
        denotes an empty (provisional) range.
    """

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0:
            raise ValueError(f"SourceRange start must be >= 0, got {self.start}")
        if self.end < self.start:
            raise ValueError(
                f"SourceRange end ({self.end}) must be >= start ({self.start})"
            )

    def __len__(self) -> int:
        return self.end - self.start

    def to_dict(self) -> dict[str, int]:
        return {"start": self.start, "end": self.end}


@dataclass(frozen=True)
class Position:
    """A 1-based ``line`` / ``column`` location in a document."""

    line: int
    column: int


@dataclass(frozen=True)
class DocumentChange:
    """A replacement of ``range`` (pre-edit offsets) by ``text``.

    The host applies the change to its buffer and then reports it to
    :func:`~mdmapper.incremental.update_blocks`.
    """

    range: SourceRange
    text: str

    @property
    def delta(self) -> int:
        """Length change caused by this replacement."""
        return len(self.text) - (self.range.end - self.range.start)


@dataclass(frozen=True)
class TextEdit:
    """An editor-style edit: replace ``[start, end)`` with ``new_text``."""

    start: int
    end: int
    new_text: str


# ---------------------------------------------------------------------------
# Content variants
# ---------------------------------------------------------------------------

@dataclass
class ParagraphContent:
    text: str = ""


@dataclass
class HeadingContent:
    """Heading payload; ``level`` is always 1, 2 or 3."""

    level: int = 1
    text: str = ""


@dataclass
class ListContent:
    ordered: bool = False
    start_number: int = 1


@dataclass
class ListItemContent:
    """One list entry.  ``indent`` is the nesting level, 0 at top level."""

    text: str = ""
    indent: int = 0


@dataclass
class TaskListContent:
    pass


@dataclass
class TaskItemContent:
    checked: bool = False
    text: str = ""
    indent: int = 0


@dataclass
class QuoteContent:
    text: str = ""


@dataclass
class CodeContent:
    """Fenced code block.

    ``show_line_numbers`` is display state and has no Markdown form.
    """

    language: str = ""
    code: str = ""
    show_line_numbers: bool = False


@dataclass
class DividerContent:
    pass


@dataclass
class TableCell:
    text: str = ""


@dataclass
class TableContent:
    """GFM pipe table.

    Attributes
    ----------
    headers:
        The header row.  Its length defines the column count.
    rows:
        Body rows, each padded or truncated to the header width.
    alignments:
        One entry per column: ``"left"``, ``"center"``, ``"right"`` or
        ``None`` when the separator carries no colon.
    """

    headers: list[TableCell] = field(default_factory=list)
    rows: list[list[TableCell]] = field(default_factory=list)
    alignments: list[Alignment | None] = field(default_factory=list)


@dataclass
class ImageContent:
    src: str = ""
    alt: str = ""
    title: str | None = None


@dataclass
class LinkContent:
    text: str = ""
    href: str = ""
    title: str | None = None


@dataclass
class CalloutContent:
    type: CalloutType = CalloutType.NOTE
    text: str = ""
    title: str | None = None


@dataclass
class ToggleContent:
    """Collapsible section.  ``collapsed`` is UI state, never serialized."""

    summary: str = ""
    collapsed: bool = False


BlockContent = Union[
    ParagraphContent,
    HeadingContent,
    ListContent,
    ListItemContent,
    TaskListContent,
    TaskItemContent,
    QuoteContent,
    CodeContent,
    DividerContent,
    TableContent,
    ImageContent,
    LinkContent,
    CalloutContent,
    ToggleContent,
]

CONTENT_TYPES: dict[BlockType, type] = {
    BlockType.PARAGRAPH: ParagraphContent,
    BlockType.HEADING: HeadingContent,
    BlockType.LIST: ListContent,
    BlockType.LIST_ITEM: ListItemContent,
    BlockType.TASK_LIST: TaskListContent,
    BlockType.TASK_ITEM: TaskItemContent,
    BlockType.QUOTE: QuoteContent,
    BlockType.CODE: CodeContent,
    BlockType.DIVIDER: DividerContent,
    BlockType.TABLE: TableContent,
    BlockType.IMAGE: ImageContent,
    BlockType.LINK: LinkContent,
    BlockType.CALLOUT: CalloutContent,
    BlockType.TOGGLE: ToggleContent,
}


# ---------------------------------------------------------------------------
# Block
# ---------------------------------------------------------------------------

@dataclass
class Block:
    """One structural unit of a document.

    Attributes
    ----------
    id:
        Stable identity used for UI binding.
    type:
        Discriminator for :attr:`content`.
    content:
        The payload dataclass matching :attr:`type`.
    source_range:
        Span of the block in the text it was parsed from.
    children:
        Nested blocks; only list, task-list and toggle blocks have them.
    """

    id: str
    type: BlockType
    content: BlockContent
    source_range: SourceRange
    children: list[Block] | None = None
    origin: BlockOrigin | None = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class BlockOrigin:
    """The syntactic region a top-level block was built from.

    A single Markdown construct can yield several top-level blocks (a
    ``<details>`` HTML block with text around its tags, an unclosed toggle
    whose content spills to the enclosing level).  All of them share one
    origin, and the incremental updater never re-parses part of an origin.
    Set by the parser; not part of the wire form or of block equality.

    Attributes
    ----------
    start, end:
        Offsets of the region (a toggle spans its opener's and closer's
        regions).
    context_sensitive:
        ``True`` if the blocks depend on text outside the region: an
        unclosed toggle, a stray ``</details>`` or an unterminated fence.
    """

    start: int
    end: int
    context_sensitive: bool = False

    def shifted(self, delta: int) -> BlockOrigin:
        return BlockOrigin(self.start + delta, self.end + delta, self.context_sensitive)


@dataclass
class ConversionWarning:
    """A non-fatal issue encountered while converting.

    Attributes
    ----------
    code:
        A machine-readable warning code (e.g. ``"UNCLOSED_TOGGLE"``).
    message:
        A human-readable description of the issue.
    context:
        Arbitrary structured data for diagnostics.
    """

    code: str
    message: str
    context: dict = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Content coercion
# ---------------------------------------------------------------------------

def _str(value: Any, default: str = "") -> str:
    return value if isinstance(value, str) else default


def _opt_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _int(value: Any, default: int, lo: int = 0, hi: int | None = None) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        return default
    value = max(lo, value)
    return min(hi, value) if hi is not None else value


def _bool(value: Any) -> bool:
    return value if isinstance(value, bool) else False


def _cell(value: Any) -> TableCell:
    if isinstance(value, TableCell):
        return TableCell(_str(value.text))
    if isinstance(value, dict):
        return TableCell(_str(value.get("text")))
    return TableCell(_str(value))


def _alignment(value: Any) -> Alignment | None:
    return value if value in ("left", "center", "right") else None


def _callout_type(value: Any) -> CalloutType:
    if isinstance(value, CalloutType):
        return value
    try:
        return CalloutType(str(value).lower())
    except ValueError:
        return CalloutType.NOTE


def _coerce_table(raw: dict[str, Any]) -> TableContent:
    headers = [_cell(c) for c in raw.get("headers") or [] if c is not None]
    rows = [
        [_cell(c) for c in row]
        for row in raw.get("rows") or []
        if isinstance(row, (list, tuple))
    ]
    aligns = raw.get("alignments") or []
    alignments = [_alignment(a) for a in aligns] if isinstance(aligns, (list, tuple)) else []
    return TableContent(headers=headers, rows=rows, alignments=alignments)


_CONTENT_COERCERS: dict[BlockType, Any] = {
    BlockType.PARAGRAPH: lambda r: ParagraphContent(_str(r.get("text"))),
    BlockType.HEADING: lambda r: HeadingContent(
        _int(r.get("level"), 1, 1, 3), _str(r.get("text"))
    ),
    BlockType.LIST: lambda r: ListContent(
        _bool(r.get("ordered")),
        _int(r.get("start_number", r.get("startNumber")), 1),
    ),
    BlockType.LIST_ITEM: lambda r: ListItemContent(
        _str(r.get("text")), _int(r.get("indent"), 0)
    ),
    BlockType.TASK_LIST: lambda r: TaskListContent(),
    BlockType.TASK_ITEM: lambda r: TaskItemContent(
        _bool(r.get("checked")), _str(r.get("text")), _int(r.get("indent"), 0)
    ),
    BlockType.QUOTE: lambda r: QuoteContent(_str(r.get("text"))),
    BlockType.CODE: lambda r: CodeContent(
        _str(r.get("language")),
        _str(r.get("code")),
        _bool(r.get("show_line_numbers", r.get("showLineNumbers"))),
    ),
    BlockType.DIVIDER: lambda r: DividerContent(),
    BlockType.TABLE: _coerce_table,
    BlockType.IMAGE: lambda r: ImageContent(
        _str(r.get("src")), _str(r.get("alt")), _opt_str(r.get("title"))
    ),
    BlockType.LINK: lambda r: LinkContent(
        _str(r.get("text")), _str(r.get("href")), _opt_str(r.get("title"))
    ),
    BlockType.CALLOUT: lambda r: CalloutContent(
        _callout_type(r.get("type")), _str(r.get("text")), _opt_str(r.get("title"))
    ),
    BlockType.TOGGLE: lambda r: ToggleContent(
        _str(r.get("summary")), _bool(r.get("collapsed"))
    ),
}


def coerce_content(block_type: BlockType | str, value: Any) -> BlockContent:
    """Return a well-formed content variant for *block_type*.

    *value* may already be the right dataclass (returned unchanged), a
    different content dataclass, a dict in snake_case or camelCase form, or
    anything else.  Missing or mistyped fields fall back to safe defaults
    (empty string, heading level 1, callout type ``note``, ...).

    Raises
    ------
    MdMapperUnsupportedBlockError
        If *block_type* is not a member of :class:`BlockType`.
    """
    btype = _block_type(block_type)
    expected = CONTENT_TYPES[btype]
    if type(value) is expected:
        return value
    if is_dataclass(value) and not isinstance(value, type):
        raw = {f.name: getattr(value, f.name) for f in fields(value)}
    elif isinstance(value, dict):
        raw = value
    else:
        raw = {}
    return _CONTENT_COERCERS[btype](raw)


def _block_type(value: BlockType | str) -> BlockType:
    if isinstance(value, BlockType):
        return value
    try:
        return BlockType(value)
    except ValueError:
        raise MdMapperUnsupportedBlockError(
            f"Unknown block type: {value!r}",
            context={"block_type": value},
        ) from None


# ---------------------------------------------------------------------------
# Construction helpers
# ---------------------------------------------------------------------------

def new_block_id(block_type: BlockType | str) -> str:
    """Return a fresh random id for an externally inserted block."""
    prefix = block_type.value if isinstance(block_type, BlockType) else str(block_type)
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def create_block(
    block_type: BlockType | str,
    content: Any = None,
    *,
    at: int = 0,
    children: list[Block] | None = None,
) -> Block:
    """Create a block for insertion by an editor.

    The block gets a fresh unique id and the provisional zero-length range
    ``[at, at)``.  Container types start with an empty ``children`` list.
    """
    btype = _block_type(block_type)
    if children is None and btype in CONTAINER_TYPES:
        children = []
    return Block(
        id=new_block_id(btype),
        type=btype,
        content=coerce_content(btype, content),
        source_range=SourceRange(at, at),
        children=children,
    )


# ---------------------------------------------------------------------------
# Wire format
# ---------------------------------------------------------------------------

_WIRE_KEYS: dict[str, str] = {
    "start_number": "startNumber",
    "show_line_numbers": "showLineNumbers",
}


def content_to_dict(content: BlockContent) -> dict[str, Any]:
    """Serialise a content variant to a plain JSON-compatible dict."""
    out: dict[str, Any] = {}
    for f in fields(content):
        value = getattr(content, f.name)
        if isinstance(value, CalloutType):
            value = value.value
        elif f.name == "headers":
            value = [{"text": c.text} for c in value]
        elif f.name == "rows":
            value = [[{"text": c.text} for c in row] for row in value]
        elif f.name == "alignments":
            value = list(value)
        out[_WIRE_KEYS.get(f.name, f.name)] = value
    return out


def block_to_dict(block: Block) -> dict[str, Any]:
    """Serialise *block* (recursively) to its JSON wire form."""
    out: dict[str, Any] = {
        "id": block.id,
        "type": block.type.value,
        "content": content_to_dict(block.content),
        "sourceRange": block.source_range.to_dict(),
    }
    if block.children is not None:
        out["children"] = [block_to_dict(c) for c in block.children]
    return out


def block_from_dict(data: dict[str, Any]) -> Block:
    """Build a :class:`Block` from its JSON wire form.

    Content fields are coerced leniently; structural fields are not.

    Raises
    ------
    MdMapperValidationError
        If ``id`` or ``sourceRange`` is missing or malformed.
    MdMapperUnsupportedBlockError
        If ``type`` is not a known block type.
    """
    if not isinstance(data, dict):
        raise MdMapperValidationError(
            "Block wire data must be a dict",
            context={"actual": type(data).__name__},
        )
    block_id = data.get("id")
    if not isinstance(block_id, str) or not block_id:
        raise MdMapperValidationError(
            "Block is missing a string id", context={"rule": "id"}
        )
    btype = _block_type(data.get("type", ""))
    raw_range = data.get("sourceRange") or {}
    try:
        source_range = SourceRange(int(raw_range["start"]), int(raw_range["end"]))
    except (KeyError, TypeError, ValueError) as exc:
        raise MdMapperValidationError(
            f"Block {block_id!r} has an invalid sourceRange",
            context={"block_id": block_id, "rule": "sourceRange"},
            cause=exc,
        ) from exc
    children_raw = data.get("children")
    children = (
        [block_from_dict(c) for c in children_raw]
        if isinstance(children_raw, list)
        else None
    )
    return Block(
        id=block_id,
        type=btype,
        content=coerce_content(btype, data.get("content")),
        source_range=source_range,
        children=children,
    )


def blocks_to_json(blocks: list[Block], **kwargs: Any) -> str:
    """Dump *blocks* as a JSON array string."""
    return json.dumps([block_to_dict(b) for b in blocks], ensure_ascii=False, **kwargs)


def blocks_from_json(data: str) -> list[Block]:
    """Inverse of :func:`blocks_to_json`."""
    return [block_from_dict(d) for d in json.loads(data)]
