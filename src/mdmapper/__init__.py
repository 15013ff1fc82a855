"""mdmapper: bidirectional Markdown / block-tree conversion.

Public re-exports
-----------------

* **Conversion:** :func:`parse_markdown`, :func:`serialize_blocks`,
  :class:`MarkdownParser`, :class:`BlockSerializer`, inline helpers
* **Incremental updates:** :func:`update_blocks` and change helpers
* **Settings:** :class:`MapperSettings`, :func:`configure_settings`,
  :func:`get_settings`, :func:`reset_settings`
* **Errors:** Every :class:`MdMapperError` subclass and :class:`ErrorCode`
* **Models:** Blocks, content variants, ranges and warnings
* **Ranges:** Offset and range utilities

Usage::

    from mdmapper import parse_markdown, serialize_blocks

    blocks = parse_markdown("# Hello\\n\\nWorld")
    markdown = serialize_blocks(blocks)
"""

from __future__ import annotations

# ── Configuration ───────────────────────────────────────────────────────
from mdmapper.config import (
    MapperSettings,
    configure_settings,
    get_settings,
    reset_settings,
)

# ── Conversion ──────────────────────────────────────────────────────────
from mdmapper.converter import (
    BlockSerializer,
    InlineFormatting,
    InlineText,
    MarkdownParser,
    markdown_escape,
    parse_inline,
    parse_markdown,
    render_inline,
    serialize_blocks,
)

# ── Errors ──────────────────────────────────────────────────────────────
from mdmapper.errors import (
    ErrorCode,
    MdMapperError,
    MdMapperInputError,
    MdMapperUnsupportedBlockError,
    MdMapperValidationError,
)

# ── Incremental updates ─────────────────────────────────────────────────
from mdmapper.incremental import (
    apply_changes,
    batch_text_edits,
    text_edit_to_document_change,
    update_blocks,
)

# ── Models ──────────────────────────────────────────────────────────────
from mdmapper.models import (
    CONTAINER_TYPES,
    Block,
    BlockOrigin,
    BlockType,
    CalloutContent,
    CalloutType,
    CodeContent,
    ConversionWarning,
    DividerContent,
    DocumentChange,
    HeadingContent,
    ImageContent,
    LinkContent,
    ListContent,
    ListItemContent,
    ParagraphContent,
    Position,
    QuoteContent,
    SourceRange,
    TableCell,
    TableContent,
    TaskItemContent,
    TaskListContent,
    TextEdit,
    ToggleContent,
    block_from_dict,
    block_to_dict,
    blocks_from_json,
    blocks_to_json,
    coerce_content,
    create_block,
)

# ── Ranges ──────────────────────────────────────────────────────────────
from mdmapper.ranges import (
    adjust_range_after_edit,
    contains_range,
    extract_range_text,
    merge_ranges,
    offset_to_position,
    position_to_offset,
    ranges_overlap,
    shift_range,
)
from mdmapper.validation import validate_blocks

# ── Public surface ──────────────────────────────────────────────────────

__all__ = [
    # Conversion
    "parse_markdown",
    "serialize_blocks",
    "MarkdownParser",
    "BlockSerializer",
    "InlineFormatting",
    "InlineText",
    "parse_inline",
    "render_inline",
    "markdown_escape",
    # Incremental
    "update_blocks",
    "apply_changes",
    "batch_text_edits",
    "text_edit_to_document_change",
    # Settings
    "MapperSettings",
    "configure_settings",
    "get_settings",
    "reset_settings",
    # Errors
    "ErrorCode",
    "MdMapperError",
    "MdMapperInputError",
    "MdMapperValidationError",
    "MdMapperUnsupportedBlockError",
    # Models: blocks
    "Block",
    "BlockOrigin",
    "BlockType",
    "CONTAINER_TYPES",
    "ConversionWarning",
    "create_block",
    "coerce_content",
    "validate_blocks",
    # Models: content variants
    "ParagraphContent",
    "HeadingContent",
    "ListContent",
    "ListItemContent",
    "TaskListContent",
    "TaskItemContent",
    "QuoteContent",
    "CodeContent",
    "DividerContent",
    "TableCell",
    "TableContent",
    "ImageContent",
    "LinkContent",
    "CalloutContent",
    "CalloutType",
    "ToggleContent",
    # Models: ranges and edits
    "SourceRange",
    "Position",
    "DocumentChange",
    "TextEdit",
    # Wire format
    "block_to_dict",
    "block_from_dict",
    "blocks_to_json",
    "blocks_from_json",
    # Ranges
    "contains_range",
    "ranges_overlap",
    "merge_ranges",
    "shift_range",
    "adjust_range_after_edit",
    "offset_to_position",
    "position_to_offset",
    "extract_range_text",
]
