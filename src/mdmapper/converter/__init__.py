"""Markdown ⇄ block-tree conversion pipeline.

Public API:

- :class:`MarkdownParser` / :func:`parse_markdown`: Markdown → blocks.
- :class:`BlockSerializer` / :func:`serialize_blocks`: blocks → Markdown.
- :func:`parse_inline` / :func:`render_inline`: raw inline Markdown ⇄
  plain text plus formatting spans.
- :func:`markdown_escape`: escape text for literal use inside Markdown.
"""

from mdmapper.converter.blocks_to_md import BlockSerializer, serialize_blocks
from mdmapper.converter.inline import (
    InlineFormatting,
    InlineText,
    markdown_escape,
    parse_inline,
    render_inline,
)
from mdmapper.converter.md_to_blocks import MarkdownParser, ParseOutcome, parse_markdown

__all__ = [
    "BlockSerializer",
    "InlineFormatting",
    "InlineText",
    "MarkdownParser",
    "ParseOutcome",
    "markdown_escape",
    "parse_inline",
    "parse_markdown",
    "render_inline",
    "serialize_blocks",
]
