"""Markdown-to-blocks conversion pipeline.

:class:`MarkdownParser` runs three passes:

1. **Segment**: tokenize the text with markdown-it-py and cut it into one
   region per top-level block (:mod:`mdmapper.converter.segmenter`).
2. **Build**: classify each region and extract its content
   (:mod:`mdmapper.converter.block_builder`).
3. **Fold**: move blocks between ``<details>`` and ``</details>`` into their
   toggle's children (:mod:`mdmapper.converter.toggles`).

Every block gets a stable, unique id and the source range it was parsed
from.  The parser never raises on string input; malformed syntax degrades
to the closest plain block and is reported in :attr:`MarkdownParser.warnings`.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field

from mdmapper.config import MapperSettings, resolve_settings
from mdmapper.converter.block_builder import BuildContext, build_items
from mdmapper.converter.segmenter import SourceLines
from mdmapper.converter.toggles import fold_toggles
from mdmapper.errors import MdMapperInputError
from mdmapper.ids import assign_block_ids
from mdmapper.models import Block, ConversionWarning
from mdmapper.observability import get_logger, log_elapsed

log = get_logger("mdmapper.parser")

# Warning codes whose outcome depends on text outside the parsed span.
CONTEXT_SENSITIVE_WARNINGS = frozenset({
    "UNCLOSED_TOGGLE",
    "STRAY_TOGGLE_CLOSE",
    "TOGGLE_TOO_DEEP",
    "UNTERMINATED_FENCE",
})


@dataclass
class ParseOutcome:
    """Blocks of one parse call plus the diagnostics the updater needs."""

    blocks: list[Block]
    warnings: list[ConversionWarning] = field(default_factory=list)
    toggle_markers: int = 0

    @property
    def context_sensitive(self) -> bool:
        """``True`` if the blocks might differ when parsed as part of a larger text."""
        return any(w.code in CONTEXT_SENSITIVE_WARNINGS for w in self.warnings)


class MarkdownParser:
    """Convert Markdown text to a block tree.

    Parameters
    ----------
    settings:
        A settings snapshot.  When ``None`` the process-wide settings are
        read at the start of every call.

    Examples
    --------
    >>> parser = MarkdownParser()
    >>> blocks = parser.parse("# Hello\\n\\nWorld")
    >>> [b.type.value for b in blocks]
    ['heading', 'paragraph']
    """

    def __init__(self, settings: MapperSettings | None = None) -> None:
        self._settings = settings
        self.warnings: list[ConversionWarning] = []

    def parse(self, text: str) -> list[Block]:
        """Parse a whole document.

        Raises
        ------
        MdMapperInputError
            If *text* is not a ``str``.
        """
        with log_elapsed(log, "parsed markdown") as fields:
            outcome = self.parse_span(text, 0, len(text) if isinstance(text, str) else 0)
            assign_block_ids(outcome.blocks)
            fields.update(
                chars=len(text),
                blocks=len(outcome.blocks),
                warnings=[w.code for w in outcome.warnings],
            )

        settings = resolve_settings(self._settings)
        if settings.debug_dump_blocks:
            from mdmapper.models import blocks_to_json
            print(
                "[mdmapper] Parsed blocks:",
                blocks_to_json(outcome.blocks, indent=2),
                file=sys.stderr,
            )
        return outcome.blocks

    def parse_span(self, text: str, start: int, end: int) -> ParseOutcome:
        """Parse ``text[start:end]`` in isolation, keeping absolute offsets.

        Blocks are returned without ids; callers assign them.
        """
        if not isinstance(text, str):
            raise MdMapperInputError(
                "Markdown input must be a str",
                context={"argument": "text", "expected": "str", "actual": type(text).__name__},
            )
        settings = resolve_settings(self._settings)
        ctx = BuildContext(settings)
        items = build_items(SourceLines(text[start:end], start), ctx)
        blocks = fold_toggles(items, settings.max_nesting_depth, ctx.warnings)
        self.warnings = ctx.warnings
        return ParseOutcome(blocks=blocks, warnings=ctx.warnings, toggle_markers=ctx.toggle_markers)


def parse_markdown(text: str, settings: MapperSettings | None = None) -> list[Block]:
    """Parse *text* into blocks.  Never raises on ``str`` input."""
    return MarkdownParser(settings).parse(text)
