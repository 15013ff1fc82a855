"""Structural checks for block trees.

:func:`validate_blocks` verifies the invariants every parser and updater
output satisfies.  It is meant for hosts that build or edit block trees
themselves before handing them back to the serializer or the updater.
"""

from __future__ import annotations

from mdmapper.errors import MdMapperValidationError
from mdmapper.models import CONTAINER_TYPES, CONTENT_TYPES, Block, BlockType, HeadingContent


def validate_blocks(blocks: list[Block], text: str | None = None) -> None:
    """Raise :class:`MdMapperValidationError` on the first violated invariant.

    Parameters
    ----------
    blocks:
        Top-level blocks, in document order.
    text:
        The document the blocks were parsed from.  When given, every range
        must lie inside it.

    Checked rules (``rule`` context key):

    * ``unsupported_type``: ``type`` is not a :class:`BlockType`.
    * ``content_mismatch``: content is not the variant for ``type``.
    * ``heading_level``: heading level outside 1..3.
    * ``children_not_allowed``: children on a non-container type.
    * ``missing_id`` / ``duplicate_id``: ids must be non-empty and unique.
    * ``range_order``: siblings must not overlap and must be in order.
    * ``range_containment``: children lie inside their parent.
    * ``range_bounds``: ranges end inside *text*.
    """
    seen: set[str] = set()
    _validate_level(blocks, None, text, seen)


def _fail(message: str, block: Block, index: int, rule: str) -> MdMapperValidationError:
    return MdMapperValidationError(
        message, context={"block_id": block.id, "index": index, "rule": rule},
    )


def _validate_level(
    blocks: list[Block], parent: Block | None, text: str | None, seen: set[str],
) -> None:
    prev_end = parent.source_range.start if parent is not None else 0
    for index, block in enumerate(blocks):
        try:
            btype = BlockType(block.type)
        except ValueError:
            raise _fail(
                f"Unsupported block type {block.type!r}", block, index, "unsupported_type",
            ) from None
        if not isinstance(block.content, CONTENT_TYPES[btype]):
            raise _fail(
                f"{btype.value} block has {type(block.content).__name__} content",
                block, index, "content_mismatch",
            )
        if isinstance(block.content, HeadingContent) and not 1 <= block.content.level <= 3:
            raise _fail(
                f"Heading level {block.content.level} outside 1..3", block, index, "heading_level",
            )
        if block.children is not None and btype not in CONTAINER_TYPES:
            raise _fail(
                f"{btype.value} blocks cannot have children",
                block, index, "children_not_allowed",
            )

        if not block.id:
            raise _fail("Block without id", block, index, "missing_id")
        if block.id in seen:
            raise _fail(f"Duplicate block id {block.id!r}", block, index, "duplicate_id")
        seen.add(block.id)

        rng = block.source_range
        if rng.start < prev_end:
            raise _fail(
                "Block range overlaps or precedes its previous sibling",
                block, index, "range_order",
            )
        if parent is not None and rng.end > parent.source_range.end:
            raise _fail(
                "Child range extends past its parent", block, index, "range_containment",
            )
        if text is not None and rng.end > len(text):
            raise _fail(
                f"Block range ends at {rng.end}, past the text length {len(text)}",
                block, index, "range_bounds",
            )
        prev_end = rng.end

        if block.children:
            _validate_level(block.children, block, text, seen)
