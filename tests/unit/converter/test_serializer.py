"""Block-to-Markdown serializer behaviour not covered by the per-block tests."""

from __future__ import annotations

import pytest

from mdmapper.config import MapperSettings
from mdmapper.converter.blocks_to_md import BlockSerializer, serialize_blocks
from mdmapper.converter.md_to_blocks import parse_markdown
from mdmapper.models import (
    Block,
    BlockType,
    DividerContent,
    HeadingContent,
    ImageContent,
    LinkContent,
    ListContent,
    ParagraphContent,
    SourceRange,
    ToggleContent,
)


def _block(btype: BlockType, content, children=None) -> Block:
    return Block(f"{btype.value}_x", btype, content, SourceRange(0, 0), children)


def _para(text: str) -> Block:
    return _block(BlockType.PARAGRAPH, ParagraphContent(text))


class TestLayout:
    def test_blank_line_between_blocks(self):
        blocks = [_block(BlockType.HEADING, HeadingContent(1, "T")), _para("body")]
        assert serialize_blocks(blocks) == "# T\n\nbody"

    def test_no_trailing_newline(self):
        assert not serialize_blocks([_para("x")]).endswith("\n")

    def test_empty_list(self):
        assert serialize_blocks([]) == ""

    def test_serialize_block(self):
        serializer = BlockSerializer()
        assert serializer.serialize_block(_block(BlockType.DIVIDER, DividerContent())) == "---"


class TestParagraphEscaping:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("# not heading", "\\# not heading"),
            ("1. first", "1\\. first"),
            ("- item", "\\- item"),
            ("---", "\\---"),
            ("> quoted", "\\> quoted"),
            ("```code", "\\```code"),
        ],
    )
    def test_first_line(self, text, expected):
        assert serialize_blocks([_para(text)]) == expected

    def test_later_line(self):
        assert serialize_blocks([_para("a\n- x")]) == "a\n\\- x"

    def test_non_interrupting_line_untouched(self):
        assert serialize_blocks([_para("in\n2019. It")]) == "in\n2019. It"

    @pytest.mark.parametrize("text", ["# not heading", "1. first", "- item", "> quoted"])
    def test_escaped_text_stays_one_paragraph(self, text):
        (block,) = parse_markdown(serialize_blocks([_para(text)]))
        assert block.type == BlockType.PARAGRAPH


class TestHeadings:
    def test_multiline_text_joined(self):
        assert serialize_blocks([_block(BlockType.HEADING, HeadingContent(2, "a\nb"))]) == "## a b"

    def test_empty(self):
        assert serialize_blocks([_block(BlockType.HEADING, HeadingContent(2, ""))]) == "##"


class TestMedia:
    def test_image(self):
        block = _block(BlockType.IMAGE, ImageContent("a.png", "Alt", "T"))
        assert serialize_blocks([block]) == '![Alt](a.png "T")'

    def test_link(self):
        block = _block(BlockType.LINK, LinkContent("Docs", "https://example.com"))
        assert serialize_blocks([block]) == "[Docs](https://example.com)"


class TestWrapping:
    def test_wraps_long_paragraph(self):
        md = serialize_blocks([_para("one two three four five six")], MapperSettings(wrap_width=20))
        assert md == "one two three four\nfive six"

    def test_wrapped_paragraph_reparses_to_same_words(self):
        text = "one two three four five six seven eight nine ten"
        md = serialize_blocks([_para(text)], MapperSettings(wrap_width=20))
        (block,) = parse_markdown(md)
        assert block.content.text.split() == text.split()

    def test_no_wrap_when_a_line_would_open_a_block(self):
        text = "x" * 19 + " - yy"
        md = serialize_blocks([_para(text)], MapperSettings(wrap_width=20))
        assert md == text

    def test_code_never_wrapped(self):
        text = "```\n" + "word " * 20 + "\n```"
        md = serialize_blocks(parse_markdown(text), MapperSettings(wrap_width=20))
        assert md == text


class TestWarnings:
    def test_children_on_leaf_ignored(self, serializer):
        block = _para("p")
        block.children = [_para("child")]
        assert serializer.serialize([block]) == "p"
        assert [w.code for w in serializer.warnings] == ["CHILDREN_IGNORED"]

    def test_non_item_child_in_list_skipped(self, serializer):
        block = _block(BlockType.LIST, ListContent(), [_para("stray")])
        assert serializer.serialize([block]) == ""
        assert [w.code for w in serializer.warnings] == ["CHILD_SKIPPED"]

    def test_warnings_reset_per_call(self, serializer):
        block = _para("p")
        block.children = [_para("child")]
        serializer.serialize([block])
        serializer.serialize([_para("q")])
        assert serializer.warnings == []

    def test_toggle_children_are_written(self, serializer):
        toggle = _block(BlockType.TOGGLE, ToggleContent("S"), [_para("inside")])
        assert serializer.serialize([toggle]) == "<details><summary>S</summary>\n\ninside\n\n</details>"
        assert serializer.warnings == []
