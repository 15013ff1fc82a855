"""Tests for models.py: content coercion, create_block and the wire form."""

from __future__ import annotations

import json

import pytest

from mdmapper.errors import MdMapperUnsupportedBlockError, MdMapperValidationError
from mdmapper.models import (
    CONTAINER_TYPES,
    CONTENT_TYPES,
    Block,
    BlockType,
    CalloutContent,
    CalloutType,
    CodeContent,
    DocumentChange,
    HeadingContent,
    ListContent,
    ParagraphContent,
    SourceRange,
    TableCell,
    TableContent,
    ToggleContent,
    block_from_dict,
    block_to_dict,
    blocks_from_json,
    blocks_to_json,
    coerce_content,
    create_block,
)


class TestBlockType:
    def test_closed_set(self):
        assert {t.value for t in BlockType} == {
            "paragraph", "heading", "list", "listItem", "taskList", "taskItem",
            "quote", "code", "divider", "table", "image", "link", "callout", "toggle",
        }

    def test_every_type_has_content(self):
        assert set(CONTENT_TYPES) == set(BlockType)

    def test_containers(self):
        assert CONTAINER_TYPES == {BlockType.LIST, BlockType.TASK_LIST, BlockType.TOGGLE}


class TestDocumentChange:
    def test_delta(self):
        assert DocumentChange(SourceRange(2, 5), "abcdef").delta == 3
        assert DocumentChange(SourceRange(2, 5), "").delta == -3


class TestCoerceContent:
    def test_same_variant_returned_unchanged(self):
        content = ParagraphContent("x")
        assert coerce_content(BlockType.PARAGRAPH, content) is content

    def test_from_dict(self):
        content = coerce_content("heading", {"level": 2, "text": "Hi"})
        assert content == HeadingContent(2, "Hi")

    def test_camel_case_keys(self):
        assert coerce_content("list", {"ordered": True, "startNumber": 3}) == ListContent(True, 3)
        code = coerce_content("code", {"code": "x", "showLineNumbers": True})
        assert code.show_line_numbers is True

    def test_heading_level_clamped(self):
        assert coerce_content("heading", {"level": 6}).level == 3
        assert coerce_content("heading", {"level": 0}).level == 1

    def test_mistyped_fields_default(self):
        content = coerce_content("heading", {"level": "two", "text": 5})
        assert content == HeadingContent(1, "")

    def test_none_gives_defaults(self):
        assert coerce_content("callout", None) == CalloutContent(CalloutType.NOTE, "", None)

    def test_other_variant_converted(self):
        content = coerce_content("quote", ParagraphContent("moved"))
        assert content.text == "moved"

    def test_unknown_callout_type_defaults_to_note(self):
        assert coerce_content("callout", {"type": "bogus"}).type is CalloutType.NOTE

    def test_callout_type_case_insensitive(self):
        assert coerce_content("callout", {"type": "TIP"}).type is CalloutType.TIP

    def test_table_cells_from_strings(self):
        content = coerce_content(
            "table",
            {"headers": ["a", {"text": "b"}], "rows": [["1", None]], "alignments": ["left", "x"]},
        )
        assert content.headers == [TableCell("a"), TableCell("b")]
        assert content.rows == [[TableCell("1"), TableCell("")]]
        assert content.alignments == ["left", None]

    def test_unknown_type_raises(self):
        with pytest.raises(MdMapperUnsupportedBlockError) as exc_info:
            coerce_content("video", {})
        assert exc_info.value.context["block_type"] == "video"


class TestCreateBlock:
    def test_fresh_unique_ids(self):
        a = create_block("paragraph", {"text": "x"})
        b = create_block("paragraph", {"text": "x"})
        assert a.id != b.id
        assert a.id.startswith("paragraph_")

    def test_provisional_range(self):
        block = create_block(BlockType.DIVIDER, at=12)
        assert block.source_range == SourceRange(12, 12)

    def test_container_gets_children_list(self):
        assert create_block("toggle", {"summary": "s"}).children == []
        assert create_block("paragraph").children is None

    def test_content_coerced(self):
        block = create_block("heading", {"level": 9, "text": "T"})
        assert block.content == HeadingContent(3, "T")

    def test_unknown_type_raises(self):
        with pytest.raises(MdMapperUnsupportedBlockError):
            create_block("video")


def _sample_tree() -> list[Block]:
    return [
        Block(
            id="toggle_1",
            type=BlockType.TOGGLE,
            content=ToggleContent("More", collapsed=True),
            source_range=SourceRange(0, 40),
            children=[
                Block(
                    id="code_1",
                    type=BlockType.CODE,
                    content=CodeContent("py", "x = 1", show_line_numbers=True),
                    source_range=SourceRange(30, 35),
                ),
            ],
        ),
        Block(
            id="table_1",
            type=BlockType.TABLE,
            content=TableContent(
                headers=[TableCell("a"), TableCell("b")],
                rows=[[TableCell("1"), TableCell("2")]],
                alignments=["left", None],
            ),
            source_range=SourceRange(42, 60),
        ),
        Block(
            id="list_1",
            type=BlockType.LIST,
            content=ListContent(ordered=True, start_number=4),
            source_range=SourceRange(62, 70),
            children=[],
        ),
    ]


class TestWireFormat:
    def test_block_to_dict_shape(self):
        d = block_to_dict(_sample_tree()[0])
        assert d["type"] == "toggle"
        assert d["sourceRange"] == {"start": 0, "end": 40}
        assert d["content"] == {"summary": "More", "collapsed": True}
        assert d["children"][0]["content"]["showLineNumbers"] is True

    def test_camel_case_start_number(self):
        d = block_to_dict(_sample_tree()[2])
        assert d["content"] == {"ordered": True, "startNumber": 4}
        assert d["children"] == []

    def test_table_cells(self):
        d = block_to_dict(_sample_tree()[1])
        assert d["content"]["headers"] == [{"text": "a"}, {"text": "b"}]
        assert d["content"]["rows"] == [[{"text": "1"}, {"text": "2"}]]

    def test_no_children_key_for_leaf(self):
        d = block_to_dict(_sample_tree()[1])
        assert "children" not in d

    def test_json_round_trip(self):
        tree = _sample_tree()
        assert blocks_from_json(blocks_to_json(tree)) == tree

    def test_json_is_plain(self):
        data = json.loads(blocks_to_json(_sample_tree()))
        assert data[0]["children"][0]["type"] == "code"

    def test_callout_type_serialised_as_string(self):
        block = Block("c", BlockType.CALLOUT, CalloutContent(CalloutType.TIP, "x"), SourceRange(0, 1))
        assert block_to_dict(block)["content"]["type"] == "tip"

    def test_missing_id_rejected(self):
        with pytest.raises(MdMapperValidationError):
            block_from_dict({"type": "paragraph", "sourceRange": {"start": 0, "end": 1}})

    def test_bad_range_rejected(self):
        with pytest.raises(MdMapperValidationError) as exc_info:
            block_from_dict({"id": "p", "type": "paragraph", "sourceRange": {"start": 5, "end": 1}})
        assert exc_info.value.context["rule"] == "sourceRange"
        assert isinstance(exc_info.value.cause, ValueError)

    def test_unknown_type_rejected(self):
        with pytest.raises(MdMapperUnsupportedBlockError):
            block_from_dict({"id": "p", "type": "video", "sourceRange": {"start": 0, "end": 0}})

    def test_not_a_dict_rejected(self):
        with pytest.raises(MdMapperValidationError):
            block_from_dict(["paragraph"])  # type: ignore[arg-type]

    def test_lenient_content(self):
        block = block_from_dict({
            "id": "h", "type": "heading", "content": {"level": "x"},
            "sourceRange": {"start": 0, "end": 3},
        })
        assert block.content == HeadingContent(1, "")
