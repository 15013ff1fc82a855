"""Tests for errors.py and the errors raised at the public surface."""

from __future__ import annotations

import pytest

from mdmapper.converter.blocks_to_md import serialize_blocks
from mdmapper.converter.md_to_blocks import MarkdownParser, parse_markdown
from mdmapper.errors import (
    ErrorCode,
    MdMapperError,
    MdMapperInputError,
    MdMapperUnsupportedBlockError,
    MdMapperValidationError,
)
from mdmapper.models import Block, ParagraphContent, SourceRange


class TestErrorHierarchy:
    @pytest.mark.parametrize(
        ("cls", "code"),
        [
            (MdMapperInputError, ErrorCode.INVALID_INPUT),
            (MdMapperValidationError, ErrorCode.VALIDATION_ERROR),
            (MdMapperUnsupportedBlockError, ErrorCode.UNSUPPORTED_BLOCK),
        ],
    )
    def test_codes(self, cls, code):
        err = cls("boom")
        assert isinstance(err, MdMapperError)
        assert err.code == code
        assert err.message == "boom"
        assert err.context == {}
        assert str(err) == "boom"

    def test_error_code_is_str(self):
        assert ErrorCode.INVALID_INPUT == "INVALID_INPUT"

    def test_cause_chained(self):
        root = KeyError("start")
        err = MdMapperValidationError("bad", context={"rule": "x"}, cause=root)
        assert err.cause is root
        assert err.__cause__ is root

    def test_repr_includes_context(self):
        err = MdMapperInputError("bad", context={"argument": "text"})
        assert "MdMapperInputError" in repr(err)
        assert "'argument': 'text'" in repr(err)

    def test_repr_without_context(self):
        assert "context" not in repr(MdMapperInputError("bad"))


class TestRaisedAtSurface:
    def test_parse_rejects_non_string(self):
        with pytest.raises(MdMapperInputError) as exc_info:
            parse_markdown(b"# bytes")  # type: ignore[arg-type]
        assert exc_info.value.context["actual"] == "bytes"

    def test_parse_span_rejects_none(self):
        with pytest.raises(MdMapperInputError):
            MarkdownParser().parse_span(None, 0, 0)  # type: ignore[arg-type]

    def test_serialize_unknown_type(self):
        block = Block("x", "video", ParagraphContent("x"), SourceRange(0, 1))  # type: ignore[arg-type]
        with pytest.raises(MdMapperUnsupportedBlockError):
            serialize_blocks([block])
