"""Tests for the structured JSON logger."""

from __future__ import annotations

import io
import json
import logging
import sys

import pytest

from mdmapper.converter.block_builder import _REGION_HANDLERS
from mdmapper.converter.md_to_blocks import parse_markdown
from mdmapper.incremental.updater import update_blocks
from mdmapper.models import BlockType, DocumentChange, HeadingContent, SourceRange
from mdmapper.observability import StructuredFormatter, get_logger, log_elapsed


def _capture(name: str, level: int = logging.DEBUG) -> tuple[logging.Logger, io.StringIO, list]:
    """Attach a StringIO handler to logger *name*; returns what to restore."""
    logger = get_logger(name)
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    previous = logger.level
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger, stream, [handler, previous]


def _release(logger: logging.Logger, restore: list) -> None:
    handler, previous = restore
    logger.removeHandler(handler)
    logger.setLevel(previous)


def _records(stream: io.StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line]


class TestStructuredFormatter:
    def _record(self, **kwargs) -> logging.LogRecord:
        record = logging.LogRecord(
            name="mdmapper.test", level=logging.INFO, pathname=__file__, lineno=1,
            msg="hello %s", args=("world",), exc_info=None,
        )
        for key, value in kwargs.items():
            setattr(record, key, value)
        return record

    def test_guaranteed_keys(self):
        entry = json.loads(StructuredFormatter().format(self._record()))
        assert entry["level"] == "INFO"
        assert entry["logger"] == "mdmapper.test"
        assert entry["message"] == "hello world"
        assert "ts" in entry

    def test_extra_fields_merged(self):
        entry = json.loads(StructuredFormatter().format(self._record(extra_fields={"blocks": 3})))
        assert entry["blocks"] == 3

    def test_single_line(self):
        out = StructuredFormatter().format(self._record(extra_fields={"text": "a\nb"}))
        assert "\n" not in out

    def test_exception_included(self):
        try:
            raise RuntimeError("kaput")
        except RuntimeError:
            record = self._record(exc_info=sys.exc_info())
        entry = json.loads(StructuredFormatter().format(record))
        assert "kaput" in entry["exception"]

    def test_block_model_values_use_wire_form(self):
        record = self._record(extra_fields={
            "range": SourceRange(3, 7),
            "type": BlockType.HEADING,
            "content": HeadingContent(2, "Title"),
        })
        entry = json.loads(StructuredFormatter().format(record))
        assert entry["range"] == [3, 7]
        assert entry["type"] == "heading"
        assert entry["content"] == {"level": 2, "text": "Title"}

    def test_non_ascii_kept(self):
        out = StructuredFormatter().format(self._record(extra_fields={"text": "café"}))
        assert "café" in out


class TestLogElapsed:
    def test_records_elapsed_and_body_fields(self):
        stream = io.StringIO()
        log = get_logger("mdmapper.test.elapsed", level="debug", stream=stream)
        with log_elapsed(log, "step", chars=3) as fields:
            fields["blocks"] = 1
        entry = json.loads(stream.getvalue())
        assert entry["message"] == "step"
        assert entry["chars"] == 3
        assert entry["blocks"] == 1
        assert entry["elapsed_ms"] >= 0

    def test_silent_below_debug(self):
        stream = io.StringIO()
        log = get_logger("mdmapper.test.elapsed_quiet", stream=stream)
        with log_elapsed(log, "step") as fields:
            fields["blocks"] = 1
        assert stream.getvalue() == ""
        assert "elapsed_ms" not in fields

    def test_no_record_when_body_raises(self):
        stream = io.StringIO()
        log = get_logger("mdmapper.test.elapsed_raise", level="debug", stream=stream)
        with pytest.raises(ValueError):
            with log_elapsed(log, "step"):
                raise ValueError("boom")
        assert stream.getvalue() == ""


class TestGetLogger:
    def test_idempotent(self):
        a = get_logger("mdmapper.test.idem")
        b = get_logger("mdmapper.test.idem")
        assert a is b
        assert len(a.handlers) == 1

    def test_does_not_propagate(self):
        assert get_logger("mdmapper.test.prop").propagate is False

    def test_default_level_warning(self):
        assert get_logger("mdmapper.test.level").level == logging.WARNING

    def test_string_level(self):
        assert get_logger("mdmapper.test.strlevel", level="debug").level == logging.DEBUG

    def test_custom_stream(self):
        stream = io.StringIO()
        log = get_logger("mdmapper.test.stream", stream=stream)
        log.warning("visible", extra={"extra_fields": {"k": 1}})
        entry = json.loads(stream.getvalue())
        assert entry["message"] == "visible"
        assert entry["k"] == 1


class TestLibraryLogging:
    def test_parser_logs_debug_summary(self):
        logger, stream, restore = _capture("mdmapper.parser")
        try:
            parse_markdown("# A\n\nB")
        finally:
            _release(logger, restore)
        entry = [r for r in _records(stream) if r["message"] == "parsed markdown"][-1]
        assert entry["blocks"] == 2
        assert entry["warnings"] == []
        assert entry["elapsed_ms"] >= 0

    def test_parser_warning_codes_logged(self):
        logger, stream, restore = _capture("mdmapper.parser")
        try:
            parse_markdown("```\nopen")
        finally:
            _release(logger, restore)
        entry = [r for r in _records(stream) if r["message"] == "parsed markdown"][-1]
        assert entry["warnings"] == ["UNTERMINATED_FENCE"]

    def test_updater_logs_full_reparse_reason(self):
        blocks = parse_markdown("a\n\nb")
        logger, stream, restore = _capture("mdmapper.updater")
        try:
            changes = [
                DocumentChange(SourceRange(0, 1), "x"),
                DocumentChange(SourceRange(0, 1), "y"),
            ]
            update_blocks(blocks, changes, "x\n\nb")
        finally:
            _release(logger, restore)
        entry = [r for r in _records(stream) if r["message"] == "full reparse"][-1]
        assert entry["reason"] == "overlap"

    def test_updater_warns_about_stale_blocks_without_text(self):
        blocks = parse_markdown("```\nx\n```\n\nworld")
        logger, stream, restore = _capture("mdmapper.updater", logging.WARNING)
        try:
            update_blocks(blocks, [DocumentChange(SourceRange(4, 5), "y")])
        finally:
            _release(logger, restore)
        (entry,) = _records(stream)
        assert entry["level"] == "WARNING"
        assert entry["stale"] == 1

    def test_patched_paragraph_is_not_reported_stale(self):
        blocks = parse_markdown("hello\n\nworld")
        logger, stream, restore = _capture("mdmapper.updater", logging.WARNING)
        try:
            update_blocks(blocks, [DocumentChange(SourceRange(0, 5), "HELLO!")])
        finally:
            _release(logger, restore)
        assert _records(stream) == []

    def test_incremental_update_logs_windows_and_timing(self):
        blocks = parse_markdown("a\n\nb\n\nc\n\nd")
        logger, stream, restore = _capture("mdmapper.updater")
        try:
            update_blocks(blocks, [DocumentChange(SourceRange(3, 4), "B")], "a\n\nB\n\nc\n\nd")
        finally:
            _release(logger, restore)
        entry = [r for r in _records(stream) if r["message"] == "incremental update"][-1]
        assert entry["changes"] == 1
        assert entry["blocks"] == 4
        assert entry["elapsed_ms"] >= 0

    def test_region_fallback_logged(self, monkeypatch):
        def broken(src, region, ctx):
            raise RuntimeError("handler exploded")

        monkeypatch.setitem(_REGION_HANDLERS, "heading", broken)
        logger, stream, restore = _capture("mdmapper.parser", logging.WARNING)
        try:
            blocks = parse_markdown("# Title")
        finally:
            _release(logger, restore)
        assert blocks[0].content.text == "# Title"
        (entry,) = _records(stream)
        assert entry["message"] == "region fallback"
        assert entry["kind"] == "heading"
        assert "handler exploded" in entry["exception"]
