"""Markdown -> blocks -> Markdown round trips."""

from __future__ import annotations

import pytest

from mdmapper.converter.blocks_to_md import serialize_blocks
from mdmapper.converter.md_to_blocks import parse_markdown

CANONICAL = [
    "# Title",
    "## Sub",
    "### Third",
    "Paragraph with **bold** and _italic_.",
    "- a\n  - b\n- c",
    "1. one\n2. two",
    "- [ ] todo\n- [x] done",
    "> a quote\n> more",
    "> [!WARNING] Careful\n> body",
    "```python\nprint(1)\n```",
    "---",
    "| a | b |\n| --- | :---: |\n| 1 | 2 |",
    '![Alt](img.png "Title")',
    "[Docs](https://example.com)",
    "<details><summary>More</summary>\n\nHidden\n\n</details>",
]

LOSSY = [
    "* a\n* b",
    "***",
    "####",
    "#### Deep heading",
    "~~~\nx\n~~~",
    "> ⚠️ Warning: Careful\n> body",
    "a | b\n--- | ---\n1 | 2",
    "line one\n\n\n\nline two",
    "<details><summary>A</summary>\n\nunclosed",
    "2) x",
]


def _roundtrip(text: str) -> str:
    return serialize_blocks(parse_markdown(text))


@pytest.mark.parametrize("text", CANONICAL)
def test_canonical_fragment_is_reproduced(text):
    assert _roundtrip(text) == text


def test_canonical_document_is_reproduced():
    doc = "\n\n".join(CANONICAL)
    assert _roundtrip(doc) == doc


@pytest.mark.parametrize("text", LOSSY)
def test_second_round_trip_is_stable(text):
    once = _roundtrip(text)
    assert _roundtrip(once) == once


@pytest.mark.parametrize("text", CANONICAL + LOSSY)
def test_block_structure_survives(text):
    first = parse_markdown(text)
    second = parse_markdown(_roundtrip(text))
    assert [b.type for b in first] == [b.type for b in second]
