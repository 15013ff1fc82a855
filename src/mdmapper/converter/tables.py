"""GFM pipe tables: building from tokens and rendering.

A table is a header row directly followed by a separator row with the same
number of cells::

    | Name | Qty |
    | :--- | --: |
    | foo  |   1 |

Recognition and cell splitting are the block tokenizer's.  The separator
determines each column's alignment; body rows are padded with empty cells
or truncated to the header width.  An escaped pipe ``\\|`` inside a cell is
a literal ``|`` in the cell text and is re-escaped on output.
"""

from __future__ import annotations

from markdown_it.token import Token

from mdmapper.models import Alignment, TableCell, TableContent

_ALIGNMENT_MARKERS: dict[Alignment | None, str] = {
    None: "---",
    "left": ":---",
    "center": ":---:",
    "right": "---:",
}

_ALIGNMENTS: dict[str, Alignment] = {
    "text-align:left": "left",
    "text-align:center": "center",
    "text-align:right": "right",
}


def build_table(tokens: list[Token]) -> TableContent:
    """Build a :class:`TableContent` from a ``table_open`` ... ``table_close`` group."""
    headers: list[TableCell] = []
    alignments: list[Alignment | None] = []
    rows: list[list[TableCell]] = []
    in_body = False
    for token in tokens:
        if token.type == "tbody_open":
            in_body = True
        elif token.type == "tr_open" and in_body:
            rows.append([])
        elif token.type == "th_open":
            alignments.append(_ALIGNMENTS.get(str(token.attrGet("style") or "")))
        elif token.type == "inline":
            cell = TableCell(token.content)
            if in_body:
                rows[-1].append(cell)
            else:
                headers.append(cell)
    return TableContent(headers=headers, rows=rows, alignments=alignments)


def _render_cell(cell: TableCell) -> str:
    return cell.text.replace("\n", " ").replace("|", "\\|").strip()


def _render_row(cells: list[str]) -> str:
    return "| " + " | ".join(cells) + " |"


def render_table(content: TableContent) -> str:
    """Render *content* as a GFM pipe table.

    The separator row is re-derived from ``alignments``.  Returns an empty
    string for a table without columns.
    """
    width = len(content.headers)
    if width == 0:
        return ""
    alignments = list(content.alignments[:width])
    alignments += [None] * (width - len(alignments))

    lines = [
        _render_row([_render_cell(c) for c in content.headers]),
        _render_row([_ALIGNMENT_MARKERS.get(a, "---") for a in alignments]),
    ]
    for row in content.rows:
        cells = [_render_cell(c) for c in row[:width]]
        cells += [""] * (width - len(cells))
        lines.append(_render_row(cells))
    return "\n".join(lines)
