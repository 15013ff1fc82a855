"""Callouts: blockquotes that open with a type marker.

Two syntaxes are recognised on input, case-insensitively:

* admonition -- ``> [!TIP] Optional title``
* emoji -- ``> 📝 Tip: Optional title``

Output uses whichever style the settings select.  The type/emoji/label
table below is used in both directions.
"""

from __future__ import annotations

import re

from mdmapper.models import CalloutContent, CalloutType

CALLOUT_TABLE: tuple[tuple[CalloutType, str, str], ...] = (
    (CalloutType.NOTE, "\u2139\ufe0f", "Note"),
    (CalloutType.INFO, "\U0001f4a1", "Info"),
    (CalloutType.TIP, "\U0001f4dd", "Tip"),
    (CalloutType.WARNING, "\u26a0\ufe0f", "Warning"),
    (CalloutType.DANGER, "\u274c", "Danger"),
)

EMOJI_BY_TYPE: dict[CalloutType, str] = {t: e for t, e, _ in CALLOUT_TABLE}
LABEL_BY_TYPE: dict[CalloutType, str] = {t: label for t, _, label in CALLOUT_TABLE}
# Keyed without the U+FE0F variation selector, which editors often drop.
_TYPE_BY_EMOJI: dict[str, CalloutType] = {
    e.replace("\ufe0f", ""): t for t, e, _ in CALLOUT_TABLE
}

_ADMONITION_RE = re.compile(r"^\[!(NOTE|TIP|WARNING|DANGER|INFO)\](.*)$", re.IGNORECASE)
_EMOJI_RE = re.compile(
    "^(" + "|".join(re.escape(e) for e in _TYPE_BY_EMOJI) + ")\ufe0f?"
    r"\s+(Note|Info|Tip|Warning|Danger)\b\s*[:.]?\s*(.*)$",
    re.IGNORECASE,
)


def detect_callout(lines: list[str]) -> CalloutContent | None:
    """Return callout content for quote *lines*, or ``None``.

    *lines* are the quote's lines with the ``>`` prefix already removed.
    The remainder of the first line after the marker is the title; the
    other lines, joined and stripped, are the text.
    """
    if not lines:
        return None
    first = lines[0].strip()
    match = _ADMONITION_RE.match(first)
    if match is not None:
        ctype = CalloutType(match.group(1).lower())
        title = match.group(2).strip()
    else:
        match = _EMOJI_RE.match(first)
        if match is None:
            return None
        ctype = _TYPE_BY_EMOJI[match.group(1)]
        title = match.group(3).strip()
    text = "\n".join(lines[1:]).strip()
    return CalloutContent(type=ctype, text=text, title=title or None)


def _marker(content: CalloutContent, style: str) -> str:
    if style == "emoji":
        marker = f"{EMOJI_BY_TYPE[content.type]} {LABEL_BY_TYPE[content.type]}:"
    else:
        marker = f"[!{content.type.value.upper()}]"
    if content.title:
        marker = f"{marker} {' '.join(content.title.split())}"
    return marker


def render_callout(content: CalloutContent, style: str) -> str:
    """Render a callout in ``"admonition"`` or ``"emoji"`` style."""
    lines = [f"> {_marker(content, style)}"]
    if content.text:
        lines.extend(f"> {line}" if line else ">" for line in content.text.split("\n"))
    return "\n".join(lines)
