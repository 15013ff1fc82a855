"""Inline Markdown helpers built on mistune's AST renderer.

Block text fields keep their raw inline Markdown.  This module derives
structure from that text on demand:

* :func:`parse_standalone_media` -- recognise a paragraph that is exactly one
  image or one link (the parser turns those into ``image`` / ``link``
  blocks).
* :func:`build_segments` / :func:`parse_inline` -- split inline Markdown into
  annotated text segments, or into plain text plus formatting spans.
* :func:`render_segments` / :func:`render_inline` -- the inverse: turn
  segments or spans back into Markdown.

A segment is a dict::

    {"content": "hello", "annotations": {"bold": True, "italic": False,
     "strikethrough": False, "code": False}, "href": None}
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import lru_cache

import mistune

# Characters escaped when plain text is rendered back into inline Markdown.
_ESCAPE_RE = re.compile(r"([\\`*_\[\]~<])")

# A link destination needs <...> when it holds any of these.
_BARE_DESTINATION_RE = re.compile(r"[\s()<>]")
_BARE_SPLIT_RE = re.compile(r"(\S*)(.*)", re.DOTALL)
_ANGLE_ESCAPE_RE = re.compile(r"\\([<>])")
_TITLE_ESCAPE_RE = re.compile(r'\\([\\"\'()])')

_ANNOTATION_KEYS = ("bold", "italic", "strikethrough", "code")

# Span types reported by parse_inline, in nesting order (outermost first).
FORMAT_TYPES = ("link", "strikethrough", "italic", "bold", "code")


@lru_cache(maxsize=1)
def _inline_parser() -> mistune.Markdown:
    return mistune.create_markdown(renderer="ast", plugins=["strikethrough"])


def markdown_escape(text: str, context: str = "inline") -> str:
    """Escape inline Markdown metacharacters in *text*.

    Parameters
    ----------
    text:
        The raw text to escape.
    context:
        ``"inline"`` escapes emphasis, code, link and HTML openers;
        ``"code"`` returns the text unchanged; ``"url"`` returns a link
        destination, wrapped in ``<...>`` when it holds whitespace,
        parentheses or angle brackets.
    """
    if context == "code":
        return text
    if context == "url":
        if not _BARE_DESTINATION_RE.search(text):
            return text
        inner = text.replace("\n", "%0A").replace("<", "\\<").replace(">", "\\>")
        return f"<{inner}>"
    return _ESCAPE_RE.sub(r"\\\1", text)


# ---------------------------------------------------------------------------
# Standalone image / link detection
# ---------------------------------------------------------------------------

@dataclass
class StandaloneMedia:
    """A paragraph consisting of exactly one image or one link.

    ``url`` and ``title`` are taken from the source as written, so that
    rendering them again reproduces the same text.
    """

    kind: str
    label: str
    url: str
    title: str | None = None


def _label_end(text: str, open_idx: int) -> int:
    """Return the index of the ``]`` closing the label opened at *open_idx*."""
    depth = 0
    i = open_idx
    while i < len(text):
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "[":
            depth += 1
        elif ch == "]":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return -1


def _split_destination(inner: str) -> tuple[str, str | None]:
    """Split the text between ``(`` and ``)`` into raw URL and title."""
    inner = inner.strip()
    if inner.startswith("<"):
        i = 1
        while i < len(inner) and inner[i] != ">":
            i += 2 if inner[i] == "\\" else 1
        url = _ANGLE_ESCAPE_RE.sub(r"\1", inner[1:i])
        rest = inner[i + 1:]
    else:
        url, rest = _BARE_SPLIT_RE.match(inner).groups()
    rest = rest.strip()
    if len(rest) < 2:
        return url, None
    return url, _TITLE_ESCAPE_RE.sub(r"\1", rest[1:-1]) or None


def parse_standalone_media(text: str) -> StandaloneMedia | None:
    """Return the image or link *text* consists of, or ``None``.

    mistune decides whether the text is exactly one image or link, and is
    only consulted for candidates that start with ``![`` or ``[`` and end
    with ``)``, which keeps plain prose cheap.  The label, URL and title
    are returned as written in the source.

    Examples
    --------
    >>> parse_standalone_media('![Logo](logo.png "Title")').kind
    'image'
    >>> parse_standalone_media("see [docs](https://x.io)") is None
    True
    """
    text = text.strip()
    if not text.endswith(")") or "\n" in text:
        return None
    if text.startswith("!["):
        kind, open_idx = "image", 1
    elif text.startswith("["):
        kind, open_idx = "link", 0
    else:
        return None

    tokens = [t for t in _inline_parser()(text) if t.get("type") != "blank_line"]
    if len(tokens) != 1 or tokens[0].get("type") != "paragraph":
        return None
    children = tokens[0].get("children") or []
    if len(children) != 1 or children[0].get("type") != kind:
        return None

    close = _label_end(text, open_idx)
    if close == -1 or text[close + 1:close + 2] != "(":
        return None
    url, title = _split_destination(text[close + 2:-1])
    return StandaloneMedia(kind=kind, label=text[open_idx + 1:close], url=url, title=title)


def render_media(kind: str, label: str, url: str, title: str | None = None) -> str:
    """Render ``![label](url "title")`` or ``[label](url "title")``."""
    dest = markdown_escape(url, "url")
    if title:
        escaped = title.replace("\\", "\\\\").replace('"', '\\"')
        dest = f'{dest} "{escaped}"'
    prefix = "!" if kind == "image" else ""
    return f"{prefix}[{label}]({dest})"


# ---------------------------------------------------------------------------
# Segments
# ---------------------------------------------------------------------------

def _default_annotations() -> dict:
    return {key: False for key in _ANNOTATION_KEYS}


def _merge_annotations(base: dict, **overrides: bool) -> dict:
    merged = dict(base)
    for key, value in overrides.items():
        merged[key] = merged[key] or value
    return merged


def _make_segment(content: str, annotations: dict, href: str | None) -> dict:
    return {"content": content, "annotations": dict(annotations), "href": href}


def build_segments(
    children: list[dict],
    *,
    annotations: dict | None = None,
    href: str | None = None,
) -> list[dict]:
    """Convert mistune inline AST tokens into annotated text segments.

    Handles text, strong, emphasis, codespan, strikethrough, link, image
    (alt text only), softbreak, linebreak and inline_html.  Unknown tokens
    contribute their raw text when they have one.
    """
    base = annotations if annotations is not None else _default_annotations()
    segments: list[dict] = []

    for token in children:
        ttype = token.get("type", "")
        if ttype in ("text", "inline_html"):
            segments.append(_make_segment(token.get("raw", ""), base, href))
        elif ttype in ("softbreak", "linebreak"):
            segments.append(_make_segment("\n", base, href))
        elif ttype == "codespan":
            segments.append(
                _make_segment(token.get("raw", ""), _merge_annotations(base, code=True), href)
            )
        elif ttype == "strong":
            segments.extend(build_segments(
                token.get("children") or [],
                annotations=_merge_annotations(base, bold=True), href=href,
            ))
        elif ttype == "emphasis":
            segments.extend(build_segments(
                token.get("children") or [],
                annotations=_merge_annotations(base, italic=True), href=href,
            ))
        elif ttype == "strikethrough":
            segments.extend(build_segments(
                token.get("children") or [],
                annotations=_merge_annotations(base, strikethrough=True), href=href,
            ))
        elif ttype == "link":
            url = (token.get("attrs") or {}).get("url", "")
            segments.extend(build_segments(
                token.get("children") or [], annotations=base, href=url,
            ))
        elif ttype == "image":
            segments.extend(build_segments(
                token.get("children") or [], annotations=base, href=href,
            ))
        elif token.get("children"):
            segments.extend(build_segments(token["children"], annotations=base, href=href))
        elif "raw" in token:
            segments.append(_make_segment(token["raw"], base, href))

    return _coalesce(segments)


def _coalesce(segments: list[dict]) -> list[dict]:
    """Merge adjacent segments that carry identical formatting."""
    merged: list[dict] = []
    for seg in segments:
        if not seg["content"]:
            continue
        if (
            merged
            and merged[-1]["annotations"] == seg["annotations"]
            and merged[-1]["href"] == seg["href"]
        ):
            merged[-1] = _make_segment(
                merged[-1]["content"] + seg["content"], seg["annotations"], seg["href"]
            )
        else:
            merged.append(seg)
    return merged


def parse_segments(text: str) -> list[dict]:
    """Parse inline Markdown *text* into segments."""
    if not text:
        return []
    children: list[dict] = []
    for i, token in enumerate(_inline_parser()(text)):
        if token.get("type") == "blank_line":
            continue
        if i and children:
            children.append({"type": "softbreak"})
        children.extend(token.get("children") or [{"type": "text", "raw": token.get("raw", "")}])
    return build_segments(children)


def render_segments(segments: list[dict]) -> str:
    """Render annotated segments back to inline Markdown.

    Annotation order, innermost first: code, bold, italic, strikethrough,
    then the link wrapper.
    """
    parts: list[str] = []
    for seg in segments:
        ann = seg.get("annotations") or {}
        content = seg.get("content", "")
        if ann.get("code"):
            fence = "``" if "`" in content else "`"
            text = f"{fence}{content}{fence}"
        else:
            text = markdown_escape(content)
            if ann.get("bold"):
                text = f"**{text}**"
            if ann.get("italic"):
                text = f"_{text}_"
            if ann.get("strikethrough"):
                text = f"~~{text}~~"
        if seg.get("href"):
            text = f"[{text}]({markdown_escape(seg['href'], 'url')})"
        parts.append(text)
    return "".join(parts)


# ---------------------------------------------------------------------------
# Plain text + formatting spans
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class InlineFormatting:
    """A formatting span over the plain text of an :class:`InlineText`.

    ``type`` is one of :data:`FORMAT_TYPES`; ``href`` is set for links.
    """

    type: str
    start: int
    end: int
    href: str | None = None


@dataclass
class InlineText:
    plain: str
    formatting: list[InlineFormatting] = field(default_factory=list)


def parse_inline(text: str) -> InlineText:
    """Split inline Markdown into plain text and formatting spans.

    Adjacent segments sharing a format produce a single span.

    Examples
    --------
    >>> parse_inline("a **b** c").formatting
    [InlineFormatting(type='bold', start=2, end=3, href=None)]
    """
    segments = parse_segments(text)
    plain_parts: list[str] = []
    spans: list[InlineFormatting] = []
    open_spans: dict[tuple[str, str | None], int] = {}
    pos = 0

    for seg in segments + [_make_segment("", _default_annotations(), None)]:
        active: set[tuple[str, str | None]] = {
            (key, None) for key in _ANNOTATION_KEYS if seg["annotations"].get(key)
        }
        if seg["href"]:
            active.add(("link", seg["href"]))
        for key in list(open_spans):
            if key not in active:
                spans.append(InlineFormatting(key[0], open_spans.pop(key), pos, key[1]))
        for key in active:
            open_spans.setdefault(key, pos)
        plain_parts.append(seg["content"])
        pos += len(seg["content"])

    spans.sort(key=lambda s: (s.start, -s.end, FORMAT_TYPES.index(s.type)))
    return InlineText(plain="".join(plain_parts), formatting=spans)


def render_inline(plain: str, formatting: list[InlineFormatting]) -> str:
    """Inverse of :func:`parse_inline`: rebuild inline Markdown.

    Spans are cut at every boundary so that overlapping spans render as
    correctly nested markup.
    """
    if not formatting:
        return markdown_escape(plain)
    cuts = {0, len(plain)}
    for span in formatting:
        cuts.add(max(0, min(span.start, len(plain))))
        cuts.add(max(0, min(span.end, len(plain))))
    points = sorted(cuts)

    segments: list[dict] = []
    for lo, hi in zip(points, points[1:]):
        annotations = _default_annotations()
        href: str | None = None
        for span in formatting:
            if span.start <= lo and hi <= span.end:
                if span.type == "link":
                    href = span.href
                elif span.type in annotations:
                    annotations[span.type] = True
        segments.append(_make_segment(plain[lo:hi], annotations, href))
    return render_segments(_coalesce(segments))
