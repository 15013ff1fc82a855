"""Stable block ids.

A parsed block's id is ``<type>_<hash8>`` where the hash is an MD5 over the
block's normalised content.  Identical content in one document is
disambiguated with ``_1``, ``_2``, ... suffixes in document order, so
re-parsing unchanged text yields the same ids.  UI-only fields
(``collapsed``, ``show_line_numbers``) never affect the id.

These hashes are **not** used for security purposes.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from typing import Any, Iterable

from mdmapper.models import Block, BlockContent, BlockType, CalloutType, TableCell

# Display-state fields excluded from identity.
_EXCLUDED_FIELDS = frozenset({"collapsed", "show_line_numbers"})

# Content class -> names of the fields that take part in its hash.
_IDENTITY_FIELDS: dict[type, tuple[str, ...]] = {}


def fingerprint(payload: Any) -> str:
    """Return the MD5 hex digest of *payload*'s canonical JSON form.

    Keys are sorted, so two equal dicts built in different orders give the
    same fingerprint.

    Examples
    --------
    >>> fingerprint({"b": 2, "a": 1}) == fingerprint({"a": 1, "b": 2})
    True
    """
    data = json.dumps(payload, sort_keys=True, ensure_ascii=False, separators=(",", ":"))
    return hashlib.md5(data.encode("utf-8"), usedforsecurity=False).hexdigest()


def _identity_fields(content: BlockContent) -> tuple[str, ...]:
    cls = type(content)
    names = _IDENTITY_FIELDS.get(cls)
    if names is None:
        names = tuple(f.name for f in fields(cls) if f.name not in _EXCLUDED_FIELDS)
        _IDENTITY_FIELDS[cls] = names
    return names


def _normalise(value: Any) -> Any:
    if isinstance(value, str):
        return " ".join(value.split())
    if isinstance(value, CalloutType):
        return value.value
    if isinstance(value, TableCell):
        return _normalise(value.text)
    if isinstance(value, list):
        return [_normalise(v) for v in value]
    return value


def content_hash(content: BlockContent) -> str:
    """Return an MD5 fingerprint of *content*, ignoring UI-only fields.

    Strings are whitespace-normalised so that re-wrapping a paragraph keeps
    its fingerprint.  ``None`` and empty values are skipped.

    Examples
    --------
    >>> from mdmapper.models import ToggleContent
    >>> content_hash(ToggleContent("a", collapsed=True)) == content_hash(ToggleContent("a"))
    True
    """
    normalised: dict[str, Any] = {}
    for name in _identity_fields(content):
        value = getattr(content, name)
        if value is None or value == [] or value == "":
            continue
        normalised[name] = _normalise(value)
    return fingerprint(normalised)


def generate_block_id(block_type: BlockType, content: BlockContent) -> str:
    """Return the content-derived base id for a block."""
    return f"{block_type.value}_{content_hash(content)[:8]}"


def ensure_unique_id(
    base: str, used: set[str], next_suffix: dict[str, int] | None = None,
) -> str:
    """Return *base*, or *base* with the first free ``_N`` suffix.

    The returned id is added to *used*.  *next_suffix* remembers, per base,
    where the search resumes; pass the same dict for a whole tree so runs
    of identical blocks stay linear.
    """
    n = next_suffix.get(base, 0) if next_suffix is not None else 0
    candidate = f"{base}_{n}" if n else base
    while candidate in used:
        n += 1
        candidate = f"{base}_{n}"
    if next_suffix is not None:
        next_suffix[base] = n + 1
    used.add(candidate)
    return candidate


def iter_blocks(blocks: Iterable[Block]) -> Iterable[Block]:
    """Yield every block and its descendants in document order."""
    for block in blocks:
        yield block
        if block.children:
            yield from iter_blocks(block.children)


def assign_block_ids(blocks: list[Block], used: set[str] | None = None) -> set[str]:
    """Give every block in the tree a content-derived, unique id.

    Parameters
    ----------
    blocks:
        The tree to label; ids are assigned in place.
    used:
        Ids already taken elsewhere.  Updated in place.

    Returns
    -------
    set[str]
        The set of ids in use after assignment.
    """
    used = used if used is not None else set()
    next_suffix: dict[str, int] = {}
    for block in iter_blocks(blocks):
        base = generate_block_id(block.type, block.content)
        block.id = ensure_unique_id(base, used, next_suffix)
    return used
