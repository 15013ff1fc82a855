"""Conversion settings for mdmapper.

:class:`MapperSettings` is a frozen dataclass capturing every knob the
parser and serializer consult.  A process-wide registry holds the current
value; :func:`configure_settings` merges into it and :func:`get_settings`
reads it.  The parser and serializer read the registry at *call* time, so
converting a document between callout or toggle styles is simply::

    blocks = parse_markdown(text)
    configure_settings(callout_style="emoji")
    converted = serialize_blocks(blocks)

Hosts that convert several documents concurrently should pass an explicit
``settings=`` snapshot to each call instead of mutating the registry.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any, Literal, Mapping

# ---------------------------------------------------------------------------
# Settings dataclass
# ---------------------------------------------------------------------------

_VALID_CALLOUT_STYLES = ("admonition", "emoji")
_VALID_TOGGLE_SYNTAXES = ("details", "list")

MIN_WRAP_WIDTH = 20
MAX_NESTING_DEPTH = 16


@dataclass(frozen=True)
class MapperSettings:
    """Settings consulted by the parser, serializer and updater.

    Parameters
    ----------
    callout_style:
        Syntax emitted for callouts.

        * ``"admonition"`` -- ``> [!TIP] Title``.
        * ``"emoji"`` -- ``> 📝 Tip: Title``.

        Both syntaxes are always *recognised* by the parser.
    toggle_syntax:
        Syntax emitted for toggles.

        * ``"details"`` -- ``<details><summary>…</summary>`` HTML wrapper.
        * ``"list"`` -- a plain bullet whose children are indented below it.
          Lossy: the bullet re-parses as a list.
    wrap_width:
        Column at which paragraph and quote text is wrapped.  ``0`` disables
        wrapping.
    max_nesting_depth:
        Cap on list-item ``indent`` and on nested ``<details>`` toggles.
    incremental_region_limit:
        Largest region (in characters) the updater re-parses before it gives
        up and re-parses the whole document.
    debug_dump_blocks:
        When ``True``, every parse dumps its blocks as JSON to stderr.
    """

    callout_style: Literal["admonition", "emoji"] = "admonition"
    toggle_syntax: Literal["details", "list"] = "details"
    wrap_width: int = 0
    max_nesting_depth: int = 4
    incremental_region_limit: int = 262_144
    debug_dump_blocks: bool = False

    def __post_init__(self) -> None:
        if self.callout_style not in _VALID_CALLOUT_STYLES:
            raise ValueError(
                f"callout_style must be one of {_VALID_CALLOUT_STYLES}, "
                f"got {self.callout_style!r}"
            )
        if self.toggle_syntax not in _VALID_TOGGLE_SYNTAXES:
            raise ValueError(
                f"toggle_syntax must be one of {_VALID_TOGGLE_SYNTAXES}, "
                f"got {self.toggle_syntax!r}"
            )
        if isinstance(self.wrap_width, bool) or not isinstance(self.wrap_width, int):
            raise ValueError(f"wrap_width must be an int, got {self.wrap_width!r}")
        if self.wrap_width != 0 and self.wrap_width < MIN_WRAP_WIDTH:
            raise ValueError(
                f"wrap_width must be 0 or >= {MIN_WRAP_WIDTH}, got {self.wrap_width}"
            )
        if not 1 <= self.max_nesting_depth <= MAX_NESTING_DEPTH:
            raise ValueError(
                f"max_nesting_depth must be between 1 and {MAX_NESTING_DEPTH}, "
                f"got {self.max_nesting_depth}"
            )
        if self.incremental_region_limit < 1:
            raise ValueError(
                "incremental_region_limit must be positive, "
                f"got {self.incremental_region_limit}"
            )

    def replace(self, **changes: Any) -> MapperSettings:
        """Return a copy with *changes* applied (and validated)."""
        return dataclasses.replace(self, **changes)


# ---------------------------------------------------------------------------
# Process-wide registry
# ---------------------------------------------------------------------------

_FIELD_NAMES = frozenset(f.name for f in dataclasses.fields(MapperSettings))

_current: MapperSettings = MapperSettings()


def get_settings() -> MapperSettings:
    """Return the current effective settings."""
    return _current


def configure_settings(
    partial: Mapping[str, Any] | None = None, **overrides: Any
) -> MapperSettings:
    """Merge *partial* and *overrides* into the process-wide settings.

    Keys not mentioned keep their current value.  The merged value is
    validated before it replaces the registry entry, so a bad value leaves
    the registry unchanged.

    Returns
    -------
    MapperSettings
        The new effective settings.

    Raises
    ------
    ValueError
        On an unknown key or an invalid value.
    """
    global _current
    merged: dict[str, Any] = dict(partial or {})
    merged.update(overrides)
    unknown = set(merged) - _FIELD_NAMES
    if unknown:
        raise ValueError(f"Unknown setting(s): {', '.join(sorted(unknown))}")
    _current = dataclasses.replace(_current, **merged)
    return _current


def reset_settings() -> MapperSettings:
    """Restore the default settings."""
    global _current
    _current = MapperSettings()
    return _current


def resolve_settings(settings: MapperSettings | None) -> MapperSettings:
    """Return *settings*, or the registry value when it is ``None``."""
    return settings if settings is not None else _current
