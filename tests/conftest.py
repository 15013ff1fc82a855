"""Shared test fixtures for the mdmapper test suite."""

from __future__ import annotations

import pytest

from mdmapper.config import MapperSettings, reset_settings
from mdmapper.converter.blocks_to_md import BlockSerializer
from mdmapper.converter.md_to_blocks import MarkdownParser


@pytest.fixture(autouse=True)
def _default_settings():
    """Every test starts (and ends) with the default process-wide settings."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def settings() -> MapperSettings:
    """A default settings snapshot."""
    return MapperSettings()


@pytest.fixture
def parser() -> MarkdownParser:
    """Markdown-to-blocks parser reading the process-wide settings."""
    return MarkdownParser()


@pytest.fixture
def serializer() -> BlockSerializer:
    """Blocks-to-Markdown serializer reading the process-wide settings."""
    return BlockSerializer()
