"""Pytest configuration for the relevance engine test suite."""

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from config import get_settings  # noqa: E402
from category_processors import build_registry  # noqa: E402


@pytest.fixture
def registry():
    return build_registry()


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Settings are cached process-wide; tests that patch env need a clean read."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
