"""Pytest configuration and fixtures."""

import os

import pytest

# Set test environment before any app code runs
os.environ["ENV"] = "test"
os.environ["FETCH_RETRY_DELAY_SECONDS"] = "0"

from langbench.config import get_settings  # noqa: E402
from tests.fixtures.site import FakeExtractor, FakeSite  # noqa: E402


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Each test sees settings built from its own environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def site() -> FakeSite:
    """An empty fake domain."""
    return FakeSite()


@pytest.fixture
def extractor() -> FakeExtractor:
    """An extractor with no pages."""
    return FakeExtractor()
