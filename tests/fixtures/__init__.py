"""Test fixtures for network-free benchmark testing."""

from tests.fixtures.site import (
    FAST_POLICY,
    FakeExtractor,
    FakeSite,
    article,
    html_page,
)

__all__ = [
    "FAST_POLICY",
    "FakeExtractor",
    "FakeSite",
    "article",
    "html_page",
]
