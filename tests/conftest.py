"""Shared fixtures and markers for the pageguard test suite."""

import pytest
from bs4 import BeautifulSoup

from fakes import FakeClock, StaticEmbeddingProvider


@pytest.fixture
def make_soup():
    def _make(html: str) -> BeautifulSoup:
        return BeautifulSoup(html, "html.parser")
    return _make


@pytest.fixture
def provider():
    return StaticEmbeddingProvider()


@pytest.fixture
def clock():
    return FakeClock()


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: marks slow tests")
