"""
Shared fixtures for board client tests.
"""

import pytest

from board_fixtures import LAYOUT


@pytest.fixture
def layout() -> dict[str, list[str]]:
    return {name: list(titles) for name, titles in LAYOUT.items()}
