"""Shared pytest fixtures for atletiek.nu scraper tests."""

from collections.abc import Callable, Iterator
from pathlib import Path

import pytest
import structlog


@pytest.fixture
def test_data_dir() -> Path:
    """Returns the path to the test data directory."""
    return Path(__file__).parent / "data"


@pytest.fixture
def load_html(test_data_dir: Path) -> Callable[[str], str]:
    """Returns a loader for HTML fixtures in tests/data."""

    def load(name: str) -> str:
        return (test_data_dir / name).read_text(encoding="utf-8")

    return load


@pytest.fixture
def temp_snapshot_file(tmp_path: Path) -> Path:
    """Provides a temporary path for cache snapshots."""
    return tmp_path / "cache" / "requests.json"


@pytest.fixture(autouse=True)
def reset_structlog() -> Iterator[None]:
    """Restores the default structlog configuration after each test."""
    yield
    structlog.reset_defaults()
