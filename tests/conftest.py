# tests/conftest.py

"""Shared pytest fixtures for all unit_sorter tests."""

from collections.abc import Generator
from pathlib import Path
from unittest.mock import patch

import pytest

from unit_sorter.config.settings import Settings


@pytest.fixture(autouse=True)
def mock_sleep() -> Generator[None, None, None]:
    """Make transport retry backoff instant."""
    with patch("time.sleep"):
        yield


@pytest.fixture(autouse=True)
def isolated_logs_dir(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> Path:
    """Send per-run log files to a temporary directory."""
    logs_dir = tmp_path / "logs"
    monkeypatch.setattr(Settings, "LOGS_DIR", logs_dir)
    return logs_dir
