"""Shared fixtures for resource_uploader tests."""
from datetime import datetime, timezone
from pathlib import Path

import pytest

FIXED_NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def fixed_now():
    return FIXED_NOW


@pytest.fixture
def make_file(tmp_path):
    """Create a file of the given size; large sizes are sparse so they cost nothing."""
    def _make(name: str, size: int) -> Path:
        path = tmp_path / name
        with open(path, "wb") as fh:
            if size <= 64 * 1024:
                fh.write(b"x" * size)
            else:
                fh.truncate(size)
        return path

    return _make
