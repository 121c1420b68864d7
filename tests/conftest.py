"""Shared test fixtures for tagboard tests."""

import sys
from pathlib import Path

import pytest

# Ensure the package is importable without an install
sys.path.insert(0, str(Path(__file__).parent.parent))

from tagboard.schema import DEFAULT_COLUMNS
from tagboard.store import LocalFileStore


@pytest.fixture
def columns():
    return list(DEFAULT_COLUMNS)


@pytest.fixture
def notes_dir(tmp_path):
    root = tmp_path / "notes"
    root.mkdir()
    return root


@pytest.fixture
def store(notes_dir):
    return LocalFileStore(str(notes_dir))


class RecordingNotifier:
    """Counts refresh requests instead of debouncing them."""

    def __init__(self):
        self.calls = 0

    def __call__(self):
        self.calls += 1


@pytest.fixture
def notifier():
    return RecordingNotifier()
