"""
Pytest configuration and shared fixtures.
"""
import sys
from pathlib import Path

import pytest

# Add src to Python path for test imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from diff_reviewer.state import MemoryStorage, ReviewStateManager  # noqa: E402
from tests.helpers import FakeGit  # noqa: E402


@pytest.fixture
def git() -> FakeGit:
    return FakeGit()


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def state(git: FakeGit, storage: MemoryStorage) -> ReviewStateManager:
    return ReviewStateManager(git, storage)
