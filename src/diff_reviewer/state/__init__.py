"""Review state management."""

from diff_reviewer.state.manager import STORAGE_KEY, UNDO_STORAGE_KEY, ReviewStateManager
from diff_reviewer.state.storage import JsonFileStorage, MemoryStorage, Storage

__all__ = [
    "JsonFileStorage",
    "MemoryStorage",
    "ReviewStateManager",
    "STORAGE_KEY",
    "Storage",
    "UNDO_STORAGE_KEY",
]
