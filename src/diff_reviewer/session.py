"""Review session: ties the git adapter and review state together for front-ends."""

import asyncio
import logging
from typing import Optional

from diff_reviewer.exceptions import PatchApplyError
from diff_reviewer.integrations.git import GitAdapter
from diff_reviewer.models import (
    ActionType,
    DiffFile,
    FileSummary,
    FileView,
    HunkStatus,
    UndoResult,
)
from diff_reviewer.settings import Settings
from diff_reviewer.state import JsonFileStorage, ReviewStateManager


logger = logging.getLogger(__name__)


class ReviewSession:
    """Index-addressed review actions on the current diff.

    Front-ends show hunks by position; the session turns positions into
    hunk ids against the latest parsed diff before calling the state
    manager. A stale position is ignored rather than reported.

    Every call that reads git or changes review state holds one lock, so
    concurrent requests (e.g. from the HTTP server) run one after another
    and always see the diff left behind by the previous call.
    """

    def __init__(self, git: GitAdapter, state: ReviewStateManager):
        self.git = git
        self.state = state
        self._files: list[DiffFile] = []
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "ReviewSession":
        git = GitAdapter(
            settings.repo_path,
            git_binary=settings.git_binary,
            diff_base=settings.diff_base,
            timeout=settings.git_timeout,
        )
        storage = JsonFileStorage(settings.state_path)
        return cls(git, ReviewStateManager(git, storage))

    async def refresh(self) -> list[DiffFile]:
        """Re-read the full diff and forget state for files no longer in it."""
        async with self._lock:
            return await self._refresh()

    def get_files(self) -> list[DiffFile]:
        return list(self._files)

    def find_file(self, file_path: str) -> Optional[DiffFile]:
        for file in self._files:
            if file.path == file_path:
                return file
        return None

    async def open_file(self, file_path: str) -> Optional[FileView]:
        """A file with its statuses and current on-disk content."""
        async with self._lock:
            file = self.find_file(file_path)
            if file is None:
                return None

            statuses = self.state.sync_statuses(file)
            content: list[str] = []
            if not file.is_binary:
                try:
                    content = await self.git.get_file_content(file_path)
                except FileNotFoundError:
                    # Deleted in the working tree
                    content = []
            return FileView(file=file, statuses=statuses, content=content)

    def summary(self) -> list[FileSummary]:
        summaries = []
        for file in self._files:
            statuses = self.state.get_status_array(file)
            summaries.append(FileSummary(
                path=file.path,
                is_binary=file.is_binary,
                total=len(statuses),
                pending=statuses.count(HunkStatus.PENDING),
                approved=statuses.count(HunkStatus.APPROVED),
                resolved=self.state.is_file_resolved(file.path),
            ))
        return summaries

    async def approve(self, file_path: str, index: int) -> Optional[list[HunkStatus]]:
        async with self._lock:
            file, hunk_id = self._lookup(file_path, index)
            if file is None or hunk_id is None:
                return None
            self.state.approve(file_path, hunk_id)
            return self.state.get_status_array(file)

    async def approve_all(self, file_path: str) -> Optional[list[HunkStatus]]:
        async with self._lock:
            file = self.find_file(file_path)
            if file is None:
                return None
            self.state.sync_statuses(file)
            self.state.approve_all(file_path, file)
            return self.state.get_status_array(file)

    async def unapprove(self, file_path: str, index: int) -> Optional[list[HunkStatus]]:
        async with self._lock:
            file, hunk_id = self._lookup(file_path, index)
            if file is None or hunk_id is None:
                return None
            self.state.undo_approve(file_path, hunk_id)
            return self.state.get_status_array(file)

    async def reject(self, file_path: str, index: int) -> Optional[DiffFile]:
        """Reject one hunk; returns the updated file or None if it has no changes left."""
        async with self._lock:
            file, hunk_id = self._lookup(file_path, index)
            if file is None or hunk_id is None:
                return None
            updated = await self.state.reject(file_path, hunk_id, file)
            self._replace(file_path, updated)
            return updated

    async def reject_all(self, file_path: str) -> Optional[DiffFile]:
        async with self._lock:
            file = self.find_file(file_path)
            if file is None:
                return None
            self.state.sync_statuses(file)
            try:
                updated = await self.state.reject_all(file_path, file)
            except PatchApplyError:
                # Earlier steps are already on disk
                await self._refresh()
                raise
            self._replace(file_path, updated)
            return updated

    async def undo(self) -> Optional[UndoResult]:
        async with self._lock:
            result = await self.state.undo()
            if result is not None and result.undone_type == ActionType.REJECT:
                await self._refresh()
            return result

    async def _refresh(self) -> list[DiffFile]:
        self._files = await self.git.get_diff()
        self.state.prune_committed_files(self._files)
        for file in self._files:
            if not file.is_binary:
                self.state.sync_statuses(file)
        logger.debug(f"Refreshed diff: {len(self._files)} file(s)")
        return self._files

    def _lookup(self, file_path: str, index: int) -> tuple[Optional[DiffFile], Optional[str]]:
        file = self.find_file(file_path)
        if file is None or not 0 <= index < len(file.hunks):
            return file, None
        return file, file.hunks[index].id

    def _replace(self, file_path: str, updated: Optional[DiffFile]):
        if updated is None:
            self._files = [f for f in self._files if f.path != file_path]
        else:
            self._files = [updated if f.path == file_path else f for f in self._files]
