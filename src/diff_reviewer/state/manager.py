"""Review state: hunk statuses, undo history and persistence."""

import logging
from typing import Optional, Protocol

from pydantic import ValidationError

from diff_reviewer.analyzers.patch import build_patch
from diff_reviewer.exceptions import GitCommandError, PatchApplyError
from diff_reviewer.models import (
    ActionType,
    DiffFile,
    HunkStatus,
    UndoEntry,
    UndoResult,
)
from diff_reviewer.state.storage import Storage


logger = logging.getLogger(__name__)

STORAGE_KEY = "diffReviewer.hunkStatuses"
UNDO_STORAGE_KEY = "diffReviewer.undoStack"


class PatchTarget(Protocol):
    """The part of the git adapter the state manager drives."""

    async def apply_reverse(self, patch: str): ...

    async def apply_forward(self, patch: str): ...

    async def get_file_diff(self, file_path: str) -> list[DiffFile]: ...


class ReviewStateManager:
    """Owns per-hunk review decisions and the global undo stack.

    Statuses are keyed by content-based hunk id, never by position, so they
    survive re-parsing after edits and rejections. The undo stack is stored
    next to the approvals, so a reject made by one process can be undone by
    the next. Callers must serialize mutating calls; there is no internal
    locking.
    """

    def __init__(self, git: PatchTarget, storage: Optional[Storage] = None):
        self.git = git
        self.storage = storage

        # file path -> hunk id -> status
        self._statuses: dict[str, dict[str, HunkStatus]] = {}
        self._undo_stack: list[UndoEntry] = []

        if self.storage is not None:
            self._restore_from_storage()

    @property
    def undo_stack(self) -> tuple[UndoEntry, ...]:
        return tuple(self._undo_stack)

    @property
    def can_undo(self) -> bool:
        return bool(self._undo_stack)

    def sync_statuses(self, file: DiffFile) -> list[HunkStatus]:
        """Reconcile a file's statuses against a freshly parsed diff.

        Known ids keep their status, new ids start pending and ids that
        are gone are dropped.

        Returns:
            Statuses in the order of ``file.hunks``
        """
        path = file.path
        existing = self._statuses.get(path, {})

        new_map: dict[str, HunkStatus] = {}
        for hunk in file.hunks:
            if hunk.id:
                new_map[hunk.id] = existing.get(hunk.id, HunkStatus.PENDING)

        dropped = len(set(existing) - set(new_map))
        if dropped:
            logger.debug(f"Dropped {dropped} stale hunk id(s) for {path}")

        self._statuses[path] = new_map
        self._persist()
        return self._ordered(file, new_map)

    def get_status_array(self, file: DiffFile) -> list[HunkStatus]:
        """Statuses in the order of ``file.hunks``, without reconciling."""
        return self._ordered(file, self._statuses.get(file.path, {}))

    def get_statuses(self, file_path: str) -> list[HunkStatus]:
        """Raw status values tracked for a path, in insertion order."""
        return list(self._statuses.get(file_path, {}).values())

    def is_file_resolved(self, file_path: str) -> bool:
        """A file is resolved when it has tracked hunks and all are approved."""
        status_map = self._statuses.get(file_path)
        if not status_map:
            return False
        return all(status == HunkStatus.APPROVED for status in status_map.values())

    def approve(self, file_path: str, hunk_id: str):
        """Mark a pending hunk as approved."""
        status_map = self._statuses.get(file_path)
        if not status_map or status_map.get(hunk_id) != HunkStatus.PENDING:
            return

        status_map[hunk_id] = HunkStatus.APPROVED
        self._undo_stack.append(UndoEntry(type=ActionType.APPROVE, file_path=file_path, hunk_id=hunk_id))
        self._persist()

    def approve_all(self, file_path: str, file: DiffFile):
        """Approve every pending hunk, one undo entry per hunk."""
        status_map = self._statuses.get(file_path)
        if status_map is None:
            return

        for hunk in file.hunks:
            if hunk.id and status_map.get(hunk.id) == HunkStatus.PENDING:
                status_map[hunk.id] = HunkStatus.APPROVED
                self._undo_stack.append(UndoEntry(type=ActionType.APPROVE, file_path=file_path, hunk_id=hunk.id))
        self._persist()

    def undo_approve(self, file_path: str, hunk_id: str):
        """Reset one approval to pending and drop its undo entry."""
        status_map = self._statuses.get(file_path)
        if not status_map or status_map.get(hunk_id) != HunkStatus.APPROVED:
            return

        status_map[hunk_id] = HunkStatus.PENDING
        for i in range(len(self._undo_stack) - 1, -1, -1):
            entry = self._undo_stack[i]
            if entry.type == ActionType.APPROVE and entry.file_path == file_path and entry.hunk_id == hunk_id:
                del self._undo_stack[i]
                break
        self._persist()

    async def reject(self, file_path: str, hunk_id: str, file: DiffFile) -> Optional[DiffFile]:
        """Reject a hunk by reverse-applying it in the working tree.

        Args:
            file_path: Tracked path of the file
            hunk_id: Id of the hunk to reject
            file: Current parsed file containing the hunk

        Returns:
            The re-parsed file, or None when the file has no changes left
            or the hunk is unknown

        Raises:
            PatchApplyError: If git refuses the patch; state is unchanged
        """
        hunk = file.find_hunk(hunk_id)
        if hunk is None:
            return None

        patch = build_patch(file, hunk)
        try:
            await self.git.apply_reverse(patch)
        except GitCommandError as e:
            raise PatchApplyError(file_path, "reject", str(e)) from e

        logger.info(f"Rejected hunk {hunk_id} in {file_path}")
        self._undo_stack.append(UndoEntry(
            type=ActionType.REJECT,
            file_path=file_path,
            hunk_id=hunk_id,
            forward_patch=patch,
        ))

        status_map = self._statuses.get(file_path)
        if status_map is not None:
            status_map.pop(hunk_id, None)

        # Line numbers moved on disk, re-read before anything else
        fresh_files = await self.git.get_file_diff(file_path)
        if not fresh_files:
            self._statuses.pop(file_path, None)
            self._persist()
            return None

        fresh_file = fresh_files[0]
        self.sync_statuses(fresh_file)
        return fresh_file

    async def reject_all(self, file_path: str, file: DiffFile) -> Optional[DiffFile]:
        """Reject pending hunks one at a time, re-reading the diff after each.

        Hunks are never batched into one patch because every applied
        rejection shifts the line numbers of the remaining hunks.
        """
        current: Optional[DiffFile] = file
        rejected = 0

        while current is not None:
            status_map = self._statuses.get(file_path)
            if status_map is None:
                break

            pending_id = next(
                (h.id for h in current.hunks if h.id and status_map.get(h.id) == HunkStatus.PENDING),
                None,
            )
            if pending_id is None:
                break

            current = await self.reject(file_path, pending_id, current)
            rejected += 1

        logger.info(f"Rejected {rejected} hunk(s) in {file_path}")
        return current

    async def undo(self) -> Optional[UndoResult]:
        """Undo the most recent action.

        Returns:
            The file and action type undone, or None if there is nothing to undo

        Raises:
            PatchApplyError: If re-applying a rejected hunk fails; the entry
                stays on the stack
        """
        if not self._undo_stack:
            return None
        entry = self._undo_stack.pop()

        if entry.type == ActionType.APPROVE:
            status_map = self._statuses.get(entry.file_path)
            if status_map and entry.hunk_id in status_map:
                status_map[entry.hunk_id] = HunkStatus.PENDING
        elif entry.forward_patch:
            try:
                await self.git.apply_forward(entry.forward_patch)
            except GitCommandError as e:
                self._undo_stack.append(entry)
                raise PatchApplyError(entry.file_path, "undo", str(e)) from e
            logger.info(f"Restored rejected hunk {entry.hunk_id} in {entry.file_path}")

        self._persist()
        return UndoResult(file_path=entry.file_path, undone_type=entry.type)

    def clear(self):
        """Forget all statuses and undo history."""
        self._statuses.clear()
        self._undo_stack = []
        self._persist()

    def prune_committed_files(self, current_files: list[DiffFile]):
        """Drop state for files that are no longer part of the diff."""
        current_paths = {f.path for f in current_files}
        stale = [path for path in self._statuses if path not in current_paths]
        for path in stale:
            del self._statuses[path]

        if stale:
            logger.debug(f"Pruned state for {len(stale)} file(s) no longer in the diff")
            self._persist()

    def _ordered(self, file: DiffFile, status_map: dict[str, HunkStatus]) -> list[HunkStatus]:
        return [
            status_map.get(hunk.id, HunkStatus.PENDING) if hunk.id else HunkStatus.PENDING
            for hunk in file.hunks
        ]

    def _persist(self):
        """Write approved statuses and the undo stack to storage.

        Pending is the default and rejected hunks no longer exist, so only
        approvals are stored as statuses.
        """
        if self.storage is None:
            return

        data: dict[str, dict[str, str]] = {}
        for file_path, status_map in self._statuses.items():
            approved = {
                hunk_id: HunkStatus.APPROVED.value
                for hunk_id, status in status_map.items()
                if status == HunkStatus.APPROVED
            }
            if approved:
                data[file_path] = approved
        self.storage.update(STORAGE_KEY, data)
        self.storage.update(UNDO_STORAGE_KEY, [entry.model_dump(mode="json") for entry in self._undo_stack])

    def _restore_from_storage(self):
        data = self.storage.get(STORAGE_KEY)
        if isinstance(data, dict):
            for file_path, entries in data.items():
                if not isinstance(entries, dict):
                    continue
                status_map: dict[str, HunkStatus] = {}
                for hunk_id, status in entries.items():
                    if status == HunkStatus.APPROVED.value:
                        status_map[hunk_id] = HunkStatus.APPROVED
                if status_map:
                    self._statuses[file_path] = status_map

        undo_entries = self.storage.get(UNDO_STORAGE_KEY)
        if isinstance(undo_entries, list):
            for raw in undo_entries:
                try:
                    self._undo_stack.append(UndoEntry.model_validate(raw))
                except ValidationError as e:
                    logger.warning(f"Skipping unreadable undo entry: {e}")

        logger.debug(
            f"Restored approvals for {len(self._statuses)} file(s) "
            f"and {len(self._undo_stack)} undo entries"
        )
