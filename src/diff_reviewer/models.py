"""Data models for Diff Reviewer."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


DEV_NULL = "/dev/null"


class LineType(str, Enum):
    """Kind of a line inside a hunk."""
    ADD = "add"
    REMOVE = "remove"
    CONTEXT = "context"


class HunkStatus(str, Enum):
    """Review status of a hunk."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ActionType(str, Enum):
    """Kinds of undoable review actions."""
    APPROVE = "approve"
    REJECT = "reject"


class DiffLine(BaseModel):
    """A single line of a hunk, without its diff prefix."""

    model_config = ConfigDict(frozen=True)

    type: LineType
    content: str

    @property
    def is_change(self) -> bool:
        return self.type != LineType.CONTEXT


class DiffHunk(BaseModel):
    """A hunk from a diff."""

    old_start: int
    old_count: int
    new_start: int
    new_count: int
    header: str
    lines: list[DiffLine] = Field(default_factory=list)
    raw_lines: list[str] = Field(
        default_factory=list,
        description="Literal diff lines including the @@ header, used to rebuild patches",
    )
    id: Optional[str] = Field(default=None, description="Content-based id, set after splitting")

    @property
    def changed_lines(self) -> list[DiffLine]:
        return [line for line in self.lines if line.is_change]


class DiffFile(BaseModel):
    """One file section of a unified diff."""

    old_path: str = ""
    new_path: str = ""
    hunks: list[DiffHunk] = Field(default_factory=list)
    is_binary: bool = False
    diff_header: list[str] = Field(default_factory=list, description="The --- and +++ lines")

    @property
    def path(self) -> str:
        """Path used to track review state for this file."""
        for candidate in (self.new_path, self.old_path):
            if candidate and candidate != DEV_NULL:
                return candidate
        return self.new_path or self.old_path

    def find_hunk(self, hunk_id: str) -> Optional[DiffHunk]:
        for hunk in self.hunks:
            if hunk.id == hunk_id:
                return hunk
        return None


class UndoEntry(BaseModel):
    """A record on the undo stack."""

    model_config = ConfigDict(frozen=True)

    type: ActionType
    file_path: str
    hunk_id: str
    forward_patch: Optional[str] = Field(
        default=None,
        description="For reject entries: the patch to re-apply on undo",
    )


class UndoResult(BaseModel):
    """What an undo call reverted."""

    file_path: str
    undone_type: ActionType


class FileSummary(BaseModel):
    """Review progress of one file."""

    path: str
    is_binary: bool = False
    total: int = 0
    pending: int = 0
    approved: int = 0
    resolved: bool = False


class FileView(BaseModel):
    """A file together with its hunk statuses and current on-disk content."""

    file: DiffFile
    statuses: list[HunkStatus]
    content: list[str] = Field(default_factory=list)
