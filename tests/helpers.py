"""Test doubles and builders shared across test modules."""

import asyncio
from typing import Optional

from diff_reviewer.exceptions import GitCommandError
from diff_reviewer.models import DiffFile, DiffHunk, DiffLine, LineType


SAMPLE_DIFF = """diff --git a/a.txt b/a.txt
index 3b18e51..a7f2c1d 100644
--- a/a.txt
+++ b/a.txt
@@ -1,3 +1,4 @@
 hello
-world
+beautiful world
+today
 end
"""


class FakeGit:
    """Records patches and serves queued diffs instead of running git."""

    def __init__(self, files: Optional[list[DiffFile]] = None):
        self.files = files or []
        self.file_diffs: list[list[DiffFile]] = []
        self.contents: dict[str, list[str]] = {}
        self.applied_reverse: list[str] = []
        self.applied_forward: list[str] = []
        self.fail_reverse_after: Optional[int] = None
        self.fail_forward = False
        # Seconds to suspend in git calls, to let concurrent callers interleave
        self.delay = 0.0

    async def get_diff(self) -> list[DiffFile]:
        return self.files

    async def get_file_diff(self, file_path: str) -> list[DiffFile]:
        await asyncio.sleep(self.delay)
        if self.file_diffs:
            return self.file_diffs.pop(0)
        return []

    async def get_file_content(self, file_path: str) -> list[str]:
        if file_path not in self.contents:
            raise FileNotFoundError(file_path)
        return self.contents[file_path]

    async def apply_reverse(self, patch: str):
        await asyncio.sleep(self.delay)
        if self.fail_reverse_after is not None and len(self.applied_reverse) >= self.fail_reverse_after:
            raise GitCommandError(["apply", "-R", "--unidiff-zero", "-"], 1, "error: patch does not apply")
        self.applied_reverse.append(patch)

    async def apply_forward(self, patch: str):
        if self.fail_forward:
            raise GitCommandError(["apply", "--unidiff-zero", "-"], 1, "error: patch does not apply")
        self.applied_forward.append(patch)


def make_hunk(hunk_id: str, added: str = "new line", removed: str = "old line", start: int = 1) -> DiffHunk:
    """A one-line replacement sub-hunk with a fixed id."""
    header = f"@@ -{start},1 +{start},1 @@"
    return DiffHunk(
        old_start=start,
        old_count=1,
        new_start=start,
        new_count=1,
        header=header,
        lines=[
            DiffLine(type=LineType.REMOVE, content=removed),
            DiffLine(type=LineType.ADD, content=added),
        ],
        raw_lines=[header, f"-{removed}", f"+{added}"],
        id=hunk_id,
    )


def make_file(hunks: list[DiffHunk], path: str = "test.txt") -> DiffFile:
    return DiffFile(
        old_path=path,
        new_path=path,
        hunks=hunks,
        diff_header=[f"--- a/{path}", f"+++ b/{path}"],
    )
