"""
Exceptions raised by Diff Reviewer.
"""

from typing import Optional, Sequence


class DiffReviewerError(Exception):
    """Base class for Diff Reviewer errors."""


class GitCommandError(DiffReviewerError):
    """A git subprocess exited with a non-zero status or timed out."""

    def __init__(self, args: Sequence[str], returncode: Optional[int], stderr: str = ""):
        self.args_list = list(args)
        self.returncode = returncode
        self.stderr = stderr
        command = args[0] if args else "git"
        detail = stderr.strip() or f"exit status {returncode}"
        super().__init__(f"git {command} failed: {detail}")


class PatchApplyError(DiffReviewerError):
    """
    Applying or reverse-applying a hunk patch failed.

    The review state is left unchanged for the failed step, so the caller
    can refresh and retry.
    """

    def __init__(self, file_path: str, operation: str, message: str):
        self.file_path = file_path
        self.operation = operation
        super().__init__(f"{operation} failed for {file_path}: {message}")
