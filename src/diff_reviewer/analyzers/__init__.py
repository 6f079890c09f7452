"""Diff analysis: parsing, splitting, identity and patch building."""

from diff_reviewer.analyzers.diff import parse_diff, parse_patch_file
from diff_reviewer.analyzers.identity import assign_hunk_ids, compute_hunk_id, compute_hunk_ids
from diff_reviewer.analyzers.patch import build_patch
from diff_reviewer.analyzers.split import split_hunk, split_hunks
from diff_reviewer.models import DiffFile


def prepare_files(diff_text: str) -> list[DiffFile]:
    """Parse a diff, split its hunks and assign hunk ids, file by file."""
    return split_files(parse_diff(diff_text))


def split_files(parsed: list[DiffFile]) -> list[DiffFile]:
    """Split the hunks of parsed files and assign hunk ids, file by file."""
    files = []
    for file in parsed:
        split = file.model_copy(update={"hunks": split_hunks(file.hunks)})
        files.append(assign_hunk_ids(split))
    return files


__all__ = [
    "assign_hunk_ids",
    "build_patch",
    "compute_hunk_id",
    "compute_hunk_ids",
    "parse_diff",
    "parse_patch_file",
    "prepare_files",
    "split_files",
    "split_hunk",
    "split_hunks",
]
