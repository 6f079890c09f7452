"""Unified diff parser.

Keeps the literal lines of every hunk so that single hunks can be
re-emitted as patches for ``git apply``.
"""

import logging
import re
from typing import Optional

from diff_reviewer.models import DiffFile, DiffHunk, DiffLine, LineType


logger = logging.getLogger(__name__)

HUNK_HEADER_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@(.*)")
DIFF_GIT_RE = re.compile(r"^diff --git a/(.*) b/(.*)$")

DIFF_GIT_PREFIX = "diff --git "
NO_NEWLINE_PREFIX = "\\ "


def parse_diff(diff_text: str) -> list[DiffFile]:
    """Parse ``git diff`` output into files and hunks.

    Parsing is best-effort and never raises: unexpected sections are
    skipped and malformed hunk headers become empty pass-through hunks.

    Args:
        diff_text: Unified diff text (may be empty)

    Returns:
        Files in the order they appear, each with its hunks in order
    """
    files: list[DiffFile] = []
    lines = diff_text.split("\n")
    i = 0

    while i < len(lines):
        if not lines[i].startswith(DIFF_GIT_PREFIX):
            i += 1
            continue

        marker = lines[i]
        marker_index = i
        old_path = ""
        new_path = ""
        diff_header: list[str] = []
        hunks: list[DiffHunk] = []
        i += 1

        # Extended headers: mode changes, index, similarity, rename ...
        while (
            i < len(lines)
            and not lines[i].startswith(DIFF_GIT_PREFIX)
            and not lines[i].startswith("---")
            and not lines[i].startswith("@@")
            and not lines[i].startswith("Binary")
        ):
            i += 1

        if i < len(lines) and lines[i].startswith("Binary"):
            if i - 1 > marker_index:
                previous = lines[i - 1]
                old_path = _extract_path(previous, "a/")
                new_path = _extract_path(previous, "b/")
            if not old_path and not new_path:
                old_path, new_path = _marker_paths(marker)
            files.append(DiffFile(old_path=old_path, new_path=new_path, is_binary=True))
            i += 1
            continue

        if i < len(lines) and lines[i].startswith("---"):
            diff_header.append(lines[i])
            old_path = _strip_prefix(lines[i], "--- a/")
            i += 1
        if i < len(lines) and lines[i].startswith("+++"):
            diff_header.append(lines[i])
            new_path = _strip_prefix(lines[i], "+++ b/")
            i += 1

        while i < len(lines) and not lines[i].startswith(DIFF_GIT_PREFIX):
            if lines[i].startswith("@@"):
                hunk, i = _parse_hunk(lines, i)
                hunks.append(hunk)
            else:
                i += 1

        if not old_path and not new_path:
            # Pure mode change or rename without content changes
            old_path, new_path = _marker_paths(marker)

        files.append(DiffFile(
            old_path=old_path,
            new_path=new_path,
            hunks=hunks,
            diff_header=diff_header,
        ))

    logger.debug(f"Parsed {len(files)} file(s) from diff")
    return files


def _parse_hunk(lines: list[str], start: int) -> tuple[DiffHunk, int]:
    """Parse one hunk starting at its @@ header.

    Returns:
        The hunk and the index of the first line after it
    """
    header = lines[start]
    match = HUNK_HEADER_RE.match(header)

    if not match:
        logger.debug(f"Malformed hunk header: {header!r}")
        return DiffHunk(
            old_start=0,
            old_count=0,
            new_start=0,
            new_count=0,
            header=header,
            raw_lines=[header],
        ), start + 1

    body: list[DiffLine] = []
    raw_lines = [header]
    i = start + 1

    while i < len(lines):
        line = lines[i]

        if line.startswith("@@") or line.startswith(DIFF_GIT_PREFIX):
            break

        if line.startswith(NO_NEWLINE_PREFIX):
            raw_lines.append(line)
            i += 1
            continue

        if line.startswith("+"):
            body.append(DiffLine(type=LineType.ADD, content=line[1:]))
        elif line.startswith("-"):
            body.append(DiffLine(type=LineType.REMOVE, content=line[1:]))
        elif line.startswith(" ") or line == "":
            if line == "" and i == len(lines) - 1:
                # Split artefact of the trailing newline
                break
            body.append(DiffLine(type=LineType.CONTEXT, content=line[1:]))
        else:
            break

        raw_lines.append(line)
        i += 1

    hunk = DiffHunk(
        old_start=int(match.group(1)),
        old_count=_count(match.group(2)),
        new_start=int(match.group(3)),
        new_count=_count(match.group(4)),
        header=header,
        lines=body,
        raw_lines=raw_lines,
    )
    return hunk, i


def _count(value: Optional[str]) -> int:
    return int(value) if value is not None else 1


def _strip_prefix(line: str, prefix: str) -> str:
    if line.startswith(prefix):
        return line[len(prefix):]
    return line[4:]


def _extract_path(line: str, prefix: str) -> str:
    idx = line.find(prefix)
    return line[idx + len(prefix):] if idx >= 0 else ""


def _marker_paths(marker: str) -> tuple[str, str]:
    match = DIFF_GIT_RE.match(marker)
    if not match:
        return "", ""
    return match.group(1), match.group(2)


def parse_patch_file(patch_path: str) -> list[DiffFile]:
    """Parse a patch file."""
    with open(patch_path, "r", encoding="utf-8") as f:
        return parse_diff(f.read())
