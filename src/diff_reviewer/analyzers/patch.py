"""Build stand-alone patches for single hunks."""

from diff_reviewer.models import DEV_NULL, DiffFile, DiffHunk


def build_patch(file: DiffFile, hunk: DiffHunk) -> str:
    """Build a unified diff containing only ``hunk``.

    The result is suitable for piping to ``git apply --unidiff-zero``,
    forward or with ``-R``.
    """
    old_path = _real_path(file.old_path) or _real_path(file.new_path)
    new_path = _real_path(file.new_path) or _real_path(file.old_path)

    lines = [
        f"--- a/{old_path}",
        f"+++ b/{new_path}",
    ]
    lines.extend(hunk.raw_lines)
    return "\n".join(lines) + "\n"


def _real_path(path: str) -> str:
    return "" if path == DEV_NULL else path
