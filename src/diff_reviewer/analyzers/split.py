"""Split diff hunks into minimal reviewable sub-hunks."""

from diff_reviewer.analyzers.diff import NO_NEWLINE_PREFIX
from diff_reviewer.models import DiffHunk, DiffLine, LineType


def split_hunk(hunk: DiffHunk) -> list[DiffHunk]:
    """Split a hunk into one sub-hunk per contiguous run of changed lines.

    Context lines act as boundaries and are dropped, so every sub-hunk is a
    zero-context hunk that ``git apply --unidiff-zero`` can apply on its own.
    A "\\ No newline at end of file" marker stays attached to the changed
    line it follows.

    Args:
        hunk: Parsed hunk, possibly with context lines

    Returns:
        Sub-hunks in their original order
    """
    result: list[DiffHunk] = []
    # A zero-count side starts at the line before the change point
    old_line = hunk.old_start + 1 if hunk.old_count == 0 else hunk.old_start
    new_line = hunk.new_start + 1 if hunk.new_count == 0 else hunk.new_start
    entries = _pair_raw_lines(hunk)
    i = 0

    while i < len(entries):
        line, _ = entries[i]
        if line.type == LineType.CONTEXT:
            old_line += 1
            new_line += 1
            i += 1
            continue

        group_old_start = old_line
        group_new_start = new_line
        group_old_count = 0
        group_new_count = 0
        group_lines: list[DiffLine] = []
        group_raw_lines: list[str] = []

        while i < len(entries) and entries[i][0].type != LineType.CONTEXT:
            line, raw = entries[i]
            group_lines.append(line)
            group_raw_lines.extend(raw)
            if line.type == LineType.REMOVE:
                group_old_count += 1
                old_line += 1
            else:
                group_new_count += 1
                new_line += 1
            i += 1

        # With a zero count the start names the line before the change point
        patch_old_start = group_old_start - 1 if group_old_count == 0 else group_old_start
        patch_new_start = group_new_start - 1 if group_new_count == 0 else group_new_start
        header = f"@@ -{patch_old_start},{group_old_count} +{patch_new_start},{group_new_count} @@"

        result.append(DiffHunk(
            old_start=group_old_start,
            old_count=group_old_count,
            new_start=group_new_start,
            new_count=group_new_count,
            header=header,
            lines=group_lines,
            raw_lines=[header, *group_raw_lines],
        ))

    return result


def _pair_raw_lines(hunk: DiffHunk) -> list[tuple[DiffLine, list[str]]]:
    """Pair each parsed line with its literal diff line and any marker after it."""
    entries: list[tuple[DiffLine, list[str]]] = []
    body = iter(hunk.lines)

    for raw in hunk.raw_lines[1:]:
        if raw.startswith(NO_NEWLINE_PREFIX):
            if entries:
                entries[-1][1].append(raw)
            continue
        line = next(body, None)
        if line is None:
            break
        entries.append((line, [raw]))

    # Hunks built without raw lines
    for line in body:
        prefix = {LineType.ADD: "+", LineType.REMOVE: "-"}.get(line.type, " ")
        entries.append((line, [prefix + line.content]))

    return entries


def split_hunks(hunks: list[DiffHunk]) -> list[DiffHunk]:
    """Split every hunk, flattening the results in order."""
    result: list[DiffHunk] = []
    for hunk in hunks:
        result.extend(split_hunk(hunk))
    return result
