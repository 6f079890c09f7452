"""Content-based hunk identifiers.

An id depends on the file path and the changed lines only, so it survives
line-number shifts caused by edits elsewhere in the file.
"""

from diff_reviewer.models import DiffFile, DiffHunk


FNV_OFFSET_BASIS = 0x811C9DC5
FNV_PRIME = 0x01000193
MASK_32 = 0xFFFFFFFF


def fnv1a(text: str) -> str:
    """32-bit FNV-1a over UTF-16 code units, as 8 hex digits."""
    data = text.encode("utf-16-le", "surrogatepass")
    hash_ = FNV_OFFSET_BASIS
    for i in range(0, len(data), 2):
        hash_ ^= data[i] | (data[i + 1] << 8)
        hash_ = (hash_ * FNV_PRIME) & MASK_32
    return f"{hash_:08x}"


def compute_hunk_id(file_path: str, hunk: DiffHunk) -> str:
    """Hash a hunk's changed lines together with its file path."""
    changed = "\n".join(f"{line.type.value}:{line.content}" for line in hunk.changed_lines)
    return fnv1a(f"{file_path}\0{changed}")


def compute_hunk_ids(file_path: str, hunks: list[DiffHunk]) -> list[str]:
    """Compute ids for all hunks of one file.

    Duplicate contents get ``-2``, ``-3``, ... suffixes and the first
    occurrence is relabelled ``-1`` once a duplicate exists.
    """
    base_ids = [compute_hunk_id(file_path, hunk) for hunk in hunks]
    totals: dict[str, int] = {}
    for base_id in base_ids:
        totals[base_id] = totals.get(base_id, 0) + 1

    seen: dict[str, int] = {}
    ids = []
    for base_id in base_ids:
        seen[base_id] = seen.get(base_id, 0) + 1
        if totals[base_id] == 1:
            ids.append(base_id)
        else:
            ids.append(f"{base_id}-{seen[base_id]}")
    return ids


def assign_hunk_ids(file: DiffFile) -> DiffFile:
    """Return a copy of ``file`` whose hunks carry their ids."""
    ids = compute_hunk_ids(file.path, file.hunks)
    hunks = [hunk.model_copy(update={"id": hunk_id}) for hunk, hunk_id in zip(file.hunks, ids)]
    return file.model_copy(update={"hunks": hunks})
