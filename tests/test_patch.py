from diff_reviewer.analyzers import prepare_files
from diff_reviewer.analyzers.patch import build_patch
from diff_reviewer.models import DiffFile

from tests.helpers import SAMPLE_DIFF


def test_build_patch_for_sample_hunk():
    file = prepare_files(SAMPLE_DIFF)[0]
    patch = build_patch(file, file.hunks[0])
    assert patch == (
        "--- a/a.txt\n"
        "+++ b/a.txt\n"
        "@@ -2,1 +2,2 @@\n"
        "-world\n"
        "+beautiful world\n"
        "+today\n"
    )


def test_build_patch_for_new_file_uses_real_path():
    diff = (
        "diff --git a/new.txt b/new.txt\n"
        "new file mode 100644\n"
        "--- /dev/null\n"
        "+++ b/new.txt\n"
        "@@ -0,0 +1 @@\n"
        "+hi\n"
    )
    file = prepare_files(diff)[0]
    patch = build_patch(file, file.hunks[0])
    assert patch.splitlines()[:3] == ["--- a/new.txt", "+++ b/new.txt", "@@ -0,0 +1,1 @@"]


def test_build_patch_falls_back_to_other_path():
    file = DiffFile(old_path="", new_path="only.txt")
    hunk = prepare_files(SAMPLE_DIFF)[0].hunks[0]
    patch = build_patch(file, hunk)
    assert patch.startswith("--- a/only.txt\n+++ b/only.txt\n")
    assert patch.endswith("\n")
