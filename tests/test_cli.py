import json
import shutil
import subprocess

import pytest
from click.testing import CliRunner

from diff_reviewer import __version__
from diff_reviewer.cli import main

from tests.helpers import SAMPLE_DIFF


def test_version():
    result = CliRunner().invoke(main, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_parse_stdin_rich():
    result = CliRunner().invoke(main, ["parse", "-"], input=SAMPLE_DIFF)
    assert result.exit_code == 0
    assert "a.txt" in result.output
    assert "@@ -2,1 +2,2 @@" in result.output
    assert "+beautiful world" in result.output


def test_parse_file_json(tmp_path):
    path = tmp_path / "changes.patch"
    path.write_text(SAMPLE_DIFF, encoding="utf-8")

    result = CliRunner().invoke(main, ["parse", str(path), "--format", "json"])
    assert result.exit_code == 0
    assert '"old_path": "a.txt"' in result.output


def test_parse_missing_file(tmp_path):
    result = CliRunner().invoke(main, ["parse", str(tmp_path / "nope.patch")])
    assert result.exit_code == 1
    assert "File not found" in result.output


@pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")
def test_approve_persists_between_invocations(tmp_path):
    def git(*args):
        subprocess.run(
            ["git", "-c", "user.name=Test", "-c", "user.email=test@example.com", *args],
            cwd=tmp_path,
            check=True,
            capture_output=True,
        )

    git("init", "-q")
    (tmp_path / "a.txt").write_text("hello\nworld\nend\n", encoding="utf-8")
    git("add", "a.txt")
    git("commit", "-q", "-m", "initial")
    (tmp_path / "a.txt").write_text("hello\nbeautiful world\ntoday\nend\n", encoding="utf-8")

    runner = CliRunner()
    result = runner.invoke(main, ["--repo", str(tmp_path), "approve", "a.txt", "0"])
    assert result.exit_code == 0
    assert "approved" in result.output

    state = json.loads((tmp_path / ".git" / "diff-reviewer" / "state.json").read_text(encoding="utf-8"))
    assert list(state["diffReviewer.hunkStatuses"]) == ["a.txt"]

    result = runner.invoke(main, ["--repo", str(tmp_path), "files"])
    assert result.exit_code == 0
    assert "resolved" in result.output

    result = runner.invoke(main, ["--repo", str(tmp_path), "reject", "a.txt", "0"])
    assert result.exit_code == 0
    assert (tmp_path / "a.txt").read_text(encoding="utf-8") == "hello\nworld\nend\n"


def _init_repo(path, name: str, data: bytes):
    def git(*args):
        subprocess.run(
            ["git", "-c", "user.name=Test", "-c", "user.email=test@example.com", *args],
            cwd=path,
            check=True,
            capture_output=True,
        )

    git("init", "-q")
    (path / name).write_bytes(data)
    git("add", name)
    git("commit", "-q", "-m", "initial")


@pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")
def test_undo_reject_from_earlier_invocation(tmp_path):
    _init_repo(tmp_path, "a.txt", b"hello\nworld\nend\n")
    (tmp_path / "a.txt").write_bytes(b"hello\nbeautiful world\nend\n")

    runner = CliRunner()
    result = runner.invoke(main, ["--repo", str(tmp_path), "reject", "a.txt", "0"])
    assert result.exit_code == 0
    assert (tmp_path / "a.txt").read_bytes() == b"hello\nworld\nend\n"

    result = runner.invoke(main, ["--repo", str(tmp_path), "undo"])
    assert result.exit_code == 0
    assert "Undid reject in a.txt" in result.output
    assert (tmp_path / "a.txt").read_bytes() == b"hello\nbeautiful world\nend\n"

    result = runner.invoke(main, ["--repo", str(tmp_path), "undo"])
    assert result.exit_code == 0
    assert "Nothing to undo" in result.output


@pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")
def test_show_and_patch_latin1_file(tmp_path):
    _init_repo(tmp_path, "latin.txt", b"caf\xe9\nend\n")
    (tmp_path / "latin.txt").write_bytes(b"th\xe9\nend\n")

    runner = CliRunner()
    result = runner.invoke(main, ["--repo", str(tmp_path), "show", "latin.txt"])
    assert result.exit_code == 0
    assert "-caf\ufffd" in result.output
    assert "+th\ufffd" in result.output

    result = runner.invoke(main, ["--repo", str(tmp_path), "patch", "latin.txt", "0"])
    assert result.exit_code == 0
    assert b"-caf\xe9\n+th\xe9\n" in result.stdout_bytes
