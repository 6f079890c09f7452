"""Tests for the FastAPI server."""

import pytest
from fastapi.testclient import TestClient

from diff_reviewer.analyzers import prepare_files
from diff_reviewer.server.app import create_app
from diff_reviewer.session import ReviewSession
from diff_reviewer.settings import Settings
from diff_reviewer.state import MemoryStorage, ReviewStateManager

from tests.helpers import SAMPLE_DIFF, FakeGit


NESTED_DIFF = SAMPLE_DIFF.replace("a.txt", "docs/notes/a.txt")


@pytest.fixture
def git() -> FakeGit:
    fake = FakeGit(prepare_files(NESTED_DIFF))
    fake.contents["docs/notes/a.txt"] = ["hello", "beautiful world", "today", "end"]
    return fake


@pytest.fixture
def client(git, tmp_path):
    session = ReviewSession(git, ReviewStateManager(git, MemoryStorage()))
    app = create_app(settings=Settings(repo_path=str(tmp_path)), session=session)
    with TestClient(app) as test_client:
        yield test_client


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["files"] == 1


def test_list_files(client):
    files = client.get("/files").json()["files"]
    assert files == [{
        "path": "docs/notes/a.txt",
        "is_binary": False,
        "total": 1,
        "pending": 1,
        "approved": 0,
        "resolved": False,
    }]


def test_get_file(client):
    data = client.get("/files/docs/notes/a.txt").json()
    assert data["statuses"] == ["pending"]
    assert data["file"]["hunks"][0]["header"] == "@@ -2,1 +2,2 @@"
    assert data["content"][1] == "beautiful world"


def test_unknown_file_is_404(client):
    assert client.get("/files/nope.txt").status_code == 404
    assert client.post("/files/nope.txt/hunks/0/approve").status_code == 404


def test_approve_unapprove_and_undo(client):
    response = client.post("/files/docs/notes/a.txt/hunks/0/approve")
    assert response.json()["statuses"] == ["approved"]

    response = client.post("/files/docs/notes/a.txt/hunks/0/unapprove")
    assert response.json()["statuses"] == ["pending"]

    client.post("/files/docs/notes/a.txt/approve-all")
    undone = client.post("/undo").json()
    assert undone["undone"] == {"file_path": "docs/notes/a.txt", "undone_type": "approve"}
    assert undone["statuses"] == ["pending"]

    assert client.post("/undo").json() == {"undone": None}


def test_reject(client, git):
    response = client.post("/files/docs/notes/a.txt/hunks/0/reject")
    assert response.status_code == 200
    assert response.json()["file"] is None
    assert git.applied_reverse[0].startswith("--- a/docs/notes/a.txt\n+++ b/docs/notes/a.txt\n")


def test_reject_all_conflict(client, git):
    git.fail_reverse_after = 0
    response = client.post("/files/docs/notes/a.txt/reject-all")
    assert response.status_code == 409
    assert response.json()["operation"] == "reject"
    assert response.json()["file"] == "docs/notes/a.txt"


def test_refresh(client, git):
    git.files = []
    assert client.post("/refresh").json() == {"files": []}


def test_undecodable_bytes_are_escaped(tmp_path):
    # git output of a Latin-1 file, decoded with surrogateescape
    diff = SAMPLE_DIFF.replace("today", "caf\udce9")
    git = FakeGit(prepare_files(diff))
    git.contents["a.txt"] = ["hello", "beautiful world", "caf\ufffd", "end"]
    session = ReviewSession(git, ReviewStateManager(git, MemoryStorage()))
    app = create_app(settings=Settings(repo_path=str(tmp_path)), session=session)

    with TestClient(app) as client:
        response = client.get("/files/a.txt")

    assert response.status_code == 200
    assert "caf\\udce9" in response.text
    assert response.json()["content"][2] == "caf\ufffd"
