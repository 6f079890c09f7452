import json

from diff_reviewer.state.storage import JsonFileStorage, MemoryStorage


def test_memory_storage_get_update():
    storage = MemoryStorage()
    assert storage.get("missing") is None
    assert storage.get("missing", {}) == {}

    storage.update("key", {"a": 1})
    assert storage.get("key") == {"a": 1}


def test_json_storage_round_trip(tmp_path):
    path = tmp_path / "nested" / "state.json"
    storage = JsonFileStorage(path)
    storage.update("statuses", {"f.txt": {"abc": "approved"}})

    assert json.loads(path.read_text(encoding="utf-8")) == {"statuses": {"f.txt": {"abc": "approved"}}}
    assert JsonFileStorage(path).get("statuses") == {"f.txt": {"abc": "approved"}}


def test_json_storage_keeps_other_keys(tmp_path):
    path = tmp_path / "state.json"
    path.write_text(json.dumps({"other": 1}), encoding="utf-8")

    storage = JsonFileStorage(path)
    storage.update("statuses", {})
    assert json.loads(path.read_text(encoding="utf-8")) == {"other": 1, "statuses": {}}


def test_json_storage_ignores_corrupt_file(tmp_path, caplog):
    path = tmp_path / "state.json"
    path.write_text("{not json", encoding="utf-8")

    storage = JsonFileStorage(path)
    assert storage.get("statuses") is None
    assert "Ignoring unreadable state file" in caplog.text


def test_json_storage_ignores_non_object(tmp_path):
    path = tmp_path / "state.json"
    path.write_text("[1, 2]", encoding="utf-8")
    assert JsonFileStorage(path).get("statuses") is None
