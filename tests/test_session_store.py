import json

import pytest

from helpers import make_session
from tunecircle.core.session_store import SessionStore


def test_save_and_get_round_trip_through_disk(tmp_path):
    path = tmp_path / "sessions.json"
    SessionStore(path).save(make_session(active_device_id="dev-1", display_name="Ana"))

    loaded = SessionStore(path).get("user-1")
    assert loaded is not None
    assert loaded.access_token == "access-0"
    assert loaded.active_device_id == "dev-1"
    assert loaded.display_name == "Ana"


def test_get_unknown_user_returns_none(store):
    assert store.get("nobody") is None


def test_update_changes_only_given_fields(store):
    store.save(make_session())
    updated = store.update("user-1", access_token="access-9", token_expires_at=42.0)

    assert updated.access_token == "access-9"
    assert updated.refresh_token == "refresh-0"
    assert store.get("user-1").token_expires_at == 42.0


def test_update_missing_session_returns_none(store):
    assert store.update("nobody", access_token="x") is None


def test_update_rejects_unknown_fields(store):
    store.save(make_session())
    with pytest.raises(TypeError):
        store.update("user-1", spotify_token="x")


def test_delete(store):
    store.save(make_session())
    assert store.delete("user-1") is True
    assert store.delete("user-1") is False
    assert store.get("user-1") is None


def test_corrupt_file_reads_as_empty(tmp_path):
    path = tmp_path / "sessions.json"
    path.write_text("{not json")
    assert SessionStore(path).get("user-1") is None


def test_skips_incomplete_records(tmp_path):
    path = tmp_path / "sessions.json"
    path.write_text(json.dumps({"sessions": [{"user_id": "broken"}]}))
    store = SessionStore(path)
    assert store.get("broken") is None
    store.save(make_session())
    assert store.get("user-1") is not None


def test_unreadable_file_blocks_writes(tmp_path, monkeypatch):
    path = tmp_path / "sessions.json"
    store = SessionStore(path)
    store.save(make_session("user-1"))
    store.save(make_session("user-2"))

    def unreadable(self, *args, **kwargs):
        raise PermissionError("permission denied")

    with monkeypatch.context() as m:
        m.setattr(type(path), "read_text", unreadable)
        assert store.get("user-1") is None
        with pytest.raises(OSError):
            store.save(make_session("user-3"))
        with pytest.raises(OSError):
            store.update("user-1", access_token="x")
        with pytest.raises(OSError):
            store.delete("user-2")

    assert store.get("user-1").access_token == "access-0"
    assert store.get("user-2") is not None
    assert store.get("user-3") is None
