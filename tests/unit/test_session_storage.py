"""Tests for the on-disk session file."""

import stat

from mindpal.backend.storage import FileSessionStorage
from tests.helpers import make_session


def test_save_and_load(tmp_path):
    storage = FileSessionStorage(tmp_path / "session.json")
    session = make_session("user-7", token="access-7")

    storage.save(session)

    assert storage.load() == session


def test_file_is_owner_only(tmp_path):
    storage = FileSessionStorage(tmp_path / "session.json")
    storage.save(make_session())

    assert stat.S_IMODE(storage.path.stat().st_mode) == 0o600
    assert list(tmp_path.glob("*.tmp")) == []


def test_missing_file(tmp_path):
    assert FileSessionStorage(tmp_path / "nope.json").load() is None


def test_corrupt_file_is_ignored(tmp_path, caplog):
    path = tmp_path / "session.json"
    path.write_text("{not json")

    assert FileSessionStorage(path).load() is None
    assert "Ignoring invalid session file" in caplog.text


def test_payload_without_token_is_ignored(tmp_path):
    path = tmp_path / "session.json"
    path.write_text('{"user": {"id": "u1"}}')

    assert FileSessionStorage(path).load() is None


def test_clear(tmp_path):
    storage = FileSessionStorage(tmp_path / "session.json")
    storage.save(make_session())

    storage.clear()
    storage.clear()

    assert not storage.path.exists()


def test_creates_parent_directory(tmp_path):
    storage = FileSessionStorage(tmp_path / "nested" / "session.json")

    storage.save(make_session())

    assert storage.path.exists()
