import pytest
from sqlalchemy.exc import SQLAlchemyError

import storage


class RecordingSession:
    def __init__(self, fail=False):
        self.fail = fail
        self.rolled_back = False

    def commit(self):
        if self.fail:
            raise SQLAlchemyError("database unavailable")

    def rollback(self):
        self.rolled_back = True


def _write(upload_dir, name):
    upload_dir.mkdir(parents=True, exist_ok=True)
    path = upload_dir / name
    path.write_bytes(b"image")
    return path, f"{storage.PUBLIC_PREFIX}{name}"


def test_commit_upload_change_removes_old_file_after_commit(upload_dir):
    old_file, old_path = _write(upload_dir, "book-old.png")
    new_file, new_path = _write(upload_dir, "book-new.png")

    storage.commit_upload_change(RecordingSession(), new_path=new_path, old_path=old_path)

    assert not old_file.exists()
    assert new_file.exists()


def test_commit_upload_change_keeps_old_file_when_commit_fails(upload_dir):
    old_file, old_path = _write(upload_dir, "book-old.png")
    new_file, new_path = _write(upload_dir, "book-new.png")
    db = RecordingSession(fail=True)

    with pytest.raises(SQLAlchemyError):
        storage.commit_upload_change(db, new_path=new_path, old_path=old_path)

    assert db.rolled_back
    assert old_file.exists()
    assert not new_file.exists()


def test_delete_upload_ignores_missing_and_foreign_paths(upload_dir):
    storage.delete_upload(None)
    storage.delete_upload("/uploads/never-written.png")
    storage.delete_upload("https://cdn.example.com/cover.png")
