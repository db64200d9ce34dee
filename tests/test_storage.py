import io
import os
import stat
import threading

import pytest

from services.upload import storage
from services.upload.errors import DirectoryCreateFailed, PersistFailed
from services.upload.storage import TEMP_PREFIX, ensure_category_dir, save_stream


def test_creates_nested_category_dir(tmp_path):
    root = tmp_path / "a" / "b" / "uploads"
    path = ensure_category_dir(str(root), "videos")
    assert os.path.isdir(path)
    assert path == os.path.join(str(root), "videos")


def test_existing_dir_is_fine(tmp_path):
    ensure_category_dir(str(tmp_path), "images")
    ensure_category_dir(str(tmp_path), "images")


def test_concurrent_dir_creation(tmp_path):
    errors = []

    def create():
        try:
            ensure_category_dir(str(tmp_path / "root"), "images")
        except Exception as e:  # pragma: no cover - reported below
            errors.append(e)

    threads = [threading.Thread(target=create) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert errors == []


def test_dir_blocked_by_file(tmp_path):
    (tmp_path / "images").write_bytes(b"not a dir")
    with pytest.raises(DirectoryCreateFailed):
        ensure_category_dir(str(tmp_path), "images")


def test_save_stream_writes_bytes(tmp_path):
    name, size = save_stream(io.BytesIO(b"hello"), str(tmp_path), "a.png")
    assert (name, size) == ("a.png", 5)
    assert (tmp_path / "a.png").read_bytes() == b"hello"
    assert stat.S_IMODE(os.stat(tmp_path / "a.png").st_mode) == 0o644
    assert not [p for p in os.listdir(tmp_path) if p.startswith(TEMP_PREFIX)]


def test_overwrite_replaces_existing(tmp_path):
    save_stream(io.BytesIO(b"first"), str(tmp_path), "same.png")
    name, _ = save_stream(io.BytesIO(b"second"), str(tmp_path), "same.png")
    assert name == "same.png"
    assert (tmp_path / "same.png").read_bytes() == b"second"
    assert os.listdir(tmp_path) == ["same.png"]


def test_suffix_keeps_both(tmp_path):
    save_stream(io.BytesIO(b"first"), str(tmp_path), "same.png", on_collision="suffix")
    second, _ = save_stream(io.BytesIO(b"second"), str(tmp_path), "same.png", on_collision="suffix")
    third, _ = save_stream(io.BytesIO(b"third"), str(tmp_path), "same.png", on_collision="suffix")
    assert (second, third) == ("same-1.png", "same-2.png")
    assert (tmp_path / "same.png").read_bytes() == b"first"
    assert (tmp_path / "same-1.png").read_bytes() == b"second"


def test_failed_rename_leaves_no_partial_file(tmp_path, monkeypatch):
    def broken_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(storage.os, "replace", broken_replace)
    with pytest.raises(PersistFailed):
        save_stream(io.BytesIO(b"data"), str(tmp_path), "x.png")
    assert os.listdir(tmp_path) == []


def test_missing_directory_is_persist_failure(tmp_path):
    with pytest.raises(PersistFailed):
        save_stream(io.BytesIO(b"data"), str(tmp_path / "gone"), "x.png")
