"""Tests for the filesystem-backed object store."""

import re
from datetime import datetime, timezone

import pytest

from photo_analyzer.core.exceptions import StorageException
from photo_analyzer.services.object_store import LocalObjectStore

pytestmark = pytest.mark.unit


@pytest.fixture
def store(tmp_path):
    return LocalObjectStore(
        base_path=tmp_path / "bucket",
        public_base_url="https://cdn.example.com/media/",
    )


class TestLocalObjectStore:

    def test_creates_bucket_directory(self, tmp_path):
        LocalObjectStore(tmp_path / "new" / "bucket", "https://cdn.example.com")
        assert (tmp_path / "new" / "bucket").is_dir()

    def test_build_key_layout(self, store):
        key = store.build_key("jpg", now=datetime(2024, 1, 15, tzinfo=timezone.utc))
        assert re.fullmatch(r"photos/2024/01/[0-9a-f]{32}\.jpg", key)

    def test_build_key_is_unique(self, store):
        assert store.build_key() != store.build_key()

    def test_build_key_strips_leading_dot(self, store):
        assert store.build_key(".jpeg").endswith(".jpeg")
        assert ".." not in store.build_key(".jpeg")

    def test_put_writes_bytes_and_returns_public_url(self, store):
        key = "photos/2024/01/abc.jpg"

        url = store.put(b"jpeg-bytes", key)

        assert url == "https://cdn.example.com/media/photos/2024/01/abc.jpg"
        assert (store.base_path / key).read_bytes() == b"jpeg-bytes"

    def test_put_overwrites_existing_object(self, store):
        store.put(b"first", "photos/a.jpg")
        store.put(b"second", "photos/a.jpg")
        assert (store.base_path / "photos" / "a.jpg").read_bytes() == b"second"

    def test_put_leaves_no_temp_files(self, store):
        store.put(b"data", "photos/2024/01/abc.jpg")
        files = list((store.base_path / "photos" / "2024" / "01").iterdir())
        assert [f.name for f in files] == ["abc.jpg"]

    @pytest.mark.parametrize("key", [
        "../escape.jpg",
        "photos/../../escape.jpg",
        "/etc/passwd",
        "",
        ".",
    ])
    def test_keys_cannot_escape_bucket(self, store, key):
        with pytest.raises(StorageException):
            store.put(b"data", key)

    def test_write_failure_raises_storage_exception(self, store):
        # A file where a directory is needed makes mkdir fail
        (store.base_path / "photos").write_bytes(b"not a directory")

        with pytest.raises(StorageException) as exc_info:
            store.put(b"data", "photos/2024/01/abc.jpg")

        assert exc_info.value.details["key"] == "photos/2024/01/abc.jpg"

    def test_url_for(self, store):
        assert store.url_for("/photos/x.jpg") == "https://cdn.example.com/media/photos/x.jpg"
