"""Tests for UploadSessionManager."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from blobdriver.infra.storage.client import (
    Part,
    StorageError,
    UploadNotFoundError,
    UploadSession,
)
from blobdriver.storagedriver.sessions import OCTET_STREAM, UploadSessionManager
from tests.storagedriver.mock_store import MockObjectStore


@pytest.fixture()
def store():
    return MockObjectStore()


@pytest.fixture()
def sessions(store):
    return UploadSessionManager(store, encrypt=True)


class TestResolve:
    def test_creates_session_when_none_exists(self, sessions, store):
        session = sessions.resolve("/a/blob")

        assert session.key == "/a/blob"
        assert session.upload_id in store.uploads
        assert store.uploads[session.upload_id]["encrypt"] is True

    def test_reuses_open_session(self, sessions, store):
        first = sessions.resolve("/a/blob")
        second = sessions.resolve("/a/blob")

        assert first == second
        assert len(store.uploads) == 1

    def test_highest_upload_id_wins(self, sessions, store):
        store.init_multipart_upload(key="/a/blob", content_type=OCTET_STREAM)
        latest = store.init_multipart_upload(key="/a/blob", content_type=OCTET_STREAM)
        store.init_multipart_upload(key="/a/blob-other", content_type=OCTET_STREAM)

        assert sessions.resolve("/a/blob") == latest
        assert sessions.resolve("/a/blob") == latest

    def test_ignores_sessions_for_longer_keys(self, sessions, store):
        other = store.init_multipart_upload(key="/a/blob2", content_type=OCTET_STREAM)

        session = sessions.resolve("/a/blob")

        assert session.upload_id != other.upload_id
        assert session.key == "/a/blob"
        assert len(store.uploads) == 2

    def test_no_such_upload_is_treated_as_empty(self):
        store = MagicMock()
        store.list_multipart_uploads.side_effect = UploadNotFoundError("NoSuchUpload")
        store.init_multipart_upload.return_value = UploadSession(
            upload_id="new", key="/a"
        )

        session = UploadSessionManager(store).resolve("/a")

        assert session.upload_id == "new"
        store.init_multipart_upload.assert_called_once_with(
            key="/a", content_type=OCTET_STREAM, encrypt=False
        )

    def test_other_errors_propagate(self):
        store = MagicMock()
        store.list_multipart_uploads.side_effect = StorageError("AccessDenied")

        with pytest.raises(StorageError, match="AccessDenied"):
            UploadSessionManager(store).resolve("/a")

        store.init_multipart_upload.assert_not_called()


class TestFind:
    def test_returns_none_without_creating(self, sessions, store):
        assert sessions.find("/a/blob") is None
        assert store.uploads == {}


class TestListParts:
    def test_orders_parts_by_number(self):
        store = MagicMock()
        store.list_parts.return_value = [
            Part(part_number=2, size=3, etag="b"),
            Part(part_number=1, size=5, etag="a"),
        ]
        session = UploadSession(upload_id="u1", key="/a")

        parts = UploadSessionManager(store).list_parts(session)

        assert [p.part_number for p in parts] == [1, 2]
        store.list_parts.assert_called_once_with(key="/a", upload_id="u1")

    def test_find_with_parts(self, sessions, store):
        session = sessions.resolve("/a/blob")
        store.upload_part(
            key="/a/blob", upload_id=session.upload_id, part_number=1, body=b"abcd"
        )

        found, parts = sessions.find_with_parts("/a/blob")

        assert found == session
        assert [(p.part_number, p.size) for p in parts] == [(1, 4)]

    def test_find_with_parts_never_creates(self, sessions, store):
        assert sessions.find_with_parts("/a/blob") == (None, [])
        assert store.uploads == {}
