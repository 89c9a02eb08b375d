"""Tests for the S3 storage driver facade."""

from __future__ import annotations

import io
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from blobdriver.infra.storage.client import ObjectListing, StorageError
from blobdriver.infra.storage.s3_client import S3ObjectStore
from blobdriver.storagedriver.chunking import MAX_PARTS, MIN_CHUNK_SIZE, ChunkPlanner
from blobdriver.storagedriver.errors import (
    DriverConfigurationError,
    InvalidOffsetError,
    PathNotFoundError,
)
from blobdriver.storagedriver.s3 import S3Driver, parse_bool
from tests.storagedriver.mock_store import MockObjectStore

DATA = b"0123456789"


@pytest.fixture()
def store():
    return MockObjectStore()


@pytest.fixture()
def driver(store):
    return S3Driver(store, planner=ChunkPlanner(min_chunk_size=4))


def _parameters(**overrides):
    parameters = {
        "accesskey": "test-key",
        "secretkey": "test-secret",
        "region": "us-east-1",
        "bucket": "test-bucket",
        "encrypt": "false",
    }
    parameters.update(overrides)
    return {k: v for k, v in parameters.items() if v is not None}


class TestFromParameters:
    @pytest.fixture
    def mock_s3(self):
        mock_client = MagicMock()
        with patch.object(S3ObjectStore, "_build_client", return_value=mock_client):
            yield mock_client

    def test_builds_driver_and_creates_bucket(self, mock_s3):
        driver = S3Driver.from_parameters(_parameters(encrypt="true"))

        assert driver.encrypt is True
        assert driver.planner == ChunkPlanner(
            min_chunk_size=MIN_CHUNK_SIZE, max_parts=MAX_PARTS
        )
        mock_s3.create_bucket.assert_called_once_with(
            Bucket="test-bucket", ACL="private"
        )

    def test_optional_planner_parameters(self, mock_s3):
        driver = S3Driver.from_parameters(
            _parameters(minchunksize="1024", maxparts="10")
        )

        assert driver.planner == ChunkPlanner(min_chunk_size=1024, max_parts=10)

    @pytest.mark.parametrize(
        "missing", ["accesskey", "secretkey", "region", "bucket", "encrypt"]
    )
    def test_missing_parameter(self, mock_s3, missing):
        with pytest.raises(DriverConfigurationError, match=f"No {missing} parameter"):
            S3Driver.from_parameters(_parameters(**{missing: None}))

        mock_s3.create_bucket.assert_not_called()

    def test_unknown_region(self, mock_s3):
        with pytest.raises(DriverConfigurationError, match="Invalid region"):
            S3Driver.from_parameters(_parameters(region="moon-central-1"))

    def test_unparseable_encrypt(self, mock_s3):
        with pytest.raises(DriverConfigurationError, match="encrypt parameter"):
            S3Driver.from_parameters(_parameters(encrypt="yes"))

    @pytest.mark.parametrize(
        "overrides",
        [{"minchunksize": "big"}, {"maxparts": "0"}, {"minchunksize": "-1"}],
    )
    def test_invalid_planner_parameters(self, mock_s3, overrides):
        with pytest.raises(DriverConfigurationError):
            S3Driver.from_parameters(_parameters(**overrides))

    def test_existing_bucket_is_tolerated(self, mock_s3):
        mock_s3.create_bucket.side_effect = ClientError(
            {"Error": {"Code": "BucketAlreadyOwnedByYou"}}, "CreateBucket"
        )

        driver = S3Driver.from_parameters(_parameters())

        assert isinstance(driver, S3Driver)

    def test_bucket_creation_failure_propagates(self, mock_s3):
        mock_s3.create_bucket.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied"}}, "CreateBucket"
        )

        with pytest.raises(StorageError):
            S3Driver.from_parameters(_parameters())


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("1", True),
        ("t", True),
        ("TRUE", True),
        ("True", True),
        ("0", False),
        ("F", False),
        ("false", False),
    ],
)
def test_parse_bool(value, expected):
    assert parse_bool(value) is expected


@pytest.mark.parametrize("value", ["", "yes", "tRuE", "2"])
def test_parse_bool_rejects(value):
    with pytest.raises(ValueError):
        parse_bool(value)


def test_create_tolerates_existing_bucket():
    store = MockObjectStore(bucket_exists=True)

    driver = S3Driver.create(store, encrypt=True)

    assert driver.encrypt is True
    assert store.calls == [("create_bucket", None)]


class TestContent:
    def test_put_then_get(self, driver, store):
        driver.put_content("/a/b", DATA)

        assert driver.get_content("/a/b") == DATA
        assert "/a/b" not in store.encrypted_keys

    def test_put_overwrites(self, driver):
        driver.put_content("/a/b", DATA)
        driver.put_content("/a/b", b"new")

        assert driver.get_content("/a/b") == b"new"

    def test_put_encrypts_when_configured(self, store):
        S3Driver(store, encrypt=True).put_content("/a/b", DATA)

        assert "/a/b" in store.encrypted_keys

    def test_get_missing(self, driver):
        with pytest.raises(PathNotFoundError) as excinfo:
            driver.get_content("/missing")

        assert excinfo.value.path == "/missing"


class TestReadStream:
    def test_reads_from_offset(self, driver):
        driver.put_content("/a/b", DATA)

        with driver.read_stream("/a/b", 3) as stream:
            assert stream.read() == DATA[3:]

    def test_default_offset_reads_everything(self, driver):
        driver.put_content("/a/b", DATA)

        with driver.read_stream("/a/b") as stream:
            assert stream.read() == DATA

    def test_missing_path(self, driver):
        with pytest.raises(PathNotFoundError):
            driver.read_stream("/missing", 0)

    @pytest.mark.parametrize("offset", [-1, 10, 50])
    def test_offset_outside_object(self, driver, offset):
        driver.put_content("/a/b", DATA)

        with pytest.raises(InvalidOffsetError):
            driver.read_stream("/a/b", offset)


class TestWriteStream:
    def test_write_then_read(self, driver):
        outcome = driver.write_stream("/a/b", 0, len(DATA), io.BytesIO(DATA))

        assert outcome.completed is True
        assert driver.get_content("/a/b") == DATA

    def test_partial_write_resume_and_size(self, driver):
        driver.write_stream("/a/b", 0, len(DATA), io.BytesIO(DATA[:9]))
        assert driver.current_size("/a/b") == 8

        driver.write_stream("/a/b", 8, len(DATA), io.BytesIO(DATA[8:]))

        assert driver.current_size("/a/b") == len(DATA)
        assert driver.get_content("/a/b") == DATA

    def test_encrypted_session(self, store):
        driver = S3Driver(store, encrypt=True, planner=ChunkPlanner(min_chunk_size=4))

        driver.write_stream("/a/b", 0, len(DATA), io.BytesIO(DATA))

        assert "/a/b" in store.encrypted_keys


class TestCurrentSize:
    def test_unknown_path_is_zero(self, driver, store):
        assert driver.current_size("/nothing") == 0
        assert store.uploads == {}

    def test_open_session_without_parts(self, driver, store):
        driver.write_stream("/a/b", 0, len(DATA), io.BytesIO(DATA[:2]))

        assert driver.current_size("/a/b") == 0

    def test_completed_object(self, driver):
        driver.put_content("/a/b", DATA)

        assert driver.current_size("/a/b") == len(DATA)

    def test_rejected_resume_keeps_completed_size(self, driver, store):
        driver.write_stream("/a/b", 0, len(DATA), io.BytesIO(DATA))

        with pytest.raises(InvalidOffsetError):
            driver.write_stream("/a/b", len(DATA), len(DATA), io.BytesIO(b""))

        assert driver.current_size("/a/b") == len(DATA)
        assert store.uploads == {}


class TestList:
    def test_lists_files_and_directories(self, driver):
        for key in ["/dir/a", "/dir/b", "/dir/sub/c", "/dir/sub/d", "/dir2/e"]:
            driver.put_content(key, b"x")

        assert driver.list("/dir") == ["/dir/a", "/dir/b", "/dir/sub"]
        assert driver.list("/dir/") == ["/dir/a", "/dir/b", "/dir/sub"]

    def test_root_listing(self, driver):
        driver.put_content("/top", b"x")
        driver.put_content("/dir/a", b"x")

        assert driver.list("/") == ["/top", "/dir"]

    def test_follows_pagination(self, store, driver):
        store.page_size = 2
        keys = [f"/dir/file{i}" for i in range(5)] + ["/dir/sub1/x", "/dir/sub2/y"]
        for key in keys:
            driver.put_content(key, b"x")

        assert driver.list("/dir") == [
            "/dir/file0",
            "/dir/file1",
            "/dir/file2",
            "/dir/file3",
            "/dir/file4",
            "/dir/sub1",
            "/dir/sub2",
        ]

    def test_empty_directory(self, driver):
        assert driver.list("/empty") == []

    def test_store_errors_propagate(self):
        store = MagicMock()
        store.list_objects.side_effect = StorageError("AccessDenied")

        with pytest.raises(StorageError):
            S3Driver(store).list("/dir")

    def test_marker_passed_between_pages(self):
        store = MagicMock()
        store.list_objects.side_effect = [
            ObjectListing(
                keys=["/d/a"], common_prefixes=[], is_truncated=True, next_marker="/d/a"
            ),
            ObjectListing(keys=["/d/b"], common_prefixes=["/d/s/"], is_truncated=False),
        ]

        assert S3Driver(store).list("/d") == ["/d/a", "/d/b", "/d/s"]
        assert store.list_objects.call_args_list[1].kwargs["marker"] == "/d/a"


class TestMove:
    def test_moves_object(self, driver, store):
        driver.put_content("/src", DATA)

        driver.move("/src", "/dst")

        assert driver.get_content("/dst") == DATA
        with pytest.raises(PathNotFoundError):
            driver.get_content("/src")

    def test_leaves_keys_below_source(self, driver, store):
        driver.put_content("/a", DATA)
        driver.put_content("/a/x", b"child")

        driver.move("/a", "/b")

        assert driver.get_content("/b") == DATA
        assert driver.get_content("/a/x") == b"child"
        assert "/a" not in store.objects

    def test_missing_source(self, driver, store):
        with pytest.raises(PathNotFoundError) as excinfo:
            driver.move("/missing", "/dst")

        assert excinfo.value.path == "/missing"
        assert "/dst" not in store.objects


class TestDelete:
    def test_deletes_object(self, driver, store):
        driver.put_content("/a", DATA)

        driver.delete("/a")

        assert store.objects == {}

    def test_deletes_subtree(self, driver, store):
        for key in ["/dir/a", "/dir/sub/b", "/dir/sub/deeper/c"]:
            driver.put_content(key, b"x")

        driver.delete("/dir")

        assert store.objects == {}
        assert driver.list("/") == []

    def test_keeps_siblings_sharing_name_prefix(self, driver, store):
        driver.put_content("/dir/a", b"x")
        driver.put_content("/dir2/b", b"x")
        driver.put_content("/dirfile", b"x")

        driver.delete("/dir")

        assert sorted(store.objects) == ["/dir2/b", "/dirfile"]

    def test_follows_pagination(self, driver, store):
        store.page_size = 3
        for i in range(8):
            driver.put_content(f"/dir/f{i}", b"x")

        driver.delete("/dir")

        assert store.objects == {}
        assert [n for name, n in store.calls if name == "delete_objects"] == [3, 3, 2]

    def test_missing_path(self, driver):
        with pytest.raises(PathNotFoundError):
            driver.delete("/missing")

    def test_only_siblings_counts_as_missing(self, driver, store):
        driver.put_content("/dirfile", b"x")

        with pytest.raises(PathNotFoundError):
            driver.delete("/dir")

        assert "/dirfile" in store.objects

    def test_listing_failure_is_not_found(self):
        store = MagicMock()
        store.list_objects.side_effect = StorageError("boom")

        with pytest.raises(PathNotFoundError):
            S3Driver(store).delete("/a")

    def test_delete_errors_propagate(self, driver, store):
        driver.put_content("/a", DATA)
        store.delete_objects = MagicMock(side_effect=StorageError("AccessDenied"))

        with pytest.raises(StorageError, match="AccessDenied"):
            driver.delete("/a")
