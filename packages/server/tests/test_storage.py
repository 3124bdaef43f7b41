"""
Tests for brand-isolated file storage.
"""

from __future__ import annotations

import re
import uuid
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from app.core import storage as storage_module
from app.core.config import Settings
from app.core.errors import ApiError
from app.core.storage import (
    GUIDELINE_DOCUMENT_TYPES,
    LocalStorage,
    S3Storage,
    build_file_path,
    generate_file_name,
    get_storage,
    parse_file_path,
    validate_file,
)


# ---------------------------------------------------------------------------
# Unit Tests: path convention
# ---------------------------------------------------------------------------

class TestFilePaths:
    def test_build_and_parse(self):
        brand_id = uuid.uuid4()
        path = build_file_path(brand_id, "documents", "guide.pdf")
        assert path == f"{brand_id}/documents/guide.pdf"
        assert parse_file_path(path) == (str(brand_id), "documents", "guide.pdf")

    def test_unknown_category(self):
        with pytest.raises(ValueError):
            build_file_path(uuid.uuid4(), "secrets", "a.txt")

    @pytest.mark.parametrize("name", ["", "..", "a/b.txt", "..\\x.txt"])
    def test_filename_cannot_escape(self, name):
        with pytest.raises(ValueError):
            build_file_path(uuid.uuid4(), "documents", name)

    @pytest.mark.parametrize("path", ["a/b", "brand/unknown/file.txt", "brand/documents/", "x/y/z/w"])
    def test_parse_rejects_foreign_paths(self, path):
        with pytest.raises(ValueError):
            parse_file_path(path)

    def test_generated_names_keep_extension(self):
        first = generate_file_name("Brand Book.PDF")
        second = generate_file_name("Brand Book.PDF")
        assert re.fullmatch(r"\d+-[0-9a-f]{8}\.pdf", first)
        assert first != second


class TestValidateFile:
    def test_accepts_allowed_type(self):
        validate_file("a.pdf", "application/pdf", 10, allowed_types=GUIDELINE_DOCUMENT_TYPES)

    def test_rejects_large_file(self):
        with pytest.raises(ApiError) as exc_info:
            validate_file("a.pdf", "application/pdf", 2 * 1024 * 1024 + 1, max_size_mb=2)
        assert exc_info.value.status_code == 413
        assert exc_info.value.code == "FILE_TOO_LARGE"
        assert exc_info.value.message == "File size exceeds 2MB"

    def test_rejects_disallowed_type(self):
        with pytest.raises(ApiError) as exc_info:
            validate_file("a.exe", "application/x-msdownload", 10, allowed_types={"text/plain"})
        assert exc_info.value.code == "INVALID_FILE_TYPE"

    def test_any_type_when_unrestricted(self):
        validate_file("a.exe", "application/x-msdownload", 10)


# ---------------------------------------------------------------------------
# Local backend
# ---------------------------------------------------------------------------

class TestLocalStorage:
    @pytest.fixture
    def store(self, tmp_path):
        return LocalStorage(root=tmp_path, public_base_url="http://files.test")

    async def test_save_read_delete(self, store):
        brand_id = uuid.uuid4()
        path = build_file_path(brand_id, "documents", "notes.txt")
        stored = await store.save("brand-documents", path, b"hello")
        assert stored.size == 5
        assert stored.url is None
        assert await store.read("brand-documents", path) == b"hello"
        assert await store.delete("brand-documents", path) is True
        assert await store.delete("brand-documents", path) is False

    async def test_public_bucket_gets_url(self, store):
        path = build_file_path(uuid.uuid4(), "images", "logo.png")
        stored = await store.save("brand-images", path, b"png")
        assert stored.url == f"http://files.test/brand-images/{path}"

    async def test_no_overwrite_without_upsert(self, store):
        path = build_file_path(uuid.uuid4(), "documents", "a.txt")
        await store.save("brand-documents", path, b"1")
        with pytest.raises(FileExistsError):
            await store.save("brand-documents", path, b"2")
        await store.save("brand-documents", path, b"2", upsert=True)
        assert await store.read("brand-documents", path) == b"2"

    async def test_unknown_bucket(self, store):
        with pytest.raises(ValueError):
            await store.save("private", build_file_path(uuid.uuid4(), "documents", "a"), b"")

    async def test_listing_is_scoped_to_brand(self, store):
        mine, theirs = uuid.uuid4(), uuid.uuid4()
        await store.save("brand-documents", build_file_path(mine, "documents", "a.txt"), b"a")
        await store.save("brand-documents", build_file_path(mine, "exports", "b.csv"), b"bb")
        await store.save("brand-documents", build_file_path(theirs, "documents", "c.txt"), b"c")

        files = await store.list("brand-documents", mine)
        assert sorted(f.path for f in files) == [
            f"{mine}/documents/a.txt",
            f"{mine}/exports/b.csv",
        ]
        only_docs = await store.list("brand-documents", mine, "documents")
        assert [f.path for f in only_docs] == [f"{mine}/documents/a.txt"]

    async def test_usage_spans_buckets(self, store):
        brand_id = uuid.uuid4()
        await store.save("brand-documents", build_file_path(brand_id, "documents", "a"), b"123")
        await store.save("brand-images", build_file_path(brand_id, "images", "b"), b"4567")
        assert await store.usage(brand_id) == (7, 2)
        assert await store.usage(uuid.uuid4()) == (0, 0)


# ---------------------------------------------------------------------------
# S3-compatible backend
# ---------------------------------------------------------------------------

def _client_error(code: str, operation: str = "HeadObject") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": "Not Found"}}, operation)


class TestS3Storage:
    @pytest.fixture
    def client(self):
        return MagicMock()

    @pytest.fixture
    def store(self, client):
        return S3Storage(
            "https://r2.test",
            "key",
            "secret",
            bucket_prefix="bh-",
            public_base_url="https://cdn.test",
            client=client,
        )

    async def test_save_puts_object_under_prefixed_bucket(self, store, client):
        client.head_object.side_effect = _client_error("404")
        path = build_file_path(uuid.uuid4(), "documents", "guide.pdf")

        stored = await store.save("brand-documents", path, b"%PDF", content_type="application/pdf")

        client.put_object.assert_called_once_with(
            Bucket="bh-brand-documents", Key=path, Body=b"%PDF", ContentType="application/pdf"
        )
        assert stored.size == 4
        assert stored.url is None

    async def test_public_bucket_gets_url(self, store, client):
        client.head_object.side_effect = _client_error("404")
        path = build_file_path(uuid.uuid4(), "images", "logo.png")
        stored = await store.save("brand-images", path, b"png")
        assert stored.url == f"https://cdn.test/brand-images/{path}"

    async def test_no_overwrite_without_upsert(self, store, client):
        path = build_file_path(uuid.uuid4(), "documents", "a.txt")
        with pytest.raises(FileExistsError):
            await store.save("brand-documents", path, b"1")
        client.put_object.assert_not_called()

        await store.save("brand-documents", path, b"2", upsert=True)
        client.put_object.assert_called_once()

    async def test_read(self, store, client):
        body = MagicMock()
        body.read.return_value = b"hello"
        client.get_object.return_value = {"Body": body}
        path = build_file_path(uuid.uuid4(), "documents", "a.txt")

        assert await store.read("brand-documents", path) == b"hello"
        client.get_object.assert_called_once_with(Bucket="bh-brand-documents", Key=path)

    async def test_read_missing_object(self, store, client):
        client.get_object.side_effect = _client_error("NoSuchKey", "GetObject")
        with pytest.raises(FileNotFoundError):
            await store.read("brand-documents", build_file_path(uuid.uuid4(), "documents", "a"))

    async def test_delete_reports_whether_object_existed(self, store, client):
        path = build_file_path(uuid.uuid4(), "documents", "a.txt")
        assert await store.delete("brand-documents", path) is True
        client.delete_object.assert_called_once_with(Bucket="bh-brand-documents", Key=path)

        client.reset_mock()
        client.head_object.side_effect = _client_error("404")
        assert await store.delete("brand-documents", path) is False
        client.delete_object.assert_not_called()

    async def test_other_client_errors_propagate(self, store, client):
        client.head_object.side_effect = _client_error("AccessDenied")
        with pytest.raises(ClientError):
            await store.exists("brand-documents", build_file_path(uuid.uuid4(), "documents", "a"))

    async def test_list_is_prefixed_by_brand_and_newest_first(self, store, client):
        brand_id = uuid.uuid4()
        older = datetime(2024, 1, 1, tzinfo=timezone.utc)
        newer = datetime(2024, 6, 1, tzinfo=timezone.utc)
        paginator = client.get_paginator.return_value
        paginator.paginate.return_value = [
            {"Contents": [{"Key": f"{brand_id}/documents/a.txt", "Size": 3, "LastModified": older}]},
            {"Contents": [{"Key": f"{brand_id}/documents/b.txt", "Size": 5, "LastModified": newer}]},
            {},
        ]

        files = await store.list("brand-documents", brand_id, "documents")

        client.get_paginator.assert_called_once_with("list_objects_v2")
        paginator.paginate.assert_called_once_with(
            Bucket="bh-brand-documents", Prefix=f"{brand_id}/documents/"
        )
        assert [(f.path, f.size) for f in files] == [
            (f"{brand_id}/documents/b.txt", 5),
            (f"{brand_id}/documents/a.txt", 3),
        ]

    async def test_list_rejects_unknown_category(self, store):
        with pytest.raises(ValueError):
            await store.list("brand-documents", uuid.uuid4(), "secrets")

    async def test_usage_spans_buckets(self, store, client):
        brand_id = uuid.uuid4()
        stamp = datetime(2024, 1, 1, tzinfo=timezone.utc)

        def paginate(Bucket, Prefix):
            assert Prefix == f"{brand_id}/"
            if Bucket == "bh-brand-images":
                return [{"Contents": [{"Key": f"{brand_id}/images/x.png", "Size": 10, "LastModified": stamp}]}]
            return [{}]

        client.get_paginator.return_value.paginate.side_effect = paginate
        assert await store.usage(brand_id) == (10, 1)


class TestGetStorage:
    @pytest.fixture(autouse=True)
    def reset_cache(self):
        storage_module._s3_storage.cache_clear()
        yield
        storage_module._s3_storage.cache_clear()

    def test_local_by_default(self, monkeypatch, tmp_path):
        settings = Settings(storage_root=str(tmp_path))
        monkeypatch.setattr(storage_module, "get_settings", lambda: settings)
        assert isinstance(get_storage(), LocalStorage)

    def test_s3_backend_from_settings(self, monkeypatch):
        settings = Settings(
            storage_backend="s3",
            s3_endpoint_url="https://account.r2.cloudflarestorage.com",
            s3_access_key_id="key",
            s3_secret_access_key="secret",
            s3_bucket_prefix="prod-",
        )
        boto3 = MagicMock()
        monkeypatch.setattr(storage_module, "get_settings", lambda: settings)
        monkeypatch.setattr(storage_module, "boto3", boto3)

        store = get_storage()

        assert isinstance(store, S3Storage)
        assert store.bucket_name("brand-documents") == "prod-brand-documents"
        assert get_storage() is store
        boto3.client.assert_called_once()
        args, kwargs = boto3.client.call_args
        assert args == ("s3",)
        assert kwargs["endpoint_url"] == "https://account.r2.cloudflarestorage.com"
        assert kwargs["aws_access_key_id"] == "key"
        assert kwargs["region_name"] == "auto"
