"""
Strata Backend: File Service Unit Tests
=======================================

What:  Tests for FileService upload/download/remove and the upload decoder.
How:   Runs on InMemoryFileStorage; the local-disk adapter is covered by the
       adapter contract tests.

Test Strategy:
    ✅ Base64 decoding and size limit (boundary at max_file_size)
    ✅ content_type default from the Upload schema
    ✅ put is retried, delete is not
"""

import base64
from unittest.mock import AsyncMock

import pytest

from strata.exceptions import (
    BackendUnavailableError,
    NotFoundError,
    ServiceError,
    ValidationError,
)
from strata.schemas.files import UPLOAD_SCHEMA
from strata.services.file_service import decode_upload
from strata.validation import validate


def upload(content: bytes, **extra):
    return validate(UPLOAD_SCHEMA, {"content": base64.b64encode(content).decode("ascii"), **extra})


class TestDecodeUpload:
    def test_decodes_content_and_default_type(self):
        content, content_type = decode_upload(upload(b"hello"), max_file_size=100)
        assert content == b"hello"
        assert content_type == "application/octet-stream"

    def test_explicit_content_type(self):
        _, content_type = decode_upload(upload(b"{}", content_type="application/json"), 100)
        assert content_type == "application/json"

    def test_size_at_limit(self):
        content, _ = decode_upload(upload(b"x" * 100), max_file_size=100)
        assert len(content) == 100

    def test_size_over_limit(self):
        with pytest.raises(ServiceError, match="too large"):
            decode_upload(upload(b"x" * 101), max_file_size=100)

    @pytest.mark.parametrize("payload", ["%%%", "abc", "aGVsbG8=garbage"])
    def test_invalid_base64(self, payload):
        with pytest.raises(ValidationError) as exc_info:
            decode_upload(validate(UPLOAD_SCHEMA, {"content": payload}), 100)
        assert "content" in exc_info.value.details

    def test_bad_content_type_rejected_by_schema(self):
        with pytest.raises(ValidationError) as exc_info:
            upload(b"x", content_type="not a mime type")
        assert "content_type" in exc_info.value.details


class TestFileService:
    @pytest.mark.asyncio
    async def test_upload_and_download(self, file_service):
        stored = await file_service.upload("notes.txt", upload(b"hi", content_type="text/plain"))
        assert stored.metadata() == {"key": "notes.txt", "content_type": "text/plain", "size": 2}

        fetched = await file_service.download("notes.txt")
        assert fetched.content == b"hi"

    @pytest.mark.asyncio
    async def test_download_missing(self, file_service):
        with pytest.raises(NotFoundError):
            await file_service.download("missing.txt")

    @pytest.mark.asyncio
    async def test_remove(self, file_service):
        await file_service.upload("notes.txt", upload(b"hi"))
        await file_service.remove("notes.txt")
        with pytest.raises(NotFoundError, match="does not exist"):
            await file_service.remove("notes.txt")

    @pytest.mark.asyncio
    async def test_put_is_retried(self, file_service, memory_storage):
        real_put = memory_storage.put
        attempts = []

        async def flaky_put(key, content, content_type):
            attempts.append(key)
            if len(attempts) == 1:
                raise BackendUnavailableError()
            return await real_put(key, content, content_type)

        memory_storage.put = flaky_put
        stored = await file_service.upload("a.bin", upload(b"\x00"))

        assert stored.size == 1
        assert attempts == ["a.bin", "a.bin"]

    @pytest.mark.asyncio
    async def test_delete_is_not_retried(self, file_service, memory_storage):
        memory_storage.delete = AsyncMock(side_effect=BackendUnavailableError())
        with pytest.raises(BackendUnavailableError):
            await file_service.remove("a.bin")
        assert memory_storage.delete.await_count == 1
