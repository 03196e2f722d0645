"""Tests for attachment storage: quota, objects, signed links and resolution."""

import os
import time
from contextlib import asynccontextmanager
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from outreach.models import Attachment
from outreach.services.storage_service import (
    MB,
    ResolvedAttachment,
    StorageError,
    StorageNotFoundError,
    StorageService,
)
from outreach.utils.security import sign_storage_key


def _remote(status_code=200, content=b"remote bytes", seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status_code, content=content)
    return httpx.MockTransport(handler)


@pytest.fixture
def storage(tmp_path, session_factory):
    return StorageService(
        root=str(tmp_path / "objects"),
        public_url="http://files.test/download",
        session_factory=session_factory,
        transport=_remote(),
    )


async def _add_attachment(session_factory, **fields):
    values = {
        "user_id": "user-1",
        "name": "resume.pdf",
        "original_name": "resume.pdf",
        "file_size": 0,
        "is_active": True,
    }
    values.update(fields)
    async with session_factory() as db:
        row = Attachment(**values)
        db.add(row)
        await db.flush()
        return row.id


@pytest.mark.unit
class TestQuota:

    @pytest.mark.asyncio
    async def test_empty_quota(self, storage):
        quota = await storage.get_user_storage_quota("user-1")

        assert quota.used_bytes == 0
        assert quota.max_mb == 50
        assert quota.remaining_bytes == 50 * MB
        assert quota.can_upload is True

    @pytest.mark.asyncio
    async def test_only_active_attachments_count(self, storage, session_factory):
        await _add_attachment(session_factory, file_size=5 * MB)
        await _add_attachment(session_factory, file_size=20 * MB, is_active=False)
        await _add_attachment(session_factory, user_id="user-2", file_size=20 * MB)

        quota = await storage.get_user_storage_quota("user-1")

        assert quota.used_mb == 5.0
        assert quota.percentage_used == 10

    @pytest.mark.asyncio
    async def test_file_too_large(self, storage):
        allowed, reason = await storage.can_user_upload_file("user-1", 11 * MB)

        assert allowed is False
        assert "exceeds maximum allowed size of 10MB" in reason

    @pytest.mark.asyncio
    async def test_not_enough_space(self, storage, session_factory):
        await _add_attachment(session_factory, file_size=45 * MB)

        allowed, reason = await storage.can_user_upload_file("user-1", 6 * MB)

        assert allowed is False
        assert reason.startswith("Not enough storage space")
        assert await storage.can_user_upload_file("user-1", 5 * MB) == (True, None)


@pytest.mark.unit
class TestObjects:

    def test_generate_file_key_sanitizes_name(self):
        key = StorageService.generate_file_key("user-1", "my résumé (v2).pdf")

        assert key.startswith("users/user-1/")
        assert key.endswith("-my_r_sum___v2_.pdf")

    @pytest.mark.asyncio
    async def test_upload_writes_object_and_row(self, storage, session_factory):
        result = await storage.upload_file("user-1", "cv.pdf", b"%PDF", mime_type="application/pdf")

        assert result.success is True
        assert result.size == 4
        assert storage.file_exists(result.key)
        attachments = await storage.get_user_attachments("user-1", [result.attachment_id])
        assert attachments[0].storage_key == result.key
        assert attachments[0].mime_type == "application/pdf"

    @pytest.mark.asyncio
    async def test_failed_insert_removes_object(self, storage, tmp_path):
        calls = []

        @asynccontextmanager
        async def broken_session():
            calls.append(1)
            if len(calls) > 1:
                raise RuntimeError("insert failed")
            async with real_factory() as db:
                yield db

        real_factory = storage.session_factory
        storage.session_factory = broken_session

        with pytest.raises(RuntimeError, match="insert failed"):
            await storage.upload_file("user-1", "cv.pdf", b"%PDF")

        assert [p for p in (tmp_path / "objects").rglob("*") if p.is_file()] == []

    @pytest.mark.asyncio
    async def test_upload_rejected_over_quota(self, storage):
        storage.max_file_size_mb = 0

        result = await storage.upload_file("user-1", "cv.pdf", b"%PDF")

        assert result.success is False
        assert "exceeds maximum" in result.error

    @pytest.mark.asyncio
    async def test_delete_file(self, storage):
        result = await storage.upload_file("user-1", "cv.pdf", b"%PDF")

        assert storage.delete_file(result.key) is True
        assert storage.delete_file(result.key) is False
        assert not storage.file_exists(result.key)

    def test_keys_cannot_escape_root(self, storage):
        assert storage.file_exists("../../etc/passwd") is False
        assert storage.delete_file("../outside.txt") is False


@pytest.mark.unit
class TestSignedDownloads:

    @pytest.mark.asyncio
    async def test_signed_url_opens_object(self, storage):
        result = await storage.upload_file("user-1", "cv.pdf", b"%PDF")

        url = storage.get_download_url(result.key, expires_in=60)
        params = {k: v[0] for k, v in parse_qs(urlparse(url).query).items()}
        path = storage.open_signed(params["key"], int(params["expires"]), params["signature"])

        assert url.startswith("http://files.test/download?")
        assert path.read_bytes() == b"%PDF"

    def test_tampered_signature(self, storage):
        expires = int(time.time()) + 60

        with pytest.raises(StorageError, match="Invalid or expired"):
            storage.open_signed("users/user-1/x.pdf", expires, "0" * 64)

    def test_expired_link(self, storage):
        expires = int(time.time()) - 1

        with pytest.raises(StorageError, match="Invalid or expired"):
            storage.open_signed("users/user-1/x.pdf", expires, sign_storage_key("users/user-1/x.pdf", expires))

    def test_missing_object(self, storage):
        expires = int(time.time()) + 60
        key = "users/user-1/missing.pdf"

        with pytest.raises(StorageNotFoundError):
            storage.open_signed(key, expires, sign_storage_key(key, expires))


@pytest.mark.unit
class TestResolveAttachment:

    @pytest.mark.asyncio
    async def test_local_file_path_used_in_place(self, storage, tmp_path):
        local = tmp_path / "local.pdf"
        local.write_bytes(b"local")
        attachment = Attachment(id=1, name="local.pdf", original_name="local.pdf", file_path=str(local))

        resolved = await storage.resolve_attachment(attachment)

        assert resolved.path == str(local)
        assert resolved.temporary is False
        assert resolved.mime_type == "application/octet-stream"

    @pytest.mark.asyncio
    async def test_stored_object_used_in_place(self, storage):
        result = await storage.upload_file("user-1", "cv.pdf", b"%PDF")
        attachment = Attachment(id=1, name="cv.pdf", original_name="cv.pdf", storage_key=result.key)

        resolved = await storage.resolve_attachment(attachment)

        assert resolved.read() == b"%PDF"
        assert resolved.temporary is False

    @pytest.mark.asyncio
    async def test_remote_object_downloaded_to_temp_file(self, tmp_path, session_factory):
        seen = []
        storage = StorageService(
            root=str(tmp_path / "objects"),
            public_url="http://files.test/download",
            session_factory=session_factory,
            transport=_remote(content=b"remote bytes", seen=seen),
        )
        attachment = Attachment(
            id=3, name="cv.pdf", original_name="cv.pdf",
            storage_key="users/user-1/cv.pdf", mime_type="application/pdf",
        )

        resolved = await storage.resolve_attachment(attachment)

        assert resolved.temporary is True
        assert resolved.read() == b"remote bytes"
        assert seen[0].url.params["key"] == "users/user-1/cv.pdf"
        storage.cleanup([resolved])
        assert not os.path.exists(resolved.path)

    @pytest.mark.asyncio
    async def test_remote_failure(self, tmp_path, session_factory):
        storage = StorageService(
            root=str(tmp_path / "objects"),
            public_url="http://files.test/download",
            session_factory=session_factory,
            transport=_remote(status_code=404),
        )
        attachment = Attachment(id=3, name="cv.pdf", original_name="cv.pdf", storage_key="users/user-1/cv.pdf")

        with pytest.raises(StorageError, match="HTTP 404"):
            await storage.resolve_attachment(attachment)

    @pytest.mark.asyncio
    async def test_nothing_stored(self, storage):
        with pytest.raises(StorageError, match="no stored content"):
            await storage.resolve_attachment(Attachment(id=9, name="x", original_name="x"))

    def test_cleanup_keeps_non_temporary_files(self, tmp_path):
        kept = tmp_path / "kept.pdf"
        kept.write_bytes(b"x")

        StorageService.cleanup([
            ResolvedAttachment(filename="kept.pdf", path=str(kept), mime_type="application/pdf"),
            ResolvedAttachment(filename="gone.pdf", path=str(tmp_path / "gone.pdf"), mime_type="x", temporary=True),
        ])

        assert kept.exists()

    @pytest.mark.asyncio
    async def test_get_user_attachments_filters(self, storage, session_factory):
        mine = await _add_attachment(session_factory)
        inactive = await _add_attachment(session_factory, is_active=False)
        other = await _add_attachment(session_factory, user_id="user-2")

        found = await storage.get_user_attachments("user-1", [mine, inactive, other])

        assert [a.id for a in found] == [mine]
        assert await storage.get_user_attachments("user-1", []) == []
