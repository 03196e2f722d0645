"""
Attachment storage
Local-directory object store with per-user quotas and signed, expiring download URLs.
"""

import asyncio
import logging
import os
import random
import re
import string
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Tuple
from urllib.parse import urlencode

import httpx
from sqlalchemy import and_, func, select

from outreach.config import get_settings
from outreach.models import Attachment
from outreach.services.key_manager import SessionFactory
from outreach.utils.database import get_db_context
from outreach.utils.security import sign_storage_key, verify_storage_signature

logger = logging.getLogger(__name__)

MB = 1024 * 1024


class StorageError(Exception):
    pass


class StorageNotFoundError(StorageError):
    pass


@dataclass
class StorageQuota:
    used_bytes: int
    max_bytes: int
    used_mb: float
    max_mb: int
    remaining_bytes: int
    remaining_mb: float
    percentage_used: int
    can_upload: bool


@dataclass
class UploadResult:
    success: bool
    key: Optional[str] = None
    attachment_id: Optional[int] = None
    size: Optional[int] = None
    error: Optional[str] = None


@dataclass
class ResolvedAttachment:
    """Attachment bytes on local disk, ready to be read into a message"""
    filename: str
    path: str
    mime_type: str
    temporary: bool = False

    def read(self) -> bytes:
        return Path(self.path).read_bytes()


def _round_mb(size: int) -> float:
    return round(size / MB, 2)


class StorageService:
    """Object store for user attachments"""

    def __init__(
        self,
        root: Optional[str] = None,
        public_url: Optional[str] = None,
        session_factory: SessionFactory = get_db_context,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.root = Path(root or settings.STORAGE_ROOT)
        self.public_url = public_url or settings.STORAGE_PUBLIC_URL
        self.max_user_storage_mb = settings.MAX_USER_STORAGE_MB
        self.max_file_size_mb = settings.MAX_FILE_SIZE_MB
        self.session_factory = session_factory
        self._transport = transport

    # ------------------------------------------------------------------
    # Quota
    # ------------------------------------------------------------------

    async def get_user_storage_quota(self, user_id: str) -> StorageQuota:
        """Usage counted from the user's active attachments"""
        async with self.session_factory() as db:
            result = await db.execute(
                select(func.coalesce(func.sum(Attachment.file_size), 0)).where(
                    and_(Attachment.user_id == user_id, Attachment.is_active.is_(True))
                )
            )
            used = int(result.scalar() or 0)

        max_bytes = self.max_user_storage_mb * MB
        remaining = max(0, max_bytes - used)
        return StorageQuota(
            used_bytes=used,
            max_bytes=max_bytes,
            used_mb=_round_mb(used),
            max_mb=self.max_user_storage_mb,
            remaining_bytes=remaining,
            remaining_mb=_round_mb(remaining),
            percentage_used=round(used / max_bytes * 100) if max_bytes else 100,
            can_upload=remaining > 0,
        )

    async def can_user_upload_file(self, user_id: str, file_size: int) -> Tuple[bool, Optional[str]]:
        """Per-file size limit first, then used + size must fit the quota"""
        if file_size > self.max_file_size_mb * MB:
            return False, (
                f"File size ({_round_mb(file_size)}MB) exceeds maximum allowed size "
                f"of {self.max_file_size_mb}MB"
            )

        quota = await self.get_user_storage_quota(user_id)
        if file_size > quota.remaining_bytes:
            return False, (
                f"Not enough storage space. Need {_round_mb(file_size)}MB "
                f"but only {quota.remaining_mb}MB remaining"
            )
        return True, None

    # ------------------------------------------------------------------
    # Objects
    # ------------------------------------------------------------------

    @staticmethod
    def generate_file_key(user_id: str, original_name: str) -> str:
        timestamp = int(time.time() * 1000)
        suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=6))
        sanitized = re.sub(r"[^a-zA-Z0-9.-]", "_", original_name)
        return f"users/{user_id}/{timestamp}-{suffix}-{sanitized}"

    def _object_path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root.resolve() not in path.parents:
            raise StorageError(f"Invalid storage key: {key}")
        return path

    def file_exists(self, key: str) -> bool:
        try:
            return self._object_path(key).is_file()
        except StorageError:
            return False

    async def upload_file(
        self,
        user_id: str,
        filename: str,
        content: bytes,
        mime_type: str = "application/octet-stream",
        category: str = "general",
        description: Optional[str] = None,
    ) -> UploadResult:
        """Quota-check, write the object and record the attachment"""
        size = len(content)
        allowed, reason = await self.can_user_upload_file(user_id, size)
        if not allowed:
            return UploadResult(success=False, error=reason)

        key = self.generate_file_key(user_id, filename)
        path = self._object_path(key)
        await asyncio.to_thread(self._write_object, path, content)

        try:
            async with self.session_factory() as db:
                attachment = Attachment(
                    user_id=user_id,
                    name=filename,
                    original_name=filename,
                    storage_key=key,
                    file_size=size,
                    mime_type=mime_type,
                    category=category,
                    description=description,
                    is_active=True,
                )
                db.add(attachment)
                await db.flush()
                attachment_id = attachment.id
        except Exception:
            # An object without a row is invisible to the quota
            path.unlink(missing_ok=True)
            logger.exception("Could not record attachment %s, object removed", key)
            raise

        logger.info("Stored attachment %s (%.2f KB)", key, size / 1024)
        return UploadResult(success=True, key=key, attachment_id=attachment_id, size=size)

    @staticmethod
    def _write_object(path: Path, content: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)

    def delete_file(self, key: str) -> bool:
        try:
            self._object_path(key).unlink()
        except (FileNotFoundError, StorageError):
            return False
        logger.info("Deleted attachment object %s", key)
        return True

    def get_download_url(self, key: str, expires_in: int = 3600) -> str:
        expires_at = int(time.time()) + expires_in
        query = urlencode({
            "key": key,
            "expires": expires_at,
            "signature": sign_storage_key(key, expires_at),
        })
        return f"{self.public_url}?{query}"

    def open_signed(self, key: str, expires: int, signature: str) -> Path:
        """
        Path of an object behind a signed URL.

        Raises:
            StorageError: if the signature is invalid or expired, or the object is missing
        """
        if not verify_storage_signature(key, expires, signature):
            raise StorageError("Invalid or expired download link")
        path = self._object_path(key)
        if not path.is_file():
            raise StorageNotFoundError("File not found")
        return path

    # ------------------------------------------------------------------
    # Attachments for sending
    # ------------------------------------------------------------------

    async def get_user_attachments(self, user_id: str, attachment_ids: Iterable[int]) -> List[Attachment]:
        ids = list(attachment_ids)
        if not ids:
            return []
        async with self.session_factory() as db:
            result = await db.execute(
                select(Attachment).where(
                    and_(
                        Attachment.user_id == user_id,
                        Attachment.id.in_(ids),
                        Attachment.is_active.is_(True),
                    )
                )
            )
            return list(result.scalars().all())

    async def resolve_attachment(self, attachment: Attachment) -> ResolvedAttachment:
        """
        Local bytes for an attachment.

        Files already on this disk are used in place. Anything else is
        downloaded through its signed URL into a temp file, which the caller
        must pass to cleanup().
        """
        mime_type = attachment.mime_type or "application/octet-stream"
        filename = attachment.original_name or attachment.name

        if attachment.file_path and os.path.isfile(attachment.file_path):
            return ResolvedAttachment(filename=filename, path=attachment.file_path, mime_type=mime_type)

        if not attachment.storage_key:
            raise StorageError(f"Attachment {attachment.id} has no stored content")

        if self.file_exists(attachment.storage_key):
            return ResolvedAttachment(
                filename=filename,
                path=str(self._object_path(attachment.storage_key)),
                mime_type=mime_type,
            )

        url = self.get_download_url(attachment.storage_key)
        async with httpx.AsyncClient(timeout=60, transport=self._transport) as client:
            response = await client.get(url)
        if response.status_code != 200:
            raise StorageError(f"Failed to download attachment {filename}: HTTP {response.status_code}")

        fd, temp_path = tempfile.mkstemp(prefix="attachment-", suffix=f"-{Path(filename).name}")
        with os.fdopen(fd, "wb") as f:
            f.write(response.content)
        logger.debug("Downloaded attachment %s to %s", attachment.storage_key, temp_path)
        return ResolvedAttachment(filename=filename, path=temp_path, mime_type=mime_type, temporary=True)

    @staticmethod
    def cleanup(resolved: Iterable[ResolvedAttachment]) -> None:
        """Remove temp files created by resolve_attachment"""
        for item in resolved:
            if not item.temporary:
                continue
            try:
                os.remove(item.path)
            except FileNotFoundError:
                pass


_storage_service: Optional[StorageService] = None


def get_storage_service() -> StorageService:
    global _storage_service
    if _storage_service is None:
        _storage_service = StorageService()
    return _storage_service
