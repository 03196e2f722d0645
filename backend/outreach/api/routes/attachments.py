"""
Attachment Routes
Uploads with per-user quotas and signed downloads.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from outreach.api.dependencies import get_storage
from outreach.api.middleware.auth import get_current_user_id
from outreach.models import Attachment
from outreach.schemas.campaign import AttachmentResponse, StorageQuotaResponse
from outreach.services.storage_service import StorageError, StorageNotFoundError, StorageService
from outreach.utils import get_db

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=List[AttachmentResponse])
async def list_attachments(
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    result = await db.execute(
        select(Attachment)
        .where(Attachment.user_id == user_id, Attachment.is_active.is_(True))
        .order_by(Attachment.created_at.desc())
    )
    return result.scalars().all()


@router.get("/quota", response_model=StorageQuotaResponse)
async def storage_quota(
    user_id: str = Depends(get_current_user_id),
    storage: StorageService = Depends(get_storage),
):
    quota = await storage.get_user_storage_quota(user_id)
    return StorageQuotaResponse(**quota.__dict__)


@router.post("", response_model=AttachmentResponse, status_code=status.HTTP_201_CREATED)
async def upload_attachment(
    file: UploadFile = File(...),
    category: str = Form(default="general"),
    description: Optional[str] = Form(default=None),
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    storage: StorageService = Depends(get_storage),
):
    """Store a file if it fits the per-file limit and the user's quota"""
    content = await file.read()
    upload = await storage.upload_file(
        user_id,
        file.filename or "attachment",
        content,
        mime_type=file.content_type or "application/octet-stream",
        category=category,
        description=description,
    )
    if not upload.success:
        raise HTTPException(status_code=400, detail=upload.error)

    attachment = await db.get(Attachment, upload.attachment_id)
    return attachment


@router.delete("/{attachment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_attachment(
    attachment_id: int,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    storage: StorageService = Depends(get_storage),
):
    """Deactivate the record and remove the stored object"""
    result = await db.execute(
        select(Attachment).where(Attachment.id == attachment_id, Attachment.user_id == user_id)
    )
    attachment = result.scalar_one_or_none()
    if attachment is None or not attachment.is_active:
        raise HTTPException(status_code=404, detail="Attachment not found")

    attachment.is_active = False
    if attachment.storage_key:
        storage.delete_file(attachment.storage_key)
    logger.info("Deactivated attachment %s for user %s", attachment_id, user_id)


@router.get("/download")
async def download_attachment(
    key: str = Query(...),
    expires: int = Query(...),
    signature: str = Query(...),
    storage: StorageService = Depends(get_storage),
):
    """Signed URL target; the signature is the only credential"""
    try:
        path = storage.open_signed(key, expires, signature)
    except StorageNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StorageError as e:
        raise HTTPException(status_code=403, detail=str(e))
    return FileResponse(path, filename=path.name.split("-", 2)[-1])
