"""
Email Send Log Routes
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from outreach.api.middleware.auth import get_current_user_id
from outreach.models import EmailSend, SendStatus
from outreach.schemas.campaign import EmailSendResponse
from outreach.utils import get_db

router = APIRouter()


@router.get("", response_model=List[EmailSendResponse])
async def list_email_sends(
    session_id: Optional[str] = Query(default=None, alias="sessionId"),
    send_status: Optional[SendStatus] = Query(default=None, alias="status"),
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    """Durable per-contact outcomes, newest first"""
    query = select(EmailSend).where(EmailSend.user_id == user_id)
    if session_id:
        query = query.where(EmailSend.session_id == session_id)
    if send_status:
        query = query.where(EmailSend.status == send_status)

    result = await db.execute(
        query.order_by(EmailSend.created_at.desc(), EmailSend.id.desc()).offset(offset).limit(limit)
    )
    return result.scalars().all()


@router.delete("/{send_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_email_send(
    send_id: int,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    result = await db.execute(
        delete(EmailSend).where(EmailSend.id == send_id, EmailSend.user_id == user_id)
    )
    if result.rowcount == 0:
        raise HTTPException(status_code=404, detail="Email send not found")
