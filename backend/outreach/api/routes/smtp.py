"""
SMTP Configuration Routes
"""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from outreach.api.middleware.auth import get_current_user_id
from outreach.models import SmtpConfig
from outreach.schemas.campaign import SmtpConfigResponse, SmtpConfigUpdate
from outreach.utils import encrypt_api_key, get_db

router = APIRouter()


@router.get("", response_model=SmtpConfigResponse)
async def get_smtp_config(
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    result = await db.execute(select(SmtpConfig).where(SmtpConfig.user_id == user_id))
    config = result.scalar_one_or_none()
    if config is None:
        raise HTTPException(status_code=404, detail="SMTP configuration not found")
    return config


@router.put("", response_model=SmtpConfigResponse)
async def save_smtp_config(
    request: SmtpConfigUpdate,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    """Create or replace the sender config; the app password is stored encrypted"""
    result = await db.execute(select(SmtpConfig).where(SmtpConfig.user_id == user_id))
    config = result.scalar_one_or_none()
    if config is None:
        config = SmtpConfig(user_id=user_id)
        db.add(config)

    config.email = request.email
    config.encrypted_password = encrypt_api_key(request.password)
    config.smtp_host = request.smtp_host
    config.smtp_port = request.smtp_port
    config.sender_name = request.sender_name
    config.use_ssl = request.use_ssl
    config.updated_at = datetime.utcnow()

    await db.flush()
    return config
