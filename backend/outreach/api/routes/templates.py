"""
Email Template Routes
"""

from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from outreach.api.dependencies import get_campaigns
from outreach.api.middleware.auth import get_current_user_id
from outreach.models import EmailTemplate
from outreach.schemas.content import EmailTemplateCreate, EmailTemplateResponse, EmailTemplateUpdate
from outreach.services.campaign_service import CampaignService
from outreach.utils import get_db

router = APIRouter()


async def _get_owned_template(db: AsyncSession, template_id: int, user_id: str) -> EmailTemplate:
    result = await db.execute(
        select(EmailTemplate).where(EmailTemplate.id == template_id, EmailTemplate.user_id == user_id)
    )
    template = result.scalar_one_or_none()
    if template is None:
        raise HTTPException(status_code=404, detail="Template not found")
    return template


async def _clear_default(db: AsyncSession, user_id: str) -> None:
    # At most one default template per user
    await db.execute(
        update(EmailTemplate)
        .where(EmailTemplate.user_id == user_id, EmailTemplate.is_default.is_(True))
        .values(is_default=False)
    )


@router.get("", response_model=List[EmailTemplateResponse])
async def list_templates(
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    result = await db.execute(
        select(EmailTemplate)
        .where(EmailTemplate.user_id == user_id)
        .order_by(EmailTemplate.created_at.desc(), EmailTemplate.id.desc())
    )
    return result.scalars().all()


@router.get("/default", response_model=EmailTemplateResponse)
async def get_default_template(
    user_id: str = Depends(get_current_user_id),
    campaigns: CampaignService = Depends(get_campaigns),
):
    """The template bulk sends use when none is given"""
    template = await campaigns.get_default_template(user_id)
    return EmailTemplateResponse(
        id=None, name=template.name, subject=template.subject, body=template.body, is_default=True,
    )


@router.post("", response_model=EmailTemplateResponse, status_code=status.HTTP_201_CREATED)
async def create_template(
    request: EmailTemplateCreate,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    if request.is_default:
        await _clear_default(db, user_id)
    now = datetime.utcnow()
    template = EmailTemplate(
        user_id=user_id,
        name=request.name,
        subject=request.subject,
        body=request.body,
        is_default=request.is_default,
        created_at=now,
        updated_at=now,
    )
    db.add(template)
    await db.flush()
    return template


@router.patch("/{template_id}", response_model=EmailTemplateResponse)
async def update_template(
    template_id: int,
    request: EmailTemplateUpdate,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    template = await _get_owned_template(db, template_id, user_id)
    changes = {k: v for k, v in request.model_dump(exclude_unset=True).items() if v is not None}
    if changes.get("is_default"):
        await _clear_default(db, user_id)
    for field, value in changes.items():
        setattr(template, field, value)
    template.updated_at = datetime.utcnow()
    await db.flush()
    return template


@router.delete("/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_template(
    template_id: int,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    template = await _get_owned_template(db, template_id, user_id)
    await db.delete(template)
