"""
AI Rules Routes
The newest active rule set is prepended to every enhancement prompt.
"""

import logging
from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from outreach.api.middleware.auth import get_current_user_id
from outreach.models import AIRule
from outreach.schemas.content import AIRuleCreate, AIRuleResponse, AIRuleUpdate
from outreach.services.email_enhancement import DEFAULT_AI_RULES
from outreach.utils import get_db

logger = logging.getLogger(__name__)

router = APIRouter()


async def _get_owned_rule(db: AsyncSession, rule_id: int, user_id: str) -> AIRule:
    result = await db.execute(select(AIRule).where(AIRule.id == rule_id, AIRule.user_id == user_id))
    rule = result.scalar_one_or_none()
    if rule is None:
        raise HTTPException(status_code=404, detail="AI rules not found")
    return rule


@router.get("", response_model=List[AIRuleResponse])
async def list_rules(
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    result = await db.execute(
        select(AIRule).where(AIRule.user_id == user_id).order_by(AIRule.created_at.desc(), AIRule.id.desc())
    )
    return result.scalars().all()


@router.get("/active", response_model=AIRuleResponse)
async def get_active_rules(
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    """The rule set enhancement will use, falling back to the built-in rules"""
    result = await db.execute(
        select(AIRule)
        .where(AIRule.user_id == user_id, AIRule.is_active.is_(True))
        .order_by(AIRule.created_at.desc(), AIRule.id.desc())
        .limit(1)
    )
    rule = result.scalar_one_or_none()
    if rule is None:
        return AIRuleResponse(
            id=None,
            name="Default Rules",
            description="Built-in enhancement rules",
            rules_text=DEFAULT_AI_RULES,
            is_active=True,
        )
    return rule


@router.post("", response_model=AIRuleResponse, status_code=status.HTTP_201_CREATED)
async def create_rules(
    request: AIRuleCreate,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    now = datetime.utcnow()
    rule = AIRule(
        user_id=user_id,
        name=request.name,
        description=request.description,
        rules_text=request.rules_text,
        is_active=request.is_active,
        created_at=now,
        updated_at=now,
    )
    db.add(rule)
    await db.flush()
    logger.info("Created AI rules %s for user %s", rule.id, user_id)
    return rule


@router.patch("/{rule_id}", response_model=AIRuleResponse)
async def update_rules(
    rule_id: int,
    request: AIRuleUpdate,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    rule = await _get_owned_rule(db, rule_id, user_id)
    for field, value in request.model_dump(exclude_unset=True).items():
        if value is not None or field == "description":
            setattr(rule, field, value)
    rule.updated_at = datetime.utcnow()
    await db.flush()
    return rule


@router.delete("/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_rules(
    rule_id: int,
    db: AsyncSession = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    rule = await _get_owned_rule(db, rule_id, user_id)
    await db.delete(rule)
