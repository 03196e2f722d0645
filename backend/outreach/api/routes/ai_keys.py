"""
AI Key Routes
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from outreach.api.dependencies import get_key_manager
from outreach.api.middleware.auth import get_current_user_id
from outreach.models import AIProvider
from outreach.schemas.ai_keys import (
    AIKeyCreate,
    AIKeyResponse,
    AIKeyStatsResponse,
    AIKeyUpdate,
    AIPreferencesResponse,
    AIPreferencesUpdate,
)
from outreach.services.key_manager import KeyManager

logger = logging.getLogger(__name__)

router = APIRouter()
preferences_router = APIRouter()


@router.get("", response_model=List[AIKeyResponse])
async def list_keys(
    provider: Optional[AIProvider] = Query(default=None),
    user_id: str = Depends(get_current_user_id),
    keys: KeyManager = Depends(get_key_manager),
):
    """List the user's keys with masked secrets"""
    return [AIKeyResponse.model_validate(k) for k in await keys.list_keys(user_id, provider)]


@router.post("", response_model=AIKeyResponse, status_code=status.HTTP_201_CREATED)
async def create_key(
    request: AIKeyCreate,
    user_id: str = Depends(get_current_user_id),
    keys: KeyManager = Depends(get_key_manager),
):
    try:
        snapshot = await keys.add_key(
            user_id,
            provider=request.provider,
            key_name=request.key_name,
            api_key=request.api_key,
            model_preference=request.model_preference,
            enable_rotation=request.enable_rotation,
            daily_limit=request.daily_limit,
            notes=request.notes,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return AIKeyResponse.model_validate(snapshot)


@router.get("/stats", response_model=AIKeyStatsResponse)
async def key_stats(
    user_id: str = Depends(get_current_user_id),
    keys: KeyManager = Depends(get_key_manager),
):
    """Per-provider key counts and usage"""
    return AIKeyStatsResponse(stats=await keys.get_user_key_stats(user_id))


@router.patch("/{key_id}", response_model=AIKeyResponse)
async def update_key(
    key_id: int,
    request: AIKeyUpdate,
    user_id: str = Depends(get_current_user_id),
    keys: KeyManager = Depends(get_key_manager),
):
    snapshot = await keys.update_key(user_id, key_id, **request.model_dump(exclude_unset=True))
    if snapshot is None:
        raise HTTPException(status_code=404, detail="API key not found")
    return AIKeyResponse.model_validate(snapshot)


@router.delete("/{key_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_key(
    key_id: int,
    user_id: str = Depends(get_current_user_id),
    keys: KeyManager = Depends(get_key_manager),
):
    if not await keys.delete_key(user_id, key_id):
        raise HTTPException(status_code=404, detail="API key not found")


@preferences_router.get("", response_model=AIPreferencesResponse)
async def get_preferences(
    user_id: str = Depends(get_current_user_id),
    keys: KeyManager = Depends(get_key_manager),
):
    return AIPreferencesResponse.model_validate(await keys.get_user_preferences(user_id))


@preferences_router.put("", response_model=AIPreferencesResponse)
async def update_preferences(
    request: AIPreferencesUpdate,
    user_id: str = Depends(get_current_user_id),
    keys: KeyManager = Depends(get_key_manager),
):
    prefs = await keys.update_preferences(
        user_id,
        enable_global_rotation=request.enable_global_rotation,
        preferred_provider=request.preferred_provider,
        fallback_enabled=request.fallback_enabled,
    )
    return AIPreferencesResponse.model_validate(prefs)
