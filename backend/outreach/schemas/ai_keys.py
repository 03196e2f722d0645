"""
AI Key Schemas
"""

from datetime import date, datetime
from typing import Dict, Optional

from pydantic import BaseModel, Field

from outreach.models import AIProvider


class AIKeyCreate(BaseModel):
    """Store a new vendor API key"""
    provider: AIProvider
    key_name: str = Field(..., min_length=1, max_length=255)
    api_key: str = Field(..., min_length=8)
    model_preference: Optional[str] = None
    enable_rotation: bool = False
    daily_limit: Optional[int] = Field(default=None, ge=1)
    notes: Optional[str] = None


class AIKeyUpdate(BaseModel):
    """Partial key update; api_key is re-encrypted when present"""
    key_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    api_key: Optional[str] = Field(default=None, min_length=8)
    model_preference: Optional[str] = None
    is_active: Optional[bool] = None
    enable_rotation: Optional[bool] = None
    daily_limit: Optional[int] = Field(default=None, ge=1)
    notes: Optional[str] = None


class AIKeyResponse(BaseModel):
    """Stored key, never with the plaintext secret"""
    id: int
    provider: AIProvider
    key_name: str
    masked_key: str
    model_preference: Optional[str]
    is_active: bool
    enable_rotation: bool
    usage_count: int
    daily_limit: Optional[int]
    last_used_at: Optional[datetime]
    daily_reset_at: Optional[date]
    rate_limit_hit_at: Optional[datetime]
    notes: Optional[str]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class ProviderKeyStats(BaseModel):
    provider: AIProvider
    name: str
    total_keys: int
    active_keys: int
    rotation_enabled_keys: int
    total_usage: int
    last_used: Optional[datetime]


class AIKeyStatsResponse(BaseModel):
    stats: Dict[str, ProviderKeyStats]


class AIPreferencesUpdate(BaseModel):
    enable_global_rotation: Optional[bool] = None
    preferred_provider: Optional[AIProvider] = None
    fallback_enabled: Optional[bool] = None


class AIPreferencesResponse(BaseModel):
    enable_global_rotation: bool
    preferred_provider: AIProvider
    fallback_enabled: bool

    class Config:
        from_attributes = True
