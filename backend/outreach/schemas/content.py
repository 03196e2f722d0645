"""
AI rule, email template and single-send schemas
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field

from outreach.models import SendStatus


class AIRuleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    rules_text: str = Field(..., min_length=1)
    description: Optional[str] = None
    is_active: bool = True


class AIRuleUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    rules_text: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    is_active: Optional[bool] = None


class AIRuleResponse(BaseModel):
    """id is None for the built-in rules"""
    id: Optional[int]
    name: str
    description: Optional[str]
    rules_text: str
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class EmailTemplateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    subject: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1)
    is_default: bool = False


class EmailTemplateUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    subject: Optional[str] = Field(default=None, min_length=1)
    body: Optional[str] = Field(default=None, min_length=1)
    is_default: Optional[bool] = None


class EmailTemplateResponse(BaseModel):
    id: Optional[int]
    name: Optional[str]
    subject: str
    body: str
    is_default: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SingleEmailRequest(BaseModel):
    """One email; placeholders are filled from the recipient fields"""
    to: EmailStr
    subject: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1)
    name: Optional[str] = None
    company_name: Optional[str] = None
    role: Optional[str] = None
    recruiter_name: Optional[str] = None
    use_ai: bool = False
    attachment_ids: List[int] = []


class SingleEmailResponse(BaseModel):
    to: str
    status: SendStatus
    subject: str
    body: str
    ai_enhanced: bool
    ai_provider: Optional[str] = None
    error: Optional[str] = None
