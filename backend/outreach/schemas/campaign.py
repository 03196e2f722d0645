"""
Campaign, send log and attachment schemas
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field

from outreach.models import SendStatus


class ContactIn(BaseModel):
    id: Optional[int] = None
    email: EmailStr
    name: Optional[str] = None
    company_name: Optional[str] = None
    role: Optional[str] = None
    recruiter_name: Optional[str] = None


class TemplateIn(BaseModel):
    subject: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1)
    name: Optional[str] = None


class CampaignSendRequest(BaseModel):
    """Start a bulk send; template falls back to the user's default"""
    contacts: List[ContactIn] = Field(..., min_length=1)
    template: Optional[TemplateIn] = None
    use_ai: bool = False
    attachment_ids: List[int] = []
    session_id: Optional[str] = None
    run_in_worker: bool = False


class CampaignSendResponse(BaseModel):
    session_id: str
    total: int
    message: str


class CampaignCancelResponse(BaseModel):
    session_id: str
    cancelled: bool


class EmailSendResponse(BaseModel):
    id: int
    session_id: Optional[str]
    contact_id: Optional[int]
    recipient: str
    subject: Optional[str]
    body: Optional[str]
    status: SendStatus
    error_message: Optional[str]
    ai_enhanced: bool
    ai_provider: Optional[str]
    sent_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class SmtpConfigUpdate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = Field(default=587, ge=1, le=65535)
    sender_name: Optional[str] = None
    use_ssl: bool = False


class SmtpConfigResponse(BaseModel):
    email: str
    smtp_host: str
    smtp_port: int
    sender_name: Optional[str]
    use_ssl: bool

    class Config:
        from_attributes = True


class AttachmentResponse(BaseModel):
    id: int
    name: str
    original_name: str
    storage_key: Optional[str]
    file_size: int
    mime_type: Optional[str]
    category: Optional[str]
    description: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class StorageQuotaResponse(BaseModel):
    used_bytes: int
    max_bytes: int
    used_mb: float
    max_mb: int
    remaining_bytes: int
    remaining_mb: float
    percentage_used: int
    can_upload: bool
