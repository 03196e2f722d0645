"""
AI Request Schemas
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from outreach.models import AIProvider


class AIGenerateRequest(BaseModel):
    prompt: str = Field(..., min_length=1)
    preferred_provider: Optional[AIProvider] = None
    max_tokens: Optional[int] = Field(default=None, ge=1, le=8000)
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)


class AIGenerateResponse(BaseModel):
    success: bool
    content: Optional[str] = None
    provider: Optional[AIProvider] = None
    model: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None
    error_title: Optional[str] = None
    error_description: Optional[str] = None
    fallback_used: bool = False
    key_used: Optional[str] = None
    tokens_used: int = 0


class EmailEnhanceRequest(BaseModel):
    subject: str
    body: str
    company_name: str
    position: Optional[str] = None
    recruiter_name: Optional[str] = None
    preferred_provider: Optional[AIProvider] = None


class EmailEnhanceResponse(BaseModel):
    subject: str
    body: str
    ai_enhanced: bool
    message: Optional[str] = None
    error: Optional[str] = None
    provider: Optional[AIProvider] = None


class SubjectVariationsRequest(BaseModel):
    subject: str = Field(..., min_length=1)
    count: int = Field(default=3, ge=1, le=10)


class SubjectVariationsResponse(BaseModel):
    variations: List[str]


class EmailGenerateRequest(BaseModel):
    recipient_name: str
    recipient_company: str
    recipient_role: str
    campaign_context: str
    subject: Optional[str] = None
    tone: str = Field(default="professional", pattern="^(professional|casual|friendly|formal)$")
    length: str = Field(default="medium", pattern="^(short|medium|long)$")
    include_personalization: bool = True
    call_to_action: Optional[str] = None
    additional_context: Optional[str] = None


class EmailGenerateResponse(BaseModel):
    subject: str
    body: str
    provider: str
    model: str
    success: bool
    error: Optional[str] = None


class EmailAnalysisRequest(BaseModel):
    email_content: str = Field(..., min_length=1)
    open_rate: float = Field(..., ge=0.0, le=100.0)
    response_rate: float = Field(..., ge=0.0, le=100.0)


class EmailAnalysisResponse(BaseModel):
    suggestions: List[str]
