"""
Pydantic Schemas for API Request/Response validation
"""

from .ai_keys import (
    AIKeyCreate,
    AIKeyUpdate,
    AIKeyResponse,
    AIKeyStatsResponse,
    ProviderKeyStats,
    AIPreferencesUpdate,
    AIPreferencesResponse,
)
from .ai import (
    AIGenerateRequest,
    AIGenerateResponse,
    EmailEnhanceRequest,
    EmailEnhanceResponse,
    SubjectVariationsRequest,
    SubjectVariationsResponse,
    EmailGenerateRequest,
    EmailGenerateResponse,
    EmailAnalysisRequest,
    EmailAnalysisResponse,
)
from .campaign import (
    ContactIn,
    TemplateIn,
    CampaignSendRequest,
    CampaignSendResponse,
    CampaignCancelResponse,
    EmailSendResponse,
    SmtpConfigUpdate,
    SmtpConfigResponse,
    AttachmentResponse,
    StorageQuotaResponse,
)
from .content import (
    AIRuleCreate,
    AIRuleUpdate,
    AIRuleResponse,
    EmailTemplateCreate,
    EmailTemplateUpdate,
    EmailTemplateResponse,
    SingleEmailRequest,
    SingleEmailResponse,
)

__all__ = [
    # AI keys
    "AIKeyCreate",
    "AIKeyUpdate",
    "AIKeyResponse",
    "AIKeyStatsResponse",
    "ProviderKeyStats",
    "AIPreferencesUpdate",
    "AIPreferencesResponse",
    # AI
    "AIGenerateRequest",
    "AIGenerateResponse",
    "EmailEnhanceRequest",
    "EmailEnhanceResponse",
    "SubjectVariationsRequest",
    "SubjectVariationsResponse",
    "EmailGenerateRequest",
    "EmailGenerateResponse",
    "EmailAnalysisRequest",
    "EmailAnalysisResponse",
    # Campaigns
    "ContactIn",
    "TemplateIn",
    "CampaignSendRequest",
    "CampaignSendResponse",
    "CampaignCancelResponse",
    "EmailSendResponse",
    "SmtpConfigUpdate",
    "SmtpConfigResponse",
    "AttachmentResponse",
    "StorageQuotaResponse",
    # Rules, templates, single sends
    "AIRuleCreate",
    "AIRuleUpdate",
    "AIRuleResponse",
    "EmailTemplateCreate",
    "EmailTemplateUpdate",
    "EmailTemplateResponse",
    "SingleEmailRequest",
    "SingleEmailResponse",
]
