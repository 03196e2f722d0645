"""
Business Logic Services
"""

from .provider_catalog import PROVIDER_CONFIGS, FALLBACK_ORDER, ProviderConfig, get_provider_config
from .key_manager import KeyManager, KeySelection, KeySnapshot, key_manager
from .ai_service import AIErrorKind, AIResult, AIService, ai_service, describe_ai_error
from .email_enhancement import Contact, EmailEnhancementService, email_enhancement_service, personalize_template
from .progress_store import ProgressStore, get_progress_store
from .mail_transport import MailTransportError, SmtpMailTransport, SmtpSettings
from .storage_service import StorageError, StorageService, get_storage_service
from .campaign_service import CampaignService, CampaignSummary, CampaignTemplate, get_campaign_service

__all__ = [
    "PROVIDER_CONFIGS",
    "FALLBACK_ORDER",
    "ProviderConfig",
    "get_provider_config",
    "KeyManager",
    "KeySelection",
    "KeySnapshot",
    "key_manager",
    "AIErrorKind",
    "AIResult",
    "AIService",
    "ai_service",
    "describe_ai_error",
    "Contact",
    "EmailEnhancementService",
    "email_enhancement_service",
    "personalize_template",
    "ProgressStore",
    "get_progress_store",
    "MailTransportError",
    "SmtpMailTransport",
    "SmtpSettings",
    "StorageError",
    "StorageService",
    "get_storage_service",
    "CampaignService",
    "CampaignSummary",
    "CampaignTemplate",
    "get_campaign_service",
]
