"""
Service dependencies for route handlers
"""

from outreach.services.ai_service import AIService, ai_service
from outreach.services.campaign_service import CampaignService, get_campaign_service
from outreach.services.email_enhancement import EmailEnhancementService, email_enhancement_service
from outreach.services.key_manager import KeyManager, key_manager
from outreach.services.progress_store import ProgressStore, get_progress_store
from outreach.services.storage_service import StorageService, get_storage_service


def get_key_manager() -> KeyManager:
    return key_manager


def get_ai_service() -> AIService:
    return ai_service


def get_enhancement_service() -> EmailEnhancementService:
    return email_enhancement_service


def get_campaigns() -> CampaignService:
    return get_campaign_service()


def get_progress() -> ProgressStore:
    return get_progress_store()


def get_storage() -> StorageService:
    return get_storage_service()
