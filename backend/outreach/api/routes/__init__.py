"""
API Routes
"""

from fastapi import APIRouter

from .ai_keys import router as ai_keys_router, preferences_router
from .ai import router as ai_router
from .campaigns import router as campaigns_router
from .email_sends import router as email_sends_router
from .attachments import router as attachments_router
from .smtp import router as smtp_router
from .maintenance import router as maintenance_router
from .ai_rules import router as ai_rules_router
from .templates import router as templates_router
from .emails import router as emails_router

api_router = APIRouter()

api_router.include_router(ai_keys_router, prefix="/ai-keys", tags=["AI Keys"])
api_router.include_router(preferences_router, prefix="/ai-preferences", tags=["AI Keys"])
api_router.include_router(ai_router, prefix="/ai", tags=["AI Generation"])
api_router.include_router(campaigns_router, prefix="/campaigns", tags=["Campaigns"])
api_router.include_router(email_sends_router, prefix="/email-sends", tags=["Campaigns"])
api_router.include_router(attachments_router, prefix="/attachments", tags=["Attachments"])
api_router.include_router(smtp_router, prefix="/smtp-config", tags=["SMTP"])
api_router.include_router(ai_rules_router, prefix="/ai-rules", tags=["AI Rules"])
api_router.include_router(templates_router, prefix="/templates", tags=["Templates"])
api_router.include_router(emails_router, prefix="/emails", tags=["Campaigns"])
api_router.include_router(maintenance_router, prefix="/maintenance", tags=["Maintenance"])
