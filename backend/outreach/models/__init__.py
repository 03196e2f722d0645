"""
Database Models for the outreach backend
"""

from .database import (
    Base,
    # Enums
    AIProvider,
    SendStatus,
    # Models
    AIApiKey,
    AIUserPreferences,
    AIRule,
    EmailTemplate,
    SmtpConfig,
    Attachment,
    EmailSend,
)

__all__ = [
    "Base",
    # Enums
    "AIProvider",
    "SendStatus",
    # Models
    "AIApiKey",
    "AIUserPreferences",
    "AIRule",
    "EmailTemplate",
    "SmtpConfig",
    "Attachment",
    "EmailSend",
]
