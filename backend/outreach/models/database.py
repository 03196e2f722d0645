"""
Outreach Database Models
PostgreSQL with SQLAlchemy ORM
"""

from datetime import date, datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    Column, String, Text, Integer, Boolean, Date, DateTime,
    Enum, Index, UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _utc_today() -> date:
    return datetime.utcnow().date()


# ============================================================================
# ENUMS
# ============================================================================

class AIProvider(str, PyEnum):
    OPENAI = "openai"
    GROQ = "groq"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"


class SendStatus(str, PyEnum):
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"


# ============================================================================
# AI KEYS & PREFERENCES
# ============================================================================

class AIApiKey(Base):
    """A user's API key for one AI provider, with rotation and usage state"""
    __tablename__ = "ai_api_keys"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), nullable=False, index=True)
    provider = Column(Enum(AIProvider), nullable=False)
    key_name = Column(String(255), nullable=False)
    encrypted_key = Column(Text, nullable=False)  # Fernet encrypted
    model_preference = Column(String(100))

    is_active = Column(Boolean, default=True, nullable=False)
    enable_rotation = Column(Boolean, default=False, nullable=False)

    # Usage tracking (reset daily)
    usage_count = Column(Integer, default=0, nullable=False)
    daily_limit = Column(Integer)
    last_used_at = Column(DateTime)
    daily_reset_at = Column(Date, default=_utc_today, nullable=False)
    rate_limit_hit_at = Column(DateTime)

    notes = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "provider", "key_name", name="uq_ai_key_user_provider_name"),
        CheckConstraint("usage_count >= 0", name="ck_ai_key_usage_non_negative"),
        Index("ix_ai_keys_user_provider_active", "user_id", "provider", "is_active"),
    )


class AIUserPreferences(Base):
    """Per-user rotation and fallback preferences"""
    __tablename__ = "ai_user_preferences"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), unique=True, nullable=False)
    enable_global_rotation = Column(Boolean, default=False, nullable=False)
    preferred_provider = Column(Enum(AIProvider), default=AIProvider.GROQ, nullable=False)
    fallback_enabled = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class AIRule(Base):
    """Instructions prepended to every email enhancement prompt"""
    __tablename__ = "ai_rules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    rules_text = Column(Text, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# ============================================================================
# EMAIL CONTENT & DELIVERY
# ============================================================================

class EmailTemplate(Base):
    """Reusable subject/body with [Role], [CompanyName], [RecruiterName] placeholders"""
    __tablename__ = "email_templates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    subject = Column(Text, nullable=False)
    body = Column(Text, nullable=False)
    is_default = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class SmtpConfig(Base):
    """Per-user SMTP credentials"""
    __tablename__ = "smtp_configs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), unique=True, nullable=False)
    email = Column(String(255), nullable=False)
    sender_name = Column(String(255))
    encrypted_password = Column(Text, nullable=False)  # Fernet encrypted
    smtp_host = Column(String(255), nullable=False)
    smtp_port = Column(Integer, default=587, nullable=False)
    use_ssl = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Attachment(Base):
    """File a user can attach to outgoing emails"""
    __tablename__ = "attachments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    original_name = Column(String(255), nullable=False)
    storage_key = Column(String(512))  # object store key
    file_path = Column(String(1024))  # local path, when already on disk
    file_size = Column(Integer, default=0, nullable=False)
    mime_type = Column(String(255), default="application/octet-stream")
    category = Column(String(100), default="general")
    description = Column(Text)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class EmailSend(Base):
    """Durable audit log of every campaign/single send outcome"""
    __tablename__ = "email_sends"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), nullable=False, index=True)
    session_id = Column(String(100), index=True)
    contact_id = Column(Integer)
    recipient = Column(String(255), nullable=False)
    subject = Column(Text)
    body = Column(Text)
    status = Column(Enum(SendStatus), nullable=False)
    error_message = Column(Text)
    ai_enhanced = Column(Boolean, default=False, nullable=False)
    ai_provider = Column(String(50))

    sent_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
