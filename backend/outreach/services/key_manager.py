"""
AI Key Manager
Selects, rotates and records usage for users' AI provider keys.

Key lists and preferences are cached in-process for a short TTL. The cache
holds plain snapshots of the rows; the rate-limit quarantine is evaluated at
selection time against the current clock, so a cached list can never bring
a quarantined key back. Every write clears the whole cache.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, AsyncContextManager, Callable, Dict, List, Optional

from sqlalchemy import and_, case, delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from outreach.models import AIApiKey, AIProvider, AIUserPreferences
from outreach.services.provider_catalog import (
    FALLBACK_ORDER,
    PROVIDER_CONFIGS,
    get_provider_config,
)
from outreach.utils.cache import CacheService, key_cache
from outreach.utils.database import get_db_context
from outreach.utils.security import decrypt_api_key, encrypt_api_key, mask_api_key

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncContextManager[AsyncSession]]

RATE_LIMIT_ERROR = "rate_limit_exceeded"


@dataclass(frozen=True)
class KeySnapshot:
    """Immutable copy of an ai_api_keys row"""
    id: int
    user_id: str
    provider: AIProvider
    key_name: str
    encrypted_key: str
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

    @classmethod
    def from_model(cls, row: AIApiKey) -> "KeySnapshot":
        return cls(
            id=row.id,
            user_id=row.user_id,
            provider=AIProvider(row.provider),
            key_name=row.key_name,
            encrypted_key=row.encrypted_key,
            model_preference=row.model_preference,
            is_active=row.is_active,
            enable_rotation=row.enable_rotation,
            usage_count=row.usage_count or 0,
            daily_limit=row.daily_limit,
            last_used_at=row.last_used_at,
            daily_reset_at=row.daily_reset_at,
            rate_limit_hit_at=row.rate_limit_hit_at,
            notes=row.notes,
            created_at=row.created_at,
        )

    def decrypt(self) -> str:
        return decrypt_api_key(self.encrypted_key)

    @property
    def masked_key(self) -> str:
        return mask_api_key(self.decrypt())

    @property
    def effective_model(self) -> str:
        return self.model_preference or get_provider_config(self.provider).default_model

    def is_rate_limited(self, now: datetime) -> bool:
        """True while inside the provider's cooldown window (boundary is available)"""
        if self.rate_limit_hit_at is None:
            return False
        window = get_provider_config(self.provider).rate_limit_window
        return now - self.rate_limit_hit_at < window


@dataclass(frozen=True)
class PreferencesSnapshot:
    user_id: str
    enable_global_rotation: bool = False
    preferred_provider: AIProvider = AIProvider.GROQ
    fallback_enabled: bool = True

    @classmethod
    def from_model(cls, row: AIUserPreferences) -> "PreferencesSnapshot":
        return cls(
            user_id=row.user_id,
            enable_global_rotation=row.enable_global_rotation,
            preferred_provider=AIProvider(row.preferred_provider),
            fallback_enabled=row.fallback_enabled,
        )


@dataclass(frozen=True)
class KeySelection:
    """The key chosen for a dispatch and whether it came from a fallback provider"""
    key: KeySnapshot
    fallback_used: bool = False

    @property
    def provider(self) -> AIProvider:
        return self.key.provider


def _rotation_order(key: KeySnapshot):
    # least used first, never-used before oldest-used
    return (
        key.usage_count,
        key.last_used_at is not None,
        key.last_used_at or datetime.min,
        key.id,
    )


class KeyManager:
    """Key selection, usage accounting and key CRUD for all providers"""

    def __init__(
        self,
        session_factory: SessionFactory = get_db_context,
        cache: Optional[CacheService] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.session_factory = session_factory
        self.cache = cache if cache is not None else key_cache
        self.clock = clock

    # ------------------------------------------------------------------
    # Preferences
    # ------------------------------------------------------------------

    async def get_user_preferences(self, user_id: str) -> PreferencesSnapshot:
        """Get user's AI preferences, creating defaults if they don't exist"""
        cache_key = f"prefs:{user_id}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        async with self.session_factory() as db:
            row = await self._get_or_create_preferences(db, user_id)
            prefs = PreferencesSnapshot.from_model(row)

        self.cache.set(cache_key, prefs)
        return prefs

    async def update_preferences(
        self,
        user_id: str,
        enable_global_rotation: Optional[bool] = None,
        preferred_provider: Optional[AIProvider] = None,
        fallback_enabled: Optional[bool] = None,
    ) -> PreferencesSnapshot:
        """Update the provided fields, leaving the rest unchanged"""
        async with self.session_factory() as db:
            row = await self._get_or_create_preferences(db, user_id)
            if enable_global_rotation is not None:
                row.enable_global_rotation = enable_global_rotation
            if preferred_provider is not None:
                row.preferred_provider = AIProvider(preferred_provider)
            if fallback_enabled is not None:
                row.fallback_enabled = fallback_enabled
            row.updated_at = self.clock()
            await db.flush()
            prefs = PreferencesSnapshot.from_model(row)

        self.clear_cache()
        logger.info(
            "Updated AI preferences for user %s: provider=%s rotation=%s fallback=%s",
            user_id, prefs.preferred_provider.value, prefs.enable_global_rotation, prefs.fallback_enabled,
        )
        return prefs

    async def _get_or_create_preferences(self, db: AsyncSession, user_id: str) -> AIUserPreferences:
        result = await db.execute(
            select(AIUserPreferences).where(AIUserPreferences.user_id == user_id)
        )
        row = result.scalar_one_or_none()
        if row is not None:
            return row

        row = AIUserPreferences(
            user_id=user_id,
            enable_global_rotation=False,
            preferred_provider=AIProvider.GROQ,
            fallback_enabled=True,
        )
        db.add(row)
        await db.flush()
        logger.info("Created default AI preferences for user %s", user_id)
        return row

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    async def _load_active_keys(self, user_id: str, provider: Optional[AIProvider] = None) -> List[KeySnapshot]:
        """Active keys for a user (one provider or all), cached as snapshots"""
        cache_key = f"keys:{user_id}:{provider.value if provider else 'all'}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        query = select(AIApiKey).where(
            and_(AIApiKey.user_id == user_id, AIApiKey.is_active.is_(True))
        )
        if provider is not None:
            query = query.where(AIApiKey.provider == provider)
        query = query.order_by(
            AIApiKey.usage_count.asc(),
            AIApiKey.last_used_at.asc().nulls_first(),
        )

        async with self.session_factory() as db:
            result = await db.execute(query)
            keys = [KeySnapshot.from_model(row) for row in result.scalars().all()]

        self.cache.set(cache_key, keys)
        return keys

    async def get_available_keys(
        self,
        user_id: str,
        provider: AIProvider,
        now: Optional[datetime] = None,
    ) -> List[KeySnapshot]:
        """Active keys for a provider that are outside their rate-limit window, best first"""
        provider = AIProvider(provider)
        now = now or self.clock()
        keys = await self._load_active_keys(user_id, provider)
        available = [k for k in keys if not k.is_rate_limited(now)]
        return sorted(available, key=_rotation_order)

    async def _candidates(
        self,
        user_id: str,
        provider: AIProvider,
        prefs: PreferencesSnapshot,
        now: datetime,
    ) -> List[KeySnapshot]:
        keys = await self.get_available_keys(user_id, provider, now=now)
        if prefs.enable_global_rotation:
            keys = [k for k in keys if k.enable_rotation]
        return keys

    async def get_best_available_key(
        self,
        user_id: str,
        preferred_provider: Optional[AIProvider] = None,
        now: Optional[datetime] = None,
    ) -> Optional[KeySelection]:
        """
        Pick the least-used available key for the preferred provider.

        Falls back through the other providers in FALLBACK_ORDER when the
        user allows it. Returns None when nothing is usable.
        """
        now = now or self.clock()
        prefs = await self.get_user_preferences(user_id)
        target = AIProvider(preferred_provider) if preferred_provider else prefs.preferred_provider

        candidates = await self._candidates(user_id, target, prefs, now)
        if candidates:
            return KeySelection(key=candidates[0], fallback_used=False)

        if not prefs.fallback_enabled:
            logger.info("No available %s key for user %s and fallback is disabled", target.value, user_id)
            return None

        for provider in FALLBACK_ORDER:
            if provider == target:
                continue
            candidates = await self._candidates(user_id, provider, prefs, now)
            if candidates:
                logger.info(
                    "Falling back from %s to %s for user %s",
                    target.value, provider.value, user_id,
                )
                return KeySelection(key=candidates[0], fallback_used=True)

        logger.warning("No available AI key for user %s", user_id)
        return None

    async def get_active_key_count(self, user_id: str) -> int:
        """Active keys across all providers, irrespective of rate-limit state"""
        keys = await self._load_active_keys(user_id)
        return len(keys)

    async def has_available_key(self, user_id: str, now: Optional[datetime] = None) -> bool:
        """True if any provider still has a usable key for this user"""
        now = now or self.clock()
        prefs = await self.get_user_preferences(user_id)
        for provider in FALLBACK_ORDER:
            if await self._candidates(user_id, provider, prefs, now):
                return True
        return False

    # ------------------------------------------------------------------
    # Usage recording
    # ------------------------------------------------------------------

    async def record_key_usage(
        self,
        key_id: int,
        success: bool = True,
        tokens_used: int = 1,
        error_type: Optional[str] = None,
    ) -> bool:
        """
        Record the outcome of a dispatch.

        Success increments usage_count atomically and stamps last_used_at.
        A rate-limit failure stamps rate_limit_hit_at. Any other failure
        leaves the row untouched. Returns True if a row was written.
        """
        now = self.clock()
        statement = None

        if success:
            statement = (
                update(AIApiKey)
                .where(AIApiKey.id == key_id)
                .values(
                    usage_count=AIApiKey.usage_count + max(int(tokens_used), 0),
                    last_used_at=now,
                    updated_at=now,
                )
            )
        elif error_type and (error_type == RATE_LIMIT_ERROR or "429" in error_type):
            statement = (
                update(AIApiKey)
                .where(AIApiKey.id == key_id)
                .values(rate_limit_hit_at=now, updated_at=now)
            )

        written = False
        try:
            if statement is not None:
                async with self.session_factory() as db:
                    result = await db.execute(statement)
                    written = result.rowcount > 0
                if success:
                    logger.debug("Recorded %s unit(s) of usage on key %s", tokens_used, key_id)
                else:
                    logger.warning("Key %s hit a rate limit, quarantined", key_id)
        finally:
            self.clear_cache()
        return written

    async def reset_daily_usage(self, today: Optional[date] = None) -> int:
        """Zero usage and clear rate-limit marks for keys last reset before today"""
        today = today or self.clock().date()
        async with self.session_factory() as db:
            result = await db.execute(
                update(AIApiKey)
                .where(AIApiKey.daily_reset_at < today)
                .values(
                    usage_count=0,
                    daily_reset_at=today,
                    rate_limit_hit_at=None,
                )
            )
            count = result.rowcount or 0

        self.clear_cache()
        logger.info("Daily usage reset for %d AI key(s)", count)
        return count

    def clear_cache(self) -> None:
        self.cache.clear()

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    async def get_user_key_stats(self, user_id: str) -> Dict[str, Dict[str, Any]]:
        """Per-provider totals for a user's keys"""
        async with self.session_factory() as db:
            result = await db.execute(
                select(
                    AIApiKey.provider,
                    func.count(AIApiKey.id),
                    func.sum(case((AIApiKey.is_active.is_(True), 1), else_=0)),
                    func.sum(case((AIApiKey.enable_rotation.is_(True), 1), else_=0)),
                    func.coalesce(func.sum(AIApiKey.usage_count), 0),
                    func.max(AIApiKey.last_used_at),
                )
                .where(AIApiKey.user_id == user_id)
                .group_by(AIApiKey.provider)
            )
            rows = result.all()

        stats = {}
        for provider, total, active, rotation, usage, last_used in rows:
            provider = AIProvider(provider)
            stats[provider.value] = {
                "provider": provider.value,
                "name": PROVIDER_CONFIGS[provider].name,
                "total_keys": total,
                "active_keys": active,
                "rotation_enabled_keys": rotation,
                "total_usage": int(usage or 0),
                "last_used": last_used,
            }
        return stats

    # ------------------------------------------------------------------
    # Key CRUD
    # ------------------------------------------------------------------

    async def list_keys(self, user_id: str, provider: Optional[AIProvider] = None) -> List[KeySnapshot]:
        """All keys for a user, active or not, grouped by provider then newest first"""
        query = select(AIApiKey).where(AIApiKey.user_id == user_id)
        if provider is not None:
            query = query.where(AIApiKey.provider == AIProvider(provider))
        query = query.order_by(AIApiKey.provider, AIApiKey.created_at.desc(), AIApiKey.id.desc())

        async with self.session_factory() as db:
            result = await db.execute(query)
            return [KeySnapshot.from_model(row) for row in result.scalars().all()]

    async def add_key(
        self,
        user_id: str,
        provider: AIProvider,
        key_name: str,
        api_key: str,
        model_preference: Optional[str] = None,
        enable_rotation: bool = False,
        daily_limit: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> KeySnapshot:
        """
        Store a new key encrypted.

        Raises:
            ValueError: if the user already has a key with this name for the provider
        """
        provider = AIProvider(provider)
        config = PROVIDER_CONFIGS[provider]
        now = self.clock()
        row = AIApiKey(
            user_id=user_id,
            provider=provider,
            key_name=key_name,
            encrypted_key=encrypt_api_key(api_key),
            model_preference=model_preference,
            is_active=True,
            enable_rotation=enable_rotation,
            usage_count=0,
            daily_limit=daily_limit if daily_limit is not None else config.daily_limit,
            daily_reset_at=now.date(),
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        try:
            async with self.session_factory() as db:
                db.add(row)
                await db.flush()
                snapshot = KeySnapshot.from_model(row)
        except IntegrityError:
            raise ValueError("A key with this name already exists for this provider")
        finally:
            self.clear_cache()

        logger.info("Added %s key %r for user %s (%s)", provider.value, key_name, user_id, snapshot.masked_key)
        return snapshot

    async def update_key(self, user_id: str, key_id: int, **fields) -> Optional[KeySnapshot]:
        """Update editable fields on a key the user owns; None if not found"""
        editable = {
            "key_name", "model_preference", "is_active", "enable_rotation",
            "daily_limit", "notes",
        }
        values = {k: v for k, v in fields.items() if k in editable}
        if fields.get("api_key"):
            values["encrypted_key"] = encrypt_api_key(fields["api_key"])

        try:
            async with self.session_factory() as db:
                result = await db.execute(
                    select(AIApiKey).where(and_(AIApiKey.id == key_id, AIApiKey.user_id == user_id))
                )
                row = result.scalar_one_or_none()
                if row is None:
                    return None
                for name, value in values.items():
                    setattr(row, name, value)
                row.updated_at = self.clock()
                await db.flush()
                return KeySnapshot.from_model(row)
        finally:
            self.clear_cache()

    async def delete_key(self, user_id: str, key_id: int) -> bool:
        try:
            async with self.session_factory() as db:
                result = await db.execute(
                    delete(AIApiKey).where(and_(AIApiKey.id == key_id, AIApiKey.user_id == user_id))
                )
                return result.rowcount > 0
        finally:
            self.clear_cache()


# Shared instance used by the API and the campaign pipeline
key_manager = KeyManager()
