"""
Unit tests for KeyManager.
Covers selection order, rate-limit quarantine, fallback, usage accounting and daily reset.
"""

from datetime import timedelta

import pytest
from sqlalchemy import select

from outreach.models import AIApiKey, AIProvider
from outreach.services.key_manager import RATE_LIMIT_ERROR, KeyManager
from outreach.services.provider_catalog import PROVIDER_CONFIGS


async def _row(session_factory, key_id):
    async with session_factory() as db:
        result = await db.execute(select(AIApiKey).where(AIApiKey.id == key_id))
        return result.scalar_one()


@pytest.mark.unit
class TestRotation:
    """Least-used-first selection within a provider."""

    @pytest.mark.asyncio
    async def test_sequential_selections_use_distinct_keys(self, keys, make_key):
        """Equal starting usage: N selections with usage recorded visit N distinct keys."""
        ids = {await make_key() for _ in range(4)}

        chosen = []
        for _ in range(4):
            selection = await keys.get_best_available_key("user-1")
            chosen.append(selection.key.id)
            await keys.record_key_usage(selection.key.id, success=True)

        assert set(chosen) == ids
        assert len(set(chosen)) == 4

    @pytest.mark.asyncio
    async def test_least_used_key_wins(self, keys, make_key):
        await make_key(usage_count=50)
        low = await make_key(usage_count=3)
        await make_key(usage_count=10)

        selection = await keys.get_best_available_key("user-1")

        assert selection.key.id == low
        assert selection.fallback_used is False

    @pytest.mark.asyncio
    async def test_never_used_key_sorts_before_used_key(self, keys, make_key, clock):
        """Two keys with equal usage: the one never used is returned."""
        await make_key(usage_count=100, last_used_at=clock() - timedelta(hours=1))
        never_used = await make_key(usage_count=100, last_used_at=None)

        selection = await keys.get_best_available_key("user-1")

        assert selection.key.id == never_used

    @pytest.mark.asyncio
    async def test_oldest_used_breaks_ties(self, keys, make_key, clock):
        await make_key(usage_count=5, last_used_at=clock() - timedelta(minutes=5))
        oldest = await make_key(usage_count=5, last_used_at=clock() - timedelta(hours=3))

        selection = await keys.get_best_available_key("user-1")

        assert selection.key.id == oldest

    @pytest.mark.asyncio
    async def test_inactive_keys_are_ignored(self, keys, make_key):
        await make_key(is_active=False)

        assert await keys.get_best_available_key("user-1") is None
        assert await keys.get_active_key_count("user-1") == 0

    @pytest.mark.asyncio
    async def test_global_rotation_limits_to_rotation_enabled_keys(self, keys, make_key):
        await make_key(usage_count=0, enable_rotation=False)
        enabled = await make_key(usage_count=9, enable_rotation=True)
        await keys.update_preferences("user-1", enable_global_rotation=True)

        selection = await keys.get_best_available_key("user-1")

        assert selection.key.id == enabled

    @pytest.mark.asyncio
    async def test_keys_are_scoped_to_user(self, keys, make_key):
        await make_key(user_id="someone-else")

        assert await keys.get_best_available_key("user-1") is None


@pytest.mark.unit
class TestRateLimitQuarantine:
    """A rate-limited key sits out its provider's reset window."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("provider", list(AIProvider))
    async def test_window_boundaries(self, keys, make_key, clock, provider):
        hit_at = clock()
        key_id = await make_key(provider=provider, rate_limit_hit_at=hit_at)
        await keys.update_preferences("user-1", preferred_provider=provider, fallback_enabled=False)
        window = PROVIDER_CONFIGS[provider].rate_limit_window

        inside = await keys.get_best_available_key("user-1", now=hit_at + window * 0.99)
        after = await keys.get_best_available_key("user-1", now=hit_at + window * 1.01)

        assert inside is None
        assert after is not None
        assert after.key.id == key_id

    @pytest.mark.asyncio
    async def test_rate_limit_failure_stamps_key(self, keys, make_key, session_factory, clock):
        key_id = await make_key(usage_count=7)

        written = await keys.record_key_usage(key_id, success=False, tokens_used=0, error_type=RATE_LIMIT_ERROR)

        row = await _row(session_factory, key_id)
        assert written is True
        assert row.rate_limit_hit_at == clock()
        assert row.usage_count == 7
        assert await keys.get_best_available_key("user-1", preferred_provider=AIProvider.GROQ) is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error_type", ["authentication_failed", "vendor_error", "billing", None])
    async def test_other_failures_leave_key_untouched(self, keys, make_key, session_factory, error_type):
        key_id = await make_key(usage_count=7)

        written = await keys.record_key_usage(key_id, success=False, tokens_used=0, error_type=error_type)

        row = await _row(session_factory, key_id)
        assert written is False
        assert row.rate_limit_hit_at is None
        assert row.usage_count == 7

    @pytest.mark.asyncio
    async def test_cached_list_does_not_revive_quarantined_key(self, keys, make_key):
        key_id = await make_key()
        first = await keys.get_best_available_key("user-1")
        assert first.key.id == key_id

        await keys.record_key_usage(key_id, success=False, error_type=RATE_LIMIT_ERROR)

        assert await keys.get_best_available_key("user-1", preferred_provider=AIProvider.GROQ) is None


@pytest.mark.unit
class TestFallback:
    """Cross-provider fallback follows the user's preference."""

    @pytest.mark.asyncio
    async def test_fallback_used_when_preferred_provider_exhausted(self, keys, make_key, clock):
        await make_key(provider=AIProvider.GROQ, rate_limit_hit_at=clock())
        anthropic = await make_key(provider=AIProvider.ANTHROPIC, api_key="sk-ant-0123456789abcdef")

        selection = await keys.get_best_available_key("user-1")

        assert selection.key.id == anthropic
        assert selection.provider == AIProvider.ANTHROPIC
        assert selection.fallback_used is True

    @pytest.mark.asyncio
    async def test_fallback_follows_provider_order(self, keys, make_key):
        await make_key(provider=AIProvider.GOOGLE)
        openai = await make_key(provider=AIProvider.OPENAI)

        selection = await keys.get_best_available_key("user-1", preferred_provider=AIProvider.GROQ)

        assert selection.key.id == openai

    @pytest.mark.asyncio
    async def test_fallback_disabled_returns_none(self, keys, make_key):
        await make_key(provider=AIProvider.OPENAI)
        await keys.update_preferences("user-1", fallback_enabled=False)

        assert await keys.get_best_available_key("user-1", preferred_provider=AIProvider.GROQ) is None

    @pytest.mark.asyncio
    async def test_explicit_provider_overrides_preference(self, keys, make_key):
        await make_key(provider=AIProvider.GROQ)
        openai = await make_key(provider=AIProvider.OPENAI)

        selection = await keys.get_best_available_key("user-1", preferred_provider=AIProvider.OPENAI)

        assert selection.key.id == openai
        assert selection.fallback_used is False

    @pytest.mark.asyncio
    async def test_has_available_key(self, keys, make_key, clock):
        assert await keys.has_available_key("user-1") is False

        await make_key(provider=AIProvider.GOOGLE, rate_limit_hit_at=clock())
        # row inserted behind the manager's back
        keys.clear_cache()
        assert await keys.has_available_key("user-1") is False

        clock.advance(hours=25)
        assert await keys.has_available_key("user-1") is True


@pytest.mark.unit
class TestUsageAccounting:
    """usage_count only grows, except at the daily reset."""

    @pytest.mark.asyncio
    async def test_success_increments_usage_and_stamps_last_used(self, keys, make_key, session_factory, clock):
        key_id = await make_key(usage_count=2)

        await keys.record_key_usage(key_id, success=True)
        await keys.record_key_usage(key_id, success=True, tokens_used=3)

        row = await _row(session_factory, key_id)
        assert row.usage_count == 6
        assert row.last_used_at == clock()

    @pytest.mark.asyncio
    async def test_daily_limit_is_advisory(self, keys, make_key, session_factory):
        """A key at its daily limit is still selected while it has no rate-limit mark."""
        key_id = await make_key(usage_count=14399, daily_limit=14400)

        await keys.record_key_usage(key_id, success=True)
        selection = await keys.get_best_available_key("user-1")

        assert (await _row(session_factory, key_id)).usage_count == 14400
        assert selection.key.id == key_id

    @pytest.mark.asyncio
    async def test_reset_zeroes_usage_and_clears_rate_limit(self, keys, make_key, session_factory, clock, yesterday):
        key_id = await make_key(usage_count=42, rate_limit_hit_at=clock(), daily_reset_at=yesterday)

        reset = await keys.reset_daily_usage()

        row = await _row(session_factory, key_id)
        assert reset == 1
        assert row.usage_count == 0
        assert row.rate_limit_hit_at is None
        assert row.daily_reset_at == clock().date()

    @pytest.mark.asyncio
    async def test_reset_is_idempotent_within_a_day(self, keys, make_key, session_factory, yesterday):
        key_id = await make_key(usage_count=42, daily_reset_at=yesterday)

        assert await keys.reset_daily_usage() == 1
        once = await _row(session_factory, key_id)
        assert await keys.reset_daily_usage() == 0
        twice = await _row(session_factory, key_id)

        assert (once.usage_count, once.daily_reset_at, once.rate_limit_hit_at) == (
            twice.usage_count, twice.daily_reset_at, twice.rate_limit_hit_at,
        )

    @pytest.mark.asyncio
    async def test_reset_skips_keys_already_reset_today(self, keys, make_key, session_factory):
        key_id = await make_key(usage_count=42)

        assert await keys.reset_daily_usage() == 0
        assert (await _row(session_factory, key_id)).usage_count == 42

    @pytest.mark.asyncio
    async def test_writes_clear_cache(self, keys, make_key, cache):
        key_id = await make_key()
        await keys.get_best_available_key("user-1")
        assert len(cache) > 0

        await keys.record_key_usage(key_id, success=True)

        assert len(cache) == 0


@pytest.mark.unit
class TestPreferences:

    @pytest.mark.asyncio
    async def test_defaults_created_on_first_read(self, keys):
        prefs = await keys.get_user_preferences("user-1")

        assert prefs.preferred_provider == AIProvider.GROQ
        assert prefs.fallback_enabled is True
        assert prefs.enable_global_rotation is False

    @pytest.mark.asyncio
    async def test_partial_update(self, keys):
        await keys.update_preferences("user-1", preferred_provider=AIProvider.OPENAI)
        prefs = await keys.update_preferences("user-1", fallback_enabled=False)

        assert prefs.preferred_provider == AIProvider.OPENAI
        assert prefs.fallback_enabled is False
        assert (await keys.get_user_preferences("user-1")).fallback_enabled is False


@pytest.mark.unit
class TestKeyCrud:

    @pytest.mark.asyncio
    async def test_add_key_encrypts_and_masks(self, keys, session_factory):
        snapshot = await keys.add_key("user-1", AIProvider.OPENAI, "primary", "sk-abcdefghijklmnop123456")

        row = await _row(session_factory, snapshot.id)
        assert row.encrypted_key != "sk-abcdefghijklmnop123456"
        assert snapshot.decrypt() == "sk-abcdefghijklmnop123456"
        assert snapshot.masked_key == "sk-...123456"
        assert snapshot.daily_limit == PROVIDER_CONFIGS[AIProvider.OPENAI].daily_limit

    @pytest.mark.asyncio
    async def test_duplicate_name_rejected(self, keys):
        await keys.add_key("user-1", AIProvider.GROQ, "main", "gsk_aaaaaaaaaaaaaaaa")

        with pytest.raises(ValueError, match="already exists"):
            await keys.add_key("user-1", AIProvider.GROQ, "main", "gsk_bbbbbbbbbbbbbbbb")

    @pytest.mark.asyncio
    async def test_update_key_reencrypts_secret(self, keys):
        snapshot = await keys.add_key("user-1", AIProvider.GROQ, "main", "gsk_aaaaaaaaaaaaaaaa")

        updated = await keys.update_key("user-1", snapshot.id, api_key="gsk_cccccccccccccccc", is_active=False)

        assert updated.decrypt() == "gsk_cccccccccccccccc"
        assert updated.is_active is False

    @pytest.mark.asyncio
    async def test_update_and_delete_require_ownership(self, keys):
        snapshot = await keys.add_key("user-1", AIProvider.GROQ, "main", "gsk_aaaaaaaaaaaaaaaa")

        assert await keys.update_key("user-2", snapshot.id, key_name="stolen") is None
        assert await keys.delete_key("user-2", snapshot.id) is False
        assert await keys.delete_key("user-1", snapshot.id) is True
        assert await keys.list_keys("user-1") == []

    @pytest.mark.asyncio
    async def test_stats_per_provider(self, keys, make_key):
        await make_key(provider=AIProvider.GROQ, usage_count=5, enable_rotation=True)
        await make_key(provider=AIProvider.GROQ, usage_count=7, is_active=False)
        await make_key(provider=AIProvider.OPENAI, usage_count=1)

        stats = await keys.get_user_key_stats("user-1")

        assert stats["groq"]["total_keys"] == 2
        assert stats["groq"]["active_keys"] == 1
        assert stats["groq"]["rotation_enabled_keys"] == 1
        assert stats["groq"]["total_usage"] == 12
        assert stats["openai"]["name"] == PROVIDER_CONFIGS[AIProvider.OPENAI].name
        assert "anthropic" not in stats
