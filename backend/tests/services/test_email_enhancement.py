"""Tests for template personalization and AI email enhancement."""

from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from outreach.models import AIProvider, AIRule
from outreach.services.ai_service import AIErrorKind, AIResult, AIService
from outreach.services.email_enhancement import (
    DEFAULT_AI_RULES,
    DEFAULT_TEMPLATE_BODY,
    DEFAULT_TEMPLATE_SUBJECT,
    FALLBACK_SUGGESTIONS,
    Contact,
    EmailEnhancementService,
    EmailGenerationOptions,
    build_email_prompt,
    parse_email_content,
    parse_enhanced_email,
    personalize_template,
)


@pytest.fixture
def mock_ai():
    ai = MagicMock(spec=AIService)
    ai.generate_content = AsyncMock()
    return ai


@pytest.fixture
def enhancer(mock_ai, session_factory):
    return EmailEnhancementService(ai=mock_ai, session_factory=session_factory)


@pytest.mark.unit
class TestPersonalizeTemplate:

    def test_missing_fields_use_defaults(self):
        subject, body = personalize_template(
            DEFAULT_TEMPLATE_SUBJECT, DEFAULT_TEMPLATE_BODY, Contact(email="a@example.com"),
        )

        assert subject == "Application for Software Developer Opportunity at your company"
        assert body.startswith("Hi there,")
        assert "[CompanyName]" not in body
        assert "[Role]" not in body

    def test_contact_fields_substituted_everywhere(self):
        contact = Contact(email="a@example.com", company_name="Acme", role="Data Engineer", recruiter_name="Dana")

        subject, body = personalize_template(
            "[Role] at [CompanyName] for [RecruiterName]",
            "Hi [RecruiterName], [CompanyName] and [CompanyName] again. [Role].",
            contact,
        )

        assert subject == "Data Engineer at Acme for Dana"
        assert body == "Hi Dana, Acme and Acme again. Data Engineer."

    def test_recruiter_falls_back_to_contact_name(self):
        _, body = personalize_template("", "Hi [RecruiterName]", {"email": "a@example.com", "name": "Sam"})

        assert body == "Hi Sam"


@pytest.mark.unit
class TestParsing:

    def test_parse_enhanced_email(self):
        subject, body = parse_enhanced_email(
            "Subject: Better subject\nBody: Line one\nLine two\n", "old subject", "old body",
        )

        assert subject == "Better subject"
        assert body == "Line one\nLine two"

    def test_parse_enhanced_email_keeps_missing_parts(self):
        subject, body = parse_enhanced_email("Body: only a body", "old subject", "old body")

        assert subject == "old subject"
        assert body == "only a body"

    def test_parse_email_content_subject_line_variant(self):
        parsed = parse_email_content("Subject line: Hello\n\nBody:\nHi Sam,\nThanks")

        assert parsed["subject"] == "Hello"
        assert parsed["body"] == "Hi Sam,\nThanks"

    def test_parse_email_content_without_subject(self):
        parsed = parse_email_content("Just a body")

        assert parsed == {"subject": None, "body": "Just a body"}

    def test_build_email_prompt_mentions_options(self):
        prompt = build_email_prompt(
            "Sam", "Acme", "CTO", "hiring",
            EmailGenerationOptions(tone="friendly", length="short", call_to_action="Book a call"),
        )

        assert "Generate a friendly short email" in prompt
        assert "Include this call to action: Book a call" in prompt


@pytest.mark.unit
class TestEnhanceEmail:

    @pytest.mark.asyncio
    async def test_success(self, enhancer, mock_ai):
        mock_ai.generate_content.return_value = AIResult(
            success=True, content="Subject: New\nBody: Rewritten", provider=AIProvider.GROQ,
        )

        result = await enhancer.enhance_email("user-1", "Old", "Original", company_name="Acme")

        assert result.ai_enhanced is True
        assert (result.subject, result.body) == ("New", "Rewritten")
        assert result.provider == AIProvider.GROQ
        prompt = mock_ai.generate_content.call_args.args[0]
        assert prompt.startswith(DEFAULT_AI_RULES)
        assert "Company: Acme" in prompt

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "kind,error",
        [
            (AIErrorKind.NO_ACTIVE_KEYS, "no API keys available"),
            (AIErrorKind.ALL_KEYS_RATE_LIMITED, "no API keys available"),
            (AIErrorKind.RATE_LIMITED, "AI rate limit reached"),
            (AIErrorKind.BILLING, "AI quota exceeded"),
            (AIErrorKind.NETWORK, "AI enhancement failed"),
            (AIErrorKind.AUTH_INVALID, "AI enhancement failed"),
        ],
    )
    async def test_failure_keeps_original(self, enhancer, mock_ai, kind, error):
        mock_ai.generate_content.return_value = AIResult(success=False, error="x", error_kind=kind)

        result = await enhancer.enhance_email("user-1", "Old", "Original", company_name="Acme")

        assert result.ai_enhanced is False
        assert (result.subject, result.body) == ("Old", "Original")
        assert result.error == error
        assert result.error_kind == kind

    @pytest.mark.asyncio
    async def test_latest_active_rule_wins(self, enhancer, mock_ai, session_factory):
        now = datetime(2026, 3, 1)
        async with session_factory() as db:
            db.add(AIRule(user_id="user-1", name="old", rules_text="OLD RULES", is_active=True, created_at=now))
            db.add(AIRule(user_id="user-1", name="new", rules_text="NEW RULES", is_active=True,
                          created_at=now + timedelta(days=1)))
            db.add(AIRule(user_id="user-1", name="off", rules_text="DISABLED", is_active=False,
                          created_at=now + timedelta(days=2)))

        assert await enhancer.get_active_ai_rules("user-1") == "NEW RULES"
        assert await enhancer.get_active_ai_rules("user-2") == DEFAULT_AI_RULES


@pytest.mark.unit
class TestGenerationHelpers:

    @pytest.mark.asyncio
    async def test_generate_email_success(self, enhancer, mock_ai):
        mock_ai.generate_content.return_value = AIResult(
            success=True, content="Subject: Hi Acme\nBody: Hello Sam", provider=AIProvider.OPENAI, model="gpt-4o-mini",
        )

        result = await enhancer.generate_email("user-1", "Sam", "Acme", "CTO", "hiring")

        assert result.success is True
        assert result.subject == "Hi Acme"
        assert result.body == "Hello Sam"
        assert result.provider == "openai"

    @pytest.mark.asyncio
    async def test_generate_email_fallback(self, enhancer, mock_ai):
        mock_ai.generate_content.return_value = AIResult(
            success=False, error="nope", error_kind=AIErrorKind.NO_ACTIVE_KEYS,
        )

        result = await enhancer.generate_email("user-1", "Sam", "Acme", "CTO", "hiring")

        assert result.success is False
        assert result.provider == "fallback"
        assert result.body.startswith("Hi Sam,")
        assert "Acme" in result.body

    @pytest.mark.asyncio
    async def test_subject_variations(self, enhancer, mock_ai):
        mock_ai.generate_content.return_value = AIResult(success=True, content="One\n\nTwo\nThree\nFour")

        assert await enhancer.generate_subject_variations("user-1", "Hello", count=3) == ["One", "Two", "Three"]

    @pytest.mark.asyncio
    async def test_subject_variations_fallback(self, enhancer, mock_ai):
        mock_ai.generate_content.return_value = AIResult(success=False, error_kind=AIErrorKind.NETWORK)

        variations = await enhancer.generate_subject_variations("user-1", "Hello", count=2)

        assert variations == ["Re: Hello", "Quick question about hello"]

    @pytest.mark.asyncio
    async def test_analyze_performance(self, enhancer, mock_ai):
        mock_ai.generate_content.return_value = AIResult(
            success=True, content="Here you go:\n1. Shorter subject\n2. Clear ask\nThanks",
        )

        suggestions = await enhancer.analyze_email_performance("user-1", "body", 12.5, 2.0)

        assert suggestions == ["1. Shorter subject", "2. Clear ask"]

    @pytest.mark.asyncio
    async def test_analyze_performance_fallback(self, enhancer, mock_ai):
        mock_ai.generate_content.return_value = AIResult(success=False, error_kind=AIErrorKind.VENDOR_ERROR)

        assert await enhancer.analyze_email_performance("user-1", "body", 1.0, 0.0) == FALLBACK_SUGGESTIONS
