"""
Email Enhancement Layer
Template personalization plus AI rewrite, generation and analysis helpers
built on the AI request facade.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Union

from sqlalchemy import select

from outreach.models import AIProvider, AIRule
from outreach.services.ai_service import AIErrorKind, AIService, ai_service as default_ai_service
from outreach.services.key_manager import SessionFactory
from outreach.utils.database import get_db_context

logger = logging.getLogger(__name__)

DEFAULT_ROLE = "Software Developer"
DEFAULT_COMPANY = "your company"
DEFAULT_RECRUITER = "there"

DEFAULT_AI_RULES = """You are an email enhancement assistant. Your job is to improve job application emails while following these strict rules:

RULES:
1. NEVER add new content, projects, or information not already present
2. ONLY fix grammar, spelling, and awkward phrasing from placeholder replacements
3. Keep the same tone, style, and personality
4. Maintain all existing links, projects, and specific details exactly as they are
5. Do not make the email longer - keep it concise
6. Do not change the core message or structure
7. Only improve readability and flow

WHAT TO FIX:
- Grammar errors from placeholder replacements
- Awkward transitions between sentences
- Minor spelling mistakes
- Improve sentence flow without changing meaning

WHAT NOT TO DO:
- Add new sentences or paragraphs
- Change project descriptions
- Add new qualifications or skills
- Modify links or contact information
- Change the greeting or closing
- Add buzzwords or corporate speak

Keep the email authentic and personal. Only make minimal improvements."""

DEFAULT_TEMPLATE_NAME = "Default Application Template"
DEFAULT_TEMPLATE_SUBJECT = "Application for [Role] Opportunity at [CompanyName]"
DEFAULT_TEMPLATE_BODY = """Hi [RecruiterName],

I came across [CompanyName] and would love to apply for the [Role] role on your team.

I focus on clean code, performance, and building real-world products with modern tools. My portfolio and resume are attached.

Happy to connect if this aligns with what you're looking for at [CompanyName].

Looking forward to your thoughts"""

_SUBJECT_RE = re.compile(r"Subject:\s*(.+)")
_BODY_RE = re.compile(r"Body:\s*([\s\S]+)")


@dataclass
class Contact:
    """A campaign recipient and the fields templates can reference"""
    email: str
    name: Optional[str] = None
    company_name: Optional[str] = None
    role: Optional[str] = None
    recruiter_name: Optional[str] = None
    id: Optional[int] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Contact":
        return cls(
            email=data["email"],
            name=data.get("name"),
            company_name=data.get("company_name"),
            role=data.get("role"),
            recruiter_name=data.get("recruiter_name"),
            id=data.get("id"),
        )

    @property
    def effective_role(self) -> str:
        return self.role or DEFAULT_ROLE

    @property
    def effective_company(self) -> str:
        return self.company_name or DEFAULT_COMPANY

    @property
    def effective_recruiter(self) -> str:
        return self.recruiter_name or self.name or DEFAULT_RECRUITER


@dataclass
class EnhancementResult:
    subject: str
    body: str
    ai_enhanced: bool
    message: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[AIErrorKind] = None
    provider: Optional[AIProvider] = None


@dataclass
class EmailGenerationOptions:
    subject: Optional[str] = None
    tone: str = "professional"  # professional, casual, friendly, formal
    length: str = "medium"  # short, medium, long
    include_personalization: bool = True
    call_to_action: Optional[str] = None
    additional_context: Optional[str] = None


@dataclass
class EmailGenerationResult:
    subject: str
    body: str
    provider: str
    model: str
    success: bool
    error: Optional[str] = None
    error_kind: Optional[AIErrorKind] = None


def personalize_template(subject: str, body: str, contact: Union[Contact, Mapping[str, Any]]) -> tuple:
    """Substitute [Role], [CompanyName] and [RecruiterName] with contact data or defaults"""
    if not isinstance(contact, Contact):
        contact = Contact.from_mapping(contact)

    replacements = {
        "[Role]": contact.effective_role,
        "[CompanyName]": contact.effective_company,
        "[RecruiterName]": contact.effective_recruiter,
    }
    for placeholder, value in replacements.items():
        subject = subject.replace(placeholder, value)
        body = body.replace(placeholder, value)
    return subject, body


def build_enhancement_prompt(
    rules: str,
    subject: str,
    body: str,
    company_name: str,
    position: Optional[str] = None,
    recruiter_name: Optional[str] = None,
) -> str:
    return f"""{rules}

Company: {company_name}
Position: {position or DEFAULT_ROLE}
Recruiter: {recruiter_name or DEFAULT_RECRUITER}

Email to enhance:
Subject: {subject}
Body: {body}

Please enhance this email following the rules above. Return the result in this exact format:
Subject: [enhanced subject]
Body: [enhanced body]"""


def parse_enhanced_email(content: str, subject: str, body: str) -> tuple:
    """Pull Subject:/Body: out of a model reply, keeping originals for missing parts"""
    subject_match = _SUBJECT_RE.search(content)
    body_match = _BODY_RE.search(content)
    if subject_match:
        subject = subject_match.group(1).strip()
    if body_match:
        body = body_match.group(1).strip()
    return subject, body


def build_email_prompt(
    recipient_name: str,
    recipient_company: str,
    recipient_role: str,
    campaign_context: str,
    options: EmailGenerationOptions,
) -> str:
    personalization = (
        "Include personalization based on recipient details"
        if options.include_personalization
        else "Keep generic"
    )
    call_to_action = (
        f"Include this call to action: {options.call_to_action}"
        if options.call_to_action
        else "Include a clear call to action"
    )
    additional = f"Additional Context: {options.additional_context}" if options.additional_context else ""

    return f"""Generate a {options.tone} {options.length} email for a cold outreach campaign.

Recipient Details:
- Name: {recipient_name}
- Company: {recipient_company}
- Role: {recipient_role}

Campaign Context: {campaign_context}

Requirements:
- Tone: {options.tone}
- Length: {options.length}
- {personalization}
- {call_to_action}
- Make it engaging and professional
- Avoid being too salesy or pushy

{additional}

Format the response as:
Subject: [email subject]
Body: [email body]

The email should be ready to send without any placeholders."""


def parse_email_content(content: str) -> Dict[str, Optional[str]]:
    """Split a generated email into subject and body, tolerating loose formatting"""
    lines = content.strip().split("\n")
    subject = None

    subject_index = next(
        (
            i for i, line in enumerate(lines)
            if line.lower().startswith("subject:") or line.lower().startswith("subject line:")
        ),
        None,
    )
    if subject_index is not None:
        subject = re.sub(r"^subject( line)?:?\s*", "", lines[subject_index], flags=re.IGNORECASE).strip()
        body = "\n".join(lines[subject_index + 1:]).strip()
    else:
        body = content.strip()

    marker = body.lower().find("body:")
    if marker != -1:
        body = body[marker + len("body:"):].strip()

    return {"subject": subject, "body": body}


def get_fallback_email_content(recipient_name: str, recipient_company: str) -> str:
    return f"""Hi {recipient_name},

I hope this email finds you well. I came across {recipient_company} and was impressed by your work in the industry.

I'd love to connect and discuss how we might be able to collaborate or support your goals.

Would you be open to a brief conversation this week?

Best regards"""


FALLBACK_SUGGESTIONS = [
    "1. Test different subject lines to improve open rates",
    "2. Add more personalization based on recipient research",
    "3. Strengthen the call-to-action with specific next steps",
    "4. Consider shortening the email for better engagement",
    "5. Follow up with a different angle if no response",
]


class EmailEnhancementService:
    """AI-backed email rewriting for single sends and campaigns"""

    def __init__(
        self,
        ai: Optional[AIService] = None,
        session_factory: SessionFactory = get_db_context,
    ):
        self.ai = ai or default_ai_service
        self.session_factory = session_factory

    async def get_active_ai_rules(self, user_id: str) -> str:
        """Latest active rule text for the user, or the built-in rules"""
        async with self.session_factory() as db:
            result = await db.execute(
                select(AIRule.rules_text)
                .where(AIRule.user_id == user_id, AIRule.is_active.is_(True))
                .order_by(AIRule.created_at.desc(), AIRule.id.desc())
                .limit(1)
            )
            rules = result.scalar_one_or_none()
        return rules or DEFAULT_AI_RULES

    async def enhance_email(
        self,
        user_id: str,
        subject: str,
        body: str,
        company_name: str,
        position: Optional[str] = None,
        recruiter_name: Optional[str] = None,
        preferred_provider: Optional[AIProvider] = None,
    ) -> EnhancementResult:
        """
        Rewrite a personalized email with the user's rules.

        On any AI failure the original subject and body come back with
        ai_enhanced=False and the failure classified in error_kind.
        """
        rules = await self.get_active_ai_rules(user_id)
        prompt = build_enhancement_prompt(rules, subject, body, company_name, position, recruiter_name)

        result = await self.ai.generate_content(prompt, user_id, preferred_provider=preferred_provider)

        if result.success and result.content:
            new_subject, new_body = parse_enhanced_email(result.content, subject, body)
            return EnhancementResult(
                subject=new_subject,
                body=new_body,
                ai_enhanced=True,
                message="Email enhanced successfully",
                provider=result.provider,
            )

        kind = result.error_kind if not result.success else AIErrorKind.VENDOR_ERROR
        logger.info("Email enhancement for user %s failed: %s", user_id, result.error or "empty response")

        if kind in (AIErrorKind.NO_ACTIVE_KEYS, AIErrorKind.ALL_KEYS_RATE_LIMITED):
            error, message = "no API keys available", result.error
        elif kind == AIErrorKind.RATE_LIMITED:
            error, message = "AI rate limit reached", "Rate limit exceeded, using original template"
        elif kind == AIErrorKind.BILLING:
            error, message = "AI quota exceeded", "Quota limit reached, using original template"
        else:
            error, message = "AI enhancement failed", "AI temporarily unavailable, using original template"

        return EnhancementResult(
            subject=subject,
            body=body,
            ai_enhanced=False,
            message=message,
            error=error,
            error_kind=kind,
            provider=result.provider,
        )

    async def generate_email(
        self,
        user_id: str,
        recipient_name: str,
        recipient_company: str,
        recipient_role: str,
        campaign_context: str,
        options: Optional[EmailGenerationOptions] = None,
    ) -> EmailGenerationResult:
        """Generate a cold email from scratch; falls back to a static template"""
        options = options or EmailGenerationOptions()
        prompt = build_email_prompt(recipient_name, recipient_company, recipient_role, campaign_context, options)

        result = await self.ai.generate_content(prompt, user_id)
        if result.success and result.content:
            parsed = parse_email_content(result.content)
            return EmailGenerationResult(
                subject=parsed["subject"] or options.subject or "Follow up",
                body=parsed["body"],
                provider=result.provider.value if result.provider else "unknown",
                model=result.model or "unknown",
                success=True,
            )

        return EmailGenerationResult(
            subject=options.subject or "Follow up",
            body=get_fallback_email_content(recipient_name, recipient_company),
            provider="fallback",
            model="template",
            success=False,
            error=result.error or "Unknown error",
            error_kind=result.error_kind,
        )

    async def generate_subject_variations(self, user_id: str, original_subject: str, count: int = 3) -> List[str]:
        prompt = f"""Generate {count} alternative subject lines for this email subject: "{original_subject}"

Requirements:
- Keep the same tone and intent
- Make them engaging and professional
- Vary the approach (question, benefit, curiosity, etc.)
- Keep them concise (under 60 characters)

Return only the subject lines, one per line, without numbering or bullets."""

        result = await self.ai.generate_content(prompt, user_id)
        if result.success and result.content:
            lines = [line.strip() for line in result.content.strip().split("\n")]
            variations = [line for line in lines if line][:count]
            if variations:
                return variations

        return [
            f"Re: {original_subject}",
            f"Quick question about {original_subject.lower()}",
            f"Following up: {original_subject}",
        ][:count]

    async def analyze_email_performance(
        self,
        user_id: str,
        email_content: str,
        open_rate: float,
        response_rate: float,
    ) -> List[str]:
        prompt = f"""Analyze this email's performance and suggest improvements:

Email Content:
{email_content}

Performance Metrics:
- Open Rate: {open_rate}%
- Response Rate: {response_rate}%

Provide 3-5 specific, actionable suggestions to improve the email's performance. Focus on:
- Subject line optimization
- Content structure and flow
- Call-to-action effectiveness
- Personalization opportunities
- Timing and frequency considerations

Return suggestions as a numbered list."""

        result = await self.ai.generate_content(prompt, user_id)
        if result.success and result.content:
            lines = [line.strip() for line in result.content.strip().split("\n")]
            suggestions = [line for line in lines if re.match(r"^\d+\.", line)]
            if suggestions:
                return suggestions

        return list(FALLBACK_SUGGESTIONS)


email_enhancement_service = EmailEnhancementService()
