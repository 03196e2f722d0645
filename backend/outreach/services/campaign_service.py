"""
Campaign Progress Pipeline
Serially personalizes, optionally AI-enhances, and sends one email per contact,
publishing a progress snapshot after every step.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from sqlalchemy import and_, select

from outreach.config import get_settings
from outreach.models import AIProvider, Attachment, EmailSend, EmailTemplate, SendStatus
from outreach.services.ai_service import AIErrorKind
from outreach.services.email_enhancement import (
    DEFAULT_TEMPLATE_BODY,
    DEFAULT_TEMPLATE_NAME,
    DEFAULT_TEMPLATE_SUBJECT,
    Contact,
    EmailEnhancementService,
    email_enhancement_service,
    personalize_template,
)
from outreach.services.key_manager import KeyManager, SessionFactory, key_manager as default_key_manager
from outreach.services.mail_transport import (
    MailTransportError,
    OutgoingAttachment,
    OutgoingEmail,
    SmtpMailTransport,
    SmtpSettings,
    text_to_html,
)
from outreach.services.progress_store import ProgressStore, get_progress_store
from outreach.services.storage_service import (
    ResolvedAttachment,
    StorageError,
    StorageService,
    get_storage_service,
)
from outreach.utils.database import get_db_context

logger = logging.getLogger(__name__)

SKIP_AI_EXHAUSTED = "AI quota exhausted"
SKIP_NO_KEYS = "no API keys available"
SKIP_AI_FAILED = "AI enhancement failed"


@dataclass
class CampaignTemplate:
    subject: str
    body: str
    name: Optional[str] = None

    @classmethod
    def default(cls) -> "CampaignTemplate":
        return cls(subject=DEFAULT_TEMPLATE_SUBJECT, body=DEFAULT_TEMPLATE_BODY, name=DEFAULT_TEMPLATE_NAME)


@dataclass
class ContactOutcome:
    contact: Contact
    status: SendStatus
    subject: str
    body: str
    error: Optional[str] = None
    ai_enhanced: bool = False
    provider: Optional[AIProvider] = None


@dataclass
class CampaignSummary:
    session_id: str
    total: int
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    ai_enhanced: int = 0
    cancelled: bool = False
    error: Optional[str] = None
    outcomes: List[ContactOutcome] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return self.sent + self.failed + self.skipped

    def add(self, outcome: ContactOutcome) -> None:
        self.outcomes.append(outcome)
        if outcome.status == SendStatus.SENT:
            self.sent += 1
        elif outcome.status == SendStatus.FAILED:
            self.failed += 1
        else:
            self.skipped += 1
        if outcome.ai_enhanced:
            self.ai_enhanced += 1


@dataclass
class _RunState:
    ai_exhausted: bool = False


def estimate_time_remaining(completed: int, total: int, elapsed_seconds: float) -> str:
    """elapsed / completed * remaining, as a short human string"""
    if completed <= 0:
        return "Calculating..."
    remaining = (total - completed) * (elapsed_seconds / completed)
    if remaining < 60:
        return f"~{round(remaining)} seconds remaining"
    return f"~{round(remaining / 60)} minutes remaining"


class CampaignService:
    """Runs bulk email campaigns and reports their progress"""

    def __init__(
        self,
        enhancer: Optional[EmailEnhancementService] = None,
        keys: Optional[KeyManager] = None,
        progress: Optional[ProgressStore] = None,
        storage: Optional[StorageService] = None,
        session_factory: SessionFactory = get_db_context,
        transport_factory: Callable[[SmtpSettings], Any] = SmtpMailTransport,
        send_delay: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.enhancer = enhancer or email_enhancement_service
        self.keys = keys or default_key_manager
        self.progress = progress or get_progress_store()
        self.storage = storage or get_storage_service()
        self.session_factory = session_factory
        self.transport_factory = transport_factory
        self.send_delay = get_settings().CAMPAIGN_SEND_DELAY_SECONDS if send_delay is None else send_delay
        self.clock = clock
        self._cancelled: set = set()
        self._tasks: Dict[str, asyncio.Task] = {}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start_campaign(
        self,
        user_id: str,
        session_id: str,
        contacts: Sequence[Union[Contact, Mapping[str, Any]]],
        template: CampaignTemplate,
        transport_config: SmtpSettings,
        use_ai: bool = False,
        attachment_ids: Iterable[int] = (),
    ) -> asyncio.Task:
        """Initialize the session and run the campaign in the background"""
        self._publish(session_id, self._snapshot(
            status="initializing",
            total=len(contacts),
            summary=CampaignSummary(session_id=session_id, total=len(contacts)),
            current="Starting campaign...",
            logs=[f"Starting bulk email campaign for {len(contacts)} contacts"],
            started=self.clock(),
        ))
        task = asyncio.create_task(
            self.run_campaign(
                user_id, session_id, contacts, template, transport_config,
                use_ai=use_ai, attachment_ids=attachment_ids,
            )
        )
        self._tasks[session_id] = task
        task.add_done_callback(lambda _: self._tasks.pop(session_id, None))
        return task

    def cancel(self, session_id: str) -> bool:
        """Ask a running campaign to stop before its next contact"""
        if session_id not in self._tasks:
            return False
        self._cancelled.add(session_id)
        logger.info("Cancellation requested for campaign %s", session_id)
        return True

    def is_running(self, session_id: str) -> bool:
        return session_id in self._tasks

    async def get_default_template(self, user_id: str) -> CampaignTemplate:
        """The user's default template, else the built-in one"""
        async with self.session_factory() as db:
            result = await db.execute(
                select(EmailTemplate)
                .where(and_(EmailTemplate.user_id == user_id, EmailTemplate.is_default.is_(True)))
                .order_by(EmailTemplate.updated_at.desc())
                .limit(1)
            )
            row = result.scalar_one_or_none()
            if row is not None:
                return CampaignTemplate(subject=row.subject, body=row.body, name=row.name)
        return CampaignTemplate.default()

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def run_campaign(
        self,
        user_id: str,
        session_id: str,
        contacts: Sequence[Union[Contact, Mapping[str, Any]]],
        template: CampaignTemplate,
        transport_config: SmtpSettings,
        use_ai: bool = False,
        attachment_ids: Iterable[int] = (),
    ) -> CampaignSummary:
        """
        Process every contact in order and publish progress.

        Per-contact AI and transport failures become skipped/failed outcomes.
        Whatever happens, exactly one completed snapshot is published, and it
        is the last one for the session.
        """
        total = len(contacts)
        summary = CampaignSummary(session_id=session_id, total=total)
        state = _RunState()
        logs: List[str] = [f"Starting bulk email campaign for {total} contacts"]
        started = self.clock()

        logger.info(
            "Campaign %s for user %s: %d contacts, AI %s",
            session_id, user_id, total, "enabled" if use_ai else "disabled",
        )
        self._publish(session_id, self._snapshot(
            status="initializing", total=total, summary=summary,
            current="Starting campaign...", logs=logs, started=started,
        ))

        try:
            contacts = [c if isinstance(c, Contact) else Contact.from_mapping(c) for c in contacts]
            attachments = await self.storage.get_user_attachments(user_id, attachment_ids)
            transport = self.transport_factory(transport_config)

            for index, contact in enumerate(contacts, start=1):
                if session_id in self._cancelled:
                    summary.cancelled = True
                    logs.append(f"Campaign cancelled after {index - 1}/{total} contacts")
                    logger.info("Campaign %s cancelled at %d/%d", session_id, index - 1, total)
                    break

                logs.append(f"[{index}/{total}] Processing {contact.email}")
                self._publish(session_id, self._snapshot(
                    status="processing", total=total, summary=summary,
                    current=f"Processing contact {index}/{total}: {contact.email}",
                    logs=logs, started=started, percent_of=index - 1,
                ))

                outcome = await self._process_contact(
                    user_id, contact, template, transport, attachments, use_ai, state,
                )
                summary.add(outcome)
                await self._record_send(user_id, session_id, outcome)

                if outcome.status == SendStatus.SENT:
                    line = f"Sent to {contact.email}" + (" (AI enhanced)" if outcome.ai_enhanced else "")
                elif outcome.status == SendStatus.FAILED:
                    line = f"Failed to send to {contact.email}: {outcome.error}"
                else:
                    line = f"Skipped {contact.email}: {outcome.error}"
                logs.append(line)

                self._publish(session_id, self._snapshot(
                    status="processing", total=total, summary=summary,
                    current=line, logs=logs, started=started, percent_of=index,
                ))

                if index < total:
                    await asyncio.sleep(self.send_delay)
        except Exception as e:
            summary.error = str(e)
            logs.append(f"Campaign aborted: {e}")
            logger.exception("Campaign %s aborted", session_id)
        finally:
            self._cancelled.discard(session_id)
            logs.append(
                f"Campaign completed: {summary.sent} sent, {summary.failed} failed, "
                f"{summary.skipped} skipped"
            )
            self._publish(session_id, self._snapshot(
                status="completed", total=total, summary=summary,
                current="Campaign completed", logs=logs, started=started,
                percent_of=total, completed=True,
            ))
            logger.info(
                "Campaign %s finished: %d sent, %d failed, %d skipped, %d AI enhanced",
                session_id, summary.sent, summary.failed, summary.skipped, summary.ai_enhanced,
            )

        return summary

    async def send_email(
        self,
        user_id: str,
        contact: Union[Contact, Mapping[str, Any]],
        template: CampaignTemplate,
        transport_config: SmtpSettings,
        use_ai: bool = False,
        attachment_ids: Iterable[int] = (),
    ) -> ContactOutcome:
        """
        Send one email outside any campaign.

        Goes through the same personalize, enhance and send steps as a
        campaign contact, and is logged without a session id.
        """
        if not isinstance(contact, Contact):
            contact = Contact.from_mapping(contact)
        attachments = await self.storage.get_user_attachments(user_id, attachment_ids)
        outcome = await self._process_contact(
            user_id, contact, template, self.transport_factory(transport_config), attachments, use_ai, _RunState(),
        )
        await self._record_send(user_id, None, outcome)
        logger.info("Single email to %s for user %s: %s", contact.email, user_id, outcome.status.value)
        return outcome

    async def _process_contact(
        self,
        user_id: str,
        contact: Contact,
        template: CampaignTemplate,
        transport,
        attachments: List[Attachment],
        use_ai: bool,
        state: _RunState,
    ) -> ContactOutcome:
        subject, body = personalize_template(template.subject, template.body, contact)

        def skipped(reason: str) -> ContactOutcome:
            return ContactOutcome(contact=contact, status=SendStatus.SKIPPED, subject=subject, body=body, error=reason)

        ai_enhanced = False
        provider = None

        if use_ai:
            if state.ai_exhausted:
                return skipped(SKIP_AI_EXHAUSTED)

            try:
                result = await self.enhancer.enhance_email(
                    user_id,
                    subject,
                    body,
                    company_name=contact.effective_company,
                    position=contact.effective_role,
                    recruiter_name=contact.effective_recruiter,
                )
            except Exception:
                logger.exception("AI enhancement raised for %s", contact.email)
                return skipped(SKIP_AI_FAILED)

            if not result.ai_enhanced:
                if result.error_kind in (AIErrorKind.NO_ACTIVE_KEYS, AIErrorKind.ALL_KEYS_RATE_LIMITED):
                    state.ai_exhausted = True
                    logger.warning("AI unavailable for user %s, skipping remaining AI sends", user_id)
                    return skipped(SKIP_NO_KEYS)
                if result.error_kind == AIErrorKind.RATE_LIMITED and not await self.keys.has_available_key(user_id):
                    state.ai_exhausted = True
                logger.warning("AI enhancement failed for %s: %s", contact.email, result.error)
                return skipped(SKIP_AI_FAILED)

            subject, body = result.subject, result.body
            ai_enhanced = True
            provider = result.provider

        resolved: List[ResolvedAttachment] = []
        try:
            for attachment in attachments:
                resolved.append(await self.storage.resolve_attachment(attachment))
            email = OutgoingEmail(
                to=contact.email,
                subject=subject,
                text_body=body,
                html_body=text_to_html(body),
                attachments=[
                    OutgoingAttachment(filename=r.filename, content=r.read(), mime_type=r.mime_type)
                    for r in resolved
                ],
            )
            await transport.send(email)
        except (MailTransportError, StorageError) as e:
            logger.warning("Send to %s failed: %s", contact.email, e)
            return ContactOutcome(
                contact=contact, status=SendStatus.FAILED, subject=subject, body=body,
                error=str(e), ai_enhanced=ai_enhanced, provider=provider,
            )
        except Exception as e:
            logger.exception("Unexpected error sending to %s", contact.email)
            return ContactOutcome(
                contact=contact, status=SendStatus.FAILED, subject=subject, body=body,
                error=str(e) or type(e).__name__, ai_enhanced=ai_enhanced, provider=provider,
            )
        finally:
            self.storage.cleanup(resolved)

        return ContactOutcome(
            contact=contact, status=SendStatus.SENT, subject=subject, body=body,
            ai_enhanced=ai_enhanced, provider=provider,
        )

    async def _record_send(self, user_id: str, session_id: Optional[str], outcome: ContactOutcome) -> None:
        """Durable send-log row; a store failure is logged, not fatal to the run"""
        now = datetime.utcnow()
        try:
            async with self.session_factory() as db:
                db.add(EmailSend(
                    user_id=user_id,
                    session_id=session_id,
                    contact_id=outcome.contact.id,
                    recipient=outcome.contact.email,
                    subject=outcome.subject,
                    body=outcome.body,
                    status=outcome.status,
                    error_message=outcome.error,
                    ai_enhanced=outcome.ai_enhanced,
                    ai_provider=outcome.provider.value if outcome.provider else None,
                    sent_at=now if outcome.status == SendStatus.SENT else None,
                    created_at=now,
                ))
        except Exception:
            logger.exception("Could not record send to %s", outcome.contact.email)

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------

    def _snapshot(
        self,
        status: str,
        total: int,
        summary: CampaignSummary,
        current: str,
        logs: List[str],
        started: float,
        percent_of: int = 0,
        completed: bool = False,
    ) -> Dict[str, Any]:
        if completed:
            percent = 100
        else:
            percent = round(percent_of / total * 100) if total else 0
        return {
            "type": "progress",
            "status": status,
            "progress": percent,
            "current_email": current,
            "sent": summary.sent,
            "failed": summary.failed,
            "skipped": summary.skipped,
            "total": total,
            "ai_enhanced": summary.ai_enhanced,
            "estimated_time_remaining": (
                "Done" if completed
                else estimate_time_remaining(summary.processed, total, self.clock() - started)
            ),
            "logs": list(logs),
            "cancelled": summary.cancelled,
            "error": summary.error,
            "completed": completed,
        }

    def _publish(self, session_id: str, snapshot: Dict[str, Any]) -> None:
        self.progress.update(session_id, snapshot)


_campaign_service: Optional[CampaignService] = None


def get_campaign_service() -> CampaignService:
    """Process-wide campaign runner"""
    global _campaign_service
    if _campaign_service is None:
        _campaign_service = CampaignService()
    return _campaign_service
