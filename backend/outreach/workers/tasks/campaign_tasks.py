"""
Campaign Tasks
Bulk sends executed by a worker instead of the API process
"""

from typing import Dict, List, Optional

from celery.utils.log import get_task_logger

from outreach.workers.celery_app import celery_app
from outreach.workers.tasks.maintenance_tasks import run_async
from outreach.services.campaign_service import CampaignService, CampaignTemplate
from outreach.services.mail_transport import load_smtp_settings
from outreach.services.progress_store import ProgressStore
from outreach.utils.database import close_db

logger = get_task_logger(__name__)


async def _send_campaign(
    user_id: str,
    session_id: str,
    contacts: List[Dict],
    subject: str,
    body: str,
    use_ai: bool,
    attachment_ids: List[int],
) -> Dict:
    try:
        smtp = await load_smtp_settings(user_id)
        if smtp is None:
            return {"error": "SMTP configuration not found"}

        # Nobody subscribes to progress inside the worker
        service = CampaignService(progress=ProgressStore())
        summary = await service.run_campaign(
            user_id,
            session_id,
            contacts,
            CampaignTemplate(subject=subject, body=body),
            smtp,
            use_ai=use_ai,
            attachment_ids=attachment_ids,
        )
        return {
            "success": summary.error is None,
            "session_id": session_id,
            "total": summary.total,
            "sent": summary.sent,
            "failed": summary.failed,
            "skipped": summary.skipped,
            "ai_enhanced": summary.ai_enhanced,
            "error": summary.error,
        }
    finally:
        await close_db()


@celery_app.task(
    bind=True,
    name="outreach.workers.tasks.campaign_tasks.send_campaign",
    acks_late=True,
)
def send_campaign(
    self,
    user_id: str,
    session_id: str,
    contacts: List[Dict],
    subject: str,
    body: str,
    use_ai: bool = False,
    attachment_ids: Optional[List[int]] = None,
) -> Dict:
    """
    Run one campaign to completion in the worker.
    Outcomes land in the email send log; the task result is the summary.
    """
    logger.info(f"Starting campaign {session_id} for user {user_id} ({len(contacts)} contacts)")
    try:
        result = run_async(_send_campaign(
            user_id, session_id, contacts, subject, body, use_ai, attachment_ids or [],
        ))
        logger.info(f"Campaign {session_id} finished: {result}")
        return result
    except Exception as e:
        logger.exception(f"Error running campaign {session_id}: {e}")
        return {"error": str(e), "session_id": session_id}
