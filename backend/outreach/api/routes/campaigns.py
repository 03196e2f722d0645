"""
Campaign Routes
Bulk sends with live progress over server-sent events.
"""

import logging
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse

from outreach.api.dependencies import get_campaigns, get_progress
from outreach.api.middleware.auth import get_current_user_id
from outreach.schemas.campaign import (
    CampaignCancelResponse,
    CampaignSendRequest,
    CampaignSendResponse,
)
from outreach.services.campaign_service import CampaignService, CampaignTemplate
from outreach.services.email_enhancement import Contact
from outreach.services.mail_transport import load_smtp_settings
from outreach.services.progress_store import ProgressStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/send", response_model=CampaignSendResponse, status_code=status.HTTP_202_ACCEPTED)
async def send_campaign(
    request: CampaignSendRequest,
    user_id: str = Depends(get_current_user_id),
    campaigns: CampaignService = Depends(get_campaigns),
):
    """
    Start a bulk send.
    Returns the session id immediately; follow it on /campaigns/progress.
    """
    smtp = await load_smtp_settings(user_id, campaigns.session_factory)
    if smtp is None:
        raise HTTPException(status_code=400, detail="SMTP configuration not found")

    session_id = request.session_id or f"campaign-{uuid4().hex}"
    if campaigns.is_running(session_id):
        raise HTTPException(status_code=409, detail="Campaign session already running")

    if request.template is not None:
        template = CampaignTemplate(
            subject=request.template.subject,
            body=request.template.body,
            name=request.template.name,
        )
    else:
        template = await campaigns.get_default_template(user_id)

    if request.run_in_worker:
        # Worker runs are tracked through the send log only
        from outreach.workers.tasks.campaign_tasks import send_campaign as send_campaign_task

        send_campaign_task.delay(
            user_id=user_id,
            session_id=session_id,
            contacts=[c.model_dump() for c in request.contacts],
            subject=template.subject,
            body=template.body,
            use_ai=request.use_ai,
            attachment_ids=request.attachment_ids,
        )
        return CampaignSendResponse(
            session_id=session_id,
            total=len(request.contacts),
            message=f"Campaign queued for {len(request.contacts)} contacts",
        )

    contacts = [Contact(**c.model_dump()) for c in request.contacts]
    campaigns.start_campaign(
        user_id,
        session_id,
        contacts,
        template,
        smtp,
        use_ai=request.use_ai,
        attachment_ids=request.attachment_ids,
    )
    logger.info("Queued campaign %s for user %s (%d contacts)", session_id, user_id, len(contacts))

    return CampaignSendResponse(
        session_id=session_id,
        total=len(contacts),
        message=f"Campaign started for {len(contacts)} contacts",
    )


@router.get("/progress")
async def stream_progress(
    session_id: str = Query(..., alias="sessionId"),
    user_id: str = Depends(get_current_user_id),
    progress: ProgressStore = Depends(get_progress),
):
    """Server-sent events: a connected frame, then each new snapshot until completion"""
    return StreamingResponse(
        progress.stream(session_id),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.get("/progress/status")
async def progress_status(
    session_id: str = Query(..., alias="sessionId"),
    user_id: str = Depends(get_current_user_id),
    progress: ProgressStore = Depends(get_progress),
):
    """Latest snapshot, for clients that poll instead of streaming"""
    snapshot = progress.get(session_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="No progress found for session")
    return snapshot


@router.post("/{session_id}/cancel", response_model=CampaignCancelResponse)
async def cancel_campaign(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    campaigns: CampaignService = Depends(get_campaigns),
):
    if not campaigns.cancel(session_id):
        raise HTTPException(status_code=404, detail="Campaign not running")
    return CampaignCancelResponse(session_id=session_id, cancelled=True)
