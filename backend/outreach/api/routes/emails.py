"""
Single Email Routes
"""

from fastapi import APIRouter, Depends, HTTPException

from outreach.api.dependencies import get_campaigns
from outreach.api.middleware.auth import get_current_user_id
from outreach.schemas.content import SingleEmailRequest, SingleEmailResponse
from outreach.services.campaign_service import CampaignService, CampaignTemplate
from outreach.services.email_enhancement import Contact
from outreach.services.mail_transport import load_smtp_settings

router = APIRouter()


@router.post("/send", response_model=SingleEmailResponse)
async def send_single_email(
    request: SingleEmailRequest,
    user_id: str = Depends(get_current_user_id),
    campaigns: CampaignService = Depends(get_campaigns),
):
    """
    Personalize, optionally AI-enhance, and send one email right away.
    A failed or skipped send is reported in the body, not as an HTTP error.
    """
    smtp = await load_smtp_settings(user_id, campaigns.session_factory)
    if smtp is None:
        raise HTTPException(status_code=400, detail="SMTP configuration not found")

    contact = Contact(
        email=request.to,
        name=request.name,
        company_name=request.company_name,
        role=request.role,
        recruiter_name=request.recruiter_name,
    )
    outcome = await campaigns.send_email(
        user_id,
        contact,
        CampaignTemplate(subject=request.subject, body=request.body),
        smtp,
        use_ai=request.use_ai,
        attachment_ids=request.attachment_ids,
    )

    return SingleEmailResponse(
        to=request.to,
        status=outcome.status,
        subject=outcome.subject,
        body=outcome.body,
        ai_enhanced=outcome.ai_enhanced,
        ai_provider=outcome.provider.value if outcome.provider else None,
        error=outcome.error,
    )
