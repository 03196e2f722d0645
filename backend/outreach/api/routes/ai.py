"""
AI Generation Routes
"""

from fastapi import APIRouter, Depends

from outreach.api.dependencies import get_ai_service, get_enhancement_service
from outreach.api.middleware.auth import get_current_user_id
from outreach.schemas.ai import (
    AIGenerateRequest,
    AIGenerateResponse,
    EmailAnalysisRequest,
    EmailAnalysisResponse,
    EmailEnhanceRequest,
    EmailEnhanceResponse,
    EmailGenerateRequest,
    EmailGenerateResponse,
    SubjectVariationsRequest,
    SubjectVariationsResponse,
)
from outreach.services.ai_service import AIService, describe_ai_error
from outreach.services.email_enhancement import EmailEnhancementService, EmailGenerationOptions

router = APIRouter()


@router.post("/generate", response_model=AIGenerateResponse)
async def generate(
    request: AIGenerateRequest,
    user_id: str = Depends(get_current_user_id),
    ai: AIService = Depends(get_ai_service),
):
    """
    Run one prompt through the user's keys.
    Failures come back with success=false and a user-facing title/description.
    """
    result = await ai.make_ai_request(
        user_id,
        request.prompt,
        preferred_provider=request.preferred_provider,
        max_tokens=request.max_tokens,
        temperature=request.temperature,
    )
    response = AIGenerateResponse(**result.to_dict())
    if not result.success:
        response.error_title, response.error_description = describe_ai_error(result)
    return response


@router.post("/enhance", response_model=EmailEnhanceResponse)
async def enhance(
    request: EmailEnhanceRequest,
    user_id: str = Depends(get_current_user_id),
    enhancer: EmailEnhancementService = Depends(get_enhancement_service),
):
    result = await enhancer.enhance_email(
        user_id,
        request.subject,
        request.body,
        company_name=request.company_name,
        position=request.position,
        recruiter_name=request.recruiter_name,
        preferred_provider=request.preferred_provider,
    )
    return EmailEnhanceResponse(
        subject=result.subject,
        body=result.body,
        ai_enhanced=result.ai_enhanced,
        message=result.message,
        error=result.error,
        provider=result.provider,
    )


@router.post("/subject-variations", response_model=SubjectVariationsResponse)
async def subject_variations(
    request: SubjectVariationsRequest,
    user_id: str = Depends(get_current_user_id),
    enhancer: EmailEnhancementService = Depends(get_enhancement_service),
):
    variations = await enhancer.generate_subject_variations(user_id, request.subject, count=request.count)
    return SubjectVariationsResponse(variations=variations)


@router.post("/generate-email", response_model=EmailGenerateResponse)
async def generate_email(
    request: EmailGenerateRequest,
    user_id: str = Depends(get_current_user_id),
    enhancer: EmailEnhancementService = Depends(get_enhancement_service),
):
    """Draft a cold email from scratch; static fallback content when AI is unavailable"""
    options = EmailGenerationOptions(
        subject=request.subject,
        tone=request.tone,
        length=request.length,
        include_personalization=request.include_personalization,
        call_to_action=request.call_to_action,
        additional_context=request.additional_context,
    )
    result = await enhancer.generate_email(
        user_id,
        request.recipient_name,
        request.recipient_company,
        request.recipient_role,
        request.campaign_context,
        options,
    )
    return EmailGenerateResponse(
        subject=result.subject,
        body=result.body,
        provider=result.provider,
        model=result.model,
        success=result.success,
        error=result.error,
    )


@router.post("/analyze", response_model=EmailAnalysisResponse)
async def analyze(
    request: EmailAnalysisRequest,
    user_id: str = Depends(get_current_user_id),
    enhancer: EmailEnhancementService = Depends(get_enhancement_service),
):
    suggestions = await enhancer.analyze_email_performance(
        user_id, request.email_content, request.open_rate, request.response_rate,
    )
    return EmailAnalysisResponse(suggestions=suggestions)
