"""
Onboarding Router: browser-facing OAuth endpoints.
Business logic lives in OnboardingOrchestrator; this layer only maps
InboxError subclasses to HTTP statuses.
"""

import logging
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import PlainTextResponse, RedirectResponse

from app.config import Settings
from app.dependencies import get_onboarding, get_settings
from app.models.errors import InboxError
from app.models.schemas import AddEmailRequest, FinalizeRequest
from app.services.onboarding_service import OnboardingOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/onboard")


def to_http(error: InboxError) -> HTTPException:
    return HTTPException(status_code=error.status_code, detail=error.to_dict())


@router.get("/login")
def login(onboarding: OnboardingOrchestrator = Depends(get_onboarding)):
    """Sends the browser to the platform's business-integration dialog."""
    logger.info("OAuth flow initiated, redirecting to platform dialog")
    return RedirectResponse(onboarding.authorize_url(), status_code=302)


@router.get("/start")
def start(
    code: str = None,
    onboarding: OnboardingOrchestrator = Depends(get_onboarding),
    settings: Settings = Depends(get_settings),
):
    """
    OAuth callback. Redirects to the frontend's email or page-selection step
    with the pending session id; failures render a plain error page.
    """
    try:
        outcome = onboarding.start(code)
    except InboxError as e:
        return PlainTextResponse(f"Error: {e.message}", status_code=e.status_code)

    step = "enter-email" if outcome.needs_email else "select-page"
    query = urlencode({"sessionId": outcome.session.id})
    return RedirectResponse(f"{settings.frontend_url.rstrip('/')}/{step}?{query}", status_code=302)


@router.get("/session/{session_id}")
def get_session(session_id: str, onboarding: OnboardingOrchestrator = Depends(get_onboarding)):
    try:
        session = onboarding.get_session(session_id)
    except InboxError as e:
        raise to_http(e)
    return session.public_dict()


@router.post("/session/{session_id}/email")
def add_email(
    session_id: str,
    body: AddEmailRequest,
    onboarding: OnboardingOrchestrator = Depends(get_onboarding),
):
    try:
        onboarding.add_email(session_id, body.email)
    except InboxError as e:
        raise to_http(e)
    return {"success": True, "message": "Email updated successfully."}


@router.post("/finalize")
def finalize(body: FinalizeRequest, onboarding: OnboardingOrchestrator = Depends(get_onboarding)):
    try:
        tenant = onboarding.finalize(body.sessionId, body.selectedPageId, body.agreedToTerms)
    except InboxError as e:
        raise to_http(e)
    return tenant.public_dict()
