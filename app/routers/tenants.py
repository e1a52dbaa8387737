"""
Tenants Router: tenant record, AI toggles, conversation lists and webhook
re-subscription. The tenant is always named in the path.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from app.dependencies import get_conversation_ledger, get_onboarding, get_tenant_directory
from app.models.errors import WebhookRegistrationFailed
from app.models.schemas import PLATFORMS, Tenant, ToggleAIRequest
from app.services.conversation_ledger import ConversationLedger
from app.services.onboarding_service import OnboardingOrchestrator
from app.services.tenant_directory import TenantDirectory

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tenants")


def _load_tenant(tenants: TenantDirectory, tenant_id: str) -> Tenant:
    tenant = tenants.get(tenant_id)
    if not tenant:
        raise HTTPException(status_code=404, detail={"error": "tenant_not_found", "message": "User not found"})
    return tenant


def _check_platform(platform: str):
    if platform not in PLATFORMS:
        raise HTTPException(
            status_code=400,
            detail={"error": "unknown_platform", "message": f"Unsupported platform '{platform}'"},
        )


@router.get("/{tenant_id}")
def get_tenant(tenant_id: str, tenants: TenantDirectory = Depends(get_tenant_directory)):
    return _load_tenant(tenants, tenant_id).public_dict()


@router.get("/{tenant_id}/platforms/{platform}/ai-status")
def get_platform_ai_status(
    tenant_id: str,
    platform: str,
    tenants: TenantDirectory = Depends(get_tenant_directory),
):
    _check_platform(platform)
    tenant = _load_tenant(tenants, tenant_id)
    return {"success": True, "isEnabled": tenant.ai_enabled_for(platform)}


@router.patch("/{tenant_id}/platforms/{platform}/toggle-ai")
def toggle_platform_ai(
    tenant_id: str,
    platform: str,
    body: ToggleAIRequest,
    tenants: TenantDirectory = Depends(get_tenant_directory),
):
    _check_platform(platform)
    tenant = tenants.set_platform_ai(tenant_id, platform, body.isEnabled)
    if not tenant:
        raise HTTPException(status_code=404, detail={"error": "tenant_not_found", "message": "User not found"})
    return {"success": True, "isEnabled": tenant.ai_enabled_for(platform)}


@router.get("/{tenant_id}/conversations/{platform}")
def list_conversations(
    tenant_id: str,
    platform: str,
    tenants: TenantDirectory = Depends(get_tenant_directory),
    conversations: ConversationLedger = Depends(get_conversation_ledger),
):
    _check_platform(platform)
    tenant = _load_tenant(tenants, tenant_id)
    return [c.model_dump(mode="json") for c in conversations.list_for_tenant(tenant.id, platform)]


@router.patch("/{tenant_id}/conversations/{conversation_id}/toggle-ai")
def toggle_conversation_ai(
    tenant_id: str,
    conversation_id: str,
    body: ToggleAIRequest,
    tenants: TenantDirectory = Depends(get_tenant_directory),
    conversations: ConversationLedger = Depends(get_conversation_ledger),
):
    tenant = _load_tenant(tenants, tenant_id)
    conversation = conversations.set_ai_enabled(tenant.id, conversation_id, body.isEnabled)
    if not conversation:
        raise HTTPException(
            status_code=404,
            detail={"error": "conversation_not_found", "message": "Conversation not found"},
        )
    return conversation.model_dump(mode="json")


@router.post("/{tenant_id}/resubscribe")
def resubscribe_webhook(
    tenant_id: str,
    tenants: TenantDirectory = Depends(get_tenant_directory),
    onboarding: OnboardingOrchestrator = Depends(get_onboarding),
):
    """Operator action: retry the page's message-webhook subscription."""
    tenant = _load_tenant(tenants, tenant_id)
    try:
        onboarding.register_webhook(tenant.page_id, tenant.page_access_token)
    except WebhookRegistrationFailed as e:
        logger.error("Re-subscribe failed for tenant %s: %s", tenant.id, e.message)
        raise HTTPException(status_code=502, detail=e.to_dict())
    return {"success": True, "pageId": tenant.page_id}
