"""
MessageRouter: takes one inbound text message and
  1. resolves the tenant that owns the recipient page,
  2. creates (with best-effort profile enrichment) or updates the conversation,
  3. applies AI gating: tenant platform flag, then conversation flag,
  4. dispatches eligible messages to the AI responder.

Nothing here raises for expected conditions: unknown pages, failed profile
lookups and AI responder failures are logged and reported in the
RouteResult. Called from worker threads by the webhook ingestor.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Optional

from app.models.errors import AIResponderUnavailable, ProfileEnrichmentFailed, UnknownTenantForPage
from app.models.schemas import AIResponderPayload, Conversation, Tenant
from app.services.ai_responder import AIResponderClient
from app.services.conversation_ledger import ConversationLedger
from app.services.graph_api import GraphAPIClient, GraphAPIError
from app.services.payload_service import MessagingEvent
from app.services.tenant_directory import TenantDirectory
from app.utils.helpers import placeholder_name

logger = logging.getLogger(__name__)

PLACEHOLDER_AVATAR_URL = "https://picsum.photos/seed/placeholder/100/100"


class RouteOutcome(str, enum.Enum):
    IGNORED = "ignored"
    UNKNOWN_TENANT = "unknown_tenant"
    AI_DISABLED_TENANT = "ai_disabled_tenant"
    AI_DISABLED_CONVERSATION = "ai_disabled_conversation"
    DISPATCHED = "dispatched"
    DISPATCH_FAILED = "dispatch_failed"


@dataclass
class RouteResult:
    outcome: RouteOutcome
    tenant_id: Optional[str] = None
    conversation: Optional[Conversation] = None


class MessageRouter:

    def __init__(
        self,
        tenants: TenantDirectory,
        conversations: ConversationLedger,
        graph: GraphAPIClient,
        responder: AIResponderClient,
    ):
        self.tenants = tenants
        self.conversations = conversations
        self.graph = graph
        self.responder = responder

    def route(self, event: MessagingEvent) -> RouteResult:
        if event.should_ignore:
            return RouteResult(RouteOutcome.IGNORED)

        logger.info(
            "Inbound %s message from %s for page %s: '%s'",
            event.platform, event.sender_id, event.recipient_id, event.text[:50],
        )

        # --- STEP 1: TENANT ---
        try:
            tenant = self._resolve_tenant(event.recipient_id)
        except UnknownTenantForPage as e:
            logger.warning("%s Dropping message.", e.message)
            return RouteResult(RouteOutcome.UNKNOWN_TENANT)

        # --- STEP 2: CONVERSATION ---
        conversation = self._upsert_conversation(tenant, event)

        # --- STEP 3: GATING ---
        if not tenant.ai_enabled_for(event.platform):
            logger.info("AI disabled for tenant %s on %s. Not dispatching.", tenant.id, event.platform)
            return RouteResult(RouteOutcome.AI_DISABLED_TENANT, tenant.id, conversation)

        if not conversation.is_ai_enabled:
            logger.info("AI disabled for conversation %s. Not dispatching.", conversation.id)
            return RouteResult(RouteOutcome.AI_DISABLED_CONVERSATION, tenant.id, conversation)

        # --- STEP 4: DISPATCH ---
        payload = AIResponderPayload(
            user_id=event.sender_id,
            message_text=event.text,
            sheet_id=tenant.sheet_id,
            page_access_token=tenant.page_access_token,
            booking_integration=tenant.booking_integration,
        )
        try:
            self.responder.dispatch(payload)
        except AIResponderUnavailable as e:
            logger.error("AI responder failed for contact %s: %s", event.sender_id, e.message)
            return RouteResult(RouteOutcome.DISPATCH_FAILED, tenant.id, conversation)

        return RouteResult(RouteOutcome.DISPATCHED, tenant.id, conversation)

    def _resolve_tenant(self, page_id: str) -> Tenant:
        tenant = self.tenants.find_by_page_id(page_id)
        if not tenant:
            raise UnknownTenantForPage(f"No tenant found for page {page_id}.")
        logger.info("Matched message to tenant %s", tenant.id)
        return tenant

    def _upsert_conversation(self, tenant: Tenant, event: MessagingEvent) -> Conversation:
        existing = self.conversations.find(tenant.id, event.platform, event.sender_id)
        if existing:
            self.conversations.record_message(
                tenant.id, event.platform, event.sender_id, event.text, event.sent_at,
            )
            return self.conversations.find(tenant.id, event.platform, event.sender_id) or existing

        logger.info("New conversation for contact %s, fetching profile", event.sender_id)
        try:
            name, avatar_url = self._fetch_contact_profile(event.sender_id, tenant.page_access_token)
        except ProfileEnrichmentFailed as e:
            logger.warning("%s Using placeholder.", e.message)
            name, avatar_url = placeholder_name(event.sender_id), PLACEHOLDER_AVATAR_URL

        return self.conversations.create_if_absent(
            tenant_id=tenant.id,
            platform=event.platform,
            contact_id=event.sender_id,
            contact_name=name,
            contact_avatar_url=avatar_url,
            message_text=event.text,
            sent_at=event.sent_at,
        )

    def _fetch_contact_profile(self, contact_id: str, page_token: str):
        try:
            profile = self.graph.get_contact_profile(contact_id, page_token)
        except GraphAPIError as e:
            raise ProfileEnrichmentFailed(f"Failed to fetch profile for user {contact_id}: {e}") from e

        name = profile.get("name") or profile.get("username")
        if not name:
            raise ProfileEnrichmentFailed(f"Profile for user {contact_id} has no name.")
        return name, profile.get("profile_pic") or PLACEHOLDER_AVATAR_URL
