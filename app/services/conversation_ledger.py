"""
ConversationLedger: one summary row per (tenant, platform, customer).

The composite key is unique in the `conversations` table; creation is an
insert-if-absent upsert, so two first messages racing each other still
produce a single row. Last-message fields only move forward in time.
"""

import logging
from datetime import datetime
from typing import List, Optional

from app.models.schemas import Conversation
from app.utils.helpers import is_valid_id, to_iso, utcnow

logger = logging.getLogger(__name__)


class ConversationLedger:

    TABLE = "conversations"
    KEY_COLUMNS = "tenant_id,platform,contact_id"

    def __init__(self, client):
        self.client = client

    def find(self, tenant_id: str, platform: str, contact_id: str) -> Optional[Conversation]:
        response = self.client.table(self.TABLE) \
            .select("*") \
            .eq("tenant_id", tenant_id) \
            .eq("platform", platform) \
            .eq("contact_id", contact_id) \
            .limit(1) \
            .execute()

        if not response.data:
            return None
        return Conversation.model_validate(response.data[0])

    def create_if_absent(
        self,
        tenant_id: str,
        platform: str,
        contact_id: str,
        contact_name: str,
        contact_avatar_url: Optional[str],
        message_text: str,
        sent_at: datetime,
    ) -> Conversation:
        now = to_iso(utcnow())
        row = {
            "tenant_id": tenant_id,
            "platform": platform,
            "contact_id": contact_id,
            "contact_name": contact_name,
            "contact_avatar_url": contact_avatar_url,
            "last_message": message_text,
            "last_message_timestamp": to_iso(sent_at),
            "is_ai_enabled": True,
            "created_at": now,
            "updated_at": now,
        }
        self.client.table(self.TABLE) \
            .upsert(row, on_conflict=self.KEY_COLUMNS, ignore_duplicates=True) \
            .execute()

        # A concurrent event may have created the row first; make sure this
        # message is reflected if it is the newer one.
        self.record_message(tenant_id, platform, contact_id, message_text, sent_at)

        conversation = self.find(tenant_id, platform, contact_id)
        logger.info("Conversation %s ready for contact %s", conversation.id, contact_id)
        return conversation

    def record_message(
        self,
        tenant_id: str,
        platform: str,
        contact_id: str,
        message_text: str,
        sent_at: datetime,
    ) -> bool:
        """
        Stores the last message if it is newer than the one on record.
        Returns False when the stored message is already as recent.
        """
        response = self.client.table(self.TABLE) \
            .update({
                "last_message": message_text,
                "last_message_timestamp": to_iso(sent_at),
                "updated_at": to_iso(utcnow()),
            }) \
            .eq("tenant_id", tenant_id) \
            .eq("platform", platform) \
            .eq("contact_id", contact_id) \
            .lt("last_message_timestamp", to_iso(sent_at)) \
            .execute()

        return bool(response.data)

    def list_for_tenant(self, tenant_id: str, platform: str) -> List[Conversation]:
        response = self.client.table(self.TABLE) \
            .select("*") \
            .eq("tenant_id", tenant_id) \
            .eq("platform", platform) \
            .order("last_message_timestamp", desc=True) \
            .execute()

        return [Conversation.model_validate(row) for row in response.data or []]

    def set_ai_enabled(self, tenant_id: str, conversation_id: str, enabled: bool) -> Optional[Conversation]:
        if not is_valid_id(conversation_id):
            return None

        response = self.client.table(self.TABLE) \
            .update({"is_ai_enabled": enabled, "updated_at": to_iso(utcnow())}) \
            .eq("id", conversation_id) \
            .eq("tenant_id", tenant_id) \
            .execute()

        if not response.data:
            return None
        logger.info("Conversation %s: AI set to %s", conversation_id, enabled)
        return Conversation.model_validate(response.data[0])
