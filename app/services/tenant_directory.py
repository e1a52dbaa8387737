"""
TenantDirectory: the `tenants` table.

Tenants are created only through onboarding finalize (upsert keyed by
email). `email` and `page_id` are unique at the store level; a page linked
to one tenant can never be linked to another.
"""

import logging
from datetime import datetime
from typing import Optional

from postgrest.exceptions import APIError

from app.models.errors import PageAlreadyLinked
from app.models.schemas import PLATFORMS, Tenant
from app.services.supabase_client import is_unique_violation
from app.utils.helpers import is_valid_id, to_iso

logger = logging.getLogger(__name__)


class TenantDirectory:

    TABLE = "tenants"

    def __init__(self, client):
        self.client = client

    # --- Lookups ---

    def get(self, tenant_id: str) -> Optional[Tenant]:
        if not is_valid_id(tenant_id):
            return None
        return self._find_one("id", tenant_id)

    def find_by_page_id(self, page_id: str) -> Optional[Tenant]:
        return self._find_one("page_id", page_id)

    def find_by_email(self, email: str) -> Optional[Tenant]:
        return self._find_one("email", email)

    def _find_one(self, column: str, value: str) -> Optional[Tenant]:
        response = self.client.table(self.TABLE) \
            .select("*") \
            .eq(column, value) \
            .limit(1) \
            .execute()

        if not response.data:
            return None
        return Tenant.model_validate(response.data[0])

    # --- Onboarding upsert ---

    def upsert_onboarded(
        self,
        email: str,
        name: Optional[str],
        avatar_url: Optional[str],
        facebook_user_id: Optional[str],
        page_id: str,
        page_access_token: str,
        business_name: Optional[str],
        default_sheet_id: str,
        terms_version: str,
        now: datetime,
    ) -> Tenant:
        """
        Creates or updates the tenant owning `email`.

        Identity and page fields are always overwritten; the spreadsheet
        reference and terms acceptance are only set when the row is created.
        Raises PageAlreadyLinked, without writing anything, when another
        tenant already owns `page_id`.
        """
        self._ensure_page_free(page_id, email)

        fields = {
            "name": name or email,
            "avatar_url": avatar_url,
            "facebook_user_id": facebook_user_id,
            "page_id": page_id,
            "page_access_token": page_access_token,
            "business_name": business_name,
            "updated_at": to_iso(now),
        }

        try:
            return self._write(email, fields, default_sheet_id, terms_version, now)
        except APIError as e:
            if not is_unique_violation(e):
                raise
            # Lost a race: either the page was just linked elsewhere or a
            # concurrent finalize created this email first.
            self._ensure_page_free(page_id, email)
            logger.warning("Tenant insert for %s collided, retrying as update", email)
            return self._write(email, fields, default_sheet_id, terms_version, now)

    def _write(self, email, fields, default_sheet_id, terms_version, now) -> Tenant:
        existing = self.find_by_email(email)
        if existing:
            response = self.client.table(self.TABLE) \
                .update(fields) \
                .eq("id", existing.id) \
                .execute()
            logger.info("Tenant %s updated (page %s)", existing.id, fields["page_id"])
        else:
            response = self.client.table(self.TABLE).insert({
                **fields,
                "email": email,
                "sheet_id": default_sheet_id,
                "plan": "basic",
                "platform_ai_status": {platform: True for platform in PLATFORMS},
                "booking_provider": "none",
                "terms_version": terms_version,
                "terms_agreed_at": to_iso(now),
                "created_at": to_iso(now),
            }).execute()
            logger.info("Tenant created for %s (page %s)", email, fields["page_id"])

        return Tenant.model_validate(response.data[0])

    def _ensure_page_free(self, page_id: str, email: str):
        owner = self.find_by_page_id(page_id)
        if owner and owner.email != email:
            logger.warning("Page %s is already linked to tenant %s", page_id, owner.id)
            raise PageAlreadyLinked()

    # --- AI toggles ---

    def set_platform_ai(self, tenant_id: str, platform: str, enabled: bool) -> Optional[Tenant]:
        tenant = self.get(tenant_id)
        if not tenant:
            return None

        status = {**tenant.platform_ai_status, platform: enabled}
        response = self.client.table(self.TABLE) \
            .update({"platform_ai_status": status}) \
            .eq("id", tenant_id) \
            .execute()

        logger.info("Tenant %s: AI for %s set to %s", tenant_id, platform, enabled)
        return Tenant.model_validate(response.data[0])
