"""
OnboardingSessionStore: short-lived records bridging the OAuth callback and
the user's page selection.

One row per platform user (`facebook_user_id` is unique). Rows carry an
`expires_at`; reads ignore expired rows so a session is unreachable once its
TTL has passed even if nothing deleted it. Expired rows are purged on write.
"""

import logging
from datetime import timedelta
from typing import Callable, List, Optional

from app.models.schemas import CandidatePage, PendingOnboarding
from app.utils.helpers import is_valid_id, to_iso, utcnow

logger = logging.getLogger(__name__)


class OnboardingSessionStore:

    TABLE = "onboarding_sessions"

    def __init__(self, client, ttl_minutes: int = 45, clock: Callable = utcnow):
        self.client = client
        self.ttl = timedelta(minutes=ttl_minutes)
        self.clock = clock

    def upsert(
        self,
        facebook_user_id: str,
        name: Optional[str],
        email: Optional[str],
        avatar_url: Optional[str],
        pages: List[CandidatePage],
    ) -> PendingOnboarding:
        """
        Creates the session for this platform user or replaces its candidate
        pages and expiry. An email already stored on the session is kept when
        the new profile has none.
        """
        self.purge_expired()

        now = self.clock()
        row = {
            "facebook_user_id": facebook_user_id,
            "name": name,
            "avatar_url": avatar_url,
            "pages": [page.model_dump() for page in pages],
            "created_at": to_iso(now),
            "expires_at": to_iso(now + self.ttl),
        }
        if email:
            row["email"] = email

        result = self.client.table(self.TABLE) \
            .upsert(row, on_conflict="facebook_user_id") \
            .execute()

        session = PendingOnboarding.model_validate(result.data[0])
        logger.info("Onboarding session %s stored with %s candidate page(s)", session.id, len(pages))
        return session

    def get(self, session_id: str) -> Optional[PendingOnboarding]:
        if not is_valid_id(session_id):
            return None

        response = self.client.table(self.TABLE) \
            .select("*") \
            .eq("id", session_id) \
            .gt("expires_at", to_iso(self.clock())) \
            .limit(1) \
            .execute()

        if not response.data:
            return None
        return PendingOnboarding.model_validate(response.data[0])

    def set_email(self, session_id: str, email: str) -> Optional[PendingOnboarding]:
        if not is_valid_id(session_id):
            return None

        response = self.client.table(self.TABLE) \
            .update({"email": email}) \
            .eq("id", session_id) \
            .gt("expires_at", to_iso(self.clock())) \
            .execute()

        if not response.data:
            return None
        logger.info("Email added to onboarding session %s", session_id)
        return PendingOnboarding.model_validate(response.data[0])

    def delete(self, session_id: str) -> bool:
        if not is_valid_id(session_id):
            return False

        response = self.client.table(self.TABLE) \
            .delete() \
            .eq("id", session_id) \
            .execute()
        return bool(response.data)

    def purge_expired(self) -> int:
        response = self.client.table(self.TABLE) \
            .delete() \
            .lt("expires_at", to_iso(self.clock())) \
            .execute()

        purged = len(response.data or [])
        if purged:
            logger.info("Purged %s expired onboarding session(s)", purged)
        return purged
