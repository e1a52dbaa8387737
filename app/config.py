"""
Application settings loaded from environment variables (.env supported).
Build once with Settings.from_env() and pass the instance to services.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_SCOPES = [
    "business_management",
    "instagram_basic",
    "instagram_manage_messages",
    "pages_show_list",
    "pages_manage_metadata",
    "email",
    "public_profile",
    "pages_messaging",
]


def _split_csv(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class Settings:
    # Persistence
    supabase_url: str = ""
    supabase_token: str = ""

    # Meta app
    facebook_app_id: str = ""
    facebook_app_secret: str = ""
    server_url: str = "http://localhost:8000"
    frontend_url: str = "http://localhost:5173"
    graph_api_version: str = "v19.0"
    graph_api_timeout: float = 10.0
    oauth_scopes: List[str] = field(default_factory=lambda: list(DEFAULT_SCOPES))
    required_scopes: List[str] = field(default_factory=lambda: ["pages_messaging"])

    # Webhooks
    meta_verify_token: str = ""
    meta_system_user_token: str = ""
    page_eligibility_filter: str = "linked_account"
    webhook_credential_source: str = "page_token"

    # AI responder
    ai_service_base_url: str = ""
    ai_service_api_key: str = ""
    ai_service_timeout: float = 10.0

    # Onboarding defaults
    onboarding_session_ttl_minutes: int = 45
    default_sheet_id: str = ""
    terms_version: str = "1.0.0"

    allowed_origins: List[str] = field(default_factory=list)

    @property
    def redirect_uri(self) -> str:
        return f"{self.server_url.rstrip('/')}/onboard/start"

    @classmethod
    def from_env(cls) -> "Settings":
        """Reads every setting from os.environ, falling back to the defaults above."""
        defaults = cls()
        required_raw = os.getenv("REQUIRED_SCOPES")
        settings = cls(
            supabase_url=os.getenv("SUPABASE_URL", ""),
            supabase_token=os.getenv("SUPABASE_TOKEN", ""),
            facebook_app_id=os.getenv("FACEBOOK_APP_ID", ""),
            facebook_app_secret=os.getenv("FACEBOOK_APP_SECRET", ""),
            server_url=os.getenv("SERVER_URL", defaults.server_url),
            frontend_url=os.getenv("FRONTEND_URL", defaults.frontend_url),
            graph_api_version=os.getenv("GRAPH_API_VERSION", defaults.graph_api_version),
            graph_api_timeout=float(os.getenv("GRAPH_API_TIMEOUT_SECONDS", defaults.graph_api_timeout)),
            oauth_scopes=_split_csv(os.getenv("OAUTH_SCOPES")) or list(DEFAULT_SCOPES),
            # REQUIRED_SCOPES="" disables the granted-scope check
            required_scopes=_split_csv(required_raw) if required_raw is not None else ["pages_messaging"],
            meta_verify_token=os.getenv("META_VERIFY_TOKEN", ""),
            meta_system_user_token=os.getenv("META_SYSTEM_USER_TOKEN", ""),
            page_eligibility_filter=os.getenv("PAGE_ELIGIBILITY_FILTER", defaults.page_eligibility_filter),
            webhook_credential_source=os.getenv("WEBHOOK_CREDENTIAL_SOURCE", defaults.webhook_credential_source),
            ai_service_base_url=os.getenv("AI_SERVICE_BASE_URL", ""),
            ai_service_api_key=os.getenv("AI_SERVICE_API_KEY", ""),
            ai_service_timeout=float(os.getenv("AI_SERVICE_TIMEOUT_SECONDS", defaults.ai_service_timeout)),
            onboarding_session_ttl_minutes=int(
                os.getenv("ONBOARDING_SESSION_TTL_MINUTES", defaults.onboarding_session_ttl_minutes)
            ),
            default_sheet_id=os.getenv("DEFAULT_SHEET_ID", ""),
            terms_version=os.getenv("TERMS_VERSION", defaults.terms_version),
            allowed_origins=_split_csv(os.getenv("ALLOWED_ORIGINS")),
        )
        settings.warn_missing()
        return settings

    def warn_missing(self):
        for name in ("facebook_app_id", "facebook_app_secret", "meta_verify_token", "ai_service_base_url"):
            if not getattr(self, name):
                logger.warning("%s not found in env", name.upper())
