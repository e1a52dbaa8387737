"""
Records stored in Supabase and the request/response bodies of the HTTP API.
Rows come back from PostgREST as flat dicts; model_validate() turns them
into these models.
"""

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

PLATFORMS = ("instagram", "facebook")

BookingProvider = Literal["none", "setmore", "square"]


# --- Onboarding ---

class CandidatePage(BaseModel):
    """A page the user manages that can be linked, with its short-lived token."""
    id: str
    name: str = ""
    access_token: str = ""
    avatar: Optional[str] = None
    business_id: Optional[str] = None


class PendingOnboarding(BaseModel):
    id: str
    facebook_user_id: str
    name: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None
    pages: List[CandidatePage] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    def find_page(self, page_id: str) -> Optional[CandidatePage]:
        return next((p for p in self.pages if p.id == page_id), None)

    def public_dict(self) -> dict:
        """Session as shown to the browser: candidate page tokens stay server-side."""
        return self.model_dump(mode="json", exclude={"pages": {"__all__": {"access_token"}}})


# --- Tenants ---

class BookingIntegration(BaseModel):
    provider: BookingProvider = "none"
    api_key: Optional[str] = None


class Tenant(BaseModel):
    id: str
    name: str
    email: str
    avatar_url: Optional[str] = None

    business_name: Optional[str] = None
    sheet_id: Optional[str] = None
    page_id: str
    page_access_token: str
    plan: Literal["basic", "pro", "enterprise"] = "basic"
    facebook_user_id: Optional[str] = None
    platform_ai_status: Dict[str, bool] = Field(
        default_factory=lambda: {platform: True for platform in PLATFORMS}
    )

    booking_provider: BookingProvider = "none"
    booking_api_key: Optional[str] = None

    terms_version: str = "1.0.0"
    terms_agreed_at: Optional[datetime] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def booking_integration(self) -> BookingIntegration:
        return BookingIntegration(provider=self.booking_provider, api_key=self.booking_api_key)

    def ai_enabled_for(self, platform: str) -> bool:
        return self.platform_ai_status.get(platform, True)

    def public_dict(self) -> dict:
        return self.model_dump(mode="json", exclude={"page_access_token", "booking_api_key"})


# --- Conversations ---

class Conversation(BaseModel):
    id: str
    tenant_id: str
    platform: str
    contact_id: str
    contact_name: Optional[str] = None
    contact_avatar_url: Optional[str] = None
    last_message: Optional[str] = None
    last_message_timestamp: Optional[datetime] = None
    is_ai_enabled: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# --- Request bodies ---
# Fields are optional so missing values turn into a 400 with a readable
# message instead of FastAPI's generic 422.

class AddEmailRequest(BaseModel):
    email: Optional[str] = None


class FinalizeRequest(BaseModel):
    sessionId: Optional[str] = None
    selectedPageId: Optional[str] = None
    agreedToTerms: bool = False


class ToggleAIRequest(BaseModel):
    isEnabled: bool


# --- Outbound ---

class AIResponderPayload(BaseModel):
    """Body sent to the AI responder's /process-message endpoint."""
    user_id: str
    message_text: str
    sheet_id: Optional[str] = None
    page_access_token: str
    booking_integration: BookingIntegration
