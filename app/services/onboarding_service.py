"""
OnboardingOrchestrator: drives a business through the platform login.

start():    code -> user token -> long-lived user token -> (scope check)
            -> profile -> eligible pages -> pending session
finalize(): selected page -> long-lived page token -> tenant upsert
            -> webhook subscription (soft) -> session cleanup

The start chain is a list of steps over a shared OnboardingContext. Each
step returns a StepResult; the first one carrying an error stops the chain
and that error is raised to the HTTP layer. Nothing in start() writes to
the tenant directory.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

from app.config import Settings
from app.models.errors import (
    EmailRequired,
    InboxError,
    InvalidSelection,
    MissingFields,
    NoEligiblePages,
    PermissionsNotGranted,
    SessionExpired,
    TermsNotAccepted,
    UpstreamAuthError,
    WebhookRegistrationFailed,
)
from app.models.schemas import CandidatePage, PendingOnboarding, Tenant
from app.services.graph_api import GraphAPIClient, GraphAPIError
from app.services.onboarding_store import OnboardingSessionStore
from app.services.tenant_directory import TenantDirectory
from app.utils.helpers import get_nested_value, utcnow

logger = logging.getLogger(__name__)


@dataclass
class StepResult:
    value: Any = None
    error: Optional[InboxError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class OnboardingContext:
    code: str
    user_token: str = ""
    profile: dict = field(default_factory=dict)
    pages: List[CandidatePage] = field(default_factory=list)
    session: Optional[PendingOnboarding] = None


@dataclass
class StartOutcome:
    session: PendingOnboarding
    needs_email: bool


class OnboardingOrchestrator:

    def __init__(
        self,
        settings: Settings,
        graph: GraphAPIClient,
        sessions: OnboardingSessionStore,
        tenants: TenantDirectory,
        page_filter: Callable,
        webhook_credential: Callable[[str], str],
        clock: Callable = utcnow,
    ):
        self.settings = settings
        self.graph = graph
        self.sessions = sessions
        self.tenants = tenants
        self.page_filter = page_filter
        self.webhook_credential = webhook_credential
        self.clock = clock

    def authorize_url(self) -> str:
        return self.graph.build_authorize_url(self.settings.oauth_scopes)

    # =================================================================
    #  START (OAuth callback)
    # =================================================================

    def start(self, code: str) -> StartOutcome:
        if not code:
            raise MissingFields("No authorization code provided.")

        ctx = OnboardingContext(code=code)
        steps = [
            self._exchange_code,
            self._upgrade_user_token,
            self._verify_scopes,
            self._fetch_profile,
            self._collect_pages,
            self._store_session,
        ]
        for step in steps:
            result = step(ctx)
            if not result.ok:
                logger.error("Onboarding stopped at %s: %s", step.__name__, result.error.code)
                raise result.error

        needs_email = not ctx.session.email
        logger.info(
            "Onboarding session %s ready (%s page(s), needs_email=%s)",
            ctx.session.id, len(ctx.session.pages), needs_email,
        )
        return StartOutcome(session=ctx.session, needs_email=needs_email)

    @staticmethod
    def _call(fn: Callable, *args) -> StepResult:
        """Runs one gateway call, mapping transport failures to UpstreamAuthError."""
        try:
            return StepResult(value=fn(*args))
        except GraphAPIError as e:
            return StepResult(error=UpstreamAuthError(f"Platform authentication failed: {e}"))

    def _exchange_code(self, ctx: OnboardingContext) -> StepResult:
        result = self._call(self.graph.exchange_code, ctx.code)
        if result.ok:
            ctx.user_token = result.value
        return result

    def _upgrade_user_token(self, ctx: OnboardingContext) -> StepResult:
        result = self._call(self.graph.exchange_long_lived, ctx.user_token)
        if result.ok:
            ctx.user_token = result.value
        return result

    def _verify_scopes(self, ctx: OnboardingContext) -> StepResult:
        required = self.settings.required_scopes
        if not required:
            return StepResult()

        result = self._call(self.graph.get_granted_scopes, ctx.user_token)
        if not result.ok:
            return result

        missing = [scope for scope in required if scope not in result.value]
        if missing:
            logger.error("Required permissions not granted: %s", ", ".join(missing))
            return StepResult(error=PermissionsNotGranted())
        return result

    def _fetch_profile(self, ctx: OnboardingContext) -> StepResult:
        result = self._call(self.graph.get_me, ctx.user_token)
        if not result.ok:
            return result
        if not result.value.get("id"):
            return StepResult(error=UpstreamAuthError("Platform profile is missing an id."))
        ctx.profile = result.value
        return result

    def _collect_pages(self, ctx: OnboardingContext) -> StepResult:
        result = self._call(self.graph.list_pages, ctx.user_token)
        if not result.ok:
            return result

        ctx.pages = self.page_filter(self.graph, result.value, ctx.user_token)
        if not ctx.pages:
            logger.warning("User %s has no eligible pages (%s listed)", ctx.profile["id"], len(result.value))
            return StepResult(error=NoEligiblePages())
        return StepResult(value=ctx.pages)

    def _store_session(self, ctx: OnboardingContext) -> StepResult:
        profile = ctx.profile
        ctx.session = self.sessions.upsert(
            facebook_user_id=profile["id"],
            name=profile.get("name"),
            email=profile.get("email") or None,
            avatar_url=get_nested_value(profile, ["picture", "data", "url"]),
            pages=ctx.pages,
        )
        return StepResult(value=ctx.session)

    # =================================================================
    #  SESSION
    # =================================================================

    def get_session(self, session_id: str) -> PendingOnboarding:
        session = self.sessions.get(session_id)
        if not session:
            raise SessionExpired("Session not found or expired.")
        return session

    def add_email(self, session_id: str, email: Optional[str]) -> PendingOnboarding:
        email = (email or "").strip()
        if not session_id or not email:
            raise MissingFields("Session ID and email are required.")

        session = self.sessions.set_email(session_id, email)
        if not session:
            raise SessionExpired("Session not found or expired.")
        return session

    # =================================================================
    #  FINALIZE
    # =================================================================

    def finalize(self, session_id: Optional[str], selected_page_id: Optional[str], agreed_to_terms: bool) -> Tenant:
        if not agreed_to_terms:
            raise TermsNotAccepted()
        if not session_id or not selected_page_id:
            raise MissingFields("Session or Page ID is missing.")

        session = self.sessions.get(session_id)
        if not session:
            raise SessionExpired()

        page = session.find_page(selected_page_id)
        if not page or not page.access_token:
            raise InvalidSelection()
        if not session.email:
            raise EmailRequired()

        # --- Step A: durable page token (no tenant write before this succeeds) ---
        try:
            durable_token = self.graph.exchange_long_lived(page.access_token)
        except GraphAPIError as e:
            logger.error("Long-lived page token exchange failed for page %s", page.id)
            raise UpstreamAuthError("Could not secure a long-lived token for the page.") from e

        # --- Step B: tenant upsert keyed by email ---
        tenant = self.tenants.upsert_onboarded(
            email=session.email,
            name=session.name,
            avatar_url=session.avatar_url,
            facebook_user_id=session.facebook_user_id,
            page_id=page.id,
            page_access_token=durable_token,
            business_name=page.name or None,
            default_sheet_id=self.settings.default_sheet_id,
            terms_version=self.settings.terms_version,
            now=self.clock(),
        )

        # --- Step C: webhook subscription (soft failure) ---
        try:
            self.register_webhook(page.id, durable_token)
        except WebhookRegistrationFailed as e:
            logger.error("Tenant %s onboarded without live messages: %s", tenant.id, e.message)

        # --- Step D: session cleanup ---
        self.sessions.delete(session.id)

        logger.info("Onboarded tenant %s for page %s", tenant.id, page.id)
        return tenant

    def register_webhook(self, page_id: str, page_token: str):
        """Subscribes the page to message webhooks; also usable to retry later."""
        credential = self.webhook_credential(page_token)
        if not credential:
            raise WebhookRegistrationFailed("No credential available for webhook subscription.")
        try:
            self.graph.subscribe_page(page_id, credential)
        except GraphAPIError as e:
            raise WebhookRegistrationFailed(f"Failed to subscribe page {page_id}: {e}") from e
        logger.info("Page %s subscribed to message webhooks", page_id)
