"""
Error taxonomy for onboarding and inbound message routing.

Errors raised during onboarding propagate to the HTTP layer, which turns
them into a status code plus a stable `error` code. The "soft" errors
(webhook registration, profile enrichment, AI dispatch) are caught and
logged where they happen and never reach a client.
"""


class InboxError(Exception):
    code = "internal_error"
    status_code = 500
    default_message = "An unexpected error occurred."

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message}


# --- Onboarding (surfaced) ---

class UpstreamAuthError(InboxError):
    code = "upstream_auth_error"
    status_code = 500
    default_message = "An error occurred during authentication with the platform."


class PermissionsNotGranted(InboxError):
    code = "permissions_not_granted"
    status_code = 403
    default_message = "The required permissions to manage messages were not granted."


class NoEligiblePages(InboxError):
    code = "no_eligible_pages"
    status_code = 400
    default_message = "No Instagram Business Accounts found linked to your Facebook Pages."


class InvalidSelection(InboxError):
    code = "invalid_selection"
    status_code = 400
    default_message = "Selected page is invalid or missing a token."


class SessionExpired(InboxError):
    code = "session_expired"
    status_code = 404
    default_message = "Onboarding session expired. Please log in again."


class TermsNotAccepted(InboxError):
    code = "terms_not_accepted"
    status_code = 400
    default_message = "You must agree to the Terms and Conditions."


class MissingFields(InboxError):
    code = "missing_fields"
    status_code = 400
    default_message = "Required fields are missing."


class EmailRequired(InboxError):
    code = "email_required"
    status_code = 400
    default_message = "An email address is required before finishing onboarding."


class PageAlreadyLinked(InboxError):
    code = "page_already_linked"
    status_code = 409
    default_message = "This page is already linked to another account."


# --- Soft failures (logged, never surfaced) ---

class WebhookRegistrationFailed(InboxError):
    code = "webhook_registration_failed"
    default_message = "Failed to subscribe page to webhooks."


class UnknownTenantForPage(InboxError):
    code = "unknown_tenant_for_page"
    default_message = "No tenant is linked to this page."


class ProfileEnrichmentFailed(InboxError):
    code = "profile_enrichment_failed"
    default_message = "Could not fetch the customer profile."


class AIResponderUnavailable(InboxError):
    code = "ai_responder_unavailable"
    status_code = 503
    default_message = "The AI responder could not be reached."
