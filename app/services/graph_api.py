"""
GraphAPIClient: thin wrapper over the Meta Graph API used by onboarding
(token exchanges, profile/page enumeration, webhook subscription) and by
the message router (customer profile lookup).

Every call has a bounded timeout and raises GraphAPIError on network
failures or non-2xx responses. Access tokens are never logged.
"""

import json
import logging
from typing import List, Optional
from urllib.parse import urlencode

import requests

from app.config import Settings

logger = logging.getLogger(__name__)

GRAPH_BASE_URL = "https://graph.facebook.com"
DIALOG_BASE_URL = "https://www.facebook.com"

PAGE_FIELDS = "id,name,access_token,instagram_business_account{id,username,profile_picture_url}"


class GraphAPIError(Exception):
    """A Graph API call failed (network error, timeout or error response)."""

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Optional[dict] = None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload or {}


class GraphAPIClient:

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None):
        self.app_id = settings.facebook_app_id
        self.app_secret = settings.facebook_app_secret
        self.redirect_uri = settings.redirect_uri
        self.version = settings.graph_api_version
        self.timeout = settings.graph_api_timeout
        self.session = session or requests.Session()

    # =================================================================
    #  OAUTH
    # =================================================================

    def build_authorize_url(self, scopes: List[str]) -> str:
        """Dialog URL that starts the business-integration login flow."""
        params = {
            "client_id": self.app_id,
            "redirect_uri": self.redirect_uri,
            "scope": ",".join(scopes),
            # extras.setup selects the Instagram inbox integration screen
            "extras": json.dumps({"setup": {"channel": "IG_SC_INBOX"}}, separators=(",", ":")),
        }
        return f"{DIALOG_BASE_URL}/{self.version}/dialog/oauth?{urlencode(params)}"

    def exchange_code(self, code: str) -> str:
        """Authorization code -> short-lived user token."""
        data = self._get(f"{self.version}/oauth/access_token", {
            "client_id": self.app_id,
            "redirect_uri": self.redirect_uri,
            "client_secret": self.app_secret,
            "code": code,
        })
        return self._require(data, "access_token")

    def exchange_long_lived(self, short_lived_token: str) -> str:
        """
        Short-lived token -> long-lived token.
        Works for both user tokens and page tokens; a page token obtained
        from a long-lived user token comes back without expiry.
        """
        data = self._get(f"{self.version}/oauth/access_token", {
            "grant_type": "fb_exchange_token",
            "client_id": self.app_id,
            "client_secret": self.app_secret,
            "fb_exchange_token": short_lived_token,
        })
        return self._require(data, "access_token")

    def get_granted_scopes(self, user_token: str) -> List[str]:
        data = self._get(f"{self.version}/debug_token", {
            "input_token": user_token,
            "access_token": f"{self.app_id}|{self.app_secret}",
        })
        return list((data.get("data") or {}).get("scopes") or [])

    # =================================================================
    #  PROFILE & PAGES
    # =================================================================

    def get_me(self, user_token: str) -> dict:
        return self._get(f"{self.version}/me", {"fields": "id,name,email,picture", "access_token": user_token})

    def list_pages(self, user_token: str) -> List[dict]:
        data = self._get(f"{self.version}/me/accounts", {"fields": PAGE_FIELDS, "access_token": user_token})
        return data.get("data") or []

    def get_owner_business_id(self, page_id: str, user_token: str) -> Optional[str]:
        data = self._get(f"{self.version}/{page_id}", {
            "fields": "owner_business",
            "access_token": user_token,
        })
        owner = data.get("owner_business") or {}
        return owner.get("id")

    def get_contact_profile(self, contact_id: str, page_token: str) -> dict:
        """Name and avatar of a customer who messaged the page."""
        return self._get(f"{self.version}/{contact_id}", {"fields": "name,profile_pic", "access_token": page_token})

    # =================================================================
    #  WEBHOOKS
    # =================================================================

    def subscribe_page(self, page_id: str, access_token: str) -> bool:
        data = self._post(f"{self.version}/{page_id}/subscribed_apps", {
            "subscribed_fields": "messages",
            "access_token": access_token,
        })
        return bool(data.get("success", True))

    # =================================================================
    #  TRANSPORT
    # =================================================================

    def _get(self, path: str, params: dict) -> dict:
        return self._request("GET", path, params=params)

    def _post(self, path: str, form: dict) -> dict:
        return self._request("POST", path, data=form)

    def _request(self, method: str, path: str, params: dict = None, data: dict = None) -> dict:
        url = f"{GRAPH_BASE_URL}/{path}"
        try:
            response = self.session.request(method, url, params=params, data=data, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error("Graph API %s /%s failed: %s", method, path, e.__class__.__name__)
            raise GraphAPIError(f"Graph API request failed: {e.__class__.__name__}") from e

        if not response.ok:
            payload = self._error_payload(response)
            logger.error("Graph API %s /%s -> %s: %s", method, path, response.status_code, payload)
            raise GraphAPIError(
                payload.get("message") or f"Graph API returned {response.status_code}",
                status_code=response.status_code,
                payload=payload,
            )

        try:
            return response.json()
        except ValueError as e:
            raise GraphAPIError("Graph API returned a non-JSON body", status_code=response.status_code) from e

    @staticmethod
    def _error_payload(response: requests.Response) -> dict:
        try:
            body = response.json()
        except ValueError:
            return {"message": response.text[:200]}
        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            return body["error"]
        return {"message": str(body)[:200]}

    @staticmethod
    def _require(data: dict, key: str) -> str:
        value = data.get(key)
        if not value:
            raise GraphAPIError(f"Graph API response is missing '{key}'")
        return value
