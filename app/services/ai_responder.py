"""
AIResponderClient: forwards an eligible inbound message to the AI service,
which generates and delivers the reply on its own.
"""

import logging
from typing import Optional

import requests

from app.config import Settings
from app.models.errors import AIResponderUnavailable
from app.models.schemas import AIResponderPayload

logger = logging.getLogger(__name__)


class AIResponderClient:

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None):
        self.base_url = settings.ai_service_base_url.rstrip("/")
        self.api_key = settings.ai_service_api_key
        self.timeout = settings.ai_service_timeout
        self.session = session or requests.Session()

        if not self.api_key:
            logger.warning("AI_SERVICE_API_KEY not found in env")

    def dispatch(self, payload: AIResponderPayload) -> dict:
        """
        POST {base}/process-message. Raises AIResponderUnavailable when the
        service is not configured, unreachable, or answers with an error.
        """
        if not self.base_url:
            raise AIResponderUnavailable("AI_SERVICE_BASE_URL is not configured")

        url = f"{self.base_url}/process-message"
        headers = {
            "Content-Type": "application/json",
            "X-Internal-API-Key": self.api_key,
        }

        logger.info("Calling AI responder for contact %s...", payload.user_id)
        try:
            response = self.session.post(url, json=payload.model_dump(), headers=headers, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            detail = e.response.text[:200] if getattr(e, "response", None) is not None else str(e)
            raise AIResponderUnavailable(f"AI responder call failed: {detail}") from e

        logger.info("AI responder accepted message for contact %s", payload.user_id)
        try:
            return response.json()
        except ValueError:
            return {}
