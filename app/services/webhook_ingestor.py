"""
WebhookIngestor: platform webhook handshake and event fan-out.

The HTTP layer acknowledges deliveries before calling process(); from then
on nothing may propagate. Each messaging event is routed in its own worker
thread and failures are logged per event.
"""

import asyncio
import hmac
import logging
from dataclasses import dataclass
from typing import List, Optional

from app.services.message_router import MessageRouter
from app.services.payload_service import extract_messaging_events

logger = logging.getLogger(__name__)

ACK_BODY = "EVENT_RECEIVED"


@dataclass
class HandshakeResult:
    status_code: int
    body: str = ""


class WebhookIngestor:

    def __init__(self, router: MessageRouter, verify_token: str):
        self.router = router
        self.verify_token = verify_token

    def verify(self, mode: Optional[str], token: Optional[str], challenge: Optional[str]) -> HandshakeResult:
        """hub.mode / hub.verify_token / hub.challenge subscription check."""
        if not mode or not token or challenge is None:
            logger.error("Webhook verification failed: missing mode, token or challenge")
            return HandshakeResult(400)

        token_matches = bool(self.verify_token) and hmac.compare_digest(
            token.encode("utf-8"), self.verify_token.encode("utf-8"),
        )
        if mode == "subscribe" and token_matches:
            logger.info("Webhook verification succeeded, echoing challenge")
            return HandshakeResult(200, challenge)

        logger.error("Webhook verification failed: token mismatch or mode '%s'", mode)
        return HandshakeResult(403)

    async def process(self, body: dict) -> List:
        """
        Routes every event in the delivery concurrently and waits for all of
        them. Returns one RouteResult or exception per routed event.
        """
        try:
            events = extract_messaging_events(body)
        except Exception as e:
            logger.error("Could not read webhook delivery: %s", e)
            return []

        routable = []
        for event in events:
            if event.should_ignore:
                logger.info("Skipping event from %s: %s", event.sender_id or "unknown", event.ignore_reason)
            else:
                routable.append(event)

        if not routable:
            return []

        results = await asyncio.gather(
            *(asyncio.to_thread(self.router.route, event) for event in routable),
            return_exceptions=True,
        )

        for event, result in zip(routable, results):
            if isinstance(result, BaseException):
                logger.error(
                    "Failed to process message from %s for page %s: %r",
                    event.sender_id, event.recipient_id, result,
                )
            else:
                logger.info("Message from %s -> %s", event.sender_id, result.outcome.value)
        return list(results)
