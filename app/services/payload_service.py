"""
PayloadService: turns a platform webhook envelope into MessagingEvent objects.

Envelope shape:
    {"object": "instagram",
     "entry": [{"id": ..., "messaging": [
         {"sender": {"id": ...}, "recipient": {"id": ...},
          "timestamp": 1718000000000,
          "message": {"mid": ..., "text": "...", "is_echo": false}}]}]}

Echoes (messages the page itself sent) and anything that is not plain text
(attachments, stickers, reactions, read receipts) are marked as ignored
here, before routing.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from app.utils.helpers import from_epoch_ms, get_nested_value, utcnow

logger = logging.getLogger(__name__)

PLATFORM_BY_OBJECT = {
    "instagram": "instagram",
    "page": "facebook",
}


@dataclass
class MessagingEvent:
    """One normalized messaging event from a webhook delivery."""
    platform: str = ""
    sender_id: str = ""
    recipient_id: str = ""
    text: str = ""
    message_id: str = ""
    sent_at: Optional[datetime] = None

    # Filtering
    should_ignore: bool = False
    ignore_reason: str = ""

    raw_event: Dict[str, Any] = field(default_factory=dict)

    def ignore(self, reason: str) -> "MessagingEvent":
        self.should_ignore = True
        self.ignore_reason = reason
        return self


def is_structurally_valid(body: Any) -> bool:
    """The acknowledgment path only needs a JSON object."""
    return isinstance(body, dict)


def extract_messaging_events(body: dict) -> List[MessagingEvent]:
    """
    All messaging events in the envelope, ignored ones included (with a
    reason). Unsupported objects yield an empty list.
    """
    object_type = body.get("object")
    platform = PLATFORM_BY_OBJECT.get(object_type)
    if not platform:
        logger.warning("Received an event for an unsupported object: %s", object_type)
        return []

    events = []
    for entry in body.get("entry") or []:
        if not isinstance(entry, dict):
            continue
        messaging = entry.get("messaging") or []
        logger.info("Processing entry %s (%s event(s))", entry.get("id"), len(messaging))
        for raw_event in messaging:
            if isinstance(raw_event, dict):
                events.append(parse_event(raw_event, platform))
    return events


def parse_event(raw_event: dict, platform: str) -> MessagingEvent:
    event = MessagingEvent(platform=platform, raw_event=raw_event)

    event.sender_id = str(get_nested_value(raw_event, ["sender", "id"]) or "")
    event.recipient_id = str(get_nested_value(raw_event, ["recipient", "id"]) or "")
    event.sent_at = from_epoch_ms(raw_event.get("timestamp")) or utcnow()

    message = raw_event.get("message")
    if not isinstance(message, dict):
        # reactions, reads, postbacks, deliveries...
        return event.ignore("not a message")

    if message.get("is_echo"):
        return event.ignore("echo")

    if message.get("is_deleted"):
        return event.ignore("deleted")

    if message.get("attachments") or message.get("sticker_id"):
        return event.ignore("non-text payload")

    text = message.get("text")
    if not isinstance(text, str) or not text.strip():
        return event.ignore("empty text")

    if not event.sender_id or not event.recipient_id:
        return event.ignore("missing sender or recipient")

    event.text = text
    event.message_id = str(message.get("mid") or "")
    return event
