import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional


def get_nested_value(data: Dict[str, Any], keys: list) -> Any:
    """Walks a list of keys through nested dicts; None if any level is missing."""
    current = data
    for key in keys:
        if isinstance(current, dict) and key in current:
            current = current[key]
        else:
            return None
    return current


def is_valid_id(value: str) -> bool:
    """Row ids are uuids; anything else would be rejected by Postgres."""
    try:
        uuid.UUID(str(value))
        return True
    except ValueError:
        return False


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    """
    Fixed-width ISO-8601 in UTC so stored timestamps also compare correctly
    as strings (PostgREST filters receive them verbatim).
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_epoch_ms(value: Any) -> Optional[datetime]:
    """Platform webhook timestamps are epoch milliseconds."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def placeholder_name(contact_id: str) -> str:
    """Stand-in display name built from the last digits of a customer id."""
    return f"User {contact_id[-4:]}"
