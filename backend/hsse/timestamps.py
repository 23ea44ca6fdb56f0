"""Timestamp parsing shared by the derivation modules."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any


def parse_utc(value: Any) -> datetime | None:
    """
    Parse a datetime or ISO-8601 string into an aware UTC datetime.

    Naive values are taken as UTC. A trailing ``Z`` (as sent by JS clients)
    is accepted on every supported Python. Anything unparsable yields None.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
