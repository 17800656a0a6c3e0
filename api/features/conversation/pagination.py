"""Opaque pagination cursors.

A cursor is the URL-safe base64 encoding of a compact JSON object holding the
`(created_at, id)` position of a message.
"""
import base64
import binascii
import json
from datetime import datetime
from enum import Enum

from api.features.conversation.exceptions import InvalidCursorError
from api.features.conversation.repositories.message_repository import Position
from api.shared.entities.base import is_storable_id
from api.shared.utils import ensure_utc


class PageDirection(str, Enum):
    OLDER = "older"
    NEWER = "newer"


def encode_cursor(position: Position) -> str:
    payload = {"t": ensure_utc(position.created_at).isoformat(), "id": position.id}
    raw = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode_cursor(cursor: str) -> Position:
    try:
        padded = cursor + "=" * (-len(cursor) % 4)
        payload = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
        created_at = ensure_utc(datetime.fromisoformat(payload["t"]))
        message_id = payload["id"]
    except (ValueError, TypeError, KeyError, UnicodeError, binascii.Error):
        raise InvalidCursorError(cursor)
    if (
        isinstance(message_id, bool)
        or not isinstance(message_id, int)
        or not is_storable_id(message_id)
    ):
        raise InvalidCursorError(cursor)
    return Position(created_at, message_id)
