from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime

from ..core.constants import QR_PAYLOAD_ACTION, QR_PAYLOAD_TYPE
from ..core.exceptions import ValidationError


@dataclass(frozen=True)
class PunchToken:
    """Short-lived, single-use kiosk token."""

    token_id: str
    issued_at: datetime
    expires_at: datetime
    used: bool = False

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


def to_qr_payload(token: PunchToken) -> str:
    """JSON shown as QR on the kiosk and read back by scanner clients."""
    return json.dumps(
        {
            "token": token.token_id,
            "timestamp": token.issued_at.isoformat(timespec="seconds"),
            "type": QR_PAYLOAD_TYPE,
            "action": QR_PAYLOAD_ACTION,
        },
        separators=(",", ":"),
    )


def parse_qr_payload(raw: str) -> str:
    """Return the token id from a scanned payload; reject unrelated QR codes."""
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        raise ValidationError("QR code is not an attendance punch code")

    if not isinstance(data, dict) or data.get("type") != QR_PAYLOAD_TYPE:
        raise ValidationError("QR code is not an attendance punch code")
    if data.get("action", QR_PAYLOAD_ACTION) != QR_PAYLOAD_ACTION:
        raise ValidationError("QR code is not meant for clock punches")

    token_id = data.get("token")
    if not token_id or not data.get("timestamp"):
        raise ValidationError("QR payload is missing token or timestamp")
    return str(token_id)


def extract_token_id(value: str) -> str:
    """Accept either a bare token id or the full QR JSON payload."""
    v = (value or "").strip()
    if not v:
        raise ValidationError("token is required")
    if v.startswith("{"):
        return parse_qr_payload(v)
    return v
