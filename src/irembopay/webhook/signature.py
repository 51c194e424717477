import hashlib
import hmac
import time
from dataclasses import dataclass
from typing import Optional, Union

from .errors import WebhookHeaderError

SIGNATURE_HEADER = "irembopay-signature"

_MAX_TIMESTAMP_MS = 2**63 - 1


@dataclass(frozen=True)
class SignatureHeader:
    timestamp: str
    signature: str

    @property
    def timestamp_ms(self) -> int:
        return int(self.timestamp)

    def __str__(self) -> str:
        return format_signature_header(self.timestamp, self.signature)


def parse_signature_header(value: Optional[str]) -> SignatureHeader:
    """Parse ``t=<epoch-ms>,s=<hex>``.

    Both fields are required exactly once, in any order, with surrounding
    whitespace ignored. Anything else raises :class:`WebhookHeaderError`.
    """
    if not value:
        raise WebhookHeaderError("missing signature header")
    parts = value.split(",")
    if len(parts) != 2:
        raise WebhookHeaderError(f"invalid signature format: expected 2 fields, got {len(parts)}")
    fields: dict[str, str] = {}
    for part in parts:
        name, sep, field_value = part.strip().partition("=")
        if not sep or name not in ("t", "s"):
            raise WebhookHeaderError(f"invalid signature field: {part.strip()!r}")
        if name in fields:
            raise WebhookHeaderError(f"duplicate signature field: {name!r}")
        fields[name] = field_value.strip()
    timestamp = fields.get("t", "")
    signature = fields.get("s", "")
    if not timestamp:
        raise WebhookHeaderError("missing timestamp")
    if not signature:
        raise WebhookHeaderError("missing signature")
    if not timestamp.isascii() or not timestamp.isdigit():
        raise WebhookHeaderError(f"invalid timestamp format: {timestamp!r}")
    if len(timestamp) > 19 or int(timestamp) > _MAX_TIMESTAMP_MS:
        raise WebhookHeaderError(f"timestamp out of range: {timestamp[:32]!r}")
    return SignatureHeader(timestamp=timestamp, signature=signature)


def format_signature_header(timestamp: Union[int, str], signature: str) -> str:
    return f"t={timestamp},s={signature}"


def compute_signature(secret_key: Union[str, bytes], timestamp: Union[int, str], payload: Union[str, bytes]) -> str:
    key = secret_key.encode("utf-8") if isinstance(secret_key, str) else secret_key
    body = payload if isinstance(payload, bytes) else payload.encode("utf-8")
    message = f"{timestamp}#".encode("utf-8") + body
    return hmac.new(key, message, hashlib.sha256).hexdigest()


def sign_payload(
    secret_key: Union[str, bytes],
    payload: Union[str, bytes],
    *,
    timestamp_ms: Optional[int] = None,
) -> str:
    """Build a complete signature header value for ``payload``."""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return format_signature_header(timestamp_ms, compute_signature(secret_key, timestamp_ms, payload))
