from .errors import (
    WebhookAuthenticationError,
    WebhookDecodeError,
    WebhookError,
    WebhookHeaderError,
    WebhookInFlightError,
    WebhookSignatureError,
    WebhookTimestampError,
)
from .notification import decode_notification
from .receiver import WebhookReceiver
from .security import (
    DEFAULT_MAX_AGE_SECONDS,
    WebhookVerifier,
    verify_signature,
    verify_timestamp,
    verify_webhook,
)
from .signature import (
    SIGNATURE_HEADER,
    SignatureHeader,
    compute_signature,
    format_signature_header,
    parse_signature_header,
    sign_payload,
)

__all__ = [
    "DEFAULT_MAX_AGE_SECONDS",
    "SIGNATURE_HEADER",
    "SignatureHeader",
    "WebhookAuthenticationError",
    "WebhookDecodeError",
    "WebhookError",
    "WebhookHeaderError",
    "WebhookInFlightError",
    "WebhookReceiver",
    "WebhookSignatureError",
    "WebhookTimestampError",
    "WebhookVerifier",
    "compute_signature",
    "decode_notification",
    "format_signature_header",
    "parse_signature_header",
    "sign_payload",
    "verify_signature",
    "verify_timestamp",
    "verify_webhook",
]
