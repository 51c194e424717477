import hmac
import time
from datetime import timedelta
from typing import Optional, Union

import structlog

from ..models import PaymentNotification
from .errors import WebhookSignatureError, WebhookTimestampError
from .notification import decode_notification
from .signature import SignatureHeader, compute_signature, parse_signature_header

logger = structlog.get_logger()

DEFAULT_MAX_AGE_SECONDS = 300.0

HeaderValue = Union[str, SignatureHeader, None]
MaxAge = Union[float, timedelta]


def _as_header(header: HeaderValue) -> SignatureHeader:
    if isinstance(header, SignatureHeader):
        header = str(header)
    return parse_signature_header(header)


def _max_age_ms(max_age: MaxAge) -> float:
    seconds = max_age.total_seconds() if isinstance(max_age, timedelta) else float(max_age)
    if seconds < 0:
        raise ValueError("max_age must not be negative")
    return seconds * 1000.0


def verify_timestamp(
    header: HeaderValue,
    max_age: MaxAge = DEFAULT_MAX_AGE_SECONDS,
    *,
    now: Optional[float] = None,
) -> bool:
    """Return whether the header timestamp lies within ``max_age`` of now.

    The distance is absolute, so timestamps ahead of the local clock are
    judged like past ones. A distance equal to ``max_age`` passes. ``now`` is
    seconds since the epoch and defaults to the current time.
    """
    parsed = _as_header(header)
    now_ms = round((now if now is not None else time.time()) * 1000)
    return abs(now_ms - parsed.timestamp_ms) <= _max_age_ms(max_age)


def verify_signature(
    header: HeaderValue,
    payload: Union[str, bytes],
    *,
    secret_key: Union[str, bytes],
) -> bool:
    parsed = _as_header(header)
    expected = compute_signature(secret_key, parsed.timestamp, payload)
    return hmac.compare_digest(expected.encode("ascii"), parsed.signature.encode("utf-8"))


def verify_webhook(
    header: HeaderValue,
    payload: Union[str, bytes],
    *,
    secret_key: Union[str, bytes],
    max_age: MaxAge = DEFAULT_MAX_AGE_SECONDS,
    now: Optional[float] = None,
) -> PaymentNotification:
    parsed = _as_header(header)
    if not verify_timestamp(parsed, max_age, now=now):
        logger.warning("Webhook timestamp outside allowed window", timestamp=parsed.timestamp)
        raise WebhookTimestampError("timestamp is outside allowed range")
    if not verify_signature(parsed, payload, secret_key=secret_key):
        logger.warning("Webhook signature mismatch", timestamp=parsed.timestamp)
        raise WebhookSignatureError("signature verification failed")
    return decode_notification(payload)


class WebhookVerifier:
    def __init__(
        self,
        secret_key: Union[str, bytes],
        *,
        max_age: MaxAge = DEFAULT_MAX_AGE_SECONDS,
    ) -> None:
        if not secret_key:
            raise ValueError("secret_key is required")
        self._secret_key = secret_key
        self._max_age = max_age

    @property
    def max_age(self) -> MaxAge:
        return self._max_age

    def verify_timestamp(
        self,
        header: HeaderValue,
        max_age: Optional[MaxAge] = None,
        *,
        now: Optional[float] = None,
    ) -> bool:
        return verify_timestamp(header, self._max_age if max_age is None else max_age, now=now)

    def verify_signature(self, header: HeaderValue, payload: Union[str, bytes]) -> bool:
        return verify_signature(header, payload, secret_key=self._secret_key)

    def verify(
        self,
        header: HeaderValue,
        payload: Union[str, bytes],
        *,
        now: Optional[float] = None,
    ) -> PaymentNotification:
        return verify_webhook(
            header,
            payload,
            secret_key=self._secret_key,
            max_age=self._max_age,
            now=now,
        )
