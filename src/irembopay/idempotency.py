import hashlib
import threading
import time
from enum import Enum
from typing import Dict, Optional, Set

from .models import PaymentNotification


def derive_idempotency_key(operation: str, identifier: str) -> str:
    """Derive a stable key for retrying a creation call.

    The key only depends on ``operation`` and ``identifier``, so a retried
    request carries the same key in any process. Fields are length-prefixed
    before hashing, which keeps ``("ab", "c")`` and ``("a", "bc")`` apart.
    """
    if not operation:
        raise ValueError("operation is required to derive an idempotency key")
    material = f"{len(operation)}:{operation}|{len(identifier)}:{identifier}"
    digest = hashlib.sha256(material.encode("utf-8")).hexdigest()
    return f"{operation}-{digest}"


def notification_key(notification: PaymentNotification) -> Optional[str]:
    reference = notification.payment_reference or notification.transaction_id
    if not notification.invoice_number or not reference:
        return None
    return f"{notification.invoice_number}:{reference}:{notification.payment_status.value}"


class DeliveryClaim(str, Enum):
    CLAIMED = "claimed"
    IN_FLIGHT = "in_flight"
    COMPLETED = "completed"


class MemoryIdempotencyStore:
    """Process-local ledger of webhook deliveries.

    A delivery is claimed while its handler runs and only counts as handled
    once committed. A released claim can be taken by the next redelivery.
    """

    def __init__(self, *, ttl_seconds: float = 86_400.0) -> None:
        self._ttl_seconds = ttl_seconds
        self._completed: Dict[str, float] = {}
        self._in_flight: Set[str] = set()
        self._lock = threading.Lock()

    def claim(self, key: str) -> DeliveryClaim:
        now = time.monotonic()
        with self._lock:
            self._expire(now)
            if key in self._completed:
                return DeliveryClaim.COMPLETED
            if key in self._in_flight:
                return DeliveryClaim.IN_FLIGHT
            self._in_flight.add(key)
            return DeliveryClaim.CLAIMED

    def commit(self, key: str) -> None:
        with self._lock:
            self._in_flight.discard(key)
            self._completed[key] = time.monotonic() + self._ttl_seconds

    def release(self, key: str) -> None:
        with self._lock:
            self._in_flight.discard(key)

    def seen(self, key: str) -> bool:
        now = time.monotonic()
        with self._lock:
            expires_at = self._completed.get(key)
            return expires_at is not None and expires_at > now

    def _expire(self, now: float) -> None:
        expired_keys = [key for key, expires_at in self._completed.items() if expires_at <= now]
        for key in expired_keys:
            del self._completed[key]
