from typing import Any, Callable, Dict, Mapping, Optional

import structlog

from ..idempotency import DeliveryClaim, MemoryIdempotencyStore, notification_key
from ..models import PaymentNotification
from .errors import WebhookError, WebhookHeaderError, WebhookInFlightError
from .security import WebhookVerifier
from .signature import SIGNATURE_HEADER

logger = structlog.get_logger()

NotificationHandler = Callable[[PaymentNotification], Any]


def _get_header(headers: Mapping[str, str], key: str) -> Optional[str]:
    key_lower = key.lower()
    for name, value in headers.items():
        if name.lower() == key_lower:
            return value
    return None


class WebhookReceiver:
    """Verify, de-duplicate and dispatch one inbound payment notification.

    Every failure propagates to the caller, which must answer the provider
    with a non-2xx status so the delivery is retried.
    """

    def __init__(
        self,
        verifier: WebhookVerifier,
        handler: Optional[NotificationHandler] = None,
        *,
        store: Optional[MemoryIdempotencyStore] = None,
        signature_header: str = SIGNATURE_HEADER,
    ) -> None:
        self._verifier = verifier
        self._handler = handler
        self._store = store
        self._signature_header = signature_header

    def handle(self, headers: Mapping[str, str], raw_body: bytes) -> Dict[str, Any]:
        signature = _get_header(headers, self._signature_header)
        if not signature:
            raise WebhookHeaderError(f"missing {self._signature_header} header")
        try:
            notification = self._verifier.verify(signature, raw_body)
        except WebhookError as exc:
            logger.warning("Webhook rejected", error=str(exc), error_type=type(exc).__name__)
            raise

        key = notification_key(notification) if self._store is not None else None
        if key is not None:
            claim = self._store.claim(key)
            if claim is DeliveryClaim.COMPLETED:
                logger.info("Duplicate webhook delivery", invoice_number=notification.invoice_number)
                return _ack(notification, duplicate=True)
            if claim is DeliveryClaim.IN_FLIGHT:
                logger.warning("Webhook delivery already in flight", invoice_number=notification.invoice_number)
                raise WebhookInFlightError(f"notification {key} is still being handled")

        try:
            if self._handler is not None:
                self._handler(notification)
        except Exception:
            if key is not None:
                self._store.release(key)
            raise
        if key is not None:
            self._store.commit(key)
        logger.info(
            "Webhook accepted",
            invoice_number=notification.invoice_number,
            payment_status=notification.payment_status.value,
        )
        return _ack(notification, duplicate=False)


def _ack(notification: PaymentNotification, *, duplicate: bool) -> Dict[str, Any]:
    return {
        "ok": True,
        "duplicate": duplicate,
        "invoice_number": notification.invoice_number,
        "payment_status": notification.payment_status.value,
    }
