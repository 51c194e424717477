import hashlib
import hmac
import json
from datetime import timedelta
from decimal import Decimal

import pytest

from irembopay.models import PaymentMethod, PaymentStatus
from irembopay.webhook import (
    SignatureHeader,
    WebhookAuthenticationError,
    WebhookDecodeError,
    WebhookHeaderError,
    WebhookSignatureError,
    WebhookTimestampError,
    WebhookVerifier,
    verify_signature,
    verify_timestamp,
    verify_webhook,
)

SECRET = "sk_test_123"
NOW = 1_700_000_000.0
NOW_MS = int(NOW * 1000)

PAYLOAD = json.dumps(
    {
        "invoiceNumber": "880310188722",
        "transactionId": "TST-1001",
        "paymentStatus": "PAID",
        "paymentReference": "MTN-REF-1",
        "amount": 1500.5,
        "currency": "RWF",
        "paymentMethod": "MTN_MOMO",
        "paidAt": "2024-01-01T10:00:00+02:00",
        "paymentAccountId": "acc-1",
        "paymentMerchantId": "mer-1",
    }
)


def _reference_header(timestamp_ms: int, payload: str, secret: str = SECRET) -> str:
    message = f"{timestamp_ms}#{payload}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()
    return f"t={timestamp_ms},s={signature}"


@pytest.mark.parametrize(
    ("offset_ms", "expected"),
    [
        (-299_000, True),
        (-300_000, True),
        (-301_000, False),
        (299_000, True),
        (301_000, False),
        (0, True),
    ],
)
def test_verify_timestamp_window_is_absolute_and_inclusive(offset_ms, expected):
    header = f"t={NOW_MS + offset_ms},s=abc"

    assert verify_timestamp(header, 300, now=NOW) is expected


def test_verify_timestamp_accepts_timedelta_max_age():
    header = f"t={NOW_MS - 4 * 60_000 - 59_000},s=abc"

    assert verify_timestamp(header, timedelta(minutes=5), now=NOW) is True
    assert verify_timestamp(f"t={NOW_MS - 5 * 60_000 - 1_000},s=abc", timedelta(minutes=5), now=NOW) is False


@pytest.mark.parametrize(
    "header",
    ["t=123", "s=abc", "", "t=1,s=2,x=3", "t=1" + "0" * 400 + ",s=abc", "t=1" + "0" * 5000 + ",s=abc"],
)
def test_malformed_headers_fail_closed(header):
    with pytest.raises(WebhookHeaderError):
        verify_timestamp(header, 300, now=NOW)
    with pytest.raises(WebhookHeaderError):
        verify_signature(header, PAYLOAD, secret_key=SECRET)


def test_oversized_timestamps_are_header_errors_for_full_verification():
    with pytest.raises(WebhookHeaderError):
        verify_webhook("t=1" + "0" * 5000 + ",s=abc", PAYLOAD, secret_key=SECRET, now=NOW)
    with pytest.raises(WebhookHeaderError):
        verify_timestamp(SignatureHeader(timestamp="1" + "0" * 400, signature="abc"), 300, now=NOW)


def test_verify_signature_accepts_reference_signature():
    header = _reference_header(NOW_MS, PAYLOAD)

    assert verify_signature(header, PAYLOAD, secret_key=SECRET) is True
    assert verify_signature(header, PAYLOAD.encode("utf-8"), secret_key=SECRET.encode("utf-8")) is True


def test_verify_signature_rejects_single_byte_mutations():
    header = _reference_header(NOW_MS, PAYLOAD)
    mutated_payload = PAYLOAD.replace("1500.5", "1500.6")
    mutated_timestamp = header.replace(f"t={NOW_MS}", f"t={NOW_MS + 1}")

    assert verify_signature(header, mutated_payload, secret_key=SECRET) is False
    assert verify_signature(mutated_timestamp, PAYLOAD, secret_key=SECRET) is False
    assert verify_signature(header, PAYLOAD, secret_key="other-secret") is False


def test_verify_webhook_returns_decoded_notification():
    notification = verify_webhook(_reference_header(NOW_MS, PAYLOAD), PAYLOAD, secret_key=SECRET, now=NOW)

    assert notification.invoice_number == "880310188722"
    assert notification.payment_status is PaymentStatus.PAID
    assert notification.payment_method is PaymentMethod.MTN_MOMO
    assert notification.amount == Decimal("1500.5")


def test_verify_webhook_checks_timestamp_before_signature():
    stale = _reference_header(NOW_MS - 3_600_000, PAYLOAD, secret="wrong")

    with pytest.raises(WebhookTimestampError):
        verify_webhook(stale, PAYLOAD, secret_key=SECRET, now=NOW)


def test_verify_webhook_raises_signature_error_as_authentication_failure():
    header = _reference_header(NOW_MS, PAYLOAD, secret="wrong")

    with pytest.raises(WebhookSignatureError) as exc_info:
        verify_webhook(header, PAYLOAD, secret_key=SECRET, now=NOW)
    assert isinstance(exc_info.value, WebhookAuthenticationError)
    assert not isinstance(exc_info.value, WebhookHeaderError)


def test_verify_webhook_reports_decode_errors_after_authentication():
    payload = json.dumps({"invoiceNumber": 12})

    with pytest.raises(WebhookDecodeError):
        verify_webhook(_reference_header(NOW_MS, payload), payload, secret_key=SECRET, now=NOW)


def test_webhook_verifier_uses_configured_secret_and_max_age():
    verifier = WebhookVerifier(SECRET, max_age=60)
    header = _reference_header(NOW_MS - 90_000, PAYLOAD)

    assert verifier.verify_signature(header, PAYLOAD) is True
    assert verifier.verify_timestamp(header, now=NOW) is False
    assert verifier.verify_timestamp(header, 120, now=NOW) is True
    with pytest.raises(WebhookTimestampError):
        verifier.verify(header, PAYLOAD, now=NOW)


def test_webhook_verifier_requires_secret():
    with pytest.raises(ValueError):
        WebhookVerifier("")
