import json
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from irembopay.models import (
    BatchInvoiceRequest,
    Customer,
    Invoice,
    InvoiceRequest,
    InvoiceType,
    Language,
    MomoPaymentRequest,
    PaymentItem,
    PaymentMethod,
    PaymentNotification,
    PaymentProvider,
    PaymentStatus,
    UpdateInvoiceRequest,
    encode_notification,
    format_time,
    parse_time,
)
from irembopay.webhook import WebhookDecodeError, decode_notification


def _notification_payload(**overrides):
    payload = {
        "invoiceNumber": "880310188722",
        "transactionId": "TST-1001",
        "paymentStatus": "PAID",
        "paymentReference": "MTN-REF-1",
        "amount": 1500.25,
        "currency": "RWF",
        "paymentMethod": "MTN_MOMO",
        "paidAt": "2024-01-01T10:00:00+02:00",
        "paymentAccountId": "acc-1",
        "paymentMerchantId": "mer-1",
    }
    payload.update(overrides)
    return payload


def test_decode_notification_reads_every_field():
    notification = decode_notification(json.dumps(_notification_payload()).encode("utf-8"))

    assert notification.invoice_number == "880310188722"
    assert notification.transaction_id == "TST-1001"
    assert notification.payment_status is PaymentStatus.PAID
    assert notification.payment_reference == "MTN-REF-1"
    assert notification.amount == Decimal("1500.25")
    assert notification.currency == "RWF"
    assert notification.payment_method is PaymentMethod.MTN_MOMO
    assert notification.paid_at == "2024-01-01T10:00:00+02:00"
    assert notification.payment_account_id == "acc-1"
    assert notification.payment_merchant_id == "mer-1"


def test_notification_encode_then_decode_keeps_fields():
    original = decode_notification(json.dumps(_notification_payload(amount=12345678.91)))

    decoded = decode_notification(encode_notification(original))

    assert decoded == original
    assert decoded.amount == Decimal("12345678.91")
    assert decoded.to_dict() == original.to_dict()


def test_notification_encode_keeps_every_digit_of_high_precision_amounts():
    raw = '{"invoiceNumber":"INV-1","amount":12345678901234567.25,"currency":"RWF"}'

    original = decode_notification(raw)
    encoded = encode_notification(original)

    assert original.amount == Decimal("12345678901234567.25")
    assert '"amount":12345678901234567.25' in encoded
    assert decode_notification(encoded).amount == original.amount


def test_unknown_enum_values_are_tolerated_and_preserved_on_encode():
    notification = decode_notification(
        json.dumps(_notification_payload(paymentStatus="REFUNDED", paymentMethod="BANK_CARD"))
    )

    assert notification.payment_status is PaymentStatus.UNKNOWN
    assert notification.payment_method is PaymentMethod.UNKNOWN
    assert notification.to_dict()["paymentStatus"] == "REFUNDED"
    assert notification.to_dict()["paymentMethod"] == "BANK_CARD"


@pytest.mark.parametrize(
    "payload",
    [
        b"not json",
        b"[1, 2]",
        json.dumps(_notification_payload(amount="1500")).encode("utf-8"),
        json.dumps(_notification_payload(amount=True)).encode("utf-8"),
        json.dumps(_notification_payload(currency=1)).encode("utf-8"),
        b"\xff\xfe",
        b'{"amount":' + b"9" * 5000 + b"}",
        b"[" * 100_000,
    ],
)
def test_decode_notification_rejects_shape_mismatches(payload):
    with pytest.raises(WebhookDecodeError):
        decode_notification(payload)


def test_decode_notification_does_not_validate_semantics():
    notification = decode_notification(json.dumps(_notification_payload(amount=-10)))

    assert notification.amount == Decimal(-10)


def test_invoice_request_serializes_wire_names_and_drops_empty_fields():
    request = InvoiceRequest(
        transaction_id="TST-1",
        payment_account_identifier="TST-RWF",
        payment_items=[PaymentItem(code="PC-1", quantity=2, unit_amount=Decimal("100"))],
        customer=Customer(phone_number="0780000001"),
        language=Language.EN,
    )

    assert request.to_dict() == {
        "transactionId": "TST-1",
        "paymentAccountIdentifier": "TST-RWF",
        "paymentItems": [{"code": "PC-1", "quantity": 2, "unitAmount": Decimal("100")}],
        "customer": {"phoneNumber": "0780000001"},
        "language": "EN",
    }


def test_payment_item_requires_positive_quantity():
    with pytest.raises(ValueError):
        PaymentItem(code="PC-1", quantity=0, unit_amount=Decimal("1"))


def test_other_requests_serialize():
    assert BatchInvoiceRequest("B-1", ["INV-1", "INV-2"]).to_dict() == {
        "transactionId": "B-1",
        "invoiceNumbers": ["INV-1", "INV-2"],
    }
    assert UpdateInvoiceRequest(expiry_at="2024-01-01T00:00:00Z").to_dict() == {"expiryAt": "2024-01-01T00:00:00Z"}
    assert MomoPaymentRequest("0780000001", "MTN", "INV-1").to_dict() == {
        "accountIdentifier": "0780000001",
        "paymentProvider": "MTN",
        "invoiceNumber": "INV-1",
    }
    with pytest.raises(ValueError):
        MomoPaymentRequest("0780000001", "VISA", "INV-1").to_dict()


def test_invoice_from_dict_parses_nested_values():
    invoice = Invoice.from_dict(
        {
            "amount": 200,
            "invoiceNumber": "880310188722",
            "transactionId": "TST-1",
            "createdAt": "2024-01-01T00:00:00+02:00",
            "paymentAccountIdentifier": "TST-RWF",
            "paymentItems": [{"code": "PC-1", "quantity": 2, "unitAmount": 100}],
            "type": "SINGLE",
            "paymentStatus": "NEW",
            "currency": "RWF",
            "paymentLinkUrl": "https://checkout.sandbox.irembopay.com/880310188722",
            "customer": {"email": "user@example.com"},
            "childInvoices": ["A", "B"],
        }
    )

    assert invoice.amount == Decimal(200)
    assert invoice.type is InvoiceType.SINGLE
    assert invoice.payment_status is PaymentStatus.NEW
    assert not invoice.is_paid
    assert invoice.payment_items[0].unit_amount == Decimal(100)
    assert invoice.customer == Customer(email="user@example.com")
    assert invoice.child_invoices == ("A", "B")
    assert invoice.to_dict()["paymentLinkUrl"].endswith("880310188722")


def test_invoice_from_dict_rejects_non_object():
    with pytest.raises(ValueError):
        Invoice.from_dict(["not", "an", "object"])


def test_payment_provider_parse_falls_back_to_unknown():
    assert PaymentProvider.parse("AIRTEL") is PaymentProvider.AIRTEL
    assert PaymentProvider.parse("SPENN") is PaymentProvider.UNKNOWN


def test_format_and_parse_time_use_rfc3339():
    value = datetime(2024, 5, 1, 12, 30, 15, 999, tzinfo=timezone.utc)

    assert format_time(value) == "2024-05-01T12:30:15Z"
    assert format_time(datetime(2024, 5, 1, 12, 30, 15)) == "2024-05-01T12:30:15Z"
    assert format_time(value.astimezone(timezone(timedelta(hours=2)))) == "2024-05-01T14:30:15+02:00"
    assert parse_time("2024-05-01T12:30:15Z") == value.replace(microsecond=0)
    with pytest.raises(ValueError):
        parse_time("2024-05-01T12:30:15")


def test_payment_notification_equality_ignores_raw():
    first = PaymentNotification.from_dict(_notification_payload())
    second = PaymentNotification.from_dict({**_notification_payload(), "extra": "field"})

    assert first == second
