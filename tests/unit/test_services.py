import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable, Optional, cast

import pytest

from irembopay.client import APIRequest, AsyncIremboPayClient, IremboPayClient
from irembopay.config import IremboPayConfig
from irembopay.models import (
    BatchInvoiceRequest,
    Invoice,
    InvoiceRequest,
    MomoPaymentRequest,
    MomoPaymentResponse,
    PaymentItem,
    PaymentProvider,
    UpdateInvoiceRequest,
    parse_time,
)
from irembopay.services import (
    AsyncBatchService,
    AsyncInvoiceService,
    AsyncPaymentService,
    BatchService,
    InvoiceService,
    PaymentService,
)
from irembopay.webhook import sign_payload


INVOICE_DATA = {
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
}


class _SyncClientStub:
    def __init__(self, data: Any) -> None:
        self.config = IremboPayConfig.sandbox("sk_test_123")
        self._data = data
        self.calls: list[APIRequest] = []

    def execute(self, request: APIRequest, decoder: Optional[Callable[[Any], Any]] = None) -> Any:
        self.calls.append(request)
        return decoder(self._data) if decoder else None


class _AsyncClientStub:
    def __init__(self, data: Any) -> None:
        self.config = IremboPayConfig.sandbox("sk_test_123")
        self._data = data
        self.calls: list[APIRequest] = []

    async def execute(self, request: APIRequest, decoder: Optional[Callable[[Any], Any]] = None) -> Any:
        self.calls.append(request)
        return decoder(self._data) if decoder else None


def _invoice_request() -> InvoiceRequest:
    return InvoiceRequest(
        transaction_id="TST-1",
        payment_account_identifier="TST-RWF",
        payment_items=[PaymentItem(code="PC-1", quantity=2, unit_amount=Decimal("100"))],
    )


def test_invoice_service_requests():
    stub = _SyncClientStub(INVOICE_DATA)
    service = InvoiceService(cast(IremboPayClient, stub))

    created = service.create(_invoice_request(), idempotency_key="invoice-key")
    fetched = service.get("880310188722")
    service.update("880310188722", UpdateInvoiceRequest(expiry_at="2024-02-01T00:00:00Z"))
    service.update_expiry_time("880310188722", datetime(2024, 2, 1, tzinfo=timezone.utc))

    assert isinstance(created, Invoice)
    assert fetched.invoice_number == "880310188722"
    assert [(call.method, call.path) for call in stub.calls] == [
        ("POST", "/payments/invoices"),
        ("GET", "/payments/invoices/880310188722"),
        ("PUT", "/payments/invoices/880310188722"),
        ("PUT", "/payments/invoices/880310188722"),
    ]
    assert stub.calls[0].idempotency_key == "invoice-key"
    assert stub.calls[3].body.to_dict() == {"expiryAt": "2024-02-01T00:00:00Z"}


def test_invoice_create_with_expiry_sets_future_expiry():
    stub = _SyncClientStub(INVOICE_DATA)
    service = InvoiceService(cast(IremboPayClient, stub))
    request = _invoice_request()

    service.create_with_expiry(request, timedelta(hours=1))

    sent = stub.calls[0].body
    expiry = parse_time(sent.expiry_at)
    remaining = expiry - datetime.now(timezone.utc)
    assert timedelta(minutes=58) < remaining <= timedelta(hours=1)
    assert request.expiry_at is None


def test_invoice_get_requires_reference_and_quotes_path():
    stub = _SyncClientStub(INVOICE_DATA)
    service = InvoiceService(cast(IremboPayClient, stub))

    service.get("INV/1 2")

    assert stub.calls[0].path == "/payments/invoices/INV%2F1%202"
    with pytest.raises(ValueError):
        service.get("")


def test_batch_service_create():
    stub = _SyncClientStub({**INVOICE_DATA, "type": "BATCH", "batchNumber": "B-1"})
    service = BatchService(cast(IremboPayClient, stub))

    invoice = service.create(BatchInvoiceRequest("B-TX-1", ["INV-1", "INV-2"]))

    assert invoice.batch_number == "B-1"
    assert stub.calls[0].path == "/payments/invoices/batch"
    with pytest.raises(ValueError):
        service.create(BatchInvoiceRequest("B-TX-2", []))


def test_payment_service_initiate_and_webhook_helpers():
    stub = _SyncClientStub(
        {
            "accountIdentifier": "0780000001",
            "paymentProvider": "MTN",
            "invoiceNumber": "880310188722",
            "amount": 200,
            "referenceId": "ref-1",
        }
    )
    service = PaymentService(cast(IremboPayClient, stub))

    response = service.initiate_momo_payment(
        MomoPaymentRequest("0780000001", PaymentProvider.MTN, "880310188722"),
        idempotency_key="momo-key",
    )

    assert isinstance(response, MomoPaymentResponse)
    assert response.payment_provider is PaymentProvider.MTN
    assert stub.calls[0].path == "/payments/transactions/initiate"
    assert stub.calls[0].idempotency_key == "momo-key"

    payload = '{"invoiceNumber":"880310188722","paymentStatus":"PAID","amount":200}'
    header = sign_payload("sk_test_123", payload, timestamp_ms=1_700_000_000_000)
    assert service.verify_webhook_signature(header, payload) is True
    assert service.validate_webhook_timestamp(header, 300, now=1_700_000_100.0) is True
    assert service.validate_webhook_timestamp(header, 60, now=1_700_000_100.0) is False
    assert service.parse_notification(payload).invoice_number == "880310188722"
    assert service.handle_webhook(header, payload, now=1_700_000_000.0).amount == Decimal(200)


def test_async_services():
    invoice_stub = _AsyncClientStub(INVOICE_DATA)
    momo_stub = _AsyncClientStub(
        {
            "accountIdentifier": "0780000001",
            "paymentProvider": "AIRTEL",
            "invoiceNumber": "880310188722",
            "amount": 200,
            "referenceId": "ref-2",
        }
    )

    async def run() -> tuple[Invoice, Invoice, MomoPaymentResponse]:
        invoices = AsyncInvoiceService(cast(AsyncIremboPayClient, invoice_stub))
        batches = AsyncBatchService(cast(AsyncIremboPayClient, invoice_stub))
        payments = AsyncPaymentService(cast(AsyncIremboPayClient, momo_stub))
        created = await invoices.create_with_expiry(_invoice_request(), timedelta(minutes=30))
        batch = await batches.create(BatchInvoiceRequest("B-TX-1", ["INV-1"]))
        momo = await payments.initiate_momo_payment(
            MomoPaymentRequest("0780000001", PaymentProvider.AIRTEL, "880310188722")
        )
        return created, batch, momo

    created, batch, momo = asyncio.run(run())

    assert created.invoice_number == batch.invoice_number == "880310188722"
    assert momo.reference_id == "ref-2"
    assert [call.path for call in invoice_stub.calls] == ["/payments/invoices", "/payments/invoices/batch"]
