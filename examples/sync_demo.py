from datetime import timedelta
from decimal import Decimal

from irembopay import (
    Customer,
    IremboPay,
    IremboPayConfig,
    IremboPayError,
    InvoiceRequest,
    MomoPaymentRequest,
    PaymentItem,
    PaymentProvider,
    derive_idempotency_key,
)

from _settings import load_settings


settings = load_settings()
config = IremboPayConfig(secret_key=settings.secret_key, environment=settings.environment)

with IremboPay(config) as sdk:
    order_id = "ORDER-1001"
    invoice = sdk.invoice.create_with_expiry(
        InvoiceRequest(
            transaction_id=order_id,
            payment_account_identifier=settings.payment_account_identifier or "TST-RWF",
            payment_items=[PaymentItem(code="PC-aaf751b73f", quantity=1, unit_amount=Decimal("2000"))],
            description="Demo invoice",
            customer=Customer(phone_number="0781110011", name="Jane Doe"),
        ),
        timedelta(hours=24),
        idempotency_key=derive_idempotency_key("invoice", order_id),
    )
    print("created", invoice.invoice_number, invoice.payment_link_url)

    try:
        payment = sdk.payment.initiate_momo_payment(
            MomoPaymentRequest(
                account_identifier="0781110011",
                payment_provider=PaymentProvider.MTN,
                invoice_number=invoice.invoice_number,
            )
        )
        print("payment initiated", payment.reference_id)
    except IremboPayError as exc:
        print("payment failed", exc.status_code, exc.message)

    fetched = sdk.invoice.get(invoice.invoice_number)
    print("status", fetched.payment_status.value)
