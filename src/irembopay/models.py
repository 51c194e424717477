from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional, Sequence, Union

import simplejson


class _ProviderEnum(str, Enum):
    """String enum that maps values it does not know to ``UNKNOWN``."""

    @classmethod
    def parse(cls, value: Any) -> Any:
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return cls("UNKNOWN")


class PaymentStatus(_ProviderEnum):
    NEW = "NEW"
    PAID = "PAID"
    UNKNOWN = "UNKNOWN"


class PaymentMethod(_ProviderEnum):
    MTN_MOMO = "MTN_MOMO"
    AIRTEL_MONEY = "AIRTEL_MONEY"
    UNKNOWN = "UNKNOWN"


class PaymentProvider(_ProviderEnum):
    MTN = "MTN"
    AIRTEL = "AIRTEL"
    UNKNOWN = "UNKNOWN"


class InvoiceType(_ProviderEnum):
    SINGLE = "SINGLE"
    BATCH = "BATCH"
    UNKNOWN = "UNKNOWN"


class Language(_ProviderEnum):
    EN = "EN"
    FR = "FR"
    RW = "RW"
    UNKNOWN = "UNKNOWN"


def format_time(value: datetime) -> str:
    """Format ``value`` as RFC3339 with second precision. Naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = value.replace(microsecond=0).isoformat()
    if text.endswith("+00:00"):
        text = text[: -len("+00:00")] + "Z"
    return text


def parse_time(value: str) -> datetime:
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        raise ValueError(f"timestamp {value!r} has no UTC offset")
    return parsed


def json_default(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _as_mapping(value: Any, *, name: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ValueError(f"{name} must be a json object, got {type(value).__name__}")
    return value


def _str_field(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a string, got {type(value).__name__}")
    return value


def _optional_str_field(data: Mapping[str, Any], key: str) -> Optional[str]:
    value = _str_field(data, key)
    return value or None


def _decimal_field(data: Mapping[str, Any], key: str) -> Decimal:
    value = data.get(key)
    if value is None:
        return Decimal(0)
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise ValueError(f"field {key!r} must be a number, got {type(value).__name__}")
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def _int_field(data: Mapping[str, Any], key: str) -> int:
    value = data.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"field {key!r} must be an integer, got {type(value).__name__}")
    return value


def _str_list_field(data: Mapping[str, Any], key: str) -> tuple[str, ...]:
    value = data.get(key)
    if value is None:
        return ()
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValueError(f"field {key!r} must be a list of strings")
    return tuple(value)


def _enum_wire(value: _ProviderEnum, raw: Mapping[str, Any], key: str) -> str:
    if value.value == "UNKNOWN" and isinstance(raw.get(key), str):
        return str(raw[key])
    return value.value


def _drop_empty(payload: Mapping[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in payload.items() if value not in (None, "", [], ())}


@dataclass(frozen=True)
class PaymentItem:
    code: str
    quantity: int
    unit_amount: Decimal

    def __post_init__(self) -> None:
        if self.quantity <= 0:
            raise ValueError("payment item quantity must be greater than zero")

    @classmethod
    def from_dict(cls, data: Any) -> "PaymentItem":
        item = _as_mapping(data, name="payment item")
        return cls(
            code=_str_field(item, "code"),
            quantity=_int_field(item, "quantity"),
            unit_amount=_decimal_field(item, "unitAmount"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "quantity": self.quantity, "unitAmount": self.unit_amount}


@dataclass(frozen=True)
class Customer:
    email: Optional[str] = None
    phone_number: Optional[str] = None
    name: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "Customer":
        customer = _as_mapping(data, name="customer")
        return cls(
            email=_optional_str_field(customer, "email"),
            phone_number=_optional_str_field(customer, "phoneNumber"),
            name=_optional_str_field(customer, "name"),
        )

    def to_dict(self) -> dict[str, Any]:
        return _drop_empty({"email": self.email, "phoneNumber": self.phone_number, "name": self.name})


@dataclass
class InvoiceRequest:
    transaction_id: str
    payment_account_identifier: str
    payment_items: Sequence[PaymentItem]
    expiry_at: Optional[str] = None
    description: Optional[str] = None
    customer: Optional[Customer] = None
    language: Optional[Union[Language, str]] = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "transactionId": self.transaction_id,
            "paymentAccountIdentifier": self.payment_account_identifier,
            "paymentItems": [item.to_dict() for item in self.payment_items],
        }
        payload.update(
            _drop_empty(
                {
                    "expiryAt": self.expiry_at,
                    "description": self.description,
                    "customer": self.customer.to_dict() if self.customer else None,
                    "language": Language(self.language).value if self.language else None,
                }
            )
        )
        return payload


@dataclass(frozen=True)
class BatchInvoiceRequest:
    transaction_id: str
    invoice_numbers: Sequence[str]
    description: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "transactionId": self.transaction_id,
            "invoiceNumbers": list(self.invoice_numbers),
        }
        if self.description:
            payload["description"] = self.description
        return payload


@dataclass(frozen=True)
class UpdateInvoiceRequest:
    expiry_at: Optional[str] = None
    payment_items: Sequence[PaymentItem] = ()

    def to_dict(self) -> dict[str, Any]:
        return _drop_empty(
            {
                "expiryAt": self.expiry_at,
                "paymentItems": [item.to_dict() for item in self.payment_items],
            }
        )


@dataclass(frozen=True)
class Invoice:
    amount: Decimal
    invoice_number: str
    transaction_id: str
    created_at: str
    payment_account_identifier: str
    type: InvoiceType
    payment_status: PaymentStatus
    currency: str
    payment_link_url: str
    payment_items: tuple[PaymentItem, ...] = ()
    updated_at: Optional[str] = None
    expiry_at: Optional[str] = None
    paid_at: Optional[str] = None
    description: Optional[str] = None
    payment_reference: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None
    customer: Optional[Customer] = None
    language: Optional[Language] = None
    batch_number: Optional[str] = None
    child_invoices: tuple[str, ...] = ()
    raw: Mapping[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def is_paid(self) -> bool:
        return self.payment_status is PaymentStatus.PAID

    @classmethod
    def from_dict(cls, data: Any) -> "Invoice":
        invoice = _as_mapping(data, name="invoice")
        items = invoice.get("paymentItems")
        if items is not None and not isinstance(items, list):
            raise ValueError("field 'paymentItems' must be a list")
        customer = invoice.get("customer")
        payment_method = _optional_str_field(invoice, "paymentMethod")
        language = _optional_str_field(invoice, "language")
        return cls(
            amount=_decimal_field(invoice, "amount"),
            invoice_number=_str_field(invoice, "invoiceNumber"),
            transaction_id=_str_field(invoice, "transactionId"),
            created_at=_str_field(invoice, "createdAt"),
            payment_account_identifier=_str_field(invoice, "paymentAccountIdentifier"),
            type=InvoiceType.parse(_str_field(invoice, "type")),
            payment_status=PaymentStatus.parse(_str_field(invoice, "paymentStatus")),
            currency=_str_field(invoice, "currency"),
            payment_link_url=_str_field(invoice, "paymentLinkUrl"),
            payment_items=tuple(PaymentItem.from_dict(item) for item in items or []),
            updated_at=_optional_str_field(invoice, "updatedAt"),
            expiry_at=_optional_str_field(invoice, "expiryAt"),
            paid_at=_optional_str_field(invoice, "paidAt"),
            description=_optional_str_field(invoice, "description"),
            payment_reference=_optional_str_field(invoice, "paymentReference"),
            payment_method=PaymentMethod.parse(payment_method) if payment_method else None,
            customer=Customer.from_dict(customer) if customer is not None else None,
            language=Language.parse(language) if language else None,
            batch_number=_optional_str_field(invoice, "batchNumber"),
            child_invoices=_str_list_field(invoice, "childInvoices"),
            raw=dict(invoice),
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "amount": self.amount,
            "invoiceNumber": self.invoice_number,
            "transactionId": self.transaction_id,
            "createdAt": self.created_at,
            "paymentAccountIdentifier": self.payment_account_identifier,
            "paymentItems": [item.to_dict() for item in self.payment_items],
            "type": _enum_wire(self.type, self.raw, "type"),
            "paymentStatus": _enum_wire(self.payment_status, self.raw, "paymentStatus"),
            "currency": self.currency,
            "paymentLinkUrl": self.payment_link_url,
        }
        payload.update(
            _drop_empty(
                {
                    "updatedAt": self.updated_at,
                    "expiryAt": self.expiry_at,
                    "paidAt": self.paid_at,
                    "description": self.description,
                    "paymentReference": self.payment_reference,
                    "paymentMethod": (
                        _enum_wire(self.payment_method, self.raw, "paymentMethod") if self.payment_method else None
                    ),
                    "customer": self.customer.to_dict() if self.customer else None,
                    "language": _enum_wire(self.language, self.raw, "language") if self.language else None,
                    "batchNumber": self.batch_number,
                    "childInvoices": list(self.child_invoices),
                }
            )
        )
        return payload


@dataclass(frozen=True)
class MomoPaymentRequest:
    account_identifier: str
    payment_provider: Union[PaymentProvider, str]
    invoice_number: str
    transaction_reference: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "accountIdentifier": self.account_identifier,
            "paymentProvider": PaymentProvider(self.payment_provider).value,
            "invoiceNumber": self.invoice_number,
        }
        if self.transaction_reference:
            payload["transactionReference"] = self.transaction_reference
        return payload


@dataclass(frozen=True)
class MomoPaymentResponse:
    account_identifier: str
    payment_provider: PaymentProvider
    invoice_number: str
    amount: Decimal
    reference_id: str
    raw: Mapping[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_dict(cls, data: Any) -> "MomoPaymentResponse":
        response = _as_mapping(data, name="mobile money payment")
        return cls(
            account_identifier=_str_field(response, "accountIdentifier"),
            payment_provider=PaymentProvider.parse(_str_field(response, "paymentProvider")),
            invoice_number=_str_field(response, "invoiceNumber"),
            amount=_decimal_field(response, "amount"),
            reference_id=_str_field(response, "referenceId"),
            raw=dict(response),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "accountIdentifier": self.account_identifier,
            "paymentProvider": _enum_wire(self.payment_provider, self.raw, "paymentProvider"),
            "invoiceNumber": self.invoice_number,
            "amount": self.amount,
            "referenceId": self.reference_id,
        }


@dataclass(frozen=True)
class PaymentNotification:
    invoice_number: str
    transaction_id: str
    payment_status: PaymentStatus
    payment_reference: str
    amount: Decimal
    currency: str
    payment_method: PaymentMethod
    paid_at: str
    payment_account_id: str
    payment_merchant_id: str
    raw: Mapping[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_dict(cls, data: Any) -> "PaymentNotification":
        payload = _as_mapping(data, name="notification")
        return cls(
            invoice_number=_str_field(payload, "invoiceNumber"),
            transaction_id=_str_field(payload, "transactionId"),
            payment_status=PaymentStatus.parse(_str_field(payload, "paymentStatus")),
            payment_reference=_str_field(payload, "paymentReference"),
            amount=_decimal_field(payload, "amount"),
            currency=_str_field(payload, "currency"),
            payment_method=PaymentMethod.parse(_str_field(payload, "paymentMethod")),
            paid_at=_str_field(payload, "paidAt"),
            payment_account_id=_str_field(payload, "paymentAccountId"),
            payment_merchant_id=_str_field(payload, "paymentMerchantId"),
            raw=dict(payload),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "invoiceNumber": self.invoice_number,
            "transactionId": self.transaction_id,
            "paymentStatus": _enum_wire(self.payment_status, self.raw, "paymentStatus"),
            "paymentReference": self.payment_reference,
            "amount": self.amount,
            "currency": self.currency,
            "paymentMethod": _enum_wire(self.payment_method, self.raw, "paymentMethod"),
            "paidAt": self.paid_at,
            "paymentAccountId": self.payment_account_id,
            "paymentMerchantId": self.payment_merchant_id,
        }


def load_json(raw: Union[bytes, str]) -> Any:
    """Parse JSON keeping every fractional number as :class:`Decimal`."""
    text = raw.decode("utf-8") if isinstance(raw, bytes) else raw
    return simplejson.loads(text, use_decimal=True)


def dump_json(value: Any) -> str:
    """Serialize to compact JSON. :class:`Decimal` values are written digit for digit."""
    return simplejson.dumps(value, default=json_default, use_decimal=True, ensure_ascii=False, separators=(",", ":"))


def encode_notification(notification: PaymentNotification) -> str:
    return dump_json(notification.to_dict())
