from .client import APIRequest, AsyncIremboPayClient, IremboPayClient, build_url
from .config import Environment, IremboPayConfig
from .exceptions import (
    ConfigurationError,
    DecodeError,
    HTTPRequestError,
    IremboPayError,
    RequestCancelledError,
    RequestTimeoutError,
    SDKError,
    UnsuccessfulResponseError,
    is_bad_request_error,
    is_not_found_error,
)
from .http_client import AsyncHttpClient, HttpClient, RawResponse
from .idempotency import DeliveryClaim, MemoryIdempotencyStore, derive_idempotency_key, notification_key
from .irembopay import AsyncIremboPay, IremboPay
from .models import (
    BatchInvoiceRequest,
    Customer,
    Invoice,
    InvoiceRequest,
    InvoiceType,
    Language,
    MomoPaymentRequest,
    MomoPaymentResponse,
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
from .response import APIResponse
from .services import (
    AsyncBatchService,
    AsyncInvoiceService,
    AsyncPaymentService,
    BatchService,
    InvoiceService,
    PaymentService,
)
from .webhook import (
    SIGNATURE_HEADER,
    SignatureHeader,
    WebhookAuthenticationError,
    WebhookDecodeError,
    WebhookError,
    WebhookHeaderError,
    WebhookInFlightError,
    WebhookReceiver,
    WebhookSignatureError,
    WebhookTimestampError,
    WebhookVerifier,
    compute_signature,
    decode_notification,
    parse_signature_header,
    sign_payload,
    verify_signature,
    verify_timestamp,
    verify_webhook,
)

__all__ = [
    "APIRequest",
    "APIResponse",
    "AsyncBatchService",
    "AsyncHttpClient",
    "AsyncInvoiceService",
    "AsyncIremboPay",
    "AsyncIremboPayClient",
    "AsyncPaymentService",
    "BatchInvoiceRequest",
    "BatchService",
    "ConfigurationError",
    "Customer",
    "DeliveryClaim",
    "DecodeError",
    "Environment",
    "HTTPRequestError",
    "HttpClient",
    "Invoice",
    "InvoiceRequest",
    "InvoiceService",
    "InvoiceType",
    "IremboPay",
    "IremboPayClient",
    "IremboPayConfig",
    "IremboPayError",
    "Language",
    "MemoryIdempotencyStore",
    "MomoPaymentRequest",
    "MomoPaymentResponse",
    "PaymentItem",
    "PaymentMethod",
    "PaymentNotification",
    "PaymentProvider",
    "PaymentService",
    "PaymentStatus",
    "RawResponse",
    "RequestCancelledError",
    "RequestTimeoutError",
    "SDKError",
    "SIGNATURE_HEADER",
    "SignatureHeader",
    "UnsuccessfulResponseError",
    "UpdateInvoiceRequest",
    "WebhookAuthenticationError",
    "WebhookDecodeError",
    "WebhookError",
    "WebhookHeaderError",
    "WebhookInFlightError",
    "WebhookReceiver",
    "WebhookSignatureError",
    "WebhookTimestampError",
    "WebhookVerifier",
    "build_url",
    "compute_signature",
    "decode_notification",
    "derive_idempotency_key",
    "encode_notification",
    "format_time",
    "is_bad_request_error",
    "is_not_found_error",
    "notification_key",
    "parse_signature_header",
    "parse_time",
    "sign_payload",
    "verify_signature",
    "verify_timestamp",
    "verify_webhook",
]
