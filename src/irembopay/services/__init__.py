from .batch import AsyncBatchService, BatchService
from .invoice import AsyncInvoiceService, InvoiceService
from .payment import AsyncPaymentService, PaymentService

__all__ = [
    "AsyncBatchService",
    "AsyncInvoiceService",
    "AsyncPaymentService",
    "BatchService",
    "InvoiceService",
    "PaymentService",
]
