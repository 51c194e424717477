from typing import Optional

from ..client import APIRequest, AsyncIremboPayClient, IremboPayClient
from ..models import BatchInvoiceRequest, Invoice

_BATCH_PATH = "/payments/invoices/batch"


class BatchService:
    def __init__(self, client: IremboPayClient) -> None:
        self._client = client

    def create(self, request: BatchInvoiceRequest, *, idempotency_key: Optional[str] = None) -> Invoice:
        if not request.invoice_numbers:
            raise ValueError("a batch invoice needs at least one invoice number")
        api_request = APIRequest("POST", _BATCH_PATH, body=request, idempotency_key=idempotency_key)
        return self._client.execute(api_request, Invoice.from_dict)  # type: ignore[return-value]


class AsyncBatchService:
    def __init__(self, client: AsyncIremboPayClient) -> None:
        self._client = client

    async def create(self, request: BatchInvoiceRequest, *, idempotency_key: Optional[str] = None) -> Invoice:
        if not request.invoice_numbers:
            raise ValueError("a batch invoice needs at least one invoice number")
        api_request = APIRequest("POST", _BATCH_PATH, body=request, idempotency_key=idempotency_key)
        return await self._client.execute(api_request, Invoice.from_dict)  # type: ignore[return-value]
