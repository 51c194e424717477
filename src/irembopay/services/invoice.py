from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import quote

from ..client import APIRequest, AsyncIremboPayClient, IremboPayClient
from ..models import Invoice, InvoiceRequest, UpdateInvoiceRequest, format_time

_INVOICES_PATH = "/payments/invoices"


def _invoice_path(reference: str) -> str:
    if not reference:
        raise ValueError("invoice reference is required")
    return f"{_INVOICES_PATH}/{quote(reference, safe='')}"


def _with_expiry(request: InvoiceRequest, expires_in: timedelta) -> InvoiceRequest:
    return replace(request, expiry_at=format_time(datetime.now(timezone.utc) + expires_in))


class InvoiceService:
    def __init__(self, client: IremboPayClient) -> None:
        self._client = client

    def create(self, request: InvoiceRequest, *, idempotency_key: Optional[str] = None) -> Invoice:
        api_request = APIRequest("POST", _INVOICES_PATH, body=request, idempotency_key=idempotency_key)
        return self._client.execute(api_request, Invoice.from_dict)  # type: ignore[return-value]

    def create_with_expiry(
        self,
        request: InvoiceRequest,
        expires_in: timedelta,
        *,
        idempotency_key: Optional[str] = None,
    ) -> Invoice:
        return self.create(_with_expiry(request, expires_in), idempotency_key=idempotency_key)

    def get(self, reference: str) -> Invoice:
        """Fetch an invoice by invoice number or transaction id."""
        api_request = APIRequest("GET", _invoice_path(reference))
        return self._client.execute(api_request, Invoice.from_dict)  # type: ignore[return-value]

    def update(self, invoice_number: str, request: UpdateInvoiceRequest) -> Invoice:
        api_request = APIRequest("PUT", _invoice_path(invoice_number), body=request)
        return self._client.execute(api_request, Invoice.from_dict)  # type: ignore[return-value]

    def update_expiry_time(self, invoice_number: str, expiry_at: datetime) -> Invoice:
        return self.update(invoice_number, UpdateInvoiceRequest(expiry_at=format_time(expiry_at)))


class AsyncInvoiceService:
    def __init__(self, client: AsyncIremboPayClient) -> None:
        self._client = client

    async def create(self, request: InvoiceRequest, *, idempotency_key: Optional[str] = None) -> Invoice:
        api_request = APIRequest("POST", _INVOICES_PATH, body=request, idempotency_key=idempotency_key)
        return await self._client.execute(api_request, Invoice.from_dict)  # type: ignore[return-value]

    async def create_with_expiry(
        self,
        request: InvoiceRequest,
        expires_in: timedelta,
        *,
        idempotency_key: Optional[str] = None,
    ) -> Invoice:
        return await self.create(_with_expiry(request, expires_in), idempotency_key=idempotency_key)

    async def get(self, reference: str) -> Invoice:
        api_request = APIRequest("GET", _invoice_path(reference))
        return await self._client.execute(api_request, Invoice.from_dict)  # type: ignore[return-value]

    async def update(self, invoice_number: str, request: UpdateInvoiceRequest) -> Invoice:
        api_request = APIRequest("PUT", _invoice_path(invoice_number), body=request)
        return await self._client.execute(api_request, Invoice.from_dict)  # type: ignore[return-value]

    async def update_expiry_time(self, invoice_number: str, expiry_at: datetime) -> Invoice:
        return await self.update(invoice_number, UpdateInvoiceRequest(expiry_at=format_time(expiry_at)))
