from typing import Optional

from .client import AsyncIremboPayClient, IremboPayClient
from .config import Environment, IremboPayConfig
from .http_client import AsyncHttpClient, HttpClient
from .services import (
    AsyncBatchService,
    AsyncInvoiceService,
    AsyncPaymentService,
    BatchService,
    InvoiceService,
    PaymentService,
)


class IremboPay:
    """Entry point bundling the invoice, batch and payment services over one client."""

    def __init__(self, config: IremboPayConfig, *, http_client: Optional[HttpClient] = None) -> None:
        self.config = config
        self.client = IremboPayClient(config, http_client=http_client)
        self.invoice = InvoiceService(self.client)
        self.batch = BatchService(self.client)
        self.payment = PaymentService(self.client)

    @classmethod
    def sandbox(cls, secret_key: str, **options: object) -> "IremboPay":
        return cls(IremboPayConfig(secret_key, Environment.SANDBOX, **options))  # type: ignore[arg-type]

    @classmethod
    def production(cls, secret_key: str, **options: object) -> "IremboPay":
        return cls(IremboPayConfig(secret_key, Environment.PRODUCTION, **options))  # type: ignore[arg-type]

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "IremboPay":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class AsyncIremboPay:
    def __init__(self, config: IremboPayConfig, *, http_client: Optional[AsyncHttpClient] = None) -> None:
        self.config = config
        self.client = AsyncIremboPayClient(config, http_client=http_client)
        self.invoice = AsyncInvoiceService(self.client)
        self.batch = AsyncBatchService(self.client)
        self.payment = AsyncPaymentService(self.client)

    @classmethod
    def sandbox(cls, secret_key: str, **options: object) -> "AsyncIremboPay":
        return cls(IremboPayConfig(secret_key, Environment.SANDBOX, **options))  # type: ignore[arg-type]

    @classmethod
    def production(cls, secret_key: str, **options: object) -> "AsyncIremboPay":
        return cls(IremboPayConfig(secret_key, Environment.PRODUCTION, **options))  # type: ignore[arg-type]

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "AsyncIremboPay":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
