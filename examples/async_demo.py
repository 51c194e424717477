import asyncio

from irembopay import APIRequest, AsyncIremboPay, BatchInvoiceRequest, IremboPayConfig, RequestCancelledError

from _settings import load_settings


async def main() -> None:
    settings = load_settings()
    config = IremboPayConfig(secret_key=settings.secret_key, environment=settings.environment)
    async with AsyncIremboPay(config) as sdk:
        batch = await sdk.batch.create(
            BatchInvoiceRequest(
                transaction_id="BATCH-1001",
                invoice_numbers=["880310188722", "880310188723"],
                description="Demo batch",
            )
        )
        print("batch", batch.batch_number, batch.amount)

        cancel = asyncio.Event()
        asyncio.get_running_loop().call_later(0.01, cancel.set)
        try:
            await sdk.client.execute(
                APIRequest("GET", f"/payments/invoices/{batch.invoice_number}"),
                cancel_event=cancel,
            )
        except RequestCancelledError as exc:
            print("cancelled:", exc)


if __name__ == "__main__":
    asyncio.run(main())
