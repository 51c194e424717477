from typing import Optional, Union

from ..client import APIRequest, AsyncIremboPayClient, IremboPayClient
from ..models import MomoPaymentRequest, MomoPaymentResponse, PaymentNotification
from ..webhook import WebhookVerifier, decode_notification
from ..webhook.security import DEFAULT_MAX_AGE_SECONDS, HeaderValue, MaxAge

_INITIATE_PATH = "/payments/transactions/initiate"


class _WebhookMixin:
    _verifier: WebhookVerifier

    def verify_webhook_signature(self, signature: HeaderValue, payload: Union[str, bytes]) -> bool:
        return self._verifier.verify_signature(signature, payload)

    def validate_webhook_timestamp(
        self,
        signature: HeaderValue,
        max_age: MaxAge = DEFAULT_MAX_AGE_SECONDS,
        *,
        now: Optional[float] = None,
    ) -> bool:
        return self._verifier.verify_timestamp(signature, max_age, now=now)

    def parse_notification(self, payload: Union[str, bytes]) -> PaymentNotification:
        return decode_notification(payload)

    def handle_webhook(
        self,
        signature: HeaderValue,
        payload: Union[str, bytes],
        *,
        now: Optional[float] = None,
    ) -> PaymentNotification:
        """Check timestamp, then signature, then decode; the first failure is raised."""
        return self._verifier.verify(signature, payload, now=now)


class PaymentService(_WebhookMixin):
    def __init__(self, client: IremboPayClient, *, max_age: MaxAge = DEFAULT_MAX_AGE_SECONDS) -> None:
        self._client = client
        self._verifier = WebhookVerifier(client.config.secret_key, max_age=max_age)

    def initiate_momo_payment(
        self,
        request: MomoPaymentRequest,
        *,
        idempotency_key: Optional[str] = None,
    ) -> MomoPaymentResponse:
        api_request = APIRequest("POST", _INITIATE_PATH, body=request, idempotency_key=idempotency_key)
        return self._client.execute(api_request, MomoPaymentResponse.from_dict)  # type: ignore[return-value]


class AsyncPaymentService(_WebhookMixin):
    def __init__(self, client: AsyncIremboPayClient, *, max_age: MaxAge = DEFAULT_MAX_AGE_SECONDS) -> None:
        self._client = client
        self._verifier = WebhookVerifier(client.config.secret_key, max_age=max_age)

    async def initiate_momo_payment(
        self,
        request: MomoPaymentRequest,
        *,
        idempotency_key: Optional[str] = None,
    ) -> MomoPaymentResponse:
        api_request = APIRequest("POST", _INITIATE_PATH, body=request, idempotency_key=idempotency_key)
        return await self._client.execute(api_request, MomoPaymentResponse.from_dict)  # type: ignore[return-value]
