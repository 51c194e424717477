from typing import Union

from ..models import PaymentNotification, load_json
from .errors import WebhookDecodeError


def decode_notification(payload: Union[bytes, str]) -> PaymentNotification:
    try:
        data = load_json(payload)
    except (ValueError, RecursionError) as exc:
        raise WebhookDecodeError(f"failed to parse notification: {exc}") from exc
    try:
        return PaymentNotification.from_dict(data)
    except ValueError as exc:
        raise WebhookDecodeError(f"failed to parse notification: {exc}") from exc
