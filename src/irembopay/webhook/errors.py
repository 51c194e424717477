from ..exceptions import SDKError


class WebhookError(SDKError):
    pass


class WebhookHeaderError(WebhookError):
    """The signature header is missing or does not follow ``t=<ms>,s=<hex>``."""


class WebhookAuthenticationError(WebhookError):
    pass


class WebhookTimestampError(WebhookAuthenticationError):
    pass


class WebhookSignatureError(WebhookAuthenticationError):
    pass


class WebhookDecodeError(WebhookError):
    pass


class WebhookInFlightError(WebhookError):
    """The same notification is still being handled by an earlier delivery."""
