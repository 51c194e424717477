from typing import Mapping, Optional


class SDKError(RuntimeError):
    pass


class ConfigurationError(SDKError):
    pass


class HTTPRequestError(SDKError):
    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        response_text: Optional[str] = None,
        response_headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response_text = response_text
        self.response_headers = dict(response_headers or {})


class RequestTimeoutError(HTTPRequestError):
    pass


class RequestCancelledError(HTTPRequestError):
    pass


class IremboPayError(SDKError):
    """Non-2xx answer from the API.

    ``message`` is taken from the ``error`` field of the body, then from
    ``message``, and falls back to the raw body. ``details`` always holds the
    raw body.
    """

    def __init__(self, status_code: int, message: str, details: str = "") -> None:
        super().__init__(f"IremboPay API error (HTTP {status_code}): {message}")
        self.status_code = status_code
        self.message = message
        self.details = details

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404

    @property
    def is_bad_request(self) -> bool:
        return self.status_code == 400


class UnsuccessfulResponseError(IremboPayError):
    """2xx answer whose envelope carries ``success: false``."""

    def __init__(self, status_code: int, message: str, details: str = "") -> None:
        super().__init__(status_code, message, details)
        self.args = (f"IremboPay request unsuccessful: {message}",)


class DecodeError(SDKError):
    def __init__(self, message: str, *, body: Optional[str] = None) -> None:
        super().__init__(message)
        self.body = body


def is_not_found_error(exc: BaseException) -> bool:
    return isinstance(exc, IremboPayError) and exc.is_not_found


def is_bad_request_error(exc: BaseException) -> bool:
    return isinstance(exc, IremboPayError) and exc.is_bad_request
