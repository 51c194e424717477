import asyncio
import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, TypeVar
from urllib.parse import parse_qsl, urlencode

import structlog

from .config import IremboPayConfig
from .exceptions import DecodeError, HTTPRequestError, IremboPayError, UnsuccessfulResponseError
from .http_client import AsyncHttpClient, HttpClient, RawResponse
from .models import dump_json, load_json
from .response import APIResponse

logger = structlog.get_logger()

T = TypeVar("T")

Decoder = Callable[[Any], T]

SECRET_KEY_HEADER = "irembopay-secretKey"
API_VERSION_HEADER = "X-API-Version"
IDEMPOTENCY_KEY_HEADER = "Idempotency-Key"


@dataclass(frozen=True)
class APIRequest:
    method: str
    path: str
    body: Any = None
    headers: Optional[Mapping[str, str]] = None
    params: Optional[Mapping[str, object]] = None
    idempotency_key: Optional[str] = None


def _param_value(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_url(host: str, path: str, params: Optional[Mapping[str, object]] = None) -> str:
    """Return ``https://{host}{path}`` with ``params`` merged into any query already on ``path``.

    Query keys are sorted and values form-encoded.
    """
    base_path, _, existing_query = path.partition("?")
    pairs = parse_qsl(existing_query, keep_blank_values=True)
    pairs.extend((str(key), _param_value(value)) for key, value in (params or {}).items() if value is not None)
    url = f"https://{host}{base_path}"
    if not pairs:
        return url
    pairs.sort(key=lambda pair: pair[0])
    return f"{url}?{urlencode(pairs)}"


def build_headers(config: IremboPayConfig, request: APIRequest) -> Dict[str, str]:
    headers = {
        "Content-Type": "application/json",
        "Accept": "application/json",
        SECRET_KEY_HEADER: config.secret_key,
        API_VERSION_HEADER: config.api_version,
    }
    if request.idempotency_key:
        headers[IDEMPOTENCY_KEY_HEADER] = request.idempotency_key
    for key, value in (request.headers or {}).items():
        for existing in [name for name in headers if name.lower() == key.lower()]:
            del headers[existing]
        headers[key] = value
    return headers


def encode_body(body: Any) -> Optional[bytes]:
    if body is None:
        return None
    try:
        return dump_json(body).encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise HTTPRequestError(f"error marshaling request body: {exc}") from exc


def extract_error_message(body_text: str) -> str:
    """Pick the most useful message out of an error body.

    ``error`` wins over ``message``; a body that is not a JSON object yields
    the raw text.
    """
    try:
        payload = json.loads(body_text)
    except ValueError:
        return body_text
    if not isinstance(payload, Mapping):
        return body_text
    for key in ("error", "message"):
        value = payload.get(key)
        if isinstance(value, str) and value:
            return value
    return body_text


def raise_for_status(response: RawResponse) -> None:
    if 200 <= response.status_code < 300:
        return
    body_text = response.text
    raise IremboPayError(response.status_code, extract_error_message(body_text), body_text)


def parse_envelope(response: RawResponse) -> APIResponse:
    try:
        payload = load_json(response.body)
    except (ValueError, RecursionError) as exc:
        raise DecodeError(f"error parsing API response: {exc}", body=response.text) from exc
    if not isinstance(payload, Mapping):
        raise DecodeError("error parsing API response: body is not a json object", body=response.text)
    envelope = APIResponse.from_raw(payload)
    if not envelope.success:
        raise UnsuccessfulResponseError(response.status_code, envelope.message or "", response.text)
    return envelope


def decode_data(envelope: APIResponse, decoder: Decoder[T], *, body: Optional[str] = None) -> T:
    try:
        return decoder(envelope.data)
    except (ValueError, TypeError, KeyError) as exc:
        raise DecodeError(f"error parsing response data: {exc}", body=body) from exc


def _validate(request: APIRequest) -> None:
    if not request.method:
        raise ValueError("request method is required")
    if not request.path:
        raise ValueError("request path is required")


class IremboPayClient:
    def __init__(
        self,
        config: IremboPayConfig,
        *,
        http_client: Optional[HttpClient] = None,
    ) -> None:
        self._config = config
        self._http = http_client or HttpClient(timeout_seconds=config.timeout_seconds)

    @property
    def config(self) -> IremboPayConfig:
        return self._config

    def execute(self, request: APIRequest, decoder: Optional[Decoder[T]] = None) -> Optional[T]:
        """Send ``request`` and decode the envelope ``data`` with ``decoder``.

        Without a decoder the body is not inspected past the status check and
        ``None`` is returned.
        """
        response = self._send(request)
        if decoder is None:
            return None
        envelope = parse_envelope(response)
        return decode_data(envelope, decoder, body=response.text)

    def request_envelope(self, request: APIRequest) -> APIResponse:
        return parse_envelope(self._send(request))

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "IremboPayClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _send(self, request: APIRequest) -> RawResponse:
        _validate(request)
        method = request.method.upper()
        url = build_url(str(self._config.host), request.path, request.params)
        content = encode_body(request.body)
        logger.debug("IremboPay request", method=method, path=request.path)
        response = self._http.send(
            method,
            url,
            headers=build_headers(self._config, request),
            content=content,
            timeout_seconds=self._config.timeout_seconds,
        )
        logger.debug("IremboPay response", method=method, path=request.path, status_code=response.status_code)
        raise_for_status(response)
        return response


class AsyncIremboPayClient:
    def __init__(
        self,
        config: IremboPayConfig,
        *,
        http_client: Optional[AsyncHttpClient] = None,
    ) -> None:
        self._config = config
        self._http = http_client or AsyncHttpClient(timeout_seconds=config.timeout_seconds)

    @property
    def config(self) -> IremboPayConfig:
        return self._config

    async def execute(
        self,
        request: APIRequest,
        decoder: Optional[Decoder[T]] = None,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Optional[T]:
        response = await self._send(request, cancel_event=cancel_event)
        if decoder is None:
            return None
        envelope = parse_envelope(response)
        return decode_data(envelope, decoder, body=response.text)

    async def request_envelope(
        self,
        request: APIRequest,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> APIResponse:
        return parse_envelope(await self._send(request, cancel_event=cancel_event))

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "AsyncIremboPayClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _send(self, request: APIRequest, *, cancel_event: Optional[asyncio.Event]) -> RawResponse:
        _validate(request)
        method = request.method.upper()
        url = build_url(str(self._config.host), request.path, request.params)
        content = encode_body(request.body)
        logger.debug("IremboPay request", method=method, path=request.path)
        response = await self._http.send(
            method,
            url,
            headers=build_headers(self._config, request),
            content=content,
            timeout_seconds=self._config.timeout_seconds,
            cancel_event=cancel_event,
        )
        logger.debug("IremboPay response", method=method, path=request.path, status_code=response.status_code)
        raise_for_status(response)
        return response
