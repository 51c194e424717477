import asyncio
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

import httpx

from .exceptions import HTTPRequestError, RequestCancelledError, RequestTimeoutError


@dataclass(frozen=True)
class RawResponse:
    status_code: int
    body: bytes
    headers: Mapping[str, str] = field(default_factory=dict)

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


def _to_raw_response(response: httpx.Response) -> RawResponse:
    return RawResponse(
        status_code=response.status_code,
        body=response.content,
        headers=dict(response.headers),
    )


def _transport_error(method: str, url: str, exc: httpx.HTTPError) -> HTTPRequestError:
    if isinstance(exc, httpx.TimeoutException):
        return RequestTimeoutError(f"{method} {url} timed out: {exc}")
    return HTTPRequestError(f"error making HTTP request: {type(exc).__name__}: {exc}")


class HttpClient:
    def __init__(
        self,
        *,
        timeout_seconds: float = 30.0,
        session: Optional[httpx.Client] = None,
    ) -> None:
        self._timeout_seconds = timeout_seconds
        self._session = session or httpx.Client()

    def send(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        content: Optional[bytes] = None,
        timeout_seconds: Optional[float] = None,
    ) -> RawResponse:
        method_upper = method.upper()
        try:
            response = self._session.request(
                method_upper,
                url,
                headers=dict(headers or {}),
                content=content,
                timeout=timeout_seconds or self._timeout_seconds,
            )
        except httpx.HTTPError as exc:
            raise _transport_error(method_upper, url, exc) from exc
        return _to_raw_response(response)

    def close(self) -> None:
        self._session.close()


class AsyncHttpClient:
    def __init__(
        self,
        *,
        timeout_seconds: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._timeout_seconds = timeout_seconds
        self._client = client or httpx.AsyncClient()

    async def send(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        content: Optional[bytes] = None,
        timeout_seconds: Optional[float] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> RawResponse:
        """Send one request.

        Setting ``cancel_event`` aborts the in-flight request and raises
        :class:`RequestCancelledError`. Cancelling the calling task instead
        propagates ``asyncio.CancelledError`` untouched.
        """
        method_upper = method.upper()
        request_headers: Dict[str, str] = dict(headers or {})
        timeout = timeout_seconds or self._timeout_seconds
        if cancel_event is None:
            return await self._send(method_upper, url, request_headers, content, timeout)
        if cancel_event.is_set():
            raise RequestCancelledError(f"{method_upper} {url} cancelled before it was sent")

        request_task = asyncio.ensure_future(self._send(method_upper, url, request_headers, content, timeout))
        cancel_task = asyncio.ensure_future(cancel_event.wait())
        try:
            await asyncio.wait({request_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            request_task.cancel()
            cancel_task.cancel()
            await asyncio.gather(request_task, cancel_task, return_exceptions=True)
            raise
        if request_task.done():
            cancel_task.cancel()
            await asyncio.gather(cancel_task, return_exceptions=True)
            return request_task.result()
        request_task.cancel()
        await asyncio.gather(request_task, return_exceptions=True)
        raise RequestCancelledError(f"{method_upper} {url} cancelled by caller")

    async def _send(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        content: Optional[bytes],
        timeout: float,
    ) -> RawResponse:
        try:
            response = await self._client.request(
                method,
                url,
                headers=headers,
                content=content,
                timeout=timeout,
            )
        except httpx.HTTPError as exc:
            raise _transport_error(method, url, exc) from exc
        return _to_raw_response(response)

    async def aclose(self) -> None:
        await self._client.aclose()
