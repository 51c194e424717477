from __future__ import annotations

import argparse
import dataclasses
import logging
import os
import sys
import threading
from datetime import timedelta
from enum import Enum
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any, Mapping, Sequence

import simplejson
import structlog

from .client import APIRequest
from .config import DEFAULT_API_VERSION, DEFAULT_TIMEOUT_SECONDS, IremboPayConfig
from .exceptions import ConfigurationError, DecodeError, HTTPRequestError, IremboPayError
from .idempotency import MemoryIdempotencyStore, derive_idempotency_key
from .irembopay import IremboPay
from .models import (
    BatchInvoiceRequest,
    Customer,
    InvoiceRequest,
    MomoPaymentRequest,
    PaymentItem,
    PaymentProvider,
    load_json,
    parse_time,
)
from .webhook import (
    DEFAULT_MAX_AGE_SECONDS,
    SIGNATURE_HEADER,
    WebhookError,
    WebhookInFlightError,
    WebhookReceiver,
    WebhookVerifier,
    sign_payload,
)


def build_parser() -> argparse.ArgumentParser:
    shared = argparse.ArgumentParser(add_help=False)
    _add_global_args(shared)

    parser = argparse.ArgumentParser(
        prog="irembopay",
        description="IremboPay CLI powered by irembopay-sdk",
        parents=[shared],
    )
    subparsers = parser.add_subparsers(dest="group")
    subparsers.required = True

    _build_request_command(subparsers, shared)
    _build_invoice_commands(subparsers, shared)
    _build_batch_commands(subparsers, shared)
    _build_payment_commands(subparsers, shared)
    _build_webhook_commands(subparsers, shared)
    _build_idempotency_commands(subparsers, shared)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    output_format = "human"
    try:
        args = parser.parse_args(argv)
        output_format = str(args.output_format)
        _configure_logging(str(args.log_level))
        handler = getattr(args, "handler", None)
        if handler is None:
            raise ValueError("missing command handler")
        result = handler(args)
        _print_result(result, output_format=output_format)
        return 0
    except SystemExit as exc:
        return _system_exit_code(exc)
    except ConfigurationError as exc:
        return _print_error(str(exc), exit_code=2, output_format=output_format)
    except ValueError as exc:
        return _print_error(str(exc), exit_code=2, output_format=output_format)
    except HTTPRequestError as exc:
        return _print_error(_format_http_error(exc), exit_code=4, output_format=output_format)
    except IremboPayError as exc:
        return _print_error(_format_api_error(exc), exit_code=3, output_format=output_format)
    except DecodeError as exc:
        return _print_error(str(exc), exit_code=3, output_format=output_format)
    except WebhookError as exc:
        return _print_error(f"{type(exc).__name__}: {exc}", exit_code=5, output_format=output_format)
    except Exception as exc:
        return _print_error(f"{type(exc).__name__}: {exc}", exit_code=1, output_format=output_format)


def _add_global_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--format",
        dest="output_format",
        choices=("human", "json"),
        default="human",
        help="Output format. Default: human",
    )
    parser.add_argument("--secret-key", help="IremboPay secret key")
    parser.add_argument(
        "--environment",
        choices=("sandbox", "production"),
        help="Target environment. Default: sandbox",
    )
    parser.add_argument("--host", help="API host override, e.g. api.sandbox.irembopay.com")
    parser.add_argument("--api-version", help=f"API version header. Default: {DEFAULT_API_VERSION}")
    parser.add_argument("--timeout", type=float, help=f"HTTP timeout seconds. Default: {DEFAULT_TIMEOUT_SECONDS}")
    parser.add_argument(
        "--log-level",
        choices=("debug", "info", "warning", "error"),
        default="warning",
        help="Log level for diagnostics written to stderr. Default: warning",
    )


def _build_request_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
    shared: argparse.ArgumentParser,
) -> None:
    request_parser = subparsers.add_parser("request", help="Send a raw IremboPay API request", parents=[shared])
    request_parser.add_argument("method", help="HTTP method, e.g. GET/POST/PUT")
    request_parser.add_argument("path", help="API path, e.g. /payments/invoices/INV-1")
    request_parser.add_argument("--params-json", help="Query params as JSON object string")
    _add_body_args(request_parser)
    request_parser.add_argument("--idempotency-key", help="Idempotency-Key header value")
    request_parser.set_defaults(handler=_cmd_request)


def _build_invoice_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
    shared: argparse.ArgumentParser,
) -> None:
    invoice_parser = subparsers.add_parser("invoice", help="Invoice operations")
    invoice_sub = invoice_parser.add_subparsers(dest="invoice_command")
    invoice_sub.required = True

    create = invoice_sub.add_parser("create", help="Create an invoice from a JSON request body", parents=[shared])
    _add_body_args(create)
    create.add_argument("--expires-in-minutes", type=float, help="Set expiryAt relative to now")
    create.add_argument(
        "--idempotent",
        action="store_true",
        help="Attach an idempotency key derived from the transactionId",
    )
    create.set_defaults(handler=_cmd_invoice_create)

    get = invoice_sub.add_parser("get", help="Get an invoice by number or transaction id", parents=[shared])
    get.add_argument("reference", help="Invoice number or transaction id")
    get.set_defaults(handler=_cmd_invoice_get)

    update_expiry = invoice_sub.add_parser("update-expiry", help="Change the expiry time of an invoice", parents=[shared])
    update_expiry.add_argument("invoice_number", help="Invoice number")
    update_expiry.add_argument("--expiry-at", required=True, help="New expiry time (RFC3339)")
    update_expiry.set_defaults(handler=_cmd_invoice_update_expiry)


def _build_batch_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
    shared: argparse.ArgumentParser,
) -> None:
    batch_parser = subparsers.add_parser("batch", help="Batch invoice operations")
    batch_sub = batch_parser.add_subparsers(dest="batch_command")
    batch_sub.required = True

    create = batch_sub.add_parser("create", help="Group invoices into a batch invoice", parents=[shared])
    create.add_argument("--transaction-id", required=True, help="Unique transaction identifier")
    create.add_argument(
        "--invoice-number",
        dest="invoice_numbers",
        action="append",
        required=True,
        help="Invoice number to include; repeat for several",
    )
    create.add_argument("--description", help="Batch description")
    create.set_defaults(handler=_cmd_batch_create)


def _build_payment_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
    shared: argparse.ArgumentParser,
) -> None:
    payment_parser = subparsers.add_parser("payment", help="Payment operations")
    payment_sub = payment_parser.add_subparsers(dest="payment_command")
    payment_sub.required = True

    initiate = payment_sub.add_parser("initiate", help="Initiate a mobile money payment", parents=[shared])
    initiate.add_argument("--account", required=True, help="Payer phone number")
    initiate.add_argument(
        "--provider",
        required=True,
        choices=[member.value for member in PaymentProvider if member is not PaymentProvider.UNKNOWN],
        help="Mobile money provider",
    )
    initiate.add_argument("--invoice-number", required=True, help="Invoice to pay")
    initiate.add_argument("--reference", help="Optional transaction reference")
    initiate.set_defaults(handler=_cmd_payment_initiate)


def _build_webhook_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
    shared: argparse.ArgumentParser,
) -> None:
    webhook_parser = subparsers.add_parser("webhook", help="Webhook utility commands")
    webhook_sub = webhook_parser.add_subparsers(dest="webhook_command")
    webhook_sub.required = True

    sign = webhook_sub.add_parser("sign", help="Build a signature header for a payload", parents=[shared])
    _add_body_args(sign)
    sign.add_argument("--timestamp-ms", type=int, help="Signature timestamp in epoch milliseconds. Default: now")
    sign.set_defaults(handler=_cmd_webhook_sign)

    verify = webhook_sub.add_parser(
        "verify",
        help="Verify a signature header and decode the notification",
        parents=[shared],
    )
    verify.add_argument("--signature", required=True, help=f"Value of the {SIGNATURE_HEADER} header")
    _add_body_args(verify)
    verify.add_argument(
        "--max-age-seconds",
        type=float,
        default=DEFAULT_MAX_AGE_SECONDS,
        help=f"Allowed timestamp distance in seconds. Default: {DEFAULT_MAX_AGE_SECONDS:g}",
    )
    verify.set_defaults(handler=_cmd_webhook_verify)

    serve = webhook_sub.add_parser("serve", help="Run a local webhook HTTP server", parents=[shared])
    serve.add_argument("--bind", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8080, help="Bind port (default: 8080)")
    serve.add_argument("--path", default="/webhook", help="Webhook path (default: /webhook)")
    serve.add_argument(
        "--max-age-seconds",
        type=float,
        default=DEFAULT_MAX_AGE_SECONDS,
        help=f"Allowed timestamp distance in seconds. Default: {DEFAULT_MAX_AGE_SECONDS:g}",
    )
    serve.add_argument("--max-requests", type=int, help="Stop after N requests")
    serve.set_defaults(handler=_cmd_webhook_serve)


def _build_idempotency_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
    shared: argparse.ArgumentParser,
) -> None:
    key_parser = subparsers.add_parser("idempotency-key", help="Derive an idempotency key", parents=[shared])
    key_parser.add_argument("operation", help="Operation tag, e.g. invoice")
    key_parser.add_argument("identifier", help="Caller identifier, e.g. an order id")
    key_parser.set_defaults(handler=_cmd_idempotency_key)


def _add_body_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--body-json", help="Body as JSON string")
    parser.add_argument("--body-file", help="Body file path")
    parser.add_argument("--body-stdin", action="store_true", help="Read body from stdin")


def _cmd_request(args: argparse.Namespace) -> Mapping[str, Any]:
    params = _parse_json_object(getattr(args, "params_json", None), name="params") if args.params_json else {}
    raw_body = _resolve_raw_body(args, required=False)
    body = load_json(raw_body) if raw_body else None
    with _build_sdk(args) as sdk:
        envelope = sdk.client.request_envelope(
            APIRequest(
                str(args.method),
                str(args.path),
                body=body,
                params=params,
                idempotency_key=getattr(args, "idempotency_key", None),
            )
        )
    return envelope.to_dict()


def _cmd_invoice_create(args: argparse.Namespace) -> Any:
    data = _parse_json_object(_resolve_raw_body(args, required=True).decode("utf-8"), name="body")
    request = _build_invoice_request(data)
    idempotency_key = derive_idempotency_key("invoice", request.transaction_id) if args.idempotent else None
    with _build_sdk(args) as sdk:
        if args.expires_in_minutes is not None:
            return sdk.invoice.create_with_expiry(
                request,
                timedelta(minutes=float(args.expires_in_minutes)),
                idempotency_key=idempotency_key,
            )
        return sdk.invoice.create(request, idempotency_key=idempotency_key)


def _cmd_invoice_get(args: argparse.Namespace) -> Any:
    with _build_sdk(args) as sdk:
        return sdk.invoice.get(str(args.reference))


def _cmd_invoice_update_expiry(args: argparse.Namespace) -> Any:
    expiry_at = parse_time(str(args.expiry_at))
    with _build_sdk(args) as sdk:
        return sdk.invoice.update_expiry_time(str(args.invoice_number), expiry_at)


def _cmd_batch_create(args: argparse.Namespace) -> Any:
    request = BatchInvoiceRequest(
        transaction_id=str(args.transaction_id),
        invoice_numbers=[str(number) for number in args.invoice_numbers],
        description=getattr(args, "description", None),
    )
    with _build_sdk(args) as sdk:
        return sdk.batch.create(request)


def _cmd_payment_initiate(args: argparse.Namespace) -> Any:
    request = MomoPaymentRequest(
        account_identifier=str(args.account),
        payment_provider=PaymentProvider(str(args.provider)),
        invoice_number=str(args.invoice_number),
        transaction_reference=getattr(args, "reference", None),
    )
    with _build_sdk(args) as sdk:
        return sdk.payment.initiate_momo_payment(request)


def _cmd_webhook_sign(args: argparse.Namespace) -> Mapping[str, str]:
    raw_body = _resolve_raw_body(args, required=True)
    header = sign_payload(_resolve_secret_key(args), raw_body, timestamp_ms=getattr(args, "timestamp_ms", None))
    return {"header": SIGNATURE_HEADER, "signature": header}


def _cmd_webhook_verify(args: argparse.Namespace) -> Any:
    raw_body = _resolve_raw_body(args, required=True)
    verifier = WebhookVerifier(_resolve_secret_key(args), max_age=float(args.max_age_seconds))
    return verifier.verify(str(args.signature), raw_body)


def _cmd_webhook_serve(args: argparse.Namespace) -> Mapping[str, Any]:
    verifier = WebhookVerifier(_resolve_secret_key(args), max_age=float(args.max_age_seconds))
    output_format = str(args.output_format)

    def _on_notification(notification: Any) -> None:
        _print_result({"event": "payment_notification", "notification": notification}, output_format=output_format)

    receiver = WebhookReceiver(verifier, _on_notification, store=MemoryIdempotencyStore())
    requests = _serve_webhook_http(
        receiver=receiver,
        host=str(args.bind),
        port=int(args.port),
        path=str(args.path),
        output_format=output_format,
        max_requests=_validate_positive_int(getattr(args, "max_requests", None), name="max-requests"),
    )
    return {"ok": True, "requests": requests}


def _cmd_idempotency_key(args: argparse.Namespace) -> Mapping[str, str]:
    return {"idempotency_key": derive_idempotency_key(str(args.operation), str(args.identifier))}


def _serve_webhook_http(
    *,
    receiver: WebhookReceiver,
    host: str,
    port: int,
    path: str,
    output_format: str,
    max_requests: int | None,
) -> int:
    state: dict[str, int] = {"requests": 0}

    class _Handler(BaseHTTPRequestHandler):
        def do_POST(self) -> None:  # noqa: N802
            request_path = self.path.split("?", 1)[0]
            if request_path != path:
                self._send_json(404, {"ok": False, "error": "not found"})
                return

            raw_body = _read_request_body(self.headers, self.rfile)
            headers = {str(k): str(v) for k, v in self.headers.items()}
            try:
                response = receiver.handle(headers, raw_body)
                self._send_json(200, response)
            except Exception as exc:
                error_payload = {"ok": False, "error": f"{type(exc).__name__}: {exc}"}
                self._send_json(409 if isinstance(exc, WebhookInFlightError) else 400, error_payload)
                _print_runtime_error(error_payload["error"], output_format=output_format)
            finally:
                state["requests"] += 1
                if max_requests is not None and state["requests"] >= max_requests:
                    threading.Thread(target=self.server.shutdown, daemon=True).start()

        def log_message(self, format: str, *args: object) -> None:  # noqa: A003
            return

        def _send_json(self, status_code: int, payload: Mapping[str, Any]) -> None:
            body = simplejson.dumps(_to_jsonable(payload), ensure_ascii=False).encode("utf-8")
            self.send_response(status_code)
            self.send_header("Content-Type", "application/json; charset=utf-8")
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

    _print_runtime_status({"status": "listening", "host": host, "port": port, "path": path}, output_format=output_format)
    with ThreadingHTTPServer((host, port), _Handler) as server:
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            pass
        finally:
            server.server_close()
    return state["requests"]


def _build_sdk(args: argparse.Namespace) -> IremboPay:
    return IremboPay(_build_config(args))


def _build_config(args: argparse.Namespace) -> IremboPayConfig:
    secret_key = _resolve_secret_key(args)
    environment = os.getenv("IREMBOPAY_ENVIRONMENT") or getattr(args, "environment", None) or "sandbox"
    host = getattr(args, "host", None) or os.getenv("IREMBOPAY_HOST")
    api_version = os.getenv("IREMBOPAY_API_VERSION") or getattr(args, "api_version", None) or DEFAULT_API_VERSION
    timeout = getattr(args, "timeout", None)
    return IremboPayConfig(
        secret_key=secret_key,
        environment=environment,
        api_version=api_version,
        host=host,
        timeout_seconds=float(timeout) if timeout is not None else DEFAULT_TIMEOUT_SECONDS,
    )


def _resolve_secret_key(args: argparse.Namespace) -> str:
    secret_key = os.getenv("IREMBOPAY_SECRET_KEY") or getattr(args, "secret_key", None)
    if not secret_key:
        raise ConfigurationError("missing secret key: set IREMBOPAY_SECRET_KEY or pass --secret-key")
    return str(secret_key)


def _build_invoice_request(data: Mapping[str, Any]) -> InvoiceRequest:
    items = data.get("paymentItems")
    if not isinstance(items, list) or not items:
        raise ValueError("body.paymentItems must be a non-empty list")
    customer = data.get("customer")
    return InvoiceRequest(
        transaction_id=_require_str(data, "transactionId"),
        payment_account_identifier=_require_str(data, "paymentAccountIdentifier"),
        payment_items=[PaymentItem.from_dict(item) for item in items],
        expiry_at=data.get("expiryAt") or None,
        description=data.get("description") or None,
        customer=Customer.from_dict(customer) if customer is not None else None,
        language=data.get("language") or None,
    )


def _require_str(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise ValueError(f"body.{key} is required")
    return value


def _validate_positive_int(value: object, *, name: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError(f"--{name} must be a positive integer")
    return value


def _parse_json_object(raw: str, *, name: str) -> dict[str, Any]:
    try:
        parsed = load_json(raw)
    except ValueError as exc:
        raise ValueError(f"{name} is not valid JSON: {exc}") from exc
    if not isinstance(parsed, Mapping):
        raise ValueError(f"{name} must be a JSON object")
    return {str(key): value for key, value in parsed.items()}


def _resolve_raw_body(args: argparse.Namespace, *, required: bool) -> bytes:
    body_json = getattr(args, "body_json", None)
    body_file = getattr(args, "body_file", None)
    stdin_enabled = bool(getattr(args, "body_stdin", False))
    source_count = int(bool(body_json)) + int(bool(body_file)) + int(stdin_enabled)
    if source_count > 1:
        raise ValueError("only one of --body-json, --body-file or --body-stdin can be used")
    if source_count == 0:
        if required:
            raise ValueError("one of --body-json, --body-file or --body-stdin is required")
        return b""
    if body_json is not None:
        return str(body_json).encode("utf-8")
    if body_file is not None:
        return Path(str(body_file)).read_bytes()
    return sys.stdin.buffer.read() if hasattr(sys.stdin, "buffer") else sys.stdin.read().encode("utf-8")


def _read_request_body(headers: Any, stream: Any) -> bytes:
    length_value = headers.get("Content-Length")
    try:
        length = int(length_value) if length_value is not None else 0
    except ValueError:
        length = 0
    if length <= 0:
        return b""
    return stream.read(length)


def _configure_logging(level: str) -> None:
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level.upper())),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def _print_result(result: Any, *, output_format: str) -> None:
    normalized = _to_jsonable(result)
    if output_format == "json":
        print(simplejson.dumps(normalized, ensure_ascii=False, indent=2))
        return
    _print_human(normalized)


def _print_human(result: Any) -> None:
    if result is None:
        print("OK")
        return
    if isinstance(result, Mapping):
        mapping = {str(key): value for key, value in result.items()}
        if not mapping:
            print("OK")
            return
        if _is_flat_mapping(mapping):
            width = max(len(key) for key in mapping)
            for key in sorted(mapping):
                print(f"{key:<{width}} : {mapping[key]}")
            return
        print(simplejson.dumps(mapping, ensure_ascii=False, indent=2))
        return
    print(result)


def _print_runtime_status(payload: Mapping[str, Any], *, output_format: str) -> None:
    if output_format == "json":
        print(simplejson.dumps(_to_jsonable(payload), ensure_ascii=False))
        return
    print(f"Listening on http://{payload.get('host')}:{payload.get('port')}{payload.get('path')}")


def _print_runtime_error(message: str, *, output_format: str) -> None:
    if output_format == "json":
        print(simplejson.dumps({"error": message}, ensure_ascii=False))
    else:
        print(f"Runtime error: {message}", file=sys.stderr)


def _print_error(message: str, *, exit_code: int, output_format: str) -> int:
    if output_format == "json":
        print(
            simplejson.dumps(
                {
                    "ok": False,
                    "error": message,
                    "exit_code": exit_code,
                },
                ensure_ascii=False,
            )
        )
    else:
        print(f"Error: {message}", file=sys.stderr)
    return exit_code


def _format_http_error(exc: HTTPRequestError) -> str:
    parts = [str(exc)]
    if exc.status_code is not None:
        parts.append(f"status_code={exc.status_code}")
    if exc.response_text:
        parts.append(f"response={exc.response_text[:500]}")
    return "; ".join(parts)


def _format_api_error(exc: IremboPayError) -> str:
    parts = [str(exc)]
    if exc.details and exc.details != exc.message:
        parts.append(f"response={exc.details[:500]}")
    return "; ".join(parts)


def _is_flat_mapping(mapping: Mapping[str, Any]) -> bool:
    for value in mapping.values():
        if isinstance(value, (dict, list, tuple, set)):
            return False
    return True


def _to_jsonable(value: Any) -> Any:
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return _to_jsonable(to_dict())
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return _to_jsonable(dataclasses.asdict(value))
    if isinstance(value, Mapping):
        return {str(k): _to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(item) for item in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def _system_exit_code(exc: SystemExit) -> int:
    code = exc.code
    if code is None:
        return 0
    if isinstance(code, int):
        return code
    return 1
