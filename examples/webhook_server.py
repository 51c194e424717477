import json
from http.server import BaseHTTPRequestHandler, HTTPServer

from irembopay import MemoryIdempotencyStore, WebhookError, WebhookReceiver, WebhookVerifier

from _settings import load_settings


settings = load_settings()


def _on_payment(notification):
    print(
        "[payment]",
        notification.invoice_number,
        notification.payment_status.value,
        notification.amount,
        notification.currency,
        notification.payment_method.value,
    )


receiver = WebhookReceiver(
    WebhookVerifier(settings.secret_key, max_age=300),
    _on_payment,
    store=MemoryIdempotencyStore(),
)


class Handler(BaseHTTPRequestHandler):
    def do_POST(self):
        if self.path != "/webhook":
            self.send_response(404)
            self.end_headers()
            return
        length = int(self.headers.get("Content-Length", "0"))
        raw_body = self.rfile.read(length)
        headers = {k: v for k, v in self.headers.items()}
        try:
            response = receiver.handle(headers, raw_body)
            status = 200
        except WebhookError as exc:
            response = {"ok": False, "error": str(exc)}
            status = 400
        body = json.dumps(response).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)


if __name__ == "__main__":
    server = HTTPServer(("0.0.0.0", 8080), Handler)
    print("listening on http://0.0.0.0:8080/webhook")
    server.serve_forever()
