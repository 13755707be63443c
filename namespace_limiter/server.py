"""
HTTPS admission webhook server.

Each request is handled on its own thread, so decisions run concurrently and
share only the limiter's immutable configuration and its namespace store.
"""

from __future__ import annotations

import json
import logging
import ssl
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Optional

from prometheus_client import CONTENT_TYPE_LATEST

from .admission import AdmissionHandler
from .errors import ConfigurationError


logger = logging.getLogger(__name__)

REVIEW_PATHS = ("/", "/validate")


class AdmissionWebhookHandler(BaseHTTPRequestHandler):
    """HTTP handler for Kubernetes admission webhook requests."""

    # Socket timeout for slow or vanished callers.
    timeout = 30

    @property
    def admission(self) -> AdmissionHandler:
        return self.server.admission

    def log_message(self, format, *args):
        logger.info(format % args)

    def do_GET(self):
        if self.path == "/healthz":
            self._send(200, b"ok\n", "text/plain")
        elif self.path == "/metrics":
            self._send(200, self.admission.metrics_text(), CONTENT_TYPE_LATEST)
        else:
            self._send_json(404, {"error": f"no route for {self.path}"})

    def do_POST(self):
        try:
            content_length = int(self.headers.get("Content-Length", 0))
        except ValueError:
            content_length = -1
        if content_length < 0:
            self._send_json(400, {"error": "invalid Content-Length"})
            return
        body = self.rfile.read(content_length)

        if self.path.split("?", 1)[0] not in REVIEW_PATHS:
            self._send_json(404, {"error": f"no route for {self.path}"})
            return

        try:
            admission_review = json.loads(body)
        except (ValueError, UnicodeDecodeError) as e:
            self._send_json(400, {"error": f"invalid request body: {e}"})
            return

        try:
            response = self.admission.process_admission_review(admission_review)
        except ValueError as e:
            logger.warning(f"Rejecting malformed AdmissionReview: {e}")
            self._send_json(400, {"error": str(e)})
            return
        except Exception as e:
            logger.error(f"Error processing request: {e}", exc_info=True)
            self._send_json(500, {"error": str(e)})
            return

        try:
            self._send_json(200, response)
        except (BrokenPipeError, ConnectionResetError):
            logger.warning("Caller went away before response %s was sent", response["response"]["uid"])
            return

        logger.debug(
            "Sent response for %s: allowed=%s", response["response"]["uid"], response["response"]["allowed"]
        )

    def _send_json(self, status: int, payload: dict):
        self._send(status, json.dumps(payload).encode(), "application/json")

    def _send(self, status: int, body: bytes, content_type: str):
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)


class _AdmissionHTTPServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address, handler_class, admission: AdmissionHandler):
        self.admission = admission
        super().__init__(address, handler_class)


def create_ssl_context(cert_file: str, key_file: str) -> ssl.SSLContext:
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    try:
        context.load_cert_chain(cert_file, key_file)
    except (OSError, ssl.SSLError) as e:
        raise ConfigurationError(f"failed to load TLS certificate/key: {e}") from e
    return context


class WebhookServer:
    """Manages the webhook server lifecycle."""

    def __init__(
        self,
        admission: AdmissionHandler,
        host: str = "0.0.0.0",
        port: int = 8080,
        cert_file: Optional[str] = None,
        key_file: Optional[str] = None,
    ):
        self.admission = admission
        self.host = host
        self.port = port
        self.cert_file = cert_file
        self.key_file = key_file
        self.server: Optional[_AdmissionHTTPServer] = None
        self.thread: Optional[threading.Thread] = None

    def bind(self):
        """Bind the listening socket, wrapping it in TLS when certificates are set."""
        context = None
        if self.cert_file and self.key_file:
            context = create_ssl_context(self.cert_file, self.key_file)

        self.server = _AdmissionHTTPServer((self.host, self.port), AdmissionWebhookHandler, self.admission)
        if context is not None:
            self.server.socket = context.wrap_socket(self.server.socket, server_side=True)
            logger.info("Webhook server configured with TLS")

        # Port 0 asks the OS for a free port.
        self.port = self.server.server_address[1]

    def serve_forever(self):
        """Serve in the calling thread until ``stop`` is called."""
        if self.server is None:
            self.bind()
        logger.info(f"Listening on {self.host}:{self.port}")
        self.server.serve_forever()

    def start(self):
        """Start the webhook server in a background thread."""
        if self.server is None:
            self.bind()
        self.thread = threading.Thread(target=self.server.serve_forever, daemon=True)
        self.thread.start()
        logger.info(f"Webhook server started on {self.host}:{self.port}")

    def stop(self):
        """Stop the webhook server."""
        if self.server:
            self.server.shutdown()
            self.server.server_close()
            logger.info("Webhook server stopped")

    @property
    def url(self) -> str:
        protocol = "https" if self.cert_file else "http"
        return f"{protocol}://{self.host}:{self.port}"
