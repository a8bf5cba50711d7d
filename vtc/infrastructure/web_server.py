"""HTTP adapter exposing job creation, progress polling and artifact download.

Thin transport over ``JobService``: uses stdlib http.server + socketserver,
one thread per request. The upload is the raw request body (no multipart),
with encode parameters in the query string.

Routes:
    GET  /                      health text
    POST /api/start             body = media file; ?targetMB=&codec=&audioKbps=&autoQuality=
    GET  /api/progress/<jobId>  JSON progress, 404 {"status": "missing"} if unknown
    GET  /api/download/<jobId>  output file, 404 unknown, 409 not ready
"""
from __future__ import annotations

import json
import logging
import shutil
import socketserver
import threading
import uuid
from http.server import BaseHTTPRequestHandler
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional
from urllib.parse import parse_qs, urlsplit

from pydantic import ValidationError

from vtc.domain.errors import JobNotReady, MissingJob
from vtc.domain.models import EncodeRequest
from vtc.infrastructure.housekeeping import remove_quietly

if TYPE_CHECKING:
    from vtc.pipeline.service import JobService

logger = logging.getLogger(__name__)

DEFAULT_PORT = 10000
HEALTH_TEXT = "vtc backend OK"
_CHUNK = 1024 * 1024
_DRAIN_LIMIT = 1024 * 1024  # rejected bodies up to this size are read off the socket


class VtcRequestHandler(BaseHTTPRequestHandler):
    """Request handler; ``service`` is injected by VtcWebServer.start()."""

    service: "JobService" = None  # type: ignore[assignment]
    protocol_version = "HTTP/1.1"

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("HTTP %s - %s", self.address_string(), format % args)

    # -- response helpers -------------------------------------------------

    def _send_cors(self) -> None:
        self.send_header("Access-Control-Allow-Origin", self.headers.get("Origin") or "*")
        self.send_header("Access-Control-Allow-Methods", "GET, POST")
        self.send_header("Vary", "Origin")

    def _send_bytes(self, data: bytes, content_type: str, status: int = 200) -> None:
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(data)))
        self._send_cors()
        self.end_headers()
        self.wfile.write(data)

    def _send_text(self, text: str, status: int = 200) -> None:
        self._send_bytes(text.encode("utf-8"), "text/plain; charset=utf-8", status)

    def _send_json(self, payload: Dict[str, Any], status: int = 200) -> None:
        self._send_bytes(json.dumps(payload).encode("utf-8"), "application/json", status)

    def _send_file(self, path: Path, filename: str) -> None:
        size = path.stat().st_size
        with open(path, "rb") as f:
            self.send_response(200)
            self.send_header("Content-Type", "video/mp4")
            self.send_header("Content-Length", str(size))
            self.send_header("Content-Disposition", f'attachment; filename="{filename}"')
            self._send_cors()
            self.end_headers()
            shutil.copyfileobj(f, self.wfile, _CHUNK)

    # -- routes -----------------------------------------------------------

    def do_OPTIONS(self) -> None:
        self.send_response(204)
        self._send_cors()
        self.send_header("Access-Control-Allow-Headers", "Content-Type")
        self.send_header("Content-Length", "0")
        self.end_headers()

    def do_GET(self) -> None:
        path = urlsplit(self.path).path
        if path == "/":
            self._send_text(HEALTH_TEXT)
        elif path.startswith("/api/progress/"):
            self._handle_progress(path[len("/api/progress/"):])
        elif path.startswith("/api/download/"):
            self._handle_download(path[len("/api/download/"):])
        else:
            self._send_text("Not found.", status=404)

    def do_POST(self) -> None:
        parts = urlsplit(self.path)
        try:
            length = int(self.headers.get("Content-Length") or 0)
        except ValueError:
            length = 0
        if parts.path != "/api/start":
            self._reject("Not found.", 404, length)
            return
        self._handle_start(parts.query, length)

    def _handle_start(self, query: str, length: int) -> None:
        if length <= 0:
            self._send_text("No file uploaded.", status=400)
            return
        if length > self.service.config.server.max_upload_bytes:
            self._reject("File too large.", 413, length)
            return

        params = {k: v[-1] for k, v in parse_qs(query).items()}
        try:
            request = EncodeRequest.from_form(params, self.service.config.defaults)
        except (ValidationError, ValueError) as exc:
            self._reject(f"Invalid parameters: {exc}", 400, length)
            return

        upload_path = self.service.upload_dir / uuid.uuid4().hex
        upload_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._receive_body(upload_path, length)
        except OSError as exc:
            remove_quietly(upload_path)
            logger.warning(f"Upload failed: {exc}")
            self._send_text("Upload failed.", status=400)
            self.close_connection = True
            return

        job_id = self.service.start_job(upload_path, request)
        self._send_json({"jobId": job_id})

    def _reject(self, text: str, status: int, length: int) -> None:
        if length <= _DRAIN_LIMIT:
            self.rfile.read(length)
        else:
            self.close_connection = True
        self._send_text(text, status=status)

    def _receive_body(self, upload_path: Path, length: int) -> None:
        remaining = length
        with open(upload_path, "wb") as out:
            while remaining > 0:
                chunk = self.rfile.read(min(_CHUNK, remaining))
                if not chunk:
                    raise OSError(f"Connection closed with {remaining} bytes outstanding")
                out.write(chunk)
                remaining -= len(chunk)

    def _handle_progress(self, job_id: str) -> None:
        report = self.service.get_progress(job_id)
        status = 404 if report.status == "missing" else 200
        self._send_json(report.to_wire(), status=status)

    def _handle_download(self, job_id: str) -> None:
        try:
            path = self.service.get_artifact(job_id)
        except MissingJob:
            self._send_text("Missing job.", status=404)
            return
        except JobNotReady:
            self._send_text("Not ready.", status=409)
            return
        try:
            self._send_file(path, self.service.download_name(job_id))
        except FileNotFoundError:
            self._send_text("Missing job.", status=404)
        except (BrokenPipeError, ConnectionResetError) as exc:
            logger.debug(f"Download of {job_id} aborted by client: {exc}")


class _ThreadingHTTPServer(socketserver.ThreadingMixIn, socketserver.TCPServer):
    """Thread-per-request HTTP server with address reuse and daemon threads."""

    allow_reuse_address = True
    daemon_threads = True


class VtcWebServer:
    """HTTP front for a JobService, served from a daemon thread.

    Usage::

        server = VtcWebServer(service, port=10000)
        server.start()   # non-blocking
        ...
        server.stop()
    """

    def __init__(self, service: "JobService", port: int = DEFAULT_PORT, host: str = "0.0.0.0") -> None:
        self.service = service
        self.port = port
        self.host = host
        self._server: Optional[_ThreadingHTTPServer] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def server_port(self) -> int:
        """Bound port (differs from ``port`` when started with port 0)."""
        if self._server is None:
            return self.port
        return self._server.server_address[1]

    def start(self) -> None:
        """Start serving in a daemon background thread. Raises OSError if the port is taken."""
        handler = type("BoundVtcRequestHandler", (VtcRequestHandler,), {"service": self.service})
        self._server = _ThreadingHTTPServer((self.host, self.port), handler)
        self._thread = threading.Thread(
            target=self._server.serve_forever,
            name="vtc-http",
            daemon=True,
        )
        self._thread.start()
        display_host = "localhost" if self.host in ("0.0.0.0", "::") else self.host
        logger.info("vtc backend running on http://%s:%d/", display_host, self.server_port)

    def stop(self) -> None:
        """Gracefully stop the web server."""
        if self._server:
            self._server.shutdown()
            self._server.server_close()
            self._server = None
        if self._thread:
            self._thread.join(timeout=2.0)
            self._thread = None
