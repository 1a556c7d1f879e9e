"""Live event relay for the browser UI.

Streams every bus event to connected browsers as Server-Sent Events, one
`data:` frame per event in its tagged JSON wire form. Each connection gets its
own Subscription, so a slow or vanished browser only loses its own events.

Runs as a daemon thread; uses stdlib http.server + socketserver only.

Endpoints:
    GET /events     text/event-stream of wire-format events
    GET /api/queue  latest Next5Games frame as JSON (null before the first one)
    GET /health     "ok"
"""
from __future__ import annotations

import json
import logging
import socketserver
import threading
from http.server import BaseHTTPRequestHandler
from typing import Optional

from replayctl.domain.events import QueueUpdated
from replayctl.infrastructure.event_bus import EventBus, Subscription

logger = logging.getLogger(__name__)

DEFAULT_PORT = 9001
KEEPALIVE_S = 15.0


class RelayRequestHandler(BaseHTTPRequestHandler):
    """HTTP request handler. Injected state: `relay` (the owning EventRelayServer)."""

    relay: "EventRelayServer" = None  # type: ignore[assignment]

    def log_message(self, format: str, *args) -> None:  # noqa: A002
        pass  # request logging goes to our logger, not stderr

    def _send_body(self, body: str, content_type: str, status: int = 200) -> None:
        encoded = body.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", content_type + "; charset=utf-8")
        self.send_header("Content-Length", str(len(encoded)))
        self.send_header("Cache-Control", "no-cache")
        self.send_header("Access-Control-Allow-Origin", "*")
        self.end_headers()
        self.wfile.write(encoded)

    def _stream_events(self) -> None:
        relay = self.__class__.relay
        self.send_response(200)
        self.send_header("Content-Type", "text/event-stream")
        self.send_header("Cache-Control", "no-cache")
        self.send_header("Connection", "keep-alive")
        self.send_header("Access-Control-Allow-Origin", "*")
        self.end_headers()
        self.wfile.flush()

        peer = f"{self.client_address[0]}:{self.client_address[1]}"
        logger.info("Relay client connected: %s", peer)
        with relay.bus.subscribe(maxlen=relay.buffer_size) as sub:
            try:
                while not relay.stopping.is_set():
                    event = sub.get(timeout=relay.keepalive_s)
                    if event is None:
                        if sub.closed:
                            break
                        frame = ": keepalive\n\n"
                    else:
                        frame = f"data: {event.to_json()}\n\n"
                    self.wfile.write(frame.encode("utf-8"))
                    self.wfile.flush()
            except (BrokenPipeError, ConnectionResetError, ConnectionAbortedError):
                pass
            finally:
                if sub.dropped:
                    logger.info("Relay client %s lagged and missed %d event(s)", peer, sub.dropped)
        logger.info("Relay client disconnected: %s", peer)

    def do_GET(self) -> None:
        path = self.path.split("?")[0]
        try:
            if path == "/events":
                self._stream_events()
            elif path == "/api/queue":
                latest = self.__class__.relay.latest_queue()
                self._send_body(json.dumps(latest.to_wire() if latest else None), "application/json")
            elif path == "/health":
                self._send_body("ok", "text/plain")
            else:
                self._send_body("not found", "text/plain", status=404)
        except (BrokenPipeError, ConnectionResetError):
            pass
        except Exception as exc:
            logger.debug("Relay request error for %s: %s", path, exc)
            try:
                self._send_body(str(exc), "text/plain", status=500)
            except OSError:
                pass


class _ThreadingHTTPServer(socketserver.ThreadingMixIn, socketserver.TCPServer):
    """Thread-per-request HTTP server with address reuse and daemon threads."""

    allow_reuse_address = True
    daemon_threads = True  # request threads die when main thread exits


class EventRelayServer:
    """Browser-facing event relay.

    Usage::

        relay = EventRelayServer(bus, port=9001)
        relay.start()   # non-blocking
        # ... loop runs ...
        relay.stop()    # optional; daemon thread auto-stops on exit
    """

    def __init__(
        self,
        bus: EventBus,
        port: int = DEFAULT_PORT,
        host: str = "127.0.0.1",
        buffer_size: int = 64,
        keepalive_s: float = KEEPALIVE_S,
    ) -> None:
        self.bus = bus
        self.port = port
        self.host = host
        self.buffer_size = buffer_size
        self.keepalive_s = keepalive_s
        self.stopping = threading.Event()
        self._server: Optional[_ThreadingHTTPServer] = None
        self._thread: Optional[threading.Thread] = None
        # maxlen=1: only the most recent queue snapshot matters
        self._queue_sub: Subscription = bus.subscribe(QueueUpdated, maxlen=1)
        self._latest_queue: Optional[QueueUpdated] = None
        self._latest_lock = threading.Lock()

    @property
    def address(self) -> tuple:
        if self._server is None:
            return (self.host, self.port)
        return self._server.server_address[:2]

    def latest_queue(self) -> Optional[QueueUpdated]:
        with self._latest_lock:
            pending = self._queue_sub.drain()
            if pending:
                self._latest_queue = pending[-1]
            return self._latest_queue

    def start(self) -> bool:
        """Start the relay in a daemon background thread. Returns False if the port is unavailable."""
        # Per-server handler class carrying the injected state
        handler = type("BoundRelayRequestHandler", (RelayRequestHandler,), {"relay": self})
        try:
            self._server = _ThreadingHTTPServer((self.host, self.port), handler)
        except OSError as exc:
            logger.warning("Event relay: could not bind to %s:%d: %s (relay disabled)", self.host, self.port, exc)
            return False

        self._thread = threading.Thread(
            target=self._server.serve_forever,
            name="replayctl-relay",
            daemon=True,
        )
        self._thread.start()
        host, port = self.address
        logger.info("Event relay: http://%s:%d/events", host, port)
        return True

    def stop(self) -> None:
        """Gracefully stop the relay."""
        self.stopping.set()
        if self._server:
            self._server.shutdown()
            self._server.server_close()
            self._server = None
        if self._thread:
            self._thread.join(timeout=2.0)
            self._thread = None
        self._queue_sub.close()
