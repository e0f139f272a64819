"""HTTP server adapter for the registry REST API.

Provides a threaded HTTP server using Python's built-in http.server
module. Each request runs on its own thread and hands its coroutine to
the application's asyncio event loop, so all store access stays on one
loop while slow clients never block each other.
"""

import asyncio
import json
import logging
import re
from collections.abc import Coroutine
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any
from urllib.parse import urlsplit

from harbormaster.adapters.rest.receiver import ApiResponse, RestReceiver
from harbormaster.core.validation import MAX_STORED_INT

logger = logging.getLogger(__name__)

# (path pattern, {HTTP method: receiver action})
ROUTES: tuple[tuple[re.Pattern[str], dict[str, str]], ...] = (
    (re.compile(r"^/docks$"), {"GET": "list_docks", "POST": "create_dock"}),
    (
        re.compile(r"^/docks/(\d+)$"),
        {"GET": "get_dock", "PUT": "update_dock", "DELETE": "delete_dock"},
    ),
    (re.compile(r"^/ships$"), {"GET": "list_ships", "POST": "create_ship"}),
    (
        re.compile(r"^/ships/(\d+)$"),
        {"GET": "get_ship", "PUT": "update_ship", "DELETE": "delete_ship"},
    ),
    (re.compile(r"^/haulers$"), {"GET": "list_haulers", "POST": "create_hauler"}),
    (
        re.compile(r"^/haulers/(\d+)$"),
        {"GET": "get_hauler", "PUT": "update_hauler", "DELETE": "delete_hauler"},
    ),
)

_BODY_METHODS = frozenset({"POST", "PUT"})


def resolve_route(path: str) -> tuple[dict[str, str], tuple[int, ...]] | None:
    """Match a request path against the route table.

    Returns:
        The method map and the integer path arguments, or None if no
        route matches. An ID too large for any stored row names no
        resource, so it does not match either.
    """
    for pattern, actions in ROUTES:
        match = pattern.match(path)
        if match:
            args = tuple(int(group) for group in match.groups())
            if any(arg > MAX_STORED_INT for arg in args):
                return None
            return actions, args
    return None


def make_rest_handler(
    receiver: RestReceiver,
    event_loop: asyncio.AbstractEventLoop,
    request_timeout: float,
    max_body_bytes: int,
) -> type[BaseHTTPRequestHandler]:
    """Factory to create a RegistryHTTPHandler class with instance-specific state.

    Dependencies are captured in the closure instead of class-level
    mutable state.

    Args:
        receiver: Receiver translating requests into port calls
        event_loop: Event loop the receiver's coroutines run on
        request_timeout: Seconds to wait for a coroutine before giving up
        max_body_bytes: Largest accepted request body

    Returns:
        A RegistryHTTPHandler class configured with the provided dependencies
    """

    class RegistryHTTPHandler(BaseHTTPRequestHandler):
        """HTTP request handler for the registry endpoints."""

        def do_GET(self) -> None:
            self._dispatch("GET")

        def do_POST(self) -> None:
            self._dispatch("POST")

        def do_PUT(self) -> None:
            self._dispatch("PUT")

        def do_DELETE(self) -> None:
            self._dispatch("DELETE")

        def do_PATCH(self) -> None:
            self._dispatch("PATCH")

        def _dispatch(self, method: str) -> None:
            """Route a request to the receiver and write its response."""
            path = urlsplit(self.path).path.rstrip("/") or "/"

            if path == "/health" and method == "GET":
                self._send_json(200, {"status": "healthy"})
                return

            route = resolve_route(path)
            if route is None:
                self._drain_unread_body()
                self._send_json(404, {"error": "not_found", "message": "Not found"})
                return

            actions, args = route
            action = actions.get(method)
            if action is None:
                self._drain_unread_body()
                self._send_json(
                    405,
                    {"error": "method_not_allowed", "message": "Method not allowed"},
                    headers={"Allow": ", ".join(sorted(actions))},
                )
                return

            call_args: list[Any] = list(args)
            if method in _BODY_METHODS:
                data = self._read_json_body()
                if data is _REJECTED:
                    return
                call_args.append(data)

            handler = getattr(receiver, f"handle_{action}")
            response = self._run_async(handler(*call_args))
            if response is not None:
                self._send_api_response(response)

        def _read_json_body(self) -> Any:
            """Read and decode the JSON body.

            Returns:
                The decoded value, or _REJECTED after an error response
                has already been sent.
            """
            try:
                content_length = int(self.headers.get("Content-Length", 0))
            except ValueError:
                self._send_json(
                    400, {"error": "validation", "message": "Invalid Content-Length"}
                )
                return _REJECTED

            if content_length > max_body_bytes:
                # Drain so closing the socket does not reset the connection
                # before the client reads the response
                self._discard_body(content_length)
                self.close_connection = True
                self._send_json(
                    413, {"error": "validation", "message": "Request body too large"}
                )
                return _REJECTED

            body = self.rfile.read(content_length) if content_length > 0 else b""
            try:
                return json.loads(body) if body else {}
            except (json.JSONDecodeError, UnicodeDecodeError):
                self._send_json(
                    400, {"error": "validation", "message": "Invalid JSON body"}
                )
                return _REJECTED

        def _drain_unread_body(self) -> None:
            try:
                self._discard_body(int(self.headers.get("Content-Length", 0)))
            except ValueError:
                self.close_connection = True

        def _discard_body(self, remaining: int) -> None:
            while remaining > 0:
                chunk = self.rfile.read(min(remaining, 65536))
                if not chunk:
                    break
                remaining -= len(chunk)

        def _run_async(
            self, coro: Coroutine[Any, Any, ApiResponse]
        ) -> ApiResponse | None:
            """Run a receiver coroutine on the event loop and wait for it.

            Returns:
                The response, or None if the coroutine failed and a 500
                has been sent.
            """
            future = asyncio.run_coroutine_threadsafe(coro, event_loop)
            try:
                return future.result(timeout=request_timeout)
            except Exception as e:
                future.cancel()
                # Log full exception server-side for debugging
                logger.error(
                    f"Error handling {self.command} {self.path}: {e}", exc_info=True
                )
                self._send_json(
                    500, {"error": "internal", "message": "Internal server error"}
                )
                return None

        def _send_api_response(self, response: ApiResponse) -> None:
            headers = {"Location": response.location} if response.location else None
            if response.status == 204:
                self.send_response(204)
                self.end_headers()
                return
            self._send_json(response.status, response.body, headers=headers)

        def _send_json(
            self, status: int, data: Any, headers: dict[str, str] | None = None
        ) -> None:
            """Send JSON response."""
            payload = json.dumps(data).encode()
            self.send_response(status)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(payload)))
            for name, value in (headers or {}).items():
                self.send_header(name, value)
            self.end_headers()
            self.wfile.write(payload)

        def log_message(self, format: str, *args: Any) -> None:
            """Log HTTP request."""
            logger.debug(f"HTTP {self.client_address[0]}: {format % args}")

    return RegistryHTTPHandler


# Sentinel for a body that was refused; None is a valid JSON value
_REJECTED = object()


class RegistryHTTPServer:
    """Registry HTTP server adapter.

    Serves the REST API on a background thread until stopped.
    """

    def __init__(
        self,
        receiver: RestReceiver,
        host: str = "0.0.0.0",
        port: int = 5000,
        request_timeout: float = 30.0,
        max_body_bytes: int = 1024 * 1024,
    ):
        """Initialize the HTTP server.

        Args:
            receiver: RestReceiver instance to handle requests.
            host: Host to listen on (default 0.0.0.0).
            port: Port to listen on (default 5000). Use 0 to bind an
                ephemeral port; ``port`` holds the bound port after start().
            request_timeout: Seconds a request may wait for its operation.
            max_body_bytes: Largest accepted request body.
        """
        if request_timeout <= 0:
            raise ValueError("request_timeout must be positive")
        self.receiver = receiver
        self.host = host
        self.port = port
        self.request_timeout = request_timeout
        self.max_body_bytes = max_body_bytes
        self.server: ThreadingHTTPServer | None = None
        self._server_task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        """Start the HTTP server."""
        handler_class = make_rest_handler(
            receiver=self.receiver,
            event_loop=asyncio.get_running_loop(),
            request_timeout=self.request_timeout,
            max_body_bytes=self.max_body_bytes,
        )

        self.server = ThreadingHTTPServer((self.host, self.port), handler_class)
        self.server.daemon_threads = True
        self.port = self.server.server_address[1]

        # Run the blocking server loop in a thread to avoid blocking the event loop
        self._server_task = asyncio.create_task(self._run_server())
        logger.info(f"Registry HTTP server listening on {self.host}:{self.port}")

    async def _run_server(self) -> None:
        """Run the HTTP server loop in a worker thread."""
        if not self.server:
            return

        try:
            await asyncio.to_thread(self.server.serve_forever)
        except asyncio.CancelledError:
            # Normal shutdown
            pass
        except Exception as e:
            logger.error(f"Registry HTTP server error: {e}", exc_info=True)

    async def stop(self) -> None:
        """Stop the HTTP server."""
        if self.server:
            # shutdown() blocks until serve_forever returns
            await asyncio.to_thread(self.server.shutdown)
            self.server.server_close()
            self.server = None
        if self._server_task:
            self._server_task.cancel()
            try:
                await self._server_task
            except asyncio.CancelledError:
                pass
            self._server_task = None
        logger.info("Registry HTTP server stopped")
