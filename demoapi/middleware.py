"""
Request lifecycle middleware.

- ``StatusRecorder`` decorates the ASGI ``send`` callable and remembers the
  status code that actually went out.
- ``RequestLoggingMiddleware`` logs every request with method, path, status
  code, latency, client address and user agent.
- ``RecoveryMiddleware`` turns an unexpected exception in a handler into a
  500 response instead of letting it escape to the server.

Implemented as pure ASGI middleware so the status seen by the logger is the
one written to the transport, not one reconstructed afterwards.
"""

import json
import logging
import time
import traceback

from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send

access_logger = logging.getLogger("demoapi.access")
recovery_logger = logging.getLogger("demoapi.recovery")

INTERNAL_ERROR_BODY = json.dumps(
    {"status": "error", "message": "Internal Server Error"}
).encode()


class StatusRecorder:
    """
    Wraps ``send`` and records the response status.

    The status stays at 200 until an ``http.response.start`` message passes
    through. ``completed`` is set once the final body chunk has been sent.
    Every message is forwarded unchanged.
    """

    def __init__(self, send: Send) -> None:
        self._send = send
        self.status_code = 200
        self.started = False
        self.completed = False

    async def __call__(self, message: Message) -> None:
        if message["type"] == "http.response.start":
            self.status_code = message["status"]
            self.started = True
        await self._send(message)
        if message["type"] == "http.response.body" and not message.get("more_body", False):
            self.completed = True


def _client_address(scope: Scope) -> str:
    client = scope.get("client")
    if not client:
        return "-"
    host, port = client
    return f"{host}:{port}"


def _request_url(scope: Scope) -> str:
    path = scope.get("path", "")
    query = scope.get("query_string", b"")
    return f"{path}?{query.decode('latin-1')}" if query else path


class RequestLoggingMiddleware:
    """Emit one access record per HTTP request, after it completes."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        recorder = StatusRecorder(send)
        start = time.perf_counter()
        try:
            await self.app(scope, receive, recorder)
        except BaseException:
            # The server answers 500 when the app dies before starting a response
            if not recorder.started:
                recorder.status_code = 500
            raise
        finally:
            self._log(scope, recorder.status_code, time.perf_counter() - start)

    def _log(self, scope: Scope, status_code: int, elapsed: float) -> None:
        headers = Headers(scope=scope)
        method = scope.get("method", "-")
        path = scope.get("path", "-")
        remote_addr = _client_address(scope)
        user_agent = headers.get("user-agent", "-")
        duration_ms = round(elapsed * 1000, 2)

        if status_code >= 500:
            level = logging.ERROR
        elif status_code >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO

        access_logger.log(
            level,
            "Request completed | %s %s → %d (%.2fms) | ip=%s | user_agent=%s",
            method,
            path,
            status_code,
            duration_ms,
            remote_addr,
            user_agent,
            extra={
                "method": method,
                "path": path,
                "status": status_code,
                "duration_ms": duration_ms,
                "remote_addr": remote_addr,
                "user_agent": user_agent,
            },
        )


class RecoveryMiddleware:
    """
    Catch exceptions raised by the downstream app.

    The failure is logged with its stack trace and, if nothing has been sent
    yet, the client gets a generic 500. The exception does not propagate.
    Only ``Exception`` subclasses are caught; cancellation and interpreter
    exit pass through.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        recorder = StatusRecorder(send)
        try:
            await self.app(scope, receive, recorder)
        except Exception as exc:
            stack_trace = traceback.format_exc()
            recovery_logger.error(
                "HTTP handler fault recovered | error=%r | method=%s | url=%s\n%s",
                exc,
                scope.get("method", "-"),
                _request_url(scope),
                stack_trace,
                extra={"stack_trace": stack_trace},
            )
            if recorder.started:
                # Headers already went out; the connection is closed by the server.
                return
            await send(
                {
                    "type": "http.response.start",
                    "status": 500,
                    "headers": [
                        (b"content-type", b"application/json"),
                        (b"content-length", str(len(INTERNAL_ERROR_BODY)).encode()),
                    ],
                }
            )
            await send({"type": "http.response.body", "body": INTERNAL_ERROR_BODY})
