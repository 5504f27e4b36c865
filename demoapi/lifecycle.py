"""
Server lifecycle coordination.

``LifecycleCoordinator`` owns the listening socket, runs uvicorn in its own
task and waits for SIGINT/SIGTERM on the main task. On a signal it stops
accepting connections, lets in-flight requests finish and gives up on them
once the shutdown deadline passes.

State machine::

    starting ──(listener accepting)──▶ serving ──(signal)──▶ shutting_down ──▶ stopped

A bind failure while starting raises ``StartupError``; the caller treats it
as fatal. Exceeding the shutdown deadline is logged and is not an error.
"""

import asyncio
import contextlib
import logging
import signal
import socket
from enum import Enum

import uvicorn
from starlette.types import ASGIApp

from demoapi.config import Settings

logger = logging.getLogger(__name__)

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)

# Extra time allowed for uvicorn to finish cancelling once the deadline passes
_FORCE_GRACE = 1.0


class ServerState(str, Enum):
    STARTING = "starting"
    SERVING = "serving"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


class StartupError(RuntimeError):
    """The server could not begin accepting connections."""


class _Server(uvicorn.Server):
    """uvicorn server that leaves signal handling to the coordinator."""

    def __init__(self, config: uvicorn.Config, on_started) -> None:
        super().__init__(config)
        self._on_started = on_started

    def install_signal_handlers(self) -> None:
        pass

    @contextlib.contextmanager
    def capture_signals(self):
        yield

    async def startup(self, sockets: list[socket.socket] | None = None) -> None:
        await super().startup(sockets=sockets)
        if self.started:
            self._on_started()


class LifecycleCoordinator:
    """Start the HTTP server, wait for a termination signal, drain, stop."""

    def __init__(self, app: ASGIApp, settings: Settings) -> None:
        self.settings = settings
        self.shutdown_timeout = settings.shutdown_timeout
        self.state = ServerState.STARTING
        self.forced = False
        self.bound_port: int | None = None
        self.installed_signals: list[signal.Signals] = []
        self._stop_requested = asyncio.Event()

        self.config = uvicorn.Config(
            app,
            host=settings.server_host,
            port=settings.server_port,
            timeout_keep_alive=settings.idle_timeout,
            timeout_graceful_shutdown=settings.shutdown_timeout,
            lifespan="on",
            access_log=False,
            log_config=None,
        )
        self.server = _Server(self.config, on_started=self._mark_serving)

    # ── State transitions ──────────────────────────────────────────────

    def _mark_serving(self) -> None:
        self.state = ServerState.SERVING
        logger.info(
            "Server listening | host=%s | port=%s",
            self.settings.server_host,
            self.bound_port,
        )

    def request_shutdown(self) -> None:
        """Begin a graceful shutdown. Safe to call more than once."""
        self._stop_requested.set()

    def _handle_signal(self, sig: signal.Signals) -> None:
        if self.state is ServerState.SHUTTING_DOWN:
            logger.warning("Received %s during shutdown, forcing exit", sig.name)
            self._force_close()
            return
        logger.info("Received %s", sig.name)
        self.request_shutdown()

    # ── Socket & signals ───────────────────────────────────────────────

    def _bind(self) -> socket.socket:
        host, port = self.settings.server_host, self.settings.server_port
        family = socket.AF_INET6 if ":" in host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((host, port))
        except OSError as exc:
            sock.close()
            raise StartupError(f"server failed to start: cannot bind {host}:{port}: {exc}") from exc
        sock.set_inheritable(True)
        return sock

    def _install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> list[signal.Signals]:
        installed = []
        for sig in HANDLED_SIGNALS:
            try:
                loop.add_signal_handler(sig, self._handle_signal, sig)
            except (NotImplementedError, RuntimeError):
                # Not on the main thread, or the platform has no loop signal support
                logger.debug("Signal handler not installed | signal=%s", sig.name)
                continue
            installed.append(sig)
        return installed

    # ── Serving ────────────────────────────────────────────────────────

    async def serve(self) -> None:
        """Run until a shutdown is requested and the server has stopped."""
        loop = asyncio.get_running_loop()
        sock = self._bind()
        self.bound_port = sock.getsockname()[1]
        self.installed_signals = self._install_signal_handlers(loop)

        serve_task = asyncio.create_task(self.server.serve(sockets=[sock]), name="http-server")
        stop_task = asyncio.create_task(self._stop_requested.wait(), name="shutdown-signal")
        try:
            done, _ = await asyncio.wait(
                {serve_task, stop_task}, return_when=asyncio.FIRST_COMPLETED
            )
            if serve_task in done:
                serve_task.result()
                if self.state is ServerState.STARTING:
                    raise StartupError("server failed to start: application startup failed")
                logger.info("Server stopped on its own")
            else:
                await self._drain(serve_task)
        finally:
            stop_task.cancel()
            for sig in self.installed_signals:
                loop.remove_signal_handler(sig)
            self.installed_signals = []
            sock.close()
            self.state = ServerState.STOPPED

        logger.info("Server exited properly")

    async def _drain(self, serve_task: asyncio.Task) -> None:
        self.state = ServerState.SHUTTING_DOWN
        logger.info("Server is shutting down | deadline=%.1fs", self.shutdown_timeout)
        self.server.should_exit = True

        done, _ = await asyncio.wait({serve_task}, timeout=self.shutdown_timeout)
        if not done:
            self.forced = True
            logger.warning(
                "Server forced to shutdown | error=deadline of %.1fs exceeded | open_connections=%d",
                self.shutdown_timeout,
                len(self.server.server_state.connections),
            )
            done, _ = await asyncio.wait({serve_task}, timeout=_FORCE_GRACE)
            if not done:
                self._force_close()
                done, _ = await asyncio.wait({serve_task}, timeout=_FORCE_GRACE)
            if not done:
                serve_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await serve_task
                return

        serve_task.result()

    def _force_close(self) -> None:
        """Abandon in-flight work: cancel request tasks and close connections."""
        self.forced = True
        self.server.force_exit = True
        state = self.server.server_state
        for task in list(state.tasks):
            task.cancel()
        for connection in list(state.connections):
            transport = getattr(connection, "transport", None)
            if transport is not None:
                transport.close()
