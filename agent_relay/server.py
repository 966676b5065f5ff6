"""
Relay server lifecycle: uvicorn startup, signal handling and shutdown sequencing.

On SIGINT or SIGTERM the server starts closing every open browser connection,
stops accepting new ones, and tells uvicorn to close its listener. It then
waits for both to finish. Peers may never acknowledge a close, so the wait is
bounded: past SHUTDOWN_TIMEOUT the server forces uvicorn down and reports a
failure exit code. The outcome is decided exactly once.
"""

import asyncio
import contextlib
import logging
import signal
from typing import Optional

import uvicorn
from fastapi import FastAPI

from agent_relay.config.constants import (
    EXIT_FAILURE,
    EXIT_OK,
    LOGGER_NAME,
    SHUTDOWN_TIMEOUT,
    WS_MAX_SIZE,
    WS_PING_INTERVAL,
)
from agent_relay.coordinator import SessionCoordinator

logger = logging.getLogger(LOGGER_NAME)

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class _RelayUvicornServer(uvicorn.Server):
    """uvicorn server that leaves signal handling to RelayServer."""

    @contextlib.contextmanager
    def capture_signals(self):
        yield

    def install_signal_handlers(self) -> None:
        pass


class RelayServer:
    """Runs the relay application and owns its shutdown sequence."""

    def __init__(
        self,
        app: FastAPI,
        coordinator: SessionCoordinator,
        host: str,
        port: int,
        log_level: str = "info",
        shutdown_timeout: float = SHUTDOWN_TIMEOUT,
    ):
        self.app = app
        self.coordinator = coordinator
        self.host = host
        self.port = port
        self.log_level = log_level.lower()
        self.shutdown_timeout = shutdown_timeout
        self.exit_code: Optional[int] = None
        self._server = None
        self._serve_task: Optional[asyncio.Task] = None
        self._shutdown_requested: Optional[asyncio.Event] = None
        self._shutdown_task: Optional[asyncio.Task] = None

    def _build_server(self) -> uvicorn.Server:
        config = uvicorn.Config(
            self.app,
            host=self.host,
            port=self.port,
            log_level=self.log_level,
            ws_ping_interval=WS_PING_INTERVAL,
            ws_max_size=WS_MAX_SIZE,
            ws_ping_timeout=20,
            http="h11",
            access_log=False,
        )
        return _RelayUvicornServer(config)

    def request_shutdown(self, sig: Optional[signal.Signals] = None) -> None:
        """Signal handler: start the shutdown sequence once."""
        if self._shutdown_requested is None:
            return
        if self._shutdown_requested.is_set():
            logger.info("Shutdown already in progress")
            return
        name = sig.name if sig is not None else "request"
        logger.info(f"Received {name}, shutting down")
        self._shutdown_requested.set()

    async def serve(self) -> int:
        """
        Serve until a shutdown signal arrives, then shut down.

        Returns:
            int: EXIT_OK on a clean shutdown, EXIT_FAILURE otherwise
        """
        self._shutdown_requested = asyncio.Event()
        self._server = self._build_server()
        loop = asyncio.get_running_loop()
        for sig in SHUTDOWN_SIGNALS:
            loop.add_signal_handler(sig, self.request_shutdown, sig)

        logger.info(f"Server running at http://{self.host}:{self.port}")
        self._serve_task = asyncio.create_task(self._server.serve())
        stop_waiter = asyncio.create_task(self._shutdown_requested.wait())
        try:
            await asyncio.wait(
                {self._serve_task, stop_waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            stop_waiter.cancel()
            for sig in SHUTDOWN_SIGNALS:
                loop.remove_signal_handler(sig)

        if self._serve_task.done() and not self._shutdown_requested.is_set():
            # uvicorn stopped on its own, e.g. the port could not be bound
            if not self._serve_task.cancelled() and self._serve_task.exception() is not None:
                logger.error(f"Server stopped unexpectedly: {self._serve_task.exception()!r}")
            else:
                logger.error("Server stopped unexpectedly")
            return self._resolve(EXIT_FAILURE)

        return await self.shutdown()

    async def shutdown(self) -> int:
        """
        Run the shutdown sequence. Concurrent or repeated calls share one outcome.

        Returns:
            int: The process exit code
        """
        if self.exit_code is not None:
            return self.exit_code
        if self._shutdown_task is None:
            self._shutdown_task = asyncio.create_task(self._shutdown())
        return await asyncio.shield(self._shutdown_task)

    async def _shutdown(self) -> int:
        closing = self.coordinator.close_all()
        logger.info(f"Closing {closing} browser connection(s)")
        self.coordinator.stop_accepting()
        if self._server is not None:
            self._server.should_exit = True

        try:
            results = await asyncio.wait_for(
                asyncio.gather(
                    self.coordinator.wait_closed(),
                    self._wait_server(),
                    return_exceptions=True,
                ),
                timeout=self.shutdown_timeout,
            )
        except asyncio.TimeoutError:
            logger.error(
                f"Shutdown did not complete within {self.shutdown_timeout}s, forcing exit"
            )
            self._force_stop()
            return self._resolve(EXIT_FAILURE)

        errors = [r for r in results if isinstance(r, BaseException)]
        for error in errors:
            logger.error(f"Error during shutdown: {error!r}")
        if errors:
            self._force_stop()
            return self._resolve(EXIT_FAILURE)

        logger.info("Shutdown complete")
        return self._resolve(EXIT_OK)

    async def _wait_server(self) -> None:
        if self._serve_task is not None:
            await self._serve_task

    def _force_stop(self) -> None:
        if self._server is not None:
            self._server.force_exit = True
        if self._serve_task is not None and not self._serve_task.done():
            self._serve_task.cancel()

    def _resolve(self, code: int) -> int:
        if self.exit_code is None:
            self.exit_code = code
        return self.exit_code
