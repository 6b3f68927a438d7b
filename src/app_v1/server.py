"""
Server lifecycle: bind, serve, drain, stop.

AppServer runs uvicorn on a socket it binds itself. Shutdown is driven by an
asyncio.Event rather than uvicorn's own signal handling: when the event is
set, the listener stops accepting and in-flight requests are allowed to
finish, with no deadline unless Config.shutdown_timeout is set.
"""

import asyncio
import contextlib
import logging
import signal
import socket
from enum import Enum
from typing import Optional

import uvicorn
from fastapi import FastAPI

from .app import create_app
from .core import Config


class ServerState(str, Enum):
    INITIALIZING = "initializing"
    LISTENING = "listening"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


class _UvicornServer(uvicorn.Server):
    """uvicorn.Server that leaves process signals alone."""

    @contextlib.contextmanager
    def capture_signals(self):
        yield


class AppServer:
    """Owns the listening socket and the uvicorn server for one app."""

    def __init__(
        self,
        app: Optional[FastAPI] = None,
        config: Optional[Config] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config or Config()
        self.logger = logger or logging.getLogger("app_v1")
        self.app = app or create_app(self.config, self.logger)
        self.state = ServerState.INITIALIZING
        self._bound_port: Optional[int] = None
        self._server = _UvicornServer(uvicorn.Config(
            self.app,
            host=self.config.host,
            port=self.config.port,
            backlog=self.config.backlog,
            log_config=None,
            log_level=getattr(logging, self.config.log_level, logging.INFO),
            access_log=False,
            lifespan="on",
            timeout_graceful_shutdown=self.config.shutdown_timeout,
        ))

    @property
    def started(self) -> bool:
        """True once uvicorn is accepting connections."""
        return self._server.started

    @property
    def bound_port(self) -> Optional[int]:
        return self._bound_port

    @property
    def address(self) -> str:
        port = self.bound_port if self.bound_port is not None else self.config.port
        return f"{self.config.host}:{port}"

    def bind(self) -> socket.socket:
        """Bind the listening socket. Raises OSError if the address is unusable."""
        family = socket.AF_INET6 if ":" in self.config.host else socket.AF_INET
        return socket.create_server(
            (self.config.host, self.config.port),
            family=family,
            backlog=self.config.backlog,
        )

    def request_shutdown(self) -> None:
        """Stop accepting connections and drain in-flight requests. Safe to call twice."""
        if self.state in (ServerState.SHUTTING_DOWN, ServerState.STOPPED):
            return
        self.logger.info("shutting down the http server")
        self.state = ServerState.SHUTTING_DOWN
        self._server.should_exit = True

    async def _watch(self, stop_event: asyncio.Event) -> None:
        await stop_event.wait()
        self.request_shutdown()

    async def serve(self, stop_event: Optional[asyncio.Event] = None) -> bool:
        """
        Serve until stopped.

        Returns True when the server stopped through the normal shutdown path
        and False when it could not listen or failed while serving.
        """
        if self.state is ServerState.SHUTTING_DOWN:
            # Shutdown requested before we ever listened
            self.state = ServerState.STOPPED
            return True

        try:
            sock = self.bind()
        except OSError as e:
            self.logger.error(
                f"failed to listen and serve address={self.config.address}: {e}",
                extra={"address": self.config.address}
            )
            self.state = ServerState.STOPPED
            return False

        self._bound_port = sock.getsockname()[1]
        address = self.address
        self.logger.info(f"start listening... address={address}", extra={"address": address})
        self.state = ServerState.LISTENING

        watcher = None
        if stop_event is not None:
            watcher = asyncio.ensure_future(self._watch(stop_event))

        ok = True
        try:
            await self._server.serve(sockets=[sock])
        except Exception as e:
            if self.state is ServerState.SHUTTING_DOWN:
                self.logger.error(f"failed to shutdown http server: {e}", exc_info=True)
            else:
                self.logger.error(f"failed to listen and serve: {e}", exc_info=True)
            ok = False
        finally:
            if watcher is not None:
                watcher.cancel()
            # uvicorn skips its own shutdown if asked to exit during startup
            for server in self._server.servers:
                server.close()
            sock.close()
            self.state = ServerState.STOPPED

        if ok and not self._server.started:
            self.logger.error(f"failed to listen and serve address={address}: server did not start",
                              extra={"address": address})
            ok = False

        if ok:
            self.logger.info("http server stopped")
        return ok


async def run_server(
    config: Optional[Config] = None,
    logger: Optional[logging.Logger] = None,
    app: Optional[FastAPI] = None,
) -> int:
    """Serve until SIGINT or SIGTERM, then drain. Returns a process exit status."""
    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    installed = []
    previous = {}
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
            installed.append(sig)
        except NotImplementedError:
            # No loop signal support on Windows
            previous[sig] = signal.signal(sig, lambda *_: loop.call_soon_threadsafe(stop_event.set))

    server = AppServer(app=app, config=config, logger=logger)
    try:
        ok = await server.serve(stop_event)
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)
        for sig, handler in previous.items():
            signal.signal(sig, handler)

    return 0 if ok else 1
