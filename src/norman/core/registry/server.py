"""
Running the registry proxy in a background thread.

Commands that spawn npm start the proxy on a free localhost port first; the
proxy keeps serving from its own event loop while the command blocks on
the npm child process.
"""

from __future__ import annotations

import logging
import socket
import threading
import time

import httpx
import uvicorn

from norman.core.context import ServiceContext
from norman.core.exceptions import RegistryError
from norman.core.registry.app import create_app

logger = logging.getLogger(__name__)

LOCALHOST = "127.0.0.1"

STARTUP_TIMEOUT = 10.0


class RegistryServer:
    """
    The registry proxy bound to localhost.

    Starting the server stores its address in the service context, so npm
    runners pick it up.

    Example:
        >>> with RegistryServer(ctx) as server:
        ...     NpmRunner(ctx).install(module)   # npm talks to server.address
    """

    def __init__(
        self,
        ctx: ServiceContext,
        port: int = 0,
        transport: httpx.AsyncBaseTransport | None = None,
        log_level: str = "warning",
    ) -> None:
        self.ctx = ctx
        self.port = port
        self.app = create_app(ctx, transport=transport)
        self.log_level = log_level
        self._server: uvicorn.Server | None = None
        self._thread: threading.Thread | None = None
        self._socket: socket.socket | None = None

    @property
    def address(self) -> str:
        if self._socket is None:
            raise RegistryError("Cannot get npm server address: server not started yet")
        return f"http://{LOCALHOST}:{self._socket.getsockname()[1]}"

    def _bind(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((LOCALHOST, self.port))
        except OSError as e:
            sock.close()
            raise RegistryError(f"Failed to bind registry proxy to port {self.port}: {e}") from e
        sock.set_inheritable(True)
        return sock

    def start(self) -> str:
        """Start serving in a daemon thread; returns the proxy address."""
        self._socket = self._bind()
        config = uvicorn.Config(self.app, log_level=self.log_level, lifespan="off")
        self._server = uvicorn.Server(config)
        self._thread = threading.Thread(
            target=self._server.run,
            kwargs={"sockets": [self._socket]},
            name="norman-registry",
            daemon=True,
        )
        self._thread.start()

        deadline = time.monotonic() + STARTUP_TIMEOUT
        while not self._server.started:
            if not self._thread.is_alive() or time.monotonic() > deadline:
                self.stop()
                raise RegistryError("Registry proxy failed to start")
            time.sleep(0.01)

        self.ctx.registry_address = self.address
        logger.info("Registry proxy listening on %s", self.address)
        return self.address

    def stop(self) -> None:
        if self._server is not None:
            self._server.should_exit = True
        if self._thread is not None:
            self._thread.join(timeout=STARTUP_TIMEOUT)
        if self._socket is not None:
            self._socket.close()
        self._server = None
        self._thread = None
        self._socket = None
        self.ctx.registry_address = None

    def __enter__(self) -> RegistryServer:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()
