import asyncio
import logging
import socket

import uvicorn
from fastapi import FastAPI

from ..errors import ListenerBindError

logger = logging.getLogger(__name__)

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8888


class HttpListener:
    """Runs a uvicorn server on a socket bound up front.

    Binding the socket before handing it to uvicorn lets a bind failure
    surface as ``ListenerBindError`` instead of uvicorn's ``sys.exit``.
    """

    def __init__(self, app: FastAPI, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT, log_level: str = "info") -> None:
        self.app = app
        self.host = host
        self.port = port
        self._config = uvicorn.Config(app, host=host, port=port, lifespan="off", log_level=log_level)
        self._server = uvicorn.Server(self._config)
        self._socket: socket.socket | None = None
        self._task: asyncio.Task | None = None

    @property
    def bound_port(self) -> int | None:
        if self._socket is None:
            return None
        return self._socket.getsockname()[1]

    def _bind(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self.host, self.port))
        except OSError as e:
            sock.close()
            raise ListenerBindError(f"Cannot bind {self.host}:{self.port}: {e.strerror or e}", self.host, self.port) from e
        sock.set_inheritable(True)
        return sock

    def _release_socket(self) -> None:
        if self._socket is not None:
            self._socket.close()
            self._socket = None

    async def start(self, poll_interval: float = 0.01) -> None:
        self._socket = self._bind()
        self._task = asyncio.create_task(self._server.serve(sockets=[self._socket]))
        while not self._server.started:
            if self._task.done():
                exc = None if self._task.cancelled() else self._task.exception()
                self._release_socket()
                self._task = None
                raise ListenerBindError(
                    f"HTTP server on port {self.port} exited during startup: {exc}", self.host, self.port
                ) from exc
            await asyncio.sleep(poll_interval)
        logger.info("HTTP server started on port %s", self.bound_port)

    async def wait_closed(self) -> None:
        if self._task is not None:
            await self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._server.should_exit = True
        await self._task
        self._task = None
        logger.info("HTTP server on port %s stopped", self.port)
