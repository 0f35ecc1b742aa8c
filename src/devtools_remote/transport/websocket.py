"""WebSocket transport for a target's ``webSocketDebuggerUrl``."""

from __future__ import annotations

import logging
import re
from collections.abc import AsyncIterator
from typing import Any

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed

from ..errors import TransportError
from .base import Transport

logger = logging.getLogger(__name__)

_WS_SCHEME = re.compile(r"^ws:", re.IGNORECASE)


class WebSocketTransport(Transport):
    """Transport over a persistent WebSocket connection.

    Wire format: one JSON text message per WebSocket frame. Message size is
    unbounded since screenshots and heap snapshots arrive as single frames.
    """

    def __init__(
        self,
        url: str,
        secure: bool = False,
        open_timeout: float | None = 10.0,
        ping_interval: float | None = None,
    ):
        super().__init__()
        if secure:
            url = _WS_SCHEME.sub("wss:", url)
        self.url = url
        self.open_timeout = open_timeout
        self.ping_interval = ping_interval
        self._ws: ClientConnection | None = None

    async def _do_connect(self) -> None:
        self._ws = await connect(
            self.url,
            max_size=None,
            open_timeout=self.open_timeout,
            ping_interval=self.ping_interval,
        )
        logger.debug(f"WebSocket open: {self.url}")

    async def _do_send(self, data: str) -> None:
        if self._ws is None:
            raise TransportError("WebSocket not connected")
        try:
            await self._ws.send(data)
        except ConnectionClosed as e:
            raise TransportError(f"WebSocket closed: {e}") from e

    async def _do_close(self) -> None:
        if self._ws is not None:
            await self._ws.close()

    async def _receive(self) -> AsyncIterator[str]:
        if self._ws is None:
            raise TransportError("WebSocket not connected")
        try:
            async for data in self._ws:
                yield data.decode("utf-8") if isinstance(data, bytes) else data
        except ConnectionClosed as e:
            logger.debug(f"WebSocket closed by peer: {e}")

    def __repr__(self) -> str:
        return f"WebSocketTransport({self.url!r})"

    @property
    def connection(self) -> Any:
        """The underlying websockets connection, if open."""
        return self._ws
