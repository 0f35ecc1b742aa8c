"""Transport abstraction shared by the WebSocket and pipe transports.

A transport moves raw JSON text frames. It knows nothing about ids or events:
inbound frames are handed to ``on_message`` in arrival order by a background
reader task, and outbound frames are written by ``send``.

Signals:
- open: ``await transport.open()`` returning normally
- message: ``on_message(text)``
- close: ``on_close()``, fired once when the *peer* ends the connection
- error: ``on_error(exc)``, fired when the read loop fails

A caller-initiated ``close()`` suppresses ``on_close``.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable
from enum import Enum

from ..errors import TransportError

logger = logging.getLogger(__name__)


class TransportState(str, Enum):
    """Connection state machine."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSED = "closed"


class Transport(ABC):
    """Base class for transports.

    Provides:
    - State management
    - Background reader task management
    - Close-notification suppression for caller-initiated shutdown
    """

    def __init__(self) -> None:
        self._state = TransportState.DISCONNECTED
        self._reader_task: asyncio.Task[None] | None = None
        self._closing = False
        self.on_message: Callable[[str], None] | None = None
        self.on_close: Callable[[], None] | None = None
        self.on_error: Callable[[Exception], None] | None = None

    @property
    def state(self) -> TransportState:
        """Current connection state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        """Check if transport is connected."""
        return self._state == TransportState.CONNECTED

    @property
    def is_closed(self) -> bool:
        return self._state in (TransportState.DISCONNECTED, TransportState.CLOSED)

    async def open(self) -> None:
        """Establish the connection and start reading.

        Raises:
            TransportError: If the connection cannot be established.
        """
        if self._state == TransportState.CONNECTED:
            return
        if self._state == TransportState.CLOSED:
            raise TransportError("Transport already closed")

        self._state = TransportState.CONNECTING
        try:
            await self._do_connect()
        except TransportError:
            self._state = TransportState.DISCONNECTED
            raise
        except Exception as e:
            self._state = TransportState.DISCONNECTED
            raise TransportError(f"Failed to connect: {e}") from e

        self._state = TransportState.CONNECTED
        self._reader_task = asyncio.create_task(self._read_loop())
        logger.info(f"{self.__class__.__name__} connected")

    async def send(self, data: str) -> None:
        """Write one frame.

        Raises:
            TransportError: If the frame could not be transmitted.
        """
        if not self.is_connected:
            raise TransportError("Transport not connected")
        try:
            await self._do_send(data)
        except TransportError:
            raise
        except Exception as e:
            raise TransportError(f"Failed to send: {e}") from e

    async def close(self) -> None:
        """Close the connection without firing ``on_close``.

        Returns immediately when the transport is already closed.
        """
        if self.is_closed:
            return

        self._closing = True
        self._state = TransportState.CLOSED
        try:
            await self._do_close()
        finally:
            await self._stop_reader()
        logger.info(f"{self.__class__.__name__} closed")

    async def _stop_reader(self) -> None:
        task = self._reader_task
        self._reader_task = None
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _read_loop(self) -> None:
        """Background task delivering inbound frames in order."""
        error: Exception | None = None
        try:
            async for data in self._receive():
                if self.on_message is not None:
                    self.on_message(data)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Read loop error: {e}")
            error = e

        if self._closing:
            return

        # The peer went away (or the stream broke)
        self._state = TransportState.CLOSED
        try:
            await self._do_close()
        except Exception as e:
            logger.debug(f"Error releasing {self.__class__.__name__}: {e}")

        if error is not None and self.on_error is not None:
            if not isinstance(error, TransportError):
                wrapped = TransportError(f"Connection lost: {error}")
                wrapped.__cause__ = error
                error = wrapped
            self.on_error(error)
        logger.info(f"{self.__class__.__name__} disconnected by peer")
        if self.on_close is not None:
            self.on_close()

    # Abstract methods for subclasses
    @abstractmethod
    async def _do_connect(self) -> None:
        """Implementation-specific connection logic."""
        ...

    @abstractmethod
    async def _do_send(self, data: str) -> None:
        """Implementation-specific send logic."""
        ...

    @abstractmethod
    async def _do_close(self) -> None:
        """Implementation-specific shutdown logic. Must tolerate repeated calls."""
        ...

    @abstractmethod
    def _receive(self) -> AsyncIterator[str]:
        """Implementation-specific receive logic. Must be an async generator.

        Ends normally when the peer closes the connection.
        """
        ...
