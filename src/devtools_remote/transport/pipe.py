"""Duplex pipe transport for a browser started with ``--remote-debugging-pipe``.

The browser reads commands from its fd 3 and writes replies and events to its
fd 4. From the client side that means: write to ``process.stdio[3]``, read from
``process.stdio[4]``.

Wire format: JSON text, UTF-8 encoded, each frame terminated by a delimiter
(NUL by default, as the browser expects; newline for peers that use JSON lines).
"""

from __future__ import annotations

import asyncio
import io
import logging
import os
from collections.abc import AsyncIterator, Sequence
from typing import Any

from ..errors import TransportError
from .base import Transport

logger = logging.getLogger(__name__)

ENCODING = "utf-8"
NUL_DELIMITER = b"\0"
NEWLINE_DELIMITER = b"\n"

# Index of the pipe streams in the embedded process' stdio sequence
OUTBOUND_INDEX = 3
INBOUND_INDEX = 4

# Single frames can be very large (screenshots, snapshots)
READ_LIMIT = 256 * 1024 * 1024


def _ensure_pipe(stream: Any, index: int, mode: str) -> io.IOBase:
    """Validate one pipe end and return a file object usable by the event loop."""
    if stream is None:
        raise TransportError(f"Missing pipe stream at stdio[{index}]")
    if isinstance(stream, int):
        return os.fdopen(stream, mode, buffering=0)
    if not hasattr(stream, "fileno"):
        raise TransportError(
            f"stdio[{index}] is not a pipe stream (got {type(stream).__name__})"
        )
    return stream


class PipeTransport(Transport):
    """Transport over a pair of pipe streams owned by an embedded process."""

    def __init__(
        self,
        outbound: Any,
        inbound: Any,
        delimiter: bytes = NUL_DELIMITER,
    ):
        super().__init__()
        if not delimiter:
            raise ValueError("delimiter must not be empty")
        self._outbound = outbound
        self._inbound = inbound
        self.delimiter = delimiter
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._read_transport: asyncio.BaseTransport | None = None

    @classmethod
    def from_process(cls, process: Any, delimiter: bytes = NUL_DELIMITER) -> PipeTransport:
        """Build a transport from ``process.stdio[3]`` and ``process.stdio[4]``.

        Raises:
            TransportError: If the process does not expose both streams.
        """
        stdio: Sequence[Any] | None = getattr(process, "stdio", None)
        if stdio is None or len(stdio) <= INBOUND_INDEX:
            raise TransportError("Process does not expose pipe streams at stdio[3] and stdio[4]")
        return cls(stdio[OUTBOUND_INDEX], stdio[INBOUND_INDEX], delimiter=delimiter)

    async def _do_connect(self) -> None:
        outbound = _ensure_pipe(self._outbound, OUTBOUND_INDEX, "wb")
        inbound = _ensure_pipe(self._inbound, INBOUND_INDEX, "rb")
        loop = asyncio.get_running_loop()

        reader = asyncio.StreamReader(limit=READ_LIMIT)
        read_protocol = asyncio.StreamReaderProtocol(reader)
        self._read_transport, _ = await loop.connect_read_pipe(lambda: read_protocol, inbound)

        write_transport, write_protocol = await loop.connect_write_pipe(
            asyncio.streams.FlowControlMixin, outbound
        )
        self._writer = asyncio.StreamWriter(write_transport, write_protocol, None, loop)
        self._reader = reader

    async def _do_send(self, data: str) -> None:
        if self._writer is None:
            raise TransportError("Pipe not connected")
        self._writer.write(data.encode(ENCODING) + self.delimiter)
        await self._writer.drain()

    async def _do_close(self) -> None:
        if self._writer is not None:
            writer, self._writer = self._writer, None
            writer.close()
            try:
                await writer.wait_closed()
            except (BrokenPipeError, ConnectionResetError) as e:
                logger.debug(f"Pipe writer already broken: {e}")
        if self._read_transport is not None:
            self._read_transport.close()
            self._read_transport = None

    async def _receive(self) -> AsyncIterator[str]:
        if self._reader is None:
            raise TransportError("Pipe not connected")
        size = len(self.delimiter)
        while True:
            try:
                frame = await self._reader.readuntil(self.delimiter)
            except asyncio.IncompleteReadError as e:
                # EOF - process exited or closed its end
                if e.partial:
                    logger.debug(f"Discarding {len(e.partial)} trailing bytes at EOF")
                return
            except asyncio.LimitOverrunError as e:
                raise TransportError(f"Frame exceeds {READ_LIMIT} bytes") from e

            text = frame[:-size].decode(ENCODING, errors="replace")
            if not text.strip():
                continue
            yield text
