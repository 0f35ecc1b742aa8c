"""In-memory transport for tests.

Records every frame sent and lets the test inject inbound frames, canned
replies, transmission failures and a peer disconnect. No actual I/O.

Usage:
    transport = MockTransport()
    transport.set_response("Page.navigate", result={"frameId": "F1"})

    session = Session(protocol={"domains": []}, target="ws://mock/1", transport=transport)
    await session.wait_ready()
    assert await session.send("Page.navigate", {"url": "about:blank"}) == {"frameId": "F1"}
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from typing import Any

from ..errors import TransportError
from .base import Transport

_EOF = object()


class MockTransport(Transport):
    """Mock transport with canned responses and injectable frames."""

    def __init__(
        self,
        connect_error: Exception | None = None,
        send_error: Exception | None = None,
    ):
        super().__init__()
        self.connect_error = connect_error
        self.send_error = send_error
        self._sent: list[str] = []
        self._responses: dict[str, dict[str, Any]] = {}
        self._inbound: asyncio.Queue[Any] = asyncio.Queue()
        self.close_calls = 0

    @property
    def sent(self) -> list[dict[str, Any]]:
        """Decoded frames sent through this transport."""
        return [json.loads(frame) for frame in self._sent]

    @property
    def raw_sent(self) -> list[str]:
        return list(self._sent)

    def set_response(
        self,
        method: str,
        result: dict[str, Any] | None = None,
        error: dict[str, Any] | None = None,
    ) -> None:
        """Reply to every request for ``method`` with ``result`` or ``error``."""
        reply: dict[str, Any] = {}
        if error is not None:
            reply["error"] = error
        else:
            reply["result"] = result if result is not None else {}
        self._responses[method] = reply

    def inject(self, message: dict[str, Any] | str) -> None:
        """Queue an inbound frame as if the peer had sent it."""
        frame = message if isinstance(message, str) else json.dumps(message)
        self._inbound.put_nowait(frame)

    def disconnect_peer(self) -> None:
        """Simulate the peer closing the connection."""
        self._inbound.put_nowait(_EOF)

    async def _do_connect(self) -> None:
        if self.connect_error is not None:
            raise self.connect_error

    async def _do_send(self, data: str) -> None:
        if self.send_error is not None:
            raise TransportError(str(self.send_error)) from self.send_error
        self._sent.append(data)
        message = json.loads(data)
        reply = self._responses.get(message.get("method", ""))
        if reply is not None:
            self.inject({"id": message["id"], **reply})

    async def _do_close(self) -> None:
        self.close_calls += 1

    async def _receive(self) -> AsyncIterator[str]:
        while True:
            frame = await self._inbound.get()
            if frame is _EOF:
                return
            yield frame
