"""Command correlation and inbound message routing.

Outgoing commands get strictly increasing integer ids starting at 1. Each id
maps to one completion callback ``callback(error, payload)`` until its reply
arrives:

- success:               ``callback(False, result)``
- remote error:          ``callback(True, error_object)``
- transmission failure:  ``callback(TransportError, None)``

Without a callback, ``send`` returns a future instead; it fails with the raw
``TransportError`` or with a ``ProtocolError`` built from the remote error.

Inbound replies are matched by id, events are fanned out through the owning
emitter as ``event`` (whole envelope) and ``<method>`` (params only).
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from typing import Any

from .emitter import EventEmitter
from .errors import ProtocolError, TransportError
from .protocol.messages import MessageKind, Request, classify
from .transport.base import Transport

logger = logging.getLogger(__name__)

CommandCallback = Callable[[Any, Any], Any]


class CommandDispatcher:
    """Tracks outstanding commands for one connection.

    All methods run on the event loop thread; the pending map is only touched
    there, and a reply's entry is removed before its callback runs.
    """

    def __init__(self, emitter: EventEmitter, transport: Transport | None = None):
        self._emitter = emitter
        self.transport = transport
        self.closed = False
        self._next_id = 1
        self._pending: dict[int, CommandCallback] = {}
        self._send_lock = asyncio.Lock()
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def pending_ids(self) -> list[int]:
        return list(self._pending)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def send(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        callback: CommandCallback | None = None,
    ) -> asyncio.Future[Any] | None:
        """Send ``method`` with ``params`` (default ``{}``).

        Returns:
            None when ``callback`` is given, otherwise a future resolving to
            the command result.

        Raises:
            TransportError: If the connection is not (or no longer) usable.
        """
        return self.send_raw({"method": method, "params": params or {}}, callback)

    def send_raw(
        self,
        message: dict[str, Any],
        callback: CommandCallback | None = None,
    ) -> asyncio.Future[Any] | None:
        """Send a pre-built ``{"method", "params"}`` message; the id is added here."""
        if callback is not None:
            self._enqueue(message, callback)
            return None

        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        request: Request | None = None

        def complete(error: Any, response: Any) -> None:
            if future.done():
                return
            if isinstance(error, BaseException):
                # Low-level transmission failure
                future.set_exception(error)
            elif error:
                request_dict = request.model_dump() if request is not None else dict(message)
                future.set_exception(ProtocolError(request_dict, response))
            else:
                future.set_result(response)

        request = self._enqueue(message, complete)
        return future

    def _enqueue(self, message: dict[str, Any], callback: CommandCallback) -> Request:
        if self.closed or self.transport is None:
            raise TransportError("Session is not connected")

        request = Request.create(self._next_id, message)
        self._next_id += 1
        # Registered before the write so a fast reply cannot overtake it
        self._pending[request.id] = callback

        task = asyncio.ensure_future(self._transmit(request))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return request

    async def _transmit(self, request: Request) -> None:
        transport = self.transport
        try:
            if transport is None:
                raise TransportError("Session is not connected")
            async with self._send_lock:
                await transport.send(request.to_json())
        except TransportError as e:
            logger.debug(f"Failed to send {request.method} (id={request.id}): {e}")
            callback = self._pending.pop(request.id, None)
            if callback is not None:
                self._invoke(callback, e, None)

    def route(self, message: dict[str, Any]) -> None:
        """Deliver one inbound message (in transport order)."""
        kind = classify(message)
        if kind == MessageKind.REPLY:
            self._route_reply(message)
        elif kind == MessageKind.EVENT:
            method = message["method"]
            self._emitter.emit("event", message)
            self._emitter.emit(method, message.get("params", {}))
        else:
            logger.debug(f"Ignoring message without a usable id or method: {message!r:.200}")

    def _route_reply(self, message: dict[str, Any]) -> None:
        command_id = message["id"]
        callback = self._pending.pop(command_id, None)
        if callback is None:
            logger.debug(f"Dropping reply for unknown command id {command_id!r}")
            return

        # Neither error nor result counts as success (some peers omit result)
        if message.get("error") is not None:
            self._invoke(callback, True, message["error"])
        else:
            result = message.get("result")
            self._invoke(callback, False, {} if result is None else result)

        if not self._pending:
            self._emitter.emit("ready")

    def fail_pending(self, error: Exception) -> None:
        """Complete every outstanding command with ``error`` and refuse new ones."""
        self.closed = True
        pending, self._pending = self._pending, {}
        if pending:
            logger.debug(f"Failing {len(pending)} pending command(s): {error}")
        for callback in pending.values():
            self._invoke(callback, error, None)

    def _invoke(self, callback: CommandCallback, error: Any, payload: Any) -> None:
        try:
            result = callback(error, payload)
        except Exception:
            logger.exception("Error in command callback")
            return
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
