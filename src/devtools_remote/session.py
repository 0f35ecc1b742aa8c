"""DevTools session: connection lifecycle around one target.

Startup runs once, asynchronously:

    CREATED -> RESOLVING_TARGET -> RESOLVING_PROTOCOL -> CONNECTING -> READY -> CLOSED
                      \\                  \\                   \\
                       +------------------+-------------------+--> ERRORED

Target resolution is skipped for an embedded (pipe) process. Any failure
before READY is reported through the ``error`` signal and leaves the session
unusable. The ``connect`` signal is emitted on the next loop iteration after
READY so that failures in caller code reacting to it are never mistaken for
startup failures.

Signals: ``connect`` (session), ``event`` (envelope), ``<Domain.event>``
(params), ``ready`` (no commands outstanding), ``disconnect`` (peer closed),
``error`` (startup or transport failure).

When the connection ends, commands still waiting for a reply fail with
``TransportError("Connection closed")``.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from enum import Enum
from typing import Any
from urllib.parse import urlsplit, urlunsplit

from .config import SessionConfig
from .discovery import Discovery, resolve_protocol
from .dispatch import CommandCallback, CommandDispatcher
from .emitter import EventEmitter
from .errors import TransportError
from .protocol import api
from .protocol.api import Domain
from .protocol.messages import parse_message
from .targets import TargetResolver, TargetSelector
from .transport.base import Transport
from .transport.pipe import PipeTransport
from .transport.websocket import WebSocketTransport

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    """Connection lifecycle."""

    CREATED = "created"
    RESOLVING_TARGET = "resolving_target"
    RESOLVING_PROTOCOL = "resolving_protocol"
    CONNECTING = "connecting"
    READY = "ready"
    CLOSED = "closed"
    ERRORED = "errored"


class Session(EventEmitter):
    """A connection to one DevTools target.

    Usage:
        session = Session(port=9222)
        session.on("Network.requestWillBeSent", print)
        await session.wait_ready()
        await session.Network.enable()
        await session.Page.navigate(url="https://example.com")
        await session.close()

        # or
        async with Session(target="ws://localhost:9222/devtools/page/ABC") as session:
            result = await session.send("Runtime.evaluate", {"expression": "1 + 1"})

    Created inside a running event loop, the session starts connecting on the
    next loop iteration, so listeners registered right after construction see
    every signal. Created without a running loop, it starts on the first
    ``start()`` or ``wait_ready()`` call.
    """

    def __init__(
        self,
        config: SessionConfig | None = None,
        *,
        transport: Transport | None = None,
        discovery: Discovery | None = None,
        **options: Any,
    ):
        super().__init__()
        config = config or SessionConfig()
        if options:
            config = config.with_options(**options)
        self.config = config

        self.host = config.host
        self.port = config.port
        self.secure = config.secure
        self.use_host_name = config.use_host_name
        self.alter_path = config.alter_path
        self.local = config.local
        self.process = config.process
        self.protocol: dict[str, Any] | None = config.protocol
        self.web_socket_url: str | None = None
        self.state = SessionState.CREATED

        self._discovery = discovery or Discovery.from_config(config)
        self._transport = transport
        self._dispatcher = CommandDispatcher(self)
        self._domains: dict[str, Domain] = {}
        self._start_task: asyncio.Task[None] | None = None
        self._error: Exception | None = None

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; startup deferred until start()")
        else:
            self.start()

    def __getattr__(self, name: str) -> Any:
        domains = self.__dict__.get("_domains")
        if domains and name in domains:
            return domains[name]
        raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}")

    def __getitem__(self, name: str) -> Any:
        """Look up ``"Domain"`` or ``"Domain.member"``."""
        domain_name, _, member = name.partition(".")
        try:
            domain = self._domains[domain_name]
        except KeyError:
            raise KeyError(name) from None
        if not member:
            return domain
        if member in domain.commands:
            return domain.commands[member]
        if member in domain.events:
            return domain.events[member]
        raise KeyError(name)

    def __dir__(self) -> list[str]:
        return sorted({*super().__dir__(), *self._domains})

    def __repr__(self) -> str:
        where = self.web_socket_url or f"{self.host}:{self.port}"
        return f"<Session {where} state={self.state.value}>"

    @property
    def domains(self) -> dict[str, Domain]:
        return dict(self._domains)

    @property
    def transport(self) -> Transport | None:
        return self._transport

    @property
    def is_ready(self) -> bool:
        return self.state == SessionState.READY

    @property
    def pending_commands(self) -> int:
        return self._dispatcher.pending_count

    def attach_domains(self, domains: dict[str, Domain]) -> None:
        self._domains = dict(domains)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> asyncio.Task[None]:
        """Schedule the startup sequence (idempotent).

        Must be called with a running event loop.
        """
        if self._start_task is None:
            self._start_task = asyncio.get_running_loop().create_task(self._start())
        return self._start_task

    async def wait_ready(self) -> Session:
        """Start if needed and wait until the session is READY.

        Raises:
            The startup error, or TransportError if the session was closed
            before becoming ready.
        """
        task = self.start()
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                raise TransportError("Session closed before it was ready") from None
            raise
        if self.state == SessionState.ERRORED and self._error is not None:
            raise self._error
        if self.state != SessionState.READY:
            raise TransportError(f"Session is {self.state.value}")
        return self

    async def _start(self) -> None:
        try:
            if self.process is None:
                self.state = SessionState.RESOLVING_TARGET
                selector = TargetSelector.from_value(self.config.target, self.host, self.port)
                url = await TargetResolver(self._discovery).resolve(selector)
                self._apply_debugger_url(url)

            self.state = SessionState.RESOLVING_PROTOCOL
            self.protocol = await resolve_protocol(self.config.protocol, self.local, self._discovery)
            api.prepare(self, self.protocol)

            self.state = SessionState.CONNECTING
            await self._connect()
        except Exception as e:
            self.state = SessionState.ERRORED
            self._error = e
            self._dispatcher.closed = True
            logger.error(f"Session startup failed: {e}")
            self.emit("error", e)
            return

        self.state = SessionState.READY
        logger.info(f"Session ready: {self.web_socket_url or 'pipe'}")
        asyncio.get_running_loop().call_soon(self._notify_connected)

    def _notify_connected(self) -> None:
        if self.state == SessionState.READY:
            self.emit("connect", self)

    def _apply_debugger_url(self, url: str) -> None:
        """Record the endpoint URL and follow its host and port."""
        parts = urlsplit(url)
        parts = parts._replace(path=self.alter_path(parts.path))
        self.web_socket_url = urlunsplit(parts)
        if parts.hostname:
            self.host = parts.hostname
        if parts.port:
            self.port = parts.port
        self._discovery.host = self.host
        self._discovery.port = self.port

    def _create_transport(self) -> Transport:
        if self.process is not None:
            return PipeTransport.from_process(self.process)
        if not self.web_socket_url:
            raise TransportError("No WebSocket URL to connect to")
        return WebSocketTransport(self.web_socket_url, secure=self.secure)

    async def _connect(self) -> None:
        transport = self._transport or self._create_transport()
        self._transport = transport
        transport.on_message = self._handle_frame
        transport.on_close = self._handle_peer_close
        transport.on_error = self._handle_transport_error
        await transport.open()
        self._dispatcher.transport = transport

    def _handle_frame(self, data: str) -> None:
        message = parse_message(data)
        if message is None:
            return
        try:
            self._dispatcher.route(message)
        except Exception:
            # A single bad frame must not end the connection
            logger.exception(f"Dropping message that failed to route: {message!r:.200}")

    def _handle_peer_close(self) -> None:
        if self.state in (SessionState.CLOSED, SessionState.ERRORED):
            return
        self.state = SessionState.CLOSED
        self._dispatcher.fail_pending(TransportError("Connection closed"))
        logger.info(f"Session disconnected: {self.web_socket_url or 'pipe'}")
        self.emit("disconnect")

    def _handle_transport_error(self, error: Exception) -> None:
        logger.warning(f"Transport error: {error}")
        self.emit("error", error)

    # =========================================================================
    # Operations
    # =========================================================================

    def send(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        callback: CommandCallback | None = None,
    ) -> asyncio.Future[Any] | None:
        """Send a command.

        Args:
            method: Fully qualified command name, e.g. ``"Page.navigate"``.
            params: Command parameters (default ``{}``).
            callback: Optional ``callback(error, payload)``; when given the
                call returns None instead of a future.

        Raises:
            TransportError: If the session is not ready or already closed.
        """
        if callable(params) and callback is None:
            params, callback = None, params
        return self._dispatcher.send(method, params, callback)

    def send_raw(
        self,
        message: dict[str, Any],
        callback: CommandCallback | None = None,
    ) -> asyncio.Future[Any] | None:
        """Send a pre-built ``{"method": ..., "params": ...}`` message."""
        return self._dispatcher.send_raw(message, callback)

    def close(self, callback: Callable[[], Any] | None = None) -> asyncio.Future[None] | None:
        """Close the session.

        Does not emit ``disconnect``. Safe to call repeatedly; every call
        completes (callback invoked or future resolved) once the transport
        is closed.
        """
        task = asyncio.ensure_future(self._close())
        if callback is None:
            return task

        def done(t: asyncio.Future[None]) -> None:
            if t.cancelled():
                return
            if t.exception() is not None:
                logger.error(f"Error closing session: {t.exception()}")
            callback()

        task.add_done_callback(done)
        return None

    async def _close(self) -> None:
        start_task = self._start_task
        if start_task is not None and not start_task.done():
            start_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await start_task

        self._dispatcher.closed = True
        if self._transport is not None:
            await self._transport.close()
        self._dispatcher.fail_pending(TransportError("Connection closed"))
        if self.state != SessionState.ERRORED:
            self.state = SessionState.CLOSED

    async def __aenter__(self) -> Session:
        return await self.wait_ready()

    async def __aexit__(self, *args: Any) -> None:
        await self.close()


async def connect(config: SessionConfig | None = None, **options: Any) -> Session:
    """Create a session and wait until it is ready.

    Raises:
        The startup error (target, protocol or transport failure).
    """
    session = Session(config, **options)
    return await session.wait_ready()
