"""Synchronous signal emitter.

Listeners are plain callables invoked in registration order from inside
``emit``. A listener that returns an awaitable has it scheduled as a task on
the running loop. Listener failures are logged and never propagate into the
code that emitted the signal (usually the transport read loop).
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

Listener = Callable[..., Any]


class _Once:
    """Wrapper that unregisters itself before the first call."""

    def __init__(self, emitter: EventEmitter, name: str, listener: Listener):
        self.emitter = emitter
        self.name = name
        self.listener = listener

    def __call__(self, *args: Any) -> Any:
        self.emitter.off(self.name, self)
        return self.listener(*args)


class EventEmitter:
    """Name-keyed listener registry."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}
        self._tasks: set[asyncio.Task[Any]] = set()

    def on(self, name: str, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for ``name``.

        Returns:
            A function removing the listener again.
        """
        self._listeners.setdefault(name, []).append(listener)

        def unsubscribe() -> None:
            self.off(name, listener)

        return unsubscribe

    def once(self, name: str, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for the next ``name`` signal only."""
        wrapper = _Once(self, name, listener)
        return self.on(name, wrapper)

    def off(self, name: str, listener: Listener) -> None:
        """Remove ``listener`` (or a ``once`` wrapper around it)."""
        listeners = self._listeners.get(name)
        if not listeners:
            return
        for registered in listeners:
            if registered == listener or (
                isinstance(registered, _Once) and registered.listener == listener
            ):
                listeners.remove(registered)
                break
        if not listeners:
            del self._listeners[name]

    def remove_all_listeners(self, name: str | None = None) -> None:
        if name is None:
            self._listeners.clear()
        else:
            self._listeners.pop(name, None)

    def listeners(self, name: str) -> list[Listener]:
        return list(self._listeners.get(name, []))

    def listener_count(self, name: str) -> int:
        return len(self._listeners.get(name, []))

    def emit(self, name: str, *args: Any) -> bool:
        """Invoke every listener for ``name`` with ``args``.

        Returns:
            True if at least one listener was registered.
        """
        # Snapshot so listeners may (un)register during dispatch
        listeners = list(self._listeners.get(name, []))
        for listener in listeners:
            try:
                result = listener(*args)
            except Exception:
                logger.exception(f"Error in listener for {name!r}")
                continue
            if inspect.isawaitable(result):
                self._schedule(name, result)
        return bool(listeners)

    def wait_for(self, name: str) -> asyncio.Future[Any]:
        """Return a future resolved with the payload of the next ``name`` signal."""
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()

        def resolve(*args: Any) -> None:
            if not future.done():
                future.set_result(args[0] if len(args) == 1 else args or None)

        self.once(name, resolve)
        return future

    def _schedule(self, name: str, awaitable: Any) -> None:
        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)

        def done(t: asyncio.Task[Any]) -> None:
            self._tasks.discard(t)
            if not t.cancelled() and t.exception() is not None:
                logger.error(f"Error in async listener for {name!r}", exc_info=t.exception())

        task.add_done_callback(done)
