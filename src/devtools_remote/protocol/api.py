"""Dynamic API surface built from a protocol descriptor.

After the descriptor is known, every domain becomes an attribute of the
session and every command/event a callable on it:

    await session.Page.navigate(url="https://example.com")
    session.Page.navigate({"url": "https://example.com"}, callback=on_done)

    unsubscribe = session.Network.requestWillBeSent(on_request)
    params = await session.Page.loadEventFired()   # next occurrence

Fully qualified names work too: ``session["Page.navigate"]``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..session import Session

logger = logging.getLogger(__name__)


class ProtocolCommand:
    """Callable sending one protocol command through the session."""

    category = "command"

    def __init__(self, session: Session, domain: str, spec: dict[str, Any]):
        self._session = session
        self.name: str = spec["name"]
        self.qualified_name = f"{domain}.{self.name}"
        self.description: str | None = spec.get("description")
        self.parameters: list[dict[str, Any]] = spec.get("parameters", [])
        self.returns: list[dict[str, Any]] = spec.get("returns", [])
        self.experimental = bool(spec.get("experimental", False))
        self.deprecated = bool(spec.get("deprecated", False))

    def __call__(
        self,
        params: dict[str, Any] | None = None,
        callback: Callable[[Any, Any], Any] | None = None,
        **kwargs: Any,
    ) -> Any:
        if kwargs:
            params = {**(params or {}), **kwargs}
        return self._session.send(self.qualified_name, params, callback)

    def __repr__(self) -> str:
        return f"<command {self.qualified_name}>"


class ProtocolEvent:
    """Callable subscribing to one protocol event."""

    category = "event"

    def __init__(self, session: Session, domain: str, spec: dict[str, Any]):
        self._session = session
        self.name: str = spec["name"]
        self.qualified_name = f"{domain}.{self.name}"
        self.description: str | None = spec.get("description")
        self.parameters: list[dict[str, Any]] = spec.get("parameters", [])
        self.experimental = bool(spec.get("experimental", False))
        self.deprecated = bool(spec.get("deprecated", False))

    def __call__(self, handler: Callable[[dict[str, Any]], Any] | None = None) -> Any:
        """Subscribe ``handler`` and return an unsubscribe function.

        Without a handler, return a future for the next occurrence's params.
        """
        if handler is None:
            return self._session.wait_for(self.qualified_name)
        return self._session.on(self.qualified_name, handler)

    def __repr__(self) -> str:
        return f"<event {self.qualified_name}>"


class Domain:
    """Commands, events and types of one protocol domain."""

    def __init__(self, name: str, description: str | None = None):
        self.name = name
        self.description = description
        self.commands: dict[str, ProtocolCommand] = {}
        self.events: dict[str, ProtocolEvent] = {}
        self.types: dict[str, dict[str, Any]] = {}

    def __getattr__(self, name: str) -> Any:
        members = self.__dict__
        if name in members.get("commands", {}):
            return members["commands"][name]
        if name in members.get("events", {}):
            return members["events"][name]
        raise AttributeError(f"Domain {self.__dict__.get('name')!r} has no member {name!r}")

    def __dir__(self) -> list[str]:
        return sorted({*super().__dir__(), *self.commands, *self.events})

    def on(self, event: str, handler: Callable[[dict[str, Any]], Any]) -> Callable[[], None]:
        """Subscribe to ``event`` of this domain."""
        try:
            return self.events[event](handler)
        except KeyError:
            raise AttributeError(f"Domain {self.name!r} has no event {event!r}") from None

    def __repr__(self) -> str:
        return f"<domain {self.name}: {len(self.commands)} commands, {len(self.events)} events>"


def build_domains(session: Session, protocol: dict[str, Any]) -> dict[str, Domain]:
    """Build the domain table for ``session`` from a descriptor."""
    domains: dict[str, Domain] = {}
    for domain_spec in protocol.get("domains", []):
        name = domain_spec.get("domain")
        if not name:
            logger.debug(f"Skipping unnamed domain: {domain_spec!r:.100}")
            continue
        domain = Domain(name, domain_spec.get("description"))
        for command_spec in domain_spec.get("commands", []):
            command = ProtocolCommand(session, name, command_spec)
            domain.commands[command.name] = command
        for event_spec in domain_spec.get("events", []):
            event = ProtocolEvent(session, name, event_spec)
            domain.events[event.name] = event
        for type_spec in domain_spec.get("types", []):
            if "id" in type_spec:
                domain.types[type_spec["id"]] = type_spec
        domains[name] = domain
    return domains


def prepare(session: Session, protocol: dict[str, Any]) -> None:
    """Attach the protocol-described API to ``session``."""
    domains = build_domains(session, protocol)
    session.attach_domains(domains)
    logger.debug(f"Prepared API with {len(domains)} domain(s)")
