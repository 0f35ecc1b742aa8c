"""Wire envelopes and discovery records.

Three message shapes travel over a connection:

- Request (client to peer): ``{"id": 1, "method": "Page.navigate", "params": {...}}``
- Reply (peer to client): ``{"id": 1, "result": {...}}`` or
  ``{"id": 1, "error": {"message": "...", "data": "..."}}``
- Event (peer to client): ``{"method": "Page.loadEventFired", "params": {...}}``

Inbound messages are kept as plain dicts; peers are permissive about which
fields they send, so the router inspects keys instead of validating a schema.
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class MessageKind(str, Enum):
    """Classification of an inbound message."""

    REPLY = "reply"
    EVENT = "event"
    UNKNOWN = "unknown"


class Request(BaseModel):
    """A command envelope sent to the peer."""

    id: int
    method: str
    params: dict[str, Any] = Field(default_factory=dict)

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def create(cls, command_id: int, message: dict[str, Any]) -> Request:
        """Build a request from a ``{method, params}`` mapping."""
        return cls(
            id=command_id,
            method=message["method"],
            params=message.get("params") or {},
        )


class Target(BaseModel):
    """A debuggable target as listed by ``/json/list``.

    Only ``id``, ``type`` and ``webSocketDebuggerUrl`` are used by the client;
    other fields reported by the browser are kept as extras.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str = ""
    type: str = ""
    title: str | None = None
    url: str | None = None
    web_socket_debugger_url: str | None = Field(default=None, alias="webSocketDebuggerUrl")
    devtools_frontend_url: str | None = Field(default=None, alias="devtoolsFrontendUrl")

    @property
    def is_page(self) -> bool:
        return self.type == "page"

    @property
    def is_inspectable(self) -> bool:
        return bool(self.web_socket_debugger_url)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


def parse_message(data: str | bytes) -> dict[str, Any] | None:
    """Decode an inbound frame, returning None for anything that is not a JSON object."""
    try:
        message = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.warning(f"Dropping unparseable message: {e}")
        return None
    if not isinstance(message, dict):
        logger.warning(f"Dropping non-object message: {type(message).__name__}")
        return None
    return message


def classify(message: dict[str, Any]) -> MessageKind:
    """Tell replies from events.

    A reply carries an integer ``id``; an event carries a string ``method``.
    Anything else (including ids or methods of the wrong type) is UNKNOWN.
    """
    command_id = message.get("id")
    if command_id is not None:
        if isinstance(command_id, int) and not isinstance(command_id, bool):
            return MessageKind.REPLY
        return MessageKind.UNKNOWN
    method = message.get("method")
    if isinstance(method, str) and method:
        return MessageKind.EVENT
    return MessageKind.UNKNOWN
