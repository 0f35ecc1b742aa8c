"""Transports carrying raw JSON frames between the client and the browser.

- WebSocketTransport: a target's ``webSocketDebuggerUrl``
- PipeTransport: ``--remote-debugging-pipe`` streams of an embedded process
- MockTransport: in-memory, for tests
"""

from .base import Transport, TransportState
from .mock import MockTransport
from .pipe import NEWLINE_DELIMITER, NUL_DELIMITER, PipeTransport
from .websocket import WebSocketTransport

__all__ = [
    "Transport",
    "TransportState",
    "WebSocketTransport",
    "PipeTransport",
    "MockTransport",
    "NUL_DELIMITER",
    "NEWLINE_DELIMITER",
]
