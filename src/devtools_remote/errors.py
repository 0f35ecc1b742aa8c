"""Error taxonomy for the DevTools client.

Startup failures (target, protocol, transport connect) are delivered through
the session's ``error`` signal. Per-command failures only reach the callback or
future of the command that caused them.
"""

from __future__ import annotations

from typing import Any


class DevToolsError(Exception):
    """Base class for all client errors."""

    pass


class InvalidConfigurationError(DevToolsError):
    """A session option has an unsupported type or value."""

    pass


class DiscoveryError(DevToolsError):
    """The HTTP discovery endpoint failed or returned unusable data."""

    pass


class TargetResolutionError(DiscoveryError):
    """No usable target could be selected."""

    pass


class ProtocolResolutionError(DiscoveryError):
    """The protocol descriptor could not be obtained."""

    pass


class TransportError(DevToolsError):
    """Connect, send or receive failure at the transport layer."""

    pass


class ProtocolError(DevToolsError):
    """The remote peer replied to a command with an ``error`` field.

    Attributes:
        request: The request envelope as it was sent.
        response: The ``error`` object returned by the peer.
    """

    def __init__(self, request: dict[str, Any], response: Any):
        if isinstance(response, dict):
            message = str(response.get("message", "Unknown protocol error"))
            if response.get("data"):
                message += f" ({response['data']})"
        else:
            message = str(response)
        super().__init__(message)
        self.request = request
        self.response = response
