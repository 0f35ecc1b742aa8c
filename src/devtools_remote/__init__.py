"""DevTools remote debugging protocol client.

Connects to a browser over its ``webSocketDebuggerUrl`` (discovered through
the HTTP endpoints on ``--remote-debugging-port``) or over the pipes of a
browser started with ``--remote-debugging-pipe``, then multiplexes commands
and events over that one connection.

    import asyncio
    import devtools_remote

    async def main():
        async with devtools_remote.Session(port=9222) as session:
            await session.Page.enable()
            await session.Page.navigate(url="https://example.com")
            await session.Page.loadEventFired()

    asyncio.run(main())
"""

from .config import DEFAULT_HOST, DEFAULT_PORT, SessionConfig
from .discovery import (
    Discovery,
    activate_target,
    close_target,
    fetch_protocol,
    list_targets,
    new_target,
    version,
)
from .errors import (
    DevToolsError,
    DiscoveryError,
    InvalidConfigurationError,
    ProtocolError,
    ProtocolResolutionError,
    TargetResolutionError,
    TransportError,
)
from .protocol.messages import Target
from .session import Session, SessionState, connect
from .targets import SelectorKind, TargetSelector, default_target

__all__ = [
    # Session
    "Session",
    "SessionState",
    "SessionConfig",
    "connect",
    "DEFAULT_HOST",
    "DEFAULT_PORT",
    # Targets
    "Target",
    "TargetSelector",
    "SelectorKind",
    "default_target",
    # Discovery
    "Discovery",
    "list_targets",
    "fetch_protocol",
    "version",
    "new_target",
    "activate_target",
    "close_target",
    # Errors
    "DevToolsError",
    "InvalidConfigurationError",
    "DiscoveryError",
    "TargetResolutionError",
    "ProtocolResolutionError",
    "TransportError",
    "ProtocolError",
]
