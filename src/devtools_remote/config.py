"""Session configuration.

Defaults match a browser started with ``--remote-debugging-port=9222`` on the
local machine. ``SessionConfig.from_env`` lets the connection endpoint be
supplied through ``DEVTOOLS_HOST``, ``DEVTOOLS_PORT`` and ``DEVTOOLS_SECURE``.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass, field, fields, replace
from typing import Any

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 9222

ENV_HOST = "DEVTOOLS_HOST"
ENV_PORT = "DEVTOOLS_PORT"
ENV_SECURE = "DEVTOOLS_SECURE"

_TRUTHY = {"1", "true", "yes", "on"}


def _identity(path: str) -> str:
    return path


@dataclass
class SessionConfig:
    """Options for a DevTools session.

    Attributes:
        host: Host of the HTTP/WebSocket debugging endpoint.
        port: Port of the debugging endpoint.
        secure: Use https/wss instead of http/ws.
        use_host_name: Send the host name as-is instead of resolving it to an
            IP address (some browsers reject non-IP Host headers).
        alter_path: Rewrites every URL path before it is used.
        protocol: Explicit protocol descriptor; skips protocol discovery.
        local: Use the partial protocol descriptor bundled with this package
            (Browser, Target, Page, Runtime, Network and Log domains).
        target: Target selector (id, WebSocket URL, ``/path``, descriptor,
            or a function choosing from the target list).
        process: Embedded browser process exposing pipe streams on
            ``stdio[3]`` and ``stdio[4]``. Implies ``local``.
    """

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    secure: bool = False
    use_host_name: bool = False
    alter_path: Callable[[str], str] = field(default=_identity)
    protocol: dict[str, Any] | None = None
    local: bool = False
    target: Any = None
    process: Any = None

    def __post_init__(self) -> None:
        self.port = int(self.port)
        if self.process is not None:
            self.local = True

    @classmethod
    def from_env(cls, **overrides: Any) -> SessionConfig:
        """Build a config from environment variables.

        Explicit keyword arguments take precedence over the environment.
        """
        values: dict[str, Any] = {}
        if os.getenv(ENV_HOST):
            values["host"] = os.environ[ENV_HOST]
        if os.getenv(ENV_PORT):
            values["port"] = int(os.environ[ENV_PORT])
        if os.getenv(ENV_SECURE):
            values["secure"] = os.environ[ENV_SECURE].strip().lower() in _TRUTHY
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def with_options(self, **options: Any) -> SessionConfig:
        """Return a copy with the given options replaced."""
        known = {f.name for f in fields(self)}
        unknown = set(options) - known
        if unknown:
            from .errors import InvalidConfigurationError

            raise InvalidConfigurationError(f"Unknown session options: {sorted(unknown)}")
        return replace(self, **options)

    @property
    def http_scheme(self) -> str:
        return "https" if self.secure else "http"
