"""Target selection.

A session attaches to exactly one target. The caller describes which one with
a selector value that is classified once into a ``TargetSelector``:

- ``"/devtools/page/ABC"``     -> URL on the configured host and port
- ``"ws://host:9222/..."``     -> WebSocket URL, used verbatim
- ``"ABC"``                    -> target id, looked up in ``/json/list``
- ``Target`` or mapping        -> descriptor, its debugger URL is used
- ``callable(targets)``        -> returns a descriptor or an index
- ``None``                     -> first page target, else first inspectable one
"""

from __future__ import annotations

import inspect
import logging
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import ValidationError

from .discovery import Discovery
from .errors import InvalidConfigurationError, TargetResolutionError
from .protocol.messages import Target

logger = logging.getLogger(__name__)

_WS_URL = re.compile(r"^wss?:", re.IGNORECASE)

TargetFunction = Callable[[list[Target]], Any]


class SelectorKind(str, Enum):
    """How a target selector is resolved."""

    ID = "id"
    URL = "url"
    DESCRIPTOR = "descriptor"
    FUNCTION = "function"
    DEFAULT = "default"


@dataclass(frozen=True)
class TargetSelector:
    """Tagged target selector.

    Exactly one of ``value`` interpretations is active, given by ``kind``.
    """

    kind: SelectorKind
    value: Any = None

    @classmethod
    def from_value(cls, value: Any, host: str, port: int) -> TargetSelector:
        """Classify a user-supplied selector.

        Raises:
            InvalidConfigurationError: For unsupported selector types.
        """
        if isinstance(value, TargetSelector):
            return value
        if value is None:
            return cls(SelectorKind.DEFAULT, default_target)
        if isinstance(value, str):
            if value.startswith("/"):
                # Relative URL on the configured endpoint
                return cls(SelectorKind.URL, f"ws://{host}:{port}{value}")
            if _WS_URL.match(value):
                return cls(SelectorKind.URL, value)
            return cls(SelectorKind.ID, value)
        if isinstance(value, Target):
            return cls(SelectorKind.DESCRIPTOR, value)
        if isinstance(value, Mapping):
            return cls(SelectorKind.DESCRIPTOR, _as_target(value))
        if callable(value):
            return cls(SelectorKind.FUNCTION, value)
        raise InvalidConfigurationError(f"Invalid target argument {value!r}")


def _as_target(value: Any) -> Target:
    if isinstance(value, Target):
        return value
    if isinstance(value, Mapping):
        try:
            return Target.model_validate(dict(value))
        except ValidationError as e:
            raise TargetResolutionError(f"Malformed target descriptor: {e}") from e
    raise TargetResolutionError(f"Not a target descriptor: {value!r}")


def default_target(targets: Sequence[Target]) -> Target:
    """Prefer page targets (browser tabs), else the first inspectable target.

    Raises:
        TargetResolutionError: If no target has a debugger URL.
    """
    backup: Target | None = None
    for target in targets:
        if not target.is_inspectable:
            continue
        if target.is_page:
            return target
        backup = backup or target
    if backup is not None:
        return backup
    raise TargetResolutionError("No inspectable targets")


def _debugger_url(target: Target) -> str:
    if not target.web_socket_debugger_url:
        raise TargetResolutionError(
            f"Target {target.id!r} has no webSocketDebuggerUrl (already attached?)"
        )
    return target.web_socket_debugger_url


class TargetResolver:
    """Turns a selector into a debugger WebSocket URL."""

    def __init__(self, discovery: Discovery):
        self.discovery = discovery

    async def resolve(self, selector: TargetSelector) -> str:
        kind = selector.kind
        if kind == SelectorKind.URL:
            return selector.value
        if kind == SelectorKind.DESCRIPTOR:
            return _debugger_url(selector.value)

        targets = await self.discovery.list_targets()
        logger.debug(f"Discovered {len(targets)} target(s)")

        if kind == SelectorKind.ID:
            for target in targets:
                if target.id == selector.value:
                    return _debugger_url(target)
            raise TargetResolutionError(f"No target with id {selector.value!r}")

        # FUNCTION and DEFAULT
        result = selector.value(targets)
        if inspect.isawaitable(result):
            result = await result
        if isinstance(result, int) and not isinstance(result, bool):
            # Negative indices are rejected, not counted from the end
            if not 0 <= result < len(targets):
                raise TargetResolutionError(
                    f"Target index {result} out of range ({len(targets)} targets)"
                )
            result = targets[result]
        return _debugger_url(_as_target(result))
