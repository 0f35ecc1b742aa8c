"""HTTP discovery endpoints of a DevTools-enabled browser.

Endpoints (relative to ``http[s]://host:port``):
- GET /json/list            - debuggable targets
- GET /json/protocol        - protocol descriptor
- GET /json/version         - browser and protocol version
- PUT /json/new?<url>       - open a new tab
- GET /json/activate/<id>   - bring a target to front
- GET /json/close/<id>      - close a target

Browsers reject Host headers that are neither an IP address nor ``localhost``,
so unless ``use_host_name`` is set the host is resolved to an IP first.
"""

from __future__ import annotations

import asyncio
import json
import logging
import socket
from collections.abc import Callable
from importlib import resources
from typing import Any

import httpx
from pydantic import ValidationError

from .config import DEFAULT_HOST, DEFAULT_PORT, SessionConfig
from .errors import DiscoveryError, ProtocolResolutionError
from .protocol.messages import Target

logger = logging.getLogger(__name__)

LOCAL_PROTOCOL_RESOURCE = "local.json"


def load_local_protocol() -> dict[str, Any]:
    """Load the protocol descriptor bundled with this package.

    The bundled descriptor is partial: it covers the Browser, Target, Page,
    Runtime, Network and Log domains only. Commands of other domains can
    still be sent with ``Session.send``; pass a full descriptor as
    ``protocol=`` or fetch it from the browser for attribute access.
    """
    try:
        text = (
            resources.files("devtools_remote.protocol")
            .joinpath(LOCAL_PROTOCOL_RESOURCE)
            .read_text(encoding="utf-8")
        )
        return json.loads(text)
    except (OSError, json.JSONDecodeError) as e:
        raise ProtocolResolutionError(f"Cannot load bundled protocol: {e}") from e


class Discovery:
    """Client for the discovery endpoints of one browser."""

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        secure: bool = False,
        use_host_name: bool = False,
        alter_path: Callable[[str], str] | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.host = host
        self.port = int(port)
        self.secure = secure
        self.use_host_name = use_host_name
        self.alter_path = alter_path or (lambda path: path)
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_config(cls, config: SessionConfig, **kwargs: Any) -> Discovery:
        return cls(
            host=config.host,
            port=config.port,
            secure=config.secure,
            use_host_name=config.use_host_name,
            alter_path=config.alter_path,
            **kwargs,
        )

    async def _resolve_host(self) -> str:
        if self.use_host_name:
            return self.host
        loop = asyncio.get_running_loop()
        try:
            infos = await loop.getaddrinfo(self.host, None, type=socket.SOCK_STREAM)
        except socket.gaierror as e:
            raise DiscoveryError(f"Cannot resolve host {self.host!r}: {e}") from e
        address = infos[0][4][0]
        return f"[{address}]" if ":" in address else address

    async def _request(self, path: str, method: str = "GET") -> httpx.Response:
        host = await self._resolve_host()
        scheme = "https" if self.secure else "http"
        url = f"{scheme}://{host}:{self.port}{self.alter_path(path)}"
        logger.debug(f"{method} {url}")
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(method, url)
                response.raise_for_status()
                return response
        except httpx.HTTPStatusError as e:
            detail = e.response.text.strip()
            raise DiscoveryError(
                f"{method} {path} failed with status {e.response.status_code}: {detail}"
            ) from e
        except httpx.HTTPError as e:
            raise DiscoveryError(f"{method} {path} failed: {e}") from e

    async def _request_json(self, path: str, method: str = "GET") -> Any:
        response = await self._request(path, method)
        try:
            return response.json()
        except ValueError as e:
            raise DiscoveryError(f"{method} {path} returned invalid JSON: {e}") from e

    async def list_targets(self) -> list[Target]:
        """List the debuggable targets."""
        data = await self._request_json("/json/list")
        if not isinstance(data, list):
            raise DiscoveryError(f"Unexpected target list: {type(data).__name__}")
        try:
            return [Target.model_validate(item) for item in data]
        except ValidationError as e:
            raise DiscoveryError(f"Malformed target in list: {e}") from e

    async def protocol(self, local: bool = False) -> dict[str, Any]:
        """Fetch the protocol descriptor.

        Args:
            local: Use the descriptor bundled with this package instead of
                asking the browser.

        Raises:
            ProtocolResolutionError: If the descriptor cannot be obtained.
        """
        if local:
            return load_local_protocol()
        try:
            data = await self._request_json("/json/protocol")
        except DiscoveryError as e:
            raise ProtocolResolutionError(str(e)) from e
        if not isinstance(data, dict):
            raise ProtocolResolutionError(f"Unexpected protocol descriptor: {type(data).__name__}")
        return data

    async def version(self) -> dict[str, Any]:
        """Browser and protocol version information."""
        return await self._request_json("/json/version")

    async def new_target(self, url: str | None = None) -> Target:
        """Open a new tab, optionally navigating to ``url``."""
        path = "/json/new"
        if url:
            path += f"?{url}"
        data = await self._request_json(path, method="PUT")
        return Target.model_validate(data)

    async def activate_target(self, target_id: str) -> None:
        """Bring the target to the foreground."""
        await self._request(f"/json/activate/{target_id}")

    async def close_target(self, target_id: str) -> None:
        """Close the target."""
        await self._request(f"/json/close/{target_id}")


async def resolve_protocol(
    explicit: dict[str, Any] | None,
    local: bool,
    discovery: Discovery,
) -> dict[str, Any]:
    """Pick the protocol descriptor for a session.

    An explicit descriptor is returned unchanged without any I/O; otherwise
    the bundled (``local``) or remote descriptor is fetched.
    """
    if explicit is not None:
        return explicit
    return await discovery.protocol(local=local)


# Module-level shortcuts


async def list_targets(**options: Any) -> list[Target]:
    return await Discovery(**options).list_targets()


async def fetch_protocol(local: bool = False, **options: Any) -> dict[str, Any]:
    return await Discovery(**options).protocol(local=local)


async def version(**options: Any) -> dict[str, Any]:
    return await Discovery(**options).version()


async def new_target(url: str | None = None, **options: Any) -> Target:
    return await Discovery(**options).new_target(url)


async def activate_target(target_id: str, **options: Any) -> None:
    await Discovery(**options).activate_target(target_id)


async def close_target(target_id: str, **options: Any) -> None:
    await Discovery(**options).close_target(target_id)
