"""Integration tests for sessions over a real WebSocket connection.

A small in-process server stands in for the browser's per-target endpoint:
- replies to every command (``Fail.me`` with a protocol error)
- emits ``Page.frameNavigated`` before replying to ``Page.navigate``
- hangs up on ``Browser.close``
"""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest
import pytest_asyncio
from websockets.asyncio.server import ServerConnection, serve

from devtools_remote.discovery import Discovery
from devtools_remote.errors import ProtocolError, TransportError
from devtools_remote.session import Session, SessionState

from conftest import PROTOCOL

TIMEOUT = 5.0


class FakeBrowser:
    """WebSocket endpoint speaking just enough of the protocol."""

    def __init__(self) -> None:
        self.received: list[dict] = []
        self.url = ""

    async def handler(self, ws: ServerConnection) -> None:
        async for raw in ws:
            message = json.loads(raw)
            self.received.append(message)
            method = message["method"]
            if method == "Page.navigate":
                await ws.send(
                    json.dumps({"method": "Page.frameNavigated", "params": {"frame": {"id": "F1"}}})
                )
                await ws.send(json.dumps({"id": message["id"], "result": {"frameId": "F1"}}))
            elif method == "Fail.me":
                error = {"code": -32601, "message": "'Fail.me' wasn't found"}
                await ws.send(json.dumps({"id": message["id"], "error": error}))
            elif method == "Browser.close":
                await ws.close()
                return
            else:
                await ws.send(json.dumps({"id": message["id"], "result": {}}))


@pytest_asyncio.fixture
async def browser():
    fake = FakeBrowser()
    async with serve(fake.handler, "127.0.0.1", 0) as server:
        port = server.sockets[0].getsockname()[1]
        fake.url = f"ws://127.0.0.1:{port}/devtools/page/P1"
        yield fake


# =============================================================================
# Tests: Commands and events
# =============================================================================


class TestRoundTrip:
    """Commands, replies and events over the wire."""

    @pytest.mark.asyncio
    async def test_command_and_event(self, browser: FakeBrowser) -> None:
        """Events sent before a reply are delivered before the reply resolves."""
        order: list[str] = []
        async with Session(protocol=PROTOCOL, target=browser.url) as session:
            session.on("Page.frameNavigated", lambda params: order.append("event"))

            result = await asyncio.wait_for(session.Page.navigate(url="about:blank"), TIMEOUT)
            order.append("reply")

        assert result == {"frameId": "F1"}
        assert order == ["event", "reply"]
        assert browser.received == [{"id": 1, "method": "Page.navigate", "params": {"url": "about:blank"}}]

    @pytest.mark.asyncio
    async def test_concurrent_commands(self, browser: FakeBrowser) -> None:
        """Many in-flight commands each get their own reply."""
        async with Session(protocol=PROTOCOL, target=browser.url) as session:
            results = await asyncio.wait_for(
                asyncio.gather(*(session.send("Foo.bar", {"n": n}) for n in range(20))),
                TIMEOUT,
            )

        assert results == [{}] * 20
        assert [m["id"] for m in browser.received] == list(range(1, 21))

    @pytest.mark.asyncio
    async def test_protocol_error(self, browser: FakeBrowser) -> None:
        """An error reply fails only its own command."""
        async with Session(protocol=PROTOCOL, target=browser.url) as session:
            with pytest.raises(ProtocolError, match="wasn't found"):
                await asyncio.wait_for(session.send("Fail.me"), TIMEOUT)
            assert await asyncio.wait_for(session.send("Foo.bar"), TIMEOUT) == {}

    @pytest.mark.asyncio
    async def test_target_id_via_discovery(self, browser: FakeBrowser) -> None:
        """A target id is resolved through /json/list and the endpoint followed."""
        targets = [{"id": "P1", "type": "page", "webSocketDebuggerUrl": browser.url}]
        http = httpx.MockTransport(lambda request: httpx.Response(200, json=targets))
        discovery = Discovery(use_host_name=True, transport=http)

        async with Session(protocol=PROTOCOL, target="P1", discovery=discovery) as session:
            assert session.web_socket_url == browser.url
            assert session.host == "127.0.0.1"
            assert discovery.port == session.port
            assert await asyncio.wait_for(session.send("Foo.bar"), TIMEOUT) == {}


# =============================================================================
# Tests: Connection end
# =============================================================================


class TestShutdown:
    """Peer disconnect and caller close."""

    @pytest.mark.asyncio
    async def test_peer_hangs_up(self, browser: FakeBrowser) -> None:
        """The peer closing fails pending commands and emits one disconnect."""
        session = await Session(protocol=PROTOCOL, target=browser.url).wait_ready()
        disconnects: list[bool] = []
        session.on("disconnect", lambda: disconnects.append(True))
        disconnected = session.wait_for("disconnect")

        pending = session.send("Browser.close")
        await asyncio.wait_for(disconnected, TIMEOUT)

        with pytest.raises(TransportError, match="Connection closed"):
            await pending
        assert disconnects == [True]
        assert session.state == SessionState.CLOSED
        await session.close()
        assert disconnects == [True]

    @pytest.mark.asyncio
    async def test_caller_close_has_no_disconnect(self, browser: FakeBrowser) -> None:
        """Closing the session ourselves never emits disconnect."""
        session = await Session(protocol=PROTOCOL, target=browser.url).wait_ready()
        disconnects: list[bool] = []
        session.on("disconnect", lambda: disconnects.append(True))

        await session.close()
        await session.close()
        await asyncio.sleep(0.05)

        assert disconnects == []
        assert session.transport is not None and session.transport.is_closed

    @pytest.mark.asyncio
    async def test_connection_refused(self, unused_tcp_port: int) -> None:
        """A failed WebSocket handshake is a startup error."""
        session = Session(protocol=PROTOCOL, target=f"ws://127.0.0.1:{unused_tcp_port}/devtools/page/X")
        errors: list[Exception] = []
        session.on("error", errors.append)

        with pytest.raises(TransportError, match="Failed to connect"):
            await session.wait_ready()
        assert len(errors) == 1
        assert session.state == SessionState.ERRORED
