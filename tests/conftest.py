"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest
import pytest_asyncio

from devtools_remote.session import Session
from devtools_remote.transport.mock import MockTransport

PROTOCOL: dict[str, Any] = {
    "version": {"major": "1", "minor": "3"},
    "domains": [
        {
            "domain": "Page",
            "commands": [{"name": "enable"}, {"name": "navigate", "parameters": [{"name": "url"}]}],
            "events": [{"name": "loadEventFired"}],
            "types": [{"id": "FrameId", "type": "string"}],
        },
        {
            "domain": "Foo",
            "commands": [{"name": "bar"}],
            "events": [{"name": "baz"}],
        },
    ],
}


async def settle(iterations: int = 20) -> None:
    """Let scheduled tasks (transmit, read loop) run."""
    for _ in range(iterations):
        await asyncio.sleep(0)


@pytest.fixture
def mock_transport() -> MockTransport:
    return MockTransport()


@pytest_asyncio.fixture
async def session(mock_transport: MockTransport):
    """A READY session over a mock transport."""
    session = Session(protocol=PROTOCOL, target="ws://mock/devtools/page/1", transport=mock_transport)
    await session.wait_ready()
    yield session
    await session.close()
