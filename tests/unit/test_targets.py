"""Unit tests for target selection.

Discovery is replaced with an AsyncMock returning a fixed target list; every
test also checks whether the list was consulted at all.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from devtools_remote.errors import InvalidConfigurationError, TargetResolutionError
from devtools_remote.protocol.messages import Target
from devtools_remote.targets import (
    SelectorKind,
    TargetResolver,
    TargetSelector,
    default_target,
)

HOST = "localhost"
PORT = 9222


def make_targets(*items: dict) -> list[Target]:
    return [Target.model_validate(item) for item in items]


def make_resolver(targets: list[Target]) -> tuple[TargetResolver, AsyncMock]:
    discovery = MagicMock()
    discovery.list_targets = AsyncMock(return_value=targets)
    return TargetResolver(discovery), discovery.list_targets


async def resolve(value, targets: list[Target]) -> tuple[str, AsyncMock]:
    resolver, list_targets = make_resolver(targets)
    url = await resolver.resolve(TargetSelector.from_value(value, HOST, PORT))
    return url, list_targets


TARGETS = make_targets(
    {"id": "a", "type": "background_page", "webSocketDebuggerUrl": "ws://h/a"},
    {"id": "b", "type": "page", "webSocketDebuggerUrl": "ws://h/b"},
    {"id": "c", "type": "page"},
)


# =============================================================================
# Selector classification
# =============================================================================


class TestTargetSelector:
    def test_none_is_default(self) -> None:
        assert TargetSelector.from_value(None, HOST, PORT).kind == SelectorKind.DEFAULT

    def test_relative_path_becomes_url(self) -> None:
        selector = TargetSelector.from_value("/devtools/page/X", HOST, PORT)
        assert selector.kind == SelectorKind.URL
        assert selector.value == "ws://localhost:9222/devtools/page/X"

    @pytest.mark.parametrize("url", ["ws://h:1/x", "wss://h/x", "WS://h/x"])
    def test_websocket_url(self, url: str) -> None:
        selector = TargetSelector.from_value(url, HOST, PORT)
        assert selector.kind == SelectorKind.URL
        assert selector.value == url

    def test_plain_string_is_id(self) -> None:
        assert TargetSelector.from_value("ABC", HOST, PORT).kind == SelectorKind.ID

    def test_mapping_is_descriptor(self) -> None:
        selector = TargetSelector.from_value({"id": "x", "webSocketDebuggerUrl": "ws://x"}, HOST, PORT)
        assert selector.kind == SelectorKind.DESCRIPTOR
        assert isinstance(selector.value, Target)

    def test_callable_is_function(self) -> None:
        assert TargetSelector.from_value(lambda t: 0, HOST, PORT).kind == SelectorKind.FUNCTION

    def test_invalid_type_raises(self) -> None:
        with pytest.raises(InvalidConfigurationError):
            TargetSelector.from_value(42, HOST, PORT)


# =============================================================================
# Default selection
# =============================================================================


class TestDefaultTarget:
    def test_prefers_page(self) -> None:
        targets = make_targets({"id": "a", "type": "background"}, {"id": "b", "type": "page", "webSocketDebuggerUrl": "ws://x"})
        assert default_target(targets).id == "b"

    def test_falls_back_to_first_inspectable(self) -> None:
        targets = make_targets(
            {"id": "w1", "type": "service_worker", "webSocketDebuggerUrl": "ws://1"},
            {"id": "w2", "type": "background_page", "webSocketDebuggerUrl": "ws://2"},
        )
        assert default_target(targets).id == "w1"

    def test_skips_page_without_url(self) -> None:
        targets = make_targets(
            {"id": "p", "type": "page"},
            {"id": "w", "type": "worker", "webSocketDebuggerUrl": "ws://w"},
        )
        assert default_target(targets).id == "w"

    def test_empty_list_fails(self) -> None:
        with pytest.raises(TargetResolutionError, match="No inspectable targets"):
            default_target([])


# =============================================================================
# Resolution
# =============================================================================


class TestTargetResolver:
    @pytest.mark.asyncio
    async def test_url_without_discovery(self) -> None:
        url, list_targets = await resolve("ws://elsewhere:1234/devtools/browser", TARGETS)
        assert url == "ws://elsewhere:1234/devtools/browser"
        list_targets.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_relative_path_without_discovery(self) -> None:
        url, list_targets = await resolve("/devtools/page/X", TARGETS)
        assert url == "ws://localhost:9222/devtools/page/X"
        list_targets.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_descriptor_without_discovery(self) -> None:
        url, list_targets = await resolve({"id": "z", "webSocketDebuggerUrl": "ws://z"}, TARGETS)
        assert url == "ws://z"
        list_targets.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_id_lookup(self) -> None:
        url, list_targets = await resolve("b", TARGETS)
        assert url == "ws://h/b"
        list_targets.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unknown_id_fails(self) -> None:
        with pytest.raises(TargetResolutionError, match="No target with id"):
            await resolve("missing", TARGETS)

    @pytest.mark.asyncio
    async def test_id_of_attached_target_fails(self) -> None:
        with pytest.raises(TargetResolutionError, match="no webSocketDebuggerUrl"):
            await resolve("c", TARGETS)

    @pytest.mark.asyncio
    async def test_function_returning_index(self) -> None:
        seen: list[list[Target]] = []

        def choose(targets: list[Target]) -> int:
            seen.append(targets)
            return 0

        url, _ = await resolve(choose, TARGETS)
        assert url == "ws://h/a"
        assert seen == [TARGETS]

    @pytest.mark.asyncio
    async def test_function_returning_descriptor(self) -> None:
        url, _ = await resolve(lambda targets: targets[1], TARGETS)
        assert url == "ws://h/b"

    @pytest.mark.asyncio
    async def test_function_returning_mapping(self) -> None:
        url, _ = await resolve(lambda targets: {"webSocketDebuggerUrl": "ws://m"}, TARGETS)
        assert url == "ws://m"

    @pytest.mark.asyncio
    async def test_async_function(self) -> None:
        async def choose(targets: list[Target]) -> int:
            return 1

        url, _ = await resolve(choose, TARGETS)
        assert url == "ws://h/b"

    @pytest.mark.asyncio
    async def test_index_out_of_range(self) -> None:
        with pytest.raises(TargetResolutionError, match="out of range"):
            await resolve(lambda targets: 10, TARGETS)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("index", [-1, -3])
    async def test_negative_index_rejected(self, index: int) -> None:
        with pytest.raises(TargetResolutionError, match="out of range"):
            await resolve(lambda targets: index, TARGETS)

    @pytest.mark.asyncio
    async def test_default_prefers_page(self) -> None:
        targets = make_targets(
            {"id": "a", "type": "background"},
            {"id": "b", "type": "page", "webSocketDebuggerUrl": "ws://x"},
        )
        url, _ = await resolve(None, targets)
        assert url == "ws://x"

    @pytest.mark.asyncio
    async def test_default_with_no_targets(self) -> None:
        with pytest.raises(TargetResolutionError, match="No inspectable targets"):
            await resolve(None, [])
