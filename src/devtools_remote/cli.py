"""DevTools remote CLI.

Usage:
    devtools-remote list                          # List targets
    devtools-remote new [URL]                     # Open a new tab
    devtools-remote activate <id>                 # Bring a tab to front
    devtools-remote close <id>                    # Close a tab
    devtools-remote version                       # Browser version info
    devtools-remote protocol [--local]            # Protocol descriptor

    devtools-remote send Page.navigate '{"url": "https://example.com"}'
    devtools-remote events --enable Network --method Network.requestWillBeSent

Connection options (--host/--port/--secure) default to ``DEVTOOLS_HOST``,
``DEVTOOLS_PORT`` and ``DEVTOOLS_SECURE``, then to localhost:9222.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from collections.abc import Coroutine
from typing import Any

import click

from .config import SessionConfig
from .discovery import Discovery
from .errors import DevToolsError, ProtocolError
from .session import Session

logger = logging.getLogger(__name__)


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def _run(coro: Coroutine[Any, Any, Any]) -> Any:
    """Run ``coro`` and turn client errors into CLI errors."""
    try:
        return asyncio.run(coro)
    except ProtocolError as e:
        raise click.ClickException(f"Protocol error: {e}") from e
    except DevToolsError as e:
        raise click.ClickException(str(e)) from e


def _parse_params(params: str | None) -> dict[str, Any]:
    if not params:
        return {}
    try:
        value = json.loads(params)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"not valid JSON: {e}", param_hint="PARAMS") from e
    if not isinstance(value, dict):
        raise click.BadParameter("must be a JSON object", param_hint="PARAMS")
    return value


@click.group()
@click.option("--host", "-t", default=None, help="HTTP frontend host (default: localhost)")
@click.option("--port", "-p", type=int, default=None, help="HTTP frontend port (default: 9222)")
@click.option("--secure", "-s", is_flag=True, help="Use https/wss")
@click.option("--use-host-name", "-n", is_flag=True, help="Do not resolve the host to an IP address")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(
    ctx: click.Context,
    host: str | None,
    port: int | None,
    secure: bool,
    use_host_name: bool,
    verbose: bool,
) -> None:
    """Inspect and drive a browser through the DevTools protocol."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    ctx.obj = SessionConfig.from_env(
        host=host,
        port=port,
        secure=secure or None,
        use_host_name=use_host_name or None,
    )


@main.command("list")
@click.pass_obj
def list_command(config: SessionConfig) -> None:
    """List the debuggable targets."""
    targets = _run(Discovery.from_config(config).list_targets())
    _echo_json([target.to_dict() for target in targets])


@main.command("new")
@click.argument("url", required=False)
@click.pass_obj
def new_command(config: SessionConfig, url: str | None) -> None:
    """Open a new tab, optionally at URL."""
    target = _run(Discovery.from_config(config).new_target(url))
    _echo_json(target.to_dict())


@main.command("activate")
@click.argument("target_id")
@click.pass_obj
def activate_command(config: SessionConfig, target_id: str) -> None:
    """Bring the target TARGET_ID to the foreground."""
    _run(Discovery.from_config(config).activate_target(target_id))


@main.command("close")
@click.argument("target_id")
@click.pass_obj
def close_command(config: SessionConfig, target_id: str) -> None:
    """Close the target TARGET_ID."""
    _run(Discovery.from_config(config).close_target(target_id))


@main.command("version")
@click.pass_obj
def version_command(config: SessionConfig) -> None:
    """Show browser and protocol version."""
    _echo_json(_run(Discovery.from_config(config).version()))


@main.command("protocol")
@click.option("--local", "-l", is_flag=True, help="Print the bundled descriptor")
@click.pass_obj
def protocol_command(config: SessionConfig, local: bool) -> None:
    """Print the protocol descriptor."""
    _echo_json(_run(Discovery.from_config(config).protocol(local=local)))


def _session_options(config: SessionConfig, target: str | None, local: bool) -> SessionConfig:
    return config.with_options(target=target, local=local or config.local)


async def _open_session(
    config: SessionConfig, browser: str | None, browser_args: tuple[str, ...]
) -> tuple[Session, Any]:
    process = None
    if browser:
        from .process import PipeProcess

        process = PipeProcess.spawn(browser, browser_args)
        config = config.with_options(process=process)
    session = Session(config)
    try:
        await session.wait_ready()
    except BaseException:
        if process is not None:
            await process.close()
        raise
    return session, process


async def _send(
    config: SessionConfig,
    method: str,
    params: dict[str, Any],
    browser: str | None,
    browser_args: tuple[str, ...],
) -> Any:
    session, process = await _open_session(config, browser, browser_args)
    try:
        return await session.send(method, params)
    finally:
        await session.close()
        if process is not None:
            await process.close()


@main.command("send")
@click.argument("method")
@click.argument("params", required=False)
@click.option("--target", "-T", default=None, help="Target id or WebSocket URL")
@click.option("--local", "-l", is_flag=True, help="Use the bundled protocol descriptor")
@click.option("--browser", default=None, help="Launch this browser over pipes instead")
@click.option("--browser-arg", "browser_args", multiple=True, help="Extra browser argument")
@click.pass_obj
def send_command(
    config: SessionConfig,
    method: str,
    params: str | None,
    target: str | None,
    local: bool,
    browser: str | None,
    browser_args: tuple[str, ...],
) -> None:
    """Send METHOD with JSON PARAMS and print the result.

    Examples:

        devtools-remote send Runtime.evaluate '{"expression": "1 + 1"}'

        devtools-remote send Browser.getVersion --browser /usr/bin/chromium \\
            --browser-arg=--headless=new
    """
    session_config = _session_options(config, target, local)
    result = _run(_send(session_config, method, _parse_params(params), browser, browser_args))
    _echo_json(result)


async def _watch(
    config: SessionConfig,
    enable: tuple[str, ...],
    methods: tuple[str, ...],
    count: int | None,
) -> None:
    session, _ = await _open_session(config, None, ())
    done: asyncio.Future[None] = asyncio.get_running_loop().create_future()
    seen = 0

    def on_event(message: dict[str, Any]) -> None:
        nonlocal seen
        if methods and message.get("method") not in methods:
            return
        click.echo(json.dumps(message, ensure_ascii=False, default=str))
        seen += 1
        if count is not None and seen >= count and not done.done():
            done.set_result(None)

    def on_disconnect() -> None:
        if not done.done():
            done.set_result(None)

    session.on("event", on_event)
    session.on("disconnect", on_disconnect)
    try:
        for domain in enable:
            await session.send(f"{domain}.enable")
        await done
    finally:
        await session.close()


@main.command("events")
@click.option("--target", "-T", default=None, help="Target id or WebSocket URL")
@click.option("--local", "-l", is_flag=True, help="Use the bundled protocol descriptor")
@click.option("--enable", "-e", multiple=True, help="Domain to enable first (repeatable)")
@click.option("--method", "-m", "methods", multiple=True, help="Only print these events")
@click.option("--count", "-c", type=int, default=None, help="Exit after this many events")
@click.pass_obj
def events_command(
    config: SessionConfig,
    target: str | None,
    local: bool,
    enable: tuple[str, ...],
    methods: tuple[str, ...],
    count: int | None,
) -> None:
    """Print events as JSON lines until the target disconnects."""
    session_config = _session_options(config, target, local)
    try:
        _run(_watch(session_config, enable, methods, count))
    except KeyboardInterrupt:
        logger.debug("Interrupted")


if __name__ == "__main__":
    main()
