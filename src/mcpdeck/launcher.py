"""
Process launchers for tool servers.

The registry never spawns anything itself: it hands a filled command, argv
and environment to a ``Launcher`` and routes tool calls back through it.
``StdioLauncher`` is the default implementation and leaves the wire protocol
to the ``mcp`` client SDK. It does not restart servers that exit.
"""
from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client

from .errors import LauncherError


class Launcher(Protocol):
    async def start(self, key: str, command: str, args: list[str], env: dict[str, str]) -> None: ...

    async def stop(self, key: str) -> None: ...

    async def list_tools(self, key: str) -> list[dict[str, Any]]: ...

    async def call_tool(self, key: str, name: str, arguments: dict[str, Any]) -> dict[str, Any]: ...

    def active_keys(self) -> list[str]: ...


@dataclass
class _Connection:
    key: str
    ready: asyncio.Event = field(default_factory=asyncio.Event)
    closing: asyncio.Event = field(default_factory=asyncio.Event)
    session: ClientSession | None = None
    failure: BaseException | None = None
    task: asyncio.Task[None] | None = None


class StdioLauncher:
    def __init__(self, *, log: Callable[[str], None] | None = None) -> None:
        self.log = log
        self._connections: dict[str, _Connection] = {}

    def active_keys(self) -> list[str]:
        return [key for key, conn in self._connections.items() if conn.session is not None]

    async def start(self, key: str, command: str, args: list[str], env: dict[str, str]) -> None:
        existing = self._connections.get(key)
        if existing is not None:
            if existing.session is not None:
                raise LauncherError(f"MCP client {key} is already running", key=key)
            # Server exited on its own; drop the dead connection.
            await self.stop(key)
        conn = _Connection(key=key)
        self._connections[key] = conn
        params = StdioServerParameters(command=command, args=list(args), env=dict(env))
        conn.task = asyncio.create_task(self._serve(conn, params))
        try:
            await conn.ready.wait()
        except asyncio.CancelledError:
            await self.stop(key)
            raise
        if conn.session is None:
            self._connections.pop(key, None)
            await asyncio.gather(conn.task, return_exceptions=True)
            raise LauncherError(f"MCP client {key} failed to start: {_describe(conn.failure)}", key=key)
        self._log(f"started [{key}] {command}")

    async def _serve(self, conn: _Connection, params: StdioServerParameters) -> None:
        # The transport and session are entered and exited by this one task,
        # which the SDK's task groups require.
        try:
            async with stdio_client(params) as (read, write):
                async with ClientSession(read, write) as session:
                    await session.initialize()
                    conn.session = session
                    conn.ready.set()
                    await conn.closing.wait()
        except Exception as exc:  # noqa: BLE001
            conn.failure = exc
            if conn.session is not None:
                self._log(f"connection lost [{conn.key}] ({_describe(exc)})")
        finally:
            conn.session = None
            conn.ready.set()

    async def stop(self, key: str) -> None:
        conn = self._connections.pop(key, None)
        if conn is None:
            return
        conn.closing.set()
        if conn.task is not None:
            if not conn.ready.is_set():
                conn.task.cancel()
            await asyncio.gather(conn.task, return_exceptions=True)
        self._log(f"stopped [{key}]")

    async def close(self) -> None:
        for key in list(self._connections):
            await self.stop(key)

    async def list_tools(self, key: str) -> list[dict[str, Any]]:
        session = self._session(key)
        try:
            response = await session.list_tools()
        except Exception as exc:  # noqa: BLE001
            raise LauncherError(f"listing tools on {key} failed: {_describe(exc)}", key=key) from exc
        return [
            {
                "name": tool.name,
                "description": tool.description or "",
                "inputSchema": dict(tool.inputSchema or {}),
            }
            for tool in response.tools
        ]

    async def call_tool(self, key: str, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
        session = self._session(key)
        try:
            result = await session.call_tool(name, arguments)
        except Exception as exc:  # noqa: BLE001
            raise LauncherError(f"calling {name} on {key} failed: {_describe(exc)}", key=key) from exc
        return {
            "content": [block.model_dump(mode="json", exclude_none=True) for block in result.content],
            "isError": bool(result.isError),
        }

    def _session(self, key: str) -> ClientSession:
        conn = self._connections.get(key)
        if conn is None or conn.session is None:
            raise LauncherError(f"MCP client {key} not found", key=key)
        return conn.session

    def _log(self, message: str) -> None:
        if self.log:
            self.log(message)


def _describe(exc: BaseException | None) -> str:
    if exc is None:
        return "server exited"
    # anyio task groups wrap the real failure.
    if isinstance(exc, BaseExceptionGroup) and exc.exceptions:
        return _describe(exc.exceptions[0])
    return str(exc) or type(exc).__name__
