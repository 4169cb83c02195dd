"""
Server registry and invocation proxy.

The registry owns the server-set document and the last-known state of every
server key. Config mutations go through one asyncio lock and are written to
the store before they replace the in-memory copy. Launcher calls (start, stop,
list, call) never raise to the caller: failures come back as the ``error``
field of a result object.

State per key::

    inactive -> activating -> active -> deactivating -> inactive
    activating | active -> error -> inactive (deactivate or retried activate)
"""
from __future__ import annotations

import asyncio
import copy
import dataclasses
import re
import time
from collections.abc import Callable, Mapping
from typing import Any

from .config import AppConfig
from .environment import build_process_env, resolve_command
from .errors import ConfigImportError, ImportErrorKind
from .filling import fill_args, fill_env
from .launcher import Launcher
from .models import (
    ActivationRequest,
    ActivationResult,
    LaunchSpec,
    ServerConfig,
    ServerDescriptor,
    ServerState,
    ToolCallResult,
    ToolDescriptor,
    ToolListing,
)
from .store import ConfigStore
from .validation import parse_config_text, validate_config

TOOL_NAME_SEPARATOR = "--"

_INSTANCE_NAME_RE = re.compile(r"\s*\(\d+\)\s*$")


class ServerRegistry:
    def __init__(
        self,
        store: ConfigStore,
        launcher: Launcher,
        *,
        settings: Mapping[str, Any] | None = None,
        log: Callable[[str], None] | None = None,
    ) -> None:
        cfg = {**AppConfig().__dict__, **(settings or {})}
        self.store = store
        self.launcher = launcher
        self.log = log
        self.activation_timeout = float(cfg["activation_timeout"])
        self.call_timeout = float(cfg["call_timeout"])
        self.inherit_env = bool(cfg["inherit_env"])
        self.activate_on_start = bool(cfg["activate_on_start"])
        self._config = ServerConfig()
        self._states: dict[str, ServerState] = {}
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    async def init(self) -> ServerConfig:
        async with self._lock:
            self._config = _dedupe(self.store.load())
        if self.activate_on_start:
            for server in self.get_config().servers:
                if not server.is_active:
                    continue
                self._log(f"activating [{server.key}]")
                result = await self.activate(ActivationRequest(key=server.key))
                if not result.ok:
                    self._log(f"fail [{server.key}] ({result.error})")
        return self.get_config()

    def get_config(self) -> ServerConfig:
        return copy.deepcopy(self._config)

    def get_server(self, key: str) -> ServerDescriptor | None:
        server = self._config.find(key)
        return copy.deepcopy(server) if server is not None else None

    async def put_config(self, config: ServerConfig | Mapping[str, Any]) -> bool:
        raw = config.to_dict() if isinstance(config, ServerConfig) else config
        validated, error = validate_config(raw)
        if error is not None:
            self._log(f"rejected MCP config ({error.kind.value}: {error})")
            return False
        async with self._lock:
            return self._commit(_dedupe(validated))

    async def import_config(self, text: str) -> ConfigImportError | None:
        config, error = parse_config_text(text)
        if error is not None:
            self._log(f"import failed ({error.kind.value}: {error})")
            return error
        async with self._lock:
            if not self._commit(_dedupe(config)):
                return ConfigImportError(ImportErrorKind.IMPORT_ERROR, "failed to save the imported MCP config")
        self._log(f"imported {len(config.servers)} MCP server(s)")
        return None

    async def add_server(self, server: ServerDescriptor) -> bool:
        return await self._upsert(server)

    async def update_server(self, server: ServerDescriptor) -> bool:
        return await self._upsert(server)

    async def _upsert(self, server: ServerDescriptor) -> bool:
        if not server.key or not server.command:
            self._log("rejected MCP server: key and command are required")
            return False
        async with self._lock:
            config = copy.deepcopy(self._config)
            _put(config, copy.deepcopy(server))
            return self._commit(config)

    async def duplicate_server(self, key: str) -> ServerDescriptor | None:
        async with self._lock:
            source = self._config.find(key)
            if source is None:
                return None
            config = copy.deepcopy(self._config)
            instance_key, instance = next_instance_key(config.keys(), key)
            clone = dataclasses.replace(copy.deepcopy(source), key=instance_key, is_active=False)
            if clone.name:
                clone.name = f"{_INSTANCE_NAME_RE.sub('', clone.name)} ({instance + 1})"
            config.servers.append(clone)
            if not self._commit(config):
                return None
            return copy.deepcopy(clone)

    async def remove_server(self, key: str) -> bool:
        if self.status(key) not in (ServerState.INACTIVE, ServerState.ERROR):
            self._log(f"cannot remove [{key}] while {self.status(key).value}")
            return False
        async with self._lock:
            config = copy.deepcopy(self._config)
            index = config.index_of(key)
            if index < 0:
                return False
            del config.servers[index]
            if not self._commit(config):
                return False
        self._states.pop(key, None)
        return True

    def _commit(self, config: ServerConfig) -> bool:
        config.updated = int(time.time() * 1000)
        if not self.store.save(config):
            return False
        self._config = config
        return True

    async def _save_active_flag(self, key: str, active: bool, request: ActivationRequest | None = None) -> None:
        # Re-read under the lock: edits made while a launcher call was pending win.
        async with self._lock:
            config = copy.deepcopy(self._config)
            server = config.find(key)
            if server is None:
                if request is None or not request.command:
                    return
                server = ServerDescriptor(key=key, command=request.command)
                config.servers.append(server)
            if request is not None:
                _apply_overrides(server, request)
            server.is_active = active
            self._commit(config)

    # ------------------------------------------------------------------
    # Activation
    # ------------------------------------------------------------------

    def status(self, key: str) -> ServerState:
        return self._states.get(key, ServerState.INACTIVE)

    def _sync_state(self, key: str) -> ServerState:
        # The launcher is the source of truth for running processes.
        state = self.status(key)
        running = key in self.get_active_servers()
        if state is ServerState.ACTIVE and not running:
            self._log(f"[{key}] is no longer running")
            state = ServerState.ERROR
        elif state in (ServerState.INACTIVE, ServerState.ERROR) and running:
            state = ServerState.ACTIVE
        self._states[key] = state
        return state

    def states(self) -> dict[str, ServerState]:
        return {server.key: self.status(server.key) for server in self._config.servers}

    def build_launch(self, request: ActivationRequest) -> tuple[ServerDescriptor, LaunchSpec] | None:
        """Merge request overrides onto the stored server and fill its templates."""
        stored = self._config.find(request.key)
        server = copy.deepcopy(stored) if stored is not None else ServerDescriptor(key=request.key, command="")
        _apply_overrides(server, request)
        if not server.command:
            return None
        argv = fill_args(server.args, request.params, log=self.log)
        env = build_process_env(fill_env(server.env, request.params), inherit=self.inherit_env)
        spec = LaunchSpec(key=server.key, command=resolve_command(server.command), args=argv, env=env)
        return server, spec

    async def activate(self, request: ActivationRequest) -> ActivationResult:
        key = request.key
        state = self._sync_state(key)
        if state in (ServerState.ACTIVATING, ServerState.ACTIVE, ServerState.DEACTIVATING):
            self._log(f"skip [{key}] already {state.value}")
            return ActivationResult(key=key, error=f"MCP server {key} is already {state.value}")
        self._states[key] = ServerState.ACTIVATING
        try:
            return await self._activate(request)
        except asyncio.CancelledError:
            self._states[key] = ServerState.ERROR
            raise

    async def _activate(self, request: ActivationRequest) -> ActivationResult:
        key = request.key
        built = self.build_launch(request)
        if built is None:
            self._states[key] = ServerState.INACTIVE
            return ActivationResult(key=key, error=f"MCP server {key} has no command")
        _, spec = built
        self._log(f"running [{key}] {spec.command}")
        try:
            await asyncio.wait_for(
                self.launcher.start(spec.key, spec.command, spec.args, spec.env),
                timeout=self.activation_timeout,
            )
        except Exception as exc:  # noqa: BLE001
            error = _error_text(exc, self.activation_timeout)
            self._states[key] = ServerState.ERROR
            self._log(f"fail [{key}] ({error})")
            await self._teardown(key)
            stored = self._config.find(key)
            if stored is not None and stored.is_active:
                await self._save_active_flag(key, False)
            return ActivationResult(key=key, error=error)
        self._states[key] = ServerState.ACTIVE
        self._log(f"success [{key}]")
        await self._save_active_flag(key, True, request)
        return ActivationResult(key=key)

    async def deactivate(self, key: str) -> ActivationResult:
        state = self.status(key)
        if state is ServerState.ACTIVATING:
            return ActivationResult(key=key, error=f"MCP server {key} is still activating")
        if state is ServerState.DEACTIVATING:
            return ActivationResult(key=key)
        self._states[key] = ServerState.DEACTIVATING
        try:
            await asyncio.wait_for(self.launcher.stop(key), timeout=self.activation_timeout)
        except asyncio.CancelledError:
            self._states[key] = ServerState.ERROR
            raise
        except Exception as exc:  # noqa: BLE001
            error = _error_text(exc, self.activation_timeout)
            self._states[key] = ServerState.ERROR
            self._log(f"fail [{key}] deactivate ({error})")
            return ActivationResult(key=key, error=error)
        self._states[key] = ServerState.INACTIVE
        server = self._config.find(key)
        if server is not None and server.is_active:
            await self._save_active_flag(key, False)
        return ActivationResult(key=key)

    async def _teardown(self, key: str) -> None:
        try:
            await asyncio.wait_for(self.launcher.stop(key), timeout=self.activation_timeout)
        except Exception as exc:  # noqa: BLE001
            self._log(f"teardown [{key}] failed ({_error_text(exc, self.activation_timeout)})")

    async def close(self) -> None:
        """Stop every running server but keep isActive so init() restores them."""
        for key in list(self.launcher.active_keys()):
            self._log(f"closing MCP client {key}")
            await self._teardown(key)
            self._states[key] = ServerState.INACTIVE

    def get_active_servers(self) -> list[str]:
        return list(self.launcher.active_keys())

    # ------------------------------------------------------------------
    # Tools
    # ------------------------------------------------------------------

    async def list_tools(self, key: str | None = None) -> ToolListing:
        active = self.get_active_servers()
        if key is not None and key not in active:
            return ToolListing(error=f"MCP client {key} not found")
        keys = [key] if key is not None else active
        tools: list[ToolDescriptor] = []
        for client_key in keys:
            try:
                raw_tools = await asyncio.wait_for(self.launcher.list_tools(client_key), timeout=self.call_timeout)
            except Exception as exc:  # noqa: BLE001
                error = _error_text(exc, self.call_timeout)
                self._log(f"fail [{client_key}] list tools ({error})")
                return ToolListing(tools=tools, error=error)
            server = self._config.find(client_key)
            server_name = server.label if server is not None else client_key
            for raw in raw_tools:
                tools.append(
                    ToolDescriptor(
                        name=f"{client_key}{TOOL_NAME_SEPARATOR}{raw.get('name', '')}",
                        tool_name=str(raw.get("name", "")),
                        client_key=client_key,
                        server_name=server_name,
                        description=str(raw.get("description") or ""),
                        input_schema=dict(raw.get("inputSchema") or {}),
                    )
                )
        return ToolListing(tools=tools)

    async def call_tool(self, client: str | None, name: str, args: Mapping[str, Any] | None = None) -> ToolCallResult:
        if not name:
            return ToolCallResult(error="tool name is required")
        active = self.get_active_servers()
        client_key, tool_name = _route_tool_name(name, active)
        if not tool_name:
            return ToolCallResult(
                error=f"invalid tool name format: {name}. Expected format: clientKey{TOOL_NAME_SEPARATOR}toolName"
            )
        client_key = client_key or client
        if not client_key:
            return ToolCallResult(error="client key is required")
        if client_key not in active:
            return ToolCallResult(error=f"MCP client {client_key} not found")
        self._log(f"calling [{client_key}] {tool_name}")
        try:
            result = await asyncio.wait_for(
                self.launcher.call_tool(client_key, tool_name, dict(args or {})),
                timeout=self.call_timeout,
            )
        except Exception as exc:  # noqa: BLE001
            error = _error_text(exc, self.call_timeout)
            self._log(f"fail [{client_key}] {tool_name} ({error})")
            return ToolCallResult(error=error)
        return ToolCallResult(
            content=list(result.get("content") or []),
            is_error=bool(result.get("isError", False)),
        )

    def _log(self, message: str) -> None:
        if self.log:
            self.log(message)


def next_instance_key(existing: list[str], key: str) -> tuple[str, int]:
    """Return the next free ``base-N`` key for another instance of *key*.

    ``fetch`` with ``fetch`` and ``fetch-2`` present yields ``("fetch-3", 3)``.
    """
    head, sep, tail = key.rpartition("-")
    base = head if sep and tail.isdigit() else key
    highest = 0
    for candidate in existing:
        prefix, sep, suffix = candidate.rpartition("-")
        if sep and prefix == base and suffix.isdigit():
            highest = max(highest, int(suffix))
    instance = highest + 1
    return f"{base}-{instance}", instance


def _route_tool_name(name: str, active: list[str]) -> tuple[str | None, str]:
    """Split a qualified tool name into (active client key or None, tool name).

    Keys may themselves contain the separator, so the longest active key that
    prefixes the name wins. Without one, the name splits at the first separator.
    """
    owners = [key for key in active if name.startswith(key + TOOL_NAME_SEPARATOR)]
    if owners:
        owner = max(owners, key=len)
        return owner, name[len(owner) + len(TOOL_NAME_SEPARATOR):]
    _, sep, tool_name = name.partition(TOOL_NAME_SEPARATOR)
    return None, tool_name if sep else ""


def _apply_overrides(server: ServerDescriptor, request: ActivationRequest) -> None:
    if request.command is not None:
        server.command = request.command
    if request.args is not None:
        server.args = list(request.args)
    if request.env is not None:
        server.env = dict(request.env)


def _put(config: ServerConfig, server: ServerDescriptor) -> None:
    index = config.index_of(server.key)
    if index > -1:
        config.servers[index] = server
    else:
        config.servers.append(server)


def _dedupe(config: ServerConfig) -> ServerConfig:
    """Collapse repeated keys: the last descriptor wins, at the first one's position."""
    result = ServerConfig(updated=config.updated)
    for server in config.servers:
        _put(result, server)
    return result


def _error_text(exc: BaseException, timeout: float) -> str:
    if isinstance(exc, asyncio.TimeoutError):
        return f"timed out after {timeout:g}s"
    return str(exc) or type(exc).__name__
