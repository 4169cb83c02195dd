from __future__ import annotations

import asyncio
import shlex
from pathlib import Path
from typing import Any

from textual.app import App, ComposeResult
from textual.containers import Vertical
from textual.widgets import DataTable, Header, Log, Static

from .config import load_config
from .launcher import StdioLauncher
from .models import ActivationRequest, ServerConfig, ServerState
from .placeholders import server_parameters, unique_parameters
from .registry import ServerRegistry
from .store import ConfigStore
from .ui.keybind_bar import KeybindBar
from .ui.keybinds import binding_list, render_keybinds
from .ui.modals import ImportConfigModal, ParametersModal

STATE_LABELS = {
    ServerState.INACTIVE: "inactive",
    ServerState.ACTIVATING: "activating…",
    ServerState.ACTIVE: "● active",
    ServerState.DEACTIVATING: "deactivating…",
    ServerState.ERROR: "✖ error",
}


class MCPDeckApp(App):
    CSS = """
    Screen { background: #090b12; color: #d7e6ff; }
    Header { background: #160a24; color: #b388ff; }
    #status { height: 1; background: #120820; color: #64ffff; padding: 0 1; }
    #servers { height: 1fr; border: round #29f0ff; }
    .pane-title { color: #b388ff; padding: 0 1; }
    #logpane { height: 12; border: round #8a4dff; background: #0f1320; }
    #keybind-bar { height: 1; background: #160a24; color: #b388ff; }
    #import-modal, #params-modal { width: 80; height: auto; max-height: 90%; border: round #29f0ff; background: #111426; padding: 1 2; }
    #import-text { height: 14; }
    #import-error { color: #ff5c8a; }
    """
    BINDINGS = binding_list()

    def __init__(self, registry: ServerRegistry | None = None, *, config_path: str | None = None) -> None:
        super().__init__()
        self._pending_log: list[str] = []
        self._mounted = False
        if registry is None:
            cfg = load_config()
            path = Path(config_path or cfg["mcp_config_path"]).expanduser()
            registry = ServerRegistry(
                ConfigStore(path, log=self.log_line),
                StdioLauncher(log=self.log_line),
                settings=cfg,
                log=self.log_line,
            )
        elif registry.log is None:
            registry.log = self.log_line
        self.registry = registry
        self.init_task: asyncio.Task[None] | None = None
        self._row_keys: list[str] = []

    def compose(self) -> ComposeResult:
        yield Header()
        with Vertical(id="app"):
            yield Static("", id="status")
            yield DataTable(id="servers", cursor_type="row", zebra_stripes=True)
            yield Static("Log", classes="pane-title")
            yield Log(id="logpane", auto_scroll=True)
        yield KeybindBar(id="keybind-bar")

    async def on_mount(self) -> None:
        self._mounted = True
        logpane = self.query_one("#logpane", Log)
        for line in self._pending_log:
            logpane.write_line(line)
        self._pending_log.clear()
        table = self.query_one("#servers", DataTable)
        table.add_columns("Key", "Name", "State", "Command")
        self.set_focus(table)
        self.init_task = asyncio.create_task(self._init_registry())

    async def _init_registry(self) -> None:
        await self.registry.init()
        self.refresh_servers()

    async def on_unmount(self) -> None:
        await self.registry.close()

    def log_line(self, message: str) -> None:
        if not self._mounted:
            self._pending_log.append(message)
            return
        self.query_one("#logpane", Log).write_line(message)

    def refresh_servers(self) -> None:
        table = self.query_one("#servers", DataTable)
        table.clear()
        config = self.registry.get_config()
        self._row_keys = []
        for server in config.servers:
            state = self.registry.status(server.key)
            table.add_row(server.key, server.label, STATE_LABELS[state], shlex.join([server.command, *server.args]))
            self._row_keys.append(server.key)
        active = self.registry.get_active_servers()
        self.query_one("#status", Static).update(f"{len(config.servers)} servers | {len(active)} active")
        self.update_keybind_bar()

    def update_keybind_bar(self) -> None:
        key = self.selected_key()
        state = self.registry.status(key) if key is not None else None
        self.query_one("#keybind-bar", KeybindBar).show_for(state)

    def on_data_table_row_highlighted(self, _: DataTable.RowHighlighted) -> None:
        self.update_keybind_bar()

    def selected_key(self) -> str | None:
        table = self.query_one("#servers", DataTable)
        row = table.cursor_row
        if 0 <= row < len(self._row_keys):
            return self._row_keys[row]
        return None

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def action_help(self) -> None:
        self.log_line(render_keybinds())

    def action_refresh(self) -> None:
        self.refresh_servers()

    async def action_activate(self) -> None:
        key = self.selected_key()
        server = self.registry.get_server(key) if key else None
        if server is None:
            return
        arg_params, env_params = server_parameters(server)
        params = unique_parameters([*arg_params, *env_params])
        if not params:
            await self.activate_server(server.key, {})
            return

        def _on_values(values: dict | None) -> None:
            if values is not None:
                asyncio.create_task(self.activate_server(server.key, values))

        self.push_screen(ParametersModal(server.key, params), callback=_on_values)

    async def activate_server(self, key: str, values: dict[str, Any]) -> None:
        pending = asyncio.create_task(self.registry.activate(ActivationRequest(key=key, params=values)))
        await asyncio.sleep(0)
        self.refresh_servers()
        result = await pending
        if result.ok:
            self.notify(f"{key} activated")
        else:
            self.notify(f"{key}: {result.error}", severity="error")
        self.refresh_servers()

    async def action_deactivate(self) -> None:
        key = self.selected_key()
        if key is None:
            return
        result = await self.registry.deactivate(key)
        if result.ok:
            self.notify(f"{key} deactivated")
        else:
            self.notify(f"{key}: {result.error}", severity="error")
        self.refresh_servers()

    async def action_tools(self) -> None:
        key = self.selected_key()
        listing = await self.registry.list_tools(key if key in self.registry.get_active_servers() else None)
        if not listing.ok:
            self.log_line(f"[tools] {listing.error}")
        if not listing.tools:
            self.log_line("[tools] no tools available")
        for tool in listing.tools:
            detail = f" - {tool.description}" if tool.description else ""
            self.log_line(f"[tools] {tool.name}{detail}")

    def action_import_config(self) -> None:
        def _on_config(config: ServerConfig | None) -> None:
            if config is not None:
                asyncio.create_task(self.apply_import(config))

        self.push_screen(ImportConfigModal(), callback=_on_config)

    async def apply_import(self, config: ServerConfig) -> None:
        if await self.registry.put_config(config):
            self.notify(f"Imported {len(config.servers)} MCP server(s)")
        else:
            self.notify("Import failed", severity="error")
        self.refresh_servers()

    async def action_duplicate(self) -> None:
        key = self.selected_key()
        if key is None:
            return
        clone = await self.registry.duplicate_server(key)
        if clone is not None:
            self.log_line(f"added [{clone.key}] {clone.label}")
        self.refresh_servers()

    async def action_remove(self) -> None:
        key = self.selected_key()
        if key is None:
            return
        if await self.registry.remove_server(key):
            self.log_line(f"removed [{key}]")
        else:
            self.notify(f"Cannot remove {key}", severity="warning")
        self.refresh_servers()


def main(config_path: str | None = None) -> None:
    MCPDeckApp(config_path=config_path).run()


if __name__ == "__main__":
    main()
