from __future__ import annotations

import json
import shlex
from typing import Any

from textual import events
from textual.app import ComposeResult
from textual.containers import Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label, TextArea

from ..models import Parameter, ServerConfig
from ..validation import parse_config_text


def coerce_value(param_type: str, text: str) -> Any:
    """Turn dialog input into a parameter value of the declared type."""
    cleaned = text.strip()
    if not cleaned:
        return None
    if param_type == "list":
        try:
            decoded = json.loads(cleaned)
        except json.JSONDecodeError:
            decoded = None
        if isinstance(decoded, list):
            return decoded
        try:
            return shlex.split(cleaned)
        except ValueError:
            return cleaned.split()
    if param_type == "number":
        try:
            return int(cleaned)
        except ValueError:
            pass
        try:
            return float(cleaned)
        except ValueError:
            return cleaned
    if param_type == "object":
        try:
            return json.loads(cleaned)
        except json.JSONDecodeError:
            return cleaned
    return cleaned


class ImportConfigModal(ModalScreen[ServerConfig | None]):
    def compose(self) -> ComposeResult:
        with Vertical(id="import-modal"):
            yield Label("Import MCP config (JSON or YAML)")
            yield TextArea(id="import-text")
            yield Label("", id="import-error")
            yield Button("Import", id="import")
            yield Button("Cancel", id="cancel")

    def on_mount(self) -> None:
        self.set_focus(self.query_one("#import-text", TextArea))

    def submit(self) -> None:
        text = self.query_one("#import-text", TextArea).text
        config, error = parse_config_text(text)
        if error is not None:
            self.query_one("#import-error", Label).update(f"{error.kind.value}: {error}")
            return
        self.dismiss(config)

    def on_text_area_changed(self, _: TextArea.Changed) -> None:
        self.query_one("#import-error", Label).update("")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "cancel":
            self.dismiss(None)
            return
        if event.button.id == "import":
            self.submit()

    def on_key(self, event: events.Key) -> None:
        if event.key == "ctrl+s":
            self.submit()
            event.stop()
            return
        if event.key == "escape":
            self.dismiss(None)
            event.stop()


class ParametersModal(ModalScreen[dict | None]):
    def __init__(self, key: str, parameters: list[Parameter]) -> None:
        super().__init__()
        self.key = key
        self.parameters = parameters

    def compose(self) -> ComposeResult:
        with VerticalScroll(id="params-modal"):
            yield Label(f"Parameters for {self.key}")
            for index, param in enumerate(self.parameters):
                yield Label(f"{param.name} ({param.type})")
                yield Input(placeholder=param.description or param.name, id=f"param-{index}")
            yield Button("Activate", id="activate")
            yield Button("Cancel", id="cancel")

    def on_mount(self) -> None:
        if self.parameters:
            self.set_focus(self.query_one("#param-0", Input))

    def values(self) -> dict[str, Any]:
        return {
            param.name: coerce_value(param.type, self.query_one(f"#param-{index}", Input).value)
            for index, param in enumerate(self.parameters)
        }

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "cancel":
            self.dismiss(None)
            return
        if event.button.id == "activate":
            self.dismiss(self.values())

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id == f"param-{len(self.parameters) - 1}":
            self.dismiss(self.values())

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            self.dismiss(None)
            event.stop()
