from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from textual.binding import Binding


@dataclass(frozen=True)
class KeybindSpec:
    key: str
    action: str
    label: str


KEYBINDS: list[KeybindSpec] = [
    KeybindSpec("f1", "help", "Help"),
    KeybindSpec("f2", "activate", "Activate"),
    KeybindSpec("f3", "deactivate", "Deactivate"),
    KeybindSpec("f4", "tools", "Tools"),
    KeybindSpec("f5", "import_config", "Import"),
    KeybindSpec("f6", "duplicate", "Duplicate"),
    KeybindSpec("f7", "remove", "Remove"),
    KeybindSpec("f8", "refresh", "Refresh"),
    KeybindSpec("f12", "quit", "Quit"),
    KeybindSpec("ctrl+h", "help", "Help"),
]


def binding_list() -> list["Binding"]:
    from textual.binding import Binding

    return [Binding(spec.key, spec.action, spec.label, priority=True) for spec in KEYBINDS]


def display_key(key: str) -> str:
    key_lower = key.lower()
    if key_lower.startswith("f") and key_lower[1:].isdigit():
        return key_lower.upper()
    if key_lower.startswith("ctrl+") and len(key_lower) == 6:
        return f"^{key_lower[-1].upper()}"
    return key


def render_keybinds(hidden: Collection[str] = ()) -> str:
    return "  ".join(f"{display_key(spec.key)} {spec.label}" for spec in KEYBINDS if spec.action not in hidden)
