from __future__ import annotations

from textual.widgets import Static

from ..models import ServerState
from .keybinds import render_keybinds


def hidden_actions(state: ServerState | None) -> frozenset[str]:
    """Actions that do nothing for a server in *state*."""
    if state is None:
        return frozenset({"activate", "deactivate", "duplicate", "remove"})
    if state is ServerState.ACTIVE:
        return frozenset({"activate", "remove"})
    if state.busy:
        return frozenset({"activate", "deactivate", "remove"})
    return frozenset({"deactivate"})


class KeybindBar(Static):
    def on_mount(self) -> None:
        self.show_for(None)

    def show_for(self, state: ServerState | None) -> None:
        self.update(render_keybinds(hidden_actions(state)))
