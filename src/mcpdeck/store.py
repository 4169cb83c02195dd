from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path

from .models import ServerConfig

DEFAULT_STORE_PATH = Path.home() / ".config" / "mcpdeck" / "mcp.json"


class ConfigStore:
    """JSON file holding the server-set document.

    Read failures fall back to an empty config and write failures return
    False, so a broken file never takes the registry down with it.
    """

    def __init__(self, path: Path | None = None, *, log: Callable[[str], None] | None = None) -> None:
        self.path = path or DEFAULT_STORE_PATH
        self.log = log

    def load(self) -> ServerConfig:
        try:
            if not self.path.exists():
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self.path.write_text(json.dumps({"servers": []}, indent=2), encoding="utf-8")
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            self._log(f"failed to read MCP config {self.path}: {exc}")
            return ServerConfig()
        if not isinstance(raw, dict):
            self._log(f"ignoring MCP config {self.path}: expected an object")
            return ServerConfig()
        return ServerConfig.from_dict(raw)

    def save(self, config: ServerConfig) -> bool:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(".tmp")
            tmp_path.write_text(self.dumps(config), encoding="utf-8")
            tmp_path.replace(self.path)
        except OSError as exc:
            self._log(f"failed to write MCP config {self.path}: {exc}")
            return False
        return True

    @staticmethod
    def dumps(config: ServerConfig) -> str:
        return json.dumps(config.to_dict(), indent=2, ensure_ascii=False)

    def _log(self, message: str) -> None:
        if self.log:
            self.log(message)
