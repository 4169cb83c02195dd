from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

CONFIG_DIR = Path.home() / ".config" / "mcpdeck"
CONFIG_PATH = CONFIG_DIR / "config.yml"

# Server document location – override via MCPDECK_CONFIG_PATH env var or config file.
_DEFAULT_MCP_CONFIG_PATH = os.environ.get("MCPDECK_CONFIG_PATH", str(CONFIG_DIR / "mcp.json"))


@dataclass(frozen=True)
class AppConfig:
    mcp_config_path: str = _DEFAULT_MCP_CONFIG_PATH
    activation_timeout: float = 60.0   # seconds allowed for a server to start and initialize
    call_timeout: float = 120.0        # seconds allowed for list_tools / call_tool
    inherit_env: bool = True           # pass the safe host variables (HOME, PATH, ...) to servers
    activate_on_start: bool = True     # re-activate servers saved with isActive on init
    config_version: int = 2


def _validate(cfg: dict[str, Any]) -> dict[str, Any]:
    defaults = AppConfig().__dict__.copy()
    merged = {**defaults, **cfg}
    raw_version = cfg.get("config_version", 1)
    if isinstance(raw_version, (int, str)) and str(raw_version).isdigit():
        cfg_version = int(raw_version)
    else:
        cfg_version = 1
    if not isinstance(merged.get("mcp_config_path"), str) or not merged["mcp_config_path"].strip():
        merged["mcp_config_path"] = defaults["mcp_config_path"]
    raw_at = merged.get("activation_timeout", defaults["activation_timeout"])
    merged["activation_timeout"] = float(raw_at) if isinstance(raw_at, (int, float)) and raw_at > 0 else defaults["activation_timeout"]
    raw_ct = merged.get("call_timeout", defaults["call_timeout"])
    merged["call_timeout"] = float(raw_ct) if isinstance(raw_ct, (int, float)) and raw_ct > 0 else defaults["call_timeout"]
    merged["inherit_env"] = bool(merged.get("inherit_env", defaults["inherit_env"]))
    # activate_on_start added in config_version 2
    if cfg_version < 2:
        merged["activate_on_start"] = defaults["activate_on_start"]
    else:
        merged["activate_on_start"] = bool(merged.get("activate_on_start", defaults["activate_on_start"]))
    merged["config_version"] = defaults["config_version"]
    return {k: merged[k] for k in defaults}


def load_config(path: Path = CONFIG_PATH) -> dict[str, Any]:
    path.parent.mkdir(parents=True, exist_ok=True)
    if not path.exists():
        cfg = _validate({})
        save_config(cfg, path)
        return cfg

    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    cfg = _validate(raw if isinstance(raw, dict) else {})
    if cfg != raw:
        save_config(cfg, path)
    return cfg


def save_config(cfg: dict[str, Any], path: Path = CONFIG_PATH) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    validated = _validate(cfg)
    tmp_path = path.with_suffix(".tmp")
    tmp_path.write_text(yaml.safe_dump(validated, sort_keys=True), encoding="utf-8")
    tmp_path.replace(path)
