import sys
from pathlib import Path

import yaml

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from mcpdeck.config import AppConfig, _validate, load_config, save_config


def test_load_config_writes_defaults(tmp_path: Path) -> None:
    path = tmp_path / "config.yml"
    cfg = load_config(path)
    assert cfg["activation_timeout"] == AppConfig().activation_timeout
    assert cfg["inherit_env"] is True
    assert yaml.safe_load(path.read_text(encoding="utf-8")) == cfg


def test_invalid_values_fall_back_to_defaults() -> None:
    cfg = _validate({"activation_timeout": -5, "call_timeout": "soon", "mcp_config_path": "", "inherit_env": 1})
    defaults = AppConfig()
    assert cfg["activation_timeout"] == defaults.activation_timeout
    assert cfg["call_timeout"] == defaults.call_timeout
    assert cfg["mcp_config_path"] == defaults.mcp_config_path
    assert cfg["inherit_env"] is True


def test_unknown_keys_are_dropped() -> None:
    cfg = _validate({"theme": "cyberpunk", "inherit_env": False})
    assert "theme" not in cfg
    assert cfg["inherit_env"] is False


def test_activate_on_start_needs_current_version() -> None:
    assert _validate({"activate_on_start": False})["activate_on_start"] is True
    assert _validate({"activate_on_start": False, "config_version": 2})["activate_on_start"] is False


def test_save_then_load(tmp_path: Path) -> None:
    path = tmp_path / "config.yml"
    save_config({"call_timeout": 30, "mcp_config_path": str(tmp_path / "mcp.json")}, path)
    cfg = load_config(path)
    assert cfg["call_timeout"] == 30.0
    assert cfg["mcp_config_path"] == str(tmp_path / "mcp.json")
    assert cfg["config_version"] == 2
