import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from mcpdeck.environment import (
    POSIX_INHERITED_ENV_VARS,
    WINDOWS_INHERITED_ENV_VARS,
    build_process_env,
    default_environment,
    inherited_env_vars,
    resolve_command,
)

HOST = {
    "HOME": "/home/user",
    "PATH": "/usr/bin:/bin",
    "SHELL": "/bin/bash",
    "AWS_SECRET_ACCESS_KEY": "hidden",
    "TERM": "() { :; }; echo pwned",
}


def test_platform_sets() -> None:
    assert inherited_env_vars("linux") == POSIX_INHERITED_ENV_VARS
    assert inherited_env_vars("darwin") == POSIX_INHERITED_ENV_VARS
    assert inherited_env_vars("win32") == WINDOWS_INHERITED_ENV_VARS


def test_default_environment_filters_host() -> None:
    env = default_environment(HOST, "linux")
    assert env == {"HOME": "/home/user", "PATH": "/usr/bin:/bin", "SHELL": "/bin/bash"}


def test_build_process_env_merges_filled_values() -> None:
    env = build_process_env({"API_TOKEN": "secret", "PORT": 8080, "EMPTY": None}, environ=HOST, platform="linux")
    assert env["API_TOKEN"] == "secret"
    assert env["PORT"] == "8080"
    assert env["EMPTY"] == ""
    assert env["HOME"] == "/home/user"
    assert "AWS_SECRET_ACCESS_KEY" not in env


def test_path_always_comes_from_host() -> None:
    env = build_process_env({"PATH": "/opt/evil"}, inherit=False, environ=HOST, platform="linux")
    assert env == {"PATH": "/usr/bin:/bin"}


def test_no_path_on_host() -> None:
    assert build_process_env(None, environ={}, platform="linux") == {}


def test_resolve_command() -> None:
    assert resolve_command("npx", "win32") == "npx.cmd"
    assert resolve_command("npx", "linux") == "npx"
    assert resolve_command("uvx", "win32") == "uvx"
