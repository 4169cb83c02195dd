from __future__ import annotations

import os
import sys
from collections.abc import Mapping

WINDOWS_INHERITED_ENV_VARS = (
    "APPDATA",
    "HOMEDRIVE",
    "HOMEPATH",
    "LOCALAPPDATA",
    "PATH",
    "PROCESSOR_ARCHITECTURE",
    "SYSTEMDRIVE",
    "SYSTEMROOT",
    "TEMP",
    "USERNAME",
    "USERPROFILE",
)
# Same set sudo keeps by default.
POSIX_INHERITED_ENV_VARS = ("HOME", "LOGNAME", "PATH", "SHELL", "TERM", "USER")


def inherited_env_vars(platform: str | None = None) -> tuple[str, ...]:
    platform = platform or sys.platform
    return WINDOWS_INHERITED_ENV_VARS if platform == "win32" else POSIX_INHERITED_ENV_VARS


def default_environment(
    environ: Mapping[str, str] | None = None,
    platform: str | None = None,
) -> dict[str, str]:
    """Return only the host variables considered safe to hand to a tool server."""
    source = os.environ if environ is None else environ
    env: dict[str, str] = {}
    for key in inherited_env_vars(platform):
        value = source.get(key)
        if value is None:
            continue
        # Exported shell functions.
        if value.startswith("()"):
            continue
        env[key] = value
    return env


def build_process_env(
    filled_env: Mapping[str, object] | None,
    *,
    inherit: bool = True,
    environ: Mapping[str, str] | None = None,
    platform: str | None = None,
) -> dict[str, str]:
    source = os.environ if environ is None else environ
    merged: dict[str, str] = default_environment(source, platform) if inherit else {}
    for key, value in (filled_env or {}).items():
        merged[key] = "" if value is None else str(value)
    path = source.get("PATH")
    if path is not None:
        merged["PATH"] = path
    return merged


def resolve_command(command: str, platform: str | None = None) -> str:
    platform = platform or sys.platform
    if command == "npx" and platform == "win32":
        return "npx.cmd"
    return command
