from __future__ import annotations

import argparse
import asyncio
import json
import shlex
import sys
from pathlib import Path
from typing import Any

from .app import main as app_main
from .config import load_config
from .environment import build_process_env, resolve_command
from .filling import fill_args, fill_env
from .launcher import StdioLauncher
from .placeholders import server_parameters, unique_parameters
from .registry import ServerRegistry
from .store import ConfigStore


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mcpdeck",
        description="Manage MCP tool servers: templated launch configs, import/export and a Textual control panel.",
    )
    parser.add_argument("--config", help="Path to the MCP server config (default from config.yml)")
    subparsers = parser.add_subparsers(dest="command")

    servers_parser = subparsers.add_parser("servers", help="List configured MCP servers")
    servers_parser.set_defaults(func=servers_command)

    params_parser = subparsers.add_parser("params", help="Show the parameters a server's templates declare")
    params_parser.add_argument("key", help="Server key")
    params_parser.set_defaults(func=params_command)

    fill_parser = subparsers.add_parser("fill", help="Print the command line and env a server would launch with")
    fill_parser.add_argument("key", help="Server key")
    fill_parser.add_argument(
        "-p",
        "--param",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Parameter value; JSON lists/objects/numbers are decoded (repeatable)",
    )
    fill_parser.add_argument("--no-inherit-env", action="store_true", help="Only print the server's own env")
    fill_parser.set_defaults(func=fill_command)

    import_parser = subparsers.add_parser("import", help="Validate and replace the config with a JSON/YAML file")
    import_parser.add_argument("file", help="File to import ('-' for stdin)")
    import_parser.set_defaults(func=import_command)

    export_parser = subparsers.add_parser("export", help="Print the config as JSON")
    export_parser.set_defaults(func=export_command)

    subparsers.add_parser("tui", help="Open the Textual control panel (default)")

    return parser


def _store(args: argparse.Namespace) -> ConfigStore:
    path = getattr(args, "config", None) or load_config()["mcp_config_path"]
    return ConfigStore(Path(path).expanduser(), log=_stderr)


def _stderr(message: str) -> None:
    print(message, file=sys.stderr)


def parse_param(text: str) -> tuple[str, Any]:
    name, sep, raw = text.partition("=")
    if not sep or not name:
        raise ValueError(f"expected NAME=VALUE, got {text!r}")
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        return name, raw
    # Plain JSON strings/bools/null stay as typed text.
    if isinstance(value, (list, dict, int, float)) and not isinstance(value, bool):
        return name, value
    return name, raw


def servers_command(args: argparse.Namespace) -> int:
    config = _store(args).load()
    if not config.servers:
        print("No MCP servers configured.")
        return 0
    for server in config.servers:
        flag = "*" if server.is_active else " "
        line = shlex.join([server.command, *server.args])
        print(f"{flag} {server.key:<24} {server.label:<24} {line}")
    return 0


def params_command(args: argparse.Namespace) -> int:
    server = _store(args).load().find(args.key)
    if server is None:
        print(f"Unknown MCP server: {args.key}")
        return 1
    arg_params, env_params = server_parameters(server)
    if not arg_params and not env_params:
        print(f"{args.key} declares no parameters.")
        return 0
    for title, params in (("args", arg_params), ("env", env_params)):
        for param in unique_parameters(params):
            detail = f"  {param.description}" if param.description else ""
            print(f"{title:<4} {param.name} ({param.type}){detail}")
    return 0


def fill_command(args: argparse.Namespace) -> int:
    server = _store(args).load().find(args.key)
    if server is None:
        print(f"Unknown MCP server: {args.key}")
        return 1
    try:
        values = dict(parse_param(item) for item in args.param)
    except ValueError as exc:
        print(str(exc))
        return 2
    argv = fill_args(server.args, values, log=_stderr)
    filled_env = fill_env(server.env, values)
    env = filled_env if args.no_inherit_env else build_process_env(filled_env)
    print(shlex.join([resolve_command(server.command), *argv]))
    for key in sorted(env):
        print(f"{key}={env[key]}")
    return 0


def import_command(args: argparse.Namespace) -> int:
    try:
        if args.file == "-":
            text = sys.stdin.read()
        else:
            text = Path(args.file).expanduser().read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        print(f"ImportError: cannot read {args.file}: {exc}")
        return 1
    registry = ServerRegistry(_store(args), StdioLauncher(), log=_stderr)
    error = asyncio.run(registry.import_config(text))
    if error is not None:
        print(f"{error.kind.value}: {error}")
        return 1
    print(f"Imported {len(registry.get_config().servers)} MCP server(s).")
    return 0


def export_command(args: argparse.Namespace) -> int:
    print(ConfigStore.dumps(_store(args).load()))
    return 0


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    if not args.command or args.command == "tui":
        app_main(config_path=getattr(args, "config", None))
        return
    if hasattr(args, "func"):
        sys.exit(args.func(args))
    parser.print_help()
    sys.exit(2)


if __name__ == "__main__":
    main()
