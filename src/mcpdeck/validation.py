from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

import yaml

from .errors import ConfigImportError, ImportErrorKind
from .models import ServerConfig

REQUIRED_SERVER_FIELDS = ("key", "command")


def validate_config(raw: Any) -> tuple[ServerConfig | None, ConfigImportError | None]:
    """Check a server-set document before it is accepted.

    Only structure is checked: the servers array and each server's key and
    command. Placeholders, args/env types and key uniqueness pass through.
    """
    servers = raw.get("servers") if isinstance(raw, Mapping) else None
    if not isinstance(servers, list):
        return None, ConfigImportError(
            ImportErrorKind.INVALID_CONFIG,
            "invalid MCP config: expected a 'servers' array",
        )
    for index, server in enumerate(servers):
        if not isinstance(server, Mapping):
            return None, ConfigImportError(
                ImportErrorKind.INVALID_SERVER,
                f"invalid MCP server at index {index}: expected an object",
                index=index,
            )
        for field in REQUIRED_SERVER_FIELDS:
            if not server.get(field):
                return None, ConfigImportError(
                    ImportErrorKind.INVALID_SERVER,
                    f"invalid MCP server at index {index}: '{field}' is required",
                    index=index,
                    field=field,
                )
    return ServerConfig.from_dict(raw), None


def parse_config_text(text: str) -> tuple[ServerConfig | None, ConfigImportError | None]:
    if not text or not text.strip():
        return None, ConfigImportError(ImportErrorKind.IMPORT_ERROR, "nothing to import")
    cleaned = text.strip()
    if cleaned.startswith("```") and cleaned.endswith("```"):
        cleaned = "\n".join(cleaned.splitlines()[1:-1]).strip()

    parsed: object
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        try:
            parsed = yaml.safe_load(cleaned)
        except yaml.YAMLError as exc:
            return None, ConfigImportError(ImportErrorKind.IMPORT_ERROR, f"invalid MCP config text: {exc}")
    return validate_config(parsed)
