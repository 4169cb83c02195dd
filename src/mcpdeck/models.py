from __future__ import annotations

import copy
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

ARG_TYPES = ("string", "list", "number", "object")
ENV_TYPES = ("string", "number")

# Document keys owned by ServerDescriptor; anything else is carried in `extra`.
_DESCRIPTOR_KEYS = {"key", "name", "command", "description", "args", "env", "isActive", "homepage"}


class ServerState(str, Enum):
    INACTIVE = "inactive"
    ACTIVATING = "activating"
    ACTIVE = "active"
    DEACTIVATING = "deactivating"
    ERROR = "error"

    @property
    def busy(self) -> bool:
        return self in (ServerState.ACTIVATING, ServerState.DEACTIVATING)


@dataclass(frozen=True, slots=True)
class Parameter:
    name: str
    type: str
    description: str = ""

    def as_dict(self) -> dict[str, str]:
        return {"name": self.name, "type": self.type, "description": self.description}


@dataclass(slots=True)
class ServerDescriptor:
    key: str
    command: str
    args: list[str] = field(default_factory=list)
    name: str | None = None
    description: str | None = None
    env: dict[str, str] | None = None
    is_active: bool = False
    homepage: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def label(self) -> str:
        return self.name or self.key

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ServerDescriptor":
        extra = {k: copy.deepcopy(v) for k, v in data.items() if k not in _DESCRIPTOR_KEYS}
        raw_args = data.get("args")
        args: list[str] = []
        if isinstance(raw_args, (list, tuple)):
            args = ["" if arg is None else str(arg) for arg in raw_args]
        elif raw_args is not None:
            # Kept verbatim so an export writes back what was imported.
            extra["args"] = copy.deepcopy(raw_args)
        raw_env = data.get("env")
        env: dict[str, Any] | None = None
        if isinstance(raw_env, Mapping):
            env = {str(k): v for k, v in raw_env.items()}
        elif raw_env is not None:
            extra["env"] = copy.deepcopy(raw_env)
        return cls(
            key=str(data.get("key") or ""),
            command=str(data.get("command") or ""),
            args=args,
            name=data.get("name"),
            description=data.get("description"),
            env=env,
            is_active=bool(data.get("isActive", False)),
            homepage=data.get("homepage"),
            extra=extra,
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "key": self.key,
            "name": self.name,
            "command": self.command,
            "description": self.description,
            "args": list(self.args),
            "env": dict(self.env) if self.env is not None else None,
            "isActive": self.is_active,
            "homepage": self.homepage,
        }
        for k, v in self.extra.items():
            # A raw args/env value only stands in while the typed field is empty.
            if k in ("args", "env") and payload[k]:
                continue
            payload[k] = copy.deepcopy(v)
        return {k: v for k, v in payload.items() if v is not None}


@dataclass(slots=True)
class ServerConfig:
    servers: list[ServerDescriptor] = field(default_factory=list)
    updated: int | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ServerConfig":
        servers = [
            ServerDescriptor.from_dict(item)
            for item in data.get("servers") or []
            if isinstance(item, Mapping)
        ]
        updated = data.get("updated")
        return cls(servers=servers, updated=int(updated) if isinstance(updated, (int, float)) else None)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"servers": [server.to_dict() for server in self.servers]}
        if self.updated is not None:
            payload["updated"] = self.updated
        return payload

    def index_of(self, key: str) -> int:
        for index, server in enumerate(self.servers):
            if server.key == key:
                return index
        return -1

    def find(self, key: str) -> ServerDescriptor | None:
        index = self.index_of(key)
        return self.servers[index] if index > -1 else None

    def keys(self) -> list[str]:
        return [server.key for server in self.servers]


# ---------------------------------------------------------------------------
# Caller-supplied parameter values
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Absent:
    pass


@dataclass(frozen=True, slots=True)
class Str:
    value: str


@dataclass(frozen=True, slots=True)
class Num:
    value: int | float


@dataclass(frozen=True, slots=True)
class ListValue:
    items: tuple[Any, ...]


@dataclass(frozen=True, slots=True)
class ObjectValue:
    value: Any


ParameterValue = Union[Absent, Str, Num, ListValue, ObjectValue]
_VARIANTS = (Absent, Str, Num, ListValue, ObjectValue)


def wrap_value(raw: Any) -> ParameterValue:
    """Classify a raw caller value into one of the parameter value variants."""
    if isinstance(raw, _VARIANTS):
        return raw
    if raw is None:
        return Absent()
    if isinstance(raw, bool):
        return Str("true" if raw else "false")
    if isinstance(raw, str):
        return Str(raw)
    if isinstance(raw, (int, float)):
        return Num(raw)
    if isinstance(raw, (list, tuple)):
        return ListValue(tuple(raw))
    return ObjectValue(raw)


def number_text(value: int | float) -> str:
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
    return str(value)


# ---------------------------------------------------------------------------
# Activation / invocation contract
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class ActivationRequest:
    key: str
    command: str | None = None
    args: list[str] | None = None
    env: dict[str, str] | None = None
    params: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class LaunchSpec:
    key: str
    command: str
    args: list[str]
    env: dict[str, str]


@dataclass(frozen=True, slots=True)
class ActivationResult:
    key: str
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True, slots=True)
class ToolDescriptor:
    name: str
    tool_name: str
    client_key: str
    server_name: str
    description: str = ""
    input_schema: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
            "_serverName": self.server_name,
            "_clientKey": self.client_key,
        }


@dataclass(frozen=True, slots=True)
class ToolListing:
    tools: list[ToolDescriptor] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True, slots=True)
class ToolCallResult:
    content: list[dict[str, Any]] = field(default_factory=list)
    is_error: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and not self.is_error
