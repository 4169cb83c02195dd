from __future__ import annotations

import json
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from .models import Absent, ListValue, Num, ObjectValue, Str, number_text, wrap_value
from .placeholders import Matched, parse


def fill_args(
    args: Iterable[str],
    params: Mapping[str, Any] | None,
    *,
    log: Callable[[str], None] | None = None,
) -> list[str]:
    """Resolve argument templates into a concrete argv.

    A template holding a placeholder is replaced as a whole by the value of
    that parameter, so ``"prefix-{{x@string}}"`` becomes just the value of x.
    List values expand into one argv entry per item.
    """
    values = params or {}
    filled: list[str] = []
    for arg in args:
        parsed = parse(arg)
        if not isinstance(parsed, Matched):
            filled.append(arg)
            continue
        filled.extend(_expand(parsed.name, wrap_value(values.get(parsed.name)), log))
    return filled


def _expand(name: str, value: Any, log: Callable[[str], None] | None) -> list[str]:
    if isinstance(value, Absent):
        return [""]
    if isinstance(value, Str):
        return [value.value]
    if isinstance(value, Num):
        return [number_text(value.value)]
    if isinstance(value, ListValue):
        return [_item_text(item) for item in value.items]
    if isinstance(value, ObjectValue):
        try:
            return [json.dumps(value.value, ensure_ascii=False, separators=(",", ":"))]
        except (TypeError, ValueError) as exc:
            if log:
                log(f"failed to serialize object parameter [{name}]: {exc}")
            return [""]
    raise TypeError(f"unsupported parameter value for {name}: {value!r}")


def _item_text(item: Any) -> str:
    if item is None:
        return ""
    if isinstance(item, bool):
        return "true" if item else "false"
    if isinstance(item, (int, float)):
        return number_text(item)
    return str(item)


def fill_env(
    env: Mapping[str, Any] | None,
    params: Mapping[str, Any] | None,
) -> dict[str, Any]:
    """Resolve env templates; literal values and the key set are preserved."""
    if not env:
        return {}
    values = params or {}
    filled = dict(env)
    for key, template in env.items():
        if not isinstance(template, str):
            continue
        parsed = parse(template)
        if isinstance(parsed, Matched):
            filled[key] = _env_text(values.get(parsed.name))
    return filled


def _env_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return number_text(value)
    return str(value)
