"""
Typed parameter placeholders embedded in server argument and env templates.

A placeholder reads ``{{name@type}}`` or ``{{name@type::description}}``:

    ["--db-path", "{{dbPath@string::Path to the SQLite file}}"]  ->  dbPath

The name may not contain ``@``, ``{`` or ``}``; the type may not contain ``:``
or ``}``; the description may be empty but may not contain ``}``. A template
carries at most one recognized placeholder: the first ``{{`` that opens a
well-formed one wins and the rest of the string is ignored. Type tokens are
not checked against ARG_TYPES / ENV_TYPES here.
"""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Union

from .models import Parameter, ServerDescriptor

_OPEN = "{{"
_CLOSE = "}}"


@dataclass(frozen=True, slots=True)
class Matched:
    name: str
    type: str
    description: str = ""
    start: int = 0
    end: int = 0

    def as_parameter(self) -> Parameter:
        return Parameter(name=self.name, type=self.type, description=self.description)


@dataclass(frozen=True, slots=True)
class Literal:
    text: str


Parsed = Union[Matched, Literal]


def parse(template: object) -> Parsed:
    if not isinstance(template, str):
        return Literal(str(template) if template is not None else "")
    pos = template.find(_OPEN)
    while pos != -1:
        matched = _scan(template, pos)
        if matched is not None:
            return matched
        pos = template.find(_OPEN, pos + 1)
    return Literal(template)


def parse_parameter(template: object) -> Parameter | None:
    parsed = parse(template)
    if isinstance(parsed, Matched):
        return parsed.as_parameter()
    return None


def _scan(text: str, start: int) -> Matched | None:
    i = start + len(_OPEN)
    name_end = _run(text, i, "@{}")
    if name_end == i or name_end >= len(text) or text[name_end] != "@":
        return None
    name = text[i:name_end]

    i = name_end + 1
    type_end = _run(text, i, ":}")
    if type_end == i or type_end >= len(text):
        return None
    type_ = text[i:type_end]

    description = ""
    i = type_end
    if text.startswith("::", i):
        i += 2
        desc_end = _run(text, i, "}")
        description = text[i:desc_end]
        i = desc_end
    if not text.startswith(_CLOSE, i):
        return None
    return Matched(name=name, type=type_, description=description, start=start, end=i + len(_CLOSE))


def _run(text: str, i: int, stops: str) -> int:
    while i < len(text) and text[i] not in stops:
        i += 1
    return i


def extract_parameters(templates: Iterable[object] | None) -> list[Parameter]:
    if not templates:
        return []
    result: list[Parameter] = []
    for template in templates:
        parameter = parse_parameter(template)
        if parameter is not None:
            result.append(parameter)
    return result


def unique_parameters(parameters: Iterable[Parameter]) -> list[Parameter]:
    """Collapse duplicate names, keeping the first declaration."""
    seen: set[str] = set()
    result: list[Parameter] = []
    for parameter in parameters:
        if parameter.name in seen:
            continue
        seen.add(parameter.name)
        result.append(parameter)
    return result


def server_parameters(server: ServerDescriptor) -> tuple[list[Parameter], list[Parameter]]:
    env: Mapping[str, object] = server.env or {}
    return extract_parameters(server.args), extract_parameters(env.values())
