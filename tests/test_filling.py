from __future__ import annotations

import sys
from pathlib import Path

import pytest
from hypothesis import given
from hypothesis import strategies as st

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from mcpdeck.filling import fill_args, fill_env
from mcpdeck.models import Absent, ListValue, ObjectValue, Str


# ---------------------------------------------------------------------------
# fill_args
# ---------------------------------------------------------------------------

def test_literal_args_pass_through() -> None:
    args = ["-y", "@modelcontextprotocol/server-filesystem", "--flag=1", "{not a placeholder}"]
    assert fill_args(args, {}) == args


def test_list_value_expands_arity() -> None:
    assert fill_args(["--tag", "{{t@list}}"], {"t": ["a", "b"]}) == ["--tag", "a", "b"]


def test_empty_list_contributes_nothing() -> None:
    assert fill_args(["--tag", "{{t@list}}", "--end"], {"t": []}) == ["--tag", "--end"]


def test_list_items_are_stringified() -> None:
    assert fill_args(["{{t@list}}"], {"t": ["a", None, 3, 2.0, True]}) == ["a", "", "3", "2", "true"]


def test_missing_parameter_is_empty_string() -> None:
    assert fill_args(["{{x@string}}"], {}) == [""]
    assert fill_args(["{{x@string}}"], None) == [""]


def test_none_parameter_is_empty_string() -> None:
    assert fill_args(["{{x@string}}"], {"x": None}) == [""]


def test_primitives_are_coerced() -> None:
    args = ["{{s@string}}", "{{n@number}}", "{{f@number}}", "{{b@string}}"]
    assert fill_args(args, {"s": "hello", "n": 8080, "f": 0.5, "b": False}) == ["hello", "8080", "0.5", "false"]


def test_object_is_serialized_compactly() -> None:
    assert fill_args(["--cfg", "{{c@object}}"], {"c": {"a": 1, "b": [1, 2]}}) == ["--cfg", '{"a":1,"b":[1,2]}']


def test_unserializable_object_degrades_to_empty_string() -> None:
    messages: list[str] = []
    result = fill_args(["--cfg", "{{c@object}}"], {"c": {"bad": {1, 2}}}, log=messages.append)
    assert result == ["--cfg", ""]
    assert len(messages) == 1
    assert "[c]" in messages[0]


def test_circular_object_degrades_to_empty_string() -> None:
    loop: dict[str, object] = {}
    loop["self"] = loop
    assert fill_args(["{{c@object}}"], {"c": loop}) == [""]


def test_partial_placeholder_replaces_whole_template() -> None:
    assert fill_args(["prefix-{{x@string}}-suffix"], {"x": "value"}) == ["value"]


def test_wrapped_values_are_accepted() -> None:
    params = {"a": Str("s"), "b": ListValue(("x", "y")), "c": Absent(), "d": ObjectValue({"k": "v"})}
    args = ["{{a@string}}", "{{b@list}}", "{{c@string}}", "{{d@object}}"]
    assert fill_args(args, params) == ["s", "x", "y", "", '{"k":"v"}']


def test_fill_args_does_not_mutate_inputs() -> None:
    args = ["--tag", "{{t@list}}"]
    params = {"t": ["a", "b"]}
    fill_args(args, params)
    assert args == ["--tag", "{{t@list}}"]
    assert params == {"t": ["a", "b"]}


# ---------------------------------------------------------------------------
# fill_env
# ---------------------------------------------------------------------------

def test_fill_env_absent_is_empty_mapping() -> None:
    assert fill_env(None, {}) == {}
    assert fill_env({}, {"x": "y"}) == {}


def test_fill_env_placeholder() -> None:
    assert fill_env({"KEY": "{{tok@string}}"}, {"tok": "abc"}) == {"KEY": "abc"}


def test_fill_env_literal_passthrough() -> None:
    assert fill_env({"KEY": "literal"}, {}) == {"KEY": "literal"}


def test_fill_env_missing_parameter_is_empty_string() -> None:
    assert fill_env({"KEY": "{{tok@string}}", "MODE": "ro"}, {}) == {"KEY": "", "MODE": "ro"}


def test_fill_env_numbers_are_stringified() -> None:
    assert fill_env({"PORT": "{{port@number}}"}, {"port": 8080}) == {"PORT": "8080"}


def test_fill_env_keeps_non_string_values() -> None:
    assert fill_env({"N": 3, "S": "{{s@string}}"}, {"s": "x"}) == {"N": 3, "S": "x"}


def test_fill_env_key_set_is_preserved() -> None:
    env = {"A": "{{a@string}}", "B": "b", "C": "{{c@number::port}}"}
    assert set(fill_env(env, {"a": "1"})) == set(env)


# ---------------------------------------------------------------------------
# Determinism
# ---------------------------------------------------------------------------

_names = st.sampled_from(["a", "b", "tag", "db_path", "token"])
_types = st.sampled_from(["string", "list", "number", "object"])
_placeholders = st.builds(lambda n, t: "{{%s@%s}}" % (n, t), _names, _types)
_templates = st.lists(st.one_of(_placeholders, st.text(max_size=12)), max_size=8)
_primitives = st.one_of(st.none(), st.text(max_size=8), st.integers(), st.booleans())
_values = st.one_of(
    _primitives,
    st.floats(allow_nan=False),
    st.lists(_primitives, max_size=4),
    st.dictionaries(st.text(max_size=4), _primitives, max_size=3),
)
_params = st.dictionaries(_names, _values, max_size=5)


@given(_templates, _params)
def test_fill_args_is_deterministic(args: list[str], params: dict) -> None:
    assert fill_args(args, params) == fill_args(args, params)


@given(st.dictionaries(st.text(min_size=1, max_size=6), st.one_of(_placeholders, st.text(max_size=12)), max_size=6),
       st.dictionaries(_names, st.one_of(st.none(), st.text(max_size=8), st.integers()), max_size=5))
def test_fill_env_is_deterministic(env: dict[str, str], params: dict) -> None:
    first = fill_env(env, params)
    assert first == fill_env(env, params)
    assert set(first) == set(env)


@given(st.lists(st.text(max_size=12).filter(lambda s: "{{" not in s), max_size=8), _params)
def test_literal_templates_are_unchanged(args: list[str], params: dict) -> None:
    assert fill_args(args, params) == args


@pytest.mark.parametrize("value,expected", [(1.0, ["1"]), (-3, ["-3"]), (float("inf"), ["Infinity"])])
def test_number_text(value: float, expected: list[str]) -> None:
    assert fill_args(["{{n@number}}"], {"n": value}) == expected
