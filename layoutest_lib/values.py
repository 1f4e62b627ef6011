# --- layoutest_lib/values.py ---
"""
Conversion between Python values and Lua tables.

On the Python side a dynamic value is one of ``None``, ``bool``, ``int``,
``float``, ``str``, ``list`` (a Sequence) or ``dict`` (a Mapping). A Lua table
whose keys are exactly ``1..n`` reads back as a list; any other table,
including an empty one, reads back as a dict.
"""
from enum import Enum
from typing import Any, Dict, Iterator, List, Tuple, Union

from lupa import lua_type

DynamicValue = Union[None, bool, int, float, str, List[Any], Dict[Any, Any]]

# Tables nested deeper than this are assumed to be cyclic.
MAX_DEPTH = 64


class ValueKind(Enum):
    NULL = "null"
    BOOL = "bool"
    NUMBER = "number"
    TEXT = "text"
    SEQUENCE = "sequence"
    MAPPING = "mapping"


def kind_of(value: DynamicValue) -> ValueKind:
    """Names the shape of a dynamic value."""
    if value is None:
        return ValueKind.NULL
    if isinstance(value, bool):
        return ValueKind.BOOL
    if isinstance(value, (int, float)):
        return ValueKind.NUMBER
    if isinstance(value, str):
        return ValueKind.TEXT
    if isinstance(value, list):
        return ValueKind.SEQUENCE
    if isinstance(value, dict):
        return ValueKind.MAPPING
    raise TypeError(f"Not a dynamic value: {type(value).__name__}")


def is_container(value: Any) -> bool:
    return isinstance(value, (list, dict))


def entries(value: DynamicValue) -> Iterator[Tuple[Any, DynamicValue]]:
    """Iterates (key, child) pairs of a container using its Lua keys."""
    if isinstance(value, dict):
        return iter(value.items())
    if isinstance(value, list):
        return iter(enumerate(value, start=1))
    raise TypeError(f"Expected a sequence or mapping, got {type(value).__name__}")


def _sort_key(key: Any):
    if isinstance(key, (int, float)) and not isinstance(key, bool):
        return (0, key, "")
    return (1, 0, str(key))


def from_lua(value: Any, _depth: int = 0) -> DynamicValue:
    """Copies a value coming out of Lua into plain Python containers."""
    kind = lua_type(value)
    if kind is None:
        if isinstance(value, bytes):
            return value.decode("utf-8", errors="replace")
        if value is None or isinstance(value, (bool, int, float, str)):
            return value
        return repr(value)
    if kind != "table":
        return f"<{kind}>"
    if _depth >= MAX_DEPTH:
        return "<nested too deep>"

    items = []
    for k, v in value.items():
        if lua_type(k) is not None:
            k = f"<{lua_type(k)}>"
        elif isinstance(k, bytes):
            k = k.decode("utf-8", errors="replace")
        items.append((k, from_lua(v, _depth + 1)))
    items.sort(key=lambda kv: _sort_key(kv[0]))

    keys = [k for k, _ in items]
    if items and all(type(k) is int for k in keys) and keys == list(range(1, len(keys) + 1)):
        return [v for _, v in items]
    return dict(items)


def to_lua(runtime, value: DynamicValue):
    """Builds the Lua representation of a dynamic value inside ``runtime``."""
    if isinstance(value, dict):
        table = runtime.table()
        for k, v in value.items():
            table[k] = to_lua(runtime, v)
        return table
    if isinstance(value, (list, tuple)):
        table = runtime.table()
        for i, v in enumerate(value, start=1):
            table[i] = to_lua(runtime, v)
        return table
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    raise TypeError(f"Cannot hand {type(value).__name__} to Lua")


def format_scalar(value: DynamicValue) -> str:
    if value is None:
        return "nil"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def render_value(value: DynamicValue, prefix: str = "") -> List[str]:
    """
    Renders a container as one ``[k1][k2]=value`` line per leaf.

    Empty nested containers produce no lines.
    """
    lines = []
    for key, child in entries(value):
        if is_container(child):
            lines.extend(render_value(child, f"{prefix}[{key}]"))
        else:
            lines.append(f"{prefix}[{key}]={format_scalar(child)}")
    return lines
