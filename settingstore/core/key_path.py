"""Key path helpers — pure functions over nested settings trees.

A settings tree is a ``dict`` whose values are scalars, lists or nested
settings trees. Key paths address locations inside it with dot-separated
segments (``"editor.fontSize"``).
"""
from __future__ import annotations

from typing import Any, Union

Scalar = Union[str, int, float, bool, None]
TreeValue = Union[Scalar, list, dict]


class _Absent:
    """Marker for a location that holds no value."""

    _instance: _Absent | None = None

    def __new__(cls) -> _Absent:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False


ABSENT: Any = _Absent()


def split_key_path(key_path: str) -> list[str]:
    """Split *key_path* into segments. Raises ValueError on empty segments."""
    segments = key_path.split(".")
    if any(not s for s in segments):
        raise ValueError(f"Invalid key path: {key_path!r}")
    return segments


def value_at(tree: dict, key_path: str) -> TreeValue:
    """Return the value at *key_path*, or ``ABSENT`` if it cannot be reached."""
    node: Any = tree
    for segment in split_key_path(key_path):
        if not isinstance(node, dict) or segment not in node:
            return ABSENT
        node = node[segment]
    return node


def set_value_at(tree: dict, key_path: str, value: TreeValue) -> dict:
    """Write *value* at *key_path* in place and return *tree*.

    Intermediate mappings are created as needed. Writing ``ABSENT`` removes
    the final key and prunes the mappings the removal leaves empty.
    """
    segments = split_key_path(key_path)
    if value is ABSENT:
        _remove_at(tree, segments)
        return tree

    node = tree
    for segment in segments[:-1]:
        child = node.get(segment)
        if not isinstance(child, dict):
            child = {}
            node[segment] = child
        node = child
    node[segments[-1]] = value
    return tree


def _remove_at(node: dict, segments: list[str]) -> None:
    head = segments[0]
    if len(segments) == 1:
        node.pop(head, None)
        return
    child = node.get(head)
    if not isinstance(child, dict):
        return
    _remove_at(child, segments[1:])
    if not child:
        del node[head]


def deep_clone(value: TreeValue) -> TreeValue:
    """Return an independent copy of *value*."""
    if isinstance(value, dict):
        return {key: deep_clone(child) for key, child in value.items()}
    if isinstance(value, (list, tuple)):
        return [deep_clone(item) for item in value]
    return value


def deep_merge(base: dict, overlay: dict) -> dict:
    """Merge *overlay* onto *base* without mutating either.

    Nested mappings merge key by key; any other overlay value (scalar or
    list) replaces the base value wholesale.
    """
    result = deep_clone(base)
    for key, overlay_value in overlay.items():
        base_value = result.get(key)
        if isinstance(base_value, dict) and isinstance(overlay_value, dict):
            result[key] = deep_merge(base_value, overlay_value)
        else:
            result[key] = deep_clone(overlay_value)
    return result


def deep_equal(a: TreeValue, b: TreeValue) -> bool:
    """Structural equality. ``True`` never equals ``1`` here."""
    if isinstance(a, dict):
        if not isinstance(b, dict) or a.keys() != b.keys():
            return False
        return all(deep_equal(a[key], b[key]) for key in a)
    if isinstance(a, (list, tuple)):
        if not isinstance(b, (list, tuple)) or len(a) != len(b):
            return False
        return all(deep_equal(x, y) for x, y in zip(a, b))
    if isinstance(b, (dict, list, tuple)):
        return False
    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b
    return a == b
