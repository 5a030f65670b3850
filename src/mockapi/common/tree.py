"""
mockapi Value Tree Helpers

Dot-path traversal over the nested request view (headers, body, query,
urlParams). Shared by the conditions evaluator and the response generator so
both resolve `body.user.id`-style paths the same way.
"""

import json
from typing import Any, Mapping, Sequence


class _Missing:
    """Sentinel for a path that does not resolve."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return 'MISSING'

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()


def resolve_path(tree: Any, path: str) -> Any:
    """
    Resolve a dot-separated path against nested mappings and sequences.

    Every intermediate value must be a non-empty mapping or sequence;
    anything else (missing key, None, scalar, empty container) yields MISSING.
    Sequence segments must be decimal indexes. The leaf value is returned as
    stored, including None and other falsy values.

    Args:
        tree: Root of the value tree
        path: Dot-separated path (e.g. "body.user.id")

    Returns:
        The resolved value, or MISSING

    Example:
        resolve_path({'body': {'items': [{'id': 7}]}}, 'body.items.0.id')  # 7
    """
    current = tree
    for key in path.split('.'):
        if not current:
            return MISSING
        if isinstance(current, Mapping):
            if key not in current:
                return MISSING
            current = current[key]
        elif isinstance(current, Sequence) and not isinstance(current, (str, bytes)):
            if not key.isdigit() or int(key) >= len(current):
                return MISSING
            current = current[int(key)]
        else:
            return MISSING
    return current


def stringify_value(value: Any) -> str:
    """
    Render a resolved value as template text.

    Strings are returned unchanged; everything else is rendered as JSON
    (true, null, 42, {"a": 1}).
    """
    if isinstance(value, str):
        return value
    return json.dumps(value, default=str)


def strict_equals(actual: Any, expected: Any) -> bool:
    """
    Type-sensitive equality.

    Booleans only equal booleans, numbers only equal numbers (int and float
    are interchangeable), every other type must match exactly.
    """
    if isinstance(actual, bool) or isinstance(expected, bool):
        return isinstance(actual, bool) and isinstance(expected, bool) and actual == expected
    if isinstance(actual, (int, float)) and isinstance(expected, (int, float)):
        return actual == expected
    return type(actual) is type(expected) and actual == expected
