"""Access helpers for loosely typed, nested configuration dictionaries."""

from __future__ import annotations

import copy
from typing import Any, Iterable, Mapping


def _path(fields: Iterable[str]) -> str:
    return ".".join(fields)


def _lookup(obj: Mapping[str, Any] | None, fields: tuple[str, ...]) -> tuple[Any, bool]:
    if obj is None:
        return None, False
    current: Any = obj
    for index, key in enumerate(fields):
        if not isinstance(current, dict):
            raise TypeError(
                f"{_path(fields[: index + 1])} accessor error: {current!r} is of the type "
                f"{type(current).__name__}, expected a mapping"
            )
        if key not in current:
            return None, False
        current = current[key]
    return current, True


def nested_field(obj, *args):
    """Return ``(value, found)`` for the field at the given path; the value is a deep copy."""
    value, found = _lookup(obj, args)
    return copy.deepcopy(value), found


def nested_string(obj, *args):
    """Return ``(string, found)``; an absent field gives ``("", False)``."""
    value, found = _lookup(obj, args)
    if not found:
        return "", False
    if not isinstance(value, str):
        raise TypeError(
            f"{_path(args)} accessor error: {value!r} is of the type "
            f"{type(value).__name__}, expected str"
        )
    return value, True


def nested_string_slice(obj, *args):
    """Return ``(list of strings, found)``; an absent field gives ``([], False)``."""
    value, found = _lookup(obj, args)
    if not found:
        return [], False
    if not isinstance(value, list):
        raise TypeError(
            f"{_path(args)} accessor error: {value!r} is of the type "
            f"{type(value).__name__}, expected list"
        )
    for item in value:
        if not isinstance(item, str):
            raise TypeError(
                f"{_path(args)} accessor error: contains non-string item {item!r} "
                f"of the type {type(item).__name__}"
            )
    return list(value), True


def nested_slice(obj, *args):
    """Return ``(list, found)`` with a deep copy of the list at the path."""
    value, found = _lookup(obj, args)
    if not found:
        return [], False
    if not isinstance(value, list):
        raise TypeError(
            f"{_path(args)} accessor error: {value!r} is of the type "
            f"{type(value).__name__}, expected list"
        )
    return copy.deepcopy(value), True


def nested_map(obj, *args):
    """Return ``(dict, found)`` with a deep copy of the mapping at the path."""
    value, found = _lookup(obj, args)
    if not found:
        return {}, False
    if not isinstance(value, dict):
        raise TypeError(
            f"{_path(args)} accessor error: {value!r} is of the type "
            f"{type(value).__name__}, expected a mapping"
        )
    return copy.deepcopy(value), True


def set_nested_field(obj, value, *args):
    """Store a deep copy of ``value`` at the path, creating intermediate mappings."""
    if obj is None:
        raise TypeError("cannot set a field on a missing object")
    if not args:
        raise ValueError("a field path is required")
    current = obj
    for index, key in enumerate(args[:-1]):
        child = current.get(key)
        if child is None and key not in current:
            child = {}
            current[key] = child
        elif not isinstance(child, dict):
            raise TypeError(
                f"value cannot be set because {_path(args[: index + 1])} is not a mapping"
            )
        current = child
    current[args[-1]] = copy.deepcopy(value)


def pruned(config, *args):
    """Return a new dictionary holding only the given paths of ``config``."""
    result: dict[str, Any] = {}
    for path in args:
        fields = tuple(path)
        try:
            value, found = nested_field(config, *fields)
        except TypeError:
            continue
        if not found:
            continue
        set_nested_field(result, value, *fields)
    return result