# statemodel/core/paths.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

from typing import Any, Mapping

from statemodel.interfaces.types import StatePath, StateValue

SEPARATOR = "."


def resolve_state_paths(value: StateValue) -> StatePath:
    """
    Flatten a hierarchical state value into an ordered list of dotted keys,
    root first.

    ``{"docs": "overview"}`` resolves to ``["docs", "docs.overview"]``.

    :param value: A leaf identifier or a single-entry mapping.
    :return: Keys from the root to the active leaf.
    """
    if isinstance(value, str):
        return [value]

    if not value:
        return []

    # Single active path: only the first region is followed.
    parent = next(iter(value))
    child_paths = resolve_state_paths(value[parent])
    return [parent] + [f"{parent}{SEPARATOR}{child}" for child in child_paths]


def flatten_state_value(value: StateValue) -> str:
    """
    Return the deepest dotted key of a state value, or "" for an empty value.
    """
    path = resolve_state_paths(value)
    return path[-1] if path else ""


def state_value_from_key(key: str) -> StateValue:
    """
    Build the StateValue whose deepest key is ``key``.

    ``"docs.overview"`` becomes ``{"docs": "overview"}``.
    """
    head, sep, rest = key.partition(SEPARATOR)
    if not sep:
        return head
    return {head: state_value_from_key(rest)}


def normalize_state_value(value: Any) -> StateValue:
    """
    Convert a dotted string or nested mapping into a canonical StateValue of
    plain dicts and strings, suitable for equality comparison.
    """
    if isinstance(value, str):
        return state_value_from_key(value)
    if isinstance(value, Mapping):
        return {key: normalize_state_value(child) for key, child in value.items()}
    raise TypeError(f"Unsupported state value: {value!r}")


def state_depth(key: str) -> int:
    """Number of dotted segments in a state key."""
    return key.count(SEPARATOR) + 1 if key else 0
