# tests/unit/test_paths.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import string

import pytest
from hypothesis import given
from hypothesis import strategies as st

from statemodel.core.paths import (
    flatten_state_value,
    normalize_state_value,
    resolve_state_paths,
    state_depth,
    state_value_from_key,
)

segments = st.text(alphabet=string.ascii_letters, min_size=1, max_size=6)
state_values = st.recursive(segments, lambda children: st.dictionaries(segments, children, min_size=1, max_size=1))


def _depth(value) -> int:
    if isinstance(value, str):
        return 1
    return 1 + _depth(next(iter(value.values())))


def test_atomic_value_resolves_to_itself():
    assert resolve_state_paths("home") == ["home"]


def test_nested_value_resolves_root_first():
    assert resolve_state_paths({"docs": "overview"}) == ["docs", "docs.overview"]


def test_deeply_nested_value():
    value = {"app": {"settings": {"profile": "edit"}}}
    assert resolve_state_paths(value) == [
        "app",
        "app.settings",
        "app.settings.profile",
        "app.settings.profile.edit",
    ]


def test_empty_mapping_resolves_to_empty_path():
    assert resolve_state_paths({}) == []


def test_resolution_does_not_mutate_input():
    value = {"docs": {"guides": "intro"}}
    resolve_state_paths(value)
    assert value == {"docs": {"guides": "intro"}}


@pytest.mark.property
@given(value=state_values)
def test_path_length_matches_depth_and_prefixes_reconstruct(value):
    """Every entry of the path is the dotted join of the segments up to it."""
    path = resolve_state_paths(value)
    assert len(path) == _depth(value)

    segments_ = path[-1].split(".")
    for index, key in enumerate(path):
        assert key == ".".join(segments_[: index + 1])


@pytest.mark.property
@given(value=state_values)
def test_resolution_is_deterministic(value):
    assert resolve_state_paths(value) == resolve_state_paths(value)


@pytest.mark.property
@given(value=state_values)
def test_key_round_trips_through_state_value(value):
    assert state_value_from_key(flatten_state_value(value)) == value


def test_flatten_state_value():
    assert flatten_state_value("home") == "home"
    assert flatten_state_value({"docs": "overview"}) == "docs.overview"
    assert flatten_state_value({}) == ""


def test_state_value_from_key():
    assert state_value_from_key("api") == "api"
    assert state_value_from_key("docs.gettingStarted") == {"docs": "gettingStarted"}


def test_normalize_accepts_strings_and_mappings():
    assert normalize_state_value("docs.overview") == {"docs": "overview"}
    assert normalize_state_value({"docs": "overview"}) == {"docs": "overview"}


def test_normalize_rejects_other_types():
    with pytest.raises(TypeError):
        normalize_state_value(42)


@pytest.mark.parametrize("key,depth", [("", 0), ("home", 1), ("docs.overview", 2), ("a.b.c", 3)])
def test_state_depth(key, depth):
    assert state_depth(key) == depth
