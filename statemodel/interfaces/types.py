# statemodel/interfaces/types.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details
from typing import Any, Callable, List, Mapping, Union

StateKey = str
EventID = str

# A leaf identifier, or a single-entry mapping from region name to a nested value.
StateValue = Union[str, Mapping[str, Any]]
StatePath = List[StateKey]

# Callback Types
BindingFactory = Callable[..., Any]
ScreenshotPathFactory = Callable[[], str]
