# statemodel/__init__.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""statemodel: model-based test execution over hierarchical state machines.

Drives an external hierarchical state machine and keeps one UI-binding object
per machine state synchronized with it:

    - state values are resolved into root-to-leaf paths of dotted keys
    - events bubble from the leaf binding to the root until one handles them
    - the resulting state is validated from the root binding down
    - dispatches are serialized so concurrent callers cannot interleave
"""

from statemodel.core.bindings import BindingObject, on_event
from statemodel.core.errors import (
    DesyncDetectedError,
    DisposedUseError,
    ErrorContext,
    InitializationFailedError,
    ModelExecutorError,
    NavigationUnsupportedError,
    NoMatchingStateError,
    NotInitializedError,
    UnhandledEventError,
    UnregisteredStateError,
    ValidationFailedError,
)
from statemodel.core.options import ExecutorOptions, RetryOptions, StateValueFormat
from statemodel.core.paths import flatten_state_value, resolve_state_paths, state_value_from_key
from statemodel.core.registry import BindingRegistry
from statemodel.core.validation import ValidationEngine
from statemodel.runtime.adapters import MachineAdapter
from statemodel.runtime.executor import Lifecycle, ModelExecutor, create_executor
from statemodel.runtime.retry import RetryDecorator
from statemodel.runtime.serializer import DispatchSerializer
from statemodel.runtime.sync import SyncProbe

__version__ = "0.1.0"

__all__ = [
    # Bindings
    "BindingObject",
    "BindingRegistry",
    "on_event",
    # Execution
    "ModelExecutor",
    "create_executor",
    "Lifecycle",
    "MachineAdapter",
    "DispatchSerializer",
    "ValidationEngine",
    "RetryDecorator",
    "SyncProbe",
    # Paths
    "resolve_state_paths",
    "flatten_state_value",
    "state_value_from_key",
    # Configuration
    "ExecutorOptions",
    "RetryOptions",
    "StateValueFormat",
    # Errors
    "ModelExecutorError",
    "ErrorContext",
    "InitializationFailedError",
    "NotInitializedError",
    "UnregisteredStateError",
    "UnhandledEventError",
    "ValidationFailedError",
    "NoMatchingStateError",
    "DesyncDetectedError",
    "NavigationUnsupportedError",
    "DisposedUseError",
]
