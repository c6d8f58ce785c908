# statemodel/core/options.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import time
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Callable, Mapping, Optional, Tuple, Union

DEFAULT_SCREENSHOT_PATH = "test-results/failure-{timestamp}.png"


class StateValueFormat(str, Enum):
    """
    How ``current_state_value`` renders the machine's state.
    """

    OBJECT = "object"  # raw value: str for leaves, mapping for nested states
    STRING = "string"  # always the flattened dotted key
    AUTO = "auto"  # str for top-level leaves, mapping for nested states


@dataclass(frozen=True)
class RetryOptions:
    """
    Retry policy for navigate-and-validate operations.

    :param retries: Extra attempts after the first one. Total attempts are
        ``retries + 1``.
    :param delay: Milliseconds to wait between attempts.
    :param retryable_errors: Substrings; when non-empty, only failures whose
        message contains one of them are retried.
    """

    retries: int = 0
    delay: float = 1000
    retryable_errors: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.retries < 0:
            raise ValueError("retries must be >= 0")
        if self.delay < 0:
            raise ValueError("delay must be >= 0")
        # Accept any iterable of strings, store a tuple.
        object.__setattr__(self, "retryable_errors", tuple(self.retryable_errors))

    def merged(self, override: Optional[Union["RetryOptions", Mapping[str, Any]]]) -> "RetryOptions":
        """
        Return these options with the fields set in ``override`` replaced.
        A mapping override only replaces the keys it names.
        """
        if override is None:
            return self
        if isinstance(override, RetryOptions):
            return override
        unknown = set(override) - {f.name for f in fields(self)}
        if unknown:
            raise ValueError(f"Unknown retry options: {sorted(unknown)}")
        return replace(self, **override)

    def is_retryable(self, error: BaseException) -> bool:
        """
        True when ``error`` passes the ``retryable_errors`` filter. The message
        of a wrapped ``original_error`` is matched as well.
        """
        if not self.retryable_errors:
            return True
        messages = [str(error)]
        original = getattr(error, "original_error", None)
        if original is not None:
            messages.append(str(original))
        return any(pattern in message for message in messages for pattern in self.retryable_errors)


@dataclass(frozen=True)
class ExecutorOptions:
    """
    Configuration for a ModelExecutor.

    :param screenshot_on_failure: Capture a screenshot when an operation fails
        for good.
    :param screenshot_path: Template string (``{timestamp}`` is substituted) or
        a zero-argument callable returning the path.
    :param default_retry_options: Retry policy used when a call does not
        override it.
    :param state_value_format: Rendering of ``current_state_value``.
    """

    screenshot_on_failure: bool = False
    screenshot_path: Optional[Union[str, Callable[[], str]]] = None
    default_retry_options: RetryOptions = field(default_factory=RetryOptions)
    state_value_format: StateValueFormat = StateValueFormat.AUTO

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "state_value_format", StateValueFormat(self.state_value_format))
        except ValueError:
            raise ValueError(
                f"state_value_format must be one of {[f.value for f in StateValueFormat]}, "
                f"got {self.state_value_format!r}"
            ) from None
        if isinstance(self.default_retry_options, Mapping):
            object.__setattr__(self, "default_retry_options", RetryOptions(**self.default_retry_options))

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "ExecutorOptions":
        """
        Build options from plain data, e.g. a loaded configuration file.

        :raises ValueError: On unknown keys or invalid values.
        """
        if not data:
            return cls()
        unknown = set(data) - {f.name for f in fields(cls)}
        if unknown:
            raise ValueError(f"Unknown executor options: {sorted(unknown)}")
        return cls(**data)

    def resolve_screenshot_path(self) -> str:
        """Compute the path for a failure screenshot."""
        if callable(self.screenshot_path):
            return self.screenshot_path()
        template = self.screenshot_path or DEFAULT_SCREENSHOT_PATH
        return template.replace("{timestamp}", str(int(time.time() * 1000)))
