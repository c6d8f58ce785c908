# statemodel/core/errors.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence


@dataclass(frozen=True)
class ErrorContext:
    """
    Diagnostic context attached to every executor error, so a divergence can be
    understood without re-running the test under a debugger.

    :param expected_state: The state the executor expected, in dotted form.
    :param current_state: The state the machine reports, in dotted form.
    :param current_location: Location of the external surface (e.g. a URL).
    """

    expected_state: Optional[str] = None
    current_state: Optional[str] = None
    current_location: Optional[str] = None


class ModelExecutorError(Exception):
    """
    Base exception class for errors raised by the execution engine.
    """

    def __init__(self, message: str, context: Optional[ErrorContext] = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or ErrorContext()

    @property
    def expected_state(self) -> Optional[str]:
        return self.context.expected_state

    @property
    def current_state(self) -> Optional[str]:
        return self.context.current_state

    @property
    def current_location(self) -> Optional[str]:
        return self.context.current_location

    def _detail_lines(self) -> List[str]:
        return [
            f"  Expected state: {self.context.expected_state}",
            f"  Current state: {self.context.current_state}",
            f"  Current location: {self.context.current_location}",
        ]

    def describe(self) -> str:
        """
        Render a multi-line diagnostic including every piece of context.
        """
        return "\n".join([f"{self.message}:"] + self._detail_lines())


class InitializationFailedError(ModelExecutorError):
    """
    Raised when the machine runtime could not be started under either runtime shape.
    """

    def __init__(self, failures: Dict[str, str]) -> None:
        self.failures = dict(failures)
        reasons = "; ".join(f"{name}: {reason}" for name, reason in self.failures.items())
        super().__init__(f"Failed to initialize state machine runtime ({reasons})")


class NotInitializedError(ModelExecutorError):
    """
    Raised when the machine adapter is read before start or after stop.
    """


class UnregisteredStateError(ModelExecutorError):
    """
    Raised when no binding constructor is registered for a resolved state key.
    """

    def __init__(self, key: str, context: Optional[ErrorContext] = None) -> None:
        self.key = key
        super().__init__(f"No binding registered for state '{key}'", context or ErrorContext(expected_state=key))


class UnhandledEventError(ModelExecutorError):
    """
    Raised when an event changes the machine state but no binding in the active
    chain handles it.
    """

    def __init__(self, event: str, context: Optional[ErrorContext] = None) -> None:
        self.event = event
        super().__init__(f"Event '{event}' not handled by active chain", context)


class ValidationFailedError(ModelExecutorError):
    """
    Raised when the external surface does not match the expected state.
    """

    def __init__(
        self,
        state_key: str,
        state_path: Sequence[str] = (),
        validation_chain: Sequence[str] = (),
        original_error: Optional[BaseException] = None,
        context: Optional[ErrorContext] = None,
    ) -> None:
        self.state_key = state_key
        self.state_path = list(state_path)
        self.validation_chain = list(validation_chain)
        self.original_error = original_error
        super().__init__(f"State validation failed for '{state_key}'", context)

    def _detail_lines(self) -> List[str]:
        lines = super()._detail_lines()
        lines.append(f"  Validation chain: {' -> '.join(self.validation_chain)}")
        if self.original_error is not None:
            lines.append(f"  Original error: {type(self.original_error).__name__}: {self.original_error}")
        return lines


class NoMatchingStateError(ModelExecutorError):
    """
    Raised when no registered binding validates against the external surface.
    """

    def __init__(self, tried: Sequence[str], context: Optional[ErrorContext] = None) -> None:
        self.tried = list(tried)
        super().__init__("No registered state matches the current surface", context)

    def _detail_lines(self) -> List[str]:
        return super()._detail_lines() + [f"  Tried: {', '.join(self.tried)}"]


class DesyncDetectedError(ModelExecutorError):
    """
    Raised when the state observed on the surface disagrees with the machine.
    The machine is never repaired implicitly.
    """

    def __init__(self, detected_key: str, context: Optional[ErrorContext] = None) -> None:
        self.detected_key = detected_key
        super().__init__(
            f"State sync requires manual state machine update: surface matches '{detected_key}'",
            context,
        )


class NavigationUnsupportedError(ModelExecutorError):
    """
    Raised by goto_state when the target binding does not have a goto() method.
    """

    def __init__(self, key: str, context: Optional[ErrorContext] = None) -> None:
        self.key = key
        super().__init__(f"Binding for state '{key}' does not have a goto() method", context)


class DisposedUseError(ModelExecutorError):
    """
    Raised by every public operation once the executor has been disposed.
    """

    def __init__(
        self,
        message: str = "ModelExecutor has been disposed and cannot be used",
        context: Optional[ErrorContext] = None,
    ) -> None:
        super().__init__(message, context)

