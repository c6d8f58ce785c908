# statemodel/interfaces/protocols.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details
from typing import Any, Callable, Mapping, Optional, Protocol, Union, runtime_checkable

from statemodel.interfaces.types import EventID, StateValue


@runtime_checkable
class Snapshot(Protocol):
    """
    Protocol for the immutable snapshot returned by an actor-style runtime.

    Attributes:
        value: The current StateValue.
        context: The machine's extended state, forwarded to binding objects.

    An optional ``can(event)`` method, when present, is used as a dry-run
    transition check.
    """

    value: StateValue
    context: Any


@runtime_checkable
class SnapshotActor(Protocol):
    """
    Protocol for the newer "Snapshot/Actor" runtime shape.

    Methods:
        get_snapshot(): Returns the current Snapshot.
        send(event): Commits an event. ``event`` is a dict with a ``type`` key
            merged with the payload.
        stop(): Tears the actor down.
    """

    def get_snapshot(self) -> Snapshot: ...

    def send(self, event: Any) -> None: ...

    def stop(self) -> None: ...


@runtime_checkable
class Service(Protocol):
    """
    Protocol for the older "Service" runtime shape.

    Attributes:
        state: Object exposing ``value`` and ``context`` for the current state.

    Methods:
        send(event, payload): Commits an event.
        next_state(event): Computes, without committing, the state that would
            result from ``event``, a plain identifier or an event object
            carrying the payload. The result exposes a ``changed`` flag.
        stop(): Tears the service down.
    """

    state: Any

    def send(self, event: EventID, payload: Any = None) -> Any: ...

    def next_state(self, event: Union[EventID, Mapping[str, Any]]) -> Any: ...

    def stop(self) -> None: ...


@runtime_checkable
class Surface(Protocol):
    """
    Protocol for the external surface handle binding objects act upon.

    Attributes:
        location: Current location of the surface (a URL for browser pages).

    The optional ``screenshot(path)`` method, sync or async, is only used to
    capture a diagnostic image on terminal failure.
    """

    location: str


@runtime_checkable
class Binding(Protocol):
    """
    Protocol for UI-binding objects, one per machine state.

    Runtime Invariants:
    - A binding is built fresh for every chain resolution.
    - ``validate`` raises on mismatch and returns None on success.
    """

    def validate(self) -> Any: ...

    def handler_for(self, event: EventID) -> Optional[Callable[..., Any]]: ...

    def set_event_payload(self, payload: Any) -> None: ...
