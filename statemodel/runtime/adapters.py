# statemodel/runtime/adapters.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Optional, Sequence

from statemodel.core.errors import InitializationFailedError, NotInitializedError
from statemodel.interfaces.types import EventID, StateValue

logger = logging.getLogger(__name__)


def _event_object(event: EventID, payload: Any) -> Dict[str, Any]:
    """
    Build the event object sent to an actor-style runtime: the payload's keys
    merged under the event ``type``.
    """
    if payload is None:
        return {"type": event}
    if isinstance(payload, Mapping):
        return {**payload, "type": event}
    return {"type": event, "payload": payload}


def _stop_quietly(runtime: Any) -> None:
    """Stop a runtime abandoned during start; its own failure is logged only."""
    stop = getattr(runtime, "stop", None)
    if not callable(stop):
        return
    try:
        stop()
    except Exception:
        logger.debug("Stopping abandoned runtime %r failed", runtime, exc_info=True)


class _RuntimeStrategy(ABC):
    """
    Internal interface over one state-machine runtime shape. A strategy is
    started once against a machine descriptor and raises if the descriptor
    does not have its shape.
    """

    name = "runtime"

    @abstractmethod
    def start(self, machine: Any) -> None:
        """Obtain and start the runtime. Raise if the shape does not fit."""

    @abstractmethod
    def current_value(self) -> StateValue: ...

    @abstractmethod
    def current_context(self) -> Any: ...

    @abstractmethod
    def would_change(self, event: EventID, payload: Any) -> bool: ...

    @abstractmethod
    def send(self, event: EventID, payload: Any) -> None: ...

    @abstractmethod
    def stop(self) -> None: ...

    @property
    def dry_run_reliable(self) -> bool:
        """Whether ``would_change`` is computed rather than assumed."""
        return True


class SnapshotRuntimeStrategy(_RuntimeStrategy):
    """
    Strategy for actor runtimes exposing ``get_snapshot()``, ``send(event)``
    and ``stop()``. The actor comes from the descriptor's ``create_actor()``
    factory, or is the descriptor itself.
    """

    name = "snapshot"

    def __init__(self) -> None:
        self._actor: Any = None
        self._can_dry_run = False

    def start(self, machine: Any) -> None:
        factory = getattr(machine, "create_actor", None)
        actor = factory() if callable(factory) else machine
        if not callable(getattr(actor, "get_snapshot", None)):
            raise TypeError(f"{type(actor).__name__} does not expose get_snapshot()")
        if not callable(getattr(actor, "send", None)):
            raise TypeError(f"{type(actor).__name__} does not expose send()")

        start = getattr(actor, "start", None)
        if callable(start):
            start()

        snapshot = actor.get_snapshot()
        if snapshot is None or not hasattr(snapshot, "value"):
            _stop_quietly(actor)
            raise RuntimeError("Actor snapshot is not available")

        self._actor = actor
        self._can_dry_run = callable(getattr(snapshot, "can", None))

    def _snapshot(self) -> Any:
        snapshot = self._actor.get_snapshot()
        if snapshot is None:
            raise NotInitializedError("Actor snapshot is not available")
        return snapshot

    def current_value(self) -> StateValue:
        return self._snapshot().value

    def current_context(self) -> Any:
        context = getattr(self._snapshot(), "context", None)
        return context if context is not None else {}

    def would_change(self, event: EventID, payload: Any) -> bool:
        snapshot = self._snapshot()
        can = getattr(snapshot, "can", None)
        if callable(can):
            return bool(can(_event_object(event, payload)))
        # Without a dry run the executor compares values around the commit.
        return True

    def send(self, event: EventID, payload: Any) -> None:
        self._actor.send(_event_object(event, payload))

    def stop(self) -> None:
        stop = getattr(self._actor, "stop", None)
        if callable(stop):
            stop()

    @property
    def dry_run_reliable(self) -> bool:
        return self._can_dry_run


class ServiceRuntimeStrategy(_RuntimeStrategy):
    """
    Strategy for service runtimes exposing a ``state`` property,
    ``send(event, payload)``, ``next_state(event)`` and ``stop()``. The service
    comes from the descriptor's ``interpret()`` factory, or is the descriptor
    itself.
    """

    name = "service"

    def __init__(self) -> None:
        self._service: Any = None

    def start(self, machine: Any) -> None:
        factory = getattr(machine, "interpret", None)
        service = factory() if callable(factory) else machine
        if not callable(getattr(service, "next_state", None)):
            raise TypeError(f"{type(service).__name__} does not expose next_state()")

        start = getattr(service, "start", None)
        if callable(start):
            start()

        state = getattr(service, "state", None)
        if state is None or not hasattr(state, "value"):
            _stop_quietly(service)
            raise RuntimeError("Service state is not available")

        self._service = service

    def current_value(self) -> StateValue:
        return self._service.state.value

    def current_context(self) -> Any:
        context = getattr(self._service.state, "context", None)
        return context if context is not None else {}

    def would_change(self, event: EventID, payload: Any) -> bool:
        # Guards may read the payload, so it travels with the dry run.
        dry_event = event if payload is None else _event_object(event, payload)
        return bool(getattr(self._service.next_state(dry_event), "changed", False))

    def send(self, event: EventID, payload: Any) -> None:
        self._service.send(event, payload)

    def stop(self) -> None:
        stop = getattr(self._service, "stop", None)
        if callable(stop):
            stop()


DEFAULT_STRATEGIES = (SnapshotRuntimeStrategy, ServiceRuntimeStrategy)


class MachineAdapter:
    """
    Presents one interface over the supported runtime shapes. The shape is
    chosen once at construction by starting each strategy in preference order
    (snapshot first, then service) and keeping the first that starts.
    """

    def __init__(self, machine: Any, strategies: Optional[Sequence[type]] = None) -> None:
        """
        :param machine: Opaque machine descriptor or an already-built runtime.
        :param strategies: Strategy classes to try, in order.
        :raises InitializationFailedError: If no strategy starts.
        """
        failures: Dict[str, str] = {}
        self._strategy: Optional[_RuntimeStrategy] = None

        for strategy_class in strategies or DEFAULT_STRATEGIES:
            strategy = strategy_class()
            try:
                strategy.start(machine)
            except Exception as error:
                logger.debug("Runtime strategy '%s' failed: %s", strategy.name, error)
                failures[strategy.name] = f"{type(error).__name__}: {error}"
                continue
            self._strategy = strategy
            logger.debug("Using '%s' runtime strategy for %r", strategy.name, machine)
            break

        if self._strategy is None:
            raise InitializationFailedError(failures)
        self._runtime_name = self._strategy.name

    def _active(self) -> _RuntimeStrategy:
        if self._strategy is None:
            raise NotInitializedError("Machine runtime is not initialized or has been stopped")
        return self._strategy

    @property
    def runtime_name(self) -> str:
        """Name of the strategy chosen at construction."""
        return self._runtime_name

    @property
    def is_running(self) -> bool:
        return self._strategy is not None

    @property
    def dry_run_reliable(self) -> bool:
        return self._active().dry_run_reliable

    def current_value(self) -> StateValue:
        """
        :raises NotInitializedError: After stop().
        """
        return self._active().current_value()

    def current_context(self) -> Any:
        return self._active().current_context()

    def would_change(self, event: EventID, payload: Any = None) -> bool:
        """
        Dry-run ``event`` with ``payload`` without committing it. Unknown or invalid events are
        a normal outcome and yield False instead of raising.
        """
        strategy = self._active()
        try:
            return strategy.would_change(event, payload)
        except Exception as error:
            logger.debug("Dry run of '%s' raised %s; treating as no change", event, error)
            return False

    def send(self, event: EventID, payload: Any = None) -> None:
        """Commit ``event`` to the runtime."""
        self._active().send(event, payload)

    def stop(self) -> None:
        """Stop the runtime. Calling it again is a no-op."""
        strategy, self._strategy = self._strategy, None
        if strategy is not None:
            strategy.stop()
