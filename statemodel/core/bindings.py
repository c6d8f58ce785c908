# statemodel/core/bindings.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

from typing import Any, Callable, Dict, Generic, Optional, TypeVar

from statemodel.interfaces.types import EventID

C = TypeVar("C")

_HANDLES_ATTR = "__statemodel_events__"


def on_event(*events: EventID) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Mark a binding method as the handler for one or more machine events.

    Example::

        class DocsPage(BindingObject):
            @on_event("NAVIGATE_TO_API")
            async def open_api(self):
                await self.surface.click("API")

    :param events: Event identifiers handled by the decorated method.
    """
    if not events:
        raise ValueError("on_event requires at least one event identifier")

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        existing = getattr(func, _HANDLES_ATTR, ())
        setattr(func, _HANDLES_ATTR, tuple(existing) + tuple(events))
        return func

    return decorator


class BindingObject(Generic[C]):
    """
    Base class for UI-binding objects: one per machine state, responsible for
    asserting that the external surface matches the state and for performing
    the side-effecting action behind each event the state handles.

    Instances are built fresh for every chain resolution, so ``context`` is
    always the machine's current context.
    """

    # event -> attribute name, collected per class at definition time
    _event_handlers: Dict[EventID, str] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        handlers: Dict[EventID, str] = {}
        # Walk base classes first so overrides in subclasses win.
        for klass in reversed(cls.__mro__):
            for name, member in vars(klass).items():
                for event in getattr(member, _HANDLES_ATTR, ()):
                    handlers[event] = name
        cls._event_handlers = handlers

    def __init__(self, surface: Any, context: Optional[C] = None) -> None:
        """
        :param surface: The external surface handle (e.g. a browser page).
        :param context: The machine's extended state at resolution time.
        """
        self.surface = surface
        self.context: C = context if context is not None else {}  # type: ignore[assignment]
        self._last_event_payload: Any = None
        self._handlers: Dict[EventID, Callable[..., Any]] = {
            event: getattr(self, name) for event, name in self._event_handlers.items()
        }

    async def validate(self) -> None:
        """
        Assert that the surface matches this state. Must raise on mismatch.
        """
        raise NotImplementedError(f"{type(self).__name__} must implement validate()")

    def handler_for(self, event: EventID) -> Optional[Callable[..., Any]]:
        """
        Return the bound handler for ``event``, or None if this state does not
        handle it.
        """
        return self._handlers.get(event)

    @property
    def handled_events(self):
        return frozenset(self._handlers)

    def set_event_payload(self, payload: Any) -> None:
        """
        Store the payload of the event currently being dispatched. Called by
        the executor on every binding in the active chain before handling.
        """
        self._last_event_payload = payload

    @property
    def payload(self) -> Any:
        """The payload of the last dispatched event, or None."""
        return self._last_event_payload

    def get_payload(self, expected_type: Optional[type] = None) -> Any:
        """
        Return the last event payload, optionally checking its type.

        :param expected_type: If given, raise TypeError unless the payload is
            None or an instance of this type.
        """
        payload = self._last_event_payload
        if expected_type is not None and payload is not None and not isinstance(payload, expected_type):
            raise TypeError(f"Expected payload of type {expected_type.__name__}, got {type(payload).__name__}")
        return payload

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
