# statemodel/runtime/executor.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import logging
from enum import Enum, auto
from typing import Any, Callable, List, Mapping, Optional, Tuple, Union

from statemodel.core.base import call_maybe_async, surface_location
from statemodel.core.errors import (
    DisposedUseError,
    ErrorContext,
    NavigationUnsupportedError,
    UnhandledEventError,
    UnregisteredStateError,
    ValidationFailedError,
)
from statemodel.core.options import ExecutorOptions, RetryOptions, StateValueFormat
from statemodel.core.paths import flatten_state_value, normalize_state_value, resolve_state_paths
from statemodel.core.registry import BindingRegistry
from statemodel.core.validation import ValidationEngine
from statemodel.interfaces.protocols import Binding
from statemodel.interfaces.types import EventID, StatePath, StateValue
from statemodel.runtime.adapters import MachineAdapter
from statemodel.runtime.retry import RetryDecorator, capture_failure_screenshot
from statemodel.runtime.serializer import DispatchSerializer
from statemodel.runtime.sync import SyncProbe

logger = logging.getLogger(__name__)


class Lifecycle(Enum):
    ACTIVE = auto()
    DISPOSED = auto()


class ModelExecutor:
    """
    Drives an external state machine and keeps the per-state bindings in step
    with it.

    Dispatches are serialized: concurrent callers are executed one at a time
    in submission order. ``validate_current_state`` is not serialized against
    in-flight dispatches and reads whatever state is current.

    One executor belongs to one logical test; never share an instance across
    concurrently running tests.
    """

    def __init__(
        self,
        surface: Any,
        machine: Any,
        registry: BindingRegistry,
        options: Optional[Union[ExecutorOptions, Mapping[str, Any]]] = None,
    ) -> None:
        """
        :param surface: External surface handle shared by every binding.
        :param machine: Machine descriptor or runtime, see MachineAdapter.
        :param registry: Bindings for the machine's states.
        :param options: ExecutorOptions, or a mapping of them.
        :raises InitializationFailedError: If the machine runtime cannot start.
        """
        if options is None or isinstance(options, ExecutorOptions):
            self._options = options or ExecutorOptions()
        else:
            self._options = ExecutorOptions.from_mapping(options)

        self._surface = surface
        self._registry = registry
        self._adapter = MachineAdapter(machine)
        self._serializer = DispatchSerializer()
        self._validator = ValidationEngine(surface)
        self._probe = SyncProbe(registry, self._adapter, surface)
        self._retry = RetryDecorator(self._dispatch_and_validate, surface, self._options)
        self._lifecycle = Lifecycle.ACTIVE
        self._last_state: Optional[str] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def lifecycle(self) -> Lifecycle:
        return self._lifecycle

    def _disposed_context(self) -> ErrorContext:
        return ErrorContext(
            expected_state=self._last_state,
            current_state=self._last_state,
            current_location=surface_location(self._surface),
        )

    def _ensure_active(self) -> None:
        if self._lifecycle is Lifecycle.DISPOSED:
            raise DisposedUseError(context=self._disposed_context())

    def dispose(self) -> None:
        """
        Stop the machine runtime and reject queued dispatches. Every later
        call raises DisposedUseError. Calling it again is a no-op.
        """
        if self._lifecycle is Lifecycle.DISPOSED:
            return
        self._last_state = flatten_state_value(self._adapter.current_value()) if self._adapter.is_running else None
        self._lifecycle = Lifecycle.DISPOSED
        self._serializer.close(self._disposed_context())
        self._adapter.stop()
        logger.debug("Executor disposed")

    async def __aenter__(self) -> "ModelExecutor":
        self._ensure_active()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.dispose()

    # ------------------------------------------------------------------
    # Read API
    # ------------------------------------------------------------------

    @property
    def options(self) -> ExecutorOptions:
        return self._options

    @property
    def registry(self) -> BindingRegistry:
        return self._registry

    @property
    def current_state_value(self) -> StateValue:
        """
        The machine's current state, rendered per ``state_value_format``.
        """
        self._ensure_active()
        value = self._adapter.current_value()
        if self._options.state_value_format is StateValueFormat.STRING:
            return flatten_state_value(value)
        return value

    @property
    def current_state_string(self) -> str:
        """The current state as a dotted key, e.g. "docs.overview"."""
        self._ensure_active()
        return flatten_state_value(self._adapter.current_value())

    @property
    def state_path(self) -> StatePath:
        """The current state path, root to leaf."""
        self._ensure_active()
        return resolve_state_paths(self._adapter.current_value())

    def _error_context(self, expected_state: Optional[str] = None) -> ErrorContext:
        current = flatten_state_value(self._adapter.current_value()) if self._adapter.is_running else None
        return ErrorContext(
            expected_state=expected_state if expected_state is not None else current,
            current_state=current,
            current_location=surface_location(self._surface),
        )

    # ------------------------------------------------------------------
    # Chain resolution and validation
    # ------------------------------------------------------------------

    def _resolve_chain(self) -> Tuple[StatePath, List[Binding]]:
        """
        Build fresh bindings for every key of the current path, injected with
        the current context.
        """
        path = resolve_state_paths(self._adapter.current_value())
        context = self._adapter.current_context()
        try:
            chain = [self._registry.get(key, context) for key in path]
        except UnregisteredStateError as error:
            raise UnregisteredStateError(error.key, self._error_context(error.key)) from None
        return path, chain

    async def _validate(self) -> None:
        path, chain = self._resolve_chain()
        await self._validator.validate_chain(chain, path)

    async def validate_current_state(self) -> None:
        """
        Validate the current chain from root to leaf.

        :raises ValidationFailedError: On the first binding that fails.
        """
        self._ensure_active()
        await self._validate()

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def dispatch(self, event: EventID, payload: Any = None) -> None:
        """
        Dispatch ``event`` through the active chain. Concurrent calls run one
        at a time in submission order; a failing call does not affect the
        calls queued after it.

        :param event: Machine event identifier.
        :param payload: Optional data made available to every binding in the
            chain through ``payload``.
        :raises UnhandledEventError: If the event changes state but no
            binding in the chain handles it.
        :raises ValidationFailedError: If the new state does not validate.
        """
        self._ensure_active()
        await self._serializer.submit(lambda: self._execute_dispatch(event, payload), label=event)

    @staticmethod
    def _find_handler(
        chain: List[Binding], path: StatePath, event: EventID
    ) -> Tuple[Optional[Callable[..., Any]], Optional[str]]:
        """
        Search the chain leaf to root; the first binding handling ``event`` wins.
        """
        for binding, key in zip(reversed(chain), reversed(path)):
            handler_for = getattr(binding, "handler_for", None)
            handler = handler_for(event) if callable(handler_for) else None
            if handler is not None:
                return handler, key
        return None, None

    async def _execute_dispatch(self, event: EventID, payload: Any) -> None:
        self._ensure_active()
        if not self._adapter.would_change(event, payload):
            logger.debug("'%s' would not change state %s; ignoring", event, self.current_state_string)
            return

        path, chain = self._resolve_chain()
        for binding in chain:
            set_payload = getattr(binding, "set_event_payload", None)
            if callable(set_payload):
                set_payload(payload)

        handler, owner = self._find_handler(chain, path, event)
        if handler is None and self._adapter.dry_run_reliable:
            raise UnhandledEventError(event, self._error_context())

        before = normalize_state_value(self._adapter.current_value())
        if handler is not None:
            logger.debug("'%s' handled by '%s'", event, owner)
            await call_maybe_async(handler)

        # dispose() may have run while the handler was awaited.
        self._ensure_active()
        self._adapter.send(event, payload)
        after_value = self._adapter.current_value()
        changed = normalize_state_value(after_value) != before

        if handler is None:
            if changed:
                raise UnhandledEventError(
                    event,
                    ErrorContext(
                        expected_state=flatten_state_value(after_value),
                        current_state=flatten_state_value(before),
                        current_location=surface_location(self._surface),
                    ),
                )
            logger.debug("'%s' was ignored by the machine", event)
            return

        if not changed and not self._adapter.dry_run_reliable:
            logger.debug("'%s' handled but the machine stayed in %s", event, flatten_state_value(after_value))
            return

        logger.debug("'%s' moved the machine to %s", event, flatten_state_value(after_value))
        await self._validate()

    async def _dispatch_and_validate(self, event: EventID, payload: Any) -> None:
        await self.dispatch(event, payload)
        await self.validate_current_state()

    async def navigate_and_validate(
        self,
        event: EventID,
        payload: Any = None,
        options: Optional[Union[RetryOptions, Mapping[str, Any]]] = None,
    ) -> None:
        """
        Dispatch ``event`` and validate the resulting state, retrying per the
        executor's default retry options merged with ``options``.
        """
        self._ensure_active()
        retry = self._options.default_retry_options.merged(options)
        await self._retry.with_retry(event, payload, retry)

    # ------------------------------------------------------------------
    # Expectations, direct navigation and sync
    # ------------------------------------------------------------------

    async def expect_state(self, expected: Union[str, StateValue], strict: bool = False) -> None:
        """
        Assert that the machine is in ``expected`` and that the surface agrees.

        :param expected: Dotted key or StateValue.
        :param strict: Require an exact match. Otherwise ``expected`` may be
            any state on the current path (an ancestor of the leaf).
        :raises ValidationFailedError: On mismatch or failed validation.
        """
        self._ensure_active()
        expected_value = normalize_state_value(expected)
        expected_key = flatten_state_value(expected_value)
        current_value = self._adapter.current_value()
        path = resolve_state_paths(current_value)

        if strict:
            matches = expected_value == normalize_state_value(current_value)
        else:
            matches = expected_key in path

        try:
            if not matches:
                raise ValidationFailedError(
                    state_key=expected_key,
                    state_path=path,
                    validation_chain=path,
                    context=self._error_context(expected_key),
                )
            await self._validate()
        except ValidationFailedError:
            await capture_failure_screenshot(self._surface, self._options)
            raise

    async def goto_state(self, target: Union[str, StateValue]) -> None:
        """
        Navigate the surface directly to ``target`` through its binding's
        ``goto()``. The machine is not touched; use sync_state_from_surface
        to check agreement afterwards.

        :raises NavigationUnsupportedError: If the binding has no goto().
        """
        self._ensure_active()
        key = flatten_state_value(normalize_state_value(target))
        try:
            binding = self._registry.get(key, self._adapter.current_context())
        except UnregisteredStateError:
            raise UnregisteredStateError(key, self._error_context(key)) from None
        goto = getattr(binding, "goto", None)
        if not callable(goto):
            raise NavigationUnsupportedError(key, self._error_context(key))
        logger.debug("Navigating surface to '%s'", key)
        await call_maybe_async(goto)

    async def detect_current_registered_state(self) -> str:
        """Return the most specific registered state matching the surface."""
        self._ensure_active()
        return await self._probe.detect_current_registered_state()

    async def sync_state_from_surface(self) -> str:
        """
        Check that the surface's detected state agrees with the machine.

        :raises DesyncDetectedError: If they disagree.
        """
        self._ensure_active()
        return await self._probe.sync_state_from_surface()


def create_executor(
    surface: Any,
    machine: Any,
    configure: Optional[Callable[[BindingRegistry], None]] = None,
    options: Optional[Union[ExecutorOptions, Mapping[str, Any]]] = None,
) -> ModelExecutor:
    """
    Build a registry for ``surface``, let ``configure`` register bindings on
    it and return an executor over ``machine``.

    Example::

        executor = create_executor(page, machine, lambda r: r.register_many({
            "home": HomePage,
            "docs": DocsPage,
            "docs.overview": DocsOverviewPage,
        }))
    """
    registry = BindingRegistry(surface)
    if configure is not None:
        configure(registry)
    return ModelExecutor(surface, machine, registry, options)
