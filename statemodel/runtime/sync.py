# statemodel/runtime/sync.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import logging
from typing import Any, List

from statemodel.core.base import call_maybe_async, surface_location
from statemodel.core.errors import DesyncDetectedError, ErrorContext, NoMatchingStateError
from statemodel.core.paths import flatten_state_value, normalize_state_value, state_depth, state_value_from_key
from statemodel.core.registry import BindingRegistry
from statemodel.interfaces.types import StateKey
from statemodel.runtime.adapters import MachineAdapter

logger = logging.getLogger(__name__)


class SyncProbe:
    """
    Discovers, by trying every registered binding's validation, which state
    the external surface is actually in, and compares it with the machine.
    """

    def __init__(self, registry: BindingRegistry, adapter: MachineAdapter, surface: Any = None) -> None:
        self._registry = registry
        self._adapter = adapter
        self._surface = surface if surface is not None else registry.surface

    def candidate_keys(self) -> List[StateKey]:
        """
        Registered keys, deepest first so the most specific match wins. Keys of
        equal depth keep registration order.
        """
        return sorted(self._registry.list_keys(), key=state_depth, reverse=True)

    async def detect_current_registered_state(self) -> StateKey:
        """
        Return the first registered key whose binding validates against the
        surface.

        :raises NoMatchingStateError: If no binding validates.
        """
        context = self._adapter.current_context()
        tried: List[StateKey] = []
        for key in self.candidate_keys():
            tried.append(key)
            binding = self._registry.get(key, context)
            try:
                await call_maybe_async(binding.validate)
            except Exception as error:
                logger.debug("Probe: '%s' does not match (%s)", key, error)
                continue
            logger.debug("Probe: surface matches '%s'", key)
            return key

        raise NoMatchingStateError(
            tried,
            ErrorContext(
                current_state=flatten_state_value(self._adapter.current_value()),
                current_location=surface_location(self._surface),
            ),
        )

    async def sync_state_from_surface(self) -> StateKey:
        """
        Detect the surface's state and check it against the machine. The
        machine is never modified; a mismatch must be repaired by an explicit
        transition.

        :return: The detected key when the machine agrees.
        :raises DesyncDetectedError: ``expected_state`` is the machine's state,
            ``current_state`` the state observed on the surface.
        """
        detected = await self.detect_current_registered_state()
        machine_value = self._adapter.current_value()
        if normalize_state_value(state_value_from_key(detected)) != normalize_state_value(machine_value):
            raise DesyncDetectedError(
                detected,
                ErrorContext(
                    expected_state=flatten_state_value(machine_value),
                    current_state=detected,
                    current_location=surface_location(self._surface),
                ),
            )
        return detected
