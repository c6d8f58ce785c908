# statemodel/core/registry.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, List, Mapping

from statemodel.core.errors import UnregisteredStateError
from statemodel.interfaces.types import BindingFactory, StateKey

logger = logging.getLogger(__name__)


class BindingRegistry:
    """
    Maps state keys to binding constructors and builds a fresh binding for
    every lookup. The registry holds no binding instances, so each lookup sees
    the context it is given.

    A registry belongs to exactly one executor and must not be shared between
    concurrently running tests.
    """

    def __init__(self, surface: Any) -> None:
        """
        :param surface: Surface handle injected into every binding built.
        """
        self._surface = surface
        self._definitions: Dict[StateKey, BindingFactory] = {}

    @property
    def surface(self) -> Any:
        return self._surface

    def register(self, key: StateKey, factory: BindingFactory) -> None:
        """
        Register the binding constructor for a dotted state key.

        :param key: Dotted state key, e.g. "docs.overview".
        :param factory: Callable taking ``(surface, context)``.
        :raises ValueError: If the key is empty or the factory is not callable.
        """
        if not key:
            raise ValueError("State key must be a non-empty string")
        if not callable(factory):
            raise ValueError(f"Binding for state '{key}' must be callable")
        if key in self._definitions:
            logger.debug("Replacing binding registered for state '%s'", key)
        self._definitions[key] = factory

    def register_many(self, bindings: Mapping[StateKey, BindingFactory]) -> None:
        """
        Register several bindings at once.

        :param bindings: Mapping of state key to binding constructor.
        """
        for key, factory in bindings.items():
            self.register(key, factory)

    def get(self, key: StateKey, context: Any = None) -> Any:
        """
        Build a new binding for ``key`` injected with ``context``.

        :raises UnregisteredStateError: If nothing is registered for ``key``.
        """
        factory = self._definitions.get(key)
        if factory is None:
            raise UnregisteredStateError(key)
        return factory(self._surface, context)

    def list_keys(self) -> List[StateKey]:
        """Registered keys in registration order."""
        return list(self._definitions)

    def __contains__(self, key: object) -> bool:
        return key in self._definitions

    def __iter__(self) -> Iterator[StateKey]:
        return iter(list(self._definitions))

    def __len__(self) -> int:
        return len(self._definitions)
