# statemodel/core/validation.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import logging
from typing import Any, Sequence

from statemodel.core.base import call_maybe_async, surface_location
from statemodel.core.errors import ErrorContext, ValidationFailedError
from statemodel.interfaces.protocols import Binding

logger = logging.getLogger(__name__)


class ValidationEngine:
    """
    Validates a resolved chain of bindings from root to leaf. A parent's
    validity is a precondition for its children, so validation stops at the
    first failing level.
    """

    def __init__(self, surface: Any) -> None:
        """
        :param surface: Surface handle used to report the location on failure.
        """
        self._surface = surface

    async def validate_chain(self, chain: Sequence[Binding], path: Sequence[str]) -> None:
        """
        Await each binding's ``validate()`` in order.

        :param chain: Bindings ordered root to leaf.
        :param path: The state keys the bindings were resolved from.
        :raises ValidationFailedError: On the first binding that fails.
        """
        if len(chain) != len(path):
            raise ValueError(f"Chain of {len(chain)} bindings does not match path of {len(path)} keys")

        for index, (binding, key) in enumerate(zip(chain, path)):
            try:
                await call_maybe_async(binding.validate)
            except Exception as error:
                logger.debug("Validation failed at '%s' (level %d): %s", key, index, error)
                raise ValidationFailedError(
                    state_key=key,
                    state_path=path,
                    validation_chain=path[: index + 1],
                    original_error=error,
                    context=ErrorContext(
                        expected_state=key,
                        current_state=path[-1],
                        current_location=surface_location(self._surface),
                    ),
                ) from error
