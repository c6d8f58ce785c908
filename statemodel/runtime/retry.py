# statemodel/runtime/retry.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Awaitable, Callable, Optional

from statemodel.core.base import call_maybe_async
from statemodel.core.errors import ValidationFailedError
from statemodel.core.options import ExecutorOptions, RetryOptions
from statemodel.interfaces.types import EventID

logger = logging.getLogger(__name__)

Operation = Callable[[EventID, Any], Awaitable[None]]


async def capture_failure_screenshot(surface: Any, options: ExecutorOptions) -> Optional[str]:
    """
    Save a screenshot of the surface if enabled in ``options`` and supported
    by the surface. A failing capture is logged and never replaces the error
    being reported.

    :return: The path written, or None when nothing was captured.
    """
    if not options.screenshot_on_failure:
        return None
    screenshot = getattr(surface, "screenshot", None)
    if not callable(screenshot):
        logger.debug("Surface %r cannot take screenshots", surface)
        return None

    path = options.resolve_screenshot_path()
    directory = os.path.dirname(path)
    try:
        if directory:
            os.makedirs(directory, exist_ok=True)
        await call_maybe_async(screenshot, path)
    except Exception:
        logger.warning("Failed to capture failure screenshot to %s", path, exc_info=True)
        return None
    logger.info("Captured failure screenshot: %s", path)
    return path


class RetryDecorator:
    """
    Wraps a dispatch-and-validate operation with bounded retries and a
    constant delay between attempts.
    """

    def __init__(self, operation: Operation, surface: Any = None, options: Optional[ExecutorOptions] = None) -> None:
        """
        :param operation: Coroutine function ``(event, payload)`` performing one attempt.
        :param surface: Surface handle used for failure screenshots.
        :param options: Executor options providing retry defaults and screenshot settings.
        """
        self._operation = operation
        self._surface = surface
        self._options = options or ExecutorOptions()
        self.last_attempts = 0

    async def with_retry(self, event: EventID, payload: Any = None, options: Optional[RetryOptions] = None) -> None:
        """
        Attempt the operation up to ``retries + 1`` times.

        Only validation failures passing the ``retryable_errors`` filter are
        retried; any other error is raised after the first attempt. After
        the last attempt a screenshot is captured when enabled and the last
        error is raised.

        :param event: Event to dispatch.
        :param payload: Optional event payload.
        :param options: Per-call retry options; defaults to the executor's.
        """
        retry = options or self._options.default_retry_options
        attempts = retry.retries + 1
        last_error: Optional[Exception] = None
        self.last_attempts = 0

        for attempt in range(1, attempts + 1):
            self.last_attempts = attempt
            try:
                await self._operation(event, payload)
                return
            except Exception as error:
                last_error = error
                if not isinstance(error, ValidationFailedError) or not retry.is_retryable(error) or attempt == attempts:
                    break
                logger.warning(
                    "Attempt %d/%d for '%s' failed: %s; retrying in %sms",
                    attempt,
                    attempts,
                    event,
                    error,
                    retry.delay,
                )
                await asyncio.sleep(retry.delay / 1000)

        logger.error("'%s' failed after %d attempt(s): %s", event, self.last_attempts, last_error)
        await capture_failure_screenshot(self._surface, self._options)
        raise last_error
