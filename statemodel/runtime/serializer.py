# statemodel/runtime/serializer.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from statemodel.core.errors import DisposedUseError, ErrorContext

logger = logging.getLogger(__name__)

Work = Callable[[], Awaitable[Any]]


@dataclass
class _DispatchEntry:
    """
    One queued unit of work and the future its submitter is waiting on.
    """

    work: Work
    future: asyncio.Future
    label: str = ""


class DispatchSerializer:
    """
    Single-flight work queue: submitted units of work run strictly one at a
    time, in submission order, on a single consumer task. The outcome of each
    unit is delivered to its own submitter only, so a failing unit never
    blocks the units queued after it.

    Units that have started always run to completion; closing the serializer
    only rejects units that have not started yet. A unit that raises
    CancelledError settles as cancelled for its submitter only.
    """

    def __init__(self) -> None:
        self._queue: Optional[asyncio.Queue] = None
        self._consumer: Optional[asyncio.Task] = None
        self._active: Optional[_DispatchEntry] = None
        self._closed = False
        self._close_context: Optional[ErrorContext] = None
        self._processed = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        """Number of units queued and not yet started."""
        return self._queue.qsize() if self._queue is not None else 0

    @property
    def processed(self) -> int:
        """Number of units that have settled."""
        return self._processed

    def _ensure_consumer(self) -> asyncio.Queue:
        if self._queue is None:
            self._queue = asyncio.Queue()
        if self._consumer is None or self._consumer.done():
            self._consumer = asyncio.get_running_loop().create_task(self._consume())
        return self._queue

    async def submit(self, work: Work, label: str = "") -> Any:
        """
        Queue ``work`` behind every previously submitted unit and wait for its
        outcome.

        :param work: Zero-argument coroutine function to run.
        :param label: Name used in log messages.
        :return: The value returned by ``work``.
        :raises DisposedUseError: If the serializer has been closed.
        """
        if self._closed:
            raise DisposedUseError(context=self._close_context)
        queue = self._ensure_consumer()
        future = asyncio.get_running_loop().create_future()
        queue.put_nowait(_DispatchEntry(work=work, future=future, label=label))
        logger.debug("Queued '%s' (%d pending)", label, queue.qsize())
        return await future

    async def _consume(self) -> None:
        """
        Consumer loop: take entries one by one and settle their futures.
        A ``None`` entry stops the loop.
        """
        queue = self._queue
        while True:
            entry = await queue.get()
            try:
                if entry is None:
                    return
                if entry.future.cancelled():
                    logger.debug("Skipping '%s'; its submitter went away", entry.label)
                    continue
                self._active = entry
                await self._run(entry)
            finally:
                self._active = None
                queue.task_done()

    async def _run(self, entry: _DispatchEntry) -> None:
        # The unit runs in its own task so that a CancelledError raised by the
        # work itself is told apart from cancellation of the consumer.
        task = asyncio.ensure_future(entry.work())
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            if not entry.future.done():
                entry.future.cancel()
            raise
        finally:
            self._processed += 1

        if task.cancelled():
            logger.debug("'%s' was cancelled", entry.label)
            if not entry.future.done():
                entry.future.cancel()
            return
        error = task.exception()
        if entry.future.done():
            return
        if error is not None:
            entry.future.set_exception(error)
        else:
            entry.future.set_result(task.result())

    async def join(self) -> None:
        """Wait until every queued unit has settled."""
        if self._queue is not None:
            await self._queue.join()

    def close(self, context: Optional[ErrorContext] = None) -> None:
        """
        Reject queued units that have not started and stop the consumer once
        the unit in flight, if any, settles. Calling it again is a no-op.

        :param context: Diagnostic context attached to the DisposedUseError
            delivered to rejected units.
        """
        if self._closed:
            return
        self._closed = True
        self._close_context = context
        if self._queue is None or self._consumer is None or self._consumer.get_loop().is_closed():
            return

        rejected = 0
        while True:
            try:
                entry = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            if entry is not None and not entry.future.done():
                entry.future.set_exception(DisposedUseError(context=context))
                rejected += 1
            self._queue.task_done()

        if not self._consumer.done():
            if self._active is None:
                # Idle: waiting on an empty queue, nothing left to finish.
                self._consumer.cancel()
            else:
                self._queue.put_nowait(None)
        if rejected:
            logger.debug("Rejected %d queued unit(s) on close", rejected)
