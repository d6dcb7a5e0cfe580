"""
Coordination primitives shared by the controller and the retrieval witness.

CancellationToken is cooperative: the interrogation loop checks it between
iterations and never interrupts an in-flight call. SingleFlight runs an
expensive coroutine at most once at a time and lets every concurrent caller
await that one attempt.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationToken:
    """One-way flag: once cancelled it stays cancelled."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class SingleFlight(Generic[T]):
    """
    Slot holding nothing, a pending task, or a completed result.

    - idle    -> run(): start the task, record it as pending
    - pending -> run(): await the same task (no second attempt)
    - task ok -> done, result stored, pending cleared
    - task err-> pending cleared, not done; every waiter of that attempt sees the error
    - reset() -> idle; a task still in flight cannot settle into the new slot
    """

    def __init__(self, name: str = "single-flight") -> None:
        self._name = name
        self._pending: asyncio.Task | None = None
        self._result: T | None = None
        self._done = False

    @property
    def done(self) -> bool:
        return self._done

    @property
    def result(self) -> T | None:
        return self._result

    async def run(self, factory: Callable[[], Awaitable[T]]) -> T:
        if self._done:
            return self._result  # type: ignore[return-value]
        task = self._pending
        if task is None:
            logger.info("[%s] starting new attempt", self._name)
            task = asyncio.ensure_future(factory())
            self._pending = task
            task.add_done_callback(self._settle)
        else:
            logger.info("[%s] attempt already in flight; awaiting it", self._name)
        # shield: one waiter being cancelled must not cancel the shared attempt
        return await asyncio.shield(task)

    def reset(self) -> None:
        self._pending = None
        self._result = None
        self._done = False

    def _settle(self, task: "asyncio.Task[Any]") -> None:
        if self._pending is not task:
            # Slot was reset while this attempt ran; drop its outcome.
            if not task.cancelled():
                task.exception()
            return
        self._pending = None
        if task.cancelled():
            logger.warning("[%s] attempt cancelled", self._name)
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("[%s] attempt failed: %s", self._name, exc)
            return
        self._result = task.result()
        self._done = True
        logger.info("[%s] attempt succeeded", self._name)
