"""
Concurrency throttle for decode and upload work.
Bounds how many operations run at once, queueing the rest in FIFO order.
"""

import asyncio
import logging
from collections import deque
from typing import Awaitable, Callable, Deque, Optional, TypeVar

from image_service.core.exceptions import ConfigurationError, DisposedError

T = TypeVar("T")


class ThrottleGate:
    """
    Counting gate with a FIFO wait queue.

    A finishing operation hands its slot straight to the head waiter on the
    next loop iteration, so late arrivals cannot overtake queued callers and
    releases never recurse through a chain of completions.
    """

    def __init__(self, max_concurrent: int = 3, logger: Optional[logging.Logger] = None):
        """
        Initialize the gate.

        Args:
            max_concurrent: Maximum number of operations running at once
            logger: Optional logger override

        Raises:
            ConfigurationError: If max_concurrent is not positive
        """
        if max_concurrent <= 0:
            raise ConfigurationError(f"max_concurrent must be positive, got {max_concurrent}")

        self._max_concurrent = max_concurrent
        self._active = 0
        self._waiters: Deque[asyncio.Future] = deque()
        self._disposed = False
        self._logger = logger or logging.getLogger(__name__)

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    @property
    def active(self) -> int:
        return self._active

    @property
    def queued(self) -> int:
        return sum(1 for waiter in self._waiters if not waiter.done())

    @property
    def disposed(self) -> bool:
        return self._disposed

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Run an operation once a slot is available.

        Args:
            operation: Zero-argument callable returning an awaitable

        Returns:
            The operation's result

        Raises:
            DisposedError: If the gate is disposed before the operation starts
        """
        await self._acquire()
        try:
            return await operation()
        finally:
            self._release()

    def dispose(self) -> None:
        """Fail every queued waiter and refuse further work. Safe to call twice."""
        if self._disposed:
            return
        self._disposed = True

        waiters, self._waiters = self._waiters, deque()
        failed = 0
        for waiter in waiters:
            if not waiter.done():
                waiter.set_exception(DisposedError("ThrottleGate"))
                failed += 1

        self._logger.info(
            f"[THROTTLE] Disposed ({self._active} running, {failed} queued waiters failed)"
        )

    async def _acquire(self) -> None:
        if self._disposed:
            raise DisposedError("ThrottleGate")

        if self._active < self._max_concurrent and not self._waiters:
            self._active += 1
            return

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled() and waiter.exception() is None:
                # Slot was handed over just before the cancellation landed
                self._release()
            else:
                try:
                    self._waiters.remove(waiter)
                except ValueError:
                    pass
            raise

        if self._disposed:
            self._release()
            raise DisposedError("ThrottleGate")

    def _release(self) -> None:
        if self._waiters and not self._disposed:
            asyncio.get_running_loop().call_soon(self._wake_next)
        else:
            self._active -= 1

    def _wake_next(self) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
                return
        # Every waiter left before the slot reached it
        self._active -= 1
