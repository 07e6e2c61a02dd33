"""FIFO mutual exclusion for one FTP session.

Only one command/reply or command/transfer exchange may be in flight on
a control connection. Waiters are granted the lock strictly in the order
they asked for it, and ownership passes directly from the releasing task
to the next waiter.
"""

import asyncio
from collections import deque
from typing import Deque


class CommandLock:
    """
    Ordered async mutex.

    Usage:
        lock = CommandLock()

        async with lock:
            await control.send(...)

    Code already holding the lock must never acquire it again.
    """

    def __init__(self):
        """Initialize an unlocked lock."""
        self._locked = False
        self._waiters: Deque[asyncio.Future] = deque()

    @property
    def locked(self) -> bool:
        """True if some task holds the lock."""
        return self._locked

    @property
    def waiting(self) -> int:
        """Number of tasks queued for the lock."""
        return sum(1 for waiter in self._waiters if not waiter.done())

    async def acquire(self) -> None:
        """Suspend until the caller is the sole holder."""
        if not self._locked and not self._waiters:
            self._locked = True
            return

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # Ownership was handed over just before cancellation
                self.release()
            elif waiter in self._waiters:
                self._waiters.remove(waiter)
            raise

    def release(self) -> None:
        """
        Hand the lock to the next waiter, or mark it free.

        Raises:
            RuntimeError: If the lock is not held
        """
        if not self._locked:
            raise RuntimeError("release() called on an unlocked CommandLock")

        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
                return

        self._locked = False

    async def __aenter__(self) -> "CommandLock":
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()
