"""Explicit cancellation tokens for async operations.

A token is handed to every cancellable call. The call awaits its I/O through
``token.run()``, which races the I/O against the token and short-circuits with
``OperationCancelledError`` as soon as the token is cancelled.
"""

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from nftscout.core.errors import OperationCancelledError

T = TypeVar("T")


class CancellationToken:
    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise OperationCancelledError(self.reason)

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the token is cancelled first.

        The pending work is cancelled when the token wins the race, so no
        sockets or timers outlive the cancellation.
        """
        if self.cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise OperationCancelledError(self.reason)
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if self.cancelled:
            if task.done():
                if not task.cancelled():
                    task.exception()  # mark retrieved; the result is discarded
            else:
                task.cancel()
            raise OperationCancelledError(self.reason)
        return task.result()
