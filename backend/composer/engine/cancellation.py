# composer/engine/cancellation.py
import asyncio
from typing import Awaitable, Optional, TypeVar

from composer.domain.invariants.exceptions import OperationCancelled

T = TypeVar("T")


class CancelToken:
    """
    Cooperative abort signal handed to every store call.

    Cancelling is one-way; a token is never reused after it fires.
    """

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "superseded") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelled(self.reason or "cancelled")

    async def wait(self) -> None:
        await self._event.wait()


def check_signal(signal: Optional[CancelToken]) -> None:
    if signal is not None:
        signal.raise_if_cancelled()


async def run_cancellable(awaitable: Awaitable[T], signal: Optional[CancelToken]) -> T:
    """
    Await ``awaitable`` unless ``signal`` fires first.

    On cancellation the pending call is abandoned and ``OperationCancelled``
    is raised; whatever it eventually returns is never observed.
    """
    if signal is None:
        return await awaitable

    if signal.cancelled:
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        signal.raise_if_cancelled()

    call = asyncio.ensure_future(awaitable)
    abort = asyncio.ensure_future(signal.wait())

    try:
        await asyncio.wait({call, abort}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        abort.cancel()

    if call.done():
        return call.result()

    call.cancel()
    raise OperationCancelled(signal.reason or "cancelled")
