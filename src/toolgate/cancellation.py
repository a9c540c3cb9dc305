"""
Cooperative cancellation.

Long-running operations (terminal runs, content scans, web-search retries)
receive a CancellationToken and check it at well-defined points. Cancelling
is a request, not a guarantee: callers still await the final result.
"""

import asyncio
import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)


class CancellationToken:
    """A one-shot cancellation flag with callbacks."""

    def __init__(self) -> None:
        self._cancelled = False
        self._callbacks: list[Callable[[], None]] = []
        self._event = asyncio.Event()

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Request cancellation. Calling it more than once is a no-op."""
        if self._cancelled:
            return
        self._cancelled = True
        self._event.set()
        for callback in self._callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Cancellation callback failed")
        self._callbacks.clear()

    def on_cancel(self, callback: Callable[[], None]) -> None:
        """Run callback on cancellation (immediately if already cancelled)."""
        if self._cancelled:
            callback()
        else:
            self._callbacks.append(callback)

    async def wait(self) -> None:
        """Block until cancellation is requested."""
        await self._event.wait()

    async def sleep(self, delay: float) -> bool:
        """Sleep for delay seconds, waking early on cancellation. Returns is_cancelled."""
        try:
            await asyncio.wait_for(self.wait(), delay)
        except TimeoutError:
            pass
        return self._cancelled
