"""
A cancellation primitive for in-flight transfers.
"""

import asyncio
from typing import Optional


class CancelToken:
    """
    Signals that a transfer should stop.

    Backed by an ``asyncio.Event`` so the executor can await it alongside the
    request instead of polling a flag. ``cancel()`` is synchronous and safe to
    call from a callback or a signal handler running on the event loop; calls
    after the first are ignored.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "Transfer cancelled by caller") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    async def wait(self) -> None:
        """Blocks until the token is cancelled."""
        await self._event.wait()
