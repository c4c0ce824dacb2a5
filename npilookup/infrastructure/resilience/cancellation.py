"""Caller-owned cancellation signal for registry requests.

A token is a cancelled flag plus an optional monotonic deadline. Once it
fires (explicit ``cancel()`` or deadline passed) the retry engine starts no
new attempt and abandons any pending backoff wait. Waiting goes through an
``asyncio.Event`` bound to the running loop, so one token can be reused
across ``asyncio.run`` calls.
"""

import asyncio
import time
from typing import Optional


class CancellationToken:
    """Cooperative cancellation signal with an optional deadline."""

    def __init__(self, deadline: Optional[float] = None):
        """Initializes the token.

        Args:
            deadline: Absolute ``time.monotonic()`` reading after which the
                token counts as cancelled. None means no deadline.
        """
        self._deadline = deadline
        self._fired = False
        self._event: Optional[asyncio.Event] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @classmethod
    def with_timeout(cls, seconds: float) -> "CancellationToken":
        """Creates a token that cancels itself ``seconds`` from now."""
        return cls(deadline=time.monotonic() + seconds)

    @property
    def deadline(self) -> Optional[float]:
        return self._deadline

    def cancel(self) -> None:
        self._fired = True
        if self._event is not None:
            self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._fired:
            return True
        return self._deadline is not None and time.monotonic() >= self._deadline

    def remaining(self) -> Optional[float]:
        """Seconds until the deadline (never negative), or None without one."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def _loop_event(self) -> asyncio.Event:
        # An asyncio.Event belongs to the loop that first waits on it.
        loop = asyncio.get_running_loop()
        if self._event is None or self._loop is not loop:
            self._event = asyncio.Event()
            self._loop = loop
            if self._fired:
                self._event.set()
        return self._event

    async def wait(self, timeout: float) -> bool:
        """Waits up to ``timeout`` seconds for cancellation.

        Returns:
            True if the token fired before the timeout elapsed, else False.
        """
        if self.cancelled:
            return True
        remaining = self.remaining()
        hits_deadline = remaining is not None and remaining <= timeout
        if hits_deadline:
            timeout = remaining
        try:
            await asyncio.wait_for(self._loop_event().wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return hits_deadline or self.cancelled
        return True

    async def wait_cancelled(self) -> None:
        """Waits until the token fires, with no timeout of its own."""
        if self._deadline is None:
            await self._loop_event().wait()
        else:
            await self.wait(self.remaining())
