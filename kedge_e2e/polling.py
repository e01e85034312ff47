"""Deadline and cancellation support for polling loops"""

import asyncio
import time
from typing import Optional

from .errors import RunCancelledError, WaitTimeoutError


class Deadline:
    """Bounds a polling loop by time and by a shared cancel event.

    A timeout of None or <= 0 means the loop may wait forever; the cancel
    event still stops it.
    """

    def __init__(self, timeout: Optional[float], cancel: Optional[asyncio.Event] = None,
                 what: str = "condition"):
        self.timeout = timeout if timeout and timeout > 0 else None
        self.cancel = cancel
        self.what = what
        self.expires_at = time.monotonic() + self.timeout if self.timeout else None

    def remaining(self) -> Optional[float]:
        if self.expires_at is None:
            return None
        return max(0.0, self.expires_at - time.monotonic())

    def expired(self) -> bool:
        return self.expires_at is not None and time.monotonic() >= self.expires_at

    def check(self):
        """Raise if the run was cancelled or the deadline has passed"""
        if self.cancel is not None and self.cancel.is_set():
            raise RunCancelledError(self.what)
        if self.expired():
            raise WaitTimeoutError(self.what, self.timeout)

    async def pause(self, interval: float):
        """Sleep between two polls, waking early on cancellation"""
        self.check()
        delay = interval
        remaining = self.remaining()
        if remaining is not None:
            delay = min(delay, remaining)

        if self.cancel is None:
            await asyncio.sleep(delay)
        else:
            try:
                await asyncio.wait_for(self.cancel.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass
        self.check()
