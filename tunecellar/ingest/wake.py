"""
Wake signal for the ingestion scheduler.

A single-slot, coalescing notification: a dirty flag guarded by an
`asyncio.Condition`.

Semantics:
- The signal starts *signalled*, so the scheduler rescans once at startup.
- `notify()` sets the flag. Any number of notifies before the next `wait()`
  collapse into one wake: this is at-least-once *wake* delivery, not
  one wake per upload. Callers must not assume one signal maps to one item.
- `close()` is permanent. A pending signal still wins over closure, so the
  scheduler performs one last rescan before `wait()` reports closure.
"""

from __future__ import annotations

import asyncio
import logging

logger = logging.getLogger(__name__)


class WakeSignal:
    """
    Dirty flag + condition used to trigger full rescans of pending uploads.

    Usage:
        wake = WakeSignal()

        # producer (upload endpoint)
        await wake.notify()

        # consumer (scheduler loop)
        while await wake.wait():
            await rescan()
    """

    def __init__(self, *, signalled: bool = True) -> None:
        self._dirty = signalled
        self._closed = False
        self._cond = asyncio.Condition()

    @property
    def pending(self) -> bool:
        """True if a wake has been requested and not yet consumed."""
        return self._dirty

    @property
    def closed(self) -> bool:
        return self._closed

    async def notify(self) -> None:
        """Request a rescan. Ignored once the signal is closed."""
        async with self._cond:
            if self._closed:
                logger.debug("Wake signal closed; ignoring notify")
                return
            self._dirty = True
            self._cond.notify_all()

    async def wait(self) -> bool:
        """
        Block until a rescan is requested or the signal is closed.

        Returns:
            True if a rescan was requested (the flag is consumed).
            False if the signal is closed and nothing is pending.
        """
        async with self._cond:
            await self._cond.wait_for(lambda: self._dirty or self._closed)
            if self._dirty:
                self._dirty = False
                return True
            return False

    async def close(self) -> None:
        """Permanently close the signal and release all waiters."""
        async with self._cond:
            if self._closed:
                return
            self._closed = True
            self._cond.notify_all()
        logger.debug("Wake signal closed")
