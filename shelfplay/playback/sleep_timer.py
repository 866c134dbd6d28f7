"""
Sleep timer.

One-shot deferred action on the event loop. Setting a new delay replaces the
pending one.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class SleepTimer:
    """Runs `on_expire` once after a delay given in minutes."""

    def __init__(self, on_expire: Callable[[], Awaitable[None]]):
        self._on_expire = on_expire
        self._task: Optional[asyncio.Task] = None
        self._deadline: Optional[float] = None

    def set(self, minutes: float) -> None:
        """
        Schedule the action, cancelling any pending one.

        minutes <= 0 only cancels.
        """
        self.cancel()
        if minutes <= 0:
            logger.info("Sleep timer cleared")
            return

        delay = minutes * 60
        loop = asyncio.get_running_loop()
        self._deadline = loop.time() + delay
        self._task = asyncio.create_task(self._run(delay))
        logger.info(f"Sleep timer set for {minutes:g} min")

    def cancel(self) -> None:
        """Cancel the pending action, if any."""
        if self._task and not self._task.done():
            self._task.cancel()
        self._task = None
        self._deadline = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def remaining(self) -> Optional[float]:
        """Seconds until the action fires, or None if nothing is pending."""
        if not self.active or self._deadline is None:
            return None
        return max(0.0, self._deadline - asyncio.get_running_loop().time())

    async def _run(self, delay: float) -> None:
        try:
            await asyncio.sleep(delay)
        except asyncio.CancelledError:
            return
        self._task = None
        self._deadline = None
        logger.info("Sleep timer expired")
        try:
            await self._on_expire()
        except Exception as e:
            logger.error(f"Sleep timer action failed: {e}")
