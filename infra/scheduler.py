"""Delayed, cancellable background tasks keyed by an integer id."""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Dict, List

import structlog

logger = structlog.get_logger("infra.scheduler")

PurgeCallback = Callable[[int], Awaitable[object]]


class PurgeScheduler:
    """Holds one pending timer per key.

    A timer that has finished sleeping is no longer pending: cancelling it
    after that point is a no-op and the callback runs to completion.
    """

    def __init__(self) -> None:
        self._tasks: Dict[int, asyncio.Task] = {}

    def schedule(self, key: int, delay_seconds: float, callback: PurgeCallback) -> None:
        """Arm (or re-arm) the timer for `key`."""
        self.cancel(key)
        task = asyncio.create_task(
            self._run(key, delay_seconds, callback), name=f"purge-{key}"
        )
        self._tasks[key] = task
        logger.info("Purge scheduled", key=key, delay_seconds=delay_seconds)

    def cancel(self, key: int) -> bool:
        """Cancel the pending timer for `key`. Returns True if one was pending."""
        task = self._tasks.pop(key, None)
        if task is None or task.done():
            return False
        task.cancel()
        logger.info("Purge cancelled", key=key)
        return True

    def is_pending(self, key: int) -> bool:
        task = self._tasks.get(key)
        return task is not None and not task.done()

    def pending(self) -> List[int]:
        return [key for key, task in self._tasks.items() if not task.done()]

    async def shutdown(self) -> None:
        """Cancel every pending timer and wait for them to unwind."""
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("Scheduler stopped", cancelled=len(tasks))

    async def _run(self, key: int, delay_seconds: float, callback: PurgeCallback) -> None:
        await asyncio.sleep(delay_seconds)
        if self._tasks.get(key) is asyncio.current_task():
            del self._tasks[key]
        try:
            await callback(key)
        except Exception:
            logger.exception("Purge failed", key=key)
