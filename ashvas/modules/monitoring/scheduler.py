from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

import structlog

log = structlog.get_logger()


class TaskScheduler:
    """Keyed one-shot timers; scheduling a key cancels and replaces its pending timer."""

    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Task[None]] = {}

    def schedule(
        self,
        token: str,
        delay_seconds: float,
        callback: Callable[[], Awaitable[None]],
    ) -> asyncio.Task[None]:
        self.cancel(token)

        async def _fire() -> None:
            try:
                await asyncio.sleep(max(0.0, delay_seconds))
            except asyncio.CancelledError:
                return
            # Unregister first so the callback may schedule the same key again
            if self._tasks.get(token) is asyncio.current_task():
                self._tasks.pop(token, None)
            try:
                await callback()
            except Exception:
                log.exception("scheduled callback failed", token=token)

        task = asyncio.create_task(_fire(), name=f"timer:{token}")
        self._tasks[token] = task
        return task

    def cancel(self, token: str) -> bool:
        task = self._tasks.pop(token, None)
        if task and not task.done():
            task.cancel()
            return True
        return False

    def is_pending(self, token: str) -> bool:
        task = self._tasks.get(token)
        return task is not None and not task.done()

    def cancel_all(self) -> None:
        for token in list(self._tasks):
            self.cancel(token)
