from __future__ import annotations

import asyncio

from lorekeeper.application.services.scheduler import Scheduler, TimerCallback, TimerHandle


class AsyncioScheduler(Scheduler):
    """Scheduler backed by an asyncio event loop's monotonic clock."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop or asyncio.get_running_loop()

    def now_ms(self) -> int:
        return int(self._loop.time() * 1000)

    def call_later(self, delay_ms: float, callback: TimerCallback) -> TimerHandle:
        delay = max(0.0, float(delay_ms))
        handle = TimerHandle(self.now_ms() + int(round(delay)), callback)
        loop_handle = self._loop.call_later(delay / 1000.0, handle.fire)
        handle.on_cancel(loop_handle.cancel)
        return handle
