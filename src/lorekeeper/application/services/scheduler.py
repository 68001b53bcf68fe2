from __future__ import annotations

import heapq
from abc import ABC, abstractmethod
from collections.abc import Callable


TimerCallback = Callable[[], None]


class TimerHandle:
    def __init__(self, due_ms: int, callback: TimerCallback) -> None:
        self.due_ms = int(due_ms)
        self._callback = callback
        self._cancelled = False
        self._fired = False
        self._cancel_hooks: list[Callable[[], object]] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def active(self) -> bool:
        return not (self._cancelled or self._fired)

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        for hook in self._cancel_hooks:
            hook()

    def on_cancel(self, hook: Callable[[], object]) -> None:
        """Run ``hook`` when the handle is cancelled, e.g. to release a loop timer."""
        self._cancel_hooks.append(hook)

    def fire(self) -> None:
        if not self.active:
            return
        self._fired = True
        self._callback()


class Scheduler(ABC):
    """Clock plus one-shot timers; the only suspension point of the engine."""

    @abstractmethod
    def now_ms(self) -> int:
        raise NotImplementedError

    @abstractmethod
    def call_later(self, delay_ms: float, callback: TimerCallback) -> TimerHandle:
        raise NotImplementedError


class ManualScheduler(Scheduler):
    """Virtual clock driven by ``advance``; used by tests and frame-driven hosts."""

    def __init__(self, start_ms: int = 0) -> None:
        self._now = int(start_ms)
        self._queue: list[tuple[int, int, TimerHandle]] = []
        self._seq = 0

    def now_ms(self) -> int:
        return self._now

    def call_later(self, delay_ms: float, callback: TimerCallback) -> TimerHandle:
        due = self._now + max(0, int(round(delay_ms)))
        handle = TimerHandle(due, callback)
        heapq.heappush(self._queue, (due, self._seq, handle))
        self._seq += 1
        return handle

    def advance(self, delta_ms: float) -> int:
        """Move the clock forward, firing due timers in order. Returns fired count."""
        target = self._now + max(0, int(round(delta_ms)))
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, handle = heapq.heappop(self._queue)
            if not handle.active:
                continue
            self._now = max(self._now, due)
            handle.fire()
            fired += 1
        self._now = target
        return fired

    def run_until_idle(self, max_steps: int = 100_000) -> int:
        """Fire every pending timer, jumping the clock as needed."""
        fired = 0
        while fired < max_steps:
            self._drop_inactive()
            if not self._queue:
                break
            due = self._queue[0][0]
            fired += self.advance(due - self._now)
        return fired

    def pending_count(self) -> int:
        return sum(1 for _, _, handle in self._queue if handle.active)

    def _drop_inactive(self) -> None:
        while self._queue and not self._queue[0][2].active:
            heapq.heappop(self._queue)
