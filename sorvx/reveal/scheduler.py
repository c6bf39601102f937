"""Timer scheduling for reveal steps."""
import asyncio
from collections.abc import Callable
from typing import Protocol


class Cancellable(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable:
        """Run `callback` once after `delay` seconds."""
        ...


class LoopScheduler:
    """Schedules on an asyncio event loop (the running one by default)."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self.loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = self.loop or asyncio.get_running_loop()
        return loop.call_later(max(delay, 0.0), callback)
