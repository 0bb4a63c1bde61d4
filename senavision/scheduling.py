"""Event loop adapter for timers and background jobs.

Every piece of session state is mutated on a single asyncio loop. Components
never touch the loop directly; they receive a scheduler offering:

- ``time()``: monotonic seconds
- ``call_later(delay, callback, *args)``: returns a handle with ``cancel()``
- ``submit(func, on_done, *args)``: runs a blocking ``func`` on a worker
  thread and calls ``on_done(result, error)`` back on the loop thread
- ``call_threadsafe(callback, *args)``: hands an event from another thread
  to the loop

Timer callbacks must re-check state when they fire; cancelling a handle is a
best effort, not a guarantee.
"""

import asyncio
from concurrent.futures import Executor
from typing import Callable, Optional


class LoopScheduler:
    """Scheduler backed by a running asyncio event loop"""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None,
                 executor: Optional[Executor] = None):
        self.loop = loop or asyncio.get_running_loop()
        self.executor = executor

    def time(self) -> float:
        return self.loop.time()

    def call_later(self, delay: float, callback: Callable, *args) -> asyncio.TimerHandle:
        return self.loop.call_later(delay, callback, *args)

    def call_threadsafe(self, callback: Callable, *args):
        self.loop.call_soon_threadsafe(callback, *args)

    def submit(self, func: Callable, on_done: Callable, *args) -> asyncio.Future:
        future = self.loop.run_in_executor(self.executor, func, *args)
        future.add_done_callback(lambda f: self._deliver(f, on_done))
        return future

    @staticmethod
    def _deliver(future: asyncio.Future, on_done: Callable):
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            on_done(None, error)
        else:
            on_done(future.result(), None)
