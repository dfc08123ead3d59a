"""
Debouncing for UI events on a single cooperative event loop.

A new call replaces the pending one and restarts its window; the wrapped
function runs once, with the last arguments, when the loop polls after the
window has elapsed. Nothing runs on another thread.
"""

import time
from typing import Any, Callable, Optional


class Debouncer:
    def __init__(
        self,
        func: Callable[..., Any],
        delay_ms: int,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.func = func
        self.delay = delay_ms / 1000.0
        self.clock = clock
        self._deadline: Optional[float] = None
        self._args: tuple = ()
        self._kwargs: dict = {}

    def __call__(self, *args, **kwargs) -> None:
        self._args = args
        self._kwargs = kwargs
        self._deadline = self.clock() + self.delay

    @property
    def pending(self) -> bool:
        return self._deadline is not None

    def poll(self) -> bool:
        """Run the pending call if its window has elapsed. Returns True if it ran."""
        if self._deadline is None or self.clock() < self._deadline:
            return False
        self._fire()
        return True

    def flush(self) -> bool:
        """Run the pending call now, regardless of the window."""
        if self._deadline is None:
            return False
        self._fire()
        return True

    def cancel(self) -> None:
        self._deadline = None
        self._args, self._kwargs = (), {}

    def _fire(self) -> None:
        args, kwargs = self._args, self._kwargs
        self.cancel()
        self.func(*args, **kwargs)
