"""
apps.editor.services.scheduler
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Debounced scheduled-task handle.

A :class:`DebouncedTask` runs one callback *delay* seconds after the last
call to :meth:`DebouncedTask.reset`.  Every reset cancels the pending timer,
so a burst of resets yields exactly one run.  :meth:`DebouncedTask.fire_now`
cancels the timer and runs the callback synchronously on the calling thread.

The timer factory is injectable; tests pass a fake that records timers and
fires them by hand instead of sleeping.
"""
from __future__ import annotations

import threading
from typing import Any, Callable

import structlog

logger = structlog.get_logger(__name__)

TimerFactory = Callable[[float, Callable[[], None]], Any]


class DebouncedTask:
    """
    Args:
        delay: Seconds to wait after the last reset.
        callback: Zero-argument callable to run.
        timer_factory: ``factory(delay, function)`` returning an object with
            ``start()`` and ``cancel()``; defaults to :class:`threading.Timer`.
    """

    def __init__(
        self,
        delay: float,
        callback: Callable[[], None],
        timer_factory: TimerFactory | None = None,
    ) -> None:
        self.delay = delay
        self._callback = callback
        self._timer_factory = timer_factory or threading.Timer
        self._timer: Any = None
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def reset(self) -> None:
        """Cancel any pending run and schedule a new one."""
        with self._lock:
            self._cancel_timer()
            self._generation += 1
            generation = self._generation
            timer = self._timer_factory(self.delay, lambda: self._run(generation))
            # Never keep the interpreter alive for a pending write.
            if hasattr(timer, "daemon"):
                timer.daemon = True
            self._timer = timer
            timer.start()

    def cancel(self) -> None:
        with self._lock:
            self._generation += 1
            self._cancel_timer()

    def fire_now(self) -> None:
        """Cancel the timer and run the callback synchronously."""
        self.cancel()
        self._callback()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _run(self, generation: int) -> None:
        with self._lock:
            # A reset raced the timer thread; the newer timer owns the run.
            if generation != self._generation:
                return
            self._timer = None
        try:
            self._callback()
        except Exception:
            # Runs on the timer thread; nothing upstream can catch it.
            logger.exception("debounced_task_failed")
