"""Single-worker job queue with a periodic timer.

The interval timer and the bot commands both submit jobs here.  One worker
thread runs them in submission order, so a poll and a reset can never
interleave on the state file.
"""
from __future__ import annotations

import logging
import queue
import threading
from concurrent.futures import Future
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

_STOP = object()


class Scheduler:
    def __init__(self, check: Callable[[bool], Any], interval_seconds: float) -> None:
        self.check = check
        self.interval_seconds = max(0.0, float(interval_seconds))
        self._queue: "queue.Queue[Any]" = queue.Queue()
        self._stop = threading.Event()
        self._worker: Optional[threading.Thread] = None
        self._timer: Optional[threading.Thread] = None

    def submit(self, fn: Callable[..., Any], *args: Any) -> Future:
        """Queue ``fn(*args)`` for the worker and return a future for its result."""
        fut: Future = Future()
        self._queue.put((fut, fn, args))
        return fut

    def request_check(self, manual: bool = False) -> Future:
        return self.submit(self.check, manual)

    def _run_worker(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                fut, fn, args = item
                if not fut.set_running_or_notify_cancel():
                    continue
                try:
                    fut.set_result(fn(*args))
                except Exception as e:
                    logger.exception("Scheduled job %s failed", getattr(fn, "__name__", fn))
                    fut.set_exception(e)
            finally:
                self._queue.task_done()

    def _run_timer(self) -> None:
        logger.info("Polling every %.0f ms", self.interval_seconds * 1000)
        last = self.request_check(False)
        while not self._stop.wait(self.interval_seconds):
            # At most one timer check queued or running at a time.
            if not last.done():
                logger.debug("Previous check still pending; skipping this tick")
                continue
            last = self.request_check(False)

    def start(self, *, run_timer: bool = True) -> None:
        self._worker = threading.Thread(target=self._run_worker, name="check-worker", daemon=True)
        self._worker.start()
        if run_timer:
            self._timer = threading.Thread(target=self._run_timer, name="interval-timer", daemon=True)
            self._timer.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop the timer and let the worker exit after the job it is running."""
        self._stop.set()
        if self._timer is not None:
            self._timer.join(timeout)
        # Pending jobs are cancelled; only the in-flight one finishes.
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                break
            if item is not _STOP:
                item[0].cancel()
            self._queue.task_done()
        self._queue.put(_STOP)
        if self._worker is not None:
            self._worker.join(timeout)


__all__ = ["Scheduler"]
