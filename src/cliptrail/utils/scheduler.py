"""Timer facility used by the engine.

All periodic work (clipboard polling, permission retries, settings auto-save)
and externally delivered lifecycle signals go through a ``Scheduler`` so that
every callback runs on one logical control thread.
"""

import concurrent.futures
import heapq
import itertools
import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

Callback = Callable[[], None]
T = TypeVar("T")


class TimerHandle:
    """Cancelable reference to a scheduled callback."""

    def __init__(self, callback: Callback, interval: Optional[float] = None) -> None:
        self.callback = callback
        self.interval = interval
        self.cancelled = False

    @property
    def repeating(self) -> bool:
        return self.interval is not None

    def cancel(self) -> None:
        self.cancelled = True

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else "active"
        return f"<TimerHandle {getattr(self.callback, '__name__', self.callback)!s} {state}>"


class Scheduler(ABC):

    @abstractmethod
    def call_later(self, delay: float, callback: Callback) -> TimerHandle:
        pass

    @abstractmethod
    def call_repeating(self, interval: float, callback: Callback) -> TimerHandle:
        pass

    def call_soon(self, callback: Callback) -> TimerHandle:
        return self.call_later(0.0, callback)

    def cancel(self, handle: Optional[TimerHandle]) -> None:
        if handle is not None:
            handle.cancel()

    def run_sync(self, callback: Callable[[], T]) -> T:
        """Run ``callback`` on the control thread and return its result."""
        return callback()


class _TimerQueue:
    """Heap of (due, sequence, handle) shared by both scheduler flavours."""

    def __init__(self) -> None:
        self._heap: List[Tuple[float, int, TimerHandle]] = []
        self._counter = itertools.count()

    def push(self, due: float, handle: TimerHandle) -> None:
        heapq.heappush(self._heap, (due, next(self._counter), handle))

    def pop_due(self, now: float) -> Optional[Tuple[float, TimerHandle]]:
        while self._heap:
            due, _, handle = self._heap[0]
            if handle.cancelled:
                heapq.heappop(self._heap)
                continue
            if due > now:
                return None
            heapq.heappop(self._heap)
            return due, handle
        return None

    def next_due(self) -> Optional[float]:
        while self._heap and self._heap[0][2].cancelled:
            heapq.heappop(self._heap)
        return self._heap[0][0] if self._heap else None

    def __len__(self) -> int:
        return sum(1 for _, _, handle in self._heap if not handle.cancelled)


def _run_callback(handle: TimerHandle) -> None:
    try:
        handle.callback()
    except Exception:
        logger.exception("Scheduled callback %r failed", handle)


class ThreadScheduler(Scheduler):
    """Runs every callback on a single background worker thread."""

    def __init__(self) -> None:
        self._queue = _TimerQueue()
        self._condition = threading.Condition()
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    # ---------------------------------------------------------------------
    # Lifecycle management
    # ---------------------------------------------------------------------
    def start(self) -> None:
        with self._condition:
            if self._thread is not None:
                return
            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._loop, name="cliptrail-scheduler", daemon=True)
            self._thread.start()

    def stop(self) -> None:
        with self._condition:
            self._stop_event.set()
            self._condition.notify_all()
            thread = self._thread
            self._thread = None

        # join outside the lock; a callback may call stop() on this thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()

    def run_forever(self) -> None:
        """Block the caller until ``stop()`` is called or Ctrl+C is pressed."""
        self.start()
        try:
            while not self._stop_event.wait(timeout=0.25):
                continue
        except KeyboardInterrupt:
            logger.info("Scheduler interrupted by user")
        finally:
            self.stop()

    @property
    def running(self) -> bool:
        return self._thread is not None

    # ---------------------------------------------------------------------
    # Scheduling
    # ---------------------------------------------------------------------
    def call_later(self, delay: float, callback: Callback) -> TimerHandle:
        handle = TimerHandle(callback)
        self._push(time.monotonic() + max(delay, 0.0), handle)
        return handle

    def call_repeating(self, interval: float, callback: Callback) -> TimerHandle:
        if interval <= 0:
            raise ValueError("interval must be positive")
        handle = TimerHandle(callback, interval)
        self._push(time.monotonic() + interval, handle)
        return handle

    def run_sync(self, callback: Callable[[], T]) -> T:
        """Run ``callback`` on the worker thread and wait for its result.

        Called from the worker itself, or while the worker is not running,
        the callback runs inline.
        """
        thread = self._thread
        if thread is None or thread is threading.current_thread():
            return callback()

        future: "concurrent.futures.Future[T]" = concurrent.futures.Future()

        def job() -> None:
            if not future.set_running_or_notify_cancel():
                return
            try:
                future.set_result(callback())
            except BaseException as e:
                future.set_exception(e)

        self.call_soon(job)
        while True:
            try:
                return future.result(timeout=0.25)
            except concurrent.futures.TimeoutError:
                # worker stopped before reaching the job
                if not self.running and future.cancel():
                    return callback()

    def _push(self, due: float, handle: TimerHandle) -> None:
        with self._condition:
            self._queue.push(due, handle)
            self._condition.notify_all()

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            with self._condition:
                entry = self._queue.pop_due(time.monotonic())
                if entry is None:
                    next_due = self._queue.next_due()
                    timeout = None if next_due is None else max(next_due - time.monotonic(), 0.0)
                    self._condition.wait(timeout=timeout)
                    continue

            due, handle = entry
            _run_callback(handle)
            if handle.repeating and not handle.cancelled:
                # fixed cadence; skip missed beats instead of bursting
                next_due = due + handle.interval
                now = time.monotonic()
                if next_due < now:
                    next_due = now + handle.interval
                self._push(next_due, handle)

    def __enter__(self) -> "ThreadScheduler":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()


class ManualScheduler(Scheduler):
    """Deterministic scheduler driven by a virtual clock.

    Nothing runs until ``advance()`` or ``run_pending()`` is called, which
    makes it possible to step timer-driven behaviour one beat at a time.
    """

    def __init__(self) -> None:
        self._queue = _TimerQueue()
        self.now = 0.0

    def call_later(self, delay: float, callback: Callback) -> TimerHandle:
        handle = TimerHandle(callback)
        self._queue.push(self.now + max(delay, 0.0), handle)
        return handle

    def call_repeating(self, interval: float, callback: Callback) -> TimerHandle:
        if interval <= 0:
            raise ValueError("interval must be positive")
        handle = TimerHandle(callback, interval)
        self._queue.push(self.now + interval, handle)
        return handle

    def run_pending(self) -> int:
        """Run every callback due at the current virtual time."""
        return self._run_until(self.now)

    def advance(self, seconds: float) -> int:
        """Move the clock forward, firing callbacks in due order."""
        return self._run_until(self.now + seconds)

    def _run_until(self, target: float) -> int:
        fired = 0
        while True:
            # small epsilon so 6 x 0.5 lands exactly on 3.0
            entry = self._queue.pop_due(target + 1e-9)
            if entry is None:
                break
            due, handle = entry
            self.now = max(self.now, due)
            _run_callback(handle)
            fired += 1
            if handle.repeating and not handle.cancelled:
                self._queue.push(due + handle.interval, handle)
        self.now = max(self.now, target)
        return fired

    @property
    def pending(self) -> int:
        return len(self._queue)
