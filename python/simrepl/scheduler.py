"""Single-consumer command scheduler.

Any number of producer threads hand closures ("thunks") to exactly one
consumer thread, which is the only thread allowed to touch the target state.
The consumer is either the host's own update loop calling :meth:`Scheduler.drain`
once per tick (cooperative mode) or a dedicated thread started with
:meth:`Scheduler.start_background`.

Execution order is global FIFO. A startup barrier lets an ordered list of
initial commands run to completion before interactive submissions are
admitted.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Deque, Optional

from .errors import CommandTimeout, ExecutionFault, SchedulerError

LOGGER = logging.getLogger("simrepl.scheduler")


@dataclass(eq=False)
class Thunk:
    """A queued unit of work with a one-shot completion signal."""

    body: Callable[[], None]
    label: str = ""
    done: threading.Event = field(default_factory=threading.Event)
    error: Optional[BaseException] = None
    started: bool = False
    cancelled: bool = False


class BarrierState(Enum):
    IDLE = "idle"
    ARMED = "armed"
    RELEASED = "released"


class StartupBarrier:
    """One-shot gate ordering launch-time commands ahead of interactive ones.

    ``IDLE`` until a transport arms it, ``ARMED`` while initial commands run,
    then permanently ``RELEASED``. Shares the scheduler's condition variable.
    """

    def __init__(self, condition: threading.Condition) -> None:
        self._cv = condition
        self.state = BarrierState.IDLE

    @property
    def armed(self) -> bool:
        return self.state is BarrierState.ARMED

    @property
    def released(self) -> bool:
        return self.state is BarrierState.RELEASED

    def arm(self) -> bool:
        """Arm the barrier; returns False if it was already used."""
        with self._cv:
            if self.state is not BarrierState.IDLE:
                return False
            self.state = BarrierState.ARMED
            return True

    def release(self) -> None:
        with self._cv:
            if self.state is BarrierState.RELEASED:
                return
            self.state = BarrierState.RELEASED
            self._cv.notify_all()

    def wait_open(self, deadline: Optional[float] = None) -> bool:
        """Block while the barrier is armed; caller must hold the condition.

        Returns False if the monotonic ``deadline`` passed first.
        """
        while self.state is BarrierState.ARMED:
            if deadline is None:
                self._cv.wait()
                continue
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            self._cv.wait(remaining)
        return True


class Scheduler:
    """FIFO handoff from many producers to a single consumer."""

    def __init__(self) -> None:
        self._queue: Deque[Thunk] = deque()
        self._cv = threading.Condition(threading.Lock())
        self.barrier = StartupBarrier(self._cv)
        self._drain_lock = threading.Lock()
        self._consumer_ident: Optional[int] = None
        # Cooperative consumer thread, bound by the first drain().
        self._owner_ident: Optional[int] = None
        self._background: Optional[threading.Thread] = None
        self._stopping = False
        self._closed = False

    #
    # Producer side
    #
    def submit(
        self,
        body: Callable[[], None],
        *,
        label: str = "",
        timeout: Optional[float] = None,
        startup: bool = False,
    ) -> None:
        """Queue ``body`` and block until the consumer has run it.

        Raises :class:`ExecutionFault` if the body raised and
        :class:`CommandTimeout` if ``timeout`` elapsed first.
        """
        thunk = Thunk(body, label or getattr(body, "__name__", "command"))
        if self._on_consumer_thread():
            # Already on the consumer thread, which owns the target.
            self._run(thunk)
        else:
            deadline = None if timeout is None else time.monotonic() + timeout
            with self._cv:
                if not startup and not self.barrier.wait_open(deadline):
                    LOGGER.warning("command %s timed out behind the startup barrier", thunk.label)
                    raise CommandTimeout(thunk.label, float(timeout or 0.0), started=False)
                if self._closed:
                    raise SchedulerError("scheduler is shut down")
                self._queue.append(thunk)
                self._cv.notify_all()
            self._await(thunk, deadline, timeout)
        if thunk.cancelled and isinstance(thunk.error, SchedulerError):
            raise thunk.error
        if thunk.error is not None:
            raise ExecutionFault(thunk.label, thunk.error) from thunk.error

    def _on_consumer_thread(self) -> bool:
        ident = threading.get_ident()
        if ident == self._consumer_ident:
            return True
        # Between drains the host loop still owns the target.
        return self._background is None and ident == self._owner_ident

    def _await(self, thunk: Thunk, deadline: Optional[float], timeout: Optional[float]) -> None:
        remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
        if thunk.done.wait(remaining):
            return
        with self._cv:
            if thunk.done.is_set():
                return
            if not thunk.started:
                thunk.cancelled = True
                try:
                    self._queue.remove(thunk)
                except ValueError:
                    pass
            started = thunk.started
        LOGGER.warning("command %s timed out after %ss", thunk.label, timeout)
        raise CommandTimeout(thunk.label, float(timeout or 0.0), started=started)

    @property
    def pending(self) -> int:
        with self._cv:
            return len(self._queue)

    #
    # Consumer side
    #
    def bind_consumer(self) -> None:
        """Make the calling thread the cooperative consumer.

        Once bound, submits from this thread run inline even between drains.
        Only that thread may call :meth:`drain` afterwards.
        """
        ident = threading.get_ident()
        with self._cv:
            if self._owner_ident is None:
                self._owner_ident = ident
            elif self._owner_ident != ident:
                raise SchedulerError("scheduler is already bound to another consumer thread")

    def drain(self) -> int:
        """Run queued thunks on the calling thread; returns how many ran.

        The first call binds the calling thread as the consumer.
        Never blocks on an empty queue, except while the startup barrier is
        armed: then it keeps running startup thunks until it is released.
        """
        if self._background is not None:
            raise SchedulerError("drain() is not available while the background consumer runs")
        self.bind_consumer()
        if not self._drain_lock.acquire(blocking=False):
            raise SchedulerError("drain() called concurrently; the scheduler has a single consumer")
        count = 0
        self._consumer_ident = threading.get_ident()
        try:
            while True:
                with self._cv:
                    while self.barrier.armed and not self._queue and not self._closed:
                        self._cv.wait()
                    if not self._queue:
                        return count
                    thunk = self._pop_locked()
                self._run(thunk)
                count += 1
        finally:
            self._consumer_ident = None
            self._drain_lock.release()

    def start_background(self) -> None:
        """Start a dedicated consumer thread for the process lifetime."""
        with self._cv:
            if self._closed:
                raise SchedulerError("scheduler is shut down")
            if self._background is not None:
                return
            self._stopping = False
            thread = threading.Thread(target=self._consumer_loop, name="simrepl-consumer", daemon=True)
            self._background = thread
        thread.start()

    @property
    def background(self) -> bool:
        return self._background is not None

    def shutdown(self, timeout: float = 1.0) -> None:
        """Stop the background consumer and reject new submissions.

        Thunks still queued are cancelled so that no submitter stays blocked.
        """
        with self._cv:
            self._closed = True
            self._stopping = True
            leftovers = list(self._queue)
            self._queue.clear()
            self._cv.notify_all()
            thread = self._background
        for thunk in leftovers:
            thunk.cancelled = True
            thunk.error = SchedulerError("scheduler shut down before the command ran")
            thunk.done.set()
        self.barrier.release()
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
        self._background = None

    def _consumer_loop(self) -> None:
        self._consumer_ident = threading.get_ident()
        LOGGER.debug("background consumer started")
        try:
            while True:
                with self._cv:
                    while not self._queue and not self._stopping:
                        self._cv.wait()
                    if self._stopping:
                        return
                    thunk = self._pop_locked()
                self._run(thunk)
        finally:
            self._consumer_ident = None
            LOGGER.debug("background consumer stopped")

    def _pop_locked(self) -> Thunk:
        thunk = self._queue.popleft()
        thunk.started = True
        return thunk

    def _run(self, thunk: Thunk) -> None:
        thunk.started = True
        try:
            thunk.body()
        except BaseException as exc:
            # SystemExit and KeyboardInterrupt included; the consumer keeps going.
            LOGGER.exception("command %s failed", thunk.label)
            thunk.error = exc
        finally:
            thunk.done.set()


__all__ = ["BarrierState", "Scheduler", "StartupBarrier", "Thunk"]
