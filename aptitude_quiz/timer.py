"""
Countdown clocks for quiz questions.

A clock owns at most one countdown at a time plus any number of one-shot
delayed callbacks. Callbacks run synchronously on the clock's thread of
control, so the session state machine needs no locking. Blocking work such as
archiving a finished run goes through run_in_background(); its completion
callback comes back on the same thread of control.

AsyncioClock drives a running quiz on the event loop; ManualClock is advanced
explicitly and lets tests step through a session without waiting.
"""
import asyncio
import logging
import time
from datetime import datetime, timedelta
from typing import Any, Callable, List, Optional


logger = logging.getLogger(__name__)

TickCallback = Callable[[int], None]
ExpireCallback = Callable[[], None]
DoneCallback = Callable[[Any], None]


class ClockLifecycleLogger:
    """Structured logging for countdown lifecycle events."""

    @staticmethod
    def log_countdown_start(owner: str, duration: int) -> None:
        logger.info(
            f"Clock lifecycle: COUNTDOWN_START - {owner}, Duration {duration}s",
            extra={
                'event_type': 'countdown_start',
                'owner': owner,
                'duration': duration,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_countdown_update(owner: str, remaining_time: int, total_duration: int) -> None:
        """Log countdown ticks (throttled to avoid spam)."""
        if remaining_time % 10 == 0 or remaining_time <= 5:
            progress_percent = ((total_duration - remaining_time) / total_duration) * 100
            logger.debug(
                f"Clock lifecycle: UPDATE - {owner}, Remaining {remaining_time}s ({progress_percent:.1f}% complete)",
                extra={
                    'event_type': 'countdown_update',
                    'owner': owner,
                    'remaining_time': remaining_time,
                    'total_duration': total_duration,
                    'timestamp': time.time()
                }
            )

    @staticmethod
    def log_countdown_completion(owner: str, completion_type: str, total_duration: int) -> None:
        """Log countdown completion (natural expiry or stop)."""
        logger.info(
            f"Clock lifecycle: COMPLETED - {owner}, Type {completion_type}, Duration {total_duration}s",
            extra={
                'event_type': 'countdown_completed',
                'owner': owner,
                'completion_type': completion_type,
                'total_duration': total_duration,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_callback_error(owner: str, operation: str, error: Exception) -> None:
        logger.error(
            f"Clock lifecycle: ERROR - {owner}, Operation {operation}: {error}",
            exc_info=True,
            extra={
                'event_type': 'clock_callback_error',
                'owner': owner,
                'operation': operation,
                'error_message': str(error),
                'timestamp': time.time()
            }
        )


class ScheduledCall:
    """Handle for a delayed callback."""

    def __init__(self, due: float, callback: Callable[[], None]):
        self.due = due
        self.callback = callback
        self.cancelled = False
        self._timer_handle = None

    def cancel(self) -> None:
        self.cancelled = True
        if self._timer_handle is not None:
            self._timer_handle.cancel()


class Clock:
    """Interface for the per-question countdown and the post-answer delay."""

    def __init__(self, owner: str = "quiz"):
        self.owner = owner
        self._remaining_time = 0
        self._total_duration = 0
        self._running = False

    def now(self) -> datetime:
        raise NotImplementedError

    def start_countdown(self, duration: int, on_tick: TickCallback, on_expire: ExpireCallback) -> None:
        """
        Start a countdown, replacing any countdown already running.

        Args:
            duration: Countdown length in whole seconds
            on_tick: Called after each one-second decrement while time remains
            on_expire: Called once when the countdown reaches zero
        """
        raise NotImplementedError

    def stop_countdown(self) -> None:
        raise NotImplementedError

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledCall:
        raise NotImplementedError

    def run_in_background(self, work: Callable[[], Any], on_done: DoneCallback) -> None:
        """
        Run blocking work without holding up ticks and delayed callbacks.

        Args:
            work: Blocking callable
            on_done: Called with work's result, or with None if work raised
        """
        raise NotImplementedError

    @property
    def remaining_time(self) -> int:
        return self._remaining_time

    @property
    def is_running(self) -> bool:
        return self._running

    def _tick(self, on_tick: TickCallback, on_expire: ExpireCallback) -> bool:
        """Apply one decrement; returns True when the countdown expired."""
        self._remaining_time -= 1
        ClockLifecycleLogger.log_countdown_update(self.owner, self._remaining_time, self._total_duration)
        if self._remaining_time > 0:
            self._safe_call(on_tick, "on_tick", self._remaining_time)
            return False

        self._running = False
        ClockLifecycleLogger.log_countdown_completion(self.owner, "natural_expiry", self._total_duration)
        self._safe_call(on_expire, "on_expire")
        return True

    def _safe_call(self, callback, operation: str, *args) -> None:
        try:
            callback(*args)
        except Exception as e:
            ClockLifecycleLogger.log_callback_error(self.owner, operation, e)


class AsyncioClock(Clock):
    """Clock running on the asyncio event loop."""

    def __init__(self, owner: str = "quiz", tick_interval: float = 1.0):
        """
        Initialize the clock.

        Args:
            owner: Label used in lifecycle logs
            tick_interval: Seconds per countdown tick
        """
        super().__init__(owner)
        self.tick_interval = tick_interval
        self._task: Optional[asyncio.Task] = None

    def now(self) -> datetime:
        return datetime.now()

    def start_countdown(self, duration: int, on_tick: TickCallback, on_expire: ExpireCallback) -> None:
        self.stop_countdown()
        self._remaining_time = duration
        self._total_duration = duration
        self._running = True
        ClockLifecycleLogger.log_countdown_start(self.owner, duration)
        self._task = asyncio.get_running_loop().create_task(self._run_countdown(on_tick, on_expire))

    async def _run_countdown(self, on_tick: TickCallback, on_expire: ExpireCallback) -> None:
        current = asyncio.current_task()
        try:
            while self._running and self._task is current:
                await asyncio.sleep(self.tick_interval)
                # Stopped, or replaced by a countdown started from a callback
                if not self._running or self._task is not current:
                    break
                if self._tick(on_tick, on_expire):
                    break
        except asyncio.CancelledError:
            ClockLifecycleLogger.log_countdown_completion(self.owner, "cancelled", self._total_duration)
            raise
        finally:
            if self._task is current:
                self._task = None

    def stop_countdown(self) -> None:
        if not self._running and self._task is None:
            return
        self._running = False
        task = self._task
        self._task = None
        # A callback running inside the countdown task may stop it; the loop exits on its own then
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledCall:
        loop = asyncio.get_running_loop()
        scheduled = ScheduledCall(loop.time() + delay, callback)

        def run():
            if not scheduled.cancelled:
                self._safe_call(callback, "call_later")

        scheduled._timer_handle = loop.call_later(delay, run)
        return scheduled

    def run_in_background(self, work: Callable[[], Any], on_done: DoneCallback) -> asyncio.Future:
        """Run work in the loop's default executor; on_done runs back on the loop."""
        future = asyncio.get_running_loop().run_in_executor(None, work)

        def finished(done: asyncio.Future) -> None:
            if done.cancelled():
                logger.warning(f"Clock lifecycle: background work for {self.owner} was cancelled")
                self._safe_call(on_done, "background_done", None)
                return
            error = done.exception()
            if error is not None:
                logger.error(
                    f"Clock lifecycle: ERROR - {self.owner}, Operation background: {error}",
                    exc_info=error,
                    extra={'event_type': 'clock_background_error', 'owner': self.owner, 'timestamp': time.time()}
                )
                self._safe_call(on_done, "background_done", None)
                return
            self._safe_call(on_done, "background_done", done.result())

        future.add_done_callback(finished)
        return future


class ManualClock(Clock):
    """Clock advanced by hand; time only moves inside advance()."""

    def __init__(self, start: Optional[datetime] = None, owner: str = "quiz"):
        super().__init__(owner)
        self._start = start or datetime(2024, 1, 1, 9, 0, 0)
        self._elapsed = 0.0
        self._next_tick: Optional[float] = None
        self._on_tick: Optional[TickCallback] = None
        self._on_expire: Optional[ExpireCallback] = None
        self._scheduled: List[ScheduledCall] = []

    def now(self) -> datetime:
        return self._start + timedelta(seconds=self._elapsed)

    @property
    def elapsed(self) -> float:
        return self._elapsed

    def start_countdown(self, duration: int, on_tick: TickCallback, on_expire: ExpireCallback) -> None:
        self.stop_countdown()
        self._remaining_time = duration
        self._total_duration = duration
        self._running = True
        self._on_tick = on_tick
        self._on_expire = on_expire
        self._next_tick = self._elapsed + 1.0
        ClockLifecycleLogger.log_countdown_start(self.owner, duration)

    def stop_countdown(self) -> None:
        if self._running:
            ClockLifecycleLogger.log_countdown_completion(self.owner, "stopped", self._total_duration)
        self._running = False
        self._next_tick = None

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledCall:
        scheduled = ScheduledCall(self._elapsed + delay, callback)
        self._scheduled.append(scheduled)
        return scheduled

    def run_in_background(self, work: Callable[[], Any], on_done: DoneCallback) -> None:
        """Run work right away; manual time never waits on it."""
        try:
            result = work()
        except Exception as e:
            ClockLifecycleLogger.log_callback_error(self.owner, "background", e)
            result = None
        self._safe_call(on_done, "background_done", result)

    @property
    def pending_calls(self) -> int:
        return sum(1 for call in self._scheduled if not call.cancelled)

    def advance(self, seconds: float) -> None:
        """Move time forward, firing ticks and delayed callbacks in time order."""
        target = self._elapsed + seconds
        while True:
            self._scheduled = [call for call in self._scheduled if not call.cancelled]
            next_call = min(self._scheduled, key=lambda call: call.due, default=None)
            tick_due = self._next_tick if self._running else None

            candidates = [due for due in (tick_due, next_call.due if next_call else None) if due is not None]
            if not candidates or min(candidates) > target:
                break

            # Ticks win ties with delayed callbacks
            if tick_due is not None and (next_call is None or tick_due <= next_call.due):
                self._elapsed = tick_due
                self._next_tick = tick_due + 1.0
                self._tick(self._on_tick, self._on_expire)
            else:
                self._elapsed = next_call.due
                self._scheduled.remove(next_call)
                self._safe_call(next_call.callback, "call_later")

        self._elapsed = target
