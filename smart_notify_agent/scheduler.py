"""Periodic scheduling with jitter for background maintenance."""

import logging
import random
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from .config import SchedulerConfig

logger = logging.getLogger(__name__)


def _make_naive_utc(dt: datetime) -> datetime:
    """Convert timezone-aware datetime to naive UTC datetime."""
    if dt.tzinfo is not None:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def should_run_now(
    last_run: Optional[datetime],
    config: SchedulerConfig,
    now: Optional[datetime] = None,
) -> bool:
    """
    Determine if a periodic task is due based on its last run and jitter logic.

    Logic:
    - If last_run is None, return True (first run).
    - If gap < min_gap_minutes, return False (too soon).
    - If gap >= max_gap_minutes, return True (definitely time to run).
    - If min_gap_minutes <= gap < max_gap_minutes, return True with 50% probability.

    Args:
        last_run: Timestamp of the last run, or None if never run.
        config: Scheduler configuration.
        now: Current time, defaults to utcnow.

    Returns:
        True if the task should run now, False otherwise.
    """
    if last_run is None:
        return True

    now = _make_naive_utc(now) if now is not None else datetime.utcnow()
    gap = now - _make_naive_utc(last_run)
    min_gap = timedelta(minutes=config.min_gap_minutes)
    max_gap = timedelta(minutes=config.max_gap_minutes)

    if gap < min_gap:
        return False

    if gap >= max_gap:
        return True

    return random.random() < 0.5


class RecurringTask:
    """
    Runs a callback every `interval` seconds, up to `jitter_window` early.

    Exceptions from the callback are logged and do not stop the schedule.
    """

    def __init__(self, name: str, interval: float, jitter_window: float, callback: Callable[[], None]):
        self.name = name
        self.interval = interval
        self.jitter_window = min(jitter_window, interval)
        self._callback = callback
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._running = False

    def next_delay(self) -> float:
        return self.interval - random.uniform(0, self.jitter_window)

    def start(self, run_immediately: bool = False) -> None:
        with self._lock:
            self._running = True
        if run_immediately:
            self._tick()
        else:
            self._schedule()

    def stop(self) -> None:
        with self._lock:
            self._running = False
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        logger.debug(f"Recurring task {self.name} stopped")

    def _schedule(self) -> None:
        with self._lock:
            if not self._running:
                return
            delay = self.next_delay()
            self._timer = threading.Timer(delay, self._tick)
            self._timer.daemon = True
            self._timer.start()
        logger.debug(f"Recurring task {self.name} next run in {delay:.0f}s")

    def _tick(self) -> None:
        try:
            self._callback()
        except Exception as e:
            logger.error(f"Recurring task {self.name} failed: {e}", exc_info=True)
        self._schedule()
