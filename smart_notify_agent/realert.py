"""Recurring re-alert for unread important notifications."""

import enum
import logging
import threading
import time
from functools import partial
from typing import Callable, List, Optional, Sequence, Tuple

from .config import Settings
from .errors import ErrorSignal, SchedulerPermissionDenied
from .host import AlertSurface, TimerFacility
from .models import NotificationRecord
from .summary import SummaryAggregator

logger = logging.getLogger(__name__)


class State(enum.Enum):
    IDLE = "idle"        # nothing unread and important
    ARMED = "armed"      # timer pending
    FIRING = "firing"    # timer elapsed, dispatch in progress


def build_summary(records: Sequence[NotificationRecord]) -> Tuple[str, str]:
    """
    Build the summary alert text.

    Args:
        records: Unread important records, newest first.

    Returns:
        (title, body) for the alert surface.
    """
    count = len(records)
    title = "1 important notification" if count == 1 else f"{count} important notifications"
    if records:
        newest = records[0]
        body = f"{newest.source_name}: {newest.title}" if newest.title else f"{newest.source_name}: {newest.body}"
    else:
        body = "Tap to view notifications"
    return title, body


class ReAlertScheduler:
    """
    Re-surfaces unread important notifications every re_alert_interval minutes.

    State is never persisted: start() derives it from the current unread
    count, so a restart can postpone a due re-alert by one interval. Count
    changes are ignored until start() has run. Summaries are only posted
    from a timer wake, off the thread that wrote to the store.
    """

    def __init__(
        self,
        aggregator: SummaryAggregator,
        settings: Settings,
        alert_surface: AlertSurface,
        timers: TimerFacility,
        errors: Optional[ErrorSignal] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._aggregator = aggregator
        self._settings = settings
        self._alert_surface = alert_surface
        self._timers = timers
        self._errors = errors or ErrorSignal()
        self._clock = clock
        self._lock = threading.RLock()
        self._state = State.IDLE
        self._handle = None
        self._generation = 0
        self._started = False
        self._last_count = aggregator.unread_important_count()
        self.wake_at: Optional[float] = None
        self._unsubscribe = aggregator.subscribe(self.on_count_changed)

    @property
    def state(self) -> State:
        with self._lock:
            return self._state

    def start(self) -> State:
        """Derive the state from the unread count after a process start."""
        count = self._aggregator.unread_important_count()
        with self._lock:
            self._started = True
            self._last_count = count
            self._cancel_timer()
            if count > 0:
                self._arm()
            else:
                self._state = State.IDLE
            logger.info(f"Re-alert scheduler started in {self._state.value} state ({count} unread important)")
            return self._state

    def stop(self) -> None:
        with self._lock:
            self._started = False
            self._cancel_timer()
            self._state = State.IDLE
        self._unsubscribe()

    def on_count_changed(self, count: int) -> None:
        dismiss = False
        with self._lock:
            previous = self._last_count
            self._last_count = count
            if not self._started:
                return
            if count == 0:
                if self._state is not State.IDLE:
                    self._cancel_timer()
                    self._state = State.IDLE
                    dismiss = True
            elif self._state is State.IDLE:
                logger.debug(f"Unread important count {previous} -> {count}; arming re-alert")
                self._arm()
        if dismiss:
            logger.info("No unread important notifications left; re-alert cancelled")
            self._dismiss()

    def on_all_marked_read(self) -> None:
        with self._lock:
            if self._state is State.IDLE:
                return
            self._cancel_timer()
            self._state = State.IDLE
            self._last_count = 0
        logger.info("All important notifications read; re-alert cancelled")
        self._dismiss()

    def _arm(self) -> None:
        delay = self._settings.re_alert_interval * 60
        self._generation += 1
        callback = partial(self._on_timer, self._generation)
        try:
            self._handle = self._timers.schedule_once(delay, callback, exact=True)
        except SchedulerPermissionDenied as e:
            self._errors.emit("realert", e)
            logger.info("Using inexact timer due to permission restriction")
            self._handle = self._timers.schedule_once(delay, callback, exact=False)
        self.wake_at = self._clock() + delay
        self._state = State.ARMED
        logger.debug(f"Re-alert scheduled in {delay // 60} minutes")

    def _cancel_timer(self) -> None:
        if self._handle is not None:
            self._timers.cancel(self._handle)
            self._handle = None
        self.wake_at = None

    def _on_timer(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._state is not State.ARMED:
                logger.debug("Ignoring stale re-alert timer")
                return
            self._handle = None
            self._state = State.FIRING

        self._aggregator.refresh()
        records = self._aggregator.unread_important()

        with self._lock:
            if self._state is not State.FIRING:
                return
            if not records:
                self._state = State.IDLE
                self.wake_at = None
            else:
                self._arm()
        if records:
            logger.info(f"Re-alert firing for {len(records)} unread important notifications")
            self._dispatch(records)
        else:
            self._dismiss()

    def _silent(self) -> bool:
        if self._settings.silent_mode:
            return True
        return self._settings.dnd_behavior and self._alert_surface.is_do_not_disturb()

    def _dispatch(self, records: List[NotificationRecord]) -> None:
        if not records:
            return
        title, body = build_summary(records)
        try:
            self._alert_surface.post_summary(title, body, len(records), self._silent())
        except Exception as e:
            self._errors.emit("realert", e)

    def _dismiss(self) -> None:
        try:
            self._alert_surface.cancel_summary()
        except Exception as e:
            self._errors.emit("realert", e)
