"""Error taxonomy and the side-channel error signal."""

import logging
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Deque, List

logger = logging.getLogger(__name__)

MAX_RECENT_ERRORS = 50


class SmartNotifyError(Exception):
    """Base class for all agent errors."""


class StorageError(SmartNotifyError):
    """A storage-layer failure. transient errors are worth retrying."""

    def __init__(self, message: str, transient: bool = False):
        super().__init__(message)
        self.transient = transient


class StorageWriteFailure(StorageError):
    pass


class StorageReadFailure(StorageError):
    pass


class ResolverUnavailable(SmartNotifyError):
    """The display-name/icon resolver could not answer for a source."""


class SchedulerPermissionDenied(SmartNotifyError):
    """The timer facility refused an exact timer."""


class CleanupTransientFailure(SmartNotifyError):
    """Cleanup gave up after exhausting its retries."""


@dataclass(frozen=True)
class ErrorEvent:
    component: str
    error: Exception
    occurred_at: datetime


class ErrorSignal:
    """
    Collects errors that components contain instead of raising.

    Every emitted error is logged, kept in a bounded history and passed to
    each subscriber.
    """

    def __init__(self, max_recent: int = MAX_RECENT_ERRORS):
        self._lock = threading.Lock()
        self._recent: Deque[ErrorEvent] = deque(maxlen=max_recent)
        self._subscribers: List[Callable[[ErrorEvent], None]] = []

    def subscribe(self, callback: Callable[[ErrorEvent], None]) -> Callable[[], None]:
        """
        Register a callback for future errors.

        Returns:
            A function that removes the subscription.
        """
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def emit(self, component: str, error: Exception) -> None:
        event = ErrorEvent(component=component, error=error, occurred_at=datetime.utcnow())
        logger.error(f"[{component}] {type(error).__name__}: {error}")
        with self._lock:
            self._recent.append(event)
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(event)
            except Exception as e:
                logger.warning(f"Error subscriber failed: {e}")

    def recent(self) -> List[ErrorEvent]:
        with self._lock:
            return list(self._recent)
