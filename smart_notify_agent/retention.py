"""Retention policy: age and count based pruning of notification history."""

import logging
import time
from datetime import datetime
from typing import Callable, Optional

from .config import SchedulerConfig, Settings
from .date_utils import DAY_MS, now_ms
from .errors import CleanupTransientFailure, ErrorSignal, StorageError
from .models import CleanupResult, StorageEstimate
from .scheduler import should_run_now
from .store import EventStore

logger = logging.getLogger(__name__)

MAX_NOTIFICATIONS = 1000
ESTIMATED_KB_PER_NOTIFICATION = 0.5
LAST_CLEANUP_KEY = "last_cleanup"

# Retry configuration
MAX_RETRIES = 3
RETRY_DELAY = 2  # seconds, multiplied by the attempt number


class RetentionEngine:
    """
    Deletes notifications older than the retention window and keeps at most
    MAX_NOTIFICATIONS of the most recent ones.
    """

    def __init__(
        self,
        store: EventStore,
        settings: Settings,
        errors: Optional[ErrorSignal] = None,
        clock: Callable[[], int] = now_ms,
        sleep: Callable[[float], None] = time.sleep,
        max_notifications: int = MAX_NOTIFICATIONS,
    ):
        self._store = store
        self._settings = settings
        self._errors = errors or store.errors
        self._clock = clock
        self._sleep = sleep
        self.max_notifications = max_notifications

    def cutoff(self) -> int:
        return self._clock() - self._settings.retention_days * DAY_MS

    def _cleanup_once(self) -> int:
        aged = self._store.delete_older_than(self.cutoff())
        excess = self._store.delete_beyond_limit(self.max_notifications)
        logger.debug(f"Deleted {aged} expired and {excess} excess notifications")
        return aged + excess

    def run_cleanup(self) -> CleanupResult:
        """
        Run one cleanup pass.

        Transient storage errors are retried with a growing delay. Nothing is
        raised; failures are emitted on the error signal and reported in the
        result.
        """
        logger.info("Starting cleanup")
        deleted = 0
        for attempt in range(1, MAX_RETRIES + 1):
            try:
                deleted += self._cleanup_once()
                self._store.set_meta(LAST_CLEANUP_KEY, datetime.utcnow().isoformat() + "Z")
                logger.info(f"Cleanup completed: {deleted} notifications deleted")
                return CleanupResult(deleted_count=deleted, succeeded=True, attempts=attempt)
            except StorageError as e:
                if e.transient and attempt < MAX_RETRIES:
                    delay = RETRY_DELAY * attempt
                    logger.warning(f"Cleanup attempt {attempt} failed: {e}. Retrying in {delay}s...")
                    self._sleep(delay)
                    continue
                if e.transient:
                    error = CleanupTransientFailure(
                        f"Cleanup skipped after {MAX_RETRIES} attempts: {e}"
                    )
                else:
                    error = e
                self._errors.emit("retention", error)
                return CleanupResult(deleted_count=deleted, succeeded=False, attempts=attempt, error=error)
        return CleanupResult(deleted_count=deleted, succeeded=False, attempts=MAX_RETRIES)

    def last_run(self) -> Optional[datetime]:
        value = self._store.get_meta(LAST_CLEANUP_KEY)
        if not value:
            return None
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            logger.warning(f"Could not parse last cleanup time '{value}'")
            return None

    def run_if_due(self, config: SchedulerConfig) -> Optional[CleanupResult]:
        """Run cleanup when the daily schedule says it is due."""
        if not should_run_now(self.last_run(), config):
            logger.debug("Cleanup not due yet")
            return None
        return self.run_cleanup()

    def estimate_storage(self) -> StorageEstimate:
        """Prune, then estimate how much space the history takes."""
        self.run_cleanup()
        count = self._store.count()
        return StorageEstimate(count=count, estimated_kb=int(count * ESTIMATED_KB_PER_NOTIFICATION))
