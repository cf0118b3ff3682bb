"""Live view of unread important notifications."""

import logging
import threading
from typing import Callable, List

from .errors import StorageWriteFailure
from .models import NotificationRecord
from .store import EventStore

logger = logging.getLogger(__name__)


class SummaryAggregator:
    """
    Keeps the unread important list current with the event store.

    The list is re-read after every store change. Subscribers are called
    with the new count each time the count changes.
    """

    def __init__(self, store: EventStore):
        self._store = store
        self._lock = threading.Lock()
        self._records: List[NotificationRecord] = []
        self._listeners: List[Callable[[int], None]] = []
        self._live = store.live(lambda s: s.unread_important(), self._on_result)

    def _on_result(self, records: List[NotificationRecord]) -> None:
        with self._lock:
            previous = len(self._records)
            self._records = list(records)
            listeners = list(self._listeners)
        count = len(records)
        if count == previous:
            return
        logger.debug(f"Unread important count {previous} -> {count}")
        for listener in listeners:
            try:
                listener(count)
            except Exception as e:
                logger.error(f"Summary listener failed: {e}", exc_info=True)

    def subscribe(self, listener: Callable[[int], None]) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def refresh(self) -> int:
        """Re-read the view now and return the unread important count."""
        return len(self._live.refresh())

    def unread_important(self) -> List[NotificationRecord]:
        with self._lock:
            return list(self._records)

    def unread_important_count(self) -> int:
        with self._lock:
            return len(self._records)

    def mark_as_read(self, notification_id: int) -> bool:
        """
        Mark one notification read. Unknown ids are ignored.

        Returns:
            True if a notification changed from unread to read.
        """
        try:
            changed = self._store.mark_read(notification_id)
        except StorageWriteFailure as e:
            self._store.errors.emit("summary", e)
            return False
        if not changed:
            logger.debug(f"No unread notification with id {notification_id}")
        return changed

    def mark_all_important_as_read(self) -> int:
        try:
            count = self._store.mark_all_important_read()
        except StorageWriteFailure as e:
            self._store.errors.emit("summary", e)
            return 0
        logger.info(f"Marked {count} important notifications as read")
        return count

    def close(self) -> None:
        self._live.close()
