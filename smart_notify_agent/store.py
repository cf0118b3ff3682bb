"""Event store: the single owner of notification and preference rows."""

import logging
import sqlite3
import threading
from typing import Callable, Generic, List, Optional, TypeVar

from . import db
from .errors import ErrorSignal, StorageReadFailure, StorageWriteFailure
from .models import NotificationRecord, SourcePreference

logger = logging.getLogger(__name__)

T = TypeVar("T")

NOTIFICATIONS_CHANGED = "notifications"
PREFERENCES_CHANGED = "preferences"


class LiveQuery(Generic[T]):
    """
    A query that is re-issued after every store change.

    The callback receives the first result immediately and a fresh result
    after each committed mutation until close() is called. A refresh runs
    the query and delivers its result under one lock, so results reach the
    callback in the order they were read.
    """

    def __init__(self, store: "EventStore", query: Callable[["EventStore"], T], callback: Callable[[T], None]):
        self._store = store
        self._query = query
        self._callback = callback
        self._closed = False
        self._lock = threading.RLock()
        self.value: Optional[T] = None
        self._unsubscribe = store.subscribe(self._on_change)
        self.refresh()

    def _on_change(self, change: str) -> None:
        if not self._closed:
            self.refresh()

    def refresh(self) -> T:
        """Re-run the query now and deliver the result."""
        with self._lock:
            self.value = self._query(self._store)
            self._callback(self.value)
            return self.value

    def close(self) -> None:
        self._closed = True
        self._unsubscribe()


class EventStore:
    """
    Notification history and source preferences over one SQLite connection.

    Writes are linearized by an internal lock and each write is its own
    transaction. Observers are called after the lock is released.
    """

    def __init__(self, conn: sqlite3.Connection, errors: Optional[ErrorSignal] = None):
        self._conn = conn
        self._lock = threading.RLock()
        self._observers: List[Callable[[str], None]] = []
        self.errors = errors or ErrorSignal()

    @classmethod
    def open(cls, db_path: str, errors: Optional[ErrorSignal] = None) -> "EventStore":
        logger.info(f"Opening event store at {db_path}")
        return cls(db.init_db(db_path), errors)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # Observation

    def subscribe(self, callback: Callable[[str], None]) -> Callable[[], None]:
        """
        Register a callback invoked with the change kind after each mutation.

        Returns:
            A function that removes the subscription.
        """
        with self._lock:
            self._observers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._observers:
                    self._observers.remove(callback)

        return unsubscribe

    def live(self, query: Callable[["EventStore"], T], callback: Callable[[T], None]) -> LiveQuery[T]:
        return LiveQuery(self, query, callback)

    def _notify(self, change: str) -> None:
        with self._lock:
            observers = list(self._observers)
        for observer in observers:
            try:
                observer(change)
            except Exception as e:
                logger.error(f"Store observer failed on {change} change: {e}", exc_info=True)

    # Plumbing

    def _read(self, fn, *args, default):
        try:
            with self._lock:
                return fn(self._conn, *args)
        except sqlite3.Error as e:
            self.errors.emit("store", StorageReadFailure(
                f"{fn.__name__} failed: {e}",
                transient=isinstance(e, sqlite3.OperationalError),
            ))
            return default

    def _write(self, fn, *args):
        try:
            with self._lock:
                return fn(self._conn, *args)
        except sqlite3.Error as e:
            with self._lock:
                try:
                    self._conn.rollback()
                except sqlite3.Error:
                    logger.warning("Rollback after failed write also failed")
            raise StorageWriteFailure(
                f"{fn.__name__} failed: {e}",
                transient=isinstance(e, sqlite3.OperationalError),
            ) from e

    # Notification commands

    def append(
        self,
        source_id: str,
        source_name: str,
        title: str,
        body: str,
        timestamp: int,
        is_important: bool,
        icon: Optional[bytes] = None,
    ) -> NotificationRecord:
        """
        Append a notification atomically.

        Raises:
            StorageWriteFailure: If the insert did not commit.
        """
        record = self._write(
            db.insert_notification, source_id, source_name, title, body, timestamp, is_important, icon
        )
        logger.debug(f"Notification inserted with id {record.id}")
        self._notify(NOTIFICATIONS_CHANGED)
        return record

    def mark_read(self, notification_id: int) -> bool:
        changed = self._write(db.mark_read, notification_id)
        if changed:
            self._notify(NOTIFICATIONS_CHANGED)
        return changed > 0

    def mark_all_important_read(self) -> int:
        changed = self._write(db.mark_all_important_read)
        if changed:
            self._notify(NOTIFICATIONS_CHANGED)
        return changed

    def delete_older_than(self, cutoff: int) -> int:
        deleted = self._write(db.delete_older_than, cutoff)
        if deleted:
            self._notify(NOTIFICATIONS_CHANGED)
        return deleted

    def delete_beyond_limit(self, limit: int) -> int:
        deleted = self._write(db.delete_beyond_limit, limit)
        if deleted:
            self._notify(NOTIFICATIONS_CHANGED)
        return deleted

    def clear_all(self) -> int:
        deleted = self._write(db.clear_notifications)
        logger.info(f"Cleared {deleted} notifications")
        if deleted:
            self._notify(NOTIFICATIONS_CHANGED)
        return deleted

    # Notification queries

    def get(self, notification_id: int) -> Optional[NotificationRecord]:
        return self._read(db.get_notification, notification_id, default=None)

    def all_notifications(self) -> List[NotificationRecord]:
        return self._read(db.get_all_notifications, default=[])

    def important_notifications(self) -> List[NotificationRecord]:
        return self._read(db.get_important_notifications, default=[])

    def unread_important(self) -> List[NotificationRecord]:
        return self._read(db.get_unread_important, default=[])

    def search(self, query: str) -> List[NotificationRecord]:
        return self._read(db.search_notifications, query, default=[])

    def by_date_range(self, start: int, end: int) -> List[NotificationRecord]:
        return self._read(db.get_by_date_range, start, end, default=[])

    def count(self) -> int:
        return self._read(db.count_notifications, default=0)

    # Preferences

    def get_preference(self, source_id: str) -> Optional[SourcePreference]:
        return self._read(db.get_preference, source_id, default=None)

    def preferences(self) -> List[SourcePreference]:
        return self._read(db.get_preferences, default=[])

    def set_preference(self, source_id: str, display_name: str, is_important: bool) -> SourcePreference:
        preference = SourcePreference(source_id=source_id, display_name=display_name, is_important=is_important)
        self._write(db.upsert_preference, preference)
        logger.info(f"Source preference saved: {source_id} important={is_important}")
        self._notify(PREFERENCES_CHANGED)
        return preference

    def remember_source(self, source_id: str, display_name: str) -> bool:
        created = self._write(db.insert_preference_if_missing, source_id, display_name)
        if created:
            logger.debug(f"First sight of source {source_id}")
            self._notify(PREFERENCES_CHANGED)
        return created

    # Feed bookkeeping and key-value metadata

    def seen_ids(self, source: Optional[str] = None):
        return self._read(db.get_seen_ids, source, default=set())

    def mark_seen(self, items) -> None:
        self._write(db.mark_seen, items)

    def get_meta(self, key: str) -> Optional[str]:
        return self._read(db.get_meta, key, default=None)

    def set_meta(self, key: str, value: str) -> None:
        self._write(db.set_meta, key, value)
