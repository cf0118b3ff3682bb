"""Intake pipeline: normalize, classify and store incoming host events."""

import logging
import threading
from typing import Callable, Optional, Tuple, Union

from .classifier import classify
from .config import Settings
from .date_utils import now_ms
from .errors import ErrorSignal, StorageWriteFailure
from .host import DisplayNameResolver
from .models import MAX_ICON_BYTES, Discarded, NotificationRecord, RawEvent
from .store import EventStore
from .summary import SummaryAggregator

logger = logging.getLogger(__name__)

IngestResult = Union[NotificationRecord, Discarded]


class IntakePipeline:
    """
    Turns raw host events into stored notification records.

    Calls are processed one at a time in arrival order. Disconnecting the
    listener cancels any ingest that has not yet been written.
    """

    def __init__(
        self,
        store: EventStore,
        aggregator: SummaryAggregator,
        settings: Settings,
        resolver: Optional[DisplayNameResolver] = None,
        self_source_id: str = "smart_notify_agent",
        errors: Optional[ErrorSignal] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self._store = store
        self._aggregator = aggregator
        self._settings = settings
        self._resolver = resolver
        self.self_source_id = self_source_id
        self._errors = errors or store.errors
        self._clock = clock
        self._lock = threading.Lock()
        self._active = threading.Event()
        self._active.set()

    @property
    def active(self) -> bool:
        return self._active.is_set()

    def ingest(self, event: RawEvent) -> IngestResult:
        """
        Process one host event.

        Returns:
            The stored record, or a Discarded with the reason it was dropped.
        """
        if event.source_id == self.self_source_id:
            return Discarded(Discarded.SELF)
        if event.ongoing:
            return Discarded(Discarded.ONGOING)
        if event.group_summary:
            return Discarded(Discarded.GROUP_SUMMARY)

        title = (event.title or "").strip()
        body = (event.body or "").strip()
        if not title and not body:
            logger.debug(f"Skipping empty notification from {event.source_id}")
            return Discarded(Discarded.EMPTY_CONTENT)

        with self._lock:
            if not self.active:
                return Discarded(Discarded.CANCELLED)

            is_important = classify(self._store, event.source_id)
            source_name, icon = self._resolve(event)
            timestamp = event.timestamp_hint if event.timestamp_hint is not None else self._clock()

            if not self.active:
                logger.info(f"Listener disconnected; dropping event from {event.source_id}")
                return Discarded(Discarded.CANCELLED)

            record = self._append(event.source_id, source_name, title, body, timestamp, is_important, icon)
            if record is None:
                return Discarded(Discarded.STORAGE_FAILURE)

            self._remember(event.source_id, source_name)

        logger.debug(f"Stored notification: {source_name} - {title}")
        if is_important:
            self._aggregator.refresh()
        return record

    def _resolve(self, event: RawEvent) -> Tuple[str, Optional[bytes]]:
        fallback = event.source_name or event.source_id
        if self._resolver is None:
            return fallback, None
        try:
            name, icon = self._resolver.resolve(event.source_id)
        except Exception as e:
            logger.debug(f"Could not resolve {event.source_id}: {e}")
            return fallback, None
        if icon is not None and len(icon) > MAX_ICON_BYTES:
            logger.warning(f"Dropping {len(icon)} byte icon for {event.source_id}")
            icon = None
        return name or fallback, icon

    def _append(self, source_id, source_name, title, body, timestamp, is_important, icon) -> Optional[NotificationRecord]:
        for attempt in range(2):
            try:
                return self._store.append(source_id, source_name, title, body, timestamp, is_important, icon)
            except StorageWriteFailure as e:
                if attempt == 0:
                    logger.warning(f"Saving notification from {source_id} failed: {e}. Retrying once...")
                    continue
                self._errors.emit("intake", e)
        return None

    def _remember(self, source_id: str, source_name: str) -> None:
        try:
            self._store.remember_source(source_id, source_name)
        except StorageWriteFailure as e:
            self._errors.emit("intake", e)

    # Host listener callbacks

    def on_posted(self, event: RawEvent) -> Optional[IngestResult]:
        try:
            return self.ingest(event)
        except Exception as e:
            logger.error(f"Error processing notification from {event.source_id}", exc_info=True)
            self._errors.emit("intake", e)
            return None

    def on_removed(self, event: RawEvent) -> None:
        logger.debug(f"Notification removed: {event.source_id}")

    def on_connect(self) -> None:
        logger.info("Notification listener connected")
        self._active.set()
        self._set_listener_granted(True)

    def on_disconnect(self) -> None:
        logger.info("Notification listener disconnected")
        self._active.clear()
        self._set_listener_granted(False)

    def _set_listener_granted(self, granted: bool) -> None:
        try:
            self._settings.listener_granted = granted
        except StorageWriteFailure as e:
            self._errors.emit("intake", e)
