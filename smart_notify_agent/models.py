"""Data models for captured notifications."""

from dataclasses import dataclass, field
from typing import Optional

MAX_ICON_BYTES = 64 * 1024


@dataclass(frozen=True)
class NotificationRecord:
    """A stored notification. Only is_read ever changes after creation."""
    id: int
    source_id: str          # package name, feed URL, channel id
    source_name: str
    title: str
    body: str
    timestamp: int          # epoch milliseconds
    is_read: bool = False
    is_important: bool = False
    icon: Optional[bytes] = field(default=None, repr=False)


@dataclass(frozen=True)
class SourcePreference:
    """Importance flag for one source."""
    source_id: str
    display_name: str
    is_important: bool = False


@dataclass
class RawEvent:
    """An event as delivered by the host, before normalization."""
    source_id: str
    title: Optional[str] = None
    body: Optional[str] = None
    category: str = ""
    timestamp_hint: Optional[int] = None
    ongoing: bool = False
    group_summary: bool = False
    source_name: Optional[str] = None


@dataclass(frozen=True)
class Discarded:
    """Result of an ingest that did not store anything."""
    reason: str

    SELF = "self"
    ONGOING = "ongoing"
    GROUP_SUMMARY = "group_summary"
    EMPTY_CONTENT = "empty_content"
    CANCELLED = "cancelled"
    STORAGE_FAILURE = "storage_failure"


@dataclass(frozen=True)
class CleanupResult:
    """Outcome of one retention run."""
    deleted_count: int
    succeeded: bool = True
    attempts: int = 1
    error: Optional[Exception] = None


@dataclass(frozen=True)
class StorageEstimate:
    count: int
    estimated_kb: int
