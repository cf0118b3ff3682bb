"""RSS/Atom feeds as a host event source."""

import calendar
import logging
from typing import List, Optional

import feedparser

from .config import RSSConfig
from .intake import IntakePipeline
from .models import RawEvent
from .store import EventStore

logger = logging.getLogger(__name__)

MAX_BODY_CHARS = 600


def _entry_body(entry) -> str:
    if "summary" in entry:
        return entry.summary
    if "description" in entry:
        return entry.description
    if "content" in entry:
        if isinstance(entry.content, list) and entry.content:
            return entry.content[0].get("value", "")
        return str(entry.content)
    return ""


def _entry_timestamp(entry) -> Optional[int]:
    # feedparser returns struct_time in UTC
    parsed = entry.get("published_parsed") or entry.get("updated_parsed")
    if not parsed:
        return None
    return calendar.timegm(parsed) * 1000


def entry_to_event(entry, feed_url: str, feed_title: str) -> Optional[RawEvent]:
    """
    Convert one feed entry to a raw host event.

    Returns:
        The event, or None if the entry has no usable id.
    """
    unique_id = entry.get("id") or entry.get("link", "")
    if not unique_id:
        return None
    body = _entry_body(entry).strip()
    if len(body) > MAX_BODY_CHARS:
        body = body[:MAX_BODY_CHARS] + "..."
    return RawEvent(
        source_id=feed_url,
        source_name=feed_title,
        title=entry.get("title", ""),
        body=body,
        category="rss",
        timestamp_hint=_entry_timestamp(entry),
    )


class RssEventSource:
    """
    Polls configured feeds and delivers unseen entries to the intake pipeline.

    Entry ids already delivered are kept in the seen_items table so a restart
    does not re-ingest a whole feed.
    """

    def __init__(self, config: RSSConfig, store: EventStore, pipeline: IntakePipeline):
        self.config = config
        self._store = store
        self._pipeline = pipeline

    def poll(self) -> int:
        """
        Fetch every feed once.

        Returns:
            Number of new entries handed to the pipeline.
        """
        if not self.config.enabled or not self.config.feeds:
            return 0

        delivered = 0
        for feed_url in self.config.feeds:
            try:
                delivered += self._poll_feed(feed_url)
            except Exception as e:
                logger.error(f"Error fetching RSS feed {feed_url}: {e}")
                continue
        logger.info(f"Total new RSS entries delivered: {delivered}")
        return delivered

    def _poll_feed(self, feed_url: str) -> int:
        logger.info(f"Fetching RSS feed: {feed_url}")
        feed = feedparser.parse(feed_url)

        if feed.bozo and feed.bozo_exception:
            logger.warning(f"Feed parsing error for {feed_url}: {feed.bozo_exception}")
            return 0

        feed_title = feed.feed.get("title", feed_url)
        seen = self._store.seen_ids(feed_url)
        new_ids: List[tuple] = []

        for entry in feed.entries:
            event = entry_to_event(entry, feed_url, feed_title)
            if event is None:
                continue
            unique_id = entry.get("id") or entry.get("link")
            if (unique_id, feed_url) in seen:
                continue
            self._pipeline.on_posted(event)
            new_ids.append((unique_id, feed_url))

        if new_ids:
            self._store.mark_seen(new_ids)
        logger.info(f"Extracted {len(new_ids)} new items from {feed_url}")
        return len(new_ids)
