from unittest.mock import MagicMock, patch

import feedparser
import pytest

from smart_notify_agent.config import RSSConfig
from smart_notify_agent.rss_source import RssEventSource

FEED_URL = "https://example.com/rss"

FEED_XML = """<?xml version="1.0" ?>
<rss version="2.0">
  <channel>
    <title>Example Feed</title>
    <item>
      <title>Release 2.0</title>
      <link>https://example.com/2</link>
      <description>Version two is out</description>
      <pubDate>Mon, 01 Jan 2024 10:00:00 GMT</pubDate>
      <guid>guid-2</guid>
    </item>
    <item>
      <title>Release 1.0</title>
      <link>https://example.com/1</link>
      <description>First release</description>
      <guid>guid-1</guid>
    </item>
  </channel>
</rss>
"""

real_parse = feedparser.parse


@pytest.fixture
def parsed_feed():
    with patch("smart_notify_agent.rss_source.feedparser.parse", side_effect=lambda url: real_parse(FEED_XML)) as parse:
        yield parse


@pytest.fixture
def source(store, pipeline):
    return RssEventSource(RSSConfig(enabled=True, feeds=[FEED_URL]), store, pipeline)


def test_new_entries_become_notifications(parsed_feed, source, store):
    assert source.poll() == 2

    records = store.all_notifications()
    titles = {r.title for r in records}
    assert titles == {"Release 1.0", "Release 2.0"}
    assert {r.source_id for r in records} == {FEED_URL}
    assert {r.source_name for r in records} == {"Example Feed"}
    release = next(r for r in records if r.title == "Release 2.0")
    assert release.timestamp == 1704103200000
    assert release.body == "Version two is out"


def test_seen_entries_are_not_ingested_again(parsed_feed, source, store):
    source.poll()

    assert source.poll() == 0
    assert store.count() == 2


def test_important_feed_marks_records_important(parsed_feed, source, store, aggregator):
    store.set_preference(FEED_URL, "Example Feed", True)

    source.poll()

    assert aggregator.unread_important_count() == 2


def test_broken_feed_is_skipped(store, pipeline):
    broken = MagicMock(bozo=1, bozo_exception=ValueError("not xml"))
    with patch("smart_notify_agent.rss_source.feedparser.parse", return_value=broken):
        source = RssEventSource(RSSConfig(enabled=True, feeds=[FEED_URL]), store, pipeline)
        assert source.poll() == 0
    assert store.count() == 0


def test_disabled_source_does_nothing(store, pipeline):
    with patch("smart_notify_agent.rss_source.feedparser.parse") as parse:
        source = RssEventSource(RSSConfig(enabled=False, feeds=[FEED_URL]), store, pipeline)
        assert source.poll() == 0
    parse.assert_not_called()
