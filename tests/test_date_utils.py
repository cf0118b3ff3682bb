from smart_notify_agent.date_utils import DAY_MS, HOUR_MS, MINUTE_MS, format_timestamp

NOW = 100 * DAY_MS


def test_relative_formats():
    assert format_timestamp(NOW - 10_000, now=NOW) == "Just now"
    assert format_timestamp(NOW - 5 * MINUTE_MS, now=NOW) == "5m ago"
    assert format_timestamp(NOW - 3 * HOUR_MS, now=NOW) == "3h ago"
    assert format_timestamp(NOW - 2 * DAY_MS, now=NOW) == "2d ago"


def test_older_than_a_week_shows_date():
    assert format_timestamp(NOW - 30 * DAY_MS, now=NOW).count(" ") == 1
