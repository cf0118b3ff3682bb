from datetime import datetime, timedelta
from unittest.mock import MagicMock, patch

from smart_notify_agent.config import SchedulerConfig
from smart_notify_agent.date_utils import DAY_MS
from smart_notify_agent.errors import CleanupTransientFailure, StorageWriteFailure
from smart_notify_agent.retention import LAST_CLEANUP_KEY, MAX_NOTIFICATIONS, RetentionEngine

from conftest import NOW_MS, add_record


def _engine(store, settings, clock, sleep=None):
    return RetentionEngine(store, settings, clock=clock, sleep=sleep or MagicMock())


def test_count_limit_keeps_most_recent_thousand(store, settings, clock):
    for i in range(1200):
        add_record(store, title=str(i), ts=NOW_MS - i * 1000)

    result = _engine(store, settings, clock).run_cleanup()

    assert result.succeeded is True
    assert result.deleted_count == 200
    remaining = store.all_notifications()
    assert len(remaining) == MAX_NOTIFICATIONS
    assert min(r.timestamp for r in remaining) == NOW_MS - 999 * 1000


def test_age_limit_uses_retention_days(store, settings, clock):
    settings.retention_days = 3
    add_record(store, title="fresh", ts=NOW_MS - 2 * DAY_MS)
    add_record(store, title="edge", ts=NOW_MS - 3 * DAY_MS)
    add_record(store, title="stale", ts=NOW_MS - 3 * DAY_MS - 1)

    result = _engine(store, settings, clock).run_cleanup()

    assert result.deleted_count == 1
    assert sorted(r.title for r in store.all_notifications()) == ["edge", "fresh"]


def test_cleanup_bounds_hold_afterwards(store, settings, clock):
    for i in range(1100):
        add_record(store, title=str(i), ts=NOW_MS - i * 10 * 60 * 1000)

    engine = _engine(store, settings, clock)
    engine.run_cleanup()

    remaining = store.all_notifications()
    assert len(remaining) <= MAX_NOTIFICATIONS
    assert all(r.timestamp >= engine.cutoff() for r in remaining)


def test_cleanup_records_last_run(store, settings, clock):
    engine = _engine(store, settings, clock)
    assert engine.last_run() is None

    engine.run_cleanup()

    assert store.get_meta(LAST_CLEANUP_KEY) is not None
    assert engine.last_run() is not None


def test_transient_failure_is_retried_with_backoff(store, settings, clock):
    sleep = MagicMock()
    engine = _engine(store, settings, clock, sleep)
    failure = StorageWriteFailure("database is locked", transient=True)

    with patch.object(store, "delete_older_than", side_effect=[failure, 4]):
        result = engine.run_cleanup()

    assert result.succeeded is True
    assert result.attempts == 2
    assert result.deleted_count == 4
    sleep.assert_called_once_with(2)


def test_transient_failures_exhaust_retries_then_skip(store, settings, clock, errors):
    sleep = MagicMock()
    engine = _engine(store, settings, clock, sleep)
    failure = StorageWriteFailure("database is locked", transient=True)

    with patch.object(store, "delete_older_than", side_effect=failure):
        result = engine.run_cleanup()

    assert result.succeeded is False
    assert result.attempts == 3
    assert isinstance(result.error, CleanupTransientFailure)
    assert [c.args[0] for c in sleep.call_args_list] == [2, 4]
    assert errors.recent()[-1].error is result.error


def test_non_transient_failure_aborts_run(store, settings, clock, errors):
    sleep = MagicMock()
    engine = _engine(store, settings, clock, sleep)
    failure = StorageWriteFailure("no such table", transient=False)

    with patch.object(store, "delete_older_than", side_effect=failure):
        result = engine.run_cleanup()

    assert result.succeeded is False
    assert result.attempts == 1
    assert result.error is failure
    sleep.assert_not_called()


def test_run_if_due_follows_daily_schedule(store, settings, clock):
    engine = _engine(store, settings, clock)
    config = SchedulerConfig(min_gap_minutes=18 * 60, max_gap_minutes=24 * 60)

    assert engine.run_if_due(config) is not None
    assert engine.run_if_due(config) is None

    store.set_meta(LAST_CLEANUP_KEY, (datetime.utcnow() - timedelta(days=2)).isoformat() + "Z")
    assert engine.run_if_due(config) is not None


def test_estimate_storage_prunes_first(store, settings, clock):
    add_record(store, ts=NOW_MS - 30 * DAY_MS)
    for i in range(10):
        add_record(store, title=str(i), ts=NOW_MS - i)

    estimate = _engine(store, settings, clock).estimate_storage()

    assert estimate.count == 10
    assert estimate.estimated_kb == 5
