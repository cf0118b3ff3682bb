from smart_notify_agent.dedup import dedupe
from smart_notify_agent.models import NotificationRecord

from conftest import add_record


def _record(id, ts, source="X", title="Hi", body="there"):
    return NotificationRecord(id=id, source_id=source, source_name=source, title=title, body=body, timestamp=ts)


def test_repeat_inside_window_is_collapsed():
    a = _record(1, 1000)
    b = _record(2, 3000)

    assert dedupe([b, a]) == [a]


def test_repeat_after_window_is_shown_again():
    a = _record(1, 1000)
    b = _record(2, 3000)
    c = _record(3, 9000)

    assert dedupe([c, b, a]) == [c, a]


def test_gap_must_exceed_window():
    a = _record(1, 1000)
    b = _record(2, 6000)

    assert dedupe([a, b]) == [a]


def test_burst_is_measured_from_last_kept_record():
    records = [_record(i, 1000 + i * 2000) for i in range(6)]

    kept = dedupe(records)

    assert [r.timestamp for r in kept] == [7000, 1000]


def test_different_content_is_never_collapsed():
    a = _record(1, 1000)
    b = _record(2, 1500, body="there!")
    c = _record(3, 2000, source="Y")

    assert dedupe([a, b, c]) == [c, b, a]


def test_dedupe_is_idempotent():
    records = [_record(i, ts) for i, ts in enumerate([1000, 2500, 4000, 12000, 13000, 30000])]
    records += [_record(100 + i, ts, title="Other") for i, ts in enumerate([1000, 1001, 9000])]

    once = dedupe(records)

    assert dedupe(once) == once


def test_dedupe_does_not_touch_stored_history(store):
    add_record(store, ts=1000)
    add_record(store, ts=3000)

    assert len(dedupe(store.all_notifications())) == 1
    assert store.count() == 2


def test_empty_input():
    assert dedupe([]) == []
