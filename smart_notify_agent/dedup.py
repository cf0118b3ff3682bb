"""Read-time collapsing of repeated notifications."""

from itertools import groupby
from typing import Iterable, List

from .models import NotificationRecord

DUPLICATE_WINDOW_MS = 5000


def _group_key(record: NotificationRecord):
    return (record.source_id, record.title, record.body)


def _chronological(record: NotificationRecord):
    return (record.timestamp, record.id)


def dedupe(
    records: Iterable[NotificationRecord],
    window_ms: int = DUPLICATE_WINDOW_MS,
) -> List[NotificationRecord]:
    """
    Drop near-identical repeats from a display list.

    Records sharing (source_id, title, body) form a group. Walking a group in
    capture order, a record is kept if it is the first one or if it arrived
    more than window_ms after the last record kept from that group, so a
    burst shows up once and a genuinely later repeat shows up again. The
    stored history is not touched.

    Args:
        records: Records in any order.
        window_ms: Gap a repeat must exceed to be shown again.

    Returns:
        The kept records, newest first.
    """
    kept = []
    ordered = sorted(records, key=_group_key)
    for _, group in groupby(ordered, key=_group_key):
        last_kept = None
        for record in sorted(group, key=_chronological):
            if last_kept is None or record.timestamp - last_kept.timestamp > window_ms:
                kept.append(record)
                last_kept = record
    kept.sort(key=_chronological, reverse=True)
    return kept
