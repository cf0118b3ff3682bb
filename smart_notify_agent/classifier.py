"""Importance classification of incoming notifications."""

from .store import EventStore


def classify(store: EventStore, source_id: str) -> bool:
    """
    Decide whether notifications from a source are important.

    Sources without a preference are not important. A failed lookup is
    reported on the store's error signal and also reads as not important.
    """
    preference = store.get_preference(source_id)
    return preference.is_important if preference is not None else False
