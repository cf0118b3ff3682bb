from smart_notify_agent.classifier import classify
from smart_notify_agent.errors import StorageReadFailure


def test_unknown_source_is_not_important(store):
    assert classify(store, "com.unknown") is False


def test_preference_decides_importance(store):
    store.set_preference("com.bank", "Bank", True)
    store.set_preference("com.game", "Game", False)

    assert classify(store, "com.bank") is True
    assert classify(store, "com.game") is False


def test_lookup_failure_reads_as_not_important(store, conn, errors):
    store.set_preference("com.bank", "Bank", True)
    conn.close()

    assert classify(store, "com.bank") is False
    assert isinstance(errors.recent()[-1].error, StorageReadFailure)
