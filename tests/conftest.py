import pytest

from smart_notify_agent.config import Settings
from smart_notify_agent.date_utils import DAY_MS
from smart_notify_agent.db import init_db
from smart_notify_agent.errors import ErrorSignal, SchedulerPermissionDenied
from smart_notify_agent.host import AlertSurface, TimerFacility
from smart_notify_agent.intake import IntakePipeline
from smart_notify_agent.realert import ReAlertScheduler
from smart_notify_agent.store import EventStore
from smart_notify_agent.summary import SummaryAggregator

NOW_MS = 30 * DAY_MS


class FakeClock:
    def __init__(self, now=NOW_MS):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


class FakeTimer:
    def __init__(self, delay, callback, exact):
        self.delay = delay
        self.callback = callback
        self.exact = exact
        self.cancelled = False
        self.fired = False


class FakeTimers(TimerFacility):
    """Timers that only fire when a test says so."""

    def __init__(self, allow_exact=True):
        self.allow_exact = allow_exact
        self.scheduled = []

    def schedule_once(self, delay_seconds, callback, exact=True):
        if exact and not self.allow_exact:
            raise SchedulerPermissionDenied("exact timers denied")
        timer = FakeTimer(delay_seconds, callback, exact)
        self.scheduled.append(timer)
        return timer

    def cancel(self, handle):
        handle.cancelled = True

    def pending(self):
        return [t for t in self.scheduled if not t.cancelled and not t.fired]

    def fire(self, timer=None):
        timer = timer or self.pending()[-1]
        timer.fired = True
        timer.callback()


class RecordingSurface(AlertSurface):
    def __init__(self, dnd=False):
        self.posts = []
        self.cancels = 0
        self.dnd = dnd

    def post_summary(self, title, body, count, silent):
        self.posts.append((title, body, count, silent))

    def cancel_summary(self):
        self.cancels += 1

    def is_do_not_disturb(self):
        return self.dnd


@pytest.fixture
def conn():
    connection = init_db(":memory:")
    yield connection
    try:
        connection.close()
    except Exception:
        pass


@pytest.fixture
def errors():
    return ErrorSignal()


@pytest.fixture
def store(conn, errors):
    return EventStore(conn, errors)


@pytest.fixture
def settings(store):
    return Settings(store)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def timers():
    return FakeTimers()


@pytest.fixture
def surface():
    return RecordingSurface()


@pytest.fixture
def aggregator(store):
    return SummaryAggregator(store)


@pytest.fixture
def realert(aggregator, settings, surface, timers, errors):
    scheduler = ReAlertScheduler(aggregator, settings, surface, timers, errors)
    scheduler.start()
    return scheduler


@pytest.fixture
def pipeline(store, aggregator, settings, clock, errors):
    return IntakePipeline(store, aggregator, settings, self_source_id="self.app", errors=errors, clock=clock)


def add_record(store, source="X", title="Hi", body="there", ts=1000, important=False, name=None):
    return store.append(source, name or source, title, body, ts, important)
