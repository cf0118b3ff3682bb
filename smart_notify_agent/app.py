"""Process wiring: build every component once and pass references explicitly."""

import logging
from typing import Optional

from .config import AppConfig, Settings
from .email_notifier import EmailAlertSurface
from .errors import ErrorSignal
from .host import AlertSurface, LogAlertSurface, PreferenceResolver, TimerFacility
from .intake import IntakePipeline
from .realert import ReAlertScheduler
from .retention import RetentionEngine
from .rss_source import RssEventSource
from .scheduler import RecurringTask
from .store import EventStore
from .summary import SummaryAggregator
from .timers import ThreadingTimerFacility
from .twilio_notifier import TwilioAlertSurface

logger = logging.getLogger(__name__)

CLEANUP_CHECK_SECONDS = 60 * 60
CLEANUP_CHECK_JITTER_SECONDS = 5 * 60


def create_alert_surface(config: AppConfig) -> AlertSurface:
    """Create the alert surface selected by ALERT_METHOD."""
    if config.alert_method == "sms":
        return TwilioAlertSurface(config.twilio)
    if config.alert_method == "email":
        return EmailAlertSurface(config.email)
    return LogAlertSurface()


class App:
    """All components of one running agent."""

    def __init__(
        self,
        config: AppConfig,
        store: Optional[EventStore] = None,
        alert_surface: Optional[AlertSurface] = None,
        timers: Optional[TimerFacility] = None,
    ):
        self.config = config
        self.errors = store.errors if store is not None else ErrorSignal()
        self.store = store or EventStore.open(config.db_path, self.errors)
        self.settings = Settings(self.store)
        self.aggregator = SummaryAggregator(self.store)
        self.alert_surface = alert_surface or create_alert_surface(config)
        self.timers = timers or ThreadingTimerFacility(allow_exact=config.allow_exact_timers)
        self.realert = ReAlertScheduler(
            self.aggregator, self.settings, self.alert_surface, self.timers, self.errors
        )
        self.retention = RetentionEngine(self.store, self.settings, self.errors)
        self.intake = IntakePipeline(
            self.store,
            self.aggregator,
            self.settings,
            resolver=PreferenceResolver(self.store),
            self_source_id=config.self_source_id,
            errors=self.errors,
        )
        self.rss = RssEventSource(config.rss, self.store, self.intake)
        self._tasks = []

    def start(self) -> None:
        """Start background work: re-alerts, daily cleanup and feed polling."""
        if self.settings.first_launch:
            logger.info("First launch; initializing settings")
            self.settings.first_launch = False
        self.intake.on_connect()
        self.realert.start()

        cleanup = RecurringTask(
            "cleanup",
            CLEANUP_CHECK_SECONDS,
            CLEANUP_CHECK_JITTER_SECONDS,
            lambda: self.retention.run_if_due(self.config.cleanup_scheduler),
        )
        cleanup.start(run_immediately=True)
        self._tasks.append(cleanup)

        if self.config.rss.enabled and self.config.rss.feeds:
            poll_seconds = self.config.rss.poll_minutes * 60
            rss = RecurringTask("rss", poll_seconds, poll_seconds / 10, self.rss.poll)
            rss.start(run_immediately=True)
            self._tasks.append(rss)
        logger.info("Agent started")

    def stop(self) -> None:
        for task in self._tasks:
            task.stop()
        self._tasks = []
        self.intake.on_disconnect()
        self.realert.stop()
        self.aggregator.close()
        self.store.close()
        logger.info("Agent stopped")
