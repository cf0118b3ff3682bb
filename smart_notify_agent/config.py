"""Configuration management."""

import logging
import os
from dataclasses import dataclass
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


@dataclass
class TwilioConfig:
    """Twilio SMS configuration."""
    account_sid: str
    auth_token: str
    from_number: str
    to_number: str


@dataclass
class EmailConfig:
    """SMTP configuration for summary emails."""
    host: str
    port: int
    username: str
    password: str   # or app-specific password / token
    use_ssl: bool
    to_email: str


@dataclass
class RSSConfig:
    """RSS feed event source configuration."""
    enabled: bool
    feeds: List[str]  # list of feed URLs
    poll_minutes: int = 10


@dataclass
class SchedulerConfig:
    """Jitter window for a periodic task."""
    min_gap_minutes: int
    max_gap_minutes: int


@dataclass
class AppConfig:
    """Complete process configuration."""
    db_path: str
    self_source_id: str
    alert_method: str          # "log", "sms" or "email"
    twilio: Optional[TwilioConfig]
    email: Optional[EmailConfig]
    rss: RSSConfig
    cleanup_scheduler: SchedulerConfig
    allow_exact_timers: bool = True


def _parse_list_env(key: str, default: List[str]) -> List[str]:
    """Parse comma-separated list from environment variable."""
    value = os.getenv(key, "")
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


def _parse_bool_env(key: str, default: bool) -> bool:
    return os.getenv(key, str(default)).lower() == "true"


def load_config() -> AppConfig:
    """
    Load configuration from environment variables.

    Raises:
        ValueError: If the selected alert method is missing credentials.
    """
    db_path = os.getenv("DB_PATH", "smart_notify.db")
    self_source_id = os.getenv("SELF_SOURCE_ID", "smart_notify_agent")
    alert_method = os.getenv("ALERT_METHOD", "log").lower()

    if alert_method not in ("log", "sms", "email"):
        raise ValueError(f"Unknown ALERT_METHOD '{alert_method}'. Use log, sms or email")

    missing = []

    twilio = None
    if alert_method == "sms":
        twilio_values = {
            "TWILIO_ACCOUNT_SID": os.getenv("TWILIO_ACCOUNT_SID"),
            "TWILIO_AUTH_TOKEN": os.getenv("TWILIO_AUTH_TOKEN"),
            "TWILIO_FROM_NUMBER": os.getenv("TWILIO_FROM_NUMBER"),
            "TWILIO_TO_NUMBER": os.getenv("TWILIO_TO_NUMBER"),
        }
        missing.extend(key for key, value in twilio_values.items() if not value)
        twilio = TwilioConfig(
            account_sid=twilio_values["TWILIO_ACCOUNT_SID"] or "",
            auth_token=twilio_values["TWILIO_AUTH_TOKEN"] or "",
            from_number=twilio_values["TWILIO_FROM_NUMBER"] or "",
            to_number=twilio_values["TWILIO_TO_NUMBER"] or "",
        )

    email = None
    if alert_method == "email":
        email_values = {
            "SMTP_HOST": os.getenv("SMTP_HOST"),
            "SMTP_USERNAME": os.getenv("SMTP_USERNAME"),
            "SMTP_PASSWORD": os.getenv("SMTP_PASSWORD"),
            "NOTIFICATION_EMAIL": os.getenv("NOTIFICATION_EMAIL"),
        }
        missing.extend(key for key, value in email_values.items() if not value)
        password = email_values["SMTP_PASSWORD"] or ""
        email = EmailConfig(
            host=email_values["SMTP_HOST"] or "",
            port=int(os.getenv("SMTP_PORT", "587")),
            username=email_values["SMTP_USERNAME"] or "",
            # App passwords are often pasted with spaces
            password=password.replace(" ", ""),
            use_ssl=_parse_bool_env("SMTP_USE_SSL", True),
            to_email=email_values["NOTIFICATION_EMAIL"] or "",
        )

    if missing:
        raise ValueError(
            f"Missing required environment variables: {', '.join(missing)}"
        )

    rss_feeds = _parse_list_env("RSS_FEEDS", [])

    return AppConfig(
        db_path=db_path,
        self_source_id=self_source_id,
        alert_method=alert_method,
        twilio=twilio,
        email=email,
        rss=RSSConfig(
            enabled=_parse_bool_env("RSS_ENABLED", bool(rss_feeds)),
            feeds=rss_feeds,
            poll_minutes=int(os.getenv("RSS_POLL_MINUTES", "10")),
        ),
        # Daily cleanup with a six hour tolerance window
        cleanup_scheduler=SchedulerConfig(
            min_gap_minutes=int(os.getenv("CLEANUP_MIN_GAP_MINUTES", str(18 * 60))),
            max_gap_minutes=int(os.getenv("CLEANUP_MAX_GAP_MINUTES", str(24 * 60))),
        ),
        allow_exact_timers=_parse_bool_env("ALLOW_EXACT_TIMERS", True),
    )


@dataclass(frozen=True)
class _Setting:
    key: str
    kind: type
    default: object
    minimum: Optional[int] = None
    maximum: Optional[int] = None


RETENTION_DAYS = _Setting("retention_days", int, 7, 1, 30)
RE_ALERT_INTERVAL = _Setting("re_alert_interval", int, 15, 1, 60)
SILENT_MODE = _Setting("silent_mode", bool, True)
DND_BEHAVIOR = _Setting("dnd_behavior", bool, False)
LISTENER_GRANTED = _Setting("listener_granted", bool, False)
FIRST_LAUNCH = _Setting("first_launch", bool, True)

SETTINGS = {
    setting.key: setting
    for setting in (RETENTION_DAYS, RE_ALERT_INTERVAL, SILENT_MODE, DND_BEHAVIOR, LISTENER_GRANTED, FIRST_LAUNCH)
}


class Settings:
    """
    User settings persisted as key-value pairs in the store's meta table.

    Missing or unparsable values read as their default and integers are
    clamped to their allowed range, on read and on write.
    """

    def __init__(self, store):
        self._store = store

    def _get(self, setting: _Setting):
        raw = self._store.get_meta(setting.key)
        if raw is None:
            return setting.default
        if setting.kind is bool:
            return raw.lower() == "true"
        try:
            return self._clamp(setting, int(raw))
        except ValueError:
            logger.warning(f"Ignoring invalid stored value for {setting.key}: {raw!r}")
            return setting.default

    def _set(self, setting: _Setting, value) -> None:
        if setting.kind is bool:
            stored = "true" if value else "false"
        else:
            stored = str(self._clamp(setting, int(value)))
        self._store.set_meta(setting.key, stored)

    @staticmethod
    def _clamp(setting: _Setting, value: int) -> int:
        return max(setting.minimum, min(setting.maximum, value))

    def get(self, key: str):
        return self._get(SETTINGS[key])

    def set(self, key: str, value) -> None:
        """
        Set a setting by key, parsing string values.

        Raises:
            KeyError: If the key is not a known setting.
            ValueError: If an integer setting is given a non-numeric value.
        """
        setting = SETTINGS[key]
        if isinstance(value, str):
            value = value.lower() in ("true", "1", "yes", "on") if setting.kind is bool else int(value)
        self._set(setting, value)

    def as_dict(self) -> dict:
        return {key: self.get(key) for key in SETTINGS}

    @property
    def retention_days(self) -> int:
        return self._get(RETENTION_DAYS)

    @retention_days.setter
    def retention_days(self, value: int) -> None:
        self._set(RETENTION_DAYS, value)

    @property
    def re_alert_interval(self) -> int:
        """Minutes between re-alerts."""
        return self._get(RE_ALERT_INTERVAL)

    @re_alert_interval.setter
    def re_alert_interval(self, value: int) -> None:
        self._set(RE_ALERT_INTERVAL, value)

    @property
    def silent_mode(self) -> bool:
        return self._get(SILENT_MODE)

    @silent_mode.setter
    def silent_mode(self, value: bool) -> None:
        self._set(SILENT_MODE, value)

    @property
    def dnd_behavior(self) -> bool:
        return self._get(DND_BEHAVIOR)

    @dnd_behavior.setter
    def dnd_behavior(self, value: bool) -> None:
        self._set(DND_BEHAVIOR, value)

    @property
    def listener_granted(self) -> bool:
        return self._get(LISTENER_GRANTED)

    @listener_granted.setter
    def listener_granted(self, value: bool) -> None:
        self._set(LISTENER_GRANTED, value)

    @property
    def first_launch(self) -> bool:
        return self._get(FIRST_LAUNCH)

    @first_launch.setter
    def first_launch(self, value: bool) -> None:
        self._set(FIRST_LAUNCH, value)
