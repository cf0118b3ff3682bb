"""Interfaces to the host environment."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional, Tuple

from .errors import ResolverUnavailable

logger = logging.getLogger(__name__)


class DisplayNameResolver(ABC):
    """Looks up the human readable name and icon of a source."""

    @abstractmethod
    def resolve(self, source_id: str) -> Tuple[str, Optional[bytes]]:
        """
        Resolve a source.

        Args:
            source_id: Stable identifier of the source.

        Returns:
            (display_name, icon bytes or None).

        Raises:
            ResolverUnavailable: If the source is unknown to the host.
        """
        pass


class AlertSurface(ABC):
    """Where re-alert summaries are shown to the user."""

    @abstractmethod
    def post_summary(self, title: str, body: str, count: int, silent: bool) -> None:
        pass

    @abstractmethod
    def cancel_summary(self) -> None:
        pass

    def is_do_not_disturb(self) -> bool:
        return False


class TimerFacility(ABC):
    """One-shot timers, possibly with inexact delivery."""

    @abstractmethod
    def schedule_once(self, delay_seconds: float, callback: Callable[[], None], exact: bool = True) -> Any:
        """
        Run callback once after delay_seconds.

        Returns:
            A handle accepted by cancel().

        Raises:
            SchedulerPermissionDenied: If exact is requested but not allowed.
        """
        pass

    @abstractmethod
    def cancel(self, handle: Any) -> None:
        pass


class PreferenceResolver(DisplayNameResolver):
    """Resolves names from stored source preferences. Never has icons."""

    def __init__(self, store):
        self._store = store

    def resolve(self, source_id: str) -> Tuple[str, Optional[bytes]]:
        preference = self._store.get_preference(source_id)
        if preference is None or not preference.display_name:
            raise ResolverUnavailable(f"No display name known for {source_id}")
        return preference.display_name, None


class LogAlertSurface(AlertSurface):
    """Writes summaries to the log, for headless runs."""

    def post_summary(self, title: str, body: str, count: int, silent: bool) -> None:
        logger.info(f"Summary ({'silent' if silent else 'audible'}): {title} - {body}")

    def cancel_summary(self) -> None:
        logger.info("Summary cleared")
