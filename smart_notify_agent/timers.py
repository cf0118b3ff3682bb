"""Thread based timer facility."""

import logging
import threading
from typing import Callable

from .errors import SchedulerPermissionDenied
from .host import TimerFacility

logger = logging.getLogger(__name__)

# Inexact timers are rounded up to this granularity
INEXACT_GRANULARITY_SECONDS = 60.0


class ThreadingTimerFacility(TimerFacility):
    """
    One-shot timers on daemon threads.

    When allow_exact is False, exact requests are refused with
    SchedulerPermissionDenied and callers fall back to inexact timers, which
    may fire up to a minute late.
    """

    def __init__(self, allow_exact: bool = True):
        self.allow_exact = allow_exact

    def schedule_once(self, delay_seconds: float, callback: Callable[[], None], exact: bool = True) -> threading.Timer:
        if exact and not self.allow_exact:
            raise SchedulerPermissionDenied("Exact timers are not permitted")
        if not exact:
            slots = -(-delay_seconds // INEXACT_GRANULARITY_SECONDS)
            delay_seconds = max(delay_seconds, slots * INEXACT_GRANULARITY_SECONDS)
        timer = threading.Timer(delay_seconds, callback)
        timer.daemon = True
        timer.start()
        logger.debug(f"Timer scheduled in {delay_seconds:.0f}s (exact={exact})")
        return timer

    def cancel(self, handle: threading.Timer) -> None:
        if handle is not None:
            handle.cancel()
