# pyright: reportMissingImports=false, reportUnknownVariableType=false

"""Daily quota window tracking."""

import logging
from datetime import date, datetime, timedelta, tzinfo
from typing import Optional, cast
from zoneinfo import ZoneInfo

from docuvision.key_manager import KeyPoolManager

logger = logging.getLogger(__name__)

QUOTA_TIMEZONE = "America/Los_Angeles"


class QuotaWindow:
    """Resets a key pool when the Gemini quota day rolls over.

    Free-tier daily quotas reset at midnight Pacific time. The pool manager
    has no clock of its own, so the application holds one of these and calls
    :meth:`maybe_reset` before handing out keys.
    """

    def __init__(self, timezone: str = QUOTA_TIMEZONE):
        self.tz = cast(tzinfo, ZoneInfo(timezone))
        self.last_reset_date: Optional[date] = self._today()

    def _today(self) -> date:
        return datetime.now(self.tz).date()

    def maybe_reset(self, manager: KeyPoolManager) -> bool:
        today = self._today()
        if self.last_reset_date and today <= self.last_reset_date:
            return False

        manager.reset_counters()
        self.last_reset_date = today
        logger.info("Quota day rolled over to %s, key pool reset", today.isoformat())
        return True

    @property
    def next_reset(self) -> Optional[str]:
        if self.last_reset_date is None:
            return None
        return (self.last_reset_date + timedelta(days=1)).isoformat()
