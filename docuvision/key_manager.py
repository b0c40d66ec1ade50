"""Key pool management."""

import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Set

from docuvision.config import Config, MISSING_KEYS_MESSAGE
from docuvision.errors import ConfigurationError
from docuvision.models import (
    KeyStats,
    UsageRecord,
    STATUS_ACTIVE,
    STATUS_EXHAUSTED,
    mask_key,
)

logger = logging.getLogger(__name__)


class KeyPoolManager:
    """Hands out API keys round-robin or least-used, honoring exhaustion marks.

    The manager makes no network calls and keeps no clock. All operations are
    synchronous and never block, so one instance can be shared by every
    request handler of an event loop.
    """

    def __init__(self, keys: Iterable[Optional[str]]):
        self.keys: List[str] = [key for key in keys if key and key.strip()]
        if not self.keys:
            raise ConfigurationError(MISSING_KEYS_MESSAGE)

        self._cursor: int = 0
        self._usage: Dict[str, UsageRecord] = {key: UsageRecord() for key in self.keys}
        self._exhausted: Set[str] = set()

    @property
    def size(self) -> int:
        return len(self.keys)

    def get_next_key(self) -> str:
        for _ in range(len(self.keys)):
            key = self._advance()
            if key not in self._exhausted:
                self._record_usage(key)
                return key

        # Every key is marked; hand one out anyway and let the caller find out.
        key = self._advance()
        self._record_usage(key)
        return key

    def get_least_used_key(self) -> str:
        available = [key for key in self.keys if key not in self._exhausted]
        if not available:
            return self.get_next_key()

        # min() keeps the first of equal counts, so ties go to pool order.
        key = min(available, key=lambda item: self._usage[item].count)
        self._record_usage(key)
        return key

    def mark_exhausted(self, key: str) -> None:
        if key not in self._usage or key in self._exhausted:
            return
        self._exhausted.add(key)
        logger.warning("Key %s has been marked as EXHAUSTED", mask_key(key))

    def is_exhausted(self, key: str) -> bool:
        return key in self._exhausted

    def is_all_exhausted(self) -> bool:
        return len(self._exhausted) >= len(self.keys)

    def get_stats(self) -> List[KeyStats]:
        return [
            KeyStats(
                index=index,
                preview=mask_key(key),
                usage_count=self._usage[key].count,
                last_used=self._usage[key].last_used_display,
                status=STATUS_EXHAUSTED if key in self._exhausted else STATUS_ACTIVE,
            )
            for index, key in enumerate(self.keys)
        ]

    def reset_counters(self) -> None:
        self._exhausted.clear()
        for key in self.keys:
            self._usage[key] = UsageRecord()
        logger.info("Key usage counters reset for %d keys", len(self.keys))

    def _advance(self) -> str:
        key = self.keys[self._cursor]
        self._cursor = (self._cursor + 1) % len(self.keys)
        return key

    def _record_usage(self, key: str) -> None:
        self._usage[key].touch(datetime.now(timezone.utc))


def create_key_manager(config: Config) -> KeyPoolManager:
    """Build a manager from the configured key slots."""
    manager = KeyPoolManager(config.api_keys)
    logger.info("KeyPoolManager initialized with %d API keys", manager.size)
    return manager
