"""Data models for API key usage tracking."""

from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Dict, Optional

STATUS_ACTIVE = "ACTIVE"
STATUS_EXHAUSTED = "EXHAUSTED"

NEVER_USED = "never"
PREVIEW_LENGTH = 10


def mask_key(key: str) -> str:
    """Return a redacted preview that never reveals the whole key.

    At most the first ``PREVIEW_LENGTH`` characters are shown, and never more
    than half of a short key. The preview is padded so every key produces the
    same length.
    """
    visible = min(PREVIEW_LENGTH, len(key) // 2)
    return f"{key[:visible].ljust(PREVIEW_LENGTH, '*')}..."


@dataclass
class UsageRecord:
    """Usage counters for a single API key."""

    count: int = 0
    last_used: Optional[datetime] = None

    def touch(self, now: datetime) -> None:
        self.count += 1
        self.last_used = now

    @property
    def last_used_display(self) -> str:
        if self.last_used is None:
            return NEVER_USED
        return self.last_used.isoformat()


@dataclass
class KeyStats:
    """Read-only snapshot of one key, safe to expose."""

    index: int
    preview: str
    usage_count: int
    last_used: str
    status: str

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)
