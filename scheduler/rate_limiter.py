"""
Cooldown gate for manually triggered update runs.
"""

from datetime import datetime, timedelta
from typing import Optional


class RateLimiter:
    """Allows at most one acquisition per cooldown window."""

    def __init__(self, cooldown_seconds: float):
        self.cooldown = timedelta(seconds=cooldown_seconds)
        self.last_run: Optional[datetime] = None

    def try_acquire(self, now: Optional[datetime] = None) -> bool:
        """Record a run at ``now`` and return True, or return False while cooling down."""
        now = now or datetime.utcnow()
        if self.last_run is not None and now - self.last_run < self.cooldown:
            return False
        self.last_run = now
        return True

    def retry_after(self, now: Optional[datetime] = None) -> int:
        """Seconds until the next acquisition can succeed."""
        if self.last_run is None:
            return 0
        now = now or datetime.utcnow()
        remaining = self.last_run + self.cooldown - now
        return max(0, int(remaining.total_seconds()))
