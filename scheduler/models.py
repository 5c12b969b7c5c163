"""
Models for the update scheduler.

This module defines Pydantic models for:
- Scheduler and notification configuration
- Update run summaries
- Notification delivery counts
- Source validation reports
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from scraper.models import ScrapedManga


class SchedulerConfig(BaseModel):
    """Configuration for the update scheduler."""
    # Scheduling
    check_interval_hours: int = Field(default=6, ge=1, le=24, description="Hours between scheduled runs")
    timezone: str = Field(default="UTC", description="Timezone for scheduling")

    # Politeness
    item_delay_seconds: float = Field(default=5.0, ge=0, description="Pause after each scraped item")

    # Smart check
    cadence_days: int = Field(default=7, ge=0, description="Expected days between releases")
    cadence_buffer_hours: int = Field(default=6, ge=0, description="Check this many hours before the expected release")

    # Manual trigger
    manual_trigger_cooldown_seconds: int = Field(default=300, ge=0)

    class Config:
        """Pydantic configuration."""
        json_encoders = {
            datetime: lambda v: v.isoformat()
        }


class NotificationConfig(BaseModel):
    """Web push settings."""
    enabled: bool = Field(default=True)
    vapid_private_key: Optional[str] = Field(default=None)
    vapid_subject: str = Field(default="mailto:admin@example.com")
    icon: str = Field(default="/icon-192x192.png")
    ttl_seconds: int = Field(default=86400, ge=0, description="How long the push service keeps undelivered messages")


class UpdatedItem(BaseModel):
    """An item that gained chapters during a run."""
    id: str
    title: str
    new_chapters_count: int


class UpdateResult(BaseModel):
    """Summary of a single scheduler pass."""
    total: int = Field(default=0)
    checked: int = Field(default=0)
    updated: int = Field(default=0)
    skipped: int = Field(default=0)
    failed: int = Field(default=0)
    updated_items: List[UpdatedItem] = Field(default_factory=list)
    duration_ms: int = Field(default=0)

    # Run metadata
    started_at: datetime = Field(default_factory=datetime.utcnow)
    trigger: str = Field(default="scheduled", description="scheduled, cron or manual")

    class Config:
        """Pydantic configuration."""
        json_encoders = {
            datetime: lambda v: v.isoformat()
        }


class NotificationResult(BaseModel):
    """Delivery counts for one batch of new chapters."""
    sent: int = Field(default=0)
    failed: int = Field(default=0)
    skipped: int = Field(default=0, description="Subscribers without a push subscription")


class ValidationReport(BaseModel):
    """Outcome of validating a source URL."""
    url: str
    is_valid: bool = Field(default=False)
    report: List[str] = Field(default_factory=list)
    data: Optional[ScrapedManga] = Field(default=None)
    duration_ms: int = Field(default=0)
