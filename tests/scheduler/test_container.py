"""
Unit tests for settings-to-config mapping in the composition root.
"""

from scheduler.container import notification_config_from, scheduler_config_from
from utilities.config import ScraperConfig


def test_scheduler_config_from_settings():
    settings = ScraperConfig(_env_file=None, check_interval_hours=12, item_delay_seconds=2, cadence_days=3)

    scheduler_config = scheduler_config_from(settings)

    assert scheduler_config.check_interval_hours == 12
    assert scheduler_config.item_delay_seconds == 2
    assert scheduler_config.cadence_days == 3


def test_notification_config_without_vapid_keys():
    settings = ScraperConfig(_env_file=None, vapid_public_key=None, vapid_private_key=None)

    notification_config = notification_config_from(settings)

    assert notification_config.enabled is False
