"""
Web push notifications for newly detected chapters.

This module provides:
- Subscriber lookup for a tracked item
- Payload construction
- Best-effort delivery, isolated per recipient
"""

import asyncio
import json
from typing import Any, Callable, Dict, List, Optional

import structlog
from pywebpush import WebPushException, webpush
from requests.exceptions import RequestException

from scheduler.change_detector import newest
from scheduler.models import NotificationConfig, NotificationResult
from scraper.database import PushSubscriberRepository, SubscriptionRepository
from scraper.errors import DeliveryError
from scraper.models import PushSubscriber, ScrapedChapter, TrackedItem, format_chapter_number

logger = structlog.get_logger(__name__)


def build_payload(item: TrackedItem, chapter: ScrapedChapter, icon: str) -> Dict[str, str]:
    """Notification body shown by the client's service worker."""
    return {
        "title": f"New Chapter: {item.title}",
        "body": f"Chapter {format_chapter_number(chapter.number)} is now available!",
        "icon": icon,
        "url": f"/manga/{item.id}",
    }


class NotificationDispatcher:
    """Sends one push message per subscriber for a batch of new chapters."""

    def __init__(
        self,
        subscriptions: SubscriptionRepository,
        push_subscribers: PushSubscriberRepository,
        config: NotificationConfig,
        sender: Optional[Callable[..., Any]] = None,
    ):
        """
        Initialize dispatcher.

        Args:
            subscriptions: Subscription settings repository
            push_subscribers: Push subscription repository
            config: Notification configuration
            sender: Blocking push function, defaults to ``pywebpush.webpush``
        """
        self.subscriptions = subscriptions
        self.push_subscribers = push_subscribers
        self.config = config
        self.sender = sender or webpush
        self.logger = logger.bind(component="notification_dispatcher")

    async def notify(self, item: TrackedItem, new_chapters: List[ScrapedChapter]) -> NotificationResult:
        """
        Notify every subscriber with notifications enabled.

        Args:
            item: Tracked item that gained chapters
            new_chapters: Chapters detected in this run

        Returns:
            NotificationResult with sent/failed/skipped counts
        """
        result = NotificationResult()
        highlighted = newest(new_chapters)
        if highlighted is None:
            return result

        if not self.config.enabled or not self.config.vapid_private_key:
            self.logger.warning("Push notifications disabled, VAPID keys not configured", tracked_item_id=item.id)
            return result

        settings = await self.subscriptions.list_notifiable(item.id)
        subscribers = await self.push_subscribers.get_many([s.user_id for s in settings])
        payload = json.dumps(build_payload(item, highlighted, self.config.icon))

        for setting in settings:
            subscriber = subscribers.get(setting.user_id)
            if subscriber is None or not subscriber.push_token:
                result.skipped += 1
                continue

            try:
                await self._send(subscriber, payload)
                result.sent += 1
            except DeliveryError as e:
                result.failed += 1
                self.logger.warning(
                    "Failed to send notification",
                    user_id=setting.user_id,
                    tracked_item_id=item.id,
                    error=str(e),
                )

        self.logger.info(
            "Notifications dispatched",
            tracked_item_id=item.id,
            chapter=highlighted.number,
            sent=result.sent,
            failed=result.failed,
            skipped=result.skipped,
        )
        return result

    async def _send(self, subscriber: PushSubscriber, payload: str) -> None:
        try:
            await asyncio.to_thread(
                self.sender,
                subscription_info=subscriber.subscription_info(),
                data=payload,
                vapid_private_key=self.config.vapid_private_key,
                vapid_claims={"sub": self.config.vapid_subject},
                ttl=self.config.ttl_seconds,
            )
        except (WebPushException, RequestException, ValueError, TypeError) as e:
            raise DeliveryError(str(e)) from e
