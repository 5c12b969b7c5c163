"""
MongoDB database utilities for async operations.
Handles connection, indexing and typed repositories for tracked items,
chapters, subscription settings and push subscribers.
"""

import json
import uuid
from datetime import date, datetime, time
from typing import Any, Dict, Iterable, List, Optional, Set

import structlog
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ReturnDocument, UpdateOne
from pymongo.errors import ConnectionFailure, PyMongoError

from .errors import PersistenceError
from .models import (
    Chapter, PushSubscriber, ScrapedChapter, ScrapedManga,
    SubscriptionSetting, TrackedItem, extract_domain
)

logger = structlog.get_logger(__name__)


def _to_datetime(value: Optional[date]) -> Optional[datetime]:
    """BSON has no date type; store dates as midnight UTC."""
    if value is None:
        return None
    return datetime.combine(value, time.min)


def _to_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return None


class MongoDBManager:
    """
    Async MongoDB manager.
    Handles connection and index creation for every collection the core uses.
    """

    def __init__(self, connection_url: str, database_name: str):
        """
        Initialize MongoDB manager.

        Args:
            connection_url: MongoDB connection URL
            database_name: Name of the database
        """
        self.connection_url = connection_url
        self.database_name = database_name
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None

    async def connect(self) -> None:
        """Establish connection to MongoDB."""
        try:
            self.client = AsyncIOMotorClient(self.connection_url)
            self.database = self.client[self.database_name]

            # Test connection
            await self.client.admin.command('ping')
            logger.info("Successfully connected to MongoDB", database=self.database_name)

            await self._create_indexes()

        except ConnectionFailure as e:
            logger.error("Failed to connect to MongoDB", error=str(e))
            raise

    async def disconnect(self) -> None:
        """Close MongoDB connection."""
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")

    async def _create_indexes(self) -> None:
        """Create the unique keys the upsert semantics rely on."""
        try:
            await self.database.tracked_items.create_index("url", unique=True)
            await self.database.chapters.create_index(
                [("tracked_item_id", 1), ("number", 1)], unique=True
            )
            await self.database.chapters.create_index([("tracked_item_id", 1), ("release_date", -1)])
            await self.database.subscription_settings.create_index(
                [("user_id", 1), ("tracked_item_id", 1)], unique=True
            )
            await self.database.subscription_settings.create_index("tracked_item_id")
            await self.database.domain_strategies.create_index("domain", unique=True)
            await self.database.push_subscribers.create_index("user_id", unique=True)

            logger.info("Successfully created MongoDB indexes")

        except Exception as e:
            logger.error("Failed to create indexes", error=str(e))
            raise

    async def health_check(self) -> Dict[str, str]:
        """Ping the server."""
        try:
            await self.database.command("ping")
            return {"status": "healthy"}
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return {"status": "unhealthy", "error": str(e)}


class TrackedItemRepository:
    """Tracked items, keyed by URL."""

    def __init__(self, db_manager: MongoDBManager):
        self.db_manager = db_manager

    @property
    def collection(self):
        return self.db_manager.database.tracked_items

    @staticmethod
    def _from_doc(doc: Dict[str, Any]) -> TrackedItem:
        return TrackedItem(
            id=str(doc["_id"]),
            url=doc["url"],
            title=doc.get("title") or "",
            cover_url=doc.get("cover_url"),
            domain=doc.get("domain") or "",
            last_checked_at=doc.get("last_checked_at"),
        )

    async def list_all(self) -> List[TrackedItem]:
        try:
            items = []
            async for doc in self.collection.find({}):
                items.append(self._from_doc(doc))
            return items
        except PyMongoError as e:
            raise PersistenceError(f"Failed to list tracked items: {e}") from e

    async def get_by_url(self, url: str) -> Optional[TrackedItem]:
        try:
            doc = await self.collection.find_one({"url": url})
        except PyMongoError as e:
            raise PersistenceError(f"Failed to load tracked item: {e}") from e
        return self._from_doc(doc) if doc else None

    async def upsert_from_scrape(self, url: str, scraped: ScrapedManga) -> TrackedItem:
        """Create the item on first scrape, overwrite title and cover afterwards."""
        try:
            doc = await self.collection.find_one_and_update(
                {"url": url},
                {
                    "$set": {
                        "title": scraped.title,
                        "cover_url": scraped.cover_url or None,
                        "domain": extract_domain(url),
                        "updated_at": datetime.utcnow(),
                    },
                    "$setOnInsert": {"_id": str(uuid.uuid4()), "created_at": datetime.utcnow()},
                },
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            raise PersistenceError(f"Failed to upsert tracked item: {e}") from e
        return self._from_doc(doc)

    async def update_metadata(self, item_id: str, title: str, cover_url: Optional[str]) -> None:
        update: Dict[str, Any] = {"updated_at": datetime.utcnow()}
        if title:
            update["title"] = title
        if cover_url:
            update["cover_url"] = cover_url
        try:
            await self.collection.update_one({"_id": item_id}, {"$set": update})
        except PyMongoError as e:
            raise PersistenceError(f"Failed to update tracked item metadata: {e}") from e

    async def mark_checked(self, item_id: str, checked_at: datetime) -> None:
        try:
            await self.collection.update_one({"_id": item_id}, {"$set": {"last_checked_at": checked_at}})
        except PyMongoError as e:
            raise PersistenceError(f"Failed to update last_checked_at: {e}") from e


class ChapterRepository:
    """Chapters, unique on (tracked_item_id, number)."""

    def __init__(self, db_manager: MongoDBManager):
        self.db_manager = db_manager

    @property
    def collection(self):
        return self.db_manager.database.chapters

    @staticmethod
    def _from_doc(doc: Dict[str, Any]) -> Chapter:
        return Chapter(
            tracked_item_id=doc["tracked_item_id"],
            number=doc["number"],
            title=doc.get("title") or "",
            url=doc.get("url") or "",
            release_date=_to_date(doc.get("release_date")),
        )

    async def list_for_item(self, tracked_item_id: str) -> List[Chapter]:
        try:
            cursor = self.collection.find({"tracked_item_id": tracked_item_id}).sort("number", -1)
            return [self._from_doc(doc) async for doc in cursor]
        except PyMongoError as e:
            raise PersistenceError(f"Failed to list chapters: {e}") from e

    async def existing_numbers(self, tracked_item_id: str) -> Set[float]:
        try:
            numbers = await self.collection.distinct("number", {"tracked_item_id": tracked_item_id})
        except PyMongoError as e:
            raise PersistenceError(f"Failed to load chapter numbers: {e}") from e
        return {float(n) for n in numbers}

    async def latest_release_date(self, tracked_item_id: str) -> Optional[date]:
        """Most recent known release date, None when no chapter has one."""
        try:
            doc = await self.collection.find_one(
                {"tracked_item_id": tracked_item_id, "release_date": {"$ne": None}},
                sort=[("release_date", -1)],
            )
        except PyMongoError as e:
            raise PersistenceError(f"Failed to load latest release date: {e}") from e
        return _to_date(doc.get("release_date")) if doc else None

    async def upsert_many(self, tracked_item_id: str, chapters: Iterable[ScrapedChapter]) -> int:
        """
        Idempotently upsert chapters keyed on (tracked_item_id, number).

        Returns:
            Number of chapters written
        """
        operations = []
        for chapter in chapters:
            stored = Chapter.from_scraped(tracked_item_id, chapter)
            operations.append(
                UpdateOne(
                    {"tracked_item_id": tracked_item_id, "number": stored.number},
                    {
                        "$set": {
                            "title": stored.title,
                            "url": stored.url,
                            "release_date": _to_datetime(stored.release_date),
                        },
                        "$setOnInsert": {"created_at": datetime.utcnow()},
                    },
                    upsert=True,
                )
            )

        if not operations:
            return 0

        try:
            await self.collection.bulk_write(operations, ordered=False)
        except PyMongoError as e:
            raise PersistenceError(f"Failed to upsert chapters: {e}") from e

        logger.debug("Chapters upserted", tracked_item_id=tracked_item_id, count=len(operations))
        return len(operations)


class SubscriptionRepository:
    """Per-user settings. Read-only to the core except for linking new items."""

    def __init__(self, db_manager: MongoDBManager):
        self.db_manager = db_manager

    @property
    def collection(self):
        return self.db_manager.database.subscription_settings

    @staticmethod
    def _from_doc(doc: Dict[str, Any]) -> SubscriptionSetting:
        return SubscriptionSetting(
            user_id=doc["user_id"],
            tracked_item_id=doc["tracked_item_id"],
            notifications_enabled=doc.get("notifications_enabled", True),
            reading_status=doc.get("reading_status") or "reading",
            last_read_chapter=doc.get("last_read_chapter"),
        )

    async def list_for_item(self, tracked_item_id: str) -> List[SubscriptionSetting]:
        try:
            cursor = self.collection.find({"tracked_item_id": tracked_item_id})
            return [self._from_doc(doc) async for doc in cursor]
        except PyMongoError as e:
            raise PersistenceError(f"Failed to list subscription settings: {e}") from e

    async def list_notifiable(self, tracked_item_id: str) -> List[SubscriptionSetting]:
        try:
            cursor = self.collection.find({"tracked_item_id": tracked_item_id, "notifications_enabled": True})
            return [self._from_doc(doc) async for doc in cursor]
        except PyMongoError as e:
            raise PersistenceError(f"Failed to list subscribers: {e}") from e

    async def link(self, user_id: str, tracked_item_id: str) -> None:
        """Link a user to an item, keeping any existing settings."""
        try:
            await self.collection.update_one(
                {"user_id": user_id, "tracked_item_id": tracked_item_id},
                {
                    "$set": {"notifications_enabled": True},
                    "$setOnInsert": {"reading_status": "reading", "last_read_chapter": None},
                },
                upsert=True,
            )
        except PyMongoError as e:
            raise PersistenceError(f"Failed to link subscription: {e}") from e


class PushSubscriberRepository:
    """Serialized push subscriptions, one per user."""

    def __init__(self, db_manager: MongoDBManager):
        self.db_manager = db_manager

    @property
    def collection(self):
        return self.db_manager.database.push_subscribers

    async def get_many(self, user_ids: List[str]) -> Dict[str, PushSubscriber]:
        if not user_ids:
            return {}
        try:
            cursor = self.collection.find({"user_id": {"$in": list(user_ids)}})
            return {
                doc["user_id"]: PushSubscriber(user_id=doc["user_id"], push_token=doc.get("push_token"))
                async for doc in cursor
            }
        except PyMongoError as e:
            raise PersistenceError(f"Failed to load push subscribers: {e}") from e

    async def save(self, user_id: str, subscription: Dict[str, Any]) -> None:
        try:
            await self.collection.update_one(
                {"user_id": user_id},
                {"$set": {"push_token": json.dumps(subscription), "updated_at": datetime.utcnow()}},
                upsert=True,
            )
        except PyMongoError as e:
            raise PersistenceError(f"Failed to save push subscription: {e}") from e
        logger.info("User subscribed to push notifications", user_id=user_id)
