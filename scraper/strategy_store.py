"""
Persisted mapping of site domain to the last fetch strategy that worked.

Store failures are never fatal: reads degrade to "unknown" and writes are
dropped with a warning. A stale entry corrects itself on the next scrape.
"""

from datetime import datetime
from typing import Optional

import structlog

from .models import DomainStrategy, FetchStrategy

logger = structlog.get_logger(__name__)


class StrategyStore:
    """MongoDB-backed domain strategy cache."""

    COLLECTION = "domain_strategies"

    def __init__(self, db_manager):
        """
        Initialize the store.

        Args:
            db_manager: Connected MongoDBManager
        """
        self.db_manager = db_manager
        self.logger = logger.bind(component="strategy_store")

    @property
    def collection(self):
        return self.db_manager.database[self.COLLECTION]

    async def get(self, domain: str) -> Optional[FetchStrategy]:
        """Return the known strategy for a domain, None when unknown or unreachable."""
        try:
            doc = await self.collection.find_one({"domain": domain})
            if not doc:
                return None
            return FetchStrategy(doc["strategy"])
        except Exception as e:
            self.logger.warning("Failed to fetch domain strategy", domain=domain, error=str(e))
            return None

    async def set(self, domain: str, strategy: FetchStrategy) -> None:
        """Record that a strategy just worked for a domain."""
        record = DomainStrategy(domain=domain, strategy=strategy, last_success_at=datetime.utcnow())
        try:
            await self.collection.update_one(
                {"domain": domain},
                {"$set": {
                    "strategy": record.strategy.value,
                    "last_success_at": record.last_success_at,
                }},
                upsert=True,
            )
            self.logger.debug("Domain strategy saved", domain=domain, strategy=strategy.value)
        except Exception as e:
            self.logger.warning("Failed to save domain strategy", domain=domain, error=str(e))
