"""
Pydantic models for tracked items, chapters and scrape results.
"""

import json
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, Field, validator


UNKNOWN_CHAPTER_NUMBER = -1.0


class FetchStrategy(str, Enum):
    """Fetch method known to work for a domain."""
    DIRECT_FETCH = "DIRECT_FETCH"
    FIRECRAWL = "FIRECRAWL"


class ContentKind(str, Enum):
    """Kind of content handed to the extraction model."""
    HTML = "html"
    MARKDOWN = "markdown"


class ReadingStatus(str, Enum):
    """Reading status a user keeps for a tracked item."""
    READING = "reading"
    COMPLETED = "completed"
    PLAN_TO_READ = "plan_to_read"
    DROPPED = "dropped"
    ON_HOLD = "on_hold"


ACTIVE_READING_STATUSES = frozenset({ReadingStatus.READING, ReadingStatus.PLAN_TO_READ})


def extract_domain(url: str) -> str:
    """Return the hostname portion of a URL."""
    return (urlparse(url).hostname or "").lower()


def format_chapter_number(number: float) -> str:
    """Render 10.0 as "10" and 10.5 as "10.5"."""
    if float(number).is_integer():
        return str(int(number))
    return str(number)


class ScrapedChapter(BaseModel):
    """A chapter as extracted from a source page."""
    number: float = Field(default=UNKNOWN_CHAPTER_NUMBER, description="Chapter number, -1 when unknown")
    title: str = Field(default="", description="Chapter title")
    url: str = Field(default="", description="Chapter URL as returned by the model")
    release_date: Optional[date] = Field(default=None, description="Release date, None when unknown")

    @property
    def has_unknown_number(self) -> bool:
        return self.number == UNKNOWN_CHAPTER_NUMBER


class ScrapedManga(BaseModel):
    """Structured result of a single scrape."""
    title: str = Field(default="", description="Title as shown by the site")
    cover_url: str = Field(default="", description="Cover image URL")
    chapters: List[ScrapedChapter] = Field(default_factory=list)

    # Metadata about how the result was produced
    strategy: Optional[FetchStrategy] = Field(default=None, description="Tier that produced the result")
    warnings: List[str] = Field(default_factory=list, description="Non-fatal extraction warnings")


class SearchResult(BaseModel):
    """A single provider search hit."""
    title: str
    url: str
    description: Optional[str] = None


class TrackedItem(BaseModel):
    """A manga tracked on behalf of one or more users."""
    id: str = Field(..., description="Unique item identifier")
    url: str = Field(..., description="Source page URL")
    title: str = Field(default="", description="Title, overwritten on every re-scrape")
    cover_url: Optional[str] = Field(default=None, description="Cover URL, overwritten on every re-scrape")
    domain: str = Field(default="", description="Hostname of the source URL")
    last_checked_at: Optional[datetime] = Field(default=None)

    @validator('domain', always=True)
    def default_domain(cls, v, values):
        """Derive the domain from the URL when it was not stored."""
        if not v and values.get('url'):
            return extract_domain(values['url'])
        return v


class Chapter(BaseModel):
    """A stored chapter. Identity is (tracked_item_id, number)."""
    tracked_item_id: str
    number: float
    title: str = ""
    url: str = ""
    release_date: Optional[date] = None

    @classmethod
    def from_scraped(cls, tracked_item_id: str, chapter: ScrapedChapter) -> "Chapter":
        return cls(
            tracked_item_id=tracked_item_id,
            number=chapter.number,
            title=chapter.title,
            url=chapter.url,
            release_date=chapter.release_date,
        )


class SubscriptionSetting(BaseModel):
    """Per (user, item) settings owned by the user-facing API."""
    user_id: str
    tracked_item_id: str
    notifications_enabled: bool = True
    reading_status: ReadingStatus = ReadingStatus.READING
    last_read_chapter: Optional[float] = None

    @property
    def is_active_reader(self) -> bool:
        return self.reading_status in ACTIVE_READING_STATUSES


class DomainStrategy(BaseModel):
    """Last strategy that proved itself for a domain."""
    domain: str
    strategy: FetchStrategy
    last_success_at: datetime = Field(default_factory=datetime.utcnow)


class PushSubscriber(BaseModel):
    """Serialized push subscription object for one user."""
    user_id: str
    push_token: Optional[str] = None

    def subscription_info(self) -> Optional[Dict[str, Any]]:
        """Decode the stored subscription object, None when absent."""
        if not self.push_token:
            return None
        return json.loads(self.push_token)
