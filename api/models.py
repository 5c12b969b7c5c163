"""
Pydantic models for API requests and responses.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, validator

from scheduler.models import UpdateResult
from scraper.models import ScrapedManga, SearchResult


def _require_http_url(value: str) -> str:
    value = value.strip()
    if not value.startswith(("http://", "https://")):
        raise ValueError("url must be an absolute http(s) URL")
    return value


class URLRequest(BaseModel):
    """Request carrying a single page URL."""
    url: str = Field(..., description="Manga page URL")

    @validator('url')
    def validate_url(cls, v):
        return _require_http_url(v)


class AddMangaRequest(URLRequest):
    """Request to start tracking a manga."""
    user_id: str = Field(..., min_length=1, description="User that tracks the manga")


class SearchRequest(BaseModel):
    """Provider search request."""
    query: str = Field(..., min_length=1, description="Title to search for")
    limit: int = Field(5, ge=1, le=20, description="Maximum number of results")


class SubscribeRequest(BaseModel):
    """Push subscription registration."""
    user_id: str = Field(..., min_length=1)
    subscription: Dict[str, Any] = Field(..., description="Browser push subscription object")

    @validator('subscription')
    def validate_subscription(cls, v):
        if not v.get("endpoint"):
            raise ValueError("subscription must include an endpoint")
        return v


class ScrapeResponse(BaseModel):
    """Scrape result."""
    data: ScrapedManga


class SearchResponse(BaseModel):
    """Search results."""
    results: List[SearchResult] = Field(default_factory=list)


class TrackedItemResponse(BaseModel):
    """A newly tracked or refreshed manga."""
    id: str
    url: str
    title: str
    cover_url: Optional[str] = None
    domain: str


class ValidationResponse(BaseModel):
    """Source validation result."""
    is_valid: bool
    report: List[str]
    data: Optional[ScrapedManga] = None


class UpdateCheckResponse(BaseModel):
    """Update run summary."""
    success: bool = True
    results: UpdateResult


class MessageResponse(BaseModel):
    """Plain acknowledgement."""
    message: str


class ErrorResponse(BaseModel):
    """Error response model."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Additional error details")
    status_code: int = Field(..., description="HTTP status code")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    database_status: str = Field(..., description="Database connection status")
