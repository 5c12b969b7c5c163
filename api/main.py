"""
FastAPI main application for the Manga Update Tracker API.
"""

from contextlib import asynccontextmanager
from datetime import datetime

import structlog
from fastapi import Depends, FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.auth import verify_api_key, verify_cron_secret
from api.config import config as api_config
from api.models import (
    AddMangaRequest, ErrorResponse, HealthResponse, MessageResponse,
    ScrapeResponse, SearchRequest, SearchResponse, SubscribeRequest,
    TrackedItemResponse, URLRequest, UpdateCheckResponse, ValidationResponse
)
from scheduler.container import ServiceContainer
from scheduler.scheduler_service import RunInProgressError, TriggerRateLimitedError
from scraper.errors import ConfigError, PersistenceError, ScrapeFailure

# Setup logging
logger = structlog.get_logger(__name__)

# Global service container
container: ServiceContainer = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logger.info("Starting Manga Update Tracker API")

    global container
    try:
        container = ServiceContainer()
        await container.connect()
        logger.info("Database connection established")

        if api_config.run_scheduler:
            container.scheduler_service.start()

    except Exception as e:
        logger.error("Failed to connect to database", error=str(e))
        raise

    yield

    # Shutdown
    logger.info("Shutting down Manga Update Tracker API")
    if container:
        await container.close()


# Create FastAPI application
app = FastAPI(
    title=api_config.api_title,
    description="""
    Track manga chapter lists across sites and get notified about new chapters.

    ## Features

    * **Scraping**: Adaptive direct/provider fetching with language-model extraction
    * **Tracking**: Add a manga for a user and keep its chapter list current
    * **Notifications**: Web push when new chapters appear
    * **Administration**: Source validation and guarded update triggers

    ## Authentication

    Admin endpoints require an API key, the cron endpoint requires the cron secret:

    ```
    Authorization: Bearer <token>
    ```
    """,
    version=api_config.api_version,
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=api_config.cors_origins,
    allow_credentials=api_config.cors_allow_credentials,
    allow_methods=api_config.cors_allow_methods,
    allow_headers=api_config.cors_allow_headers,
)


def get_container() -> ServiceContainer:
    """Return the running service container."""
    if container is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not initialized"
        )
    return container


def _error(status_code: int, error: str, detail: str = None, headers: dict = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, detail=detail, status_code=status_code).dict(),
        headers=headers
    )


# Exception handlers
@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc: HTTPException):
    """Handle HTTP exceptions."""
    return _error(exc.status_code, exc.detail, headers=exc.headers)


@app.exception_handler(ScrapeFailure)
async def scrape_failure_handler(request, exc: ScrapeFailure):
    """Every fetch tier failed."""
    logger.warning("Scrape failed", path=request.url.path, error=str(exc))
    return _error(status.HTTP_502_BAD_GATEWAY, "Failed to scrape manga", detail=str(exc))


@app.exception_handler(ConfigError)
async def config_error_handler(request, exc: ConfigError):
    """Provider credentials are missing."""
    logger.error("Configuration error", path=request.url.path, error=str(exc))
    return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "Service misconfigured", detail=str(exc))


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request, exc: PersistenceError):
    logger.error("Persistence error", path=request.url.path, error=str(exc))
    return _error(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Database error",
        detail=str(exc) if api_config.debug else None
    )


@app.exception_handler(RunInProgressError)
async def run_in_progress_handler(request, exc: RunInProgressError):
    return _error(status.HTTP_409_CONFLICT, str(exc))


@app.exception_handler(TriggerRateLimitedError)
async def rate_limited_handler(request, exc: TriggerRateLimitedError):
    return _error(
        status.HTTP_429_TOO_MANY_REQUESTS,
        "Please wait before checking again",
        detail=str(exc),
        headers={"Retry-After": str(exc.retry_after)}
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc: Exception):
    """Handle general exceptions."""
    logger.error("Unhandled exception", error=str(exc), path=request.url.path)
    return _error(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal server error",
        detail=str(exc) if api_config.debug else None
    )


# Health check endpoint (no authentication required)
@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint."""
    try:
        db_status = "unknown"
        if container:
            health_info = await container.db_manager.health_check()
            db_status = health_info.get("status", "unknown")

        return HealthResponse(
            status="healthy" if db_status == "healthy" else "degraded",
            timestamp=datetime.utcnow(),
            version=api_config.api_version,
            database_status=db_status
        )
    except Exception as e:
        logger.error("Health check failed", error=str(e))
        return HealthResponse(
            status="unhealthy",
            timestamp=datetime.utcnow(),
            version=api_config.api_version,
            database_status="unhealthy"
        )


# Scraping endpoints
@app.post("/scrape/analyze", response_model=ScrapeResponse, tags=["Scraping"])
async def analyze(request: URLRequest, services: ServiceContainer = Depends(get_container)):
    """Scrape a page without storing anything."""
    data = await services.orchestrator.scrape(request.url)
    return ScrapeResponse(data=data)


# Manga endpoints
@app.post("/manga/search", response_model=SearchResponse, tags=["Manga"])
async def search_manga(request: SearchRequest, services: ServiceContainer = Depends(get_container)):
    """Search the scrape provider for manga pages."""
    results = await services.provider_fetcher.search(request.query, limit=request.limit)
    return SearchResponse(results=results)


@app.post(
    "/manga/add",
    response_model=TrackedItemResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Manga"]
)
async def add_manga(request: AddMangaRequest, services: ServiceContainer = Depends(get_container)):
    """Scrape a manga and start tracking it for a user."""
    item = await services.tracking.track(request.url, request.user_id)
    return TrackedItemResponse(
        id=item.id,
        url=item.url,
        title=item.title,
        cover_url=item.cover_url,
        domain=item.domain
    )


# Notification endpoints
@app.post("/notifications/subscribe", response_model=MessageResponse, tags=["Notifications"])
async def subscribe(request: SubscribeRequest, services: ServiceContainer = Depends(get_container)):
    """Store a browser push subscription for a user."""
    await services.push_subscribers.save(request.user_id, request.subscription)
    return MessageResponse(message="Subscribed successfully")


# Admin endpoints
@app.post("/admin/validate", response_model=ValidationResponse, tags=["Admin"])
async def validate_source(
    request: URLRequest,
    api_key: str = Depends(verify_api_key),
    services: ServiceContainer = Depends(get_container)
):
    """Run a diagnostic scrape and report on its quality."""
    result = await services.validator.validate(request.url)
    return ValidationResponse(is_valid=result.is_valid, report=result.report, data=result.data)


@app.get("/admin/scheduler", tags=["Admin"])
async def scheduler_status(
    api_key: str = Depends(verify_api_key),
    services: ServiceContainer = Depends(get_container)
):
    """Scheduler jobs, next run times and the last run summary."""
    return services.scheduler_service.get_status()


# Update endpoints
@app.get("/cron/run", response_model=UpdateCheckResponse, tags=["Updates"])
async def cron_run(
    _: None = Depends(verify_cron_secret),
    services: ServiceContainer = Depends(get_container)
):
    """Run an update pass on behalf of an external cron service."""
    logger.info("Cron job triggered")
    results = await services.scheduler_service.run_once(trigger="cron")
    return UpdateCheckResponse(results=results)


@app.post("/updates/check", response_model=UpdateCheckResponse, tags=["Updates"])
async def check_updates(services: ServiceContainer = Depends(get_container)):
    """Run an update pass on user request, at most once per cooldown window."""
    results = await services.scheduler_service.trigger_manual_run()
    return UpdateCheckResponse(results=results)
