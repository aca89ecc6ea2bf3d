"""FastAPI application for resort snow data.

Provides REST API endpoints for:
- Resort snow reports and forecasts (cache-aware)
- Top-snowfall rankings and map views
- Snowfall alert subscriptions and notifications
- Maintenance triggers (crawl, refresh, preload)
- Ski assistant questions

Example:
    >>> from snowpeak.api import create_app
    >>> app = create_app()
    >>> # Run with: uvicorn snowpeak.api.app:app --reload
"""

import logging
from typing import Optional

from fastapi import BackgroundTasks, Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from snowpeak.alerts.engine import THRESHOLDS
from snowpeak.api.schemas import (
    ChatRequest,
    ChatResponse,
    CheckResponse,
    ErrorResponse,
    ForecastDayResponse,
    ForecastListResponse,
    HealthResponse,
    MapResponse,
    MapResortResponse,
    MessageResponse,
    NotificationResponse,
    NotificationsResponse,
    PreloadRequest,
    PreloadResponse,
    RefreshFailure,
    RefreshRequest,
    RefreshResponse,
    RegionsResponse,
    RegionSummaryResponse,
    ResortListResponse,
    ResortResponse,
    ResortSummary,
    SnowReportResponse,
    SubscribeRequest,
    SubscribeResponse,
    SubscriptionResponse,
    SubscriptionsResponse,
    TopResortResponse,
    TopResortsResponse,
    VisitorRequest,
)
from snowpeak.cache.models import AlertNotification, AlertSubscription, Forecast
from snowpeak.cache.refresh import (
    RefreshResult,
    RefreshScheduler,
    crawl,
    preload_popular_resorts,
    preload_top_lists,
    refresh_all_resorts,
)
from snowpeak.cache.resorts import ResortResult, ResortService
from snowpeak.config import Settings, get_settings
from snowpeak.exceptions import AllSourcesExhausted, SourceUnavailable
from snowpeak.sources.onthesnow import OnTheSnowScraper

logger = logging.getLogger(__name__)

# API version
API_VERSION = "0.1.0"


class ServiceHolder:
    """Lazily built resort service shared by all requests.

    Building the service opens the DuckDB file, so it is deferred until the
    first request (or startup) rather than done at import time.

    Attributes:
        settings: Configuration used to build the service
        scheduler: Background refresh scheduler, if enabled
    """

    def __init__(self, settings: Settings, service: Optional[ResortService] = None):
        self.settings = settings
        self.scheduler: Optional[RefreshScheduler] = None
        self._service = service

    @property
    def service(self) -> ResortService:
        if self._service is None:
            self._service = ResortService.from_settings(self.settings)
            logger.info(f"Resort service ready ({self._service.db.schema_mode.value})")
        return self._service

    def start_scheduler(self) -> None:
        settings = self.settings
        self.scheduler = RefreshScheduler(
            job=lambda: refresh_all_resorts(
                self.service,
                max_resorts=settings.refresh_max_resorts,
                delay_ms=settings.refresh_delay_ms,
            ),
            interval_seconds=settings.refresh_interval_hours * 3600,
            startup_delay_seconds=settings.refresh_startup_delay_seconds,
        )
        self.scheduler.start()

    def stop_scheduler(self) -> None:
        if self.scheduler is not None:
            self.scheduler.stop(timeout=5)
            self.scheduler = None


# -----------------------------------------------------------------------------
# Response builders
# -----------------------------------------------------------------------------


def _forecast_response(forecast: Forecast) -> ForecastDayResponse:
    return ForecastDayResponse(
        date=forecast.forecast_date,
        predicted_snow=forecast.predicted_snow or 0,
        temp_high=forecast.temp_high,
        temp_low=forecast.temp_low,
        condition=forecast.condition,
        snow_probability=forecast.snow_probability,
        wind_speed=forecast.wind_speed,
    )


def _resort_response(result: ResortResult) -> ResortResponse:
    resort = result.resort
    report = result.report
    raw = (report.raw_response if report is not None else None) or {}

    return ResortResponse(
        id=resort.id,
        name=resort.name,
        location=resort.location,
        state=resort.state,
        region=resort.region,
        latitude=resort.latitude or None,
        longitude=resort.longitude or None,
        website_url=resort.website_url,
        total_lifts=resort.total_lifts,
        total_trails=resort.total_trails,
        ticket_price=raw.get("ticketPrice"),
        description=raw.get("description") or None,
        report=SnowReportResponse(
            report_date=report.report_date,
            base_depth=report.base_depth,
            last_24_hours=report.last_24_hours,
            last_48_hours=report.last_48_hours,
            last_7_days=report.last_7_days,
            lifts_open=report.lifts_open,
            trails_open=report.trails_open,
            conditions=report.conditions,
            data_source=report.data_source,
            fetched_at=report.created_at,
        ) if report is not None else None,
        forecast=[_forecast_response(f) for f in result.forecasts],
        cached=result.cached,
        cache_status=result.cache_status.value,
        source=result.source,
    )


def _notification_response(
    notification: AlertNotification,
    subscription: Optional[AlertSubscription] = None,
) -> NotificationResponse:
    return NotificationResponse(
        id=notification.id,
        subscription_id=notification.subscription_id,
        resort_id=subscription.resort_id if subscription else None,
        resort_name=subscription.resort_name if subscription else None,
        title=notification.title,
        message=notification.message,
        predicted_snow=notification.predicted_snow,
        forecast_date=notification.forecast_date,
        is_read=notification.is_read,
        created_at=notification.created_at,
    )


def _subscription_response(
    subscription: AlertSubscription,
    notifications: Optional[list[AlertNotification]] = None,
) -> SubscriptionResponse:
    band = THRESHOLDS.get(subscription.threshold)
    return SubscriptionResponse(
        id=subscription.id,
        resort_id=subscription.resort_id,
        resort_name=subscription.resort_name,
        threshold=subscription.threshold,
        threshold_label=band.label if band else subscription.threshold,
        timeframe=subscription.timeframe,
        email=subscription.email,
        is_active=subscription.is_active,
        last_triggered=subscription.last_triggered,
        last_checked=subscription.last_checked,
        created_at=subscription.created_at,
        notifications=[
            _notification_response(n, subscription) for n in (notifications or [])
        ],
    )


def _refresh_response(result: RefreshResult) -> RefreshResponse:
    return RefreshResponse(
        total=result.total,
        success=result.success,
        failed=result.failed,
        skipped=result.skipped,
        duration_ms=result.duration_ms,
        failures=[RefreshFailure(id=key, error=error) for key, error in result.failures],
    )


def create_app(
    service: Optional[ResortService] = None,
    settings: Optional[Settings] = None,
    scraper: Optional[OnTheSnowScraper] = None,
) -> FastAPI:
    """Create FastAPI application.

    Args:
        service: Resort service to serve (built from settings on first use if omitted)
        settings: Configuration (defaults to environment settings)
        scraper: Resort index used by /api/crawl (built from settings if omitted)

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()
    holder = ServiceHolder(settings, service)

    app = FastAPI(
        title="SnowPeak API",
        description="Cached ski resort snow reports, forecasts and snowfall alerts",
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.holder = holder

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def get_service() -> ResortService:
        return holder.service

    def require_cron_secret(authorization: Optional[str] = Header(default=None)) -> None:
        """Reject maintenance calls without the configured bearer secret."""
        if not settings.cron_secret:
            return
        if authorization != f"Bearer {settings.cron_secret}":
            raise HTTPException(status_code=401, detail="Unauthorized")

    @app.on_event("startup")
    async def startup_event():
        """Start the refresh scheduler if enabled."""
        if settings.refresh_scheduler_enabled:
            holder.start_scheduler()

    @app.on_event("shutdown")
    async def shutdown_event():
        holder.stop_scheduler()

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """Handle HTTP exceptions with custom response."""
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error=f"HTTP_{exc.status_code}",
                message=str(exc.detail),
            ).model_dump(),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content=ErrorResponse(
                error="HTTP_400",
                message="Invalid request",
                detail=str(exc.errors()),
            ).model_dump(),
        )

    @app.exception_handler(AllSourcesExhausted)
    async def exhausted_handler(request: Request, exc: AllSourcesExhausted):
        """Every upstream source failed and nothing usable was stored."""
        logger.error(f"Upstream failure for {request.url.path}: {exc}")
        return JSONResponse(
            status_code=502,
            content=ErrorResponse(
                error="UPSTREAM_UNAVAILABLE",
                message=str(exc),
                detail="; ".join(str(e) for e in exc.errors) or None,
            ).model_dump(),
        )

    @app.exception_handler(SourceUnavailable)
    async def unavailable_handler(request: Request, exc: SourceUnavailable):
        return JSONResponse(
            status_code=503,
            content=ErrorResponse(
                error="SOURCE_UNAVAILABLE",
                message=exc.message,
                detail=exc.source,
            ).model_dump(),
        )

    @app.get("/", tags=["info"])
    async def root():
        """Root endpoint with API info."""
        return {
            "name": "SnowPeak API",
            "version": API_VERSION,
            "docs": "/docs",
        }

    @app.get("/health", response_model=HealthResponse, tags=["info"])
    async def health_check():
        """Health check endpoint."""
        return HealthResponse(
            status="healthy",
            version=API_VERSION,
            scheduler_running=holder.scheduler is not None and holder.scheduler.started,
        )

    # -------------------------------------------------------------------------
    # Resorts
    # -------------------------------------------------------------------------

    @app.get("/api/resorts", response_model=ResortListResponse, tags=["resorts"])
    def list_resorts(
        region: Optional[str] = None,
        state: Optional[str] = None,
        limit: Optional[int] = Query(default=None, ge=1, le=1000),
        service: ResortService = Depends(get_service),
    ):
        """List tracked resorts, optionally filtered by region or state."""
        resorts = service.list_resorts(region=region, state=state, limit=limit)
        return ResortListResponse(
            count=len(resorts),
            resorts=[
                ResortSummary(
                    id=r.id,
                    name=r.name,
                    location=r.location,
                    state=r.state,
                    region=r.region,
                    latitude=r.latitude or None,
                    longitude=r.longitude or None,
                    updated_at=r.updated_at,
                )
                for r in resorts
            ],
        )

    @app.get(
        "/api/resorts/{resort_id}",
        response_model=ResortResponse,
        responses={502: {"model": ErrorResponse, "description": "All sources failed"}},
        tags=["resorts"],
    )
    def get_resort(
        resort_id: str,
        refresh: bool = False,
        service: ResortService = Depends(get_service),
    ):
        """Get a resort's snow report and forecast.

        Served from the store while fresh; otherwise fetched from the
        scraper, then the AI provider, and stored.
        """
        return _resort_response(service.get_resort(resort_id, refresh=refresh))

    @app.get(
        "/api/resorts/{resort_id}/forecast",
        response_model=ForecastListResponse,
        responses={502: {"model": ErrorResponse, "description": "All sources failed"}},
        tags=["resorts"],
    )
    def get_resort_forecast(
        resort_id: str,
        days: int = Query(default=10, ge=1, le=16),
        service: ResortService = Depends(get_service),
    ):
        forecasts = service.get_forecasts(resort_id, days=days)
        return ForecastListResponse(
            resort_id=resort_id,
            count=len(forecasts),
            forecasts=[_forecast_response(f) for f in forecasts],
        )

    @app.get(
        "/api/forecasts/top",
        response_model=TopResortsResponse,
        responses={502: {"model": ErrorResponse, "description": "All sources failed"}},
        tags=["resorts"],
    )
    def top_resorts(
        region: str = "All",
        limit: int = Query(default=10, ge=1, le=50),
        refresh: bool = False,
        service: ResortService = Depends(get_service),
    ):
        """Resorts with the most predicted snow over the next 5 days."""
        result = service.get_top_resorts(region=region, limit=limit, refresh=refresh)
        return TopResortsResponse(
            region=region,
            count=len(result.entries),
            source=result.source,
            resorts=[
                TopResortResponse(
                    resort_id=e.resort_id,
                    name=e.name,
                    location=e.location,
                    state=e.state,
                    predicted_snow=e.predicted_snow,
                    summary=e.summary,
                    latitude=e.latitude,
                    longitude=e.longitude,
                )
                for e in result.entries
            ],
        )

    # -------------------------------------------------------------------------
    # Map
    # -------------------------------------------------------------------------

    @app.get("/api/map/resorts", response_model=MapResponse, tags=["map"])
    def map_resorts(
        region: Optional[str] = None,
        min_snow: float = Query(default=0, ge=0),
        refresh: bool = False,
        service: ResortService = Depends(get_service),
    ):
        resorts = service.get_map_data(region=region, min_snow=min_snow, refresh=refresh)
        return MapResponse(
            count=len(resorts),
            resorts=[MapResortResponse(**vars(r)) for r in resorts],
        )

    @app.get("/api/map/regions", response_model=RegionsResponse, tags=["map"])
    def map_regions(service: ResortService = Depends(get_service)):
        return RegionsResponse(
            regions=[
                RegionSummaryResponse(
                    region=s.region,
                    resort_count=s.resort_count,
                    avg_snow_5day=s.avg_snow_5day,
                    max_snow_5day=s.max_snow_5day,
                    top_resort=s.top_resort,
                )
                for s in service.get_region_summary()
            ]
        )

    # -------------------------------------------------------------------------
    # Alerts
    # -------------------------------------------------------------------------

    @app.post(
        "/api/alerts/subscribe",
        response_model=SubscribeResponse,
        responses={400: {"model": ErrorResponse, "description": "Invalid request"}},
        tags=["alerts"],
    )
    def subscribe(request: SubscribeRequest, service: ResortService = Depends(get_service)):
        """Subscribe a visitor to snowfall alerts for a resort.

        The subscription is checked immediately against stored forecasts.
        """
        try:
            subscription, triggered = service.alerts.subscribe(
                visitor_id=request.visitor_id,
                resort_id=request.resort_id,
                threshold=request.threshold,
                timeframe=request.timeframe,
                email=request.email,
                resort_name=request.resort_name,
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        return SubscribeResponse(
            subscription=_subscription_response(subscription),
            triggered=triggered,
        )

    @app.get("/api/alerts/my", response_model=SubscriptionsResponse, tags=["alerts"])
    def my_subscriptions(
        visitor_id: str = Query(..., min_length=1),
        service: ResortService = Depends(get_service),
    ):
        """A visitor's active subscriptions with unread notifications."""
        subscriptions = service.alerts.list_subscriptions(visitor_id)
        return SubscriptionsResponse(
            count=len(subscriptions),
            subscriptions=[
                _subscription_response(sub, notifications)
                for sub, notifications in subscriptions
            ],
        )

    @app.delete(
        "/api/alerts/{subscription_id}",
        response_model=MessageResponse,
        responses={404: {"model": ErrorResponse, "description": "Subscription not found"}},
        tags=["alerts"],
    )
    def unsubscribe(
        subscription_id: int,
        visitor_id: str = Query(..., min_length=1),
        service: ResortService = Depends(get_service),
    ):
        if not service.alerts.unsubscribe(visitor_id, subscription_id):
            raise HTTPException(status_code=404, detail="Subscription not found")
        return MessageResponse(message=f"Subscription {subscription_id} deactivated")

    @app.get(
        "/api/alerts/notifications",
        response_model=NotificationsResponse,
        tags=["alerts"],
    )
    def notifications(
        visitor_id: str = Query(..., min_length=1),
        include_read: bool = False,
        limit: int = Query(default=20, ge=1, le=100),
        service: ResortService = Depends(get_service),
    ):
        items = service.alerts.list_notifications(
            visitor_id, include_read=include_read, limit=limit
        )
        return NotificationsResponse(
            count=len(items),
            notifications=[_notification_response(n, sub) for n, sub in items],
        )

    # Registered before the {notification_id} route so "read-all" isn't parsed as an id
    @app.post(
        "/api/alerts/notifications/read-all",
        response_model=MessageResponse,
        tags=["alerts"],
    )
    def mark_all_read(request: VisitorRequest, service: ResortService = Depends(get_service)):
        count = service.alerts.mark_all_read(request.visitor_id)
        return MessageResponse(message=f"Marked {count} notifications as read")

    @app.post(
        "/api/alerts/notifications/{notification_id}/read",
        response_model=MessageResponse,
        responses={404: {"model": ErrorResponse, "description": "Notification not found"}},
        tags=["alerts"],
    )
    def mark_read(notification_id: int, service: ResortService = Depends(get_service)):
        if not service.alerts.mark_read(notification_id):
            raise HTTPException(status_code=404, detail="Notification not found")
        return MessageResponse(message=f"Notification {notification_id} marked as read")

    @app.post("/api/alerts/check", response_model=CheckResponse, tags=["alerts"])
    def check_alerts(service: ResortService = Depends(get_service)):
        """Check every active subscription against stored forecasts."""
        summary = service.alerts.check_all()
        return CheckResponse(checked=summary.checked, triggered=summary.triggered)

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------

    @app.post(
        "/api/crawl",
        response_model=MessageResponse,
        status_code=202,
        dependencies=[Depends(require_cron_secret)],
        responses={401: {"model": ErrorResponse, "description": "Unauthorized"}},
        tags=["maintenance"],
    )
    def trigger_crawl(
        background_tasks: BackgroundTasks,
        service: ResortService = Depends(get_service),
    ):
        """Discover new resorts and refresh everything, in the background."""
        background_tasks.add_task(
            crawl,
            service,
            scraper or OnTheSnowScraper.from_settings(settings),
            max_resorts=settings.refresh_max_resorts,
            delay_ms=settings.refresh_delay_ms,
        )
        return MessageResponse(message="Crawl started")

    @app.post(
        "/api/refresh",
        response_model=RefreshResponse,
        dependencies=[Depends(require_cron_secret)],
        responses={401: {"model": ErrorResponse, "description": "Unauthorized"}},
        tags=["maintenance"],
    )
    def trigger_refresh(
        request: Optional[RefreshRequest] = None,
        service: ResortService = Depends(get_service),
    ):
        """Refresh tracked resorts now and report the outcome."""
        max_resorts = (request.max_resorts if request else None) or settings.refresh_max_resorts
        result = refresh_all_resorts(
            service,
            max_resorts=max_resorts,
            delay_ms=settings.refresh_delay_ms,
        )
        return _refresh_response(result)

    @app.post(
        "/api/preload",
        response_model=PreloadResponse,
        dependencies=[Depends(require_cron_secret)],
        responses={401: {"model": ErrorResponse, "description": "Unauthorized"}},
        tags=["maintenance"],
    )
    def trigger_preload(
        request: Optional[PreloadRequest] = None,
        service: ResortService = Depends(get_service),
    ):
        """Warm popular resorts (quick) and regional top lists (full)."""
        mode = request.mode if request else "quick"
        resorts = preload_popular_resorts(service, delay_ms=settings.refresh_delay_ms)
        top_lists = None
        if mode == "full":
            top_lists = _refresh_response(
                preload_top_lists(service, delay_ms=settings.refresh_delay_ms)
            )
        return PreloadResponse(
            mode=mode,
            resorts=_refresh_response(resorts),
            top_lists=top_lists,
        )

    # -------------------------------------------------------------------------
    # Assistant
    # -------------------------------------------------------------------------

    @app.post(
        "/api/chat",
        response_model=ChatResponse,
        responses={503: {"model": ErrorResponse, "description": "Assistant unavailable"}},
        tags=["assistant"],
    )
    def chat(request: ChatRequest, service: ResortService = Depends(get_service)):
        return ChatResponse(answer=service.answer_question(request.question))

    return app


# Default app instance for uvicorn
app = create_app()
