"""Pydantic schemas for API request/response validation.

Defines all data models used by the resort API.
"""

from datetime import date as date_type
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Error response schema.

    Attributes:
        error: Error type/code
        message: Human-readable error message
        detail: Additional error details
    """

    error: str = Field(
        ...,
        description="Error type",
    )
    message: str = Field(
        ...,
        description="Error message",
    )
    detail: Optional[str] = Field(
        default=None,
        description="Additional details",
    )


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(default="healthy", description="Service status")
    version: str = Field(default="0.1.0", description="API version")
    scheduler_running: bool = Field(
        default=False,
        description="Whether the background refresh scheduler is running",
    )


# -----------------------------------------------------------------------------
# Resorts
# -----------------------------------------------------------------------------


class ResortSummary(BaseModel):
    id: str
    name: str
    location: str
    state: str
    region: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    updated_at: Optional[datetime] = None


class ResortListResponse(BaseModel):
    count: int
    resorts: list[ResortSummary]


class SnowReportResponse(BaseModel):
    """Latest snow report for a resort (depths and snowfall in inches)."""

    report_date: date_type
    base_depth: float = Field(..., ge=0, description="Base depth in inches")
    last_24_hours: float = Field(0, description="Snowfall in the last 24 hours")
    last_48_hours: float = Field(0, description="Snowfall in the last 48 hours")
    last_7_days: float = Field(0, description="Snowfall in the last 7 days")
    lifts_open: int = 0
    trails_open: int = 0
    conditions: Optional[str] = None
    data_source: str = Field("unknown", description="Source that produced the report")
    fetched_at: Optional[datetime] = Field(None, description="Fetch time (UTC)")


class ForecastDayResponse(BaseModel):
    """One forecast day (snow in inches, temperatures in Fahrenheit)."""

    date: date_type
    predicted_snow: float
    temp_high: Optional[float] = None
    temp_low: Optional[float] = None
    condition: Optional[str] = None
    snow_probability: Optional[float] = None
    wind_speed: Optional[float] = None


class ResortResponse(BaseModel):
    """Full resort view: resort, latest report and upcoming forecast."""

    id: str
    name: str
    location: str
    state: str
    region: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    website_url: Optional[str] = None
    total_lifts: int = 0
    total_trails: int = 0
    ticket_price: Optional[str] = None
    description: Optional[str] = None
    report: Optional[SnowReportResponse] = None
    forecast: list[ForecastDayResponse] = []
    cached: bool = Field(..., description="Served from the store without an upstream fetch")
    cache_status: str = Field(..., description="hit, miss or stale")
    source: str = Field(..., description="'cache' or the upstream source name")


class ForecastListResponse(BaseModel):
    resort_id: str
    count: int
    forecasts: list[ForecastDayResponse]


class TopResortResponse(BaseModel):
    resort_id: str
    name: str
    location: str
    state: str
    predicted_snow: float = Field(..., description="Predicted snow over the next 5 days (inches)")
    summary: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class TopResortsResponse(BaseModel):
    region: str
    count: int
    source: Literal["memory", "database", "upstream"]
    resorts: list[TopResortResponse]


# -----------------------------------------------------------------------------
# Map
# -----------------------------------------------------------------------------


class MapResortResponse(BaseModel):
    id: str
    name: str
    state: str
    region: str
    latitude: float
    longitude: float
    current_base: float = 0
    snow_24h: float = 0
    snow_48h: float = 0
    snow_5day: float = 0
    lifts_open: int = 0
    total_lifts: int = 0


class MapResponse(BaseModel):
    count: int
    resorts: list[MapResortResponse]


class RegionSummaryResponse(BaseModel):
    region: str
    resort_count: int
    avg_snow_5day: float
    max_snow_5day: float
    top_resort: Optional[str] = None


class RegionsResponse(BaseModel):
    regions: list[RegionSummaryResponse]


# -----------------------------------------------------------------------------
# Alerts
# -----------------------------------------------------------------------------


class SubscribeRequest(BaseModel):
    """Request schema for an alert subscription.

    Attributes:
        visitor_id: Anonymous visitor identifier
        resort_id: Resort slug
        resort_name: Display name, used if the resort isn't tracked yet
        threshold: Snowfall band ('light' 1-5", 'good' 5-15", 'great' 15-30")
        timeframe: Look-ahead window in days (5 or 10)
        email: Optional address for email delivery
    """

    visitor_id: str = Field(..., min_length=1)
    resort_id: str = Field(..., min_length=1)
    resort_name: Optional[str] = None
    threshold: Literal["light", "good", "great"]
    timeframe: int = Field(default=5, description="5 or 10 days")
    email: Optional[str] = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "visitor_id": "v-123",
                    "resort_id": "vail",
                    "threshold": "good",
                    "timeframe": 5,
                }
            ]
        }
    }


class NotificationResponse(BaseModel):
    id: int
    subscription_id: int
    resort_id: Optional[str] = None
    resort_name: Optional[str] = None
    title: str
    message: str
    predicted_snow: float
    forecast_date: date_type
    is_read: bool
    created_at: Optional[datetime] = None


class SubscriptionResponse(BaseModel):
    id: int
    resort_id: str
    resort_name: str
    threshold: str
    threshold_label: str
    timeframe: int
    email: Optional[str] = None
    is_active: bool
    last_triggered: Optional[datetime] = None
    last_checked: Optional[datetime] = None
    created_at: Optional[datetime] = None
    notifications: list[NotificationResponse] = []


class SubscribeResponse(BaseModel):
    subscription: SubscriptionResponse
    triggered: bool = Field(..., description="Whether the immediate check created a notification")


class SubscriptionsResponse(BaseModel):
    count: int
    subscriptions: list[SubscriptionResponse]


class NotificationsResponse(BaseModel):
    count: int
    notifications: list[NotificationResponse]


class VisitorRequest(BaseModel):
    visitor_id: str = Field(..., min_length=1)


class CheckResponse(BaseModel):
    checked: int
    triggered: int


# -----------------------------------------------------------------------------
# Maintenance and assistant
# -----------------------------------------------------------------------------


class RefreshRequest(BaseModel):
    max_resorts: Optional[int] = Field(default=None, ge=1)


class PreloadRequest(BaseModel):
    mode: Literal["quick", "full"] = Field(
        default="quick",
        description="'quick' warms popular resorts, 'full' also warms regional top lists",
    )


class RefreshFailure(BaseModel):
    id: str
    error: str


class RefreshResponse(BaseModel):
    total: int
    success: int
    failed: int
    skipped: int = 0
    duration_ms: int
    failures: list[RefreshFailure] = []


class PreloadResponse(BaseModel):
    mode: Literal["quick", "full"]
    resorts: RefreshResponse
    top_lists: Optional[RefreshResponse] = Field(
        default=None,
        description="Top-list warming, only run in full mode",
    )


class MessageResponse(BaseModel):
    ok: bool = True
    message: str


class ChatRequest(BaseModel):
    question: str = Field(..., min_length=1, max_length=2000)


class ChatResponse(BaseModel):
    answer: str
