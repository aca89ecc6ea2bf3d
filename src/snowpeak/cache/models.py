"""Data models for cache layer."""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Optional


@dataclass
class Resort:
    """Tracked ski resort."""

    id: str
    name: str
    location: str
    state: str = "US"
    region: str = "Other"
    latitude: float = 0.0
    longitude: float = 0.0
    website_url: Optional[str] = None
    total_lifts: int = 0
    total_trails: int = 0
    updated_at: Optional[datetime] = None

    @property
    def has_coordinates(self) -> bool:
        return bool(self.latitude) and bool(self.longitude)


@dataclass
class SnowReport:
    """Daily snow report for a resort (one per resort per report date)."""

    resort_id: str
    report_date: date
    base_depth: float = 0
    last_24_hours: float = 0
    last_48_hours: float = 0
    last_7_days: float = 0
    lifts_open: int = 0
    trails_open: int = 0
    conditions: Optional[str] = None
    data_source: str = "unknown"
    raw_response: Optional[dict[str, Any]] = None
    created_at: Optional[datetime] = None


@dataclass
class Forecast:
    """Stored forecast for one resort and forecast date.

    ``fetched_at`` (not ``forecast_date``) decides cache freshness.
    """

    resort_id: str
    forecast_date: date
    predicted_snow: float = 0
    temp_high: Optional[float] = None
    temp_low: Optional[float] = None
    condition: Optional[str] = None
    snow_probability: Optional[float] = None
    wind_speed: Optional[float] = None
    fetched_at: Optional[datetime] = None


@dataclass
class AlertSubscription:
    """Snowfall threshold subscription for a visitor and resort."""

    id: int
    visitor_id: str
    resort_id: str
    resort_name: str
    threshold: str  # 'light', 'good', 'great'
    timeframe: int  # 5 or 10 days
    email: Optional[str] = None
    is_active: bool = True
    last_triggered: Optional[datetime] = None
    last_checked: Optional[datetime] = None
    created_at: Optional[datetime] = None


@dataclass
class AlertNotification:
    """In-app notification created when a subscription matches a forecast."""

    id: int
    subscription_id: int
    title: str
    message: str
    predicted_snow: float
    forecast_date: date
    is_read: bool = False
    created_at: Optional[datetime] = None


@dataclass
class ForecastDay:
    """One forecast entry as delivered by an upstream source.

    ``date`` is kept verbatim (``MM/DD`` or ``YYYY-MM-DD``); it is resolved
    to an absolute date when stored.
    """

    date: str
    day_name: str = ""
    snow_inches: float = 0
    temp_high: Optional[float] = None
    temp_low: Optional[float] = None
    condition: Optional[str] = None
    snow_probability: Optional[float] = None
    wind_speed: Optional[float] = None


@dataclass
class ResortSnapshot:
    """Canonical resort snapshot all upstream sources are mapped into."""

    name: str
    location: str
    source: str
    base_depth: float = 0
    last_24_hours: float = 0
    last_48_hours: float = 0
    last_7_days: float = 0
    lifts_open: int = 0
    total_lifts: int = 0
    trails_open: int = 0
    total_trails: int = 0
    ticket_price: Optional[str] = None
    website_url: Optional[str] = None
    conditions: Optional[str] = None
    description: str = ""
    forecast: list[ForecastDay] = field(default_factory=list)
    source_urls: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the ``raw_response`` audit column."""
        return {
            "name": self.name,
            "location": self.location,
            "source": self.source,
            "baseDepth": self.base_depth,
            "last24Hours": self.last_24_hours,
            "last48Hours": self.last_48_hours,
            "last7Days": self.last_7_days,
            "liftsOpen": self.lifts_open,
            "totalLifts": self.total_lifts,
            "trailsOpen": self.trails_open,
            "totalTrails": self.total_trails,
            "ticketPrice": self.ticket_price,
            "websiteUrl": self.website_url,
            "conditions": self.conditions,
            "description": self.description,
            "forecast": [
                {
                    "date": day.date,
                    "dayName": day.day_name,
                    "snowInches": day.snow_inches,
                    "tempHigh": day.temp_high,
                    "tempLow": day.temp_low,
                    "condition": day.condition,
                    "snowProbability": day.snow_probability,
                    "windSpeed": day.wind_speed,
                }
                for day in self.forecast
            ],
            "sourceUrls": list(self.source_urls),
        }


@dataclass
class SeedResort:
    """Reference entry for the popular-resort seed list."""

    name: str
    state: str
    region: str
    location: str
    latitude: float
    longitude: float


# Popular resorts - seeded into an empty store and used for preloading
POPULAR_RESORTS = [
    # Colorado
    SeedResort("Vail", "CO", "Rockies", "Vail, Colorado", 39.6403, -106.3742),
    SeedResort("Aspen Snowmass", "CO", "Rockies", "Aspen, Colorado", 39.2084, -106.9490),
    SeedResort("Breckenridge", "CO", "Rockies", "Breckenridge, Colorado", 39.4817, -106.0384),
    SeedResort("Keystone", "CO", "Rockies", "Keystone, Colorado", 39.6084, -105.9437),
    SeedResort("Telluride", "CO", "Rockies", "Telluride, Colorado", 37.9375, -107.8123),
    # Utah
    SeedResort("Park City", "UT", "Rockies", "Park City, Utah", 40.6514, -111.5080),
    SeedResort("Snowbird", "UT", "Rockies", "Snowbird, Utah", 40.5830, -111.6538),
    SeedResort("Alta", "UT", "Rockies", "Alta, Utah", 40.5884, -111.6386),
    # California
    SeedResort("Mammoth Mountain", "CA", "Pacific", "Mammoth Lakes, California", 37.6308, -119.0326),
    SeedResort("Heavenly", "CA", "Pacific", "South Lake Tahoe, California", 38.9353, -119.9400),
    # Wyoming / Montana
    SeedResort("Jackson Hole", "WY", "Rockies", "Teton Village, Wyoming", 43.5875, -110.8279),
    SeedResort("Big Sky", "MT", "Rockies", "Big Sky, Montana", 45.2618, -111.4018),
    # Washington / Oregon
    SeedResort("Crystal Mountain", "WA", "Pacific", "Crystal Mountain, Washington", 46.9282, -121.5045),
    SeedResort("Stevens Pass", "WA", "Pacific", "Stevens Pass, Washington", 47.7448, -121.0890),
    SeedResort("Mt. Hood Meadows", "OR", "Pacific", "Mt. Hood, Oregon", 45.3311, -121.6647),
    # Northeast
    SeedResort("Stowe", "VT", "Northeast", "Stowe, Vermont", 44.5303, -72.7814),
    SeedResort("Killington", "VT", "Northeast", "Killington, Vermont", 43.6045, -72.8201),
    SeedResort("Sunday River", "ME", "Northeast", "Newry, Maine", 44.4734, -70.8566),
]
