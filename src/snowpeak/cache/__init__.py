"""Data caching layer for snowpeak.

Provides persistent caching of resort snow reports and forecasts using
DuckDB, freshness evaluation and an in-process memory tier.

Background refresh can be run via:
    python -m snowpeak.cache.refresh

Or scheduled via cron:
    # Every 6 hours
    0 */6 * * * python -m snowpeak.cache.refresh
"""

from snowpeak.cache.database import CacheDatabase
from snowpeak.cache.dates import normalize_forecast_date
from snowpeak.cache.freshness import CacheStatus, cache_age_seconds, is_fresh
from snowpeak.cache.memory import MemoryCache
from snowpeak.cache.models import (
    AlertNotification,
    AlertSubscription,
    Forecast,
    ForecastDay,
    Resort,
    ResortSnapshot,
    SnowReport,
)
from snowpeak.cache.schema import SchemaMode, SchemaResolver, resolve_schema_mode

__all__ = [
    "AlertNotification",
    "AlertSubscription",
    "CacheDatabase",
    "CacheStatus",
    "Forecast",
    "ForecastDay",
    "MemoryCache",
    "Resort",
    "ResortSnapshot",
    "SchemaMode",
    "SchemaResolver",
    "SnowReport",
    "cache_age_seconds",
    "is_fresh",
    "normalize_forecast_date",
    "resolve_schema_mode",
]
