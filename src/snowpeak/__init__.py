"""SnowPeak: ski resort snow reports and forecasts with bounded staleness.

Subpackages:
    cache: DuckDB store, freshness, memory tier, refresh orchestration
    sources: upstream providers (OnTheSnow scraper, AI generator) and fallback chain
    alerts: snowfall threshold subscriptions and notifications
    api: FastAPI surface
"""

__version__ = "0.1.0"
