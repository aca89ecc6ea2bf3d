"""Snowfall alert subscriptions, matching and delivery."""

from snowpeak.alerts.email import EmailNotifier
from snowpeak.alerts.engine import (
    THRESHOLDS,
    AlertEngine,
    CheckSummary,
    ThresholdBand,
    normalize_timeframe,
)

__all__ = [
    "AlertEngine",
    "CheckSummary",
    "EmailNotifier",
    "THRESHOLDS",
    "ThresholdBand",
    "normalize_timeframe",
]
