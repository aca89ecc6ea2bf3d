"""Fakes and builders shared by the test modules."""

from datetime import date, datetime, timedelta, timezone
from typing import Optional

from snowpeak.cache.models import ForecastDay, ResortSnapshot
from snowpeak.exceptions import SourceUnavailable
from snowpeak.sources.base import SnowSource

# Fixed evaluation time used across tests: Mon 2026-01-12 12:00 UTC
NOW = datetime(2026, 1, 12, 12, 0, tzinfo=timezone.utc)
TODAY = date(2026, 1, 12)


class FakeSource(SnowSource):
    """In-memory source returning a canned snapshot or failing on demand."""

    def __init__(
        self,
        name: str,
        snapshot: Optional[ResortSnapshot] = None,
        error: Optional[Exception] = None,
    ):
        self.name = name
        self.snapshot = snapshot
        self.error = error
        self.calls: list[tuple[str, Optional[str]]] = []

    def fetch(self, resort_name: str, state_hint: Optional[str] = None) -> ResortSnapshot:
        self.calls.append((resort_name, state_hint))
        if self.error is not None:
            raise self.error
        if self.snapshot is None:
            raise SourceUnavailable(self.name, "no data")
        return self.snapshot


class Clock:
    """Settable clock for services and engines."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def make_snapshot(
    name: str = "Vail",
    source: str = "onthesnow",
    snow: tuple = (2, 8, 12, 0, 1),
    start: date = TODAY,
    **kwargs,
) -> ResortSnapshot:
    """Snapshot with one forecast day per ``snow`` entry, starting at ``start``."""
    forecast = [
        ForecastDay(
            date=(start + timedelta(days=i)).isoformat(),
            snow_inches=inches,
            temp_high=28,
            temp_low=12,
            condition="Snow" if inches else "Cloudy",
        )
        for i, inches in enumerate(snow)
    ]
    fields = dict(
        location="Colorado, USA",
        base_depth=48,
        last_24_hours=3,
        last_48_hours=6,
        last_7_days=14,
        lifts_open=25,
        total_lifts=31,
        trails_open=180,
        total_trails=195,
        conditions="Packed Powder",
    )
    fields.update(kwargs)
    return ResortSnapshot(name=name, source=source, forecast=forecast, **fields)
