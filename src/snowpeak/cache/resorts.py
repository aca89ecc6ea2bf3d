"""Cache-aware resort data service.

Serves resort snapshots from the store while they are fresh and goes
upstream through the source chain otherwise:

    request -> freshness check -> HIT: stored rows
                               -> MISS/STALE: source chain -> store -> alerts

Aggregate views (top-N rankings, map data) sit behind an extra in-process
memory tier.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Optional

from snowpeak.alerts.email import EmailNotifier
from snowpeak.alerts.engine import AlertEngine
from snowpeak.cache.database import CacheDatabase
from snowpeak.cache.dates import normalize_forecast_date
from snowpeak.cache.freshness import CacheStatus, is_fresh, utcnow
from snowpeak.cache.memory import MemoryCache
from snowpeak.cache.models import Forecast, Resort, ResortSnapshot, SnowReport
from snowpeak.config import Settings, get_settings
from snowpeak.exceptions import AllSourcesExhausted, SourceUnavailable
from snowpeak.sources.chain import SourceChain
from snowpeak.sources.llm import LLMSource
from snowpeak.utils.regions import (
    REGIONS,
    extract_state,
    name_from_slug,
    region_for_state,
    slugify,
)

logger = logging.getLogger(__name__)

# Days of forecast summed for rankings and map totals
FORECAST_WINDOW_DAYS = 5


@dataclass
class ResortResult:
    """A resort with its latest report and upcoming forecasts."""

    resort: Resort
    report: Optional[SnowReport]
    forecasts: list[Forecast]
    cache_status: CacheStatus
    source: str

    @property
    def cached(self) -> bool:
        return self.cache_status == CacheStatus.HIT


@dataclass
class TopResortEntry:
    """One row of a top-snowfall ranking."""

    resort_id: str
    name: str
    location: str
    state: str
    predicted_snow: float
    summary: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None


@dataclass
class TopResortsResult:
    entries: list[TopResortEntry]
    source: str  # 'memory', 'database' or 'upstream'


@dataclass
class MapResort:
    """Resort position with short-range snow totals."""

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


@dataclass
class RegionSummary:
    region: str
    resort_count: int
    avg_snow_5day: float
    max_snow_5day: float
    top_resort: Optional[str] = None
    resorts: list[str] = field(default_factory=list)


class ResortService:
    """Fetch-and-store path plus cached aggregate views.

    Example:
        >>> service = ResortService.from_settings()
        >>> result = service.get_resort("vail")
        >>> result.cache_status
        <CacheStatus.MISS: 'miss'>
    """

    def __init__(
        self,
        db: CacheDatabase,
        sources: SourceChain,
        llm: Optional[LLMSource] = None,
        alerts: Optional[AlertEngine] = None,
        memory: Optional[MemoryCache] = None,
        store_ttl_seconds: float = 3600,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize service.

        Args:
            db: Resort store
            sources: Ordered upstream sources for resort snapshots
            llm: AI provider used for top-N rankings and the assistant
            alerts: Alert engine run after a resort's forecasts change
            memory: Memory tier for aggregate views
            store_ttl_seconds: Maximum age of stored rows served as fresh
            clock: Current-time provider (aware UTC)
        """
        self.db = db
        self.sources = sources
        self.llm = llm
        self.alerts = alerts or AlertEngine(db, clock=clock)
        self.memory = memory or MemoryCache(ttl_seconds=min(900, store_ttl_seconds))
        self.store_ttl_seconds = store_ttl_seconds
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        db: Optional[CacheDatabase] = None,
    ) -> "ResortService":
        """Wire up the service from configuration."""
        settings = settings or get_settings()
        db = db or CacheDatabase(settings.db_path)
        return cls(
            db=db,
            sources=SourceChain.from_settings(settings),
            llm=LLMSource.from_settings(settings),
            alerts=AlertEngine(db, notifier=EmailNotifier.from_settings(settings)),
            memory=MemoryCache(ttl_seconds=settings.memory_cache_ttl_seconds),
            store_ttl_seconds=settings.cache_ttl_seconds,
        )

    def _today(self) -> date:
        return self._clock().astimezone(timezone.utc).date()

    # -------------------------------------------------------------------------
    # Single resort
    # -------------------------------------------------------------------------

    def list_resorts(
        self,
        region: Optional[str] = None,
        state: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[Resort]:
        return self.db.list_resorts(region=region, state=state, limit=limit)

    def cache_status(self, resort_id: str) -> CacheStatus:
        """Freshness of a resort's stored data.

        HIT requires a fresh snow report, at least one upcoming forecast and
        a fresh newest forecast ``fetched_at``.
        """
        now = self._clock()
        report = self.db.get_latest_snow_report(resort_id)
        latest_fetch = self.db.get_latest_forecast_fetch(resort_id)
        if report is None or latest_fetch is None:
            return CacheStatus.MISS

        upcoming = self.db.get_forecasts(resort_id, start_date=self._today(), limit=1)
        if (
            upcoming
            and is_fresh(report.created_at, self.store_ttl_seconds, now)
            and is_fresh(latest_fetch, self.store_ttl_seconds, now)
        ):
            return CacheStatus.HIT
        return CacheStatus.STALE

    def get_resort(self, resort_id: str, refresh: bool = False) -> ResortResult:
        """Get a resort, fetching upstream when the stored data is not fresh.

        Args:
            resort_id: Resort slug (e.g. "vail")
            refresh: Skip the freshness check and always fetch

        Raises:
            AllSourcesExhausted: If the data is not fresh and every source failed
        """
        resort = self.db.get_resort(resort_id)

        status = CacheStatus.MISS
        if resort is not None and not refresh:
            status = self.cache_status(resort_id)
            if status == CacheStatus.HIT:
                logger.debug(f"Cache HIT for {resort_id}")
                return self._load(resort, status, source="cache")

        logger.info(f"Cache {status.value.upper()} for {resort_id}, fetching upstream")
        name = resort.name if resort is not None else name_from_slug(resort_id)
        state_hint = resort.state if resort is not None and resort.state != "US" else None

        snapshot = self.sources.fetch_resort_data(name, state_hint=state_hint)
        resort = self.store_snapshot(resort_id, snapshot, existing=resort)
        self.alerts.check_resort(resort_id, now=self._clock())

        return self._load(resort, status, source=snapshot.source)

    def refresh_resort(self, resort_id: str) -> ResortResult:
        """Force an upstream fetch for one resort."""
        return self.get_resort(resort_id, refresh=True)

    def get_forecasts(self, resort_id: str, days: int = 10) -> list[Forecast]:
        """Upcoming forecasts for a resort (fetched if not fresh)."""
        result = self.get_resort(resort_id)
        return result.forecasts[:days]

    def _load(self, resort: Resort, status: CacheStatus, source: str) -> ResortResult:
        return ResortResult(
            resort=resort,
            report=self.db.get_latest_snow_report(resort.id),
            forecasts=self.db.get_forecasts(resort.id, start_date=self._today()),
            cache_status=status,
            source=source,
        )

    def store_snapshot(
        self,
        resort_id: str,
        snapshot: ResortSnapshot,
        existing: Optional[Resort] = None,
    ) -> Resort:
        """Persist a snapshot: resort row, today's report and forecasts.

        Forecast entries whose date can't be resolved are logged and skipped.
        """
        now = self._clock()
        today = self._today()

        state = extract_state(snapshot.location)
        if state == "US" and existing is not None:
            state = existing.state

        resort = Resort(
            id=resort_id,
            name=existing.name if existing is not None else snapshot.name,
            location=snapshot.location or (existing.location if existing else ""),
            state=state,
            region=region_for_state(state),
            latitude=existing.latitude if existing is not None else 0.0,
            longitude=existing.longitude if existing is not None else 0.0,
            website_url=snapshot.website_url or (existing.website_url if existing else None),
            total_lifts=snapshot.total_lifts or (existing.total_lifts if existing else 0),
            total_trails=snapshot.total_trails or (existing.total_trails if existing else 0),
        )
        self.db.upsert_resort(resort)

        self.db.upsert_snow_report(
            SnowReport(
                resort_id=resort_id,
                report_date=today,
                base_depth=snapshot.base_depth,
                last_24_hours=snapshot.last_24_hours,
                last_48_hours=snapshot.last_48_hours,
                last_7_days=snapshot.last_7_days,
                lifts_open=snapshot.lifts_open,
                trails_open=snapshot.trails_open,
                conditions=snapshot.conditions,
                data_source=snapshot.source,
                raw_response=snapshot.to_dict(),
                created_at=now,
            )
        )

        stored = 0
        for day in snapshot.forecast:
            try:
                forecast_date = normalize_forecast_date(day.date, today)
            except ValueError as e:
                logger.warning(f"Skipping forecast for {resort_id}: {e}")
                continue

            self.db.upsert_forecast(
                Forecast(
                    resort_id=resort_id,
                    forecast_date=forecast_date,
                    predicted_snow=day.snow_inches,
                    temp_high=day.temp_high,
                    temp_low=day.temp_low,
                    condition=day.condition,
                    snow_probability=day.snow_probability,
                    wind_speed=day.wind_speed,
                    fetched_at=now,
                )
            )
            stored += 1

        logger.info(f"Stored {resort_id} from {snapshot.source}: {stored} forecast days")
        return self.db.get_resort(resort_id) or resort

    # -------------------------------------------------------------------------
    # Top-N rankings
    # -------------------------------------------------------------------------

    def get_top_resorts(
        self,
        region: str = "All",
        limit: int = 10,
        refresh: bool = False,
    ) -> TopResortsResult:
        """Resorts with the most predicted snow over the next 5 days.

        Falls through memory -> store (fresh forecasts only) -> AI provider.
        The store answer is used only when it fills the requested limit.

        Args:
            region: State abbreviation or "All"
            limit: Number of resorts
            refresh: Skip memory and store

        Raises:
            AllSourcesExhausted: If the provider fails and the store has nothing
        """
        key = ("top", region, limit)
        stored: list[TopResortEntry] = []

        if not refresh:
            entries, hit = self.memory.get(key)
            if hit:
                return TopResortsResult(entries, source="memory")

            stored = self._top_from_store(region, limit)
            if len(stored) >= limit:
                self.memory.put(key, stored)
                return TopResortsResult(stored, source="database")

        try:
            entries = self._top_from_upstream(region, limit)
        except SourceUnavailable as e:
            if stored:
                logger.warning(f"Top list upstream failed ({e}), serving {len(stored)} stored")
                return TopResortsResult(stored, source="database")
            raise AllSourcesExhausted(f"top resorts ({region})", [e]) from e

        self.memory.put(key, entries)
        return TopResortsResult(entries, source="upstream")

    def _top_from_store(self, region: str, limit: int) -> list[TopResortEntry]:
        today = self._today()
        totals = self.db.get_forecast_totals(
            start_date=today,
            end_date=today + timedelta(days=FORECAST_WINDOW_DAYS),
            fetched_since=self._clock() - timedelta(seconds=self.store_ttl_seconds),
            region=None if region == "All" else region,
            limit=limit,
        )
        return [
            TopResortEntry(
                resort_id=resort.id,
                name=resort.name,
                location=resort.location,
                state=resort.state,
                predicted_snow=round(total, 1),
                summary=f'{total:.1f}" forecast over the next {FORECAST_WINDOW_DAYS} days',
                latitude=resort.latitude or None,
                longitude=resort.longitude or None,
            )
            for resort, total in totals
        ]

    def _top_from_upstream(self, region: str, limit: int) -> list[TopResortEntry]:
        if self.llm is None:
            raise SourceUnavailable("ai", "No ranking provider configured")

        entries = []
        for pick in self.llm.fetch_top_by_region(region, limit):
            resort_id = slugify(pick.name)
            state = (pick.state or extract_state(pick.location)).upper()

            inserted = self.db.insert_resort_if_missing(
                Resort(
                    id=resort_id,
                    name=pick.name,
                    location=pick.location or f"{state}, USA",
                    state=state,
                    region=region_for_state(state),
                    latitude=pick.latitude or 0.0,
                    longitude=pick.longitude or 0.0,
                )
            )
            if inserted:
                logger.info(f"Tracking new resort {resort_id} from top list")

            entries.append(
                TopResortEntry(
                    resort_id=resort_id,
                    name=pick.name,
                    location=pick.location,
                    state=state,
                    predicted_snow=pick.predicted_snow,
                    summary=pick.summary,
                    latitude=pick.latitude,
                    longitude=pick.longitude,
                )
            )
        return entries

    # -------------------------------------------------------------------------
    # Map views
    # -------------------------------------------------------------------------

    def get_map_data(
        self,
        region: Optional[str] = None,
        min_snow: float = 0,
        refresh: bool = False,
    ) -> list[MapResort]:
        """Resorts with coordinates and snow totals, highest 5-day total first.

        Built from stored rows only and held in the memory tier.

        Args:
            region: Region name or state abbreviation ("All"/None for everything)
            min_snow: Minimum 48h predicted snow
            refresh: Rebuild instead of using the memory tier
        """
        key = ("map",)
        resorts = None
        if not refresh:
            resorts, _ = self.memory.get(key)
        if resorts is None:
            resorts = self._build_map()
            self.memory.put(key, resorts)

        if region and region != "All":
            resorts = [r for r in resorts if region in (r.state, r.region)]
        if min_snow > 0:
            resorts = [r for r in resorts if r.snow_48h >= min_snow]
        return resorts

    def _build_map(self) -> list[MapResort]:
        today = self._today()
        resorts = []
        for resort in self.db.list_resorts_with_coordinates():
            forecasts = self.db.get_forecasts(
                resort.id, start_date=today, limit=FORECAST_WINDOW_DAYS
            )
            report = self.db.get_latest_snow_report(resort.id)
            snow = [f.predicted_snow or 0 for f in forecasts]

            resorts.append(
                MapResort(
                    id=resort.id,
                    name=resort.name,
                    state=resort.state,
                    region=resort.region,
                    latitude=resort.latitude,
                    longitude=resort.longitude,
                    current_base=report.base_depth if report else 0,
                    snow_24h=snow[0] if snow else 0,
                    snow_48h=sum(snow[:2]),
                    snow_5day=sum(snow),
                    lifts_open=report.lifts_open if report else 0,
                    total_lifts=resort.total_lifts,
                )
            )

        resorts.sort(key=lambda r: r.snow_5day, reverse=True)
        logger.info(f"Built map data for {len(resorts)} resorts")
        return resorts

    def get_region_summary(self) -> list[RegionSummary]:
        """Per-region snow statistics from the map data."""
        resorts = self.get_map_data()
        summaries = []
        for region in REGIONS:
            members = [r for r in resorts if r.region == region]
            if not members:
                summaries.append(RegionSummary(region, 0, 0.0, 0.0))
                continue

            best = max(members, key=lambda r: r.snow_5day)
            summaries.append(
                RegionSummary(
                    region=region,
                    resort_count=len(members),
                    avg_snow_5day=round(sum(r.snow_5day for r in members) / len(members), 1),
                    max_snow_5day=best.snow_5day,
                    top_resort=best.name,
                    resorts=[r.id for r in members],
                )
            )
        return summaries

    # -------------------------------------------------------------------------
    # Assistant
    # -------------------------------------------------------------------------

    def answer_question(self, question: str) -> str:
        """Answer a skiing question with the AI provider.

        Raises:
            SourceUnavailable: If no provider is configured or it fails
        """
        if self.llm is None:
            raise SourceUnavailable("ai", "No assistant provider configured")
        return self.llm.answer_question(question)

    def get_stats(self) -> dict[str, Any]:
        return {**self.db.get_stats(), "memory_entries": len(self.memory)}
