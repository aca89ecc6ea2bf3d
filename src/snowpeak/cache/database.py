"""DuckDB resort store for snowpeak."""

import json
import logging
import threading
import time
from datetime import date, datetime
from pathlib import Path
from typing import Any, Optional

import duckdb

from snowpeak.cache.freshness import to_db_timestamp, utcnow
from snowpeak.cache.models import (
    POPULAR_RESORTS,
    AlertNotification,
    AlertSubscription,
    Forecast,
    Resort,
    SnowReport,
)
from snowpeak.cache.schema import (
    DUCKDB_CONFIG,
    SchemaMode,
    SchemaResolver,
    StorageAdapter,
    adapter_for,
    resolve_schema_mode,
)
from snowpeak.utils.regions import slugify

logger = logging.getLogger(__name__)

# Default database path - use project root to ensure consistent path
_PROJECT_ROOT = Path(__file__).parent.parent.parent.parent
DEFAULT_DB_PATH = _PROJECT_ROOT / "data" / "cache" / "snowpeak.duckdb"

# SQL schema written against logical names, rendered per schema mode.
# DuckDB uses sequences for auto-increment.
SCHEMA_SQL = """
-- Create sequences for auto-increment IDs
CREATE SEQUENCE IF NOT EXISTS {s[snow_reports]} START 1;
CREATE SEQUENCE IF NOT EXISTS {s[forecasts]} START 1;
CREATE SEQUENCE IF NOT EXISTS {s[alert_subscriptions]} START 1;
CREATE SEQUENCE IF NOT EXISTS {s[alert_notifications]} START 1;

-- Tracked resorts (id is the name slug)
CREATE TABLE IF NOT EXISTS {t[resorts]} (
    {c[id]} VARCHAR PRIMARY KEY,
    {c[name]} VARCHAR NOT NULL,
    {c[location]} VARCHAR,
    {c[state]} VARCHAR,
    {c[region]} VARCHAR,
    {c[latitude]} DOUBLE,
    {c[longitude]} DOUBLE,
    {c[website_url]} VARCHAR,
    {c[total_lifts]} INTEGER DEFAULT 0,
    {c[total_trails]} INTEGER DEFAULT 0,
    {c[created_at]} TIMESTAMP,
    {c[updated_at]} TIMESTAMP
);

-- Daily snow reports (one per resort per day)
CREATE TABLE IF NOT EXISTS {t[snow_reports]} (
    {c[id]} INTEGER DEFAULT nextval('{s[snow_reports]}') PRIMARY KEY,
    {c[resort_id]} VARCHAR NOT NULL,
    {c[report_date]} DATE NOT NULL,
    {c[base_depth]} DOUBLE,
    {c[last_24_hours]} DOUBLE,
    {c[last_48_hours]} DOUBLE,
    {c[last_7_days]} DOUBLE,
    {c[lifts_open]} INTEGER,
    {c[trails_open]} INTEGER,
    {c[conditions]} VARCHAR,
    {c[data_source]} VARCHAR,
    {c[raw_response]} VARCHAR,
    {c[created_at]} TIMESTAMP NOT NULL,
    UNIQUE({c[resort_id]}, {c[report_date]})
);

-- Forecasts (one per resort per forecast date, fetched_at drives freshness)
CREATE TABLE IF NOT EXISTS {t[forecasts]} (
    {c[id]} INTEGER DEFAULT nextval('{s[forecasts]}') PRIMARY KEY,
    {c[resort_id]} VARCHAR NOT NULL,
    {c[forecast_date]} DATE NOT NULL,
    {c[predicted_snow]} DOUBLE,
    {c[temp_high]} DOUBLE,
    {c[temp_low]} DOUBLE,
    {c[condition]} VARCHAR,
    {c[snow_probability]} DOUBLE,
    {c[wind_speed]} DOUBLE,
    {c[fetched_at]} TIMESTAMP NOT NULL,
    UNIQUE({c[resort_id]}, {c[forecast_date]})
);

-- Alert subscriptions (one per visitor per resort)
CREATE TABLE IF NOT EXISTS {t[alert_subscriptions]} (
    {c[id]} INTEGER DEFAULT nextval('{s[alert_subscriptions]}') PRIMARY KEY,
    {c[visitor_id]} VARCHAR NOT NULL,
    {c[resort_id]} VARCHAR NOT NULL,
    {c[resort_name]} VARCHAR NOT NULL,
    {c[threshold]} VARCHAR NOT NULL,
    {c[timeframe]} INTEGER NOT NULL DEFAULT 5,
    {c[email]} VARCHAR,
    {c[is_active]} BOOLEAN NOT NULL DEFAULT TRUE,
    {c[last_triggered]} TIMESTAMP,
    {c[last_checked]} TIMESTAMP,
    {c[created_at]} TIMESTAMP,
    UNIQUE({c[visitor_id]}, {c[resort_id]})
);

-- In-app alert notifications
CREATE TABLE IF NOT EXISTS {t[alert_notifications]} (
    {c[id]} INTEGER DEFAULT nextval('{s[alert_notifications]}') PRIMARY KEY,
    {c[subscription_id]} INTEGER NOT NULL,
    {c[title]} VARCHAR NOT NULL,
    {c[message]} VARCHAR NOT NULL,
    {c[predicted_snow]} DOUBLE,
    {c[forecast_date]} DATE,
    {c[is_read]} BOOLEAN NOT NULL DEFAULT FALSE,
    {c[created_at]} TIMESTAMP NOT NULL
);

CREATE INDEX IF NOT EXISTS {i[alert_notifications]}_subscription
    ON {t[alert_notifications]}({c[subscription_id]});
"""

RESORT_COLUMNS = (
    "id", "name", "location", "state", "region", "latitude", "longitude",
    "website_url", "total_lifts", "total_trails", "updated_at",
)
SNOW_REPORT_COLUMNS = (
    "resort_id", "report_date", "base_depth", "last_24_hours", "last_48_hours",
    "last_7_days", "lifts_open", "trails_open", "conditions", "data_source",
    "raw_response", "created_at",
)
FORECAST_COLUMNS = (
    "resort_id", "forecast_date", "predicted_snow", "temp_high", "temp_low",
    "condition", "snow_probability", "wind_speed", "fetched_at",
)
SUBSCRIPTION_COLUMNS = (
    "id", "visitor_id", "resort_id", "resort_name", "threshold", "timeframe",
    "email", "is_active", "last_triggered", "last_checked", "created_at",
)
NOTIFICATION_COLUMNS = (
    "id", "subscription_id", "title", "message", "predicted_snow",
    "forecast_date", "is_read", "created_at",
)


class CacheDatabase:
    """DuckDB store for resorts, snow reports, forecasts and alerts.

    The table naming convention (snake_case or camelCase) is resolved once
    through a ``SchemaResolver``; every query is written against logical
    names and rendered by the matching ``StorageAdapter``. A single
    connection is shared and access is serialized with a lock.

    Example:
        >>> db = CacheDatabase()
        >>> db.get_resort("vail")
        Resort(id='vail', name='Vail', ...)
    """

    def __init__(
        self,
        db_path: Optional[Path] = None,
        schema_mode: Optional[SchemaMode] = None,
        resolver: Optional[SchemaResolver] = None,
        seed: bool = True,
    ):
        """Initialize database connection.

        Args:
            db_path: Path to DuckDB file. Creates if doesn't exist.
            schema_mode: Create this convention's tables before probing
                (used to bootstrap a specific convention)
            resolver: Schema-mode resolver, defaults to the process-wide one
            seed: Populate an empty resort table with popular resorts
        """
        self.db_path = Path(db_path or DEFAULT_DB_PATH)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = None
        self._lock = threading.RLock()

        if schema_mode is not None:
            self._create_schema(adapter_for(schema_mode))

        mode = resolve_schema_mode(self._fetchall, resolver)
        self.adapter: StorageAdapter = adapter_for(mode)
        self._create_schema(self.adapter)
        if seed:
            self._init_resorts()
        logger.info(f"Cache database initialized at {self.db_path} ({mode.value})")

    @property
    def schema_mode(self) -> SchemaMode:
        return self.adapter.mode

    @property
    def conn(self) -> duckdb.DuckDBPyConnection:
        """Get database connection (lazy initialization with retry)."""
        if self._conn is None:
            self._conn = self._connect_with_retry()
        return self._conn

    def _connect_with_retry(self, max_retries: int = 3) -> duckdb.DuckDBPyConnection:
        """Connect to database with retry logic for lock handling."""
        last_error = None
        for attempt in range(max_retries):
            try:
                return duckdb.connect(str(self.db_path), config=DUCKDB_CONFIG)
            except duckdb.IOException as e:
                last_error = e
                if "lock" in str(e).lower() and attempt < max_retries - 1:
                    wait_time = 0.5 * (2 ** attempt)  # Exponential backoff
                    logger.warning(f"Database locked, retrying in {wait_time}s...")
                    time.sleep(wait_time)
                else:
                    raise
        raise last_error

    def _execute(self, sql: str, params: Optional[list] = None) -> None:
        with self._lock:
            self.conn.execute(sql, params or [])

    def _fetchone(self, sql: str, params: Optional[list] = None) -> Optional[tuple]:
        with self._lock:
            return self.conn.execute(sql, params or []).fetchone()

    def _fetchall(self, sql: str, params: Optional[list] = None) -> list[tuple]:
        with self._lock:
            return self.conn.execute(sql, params or []).fetchall()

    def _sql(self, template: str, **extra: Any) -> str:
        return self.adapter.sql(template, **extra)

    def _create_schema(self, adapter: StorageAdapter) -> None:
        """Create tables for one naming convention (no-op if present)."""
        with self._lock:
            for statement in adapter.sql(SCHEMA_SQL).split(";"):
                statement = statement.strip()
                if statement:
                    self.conn.execute(statement)

    def _init_resorts(self) -> None:
        """Populate an empty resorts table with the popular resort list."""
        if self.count_resorts() > 0:
            return

        for seed in POPULAR_RESORTS:
            self.insert_resort_if_missing(
                Resort(
                    id=slugify(seed.name),
                    name=seed.name,
                    location=seed.location,
                    state=seed.state,
                    region=seed.region,
                    latitude=seed.latitude,
                    longitude=seed.longitude,
                )
            )
        logger.info(f"Initialized {len(POPULAR_RESORTS)} resorts")

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    # -------------------------------------------------------------------------
    # Resort Operations
    # -------------------------------------------------------------------------

    def get_resort(self, resort_id: str) -> Optional[Resort]:
        """Get resort by id (slug)."""
        row = self._fetchone(
            self._sql(
                "SELECT {columns} FROM {t[resorts]} WHERE {c[id]} = ?",
                columns=self.adapter.columns(RESORT_COLUMNS),
            ),
            [resort_id],
        )
        return _row_to_resort(row) if row else None

    def list_resorts(
        self,
        region: Optional[str] = None,
        state: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[Resort]:
        """List resorts ordered by name, optionally filtered."""
        where, params = [], []
        if region:
            where.append("{c[region]} = ?")
            params.append(region)
        if state:
            where.append("{c[state]} = ?")
            params.append(state.upper())

        template = "SELECT {columns} FROM {t[resorts]}"
        if where:
            template += " WHERE " + " AND ".join(where)
        template += " ORDER BY {c[name]}"
        if limit:
            template += " LIMIT ?"
            params.append(limit)

        rows = self._fetchall(
            self._sql(template, columns=self.adapter.columns(RESORT_COLUMNS)),
            params,
        )
        return [_row_to_resort(row) for row in rows]

    def list_resort_ids_by_update(self, limit: int) -> list[str]:
        """Resort ids, most recently updated first (never-updated last)."""
        rows = self._fetchall(
            self._sql(
                """
                SELECT {c[id]} FROM {t[resorts]}
                ORDER BY {c[updated_at]} DESC NULLS LAST, {c[name]}
                LIMIT ?
                """
            ),
            [limit],
        )
        return [row[0] for row in rows]

    def list_resorts_with_coordinates(self, region: Optional[str] = None) -> list[Resort]:
        """Resorts that have a map position."""
        template = """
            SELECT {columns} FROM {t[resorts]}
            WHERE {c[latitude]} IS NOT NULL AND {c[longitude]} IS NOT NULL
              AND {c[latitude]} <> 0 AND {c[longitude]} <> 0
        """
        params = []
        if region:
            template += " AND {c[region]} = ?"
            params.append(region)
        template += " ORDER BY {c[name]}"

        rows = self._fetchall(
            self._sql(template, columns=self.adapter.columns(RESORT_COLUMNS)),
            params,
        )
        return [_row_to_resort(row) for row in rows]

    def count_resorts(self) -> int:
        return self._fetchone(self._sql("SELECT COUNT(*) FROM {t[resorts]}"))[0]

    def upsert_resort(self, resort: Resort) -> None:
        """Insert or update a resort; ``updated_at`` is set to now."""
        now = to_db_timestamp(utcnow())
        self._execute(
            self._sql(
                """
                INSERT INTO {t[resorts]}
                ({columns}, {c[created_at]})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT ({c[id]})
                DO UPDATE SET
                    {c[name]} = EXCLUDED.{c[name]},
                    {c[location]} = EXCLUDED.{c[location]},
                    {c[state]} = EXCLUDED.{c[state]},
                    {c[region]} = EXCLUDED.{c[region]},
                    {c[latitude]} = EXCLUDED.{c[latitude]},
                    {c[longitude]} = EXCLUDED.{c[longitude]},
                    {c[website_url]} = EXCLUDED.{c[website_url]},
                    {c[total_lifts]} = EXCLUDED.{c[total_lifts]},
                    {c[total_trails]} = EXCLUDED.{c[total_trails]},
                    {c[updated_at]} = EXCLUDED.{c[updated_at]}
                """,
                columns=self.adapter.columns(RESORT_COLUMNS),
            ),
            [
                resort.id,
                resort.name,
                resort.location,
                resort.state,
                resort.region,
                resort.latitude,
                resort.longitude,
                resort.website_url,
                resort.total_lifts,
                resort.total_trails,
                now,
                now,
            ],
        )

    def insert_resort_if_missing(self, resort: Resort) -> bool:
        """Insert a resort without touching an existing row.

        Returns:
            True if the resort was inserted
        """
        with self._lock:
            if self.get_resort(resort.id) is not None:
                return False
            self._execute(
                self._sql(
                    """
                    INSERT INTO {t[resorts]}
                    ({columns}, {c[created_at]})
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT ({c[id]}) DO NOTHING
                    """,
                    columns=self.adapter.columns(RESORT_COLUMNS),
                ),
                [
                    resort.id,
                    resort.name,
                    resort.location,
                    resort.state,
                    resort.region,
                    resort.latitude,
                    resort.longitude,
                    resort.website_url,
                    resort.total_lifts,
                    resort.total_trails,
                    resort.updated_at,
                    to_db_timestamp(utcnow()),
                ],
            )
            return True

    # -------------------------------------------------------------------------
    # Snow Report Operations
    # -------------------------------------------------------------------------

    def upsert_snow_report(self, report: SnowReport) -> None:
        """Store today's report; ``created_at`` marks the fetch time."""
        created_at = report.created_at or utcnow()
        raw = json.dumps(report.raw_response) if report.raw_response is not None else None

        self._execute(
            self._sql(
                """
                INSERT INTO {t[snow_reports]}
                ({columns})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT ({c[resort_id]}, {c[report_date]})
                DO UPDATE SET
                    {c[base_depth]} = EXCLUDED.{c[base_depth]},
                    {c[last_24_hours]} = EXCLUDED.{c[last_24_hours]},
                    {c[last_48_hours]} = EXCLUDED.{c[last_48_hours]},
                    {c[last_7_days]} = EXCLUDED.{c[last_7_days]},
                    {c[lifts_open]} = EXCLUDED.{c[lifts_open]},
                    {c[trails_open]} = EXCLUDED.{c[trails_open]},
                    {c[conditions]} = EXCLUDED.{c[conditions]},
                    {c[data_source]} = EXCLUDED.{c[data_source]},
                    {c[raw_response]} = EXCLUDED.{c[raw_response]},
                    {c[created_at]} = EXCLUDED.{c[created_at]}
                """,
                columns=self.adapter.columns(SNOW_REPORT_COLUMNS),
            ),
            [
                report.resort_id,
                report.report_date,
                report.base_depth,
                report.last_24_hours,
                report.last_48_hours,
                report.last_7_days,
                report.lifts_open,
                report.trails_open,
                report.conditions,
                report.data_source,
                raw,
                to_db_timestamp(created_at),
            ],
        )

    def get_latest_snow_report(self, resort_id: str) -> Optional[SnowReport]:
        """Most recently fetched report for a resort."""
        row = self._fetchone(
            self._sql(
                """
                SELECT {columns} FROM {t[snow_reports]}
                WHERE {c[resort_id]} = ?
                ORDER BY {c[created_at]} DESC
                LIMIT 1
                """,
                columns=self.adapter.columns(SNOW_REPORT_COLUMNS),
            ),
            [resort_id],
        )
        if row is None:
            return None

        return SnowReport(
            resort_id=row[0],
            report_date=row[1],
            base_depth=row[2] or 0,
            last_24_hours=row[3] or 0,
            last_48_hours=row[4] or 0,
            last_7_days=row[5] or 0,
            lifts_open=row[6] or 0,
            trails_open=row[7] or 0,
            conditions=row[8],
            data_source=row[9] or "unknown",
            raw_response=json.loads(row[10]) if row[10] else None,
            created_at=row[11],
        )

    # -------------------------------------------------------------------------
    # Forecast Operations
    # -------------------------------------------------------------------------

    def upsert_forecast(self, forecast: Forecast) -> None:
        """Insert or replace the forecast for (resort, forecast_date)."""
        fetched_at = forecast.fetched_at or utcnow()

        self._execute(
            self._sql(
                """
                INSERT INTO {t[forecasts]}
                ({columns})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT ({c[resort_id]}, {c[forecast_date]})
                DO UPDATE SET
                    {c[predicted_snow]} = EXCLUDED.{c[predicted_snow]},
                    {c[temp_high]} = EXCLUDED.{c[temp_high]},
                    {c[temp_low]} = EXCLUDED.{c[temp_low]},
                    {c[condition]} = EXCLUDED.{c[condition]},
                    {c[snow_probability]} = EXCLUDED.{c[snow_probability]},
                    {c[wind_speed]} = EXCLUDED.{c[wind_speed]},
                    {c[fetched_at]} = EXCLUDED.{c[fetched_at]}
                """,
                columns=self.adapter.columns(FORECAST_COLUMNS),
            ),
            [
                forecast.resort_id,
                forecast.forecast_date,
                forecast.predicted_snow,
                forecast.temp_high,
                forecast.temp_low,
                forecast.condition,
                forecast.snow_probability,
                forecast.wind_speed,
                to_db_timestamp(fetched_at),
            ],
        )

    def get_forecasts(
        self,
        resort_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: Optional[int] = None,
    ) -> list[Forecast]:
        """Forecasts for a resort in date order, optionally bounded (inclusive)."""
        template = "SELECT {columns} FROM {t[forecasts]} WHERE {c[resort_id]} = ?"
        params: list[Any] = [resort_id]
        if start_date is not None:
            template += " AND {c[forecast_date]} >= ?"
            params.append(start_date)
        if end_date is not None:
            template += " AND {c[forecast_date]} <= ?"
            params.append(end_date)
        template += " ORDER BY {c[forecast_date]}"
        if limit:
            template += " LIMIT ?"
            params.append(limit)

        rows = self._fetchall(
            self._sql(template, columns=self.adapter.columns(FORECAST_COLUMNS)),
            params,
        )
        return [_row_to_forecast(row) for row in rows]

    def get_latest_forecast_fetch(self, resort_id: str) -> Optional[datetime]:
        """Newest ``fetched_at`` across a resort's forecast rows."""
        row = self._fetchone(
            self._sql(
                "SELECT MAX({c[fetched_at]}) FROM {t[forecasts]} WHERE {c[resort_id]} = ?"
            ),
            [resort_id],
        )
        return row[0] if row and row[0] else None

    def find_best_forecast(
        self,
        resort_id: str,
        start_date: date,
        end_date: date,
        min_snow: float,
    ) -> Optional[Forecast]:
        """Highest forecast in ``[start_date, end_date]`` with at least ``min_snow``."""
        row = self._fetchone(
            self._sql(
                """
                SELECT {columns} FROM {t[forecasts]}
                WHERE {c[resort_id]} = ?
                  AND {c[forecast_date]} BETWEEN ? AND ?
                  AND {c[predicted_snow]} >= ?
                ORDER BY {c[predicted_snow]} DESC, {c[forecast_date]}
                LIMIT 1
                """,
                columns=self.adapter.columns(FORECAST_COLUMNS),
            ),
            [resort_id, start_date, end_date, min_snow],
        )
        return _row_to_forecast(row) if row else None

    def get_forecast_totals(
        self,
        start_date: date,
        end_date: date,
        fetched_since: datetime,
        region: Optional[str] = None,
        limit: int = 10,
    ) -> list[tuple[Resort, float]]:
        """Resorts ranked by summed predicted snow over a date window.

        Only forecast rows fetched at or after ``fetched_since`` count.
        ``region`` matches either a state abbreviation or a region name.

        Returns:
            List of (resort, total inches), highest first
        """
        template = """
            SELECT {resort_columns}, SUM(f.{c[predicted_snow]}) AS total
            FROM {t[forecasts]} f
            JOIN {t[resorts]} r ON r.{c[id]} = f.{c[resort_id]}
            WHERE f.{c[forecast_date]} BETWEEN ? AND ?
              AND f.{c[fetched_at]} >= ?
        """
        params: list[Any] = [start_date, end_date, to_db_timestamp(fetched_since)]
        if region:
            template += " AND (r.{c[state]} = ? OR r.{c[region]} = ?)"
            params.extend([region.upper(), region])
        template += """
            GROUP BY {resort_columns}
            ORDER BY total DESC
            LIMIT ?
        """
        params.append(limit)

        rows = self._fetchall(
            self._sql(
                template,
                resort_columns=self.adapter.columns(RESORT_COLUMNS, alias="r"),
            ),
            params,
        )
        return [(_row_to_resort(row[:-1]), row[-1] or 0.0) for row in rows]

    # -------------------------------------------------------------------------
    # Alert Subscription Operations
    # -------------------------------------------------------------------------

    def upsert_subscription(
        self,
        visitor_id: str,
        resort_id: str,
        resort_name: str,
        threshold: str,
        timeframe: int,
        email: Optional[str] = None,
    ) -> AlertSubscription:
        """Create or update (and reactivate) a visitor's subscription to a resort."""
        with self._lock:
            self._execute(
                self._sql(
                    """
                    INSERT INTO {t[alert_subscriptions]}
                    ({c[visitor_id]}, {c[resort_id]}, {c[resort_name]}, {c[threshold]},
                     {c[timeframe]}, {c[email]}, {c[is_active]}, {c[created_at]})
                    VALUES (?, ?, ?, ?, ?, ?, TRUE, ?)
                    ON CONFLICT ({c[visitor_id]}, {c[resort_id]})
                    DO UPDATE SET
                        {c[resort_name]} = EXCLUDED.{c[resort_name]},
                        {c[threshold]} = EXCLUDED.{c[threshold]},
                        {c[timeframe]} = EXCLUDED.{c[timeframe]},
                        {c[email]} = EXCLUDED.{c[email]},
                        {c[is_active]} = TRUE
                    """
                ),
                [
                    visitor_id,
                    resort_id,
                    resort_name,
                    threshold,
                    timeframe,
                    email,
                    to_db_timestamp(utcnow()),
                ],
            )
            row = self._fetchone(
                self._sql(
                    """
                    SELECT {columns} FROM {t[alert_subscriptions]}
                    WHERE {c[visitor_id]} = ? AND {c[resort_id]} = ?
                    """,
                    columns=self.adapter.columns(SUBSCRIPTION_COLUMNS),
                ),
                [visitor_id, resort_id],
            )
        return _row_to_subscription(row)

    def get_subscription(self, subscription_id: int) -> Optional[AlertSubscription]:
        row = self._fetchone(
            self._sql(
                "SELECT {columns} FROM {t[alert_subscriptions]} WHERE {c[id]} = ?",
                columns=self.adapter.columns(SUBSCRIPTION_COLUMNS),
            ),
            [subscription_id],
        )
        return _row_to_subscription(row) if row else None

    def list_subscriptions(
        self,
        visitor_id: Optional[str] = None,
        resort_id: Optional[str] = None,
        active_only: bool = True,
    ) -> list[AlertSubscription]:
        """List subscriptions, newest first."""
        where, params = [], []
        if visitor_id is not None:
            where.append("{c[visitor_id]} = ?")
            params.append(visitor_id)
        if resort_id is not None:
            where.append("{c[resort_id]} = ?")
            params.append(resort_id)
        if active_only:
            where.append("{c[is_active]} = TRUE")

        template = "SELECT {columns} FROM {t[alert_subscriptions]}"
        if where:
            template += " WHERE " + " AND ".join(where)
        template += " ORDER BY {c[created_at]} DESC, {c[id]} DESC"

        rows = self._fetchall(
            self._sql(template, columns=self.adapter.columns(SUBSCRIPTION_COLUMNS)),
            params,
        )
        return [_row_to_subscription(row) for row in rows]

    def set_subscription_active(self, subscription_id: int, active: bool) -> None:
        self._execute(
            self._sql(
                "UPDATE {t[alert_subscriptions]} SET {c[is_active]} = ? WHERE {c[id]} = ?"
            ),
            [active, subscription_id],
        )

    def touch_subscription(
        self,
        subscription_id: int,
        checked_at: datetime,
        triggered_at: Optional[datetime] = None,
    ) -> None:
        """Record a check (and optionally a trigger) time on a subscription."""
        if triggered_at is None:
            self._execute(
                self._sql(
                    """
                    UPDATE {t[alert_subscriptions]}
                    SET {c[last_checked]} = ?
                    WHERE {c[id]} = ?
                    """
                ),
                [to_db_timestamp(checked_at), subscription_id],
            )
            return

        self._execute(
            self._sql(
                """
                UPDATE {t[alert_subscriptions]}
                SET {c[last_checked]} = ?, {c[last_triggered]} = ?
                WHERE {c[id]} = ?
                """
            ),
            [to_db_timestamp(checked_at), to_db_timestamp(triggered_at), subscription_id],
        )

    # -------------------------------------------------------------------------
    # Alert Notification Operations
    # -------------------------------------------------------------------------

    def insert_notification(
        self,
        subscription_id: int,
        title: str,
        message: str,
        predicted_snow: float,
        forecast_date: date,
        created_at: Optional[datetime] = None,
    ) -> int:
        """Create a notification.

        Returns:
            New notification id
        """
        row = self._fetchone(
            self._sql(
                """
                INSERT INTO {t[alert_notifications]}
                ({c[subscription_id]}, {c[title]}, {c[message]}, {c[predicted_snow]},
                 {c[forecast_date]}, {c[is_read]}, {c[created_at]})
                VALUES (?, ?, ?, ?, ?, FALSE, ?)
                RETURNING {c[id]}
                """
            ),
            [
                subscription_id,
                title,
                message,
                predicted_snow,
                forecast_date,
                to_db_timestamp(created_at or utcnow()),
            ],
        )
        return row[0]

    def has_notification_since(
        self,
        subscription_id: int,
        forecast_date: date,
        since: datetime,
    ) -> bool:
        """Check for a notification for (subscription, forecast_date) created after ``since``."""
        row = self._fetchone(
            self._sql(
                """
                SELECT COUNT(*) FROM {t[alert_notifications]}
                WHERE {c[subscription_id]} = ?
                  AND {c[forecast_date]} = ?
                  AND {c[created_at]} >= ?
                """
            ),
            [subscription_id, forecast_date, to_db_timestamp(since)],
        )
        return row[0] > 0

    def insert_notification_if_absent(
        self,
        subscription_id: int,
        title: str,
        message: str,
        predicted_snow: float,
        forecast_date: date,
        since: datetime,
        created_at: Optional[datetime] = None,
    ) -> Optional[int]:
        """Create a notification unless one exists for (subscription, forecast_date) since ``since``.

        The lookup and the insert run under the store lock, so concurrent
        checks of one subscription create at most one row.

        Returns:
            New notification id, or None if a recent one already exists
        """
        with self._lock:
            if self.has_notification_since(subscription_id, forecast_date, since):
                return None
            return self.insert_notification(
                subscription_id=subscription_id,
                title=title,
                message=message,
                predicted_snow=predicted_snow,
                forecast_date=forecast_date,
                created_at=created_at,
            )

    def get_notification(self, notification_id: int) -> Optional[AlertNotification]:
        row = self._fetchone(
            self._sql(
                "SELECT {columns} FROM {t[alert_notifications]} WHERE {c[id]} = ?",
                columns=self.adapter.columns(NOTIFICATION_COLUMNS),
            ),
            [notification_id],
        )
        return _row_to_notification(row) if row else None

    def list_notifications(
        self,
        visitor_id: Optional[str] = None,
        subscription_id: Optional[int] = None,
        include_read: bool = False,
        limit: int = 20,
    ) -> list[tuple[AlertNotification, AlertSubscription]]:
        """Notifications newest first, joined with their subscription."""
        template = """
            SELECT {notification_columns}, {subscription_columns}
            FROM {t[alert_notifications]} n
            JOIN {t[alert_subscriptions]} s ON s.{c[id]} = n.{c[subscription_id]}
            WHERE 1 = 1
        """
        params: list[Any] = []
        if visitor_id is not None:
            template += " AND s.{c[visitor_id]} = ?"
            params.append(visitor_id)
        if subscription_id is not None:
            template += " AND n.{c[subscription_id]} = ?"
            params.append(subscription_id)
        if not include_read:
            template += " AND n.{c[is_read]} = FALSE"
        template += " ORDER BY n.{c[created_at]} DESC, n.{c[id]} DESC LIMIT ?"
        params.append(limit)

        rows = self._fetchall(
            self._sql(
                template,
                notification_columns=self.adapter.columns(NOTIFICATION_COLUMNS, alias="n"),
                subscription_columns=self.adapter.columns(SUBSCRIPTION_COLUMNS, alias="s"),
            ),
            params,
        )
        split = len(NOTIFICATION_COLUMNS)
        return [
            (_row_to_notification(row[:split]), _row_to_subscription(row[split:]))
            for row in rows
        ]

    def mark_notification_read(self, notification_id: int) -> bool:
        """Mark one notification read; False if it does not exist."""
        with self._lock:
            if self.get_notification(notification_id) is None:
                return False
            self._execute(
                self._sql(
                    "UPDATE {t[alert_notifications]} SET {c[is_read]} = TRUE WHERE {c[id]} = ?"
                ),
                [notification_id],
            )
            return True

    def mark_all_notifications_read(self, visitor_id: str) -> int:
        """Mark all of a visitor's unread notifications read.

        Returns:
            Number of notifications updated
        """
        subscription_ids = self._sql(
            """
            SELECT {c[id]} FROM {t[alert_subscriptions]} WHERE {c[visitor_id]} = ?
            """
        )
        with self._lock:
            count = self._fetchone(
                self._sql(
                    """
                    SELECT COUNT(*) FROM {t[alert_notifications]}
                    WHERE {c[is_read]} = FALSE AND {c[subscription_id]} IN ({subquery})
                    """,
                    subquery=subscription_ids,
                ),
                [visitor_id],
            )[0]
            self._execute(
                self._sql(
                    """
                    UPDATE {t[alert_notifications]} SET {c[is_read]} = TRUE
                    WHERE {c[is_read]} = FALSE AND {c[subscription_id]} IN ({subquery})
                    """,
                    subquery=subscription_ids,
                ),
                [visitor_id],
            )
        return count

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------

    def get_stats(self) -> dict:
        """Get cache statistics."""
        counts = {}
        for table in (
            "resorts",
            "snow_reports",
            "forecasts",
            "alert_subscriptions",
            "alert_notifications",
        ):
            counts[f"{table}_count"] = self._fetchone(
                self._sql("SELECT COUNT(*) FROM {t[" + table + "]}")
            )[0]
        counts["active_subscriptions_count"] = self._fetchone(
            self._sql("SELECT COUNT(*) FROM {t[alert_subscriptions]} WHERE {c[is_active]}")
        )[0]

        latest_forecast = self._fetchone(
            self._sql("SELECT MAX({c[fetched_at]}) FROM {t[forecasts]}")
        )[0]
        latest_report = self._fetchone(
            self._sql("SELECT MAX({c[created_at]}) FROM {t[snow_reports]}")
        )[0]

        return {
            **counts,
            "latest_forecast_fetch": latest_forecast,
            "latest_report_fetch": latest_report,
            "schema_mode": self.schema_mode.value,
            "db_path": str(self.db_path),
        }


def _row_to_resort(row: tuple) -> Resort:
    return Resort(
        id=row[0],
        name=row[1],
        location=row[2] or "",
        state=row[3] or "US",
        region=row[4] or "Other",
        latitude=row[5] or 0.0,
        longitude=row[6] or 0.0,
        website_url=row[7],
        total_lifts=row[8] or 0,
        total_trails=row[9] or 0,
        updated_at=row[10],
    )


def _row_to_forecast(row: tuple) -> Forecast:
    return Forecast(
        resort_id=row[0],
        forecast_date=row[1],
        predicted_snow=row[2] or 0,
        temp_high=row[3],
        temp_low=row[4],
        condition=row[5],
        snow_probability=row[6],
        wind_speed=row[7],
        fetched_at=row[8],
    )


def _row_to_subscription(row: tuple) -> AlertSubscription:
    return AlertSubscription(
        id=row[0],
        visitor_id=row[1],
        resort_id=row[2],
        resort_name=row[3],
        threshold=row[4],
        timeframe=row[5],
        email=row[6],
        is_active=bool(row[7]),
        last_triggered=row[8],
        last_checked=row[9],
        created_at=row[10],
    )


def _row_to_notification(row: tuple) -> AlertNotification:
    return AlertNotification(
        id=row[0],
        subscription_id=row[1],
        title=row[2],
        message=row[3],
        predicted_snow=row[4] or 0,
        forecast_date=row[5],
        is_read=bool(row[6]),
        created_at=row[7],
    )
