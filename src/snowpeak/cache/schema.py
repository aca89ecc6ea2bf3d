"""Schema naming conventions for the resort store.

Two table/column conventions exist for the same data:

- ``SNAKE_CASE``: ``resorts``, ``snow_reports``, ``forecasts`` ... with
  ``resort_id``, ``fetched_at`` columns (the original SQL migration)
- ``CAMEL_CASE``: ``Resort``, ``SnowReport``, ``Forecast`` ... with
  ``resortId``, ``fetchedAt`` columns (ORM-generated)

The convention in use is probed once per process and cached. Everything
above this module writes SQL against logical (snake_case) names and lets a
``StorageAdapter`` render the physical names.
"""

import logging
import re
import threading
from enum import Enum
from typing import Any, Callable, Optional

import duckdb

from snowpeak.exceptions import SchemaNotFound

logger = logging.getLogger(__name__)

# Replacement scans would resolve an unknown table name such as "Resort" to a
# Python object in the calling frames instead of raising a catalog error.
DUCKDB_CONFIG = {"python_enable_replacements": False}


class SchemaMode(str, Enum):
    """Naming convention of the store."""

    SNAKE_CASE = "snake_case"
    CAMEL_CASE = "camel_case"


class _NameMap:
    """Mapping used inside SQL templates: ``{t[resorts]}``, ``{c[resort_id]}``."""

    def __init__(self, render: Callable[[str], str]):
        self._render = render

    def __getitem__(self, name: str) -> str:
        return self._render(name)


class StorageAdapter:
    """Renders logical SQL templates into one physical naming convention.

    Templates reference tables as ``{t[name]}``, columns as ``{c[name]}``,
    id sequences as ``{s[name]}`` and index name prefixes as ``{i[name]}``.

    Example:
        >>> CamelCaseAdapter().sql("SELECT {c[resort_id]} FROM {t[forecasts]}")
        'SELECT "resortId" FROM "Forecast"'
    """

    mode: SchemaMode
    TABLE_NAMES: dict[str, str] = {}

    def table_name(self, name: str) -> str:
        """Unquoted physical table name."""
        return self.TABLE_NAMES[name]

    def column_name(self, name: str) -> str:
        """Unquoted physical column name."""
        raise NotImplementedError

    def table(self, name: str) -> str:
        return f'"{self.table_name(name)}"'

    def column(self, name: str) -> str:
        return f'"{self.column_name(name)}"'

    def sequence(self, name: str) -> str:
        return f"seq_{self.table_name(name).lower()}_id"

    def index(self, name: str) -> str:
        return f"idx_{self.table_name(name).lower()}"

    def columns(self, names: tuple[str, ...], alias: Optional[str] = None) -> str:
        """Comma-separated quoted column list, optionally alias-qualified."""
        prefix = f"{alias}." if alias else ""
        return ", ".join(f"{prefix}{self.column(n)}" for n in names)

    def sql(self, template: str, **extra: Any) -> str:
        """Render a logical SQL template for this convention."""
        return template.format(
            t=_NameMap(self.table),
            c=_NameMap(self.column),
            s=_NameMap(self.sequence),
            i=_NameMap(self.index),
            **extra,
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class SnakeCaseAdapter(StorageAdapter):
    """``resorts.resort_id`` convention."""

    mode = SchemaMode.SNAKE_CASE
    TABLE_NAMES = {
        "resorts": "resorts",
        "snow_reports": "snow_reports",
        "forecasts": "forecasts",
        "alert_subscriptions": "alert_subscriptions",
        "alert_notifications": "alert_notifications",
    }

    def column_name(self, name: str) -> str:
        return name


class CamelCaseAdapter(StorageAdapter):
    """``Resort.resortId`` convention."""

    mode = SchemaMode.CAMEL_CASE
    TABLE_NAMES = {
        "resorts": "Resort",
        "snow_reports": "SnowReport",
        "forecasts": "Forecast",
        "alert_subscriptions": "AlertSubscription",
        "alert_notifications": "AlertNotification",
    }

    def column_name(self, name: str) -> str:
        return snake_to_camel(name)


def snake_to_camel(name: str) -> str:
    """Convert ``last_24_hours`` to ``last24Hours``."""
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def adapter_for(mode: SchemaMode) -> StorageAdapter:
    """Get the adapter for a schema mode."""
    if mode == SchemaMode.CAMEL_CASE:
        return CamelCaseAdapter()
    return SnakeCaseAdapter()


# Matches DuckDB's "Table with name X does not exist" catalog errors
_MISSING_TABLE = re.compile(r"does not exist|not found", re.IGNORECASE)


def probe_table(execute: Callable[[str], Any], adapter: StorageAdapter) -> None:
    """Run a trivial read against the resorts table of one convention.

    Raises:
        SchemaNotFound: If the table does not exist
        duckdb.Error: Any other failure (propagated as a hard error)
    """
    try:
        execute(adapter.sql("SELECT {c[id]} FROM {t[resorts]} LIMIT 1"))
    except duckdb.CatalogException as e:
        if _MISSING_TABLE.search(str(e)):
            raise SchemaNotFound(adapter.table_name("resorts")) from e
        raise


def probe_schema_mode(execute: Callable[[str], Any]) -> SchemaMode:
    """Detect which naming convention the store uses.

    Tries snake_case first, then camelCase; defaults to snake_case when
    neither table exists (e.g. a fresh database).
    """
    try:
        probe_table(execute, SnakeCaseAdapter())
        return SchemaMode.SNAKE_CASE
    except SchemaNotFound as e:
        logger.info(f"Schema probe: {e}, trying camelCase tables")

    try:
        probe_table(execute, CamelCaseAdapter())
        return SchemaMode.CAMEL_CASE
    except SchemaNotFound:
        logger.info("Schema probe: no resort table found, defaulting to snake_case")

    return SchemaMode.SNAKE_CASE


class SchemaResolver:
    """Compute-once holder for the schema mode.

    The first caller runs the probe under a lock; concurrent first callers
    wait for it, later callers read the cached value without probing.
    There is no invalidation: a schema switch requires a restart.
    """

    def __init__(self) -> None:
        self._mode: Optional[SchemaMode] = None
        self._lock = threading.Lock()

    @property
    def resolved(self) -> bool:
        return self._mode is not None

    def resolve(self, probe: Callable[[], SchemaMode]) -> SchemaMode:
        """Return the cached mode, running ``probe`` on first use only."""
        if self._mode is not None:
            return self._mode

        with self._lock:
            if self._mode is None:
                self._mode = probe()
                logger.info(f"Store schema mode resolved: {self._mode.value}")
        return self._mode


# Process-wide resolver
default_resolver = SchemaResolver()


def resolve_schema_mode(
    execute: Callable[[str], Any],
    resolver: Optional[SchemaResolver] = None,
) -> SchemaMode:
    """Resolve the store's schema mode, probing at most once per resolver."""
    resolver = resolver or default_resolver
    return resolver.resolve(lambda: probe_schema_mode(execute))
