"""Background refresh for cache pre-warming.

Re-fetches every tracked resort through the source chain, most recently
updated first, one at a time with a fixed delay between resorts. Run it
periodically via cron, or let the API process schedule it
(``REFRESH_SCHEDULER_ENABLED=true``):

    # Every 6 hours
    0 */6 * * * python -m snowpeak.cache.refresh

Usage:
    python -m snowpeak.cache.refresh              # Refresh all tracked resorts
    python -m snowpeak.cache.refresh --discover   # Discover new resorts, then refresh
    python -m snowpeak.cache.refresh --preload    # Warm popular resorts and top lists
    python -m snowpeak.cache.refresh --status     # Show cache status
"""

import argparse
import logging
import sys
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

from snowpeak.cache.database import CacheDatabase
from snowpeak.cache.freshness import CacheStatus
from snowpeak.cache.models import POPULAR_RESORTS, Resort
from snowpeak.cache.resorts import ResortService
from snowpeak.config import get_settings
from snowpeak.exceptions import SourceUnavailable
from snowpeak.sources.onthesnow import OnTheSnowScraper
from snowpeak.utils.regions import region_for_state, slugify

logger = logging.getLogger(__name__)

# Regions whose top lists are warmed by the preloader
REGIONS_TO_PRELOAD = ["All", "CO", "UT", "CA", "WA", "VT"]


@dataclass
class RefreshResult:
    """Result of a refresh operation."""

    total: int
    success: int
    failed: int
    duration_ms: int
    skipped: int = 0
    failures: list[tuple[str, str]] = field(default_factory=list)

    @property
    def success_rate(self) -> float:
        """Percentage of successful refreshes."""
        if self.total == 0:
            return 0.0
        return (self.success / self.total) * 100

    def __str__(self) -> str:
        return (
            f"Refresh complete: {self.success}/{self.total} successful, "
            f"{self.failed} failed, {self.skipped} skipped "
            f"({self.duration_ms}ms)"
        )


@dataclass
class PreloadResult(RefreshResult):
    """Result of a preload pass (fresh entries are skipped)."""

    def __str__(self) -> str:
        return (
            f"Preload complete: {self.success}/{self.total} loaded, "
            f"{self.failed} failed, {self.skipped} already fresh "
            f"({self.duration_ms}ms)"
        )


def refresh_all_resorts(
    service: ResortService,
    max_resorts: int = 200,
    delay_ms: int = 500,
    sleep: Callable[[float], None] = time.sleep,
) -> RefreshResult:
    """Refresh every tracked resort from upstream.

    Resorts are processed sequentially, most recently updated first. A
    failure is logged and counted and never stops the batch.

    Args:
        service: Resort service used for the fetch-and-store path
        max_resorts: Maximum number of resorts to refresh
        delay_ms: Pause between resorts (not after the last one)
        sleep: Sleep function (injectable for tests)

    Returns:
        RefreshResult with counts of successful/failed refreshes
    """
    resort_ids = service.db.list_resort_ids_by_update(max_resorts)
    start_time = time.time()

    total = len(resort_ids)
    success = 0
    failures: list[tuple[str, str]] = []

    logger.info(f"Starting refresh for {total} resorts...")

    for i, resort_id in enumerate(resort_ids, 1):
        try:
            result = service.refresh_resort(resort_id)
            logger.info(
                f"[{i}/{total}] {resort_id}: refreshed from {result.source} "
                f"({len(result.forecasts)} forecast days)"
            )
            success += 1
        except Exception as e:
            logger.error(f"[{i}/{total}] {resort_id}: failed - {e}")
            failures.append((resort_id, str(e)))

        if i < total and delay_ms > 0:
            sleep(delay_ms / 1000)

    result = RefreshResult(
        total=total,
        success=success,
        failed=len(failures),
        duration_ms=int((time.time() - start_time) * 1000),
        failures=failures,
    )

    logger.info(str(result))
    return result


def discover_resorts(db: CacheDatabase, scraper: OnTheSnowScraper) -> int:
    """Track resorts from the scraper's index that aren't in the store yet.

    New resorts are inserted as placeholders (no coordinates or data) and
    filled in by the next refresh.

    Returns:
        Number of resorts added
    """
    discovered = scraper.discover_resorts()
    added = 0

    for entry in discovered:
        inserted = db.insert_resort_if_missing(
            Resort(
                id=entry.slug,
                name=entry.name,
                location=f"{entry.state}, USA",
                state=entry.state,
                region=region_for_state(entry.state),
            )
        )
        if inserted:
            logger.debug(f"Discovered {entry.name} ({entry.state})")
            added += 1

    logger.info(f"Discovery: {len(discovered)} listed, {added} new")
    return added


def crawl(
    service: ResortService,
    scraper: OnTheSnowScraper,
    max_resorts: int = 200,
    delay_ms: int = 500,
    sleep: Callable[[float], None] = time.sleep,
) -> tuple[int, RefreshResult]:
    """Discover new resorts, then refresh everything tracked.

    A failed discovery is logged and the refresh still runs.

    Returns:
        Tuple of (resorts added, RefreshResult)
    """
    try:
        added = discover_resorts(service.db, scraper)
    except SourceUnavailable as e:
        logger.error(f"Discovery failed: {e}")
        added = 0

    return added, refresh_all_resorts(service, max_resorts, delay_ms, sleep=sleep)


def preload_popular_resorts(
    service: ResortService,
    delay_ms: int = 1000,
    sleep: Callable[[float], None] = time.sleep,
) -> PreloadResult:
    """Warm the store for the popular resort list, skipping fresh entries."""
    start_time = time.time()
    total = len(POPULAR_RESORTS)
    success = 0
    skipped = 0
    failures: list[tuple[str, str]] = []

    logger.info(f"Preloading {total} popular resorts...")

    for i, seed in enumerate(POPULAR_RESORTS, 1):
        resort_id = slugify(seed.name)
        try:
            if service.db.get_resort(resort_id) is not None and (
                service.cache_status(resort_id) == CacheStatus.HIT
            ):
                logger.debug(f"[{i}/{total}] {seed.name}: cache fresh")
                skipped += 1
                continue

            service.get_resort(resort_id, refresh=True)
            logger.info(f"[{i}/{total}] {seed.name}: loaded")
            success += 1
        except Exception as e:
            logger.error(f"[{i}/{total}] {seed.name}: failed - {e}")
            failures.append((resort_id, str(e)))

        if i < total and delay_ms > 0:
            sleep(delay_ms / 1000)

    result = PreloadResult(
        total=total,
        success=success,
        failed=len(failures),
        skipped=skipped,
        duration_ms=int((time.time() - start_time) * 1000),
        failures=failures,
    )
    logger.info(str(result))
    return result


def preload_top_lists(
    service: ResortService,
    regions: Optional[list[str]] = None,
    limit: int = 10,
    delay_ms: int = 2000,
    sleep: Callable[[float], None] = time.sleep,
) -> PreloadResult:
    """Warm the top-snowfall rankings for the preload regions."""
    regions = regions or REGIONS_TO_PRELOAD
    start_time = time.time()
    total = len(regions)
    success = 0
    skipped = 0
    failures: list[tuple[str, str]] = []

    for i, region in enumerate(regions, 1):
        try:
            result = service.get_top_resorts(region=region, limit=limit)
            if result.source == "upstream":
                success += 1
            else:
                skipped += 1
            logger.info(f"[{i}/{total}] top {region}: {len(result.entries)} from {result.source}")
        except Exception as e:
            logger.error(f"[{i}/{total}] top {region}: failed - {e}")
            failures.append((region, str(e)))

        if i < total and delay_ms > 0:
            sleep(delay_ms / 1000)

    result = PreloadResult(
        total=total,
        success=success,
        failed=len(failures),
        skipped=skipped,
        duration_ms=int((time.time() - start_time) * 1000),
        failures=failures,
    )
    logger.info(str(result))
    return result


class RefreshScheduler:
    """Cancellable periodic runner for a refresh job.

    Runs the job once after ``startup_delay_seconds`` and then every
    ``interval_seconds``. ``run_now()`` triggers the same job on demand; a
    trigger while a run is in progress is skipped. ``stop()`` lets a
    running job finish.

    Example:
        >>> scheduler = RefreshScheduler(lambda: refresh_all_resorts(service), 6 * 3600)
        >>> scheduler.start()
        >>> scheduler.stop()
    """

    def __init__(
        self,
        job: Callable[[], Any],
        interval_seconds: float,
        startup_delay_seconds: float = 15.0,
        name: str = "refresh-scheduler",
    ):
        self.job = job
        self.interval_seconds = interval_seconds
        self.startup_delay_seconds = startup_delay_seconds
        self.name = name
        self.runs = 0
        self.last_result: Any = None

        self._stop = threading.Event()
        self._job_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None

    @property
    def started(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def busy(self) -> bool:
        return self._job_lock.locked()

    def start(self) -> None:
        """Start the background thread (no-op if already running)."""
        if self.started:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name=self.name, daemon=True)
        self._thread.start()
        logger.info(
            f"Refresh scheduler started: first run in {self.startup_delay_seconds:g}s, "
            f"then every {self.interval_seconds / 3600:g}h"
        )

    def _loop(self) -> None:
        if self._stop.wait(self.startup_delay_seconds):
            return
        while True:
            self.run_now()
            if self._stop.wait(self.interval_seconds):
                return

    def run_now(self) -> Any:
        """Run the job in the calling thread.

        Returns:
            The job's result, or None if skipped or failed
        """
        if not self._job_lock.acquire(blocking=False):
            logger.warning("Refresh already in progress, skipping")
            return None

        try:
            self.last_result = self.job()
            return self.last_result
        except Exception as e:
            logger.error(f"Scheduled refresh failed: {e}")
            return None
        finally:
            self.runs += 1
            self._job_lock.release()

    def stop(self, timeout: Optional[float] = None) -> None:
        """Cancel future runs and wait for the thread to exit."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Refresh scheduler stopped")


def get_refresh_status(service: ResortService) -> dict:
    """Get current cache status.

    Returns:
        Dict with store statistics and per-resort freshness
    """
    stats = service.get_stats()
    resorts = []
    for resort in service.list_resorts():
        report = service.db.get_latest_snow_report(resort.id)
        resorts.append({
            "id": resort.id,
            "name": resort.name,
            "state": resort.state,
            "status": service.cache_status(resort.id).value,
            "last_report": report.created_at if report else None,
            "source": report.data_source if report else None,
        })

    return {
        **stats,
        "fresh_count": sum(1 for r in resorts if r["status"] == CacheStatus.HIT.value),
        "resorts": resorts,
    }


def print_status(status: dict) -> None:
    """Print cache status in human-readable format."""
    print()
    print("=" * 60)
    print("SnowPeak Cache Status")
    print("=" * 60)
    print(f"Database: {status['db_path']} ({status['schema_mode']})")
    print(f"Tracked resorts: {status['resorts_count']}")
    print(f"Fresh resorts: {status['fresh_count']}/{status['resorts_count']}")
    print(f"Snow reports: {status['snow_reports_count']}")
    print(f"Forecast records: {status['forecasts_count']}")
    print(f"Active alert subscriptions: {status['active_subscriptions_count']}")

    if status["latest_forecast_fetch"]:
        print(f"Latest forecast fetch: {status['latest_forecast_fetch']} UTC")

    print()
    print("Resort Status:")
    print("-" * 60)

    for resort in status["resorts"]:
        source = resort["source"] or "-"
        print(f"  {resort['name']:<28} {resort['state']:<3} {resort['status'].upper():<6} {source}")

    print("=" * 60)


def main():
    """CLI entry point for background refresh."""
    settings = get_settings()

    parser = argparse.ArgumentParser(
        description="Refresh resort snow data for all tracked resorts",
        epilog="""
Examples:
  python -m snowpeak.cache.refresh              # Refresh all
  python -m snowpeak.cache.refresh --discover   # Discover, then refresh
  python -m snowpeak.cache.refresh --preload    # Warm popular resorts and top lists
  python -m snowpeak.cache.refresh --status     # Show status

Cron setup (every 6 hours):
  0 */6 * * * cd /path/to/snowpeak && python -m snowpeak.cache.refresh >> /var/log/snowpeak-refresh.log 2>&1
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--discover",
        action="store_true",
        help="Discover new resorts from OnTheSnow before refreshing",
    )
    parser.add_argument(
        "--preload",
        action="store_true",
        help="Warm popular resorts and regional top lists instead of a full refresh",
    )
    parser.add_argument(
        "--status",
        action="store_true",
        help="Show current cache status",
    )
    parser.add_argument(
        "--max-resorts",
        type=int,
        default=settings.refresh_max_resorts,
        help=f"Maximum resorts to refresh (default: {settings.refresh_max_resorts})",
    )
    parser.add_argument(
        "--delay-ms",
        type=int,
        default=settings.refresh_delay_ms,
        help=f"Delay between resorts in ms (default: {settings.refresh_delay_ms})",
    )
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help=f"Database path (default: {settings.db_path})",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress output except errors",
    )

    args = parser.parse_args()

    # Configure logging
    if args.quiet:
        level = logging.ERROR
    elif args.verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    db = CacheDatabase(args.db or settings.db_path)

    try:
        service = ResortService.from_settings(settings, db=db)

        # Handle status command
        if args.status:
            print_status(get_refresh_status(service))
            return 0

        if args.preload:
            resorts_result = preload_popular_resorts(service)
            top_result = preload_top_lists(service)
            return 1 if resorts_result.failed or top_result.failed else 0

        if args.discover:
            _, result = crawl(
                service,
                OnTheSnowScraper.from_settings(settings),
                max_resorts=args.max_resorts,
                delay_ms=args.delay_ms,
            )
        else:
            result = refresh_all_resorts(
                service,
                max_resorts=args.max_resorts,
                delay_ms=args.delay_ms,
            )

        return 1 if result.failed > 0 else 0

    except Exception as e:
        logger.error(f"Refresh failed: {e}")
        return 1

    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
