"""OnTheSnow ski report scraper.

Report pages live at ``https://www.onthesnow.com/<state>/<slug>/skireport``
(e.g. ``/colorado/vail/skireport``). The markup is not an API and changes
without notice, so every field is optional and a page that yields nothing
recognisable is reported as a failure.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional

import requests
from bs4 import BeautifulSoup

from snowpeak.cache.models import ForecastDay, ResortSnapshot
from snowpeak.config import Settings, get_settings
from snowpeak.exceptions import ResortNotFound, SourceUnavailable
from snowpeak.sources.base import SnowSource
from snowpeak.utils.regions import (
    STATE_URL_SEGMENTS,
    name_from_slug,
    slugify,
    state_from_url_segment,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://www.onthesnow.com"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)

# Segment used when no state hint is available
DEFAULT_SEGMENT = "colorado"

# Non-resort sections linked from the resort index
_SKIPPED_SEGMENTS = {"united-states", "news", "epic-pass"}

_DAY_NAME = re.compile(r"Mon|Tue|Wed|Thu|Fri|Sat|Sun")
_RESORT_LINK = re.compile(r"^/([^/]+)/([^/]+)/ski-resort$")
_LIFTS = (
    re.compile(r"(\d+)/(\d+)\s+lifts open", re.IGNORECASE),
    re.compile(r"Lifts Open\s*(\d+)/(\d+)\s*open", re.IGNORECASE),
)
_RUNS = (
    re.compile(r"(\d+)/(\d+)\s+runs open", re.IGNORECASE),
    re.compile(r"Runs Open\s*(\d+)/(\d+)\s*open", re.IGNORECASE),
)


@dataclass
class DiscoveredResort:
    """A resort listed in the OnTheSnow index."""

    name: str
    slug: str
    segment: str
    state: str
    url: str


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


def _to_int(text: str) -> int:
    """Digits of a cell (``'30"'`` -> 30), 0 if none."""
    digits = re.sub(r"\D", "", text or "")
    return int(digits) if digits else 0


def _find_heading(soup: BeautifulSoup, label: str):
    return soup.find(lambda tag: tag.name == "h3" and label in tag.get_text())


class OnTheSnowScraper(SnowSource):
    """Scrape snow reports from OnTheSnow resort pages."""

    name = "onthesnow"
    recoverable_errors = (requests.RequestException, ValueError)

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 15.0,
        user_agent: str = DEFAULT_USER_AGENT,
        session: Optional[requests.Session] = None,
        today: Callable[[], date] = _utc_today,
    ):
        """Initialize scraper.

        Args:
            base_url: Site root
            timeout: Per-request timeout in seconds
            user_agent: Browser User-Agent sent with every request
            session: Optional requests session (injectable for tests)
            today: Clock for forecast dates
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": user_agent})
        self._today = today

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "OnTheSnowScraper":
        settings = settings or get_settings()
        return cls(
            base_url=settings.scraper_base_url,
            timeout=settings.scraper_timeout_seconds,
            user_agent=settings.scraper_user_agent,
        )

    def report_url(self, resort_name: str, state_hint: Optional[str] = None) -> str:
        """Build the ski report URL for a resort."""
        segment = DEFAULT_SEGMENT
        if state_hint:
            segment = STATE_URL_SEGMENTS.get(state_hint.upper(), DEFAULT_SEGMENT)
        return f"{self.base_url}/{segment}/{slugify(resort_name)}/skireport"

    def fetch(self, resort_name: str, state_hint: Optional[str] = None) -> ResortSnapshot:
        url = self.report_url(resort_name, state_hint)
        logger.info(f"Fetching {url}")

        response = self.session.get(url, timeout=self.timeout)
        if response.status_code == 404:
            raise ResortNotFound(self.name, f"Resort not found at {url}")
        response.raise_for_status()

        return self.parse_report(response.text, resort_name, url, state_hint)

    def parse_report(
        self,
        html: str,
        resort_name: str,
        url: str,
        state_hint: Optional[str] = None,
    ) -> ResortSnapshot:
        """Parse a ski report page into a snapshot.

        Raises:
            SourceUnavailable: If the page has none of the expected sections
        """
        soup = BeautifulSoup(html or "", "html.parser")
        body_text = soup.get_text(" ", strip=True)

        base_depth = 0
        base_heading = _find_heading(soup, "Base")
        if base_heading is not None:
            sibling = base_heading.find_next_sibling()
            if sibling is not None:
                base_depth = _to_int(sibling.get_text())

        last_24, last_48 = self._parse_recent_snowfall(soup)
        lifts_open, total_lifts = self._match_pair(_LIFTS, body_text)
        trails_open, total_trails = self._match_pair(_RUNS, body_text)
        forecast = self._parse_forecast(soup)

        if not (base_depth or last_24 or total_lifts or total_trails or forecast):
            raise SourceUnavailable(self.name, f"No recognisable report data at {url}")

        return ResortSnapshot(
            name=resort_name,
            location=state_hint or "USA",
            source=self.name,
            base_depth=base_depth,
            last_24_hours=last_24,
            last_48_hours=last_48,
            lifts_open=lifts_open,
            total_lifts=total_lifts,
            trails_open=trails_open,
            total_trails=total_trails,
            website_url=url,
            conditions="Machine Groomed" if "Machine Groomed" in body_text else "Variable",
            description=f'Latest report from OnTheSnow. Base depth: {base_depth}".',
            forecast=forecast,
            source_urls=[url],
        )

    def _parse_recent_snowfall(self, soup: BeautifulSoup) -> tuple[int, int]:
        heading = _find_heading(soup, "Recent Snowfall")
        table = heading.parent.find("table") if heading is not None else None
        if table is None:
            return 0, 0

        header_row = table.find("thead") or table.find("tr")
        if header_row is None:
            return 0, 0
        headers = [th.get_text(strip=True) for th in header_row.find_all("th")]

        body = table.find("tbody")
        value_row = body.find("tr") if body is not None else None
        if value_row is None:
            rows = table.find_all("tr")
            value_row = rows[1] if len(rows) > 1 else None
        if value_row is None:
            return 0, 0
        values = [td.get_text(strip=True) for td in value_row.find_all("td")]

        def column(label: str) -> int:
            if label in headers:
                index = headers.index(label)
                if index < len(values):
                    return _to_int(values[index])
            return 0

        return column("24h"), column("48h")

    @staticmethod
    def _match_pair(patterns, text: str) -> tuple[int, int]:
        for pattern in patterns:
            match = pattern.search(text)
            if match:
                return int(match.group(1)), int(match.group(2))
        return 0, 0

    def _parse_forecast(self, soup: BeautifulSoup) -> list[ForecastDay]:
        heading = _find_heading(soup, "Forecasted Snow")
        table = heading.parent.find("table") if heading is not None else None
        if table is None:
            return []

        rows = table.find_all("tr")
        header_index = next(
            (i for i, row in enumerate(rows) if _DAY_NAME.search(row.get_text())),
            None,
        )
        if header_index is None or header_index + 1 >= len(rows):
            return []

        header_cells = rows[header_index].find_all(["th", "td"])
        value_cells = rows[header_index + 1].find_all("td")

        # Forecast columns start today and are sequential
        today = self._today()
        forecast = []
        offset = 0
        for i, cell in enumerate(header_cells):
            day_name = cell.get_text(strip=True)
            if not _DAY_NAME.search(day_name):
                continue
            snow_text = value_cells[i].get_text(strip=True) if i < len(value_cells) else ""
            if snow_text:
                forecast.append(
                    ForecastDay(
                        date=(today + timedelta(days=offset)).isoformat(),
                        day_name=day_name,
                        snow_inches=_to_int(snow_text),
                    )
                )
            offset += 1
        return forecast

    # -------------------------------------------------------------------------
    # Discovery
    # -------------------------------------------------------------------------

    def discover_resorts(self) -> list[DiscoveredResort]:
        """List US resorts from the OnTheSnow resort index.

        Raises:
            SourceUnavailable: If the index page can't be fetched
        """
        url = f"{self.base_url}/united-states/ski-resorts"
        logger.info(f"Discovering resorts from {url}")

        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise SourceUnavailable(self.name, f"Discovery failed: {e}") from e

        resorts = self.parse_resort_index(response.text)
        logger.info(f"Discovered {len(resorts)} resorts")
        return resorts

    def parse_resort_index(self, html: str) -> list[DiscoveredResort]:
        """Extract resort links (``/<state>/<slug>/ski-resort``) from an index page."""
        soup = BeautifulSoup(html or "", "html.parser")
        resorts = []
        seen = set()

        for link in soup.select('a[href*="/ski-resort"]'):
            match = _RESORT_LINK.match(link.get("href", ""))
            if not match:
                continue

            segment, slug = match.groups()
            if segment in _SKIPPED_SEGMENTS:
                continue

            report_url = f"{self.base_url}/{segment}/{slug}/skireport"
            if report_url in seen:
                continue
            seen.add(report_url)

            name = re.sub(r"\s*VIEW\s*$", "", link.get_text(strip=True), flags=re.IGNORECASE)
            resorts.append(
                DiscoveredResort(
                    name=name.strip() or name_from_slug(slug),
                    slug=slug,
                    segment=segment,
                    state=state_from_url_segment(segment),
                    url=report_url,
                )
            )

        return resorts
