"""Ordered fallback over upstream data sources."""

import logging
from typing import Iterable, Optional

from snowpeak.cache.models import ResortSnapshot
from snowpeak.config import Settings, get_settings
from snowpeak.exceptions import AllSourcesExhausted, SourceUnavailable
from snowpeak.sources.base import SnowSource

logger = logging.getLogger(__name__)


class SourceChain:
    """Try each source in order until one returns a snapshot.

    The order is data: reorder or extend ``sources`` to change the
    fallback policy.

    Example:
        >>> chain = SourceChain([OnTheSnowScraper(), LLMSource()])
        >>> snapshot = chain.fetch_resort_data("Vail", state_hint="CO")
        >>> snapshot.source
        'onthesnow'
    """

    def __init__(self, sources: Iterable[SnowSource]):
        self.sources = list(sources)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "SourceChain":
        """Build the default chain: scraper (if enabled), then AI provider."""
        # Imported here so the chain itself stays provider-agnostic
        from snowpeak.sources.llm import LLMSource
        from snowpeak.sources.onthesnow import OnTheSnowScraper

        settings = settings or get_settings()
        sources: list[SnowSource] = []
        if settings.scraper_enabled:
            sources.append(OnTheSnowScraper.from_settings(settings))
        sources.append(LLMSource.from_settings(settings))
        return cls(sources)

    def fetch_resort_data(
        self,
        resort_name: str,
        state_hint: Optional[str] = None,
    ) -> ResortSnapshot:
        """Fetch a resort snapshot from the first source that succeeds.

        Args:
            resort_name: Resort display name
            state_hint: Two-letter state abbreviation, if known

        Returns:
            Snapshot from the first successful source

        Raises:
            AllSourcesExhausted: If every source failed (carries each error)
        """
        errors: list[SourceUnavailable] = []

        for source in self.sources:
            try:
                snapshot = source.try_fetch(resort_name, state_hint)
            except SourceUnavailable as e:
                logger.warning(f"Source {source.name} failed for {resort_name}: {e.message}")
                errors.append(e)
                continue

            logger.info(f"Fetched {resort_name} from {source.name}")
            return snapshot

        logger.error(f"All {len(self.sources)} sources failed for {resort_name}")
        raise AllSourcesExhausted(resort_name, errors)
