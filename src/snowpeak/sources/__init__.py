"""Upstream resort data sources and the fallback chain over them."""

from snowpeak.sources.base import SnowSource
from snowpeak.sources.chain import SourceChain
from snowpeak.sources.llm import LLMSource, TopResortPick
from snowpeak.sources.onthesnow import DiscoveredResort, OnTheSnowScraper

__all__ = [
    "DiscoveredResort",
    "LLMSource",
    "OnTheSnowScraper",
    "SnowSource",
    "SourceChain",
    "TopResortPick",
]
