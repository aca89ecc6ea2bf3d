"""Shared utilities for snowpeak."""

from .regions import (
    REGIONS,
    extract_state,
    name_from_slug,
    region_for_state,
    slugify,
)

__all__ = [
    "REGIONS",
    "extract_state",
    "name_from_slug",
    "region_for_state",
    "slugify",
]
