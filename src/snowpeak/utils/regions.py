"""Resort naming and US state/region classification helpers."""

import re
from typing import Optional

STATE_NAMES = {
    "colorado": "CO", "utah": "UT", "california": "CA", "wyoming": "WY",
    "montana": "MT", "idaho": "ID", "washington": "WA", "oregon": "OR",
    "vermont": "VT", "new hampshire": "NH", "maine": "ME", "new york": "NY",
    "new mexico": "NM", "arizona": "AZ", "nevada": "NV", "michigan": "MI",
    "wisconsin": "WI", "minnesota": "MN", "massachusetts": "MA",
    "connecticut": "CT", "pennsylvania": "PA", "ohio": "OH",
}

STATE_REGIONS = {
    "CO": "Rockies", "UT": "Rockies", "WY": "Rockies", "MT": "Rockies",
    "ID": "Rockies", "NM": "Rockies", "AZ": "Rockies",
    "CA": "Pacific", "WA": "Pacific", "OR": "Pacific", "NV": "Pacific",
    "VT": "Northeast", "NH": "Northeast", "ME": "Northeast", "NY": "Northeast",
    "MA": "Northeast", "CT": "Northeast", "PA": "Northeast",
    "MI": "Midwest", "WI": "Midwest", "MN": "Midwest", "OH": "Midwest",
}

REGIONS = ["Rockies", "Pacific", "Northeast", "Midwest"]

# OnTheSnow URL segment for each state
STATE_URL_SEGMENTS = {abbr: name.replace(" ", "-") for name, abbr in STATE_NAMES.items()}


def slugify(name: str) -> str:
    """Convert a resort name to its id slug.

    Example:
        >>> slugify("Mt. Hood Meadows")
        'mt-hood-meadows'
    """
    slug = re.sub(r"[^\w\s-]", "", name.lower())
    slug = re.sub(r"[\s_]+", "-", slug.strip())
    return re.sub(r"-+", "-", slug)


def name_from_slug(slug: str) -> str:
    """Best-effort display name for a slug ('big-sky' -> 'Big Sky')."""
    return " ".join(part.capitalize() for part in slug.split("-") if part)


def extract_state(location: Optional[str]) -> str:
    """Find a US state abbreviation in a free-text location, 'US' if none."""
    if not location:
        return "US"

    lower = location.lower()
    for state_name, abbr in STATE_NAMES.items():
        if state_name in lower:
            return abbr

    for token in re.findall(r"\b[A-Z]{2}\b", location):
        if token in STATE_REGIONS:
            return token

    return "US"


def region_for_state(state: Optional[str]) -> str:
    """Map a state abbreviation to its ski region."""
    if not state:
        return "Other"
    return STATE_REGIONS.get(state.upper(), "Other")


def state_from_url_segment(segment: str) -> str:
    """Map an OnTheSnow region segment ('new-mexico') to a state abbreviation."""
    return STATE_NAMES.get(segment.replace("-", " ").lower(), "US")
