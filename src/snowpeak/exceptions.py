"""Error taxonomy for snowpeak."""


class SnowPeakError(Exception):
    """Base class for all snowpeak errors."""


class SourceUnavailable(SnowPeakError):
    """A single upstream source failed to produce data.

    Recovered locally by advancing the source fallback chain.
    """

    def __init__(self, source: str, message: str):
        self.source = source
        self.message = message
        super().__init__(f"{source}: {message}")


class ResortNotFound(SourceUnavailable):
    """The source has no page/record for the requested resort."""


class AllSourcesExhausted(SnowPeakError):
    """Every configured source failed for one resort fetch."""

    def __init__(self, resort_name: str, errors: list[SourceUnavailable]):
        self.resort_name = resort_name
        self.errors = errors
        details = "; ".join(str(e) for e in errors) or "no sources configured"
        super().__init__(f"All sources failed for {resort_name!r}: {details}")


class SchemaNotFound(SnowPeakError):
    """A schema probe did not find the expected table."""

    def __init__(self, table: str):
        self.table = table
        super().__init__(f"Table not found: {table}")
