"""Resort API for snowpeak.

This module provides:

- create_app: Factory function to create FastAPI application
- ResortResponse: Full resort view with report and forecast
- SubscribeRequest: Alert subscription request

Note: FastAPI-dependent exports (create_app) are lazy-loaded
to allow importing schemas without FastAPI installed.
"""

# Schemas can be imported directly (only depend on pydantic)
from snowpeak.api.schemas import (
    ErrorResponse,
    ForecastDayResponse,
    HealthResponse,
    ResortResponse,
    SubscribeRequest,
    TopResortsResponse,
)


# Lazy imports for FastAPI-dependent components
def __getattr__(name):
    """Lazy load FastAPI-dependent components."""
    if name == "create_app":
        from snowpeak.api.app import create_app
        return create_app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "create_app",
    "ErrorResponse",
    "ForecastDayResponse",
    "HealthResponse",
    "ResortResponse",
    "SubscribeRequest",
    "TopResortsResponse",
]
