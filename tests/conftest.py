"""Shared pytest fixtures for snowpeak tests.

Test Tiers:
- unit: Fast tests with fakes and temp DuckDB files, no network (default)
- live: Real scraper/AI tests, slow, requires network and may need credentials

Run live tests with: pytest -m live --run-live
"""

import tempfile
from pathlib import Path

import pytest

from fakes import Clock
from snowpeak.cache.database import CacheDatabase
from snowpeak.cache.schema import SchemaResolver


def pytest_addoption(parser):
    """Add command line options for test configuration."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run live scraper/AI tests (slow, requires network)",
    )


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: fast unit tests using fixtures")
    config.addinivalue_line("markers", "live: real API tests (slow, requires network)")


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is specified."""
    if config.getoption("--run-live"):
        # --run-live given: don't skip live tests
        return

    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


@pytest.fixture
def project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def temp_db_path():
    """Create a temporary database path for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "test.duckdb"


@pytest.fixture
def temp_db(temp_db_path):
    """Seeded database with its own schema resolver."""
    db = CacheDatabase(temp_db_path, resolver=SchemaResolver())
    yield db
    db.close()


@pytest.fixture
def empty_db(temp_db_path):
    """Database without the popular-resort seed."""
    db = CacheDatabase(temp_db_path, resolver=SchemaResolver(), seed=False)
    yield db
    db.close()


@pytest.fixture
def clock() -> Clock:
    """Settable clock starting at the shared test time."""
    return Clock()
