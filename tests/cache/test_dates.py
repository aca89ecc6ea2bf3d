"""Tests for forecast date normalization."""

from datetime import date, datetime

import pytest

from snowpeak.cache.dates import normalize_forecast_date


class TestNormalizeForecastDate:
    """Tests for normalize_forecast_date."""

    def test_short_date_same_year(self):
        assert normalize_forecast_date("01/15", date(2026, 1, 12)) == date(2026, 1, 15)

    def test_short_date_rolls_into_next_year(self):
        """A late-December fetch returning January days resolves to next year."""
        assert normalize_forecast_date("01/03", date(2025, 12, 28)) == date(2026, 1, 3)

    def test_short_date_rolls_back_a_year(self):
        """An early-January fetch referencing late December resolves to last year."""
        assert normalize_forecast_date("12/30", date(2026, 1, 3)) == date(2025, 12, 30)

    def test_short_date_with_dash(self):
        assert normalize_forecast_date("2-1", date(2026, 1, 20)) == date(2026, 2, 1)

    def test_datetime_reference(self):
        reference = datetime(2025, 12, 31, 23, 0)
        assert normalize_forecast_date("01/01", reference) == date(2026, 1, 1)

    def test_iso_date(self):
        assert normalize_forecast_date("2026-01-15", date(2025, 6, 1)) == date(2026, 1, 15)

    def test_iso_datetime(self):
        assert normalize_forecast_date("2026-01-15T07:00:00Z") == date(2026, 1, 15)

    def test_us_full_date(self):
        assert normalize_forecast_date("01/15/2026") == date(2026, 1, 15)

    def test_date_passthrough(self):
        assert normalize_forecast_date(date(2026, 1, 15)) == date(2026, 1, 15)
        assert normalize_forecast_date(datetime(2026, 1, 15, 8)) == date(2026, 1, 15)

    @pytest.mark.parametrize("value", ["tomorrow", "", "13/45", "2026-02-30", "1/2/3"])
    def test_invalid_raises(self, value):
        with pytest.raises(ValueError):
            normalize_forecast_date(value, date(2026, 1, 12))
