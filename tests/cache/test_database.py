"""Tests for the DuckDB resort store."""

from datetime import date, datetime, timedelta, timezone

import pytest

from snowpeak.cache.database import CacheDatabase
from snowpeak.cache.models import POPULAR_RESORTS, Forecast, Resort, SnowReport
from snowpeak.cache.schema import SchemaMode, SchemaResolver

NOW = datetime(2026, 1, 12, 12, 0, tzinfo=timezone.utc)
TODAY = date(2026, 1, 12)


def _forecast(resort_id, day_offset, snow, fetched_at=NOW):
    return Forecast(
        resort_id=resort_id,
        forecast_date=TODAY + timedelta(days=day_offset),
        predicted_snow=snow,
        temp_high=30,
        temp_low=15,
        condition="Snow",
        fetched_at=fetched_at,
    )


@pytest.fixture(params=[SchemaMode.SNAKE_CASE, SchemaMode.CAMEL_CASE])
def any_db(request, temp_db_path):
    """Seeded database in each naming convention."""
    db = CacheDatabase(temp_db_path, schema_mode=request.param, resolver=SchemaResolver())
    yield db
    db.close()


class TestResorts:
    """Tests for resort rows."""

    def test_popular_resorts_seeded(self, any_db):
        assert any_db.count_resorts() == len(POPULAR_RESORTS)
        vail = any_db.get_resort("vail")
        assert vail is not None
        assert vail.state == "CO"
        assert vail.latitude != 0

    def test_seed_skipped_when_not_empty(self, temp_db_path):
        db = CacheDatabase(temp_db_path, resolver=SchemaResolver(), seed=False)
        db.upsert_resort(
            Resort(id="bridger-bowl", name="Bridger Bowl", location="Montana, USA", state="MT")
        )
        db.close()

        db = CacheDatabase(temp_db_path, resolver=SchemaResolver())
        try:
            assert db.count_resorts() == 1
            assert db.get_resort("vail") is None
        finally:
            db.close()

    def test_get_resort_not_found(self, any_db):
        assert any_db.get_resort("nonexistent-resort") is None

    def test_upsert_updates_fields(self, any_db):
        vail = any_db.get_resort("vail")
        vail.total_lifts = 31
        vail.website_url = "https://www.vail.com"
        any_db.upsert_resort(vail)

        stored = any_db.get_resort("vail")
        assert stored.total_lifts == 31
        assert stored.website_url == "https://www.vail.com"
        assert stored.updated_at is not None

    def test_insert_if_missing(self, any_db):
        placeholder = Resort(id="vail", name="Other Vail", location="", state="CO")
        assert any_db.insert_resort_if_missing(placeholder) is False
        assert any_db.get_resort("vail").name == "Vail"

        new = Resort(id="bridger-bowl", name="Bridger Bowl", location="Montana, USA", state="MT")
        assert any_db.insert_resort_if_missing(new) is True
        assert any_db.get_resort("bridger-bowl").state == "MT"

    def test_list_filters(self, any_db):
        colorado = any_db.list_resorts(state="co")
        assert colorado
        assert all(r.state == "CO" for r in colorado)
        assert [r.name for r in colorado] == sorted(r.name for r in colorado)

        assert len(any_db.list_resorts(limit=3)) == 3

    def test_ids_by_update_most_recent_first(self, any_db):
        any_db.upsert_resort(any_db.get_resort("alta"))
        ids = any_db.list_resort_ids_by_update(limit=5)
        assert ids[0] == "alta"
        assert len(ids) == 5

    def test_resorts_with_coordinates(self, any_db):
        any_db.insert_resort_if_missing(
            Resort(id="no-coords", name="No Coords", location="", state="CO")
        )
        ids = {r.id for r in any_db.list_resorts_with_coordinates()}
        assert "vail" in ids
        assert "no-coords" not in ids


class TestSnowReports:
    """Tests for daily snow reports."""

    def test_upsert_replaces_same_day(self, any_db):
        report = SnowReport(
            resort_id="vail",
            report_date=TODAY,
            base_depth=40,
            last_24_hours=2,
            data_source="onthesnow",
            raw_response={"baseDepth": 40},
            created_at=NOW - timedelta(hours=2),
        )
        any_db.upsert_snow_report(report)

        report.base_depth = 45
        report.created_at = NOW
        any_db.upsert_snow_report(report)

        latest = any_db.get_latest_snow_report("vail")
        assert latest.base_depth == 45
        assert latest.raw_response == {"baseDepth": 40}
        assert latest.created_at == datetime(2026, 1, 12, 12, 0)
        assert any_db.get_stats()["snow_reports_count"] == 1

    def test_latest_report_missing(self, any_db):
        assert any_db.get_latest_snow_report("vail") is None


class TestForecasts:
    """Tests for forecast rows."""

    def test_upsert_is_unique_per_date(self, any_db):
        any_db.upsert_forecast(_forecast("vail", 1, 4))
        any_db.upsert_forecast(_forecast("vail", 1, 9))

        forecasts = any_db.get_forecasts("vail")
        assert len(forecasts) == 1
        assert forecasts[0].predicted_snow == 9

    def test_get_forecasts_window(self, any_db):
        for offset in range(-2, 8):
            any_db.upsert_forecast(_forecast("vail", offset, offset))

        window = any_db.get_forecasts("vail", start_date=TODAY, end_date=TODAY + timedelta(days=5))
        assert [f.forecast_date for f in window] == [TODAY + timedelta(days=i) for i in range(6)]

        assert len(any_db.get_forecasts("vail", start_date=TODAY, limit=3)) == 3

    def test_latest_fetch(self, any_db):
        assert any_db.get_latest_forecast_fetch("vail") is None
        any_db.upsert_forecast(_forecast("vail", 0, 1, fetched_at=NOW - timedelta(hours=3)))
        any_db.upsert_forecast(_forecast("vail", 1, 1, fetched_at=NOW))
        assert any_db.get_latest_forecast_fetch("vail") == datetime(2026, 1, 12, 12, 0)

    def test_find_best_forecast(self, any_db):
        for offset, snow in enumerate([2, 10, 7, 14, 0, 20]):
            any_db.upsert_forecast(_forecast("vail", offset, snow))

        best = any_db.find_best_forecast("vail", TODAY, TODAY + timedelta(days=4), 5)
        assert best.predicted_snow == 14
        assert best.forecast_date == TODAY + timedelta(days=3)

        assert any_db.find_best_forecast("vail", TODAY, TODAY + timedelta(days=1), 15) is None

    def test_forecast_totals(self, any_db):
        for offset, snow in enumerate([5, 5, 5]):
            any_db.upsert_forecast(_forecast("vail", offset, snow))
        for offset, snow in enumerate([10, 10]):
            any_db.upsert_forecast(_forecast("alta", offset, snow))
        # Old fetch: excluded
        any_db.upsert_forecast(_forecast("aspen-snowmass", 0, 50, fetched_at=NOW - timedelta(days=2)))

        totals = any_db.get_forecast_totals(
            start_date=TODAY,
            end_date=TODAY + timedelta(days=5),
            fetched_since=NOW - timedelta(hours=1),
        )
        assert [(r.id, total) for r, total in totals] == [("alta", 20), ("vail", 15)]

        utah = any_db.get_forecast_totals(
            start_date=TODAY,
            end_date=TODAY + timedelta(days=5),
            fetched_since=NOW - timedelta(hours=1),
            region="UT",
        )
        assert [r.id for r, _ in utah] == ["alta"]

        rockies = any_db.get_forecast_totals(
            start_date=TODAY,
            end_date=TODAY + timedelta(days=5),
            fetched_since=NOW - timedelta(hours=1),
            region="Rockies",
        )
        assert [r.id for r, _ in rockies] == ["alta", "vail"]


class TestAlerts:
    """Tests for subscription and notification rows."""

    def test_subscription_upsert_reactivates(self, any_db):
        sub = any_db.upsert_subscription("v1", "vail", "Vail", "good", 5)
        any_db.set_subscription_active(sub.id, False)
        assert any_db.list_subscriptions(visitor_id="v1") == []

        again = any_db.upsert_subscription("v1", "vail", "Vail", "great", 10, email="a@b.co")
        assert again.id == sub.id
        assert again.is_active
        assert again.threshold == "great"
        assert again.timeframe == 10
        assert again.email == "a@b.co"

    def test_notifications(self, any_db):
        sub = any_db.upsert_subscription("v1", "vail", "Vail", "good", 5)
        other = any_db.upsert_subscription("v2", "alta", "Alta", "light", 5)

        first = any_db.insert_notification(sub.id, "t1", "m1", 6, TODAY, created_at=NOW)
        second = any_db.insert_notification(
            sub.id, "t2", "m2", 8, TODAY + timedelta(days=1), created_at=NOW + timedelta(minutes=1)
        )
        any_db.insert_notification(other.id, "t3", "m3", 2, TODAY, created_at=NOW)

        items = any_db.list_notifications(visitor_id="v1")
        assert [n.id for n, _ in items] == [second, first]
        assert all(s.visitor_id == "v1" for _, s in items)

        assert any_db.has_notification_since(sub.id, TODAY, NOW - timedelta(hours=24))
        assert not any_db.has_notification_since(sub.id, TODAY, NOW + timedelta(seconds=1))

        assert any_db.mark_notification_read(first) is True
        assert any_db.mark_notification_read(999999) is False
        assert [n.id for n, _ in any_db.list_notifications(visitor_id="v1")] == [second]

        assert any_db.mark_all_notifications_read("v1") == 1
        assert any_db.list_notifications(visitor_id="v1") == []
        assert len(any_db.list_notifications(visitor_id="v1", include_read=True)) == 2
        assert len(any_db.list_notifications(visitor_id="v2")) == 1

    def test_touch_subscription(self, any_db):
        sub = any_db.upsert_subscription("v1", "vail", "Vail", "good", 5)
        any_db.touch_subscription(sub.id, checked_at=NOW)
        stored = any_db.get_subscription(sub.id)
        assert stored.last_checked == datetime(2026, 1, 12, 12, 0)
        assert stored.last_triggered is None

        any_db.touch_subscription(sub.id, checked_at=NOW, triggered_at=NOW)
        assert any_db.get_subscription(sub.id).last_triggered is not None


class TestStats:
    def test_stats(self, temp_db):
        stats = temp_db.get_stats()
        assert stats["resorts_count"] == len(POPULAR_RESORTS)
        assert stats["forecasts_count"] == 0
        assert stats["latest_forecast_fetch"] is None
        assert stats["schema_mode"] == "snake_case"

    def test_active_subscriptions_counted_separately(self, any_db):
        kept = any_db.upsert_subscription("v1", "vail", "Vail", "good", 5)
        dropped = any_db.upsert_subscription("v2", "alta", "Alta", "good", 5)
        any_db.set_subscription_active(dropped.id, False)

        stats = any_db.get_stats()
        assert stats["alert_subscriptions_count"] == 2
        assert stats["active_subscriptions_count"] == 1
        assert any_db.get_subscription(kept.id).is_active
