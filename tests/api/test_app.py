"""Tests for the resort API.

Tests use FastAPI TestClient against a real temp store; only the upstream
providers are faked.
"""

import pytest
from fastapi.testclient import TestClient

from fakes import FakeSource, make_snapshot
from snowpeak.api import ResortResponse, SubscribeRequest, create_app
from snowpeak.cache.resorts import ResortService
from snowpeak.config import Settings
from snowpeak.exceptions import SourceUnavailable
from snowpeak.sources.chain import SourceChain
from snowpeak.sources.llm import TopResortPick
from snowpeak.sources.onthesnow import DiscoveredResort

SECRET = "s3cret"
AUTH = {"Authorization": f"Bearer {SECRET}"}


class FakeLLM:
    def __init__(self):
        self.error = None

    def fetch_top_by_region(self, region="All", limit=10):
        if self.error is not None:
            raise self.error
        return [TopResortPick(name="Alta", location="Alta, UT", state="UT", predictedSnow=24)][:limit]

    def answer_question(self, question):
        if self.error is not None:
            raise self.error
        return "Wax for the temperature."


class FakeIndex:
    def discover_resorts(self):
        return [DiscoveredResort("Taos Ski Valley", "taos-ski-valley", "new-mexico", "NM", "u")]


@pytest.fixture
def scraper():
    return FakeSource("onthesnow", snapshot=make_snapshot(snow=(3, 9, 2)))


@pytest.fixture
def llm():
    return FakeLLM()


@pytest.fixture
def service(temp_db, scraper, llm, clock):
    return ResortService(db=temp_db, sources=SourceChain([scraper]), llm=llm, clock=clock)


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        cron_secret=SECRET,
        refresh_delay_ms=0,
        refresh_scheduler_enabled=False,
    )


@pytest.fixture
def client(service, settings):
    """Create test client with an injected service."""
    return TestClient(create_app(service=service, settings=settings, scraper=FakeIndex()))


class TestSchemas:
    """Tests for Pydantic schemas."""

    def test_subscribe_defaults(self):
        request = SubscribeRequest(visitor_id="v1", resort_id="vail", threshold="good")
        assert request.timeframe == 5
        assert request.email is None

    def test_subscribe_rejects_unknown_threshold(self):
        with pytest.raises(ValueError):
            SubscribeRequest(visitor_id="v1", resort_id="vail", threshold="epic")

    def test_resort_response_requires_cache_fields(self):
        with pytest.raises(ValueError):
            ResortResponse(id="vail", name="Vail", location="", state="CO", region="Rockies")


class TestInfoEndpoints:
    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["name"] == "SnowPeak API"

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["scheduler_running"] is False


class TestResortEndpoints:
    """Tests for resort data endpoints."""

    def test_list_resorts(self, client):
        data = client.get("/api/resorts", params={"state": "CO"}).json()
        assert data["count"] == len(data["resorts"]) > 0
        assert all(r["state"] == "CO" for r in data["resorts"])

    def test_get_resort_miss_then_hit(self, client, scraper):
        first = client.get("/api/resorts/vail")
        assert first.status_code == 200
        data = first.json()
        assert data["cache_status"] == "miss"
        assert data["cached"] is False
        assert data["source"] == "onthesnow"
        assert data["report"]["base_depth"] == 48
        assert [d["predicted_snow"] for d in data["forecast"]] == [3, 9, 2]

        second = client.get("/api/resorts/vail").json()
        assert second["cached"] is True
        assert second["source"] == "cache"
        assert len(scraper.calls) == 1

    def test_refresh_param(self, client, scraper):
        client.get("/api/resorts/vail")
        client.get("/api/resorts/vail", params={"refresh": "true"})
        assert len(scraper.calls) == 2

    def test_all_sources_failed_is_502(self, client, scraper):
        scraper.error = SourceUnavailable("onthesnow", "timeout")
        response = client.get("/api/resorts/vail")

        assert response.status_code == 502
        body = response.json()
        assert body["error"] == "UPSTREAM_UNAVAILABLE"
        assert "timeout" in body["detail"]

    def test_forecast_days(self, client):
        data = client.get("/api/resorts/vail/forecast", params={"days": 2}).json()
        assert data["count"] == 2
        assert data["forecasts"][0]["date"] == "2026-01-12"

    def test_invalid_days_is_400(self, client):
        response = client.get("/api/resorts/vail/forecast", params={"days": 0})
        assert response.status_code == 400

    def test_top_resorts(self, client):
        data = client.get("/api/forecasts/top", params={"limit": 1}).json()
        assert data["source"] == "upstream"
        assert data["resorts"][0]["resort_id"] == "alta"
        assert data["resorts"][0]["predicted_snow"] == 24

    def test_top_resorts_failure(self, client, llm):
        llm.error = SourceUnavailable("ai", "down")
        assert client.get("/api/forecasts/top").status_code == 502


class TestMapEndpoints:
    def test_map_resorts(self, client):
        client.get("/api/resorts/vail")
        data = client.get("/api/map/resorts", params={"min_snow": 1}).json()
        assert [r["id"] for r in data["resorts"]] == ["vail"]
        assert data["resorts"][0]["snow_48h"] == 12

    def test_map_regions(self, client):
        regions = client.get("/api/map/regions").json()["regions"]
        assert [r["region"] for r in regions] == ["Rockies", "Pacific", "Northeast", "Midwest"]


class TestAlertEndpoints:
    """Tests for alert subscription endpoints."""

    def _subscribe(self, client, **overrides):
        body = {"visitor_id": "v1", "resort_id": "vail", "threshold": "good"}
        body.update(overrides)
        return client.post("/api/alerts/subscribe", json=body)

    def test_subscribe(self, client):
        response = self._subscribe(client, timeframe=10, email="a@example.com")
        assert response.status_code == 200
        data = response.json()
        assert data["triggered"] is False
        assert data["subscription"]["resort_name"] == "Vail"
        assert data["subscription"]["timeframe"] == 10
        assert data["subscription"]["threshold_label"] == 'Good Snow (5-15")'

    def test_subscribe_missing_fields_is_400(self, client):
        response = client.post("/api/alerts/subscribe", json={"visitor_id": "v1"})
        assert response.status_code == 400
        assert response.json()["error"] == "HTTP_400"

    def test_subscribe_invalid_threshold_is_400(self, client):
        assert self._subscribe(client, threshold="epic").status_code == 400

    def test_fetch_triggers_notification(self, client):
        self._subscribe(client)
        client.get("/api/resorts/vail")

        my = client.get("/api/alerts/my", params={"visitor_id": "v1"}).json()
        assert my["count"] == 1
        notifications = my["subscriptions"][0]["notifications"]
        assert len(notifications) == 1
        assert notifications[0]["title"] == "Good Snow Alert: Vail"

        listed = client.get("/api/alerts/notifications", params={"visitor_id": "v1"}).json()
        assert listed["count"] == 1
        assert listed["notifications"][0]["resort_id"] == "vail"

    def test_my_requires_visitor(self, client):
        assert client.get("/api/alerts/my").status_code == 400

    def test_unsubscribe(self, client):
        subscription_id = self._subscribe(client).json()["subscription"]["id"]

        wrong = client.delete(f"/api/alerts/{subscription_id}", params={"visitor_id": "v2"})
        assert wrong.status_code == 404

        ok = client.delete(f"/api/alerts/{subscription_id}", params={"visitor_id": "v1"})
        assert ok.status_code == 200
        assert client.get("/api/alerts/my", params={"visitor_id": "v1"}).json()["count"] == 0

    def test_mark_read(self, client):
        self._subscribe(client)
        client.get("/api/resorts/vail")
        notification = client.get(
            "/api/alerts/notifications", params={"visitor_id": "v1"}
        ).json()["notifications"][0]

        response = client.post(f"/api/alerts/notifications/{notification['id']}/read")
        assert response.status_code == 200
        assert client.post("/api/alerts/notifications/999999/read").status_code == 404

        unread = client.get("/api/alerts/notifications", params={"visitor_id": "v1"}).json()
        assert unread["count"] == 0
        everything = client.get(
            "/api/alerts/notifications",
            params={"visitor_id": "v1", "include_read": "true"},
        ).json()
        assert everything["notifications"][0]["is_read"] is True

    def test_read_all(self, client):
        self._subscribe(client)
        client.get("/api/resorts/vail")

        response = client.post("/api/alerts/notifications/read-all", json={"visitor_id": "v1"})
        assert response.status_code == 200
        assert "1" in response.json()["message"]

    def test_check(self, client):
        self._subscribe(client)
        self._subscribe(client, visitor_id="v2", threshold="great")
        client.get("/api/resorts/vail")

        data = client.post("/api/alerts/check").json()
        assert data == {"checked": 2, "triggered": 0}


class TestMaintenanceEndpoints:
    """Tests for the bearer-protected triggers."""

    @pytest.mark.parametrize("path", ["/api/crawl", "/api/refresh", "/api/preload"])
    def test_requires_secret(self, client, path):
        assert client.post(path).status_code == 401
        assert client.post(path, headers={"Authorization": "Bearer wrong"}).status_code == 401

    def test_refresh(self, client, scraper):
        response = client.post("/api/refresh", json={"max_resorts": 3}, headers=AUTH)
        assert response.status_code == 200
        data = response.json()
        assert (data["total"], data["success"], data["failed"]) == (3, 3, 0)
        assert len(scraper.calls) == 3

    def test_refresh_reports_failures(self, client, scraper):
        scraper.error = SourceUnavailable("onthesnow", "timeout")
        data = client.post("/api/refresh", json={"max_resorts": 2}, headers=AUTH).json()
        assert data["failed"] == 2
        assert len(data["failures"]) == 2

    def test_crawl_discovers_and_refreshes(self, client, temp_db):
        response = client.post("/api/crawl", headers=AUTH)
        assert response.status_code == 202
        # TestClient runs background tasks before returning
        assert temp_db.get_resort("taos-ski-valley") is not None
        assert temp_db.get_latest_snow_report("taos-ski-valley") is not None

    def test_preload_quick(self, client):
        data = client.post("/api/preload", headers=AUTH).json()
        assert data["mode"] == "quick"
        assert data["resorts"]["success"] == data["resorts"]["total"]
        assert data["top_lists"] is None

    def test_preload_full(self, client):
        data = client.post("/api/preload", json={"mode": "full"}, headers=AUTH).json()
        assert data["mode"] == "full"
        assert data["top_lists"]["total"] == 6

    def test_open_when_no_secret(self, service):
        settings = Settings(_env_file=None, cron_secret=None, refresh_delay_ms=0)
        client = TestClient(create_app(service=service, settings=settings))
        assert client.post("/api/refresh", json={"max_resorts": 1}).status_code == 200


class TestChat:
    def test_chat(self, client):
        response = client.post("/api/chat", json={"question": "What wax?"})
        assert response.status_code == 200
        assert response.json()["answer"] == "Wax for the temperature."

    def test_chat_unavailable(self, client, llm):
        llm.error = SourceUnavailable("ai", "API key not configured")
        response = client.post("/api/chat", json={"question": "What wax?"})
        assert response.status_code == 503
        assert response.json()["error"] == "SOURCE_UNAVAILABLE"

    def test_empty_question(self, client):
        assert client.post("/api/chat", json={"question": ""}).status_code == 400
