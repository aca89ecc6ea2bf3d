"""Tests for the source fallback chain."""

import pytest

from fakes import FakeSource, make_snapshot
from snowpeak.config import Settings
from snowpeak.exceptions import AllSourcesExhausted, ResortNotFound, SourceUnavailable
from snowpeak.sources.chain import SourceChain
from snowpeak.sources.llm import LLMSource
from snowpeak.sources.onthesnow import OnTheSnowScraper


class TestSourceChain:
    """Tests for SourceChain.fetch_resort_data."""

    def test_first_source_wins(self):
        scraper = FakeSource("onthesnow", snapshot=make_snapshot())
        ai = FakeSource("ai", snapshot=make_snapshot(source="ai"))

        snapshot = SourceChain([scraper, ai]).fetch_resort_data("Vail", state_hint="CO")

        assert snapshot.source == "onthesnow"
        assert scraper.calls == [("Vail", "CO")]
        assert ai.calls == []

    def test_not_found_advances_to_next_source(self):
        scraper = FakeSource("onthesnow", error=ResortNotFound("onthesnow", "HTTP 404"))
        ai = FakeSource("ai", snapshot=make_snapshot(source="ai"))

        snapshot = SourceChain([scraper, ai]).fetch_resort_data("Vail")

        assert snapshot.source == "ai"
        assert len(ai.calls) == 1

    def test_recoverable_library_error_advances(self):
        """Errors listed in recoverable_errors are converted, not propagated."""
        scraper = FakeSource("onthesnow", error=ValueError("bad markup"))
        ai = FakeSource("ai", snapshot=make_snapshot(source="ai"))

        assert SourceChain([scraper, ai]).fetch_resort_data("Vail").source == "ai"

    def test_all_fail_carries_every_error(self):
        scraper = FakeSource("onthesnow", error=SourceUnavailable("onthesnow", "timeout"))
        ai = FakeSource("ai", error=ValueError("invalid JSON"))

        with pytest.raises(AllSourcesExhausted) as exc_info:
            SourceChain([scraper, ai]).fetch_resort_data("Vail")

        errors = exc_info.value.errors
        assert [e.source for e in errors] == ["onthesnow", "ai"]
        assert "invalid JSON" in errors[1].message
        assert "Vail" in str(exc_info.value)

    def test_unexpected_error_propagates(self):
        """Programming errors are not swallowed as source failures."""
        scraper = FakeSource("onthesnow", error=RuntimeError("bug"))
        ai = FakeSource("ai", snapshot=make_snapshot(source="ai"))

        with pytest.raises(RuntimeError):
            SourceChain([scraper, ai]).fetch_resort_data("Vail")
        assert ai.calls == []

    def test_empty_chain(self):
        with pytest.raises(AllSourcesExhausted) as exc_info:
            SourceChain([]).fetch_resort_data("Vail")
        assert exc_info.value.errors == []


class TestFromSettings:
    def test_scraper_then_ai(self):
        chain = SourceChain.from_settings(Settings(_env_file=None, scraper_enabled=True))
        assert [type(s) for s in chain.sources] == [OnTheSnowScraper, LLMSource]

    def test_scraper_disabled(self):
        chain = SourceChain.from_settings(Settings(_env_file=None, scraper_enabled=False))
        assert [s.name for s in chain.sources] == ["ai"]
