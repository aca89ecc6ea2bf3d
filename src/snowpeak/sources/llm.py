"""AI generation provider for resort snow data.

Uses any OpenAI-compatible chat completion endpoint (Gemini's by default)
in JSON mode. Responses are validated with pydantic before being mapped
into the canonical snapshot.
"""

import json
import logging
from datetime import date, datetime, timezone
from typing import Any, Callable, Optional

import openai
from pydantic import BaseModel, ConfigDict, Field

from snowpeak.cache.models import ForecastDay, ResortSnapshot
from snowpeak.config import Settings, get_settings
from snowpeak.exceptions import SourceUnavailable
from snowpeak.sources.base import SnowSource

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a ski conditions data service. Always answer with a single JSON "
    "object that follows the requested schema exactly. Use numbers for numeric "
    "fields and inches/Fahrenheit/mph units."
)

RESORT_PROMPT = """
Find the latest snow report and 10-day weather forecast for the "{resort_name}" ski resort{state_context}.
Focus on:
1. Official website or OnTheSnow/OpenSnow for real-time data
2. Actual snowfall in the past 24/48 hours and 7 days
3. Accurate base depth
4. Number of open lifts and trails
5. Current adult day pass price
6. 10-day snowfall forecast with temperatures

Today is {today}.

Return JSON with keys: name, location, baseDepth, last24Hours, last48Hours,
last7Days, liftsOpen, totalLifts, trailsOpen, totalTrails, ticketPrice,
websiteUrl, conditions, description (under 100 chars), sources (list of URLs
the data came from) and forecast, a list of objects with date (MM/DD), dayName,
snowInches, tempHigh, tempLow, condition, snowProbability (0-100) and windSpeed.
"""

TOP_RESORTS_PROMPT = """
List the {limit} ski resorts in {location} with the highest predicted snowfall in the next 5 days.
Today is {today}.

Return JSON with key "resorts": a list of objects with name, location, state
(two-letter abbreviation), predictedSnow (total inches over 5 days), summary
(brief reason for the ranking), latitude and longitude.
Base the ranking on the latest weather forecasts, not historical averages.
"""

ASSISTANT_PROMPT = (
    "You are an experienced ski guide and gear expert. Answer questions about "
    "skiing concisely and helpfully. Keep your answer under 150 words. Be "
    "practical and give actionable advice."
)


class ForecastPayload(BaseModel):
    """One forecast day as returned by the model."""

    model_config = ConfigDict(populate_by_name=True)

    date: str
    day_name: str = Field("", alias="dayName")
    snow_inches: Optional[float] = Field(0, alias="snowInches")
    temp_high: Optional[float] = Field(None, alias="tempHigh")
    temp_low: Optional[float] = Field(None, alias="tempLow")
    condition: Optional[str] = None
    snow_probability: Optional[float] = Field(None, alias="snowProbability")
    wind_speed: Optional[float] = Field(None, alias="windSpeed")


class ResortPayload(BaseModel):
    """Resort snow data as returned by the model."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    location: str = ""
    base_depth: Optional[float] = Field(0, alias="baseDepth")
    last_24_hours: Optional[float] = Field(0, alias="last24Hours")
    last_48_hours: Optional[float] = Field(0, alias="last48Hours")
    last_7_days: Optional[float] = Field(0, alias="last7Days")
    lifts_open: Optional[float] = Field(0, alias="liftsOpen")
    total_lifts: Optional[float] = Field(0, alias="totalLifts")
    trails_open: Optional[float] = Field(0, alias="trailsOpen")
    total_trails: Optional[float] = Field(0, alias="totalTrails")
    ticket_price: Optional[str] = Field(None, alias="ticketPrice")
    website_url: Optional[str] = Field(None, alias="websiteUrl")
    conditions: Optional[str] = None
    description: str = ""
    sources: list[str] = []
    forecast: list[ForecastPayload] = []


class TopResortPick(BaseModel):
    """A ranked resort from the top-snowfall list."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    location: str = ""
    state: str = "US"
    predicted_snow: float = Field(0, alias="predictedSnow")
    summary: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class TopResortsPayload(BaseModel):
    resorts: list[TopResortPick] = []


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


class LLMSource(SnowSource):
    """Resort data generated by an OpenAI-compatible model.

    Example:
        >>> source = LLMSource(api_key="...", model="gemini-2.0-flash")
        >>> snapshot = source.try_fetch("Alta", state_hint="UT")
    """

    name = "ai"
    # pydantic.ValidationError and json.JSONDecodeError are ValueErrors
    recoverable_errors = (openai.OpenAIError, ValueError)

    def __init__(
        self,
        api_key: str = "",
        model: str = "gemini-2.0-flash",
        base_url: Optional[str] = None,
        timeout: float = 60.0,
        temperature: float = 0.1,
        client: Optional[Any] = None,
        today: Callable[[], date] = _utc_today,
    ):
        """Initialize provider.

        Args:
            api_key: Provider API key; without one the source is unavailable
            model: Chat model name
            base_url: OpenAI-compatible endpoint
            timeout: Request timeout in seconds
            temperature: Sampling temperature (low for factual output)
            client: Pre-built client (injectable for tests)
            today: Clock used in prompts
        """
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.timeout = timeout
        self.temperature = temperature
        self._client = client
        self._today = today

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "LLMSource":
        settings = settings or get_settings()
        return cls(
            api_key=settings.llm_api_key,
            model=settings.llm_model,
            base_url=settings.llm_base_url,
            timeout=settings.llm_timeout_seconds,
            temperature=settings.llm_temperature,
        )

    @property
    def client(self):
        """OpenAI client (lazy initialization)."""
        if self._client is None:
            if not self.api_key:
                raise SourceUnavailable(self.name, "API key not configured")
            self._client = openai.OpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.timeout,
            )
        return self._client

    def _today_text(self) -> str:
        return self._today().strftime("%A, %B %d, %Y")

    def _complete(self, messages: list[dict], json_mode: bool = True) -> str:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        response = self.client.chat.completions.create(**kwargs)
        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise SourceUnavailable(self.name, "Empty response from model")
        return content

    def _complete_json(self, prompt: str) -> dict:
        content = self._complete(
            [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ]
        )
        data = json.loads(content)
        if not isinstance(data, dict):
            raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
        return data

    def fetch(self, resort_name: str, state_hint: Optional[str] = None) -> ResortSnapshot:
        prompt = RESORT_PROMPT.format(
            resort_name=resort_name,
            state_context=f" in {state_hint}" if state_hint else "",
            today=self._today_text(),
        )
        logger.info(f"Requesting {resort_name} from {self.model}")
        payload = ResortPayload.model_validate(self._complete_json(prompt))

        return ResortSnapshot(
            name=payload.name or resort_name,
            location=payload.location,
            source=self.name,
            base_depth=payload.base_depth or 0,
            last_24_hours=payload.last_24_hours or 0,
            last_48_hours=payload.last_48_hours or 0,
            last_7_days=payload.last_7_days or 0,
            lifts_open=int(payload.lifts_open or 0),
            total_lifts=int(payload.total_lifts or 0),
            trails_open=int(payload.trails_open or 0),
            total_trails=int(payload.total_trails or 0),
            ticket_price=payload.ticket_price,
            website_url=payload.website_url,
            conditions=payload.conditions,
            description=payload.description,
            source_urls=[url for url in payload.sources if url],
            forecast=[
                ForecastDay(
                    date=day.date,
                    day_name=day.day_name,
                    snow_inches=day.snow_inches or 0,
                    temp_high=day.temp_high,
                    temp_low=day.temp_low,
                    condition=day.condition,
                    snow_probability=day.snow_probability,
                    wind_speed=day.wind_speed,
                )
                for day in payload.forecast
            ],
        )

    def fetch_top_by_region(self, region: str = "All", limit: int = 10) -> list[TopResortPick]:
        """Rank resorts in a region by predicted 5-day snowfall.

        Args:
            region: State abbreviation, or "All" for the whole US
            limit: Number of resorts to return

        Raises:
            SourceUnavailable: If the provider fails or returns invalid data
        """
        prompt = TOP_RESORTS_PROMPT.format(
            limit=limit,
            location="the USA" if region == "All" else region,
            today=self._today_text(),
        )
        try:
            payload = TopResortsPayload.model_validate(self._complete_json(prompt))
        except SourceUnavailable:
            raise
        except self.recoverable_errors as e:
            raise SourceUnavailable(self.name, f"{type(e).__name__}: {e}") from e

        picks = sorted(payload.resorts, key=lambda p: p.predicted_snow, reverse=True)
        return picks[:limit]

    def answer_question(self, question: str) -> str:
        """Answer a free-text skiing question.

        Raises:
            SourceUnavailable: If the provider fails
        """
        try:
            return self._complete(
                [
                    {"role": "system", "content": ASSISTANT_PROMPT},
                    {"role": "user", "content": question},
                ],
                json_mode=False,
            )
        except SourceUnavailable:
            raise
        except self.recoverable_errors as e:
            raise SourceUnavailable(self.name, f"{type(e).__name__}: {e}") from e
