"""Facet generators backed by OpenAI, with a deterministic stub for testing.

Security: Reads API key from settings only, never hardcoded.
Every payload crosses a strict pydantic parse boundary; anything that does not
match the expected shape is treated as a failed fetch.
"""

import base64
import hashlib
import json
import logging
import re
from datetime import date
from typing import Any, Protocol, TypeVar

from openai import AsyncOpenAI, RateLimitError
from pydantic import BaseModel, ValidationError

from globetrek.app.config import Settings, get_settings
from globetrek.app.llm import prompts
from globetrek.app.models.common import ActivityType, AdvisorySeverity, PriceRange
from globetrek.app.models.facets import (
    AccommodationRecommendations,
    DailyWeather,
    FoodRecommendations,
    Hotel,
    LocalSuggestion,
    LocationPoint,
    Restaurant,
    Transportation,
    TransportationOption,
    TravelAdvisory,
    WeatherForecast,
)
from globetrek.app.models.itinerary import (
    Activity,
    CostBreakdown,
    DayPlan,
    ItineraryCore,
    TripSummary,
)
from globetrek.app.models.trip import TripParameters

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

BUSY_MESSAGE = (
    "Our AI is a bit busy! This is likely a temporary rate limit issue. "
    "Please wait a moment and try again."
)
BLOCKED_MESSAGE = (
    "The request was blocked for safety reasons. "
    "Please try adjusting your destination or interests."
)
EMPTY_MESSAGE = "The AI returned an empty response. Please try adjusting your trip details."
INVALID_MESSAGE = "The AI returned an invalid data format. Please try again."
GENERIC_MESSAGE = (
    "An unexpected error occurred while generating the itinerary. "
    "Please check your connection and try again."
)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$")


class CoreGenerationError(Exception):
    """Core schedule could not be produced; carries a user-facing message."""

    pass


class GenerationBlockedError(Exception):
    """Generator refused the request on content grounds."""

    pass


class FacetGenerator(Protocol):
    """Protocol for itinerary facet generators.

    Only ``generate_core_itinerary`` raises; every other method returns
    ``None`` when it has nothing usable.
    """

    async def generate_core_itinerary(self, params: TripParameters) -> ItineraryCore: ...

    async def generate_accommodation(
        self, params: TripParameters
    ) -> AccommodationRecommendations | None: ...

    async def generate_transportation(self, params: TripParameters) -> Transportation | None: ...

    async def generate_food(self, params: TripParameters) -> FoodRecommendations | None: ...

    async def generate_weather(self, params: TripParameters) -> WeatherForecast | None: ...

    async def get_travel_advisories(
        self, destination: str, start_date: date, end_date: date
    ) -> list[TravelAdvisory] | None: ...

    async def extract_locations(
        self, schedule: list[DayPlan], destination: str
    ) -> list[LocationPoint] | None: ...

    async def generate_image(self, scene: str) -> str | None: ...


def strip_code_fences(text: str) -> str:
    return _FENCE_RE.sub("", text.strip())


def parse_payload(text: str, model: type[M]) -> M:
    """Validate raw generator output against ``model``.

    Raises:
        ValidationError: On malformed JSON or shape mismatch
    """
    return model.model_validate_json(strip_code_fences(text))


def parse_locations(text: str) -> list[LocationPoint] | None:
    """Parse location points, dropping entries that do not validate.

    Returns None when the payload is not a ``{"locations": [...]}`` object.
    """
    try:
        raw = json.loads(strip_code_fences(text))
    except json.JSONDecodeError:
        return None
    entries = raw.get("locations") if isinstance(raw, dict) else raw
    if not isinstance(entries, list):
        return None

    points: list[LocationPoint] = []
    for entry in entries:
        try:
            points.append(LocationPoint.model_validate(entry))
        except ValidationError:
            logger.debug(f"Dropping unusable location entry: {entry!r}")
    return points


class _AccommodationEnvelope(BaseModel):
    accommodation_recommendations: AccommodationRecommendations


class _TransportationEnvelope(BaseModel):
    transportation_options: Transportation


class _FoodEnvelope(BaseModel):
    food_recommendations: FoodRecommendations


class _WeatherEnvelope(BaseModel):
    weather_forecast: WeatherForecast


class _AdvisoryEnvelope(BaseModel):
    advisories: list[TravelAdvisory]


class DeterministicStubClient:
    """Deterministic stub generator for testing (no API key required)."""

    async def generate_core_itinerary(self, params: TripParameters) -> ItineraryCore:
        """Generate a plausible core whose costs add up exactly."""
        schedule: list[DayPlan] = []
        per_day_food = 1200.0 * params.travellers
        per_day_activity = 800.0 * params.travellers
        for day in range(1, params.duration + 1):
            interest = params.interests[(day - 1) % len(params.interests)]
            schedule.append(
                DayPlan(
                    day=day,
                    title=f"{interest.title()} in {params.destination}",
                    activities=[
                        Activity(
                            time="09:00",
                            description=f"Breakfast at a local cafe in {params.destination}",
                            type=ActivityType.food,
                            estimated_cost=per_day_food / 2,
                        ),
                        Activity(
                            time="11:00",
                            description=f"Explore {interest} spots around {params.destination}",
                            type=ActivityType.sightseeing,
                            estimated_cost=per_day_activity,
                        ),
                        Activity(
                            time="19:30",
                            description="Dinner featuring regional cuisine",
                            type=ActivityType.food,
                            estimated_cost=per_day_food / 2,
                        ),
                    ],
                    ai_tip=f"Start early on day {day} to beat the crowds.",
                )
            )

        breakdown = CostBreakdown(
            stay=3000.0 * params.duration,
            travel=5000.0 * params.travellers,
            food=per_day_food * params.duration,
            activities=per_day_activity * params.duration,
            miscellaneous=500.0 * params.duration,
        )
        return ItineraryCore(
            trip_title=f"{params.duration} Days in {params.destination}",
            total_estimated_cost=breakdown.total,
            currency="INR",
            trip_summary=TripSummary(
                description=(
                    f"A {params.travel_style.value.lower()} trip from {params.departure_city} "
                    f"to {params.destination} for {params.travellers} traveller(s)."
                ),
                highlights=[f"{interest.title()} experiences" for interest in params.interests[:5]],
            ),
            detailed_cost_breakdown=breakdown,
            schedule=schedule,
        )

    async def generate_accommodation(
        self, params: TripParameters
    ) -> AccommodationRecommendations | None:
        def tier(label: str, stars: int, nightly: float) -> list[Hotel]:
            return [
                Hotel(
                    name=f"{params.destination} {label} Stay {i}",
                    address=f"{params.destination} center",
                    star_rating=stars,
                    rating=4.0,
                    amenities=["WiFi"],
                    estimated_nightly_cost=nightly,
                )
                for i in range(1, 4)
            ]

        return AccommodationRecommendations(
            budget=tier("Budget", 2, 1500.0),
            standard=tier("Standard", 3, 4000.0),
            luxury=tier("Luxury", 5, 12000.0),
        )

    async def generate_transportation(self, params: TripParameters) -> Transportation | None:
        return Transportation(
            long_distance_options=[
                TransportationOption(
                    mode="Flight",
                    details=f"Direct flight from {params.departure_city} to {params.destination}",
                    estimated_cost=5000.0 * params.travellers,
                    duration="2h 30m",
                    provider_examples=["IndiGo"],
                )
            ],
            local_suggestions=[
                LocalSuggestion(mode="Taxi", suggestion="Use metered taxis or ride-hailing apps.")
            ],
        )

    async def generate_food(self, params: TripParameters) -> FoodRecommendations | None:
        return FoodRecommendations(
            restaurants=[
                Restaurant(
                    name=f"{params.destination} Kitchen",
                    cuisine_type="Regional",
                    estimated_cost_per_person=600.0,
                    rating=4.3,
                    notes="Popular with locals.",
                    price_range=PriceRange.moderate,
                    must_try_dishes=["House special"],
                    ambience="Casual",
                )
            ],
            local_specialties=["Street snacks"],
            ai_foodie_tip="Eat where the locals queue.",
        )

    async def generate_weather(self, params: TripParameters) -> WeatherForecast | None:
        return WeatherForecast(
            daily_forecasts=[
                DailyWeather(
                    day=day,
                    high_temp_celsius=31.0,
                    low_temp_celsius=24.0,
                    description="Sunny",
                    feels_like_celsius=33.0,
                    humidity_percent=70.0,
                    uv_index="7 (High)",
                    chance_of_rain_percent=10.0,
                )
                for day in range(1, min(params.duration, 7) + 1)
            ],
            packing_recommendation="Light cotton clothes and sunscreen.",
            weekly_summary="Warm and mostly dry.",
        )

    async def get_travel_advisories(
        self, destination: str, start_date: date, end_date: date
    ) -> list[TravelAdvisory] | None:
        return [
            TravelAdvisory(
                title="General travel tips",
                details=f"Keep copies of documents while in {destination}.",
                severity=AdvisorySeverity.low,
            )
        ]

    async def extract_locations(
        self, schedule: list[DayPlan], destination: str
    ) -> list[LocationPoint] | None:
        return [
            LocationPoint(name=f"{destination} - {day.title}", lat=15.5, lng=73.8, day=day.day)
            for day in schedule
        ]

    async def generate_image(self, scene: str) -> str | None:
        """Return a tiny SVG data URI derived from the scene text."""
        digest = hashlib.sha256(scene.encode()).hexdigest()[:6]
        svg = (
            '<svg xmlns="http://www.w3.org/2000/svg" width="16" height="9">'
            f'<rect width="16" height="9" fill="#{digest}"/></svg>'
        )
        return "data:image/svg+xml;base64," + base64.b64encode(svg.encode()).decode()


class OpenAIClient:
    """OpenAI-backed facet generator."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        image_model: str = "gpt-image-1",
        currency: str = "INR",
    ):
        """Initialize OpenAI client.

        Args:
            api_key: OpenAI API key (read from settings)
            model: Chat model used for text facets
            image_model: Image model used for day illustrations
            currency: Currency the core schedule is priced in
        """
        self.client = AsyncOpenAI(api_key=api_key)
        self.model = model
        self.image_model = image_model
        self.currency = currency

    async def _complete_json(self, prompt: str) -> str:
        """Run one JSON-mode completion and return the raw text."""
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": prompts.SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            response_format={"type": "json_object"},
            temperature=0.7,
        )
        choice = response.choices[0]
        if choice.finish_reason == "content_filter":
            raise GenerationBlockedError("completion stopped by content filter")
        return (choice.message.content or "").strip()

    async def _generate_facet(self, name: str, prompt: str, model: type[M]) -> M | None:
        """Generate and parse a facet, returning None on any failure."""
        try:
            text = await self._complete_json(prompt)
        except Exception as e:
            logger.error(f"OpenAI call for {name} failed: {e}")
            return None
        if not text:
            logger.warning(f"OpenAI returned empty response for {name}")
            return None
        try:
            return parse_payload(text, model)
        except ValidationError as e:
            logger.warning(f"Malformed {name} payload discarded: {e.error_count()} error(s)")
            return None

    async def generate_core_itinerary(self, params: TripParameters) -> ItineraryCore:
        """Generate the mandatory core section.

        Raises:
            CoreGenerationError: With a user-facing message on any failure
        """
        try:
            text = await self._complete_json(prompts.core_itinerary_prompt(params, self.currency))
        except RateLimitError as e:
            raise CoreGenerationError(BUSY_MESSAGE) from e
        except GenerationBlockedError as e:
            raise CoreGenerationError(BLOCKED_MESSAGE) from e
        except Exception as e:
            logger.error(f"OpenAI core itinerary call failed: {e}")
            if "429" in str(e):
                raise CoreGenerationError(BUSY_MESSAGE) from e
            raise CoreGenerationError(GENERIC_MESSAGE) from e

        if not text:
            raise CoreGenerationError(EMPTY_MESSAGE)

        try:
            return parse_payload(text, ItineraryCore)
        except ValidationError as e:
            logger.error(f"Malformed core itinerary received: {text[:500]}")
            raise CoreGenerationError(INVALID_MESSAGE) from e

    async def generate_accommodation(
        self, params: TripParameters
    ) -> AccommodationRecommendations | None:
        result = await self._generate_facet(
            "accommodation", prompts.accommodation_prompt(params), _AccommodationEnvelope
        )
        return result.accommodation_recommendations if result else None

    async def generate_transportation(self, params: TripParameters) -> Transportation | None:
        result = await self._generate_facet(
            "transportation", prompts.transportation_prompt(params), _TransportationEnvelope
        )
        return result.transportation_options if result else None

    async def generate_food(self, params: TripParameters) -> FoodRecommendations | None:
        result = await self._generate_facet("food", prompts.food_prompt(params), _FoodEnvelope)
        return result.food_recommendations if result else None

    async def generate_weather(self, params: TripParameters) -> WeatherForecast | None:
        result = await self._generate_facet(
            "weather", prompts.weather_prompt(params), _WeatherEnvelope
        )
        return result.weather_forecast if result else None

    async def get_travel_advisories(
        self, destination: str, start_date: date, end_date: date
    ) -> list[TravelAdvisory] | None:
        result = await self._generate_facet(
            "advisories",
            prompts.advisories_prompt(destination, start_date.isoformat(), end_date.isoformat()),
            _AdvisoryEnvelope,
        )
        return result.advisories if result else None

    async def extract_locations(
        self, schedule: list[DayPlan], destination: str
    ) -> list[LocationPoint] | None:
        try:
            text = await self._complete_json(prompts.locations_prompt(schedule, destination))
        except Exception as e:
            logger.error(f"OpenAI call for locations failed: {e}")
            return None
        return parse_locations(text) if text else None

    async def generate_image(self, scene: str) -> str | None:
        """Generate one illustration and return it as a data URI."""
        try:
            response = await self.client.images.generate(
                model=self.image_model,
                prompt=prompts.image_prompt(scene),
                size="1536x1024",
                n=1,
            )
        except Exception as e:
            logger.error(f"Image generation failed: {e}")
            return None

        image: Any = response.data[0] if response.data else None
        if image is not None and image.b64_json:
            return f"data:image/png;base64,{image.b64_json}"
        if image is not None and image.url:
            return image.url

        logger.warning(f"No image data in response for scene: {scene}")
        return None


def get_llm_client(settings: Settings | None = None) -> FacetGenerator:
    """Factory function to get appropriate generator based on config.

    Returns:
        OpenAIClient if API key is configured, DeterministicStubClient otherwise
    """
    settings = settings or get_settings()
    api_key = settings.openai_api_key

    if api_key and api_key.get_secret_value():
        logger.info("Using OpenAI client for itinerary generation")
        return OpenAIClient(
            api_key=api_key.get_secret_value(),
            model=settings.openai_model,
            image_model=settings.openai_image_model,
            currency=settings.currency,
        )
    else:
        logger.warning("No OpenAI API key configured, using deterministic stub client")
        return DeterministicStubClient()
