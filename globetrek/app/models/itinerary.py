"""Itinerary document models - the evolving trip plan."""

from typing import Any

from pydantic import BaseModel, Field, model_validator

from globetrek.app.models.booking import FlightInfo
from globetrek.app.models.common import ActivityType, FacetName, Priority
from globetrek.app.models.facets import (
    AccommodationRecommendations,
    FoodRecommendations,
    LocationPoint,
    Transportation,
    TravelAdvisory,
    WeatherForecast,
)


class TravelDetails(BaseModel):
    distance: str | None = None
    duration: str | None = None


class Activity(BaseModel):
    """Single scheduled activity."""

    time: str
    description: str
    type: ActivityType
    estimated_cost: float = Field(..., ge=0)
    priority: Priority = Priority.medium
    travel_details: TravelDetails | None = None
    selected_flight: FlightInfo | None = None


class DayPlan(BaseModel):
    """Plan for a single trip day."""

    day: int = Field(..., ge=1)
    title: str
    activities: list[Activity]
    ai_tip: str
    image_url: str | None = None
    image_loading: bool = False


class TripSummary(BaseModel):
    description: str
    highlights: list[str]


class CostBreakdown(BaseModel):
    """Cost buckets that add up to the trip total."""

    stay: float = 0
    travel: float = 0
    food: float = 0
    activities: float = 0
    miscellaneous: float = 0

    @property
    def total(self) -> float:
        return self.stay + self.travel + self.food + self.activities + self.miscellaneous


class ItineraryCore(BaseModel):
    """Mandatory section produced by the core-schedule fetch."""

    trip_title: str
    total_estimated_cost: float = Field(..., ge=0)
    currency: str = "INR"
    trip_summary: TripSummary
    detailed_cost_breakdown: CostBreakdown
    schedule: list[DayPlan]


# facet -> (data field, loading field)
FACET_FIELDS: dict[FacetName, tuple[str, str]] = {
    FacetName.accommodation: ("accommodation_recommendations", "accommodation_loading"),
    FacetName.transportation: ("transportation_options", "transportation_loading"),
    FacetName.food: ("food_recommendations", "food_loading"),
    FacetName.weather: ("weather_forecast", "weather_loading"),
    FacetName.advisories: ("travel_advisories", "advisories_loading"),
    FacetName.locations: ("map_locations", "locations_loading"),
}

# Facets whose failure settles to an empty list instead of an absent value
EMPTY_ON_FAILURE = frozenset({FacetName.advisories, FacetName.locations})

LOADING_FIELDS = frozenset(loading for _, loading in FACET_FIELDS.values())


class ItineraryDocument(ItineraryCore):
    """Core section plus independently loaded facets.

    Each facet is in exactly one state: loading (flag set, no data), settled
    with data, or settled without data. Updates never mutate in place; every
    ``with_*`` method returns a new document.
    """

    accommodation_recommendations: AccommodationRecommendations | None = None
    transportation_options: Transportation | None = None
    food_recommendations: FoodRecommendations | None = None
    weather_forecast: WeatherForecast | None = None
    travel_advisories: list[TravelAdvisory] | None = None
    map_locations: list[LocationPoint] | None = None

    accommodation_loading: bool = False
    transportation_loading: bool = False
    food_loading: bool = False
    weather_loading: bool = False
    advisories_loading: bool = False
    locations_loading: bool = False

    @model_validator(mode="after")
    def validate_loading_exclusive(self) -> "ItineraryDocument":
        """A loading facet never carries data."""
        for facet, (data_field, loading_field) in FACET_FIELDS.items():
            if getattr(self, loading_field) and getattr(self, data_field) is not None:
                raise ValueError(f"{facet.value} cannot be loading and populated at once")
        return self

    @classmethod
    def skeleton(cls, core: ItineraryCore) -> "ItineraryDocument":
        """Document for a fresh core: every facet and day image loading."""
        data = core.model_dump()
        for day in data["schedule"]:
            day["image_url"] = None
            day["image_loading"] = True
        for loading_field in LOADING_FIELDS:
            data[loading_field] = True
        return cls.model_validate(data)

    def facet_value(self, facet: FacetName) -> Any:
        return getattr(self, FACET_FIELDS[facet][0])

    def facet_loading(self, facet: FacetName) -> bool:
        return getattr(self, FACET_FIELDS[facet][1])

    def with_facet(self, facet: FacetName, value: Any | None) -> "ItineraryDocument":
        """Settle a facet: store its payload (or absence) and clear its flag."""
        data_field, loading_field = FACET_FIELDS[facet]
        if value is None and facet in EMPTY_ON_FAILURE:
            value = []
        return self.model_copy(update={data_field: value, loading_field: False})

    def with_all_images_loading(self) -> "ItineraryDocument":
        schedule = [day.model_copy(update={"image_loading": True}) for day in self.schedule]
        return self.model_copy(update={"schedule": schedule})

    def with_day_image(self, day_number: int, image_url: str | None) -> "ItineraryDocument":
        """Settle one day's image; unknown day numbers leave the document as is."""
        schedule = [
            day.model_copy(update={"image_url": image_url, "image_loading": False})
            if day.day == day_number
            else day
            for day in self.schedule
        ]
        return self.model_copy(update={"schedule": schedule})

    def with_schedule(self, schedule: list[DayPlan]) -> "ItineraryDocument":
        return self.model_copy(update={"schedule": schedule})


def schedule_covers_trip(schedule: list[DayPlan], duration: int) -> bool:
    """True when the schedule holds exactly days 1..duration in order."""
    return [day.day for day in schedule] == list(range(1, duration + 1))
