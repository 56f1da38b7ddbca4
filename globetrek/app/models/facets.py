"""Facet payload models - optional itinerary sections."""

from pydantic import BaseModel, Field

from globetrek.app.models.common import AdvisorySeverity, PriceRange


class Hotel(BaseModel):
    """Recommended hotel."""

    name: str
    address: str
    star_rating: float
    rating: float = Field(..., ge=0, le=5, description="User rating out of 5")
    amenities: list[str]
    estimated_nightly_cost: float


class AccommodationRecommendations(BaseModel):
    """Hotels grouped into three price tiers."""

    budget: list[Hotel]
    standard: list[Hotel]
    luxury: list[Hotel]


class TransportationOption(BaseModel):
    """Long-distance way of reaching the destination."""

    mode: str
    details: str
    estimated_cost: float
    duration: str
    provider_examples: list[str] = Field(default_factory=list)


class LocalSuggestion(BaseModel):
    """Way of getting around at the destination."""

    mode: str
    suggestion: str
    estimated_cost_range: str | None = None


class Transportation(BaseModel):
    long_distance_options: list[TransportationOption]
    local_suggestions: list[LocalSuggestion]


class Restaurant(BaseModel):
    name: str
    cuisine_type: str
    estimated_cost_per_person: float
    rating: float
    notes: str
    price_range: PriceRange
    must_try_dishes: list[str]
    ambience: str


class FoodRecommendations(BaseModel):
    restaurants: list[Restaurant]
    local_specialties: list[str]
    ai_foodie_tip: str | None = None


class DailyWeather(BaseModel):
    """Forecast for one trip day."""

    day: int = Field(..., ge=1)
    high_temp_celsius: float
    low_temp_celsius: float
    description: str
    feels_like_celsius: float
    humidity_percent: float
    uv_index: str
    chance_of_rain_percent: float


class WeatherForecast(BaseModel):
    daily_forecasts: list[DailyWeather]
    packing_recommendation: str
    weekly_summary: str


class TravelAdvisory(BaseModel):
    title: str
    details: str
    severity: AdvisorySeverity


class LocationPoint(BaseModel):
    """Point of interest mentioned in the schedule."""

    name: str
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    day: int = Field(..., ge=1)
