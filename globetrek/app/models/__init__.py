"""Models package - re-exports for convenience."""

from globetrek.app.models.booking import (
    BookingConfirmation,
    FlightBookingDetails,
    FlightInfo,
    FlightSearchPreferences,
    HotelBookingDetails,
    LocalTransportBookingDetails,
    Payment,
    Person,
)
from globetrek.app.models.common import (
    ActivityType,
    AdvisorySeverity,
    FacetName,
    PriceRange,
    Priority,
    TravelStyle,
)
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
    ItineraryDocument,
    TravelDetails,
    TripSummary,
)
from globetrek.app.models.trip import TripDraft, TripParameters, UserPreferences

__all__ = [
    # Common
    "TravelStyle",
    "ActivityType",
    "Priority",
    "AdvisorySeverity",
    "PriceRange",
    "FacetName",
    # Trip
    "TripParameters",
    "TripDraft",
    "UserPreferences",
    # Itinerary
    "ItineraryCore",
    "ItineraryDocument",
    "DayPlan",
    "Activity",
    "TravelDetails",
    "TripSummary",
    "CostBreakdown",
    # Facets
    "Hotel",
    "AccommodationRecommendations",
    "TransportationOption",
    "LocalSuggestion",
    "Transportation",
    "Restaurant",
    "FoodRecommendations",
    "DailyWeather",
    "WeatherForecast",
    "TravelAdvisory",
    "LocationPoint",
    # Booking
    "FlightInfo",
    "FlightSearchPreferences",
    "Payment",
    "Person",
    "FlightBookingDetails",
    "HotelBookingDetails",
    "LocalTransportBookingDetails",
    "BookingConfirmation",
]
