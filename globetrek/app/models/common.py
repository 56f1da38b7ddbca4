"""Common enums shared across all models."""

from enum import Enum


class TravelStyle(str, Enum):
    """Overall spending style for a trip."""

    economy = "Economy"
    standard = "Standard"
    luxury = "Luxury"


class ActivityType(str, Enum):
    """Kind of scheduled activity."""

    food = "Food"
    sightseeing = "Sightseeing"
    activity = "Activity"
    travel = "Travel"
    accommodation = "Accommodation"


class Priority(str, Enum):
    """User-assigned activity priority."""

    high = "High"
    medium = "Medium"
    low = "Low"


class AdvisorySeverity(str, Enum):
    """Travel advisory severity."""

    low = "Low"
    medium = "Medium"
    high = "High"
    critical = "Critical"


class PriceRange(str, Enum):
    """Restaurant price category."""

    budget = "$"
    moderate = "$$"
    expensive = "$$$"


class FacetName(str, Enum):
    """Optional itinerary sections fetched after the core schedule, in fetch order."""

    accommodation = "accommodation"
    transportation = "transportation"
    food = "food"
    weather = "weather"
    advisories = "advisories"
    locations = "locations"
