"""Prompt builders for each itinerary facet."""

import json

from globetrek.app.models.itinerary import DayPlan
from globetrek.app.models.trip import TripParameters

SYSTEM_PROMPT = (
    "You are an expert travel planner. Reply with a single valid JSON object that "
    "follows the requested shape exactly. No markdown, no commentary."
)


def core_itinerary_prompt(params: TripParameters, currency: str) -> str:
    budget_line = (
        f"- Target budget: approximately {params.budget:.0f} {currency}. Plan costs around it.\n"
        if params.budget
        else ""
    )
    return (
        "Create a complete day-by-day travel itinerary.\n\n"
        f"- Departure city: {params.departure_city}\n"
        f"- Destination: {params.destination}\n"
        f"- Dates: {params.start_date} to {params.end_date} ({params.duration} days)\n"
        f"- Travellers: {params.travellers}\n"
        f"- Travel style: {params.travel_style.value}\n"
        f"- Interests: {', '.join(params.interests)}\n"
        f"{budget_line}\n"
        "Return keys: trip_title, total_estimated_cost, currency, trip_summary "
        "{description, highlights}, detailed_cost_breakdown {stay, travel, food, "
        "activities, miscellaneous}, schedule [{day, title, ai_tip, activities "
        "[{time, description, type, estimated_cost, travel_details {distance, duration}}]}].\n"
        f"All costs are in {currency} for all travellers. The cost breakdown must sum "
        "exactly to total_estimated_cost. Activity type is one of Food, Sightseeing, "
        f"Activity, Travel, Accommodation. Plan every one of the {params.duration} days, "
        "numbered from 1, each with a helpful ai_tip."
    )


def accommodation_prompt(params: TripParameters) -> str:
    return (
        f"Recommend accommodation in {params.destination} for {params.travellers} people "
        f"with a {params.travel_style.value} travel style. Return "
        '{"accommodation_recommendations": {"budget": [...], "standard": [...], "luxury": [...]}} '
        "with 3 hotels per tier, each with name, address, star_rating, rating (out of 5), "
        "amenities and estimated_nightly_cost."
    )


def transportation_prompt(params: TripParameters) -> str:
    return (
        f"Suggest transportation from {params.departure_city} to {params.destination}. Return "
        '{"transportation_options": {"long_distance_options": [{mode, details, '
        'estimated_cost, duration, provider_examples}], "local_suggestions": [{mode, '
        "suggestion, estimated_cost_range}]}}. Include typical providers and realistic "
        "local cost ranges."
    )


def food_prompt(params: TripParameters) -> str:
    return (
        f"Recommend food in {params.destination} for someone interested in "
        f"{', '.join(params.interests)}. Return "
        '{"food_recommendations": {"restaurants": [{name, cuisine_type, '
        "estimated_cost_per_person, rating, notes, price_range, must_try_dishes, "
        'ambience}], "local_specialties": [...], "ai_foodie_tip": "..."}} with 3-5 '
        "restaurants; price_range is one of $, $$, $$$."
    )


def weather_prompt(params: TripParameters) -> str:
    return (
        f"Generate a plausible weather forecast for {params.destination} from "
        f"{params.start_date} to {params.end_date}. Return "
        '{"weather_forecast": {"weekly_summary": "...", "packing_recommendation": "...", '
        '"daily_forecasts": [{day, high_temp_celsius, low_temp_celsius, description, '
        "feels_like_celsius, humidity_percent, uv_index, chance_of_rain_percent}]}}."
    )


def advisories_prompt(destination: str, start_date: str, end_date: str) -> str:
    return (
        f"As a travel safety expert, list up to 3 travel advisories for {destination} "
        f"between {start_date} and {end_date}: scams, severe weather, strikes or events, "
        'health requirements. Return {"advisories": [{title, details, severity}]} where '
        "severity is Low, Medium, High or Critical. Use an empty list if nothing applies."
    )


def locations_prompt(schedule: list[DayPlan], destination: str) -> str:
    # Descriptions only, long trips otherwise blow the context window
    simplified = [
        {"day": day.day, "activities": [{"description": a.description} for a in day.activities]}
        for day in schedule
    ]
    return (
        f"From this travel schedule for {destination}, identify every landmark, "
        "restaurant, hotel or address mentioned. Return "
        '{"locations": [{name, lat, lng, day}]}, one entry per location per day it '
        "appears on.\n\n"
        f"{json.dumps(simplified, indent=2)}"
    )


def day_scene(destination: str, day_title: str) -> str:
    """Short scene description for one day's illustration."""
    return f"A trip to {destination}: {day_title}"


def image_prompt(scene: str) -> str:
    return (
        "A beautiful, photorealistic photograph of this travel scene: "
        f'"{scene}". Vibrant and inspiring, suitable for an itinerary banner. '
        "No text, no logos, cinematic lighting, 16:9."
    )
