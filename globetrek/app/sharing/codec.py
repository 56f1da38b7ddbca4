"""Sharing codec - redacted, link-addressable copies of a trip.

Deselected sections keep their shape: text becomes a placeholder, lists
become empty and numbers become zero, so a shared document reads exactly
like a normal one.
"""

import logging
from dataclasses import dataclass
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from pydantic import BaseModel

from globetrek.app.models.facets import (
    AccommodationRecommendations,
    FoodRecommendations,
    Transportation,
    WeatherForecast,
)
from globetrek.app.models.itinerary import CostBreakdown, ItineraryDocument, TripSummary
from globetrek.app.models.trip import TripParameters
from globetrek.app.storage.persistence import PersistenceAdapter, mint_share_id
from globetrek.app.storage.store import StorageError

logger = logging.getLogger(__name__)

NOT_SHARED = "Not shared."

SHARE_FAILED_MESSAGE = "Could not save shared trip. Storage may be full."


class ShareLinkError(Exception):
    """Share record could not be written; carries a user-facing message."""

    pass


class ShareSelection(BaseModel):
    """Which sections of a trip go into a shared copy.

    ``days`` narrows the schedule to the listed day numbers; None keeps
    every day. It has no effect when ``itinerary`` is False.
    """

    summary: bool = True
    itinerary: bool = True
    days: set[int] | None = None
    accommodation: bool = True
    transportation: bool = True
    food: bool = True
    weather: bool = True
    budget: bool = True

    @classmethod
    def only(cls, *sections: str) -> "ShareSelection":
        """Selection with just the named sections switched on."""
        unknown = {s for s in sections if s not in cls.model_fields or s == "days"}
        if unknown:
            raise ValueError(f"Unknown share sections: {sorted(unknown)}")
        flags = {name: name in sections for name in cls.model_fields if name != "days"}
        return cls(**flags)


@dataclass(frozen=True)
class ShareLink:
    share_id: str
    url: str


def redact_for_share(document: ItineraryDocument, selection: ShareSelection) -> ItineraryDocument:
    """Copy of ``document`` with every deselected section replaced by its placeholder."""
    update: dict[str, object] = {}

    if not selection.summary:
        update["trip_summary"] = TripSummary(description=NOT_SHARED, highlights=[])
    if not selection.accommodation:
        update["accommodation_recommendations"] = AccommodationRecommendations(
            budget=[], standard=[], luxury=[]
        )
    if not selection.transportation:
        update["transportation_options"] = Transportation(
            long_distance_options=[], local_suggestions=[]
        )
    if not selection.food:
        update["food_recommendations"] = FoodRecommendations(
            restaurants=[], local_specialties=[], ai_foodie_tip=NOT_SHARED
        )
    if not selection.weather:
        update["weather_forecast"] = WeatherForecast(
            daily_forecasts=[], packing_recommendation=NOT_SHARED, weekly_summary=NOT_SHARED
        )
    if not selection.budget:
        update["total_estimated_cost"] = 0.0
        update["detailed_cost_breakdown"] = CostBreakdown()

    # Map pins follow the schedule they were extracted from
    if not selection.itinerary:
        update["schedule"] = []
        if document.map_locations is not None:
            update["map_locations"] = []
    elif selection.days is not None:
        update["schedule"] = [day for day in document.schedule if day.day in selection.days]
        if document.map_locations is not None:
            update["map_locations"] = [
                point for point in document.map_locations if point.day in selection.days
            ]

    # Placeholders settle their facet
    for field in ("accommodation", "transportation", "food", "weather"):
        if not getattr(selection, field):
            update[f"{field}_loading"] = False

    return document.model_copy(update=update)


def build_share_url(base_url: str, query_param: str, share_id: str) -> str:
    """Append ``query_param=share_id`` to ``base_url``, keeping its other parameters."""
    parts = urlsplit(base_url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != query_param]
    query.append((query_param, share_id))
    return urlunsplit(parts._replace(query=urlencode(query)))


def consume_share_token(location: str, query_param: str) -> tuple[str | None, str]:
    """Extract the share token from a location and strip it.

    Returns:
        (token or None, location without the token parameter)
    """
    parts = urlsplit(location)
    pairs = parse_qsl(parts.query, keep_blank_values=True)
    token: str | None = None
    kept: list[tuple[str, str]] = []
    for key, value in pairs:
        if key == query_param:
            if token is None and value:
                token = value
        else:
            kept.append((key, value))
    return token, urlunsplit(parts._replace(query=urlencode(kept)))


class SharingCodec:
    """Writes redacted share records and hands back links to them."""

    def __init__(
        self,
        persistence: PersistenceAdapter,
        base_url: str,
        query_param: str = "tripId",
    ) -> None:
        self._persistence = persistence
        self._base_url = base_url
        self._query_param = query_param

    def create_share_link(
        self,
        details: TripParameters,
        document: ItineraryDocument,
        selection: ShareSelection | None = None,
    ) -> ShareLink:
        """Persist a redacted copy under a fresh identifier.

        The live document is never touched.

        Raises:
            ShareLinkError: If the store rejects the record
        """
        shared = redact_for_share(document, selection or ShareSelection())
        share_id = mint_share_id()
        try:
            self._persistence.write_shared(share_id, details, shared)
        except StorageError as e:
            logger.error(f"Error saving shared trip {share_id}: {e}")
            raise ShareLinkError(SHARE_FAILED_MESSAGE) from e

        url = build_share_url(self._base_url, self._query_param, share_id)
        logger.info(f"Created share link {share_id} for {details.destination}")
        return ShareLink(share_id=share_id, url=url)
