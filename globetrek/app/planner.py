"""Trip planner - wires session, persistence, orchestration, sharing and bookings."""

import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Literal

from globetrek.app.bookings.service import BookingService, booking_key
from globetrek.app.config import Settings
from globetrek.app.llm.client import FacetGenerator, get_llm_client
from globetrek.app.models.booking import FlightInfo, FlightSearchPreferences
from globetrek.app.models.itinerary import Activity, ItineraryDocument
from globetrek.app.models.trip import TripDraft, TripParameters, UserPreferences
from globetrek.app.orchestration.edits import find_activity
from globetrek.app.orchestration.orchestrator import GenerationHandle, ItineraryOrchestrator
from globetrek.app.orchestration.session import TripSession
from globetrek.app.sharing.codec import ShareLink, ShareSelection, SharingCodec, consume_share_token
from globetrek.app.storage.persistence import PersistenceAdapter, SavedTrip, mint_share_id
from globetrek.app.storage.store import InMemoryKeyValueStore, KeyValueStore, RedisKeyValueStore
from globetrek.app.utils.logging import PipelineLogger, StructuredPipelineLogger
from globetrek.app.utils.metrics import PipelineMetrics, PrometheusPipelineMetrics

logger = logging.getLogger(__name__)


class NoActiveTripError(LookupError):
    """Operation needs a generated trip but the session has none."""

    pass


class SavedTripNotFoundError(LookupError):
    pass


class FlightOfferNotFoundError(LookupError):
    """No remembered search result at the requested position."""

    pass


@dataclass(frozen=True)
class RestoreResult:
    """Outcome of start-up restoration."""

    restored: bool
    source: Literal["shared", "last"] | None
    location: str | None


class TripPlanner:
    """One user's planning session and everything that acts on it."""

    def __init__(
        self,
        settings: Settings,
        store: KeyValueStore,
        generator: FacetGenerator,
        *,
        sleep_fn: Callable[[float], Awaitable[None]] | None = None,
        metrics: PipelineMetrics | None = None,
        pipeline_logger: PipelineLogger | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.session = TripSession()
        self.persistence = PersistenceAdapter(store, metrics=metrics)
        self.persistence.attach(self.session)
        self.orchestrator = ItineraryOrchestrator(
            self.session,
            generator,
            facet_delay_seconds=settings.facet_delay_seconds,
            image_delay_seconds=settings.image_delay_seconds,
            sleep_fn=sleep_fn,
            metrics=metrics,
            pipeline_logger=pipeline_logger,
        )
        self.sharing = SharingCodec(
            self.persistence, settings.share_base_url, settings.share_query_param
        )
        self.bookings = BookingService(store, rng=rng, sleep_fn=sleep_fn)
        # Last flight search per activity, keyed like its booking record
        self._flight_offers: dict[str, list[FlightInfo]] = {}

    async def plan_trip(self, params: TripParameters) -> GenerationHandle:
        """Generate a trip, superseding whatever was in flight."""
        self._flight_offers.clear()
        return await self.orchestrator.begin_generation(params)

    def plan_new_trip(self, user_id: str | None = None) -> TripDraft:
        """Forget the active trip, including its last-trip record.

        Returns:
            An empty trip form seeded from the user's preferences
        """
        self.session.reset()
        self._flight_offers.clear()
        self.persistence.clear_last()
        preferences = self.persistence.load_preferences(user_id) if user_id else None
        return TripDraft.from_preferences(preferences)

    def _require_trip(self) -> tuple[TripParameters, ItineraryDocument]:
        if self.session.details is None or self.session.itinerary is None:
            raise NoActiveTripError("No active trip")
        return self.session.details, self.session.itinerary

    def share(self, selection: ShareSelection | None = None) -> ShareLink:
        """Create a share link for the active trip.

        Raises:
            NoActiveTripError: If there is nothing to share
            ShareLinkError: If the share record cannot be stored
        """
        details, document = self._require_trip()
        return self.sharing.create_share_link(details, document, selection)

    async def restore(self, location: str | None = None) -> RestoreResult:
        """Rehydrate a trip at start-up.

        A share token in ``location`` wins over the last-trip record. The token
        is stripped from the returned location whether or not it resolved.
        Restored trips get their day images regenerated in the background.
        """
        cleaned = location
        if location:
            token, cleaned = consume_share_token(location, self.settings.share_query_param)
            if token:
                shared = self.persistence.load_shared(token)
                if shared is not None:
                    self._activate(shared, token, owns_share_slot=False)
                    logger.info(f"Restored shared trip {token}")
                    return RestoreResult(restored=True, source="shared", location=cleaned)
                logger.warning(f"Shared trip {token} not found")

        last = self.persistence.load_last()
        if last is not None:
            # Last-trip restores get a new share identifier
            self._activate(last, mint_share_id())
            logger.info(f"Restored last trip to {last.details.destination}")
            return RestoreResult(restored=True, source="last", location=cleaned)

        return RestoreResult(restored=False, source=None, location=cleaned)

    def _activate(self, saved: SavedTrip, share_id: str, *, owns_share_slot: bool = True) -> None:
        self._flight_offers.clear()
        self.session.load(
            saved.details, saved.itinerary, share_id, owns_share_slot=owns_share_slot
        )
        self.orchestrator.refresh_images()

    async def wait_for_enrichment(self) -> None:
        """Wait for the most recent background enrichment to finish."""
        task = self.orchestrator.background_task
        if task is not None:
            await task

    # Saved trips and preferences

    def save_current_trip(self, user_id: str) -> bool:
        """Add the active trip to the user's library.

        Returns:
            False if a trip with the same title is already saved

        Raises:
            NoActiveTripError: If there is nothing to save
            StorageError: If the library cannot be written
        """
        details, document = self._require_trip()
        return self.persistence.save_trip(user_id, details, document)

    def saved_trips(self, user_id: str) -> list[SavedTrip]:
        return self.persistence.list_saved_trips(user_id)

    def load_saved_trip(self, user_id: str, index: int) -> None:
        """Make a saved trip the active one under a fresh share identifier.

        Raises:
            SavedTripNotFoundError: If there is no trip at ``index``
        """
        saved = self.persistence.load_saved_trip(user_id, index)
        if saved is None:
            raise SavedTripNotFoundError(f"No saved trip at position {index}")
        self._activate(saved, mint_share_id())
        logger.info(f"Loaded saved trip {saved.itinerary.trip_title!r} for {user_id}")

    def edit_saved_trip(self, user_id: str, index: int) -> TripParameters:
        """Clear the active trip and return a saved trip's parameters for editing.

        Raises:
            SavedTripNotFoundError: If there is no trip at ``index``
        """
        saved = self.persistence.load_saved_trip(user_id, index)
        if saved is None:
            raise SavedTripNotFoundError(f"No saved trip at position {index}")
        self.session.reset()
        self._flight_offers.clear()
        return saved.details

    def delete_saved_trip(self, user_id: str, index: int) -> None:
        if not self.persistence.delete_saved_trip(user_id, index):
            raise SavedTripNotFoundError(f"No saved trip at position {index}")

    def preferences(self, user_id: str) -> UserPreferences:
        return self.persistence.load_preferences(user_id)

    def update_preferences(self, user_id: str, preferences: UserPreferences) -> None:
        self.persistence.save_preferences(user_id, preferences)

    # Flights and bookings

    def activity(self, day: int, index: int) -> Activity:
        """Activity of the active trip.

        Raises:
            NoActiveTripError: If there is no active trip
            ActivityNotFoundError: If the day or index is out of range
        """
        _, document = self._require_trip()
        return find_activity(document, day, index)

    async def search_flights(
        self, day: int, index: int, preferences: FlightSearchPreferences | None = None
    ) -> list[FlightInfo]:
        """Search flights for an activity and remember the results for selection."""
        details, _ = self._require_trip()
        activity = self.activity(day, index)
        flights = await self.bookings.search_flights(activity, details.travellers, preferences)
        self._flight_offers[booking_key(activity)] = flights
        return flights

    def select_flight(self, day: int, index: int, option: int) -> None:
        """Attach the ``option``-th result of the activity's last flight search.

        Raises:
            FlightOfferNotFoundError: If there was no search or no such result
        """
        activity = self.activity(day, index)
        offers = self._flight_offers.get(booking_key(activity), [])
        if not 0 <= option < len(offers):
            raise FlightOfferNotFoundError(
                f"No flight option {option} for day {day} activity {index}; search first"
            )
        self.session.select_flight(day, index, offers[option])

    def booked_activities(
        self, document: ItineraryDocument | None = None
    ) -> list[tuple[int, int]]:
        """(day, index) of every activity with a stored booking."""
        document = document or self.session.itinerary
        if document is None:
            return []
        return [
            (plan.day, position)
            for plan in document.schedule
            for position, activity in enumerate(plan.activities)
            if self.bookings.is_booked(activity)
        ]


def build_store(settings: Settings) -> KeyValueStore:
    if settings.storage_backend == "redis":
        if not settings.redis_url:
            raise ValueError("REDIS_URL is required when STORAGE_BACKEND=redis")
        return RedisKeyValueStore.from_url(settings.redis_url)
    return InMemoryKeyValueStore(capacity_chars=settings.storage_capacity_chars)


def build_planner(settings: Settings) -> TripPlanner:
    """Production wiring: configured store and generator, Prometheus metrics."""
    return TripPlanner(
        settings,
        build_store(settings),
        get_llm_client(settings),
        metrics=PrometheusPipelineMetrics(),
        pipeline_logger=StructuredPipelineLogger(),
    )
