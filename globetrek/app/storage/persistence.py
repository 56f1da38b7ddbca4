"""Persistence adapter - durable mirror of the active trip.

Record layout:
    lastTripDetails  -> TripParameters JSON
    lastItinerary    -> redacted ItineraryDocument JSON
    trip_<shareId>   -> {"details": ..., "itinerary": <redacted document>}
    savedTrips_<uid> -> [{"details": ..., "itinerary": <redacted document>}, ...]
    userPrefs_<uid>  -> UserPreferences JSON

Redacted documents carry neither loading flags nor day images; both are
transient and regenerated after a reload.
"""

import json
import logging
import uuid
from typing import Any

from pydantic import BaseModel, TypeAdapter, ValidationError

from globetrek.app.models.itinerary import LOADING_FIELDS, ItineraryDocument
from globetrek.app.models.trip import TripParameters, UserPreferences
from globetrek.app.orchestration.session import TripSession
from globetrek.app.storage.store import KeyValueStore, StorageError
from globetrek.app.utils.metrics import PipelineMetrics

logger = logging.getLogger(__name__)

LAST_TRIP_DETAILS_KEY = "lastTripDetails"
LAST_ITINERARY_KEY = "lastItinerary"
SHARED_TRIP_PREFIX = "trip_"
SAVED_TRIPS_PREFIX = "savedTrips_"
USER_PREFS_PREFIX = "userPrefs_"

_REDACTED_FIELDS: dict[str, Any] = {
    **{field: True for field in LOADING_FIELDS},
    "schedule": {"__all__": {"image_url", "image_loading"}},
}


class SavedTrip(BaseModel):
    """Trip parameters and document as read back from storage."""

    details: TripParameters
    itinerary: ItineraryDocument


_SAVED_TRIPS = TypeAdapter(list[SavedTrip])


def mint_share_id() -> str:
    """Create a fresh opaque share identifier."""
    return uuid.uuid4().hex


def shared_trip_key(share_id: str) -> str:
    return f"{SHARED_TRIP_PREFIX}{share_id}"


def saved_trips_key(user_id: str) -> str:
    return f"{SAVED_TRIPS_PREFIX}{user_id}"


def user_prefs_key(user_id: str) -> str:
    return f"{USER_PREFS_PREFIX}{user_id}"


def redact_document(document: ItineraryDocument) -> dict[str, Any]:
    """JSON-ready document without loading flags or image payloads."""
    return document.model_dump(mode="json", exclude=_REDACTED_FIELDS)


def trip_record(details: TripParameters, document: ItineraryDocument) -> dict[str, Any]:
    return {"details": details.model_dump(mode="json"), "itinerary": redact_document(document)}


class PersistenceAdapter:
    """Mirrors session changes into a key-value store and reads them back."""

    def __init__(self, store: KeyValueStore, metrics: PipelineMetrics | None = None) -> None:
        self._store = store
        self._metrics = metrics or PipelineMetrics()
        # Share slot minted for the attached session, released when replaced
        self._session_slot: str | None = None

    def attach(self, session: TripSession) -> None:
        """Write a snapshot after every session mutation."""
        session.subscribe(self.save_session)

    def save_session(self, session: TripSession) -> bool:
        self._release_replaced_slot(session)
        if session.details is None or session.itinerary is None:
            return False
        return self.save(session.details, session.itinerary, session.share_id)

    def save(
        self, details: TripParameters, document: ItineraryDocument, share_id: str | None
    ) -> bool:
        """Best-effort write of the last-trip slot and, if shared, its share slot.

        Returns:
            False if any write failed (the failure is logged, never raised)
        """
        details_json = details.model_dump_json()
        itinerary = redact_document(document)

        try:
            self._store.set(LAST_TRIP_DETAILS_KEY, details_json)
            self._store.set(LAST_ITINERARY_KEY, json.dumps(itinerary))
        except StorageError as e:
            logger.error(f"Failed to save trip to storage, quota may be exceeded: {e}")
            self._metrics.inc_storage_failure("last_trip")
            return False

        if share_id:
            record = {"details": json.loads(details_json), "itinerary": itinerary}
            try:
                self._store.set(shared_trip_key(share_id), json.dumps(record))
            except StorageError as e:
                logger.error(f"Failed to save shared trip {share_id}: {e}")
                self._metrics.inc_storage_failure("shared_trip")
                return False

        return True

    def write_shared(
        self, share_id: str, details: TripParameters, document: ItineraryDocument
    ) -> None:
        """Write one share record.

        Raises:
            StorageError: If the store rejects the write
        """
        try:
            self._store.set(shared_trip_key(share_id), json.dumps(trip_record(details, document)))
        except StorageError:
            self._metrics.inc_storage_failure("shared_trip")
            raise

    def load_shared(self, share_id: str) -> SavedTrip | None:
        """Read a share record; malformed records are deleted."""
        key = shared_trip_key(share_id)
        try:
            raw = self._store.get(key)
        except StorageError as e:
            logger.error(f"Failed to read shared trip {share_id}: {e}")
            return None
        if raw is None:
            return None

        try:
            return SavedTrip.model_validate_json(raw)
        except ValidationError as e:
            logger.error(f"Discarding unreadable shared trip {share_id}: {e.error_count()} error(s)")
            self._remove_quietly(key)
            return None

    def load_last(self) -> SavedTrip | None:
        """Read the last-trip slot; a malformed pair is cleared."""
        try:
            details_raw = self._store.get(LAST_TRIP_DETAILS_KEY)
            itinerary_raw = self._store.get(LAST_ITINERARY_KEY)
        except StorageError as e:
            logger.error(f"Failed to read last trip: {e}")
            return None
        if details_raw is None or itinerary_raw is None:
            return None

        try:
            return SavedTrip(
                details=TripParameters.model_validate_json(details_raw),
                itinerary=ItineraryDocument.model_validate_json(itinerary_raw),
            )
        except ValidationError as e:
            logger.error(f"Discarding unreadable last trip: {e.error_count()} error(s)")
            self.clear_last()
            return None

    def clear_last(self) -> None:
        self._remove_quietly(LAST_TRIP_DETAILS_KEY)
        self._remove_quietly(LAST_ITINERARY_KEY)

    def _release_replaced_slot(self, session: TripSession) -> None:
        if self._session_slot is not None and self._session_slot != session.share_id:
            self._remove_quietly(shared_trip_key(self._session_slot))
            self._session_slot = None
        if session.share_id and session.owns_share_slot:
            self._session_slot = session.share_id

    def _read_saved_trips(self, user_id: str) -> list[SavedTrip]:
        """Read a user's library; unreadable libraries are removed.

        Raises:
            StorageError: If the store cannot be read
        """
        key = saved_trips_key(user_id)
        raw = self._store.get(key)
        if raw is None:
            return []
        try:
            return _SAVED_TRIPS.validate_json(raw)
        except ValidationError as e:
            logger.error(
                f"Discarding unreadable saved trips of {user_id}: {e.error_count()} error(s)"
            )
            self._remove_quietly(key)
            return []

    def _write_saved_trips(self, user_id: str, trips: list[SavedTrip]) -> None:
        records = [trip_record(trip.details, trip.itinerary) for trip in trips]
        try:
            self._store.set(saved_trips_key(user_id), json.dumps(records))
        except StorageError:
            self._metrics.inc_storage_failure("saved_trips")
            raise

    def save_trip(
        self, user_id: str, details: TripParameters, document: ItineraryDocument
    ) -> bool:
        """Add a trip to the user's library.

        Trips are identified by title; saving the same title twice is a no-op.

        Returns:
            False if a trip with this title was already saved

        Raises:
            StorageError: If the library cannot be read or written
        """
        trips = self._read_saved_trips(user_id)
        if any(trip.itinerary.trip_title == document.trip_title for trip in trips):
            return False
        trips.append(SavedTrip(details=details, itinerary=document))
        self._write_saved_trips(user_id, trips)
        logger.info(f"Saved trip {document.trip_title!r} for {user_id}")
        return True

    def list_saved_trips(self, user_id: str) -> list[SavedTrip]:
        try:
            return self._read_saved_trips(user_id)
        except StorageError as e:
            logger.error(f"Failed to read saved trips of {user_id}: {e}")
            return []

    def load_saved_trip(self, user_id: str, index: int) -> SavedTrip | None:
        trips = self.list_saved_trips(user_id)
        if not 0 <= index < len(trips):
            return None
        return trips[index]

    def delete_saved_trip(self, user_id: str, index: int) -> bool:
        """Remove one trip from the library.

        Returns:
            False if there is no trip at ``index``

        Raises:
            StorageError: If the library cannot be read or written
        """
        trips = self._read_saved_trips(user_id)
        if not 0 <= index < len(trips):
            return False
        del trips[index]
        self._write_saved_trips(user_id, trips)
        return True

    def load_preferences(self, user_id: str) -> UserPreferences:
        """User preferences; missing or unreadable records read as empty."""
        try:
            raw = self._store.get(user_prefs_key(user_id))
        except StorageError as e:
            logger.error(f"Failed to read preferences of {user_id}: {e}")
            return UserPreferences()
        if raw is None:
            return UserPreferences()
        try:
            return UserPreferences.model_validate_json(raw)
        except ValidationError as e:
            logger.error(
                f"Discarding unreadable preferences of {user_id}: {e.error_count()} error(s)"
            )
            self._remove_quietly(user_prefs_key(user_id))
            return UserPreferences()

    def save_preferences(self, user_id: str, preferences: UserPreferences) -> None:
        """Store user preferences.

        Raises:
            StorageError: If the store rejects the write
        """
        try:
            self._store.set(user_prefs_key(user_id), preferences.model_dump_json())
        except StorageError:
            self._metrics.inc_storage_failure("preferences")
            raise

    def _remove_quietly(self, key: str) -> None:
        try:
            self._store.remove(key)
        except StorageError as e:
            logger.error(f"Failed to remove {key!r} from storage: {e}")
