"""Trip session - the single owner of the active itinerary."""

import logging
from collections.abc import Callable

from globetrek.app.models.booking import FlightInfo
from globetrek.app.models.common import Priority
from globetrek.app.models.itinerary import ItineraryDocument
from globetrek.app.models.trip import TripParameters
from globetrek.app.orchestration import edits

logger = logging.getLogger(__name__)

Mutator = Callable[[ItineraryDocument], ItineraryDocument]
Listener = Callable[["TripSession"], None]


class TripSession:
    """Active trip parameters and document, plus a generation token.

    Every pipeline captures the token when it starts. Results carrying an
    older token are discarded, so a superseded generation can never write
    into the document of a newer one. Listeners run after each mutation.
    """

    def __init__(self) -> None:
        self.details: TripParameters | None = None
        self.itinerary: ItineraryDocument | None = None
        self.share_id: str | None = None
        # False when the share slot was adopted from a share token
        self.owns_share_slot = False
        self.generation = 0
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def _notify(self) -> None:
        for listener in self._listeners:
            listener(self)

    def is_current(self, token: int) -> bool:
        return token == self.generation

    def begin(self, details: TripParameters) -> int:
        """Start a generation for new parameters; supersedes any in flight."""
        self.generation += 1
        self.details = details
        self.itinerary = None
        self.share_id = None
        self.owns_share_slot = False
        return self.generation

    def install(self, token: int, document: ItineraryDocument, share_id: str | None) -> bool:
        """Install the first document of a generation if it is still current."""
        if not self.is_current(token):
            return False
        self.itinerary = document
        self.share_id = share_id
        self.owns_share_slot = share_id is not None
        self._notify()
        return True

    def load(
        self,
        details: TripParameters,
        document: ItineraryDocument,
        share_id: str | None,
        *,
        owns_share_slot: bool = True,
    ) -> int:
        """Replace the session with a rehydrated trip and return its token.

        Args:
            details: Trip parameters
            document: Rehydrated document
            share_id: Identifier of the slot the session is mirrored to
            owns_share_slot: False when ``share_id`` came from a share link
        """
        self.generation += 1
        self.details = details
        self.itinerary = document
        self.share_id = share_id
        self.owns_share_slot = share_id is not None and owns_share_slot
        self._notify()
        return self.generation

    def reset(self) -> None:
        """Drop the active trip and orphan any running pipeline."""
        self.generation += 1
        self.details = None
        self.itinerary = None
        self.share_id = None
        self.owns_share_slot = False

    def update(self, mutator: Mutator, token: int | None = None) -> bool:
        """Apply ``mutator`` to the latest document.

        Args:
            mutator: Pure function from document to document
            token: Generation the change belongs to (None = whatever is current)

        Returns:
            False if the token is stale or there is no document, True otherwise
        """
        if token is not None and not self.is_current(token):
            logger.debug(f"Discarding update from superseded generation {token}")
            return False
        if self.itinerary is None:
            return False
        self.itinerary = mutator(self.itinerary)
        self._notify()
        return True

    def set_activity_priority(self, day: int, index: int, priority: Priority) -> bool:
        return self.update(lambda doc: edits.set_activity_priority(doc, day, index, priority))

    def move_activity(
        self, source_day: int, source_index: int, target_day: int, target_index: int
    ) -> bool:
        return self.update(
            lambda doc: edits.move_activity(
                doc, source_day, source_index, target_day, target_index
            )
        )

    def select_flight(self, day: int, index: int, flight: FlightInfo) -> bool:
        travellers = self.details.travellers if self.details else 1
        return self.update(lambda doc: edits.select_flight(doc, day, index, flight, travellers))
