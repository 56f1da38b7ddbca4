"""Trip endpoints - generation, edits, bookings, sharing, saved trips and restore."""

import logging
from collections.abc import Awaitable, Callable
from typing import Annotated, Any, TypeVar

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from pydantic import BaseModel, Field

from globetrek.app.api.deps import get_planner
from globetrek.app.bookings.service import BookingError, BookingStorageError, PaymentDetailsError
from globetrek.app.llm.client import CoreGenerationError
from globetrek.app.models.booking import (
    FlightBookingDetails,
    FlightInfo,
    FlightSearchPreferences,
    HotelBookingDetails,
    LocalTransportBookingDetails,
)
from globetrek.app.models.common import ActivityType, Priority
from globetrek.app.models.itinerary import DayPlan, ItineraryDocument
from globetrek.app.models.trip import TripDraft, TripParameters, UserPreferences
from globetrek.app.orchestration.edits import (
    ActivityMoveError,
    ActivityNotFoundError,
    filter_schedule,
)
from globetrek.app.orchestration.orchestrator import GenerationSupersededError
from globetrek.app.planner import (
    FlightOfferNotFoundError,
    NoActiveTripError,
    SavedTripNotFoundError,
    TripPlanner,
)
from globetrek.app.sharing.codec import ShareLinkError, ShareSelection
from globetrek.app.storage.store import StorageError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/trips", tags=["trips"])

PlannerDep = Annotated[TripPlanner, Depends(get_planner)]
UserIdDep = Annotated[str, Header(alias="X-User-Id", min_length=1)]

T = TypeVar("T")



class ActivityRef(BaseModel):
    day: int
    index: int


class TripStateResponse(BaseModel):
    """Active trip as the client sees it."""

    details: TripParameters
    itinerary: ItineraryDocument
    share_id: str | None
    generation: int
    booked: list[ActivityRef] = Field(default_factory=list)


class PriorityUpdate(BaseModel):
    priority: Priority


class MoveRequest(BaseModel):
    target_day: int = Field(..., ge=1)
    target_index: int = Field(..., ge=0)


class FlightChoice(BaseModel):
    """Position of a result in the activity's last flight search."""

    option: int = Field(..., ge=0)


class BookingResponse(BaseModel):
    confirmation_message: str
    booking_id: str | None = None


class ShareResponse(BaseModel):
    share_id: str
    url: str


class SaveTripResponse(BaseModel):
    saved: bool
    message: str


class SavedTripSummary(BaseModel):
    """One entry of a user's saved-trips library."""

    index: int
    trip_title: str
    destination: str
    start_date: str
    end_date: str


class ResumeRequest(BaseModel):
    """Request body for POST /trips/resume."""

    location: str | None = Field(None, description="Page location, possibly carrying a share token")


class ResumeResponse(BaseModel):
    restored: bool
    source: str | None
    location: str | None
    trip: TripStateResponse | None = None


def _state(planner: TripPlanner) -> TripStateResponse:
    session = planner.session
    if session.details is None or session.itinerary is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No active trip")
    return TripStateResponse(
        details=session.details,
        itinerary=session.itinerary,
        share_id=session.share_id,
        generation=session.generation,
        booked=[
            ActivityRef(day=day, index=index)
            for day, index in planner.booked_activities(session.itinerary)
        ],
    )


def _apply_edit(planner: TripPlanner, edit: Callable[[], Any]) -> TripStateResponse:
    """Run a session edit and translate its failures to HTTP errors."""
    if planner.session.itinerary is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No active trip")
    try:
        edit()
    except ActivityMoveError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    except (ActivityNotFoundError, FlightOfferNotFoundError) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return _state(planner)


def _activity_call(fn: Callable[[], T]) -> T:
    """Resolve an activity of the active trip, mapping lookup failures to 404."""
    try:
        return fn()
    except (NoActiveTripError, ActivityNotFoundError) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


async def _book(call: Awaitable[T]) -> T:
    try:
        return await call
    except PaymentDetailsError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e
    except BookingStorageError as e:
        raise HTTPException(status_code=status.HTTP_507_INSUFFICIENT_STORAGE, detail=str(e)) from e
    except BookingError as e:
        raise HTTPException(status_code=status.HTTP_402_PAYMENT_REQUIRED, detail=str(e)) from e


@router.post("", response_model=TripStateResponse, status_code=status.HTTP_201_CREATED)
async def create_trip(params: TripParameters, planner: PlannerDep) -> TripStateResponse:
    """Generate the core schedule and start background enrichment.

    The response carries the skeleton document: every facet and day image
    is still loading.
    """
    try:
        handle = await planner.plan_trip(params)
    except CoreGenerationError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e
    except GenerationSupersededError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e

    return TripStateResponse(
        details=params,
        itinerary=handle.document,
        share_id=handle.share_id,
        generation=handle.token,
        booked=[
            ActivityRef(day=day, index=index)
            for day, index in planner.booked_activities(handle.document)
        ],
    )


@router.post("/new", response_model=TripDraft)
async def start_new_trip(
    planner: PlannerDep, user_id: Annotated[str | None, Header(alias="X-User-Id")] = None
) -> TripDraft:
    """Drop the active trip and return a form seeded from the user's preferences."""
    return planner.plan_new_trip(user_id)


@router.get("/current", response_model=TripStateResponse)
async def get_current_trip(planner: PlannerDep) -> TripStateResponse:
    return _state(planner)


@router.delete("/current", status_code=status.HTTP_204_NO_CONTENT)
async def plan_new_trip(planner: PlannerDep) -> None:
    """Drop the active trip and its last-trip record."""
    planner.plan_new_trip()


@router.get("/current/schedule", response_model=list[DayPlan])
async def get_filtered_schedule(
    planner: PlannerDep,
    type: Annotated[list[ActivityType] | None, Query()] = None,
    priority: Annotated[list[Priority] | None, Query()] = None,
) -> list[DayPlan]:
    """Schedule narrowed to the given activity types and priorities."""
    state = _state(planner)
    return filter_schedule(state.itinerary.schedule, type or (), priority or ())


@router.patch("/current/days/{day}/activities/{index}", response_model=TripStateResponse)
async def set_priority(
    day: int, index: int, body: PriorityUpdate, planner: PlannerDep
) -> TripStateResponse:
    return _apply_edit(
        planner, lambda: planner.session.set_activity_priority(day, index, body.priority)
    )


@router.post("/current/days/{day}/activities/{index}/move", response_model=TripStateResponse)
async def move_activity(
    day: int, index: int, body: MoveRequest, planner: PlannerDep
) -> TripStateResponse:
    """Reorder an activity; moves across days are rejected with 409."""
    return _apply_edit(
        planner,
        lambda: planner.session.move_activity(day, index, body.target_day, body.target_index),
    )


@router.post(
    "/current/days/{day}/activities/{index}/flights/search", response_model=list[FlightInfo]
)
async def search_flights(
    day: int,
    index: int,
    planner: PlannerDep,
    preferences: FlightSearchPreferences | None = None,
) -> list[FlightInfo]:
    """Simulated flight search for one activity, for every traveller."""
    _activity_call(lambda: planner.activity(day, index))
    return await planner.search_flights(day, index, preferences)


@router.post("/current/days/{day}/activities/{index}/flight", response_model=TripStateResponse)
async def select_flight(
    day: int, index: int, body: FlightChoice, planner: PlannerDep
) -> TripStateResponse:
    """Attach one of the activity's flight search results."""
    return _apply_edit(planner, lambda: planner.select_flight(day, index, body.option))


@router.post("/current/days/{day}/activities/{index}/book/train", response_model=BookingResponse)
async def book_train(day: int, index: int, planner: PlannerDep) -> BookingResponse:
    activity = _activity_call(lambda: planner.activity(day, index))
    message = await _book(planner.bookings.book_train_ticket(activity))
    return BookingResponse(confirmation_message=message)


@router.post("/current/days/{day}/activities/{index}/book/flight", response_model=BookingResponse)
async def book_flight(
    day: int, index: int, body: FlightBookingDetails, planner: PlannerDep
) -> BookingResponse:
    activity = _activity_call(lambda: planner.activity(day, index))
    confirmation = await _book(planner.bookings.book_flight(activity, body))
    return BookingResponse(**confirmation.model_dump())


@router.post("/current/days/{day}/activities/{index}/book/hotel", response_model=BookingResponse)
async def book_hotel(
    day: int, index: int, body: HotelBookingDetails, planner: PlannerDep
) -> BookingResponse:
    activity = _activity_call(lambda: planner.activity(day, index))
    confirmation = await _book(planner.bookings.book_hotel(activity, body))
    return BookingResponse(**confirmation.model_dump())


@router.post("/current/days/{day}/activities/{index}/book/ride", response_model=BookingResponse)
async def book_ride(
    day: int, index: int, body: LocalTransportBookingDetails, planner: PlannerDep
) -> BookingResponse:
    activity = _activity_call(lambda: planner.activity(day, index))
    confirmation = await _book(planner.bookings.book_local_transport(activity, body))
    return BookingResponse(**confirmation.model_dump())


@router.get("/current/days/{day}/activities/{index}/booking")
async def get_booking(day: int, index: int, planner: PlannerDep) -> dict[str, Any]:
    """Stored confirmation of a booked activity."""
    activity = _activity_call(lambda: planner.activity(day, index))
    details = planner.bookings.get_booking_details(activity)
    if details is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Activity is not booked")
    return details


@router.post("/current/share", response_model=ShareResponse, status_code=status.HTTP_201_CREATED)
async def share_trip(planner: PlannerDep, selection: ShareSelection | None = None) -> ShareResponse:
    """Store a redacted copy of the active trip and return its link."""
    try:
        link = planner.share(selection)
    except NoActiveTripError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ShareLinkError as e:
        raise HTTPException(status_code=status.HTTP_507_INSUFFICIENT_STORAGE, detail=str(e)) from e
    return ShareResponse(share_id=link.share_id, url=link.url)


@router.post("/current/save", response_model=SaveTripResponse)
async def save_trip(planner: PlannerDep, user_id: UserIdDep) -> SaveTripResponse:
    """Add the active trip to the caller's library; titles are saved once."""
    try:
        saved = planner.save_current_trip(user_id)
    except NoActiveTripError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except StorageError as e:
        raise HTTPException(
            status_code=status.HTTP_507_INSUFFICIENT_STORAGE,
            detail="Could not save trip. Storage may be full.",
        ) from e
    message = "Trip saved successfully!" if saved else "This trip is already saved."
    return SaveTripResponse(saved=saved, message=message)


@router.get("/saved", response_model=list[SavedTripSummary])
async def list_saved_trips(planner: PlannerDep, user_id: UserIdDep) -> list[SavedTripSummary]:
    return [
        SavedTripSummary(
            index=index,
            trip_title=trip.itinerary.trip_title,
            destination=trip.details.destination,
            start_date=trip.details.start_date.isoformat(),
            end_date=trip.details.end_date.isoformat(),
        )
        for index, trip in enumerate(planner.saved_trips(user_id))
    ]


@router.post("/saved/{index}/load", response_model=TripStateResponse)
async def load_saved_trip(index: int, planner: PlannerDep, user_id: UserIdDep) -> TripStateResponse:
    """Make a saved trip active; its day images are regenerated."""
    try:
        planner.load_saved_trip(user_id, index)
    except SavedTripNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return _state(planner)


@router.post("/saved/{index}/edit", response_model=TripParameters)
async def edit_saved_trip(index: int, planner: PlannerDep, user_id: UserIdDep) -> TripParameters:
    """Clear the active trip and return a saved trip's parameters for the form."""
    try:
        return planner.edit_saved_trip(user_id, index)
    except SavedTripNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.delete("/saved/{index}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_saved_trip(index: int, planner: PlannerDep, user_id: UserIdDep) -> None:
    try:
        planner.delete_saved_trip(user_id, index)
    except SavedTripNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except StorageError as e:
        raise HTTPException(status_code=status.HTTP_507_INSUFFICIENT_STORAGE, detail=str(e)) from e


@router.get("/preferences", response_model=UserPreferences)
async def get_preferences(planner: PlannerDep, user_id: UserIdDep) -> UserPreferences:
    return planner.preferences(user_id)


@router.put("/preferences", response_model=UserPreferences)
async def update_preferences(
    preferences: UserPreferences, planner: PlannerDep, user_id: UserIdDep
) -> UserPreferences:
    try:
        planner.update_preferences(user_id, preferences)
    except StorageError as e:
        raise HTTPException(status_code=status.HTTP_507_INSUFFICIENT_STORAGE, detail=str(e)) from e
    return preferences


@router.post("/resume", response_model=ResumeResponse)
async def resume(body: ResumeRequest, planner: PlannerDep) -> ResumeResponse:
    """Restore a shared or last trip at start-up."""
    result = await planner.restore(body.location)
    trip = _state(planner) if result.restored else None
    return ResumeResponse(
        restored=result.restored,
        source=result.source,
        location=result.location,
        trip=trip,
    )
