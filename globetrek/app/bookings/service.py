"""Simulated booking service.

Nothing here talks to a real provider. Outcomes are randomized with fixed
success rates and confirmations are kept in the key-value store, keyed by
the activity they belong to.
"""

import asyncio
import json
import logging
import random
import re
import string
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any

from globetrek.app.models.booking import (
    BookingConfirmation,
    FlightBookingDetails,
    FlightInfo,
    FlightSearchPreferences,
    HotelBookingDetails,
    LocalTransportBookingDetails,
    Payment,
)
from globetrek.app.models.itinerary import Activity
from globetrek.app.storage.store import KeyValueStore, StorageError

logger = logging.getLogger(__name__)

AIRLINES = ["SkyLink Airlines", "AeroVista", "CloudHopper", "Quantum Flights", "Horizon Air"]

TRAIN_SUCCESS_RATE = 0.9
FLIGHT_SUCCESS_RATE = 0.8
HOTEL_SUCCESS_RATE = 0.8
RIDE_SUCCESS_RATE = 0.85

FLIGHT_RESULTS = 20

_CARD_RE = re.compile(r"^\d{16}$")
_EXPIRY_RE = re.compile(r"^(0[1-9]|1[0-2])/\d{2}$")
_CVC_RE = re.compile(r"^\d{3,4}$")
_NON_ALNUM_RE = re.compile(r"[^a-zA-Z0-9]")
_ID_ALPHABET = string.ascii_uppercase + string.digits

INVALID_CARD_MESSAGE = "The provided card number is invalid. Please check and try again."
STORAGE_FULL_MESSAGE = "Failed to save booking. Storage might be full."

_FLIGHT_ERRORS = [
    "The flight booking service is temporarily unavailable. Please try again in a few moments.",
    "Your card was declined. Please check the details or try a different card.",
    "Sorry, seats on this flight are no longer available.",
]
_HOTEL_ERRORS = [
    "The hotel booking service is temporarily unavailable. Please try again in a few moments.",
    "Your card was declined. Please check the details or try a different card.",
    "Unfortunately, this hotel is not available for the selected dates.",
]


class BookingError(Exception):
    """Simulated booking failed or payment details were rejected."""

    pass


class PaymentDetailsError(BookingError):
    """Card number, expiry date or CVC failed validation."""

    pass


class BookingStorageError(BookingError):
    """Confirmation could not be stored."""

    pass


def booking_key(activity: Activity) -> str:
    """Storage key for an activity's booking confirmation."""
    description = _NON_ALNUM_RE.sub("", activity.description)[:30]
    return f"booking_{description}_{activity.time.replace(':', '', 1)}"


def _departure_matches(departure_time: str, time_of_day: str) -> bool:
    hour = int(departure_time.split(":")[0])
    if time_of_day == "Morning":
        return 5 <= hour < 12
    if time_of_day == "Afternoon":
        return 12 <= hour < 18
    if time_of_day == "Evening":
        return hour >= 18
    return True


class BookingService:
    """Mock train, flight, hotel and ride bookings."""

    def __init__(
        self,
        store: KeyValueStore,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
        sleep_fn: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        """Initialize service.

        Args:
            store: Where confirmations are kept
            rng: Random source for outcomes and search results
            clock: Returns the current time (default: UTC now)
            sleep_fn: Simulated network latency (default: asyncio.sleep)
        """
        self._store = store
        self._rng = rng or random.Random()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._sleep = sleep_fn or asyncio.sleep

    def _booking_id(self, prefix: str) -> str:
        suffix = "".join(self._rng.choice(_ID_ALPHABET) for _ in range(9))
        return f"{prefix}-{suffix}"

    def _check_card(self, payment: Payment) -> None:
        if not _CARD_RE.match(payment.card_number.replace(" ", "")):
            raise PaymentDetailsError(INVALID_CARD_MESSAGE)

    def _check_expiry(self, payment: Payment) -> None:
        if not _EXPIRY_RE.match(payment.expiry_date):
            raise PaymentDetailsError("The expiry date is invalid. Please use MM/YY format.")
        month, year = (int(part) for part in payment.expiry_date.split("/"))
        # Card stays valid through the last day of its expiry month
        if month == 12:
            valid_until = datetime(2001 + year, 1, 1, tzinfo=timezone.utc)
        else:
            valid_until = datetime(2000 + year, month + 1, 1, tzinfo=timezone.utc)
        if valid_until < self._clock():
            raise PaymentDetailsError(
                "This card has expired. Please use a different payment method."
            )

    def _record(self, activity: Activity, confirmation: dict[str, Any]) -> None:
        try:
            self._store.set(booking_key(activity), json.dumps(confirmation))
        except StorageError as e:
            logger.error(f"Failed to save booking for {activity.description!r}: {e}")
            raise BookingStorageError(STORAGE_FULL_MESSAGE) from e

    async def book_train_ticket(self, activity: Activity) -> str:
        """Book a train for a travel activity.

        Returns:
            Confirmation message

        Raises:
            BookingError: On a simulated failure
        """
        logger.info(f"Simulating train ticket booking for: {activity.description}")
        await self._sleep(1.0)
        if self._rng.random() >= TRAIN_SUCCESS_RATE:
            raise BookingError("Booking failed. Please try again later.")
        return f"Booking confirmed for: {activity.description}. Check your email for details."

    async def search_flights(
        self,
        activity: Activity,
        passengers: int,
        preferences: FlightSearchPreferences | None = None,
    ) -> list[FlightInfo]:
        """Generate mock flights around the activity's per-person cost, then filter."""
        logger.info(f"Simulating flight search for: {activity.description} ({passengers} passengers)")
        await self._sleep(0.5)
        prefs = preferences or FlightSearchPreferences()
        base_price = activity.estimated_cost / max(passengers, 1) * 0.8

        results: list[FlightInfo] = []
        for _ in range(FLIGHT_RESULTS):
            departure_hour = 6 + self._rng.randrange(15)
            duration_hours = 4 + self._rng.randrange(6)
            arrival_hour = (departure_hour + duration_hours) % 24
            fluctuation = 1 + (self._rng.random() - 0.5) * 0.4
            results.append(
                FlightInfo(
                    airline=self._rng.choice(AIRLINES),
                    departure_time=f"{departure_hour:02d}:{self._rng.randrange(60):02d}",
                    arrival_time=f"{arrival_hour:02d}:{self._rng.randrange(60):02d}",
                    duration=f"{duration_hours}h {self._rng.randrange(60)}m",
                    price=round(base_price * fluctuation),
                    stops=self._rng.randrange(3),
                )
            )

        if prefs.airlines:
            results = [f for f in results if f.airline in prefs.airlines]
        if prefs.time != "Any":
            results = [f for f in results if _departure_matches(f.departure_time, prefs.time)]
        # 2 means any number of stops
        if prefs.max_stops < 2:
            results = [f for f in results if f.stops <= prefs.max_stops]
        return results

    async def book_flight(
        self, activity: Activity, details: FlightBookingDetails
    ) -> BookingConfirmation:
        """Book a flight and store the confirmation.

        Raises:
            BookingError: On invalid payment details or a simulated failure
        """
        logger.info(f"Simulating flight booking for: {activity.description}")
        await self._sleep(1.5)
        self._check_card(details.payment)
        self._check_expiry(details.payment)

        if self._rng.random() >= FLIGHT_SUCCESS_RATE:
            raise BookingError(self._rng.choice(_FLIGHT_ERRORS))

        booking_id = self._booking_id("GT-FLY")
        self._record(
            activity,
            {
                "activity_description": activity.description,
                "booking_time": self._clock().isoformat(),
                "passengers": [p.name for p in details.passengers if p.name],
                "status": "Confirmed",
                "booking_id": booking_id,
            },
        )
        return BookingConfirmation(
            confirmation_message=f"Flight booked for {len(details.passengers)} passenger(s)!",
            booking_id=booking_id,
        )

    async def book_hotel(
        self, activity: Activity, details: HotelBookingDetails
    ) -> BookingConfirmation:
        """Book a hotel and store the confirmation.

        Raises:
            BookingError: On invalid payment details or a simulated failure
        """
        logger.info(f"Simulating hotel booking for: {activity.description}")
        await self._sleep(1.0)
        self._check_card(details.payment)
        if not _CVC_RE.match(details.payment.cvc):
            raise PaymentDetailsError(
                "The CVC is invalid. Please check the 3 or 4 digit code on your card."
            )

        if self._rng.random() >= HOTEL_SUCCESS_RATE:
            raise BookingError(self._rng.choice(_HOTEL_ERRORS))

        booking_id = self._booking_id("GT-HTL")
        self._record(
            activity,
            {
                "activity_description": activity.description,
                "booking_time": self._clock().isoformat(),
                "guests": [g.name for g in details.guests if g.name],
                "status": "Confirmed",
                "booking_id": booking_id,
            },
        )
        return BookingConfirmation(
            confirmation_message=f"Hotel booking confirmed for: {activity.description}.",
            booking_id=booking_id,
        )

    async def book_local_transport(
        self, activity: Activity, details: LocalTransportBookingDetails
    ) -> BookingConfirmation:
        logger.info(f"Simulating local transport booking for: {activity.description}")
        await self._sleep(1.0)
        self._check_card(details.payment)

        if self._rng.random() >= RIDE_SUCCESS_RATE:
            raise BookingError(
                "The ride service is currently unavailable in this area. Please try again later."
            )

        booking_id = self._booking_id("GT-RIDE")
        self._record(
            activity,
            {
                "status": "Confirmed",
                "booking_time": self._clock().isoformat(),
                "booking_id": booking_id,
            },
        )
        return BookingConfirmation(
            confirmation_message=f'Your ride for "{activity.description}" is confirmed.',
            booking_id=booking_id,
        )

    def is_booked(self, activity: Activity) -> bool:
        try:
            return self._store.get(booking_key(activity)) is not None
        except StorageError as e:
            logger.error(f"Could not check booking status: {e}")
            return False

    def get_booking_details(self, activity: Activity) -> dict[str, Any] | None:
        """Stored confirmation for an activity, or None if absent or unreadable."""
        try:
            raw = self._store.get(booking_key(activity))
        except StorageError as e:
            logger.error(f"Failed to retrieve booking details: {e}")
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse booking details: {e}")
            return None
