"""Simulated booking models."""

from typing import Literal

from pydantic import BaseModel, Field


class FlightInfo(BaseModel):
    """One flight returned by the simulated flight search."""

    airline: str
    departure_time: str
    arrival_time: str
    duration: str
    price: float = Field(..., ge=0, description="Per-person fare")
    stops: int = Field(..., ge=0)


class FlightSearchPreferences(BaseModel):
    airlines: list[str] = Field(default_factory=list)
    time: Literal["Any", "Morning", "Afternoon", "Evening"] = "Any"
    # 2 means any number of stops
    max_stops: int = Field(2, ge=0, le=2)


class Payment(BaseModel):
    card_number: str
    expiry_date: str
    cvc: str


class Person(BaseModel):
    name: str


class FlightBookingDetails(BaseModel):
    passengers: list[Person]
    payment: Payment


class HotelBookingDetails(BaseModel):
    guests: list[Person]
    payment: Payment


class LocalTransportBookingDetails(BaseModel):
    payment: Payment


class BookingConfirmation(BaseModel):
    confirmation_message: str
    booking_id: str
