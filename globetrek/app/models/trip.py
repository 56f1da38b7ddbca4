"""Trip parameter models - user input to generation."""

from datetime import date

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, computed_field, field_validator

from globetrek.app.models.common import TravelStyle


class TripParameters(BaseModel):
    """Immutable trip constraints submitted by the user."""

    model_config = ConfigDict(frozen=True)

    destination: str = Field(..., min_length=1)
    departure_city: str = Field(..., min_length=1)
    start_date: date
    end_date: date
    travellers: int = Field(..., ge=1)
    travel_style: TravelStyle = TravelStyle.standard
    budget: float | None = Field(None, ge=0, description="Optional total budget")
    interests: list[str] = Field(..., min_length=1)

    @field_validator("end_date")
    @classmethod
    def validate_end_after_start(cls, v: date, info: ValidationInfo) -> date:
        """Ensure end >= start."""
        if "start_date" in info.data and v < info.data["start_date"]:
            raise ValueError("end_date must be >= start_date")
        return v

    @field_validator("interests")
    @classmethod
    def validate_interests(cls, v: list[str]) -> list[str]:
        """Drop blank entries and duplicates, keeping order."""
        cleaned: list[str] = []
        for interest in v:
            interest = interest.strip()
            if interest and interest not in cleaned:
                cleaned.append(interest)
        if not cleaned:
            raise ValueError("interests must contain at least one entry")
        return cleaned

    @computed_field  # type: ignore[prop-decorator]
    @property
    def duration(self) -> int:
        """Trip length in days, both ends inclusive."""
        return (self.end_date - self.start_date).days + 1


class UserPreferences(BaseModel):
    """Per-user defaults for new trips."""

    default_departure_city: str | None = None
    default_travel_style: TravelStyle | None = None
    default_interests: list[str] = Field(default_factory=list)


class TripDraft(BaseModel):
    """Partially filled trip form handed out when a new plan starts."""

    destination: str = ""
    departure_city: str = ""
    start_date: date | None = None
    end_date: date | None = None
    travellers: int = 1
    travel_style: TravelStyle = TravelStyle.standard
    interests: list[str] = Field(default_factory=list)

    @classmethod
    def from_preferences(cls, preferences: UserPreferences | None = None) -> "TripDraft":
        if preferences is None:
            return cls()
        return cls(
            departure_city=preferences.default_departure_city or "",
            travel_style=preferences.default_travel_style or TravelStyle.standard,
            interests=list(preferences.default_interests),
        )
