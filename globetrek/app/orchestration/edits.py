"""User edits to a generated itinerary.

All functions are pure: they return a new document and leave the input alone.
Days are addressed by day number, not list position, so they work on shared
views whose schedule has gaps.
"""

from collections.abc import Callable, Iterable

from globetrek.app.models.booking import FlightInfo
from globetrek.app.models.common import ActivityType, Priority
from globetrek.app.models.itinerary import Activity, DayPlan, ItineraryDocument


class ActivityNotFoundError(LookupError):
    """Day or activity index does not exist."""

    pass


class ActivityMoveError(ValueError):
    """Requested move would take an activity out of its day."""

    pass


def _day_position(document: ItineraryDocument, day: int) -> int:
    for position, plan in enumerate(document.schedule):
        if plan.day == day:
            return position
    raise ActivityNotFoundError(f"Day {day} is not in the schedule")


def _check_index(plan: DayPlan, index: int) -> None:
    if not 0 <= index < len(plan.activities):
        raise ActivityNotFoundError(f"Day {plan.day} has no activity at position {index}")


def find_activity(document: ItineraryDocument, day: int, index: int) -> Activity:
    """Activity at position ``index`` of day ``day``.

    Raises:
        ActivityNotFoundError: If the day or index is out of range
    """
    plan = document.schedule[_day_position(document, day)]
    _check_index(plan, index)
    return plan.activities[index]


def _with_day(document: ItineraryDocument, position: int, plan: DayPlan) -> ItineraryDocument:
    schedule = list(document.schedule)
    schedule[position] = plan
    return document.with_schedule(schedule)


def _update_activity(
    document: ItineraryDocument, day: int, index: int, fn: Callable[[Activity], Activity]
) -> ItineraryDocument:
    position = _day_position(document, day)
    plan = document.schedule[position]
    _check_index(plan, index)
    activities = list(plan.activities)
    activities[index] = fn(activities[index])
    return _with_day(document, position, plan.model_copy(update={"activities": activities}))


def set_activity_priority(
    document: ItineraryDocument, day: int, index: int, priority: Priority
) -> ItineraryDocument:
    return _update_activity(
        document, day, index, lambda a: a.model_copy(update={"priority": priority})
    )


def move_activity(
    document: ItineraryDocument,
    source_day: int,
    source_index: int,
    target_day: int,
    target_index: int,
) -> ItineraryDocument:
    """Reorder an activity within its day.

    Raises:
        ActivityMoveError: If source and target days differ
        ActivityNotFoundError: If the day or either index is out of range
    """
    if source_day != target_day:
        raise ActivityMoveError("Activities can only be reordered within their own day")

    position = _day_position(document, source_day)
    plan = document.schedule[position]
    _check_index(plan, source_index)
    _check_index(plan, target_index)

    activities = list(plan.activities)
    moved = activities.pop(source_index)
    activities.insert(target_index, moved)
    return _with_day(document, position, plan.model_copy(update={"activities": activities}))


def select_flight(
    document: ItineraryDocument, day: int, index: int, flight: FlightInfo, travellers: int
) -> ItineraryDocument:
    """Attach a chosen flight; the activity cost becomes the fare for everyone."""
    return _update_activity(
        document,
        day,
        index,
        lambda a: a.model_copy(
            update={"selected_flight": flight, "estimated_cost": flight.price * travellers}
        ),
    )


def filter_schedule(
    schedule: list[DayPlan],
    types: Iterable[ActivityType] = (),
    priorities: Iterable[Priority] = (),
) -> list[DayPlan]:
    """View filter; empty filters match everything, emptied days are dropped."""
    type_set = set(types)
    priority_set = set(priorities)
    if not type_set and not priority_set:
        return schedule

    filtered: list[DayPlan] = []
    for plan in schedule:
        activities = [
            a
            for a in plan.activities
            if (not type_set or a.type in type_set)
            and (not priority_set or a.priority in priority_set)
        ]
        if activities:
            filtered.append(plan.model_copy(update={"activities": activities}))
    return filtered
