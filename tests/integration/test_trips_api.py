"""Integration tests for the /trips API.

The app runs in-process over ASGITransport so background enrichment shares
the test's event loop.
"""

from collections.abc import AsyncGenerator
from typing import Any
from unittest.mock import patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from globetrek.app.api.deps import get_planner
from globetrek.app.llm.client import GENERIC_MESSAGE
from globetrek.app.main import app
from globetrek.app.planner import TripPlanner
from globetrek.app.storage.persistence import LAST_TRIP_DETAILS_KEY
from globetrek.app.storage.store import StorageQuotaExceededError

TRIP_BODY: dict[str, Any] = {
    "destination": "Goa",
    "departure_city": "Mumbai",
    "start_date": "2026-12-01",
    "end_date": "2026-12-03",
    "travellers": 2,
    "travel_style": "Standard",
    "interests": ["beaches", "food", "history"],
}

PAYMENT: dict[str, str] = {
    "card_number": "4111 1111 1111 1111",
    "expiry_date": "12/30",
    "cvc": "123",
}

USER = {"X-User-Id": "asha@example.com"}


@pytest_asyncio.fixture
async def client(planner: TripPlanner) -> AsyncGenerator[AsyncClient, None]:
    app.dependency_overrides[get_planner] = lambda: planner
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def create_trip(client: AsyncClient, planner: TripPlanner) -> dict[str, Any]:
    response = await client.post("/trips", json=TRIP_BODY)
    assert response.status_code == 201
    await planner.wait_for_enrichment()
    return response.json()


class TestCreateTrip:
    @pytest.mark.asyncio
    async def test_returns_skeleton_then_enriches(
        self, client: AsyncClient, planner: TripPlanner
    ) -> None:
        response = await client.post("/trips", json=TRIP_BODY)

        assert response.status_code == 201
        data = response.json()
        itinerary = data["itinerary"]
        assert [d["day"] for d in itinerary["schedule"]] == [1, 2, 3]
        assert itinerary["accommodation_loading"] is True
        assert itinerary["locations_loading"] is True
        assert all(d["image_loading"] for d in itinerary["schedule"])
        assert data["details"]["duration"] == 3

        await planner.wait_for_enrichment()
        current = (await client.get("/trips/current")).json()["itinerary"]
        assert current["accommodation_loading"] is False
        assert current["accommodation_recommendations"] is not None
        assert current["travel_advisories"]
        assert all(d["image_url"] for d in current["schedule"])

    @pytest.mark.asyncio
    async def test_core_failure_returns_502(
        self, client: AsyncClient, planner: TripPlanner, generator
    ) -> None:
        generator.failures["core"] = RuntimeError("upstream down")

        response = await client.post("/trips", json=TRIP_BODY)

        assert response.status_code == 502
        assert response.json()["detail"] == GENERIC_MESSAGE
        assert (await client.get("/trips/current")).status_code == 404

    @pytest.mark.asyncio
    async def test_invalid_dates_rejected(self, client: AsyncClient) -> None:
        body = {**TRIP_BODY, "end_date": "2026-11-30"}
        response = await client.post("/trips", json=body)
        assert response.status_code == 422


class TestEdits:
    @pytest.mark.asyncio
    async def test_set_priority(self, client: AsyncClient, planner: TripPlanner) -> None:
        await create_trip(client, planner)

        response = await client.patch(
            "/trips/current/days/2/activities/0", json={"priority": "High"}
        )

        assert response.status_code == 200
        assert response.json()["itinerary"]["schedule"][1]["activities"][0]["priority"] == "High"

    @pytest.mark.asyncio
    async def test_move_within_day(self, client: AsyncClient, planner: TripPlanner) -> None:
        created = await create_trip(client, planner)
        first = created["itinerary"]["schedule"][0]["activities"][0]["description"]

        response = await client.post(
            "/trips/current/days/1/activities/0/move", json={"target_day": 1, "target_index": 2}
        )

        assert response.status_code == 200
        assert response.json()["itinerary"]["schedule"][0]["activities"][2]["description"] == first

    @pytest.mark.asyncio
    async def test_cross_day_move_conflicts(self, client: AsyncClient, planner: TripPlanner) -> None:
        await create_trip(client, planner)
        before = (await client.get("/trips/current")).json()["itinerary"]["schedule"]

        response = await client.post(
            "/trips/current/days/1/activities/0/move", json={"target_day": 2, "target_index": 0}
        )

        assert response.status_code == 409
        after = (await client.get("/trips/current")).json()["itinerary"]["schedule"]
        assert after == before

    @pytest.mark.asyncio
    async def test_unknown_activity_is_404(self, client: AsyncClient, planner: TripPlanner) -> None:
        await create_trip(client, planner)
        response = await client.patch(
            "/trips/current/days/1/activities/9", json={"priority": "Low"}
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_filtered_schedule(self, client: AsyncClient, planner: TripPlanner) -> None:
        await create_trip(client, planner)

        response = await client.get("/trips/current/schedule", params={"type": "Sightseeing"})

        days = response.json()
        assert len(days) == 3
        assert all(a["type"] == "Sightseeing" for d in days for a in d["activities"])


class TestShareAndResume:
    @pytest.mark.asyncio
    async def test_share_then_resume_from_link(
        self, client: AsyncClient, planner: TripPlanner
    ) -> None:
        await create_trip(client, planner)

        shared = await client.post(
            "/trips/current/share", json={"summary": True, "itinerary": True, "days": [2]}
        )
        assert shared.status_code == 201
        link = shared.json()

        # Simulate a new visitor by clearing the active session
        planner.session.reset()
        resumed = await client.post("/trips/resume", json={"location": link["url"]})
        await planner.wait_for_enrichment()

        data = resumed.json()
        assert data["restored"] is True
        assert data["source"] == "shared"
        assert data["location"] == "https://globetrek.example/plan"
        assert [d["day"] for d in data["trip"]["itinerary"]["schedule"]] == [2]

    @pytest.mark.asyncio
    async def test_share_storage_failure_returns_507(
        self, client: AsyncClient, planner: TripPlanner
    ) -> None:
        await create_trip(client, planner)

        with patch.object(
            planner.persistence, "write_shared", side_effect=StorageQuotaExceededError("full")
        ):
            response = await client.post("/trips/current/share")

        assert response.status_code == 507
        assert (await client.get("/trips/current")).status_code == 200

    @pytest.mark.asyncio
    async def test_share_without_trip_is_404(self, client: AsyncClient) -> None:
        response = await client.post("/trips/current/share")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_resume_with_nothing_saved(self, client: AsyncClient) -> None:
        response = await client.post("/trips/resume", json={})

        assert response.json() == {
            "restored": False,
            "source": None,
            "location": None,
            "trip": None,
        }

    @pytest.mark.asyncio
    async def test_delete_plans_new_trip(self, client: AsyncClient, planner: TripPlanner) -> None:
        await create_trip(client, planner)

        response = await client.delete("/trips/current")

        assert response.status_code == 204
        assert (await client.get("/trips/current")).status_code == 404
        assert planner.store.get(LAST_TRIP_DETAILS_KEY) is None


class TestFlightsAndBookings:
    @pytest.mark.asyncio
    async def test_search_then_select_flight(
        self, client: AsyncClient, planner: TripPlanner
    ) -> None:
        await create_trip(client, planner)

        searched = await client.post("/trips/current/days/1/activities/1/flights/search")
        assert searched.status_code == 200
        flights = searched.json()
        assert len(flights) == 20

        response = await client.post(
            "/trips/current/days/1/activities/1/flight", json={"option": 3}
        )

        assert response.status_code == 200
        activity = response.json()["itinerary"]["schedule"][0]["activities"][1]
        assert activity["selected_flight"] == flights[3]
        assert activity["estimated_cost"] == flights[3]["price"] * TRIP_BODY["travellers"]

    @pytest.mark.asyncio
    async def test_search_honours_preferences(
        self, client: AsyncClient, planner: TripPlanner
    ) -> None:
        await create_trip(client, planner)

        response = await client.post(
            "/trips/current/days/1/activities/1/flights/search",
            json={"time": "Morning", "max_stops": 0},
        )

        for flight in response.json():
            assert flight["stops"] == 0
            assert 5 <= int(flight["departure_time"][:2]) < 12

    @pytest.mark.asyncio
    async def test_flight_must_come_from_search(
        self, client: AsyncClient, planner: TripPlanner
    ) -> None:
        await create_trip(client, planner)

        response = await client.post(
            "/trips/current/days/1/activities/1/flight", json={"option": 0}
        )

        assert response.status_code == 404
        activity = planner.session.itinerary.schedule[0].activities[1]
        assert activity.selected_flight is None

    @pytest.mark.asyncio
    async def test_search_unknown_activity_is_404(
        self, client: AsyncClient, planner: TripPlanner
    ) -> None:
        await create_trip(client, planner)
        response = await client.post("/trips/current/days/7/activities/0/flights/search")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_booked_flight_shows_in_state(
        self, client: AsyncClient, planner: TripPlanner
    ) -> None:
        await create_trip(client, planner)

        response = await client.post(
            "/trips/current/days/1/activities/1/book/flight",
            json={"passengers": [{"name": "Asha"}, {"name": "Ravi"}], "payment": PAYMENT},
        )

        assert response.status_code == 200
        booking_id = response.json()["booking_id"]
        assert booking_id.startswith("GT-FLY-")
        state = (await client.get("/trips/current")).json()
        assert state["booked"] == [{"day": 1, "index": 1}]
        stored = (await client.get("/trips/current/days/1/activities/1/booking")).json()
        assert stored["booking_id"] == booking_id
        assert stored["passengers"] == ["Asha", "Ravi"]

    @pytest.mark.asyncio
    async def test_invalid_card_is_422(self, client: AsyncClient, planner: TripPlanner) -> None:
        await create_trip(client, planner)

        response = await client.post(
            "/trips/current/days/1/activities/1/book/hotel",
            json={"guests": [{"name": "Asha"}], "payment": {**PAYMENT, "card_number": "1234"}},
        )

        assert response.status_code == 422
        assert "card number is invalid" in response.json()["detail"]
        assert (await client.get("/trips/current")).json()["booked"] == []

    @pytest.mark.asyncio
    async def test_simulated_failure_is_402(
        self, client: AsyncClient, planner: TripPlanner, outcomes
    ) -> None:
        await create_trip(client, planner)
        outcomes.value = 0.99

        response = await client.post(
            "/trips/current/days/2/activities/1/book/ride", json={"payment": PAYMENT}
        )

        assert response.status_code == 402
        assert (await client.get("/trips/current/days/2/activities/1/booking")).status_code == 404

    @pytest.mark.asyncio
    async def test_train_booking(self, client: AsyncClient, planner: TripPlanner) -> None:
        await create_trip(client, planner)

        response = await client.post("/trips/current/days/3/activities/1/book/train")

        assert response.status_code == 200
        assert response.json()["confirmation_message"].startswith("Booking confirmed for:")
        assert response.json()["booking_id"] is None

    @pytest.mark.asyncio
    async def test_booking_without_trip_is_404(self, client: AsyncClient) -> None:
        response = await client.post(
            "/trips/current/days/1/activities/0/book/ride", json={"payment": PAYMENT}
        )
        assert response.status_code == 404


class TestSavedTrips:
    @pytest.mark.asyncio
    async def test_save_skips_duplicate_titles(
        self, client: AsyncClient, planner: TripPlanner
    ) -> None:
        await create_trip(client, planner)

        first = await client.post("/trips/current/save", headers=USER)
        second = await client.post("/trips/current/save", headers=USER)

        assert first.json() == {"saved": True, "message": "Trip saved successfully!"}
        assert second.json() == {"saved": False, "message": "This trip is already saved."}
        listing = (await client.get("/trips/saved", headers=USER)).json()
        assert listing == [
            {
                "index": 0,
                "trip_title": "3 Days in Goa",
                "destination": "Goa",
                "start_date": "2026-12-01",
                "end_date": "2026-12-03",
            }
        ]

    @pytest.mark.asyncio
    async def test_libraries_are_per_user(self, client: AsyncClient, planner: TripPlanner) -> None:
        await create_trip(client, planner)
        await client.post("/trips/current/save", headers=USER)

        other = await client.get("/trips/saved", headers={"X-User-Id": "ravi@example.com"})

        assert other.json() == []

    @pytest.mark.asyncio
    async def test_user_header_required(self, client: AsyncClient) -> None:
        response = await client.get("/trips/saved")
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_load_saved_trip_gets_fresh_share_id(
        self, client: AsyncClient, planner: TripPlanner
    ) -> None:
        created = await create_trip(client, planner)
        await client.post("/trips/current/save", headers=USER)
        await client.delete("/trips/current")

        response = await client.post("/trips/saved/0/load", headers=USER)
        await planner.wait_for_enrichment()

        assert response.status_code == 200
        data = response.json()
        assert data["itinerary"]["trip_title"] == "3 Days in Goa"
        assert data["share_id"] not in (None, created["share_id"])
        current = (await client.get("/trips/current")).json()["itinerary"]
        assert all(day["image_url"] for day in current["schedule"])

    @pytest.mark.asyncio
    async def test_edit_saved_trip_clears_active_trip(
        self, client: AsyncClient, planner: TripPlanner
    ) -> None:
        await create_trip(client, planner)
        await client.post("/trips/current/save", headers=USER)

        response = await client.post("/trips/saved/0/edit", headers=USER)

        assert response.status_code == 200
        assert response.json()["destination"] == "Goa"
        assert (await client.get("/trips/current")).status_code == 404

    @pytest.mark.asyncio
    async def test_delete_saved_trip(self, client: AsyncClient, planner: TripPlanner) -> None:
        await create_trip(client, planner)
        await client.post("/trips/current/save", headers=USER)

        assert (await client.delete("/trips/saved/0", headers=USER)).status_code == 204
        assert (await client.get("/trips/saved", headers=USER)).json() == []
        assert (await client.delete("/trips/saved/0", headers=USER)).status_code == 404
        assert (await client.post("/trips/saved/0/load", headers=USER)).status_code == 404

    @pytest.mark.asyncio
    async def test_save_without_trip_is_404(self, client: AsyncClient) -> None:
        response = await client.post("/trips/current/save", headers=USER)
        assert response.status_code == 404


class TestPreferences:
    @pytest.mark.asyncio
    async def test_defaults_when_unset(self, client: AsyncClient) -> None:
        response = await client.get("/trips/preferences", headers=USER)

        assert response.json() == {
            "default_departure_city": None,
            "default_travel_style": None,
            "default_interests": [],
        }

    @pytest.mark.asyncio
    async def test_new_trip_is_seeded_from_preferences(
        self, client: AsyncClient, planner: TripPlanner
    ) -> None:
        await create_trip(client, planner)
        prefs = {
            "default_departure_city": "Pune",
            "default_travel_style": "Luxury",
            "default_interests": ["food", "nightlife"],
        }
        assert (await client.put("/trips/preferences", json=prefs, headers=USER)).status_code == 200

        response = await client.post("/trips/new", headers=USER)

        draft = response.json()
        assert draft["destination"] == ""
        assert draft["departure_city"] == "Pune"
        assert draft["travel_style"] == "Luxury"
        assert draft["interests"] == ["food", "nightlife"]
        assert draft["travellers"] == 1
        assert (await client.get("/trips/current")).status_code == 404
        assert planner.store.get(LAST_TRIP_DETAILS_KEY) is None

    @pytest.mark.asyncio
    async def test_new_trip_without_user_uses_defaults(self, client: AsyncClient) -> None:
        draft = (await client.post("/trips/new")).json()

        assert draft["departure_city"] == ""
        assert draft["travel_style"] == "Standard"
        assert draft["interests"] == []
