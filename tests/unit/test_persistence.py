"""Unit tests for the persistence adapter."""

import json

import pytest

from globetrek.app.models.common import FacetName, TravelStyle
from globetrek.app.models.itinerary import LOADING_FIELDS, ItineraryDocument
from globetrek.app.models.trip import TripParameters, UserPreferences
from globetrek.app.orchestration.session import TripSession
from globetrek.app.storage.persistence import (
    LAST_ITINERARY_KEY,
    LAST_TRIP_DETAILS_KEY,
    PersistenceAdapter,
    redact_document,
    saved_trips_key,
    shared_trip_key,
    user_prefs_key,
)
from globetrek.app.storage.store import InMemoryKeyValueStore, StorageQuotaExceededError


async def enriched_document(generator, params: TripParameters) -> ItineraryDocument:
    """Fully settled document with an image on every day."""
    doc = ItineraryDocument.skeleton(await generator.generate_core_itinerary(params))
    doc = doc.with_facet(FacetName.accommodation, await generator.generate_accommodation(params))
    doc = doc.with_facet(FacetName.transportation, await generator.generate_transportation(params))
    doc = doc.with_facet(FacetName.food, await generator.generate_food(params))
    doc = doc.with_facet(FacetName.weather, await generator.generate_weather(params))
    doc = doc.with_facet(
        FacetName.advisories,
        await generator.get_travel_advisories(params.destination, params.start_date, params.end_date),
    )
    doc = doc.with_facet(
        FacetName.locations, await generator.extract_locations(doc.schedule, params.destination)
    )
    for day in doc.schedule:
        doc = doc.with_day_image(day.day, f"data:image/png;base64,day{day.day}")
    return doc


@pytest.fixture
def adapter(store: InMemoryKeyValueStore) -> PersistenceAdapter:
    return PersistenceAdapter(store)


class TestRedaction:
    @pytest.mark.asyncio
    async def test_redacted_form_has_no_flags_or_images(self, generator, sample_params) -> None:
        doc = ItineraryDocument.skeleton(await generator.generate_core_itinerary(sample_params))
        doc = doc.with_day_image(1, "data:image/png;base64,abc")

        redacted = redact_document(doc)

        assert not LOADING_FIELDS & set(redacted)
        for day in redacted["schedule"]:
            assert "image_url" not in day
            assert "image_loading" not in day


class TestRoundTrip:
    @pytest.mark.asyncio
    async def test_round_trip_drops_only_transient_state(
        self, adapter: PersistenceAdapter, generator, sample_params
    ) -> None:
        doc = await enriched_document(generator, sample_params)

        assert adapter.save(sample_params, doc, None) is True
        loaded = adapter.load_last()

        assert loaded is not None
        assert loaded.details == sample_params
        expected = doc.with_schedule(
            [d.model_copy(update={"image_url": None, "image_loading": False}) for d in doc.schedule]
        )
        assert loaded.itinerary.model_dump() == expected.model_dump()
        assert all(not loaded.itinerary.facet_loading(f) for f in FacetName)

    @pytest.mark.asyncio
    async def test_loading_skeleton_reloads_as_settled_without_data(
        self, adapter: PersistenceAdapter, generator, sample_params
    ) -> None:
        doc = ItineraryDocument.skeleton(await generator.generate_core_itinerary(sample_params))

        adapter.save(sample_params, doc, None)
        loaded = adapter.load_last()

        assert loaded is not None
        for facet in FacetName:
            assert loaded.itinerary.facet_loading(facet) is False
            assert loaded.itinerary.facet_value(facet) is None

    @pytest.mark.asyncio
    async def test_share_slot_written_when_share_id_assigned(
        self, adapter: PersistenceAdapter, store, generator, sample_params
    ) -> None:
        doc = await enriched_document(generator, sample_params)

        adapter.save(sample_params, doc, "abc123")

        record = json.loads(store.get(shared_trip_key("abc123")))
        assert set(record) == {"details", "itinerary"}
        shared = adapter.load_shared("abc123")
        assert shared is not None
        assert shared.itinerary.trip_title == doc.trip_title

    def test_missing_records_load_as_none(self, adapter: PersistenceAdapter) -> None:
        assert adapter.load_last() is None
        assert adapter.load_shared("nope") is None


class TestFailSoft:
    @pytest.mark.asyncio
    async def test_quota_exceeded_is_logged_not_raised(
        self, generator, sample_params, caplog
    ) -> None:
        adapter = PersistenceAdapter(InMemoryKeyValueStore(capacity_chars=100))
        doc = await enriched_document(generator, sample_params)

        assert adapter.save(sample_params, doc, "abc") is False
        assert "quota may be exceeded" in caplog.text

    @pytest.mark.asyncio
    async def test_session_keeps_state_when_store_is_full(
        self, generator, sample_params
    ) -> None:
        adapter = PersistenceAdapter(InMemoryKeyValueStore(capacity_chars=100))
        session = TripSession()
        adapter.attach(session)
        doc = ItineraryDocument.skeleton(await generator.generate_core_itinerary(sample_params))

        token = session.begin(sample_params)
        assert session.install(token, doc, "abc") is True
        assert session.itinerary == doc

    def test_malformed_last_trip_is_cleared(
        self, adapter: PersistenceAdapter, store, sample_params
    ) -> None:
        store.set(LAST_TRIP_DETAILS_KEY, sample_params.model_dump_json())
        store.set(LAST_ITINERARY_KEY, "{not json")

        assert adapter.load_last() is None
        assert store.get(LAST_TRIP_DETAILS_KEY) is None
        assert store.get(LAST_ITINERARY_KEY) is None

    def test_wrong_shape_shared_trip_is_deleted(
        self, adapter: PersistenceAdapter, store
    ) -> None:
        store.set(shared_trip_key("bad"), json.dumps({"details": {"destination": "Goa"}}))

        assert adapter.load_shared("bad") is None
        assert store.get(shared_trip_key("bad")) is None


class TestSessionMirroring:
    @pytest.mark.asyncio
    async def test_every_mutation_is_written(
        self, adapter: PersistenceAdapter, store, generator, sample_params
    ) -> None:
        session = TripSession()
        adapter.attach(session)
        doc = ItineraryDocument.skeleton(await generator.generate_core_itinerary(sample_params))
        token = session.begin(sample_params)
        session.install(token, doc, None)

        session.update(lambda d: d.model_copy(update={"trip_title": "Renamed"}), token)

        assert json.loads(store.get(LAST_ITINERARY_KEY))["trip_title"] == "Renamed"

    def test_clear_last_removes_both_keys(self, adapter: PersistenceAdapter, store) -> None:
        store.set(LAST_TRIP_DETAILS_KEY, "{}")
        store.set(LAST_ITINERARY_KEY, "{}")

        adapter.clear_last()

        assert store.keys() == []


class TestSavedTrips:
    @pytest.mark.asyncio
    async def test_saved_trip_round_trips_redacted(
        self, adapter: PersistenceAdapter, store, generator, sample_params
    ) -> None:
        doc = await enriched_document(generator, sample_params)

        assert adapter.save_trip("asha", sample_params, doc) is True

        raw = json.loads(store.get(saved_trips_key("asha")))
        assert len(raw) == 1
        assert "image_url" not in raw[0]["itinerary"]["schedule"][0]
        loaded = adapter.load_saved_trip("asha", 0)
        assert loaded is not None
        assert loaded.details == sample_params
        assert loaded.itinerary.food_recommendations == doc.food_recommendations

    @pytest.mark.asyncio
    async def test_same_title_is_saved_once(
        self, adapter: PersistenceAdapter, generator, sample_params
    ) -> None:
        doc = await enriched_document(generator, sample_params)
        adapter.save_trip("asha", sample_params, doc)

        longer = sample_params.model_copy(update={"travellers": 4})
        assert adapter.save_trip("asha", longer, doc) is False

        renamed = doc.model_copy(update={"trip_title": "Goa Again"})
        assert adapter.save_trip("asha", sample_params, renamed) is True
        titles = [t.itinerary.trip_title for t in adapter.list_saved_trips("asha")]
        assert titles == [doc.trip_title, "Goa Again"]

    @pytest.mark.asyncio
    async def test_delete_by_position(
        self, adapter: PersistenceAdapter, generator, sample_params
    ) -> None:
        doc = await enriched_document(generator, sample_params)
        adapter.save_trip("asha", sample_params, doc)

        assert adapter.delete_saved_trip("asha", 1) is False
        assert adapter.delete_saved_trip("asha", 0) is True
        assert adapter.list_saved_trips("asha") == []
        assert adapter.load_saved_trip("asha", 0) is None

    def test_unreadable_library_reads_empty_and_is_removed(
        self, adapter: PersistenceAdapter, store
    ) -> None:
        store.set(saved_trips_key("asha"), json.dumps({"not": "a list"}))

        assert adapter.list_saved_trips("asha") == []
        assert store.get(saved_trips_key("asha")) is None

    @pytest.mark.asyncio
    async def test_full_store_raises_on_save(self, generator, sample_params) -> None:
        adapter = PersistenceAdapter(InMemoryKeyValueStore(capacity_chars=100))
        doc = await enriched_document(generator, sample_params)

        with pytest.raises(StorageQuotaExceededError):
            adapter.save_trip("asha", sample_params, doc)


class TestPreferences:
    def test_missing_preferences_are_empty(self, adapter: PersistenceAdapter) -> None:
        assert adapter.load_preferences("asha") == UserPreferences()

    def test_round_trip(self, adapter: PersistenceAdapter) -> None:
        prefs = UserPreferences(
            default_departure_city="Pune",
            default_travel_style=TravelStyle.economy,
            default_interests=["trekking"],
        )

        adapter.save_preferences("asha", prefs)

        assert adapter.load_preferences("asha") == prefs
        assert adapter.load_preferences("ravi") == UserPreferences()

    def test_unreadable_preferences_are_removed(self, adapter: PersistenceAdapter, store) -> None:
        store.set(user_prefs_key("asha"), '{"default_travel_style": "Backpacker"}')

        assert adapter.load_preferences("asha") == UserPreferences()
        assert store.get(user_prefs_key("asha")) is None


class TestSessionSlotHousekeeping:
    @pytest.mark.asyncio
    async def test_new_share_id_releases_previous_slot(
        self, adapter: PersistenceAdapter, store, generator, sample_params
    ) -> None:
        session = TripSession()
        adapter.attach(session)
        doc = ItineraryDocument.skeleton(await generator.generate_core_itinerary(sample_params))

        token = session.begin(sample_params)
        session.install(token, doc, "first")
        session.load(sample_params, doc, "second")

        assert store.get(shared_trip_key("first")) is None
        assert store.get(shared_trip_key("second")) is not None

    @pytest.mark.asyncio
    async def test_adopted_share_slot_is_kept(
        self, adapter: PersistenceAdapter, store, generator, sample_params
    ) -> None:
        session = TripSession()
        adapter.attach(session)
        doc = ItineraryDocument.skeleton(await generator.generate_core_itinerary(sample_params))
        adapter.write_shared("link", sample_params, doc)

        session.load(sample_params, doc, "link", owns_share_slot=False)
        token = session.begin(sample_params)
        session.install(token, doc, "fresh")

        assert store.get(shared_trip_key("link")) is not None
        assert store.get(shared_trip_key("fresh")) is not None
