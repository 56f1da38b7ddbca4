"""Shared pytest fixtures for all test suites."""

import asyncio
import random
from collections.abc import Awaitable, Callable
from datetime import date
from typing import Any

import pytest

from globetrek.app.config import Settings
from globetrek.app.llm.client import DeterministicStubClient
from globetrek.app.models.itinerary import DayPlan
from globetrek.app.models.trip import TripParameters
from globetrek.app.orchestration.orchestrator import ItineraryOrchestrator
from globetrek.app.orchestration.session import TripSession
from globetrek.app.planner import TripPlanner
from globetrek.app.storage.store import InMemoryKeyValueStore


class RecordingGenerator(DeterministicStubClient):
    """Stub generator that logs call boundaries and can be told to fail.

    ``failures`` maps a facet name to an exception to raise, or to None to
    make the fetch return no data. ``gates`` holds a fetch until its event
    is set. Image fetches fail when their scene contains a string listed in
    ``failing_scenes``.
    """

    def __init__(self, events: list[str] | None = None) -> None:
        self.events = events if events is not None else []
        self.failures: dict[str, BaseException | None] = {}
        self.gates: dict[str, asyncio.Event] = {}
        self.failing_scenes: set[str] = set()
        self.scenes: list[str] = []

    async def _record(self, name: str, fn: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        self.events.append(f"start:{name}")
        try:
            gate = self.gates.get(name)
            if gate is not None:
                await gate.wait()
            if name in self.failures:
                failure = self.failures[name]
                if failure is None:
                    return None
                raise failure
            return await fn(*args)
        finally:
            self.events.append(f"end:{name}")

    async def generate_core_itinerary(self, params: TripParameters) -> Any:
        return await self._record("core", super().generate_core_itinerary, params)

    async def generate_accommodation(self, params: TripParameters) -> Any:
        return await self._record("accommodation", super().generate_accommodation, params)

    async def generate_transportation(self, params: TripParameters) -> Any:
        return await self._record("transportation", super().generate_transportation, params)

    async def generate_food(self, params: TripParameters) -> Any:
        return await self._record("food", super().generate_food, params)

    async def generate_weather(self, params: TripParameters) -> Any:
        return await self._record("weather", super().generate_weather, params)

    async def get_travel_advisories(
        self, destination: str, start_date: date, end_date: date
    ) -> Any:
        return await self._record(
            "advisories", super().get_travel_advisories, destination, start_date, end_date
        )

    async def extract_locations(self, schedule: list[DayPlan], destination: str) -> Any:
        return await self._record("locations", super().extract_locations, schedule, destination)

    async def generate_image(self, scene: str) -> Any:
        self.scenes.append(scene)
        if any(marker in scene for marker in self.failing_scenes):
            self.events.append("start:image")
            self.events.append("end:image")
            raise RuntimeError(f"image backend rejected {scene!r}")
        return await self._record("image", super().generate_image, scene)


class FakeSleep:
    """Records requested delays without waiting, still yielding to the loop."""

    def __init__(self, events: list[str]) -> None:
        self.events = events
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        self.events.append(f"sleep:{seconds}")
        await asyncio.sleep(0)


class OutcomeRandom(random.Random):
    """Random source whose outcome draws return ``value``; other draws stay seeded."""

    def __init__(self, value: float = 0.1) -> None:
        super().__init__(7)
        self.value = value

    def random(self) -> float:
        return self.value


async def _wait_until(predicate: Callable[[], bool], attempts: int = 200) -> None:
    """Yield to the event loop until ``predicate`` holds."""
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


@pytest.fixture
def wait_until() -> Callable[[Callable[[], bool]], Awaitable[None]]:
    """Helper that spins the event loop until a condition holds."""
    return _wait_until


@pytest.fixture
def sample_params() -> TripParameters:
    """Three-day Goa trip for two."""
    return TripParameters(
        destination="Goa",
        departure_city="Mumbai",
        start_date=date(2026, 12, 1),
        end_date=date(2026, 12, 3),
        travellers=2,
        interests=["beaches", "food", "history"],
    )


@pytest.fixture
def events() -> list[str]:
    return []


@pytest.fixture
def generator(events: list[str]) -> RecordingGenerator:
    return RecordingGenerator(events)


@pytest.fixture
def make_generator() -> Callable[[], RecordingGenerator]:
    """Factory for generators with their own event log."""
    return RecordingGenerator


@pytest.fixture
def fake_sleep(events: list[str]) -> FakeSleep:
    return FakeSleep(events)


@pytest.fixture
def session() -> TripSession:
    return TripSession()


@pytest.fixture
def orchestrator(
    session: TripSession, generator: RecordingGenerator, fake_sleep: FakeSleep
) -> ItineraryOrchestrator:
    return ItineraryOrchestrator(
        session,
        generator,
        facet_delay_seconds=1.2,
        image_delay_seconds=1.5,
        sleep_fn=fake_sleep,
    )


@pytest.fixture
def test_settings() -> Settings:
    """Settings independent of the environment and any .env file."""
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        openai_api_key=None,
        storage_backend="memory",
        share_base_url="https://globetrek.example/plan",
    )


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore(capacity_chars=5_000_000)


@pytest.fixture
def outcomes() -> OutcomeRandom:
    """Booking outcome source; below every success rate unless a test raises it."""
    return OutcomeRandom()


@pytest.fixture
def planner(
    test_settings: Settings,
    store: InMemoryKeyValueStore,
    generator: RecordingGenerator,
    fake_sleep: FakeSleep,
    outcomes: OutcomeRandom,
) -> TripPlanner:
    return TripPlanner(test_settings, store, generator, sleep_fn=fake_sleep, rng=outcomes)
