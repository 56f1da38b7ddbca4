"""Progressive assembly orchestrator.

The core schedule is fetched while the caller waits. Everything else runs in
a background task: six text facets in a fixed order with a pause before each,
then one image per day. Each result lands in the session as its own update.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from globetrek.app.llm.client import (
    GENERIC_MESSAGE,
    INVALID_MESSAGE,
    CoreGenerationError,
    FacetGenerator,
)
from globetrek.app.models.common import FacetName
from globetrek.app.models.itinerary import (
    DayPlan,
    ItineraryDocument,
    schedule_covers_trip,
)
from globetrek.app.models.trip import TripParameters
from globetrek.app.orchestration.images import ImageEnrichmentSequencer
from globetrek.app.orchestration.session import TripSession
from globetrek.app.orchestration.stages import Pacing, Stage, StageRunner
from globetrek.app.storage.persistence import mint_share_id
from globetrek.app.utils.logging import PipelineLogger
from globetrek.app.utils.metrics import PipelineMetrics

logger = logging.getLogger(__name__)

FACET_ORDER: tuple[FacetName, ...] = (
    FacetName.accommodation,
    FacetName.transportation,
    FacetName.food,
    FacetName.weather,
    FacetName.advisories,
    FacetName.locations,
)


class GenerationSupersededError(Exception):
    """A newer generation started while this one awaited its core schedule."""

    pass


@dataclass
class GenerationHandle:
    """What the caller gets once the core schedule is in place."""

    token: int
    document: ItineraryDocument
    share_id: str
    task: "asyncio.Task[None]"


def _settle(facet: FacetName) -> Callable[[ItineraryDocument, Any], ItineraryDocument]:
    return lambda doc, value: doc.with_facet(facet, value)


class ItineraryOrchestrator:
    """Turns trip parameters into a progressively filled itinerary."""

    def __init__(
        self,
        session: TripSession,
        generator: FacetGenerator,
        *,
        facet_delay_seconds: float = 1.2,
        image_delay_seconds: float = 1.5,
        sleep_fn: Callable[[float], Awaitable[None]] | None = None,
        metrics: PipelineMetrics | None = None,
        pipeline_logger: PipelineLogger | None = None,
    ) -> None:
        self._session = session
        self._generator = generator
        self._facet_delay_seconds = facet_delay_seconds
        self._runner = StageRunner(
            session, metrics=metrics, pipeline_logger=pipeline_logger, sleep_fn=sleep_fn
        )
        self._images = ImageEnrichmentSequencer(
            session, generator, self._runner, delay_seconds=image_delay_seconds
        )
        self._task: asyncio.Task[None] | None = None

    @property
    def generator(self) -> FacetGenerator:
        return self._generator

    @property
    def background_task(self) -> "asyncio.Task[None] | None":
        """Most recently started enrichment task, if any."""
        return self._task

    async def begin_generation(self, params: TripParameters) -> GenerationHandle:
        """Fetch the core schedule and start background enrichment.

        Raises:
            CoreGenerationError: Core schedule failed; no document is produced
            GenerationSupersededError: A newer generation started meanwhile
        """
        token = self._session.begin(params)
        logger.info(f"Generation {token} started for {params.destination} ({params.duration} days)")

        try:
            core = await self._generator.generate_core_itinerary(params)
        except CoreGenerationError:
            raise
        except ValueError as e:
            raise CoreGenerationError(INVALID_MESSAGE) from e
        except Exception as e:
            raise CoreGenerationError(GENERIC_MESSAGE) from e

        if not schedule_covers_trip(core.schedule, params.duration):
            logger.error(
                f"Core schedule has days {[d.day for d in core.schedule]}, "
                f"expected 1..{params.duration}"
            )
            raise CoreGenerationError(INVALID_MESSAGE)
        if core.detailed_cost_breakdown.total != core.total_estimated_cost:
            logger.warning(
                f"Cost breakdown sums to {core.detailed_cost_breakdown.total}, "
                f"total says {core.total_estimated_cost}"
            )

        document = ItineraryDocument.skeleton(core)
        share_id = mint_share_id()
        if not self._session.install(token, document, share_id):
            raise GenerationSupersededError(f"Generation {token} was superseded")

        self._task = asyncio.create_task(self._enrich(token, params, core.schedule))
        return GenerationHandle(token=token, document=document, share_id=share_id, task=self._task)

    def facet_stages(self, params: TripParameters, schedule: list[DayPlan]) -> list[Stage[Any]]:
        """Text facet stages in fetch order."""
        g = self._generator
        fetchers: dict[FacetName, Callable[[], Awaitable[Any]]] = {
            FacetName.accommodation: lambda: g.generate_accommodation(params),
            FacetName.transportation: lambda: g.generate_transportation(params),
            FacetName.food: lambda: g.generate_food(params),
            FacetName.weather: lambda: g.generate_weather(params),
            FacetName.advisories: lambda: g.get_travel_advisories(
                params.destination, params.start_date, params.end_date
            ),
            FacetName.locations: lambda: g.extract_locations(schedule, params.destination),
        }
        return [Stage(facet.value, fetchers[facet], _settle(facet)) for facet in FACET_ORDER]

    async def _enrich(self, token: int, params: TripParameters, schedule: list[DayPlan]) -> None:
        await self._runner.run(
            token,
            self.facet_stages(params, schedule),
            delay_seconds=self._facet_delay_seconds,
            pacing=Pacing.before,
        )
        if not self._session.is_current(token):
            return
        await self._images.run(token, params, schedule)
        logger.info(f"Generation {token} enrichment finished")

    def refresh_images(self) -> "asyncio.Task[None] | None":
        """Re-fetch every day image of the current document in the background."""
        details = self._session.details
        document = self._session.itinerary
        if details is None or document is None:
            return None
        token = self._session.generation

        async def _refresh() -> None:
            await self._images.run(token, details, document.schedule)

        self._task = asyncio.create_task(_refresh())
        return self._task
