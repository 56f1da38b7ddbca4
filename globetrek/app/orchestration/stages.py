"""Sequential stage driver with pacing and per-stage failure isolation.

Stages run strictly one after another; a stage that raises or returns None
is settled as "no data" and the next stage still runs. Before applying any
result the driver checks that the generation token is still current, so a
superseded pipeline stops at its next suspension point.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

from globetrek.app.models.itinerary import ItineraryDocument
from globetrek.app.orchestration.session import TripSession
from globetrek.app.utils.logging import PipelineLogger
from globetrek.app.utils.metrics import PipelineMetrics

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class Stage(Generic[T]):
    """One fetch and the pure update that applies its result.

    ``apply`` receives None when the fetch failed or produced nothing.
    """

    name: str
    fetch: Callable[[], Awaitable[T | None]]
    apply: Callable[[ItineraryDocument, T | None], ItineraryDocument]


@dataclass(frozen=True)
class StageOutcome:
    """Settlement record for one stage."""

    name: str
    outcome: str  # success | empty | error
    latency_ms: float
    error_reason: str | None = None


class Pacing(str, Enum):
    """Where the inter-stage delay goes."""

    before = "before"
    after = "after"


class StageRunner:
    """Runs stage lists against a session."""

    def __init__(
        self,
        session: TripSession,
        metrics: PipelineMetrics | None = None,
        pipeline_logger: PipelineLogger | None = None,
        sleep_fn: SleepFn | None = None,
    ) -> None:
        """Initialize runner.

        Args:
            session: Session receiving the updates
            metrics: Metrics recorder (optional, defaults to no-op)
            pipeline_logger: Structured logger (optional, defaults to no-op)
            sleep_fn: Injectable sleep function (default: asyncio.sleep)
        """
        self._session = session
        self._metrics = metrics or PipelineMetrics()
        self._logger = pipeline_logger or PipelineLogger()
        self._sleep = sleep_fn or asyncio.sleep

    async def run(
        self,
        token: int,
        stages: Sequence[Stage[Any]],
        *,
        delay_seconds: float,
        pacing: Pacing,
    ) -> list[StageOutcome]:
        """Run ``stages`` in order for generation ``token``.

        Returns:
            Outcomes of the stages that settled before the run finished or
            was superseded
        """
        outcomes: list[StageOutcome] = []

        for stage in stages:
            if pacing is Pacing.before:
                await self._sleep(delay_seconds)
            if not self._session.is_current(token):
                self._logger.log_stage(token, stage.name, "superseded", 0.0)
                break

            start = time.monotonic()
            error_reason: str | None = None
            try:
                result = await stage.fetch()
            except Exception as e:
                logger.error(f"Failed to fetch {stage.name}: {e}")
                result = None
                error_reason = type(e).__name__
            elapsed_ms = (time.monotonic() - start) * 1000

            if not self._session.is_current(token):
                self._logger.log_stage(token, stage.name, "superseded", elapsed_ms)
                break

            self._session.update(lambda doc: stage.apply(doc, result), token)

            if result is not None:
                outcome = "success"
            elif error_reason is not None:
                outcome = "error"
                self._metrics.inc_failure(stage.name, error_reason)
            else:
                outcome = "empty"
                self._metrics.inc_failure(stage.name, "no_data")
            self._metrics.record_latency(stage.name, outcome, elapsed_ms)
            self._logger.log_stage(token, stage.name, outcome, elapsed_ms, error_reason)
            outcomes.append(StageOutcome(stage.name, outcome, elapsed_ms, error_reason))

            if pacing is Pacing.after:
                await self._sleep(delay_seconds)

        return outcomes
