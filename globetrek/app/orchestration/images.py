"""Image enrichment - one illustration per schedule day, strictly in order."""

from globetrek.app.llm.client import FacetGenerator
from globetrek.app.llm.prompts import day_scene
from globetrek.app.models.itinerary import DayPlan
from globetrek.app.models.trip import TripParameters
from globetrek.app.orchestration.session import TripSession
from globetrek.app.orchestration.stages import Pacing, Stage, StageOutcome, StageRunner


class ImageEnrichmentSequencer:
    """Requests day images one at a time with a fixed pause after each.

    Running it again re-fetches and overwrites every day's image.
    """

    def __init__(
        self,
        session: TripSession,
        generator: FacetGenerator,
        runner: StageRunner,
        delay_seconds: float = 1.5,
    ) -> None:
        self._session = session
        self._generator = generator
        self._runner = runner
        self._delay_seconds = delay_seconds

    def day_stage(self, destination: str, day: DayPlan) -> Stage[str]:
        scene = day_scene(destination, day.title)
        return Stage(
            name=f"image_day_{day.day}",
            fetch=lambda: self._generator.generate_image(scene),
            apply=lambda doc, image_url: doc.with_day_image(day.day, image_url),
        )

    async def run(
        self, token: int, details: TripParameters, days: list[DayPlan]
    ) -> list[StageOutcome]:
        if not self._session.update(lambda doc: doc.with_all_images_loading(), token):
            return []
        stages = [self.day_stage(details.destination, day) for day in days]
        return await self._runner.run(
            token, stages, delay_seconds=self._delay_seconds, pacing=Pacing.after
        )
