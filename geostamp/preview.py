from __future__ import annotations

import logging

from PIL import Image

from geostamp.constants import DEFAULT_PREVIEW_WIDTH
from geostamp.models import DateTimeData, LocationData, StyleSettings, WeatherData
from geostamp.render.compositor import OverlayCompositor

LOGGER = logging.getLogger(__name__)


class PreviewSession:
    """Keeps the most recent preview frame and drops results of superseded requests.

    Every request takes a new generation number before rendering. A frame is
    published to ``surface`` only when no newer request started meanwhile, so
    a slow render can never overwrite a faster, later one.
    """

    def __init__(self, compositor: OverlayCompositor, display_width: int = DEFAULT_PREVIEW_WIDTH) -> None:
        self.compositor = compositor
        self.display_width = display_width
        self.surface: Image.Image | None = None
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    async def request(
        self,
        image: Image.Image | None,
        location: LocationData | None,
        date_time: DateTimeData,
        style: StyleSettings,
        weather: WeatherData | None = None,
    ) -> bool:
        self._generation += 1
        generation = self._generation
        if image is None or location is None:
            self.surface = None
            LOGGER.debug("preview %d cleared: missing image or location", generation)
            return False

        frame = await self.compositor.composite(
            image,
            location,
            date_time,
            style,
            weather,
            preview_width=self.display_width,
        )
        if generation != self._generation:
            LOGGER.debug("preview %d dropped, superseded by %d", generation, self._generation)
            return False
        self.surface = frame
        return True
