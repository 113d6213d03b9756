"""Session aggregate for FloorScale.

A session holds everything the user is working on: the floor plan image,
the measurement model and the view transform. Image loads are tracked by
a monotonic generation counter so a slow decode can never replace a
newer image.
"""

from dataclasses import dataclass

from loguru import logger

from floorscale.core.measurement import MeasurementModel, Mode
from floorscale.core.transform import ViewTransform


@dataclass(frozen=True)
class ImageRef:
    """A decoded floor plan image: pixel size plus the original bytes."""

    width: int
    height: int
    data: bytes
    name: str | None = None
    mime_type: str | None = None

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    def describe(self) -> str:
        text = f"{self.width}×{self.height}"
        if self.name:
            text += f" ({self.name})"
        return text


@dataclass(frozen=True)
class PendingImage:
    """Image bytes waiting to be decoded."""

    data: bytes
    name: str | None = None
    mime_type: str | None = None


class Session:
    """The floor plan, its measurements and the current view."""

    def __init__(self, model: MeasurementModel | None = None,
                 view: ViewTransform | None = None):
        self.model = model or MeasurementModel()
        self.view = view or ViewTransform()
        self.image: ImageRef | None = None
        self.pending_image: PendingImage | None = None
        self._load_generation = 0

    @property
    def has_image(self) -> bool:
        return self.image is not None

    @property
    def image_pending(self) -> bool:
        return self.pending_image is not None

    @property
    def can_draw(self) -> bool:
        """Drags draw lines only once an image has finished decoding."""
        return self.image is not None and self.pending_image is None

    def begin_image_load(self, pending: PendingImage) -> int:
        """Mark an image as pending and return its load generation."""
        self._load_generation += 1
        self.pending_image = pending
        return self._load_generation

    def is_current_load(self, generation: int) -> bool:
        return generation == self._load_generation

    def complete_image_load(self, generation: int, image: ImageRef,
                            keep_measurements: bool = False) -> bool:
        """Install a decoded image if its load is still current.

        A freshly uploaded image starts a new calibration; an image restored
        from a saved session keeps the restored measurements.
        """
        if not self.is_current_load(generation):
            logger.debug(f"Discarding stale image load (generation {generation})")
            return False
        self.image = image
        self.pending_image = None
        if not keep_measurements:
            self.model.reset()
        self.model.set_mode(Mode.CALIBRATE)
        logger.info(f"Image loaded: {image.describe()}")
        return True

    def fail_image_load(self, generation: int) -> bool:
        """Clear the pending state of a failed load. Returns False if stale."""
        if not self.is_current_load(generation):
            return False
        self.pending_image = None
        return True
