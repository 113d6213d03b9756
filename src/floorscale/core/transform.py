"""View transform controller for FloorScale.

Owns the zoom scalar and 2D offset that map world (image pixel)
coordinates to screen coordinates, s = w * zoom + offset. Every zoom
interaction (wheel, pinch, double-click, toolbar) reduces to a factor and
an anchor point, and the world point under the anchor stays put.
"""

import math
from dataclasses import dataclass

from loguru import logger

from floorscale.core.geometry import Point, clamp, screen_to_world

ZOOM_MIN = 0.05
ZOOM_MAX = 20.0
FIT_MARGIN = 0.95
FIT_MAX_ATTEMPTS = 10
WHEEL_ZOOM_SENSITIVITY = 0.02
DOUBLE_CLICK_ZOOM_FACTOR = 1.5
ZOOM_STEP_FACTOR = 1.15


def zoom_around_point(
    zoom: float,
    offset: Point,
    anchor: Point,
    factor: float,
    zoom_min: float = ZOOM_MIN,
    zoom_max: float = ZOOM_MAX,
) -> tuple[float, Point]:
    """Zoom by *factor* keeping the world point under *anchor* fixed.

    Returns (new_zoom, new_offset).
    """
    new_zoom = clamp(zoom * factor, zoom_min, zoom_max)
    world = screen_to_world(anchor, zoom, offset)
    new_offset = Point(anchor[0] - world.x * new_zoom, anchor[1] - world.y * new_zoom)
    return new_zoom, new_offset


def fit_to_content(
    content_size: tuple[float, float],
    viewport_size: tuple[float, float],
    margin: float = FIT_MARGIN,
    zoom_min: float = ZOOM_MIN,
    zoom_max: float = ZOOM_MAX,
) -> tuple[float, Point] | None:
    """Zoom and offset that centre the content inside the viewport.

    Returns None when the viewport is degenerate (either side under 2 px);
    the caller should retry once the viewport has been laid out.
    """
    cw, ch = content_size
    vw, vh = viewport_size
    if vw < 2 or vh < 2:
        return None
    if cw <= 0 or ch <= 0:
        zoom = 1.0
    else:
        zoom = min(vw / cw, vh / ch) * margin
    if not math.isfinite(zoom) or zoom <= 0:
        zoom = 1.0
    zoom = clamp(zoom, zoom_min, zoom_max)
    offset = Point((vw - cw * zoom) / 2, (vh - ch * zoom) / 2)
    return zoom, offset


@dataclass
class ViewTransform:
    """Zoom and offset of the view. Zoom is clamped at every mutation."""

    zoom: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0
    zoom_min: float = ZOOM_MIN
    zoom_max: float = ZOOM_MAX

    def __post_init__(self):
        self.zoom = clamp(self.zoom, self.zoom_min, self.zoom_max)

    @property
    def offset(self) -> Point:
        return Point(self.offset_x, self.offset_y)

    def set(self, zoom: float, offset: Point):
        """Replace zoom and offset."""
        self.zoom = clamp(zoom, self.zoom_min, self.zoom_max)
        self.offset_x, self.offset_y = offset[0], offset[1]

    def to_world(self, point: Point) -> Point:
        return screen_to_world(point, self.zoom, self.offset)

    def to_screen(self, point: Point) -> Point:
        return Point(point[0] * self.zoom + self.offset_x, point[1] * self.zoom + self.offset_y)

    def zoom_at(self, anchor: Point, factor: float):
        """Zoom by *factor* around a screen-space anchor."""
        zoom, offset = zoom_around_point(
            self.zoom, self.offset, anchor, factor, self.zoom_min, self.zoom_max
        )
        self.zoom = zoom
        self.offset_x, self.offset_y = offset

    def pan(self, dx: float, dy: float):
        """Shift the view by a screen-space delta. Panning is unbounded."""
        self.offset_x += dx
        self.offset_y += dy

    def fit(self, content_size: tuple[float, float], viewport_size: tuple[float, float],
            margin: float = FIT_MARGIN) -> bool:
        """Fit content into the viewport. Returns False if the viewport is degenerate."""
        result = fit_to_content(
            content_size, viewport_size, margin, self.zoom_min, self.zoom_max
        )
        if result is None:
            return False
        self.set(*result)
        return True


class WheelZoomAccumulator:
    """Collects precise-zoom wheel deltas and applies them once per frame."""

    def __init__(self, sensitivity: float = WHEEL_ZOOM_SENSITIVITY):
        self.sensitivity = sensitivity
        self._accumulated = 0.0
        self._anchor: Point | None = None
        self._pending = False

    @property
    def pending(self) -> bool:
        return self._pending

    def add(self, dy: float, anchor: Point) -> bool:
        """Accumulate a wheel delta. Returns True if a frame must be scheduled."""
        self._accumulated += dy * self.sensitivity
        self._anchor = anchor
        if self._pending:
            return False
        self._pending = True
        return True

    def flush(self) -> tuple[float, Point] | None:
        """Return (factor, anchor) for everything accumulated, then reset."""
        if not self._pending or self._anchor is None:
            self._pending = False
            return None
        factor = math.exp(self._accumulated)
        anchor = self._anchor
        self.reset()
        return factor, anchor

    def reset(self):
        self._accumulated = 0.0
        self._anchor = None
        self._pending = False


@dataclass
class _PinchStart:
    zoom: float
    offset: Point
    world: Point
    distance: float


class TouchPinchTracker:
    """Two-contact pinch state machine keyed by contact id.

    idle (no contacts) -> single (one contact) -> pinching (two contacts).
    Lifting or cancelling any contact drops the pinch state; contacts beyond
    the second are ignored.
    """

    def __init__(self):
        self._contacts: dict[int, Point] = {}
        self._start: _PinchStart | None = None

    @property
    def contact_count(self) -> int:
        return len(self._contacts)

    @property
    def contact_ids(self) -> list[int]:
        return list(self._contacts)

    @property
    def pinching(self) -> bool:
        return self._start is not None

    def _pair(self) -> tuple[Point, float]:
        a, b = list(self._contacts.values())[:2]
        mid = Point((a.x + b.x) / 2, (a.y + b.y) / 2)
        return mid, math.hypot(a.x - b.x, a.y - b.y)

    def contact_down(self, contact_id: int, point: Point, view: ViewTransform) -> bool:
        """Register a contact. Returns True if a pinch just started."""
        if contact_id not in self._contacts and len(self._contacts) >= 2:
            return False
        self._contacts[contact_id] = Point(*point)
        if len(self._contacts) == 2:
            mid, dist = self._pair()
            self._start = _PinchStart(
                zoom=view.zoom,
                offset=view.offset,
                world=view.to_world(mid),
                distance=dist,
            )
            logger.debug(f"Pinch started at {mid} (distance {dist:.1f})")
            return True
        return False

    def contact_move(self, contact_id: int, point: Point, view: ViewTransform) -> bool:
        """Update a contact. Returns True if the view was changed."""
        if contact_id not in self._contacts:
            return False
        self._contacts[contact_id] = Point(*point)
        if len(self._contacts) != 2 or self._start is None:
            return False
        if self._start.distance <= 0:
            return False
        mid, dist = self._pair()
        factor = dist / self._start.distance
        zoom = clamp(self._start.zoom * factor, view.zoom_min, view.zoom_max)
        offset = Point(mid.x - self._start.world.x * zoom, mid.y - self._start.world.y * zoom)
        view.set(zoom, offset)
        return True

    def contact_up(self, contact_id: int):
        self._contacts.pop(contact_id, None)
        if len(self._contacts) < 2:
            self._start = None

    def contact_cancel(self, contact_id: int):
        self._contacts.pop(contact_id, None)
        self._start = None

    def reset(self):
        self._contacts.clear()
        self._start = None


class NativePinchTracker:
    """Platform pinch gestures that report a cumulative scale per gesture."""

    def __init__(self):
        self._previous = 1.0

    def begin(self):
        self._previous = 1.0

    def update(self, scale: float) -> float:
        """Return the incremental factor since the previous update."""
        scale = scale or 1.0
        factor = scale / (self._previous or 1.0)
        self._previous = scale
        return factor


class FitRetry:
    """Retries a fit-to-content until the viewport is laid out.

    Each call to attempt() runs the fit; on failure the caller schedules
    another attempt on the next frame. After *max_attempts* it gives up.
    """

    def __init__(self, max_attempts: int = FIT_MAX_ATTEMPTS):
        self.max_attempts = max_attempts
        self._attempts = 0
        self._generation = 0

    def start(self) -> int:
        """Begin a new fit request; supersedes any retry still in flight."""
        self._attempts = 0
        self._generation += 1
        return self._generation

    def attempt(self, generation: int, view: ViewTransform,
                content_size: tuple[float, float], viewport_size: tuple[float, float],
                margin: float = FIT_MARGIN) -> bool | None:
        """Try to fit.

        Returns True when fitted, False when the caller should retry and
        None when the request is stale or has given up.
        """
        if generation != self._generation:
            logger.debug(f"Dropping stale fit attempt (generation {generation})")
            return None
        if view.fit(content_size, viewport_size, margin):
            return True
        self._attempts += 1
        if self._attempts >= self.max_attempts:
            logger.debug("Viewport still degenerate, giving up on fit")
            return None
        return False
