"""Input dispatcher for FloorScale.

Turns toolkit-neutral input events into pan, zoom and drawing actions on a
Session, and reports what the UI has to do next as a list of effects. The
Qt canvas only translates its native events into the dataclasses below and
executes the returned effects, so every interaction can be replayed in
tests without a window.

Screen coordinates are relative to the canvas' top-left corner. Wheel
deltas follow Qt's convention: positive dy means the wheel moved away from
the user (scroll up), which pans the content down and zooms in.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from loguru import logger

from floorscale.core.errors import InvalidInputError
from floorscale.core.geometry import Line, Point, constrain_axis, distance
from floorscale.core.measurement import Mode
from floorscale.core.session import Session
from floorscale.core.transform import (
    DOUBLE_CLICK_ZOOM_FACTOR,
    NativePinchTracker,
    TouchPinchTracker,
    WheelZoomAccumulator,
)

MIN_DRAG_PX = 2.0
TEMP_LINE_ID = "temp"


class Button(Enum):
    PRIMARY = "primary"
    MIDDLE = "middle"
    SECONDARY = "secondary"


class GesturePhase(Enum):
    BEGIN = "begin"
    UPDATE = "update"
    END = "end"


# -------------------------------------------------------------------
# Events
# -------------------------------------------------------------------


@dataclass(frozen=True)
class PointerDown:
    x: float
    y: float
    button: Button = Button.PRIMARY


@dataclass(frozen=True)
class PointerMove:
    x: float
    y: float


@dataclass(frozen=True)
class PointerUp:
    x: float
    y: float


@dataclass(frozen=True)
class DoubleClick:
    x: float
    y: float
    alt: bool = False


@dataclass(frozen=True)
class Wheel:
    x: float
    y: float
    dx: float
    dy: float
    precise: bool = False


@dataclass(frozen=True)
class Frame:
    """A paint opportunity; batched work is applied here."""


@dataclass(frozen=True)
class TouchDown:
    contact_id: int
    x: float
    y: float


@dataclass(frozen=True)
class TouchMove:
    contact_id: int
    x: float
    y: float


@dataclass(frozen=True)
class TouchUp:
    contact_id: int
    x: float = 0.0
    y: float = 0.0


@dataclass(frozen=True)
class TouchCancel:
    contact_id: int


@dataclass(frozen=True)
class NativePinch:
    phase: GesturePhase
    scale: float
    viewport_w: float
    viewport_h: float


@dataclass(frozen=True)
class ZoomStep:
    """Toolbar zoom in/out around the viewport centre."""

    factor: float
    viewport_w: float
    viewport_h: float


@dataclass(frozen=True)
class KeyDown:
    key: str
    ctrl: bool = False


@dataclass(frozen=True)
class KeyUp:
    key: str


# -------------------------------------------------------------------
# Effects
# -------------------------------------------------------------------


@dataclass(frozen=True)
class Repaint:
    pass


@dataclass(frozen=True)
class ShowMessage:
    text: str


@dataclass(frozen=True)
class ScheduleFrame:
    pass


@dataclass(frozen=True)
class StatusChanged:
    """Mode or other non-persisted state changed."""


@dataclass(frozen=True)
class SessionChanged:
    """A persisted field changed."""


@dataclass(frozen=True)
class LineCommitted:
    line: Line
    mode: Mode


@dataclass
class InputState:
    """Transient interaction state. Never persisted."""

    dragging: bool = False
    panning: bool = False
    drag_start_world: Point | None = None
    temp_line: Line | None = None
    pan_start: tuple[float, float, float, float] | None = None
    space_down: bool = False
    shift_down: bool = False
    touch_pointer: int | None = None  # single contact acting as the primary pointer

    @property
    def cursor(self) -> str:
        if self.panning:
            return "grabbing"
        if self.space_down:
            return "grab"
        return "crosshair"


@dataclass
class InputDispatcher:
    """Routes input events to the view transform or the measurement model."""

    session: Session
    state: InputState = field(default_factory=InputState)
    wheel: WheelZoomAccumulator = field(default_factory=WheelZoomAccumulator)
    touch: TouchPinchTracker = field(default_factory=TouchPinchTracker)
    native_pinch: NativePinchTracker = field(default_factory=NativePinchTracker)
    min_drag_px: float = MIN_DRAG_PX
    double_click_factor: float = DOUBLE_CLICK_ZOOM_FACTOR

    def __post_init__(self):
        self._handlers: dict[type, Callable] = {
            PointerDown: self._pointer_down,
            PointerMove: self._pointer_move,
            PointerUp: self._pointer_up,
            DoubleClick: self._double_click,
            Wheel: self._wheel,
            Frame: self._frame,
            TouchDown: self._touch_down,
            TouchMove: self._touch_move,
            TouchUp: self._touch_up,
            TouchCancel: self._touch_cancel,
            NativePinch: self._native_pinch,
            ZoomStep: self._zoom_step,
            KeyDown: self._key_down,
            KeyUp: self._key_up,
        }

    def handle(self, event) -> list:
        """Apply one input event and return the resulting effects."""
        handler = self._handlers.get(type(event))
        if handler is None:
            raise TypeError(f"Unsupported input event: {event!r}")
        return handler(event)

    @property
    def view(self):
        return self.session.view

    @property
    def temp_line(self) -> Line | None:
        return self.state.temp_line

    # -------------------------------------------------------------------
    # Mouse / pen
    # -------------------------------------------------------------------

    def _pointer_down(self, event: PointerDown) -> list:
        if self.touch.pinching:
            return []
        st = self.state
        if st.space_down or event.button is not Button.PRIMARY:
            st.panning = True
            st.dragging = True
            st.pan_start = (event.x, event.y, self.view.offset_x, self.view.offset_y)
            return [StatusChanged()]
        if not self.session.can_draw:
            return []
        world = self.view.to_world(Point(event.x, event.y))
        st.drag_start_world = world
        st.temp_line = Line(TEMP_LINE_ID, world.x, world.y, world.x, world.y)
        st.dragging = True
        return [Repaint()]

    def _pointer_move(self, event: PointerMove) -> list:
        st = self.state
        if st.panning and st.pan_start is not None:
            sx, sy, ox, oy = st.pan_start
            self.view.set(self.view.zoom, (ox + event.x - sx, oy + event.y - sy))
            return [Repaint(), SessionChanged()]
        if not st.dragging or st.temp_line is None:
            return []
        st.temp_line = st.temp_line.with_end(self._drag_point(event.x, event.y))
        return [Repaint()]

    def _pointer_up(self, event: PointerUp) -> list:
        st = self.state
        if st.panning:
            st.panning = False
            st.dragging = False
            st.pan_start = None
            return [StatusChanged()]
        st.dragging = False
        line = st.temp_line
        st.temp_line = None
        st.drag_start_world = None
        if line is None:
            return []
        line = line.with_end(self._drag_point(event.x, event.y, line.start))
        if distance(line) * self.view.zoom < self.min_drag_px:
            return [Repaint()]

        model = self.session.model
        mode = model.mode
        try:
            stored = model.commit_line(line)
        except InvalidInputError as e:
            logger.info(f"Line rejected: {e}")
            return [Repaint(), ShowMessage(str(e))]
        if stored is None:
            return [Repaint()]
        return [Repaint(), LineCommitted(stored, mode), SessionChanged()]

    def _drag_point(self, x: float, y: float, start: Point | None = None) -> Point:
        world = self.view.to_world(Point(x, y))
        start = start or self.state.drag_start_world
        if self.state.shift_down and start is not None:
            world = constrain_axis(start, world)
        return world

    def _double_click(self, event: DoubleClick) -> list:
        factor = 1 / self.double_click_factor if event.alt else self.double_click_factor
        self.view.zoom_at(Point(event.x, event.y), factor)
        return [Repaint(), SessionChanged()]

    # -------------------------------------------------------------------
    # Wheel / trackpad
    # -------------------------------------------------------------------

    def _wheel(self, event: Wheel) -> list:
        if event.precise:
            if self.wheel.add(event.dy, Point(event.x, event.y)):
                return [ScheduleFrame()]
            return []
        self.view.pan(event.dx, event.dy)
        return [Repaint(), SessionChanged()]

    def _frame(self, event: Frame) -> list:
        batch = self.wheel.flush()
        if batch is None:
            return []
        factor, anchor = batch
        self.view.zoom_at(anchor, factor)
        return [Repaint(), SessionChanged()]

    def _native_pinch(self, event: NativePinch) -> list:
        if event.phase is GesturePhase.BEGIN:
            self.native_pinch.begin()
            return []
        if event.phase is GesturePhase.END:
            return []
        factor = self.native_pinch.update(event.scale)
        centre = Point(event.viewport_w / 2, event.viewport_h / 2)
        self.view.zoom_at(centre, factor)
        return [Repaint(), SessionChanged()]

    def _zoom_step(self, event: ZoomStep) -> list:
        self.view.zoom_at(Point(event.viewport_w / 2, event.viewport_h / 2), event.factor)
        return [Repaint(), SessionChanged()]

    # -------------------------------------------------------------------
    # Touch
    # -------------------------------------------------------------------

    def _touch_down(self, event: TouchDown) -> list:
        started = self.touch.contact_down(event.contact_id, Point(event.x, event.y), self.view)
        if started:
            # Two contacts are a gesture, never a drag
            self._cancel_interaction()
            return [Repaint()]
        if self.touch.contact_count == 1 and self.state.touch_pointer is None:
            self.state.touch_pointer = event.contact_id
            return self._pointer_down(PointerDown(event.x, event.y))
        return []

    def _touch_move(self, event: TouchMove) -> list:
        if self.touch.contact_move(event.contact_id, Point(event.x, event.y), self.view):
            return [Repaint(), SessionChanged()]
        if event.contact_id == self.state.touch_pointer:
            return self._pointer_move(PointerMove(event.x, event.y))
        return []

    def _touch_up(self, event: TouchUp) -> list:
        self.touch.contact_up(event.contact_id)
        if event.contact_id == self.state.touch_pointer:
            self.state.touch_pointer = None
            return self._pointer_up(PointerUp(event.x, event.y))
        return []

    def _touch_cancel(self, event: TouchCancel) -> list:
        self.touch.contact_cancel(event.contact_id)
        if event.contact_id == self.state.touch_pointer:
            self._cancel_interaction()
            return [Repaint()]
        return []

    # -------------------------------------------------------------------
    # Keyboard
    # -------------------------------------------------------------------

    def _key_down(self, event: KeyDown) -> list:
        key = event.key
        model = self.session.model
        if key == "Shift":
            self.state.shift_down = True
            return []
        if key == "Space":
            self.state.space_down = True
            return [StatusChanged()]
        if key == "2":
            model.set_mode(Mode.CALIBRATE)
            return [Repaint(), StatusChanged()]
        if key == "3":
            model.set_mode(Mode.MEASURE)
            return [Repaint(), StatusChanged()]
        if event.ctrl and key.lower() == "z":
            if model.undo() is None:
                return []
            return [Repaint(), SessionChanged()]
        if key == "Escape":
            self._cancel_interaction()
            self.touch.reset()
            return [Repaint(), StatusChanged()]
        return []

    def _key_up(self, event: KeyUp) -> list:
        if event.key == "Shift":
            self.state.shift_down = False
        elif event.key == "Space":
            self.state.space_down = False
            return [StatusChanged()]
        return []

    def _cancel_interaction(self):
        st = self.state
        st.dragging = False
        st.panning = False
        st.pan_start = None
        st.temp_line = None
        st.drag_start_world = None
        st.touch_pointer = None
