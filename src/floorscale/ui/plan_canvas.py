"""Floor plan canvas for FloorScale.

Translates Qt mouse, wheel, touch, native gesture and key events into
dispatcher events, executes the effects the dispatcher returns, decodes
images off the UI thread and paints the session.
"""

import threading
import time

from loguru import logger
from PySide6.QtCore import QEvent, QObject, QPointF, Qt, QTimer, Signal
from PySide6.QtGui import (
    QCursor,
    QEventPoint,
    QGuiApplication,
    QInputDevice,
    QPainter,
    QPixmap,
)
from PySide6.QtWidgets import QWidget

from floorscale.config.manager import ConfigManager
from floorscale.core.dispatcher import (
    Button,
    DoubleClick,
    Frame,
    GesturePhase,
    InputDispatcher,
    KeyDown,
    KeyUp,
    LineCommitted,
    NativePinch,
    PointerDown,
    PointerMove,
    PointerUp,
    Repaint,
    ScheduleFrame,
    SessionChanged,
    ShowMessage,
    StatusChanged,
    TouchCancel,
    TouchDown,
    TouchMove,
    TouchUp,
    Wheel,
    ZoomStep,
)
from floorscale.core.errors import FloorScaleError
from floorscale.core.measurement import DisplayUnit, Mode
from floorscale.core.persistence import SessionPersistence
from floorscale.core.session import ImageRef, PendingImage, Session
from floorscale.core.transform import FitRetry, WheelZoomAccumulator
from floorscale.importers.image import DECODE_FAILED_MESSAGE, decode_image
from floorscale.render.painter import paint_scene
from floorscale.render.scene import build_scene

_BUTTONS = {
    Qt.MouseButton.LeftButton: Button.PRIMARY,
    Qt.MouseButton.MiddleButton: Button.MIDDLE,
    Qt.MouseButton.RightButton: Button.SECONDARY,
}

_KEYS = {
    Qt.Key.Key_Shift: "Shift",
    Qt.Key.Key_Space: "Space",
    Qt.Key.Key_Escape: "Escape",
    Qt.Key.Key_2: "2",
    Qt.Key.Key_3: "3",
    Qt.Key.Key_Z: "z",
}

_TAP_SLOP_PX = 10

_TOUCH_EVENTS = (
    QEvent.Type.TouchBegin,
    QEvent.Type.TouchUpdate,
    QEvent.Type.TouchEnd,
    QEvent.Type.TouchCancel,
)

_CURSORS = {
    "grab": Qt.CursorShape.OpenHandCursor,
    "grabbing": Qt.CursorShape.ClosedHandCursor,
    "crosshair": Qt.CursorShape.CrossCursor,
}


class _DecodeSignals(QObject):
    decoded = Signal(int, object, bool)  # generation, ImageRef, restoring
    failed = Signal(int, str, bool)  # generation, message, restoring


class PlanCanvas(QWidget):
    """Interactive floor plan view."""

    message = Signal(str)
    status_changed = Signal()
    line_committed = Signal(object, object)  # Line, Mode

    def __init__(self, config: ConfigManager, session: Session,
                 persistence: SessionPersistence, parent=None):
        super().__init__(parent)
        self._config = config
        self._session = session
        self._persistence = persistence
        self._pixmap: QPixmap | None = None
        self._frame_ms = int(config.get("viewport", "frame_interval_ms", 16))
        self._fit_margin = config.get("viewport", "fit_margin", 0.95)
        self._fit = FitRetry(config.get("viewport", "fit_max_attempts", 10))
        self._native_scale = 1.0
        self._last_tap: tuple[float, float, float] | None = None
        self._colors = config.colors()

        self._dispatcher = InputDispatcher(
            session,
            wheel=WheelZoomAccumulator(config.get("viewport", "wheel_zoom_sensitivity", 0.02)),
            min_drag_px=config.get("viewport", "min_drag_px", 2.0),
            double_click_factor=config.get("viewport", "double_click_zoom_factor", 1.5),
        )

        self._signals = _DecodeSignals()
        self._signals.decoded.connect(self._on_decoded)
        self._signals.failed.connect(self._on_decode_failed)

        self.setMinimumSize(320, 240)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self.setContextMenuPolicy(Qt.ContextMenuPolicy.PreventContextMenu)
        self.setAttribute(Qt.WidgetAttribute.WA_AcceptTouchEvents)
        self._update_cursor()

    @property
    def session(self) -> Session:
        return self._session

    @property
    def dispatcher(self) -> InputDispatcher:
        return self._dispatcher

    # -------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------

    def dispatch(self, event):
        self._apply(self._dispatcher.handle(event))

    def _apply(self, effects: list):
        for effect in effects:
            if isinstance(effect, Repaint):
                self.update()
            elif isinstance(effect, ScheduleFrame):
                QTimer.singleShot(self._frame_ms, self._on_frame)
            elif isinstance(effect, ShowMessage):
                self.message.emit(effect.text)
            elif isinstance(effect, SessionChanged):
                self._persistence.mark_dirty()
                self.status_changed.emit()
            elif isinstance(effect, StatusChanged):
                self.status_changed.emit()
            elif isinstance(effect, LineCommitted):
                self.line_committed.emit(effect.line, effect.mode)
        self._update_cursor()

    def _on_frame(self):
        self.dispatch(Frame())

    def _update_cursor(self):
        self.setCursor(QCursor(_CURSORS[self._dispatcher.state.cursor]))

    # -------------------------------------------------------------------
    # Commands used by the main window
    # -------------------------------------------------------------------

    def zoom_in(self):
        factor = self._config.get("viewport", "zoom_step_factor", 1.15)
        self.dispatch(ZoomStep(factor, self.width(), self.height()))

    def zoom_out(self):
        factor = self._config.get("viewport", "zoom_step_factor", 1.15)
        self.dispatch(ZoomStep(1 / factor, self.width(), self.height()))

    def undo(self):
        self.dispatch(KeyDown("z", ctrl=True))

    def set_mode(self, mode: Mode):
        self.dispatch(KeyDown("2" if mode is Mode.CALIBRATE else "3"))

    def set_reference_length(self, value: float):
        """Raises InvalidInputError for non-positive values; nothing changes then."""
        self._session.model.set_reference_length(value)
        self._changed()

    def set_unit(self, unit: DisplayUnit):
        self._session.model.set_unit(unit)
        self._changed()

    def reset_measurements(self):
        self.dispatch(KeyDown("Escape"))
        self._session.model.reset()
        self._changed()

    def _changed(self):
        self.update()
        self._persistence.mark_dirty()
        self.status_changed.emit()

    def render_to_image(self):
        """Rasterize the current canvas contents."""
        return self.grab().toImage()

    # -------------------------------------------------------------------
    # Image loading
    # -------------------------------------------------------------------

    def load_image_bytes(self, data: bytes, name: str | None = None,
                         mime_type: str | None = None):
        """Decode a newly selected image in the background."""
        pending = PendingImage(data=data, name=name, mime_type=mime_type)
        generation = self._session.begin_image_load(pending)
        self._start_decode(generation, pending, restoring=False)

    def decode_pending(self):
        """Decode an image restored from a saved session."""
        pending = self._session.pending_image
        if pending is None:
            return
        generation = self._session.begin_image_load(pending)
        self._start_decode(generation, pending, restoring=True)

    def _start_decode(self, generation: int, pending: PendingImage, restoring: bool):
        self.status_changed.emit()
        thread = threading.Thread(
            target=self._decode_worker, args=(generation, pending, restoring), daemon=True
        )
        thread.start()

    def _decode_worker(self, generation: int, pending: PendingImage, restoring: bool):
        try:
            image = decode_image(pending.data, pending.name, pending.mime_type)
            self._signals.decoded.emit(generation, image, restoring)
        except FloorScaleError as e:
            self._signals.failed.emit(generation, str(e), restoring)
        except Exception as e:
            logger.error(f"Image decode crashed: {e}")
            self._signals.failed.emit(generation, DECODE_FAILED_MESSAGE, restoring)

    def _on_decoded(self, generation: int, image: ImageRef, restoring: bool):
        if not self._session.is_current_load(generation):
            logger.debug(f"Ignoring stale decode result (generation {generation})")
            return
        pixmap = QPixmap()
        if not pixmap.loadFromData(image.data):
            self._on_decode_failed(generation, DECODE_FAILED_MESSAGE, restoring)
            return
        if not self._session.complete_image_load(generation, image, keep_measurements=restoring):
            return
        self._pixmap = pixmap
        self.dispatch(KeyDown("Escape"))
        self.fit_to_view()
        self._changed()

    def _on_decode_failed(self, generation: int, message: str, restoring: bool):
        if not self._session.fail_image_load(generation):
            return
        self.status_changed.emit()
        if restoring:
            logger.warning(f"Saved image could not be decoded, starting empty: {message}")
            self._session.model.reset()
            self.update()
            return
        self.message.emit(message)

    # -------------------------------------------------------------------
    # Fit
    # -------------------------------------------------------------------

    def fit_to_view(self):
        """Fit the image, retrying on later frames while the widget has no size."""
        self._try_fit(self._fit.start())

    def _try_fit(self, generation: int):
        image = self._session.image
        if image is None:
            return
        result = self._fit.attempt(
            generation, self._session.view, image.size,
            (self.width(), self.height()), self._fit_margin,
        )
        if result is True:
            self.update()
            self._persistence.mark_dirty()
        elif result is False:
            QTimer.singleShot(self._frame_ms, lambda: self._try_fit(generation))

    # -------------------------------------------------------------------
    # Painting
    # -------------------------------------------------------------------

    def paintEvent(self, event):
        scene = build_scene(
            self._session,
            self._dispatcher.temp_line,
            (self.width(), self.height()),
            self._colors,
        )
        painter = QPainter(self)
        try:
            paint_scene(painter, scene, self._pixmap)
            if not self._session.has_image:
                self._paint_placeholder(painter)
        finally:
            painter.end()

    def _paint_placeholder(self, painter: QPainter):
        text = (
            "Loading image..."
            if self._session.image_pending
            else "Upload a floor plan image to begin\n\n"
            "Draw the scale in Calibrate, then switch to Measure to annotate dimensions.\n"
            "Or drag and drop an image here."
        )
        painter.setPen(Qt.GlobalColor.darkGray)
        painter.drawText(self.rect(), Qt.AlignmentFlag.AlignCenter, text)

    # -------------------------------------------------------------------
    # Mouse interaction
    # -------------------------------------------------------------------

    def mousePressEvent(self, event):
        if _from_touchscreen(event):
            event.ignore()
            return
        button = _BUTTONS.get(event.button())
        if button is None:
            return
        self.setFocus()
        pos = event.position()
        self.dispatch(PointerDown(pos.x(), pos.y(), button))

    def mouseMoveEvent(self, event):
        if _from_touchscreen(event):
            return
        pos = event.position()
        self.dispatch(PointerMove(pos.x(), pos.y()))

    def mouseReleaseEvent(self, event):
        if _from_touchscreen(event):
            return
        pos = event.position()
        self.dispatch(PointerUp(pos.x(), pos.y()))

    def mouseDoubleClickEvent(self, event):
        if _from_touchscreen(event):
            return
        pos = event.position()
        alt = bool(event.modifiers() & Qt.KeyboardModifier.AltModifier)
        self.dispatch(DoubleClick(pos.x(), pos.y(), alt))

    def wheelEvent(self, event):
        pixel = event.pixelDelta()
        if not pixel.isNull():
            dx, dy = pixel.x(), pixel.y()
        else:
            angle = event.angleDelta()
            # 120 units per notch, 15 px per notch
            dx, dy = angle.x() / 8, angle.y() / 8
        precise = bool(event.modifiers() & Qt.KeyboardModifier.ControlModifier)
        pos = event.position()
        self.dispatch(Wheel(pos.x(), pos.y(), dx, dy, precise))
        event.accept()

    # -------------------------------------------------------------------
    # Touch and native gestures
    # -------------------------------------------------------------------

    def event(self, event):
        etype = event.type()
        if etype in _TOUCH_EVENTS and not _from_touchscreen(event):
            # Trackpad contacts arrive as mouse and wheel events as well
            return super().event(event)
        if etype in (QEvent.Type.TouchBegin, QEvent.Type.TouchUpdate, QEvent.Type.TouchEnd):
            self._handle_touch(event)
            event.accept()
            return True
        if etype == QEvent.Type.TouchCancel:
            for contact_id in list(self._dispatcher.touch.contact_ids):
                self.dispatch(TouchCancel(contact_id))
            event.accept()
            return True
        if etype == QEvent.Type.NativeGesture:
            if self._handle_native_gesture(event):
                event.accept()
                return True
        return super().event(event)

    def _handle_touch(self, event):
        points = event.points()
        for point in points:
            pos: QPointF = point.position()
            state = point.state()
            if state == QEventPoint.State.Pressed:
                self.dispatch(TouchDown(point.id(), pos.x(), pos.y()))
            elif state == QEventPoint.State.Updated:
                self.dispatch(TouchMove(point.id(), pos.x(), pos.y()))
            elif state == QEventPoint.State.Released:
                self.dispatch(TouchUp(point.id(), pos.x(), pos.y()))
                if len(points) == 1:
                    self._register_tap(point)

    def _register_tap(self, point):
        """Turn two quick taps at the same spot into a double-click zoom."""
        pos = point.position()
        press = point.pressPosition()
        if abs(pos.x() - press.x()) > _TAP_SLOP_PX or abs(pos.y() - press.y()) > _TAP_SLOP_PX:
            self._last_tap = None
            return
        now = time.monotonic()
        interval = QGuiApplication.styleHints().mouseDoubleClickInterval() / 1000
        last = self._last_tap
        if (
            last is not None
            and now - last[0] <= interval
            and abs(pos.x() - last[1]) <= _TAP_SLOP_PX
            and abs(pos.y() - last[2]) <= _TAP_SLOP_PX
        ):
            self._last_tap = None
            self.dispatch(DoubleClick(pos.x(), pos.y()))
            return
        self._last_tap = (now, pos.x(), pos.y())

    def _handle_native_gesture(self, event) -> bool:
        gesture = event.gestureType()
        if gesture == Qt.NativeGestureType.BeginNativeGesture:
            self._native_scale = 1.0
            self.dispatch(NativePinch(GesturePhase.BEGIN, 1.0, self.width(), self.height()))
            return True
        if gesture == Qt.NativeGestureType.ZoomNativeGesture:
            # Qt reports increments; the dispatcher expects the running scale
            self._native_scale *= 1.0 + event.value()
            self.dispatch(
                NativePinch(GesturePhase.UPDATE, self._native_scale, self.width(), self.height())
            )
            return True
        if gesture == Qt.NativeGestureType.EndNativeGesture:
            self.dispatch(NativePinch(GesturePhase.END, self._native_scale, self.width(), self.height()))
            return True
        return False

    # -------------------------------------------------------------------
    # Keyboard
    # -------------------------------------------------------------------

    def keyPressEvent(self, event):
        key = _KEYS.get(event.key())
        if key is None or event.isAutoRepeat():
            super().keyPressEvent(event)
            return
        ctrl = bool(
            event.modifiers()
            & (Qt.KeyboardModifier.ControlModifier | Qt.KeyboardModifier.MetaModifier)
        )
        self.dispatch(KeyDown(key, ctrl))

    def keyReleaseEvent(self, event):
        key = _KEYS.get(event.key())
        if key is None or event.isAutoRepeat():
            super().keyReleaseEvent(event)
            return
        self.dispatch(KeyUp(key))

    def focusOutEvent(self, event):
        # Modifier releases are lost while unfocused
        self.dispatch(KeyUp("Shift"))
        self.dispatch(KeyUp("Space"))
        super().focusOutEvent(event)


def _from_touchscreen(event) -> bool:
    """Whether a mouse or touch event comes from a touchscreen.

    Touchscreen input is handled through the touch path; mouse events Qt
    synthesizes from it are skipped.
    """
    device = event.device()
    return device is not None and device.type() == QInputDevice.DeviceType.TouchScreen
