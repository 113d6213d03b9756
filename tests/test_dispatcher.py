"""Tests for the input dispatcher."""

import math

import pytest

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
    ScheduleFrame,
    SessionChanged,
    ShowMessage,
    TouchCancel,
    TouchDown,
    TouchMove,
    TouchUp,
    Wheel,
    ZoomStep,
)
from floorscale.core.geometry import Point
from floorscale.core.measurement import Mode
from floorscale.core.session import Session


def drag(dispatcher, start, end, via=None):
    """Press at start, move through via to end, release. Returns the release effects."""
    dispatcher.handle(PointerDown(*start))
    for point in via or []:
        dispatcher.handle(PointerMove(*point))
    dispatcher.handle(PointerMove(*end))
    return dispatcher.handle(PointerUp(*end))


def kinds(effects):
    return [type(e) for e in effects]


class TestDrawing:
    def test_calibrate_then_measure(self, dispatcher):
        """Calibrating with a 400 px line at 4 m then measuring 200 px gives 2 m."""
        effects = drag(dispatcher, (0, 0), (400, 0))
        assert LineCommitted in kinds(effects)
        model = dispatcher.session.model
        assert model.scale == pytest.approx(100.0)
        assert model.mode is Mode.MEASURE

        effects = drag(dispatcher, (0, 50), (200, 50))
        committed = [e for e in effects if isinstance(e, LineCommitted)][0]
        assert committed.mode is Mode.MEASURE
        assert model.label_for(committed.line) == "2.00 m"

    def test_temp_line_follows_pointer(self, dispatcher):
        dispatcher.handle(PointerDown(10, 10))
        dispatcher.handle(PointerMove(60, 30))
        temp = dispatcher.temp_line
        assert (temp.x1, temp.y1, temp.x2, temp.y2) == (10, 10, 60, 30)
        dispatcher.handle(PointerUp(60, 30))
        assert dispatcher.temp_line is None

    def test_world_coordinates_under_zoom(self, dispatcher):
        view = dispatcher.session.view
        view.set(2.0, (100, 0))
        drag(dispatcher, (100, 0), (900, 0))
        line = dispatcher.session.model.calibration_line
        assert (line.x1, line.x2) == (0, 400)

    def test_shift_constrains_axis(self, calibrated_session):
        dispatcher = InputDispatcher(calibrated_session)
        dispatcher.handle(KeyDown("Shift"))
        effects = drag(dispatcher, (0, 0), (100, 20))
        line = [e for e in effects if isinstance(e, LineCommitted)][0].line
        assert (line.x2, line.y2) == (100, 0)

        dispatcher.handle(KeyUp("Shift"))
        effects = drag(dispatcher, (0, 0), (100, 20))
        line = [e for e in effects if isinstance(e, LineCommitted)][0].line
        assert line.y2 == 20

    def test_short_drag_discarded_silently(self, dispatcher):
        effects = drag(dispatcher, (10, 10), (11, 10))
        assert ShowMessage not in kinds(effects)
        assert dispatcher.session.model.calibration_line is None

    def test_measure_without_calibration_reports(self, dispatcher):
        dispatcher.handle(KeyDown("3"))
        effects = drag(dispatcher, (0, 0), (100, 0))
        messages = [e.text for e in effects if isinstance(e, ShowMessage)]
        assert messages == ["Calibrate first (draw the reference scale)."]
        assert dispatcher.session.model.lines == ()

    def test_no_drawing_without_image(self):
        dispatcher = InputDispatcher(Session())
        assert drag(dispatcher, (0, 0), (100, 0)) == []
        assert dispatcher.session.model.calibration_line is None

    def test_drag_outside_image_is_kept(self, calibrated_session):
        dispatcher = InputDispatcher(calibrated_session)
        drag(dispatcher, (-50, -50), (1000, -50))
        assert len(calibrated_session.model.lines) == 1


class TestPanZoom:
    def test_space_drag_pans(self, dispatcher):
        dispatcher.handle(KeyDown("Space"))
        assert dispatcher.state.cursor == "grab"
        dispatcher.handle(PointerDown(10, 10))
        assert dispatcher.state.cursor == "grabbing"
        effects = dispatcher.handle(PointerMove(40, 60))
        assert SessionChanged in kinds(effects)
        dispatcher.handle(PointerUp(40, 60))
        assert dispatcher.session.view.offset == Point(30, 50)
        assert dispatcher.session.model.calibration_line is None

    def test_middle_button_pans(self, dispatcher):
        dispatcher.handle(PointerDown(0, 0, Button.MIDDLE))
        dispatcher.handle(PointerMove(-5, 7))
        dispatcher.handle(PointerUp(-5, 7))
        assert dispatcher.session.view.offset == Point(-5, 7)

    def test_plain_wheel_pans(self, dispatcher):
        dispatcher.handle(Wheel(0, 0, dx=-3, dy=12))
        assert dispatcher.session.view.offset == Point(-3, 12)
        assert dispatcher.session.view.zoom == 1.0

    def test_precise_wheel_batches_per_frame(self, dispatcher):
        view = dispatcher.session.view
        assert kinds(dispatcher.handle(Wheel(50, 50, 0, 10, precise=True))) == [ScheduleFrame]
        assert dispatcher.handle(Wheel(50, 50, 0, 10, precise=True)) == []
        assert view.zoom == 1.0
        dispatcher.handle(Frame())
        assert view.zoom == pytest.approx(math.exp(20 * 0.02))
        assert view.to_world(Point(50, 50)).x == pytest.approx(50)
        assert dispatcher.handle(Frame()) == []

    def test_double_click_zoom(self, dispatcher):
        view = dispatcher.session.view
        dispatcher.handle(DoubleClick(100, 100))
        assert view.zoom == pytest.approx(1.5)
        dispatcher.handle(DoubleClick(100, 100, alt=True))
        assert view.zoom == pytest.approx(1.0)
        assert view.to_world(Point(100, 100)).x == pytest.approx(100)

    def test_zoom_step_uses_centre(self, dispatcher):
        view = dispatcher.session.view
        dispatcher.handle(ZoomStep(1.15, 400, 300))
        assert view.zoom == pytest.approx(1.15)
        assert view.to_world(Point(200, 150)).x == pytest.approx(200)

    def test_native_pinch(self, dispatcher):
        view = dispatcher.session.view
        dispatcher.handle(NativePinch(GesturePhase.BEGIN, 1.0, 400, 300))
        dispatcher.handle(NativePinch(GesturePhase.UPDATE, 1.2, 400, 300))
        dispatcher.handle(NativePinch(GesturePhase.UPDATE, 1.5, 400, 300))
        dispatcher.handle(NativePinch(GesturePhase.END, 1.5, 400, 300))
        assert view.zoom == pytest.approx(1.5)


class TestTouch:
    def test_single_touch_draws(self, dispatcher):
        dispatcher.handle(TouchDown(1, 0, 0))
        dispatcher.handle(TouchMove(1, 400, 0))
        dispatcher.handle(TouchUp(1, 400, 0))
        assert dispatcher.session.model.scale == pytest.approx(100.0)

    def test_second_contact_cancels_drag_and_pinches(self, dispatcher):
        view = dispatcher.session.view
        dispatcher.handle(TouchDown(1, 100, 100))
        dispatcher.handle(TouchMove(1, 150, 100))
        dispatcher.handle(TouchDown(2, 200, 100))
        assert dispatcher.temp_line is None
        dispatcher.handle(TouchMove(2, 250, 100))
        assert view.zoom == pytest.approx(2.0)
        dispatcher.handle(TouchUp(2, 250, 100))
        dispatcher.handle(TouchUp(1, 150, 100))
        assert dispatcher.session.model.calibration_line is None

    def test_cancel_clears_drag(self, dispatcher):
        dispatcher.handle(TouchDown(1, 0, 0))
        dispatcher.handle(TouchMove(1, 300, 0))
        dispatcher.handle(TouchCancel(1))
        assert dispatcher.temp_line is None
        assert not dispatcher.state.dragging

    def test_mouse_ignored_while_pinching(self, dispatcher):
        dispatcher.handle(TouchDown(1, 0, 0))
        dispatcher.handle(TouchDown(2, 100, 0))
        assert dispatcher.handle(PointerDown(5, 5)) == []


class TestKeys:
    def test_mode_keys(self, dispatcher):
        model = dispatcher.session.model
        dispatcher.handle(KeyDown("3"))
        assert model.mode is Mode.MEASURE
        dispatcher.handle(KeyDown("2"))
        assert model.mode is Mode.CALIBRATE

    def test_undo(self, calibrated_session):
        dispatcher = InputDispatcher(calibrated_session)
        drag(dispatcher, (0, 0), (100, 0))
        drag(dispatcher, (0, 0), (200, 0))
        assert SessionChanged in kinds(dispatcher.handle(KeyDown("z", ctrl=True)))
        assert len(calibrated_session.model.lines) == 1
        dispatcher.handle(KeyDown("Z", ctrl=True))
        assert dispatcher.handle(KeyDown("z", ctrl=True)) == []
        assert calibrated_session.model.calibration_line is not None

    def test_plain_z_does_nothing(self, calibrated_session):
        dispatcher = InputDispatcher(calibrated_session)
        drag(dispatcher, (0, 0), (100, 0))
        dispatcher.handle(KeyDown("z"))
        assert len(calibrated_session.model.lines) == 1

    def test_escape_cancels_drag(self, dispatcher):
        dispatcher.handle(PointerDown(0, 0))
        dispatcher.handle(PointerMove(100, 0))
        dispatcher.handle(KeyDown("Escape"))
        assert dispatcher.temp_line is None
        assert dispatcher.handle(PointerUp(100, 0)) == []
        assert dispatcher.session.model.calibration_line is None


def test_unknown_event_rejected(dispatcher):
    with pytest.raises(TypeError):
        dispatcher.handle(object())
