"""Tests for the view transform controller."""

import math

import pytest

from floorscale.core.geometry import Point
from floorscale.core.transform import (
    FitRetry,
    NativePinchTracker,
    TouchPinchTracker,
    ViewTransform,
    WheelZoomAccumulator,
    fit_to_content,
    zoom_around_point,
)


class TestZoomAroundPoint:
    @pytest.mark.parametrize("factor", [0.5, 1.15, 3.0])
    def test_anchor_stays_fixed(self, factor):
        """The world point under the anchor maps back to the anchor."""
        view = ViewTransform(zoom=1.3, offset_x=-20, offset_y=45)
        anchor = Point(123, 77)
        before = view.to_world(anchor)
        view.zoom_at(anchor, factor)
        after = view.to_screen(before)
        assert after.x == pytest.approx(anchor.x)
        assert after.y == pytest.approx(anchor.y)

    def test_zoom_is_clamped(self):
        zoom, _ = zoom_around_point(10.0, Point(0, 0), Point(0, 0), 100)
        assert zoom == 20.0
        zoom, _ = zoom_around_point(0.1, Point(0, 0), Point(0, 0), 0.001)
        assert zoom == 0.05

    def test_anchor_fixed_when_clamped(self):
        view = ViewTransform(zoom=19.0)
        anchor = Point(50, 60)
        before = view.to_world(anchor)
        view.zoom_at(anchor, 5)
        assert view.zoom == 20.0
        assert view.to_screen(before).x == pytest.approx(50)

    def test_constructor_clamps(self):
        assert ViewTransform(zoom=100).zoom == 20.0


class TestFit:
    def test_fit_centres_content(self):
        zoom, offset = fit_to_content((200, 100), (800, 600))
        assert zoom == pytest.approx(4.0 * 0.95)
        assert offset.x == pytest.approx((800 - 200 * zoom) / 2)
        assert offset.y == pytest.approx((600 - 100 * zoom) / 2)

    def test_degenerate_viewport(self):
        assert fit_to_content((200, 100), (1, 600)) is None
        assert ViewTransform().fit((200, 100), (0, 0)) is False

    def test_fit_clamps_zoom(self):
        """A clamped fit zoom still centres the content."""
        view = ViewTransform()
        assert view.fit((1, 1), (1000, 1000))
        assert view.zoom == 20.0
        centre = view.to_screen(Point(0.5, 0.5))
        assert centre.x == pytest.approx(500)
        assert centre.y == pytest.approx(500)

    def test_fit_clamps_to_custom_bounds(self):
        zoom, offset = fit_to_content((1000, 1000), (100, 100), zoom_min=0.5)
        assert zoom == 0.5
        assert offset == Point(-200, -200)


class TestPan:
    def test_pan_unbounded(self):
        view = ViewTransform()
        view.pan(-1e6, 5)
        assert view.offset == Point(-1e6, 5)


class TestWheelAccumulator:
    def test_batches_into_one_frame(self):
        acc = WheelZoomAccumulator(sensitivity=0.02)
        assert acc.add(10, Point(1, 1)) is True
        assert acc.add(15, Point(5, 5)) is False
        factor, anchor = acc.flush()
        assert factor == pytest.approx(math.exp(25 * 0.02))
        assert anchor == Point(5, 5)
        assert not acc.pending
        assert acc.flush() is None

    def test_scroll_down_zooms_out(self):
        acc = WheelZoomAccumulator()
        acc.add(-30, Point(0, 0))
        factor, _ = acc.flush()
        assert factor < 1


class TestTouchPinch:
    def test_pinch_keeps_midpoint_world_fixed(self):
        view = ViewTransform(zoom=1.0)
        tracker = TouchPinchTracker()
        assert tracker.contact_down(1, Point(100, 100), view) is False
        assert tracker.contact_down(2, Point(200, 100), view) is True
        assert tracker.pinching
        world_mid = view.to_world(Point(150, 100))

        assert tracker.contact_move(2, Point(300, 100), view)
        assert view.zoom == pytest.approx(2.0)
        mid = view.to_screen(world_mid)
        assert mid.x == pytest.approx(200)
        assert mid.y == pytest.approx(100)

    def test_lift_ends_pinch(self):
        view = ViewTransform()
        tracker = TouchPinchTracker()
        tracker.contact_down(1, Point(0, 0), view)
        tracker.contact_down(2, Point(10, 0), view)
        tracker.contact_up(2)
        assert not tracker.pinching
        assert tracker.contact_count == 1
        assert tracker.contact_move(1, Point(5, 5), view) is False

    def test_third_contact_ignored(self):
        view = ViewTransform()
        tracker = TouchPinchTracker()
        tracker.contact_down(1, Point(0, 0), view)
        tracker.contact_down(2, Point(10, 0), view)
        assert tracker.contact_down(3, Point(20, 0), view) is False
        assert tracker.contact_ids == [1, 2]

    def test_coincident_contacts_do_not_divide_by_zero(self):
        view = ViewTransform(zoom=2.0)
        tracker = TouchPinchTracker()
        tracker.contact_down(1, Point(50, 50), view)
        tracker.contact_down(2, Point(50, 50), view)
        assert tracker.contact_move(2, Point(80, 50), view) is False
        assert view.zoom == 2.0

    def test_cancel_resets(self):
        view = ViewTransform()
        tracker = TouchPinchTracker()
        tracker.contact_down(1, Point(0, 0), view)
        tracker.contact_down(2, Point(10, 0), view)
        tracker.contact_cancel(1)
        assert not tracker.pinching


class TestNativePinch:
    def test_incremental_factor(self):
        tracker = NativePinchTracker()
        tracker.begin()
        assert tracker.update(1.2) == pytest.approx(1.2)
        assert tracker.update(1.5) == pytest.approx(1.25)
        tracker.begin()
        assert tracker.update(0.5) == pytest.approx(0.5)


class TestFitRetry:
    def test_retries_until_laid_out(self):
        view = ViewTransform()
        retry = FitRetry(max_attempts=3)
        gen = retry.start()
        assert retry.attempt(gen, view, (200, 100), (0, 0)) is False
        assert retry.attempt(gen, view, (200, 100), (400, 200)) is True
        assert view.zoom == pytest.approx(2.0 * 0.95)

    def test_gives_up(self):
        view = ViewTransform()
        retry = FitRetry(max_attempts=2)
        gen = retry.start()
        assert retry.attempt(gen, view, (200, 100), (0, 0)) is False
        assert retry.attempt(gen, view, (200, 100), (0, 0)) is None
        assert view.zoom == 1.0

    def test_stale_request_dropped(self):
        view = ViewTransform()
        retry = FitRetry()
        old = retry.start()
        retry.start()
        assert retry.attempt(old, view, (200, 100), (400, 200)) is None
