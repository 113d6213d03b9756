"""Tests for the calibration and measurement model."""

import math

import pytest

from floorscale.core.errors import InvalidInputError
from floorscale.core.geometry import Line
from floorscale.core.measurement import (
    DisplayUnit,
    MeasurementModel,
    Mode,
    format_length,
)


@pytest.fixture
def model():
    return MeasurementModel()


@pytest.fixture
def calibrated(model):
    """100 px per meter."""
    model.commit_line(Line("x", 0, 0, 400, 0))
    return model


class TestFormatLength:
    def test_meters_two_decimals(self):
        assert format_length(2.5, DisplayUnit.M) == "2.50 m"

    def test_centimeters(self):
        assert format_length(2.5, DisplayUnit.CM) == "250 cm"

    def test_millimeters(self):
        assert format_length(2.5, DisplayUnit.MM) == "2500 mm"

    def test_unknown_length_is_empty(self):
        assert format_length(None, DisplayUnit.M) == ""
        assert format_length(math.nan, DisplayUnit.CM) == ""


class TestCalibration:
    def test_starts_uncalibrated(self, model):
        assert model.mode is Mode.CALIBRATE
        assert model.scale is None
        assert model.scale_text() == "not set"

    def test_calibrate_sets_scale_and_switches_mode(self, calibrated):
        assert calibrated.scale == pytest.approx(100.0)
        assert calibrated.mode is Mode.MEASURE
        assert calibrated.calibration_line.id.startswith("cal-")
        assert calibrated.scale_text() == "100.00 px/m"

    def test_calibration_line_reports_reference_length(self, calibrated):
        assert calibrated.label_for(calibrated.calibration_line) == "4.00 m"

    def test_recalibration_replaces_line(self, calibrated):
        first = calibrated.calibration_line
        calibrated.set_mode(Mode.CALIBRATE)
        calibrated.commit_line(Line("y", 0, 0, 200, 0))
        assert calibrated.calibration_line.id != first.id
        assert calibrated.scale == pytest.approx(50.0)

    def test_calibration_needs_positive_reference(self):
        model = MeasurementModel(reference_length=0)
        with pytest.raises(InvalidInputError, match="Set a positive reference length first"):
            model.commit_line(Line("x", 0, 0, 400, 0))
        assert model.calibration_line is None
        assert model.mode is Mode.CALIBRATE

    def test_short_reference_line_rejected(self, model):
        with pytest.raises(InvalidInputError, match="too short"):
            model.commit_line(Line("x", 0, 0, 1, 0))
        assert model.calibration_line is None
        assert model.mode is Mode.CALIBRATE

    def test_changing_reference_rescales_measurements(self, calibrated):
        line = calibrated.commit_line(Line("m", 0, 0, 200, 0))
        assert calibrated.label_for(line) == "2.00 m"
        calibrated.set_reference_length(8.0)
        assert calibrated.scale == pytest.approx(50.0)
        assert calibrated.label_for(line) == "4.00 m"


class TestReferenceLength:
    @pytest.mark.parametrize("value", [0, -1, math.nan, math.inf])
    def test_rejects_non_positive(self, calibrated, value):
        with pytest.raises(InvalidInputError):
            calibrated.set_reference_length(value)
        assert calibrated.reference_length == 4.0
        assert calibrated.scale == pytest.approx(100.0)

    def test_rejects_non_number(self, model):
        with pytest.raises(InvalidInputError, match="number"):
            model.set_reference_length("four")


class TestMeasure:
    def test_requires_calibration(self, model):
        model.set_mode(Mode.MEASURE)
        with pytest.raises(InvalidInputError, match="Calibrate first"):
            model.commit_line(Line("m", 0, 0, 100, 0))
        assert model.lines == ()

    def test_length_in_units(self, calibrated):
        line = calibrated.commit_line(Line("m", 0, 0, 300, 400))
        assert line.id.startswith("m-")
        assert calibrated.length_m(line) == pytest.approx(5.0)
        calibrated.set_unit(DisplayUnit.CM)
        assert calibrated.label_for(line) == "500 cm"

    def test_short_line_ignored(self, calibrated):
        assert calibrated.commit_line(Line("m", 0, 0, 1, 1)) is None
        assert calibrated.lines == ()

    def test_ids_are_unique(self, calibrated):
        a = calibrated.commit_line(Line("m", 0, 0, 100, 0))
        b = calibrated.commit_line(Line("m", 0, 0, 100, 0))
        assert a.id != b.id

    def test_summary(self, calibrated):
        calibrated.commit_line(Line("m", 0, 0, 250, 0))
        calibrated.commit_line(Line("m", 0, 0, 0, 50))
        assert calibrated.measurement_summary() == ["#1: 2.50 m", "#2: 0.50 m"]

    def test_summary_without_scale(self, model):
        model.restore(None, [Line("m-1", 0, 0, 10, 0)], 4.0, DisplayUnit.M)
        assert model.measurement_summary() == ["#1: ?"]
        assert model.label_for(model.lines[0]) == ""


class TestUndoReset:
    def test_undo_removes_last(self, calibrated):
        first = calibrated.commit_line(Line("m", 0, 0, 100, 0))
        calibrated.commit_line(Line("m", 0, 0, 200, 0))
        calibrated.undo()
        assert calibrated.lines == (first,)

    def test_undo_keeps_calibration(self, calibrated):
        cal = calibrated.calibration_line
        assert calibrated.undo() is None
        assert calibrated.calibration_line == cal

    def test_reset(self, calibrated):
        calibrated.commit_line(Line("m", 0, 0, 100, 0))
        calibrated.reset()
        assert calibrated.lines == ()
        assert calibrated.calibration_line is None
        assert calibrated.mode is Mode.CALIBRATE
        assert calibrated.reference_length == 4.0


class TestWorkedExamples:
    @pytest.mark.parametrize("unit,text", [
        (DisplayUnit.M, "1.00 m"),
        (DisplayUnit.CM, "100 cm"),
        (DisplayUnit.MM, "1000 mm"),
    ])
    def test_one_meter(self, unit, text):
        assert format_length(1.0, unit) == text

    def test_calibrate_and_measure(self, model):
        model.set_reference_length(4.0)
        model.commit_line(Line("x", 10, 10, 410, 10))
        assert model.scale == pytest.approx(100.0)
        line = model.commit_line(Line("m", 0, 0, 250, 0))
        assert model.label_for(line) == "2.50 m"

    def test_reference_change_is_live(self, calibrated):
        calibrated.set_reference_length(2.0)
        assert calibrated.scale == pytest.approx(200.0)

    def test_three_lines_one_undo(self, calibrated):
        lines = [calibrated.commit_line(Line("m", 0, 0, 100 * i, 0)) for i in (1, 2, 3)]
        removed = calibrated.undo()
        assert removed == lines[2]
        assert calibrated.lines == tuple(lines[:2])
