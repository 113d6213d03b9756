"""Calibration and measurement state for FloorScale.

A calibration line of declared real-world length gives the scale in
pixels per meter. Measurement lines are converted to meters through that
scale and formatted in the active display unit. The scale is always
derived, never stored.
"""

import math
from enum import Enum

from loguru import logger

from floorscale.core.errors import InvalidInputError
from floorscale.core.geometry import Line, distance, new_line_id

DEFAULT_REFERENCE_LENGTH = 4.0
MIN_LINE_PX = 2.0


class Mode(Enum):
    """Drawing modes."""

    CALIBRATE = "calibrate"
    MEASURE = "measure"


class DisplayUnit(Enum):
    """Units lengths are displayed in. Meters are the base unit."""

    M = "m"
    CM = "cm"
    MM = "mm"

    @property
    def factor(self) -> float:
        return _FROM_METERS[self]

    @property
    def decimals(self) -> int:
        return 2 if self is DisplayUnit.M else 0

    @property
    def label(self) -> str:
        return _LABELS[self]


# Multiply a length in meters by this to get the display value
_FROM_METERS = {
    DisplayUnit.M: 1.0,
    DisplayUnit.CM: 100.0,
    DisplayUnit.MM: 1000.0,
}

_LABELS = {
    DisplayUnit.M: "meters",
    DisplayUnit.CM: "cm",
    DisplayUnit.MM: "mm",
}


def format_length(meters: float | None, unit: DisplayUnit) -> str:
    """Format a length in meters for display, e.g. '2.50 m' or '250 cm'."""
    if meters is None or math.isnan(meters):
        return ""
    value = meters * unit.factor
    return f"{value:.{unit.decimals}f} {unit.value}"


class MeasurementModel:
    """Calibration line, reference length, display unit and measurement lines."""

    def __init__(
        self,
        reference_length: float = DEFAULT_REFERENCE_LENGTH,
        unit: DisplayUnit = DisplayUnit.M,
        min_line_px: float = MIN_LINE_PX,
    ):
        self._reference_length = float(reference_length)
        self.unit = unit
        self.min_line_px = min_line_px
        self.mode = Mode.CALIBRATE
        self._calibration_line: Line | None = None
        self._lines: list[Line] = []

    # -------------------------------------------------------------------
    # Derived state
    # -------------------------------------------------------------------

    @property
    def reference_length(self) -> float:
        return self._reference_length

    @property
    def calibration_line(self) -> Line | None:
        return self._calibration_line

    @property
    def lines(self) -> tuple[Line, ...]:
        return tuple(self._lines)

    @property
    def scale(self) -> float | None:
        """Pixels per meter, or None if not calibrated."""
        if self._calibration_line is None or not _is_positive(self._reference_length):
            return None
        return distance(self._calibration_line) / self._reference_length

    def length_m(self, line: Line) -> float | None:
        """Physical length of a line in meters, or None if unknown.

        The calibration line always reports the declared reference length.
        """
        if self._calibration_line is not None and line.id == self._calibration_line.id:
            return self._reference_length
        scale = self.scale
        if not scale:
            return None
        return distance(line) / scale

    def label_for(self, line: Line) -> str:
        return format_length(self.length_m(line), self.unit)

    def scale_text(self) -> str:
        scale = self.scale
        return f"{scale:.2f} px/m" if scale else "not set"

    def measurement_summary(self) -> list[str]:
        """One entry per measurement line, '#1: 2.50 m' or '#1: ?'."""
        summary = []
        for i, line in enumerate(self._lines, start=1):
            label = self.label_for(line) if self.scale else "?"
            summary.append(f"#{i}: {label}")
        return summary

    # -------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------

    def set_mode(self, mode: Mode):
        if mode is not self.mode:
            logger.debug(f"Mode: {self.mode.value} -> {mode.value}")
        self.mode = mode

    def set_unit(self, unit: DisplayUnit):
        self.unit = unit

    def set_reference_length(self, value: float):
        """Declare the reference length in meters. The scale follows immediately."""
        try:
            value = float(value)
        except (TypeError, ValueError):
            raise InvalidInputError("Reference length must be a number.") from None
        if not _is_positive(value):
            raise InvalidInputError("Set a positive reference length first.")
        self._reference_length = value
        if self._calibration_line is not None:
            logger.info(f"Recalibrated: {self.scale_text()}")

    def commit_line(self, line: Line) -> Line | None:
        """Hand a finished drag to the state machine for the current mode.

        Returns the stored line, or None if the line was ignored. Raises
        InvalidInputError when the line is rejected with a message.
        """
        length = distance(line)
        if self.mode is Mode.CALIBRATE:
            if not _is_positive(self._reference_length):
                raise InvalidInputError("Set a positive reference length first.")
            if length < self.min_line_px:
                raise InvalidInputError("Reference line is too short.")
            self._calibration_line = line.with_id(new_line_id("cal"))
            logger.info(
                f"Calibrated: {length:.1f} px = {self._reference_length} m "
                f"({self.scale_text()})"
            )
            self.set_mode(Mode.MEASURE)
            return self._calibration_line

        if not self.scale:
            raise InvalidInputError("Calibrate first (draw the reference scale).")
        if length < self.min_line_px:
            return None
        stored = line.with_id(new_line_id("m"))
        self._lines.append(stored)
        logger.debug(f"Measurement {len(self._lines)}: {self.label_for(stored)}")
        return stored

    def undo(self) -> Line | None:
        """Remove the most recent measurement line. The calibration line is untouched."""
        if not self._lines:
            return None
        return self._lines.pop()

    def reset(self):
        """Clear measurements and calibration and return to Calibrate mode."""
        self._lines.clear()
        self._calibration_line = None
        self.set_mode(Mode.CALIBRATE)

    def restore(self, calibration_line: Line | None, lines: list[Line],
                reference_length: float, unit: DisplayUnit):
        """Replace the whole model state, as loaded from a saved session."""
        self._calibration_line = calibration_line
        self._lines = list(lines)
        self._reference_length = float(reference_length)
        self.unit = unit


def _is_positive(value: float) -> bool:
    return math.isfinite(value) and value > 0
