"""Scene building for the FloorScale render pass.

build_scene() turns the session and the in-progress line into an ordered
list of primitives in world coordinates. Stroke widths, marker radii,
dash lengths and label sizes are divided by the zoom so they stay the
same size on screen at any zoom level. Painting is done separately in
floorscale.render.painter.
"""

from dataclasses import dataclass, field

from floorscale.core.geometry import Line, Point
from floorscale.core.measurement import Mode
from floorscale.core.session import ImageRef, Session

LINE_WIDTH_PX = 2.0
ENDPOINT_RADIUS_PX = 4.0
DASH_PX = 8.0
FONT_PX = 14.0
LABEL_HEIGHT_PX = 18.0
LABEL_PADDING_PX = 4.0

DEFAULT_COLORS = {
    "background": "#f8fafc",
    "calibration": "#f59e0b",
    "measurement": "#22c55e",
    "temp_calibrate": "#f59e0b",
    "temp_measure": "#0ea5e9",
    "label_background": "#d90f172a",
    "label_text": "#ffffff",
}


@dataclass(frozen=True)
class LabelPrimitive:
    text: str
    center: Point
    font_size: float
    height: float
    padding: float


@dataclass(frozen=True)
class LinePrimitive:
    role: str  # calibration, measurement, temp
    line: Line
    color: str
    width: float
    endpoint_radius: float
    dash: float | None = None
    label: LabelPrimitive | None = None

    @property
    def dashed(self) -> bool:
        return self.dash is not None


@dataclass
class Scene:
    viewport: tuple[float, float]
    zoom: float
    offset: Point
    background: str
    colors: dict[str, str]
    image: ImageRef | None = None
    lines: list[LinePrimitive] = field(default_factory=list)

    @property
    def roles(self) -> list[str]:
        return [p.role for p in self.lines]


def build_scene(
    session: Session,
    temp_line: Line | None = None,
    viewport: tuple[float, float] = (0, 0),
    colors: dict[str, str] | None = None,
) -> Scene:
    """Build the ordered scene: background, image, calibration, measurements, temp line."""
    palette = dict(DEFAULT_COLORS)
    if colors:
        palette.update(colors)
    model = session.model
    zoom = session.view.zoom

    scene = Scene(
        viewport=viewport,
        zoom=zoom,
        offset=session.view.offset,
        background=palette["background"],
        colors=palette,
        image=session.image,
    )

    def add(role: str, line: Line, color: str, dashed: bool):
        label = None
        text = model.label_for(line)
        if text:
            label = LabelPrimitive(
                text=text,
                center=line.midpoint,
                font_size=FONT_PX / zoom,
                height=LABEL_HEIGHT_PX / zoom,
                padding=LABEL_PADDING_PX / zoom,
            )
        scene.lines.append(
            LinePrimitive(
                role=role,
                line=line,
                color=color,
                width=LINE_WIDTH_PX / zoom,
                endpoint_radius=ENDPOINT_RADIUS_PX / zoom,
                dash=DASH_PX / zoom if dashed else None,
                label=label,
            )
        )

    if model.calibration_line is not None:
        add("calibration", model.calibration_line, palette["calibration"], False)
    for line in model.lines:
        add("measurement", line, palette["measurement"], False)
    if temp_line is not None:
        key = "temp_calibrate" if model.mode is Mode.CALIBRATE else "temp_measure"
        add("temp", temp_line, palette[key], True)
    return scene
