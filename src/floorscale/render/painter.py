"""Qt painting of a FloorScale scene."""

from PySide6.QtCore import QPointF, QRectF, Qt
from PySide6.QtGui import QBrush, QColor, QFont, QFontMetricsF, QPainter, QPen, QPixmap

from floorscale.render.scene import LinePrimitive, Scene


def paint_scene(painter: QPainter, scene: Scene, pixmap: QPixmap | None = None):
    """Paint *scene* onto an active painter whose origin is the canvas top-left."""
    painter.save()
    painter.setRenderHint(QPainter.RenderHint.Antialiasing)
    painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform)

    vw, vh = scene.viewport
    painter.fillRect(QRectF(0, 0, vw, vh), QColor(scene.background))

    painter.translate(scene.offset.x, scene.offset.y)
    painter.scale(scene.zoom, scene.zoom)

    if pixmap is not None and not pixmap.isNull():
        painter.drawPixmap(QPointF(0, 0), pixmap)

    for item in scene.lines:
        _paint_line(painter, item)
        if item.label is not None:
            _paint_label(painter, scene, item)

    painter.restore()


def _paint_line(painter: QPainter, item: LinePrimitive):
    color = QColor(item.color)
    pen = QPen(color, item.width)
    pen.setCapStyle(Qt.PenCapStyle.FlatCap)
    if item.dashed:
        # Dash pattern is expressed in multiples of the pen width
        ratio = item.dash / item.width
        pen.setDashPattern([ratio, ratio])
    painter.setPen(pen)
    line = item.line
    painter.drawLine(QPointF(line.x1, line.y1), QPointF(line.x2, line.y2))

    painter.setPen(Qt.PenStyle.NoPen)
    painter.setBrush(QBrush(color))
    r = item.endpoint_radius
    painter.drawEllipse(QPointF(line.x1, line.y1), r, r)
    painter.drawEllipse(QPointF(line.x2, line.y2), r, r)
    painter.setBrush(Qt.BrushStyle.NoBrush)


def _paint_label(painter: QPainter, scene: Scene, item: LinePrimitive):
    """Labels are drawn untransformed so glyphs keep their pixel size."""
    label = item.label
    zoom = scene.zoom
    cx = label.center.x * zoom + scene.offset.x
    cy = label.center.y * zoom + scene.offset.y
    font_px = max(1, round(label.font_size * zoom))
    pad = label.padding * zoom
    th = label.height * zoom

    painter.save()
    painter.resetTransform()
    font = QFont()
    font.setPixelSize(font_px)
    painter.setFont(font)
    tw = QFontMetricsF(font).horizontalAdvance(label.text)

    box = QRectF(cx - tw / 2 - pad, cy - th / 2 - pad, tw + pad * 2, th + pad * 2)
    painter.fillRect(box, QColor(scene.colors["label_background"]))
    painter.setPen(QColor(scene.colors["label_text"]))
    painter.drawText(box, Qt.AlignmentFlag.AlignCenter, label.text)
    painter.restore()
