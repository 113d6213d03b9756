"""Main application window for FloorScale.

Hosts the floor plan canvas with a toolbar for loading images, switching
between calibration and measurement, the reference length and display
unit, zoom controls, undo, reset and export. The status bar shows the
mode, scale, image and line count; the strip below the canvas lists the
measurements.
"""

from pathlib import Path

from loguru import logger
from PySide6.QtCore import QTimer
from PySide6.QtGui import QAction, QActionGroup, QKeySequence
from PySide6.QtWidgets import (
    QComboBox,
    QDoubleSpinBox,
    QFileDialog,
    QLabel,
    QMainWindow,
    QMessageBox,
    QStatusBar,
    QToolBar,
    QVBoxLayout,
    QWidget,
)

from floorscale.config.manager import ConfigManager
from floorscale.core.errors import InvalidInputError
from floorscale.core.measurement import DisplayUnit, MeasurementModel, Mode
from floorscale.core.persistence import KeyValueStore, SessionPersistence
from floorscale.core.session import Session
from floorscale.core.transform import ViewTransform
from floorscale.exporters.png import default_export_dir, export_png
from floorscale.importers.image import NOT_AN_IMAGE_MESSAGE, can_import, guess_mime_type
from floorscale.ui.plan_canvas import PlanCanvas
from floorscale.version import __version_display__

_TIP = (
    "Tip: Two finger scroll to pan • Pinch or Ctrl+scroll to zoom • "
    "Space+drag to pan • Alt+double click to zoom out"
)


class FloorScaleMainWindow(QMainWindow):
    """Primary application window."""

    def __init__(self, config: ConfigManager):
        super().__init__()
        self._config = config

        self.setWindowTitle(__version_display__)
        self.resize(
            config.get("general", "window_width", 1280),
            config.get("general", "window_height", 820),
        )
        self.setAcceptDrops(True)

        self._session = self._create_session()
        self._persistence = self._create_persistence()

        self._canvas = PlanCanvas(config, self._session, self._persistence)
        self._canvas.message.connect(self._show_message)
        self._canvas.status_changed.connect(self._refresh_status)
        self._canvas.line_committed.connect(self._on_line_committed)

        self._build_menu_bar()
        self._build_tool_bar()
        self._build_status_bar()
        self._build_central()

        self._restore_session()
        self._refresh_status()
        self._canvas.setFocus()

    def _create_session(self) -> Session:
        unit_value = self._config.get("measurement", "default_unit", "m")
        try:
            unit = DisplayUnit(unit_value)
        except ValueError:
            logger.warning(f"Unknown default unit '{unit_value}', using meters")
            unit = DisplayUnit.M
        model = MeasurementModel(
            reference_length=self._config.get("measurement", "default_reference_length", 4.0),
            unit=unit,
            min_line_px=self._config.get("measurement", "min_line_px", 2.0),
        )
        view = ViewTransform(
            zoom_min=self._config.get("viewport", "zoom_min", 0.05),
            zoom_max=self._config.get("viewport", "zoom_max", 20.0),
        )
        return Session(model, view)

    def _create_persistence(self) -> SessionPersistence:
        storage_dir = self._config.get("persistence", "storage_dir", "") or None
        frame_ms = int(self._config.get("viewport", "frame_interval_ms", 16))
        return SessionPersistence(
            self._session,
            KeyValueStore(storage_dir),
            key=self._config.get("persistence", "storage_key", "fp-measurement-state-v8"),
            schedule=lambda flush: QTimer.singleShot(frame_ms, flush),
            enabled=self._config.get("persistence", "enabled", True),
        )

    # -------------------------------------------------------------------
    # UI construction
    # -------------------------------------------------------------------

    def _build_menu_bar(self):
        menu_bar = self.menuBar()

        self._upload_action = self._action("&Upload Floor Plan...", "Ctrl+O", self._upload)
        self._export_action = self._action("&Export PNG...", "Ctrl+E", self._export)
        self._undo_action = self._action("&Undo", QKeySequence.StandardKey.Undo, self._canvas.undo)
        self._reset_action = self._action("&Reset", callback=self._reset)
        self._zoom_in_action = self._action("Zoom &In", "Ctrl+=", self._canvas.zoom_in)
        self._zoom_out_action = self._action("Zoom &Out", "Ctrl+-", self._canvas.zoom_out)
        self._fit_action = self._action("&Fit", "Ctrl+0", self._canvas.fit_to_view)

        self._mode_group = QActionGroup(self)
        self._calibrate_action = self._action(
            "Calibrate (2)", "2", lambda: self._canvas.set_mode(Mode.CALIBRATE)
        )
        self._measure_action = self._action(
            "Measure (3)", "3", lambda: self._canvas.set_mode(Mode.MEASURE)
        )
        for action in (self._calibrate_action, self._measure_action):
            action.setCheckable(True)
            self._mode_group.addAction(action)

        file_menu = menu_bar.addMenu("&File")
        file_menu.addAction(self._upload_action)
        file_menu.addAction(self._export_action)
        file_menu.addSeparator()
        file_menu.addAction(self._action("&Clear Saved Session", callback=self._clear_saved))
        file_menu.addSeparator()
        file_menu.addAction(self._action("E&xit", "Alt+F4", self.close))

        edit_menu = menu_bar.addMenu("&Edit")
        edit_menu.addAction(self._undo_action)
        edit_menu.addAction(self._reset_action)
        edit_menu.addSeparator()
        edit_menu.addAction(self._calibrate_action)
        edit_menu.addAction(self._measure_action)

        view_menu = menu_bar.addMenu("&View")
        view_menu.addAction(self._zoom_in_action)
        view_menu.addAction(self._zoom_out_action)
        view_menu.addAction(self._fit_action)

        help_menu = menu_bar.addMenu("&Help")
        help_menu.addAction(self._action("&About FloorScale", callback=self._show_about))

    def _build_tool_bar(self):
        toolbar = QToolBar("Main Toolbar")
        toolbar.setMovable(False)
        toolbar.setFloatable(False)
        self.addToolBar(toolbar)

        toolbar.addAction(self._upload_action)
        toolbar.addSeparator()
        toolbar.addAction(self._calibrate_action)
        toolbar.addAction(self._measure_action)
        toolbar.addSeparator()

        toolbar.addWidget(QLabel(" Ref length: "))
        self._ref_spin = QDoubleSpinBox()
        self._ref_spin.setRange(0.0, 1_000_000.0)
        self._ref_spin.setDecimals(2)
        self._ref_spin.setSingleStep(0.01)
        self._ref_spin.setSuffix(" m")
        self._ref_spin.setKeyboardTracking(False)
        self._ref_spin.setValue(self._session.model.reference_length)
        self._ref_spin.valueChanged.connect(self._on_reference_length_edited)
        toolbar.addWidget(self._ref_spin)
        toolbar.addSeparator()

        toolbar.addWidget(QLabel(" Units: "))
        self._unit_combo = QComboBox()
        for unit in DisplayUnit:
            self._unit_combo.addItem(unit.label, unit)
        self._unit_combo.currentIndexChanged.connect(self._on_unit_changed)
        toolbar.addWidget(self._unit_combo)
        toolbar.addSeparator()

        zoom_out = self._action("−", callback=self._canvas.zoom_out)
        zoom_out.setToolTip("Zoom out")
        zoom_in = self._action("+", callback=self._canvas.zoom_in)
        zoom_in.setToolTip("Zoom in")
        toolbar.addAction(zoom_out)
        toolbar.addAction(zoom_in)
        toolbar.addAction(self._fit_action)
        toolbar.addAction(self._undo_action)
        toolbar.addAction(self._reset_action)
        toolbar.addAction(self._export_action)

    def _build_status_bar(self):
        status = QStatusBar()
        self.setStatusBar(status)
        self._status_label = QLabel()
        status.addWidget(self._status_label)
        tip = QLabel(_TIP)
        tip.setStyleSheet("color: gray;")
        status.addPermanentWidget(tip)

    def _build_central(self):
        central = QWidget()
        layout = QVBoxLayout(central)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(0)
        layout.addWidget(self._canvas, 1)

        self._lines_label = QLabel()
        self._lines_label.setWordWrap(True)
        self._lines_label.setContentsMargins(8, 4, 8, 4)
        layout.addWidget(self._lines_label)
        self.setCentralWidget(central)

    def _action(self, text: str, shortcut=None, callback=None) -> QAction:
        """Helper to create a QAction."""
        action = QAction(text, self)
        if shortcut:
            action.setShortcut(QKeySequence(shortcut))
        if callback:
            action.triggered.connect(callback)
        return action

    # -------------------------------------------------------------------
    # State sync
    # -------------------------------------------------------------------

    def _refresh_status(self):
        model = self._session.model
        if self._session.image is not None:
            image_text = self._session.image.describe()
        elif self._session.image_pending:
            image_text = "loading..."
        else:
            image_text = "none"
        self._status_label.setText(
            f"Mode: <b>{model.mode.value.title()}</b> | "
            f"Scale: <b>{model.scale_text()}</b> | "
            f"Image: <b>{image_text}</b> | "
            f"Lines: <b>{len(model.lines)}</b>"
        )

        summary = model.measurement_summary()
        self._lines_label.setText("   ".join(summary) if summary else "No measurements yet.")

        action = self._calibrate_action if model.mode is Mode.CALIBRATE else self._measure_action
        action.setChecked(True)

        index = self._unit_combo.findData(model.unit)
        if index >= 0 and index != self._unit_combo.currentIndex():
            self._unit_combo.blockSignals(True)
            self._unit_combo.setCurrentIndex(index)
            self._unit_combo.blockSignals(False)
        if abs(self._ref_spin.value() - model.reference_length) > 1e-9:
            self._ref_spin.blockSignals(True)
            self._ref_spin.setValue(model.reference_length)
            self._ref_spin.blockSignals(False)

    def _on_line_committed(self, line, mode: Mode):
        model = self._session.model
        if mode is Mode.CALIBRATE:
            self.statusBar().showMessage(f"Calibrated: {model.scale_text()}", 3000)
        else:
            self.statusBar().showMessage(f"Measured: {model.label_for(line)}", 3000)

    def _on_reference_length_edited(self, value: float):
        if abs(value - self._session.model.reference_length) < 1e-12:
            return
        try:
            self._canvas.set_reference_length(value)
        except InvalidInputError as e:
            self._show_message(str(e))
            self._refresh_status()

    def _on_unit_changed(self, index: int):
        unit = self._unit_combo.itemData(index)
        if unit is not None:
            self._canvas.set_unit(unit)

    def _show_message(self, text: str):
        QMessageBox.warning(self, "FloorScale", text)

    # -------------------------------------------------------------------
    # Image source
    # -------------------------------------------------------------------

    def _upload(self):
        path, _ = QFileDialog.getOpenFileName(
            self, "Upload Floor Plan", "",
            "Images (*.png *.jpg *.jpeg *.bmp *.gif *.tif *.tiff *.webp);;All Files (*)",
        )
        if path:
            self.open_image(Path(path))

    def open_image(self, path: Path):
        """Read an image file and hand it to the canvas for decoding."""
        if not can_import(path):
            self._show_message(NOT_AN_IMAGE_MESSAGE)
            return
        try:
            data = path.read_bytes()
        except OSError as e:
            logger.error(f"Cannot read {path}: {e}")
            QMessageBox.critical(self, "FloorScale", f"Image load failed:\n\n{e}")
            return
        self._canvas.load_image_bytes(data, path.name, guess_mime_type(path.name))

    def dragEnterEvent(self, event):
        if event.mimeData().hasUrls():
            event.acceptProposedAction()

    def dragMoveEvent(self, event):
        if event.mimeData().hasUrls():
            event.acceptProposedAction()

    def dropEvent(self, event):
        urls = [u for u in event.mimeData().urls() if u.isLocalFile()]
        if not urls:
            self._show_message(NOT_AN_IMAGE_MESSAGE)
            return
        event.acceptProposedAction()
        self.open_image(Path(urls[0].toLocalFile()))

    # -------------------------------------------------------------------
    # Session
    # -------------------------------------------------------------------

    def _restore_session(self):
        if not self._config.get("general", "restore_last_session", True):
            return
        if self._persistence.restore():
            self._canvas.decode_pending()

    def _reset(self):
        self._canvas.reset_measurements()

    def _clear_saved(self):
        self._persistence.clear()
        self.statusBar().showMessage("Saved session cleared", 3000)

    def _export(self):
        directory = QFileDialog.getExistingDirectory(
            self, "Export PNG",
            str(default_export_dir(self._config.get("export", "default_directory", ""))),
        )
        if not directory:
            return
        path = export_png(self._canvas.render_to_image(), directory)
        if path is None:
            QMessageBox.critical(self, "Export Failed", "Could not write the PNG file.")
            return
        self.statusBar().showMessage(f"Exported: {path.name}", 5000)

    def _show_about(self):
        QMessageBox.about(
            self,
            "About FloorScale",
            f"<h2>{__version_display__}</h2>"
            "<p>Measure distances on floor plan images.</p>"
            "<p>Draw a reference line of known length in <b>Calibrate</b> mode, "
            "then draw lines in <b>Measure</b> mode to read their real length.</p>",
        )

    def closeEvent(self, event):
        """Write any pending session state and the configuration before closing."""
        self._persistence.flush()
        self._config.set("general", "window_width", self.width())
        self._config.set("general", "window_height", self.height())
        try:
            self._config.save()
        except OSError as e:
            logger.warning(f"Configuration not saved: {e}")
        event.accept()
