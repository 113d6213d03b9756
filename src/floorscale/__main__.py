"""FloorScale application entry point."""

import sys


def main():
    """Launch the FloorScale application."""
    from PySide6.QtWidgets import QApplication
    from PySide6.QtCore import Qt

    from floorscale.config.manager import ConfigManager
    from floorscale.core.logging import setup_logging
    from floorscale.ui.main_window import FloorScaleMainWindow

    # High-DPI support
    QApplication.setHighDpiScaleFactorRoundingPolicy(
        Qt.HighDpiScaleFactorRoundingPolicy.PassThrough
    )

    app = QApplication(sys.argv)
    app.setApplicationName("FloorScale")
    app.setOrganizationName("FloorScale")

    config = ConfigManager()
    config.load()

    # Initialize logging (file + console sinks)
    setup_logging(config)

    window = FloorScaleMainWindow(config)
    window.show()

    sys.exit(app.exec())


if __name__ == "__main__":
    main()
