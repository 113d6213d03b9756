"""Shared test fixtures for FloorScale."""

import io

import pytest
from pathlib import Path

from floorscale.core.geometry import Line
from floorscale.core.session import ImageRef, Session


@pytest.fixture
def tmp_config_dir(tmp_path):
    """Provide a temporary configuration directory."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def config_manager(tmp_config_dir):
    """Provide a ConfigManager with a temp directory."""
    from floorscale.config.manager import ConfigManager

    mgr = ConfigManager(config_dir=tmp_config_dir)
    mgr.load()
    return mgr


@pytest.fixture
def project_root():
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def png_bytes():
    """A small real PNG, 200x100."""
    from PIL import Image

    buf = io.BytesIO()
    Image.new("RGB", (200, 100), (255, 255, 255)).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def session(png_bytes):
    """A session with a loaded 200x100 image at zoom 1, offset 0."""
    s = Session()
    s.image = ImageRef(width=200, height=100, data=png_bytes, name="plan.png",
                       mime_type="image/png")
    return s


@pytest.fixture
def calibrated_session(session):
    """A session calibrated at 100 px per meter (a 400 px line is 4 m)."""
    session.model.set_reference_length(4.0)
    session.model.commit_line(Line("x", 0, 0, 400, 0))
    return session


@pytest.fixture
def dispatcher(session):
    """An InputDispatcher over the loaded session."""
    from floorscale.core.dispatcher import InputDispatcher

    return InputDispatcher(session)


@pytest.fixture
def store(tmp_path):
    """A KeyValueStore in a temp directory."""
    from floorscale.core.persistence import KeyValueStore

    return KeyValueStore(tmp_path / "store")


@pytest.fixture(scope="session")
def qapp():
    """A QApplication on the offscreen platform."""
    import os

    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
    from PySide6.QtWidgets import QApplication

    return QApplication.instance() or QApplication([])
