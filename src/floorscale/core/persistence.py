"""Session persistence for FloorScale.

The whole session is serialized as JSON under a single, version-tagged
key in a small file-backed key-value store. Writes are coalesced: any
number of changes inside one frame produce one write of the latest
state. Read or write failures never reach the user; the app just runs
without persistence for that operation.
"""

import base64
import binascii
import json
import math
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Callable

from loguru import logger
from platformdirs import user_data_dir

from floorscale.core.errors import PersistenceUnavailableError
from floorscale.core.geometry import Line
from floorscale.core.measurement import DisplayUnit, MeasurementModel
from floorscale.core.session import PendingImage, Session
from floorscale.core.transform import ViewTransform

STORAGE_KEY = "fp-measurement-state-v8"
PAYLOAD_VERSION = 8

_SAFE_KEY = re.compile(r"[^A-Za-z0-9._-]")


class KeyValueStore:
    """String values stored as one file per key in a directory."""

    def __init__(self, directory: str | Path | None = None):
        if directory is None:
            self._dir = Path(user_data_dir("FloorScale", "FloorScale")) / "store"
        else:
            self._dir = Path(directory)

    @property
    def directory(self) -> Path:
        return self._dir

    def _path(self, key: str) -> Path:
        return self._dir / f"{_SAFE_KEY.sub('_', key)}.json"

    def get(self, key: str) -> str | None:
        """Return the stored value, or None if the key is absent."""
        path = self._path(key)
        try:
            with open(path, "r", encoding="utf-8") as f:
                return f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise PersistenceUnavailableError(f"Cannot read {path}: {e}") from e
        except UnicodeDecodeError as e:
            raise PersistenceUnavailableError(f"Cannot decode {path}: {e}") from e

    def set(self, key: str, value: str):
        """Store a value, replacing the previous one atomically."""
        path = self._path(key)
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self._dir, prefix=".tmp-", suffix=".json")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(value)
                os.replace(tmp, path)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise PersistenceUnavailableError(f"Cannot write {path}: {e}") from e

    def delete(self, key: str):
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceUnavailableError(f"Cannot delete key {key}: {e}") from e


# -------------------------------------------------------------------
# Serialization
# -------------------------------------------------------------------


def session_to_dict(session: Session) -> dict[str, Any]:
    """Snapshot the persisted fields of a session."""
    model = session.model
    data: dict[str, Any] = {
        "version": PAYLOAD_VERSION,
        "refLength": model.reference_length,
        "units": model.unit.value,
        "lines": [line.to_dict() for line in model.lines],
        "calLine": model.calibration_line.to_dict() if model.calibration_line else None,
        "zoom": session.view.zoom,
        "offset": {"x": session.view.offset_x, "y": session.view.offset_y},
    }
    image = session.image
    if image is not None:
        data["img"] = {
            "data": base64.b64encode(image.data).decode("ascii"),
            "name": image.name,
            "mime": image.mime_type,
            "w": image.width,
            "h": image.height,
        }
    return data


def session_from_dict(data: dict[str, Any], session: Session | None = None) -> Session:
    """Rebuild a session from a snapshot.

    The image bytes are placed in ``pending_image``; decoding them is up to
    the caller. Raises ValueError, KeyError or TypeError on malformed data.
    """
    if not isinstance(data, dict):
        raise TypeError("Session payload must be an object")
    if session is None:
        session = Session()

    lines = [Line.from_dict(item) for item in data.get("lines") or []]
    cal = data.get("calLine")
    calibration_line = Line.from_dict(cal) if cal else None
    unit = DisplayUnit(data.get("units", DisplayUnit.M.value))
    reference_length = float(data.get("refLength", session.model.reference_length))
    if not math.isfinite(reference_length) or reference_length <= 0:
        raise ValueError(f"Reference length must be positive, got {reference_length}")

    offset = data.get("offset") or {}
    zoom = float(data.get("zoom", 1.0))
    ox, oy = float(offset.get("x", 0.0)), float(offset.get("y", 0.0))

    pending = None
    img = data.get("img")
    if isinstance(img, dict) and img.get("data"):
        try:
            raw = base64.b64decode(img["data"], validate=True)
        except binascii.Error as e:
            raise ValueError(f"Corrupt image data: {e}") from e
        pending = PendingImage(data=raw, name=img.get("name"), mime_type=img.get("mime"))

    session.model.restore(calibration_line, lines, reference_length, unit)
    session.view.set(zoom, (ox, oy))
    if pending is not None:
        session.begin_image_load(pending)
    return session


def sessions_equal(a: Session, b: Session, tol: float = 1e-9) -> bool:
    """Field-for-field comparison of the persisted parts of two sessions."""
    da, db = session_to_dict(a), session_to_dict(b)
    if abs(da["zoom"] - db["zoom"]) > tol:
        return False
    if abs(da["offset"]["x"] - db["offset"]["x"]) > tol:
        return False
    if abs(da["offset"]["y"] - db["offset"]["y"]) > tol:
        return False
    for key in ("refLength", "units", "lines", "calLine", "img"):
        if da.get(key) != db.get(key):
            return False
    return True


# -------------------------------------------------------------------
# Debounced persistence
# -------------------------------------------------------------------


class SessionPersistence:
    """Saves and restores a session through a KeyValueStore.

    ``schedule`` is called with a zero-argument callback whenever a flush
    must happen later (the Qt layer passes a single-shot timer). At most
    one flush is pending at a time, and a flush always serializes the
    session as it is when the flush runs.
    """

    def __init__(
        self,
        session: Session,
        store: KeyValueStore,
        key: str = STORAGE_KEY,
        schedule: Callable[[Callable[[], None]], None] | None = None,
        enabled: bool = True,
    ):
        self._session = session
        self._store = store
        self._key = key
        self._schedule = schedule
        self._enabled = enabled
        self._dirty = False
        self._flush_pending = False
        self.writes = 0

    @property
    def dirty(self) -> bool:
        return self._dirty

    def mark_dirty(self):
        """Record a change; schedule a flush unless one is already pending."""
        self._dirty = True
        if self._flush_pending:
            return
        if self._schedule is None:
            self.flush()
            return
        self._flush_pending = True
        self._schedule(self.flush)

    def flush(self):
        """Write the latest session state if anything changed."""
        self._flush_pending = False
        if not self._dirty or not self._enabled:
            return
        # Nothing worth saving before an image has been loaded
        if not self._session.has_image:
            return
        self._dirty = False
        try:
            payload = json.dumps(session_to_dict(self._session))
            self._store.set(self._key, payload)
            self.writes += 1
        except PersistenceUnavailableError as e:
            logger.warning(f"Session not saved: {e}")

    def load_snapshot(self) -> dict[str, Any] | None:
        """Read the raw stored snapshot, or None if absent or unreadable."""
        if not self._enabled:
            return None
        try:
            raw = self._store.get(self._key)
        except PersistenceUnavailableError as e:
            logger.warning(f"Saved session unavailable: {e}")
            return None
        if not raw:
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring malformed saved session: {e}")
            return None
        return data if isinstance(data, dict) else None

    def restore(self) -> bool:
        """Restore the saved session into the live one.

        Returns True if a session was restored. Any problem with the stored
        data is treated as "no prior session".
        """
        data = self.load_snapshot()
        if data is None:
            return False
        candidate = Session(
            MeasurementModel(min_line_px=self._session.model.min_line_px),
            ViewTransform(zoom_min=self._session.view.zoom_min,
                          zoom_max=self._session.view.zoom_max),
        )
        try:
            session_from_dict(data, candidate)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring unreadable saved session: {e}")
            return False

        target = self._session
        cmodel = candidate.model
        target.model.restore(cmodel.calibration_line, list(cmodel.lines),
                             cmodel.reference_length, cmodel.unit)
        target.view.set(candidate.view.zoom, candidate.view.offset)
        if candidate.pending_image is not None:
            target.begin_image_load(candidate.pending_image)
        logger.info(
            f"Restored session: {len(cmodel.lines)} measurement(s), "
            f"scale {cmodel.scale_text()}"
        )
        return True

    def clear(self):
        """Forget the saved session."""
        try:
            self._store.delete(self._key)
        except PersistenceUnavailableError as e:
            logger.warning(f"Saved session not cleared: {e}")
