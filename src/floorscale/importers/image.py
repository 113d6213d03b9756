"""Image importer for FloorScale.

Validates that a payload is an image and decodes it with Pillow to find
its pixel dimensions. The decoded pixels are not kept here; the UI builds
its own pixmap from the same bytes.
"""

import io
import mimetypes
from pathlib import Path

from loguru import logger
from PIL import Image, UnidentifiedImageError

from floorscale.core.errors import DecodeError, InvalidInputError
from floorscale.core.session import ImageRef

SUPPORTED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".bmp", ".gif", ".tiff", ".tif", ".webp"}

NOT_AN_IMAGE_MESSAGE = "Please select an image file."
DECODE_FAILED_MESSAGE = "Could not load the selected image"


def guess_mime_type(name: str | None) -> str | None:
    if not name:
        return None
    mime, _ = mimetypes.guess_type(name)
    return mime


def can_import(path: Path) -> bool:
    """Check if the file looks like a supported image."""
    path = Path(path)
    if path.suffix.lower() in SUPPORTED_EXTENSIONS:
        return True
    mime = guess_mime_type(path.name)
    return bool(mime and mime.startswith("image/"))


def decode_image(data: bytes, name: str | None = None, mime_type: str | None = None) -> ImageRef:
    """Decode image bytes into an ImageRef.

    Raises InvalidInputError if the payload is not an image and
    DecodeError if it claims to be one but cannot be read.
    """
    if mime_type is None:
        mime_type = guess_mime_type(name)
    if mime_type is not None and not mime_type.startswith("image/"):
        raise InvalidInputError(NOT_AN_IMAGE_MESSAGE)
    if not data:
        raise InvalidInputError(NOT_AN_IMAGE_MESSAGE)

    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            width, height = img.size
            if mime_type is None and img.format:
                mime_type = Image.MIME.get(img.format)
    except UnidentifiedImageError as e:
        logger.warning(f"Rejected non-image payload {name or ''}: {e}")
        raise InvalidInputError(NOT_AN_IMAGE_MESSAGE) from e
    except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as e:
        logger.warning(f"Failed to decode image {name or ''}: {e}")
        raise DecodeError(DECODE_FAILED_MESSAGE) from e

    if width <= 0 or height <= 0:
        raise DecodeError(DECODE_FAILED_MESSAGE)
    return ImageRef(width=width, height=height, data=data, name=name, mime_type=mime_type)


def import_image(path: Path) -> ImageRef:
    """Read and decode an image file from disk."""
    path = Path(path)
    if not can_import(path):
        raise InvalidInputError(NOT_AN_IMAGE_MESSAGE)
    try:
        data = path.read_bytes()
    except OSError as e:
        logger.error(f"Cannot read {path}: {e}")
        raise DecodeError(DECODE_FAILED_MESSAGE) from e
    return decode_image(data, name=path.name)
