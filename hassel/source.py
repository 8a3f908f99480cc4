from __future__ import annotations

from dataclasses import dataclass, field
import io
import logging
import mimetypes
from pathlib import Path
from typing import Optional

from PIL import ExifTags, Image, UnidentifiedImageError

from .errors import DecodeFailure, InvalidInput
from .results import Dimensions


logger = logging.getLogger(__name__)

# Not every platform's mime table knows WebP.
mimetypes.add_type("image/webp", ".webp")

# Everything Pillow may raise while reading a broken or hostile file.
DECODE_ERRORS = (UnidentifiedImageError, OSError, ValueError, SyntaxError, Image.DecompressionBombError)


@dataclass(frozen=True)
class SourceImage:
    """
    The image being edited, as selected by the user.

    dimensions are read once at load time (after EXIF orientation) and stay
    fixed for the whole session.
    """
    data: bytes = field(repr=False)
    media_type: str
    name: str
    dimensions: Dimensions

    @property
    def size(self) -> int:
        return len(self.data)


def is_image_type(media_type: Optional[str]) -> bool:
    return bool(media_type) and media_type.lower().startswith("image/")


def load_source(data: bytes, media_type: Optional[str], name: str = "image") -> SourceImage:
    """
    Validate and wrap raw bytes.

    Raises InvalidInput for non-image media types (before decoding anything),
    DecodeFailure if the bytes aren't a readable image.
    """
    if not is_image_type(media_type):
        raise InvalidInput(f"Not an image file: {name} ({media_type or 'unknown type'})")

    try:
        with Image.open(io.BytesIO(data)) as im:
            # Orientation changes what the user sees as width/height.
            width, height = _oriented_size(im)
    except DECODE_ERRORS as exc:
        raise DecodeFailure(f"Could not read image {name}: {exc}") from exc

    logger.info("Loaded %s (%s, %dx%d, %d bytes)", name, media_type, width, height, len(data))

    return SourceImage(
        data=bytes(data),
        media_type=media_type.lower(),
        name=name,
        dimensions=Dimensions(width, height),
    )


def load_source_file(path: Path) -> SourceImage:
    path = Path(path)
    media_type, _ = mimetypes.guess_type(path.name)
    if not is_image_type(media_type):
        raise InvalidInput(f"Not an image file: {path.name}")
    return load_source(path.read_bytes(), media_type, name=path.name)


def _oriented_size(im: Image.Image) -> tuple[int, int]:
    w, h = im.size
    orientation = im.getexif().get(ExifTags.Base.Orientation)
    # 5-8 are the transposing orientations (90/270 degree rotations)
    if orientation in (5, 6, 7, 8):
        return h, w
    return w, h
