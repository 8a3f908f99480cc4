from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Literal, Optional

if TYPE_CHECKING:
    from .source import SourceImage


# Container formats, named by media type.
OutputFormat = Literal["image/jpeg", "image/png", "image/webp"]

# jpg and jpeg are both the JPEG container; the choice only affects the file name.
OutputExtension = Literal["jpg", "jpeg", "png", "webp"]

ResizeUnit = Literal["px", "%", "in", "cm", "mm"]

SUPPORTED_FORMATS: tuple[str, ...] = ("image/jpeg", "image/png", "image/webp")
RESIZE_UNITS: tuple[str, ...] = ("px", "%", "in", "cm", "mm")

FORMAT_TO_EXT = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}

EXT_TO_FORMAT = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
}

# Formats whose codec has a quality axis.
LOSSY_FORMATS = {"image/jpeg", "image/webp"}

DEFAULT_QUALITY = 0.8


@dataclass(frozen=True)
class CompressionSettings:
    """
    Everything the UI can change about a compression run.

    A pure data object: the UI builds a new one on every change and hands it
    to the session, which decides when to actually run.
    """

    width: int
    height: int

    # ----- Encoding -----
    quality: float = DEFAULT_QUALITY  # (0, 1], ignored when target_size_kb is set
    format: OutputFormat = "image/jpeg"
    output_extension: OutputExtension = "jpg"

    # If set (and > 0), the size search picks the quality instead.
    target_size_kb: Optional[int] = None

    # ----- Resize -----
    maintain_aspect_ratio: bool = True
    resize_unit: ResizeUnit = "px"  # display only, never affects encoding

    def __post_init__(self) -> None:
        if self.format not in SUPPORTED_FORMATS:
            raise ValueError(f"Unsupported format: {self.format}")
        if self.output_extension not in EXT_TO_FORMAT:
            raise ValueError(f"Unsupported extension: {self.output_extension}")
        if self.resize_unit not in RESIZE_UNITS:
            raise ValueError(f"Unknown unit: {self.resize_unit}")
        if not 0 < self.quality <= 1:
            raise ValueError(f"quality must be in (0, 1], got {self.quality}")
        if self.width < 0 or self.height < 0:
            raise ValueError("width and height cannot be negative")

    @property
    def target_bytes(self) -> Optional[int]:
        if self.target_size_kb and self.target_size_kb > 0:
            return self.target_size_kb * 1024
        return None

    @property
    def is_lossless(self) -> bool:
        return self.format not in LOSSY_FORMATS

    def with_format(self, fmt: str, extension: Optional[str] = None) -> "CompressionSettings":
        """Switch format and file extension together."""
        ext = extension or FORMAT_TO_EXT.get(fmt, "jpg")
        return replace(self, format=fmt, output_extension=ext)

    @classmethod
    def for_source(cls, source: "SourceImage") -> "CompressionSettings":
        """Initial settings for a freshly loaded image: original size, source format."""
        fmt = source.media_type if source.media_type in SUPPORTED_FORMATS else "image/jpeg"

        ext = FORMAT_TO_EXT[fmt]
        # Keep the user's jpg/jpeg spelling.
        if fmt == "image/jpeg" and source.name.lower().endswith(".jpeg"):
            ext = "jpeg"

        return cls(
            width=source.dimensions.width,
            height=source.dimensions.height,
            format=fmt,
            output_extension=ext,
        )
