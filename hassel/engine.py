from __future__ import annotations

from contextlib import contextmanager
import io
import logging
from typing import Iterator, Optional

from PIL import Image, ImageOps

from .dimensions import Axis, resolve_dimensions
from .errors import DecodeFailure, EncodingUnavailable
from .results import CompressionResult, Dimensions, EncodedImage
from .settings import CompressionSettings
from .source import DECODE_ERRORS, SourceImage
from .units import round_half_up


logger = logging.getLogger(__name__)


# Size search: fixed budget over [SEARCH_MIN_QUALITY, SEARCH_MAX_QUALITY].
SEARCH_ROUNDS = 6
SEARCH_MIN_QUALITY = 0.01
SEARCH_MAX_QUALITY = 1.0

# Used when no searched quality fits under the target.
FALLBACK_QUALITY = 0.1

# photo.png -> photo_0hassel.jpg
OUTPUT_SUFFIX = "_0hassel"

# Pillow picks the encoder by format=..., not by file name.
FORMAT_TO_PIL = {
    "image/jpeg": "JPEG",
    "image/png": "PNG",
    "image/webp": "WEBP",
}

# ----- Codec knobs -----
JPEG_OPTIMIZE = True
JPEG_PROGRESSIVE = True
# JPEG has no alpha; transparent pixels are flattened onto this.
JPEG_BACKGROUND: tuple[int, int, int] = (255, 255, 255)

# Pillow uses "compress_level" (0-9). Higher = smaller but slower.
PNG_COMPRESS_LEVEL = 9
PNG_OPTIMIZE = True

WEBP_METHOD = 4  # 0-6, higher = smaller but slower


def compress(
    source: SourceImage,
    settings: CompressionSettings,
    changed_axis: Optional[Axis] = None,
) -> CompressionResult:
    """
    Run the whole pipeline once: resolve dimensions, then encode.

    With a positive target_size_kb the size search picks the quality and
    settings.quality is ignored. Pure: same source + settings -> same bytes.
    """
    dims = resolve_dimensions(
        Dimensions(settings.width, settings.height),
        source.dimensions,
        settings.maintain_aspect_ratio,
        changed_axis,
    )

    target_bytes = settings.target_bytes
    if target_bytes is not None:
        data = search_for_target(source, dims.width, dims.height, settings.format, target_bytes)
    else:
        data = encode(source, dims.width, dims.height, settings.format, settings.quality).data

    return CompressionResult(
        data=data,
        dimensions=dims,
        media_type=settings.format,
        file_name=suggested_name(source.name, settings.output_extension),
        target_bytes=target_bytes,
    )


def encode(source: SourceImage, width: int, height: int, fmt: str, quality: float) -> EncodedImage:
    """Resample the source to exactly width x height and serialize it as fmt."""
    with _render(source, width, height) as surface:
        data = _serialize(surface, fmt, quality)
    return EncodedImage(data=data, width=width, height=height)


def search_for_target(source: SourceImage, width: int, height: int, fmt: str, target_bytes: int) -> bytes:
    """
    Find the highest quality whose output fits in target_bytes.

    Bisects quality for exactly SEARCH_ROUNDS rounds; the result is close to,
    not necessarily at, the best quality. If nothing fits, returns the
    FALLBACK_QUALITY encoding even though it is over budget. Callers tell the
    two cases apart by comparing len(result) with target_bytes.
    """
    with _render(source, width, height) as surface:
        lo, hi = SEARCH_MIN_QUALITY, SEARCH_MAX_QUALITY
        best: Optional[bytes] = None

        for i in range(SEARCH_ROUNDS):
            mid = (lo + hi) / 2
            candidate = _serialize(surface, fmt, mid)
            fits = len(candidate) <= target_bytes

            logger.debug(
                "size search round %d: quality=%.4f size=%d target=%d fits=%s",
                i + 1, mid, len(candidate), target_bytes, fits,
            )

            if fits:
                # lo only ever rises, so a later fit is always higher quality
                best = candidate
                lo = mid
            else:
                hi = mid

        if best is None:
            logger.info(
                "No quality fits %d bytes at %dx%d; using quality %.2f",
                target_bytes, width, height, FALLBACK_QUALITY,
            )
            best = _serialize(surface, fmt, FALLBACK_QUALITY)

    return best


def suggested_name(original_name: str, extension: str) -> str:
    # photo.final.png -> photo.final_0hassel.jpg
    stem = original_name.rsplit(".", 1)[0] if "." in original_name else original_name
    if not stem:
        stem = original_name
    return f"{stem}{OUTPUT_SUFFIX}.{extension}"


def format_file_size(num_bytes: int) -> str:
    """1536 -> '1.5 KB'. Base 1024, at most two decimals."""
    if num_bytes <= 0:
        return "0 Bytes"

    units = ["Bytes", "KB", "MB", "GB"]
    value = float(num_bytes)
    i = 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1

    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {units[i]}"


def to_codec_quality(quality: float) -> int:
    """Map (0, 1] onto Pillow's 1..100 quality scale."""
    return max(1, min(100, round_half_up(quality * 100)))


@contextmanager
def _render(source: SourceImage, width: int, height: int) -> Iterator[Image.Image]:
    """
    Decode the source and resample it to width x height.

    Every Pillow handle opened here is closed when the block exits, whether
    it exits normally or through an exception.
    """
    if width < 1 or height < 1:
        raise EncodingUnavailable(f"Cannot create a {width}x{height} surface")

    try:
        im = Image.open(io.BytesIO(source.data))
    except DECODE_ERRORS as exc:
        raise DecodeFailure(f"Could not decode {source.name}: {exc}") from exc

    handles = [im]
    try:
        try:
            # Truncated files pass open() and only fail here.
            im.load()
        except DECODE_ERRORS as exc:
            raise DecodeFailure(f"Could not decode {source.name}: {exc}") from exc

        oriented = ImageOps.exif_transpose(im)
        handles.append(oriented)

        prepared = _prepare_mode(oriented)
        handles.append(prepared)

        try:
            # Never nearest-neighbour: fidelity at the reduced size is the point.
            surface = prepared.resize((width, height), Image.Resampling.LANCZOS)
        except (MemoryError, ValueError) as exc:
            raise EncodingUnavailable(f"Cannot create a {width}x{height} surface: {exc}") from exc
        handles.append(surface)

        yield surface
    finally:
        closed: set[int] = set()
        for handle in reversed(handles):
            # Pillow may hand back the same object from a no-op step.
            if id(handle) not in closed:
                closed.add(id(handle))
                handle.close()


def _serialize(surface: Image.Image, fmt: str, quality: float) -> bytes:
    pil_format = FORMAT_TO_PIL.get(fmt)
    if pil_format is None:
        raise EncodingUnavailable(f"No encoder for {fmt}")

    im = surface
    if fmt == "image/jpeg" and _has_alpha(im):
        im = _flatten_alpha(im, JPEG_BACKGROUND)

    buf = io.BytesIO()
    try:
        im.save(buf, format=pil_format, **_build_save_kwargs(fmt, quality))
    except (KeyError, OSError) as exc:
        # Pillow raises these when the build lacks the codec.
        raise EncodingUnavailable(f"Could not encode {fmt}: {exc}") from exc
    finally:
        if im is not surface:
            im.close()

    return buf.getvalue()


def _build_save_kwargs(fmt: str, quality: float) -> dict:
    kwargs: dict = {}

    # No exif / icc_profile is passed on: output carries no metadata.
    if fmt == "image/jpeg":
        kwargs["quality"] = to_codec_quality(quality)
        kwargs["optimize"] = JPEG_OPTIMIZE
        kwargs["progressive"] = JPEG_PROGRESSIVE

    elif fmt == "image/png":
        # Lossless: quality has no meaning here.
        kwargs["compress_level"] = PNG_COMPRESS_LEVEL
        kwargs["optimize"] = PNG_OPTIMIZE

    elif fmt == "image/webp":
        kwargs["quality"] = to_codec_quality(quality)
        kwargs["lossless"] = False
        kwargs["method"] = WEBP_METHOD

    return kwargs


def _prepare_mode(im: Image.Image) -> Image.Image:
    # LANCZOS needs a continuous-tone mode; palette and bilevel images
    # would otherwise be resized nearest-neighbour.
    if _has_alpha(im):
        return im if im.mode == "RGBA" else im.convert("RGBA")
    return im if im.mode == "RGB" else im.convert("RGB")


def _flatten_alpha(im: Image.Image, background_rgb: tuple[int, int, int]) -> Image.Image:
    rgba = im.convert("RGBA")
    bg = Image.new("RGBA", rgba.size, background_rgb + (255,))
    comp = Image.alpha_composite(bg, rgba)
    out = comp.convert("RGB")
    for tmp in (rgba, bg, comp):
        if tmp is not im:
            tmp.close()
    return out


def _has_alpha(im: Image.Image) -> bool:
    if im.mode in ("RGBA", "LA", "PA"):
        return True
    if im.mode == "P" and "transparency" in im.info:
        return True
    return False
