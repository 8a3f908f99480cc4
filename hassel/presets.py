from __future__ import annotations

from dataclasses import replace

from .dimensions import resolve_dimensions
from .results import Dimensions
from .settings import CompressionSettings


PRESET_NAMES = ("web", "email", "social", "thumbnail", "webp", "lossless")


def apply_preset(name: str, base: CompressionSettings, original: Dimensions) -> CompressionSettings:
    name = name.lower()

    if name == "web":
        return replace(base.with_format("image/jpeg"), quality=0.8, target_size_kb=None)

    if name == "email":
        return replace(base.with_format("image/jpeg"), target_size_kb=200)

    if name == "social":
        s = replace(base.with_format("image/jpeg"), quality=0.85, target_size_kb=None)
        return _fit_width(s, 1080, original)

    if name == "thumbnail":
        return _fit_width(base, 320, original)

    if name == "webp":
        return replace(base.with_format("image/webp"), quality=0.8)

    if name == "lossless":
        return replace(base.with_format("image/png"), target_size_kb=None)

    raise ValueError(f"Unknown preset: {name}")


def _fit_width(s: CompressionSettings, width: int, original: Dimensions) -> CompressionSettings:
    # Never upscale
    if s.width <= width:
        return s

    dims = resolve_dimensions(Dimensions(width, s.height), original, True, "width")
    return replace(s, width=dims.width, height=dims.height, maintain_aspect_ratio=True)
