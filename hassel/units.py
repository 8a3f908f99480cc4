from __future__ import annotations

import math

from .results import Dimensions
from .settings import ResizeUnit


# Screen resolution used for every physical unit.
DPI = 96

CM_PER_INCH = 2.54
MM_PER_INCH = 25.4


def round_half_up(value: float) -> int:
    """Round to the nearest integer, .5 going up (Python's round() is banker's)."""
    return int(math.floor(value + 0.5))


def to_display(px: float, unit: ResizeUnit, original_length: int) -> float:
    """
    Convert a pixel count into the value shown for `unit`.

    original_length is the original size of the axis being shown, so percent
    is axis-relative: widths reference the original width, heights the
    original height.
    """
    if unit == "px":
        return px
    if unit == "in":
        return round(px / DPI, 2)
    if unit == "cm":
        return round(px * CM_PER_INCH / DPI, 2)
    if unit == "mm":
        return round(px * MM_PER_INCH / DPI, 2)
    if unit == "%":
        if original_length <= 0:
            return 0.0
        return round(px / original_length * 100, 2)
    raise ValueError(f"Unknown unit: {unit}")


def to_pixels(value: float, unit: ResizeUnit, is_width: bool, original: Dimensions) -> int:
    """Convert a displayed value back to whole pixels."""
    if unit == "px":
        return round_half_up(value)
    if unit == "in":
        return round_half_up(value * DPI)
    if unit == "cm":
        return round_half_up(value * DPI / CM_PER_INCH)
    if unit == "mm":
        return round_half_up(value * DPI / MM_PER_INCH)
    if unit == "%":
        length = original.width if is_width else original.height
        if length <= 0:
            return 0
        return round_half_up(value / 100 * length)
    raise ValueError(f"Unknown unit: {unit}")
