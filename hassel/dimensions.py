from __future__ import annotations

from typing import Literal, Optional

from .results import Dimensions
from .units import round_half_up


Axis = Literal["width", "height"]


def resolve_dimensions(
    requested: Dimensions,
    original: Dimensions,
    maintain_aspect_ratio: bool,
    changed_axis: Optional[Axis] = None,
) -> Dimensions:
    """
    Work out the (width, height) to render at.

    With the aspect lock off both axes pass through (independent stretch).
    With it on, one axis drives and the other is recomputed from the original
    ratio. changed_axis names the driver; when it is None the driver is
    inferred by comparing against the original:
      - only width changed  -> width drives
      - only height changed -> height drives
      - both changed        -> width drives
      - neither changed     -> unchanged
    A pair that already follows the ratio from either axis is kept as is,
    so resolving an already-resolved pair never moves it.
    """
    requested = Dimensions(*requested)

    if not maintain_aspect_ratio:
        return requested

    ow, oh = original
    if ow <= 0 or oh <= 0:
        # No usable ratio; keep what was asked for.
        return requested

    if changed_axis is None:
        if _follows_ratio(requested, Dimensions(ow, oh)):
            return requested
        changed_axis = _infer_changed_axis(requested, Dimensions(ow, oh))
        if changed_axis is None:
            return requested

    if changed_axis == "width":
        return Dimensions(requested.width, round_half_up(requested.width * oh / ow))

    if changed_axis == "height":
        return Dimensions(round_half_up(requested.height * ow / oh), requested.height)

    raise ValueError(f"Unknown axis: {changed_axis}")


def _infer_changed_axis(requested: Dimensions, original: Dimensions) -> Optional[Axis]:
    width_changed = requested.width != original.width
    height_changed = requested.height != original.height

    if width_changed:
        # Width wins when both moved.
        return "width"
    if height_changed:
        return "height"
    return None


def _follows_ratio(requested: Dimensions, original: Dimensions) -> bool:
    ow, oh = original
    # Rounding makes the width- and height-driven pairs differ by a pixel at times.
    from_width = round_half_up(requested.width * oh / ow)
    from_height = round_half_up(requested.height * ow / oh)
    return requested.height == from_width or requested.width == from_height
