import pytest

from hassel.dimensions import resolve_dimensions
from hassel.results import Dimensions
from hassel.units import round_half_up


ORIGINAL = Dimensions(1000, 800)


def test_width_change_with_lock():
    assert resolve_dimensions(Dimensions(500, 800), ORIGINAL, True, "width") == (500, 400)


def test_height_change_with_lock():
    assert resolve_dimensions(Dimensions(1000, 400), ORIGINAL, True, "height") == (500, 400)


def test_lock_off_passes_through():
    assert resolve_dimensions(Dimensions(321, 123), ORIGINAL, False, "width") == (321, 123)
    assert resolve_dimensions(Dimensions(321, 123), ORIGINAL, False) == (321, 123)


@pytest.mark.parametrize(
    "requested, expected",
    [
        ((500, 800), (500, 400)),    # only width moved
        ((1000, 400), (500, 400)),   # only height moved
        ((500, 100), (500, 400)),    # both moved: width wins
        ((1000, 800), (1000, 800)),  # nothing moved
    ],
)
def test_driver_axis_is_inferred(requested, expected):
    assert resolve_dimensions(Dimensions(*requested), ORIGINAL, True) == expected


def test_zero_original_ratio_is_a_no_op():
    assert resolve_dimensions(Dimensions(500, 300), Dimensions(0, 800), True, "width") == (500, 300)
    assert resolve_dimensions(Dimensions(500, 300), Dimensions(1000, 0), True, "height") == (500, 300)
    assert resolve_dimensions(Dimensions(500, 300), Dimensions(0, 0), True) == (500, 300)


def test_zero_requested_value_is_legal():
    assert resolve_dimensions(Dimensions(0, 800), ORIGINAL, True, "width") == (0, 0)
    assert resolve_dimensions(Dimensions(1000, 0), ORIGINAL, True, "height") == (0, 0)


@pytest.mark.parametrize("w0, h0", [(1000, 800), (640, 480), (1920, 1080), (7, 13), (333, 1001)])
@pytest.mark.parametrize("w1", [1, 50, 299, 640, 2500])
def test_lock_round_trip(w0, h0, w1):
    original = Dimensions(w0, h0)

    changed = resolve_dimensions(Dimensions(w1, h0), original, True, "width")
    assert changed == (w1, round_half_up(w1 * h0 / w0))

    back = resolve_dimensions(Dimensions(changed.width, h0), original, True, "height")
    assert back.height == h0
    assert abs(back.width - w0) <= 1


def test_unknown_axis():
    with pytest.raises(ValueError):
        resolve_dimensions(Dimensions(10, 10), ORIGINAL, True, "depth")


def test_already_resolved_pair_is_kept():
    # 99 high on a 108x192 original resolves to 56 wide; width-driven
    # re-resolution of that pair would give 100 high.
    original = Dimensions(108, 192)
    resolved = resolve_dimensions(Dimensions(108, 99), original, True, "height")
    assert resolved == (56, 99)

    assert resolve_dimensions(resolved, original, True) == (56, 99)


@pytest.mark.parametrize("w0, h0", [(108, 192), (1000, 800), (7, 13), (333, 1001)])
@pytest.mark.parametrize("axis", ["width", "height"])
def test_resolving_twice_changes_nothing(w0, h0, axis):
    original = Dimensions(w0, h0)
    for value in range(1, 400, 7):
        requested = Dimensions(value, h0) if axis == "width" else Dimensions(w0, value)
        once = resolve_dimensions(requested, original, True, axis)
        assert resolve_dimensions(once, original, True) == once
