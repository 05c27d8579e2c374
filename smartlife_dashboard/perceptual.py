"""Numeric transforms between UI controls and device values."""

from __future__ import annotations

import math
from collections.abc import Sequence

from .const import (
    GAMMA,
    HUE_MATCH_TOLERANCE,
    SCALE_MAX,
    SCALE_MIN,
    SNAP_POINTS,
    SNAP_THRESHOLD,
)
from .models import ColourData, ColourPreset

COLOUR_PRESETS: tuple[ColourPreset, ...] = (
    ColourPreset("#FF0000", 0),
    ColourPreset("#FFA500", 30),
    ColourPreset("#FFFF00", 60),
    ColourPreset("#008000", 120),
    ColourPreset("#00FFFF", 180),
    ColourPreset("#0000FF", 240),
    ColourPreset("#800080", 300),
    ColourPreset("#FF00FF", 330),
)


def _round_half_up(value: float) -> int:
    """Round halves away from zero for the positive ranges used here."""

    return math.floor(value + 0.5)


def to_logarithmic(linear: float) -> int:
    """Convert a linear slider value (0-1000) to device brightness (10-1000)."""

    normalized = max(0.0, linear) / SCALE_MAX
    return max(SCALE_MIN, _round_half_up(normalized**GAMMA * SCALE_MAX))


def to_linear(device_value: float) -> int:
    """Convert a device brightness value back to the linear slider scale."""

    normalized = max(0.0, device_value) / SCALE_MAX
    return _round_half_up(normalized ** (1 / GAMMA) * SCALE_MAX)


def apply_magnetism(
    value: int,
    points: Sequence[int] = SNAP_POINTS,
    threshold: int = SNAP_THRESHOLD,
) -> int:
    """Snap ``value`` onto the nearest breakpoint when it is close enough."""

    closest = points[0]
    for point in points[1:]:
        if abs(point - value) < abs(closest - value):
            closest = point
    if abs(value - closest) <= threshold:
        return closest
    return value


def hue_distance(first: int, second: int) -> int:
    """Return the circular distance between two hues in degrees."""

    diff = abs(first - second) % 360
    return min(diff, 360 - diff)


def matches_preset(colour: ColourData, preset: ColourPreset) -> bool:
    """Return True when ``colour`` selects ``preset``; only hue is compared."""

    return hue_distance(colour.h, preset.h) < HUE_MATCH_TOLERANCE


def active_preset_index(
    colour: ColourData, presets: Sequence[ColourPreset] = COLOUR_PRESETS
) -> int | None:
    """Return the index of the first preset matching ``colour``."""

    for index, preset in enumerate(presets):
        if matches_preset(colour, preset):
            return index
    return None


def hsv_to_hsl(h: int, s: int, v: int) -> str:
    """Render an HSV colour (s/v on the 0-1000 scale) as a CSS ``hsl()``."""

    s_norm = s / 1000
    v_norm = v / 1000
    lightness = v_norm * (1 - s_norm / 2)
    if lightness in (0, 1):
        saturation = 0.0
    else:
        saturation = (v_norm - lightness) / min(lightness, 1 - lightness)
    return (
        f"hsl({h}, {_round_half_up(saturation * 100)}%, "
        f"{_round_half_up(lightness * 100)}%)"
    )


def hue_from_point(x: float, y: float, cx: float, cy: float) -> int:
    """Return the hue selected by a pointer at ``(x, y)`` on a hue ring.

    Zero degrees sits at 12 o'clock and hue grows clockwise, so a pointer
    straight to the right of the centre selects 90.
    """

    degrees = math.degrees(math.atan2(y - cy, x - cx)) + 90
    if degrees < 0:
        degrees += 360
    return _round_half_up(degrees) % 360


def point_on_ring(hue: int, radius: float, size: float) -> tuple[float, float]:
    """Return the thumb coordinates for ``hue`` on a ring of ``size`` pixels."""

    angle = math.radians(hue - 90)
    return (size / 2 + radius * math.cos(angle), size / 2 + radius * math.sin(angle))


def percent(value: int) -> int:
    """Express a 0-1000 control value as a whole percentage."""

    return _round_half_up(value / SCALE_MAX * 100)
