"""Decode device status vectors into typed state and encode commands."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from typing import Any

from .const import (
    CODE_BRIGHTNESS,
    CODE_COLOR_TEMP,
    CODE_COLOUR_DATA,
    CODE_SWITCH_1,
    CODE_SWITCH_LED,
    CODE_WORK_MODE,
    DEFAULT_BRIGHTNESS,
    DEFAULT_COLOR_TEMP,
    DEFAULT_HUE,
    DEFAULT_POWER,
    DEFAULT_SATURATION,
    DEFAULT_VALUE,
    DEFAULT_WORK_MODE,
    SCALE_MAX,
    SCALE_MIN,
)
from .models import ColourData, Device, DomainState, WorkMode
from .perceptual import to_linear

_LOGGER = logging.getLogger(__name__)

CommandPayload = dict[str, Any]

DEFAULT_COLOUR = ColourData(h=DEFAULT_HUE, s=DEFAULT_SATURATION, v=DEFAULT_VALUE)


def _coerce_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    return None


def _coerce_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _clamp(value: int, low: int = 0, high: int = SCALE_MAX) -> int:
    return max(low, min(high, value))


def _coerce_work_mode(value: Any) -> WorkMode | None:
    if isinstance(value, WorkMode):
        return value
    if isinstance(value, str):
        try:
            return WorkMode(value)
        except ValueError:
            return None
    return None


def parse_colour_data(value: Any) -> ColourData:
    """Parse a colour payload delivered as a JSON string or a mapping.

    Anything malformed yields the default colour; this function never raises.
    Hue wraps onto [0, 360) and saturation and value are clamped to
    [0, 1000].
    """

    if isinstance(value, ColourData):
        return value
    payload = value
    if isinstance(value, str | bytes):
        try:
            payload = json.loads(value)
        except (json.JSONDecodeError, UnicodeDecodeError):
            _LOGGER.debug("Ignoring malformed colour payload: %r", value)
            return DEFAULT_COLOUR
    if not isinstance(payload, Mapping):
        return DEFAULT_COLOUR
    components = [_coerce_int(payload.get(key)) for key in ("h", "s", "v")]
    if any(component is None for component in components):
        _LOGGER.debug("Colour payload missing components: %r", payload)
        return DEFAULT_COLOUR
    h, s, v = components
    return ColourData(h=h % 360, s=_clamp(s), v=_clamp(v))


def serialize_colour(colour: ColourData) -> str:
    """Serialize ``colour`` to the compact JSON form sent to devices."""

    return json.dumps(colour.as_dict(), separators=(",", ":"))


# Declared type of every code the codec understands.
_DECODERS: dict[str, Callable[[Any], Any]] = {
    CODE_SWITCH_LED: _coerce_bool,
    CODE_SWITCH_1: _coerce_bool,
    CODE_BRIGHTNESS: _coerce_int,
    CODE_COLOR_TEMP: _coerce_int,
    CODE_WORK_MODE: _coerce_work_mode,
    CODE_COLOUR_DATA: parse_colour_data,
}


def power_code(device: Device) -> str:
    """Return the status code that carries the power flag for ``device``."""

    return CODE_SWITCH_LED if device.is_light else CODE_SWITCH_1


def decode_value(code: str, value: Any, default: Any) -> Any:
    """Decode a single status value, falling back to ``default``."""

    if value is None:
        return default
    decoder = _DECODERS.get(code)
    if decoder is None:
        return value
    decoded = decoder(value)
    return default if decoded is None else decoded


def decode(device: Device) -> DomainState:
    """Project the status vector of ``device`` onto a ``DomainState``."""

    def _field(code: str, default: Any) -> Any:
        return decode_value(code, device.status_value(code), default)

    brightness = _clamp(_field(CODE_BRIGHTNESS, DEFAULT_BRIGHTNESS), SCALE_MIN)
    return DomainState(
        power=_field(power_code(device), DEFAULT_POWER),
        brightness=to_linear(brightness),
        color_temp=_clamp(_field(CODE_COLOR_TEMP, DEFAULT_COLOR_TEMP)),
        work_mode=_field(CODE_WORK_MODE, WorkMode(DEFAULT_WORK_MODE)),
        colour=_field(CODE_COLOUR_DATA, DEFAULT_COLOUR),
    )


def encode(code: str, value: Any) -> CommandPayload:
    """Build a ``{code, value}`` command entry for transmission."""

    if code == CODE_COLOUR_DATA:
        return {"code": code, "value": serialize_colour(parse_colour_data(value))}
    if isinstance(value, WorkMode):
        return {"code": code, "value": value.value}
    if code in (CODE_SWITCH_LED, CODE_SWITCH_1):
        return {"code": code, "value": bool(value)}
    if code in (CODE_BRIGHTNESS, CODE_COLOR_TEMP):
        return {"code": code, "value": int(value)}
    return {"code": code, "value": value}
