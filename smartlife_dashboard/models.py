"""Data models shared by the SmartLife dashboard engine."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .const import CATEGORY_LIGHT, CATEGORY_SWITCH


class DeviceCategory(str, Enum):
    """Coarse device families the dashboard knows how to control."""

    LIGHT = "light"
    SWITCH = "switch"
    OTHER = "other"

    @classmethod
    def from_code(cls, code: str | None) -> DeviceCategory:
        """Map a raw platform category code onto a device family."""

        if code == CATEGORY_LIGHT:
            return cls.LIGHT
        if code == CATEGORY_SWITCH:
            return cls.SWITCH
        return cls.OTHER


class WorkMode(str, Enum):
    """Operating modes reported by lights."""

    WHITE = "white"
    COLOUR = "colour"
    SCENE = "scene"


class Channel(str, Enum):
    """Independent command channels of a single device."""

    BRIGHTNESS = "brightness"
    COLORTEMP = "colortemp"
    COLOUR = "colour"
    POWER = "power"
    WORKMODE = "workmode"

    @property
    def immediate(self) -> bool:
        """Return True for channels that are never debounced."""

        return self in (Channel.POWER, Channel.WORKMODE)


class StatusItem(BaseModel):
    """Single ``{code, value}`` entry of a device status vector."""

    model_config = ConfigDict(frozen=True)

    code: str
    value: Any = None


class Device(BaseModel):
    """Remote device record as returned by the listing query."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str
    name: str = ""
    online: bool = False
    category: str = ""
    status: list[StatusItem] = Field(default_factory=list)
    uuid: str | None = None
    icon: str | None = None
    product_name: str | None = None

    @field_validator("name", "category", mode="before")
    @classmethod
    def _text_or_blank(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("online", mode="before")
    @classmethod
    def _online_flag(cls, value: Any) -> Any:
        return value if isinstance(value, bool) else False

    @field_validator("status", mode="before")
    @classmethod
    def _status_entries(cls, value: Any) -> list[Any]:
        """Keep only ``{code, value}`` entries with a string code."""

        if isinstance(value, str | bytes) or not isinstance(value, Sequence):
            return []
        entries: list[Any] = []
        for item in value:
            if isinstance(item, StatusItem):
                entries.append(item)
                continue
            if not isinstance(item, Mapping) or not isinstance(item.get("code"), str):
                continue
            entries.append({"code": item["code"], "value": item.get("value")})
        return entries

    @property
    def device_category(self) -> DeviceCategory:
        """Return the device family derived from the raw category."""

        return DeviceCategory.from_code(self.category)

    @property
    def is_light(self) -> bool:
        """Return True when the device is a light."""

        return self.device_category is DeviceCategory.LIGHT

    def status_value(self, code: str) -> Any:
        """Return the value reported for ``code`` or None when absent."""

        for item in self.status:
            if item.code == code:
                return item.value
        return None


@dataclass(frozen=True, slots=True)
class ColourData:
    """HSV colour on the platform scale (h 0-360, s/v 0-1000)."""

    h: int = 0
    s: int = 1000
    v: int = 1000

    def as_dict(self) -> dict[str, int]:
        """Return the colour as a plain mapping."""

        return {"h": self.h, "s": self.s, "v": self.v}


@dataclass(frozen=True, slots=True)
class ColourPreset:
    """Static catalog entry for one of the quick colour buttons."""

    display_color: str
    h: int
    s: int = 1000
    v: int = 1000

    @property
    def colour(self) -> ColourData:
        """Return the preset as a colour value."""

        return ColourData(h=self.h, s=self.s, v=self.v)


@dataclass(frozen=True, slots=True)
class DomainState:
    """Typed projection of a device status vector.

    ``brightness`` and ``colour.v`` live in the linear (UI) space; the
    logarithmic device value is computed only when a command is built.
    """

    power: bool
    brightness: int
    color_temp: int
    work_mode: WorkMode
    colour: ColourData


@dataclass(slots=True)
class PendingEdit:
    """Outstanding optimistic edit on one channel of a device."""

    channel: Channel
    target_value: Any
    issued_command_epoch: int
    previous_values: dict[str, Any] = field(default_factory=dict)
