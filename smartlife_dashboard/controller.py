"""Optimistic per-device state controller."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from dataclasses import replace
from typing import Any

from .codec import encode, decode, parse_colour_data, power_code
from .const import (
    CODE_BRIGHTNESS,
    CODE_COLOR_TEMP,
    CODE_COLOUR_DATA,
    CODE_WORK_MODE,
    NOTICE_DURATION,
    SCALE_MAX,
)
from .dispatcher import CommandDispatcher, CommandPayload, CommandResult
from .models import Channel, ColourData, Device, DomainState, PendingEdit, WorkMode
from .perceptual import apply_magnetism, to_logarithmic

_LOGGER = logging.getLogger(__name__)

# Channels whose pending edits shield a field from refreshed values.
_FIELD_GUARDS: dict[str, tuple[Channel, ...]] = {
    "power": (Channel.POWER,),
    "brightness": (Channel.BRIGHTNESS, Channel.COLOUR),
    "color_temp": (Channel.COLORTEMP,),
    "work_mode": (Channel.WORKMODE, Channel.COLOUR),
    "colour": (Channel.COLOUR,),
}

Listener = Callable[["DeviceController"], None]


def _clamp(value: float, minimum: int = 0, maximum: int = SCALE_MAX) -> int:
    return int(max(minimum, min(maximum, round(value))))


class DeviceController:
    """Keep the local view of one device responsive and consistent.

    Gestures mutate the local ``DomainState`` immediately and open a
    ``PendingEdit`` on their channel. While an edit is pending, refreshed
    values for the fields it covers are ignored; when the command fails the
    fields revert to their pre-edit values and a transient notice is shown.
    """

    def __init__(
        self,
        device: Device,
        dispatcher: CommandDispatcher,
        *,
        notice_duration: float = NOTICE_DURATION.total_seconds(),
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        """Initialise the controller from the first device snapshot."""

        self._device = device
        self._dispatcher = dispatcher
        self._notice_duration = notice_duration
        self._loop = loop
        self._state = decode(device)
        self._pending: dict[Channel, PendingEdit] = {}
        self._epoch = 0
        self._editing = False
        self._closed = False
        self._notice: str | None = None
        self._notice_handle: asyncio.TimerHandle | None = None
        self._listeners: list[Listener] = []

    @property
    def device(self) -> Device:
        """Return the most recent device record."""

        return self._device

    @property
    def device_id(self) -> str:
        """Return the device identifier."""

        return self._device.id

    @property
    def state(self) -> DomainState:
        """Return the local, possibly optimistic, state."""

        return self._state

    @property
    def pending(self) -> dict[Channel, PendingEdit]:
        """Return a copy of the outstanding edits keyed by channel."""

        return dict(self._pending)

    @property
    def pending_channels(self) -> frozenset[Channel]:
        """Return the channels with an outstanding edit."""

        return frozenset(self._pending)

    @property
    def notice(self) -> str | None:
        """Return the transient error notice, if any."""

        return self._notice

    @property
    def editing(self) -> bool:
        """Return True while the dashboard is in arrangement mode."""

        return self._editing

    @property
    def controls_enabled(self) -> bool:
        """Return True when gestures may issue commands."""

        return self._device.online and not self._editing and not self._closed

    def set_editing(self, editing: bool) -> None:
        """Enable or disable commands for arrangement mode."""

        self._editing = editing
        self._notify()

    def add_listener(self, callback: Listener) -> Callable[[], None]:
        """Register ``callback`` for state changes and return an unsubscriber."""

        self._listeners.append(callback)

        def _remove() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _remove

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    # Gestures

    def set_brightness(self, raw: float) -> bool:
        """Handle a brightness slider movement in the linear UI space."""

        if not self._accepts_light_gesture():
            return False
        value = apply_magnetism(_clamp(raw))
        command = encode(CODE_BRIGHTNESS, to_logarithmic(value))
        self._apply_gesture(Channel.BRIGHTNESS, value, {"brightness": value}, [command])
        return True

    def set_color_temp(self, raw: float) -> bool:
        """Handle a colour temperature slider movement."""

        if not self._accepts_light_gesture():
            return False
        value = _clamp(raw)
        command = encode(CODE_COLOR_TEMP, value)
        self._apply_gesture(Channel.COLORTEMP, value, {"color_temp": value}, [command])
        return True

    def set_colour(self, colour: ColourData | Mapping[str, Any]) -> bool:
        """Handle a preset tap or a hue ring drag."""

        if not self._accepts_light_gesture():
            return False
        value = parse_colour_data(colour)
        commands = [
            encode(CODE_WORK_MODE, WorkMode.COLOUR),
            encode(CODE_COLOUR_DATA, value),
        ]
        changes = {"colour": value, "work_mode": WorkMode.COLOUR}
        self._apply_gesture(Channel.COLOUR, value, changes, commands)
        return True

    def set_colour_brightness(self, raw: float) -> bool:
        """Handle the intensity slider shown in colour mode."""

        if not self._accepts_light_gesture():
            return False
        level = apply_magnetism(_clamp(raw))
        value = replace(self._state.colour, v=level)
        commands: list[CommandPayload] = [encode(CODE_COLOUR_DATA, value)]
        pending = self._pending.get(Channel.COLOUR)
        if pending is not None and "work_mode" in pending.previous_values:
            # The queued payload switched modes; keep that in the replacement.
            commands.insert(0, encode(CODE_WORK_MODE, WorkMode.COLOUR))
        changes = {"colour": value, "brightness": level}
        self._apply_gesture(Channel.COLOUR, value, changes, commands)
        return True

    async def async_toggle_power(self) -> bool:
        """Flip power immediately and revert the flip if the send fails."""

        if not self.controls_enabled:
            return False
        target = not self._state.power
        epoch = self._next_epoch()
        self._open_pending(Channel.POWER, target, epoch, {"power": target})
        self._state = replace(self._state, power=target)
        self._notify()
        result = await self._dispatcher.async_send(
            self.device_id, [encode(power_code(self._device), target)]
        )
        self._resolve((Channel.POWER,), epoch, result)
        return result.success

    async def async_set_work_mode(self, mode: WorkMode | str) -> bool:
        """Switch between white and colour mode, turning the light on."""

        if not self._accepts_light_gesture():
            return False
        target = WorkMode(mode)
        if self._state.work_mode is target:
            return False
        epoch = self._next_epoch()
        channels = [Channel.WORKMODE]
        commands = [encode(CODE_WORK_MODE, target)]
        self._open_pending(Channel.WORKMODE, target, epoch, {"work_mode": target})
        changes: dict[str, Any] = {"work_mode": target}
        if not self._state.power:
            self._open_pending(Channel.POWER, True, epoch, {"power": True})
            commands.insert(0, encode(power_code(self._device), True))
            channels.append(Channel.POWER)
            changes["power"] = True
        self._state = replace(self._state, **changes)
        self._notify()
        result = await self._dispatcher.async_send(self.device_id, commands)
        self._resolve(tuple(channels), epoch, result)
        return result.success

    def _accepts_light_gesture(self) -> bool:
        return self.controls_enabled and self._device.is_light

    def _apply_gesture(
        self,
        channel: Channel,
        target: Any,
        changes: dict[str, Any],
        commands: list[CommandPayload],
    ) -> None:
        epoch = self._next_epoch()
        self._open_pending(channel, target, epoch, changes)
        if self._state.power:
            self._state = replace(self._state, **changes)
            self._dispatcher.schedule(
                self.device_id,
                channel,
                commands,
                on_result=lambda result: self._resolve((channel,), epoch, result),
            )
        else:
            # Turning on implicitly: one immediate batch carries both changes.
            self._open_pending(Channel.POWER, True, epoch, {"power": True})
            self._dispatcher.cancel(self.device_id, channel)
            self._state = replace(self._state, power=True, **changes)
            batch = [encode(power_code(self._device), True), *commands]
            self._dispatcher.send_soon(
                self.device_id,
                batch,
                lambda result: self._resolve((Channel.POWER, channel), epoch, result),
            )
        self._notify()

    # Pending edit bookkeeping

    def _next_epoch(self) -> int:
        self._epoch += 1
        return self._epoch

    def _open_pending(
        self, channel: Channel, target: Any, epoch: int, changes: Mapping[str, Any]
    ) -> None:
        pending = self._pending.get(channel)
        if pending is None or channel.immediate:
            previous = {name: getattr(self._state, name) for name in changes}
            self._pending[channel] = PendingEdit(
                channel=channel,
                target_value=target,
                issued_command_epoch=epoch,
                previous_values=previous,
            )
            return
        for name in changes:
            pending.previous_values.setdefault(name, getattr(self._state, name))
        pending.target_value = target
        pending.issued_command_epoch = epoch

    def _resolve(
        self, channels: tuple[Channel, ...], epoch: int, result: CommandResult
    ) -> None:
        if self._closed:
            return
        rollback: dict[str, Any] = {}
        for channel in channels:
            pending = self._pending.get(channel)
            if pending is None or pending.issued_command_epoch != epoch:
                continue
            del self._pending[channel]
            if not result.success:
                rollback.update(pending.previous_values)
        if not result.success:
            if rollback:
                _LOGGER.debug("Rolling back %s on %s", sorted(rollback), self.device_id)
                self._state = replace(self._state, **rollback)
            self._show_notice(result.error)
        self._notify()

    # Refresh

    def apply_refresh(self, device: Device) -> None:
        """Merge an authoritative snapshot without clobbering pending edits."""

        if device.id != self._device.id:
            raise ValueError(f"Snapshot for {device.id} applied to {self._device.id}")
        self._device = device
        fresh = decode(device)
        updates = {
            name: getattr(fresh, name)
            for name, guards in _FIELD_GUARDS.items()
            if not any(channel in self._pending for channel in guards)
        }
        if updates:
            self._state = replace(self._state, **updates)
        self._notify()

    # Notices

    def _show_notice(self, message: str | None) -> None:
        if self._notice_handle is not None:
            self._notice_handle.cancel()
        self._notice = message
        loop = self._loop or asyncio.get_running_loop()
        self._notice_handle = loop.call_later(self._notice_duration, self._clear_notice)

    def _clear_notice(self) -> None:
        self._notice_handle = None
        self._notice = None
        self._notify()

    async def async_wait_idle(self) -> None:
        """Wait for every in-flight send to resolve."""

        await self._dispatcher.async_wait_idle()

    def close(self) -> None:
        """Abandon queued gestures and timers without sending them."""

        self._closed = True
        self._dispatcher.cancel(self.device_id)
        if self._notice_handle is not None:
            self._notice_handle.cancel()
            self._notice_handle = None
        self._listeners.clear()
