"""Command dispatch with per-channel debouncing."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from .const import DEBOUNCE_DELAY, GENERIC_ERROR
from .models import Channel

_LOGGER = logging.getLogger(__name__)

CommandPayload = Mapping[str, Any]


class CommandTransport(Protocol):
    """Transport able to deliver one ordered command batch to a device."""

    async def async_send_commands(
        self, device_id: str, commands: Sequence[CommandPayload]
    ) -> None:
        """Deliver ``commands`` or raise on failure."""


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Outcome of a single command batch."""

    success: bool
    error: str | None = None

    @classmethod
    def ok(cls) -> CommandResult:
        """Return a successful result."""

        return cls(success=True)

    @classmethod
    def failed(cls, error: str | None) -> CommandResult:
        """Return a failed result carrying a user-facing message."""

        return cls(success=False, error=error or GENERIC_ERROR)


ResultCallback = Callable[[CommandResult], None]


class ChannelDebouncer:
    """Hold at most one pending timer per channel."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Initialise an empty timer table."""

        self._loop = loop
        self._timers: dict[Channel, asyncio.TimerHandle] = {}

    def schedule(
        self, channel: Channel, callback: Callable[[], None], delay: float
    ) -> asyncio.TimerHandle:
        """Run ``callback`` after ``delay`` unless rescheduled or cancelled."""

        self.cancel(channel)
        loop = self._loop or asyncio.get_running_loop()

        def _fire() -> None:
            self._timers.pop(channel, None)
            callback()

        handle = loop.call_later(delay, _fire)
        self._timers[channel] = handle
        return handle

    def cancel(self, channel: Channel) -> bool:
        """Drop the pending timer for ``channel`` without firing it."""

        handle = self._timers.pop(channel, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_all(self) -> None:
        """Drop every pending timer."""

        for channel in list(self._timers):
            self.cancel(channel)

    def pending(self, channel: Channel) -> bool:
        """Return True while a timer is scheduled for ``channel``."""

        return channel in self._timers

    @property
    def channels(self) -> list[Channel]:
        """Return the channels with a scheduled timer."""

        return list(self._timers)


class CommandDispatcher:
    """Send command batches and debounce rapid edits per device channel."""

    def __init__(
        self,
        transport: CommandTransport,
        *,
        delay: float = DEBOUNCE_DELAY.total_seconds(),
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        """Bind the dispatcher to a transport and default debounce delay."""

        self._transport = transport
        self._delay = delay
        self._loop = loop
        self._debouncers: dict[str, ChannelDebouncer] = {}
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def delay(self) -> float:
        """Return the default debounce delay in seconds."""

        return self._delay

    async def async_send(
        self, device_id: str, commands: Sequence[CommandPayload]
    ) -> CommandResult:
        """Send ``commands`` as one request and report the outcome."""

        batch = [dict(command) for command in commands]
        _LOGGER.debug("Sending %s to %s", batch, device_id)
        try:
            await self._transport.async_send_commands(device_id, batch)
        except Exception as err:
            _LOGGER.warning("Command for %s failed: %s", device_id, err)
            return CommandResult.failed(str(err))
        return CommandResult.ok()

    def debouncer(self, device_id: str) -> ChannelDebouncer:
        """Return the timer table for ``device_id``."""

        debouncer = self._debouncers.get(device_id)
        if debouncer is None:
            debouncer = ChannelDebouncer(self._loop)
            self._debouncers[device_id] = debouncer
        return debouncer

    def schedule(
        self,
        device_id: str,
        channel: Channel,
        commands: Sequence[CommandPayload],
        *,
        delay: float | None = None,
        on_result: ResultCallback | None = None,
    ) -> None:
        """Send ``commands`` after a quiet period on ``(device_id, channel)``.

        A later call for the same pair replaces the payload and restarts the
        timer, so only the most recent gesture is ever transmitted.
        """

        batch = [dict(command) for command in commands]

        def _fire() -> None:
            self.spawn(self._async_send_and_report(device_id, batch, on_result))

        self.debouncer(device_id).schedule(
            channel, _fire, self._delay if delay is None else delay
        )

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        """Run ``coro`` as a tracked background task."""

        loop = self._loop or asyncio.get_running_loop()
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def send_soon(
        self,
        device_id: str,
        commands: Sequence[CommandPayload],
        on_result: ResultCallback | None = None,
    ) -> asyncio.Task[Any]:
        """Send ``commands`` immediately in the background."""

        batch = [dict(command) for command in commands]
        return self.spawn(self._async_send_and_report(device_id, batch, on_result))

    async def _async_send_and_report(
        self,
        device_id: str,
        commands: Sequence[CommandPayload],
        on_result: ResultCallback | None,
    ) -> CommandResult:
        result = await self.async_send(device_id, commands)
        if on_result is not None:
            on_result(result)
        return result

    def pending(self, device_id: str, channel: Channel) -> bool:
        """Return True while a debounced send is waiting for ``channel``."""

        debouncer = self._debouncers.get(device_id)
        return debouncer is not None and debouncer.pending(channel)

    def cancel(self, device_id: str, channel: Channel | None = None) -> None:
        """Drop pending sends for ``device_id`` without transmitting them."""

        debouncer = self._debouncers.get(device_id)
        if debouncer is None:
            return
        if channel is None:
            debouncer.cancel_all()
            self._debouncers.pop(device_id, None)
        else:
            debouncer.cancel(channel)

    def cancel_all(self) -> None:
        """Drop every pending debounced send."""

        for device_id in list(self._debouncers):
            self.cancel(device_id)

    async def async_wait_idle(self) -> None:
        """Wait until every in-flight send has resolved."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
