"""Dashboard orchestration: device controllers, polling and edit mode."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Coroutine, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from .api import DeviceListError
from .config import DashboardConfig
from .controller import DeviceController
from .dispatcher import CommandDispatcher, CommandTransport
from .models import Channel, Device, DeviceCategory, DomainState
from .settings import DeviceSettingsStore

_LOGGER = logging.getLogger(__name__)

GROUP_LIGHTS = "lights"
GROUP_SWITCHES = "switches"
GROUP_OTHERS = "others"

_GROUP_BY_CATEGORY = {
    DeviceCategory.LIGHT: GROUP_LIGHTS,
    DeviceCategory.SWITCH: GROUP_SWITCHES,
    DeviceCategory.OTHER: GROUP_OTHERS,
}


class DashboardApi(CommandTransport, Protocol):
    """Remote operations the dashboard depends on."""

    async def async_get_devices(self) -> list[Device]:
        """Return the current device list."""


class PollingTask:
    """Cancellable periodic callback driven by ``loop.call_later``."""

    def __init__(
        self,
        interval: float,
        callback: Callable[[], Awaitable[Any] | None],
        *,
        should_run: Callable[[], bool] | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        """Call ``callback`` every ``interval`` seconds once started.

        ``should_run`` is consulted on each tick; a false answer skips that
        tick without stopping the task.
        """

        self._interval = interval
        self._callback = callback
        self._should_run = should_run
        self._loop = loop
        self._handle: asyncio.TimerHandle | None = None
        self._running = False
        self._suspended = False
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        """Return True between ``start`` and ``stop``."""

        return self._running

    @property
    def suspended(self) -> bool:
        return self._suspended

    def start(self) -> None:
        """Begin ticking every ``interval`` seconds."""

        if self._running:
            return
        self._running = True
        if not self._suspended:
            self._schedule()

    def stop(self) -> None:
        """Stop ticking; in-flight callbacks are left to finish."""

        self._running = False
        self._cancel_handle()

    def suspend(self) -> None:
        """Pause ticking until ``resume`` is called."""

        self._suspended = True
        self._cancel_handle()

    def resume(self) -> None:
        """Restart ticking after ``suspend``."""

        if not self._suspended:
            return
        self._suspended = False
        if self._running:
            self._schedule()

    def _schedule(self) -> None:
        self._cancel_handle()
        loop = self._loop or asyncio.get_running_loop()
        self._handle = loop.call_later(self._interval, self._tick)

    def _cancel_handle(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _tick(self) -> None:
        self._handle = None
        if not self._running or self._suspended:
            return
        # Skip while hidden or while the previous tick is still running.
        if not self._tasks and (self._should_run is None or self._should_run()):
            result = self._callback()
            if isinstance(result, Coroutine):
                loop = self._loop or asyncio.get_running_loop()
                task = loop.create_task(result)
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
        self._schedule()

    async def async_wait_idle(self) -> None:
        """Wait for in-flight tick callbacks."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


@dataclass(frozen=True, slots=True)
class DeviceView:
    """Read-only projection of one device for rendering."""

    id: str
    name: str
    original_name: str
    category: DeviceCategory
    online: bool
    hidden: bool
    controls_enabled: bool
    state: DomainState
    pending: frozenset[Channel]
    notice: str | None


class Dashboard:
    """Own one controller per device and keep them refreshed."""

    def __init__(
        self,
        api: DashboardApi,
        settings: DeviceSettingsStore,
        config: DashboardConfig,
        *,
        dispatcher: CommandDispatcher | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        """Wire the dashboard to its API, overlay store and timings."""

        self._api = api
        self._settings = settings
        self._config = config
        self._loop = loop
        self._dispatcher = dispatcher or CommandDispatcher(
            api, delay=config.debounce_delay, loop=loop
        )
        self._poller = PollingTask(
            config.poll_interval,
            lambda: self.async_refresh(silent=True),
            should_run=lambda: self.visible,
            loop=loop,
        )
        self._controllers: dict[str, DeviceController] = {}
        self._order: list[str] = []
        self.error: str | None = None
        self.loading = False
        self.visible = True
        self._editing = False
        self._closed = False

    @property
    def settings(self) -> DeviceSettingsStore:
        return self._settings

    @property
    def poller(self) -> PollingTask:
        return self._poller

    @property
    def dispatcher(self) -> CommandDispatcher:
        return self._dispatcher

    @property
    def editing(self) -> bool:
        """Return True while arrangement mode is active."""

        return self._editing

    @property
    def controllers(self) -> dict[str, DeviceController]:
        """Return controllers keyed by device id in listing order."""

        return {device_id: self._controllers[device_id] for device_id in self._order}

    def controller(self, device_id: str) -> DeviceController:
        """Return the controller for ``device_id``."""

        return self._controllers[device_id]

    async def async_start(self) -> None:
        """Load overlays, fetch the devices and begin polling."""

        if not self._settings.loaded:
            self._settings.load()
        await self.async_refresh()
        self._poller.start()

    async def async_refresh(self, silent: bool = False) -> bool:
        """Fetch the listing and merge it into the controllers."""

        if not silent:
            self.loading = True
        self.error = None
        try:
            devices = await self._api.async_get_devices()
        except DeviceListError as err:
            if silent:
                _LOGGER.warning("Background refresh failed: %s", err)
            else:
                self.error = str(err)
            return False
        finally:
            if not silent:
                self.loading = False
        if self._closed:
            _LOGGER.debug("Discarding listing received after close")
            return False
        self._merge(devices)
        return True

    def _merge(self, devices: Sequence[Device]) -> None:
        seen: list[str] = []
        for device in devices:
            if device.id in seen:
                continue
            seen.append(device.id)
            controller = self._controllers.get(device.id)
            if controller is None:
                controller = DeviceController(
                    device,
                    self._dispatcher,
                    notice_duration=self._config.notice_duration,
                    loop=self._loop,
                )
                controller.set_editing(self._editing)
                self._controllers[device.id] = controller
            else:
                controller.apply_refresh(device)
        for device_id in set(self._controllers) - set(seen):
            _LOGGER.debug("Device %s disappeared from the listing", device_id)
            self._controllers.pop(device_id).close()
        self._order = seen

    def set_editing(self, editing: bool) -> None:
        """Enter or leave arrangement mode."""

        self._editing = editing
        for controller in self._controllers.values():
            controller.set_editing(editing)
        if editing:
            self._poller.suspend()
        else:
            self._poller.resume()

    def set_visible(self, visible: bool) -> None:
        """Record whether the dashboard is currently shown."""

        self.visible = visible

    def toggle_hidden(self, device_id: str) -> bool:
        """Flip the hidden overlay flag of ``device_id``."""

        return self._settings.toggle_hidden(device_id)

    def rename(self, device_id: str, name: str) -> bool:
        """Set a custom display name for ``device_id``."""

        return self._settings.set_custom_name(device_id, name)

    def _view(self, controller: DeviceController) -> DeviceView:
        device = controller.device
        return DeviceView(
            id=device.id,
            name=self._settings.get_name(device.id, device.name),
            original_name=device.name,
            category=device.device_category,
            online=device.online,
            hidden=self._settings.is_hidden(device.id),
            controls_enabled=controller.controls_enabled,
            state=controller.state,
            pending=controller.pending_channels,
            notice=controller.notice,
        )

    def views(self) -> list[DeviceView]:
        """Return every device, or nothing until the overlays are loaded."""

        if not self._settings.loaded:
            return []
        return [self._view(controller) for controller in self.controllers.values()]

    def visible_views(self) -> list[DeviceView]:
        """Return the devices to render; hidden ones show only while editing."""

        return [view for view in self.views() if self._editing or not view.hidden]

    def grouped_views(
        self, include_hidden: bool = False
    ) -> dict[str, list[DeviceView]]:
        """Return visible devices grouped into lights, switches and others."""

        groups: dict[str, list[DeviceView]] = {
            GROUP_LIGHTS: [],
            GROUP_SWITCHES: [],
            GROUP_OTHERS: [],
        }
        views = self.views() if include_hidden else self.visible_views()
        for view in views:
            groups[_GROUP_BY_CATEGORY[view.category]].append(view)
        return groups

    async def async_wait_idle(self) -> None:
        """Wait for background refreshes and command sends."""

        await self._poller.async_wait_idle()
        await self._dispatcher.async_wait_idle()

    def close(self) -> None:
        """Stop polling and abandon every queued gesture.

        A refresh still in flight completes without touching the closed
        dashboard.
        """

        self._closed = True
        self._poller.stop()
        for controller in self._controllers.values():
            controller.close()
        self._controllers.clear()
        self._order = []
