"""Tests for the dashboard orchestrator and its polling task."""

import asyncio
import logging

import pytest

from smartlife_dashboard.api import DeviceListError
from smartlife_dashboard.config import DashboardConfig
from smartlife_dashboard.dashboard import Dashboard, PollingTask
from smartlife_dashboard.models import Channel, Device, DeviceCategory
from smartlife_dashboard.settings import DeviceSettingsStore, MemorySettingsRepository


class FakeApi:
    """Dashboard API double serving a mutable device list."""

    def __init__(self, devices) -> None:
        """Serve ``devices`` until told otherwise."""

        self.devices = list(devices)
        self.listing_error: str | None = None
        self.listings = 0
        self.calls: list[tuple[str, list[dict]]] = []
        self.gate: asyncio.Event | None = None

    async def async_get_devices(self):
        """Return the configured devices or raise the configured error."""

        self.listings += 1
        if self.gate is not None:
            await self.gate.wait()
        else:
            await asyncio.sleep(0)
        if self.listing_error is not None:
            raise DeviceListError(self.listing_error)
        return list(self.devices)

    async def async_send_commands(self, device_id, commands) -> None:
        """Record every command batch."""

        self.calls.append((device_id, [dict(command) for command in commands]))


CONFIG = DashboardConfig(
    api_url="http://dashboard.local",
    password="secret",
    poll_interval=0.02,
    debounce_delay=0.01,
    notice_duration=0.05,
)


def build_device(device_id, *, name, category="dj", online=True, status=None) -> Device:
    if status is None:
        status = {"switch_led": True, "work_mode": "white", "bright_value_v2": 1000}
    return Device.model_validate(
        {
            "id": device_id,
            "name": name,
            "online": online,
            "category": category,
            "status": [{"code": code, "value": value} for code, value in status.items()],
        }
    )


def _devices():
    return [
        build_device("light-1", name="Desk Lamp"),
        build_device("plug-1", name="Heater", category="kg", status={"switch_1": False}),
        build_device("sensor-1", name="Door", category="mcs", status={}),
    ]


def _dashboard(api, settings=None) -> Dashboard:
    store = settings or DeviceSettingsStore(MemorySettingsRepository())
    return Dashboard(api, store, CONFIG)


@pytest.mark.asyncio
async def test_start_loads_settings_refreshes_and_polls() -> None:
    """Starting builds one controller per device and begins polling."""

    api = FakeApi(_devices())
    dashboard = _dashboard(api)

    await dashboard.async_start()

    assert dashboard.settings.loaded
    assert dashboard.poller.running
    assert list(dashboard.controllers) == ["light-1", "plug-1", "sensor-1"]
    groups = dashboard.grouped_views()
    assert [view.id for view in groups["lights"]] == ["light-1"]
    assert [view.id for view in groups["switches"]] == ["plug-1"]
    assert [view.id for view in groups["others"]] == ["sensor-1"]
    assert groups["others"][0].category is DeviceCategory.OTHER

    await asyncio.sleep(0.07)
    assert api.listings > 1
    dashboard.close()


@pytest.mark.asyncio
async def test_views_empty_until_settings_loaded() -> None:
    """Nothing renders before the overlays are available."""

    dashboard = _dashboard(FakeApi(_devices()))

    assert await dashboard.async_refresh()

    assert dashboard.views() == []
    dashboard.settings.load()
    assert len(dashboard.views()) == 3


@pytest.mark.asyncio
async def test_hidden_devices_show_only_while_editing() -> None:
    """Hidden devices disappear from the visible list outside edit mode."""

    dashboard = _dashboard(FakeApi(_devices()))
    await dashboard.async_start()
    dashboard.poller.stop()

    assert dashboard.toggle_hidden("plug-1")
    assert dashboard.rename("light-1", " Reading ")

    assert [view.id for view in dashboard.visible_views()] == ["light-1", "sensor-1"]
    assert dashboard.visible_views()[0].name == "Reading"
    assert dashboard.visible_views()[0].original_name == "Desk Lamp"

    dashboard.set_editing(True)
    ids = [view.id for view in dashboard.visible_views()]
    assert ids == ["light-1", "plug-1", "sensor-1"]
    assert dashboard.views()[1].hidden


@pytest.mark.asyncio
async def test_refresh_failure_keeps_view_and_sets_error() -> None:
    """A failed foreground refresh reports the error and keeps devices."""

    api = FakeApi(_devices())
    dashboard = _dashboard(api)
    dashboard.settings.load()
    await dashboard.async_refresh()

    api.listing_error = "Failed to fetch devices"
    assert not await dashboard.async_refresh()

    assert dashboard.error == "Failed to fetch devices"
    assert not dashboard.loading
    assert len(dashboard.views()) == 3


@pytest.mark.asyncio
async def test_silent_refresh_failure_is_only_logged(caplog) -> None:
    """Background refresh failures never surface as an error banner."""

    api = FakeApi(_devices())
    api.listing_error = "Unauthorized"
    dashboard = _dashboard(api)

    with caplog.at_level(logging.WARNING):
        assert not await dashboard.async_refresh(silent=True)

    assert dashboard.error is None
    assert "Background refresh failed" in caplog.text


@pytest.mark.asyncio
async def test_refresh_merges_and_removes_devices() -> None:
    """Refresh updates existing controllers and drops vanished devices."""

    api = FakeApi(_devices())
    dashboard = _dashboard(api)
    dashboard.settings.load()
    await dashboard.async_refresh()
    lamp = dashboard.controller("light-1")

    lamp.set_brightness(820)
    api.devices = [
        build_device(
            "light-1",
            name="Desk Lamp",
            online=True,
            status={"switch_led": True, "bright_value_v2": 177, "temp_value_v2": 100},
        )
    ]
    await dashboard.async_refresh()

    assert list(dashboard.controllers) == ["light-1"]
    assert dashboard.controller("light-1") is lamp
    assert lamp.state.brightness == 820
    assert lamp.state.color_temp == 100
    assert Channel.BRIGHTNESS in dashboard.views()[0].pending
    with pytest.raises(KeyError):
        dashboard.controller("plug-1")

    await asyncio.sleep(0.05)
    await dashboard.async_wait_idle()
    dashboard.close()


@pytest.mark.asyncio
async def test_editing_suspends_polling_and_controls() -> None:
    """Edit mode pauses polling and disables every controller."""

    api = FakeApi(_devices())
    dashboard = _dashboard(api)
    await dashboard.async_start()

    dashboard.set_editing(True)
    listings = api.listings
    await asyncio.sleep(0.07)

    assert dashboard.poller.suspended
    assert api.listings == listings
    assert not dashboard.controller("light-1").set_brightness(100)
    assert not dashboard.views()[0].controls_enabled

    dashboard.set_editing(False)
    await asyncio.sleep(0.07)

    assert api.listings > listings
    assert dashboard.controller("light-1").controls_enabled
    dashboard.close()


@pytest.mark.asyncio
async def test_polling_skips_ticks_while_hidden() -> None:
    """No refresh happens while the dashboard is not visible."""

    api = FakeApi(_devices())
    dashboard = _dashboard(api)
    await dashboard.async_start()

    dashboard.set_visible(False)
    listings = api.listings
    await asyncio.sleep(0.07)
    assert api.listings == listings

    dashboard.set_visible(True)
    await asyncio.sleep(0.07)
    assert api.listings > listings
    dashboard.close()


@pytest.mark.asyncio
async def test_close_stops_polling_and_drops_gestures() -> None:
    """Closing the dashboard sends nothing that was still queued."""

    api = FakeApi(_devices())
    dashboard = _dashboard(api)
    await dashboard.async_start()

    dashboard.controller("light-1").set_brightness(300)
    dashboard.close()
    await asyncio.sleep(0.05)

    assert not dashboard.poller.running
    assert api.calls == []
    assert dashboard.views() == []


@pytest.mark.asyncio
async def test_refresh_finishing_after_close_is_discarded() -> None:
    """A listing that arrives after close never rebuilds controllers."""

    api = FakeApi(_devices())
    api.gate = asyncio.Event()
    dashboard = _dashboard(api)
    dashboard.settings.load()

    refresh = asyncio.ensure_future(dashboard.async_refresh(silent=True))
    await asyncio.sleep(0.01)
    assert api.listings == 1

    dashboard.close()
    api.gate.set()

    assert not await refresh
    assert dashboard.controllers == {}
    assert dashboard.views() == []


@pytest.mark.asyncio
async def test_polling_task_lifecycle() -> None:
    """The polling task ticks until stopped and honours suspend."""

    ticks: list[int] = []
    task = PollingTask(0.01, lambda: ticks.append(1))

    task.start()
    await asyncio.sleep(0.05)
    task.suspend()
    count = len(ticks)
    await asyncio.sleep(0.05)

    assert count > 0
    assert len(ticks) == count

    task.resume()
    await asyncio.sleep(0.05)
    task.stop()
    stopped = len(ticks)
    await asyncio.sleep(0.05)

    assert stopped > count
    assert len(ticks) == stopped
    assert not task.running
