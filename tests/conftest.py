"""Pytest configuration for the SmartLife dashboard engine tests."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping, Sequence
from typing import Any

import pytest

from smartlife_dashboard.api import CommandError
from smartlife_dashboard.models import Device


class RecordingTransport:
    """Command transport that records batches and can fail or stall."""

    def __init__(self) -> None:
        """Start with no recorded calls and successful sends."""

        self.calls: list[tuple[str, list[dict[str, Any]]]] = []
        self.error: str | None = None
        self.gate: asyncio.Event | None = None

    async def async_send_commands(
        self, device_id: str, commands: Sequence[Mapping[str, Any]]
    ) -> None:
        """Record the batch, wait on the gate and raise when configured."""

        self.calls.append((device_id, [dict(command) for command in commands]))
        if self.gate is not None:
            await self.gate.wait()
        else:
            await asyncio.sleep(0)
        if self.error is not None:
            raise CommandError(self.error)


def build_device(
    device_id: str = "light-1",
    *,
    name: str = "Desk Lamp",
    category: str = "dj",
    online: bool = True,
    status: Mapping[str, Any] | None = None,
) -> Device:
    """Return a device record with ``status`` as its status vector."""

    if status is None:
        status = {
            "switch_led": True,
            "work_mode": "white",
            "bright_value_v2": 1000,
            "temp_value_v2": 500,
            "colour_data_v2": '{"h":0,"s":1000,"v":1000}',
        }
    return Device.model_validate(
        {
            "id": device_id,
            "name": name,
            "online": online,
            "category": category,
            "status": [{"code": code, "value": value} for code, value in status.items()],
        }
    )


@pytest.fixture
def transport() -> RecordingTransport:
    """Return a fresh recording transport."""

    return RecordingTransport()


@pytest.fixture
def make_device() -> Callable[..., Device]:
    """Return the device record factory."""

    return build_device


def pytest_configure(config: pytest.Config) -> None:
    """Register markers used throughout the test suite."""

    config.addinivalue_line(
        "markers", "asyncio: mark coroutine tests to execute via asyncio loop"
    )


def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:
    """Execute coroutine tests within a dedicated event loop."""

    test_function = pyfuncitem.obj
    if not asyncio.iscoroutinefunction(test_function):
        return None

    kwargs = {
        name: pyfuncitem.funcargs[name] for name in pyfuncitem._fixtureinfo.argnames
    }
    loop = asyncio.new_event_loop()
    try:
        asyncio.set_event_loop(loop)
        loop.run_until_complete(test_function(**kwargs))
    finally:
        asyncio.set_event_loop(None)
        loop.close()
    return True
