"""Tests for the dashboard HTTP API client."""

import json
import logging

import httpx
import pytest

from smartlife_dashboard.api import (
    AuthenticationError,
    CommandError,
    DashboardApiClient,
    DeviceListError,
)
from smartlife_dashboard.config import DashboardConfig

CONFIG = DashboardConfig(api_url="http://dashboard.local/", password="secret")


def _client(handler) -> tuple[DashboardApiClient, httpx.AsyncClient]:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return DashboardApiClient(CONFIG, client=http), http


@pytest.mark.asyncio
async def test_login_posts_password_and_keeps_cookie() -> None:
    """A successful login stores the session cookie in the client jar."""

    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={"success": True},
            headers={"set-cookie": "auth_token=abc; Path=/"},
        )

    api, http = _client(handler)
    await api.async_login()

    assert str(seen[0].url) == "http://dashboard.local/api/auth/login"
    assert json.loads(seen[0].content) == {"password": "secret"}
    assert http.cookies.get("auth_token") == "abc"
    await http.aclose()


@pytest.mark.asyncio
async def test_login_rejected() -> None:
    """Wrong passwords raise an authentication error with the gate message."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"success": False, "msg": "Invalid password"})

    api, http = _client(handler)
    with pytest.raises(AuthenticationError, match="Invalid password"):
        await api.async_login("wrong")
    await http.aclose()


@pytest.mark.asyncio
async def test_get_devices_parses_listing() -> None:
    """Device records are validated into models; unknown keys are ignored."""

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "GET"
        assert request.url.path == "/api/devices"
        return httpx.Response(
            200,
            json={
                "success": True,
                "result": [
                    {
                        "id": "light-1",
                        "name": "Desk Lamp",
                        "online": True,
                        "category": "dj",
                        "product_name": "Smart Bulb",
                        "time_zone": "-03:00",
                        "status": [
                            {"code": "switch_led", "value": True},
                            {"code": "bright_value_v2", "value": 177},
                        ],
                    }
                ],
            },
        )

    api, http = _client(handler)
    devices = await api.async_get_devices()

    assert len(devices) == 1
    assert devices[0].id == "light-1"
    assert devices[0].is_light
    assert devices[0].product_name == "Smart Bulb"
    assert devices[0].status_value("bright_value_v2") == 177
    assert devices[0].status_value("temp_value_v2") is None
    await http.aclose()


@pytest.mark.asyncio
async def test_get_devices_reports_envelope_errors() -> None:
    """A non-success envelope raises with the server message."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"success": False, "msg": "sign invalid"})

    api, http = _client(handler)
    with pytest.raises(DeviceListError, match="sign invalid"):
        await api.async_get_devices()
    await http.aclose()


@pytest.mark.asyncio
async def test_get_devices_unauthorized_is_a_listing_error() -> None:
    """An expired session surfaces as a listing failure."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": "Unauthorized"})

    api, http = _client(handler)
    with pytest.raises(DeviceListError) as err:
        await api.async_get_devices()

    assert isinstance(err.value, AuthenticationError)
    await http.aclose()


@pytest.mark.asyncio
async def test_get_devices_skips_records_without_id(caplog) -> None:
    """A record without an id is logged and dropped; the rest still load."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "success": True,
                "result": [{"name": "x"}, {"id": "plug-1", "category": "kg"}],
            },
        )

    api, http = _client(handler)
    with caplog.at_level(logging.WARNING):
        devices = await api.async_get_devices()

    assert [device.id for device in devices] == ["plug-1"]
    assert "Skipping invalid device record" in caplog.text
    await http.aclose()


@pytest.mark.asyncio
async def test_get_devices_tolerates_odd_status_shapes() -> None:
    """Unexpected status or name shapes degrade to defaults per device."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "success": True,
                "result": [
                    {
                        "id": "light-1",
                        "name": "Desk Lamp",
                        "online": True,
                        "category": "dj",
                        "status": [{"code": "switch_led", "value": True}],
                    },
                    {"id": "odd", "name": None, "online": None, "status": None},
                    {
                        "id": "partial",
                        "category": "dj",
                        "status": [
                            {"value": 5},
                            "switch_led",
                            {"code": 7, "value": 1},
                            {"code": "bright_value_v2", "value": 177},
                        ],
                    },
                ],
            },
        )

    api, http = _client(handler)
    devices = await api.async_get_devices()

    assert [device.id for device in devices] == ["light-1", "odd", "partial"]
    assert devices[1].name == ""
    assert not devices[1].online
    assert devices[1].status == []
    assert [item.code for item in devices[2].status] == ["bright_value_v2"]
    assert devices[2].status_value("bright_value_v2") == 177
    await http.aclose()


@pytest.mark.asyncio
async def test_send_commands_posts_batch() -> None:
    """Command batches are posted in order under the device id."""

    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"success": True, "result": True})

    api, http = _client(handler)
    await api.async_send_commands(
        "light-1",
        [
            {"code": "switch_led", "value": True},
            {"code": "bright_value_v2", "value": 177},
        ],
    )

    assert bodies == [
        {
            "deviceId": "light-1",
            "commands": [
                {"code": "switch_led", "value": True},
                {"code": "bright_value_v2", "value": 177},
            ],
        }
    ]
    await http.aclose()


@pytest.mark.asyncio
async def test_send_commands_failure_raises_command_error() -> None:
    """Rejected commands raise with the remote message."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": False, "msg": "device is offline"})

    api, http = _client(handler)
    with pytest.raises(CommandError, match="device is offline"):
        await api.async_send_commands("light-1", [{"code": "switch_led", "value": True}])
    await http.aclose()


@pytest.mark.asyncio
async def test_send_commands_transport_error() -> None:
    """Network failures are wrapped in a command error."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    api, http = _client(handler)
    with pytest.raises(CommandError, match="connection refused"):
        await api.async_send_commands("light-1", [])
    await http.aclose()


@pytest.mark.asyncio
async def test_close_leaves_injected_client_open() -> None:
    """Only clients created by the wrapper are closed by it."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": True, "result": []})

    api, http = _client(handler)
    await api.async_close()

    assert not http.is_closed
    assert await api.async_get_devices() == []
    await http.aclose()
