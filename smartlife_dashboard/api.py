"""HTTP client for the dashboard's device listing and control endpoints."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

import httpx
from pydantic import ValidationError

from .config import DashboardConfig
from .models import Device

_LOGGER = logging.getLogger(__name__)

LOGIN_PATH = "/api/auth/login"
DEVICES_PATH = "/api/devices"
CONTROL_PATH = "/api/control"


class DeviceListError(RuntimeError):
    """Raised when the device listing cannot be retrieved."""


class AuthenticationError(DeviceListError):
    """Raised when the session is missing or was rejected by the gate."""


class CommandError(RuntimeError):
    """Raised when a command batch is rejected or cannot be delivered."""


def _envelope_message(payload: Any, default: str) -> str:
    if isinstance(payload, Mapping):
        msg = payload.get("msg")
        if isinstance(msg, str) and msg:
            return msg
    return default


def _decode_json(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return None


class DashboardApiClient:
    """Thin async wrapper over the dashboard HTTP API."""

    def __init__(
        self,
        config: DashboardConfig,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Bind the client to ``config``; a private httpx client is created lazily."""

        self._config = config
        self._client = client
        self._owns_client = client is None

    def _require_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._config.api_url,
                timeout=self._config.request_timeout,
            )
        return self._client

    def _url(self, path: str) -> str:
        return f"{self._config.api_url.rstrip('/')}{path}"

    async def async_login(self, password: str | None = None) -> None:
        """Authenticate against the gate; the session cookie stays in the jar."""

        client = self._require_client()
        secret = self._config.password if password is None else password
        try:
            response = await client.post(
                self._url(LOGIN_PATH), json={"password": secret}
            )
        except httpx.HTTPError as err:
            raise AuthenticationError(f"Login request failed: {err}") from err
        payload = _decode_json(response)
        if response.status_code == httpx.codes.UNAUTHORIZED:
            raise AuthenticationError(_envelope_message(payload, "Unauthorized"))
        if response.is_error or not (
            isinstance(payload, Mapping) and payload.get("success")
        ):
            raise AuthenticationError(_envelope_message(payload, "Login failed"))
        _LOGGER.debug("Authenticated against %s", self._config.api_url)

    async def async_get_devices(self) -> list[Device]:
        """Return the current device list with status vectors."""

        client = self._require_client()
        try:
            response = await client.get(self._url(DEVICES_PATH))
        except httpx.HTTPError as err:
            raise DeviceListError(f"Device listing failed: {err}") from err
        payload = _decode_json(response)
        if response.status_code == httpx.codes.UNAUTHORIZED:
            raise AuthenticationError(_envelope_message(payload, "Unauthorized"))
        if not isinstance(payload, Mapping) or not payload.get("success"):
            raise DeviceListError(
                _envelope_message(payload, "Failed to fetch devices")
            )
        result = payload.get("result") or []
        if not isinstance(result, list):
            raise DeviceListError("Device listing returned an invalid payload")
        devices: list[Device] = []
        for item in result:
            try:
                devices.append(Device.model_validate(item))
            except ValidationError as err:
                _LOGGER.warning("Skipping invalid device record: %s", err)
        _LOGGER.debug("Fetched %d devices", len(devices))
        return devices

    async def async_send_commands(
        self, device_id: str, commands: Sequence[Mapping[str, Any]]
    ) -> None:
        """Submit one ordered command batch for ``device_id``."""

        client = self._require_client()
        body = {
            "deviceId": device_id,
            "commands": [dict(command) for command in commands],
        }
        try:
            response = await client.post(self._url(CONTROL_PATH), json=body)
        except httpx.HTTPError as err:
            raise CommandError(f"Command request failed: {err}") from err
        payload = _decode_json(response)
        if response.status_code == httpx.codes.UNAUTHORIZED:
            raise CommandError(_envelope_message(payload, "Unauthorized"))
        if not isinstance(payload, Mapping) or not payload.get("success"):
            raise CommandError(_envelope_message(payload, "Failed to send command"))

    async def async_close(self) -> None:
        """Close the underlying httpx client when this wrapper created it."""

        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
