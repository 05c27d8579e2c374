"""Runtime configuration for the SmartLife dashboard engine."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import voluptuous as vol

from .const import DEBOUNCE_DELAY, NOTICE_DURATION, POLL_INTERVAL, REQUEST_TIMEOUT

CONF_API_URL = "api_url"
CONF_PASSWORD = "password"
CONF_POLL_INTERVAL = "poll_interval"
CONF_DEBOUNCE_DELAY = "debounce_delay"
CONF_NOTICE_DURATION = "notice_duration"
CONF_REQUEST_TIMEOUT = "request_timeout"
CONF_SETTINGS_PATH = "settings_path"

DEFAULT_SETTINGS_PATH = "~/.config/smartlife/device_settings.json"

ENV_PREFIX = "SMARTLIFE_"


class ConfigurationError(ValueError):
    """Raised when required settings are missing or invalid."""


def _non_empty(value: Any) -> str:
    if value is None:
        raise vol.Invalid("must not be empty")
    text = vol.Coerce(str)(value).strip()
    if not text:
        raise vol.Invalid("must not be empty")
    return text


def _seconds(minimum: float) -> vol.All:
    return vol.All(vol.Coerce(float), vol.Range(min=minimum))


CONFIG_SCHEMA = vol.Schema(
    {
        vol.Required(CONF_API_URL): vol.All(_non_empty, vol.Url()),
        vol.Required(CONF_PASSWORD): _non_empty,
        vol.Optional(
            CONF_POLL_INTERVAL, default=POLL_INTERVAL.total_seconds()
        ): _seconds(0.1),
        vol.Optional(
            CONF_DEBOUNCE_DELAY, default=DEBOUNCE_DELAY.total_seconds()
        ): _seconds(0.0),
        vol.Optional(
            CONF_NOTICE_DURATION, default=NOTICE_DURATION.total_seconds()
        ): _seconds(0.0),
        vol.Optional(
            CONF_REQUEST_TIMEOUT, default=REQUEST_TIMEOUT.total_seconds()
        ): _seconds(0.1),
        vol.Optional(CONF_SETTINGS_PATH, default=DEFAULT_SETTINGS_PATH): _non_empty,
    },
    extra=vol.REMOVE_EXTRA,
)


@dataclass(frozen=True, slots=True)
class DashboardConfig:
    """Validated settings used by the API client and the dashboard."""

    api_url: str
    password: str
    poll_interval: float = POLL_INTERVAL.total_seconds()
    debounce_delay: float = DEBOUNCE_DELAY.total_seconds()
    notice_duration: float = NOTICE_DURATION.total_seconds()
    request_timeout: float = REQUEST_TIMEOUT.total_seconds()
    settings_path: Path = Path(DEFAULT_SETTINGS_PATH).expanduser()


def load_config(data: Mapping[str, Any]) -> DashboardConfig:
    """Validate ``data`` and return a ``DashboardConfig``."""

    try:
        validated = CONFIG_SCHEMA(dict(data))
    except vol.MultipleInvalid as err:
        raise ConfigurationError(_describe(err)) from err
    except vol.Invalid as err:
        raise ConfigurationError(str(err)) from err
    return DashboardConfig(
        api_url=validated[CONF_API_URL],
        password=validated[CONF_PASSWORD],
        poll_interval=validated[CONF_POLL_INTERVAL],
        debounce_delay=validated[CONF_DEBOUNCE_DELAY],
        notice_duration=validated[CONF_NOTICE_DURATION],
        request_timeout=validated[CONF_REQUEST_TIMEOUT],
        settings_path=Path(validated[CONF_SETTINGS_PATH]).expanduser(),
    )


def config_from_env(environ: Mapping[str, str]) -> DashboardConfig:
    """Build a configuration from ``SMARTLIFE_*`` environment variables."""

    data: dict[str, Any] = {}
    for key in CONFIG_SCHEMA.schema:
        name = f"{ENV_PREFIX}{str(key).upper()}"
        if name in environ:
            data[str(key)] = environ[name]
    return load_config(data)


def _describe(err: vol.MultipleInvalid) -> str:
    parts = []
    for error in err.errors:
        path = ".".join(str(item) for item in error.path) or "config"
        parts.append(f"{path}: {error.msg}")
    return "; ".join(parts)
