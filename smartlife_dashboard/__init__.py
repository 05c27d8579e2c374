"""Device state and command reconciliation engine for a SmartLife dashboard."""

from __future__ import annotations

from .api import AuthenticationError, CommandError, DashboardApiClient, DeviceListError
from .config import ConfigurationError, DashboardConfig, config_from_env, load_config
from .controller import DeviceController
from .dashboard import Dashboard, DeviceView, PollingTask
from .dispatcher import CommandDispatcher, CommandResult
from .models import (
    Channel,
    ColourData,
    Device,
    DeviceCategory,
    DomainState,
    PendingEdit,
    WorkMode,
)
from .settings import (
    DeviceSettingsOverlay,
    DeviceSettingsStore,
    JsonFileSettingsRepository,
    MemorySettingsRepository,
)

__version__ = "0.1.0"

__all__ = [
    "AuthenticationError",
    "Channel",
    "ColourData",
    "CommandDispatcher",
    "CommandError",
    "CommandResult",
    "ConfigurationError",
    "Dashboard",
    "DashboardApiClient",
    "DashboardConfig",
    "Device",
    "DeviceCategory",
    "DeviceController",
    "DeviceListError",
    "DeviceSettingsOverlay",
    "DeviceSettingsStore",
    "DeviceView",
    "DomainState",
    "JsonFileSettingsRepository",
    "MemorySettingsRepository",
    "PendingEdit",
    "PollingTask",
    "WorkMode",
    "config_from_env",
    "load_config",
]
