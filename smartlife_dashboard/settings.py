"""Persistence for per-device user overlays (custom name, hidden flag)."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Protocol

from .const import SETTINGS_STORE_KEY, SETTINGS_STORE_VERSION

_LOGGER = logging.getLogger(__name__)


class SettingsRepository(Protocol):
    """Backend that reads and writes the whole overlay blob."""

    def load(self) -> dict[str, Any]:
        """Return the stored mapping, or an empty one."""

    def save(self, data: Mapping[str, Any]) -> None:
        """Replace the stored mapping with ``data``."""


class JsonFileSettingsRepository:
    """Store the overlay blob as a versioned JSON envelope on disk."""

    def __init__(
        self,
        path: Path | str,
        key: str = SETTINGS_STORE_KEY,
        version: int = SETTINGS_STORE_VERSION,
    ) -> None:
        """Bind the repository to ``path``."""

        self.path = Path(path)
        self.key = key
        self.version = version

    def load(self) -> dict[str, Any]:
        """Read the envelope; a bare mapping from older files is accepted."""

        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as err:
            _LOGGER.error("Failed to parse settings %s: %s", self.path, err)
            return {}
        if isinstance(data, dict) and "data" in data and "version" in data:
            data = data["data"]
        if not isinstance(data, dict):
            _LOGGER.error("Ignoring settings %s with unexpected layout", self.path)
            return {}
        return data

    def save(self, data: Mapping[str, Any]) -> None:
        """Write ``data`` through a temporary file and swap it into place."""

        envelope = {"version": self.version, "key": self.key, "data": dict(data)}
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(envelope, handle)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


class MemorySettingsRepository:
    """Keep the overlay blob in memory."""

    def __init__(self, data: Mapping[str, Any] | None = None) -> None:
        """Start from a copy of ``data`` with no saves recorded."""

        self.data: dict[str, Any] = dict(data or {})
        self.saves = 0

    def load(self) -> dict[str, Any]:
        return dict(self.data)

    def save(self, data: Mapping[str, Any]) -> None:
        self.data = dict(data)
        self.saves += 1


@dataclass(frozen=True, slots=True)
class DeviceSettingsOverlay:
    """User-owned metadata layered over a device record."""

    id: str
    is_hidden: bool = False
    custom_name: str | None = None

    def to_storage(self) -> dict[str, Any]:
        """Return the persisted ``{id, isHidden, customName?}`` form."""

        payload: dict[str, Any] = {"id": self.id, "isHidden": self.is_hidden}
        if self.custom_name is not None:
            payload["customName"] = self.custom_name
        return payload

    @classmethod
    def from_storage(cls, device_id: str, payload: Any) -> DeviceSettingsOverlay:
        """Rebuild an overlay, tolerating missing or mistyped keys."""

        if not isinstance(payload, Mapping):
            return cls(id=device_id)
        name = payload.get("customName")
        return cls(
            id=device_id,
            is_hidden=payload.get("isHidden") is True,
            custom_name=name if isinstance(name, str) else None,
        )


class DeviceSettingsStore:
    """Key-value overlay keyed by device id, persisted on every mutation."""

    def __init__(self, repository: SettingsRepository) -> None:
        """Bind the store to ``repository``; nothing is read until ``load``."""

        self._repository = repository
        self._overlays: dict[str, DeviceSettingsOverlay] = {}
        self._loaded = False

    @property
    def loaded(self) -> bool:
        """Return True once ``load`` has completed."""

        return self._loaded

    def load(self) -> None:
        """Read every overlay from the repository."""

        raw = self._repository.load()
        self._overlays = {
            str(device_id): DeviceSettingsOverlay.from_storage(str(device_id), payload)
            for device_id, payload in raw.items()
        }
        self._loaded = True
        _LOGGER.debug("Loaded %d device overlays", len(self._overlays))

    def overlay(self, device_id: str) -> DeviceSettingsOverlay:
        """Return the overlay for ``device_id`` or the defaults."""

        return self._overlays.get(device_id) or DeviceSettingsOverlay(id=device_id)

    def overlays(self) -> dict[str, DeviceSettingsOverlay]:
        return dict(self._overlays)

    def set_hidden(self, device_id: str, hidden: bool) -> None:
        """Set the hidden flag for ``device_id``."""

        self._update(replace(self.overlay(device_id), is_hidden=hidden))

    def toggle_hidden(self, device_id: str) -> bool:
        """Flip the hidden flag and return the new value."""

        hidden = not self.overlay(device_id).is_hidden
        self.set_hidden(device_id, hidden)
        return hidden

    def set_custom_name(self, device_id: str, name: str) -> bool:
        """Store a trimmed custom name; blank names are ignored."""

        trimmed = name.strip()
        if not trimmed:
            return False
        self._update(replace(self.overlay(device_id), custom_name=trimmed))
        return True

    def get_name(self, device_id: str, fallback: str) -> str:
        """Return the custom name, or ``fallback`` when none is set."""

        return self.overlay(device_id).custom_name or fallback

    def is_hidden(self, device_id: str) -> bool:
        return self.overlay(device_id).is_hidden

    def _update(self, overlay: DeviceSettingsOverlay) -> None:
        if not self._loaded:
            raise RuntimeError("Device settings must be loaded before mutation")
        overlays = {**self._overlays, overlay.id: overlay}
        self._repository.save(
            {device_id: item.to_storage() for device_id, item in overlays.items()}
        )
        self._overlays = overlays
