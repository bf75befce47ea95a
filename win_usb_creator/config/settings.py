"""Settings storage for default run configuration."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


SETTINGS_PATH = Path(
    os.environ.get(
        "WIN_USB_CREATOR_SETTINGS_PATH",
        Path.home() / ".config" / "win-usb-creator" / "settings.json",
    )
)

# Default values - use these constants instead of hardcoding values elsewhere
DEFAULT_VOLUME_NAME = "WINDOWSUSB"
DEFAULT_SPLIT_SIZE_MB = 3800
DEFAULT_MOUNT_ROOT = "/Volumes"
DEFAULT_SETTLE_SECONDS = 2.0

DEFAULT_SETTINGS: dict[str, Any] = {
    "volume_name": DEFAULT_VOLUME_NAME,
    "split_size_mb": DEFAULT_SPLIT_SIZE_MB,
    "mount_root": DEFAULT_MOUNT_ROOT,
    "settle_seconds": DEFAULT_SETTLE_SECONDS,
}


@dataclass
class SettingsStore:
    values: dict[str, Any] = field(default_factory=dict)


settings_store = SettingsStore()


def load_settings(path: Path | None = None) -> None:
    settings_store.values = dict(DEFAULT_SETTINGS)
    path = path or SETTINGS_PATH
    if not path.exists():
        return
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return
    if isinstance(data, dict):
        settings_store.values.update(data)


def get_setting(key: str, default: Any | None = None) -> Any:
    return settings_store.values.get(key, default)


def get_int(key: str, default: int) -> int:
    try:
        return int(get_setting(key, default))
    except (TypeError, ValueError):
        return default


def get_float(key: str, default: float) -> float:
    try:
        return float(get_setting(key, default))
    except (TypeError, ValueError):
        return default


load_settings()
