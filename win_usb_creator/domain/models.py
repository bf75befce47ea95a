"""Domain model for a single USB creation run.

Every value here is transient: built once during a run, handed explicitly to
the pipeline stages, and discarded when the process exits.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Optional

from win_usb_creator.config.settings import (
    DEFAULT_MOUNT_ROOT,
    DEFAULT_SETTLE_SECONDS,
    DEFAULT_SPLIT_SIZE_MB,
    DEFAULT_VOLUME_NAME,
)

# install.wim files strictly larger than this are split for FAT32.
FAT32_MAX_FILE_BYTES = 4 * 1024**3

# Attribute keys from `diskutil info` shown to the operator before erasing.
DISPLAY_ATTRIBUTES = (
    "Device Node",
    "Media Name",
    "Device / Media Name",
    "Total Size",
    "Disk Size",
    "Protocol",
    "Removable Media",
    "Device Location",
)

# Attribute keys shown when a disk is refused.
SAFETY_ATTRIBUTES = ("Removable Media", "Protocol", "Device Location")


# ==============================================================================
# Run Configuration
# ==============================================================================


@dataclass(frozen=True)
class RunConfig:
    """Parsed command line options layered over the settings file."""

    iso_path: Path
    disk_id: Optional[str] = None
    volume_name: str = DEFAULT_VOLUME_NAME
    split_size_mb: int = DEFAULT_SPLIT_SIZE_MB
    mount_root: Path = Path(DEFAULT_MOUNT_ROOT)
    settle_seconds: float = DEFAULT_SETTLE_SECONDS

    @property
    def target_volume_path(self) -> Path:
        """Where the freshly erased volume is expected to mount."""
        return self.mount_root / self.volume_name


# ==============================================================================
# Disk Domain
# ==============================================================================


@dataclass(frozen=True)
class DiskDescriptor:
    """A candidate target disk as reported by the disk service."""

    device_path: str  # e.g., "/dev/disk4"
    is_removable: bool
    is_internal: bool
    is_boot_disk: bool
    raw_info_text: str = ""
    attributes: Dict[str, str] = field(default_factory=dict)

    @property
    def name(self) -> str:
        """Disk identifier without the /dev/ prefix (e.g., disk4)."""
        return Path(self.device_path).name

    def attribute_lines(self, keys=DISPLAY_ATTRIBUTES) -> list[str]:
        """Return ``Key: Value`` lines for the attributes that are present."""
        return [
            f"{key}: {self.attributes[key]}" for key in keys if key in self.attributes
        ]


# ==============================================================================
# Image Domain
# ==============================================================================


@dataclass(frozen=True)
class MountPoint:
    """Where the source ISO is attached."""

    source_image_path: Path
    mount_path: Path
    pre_existing: bool = False


class PayloadKind(Enum):
    """Format of the Windows installation image."""

    WIM = "wim"
    ESD = "esd"


@dataclass(frozen=True)
class InstallPayload:
    """The installation image found under ``sources/``."""

    path: Path
    size_bytes: int
    kind: PayloadKind

    @property
    def is_large(self) -> bool:
        """True when the file cannot be stored on FAT32 as-is."""
        return self.size_bytes > FAT32_MAX_FILE_BYTES

    @property
    def needs_split(self) -> bool:
        # install.esd is never split
        return self.kind is PayloadKind.WIM and self.is_large

    @property
    def size_gb(self) -> float:
        return self.size_bytes / (1024**3)


# ==============================================================================
# Step Results
# ==============================================================================


@dataclass(frozen=True)
class StepResult:
    """Outcome of a best-effort step that must not abort the run."""

    name: str
    ok: bool
    error: Optional[str] = None

    @classmethod
    def success(cls, name: str) -> StepResult:
        return cls(name=name, ok=True)

    @classmethod
    def failure(cls, name: str, error: str) -> StepResult:
        return cls(name=name, ok=False, error=error)
