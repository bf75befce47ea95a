"""Custom exceptions for USB creation.

This module defines a hierarchy of exceptions so every failure of the
pipeline can be reported with a specific, human-readable message and mapped
to an exit status in one place (``win_usb_creator.main``).

Exception Hierarchy:
    UsbCreatorError (base)
        ├── UsageError
        ├── ValidationError
        │   ├── IsoValidationError
        │   ├── DiskSafetyError
        │   │   ├── DiskNotFoundError
        │   │   ├── NotRemovableError
        │   │   ├── InternalDiskError
        │   │   └── BootDiskError
        │   ├── PayloadNotFoundError
        │   └── PayloadReadError
        ├── UserAbortedError
        └── ExternalToolError
            ├── ToolNotFoundError
            ├── CommandFailedError
            ├── EraseError
            ├── MountError
            ├── CopyError
            └── SplitError

Usage:
    from win_usb_creator.storage.exceptions import BootDiskError

    if descriptor.is_boot_disk:
        raise BootDiskError(descriptor.device_path)
"""

from __future__ import annotations

from typing import Sequence


class UsbCreatorError(Exception):
    """Base exception for all USB creation failures."""


class UsageError(UsbCreatorError):
    """Invalid command line arguments."""


class ValidationError(UsbCreatorError):
    """Base exception for input validation failures."""


class IsoValidationError(ValidationError):
    """The input file does not look like an ISO9660 image."""

    def __init__(self, iso_path: str, reason: str):
        self.iso_path = iso_path
        self.reason = reason
        super().__init__(f"{reason}: {iso_path}")


class DiskSafetyError(ValidationError):
    """Base exception for target disks refused by the safety gate."""

    def __init__(self, device_path: str, message: str):
        self.device_path = device_path
        super().__init__(message)


class DiskNotFoundError(DiskSafetyError):
    """Device node does not exist."""

    def __init__(self, device_path: str):
        super().__init__(device_path, f"{device_path} does not exist.")


class NotRemovableError(DiskSafetyError):
    """Disk reports neither removable media, USB transport nor external location."""

    def __init__(self, device_path: str):
        super().__init__(
            device_path,
            f"Disk {device_path} does not appear to be a removable USB drive. "
            "Refusing to proceed for safety.",
        )


class InternalDiskError(DiskSafetyError):
    """Disk reports an internal location or an internal bus."""

    def __init__(self, device_path: str):
        super().__init__(
            device_path,
            f"Disk {device_path} appears to be an internal disk. "
            "Refusing to proceed for safety.",
        )


class BootDiskError(DiskSafetyError):
    """Disk hosts the running operating system."""

    def __init__(self, device_path: str):
        super().__init__(
            device_path,
            f"Disk {device_path} is your boot disk! Refusing to proceed for safety.",
        )


class UserAbortedError(UsbCreatorError):
    """The operator declined a confirmation prompt."""

    def __init__(self, message: str = "Aborted by user."):
        super().__init__(message)


class ExternalToolError(UsbCreatorError):
    """Base exception for failures of external utilities."""


class ToolNotFoundError(ExternalToolError):
    """A required command is not installed."""

    def __init__(self, tool: str, hint: str = ""):
        self.tool = tool
        self.hint = hint
        msg = f"Required tool not found: {tool}"
        if hint:
            msg += f". {hint}"
        super().__init__(msg)


class CommandFailedError(ExternalToolError):
    """An external command exited with a non-zero status."""

    def __init__(self, command: Sequence[str], returncode: int, output: str = ""):
        self.command = list(command)
        self.returncode = returncode
        self.output = output
        message = f"Command failed ({' '.join(self.command)}) with code {returncode}"
        if output:
            message += f": {output}"
        super().__init__(message)


class EraseError(ExternalToolError):
    """Partitioning or formatting the target disk failed."""

    def __init__(self, message: str, device: str | None = None):
        self.device = device
        super().__init__(message)


class MountError(ExternalToolError):
    """Mounting, resolving or remounting a volume failed."""

    def __init__(self, message: str, path: str | None = None):
        self.path = path
        super().__init__(message)


class CopyError(ExternalToolError):
    """Copying the image tree to the target volume failed."""

    def __init__(self, message: str, source: str | None = None, destination: str | None = None):
        self.source = source
        self.destination = destination
        super().__init__(message)


class SplitError(ExternalToolError):
    """Splitting install.wim into .swm parts failed."""

    def __init__(self, message: str, source: str | None = None):
        self.source = source
        super().__init__(message)


class PayloadNotFoundError(ValidationError):
    """Neither install.wim nor install.esd exists in the mounted image."""

    def __init__(self, sources_dir: str):
        self.sources_dir = sources_dir
        super().__init__(
            f"Neither install.wim nor install.esd found in {sources_dir}/"
        )


class PayloadReadError(ValidationError):
    """The installation image exists but its size cannot be read."""

    def __init__(self, payload_path: str, reason: str):
        self.payload_path = payload_path
        self.reason = reason
        super().__init__(f"Cannot read {payload_path}: {reason}")
