"""Safety validation for the target disk.

This module decides whether a disk may be erased:
- The identifier must name a whole disk whose device node exists
- The disk must report removable media, a USB transport or an external location
- The disk must NOT report an internal location or an internal bus
- The disk must NOT host the running operating system

All validation functions raise specific exceptions from the exceptions module
rather than returning boolean values, making error handling more explicit.

The removable/internal classification reads free-text ``diskutil info``
attributes and is a best-effort heuristic: wording differs across macOS
releases (``Removable Media: Yes`` on older systems, ``Removable`` on newer
ones) and some hardware reports surprising combinations, such as built-in
SD card readers that are removable but internal. It is kept behind
:class:`DiskClassifier` so the rules live in one place.

Example:
    from win_usb_creator.storage.validation import validate_target_disk

    try:
        validate_target_disk(descriptor)
        # Safe to ask for confirmation
    except DiskSafetyError:
        # Refuse
        pass
"""

from __future__ import annotations

import re
from typing import Dict, Optional

from win_usb_creator.domain.models import DiskDescriptor
from win_usb_creator.storage.disks import DiskService, parse_disk_info
from win_usb_creator.storage.exceptions import (
    BootDiskError,
    DiskNotFoundError,
    InternalDiskError,
    NotRemovableError,
    ValidationError,
)

_DISK_ID_PATTERN = re.compile(r"^disk\d+$")


class DiskClassifier:
    """Heuristic removable/internal classification of ``diskutil info`` attributes."""

    removable_values = ("yes", "removable")
    external_transports = ("usb",)
    external_locations = ("external",)
    internal_transports = ("sata", "pci")
    internal_locations = ("internal",)

    @staticmethod
    def _value(attributes: Dict[str, str], key: str) -> str:
        return attributes.get(key, "").lower()

    def is_removable(self, attributes: Dict[str, str]) -> bool:
        """Any single removable/external signal is enough."""
        removable = self._value(attributes, "Removable Media")
        protocol = self._value(attributes, "Protocol")
        location = self._value(attributes, "Device Location")
        return (
            any(value in removable for value in self.removable_values)
            or any(value in protocol for value in self.external_transports)
            or any(value in location for value in self.external_locations)
        )

    def is_internal(self, attributes: Dict[str, str]) -> bool:
        protocol = self._value(attributes, "Protocol")
        location = self._value(attributes, "Device Location")
        return any(value in location for value in self.internal_locations) or any(
            value in protocol for value in self.internal_transports
        )


def normalize_disk_id(disk_id: Optional[str]) -> str:
    """Return the ``/dev/diskN`` node for ``diskN`` or ``/dev/diskN``.

    Raises:
        ValidationError: If the identifier is empty or not a whole disk
    """
    disk_id = (disk_id or "").strip()
    if not disk_id:
        raise ValidationError("No disk identifier provided.")
    name = disk_id[len("/dev/"):] if disk_id.startswith("/dev/") else disk_id
    if not _DISK_ID_PATTERN.match(name):
        raise ValidationError(
            f"Invalid disk identifier: {disk_id} (expected a whole disk such as disk4)"
        )
    return f"/dev/{name}"


def validate_device_exists(disk_service: DiskService, device_path: str) -> None:
    """Raise DiskNotFoundError if the device node is missing."""
    if not disk_service.device_exists(device_path):
        raise DiskNotFoundError(device_path)


def describe_disk(
    disk_service: DiskService,
    device_path: str,
    classifier: Optional[DiskClassifier] = None,
) -> DiskDescriptor:
    """Query the disk service and classify ``device_path``."""
    classifier = classifier or DiskClassifier()
    info_text = disk_service.get_info(device_path)
    attributes = parse_disk_info(info_text)
    name = device_path.rsplit("/", 1)[-1]
    return DiskDescriptor(
        device_path=device_path,
        is_removable=classifier.is_removable(attributes),
        is_internal=classifier.is_internal(attributes),
        is_boot_disk=name in disk_service.boot_disk_ids(),
        raw_info_text=info_text,
        attributes=attributes,
    )


def validate_target_disk(descriptor: DiskDescriptor) -> None:
    """Perform all safety checks required before erasing a disk.

    Raises:
        NotRemovableError: If no removable/USB/external signal is present
        InternalDiskError: If the disk reports an internal location or bus
        BootDiskError: If the disk hosts the running operating system
    """
    # 1. Allow-list: at least one removable signal
    if not descriptor.is_removable:
        raise NotRemovableError(descriptor.device_path)

    # 2. Deny-list: internal signals win over the allow-list
    if descriptor.is_internal:
        raise InternalDiskError(descriptor.device_path)

    # 3. Never the boot disk
    if descriptor.is_boot_disk:
        raise BootDiskError(descriptor.device_path)
