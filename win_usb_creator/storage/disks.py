"""Disk management through macOS ``diskutil``.

The :class:`DiskService` protocol is everything the pipeline needs from the
operating system's disk utility: enumerate disks, read per-disk attributes,
unmount, erase, remount and eject. :class:`DiskutilService` is the production
adapter; tests substitute an in-memory fake.

``diskutil info`` prints free-text ``Key: Value`` lines, for example::

       Device Identifier:         disk4
       Device Node:               /dev/disk4
       Protocol:                  USB
       Removable Media:           Removable
       Device Location:           External

:func:`parse_disk_info` turns that into a dict keyed by the text before the
first colon.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Dict, Optional, Protocol, Set

from win_usb_creator.logging import LoggerFactory
from win_usb_creator.storage.commands import run_checked_command, run_command

DISKUTIL = "/usr/sbin/diskutil"
MOUNT = "/sbin/mount"
SYNC = "/bin/sync"

PARTITION_SCHEME = "GPT"
FILESYSTEM = "MS-DOS"

_WHOLE_DISK_PATTERN = re.compile(r"(disk\d+)")

log = LoggerFactory.for_disk()


def parse_disk_info(info_text: str) -> Dict[str, str]:
    """Parse ``diskutil info`` output into a ``{key: value}`` dict."""
    attributes: Dict[str, str] = {}
    for line in info_text.splitlines():
        key, sep, value = line.partition(":")
        if not sep:
            continue
        key = key.strip()
        if key and key not in attributes:
            attributes[key] = value.strip()
    return attributes


def whole_disk_id(identifier: str) -> Optional[str]:
    """Reduce a device node or slice identifier to its whole disk (disk3s1s1 -> disk3)."""
    match = _WHOLE_DISK_PATTERN.search(identifier or "")
    return match.group(1) if match else None


class DiskService(Protocol):
    """Operations the pipeline needs from the OS disk utility."""

    def list_disks(self) -> str: ...

    def device_exists(self, device_path: str) -> bool: ...

    def get_info(self, target: str) -> str: ...

    def boot_disk_ids(self) -> Set[str]: ...

    def unmount_disk(self, device_path: str) -> None: ...

    def erase_disk(self, device_path: str, volume_name: str) -> None: ...

    def is_writable(self, path: Path) -> bool: ...

    def device_node_for(self, mount_path: Path) -> Optional[str]: ...

    def force_unmount(self, device_node: str) -> None: ...

    def mount_fat_read_write(self, device_node: str, mount_path: Path) -> None: ...

    def flush(self) -> None: ...

    def eject(self, device_path: str) -> None: ...


class DiskutilService:
    """:class:`DiskService` backed by ``diskutil``, ``mount`` and ``sync``."""

    def list_disks(self) -> str:
        return run_checked_command([DISKUTIL, "list"])

    def device_exists(self, device_path: str) -> bool:
        return os.path.exists(device_path)

    def get_info(self, target: str) -> str:
        return run_checked_command([DISKUTIL, "info", target])

    def boot_disk_ids(self) -> Set[str]:
        """Return the whole-disk identifiers backing the root volume.

        On APFS the root volume lives on a synthesized container disk whose
        physical store is a different whole disk; both are reported.
        """
        attributes = parse_disk_info(self.get_info("/"))
        boot_ids: Set[str] = set()
        for key in ("Part of Whole", "Device Node", "APFS Physical Store"):
            disk_id = whole_disk_id(attributes.get(key, ""))
            if disk_id:
                boot_ids.add(disk_id)
        log.debug(f"Boot disk identifiers: {sorted(boot_ids)}")
        return boot_ids

    def unmount_disk(self, device_path: str) -> None:
        run_checked_command([DISKUTIL, "unmountDisk", device_path])

    def erase_disk(self, device_path: str, volume_name: str) -> None:
        run_checked_command(
            [DISKUTIL, "eraseDisk", FILESYSTEM, volume_name, PARTITION_SCHEME, device_path]
        )

    def is_writable(self, path: Path) -> bool:
        return os.access(path, os.W_OK)

    def device_node_for(self, mount_path: Path) -> Optional[str]:
        result = run_command([DISKUTIL, "info", str(mount_path)], check=False)
        if result.returncode != 0:
            return None
        node = parse_disk_info(result.stdout).get("Device Node")
        return node or None

    def force_unmount(self, device_node: str) -> None:
        run_checked_command([DISKUTIL, "unmount", device_node])

    def mount_fat_read_write(self, device_node: str, mount_path: Path) -> None:
        run_checked_command([MOUNT, "-w", "-t", "msdos", device_node, str(mount_path)])

    def flush(self) -> None:
        run_checked_command([SYNC])

    def eject(self, device_path: str) -> None:
        run_checked_command([DISKUTIL, "eject", device_path])
