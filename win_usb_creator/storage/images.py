"""ISO attach/detach through macOS ``hdiutil``.

Attaching the same image twice fails with "resource busy", so before mounting
the pipeline consults the registry of attached images (``hdiutil info``) and
reuses an existing mount of the same file.
"""

from __future__ import annotations

import os
import plistlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Protocol
from xml.parsers.expat import ExpatError

from win_usb_creator.logging import LoggerFactory
from win_usb_creator.storage.commands import run_checked_command, run_command
from win_usb_creator.storage.exceptions import MountError

HDIUTIL = "/usr/bin/hdiutil"

# Volume name prefixes used by Microsoft ISOs (CCCOMA_X64FRE_EN-US_DV9, ...).
ISO_VOLUME_PREFIXES = ("CCCOMA_", "ESD-ISO", "ESD-USB", "DVD", "Windows")

log = LoggerFactory.for_image()


@dataclass(frozen=True)
class AttachedImage:
    """One entry of the image-mount registry."""

    image_path: str
    mount_points: List[str] = field(default_factory=list)


class ImageMountService(Protocol):
    """Operations the pipeline needs from the OS image-mounting service."""

    def list_attached(self) -> List[AttachedImage]: ...

    def attach(self, image_path: Path) -> None: ...

    def detach(self, mount_path: Path) -> None: ...


def parse_hdiutil_info(plist_data: bytes) -> List[AttachedImage]:
    """Parse ``hdiutil info -plist`` output."""
    data = plistlib.loads(plist_data)
    attached: List[AttachedImage] = []
    for image in data.get("images", []) or []:
        image_path = image.get("image-path")
        if not image_path:
            continue
        mount_points = [
            entity["mount-point"]
            for entity in image.get("system-entities", []) or []
            if entity.get("mount-point")
        ]
        attached.append(AttachedImage(image_path=image_path, mount_points=mount_points))
    return attached


class HdiutilService:
    """:class:`ImageMountService` backed by ``hdiutil``."""

    def list_attached(self) -> List[AttachedImage]:
        result = run_command([HDIUTIL, "info", "-plist"], check=False, log_output=False)
        if result.returncode != 0 or not result.stdout:
            log.debug("hdiutil info returned nothing; assuming no attached images")
            return []
        try:
            return parse_hdiutil_info(result.stdout.encode("utf-8"))
        except (plistlib.InvalidFileException, ExpatError, ValueError) as error:
            log.warning(f"Could not parse hdiutil info output: {error}")
            return []

    def attach(self, image_path: Path) -> None:
        run_checked_command([HDIUTIL, "attach", "-nobrowse", "-readonly", str(image_path)])

    def detach(self, mount_path: Path) -> None:
        run_checked_command([HDIUTIL, "detach", str(mount_path)])


def _same_file(left: str, right: Path) -> bool:
    return os.path.realpath(left) == os.path.realpath(str(right))


def find_existing_mount(
    attached: Iterable[AttachedImage], image_path: Path
) -> Optional[Path]:
    """Return the mount path of ``image_path`` if it is already attached."""
    for image in attached:
        if not _same_file(image.image_path, image_path):
            continue
        for mount_point in image.mount_points:
            if os.path.isdir(mount_point):
                return Path(mount_point)
            log.debug(f"Registry lists {mount_point} for {image_path} but it is not a directory")
    return None


def _modified_time(path: Path) -> float:
    try:
        return path.stat().st_mtime
    except OSError:
        return 0.0


def resolve_mount_path(mount_root: Path, exclude: Iterable[str] = ()) -> Path:
    """Guess where a freshly attached Windows ISO was mounted.

    Prefers the single entry named like a Microsoft ISO volume, otherwise the
    most recently modified entry under ``mount_root``.

    Raises:
        MountError: If ``mount_root`` has no usable entries
    """
    excluded = set(exclude)
    try:
        entries = [entry for entry in mount_root.iterdir() if entry.name not in excluded]
    except OSError as error:
        raise MountError(
            f"Unable to list {mount_root}: {error}", path=str(mount_root)
        ) from error

    candidates = [
        entry for entry in entries if entry.name.startswith(ISO_VOLUME_PREFIXES)
    ]
    if len(candidates) == 1:
        log.debug(f"Matched Microsoft ISO volume name: {candidates[0]}")
        return candidates[0]

    if not entries:
        raise MountError(
            f"Unable to detect ISO volume under {mount_root}. Mount the ISO first.",
            path=str(mount_root),
        )
    newest = max(entries, key=_modified_time)
    log.debug(f"Falling back to newest entry under {mount_root}: {newest}")
    return newest
