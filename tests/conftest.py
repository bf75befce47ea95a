"""
Pytest configuration and shared fixtures for win-usb-creator tests.

This module provides fake service adapters that stand in for diskutil,
hdiutil, rsync and wimlib-imagex, so the whole pipeline can be exercised
against temporary directories instead of real disks and images.
"""

from __future__ import annotations

import math
import shutil
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Set

import pytest

from win_usb_creator.app.context import Services
from win_usb_creator.domain.models import RunConfig
from win_usb_creator.storage.exceptions import CommandFailedError
from win_usb_creator.storage.images import AttachedImage
from win_usb_creator.storage.wim import BYTES_PER_MB, split_part_path

GIB = 1024**3

# ==============================================================================
# diskutil info samples
# ==============================================================================

USB_DISK_INFO = """\
   Device Identifier:         disk4
   Device Node:               /dev/disk4
   Whole:                     Yes
   Part of Whole:             disk4
   Device / Media Name:       SanDisk Ultra

   Volume Name:               Not applicable (no file system)
   Mounted:                   Not applicable (no file system)

   Content (IOContent):       GUID_partition_scheme
   OS Can Be Installed:       No
   Media Type:                Generic
   Protocol:                  USB
   SMART Status:              Not Supported

   Disk Size:                 30.8 GB (30752636928 Bytes) (exactly 60063744 512-Byte-Units)
   Device Block Size:         512 Bytes

   Media OS Use Only:         No
   Media Read-Only:           No
   Volume Read-Only:          Not applicable (no file system)

   Device Location:           External
   Removable Media:           Removable
   Media Removal:             Software-Activated
"""

INTERNAL_DISK_INFO = """\
   Device Identifier:         disk1
   Device Node:               /dev/disk1
   Whole:                     Yes
   Part of Whole:             disk1
   Device / Media Name:       Samsung SSD 860 EVO 500GB
   Protocol:                  SATA
   Disk Size:                 500.1 GB (500107862016 Bytes)
   Device Location:           Internal
   Removable Media:           Fixed
"""

BOOT_VOLUME_INFO = """\
   Device Identifier:         disk3s1s1
   Device Node:               /dev/disk3s1s1
   Whole:                     No
   Part of Whole:             disk3
   Volume Name:               Macintosh HD
   Mounted:                   Yes
   Mount Point:               /
   APFS Container:            disk3
   APFS Physical Store:       disk0s2
   Protocol:                  Apple Fabric
   Device Location:           Internal
   Removable Media:           Fixed
"""

# ==============================================================================
# Fake Services
# ==============================================================================


class FakeDiskService:
    """In-memory stand-in for diskutil.

    Erasing creates ``<mount_root>/<volume_name>`` and clears any previous
    contents, the way a freshly formatted volume mounts on macOS.
    """

    def __init__(
        self,
        mount_root: Path,
        disks: Optional[Dict[str, str]] = None,
        boot_ids: Optional[Set[str]] = None,
    ):
        self.mount_root = mount_root
        self.disks = dict(disks if disks is not None else {"/dev/disk4": USB_DISK_INFO})
        self.boot_ids = set(boot_ids if boot_ids is not None else {"disk3", "disk0"})
        self.calls: List[tuple] = []
        self.writable = True
        self.volume_node: Optional[str] = "/dev/disk4s2"
        self.fail: Set[str] = set()

    def _record(self, name: str, *args) -> None:
        self.calls.append((name, *args))
        if name in self.fail:
            raise CommandFailedError(["diskutil", name, *map(str, args)], 1, f"{name} failed")

    def call_names(self) -> List[str]:
        return [call[0] for call in self.calls]

    def list_disks(self) -> str:
        self._record("list_disks")
        return "/dev/disk4 (external, physical):\n   #: TYPE NAME SIZE IDENTIFIER"

    def device_exists(self, device_path: str) -> bool:
        return device_path in self.disks

    def get_info(self, target: str) -> str:
        self._record("get_info", target)
        return self.disks[target]

    def boot_disk_ids(self) -> Set[str]:
        return set(self.boot_ids)

    def unmount_disk(self, device_path: str) -> None:
        self._record("unmount_disk", device_path)

    def erase_disk(self, device_path: str, volume_name: str) -> None:
        self._record("erase_disk", device_path, volume_name)
        volume = self.mount_root / volume_name
        if volume.exists():
            shutil.rmtree(volume)
        volume.mkdir(parents=True)

    def is_writable(self, path: Path) -> bool:
        return self.writable and path.is_dir()

    def device_node_for(self, mount_path: Path) -> Optional[str]:
        self.calls.append(("device_node_for", mount_path))
        return self.volume_node

    def force_unmount(self, device_node: str) -> None:
        self._record("force_unmount", device_node)

    def mount_fat_read_write(self, device_node: str, mount_path: Path) -> None:
        self._record("mount_fat_read_write", device_node, mount_path)
        self.writable = True

    def flush(self) -> None:
        self._record("flush")

    def eject(self, device_path: str) -> None:
        self._record("eject", device_path)


class FakeImageService:
    """In-memory stand-in for hdiutil; attaching populates a volume directory."""

    def __init__(
        self,
        mount_root: Path,
        populate: Callable[[Path], None],
        volume_name: str = "CCCOMA_X64FRE_EN-US_DV9",
    ):
        self.mount_root = mount_root
        self.populate = populate
        self.volume_name = volume_name
        self.attached: List[AttachedImage] = []
        self.calls: List[tuple] = []
        self.fail: Set[str] = set()

    def list_attached(self) -> List[AttachedImage]:
        self.calls.append(("list_attached",))
        return list(self.attached)

    def attach(self, image_path: Path) -> None:
        self.calls.append(("attach", image_path))
        if "attach" in self.fail:
            raise CommandFailedError(["hdiutil", "attach", str(image_path)], 1, "resource busy")
        mount_path = self.mount_root / self.volume_name
        mount_path.mkdir(parents=True, exist_ok=True)
        self.populate(mount_path)
        self.attached.append(AttachedImage(str(image_path), [str(mount_path)]))

    def detach(self, mount_path: Path) -> None:
        self.calls.append(("detach", mount_path))
        if "detach" in self.fail:
            raise CommandFailedError(["hdiutil", "detach", str(mount_path)], 16, "resource busy")
        self.attached = [
            image for image in self.attached if str(mount_path) not in image.mount_points
        ]

    def call_names(self) -> List[str]:
        return [call[0] for call in self.calls]


class FakeCopyService:
    """Copies a tree like rsync, touching (not copying) large files."""

    max_copy_bytes = 1024 * 1024

    def __init__(self):
        self.calls: List[tuple] = []

    def copy_tree(
        self,
        source: Path,
        destination: Path,
        exclude: Sequence[str] = (),
        on_line=None,
    ) -> None:
        self.calls.append(("copy_tree", source, destination, tuple(exclude)))
        for path in sorted(source.rglob("*")):
            relative = path.relative_to(source).as_posix()
            if relative in exclude:
                continue
            target = destination / relative
            if path.is_dir():
                target.mkdir(parents=True, exist_ok=True)
            elif path.stat().st_size <= self.max_copy_bytes:
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(path, target)
            else:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.touch()
            if on_line:
                on_line(relative)


class SourcesAsFileCopier(FakeCopyService):
    """Leaves a plain file where the sources directory should be."""

    def copy_tree(self, source, destination, exclude=(), on_line=None):
        super().copy_tree(source, destination, exclude=exclude, on_line=on_line)
        sources = destination / "sources"
        if sources.is_dir():
            shutil.rmtree(sources)
        sources.write_bytes(b"")


class FakeSplitService:
    """Writes empty .swm parts named the way wimlib-imagex names them."""

    def __init__(self, available: bool = True, installable: bool = True):
        self.available = available
        self.installable = installable
        self.calls: List[tuple] = []

    def is_available(self) -> bool:
        return self.available

    def can_install(self) -> bool:
        return self.installable

    def install(self, on_line=None) -> None:
        self.calls.append(("install",))
        self.available = True

    def split(self, source: Path, destination: Path, part_size_mb: int, on_line=None) -> None:
        self.calls.append(("split", source, destination, part_size_mb))
        count = math.ceil(source.stat().st_size / (part_size_mb * BYTES_PER_MB))
        for index in range(1, count + 1):
            split_part_path(destination, index).write_bytes(b"")


class ScriptedPrompt:
    """Non-interactive prompt that replays canned answers."""

    def __init__(self, answers: Sequence[str] = (), confirms: Sequence[bool] = ()):
        self.answers = list(answers)
        self.confirms = list(confirms)
        self.questions: List[str] = []

    def ask(self, question: str) -> str:
        self.questions.append(question)
        return self.answers.pop(0) if self.answers else ""

    def confirm(self, question: str) -> bool:
        self.questions.append(question)
        return self.confirms.pop(0) if self.confirms else False


# ==============================================================================
# File Builders
# ==============================================================================


def write_iso(path: Path, signature: bytes = b"CD001") -> Path:
    """Write a small file carrying ``signature`` at the ISO9660 offset."""
    path.write_bytes(b"\x00" * 32769 + signature + b"\x00" * 2043)
    return path


def populate_windows_tree(
    root: Path, payload: str = "install.wim", payload_size: int = 1024
) -> None:
    """Create a minimal Windows ISO tree under ``root``.

    The payload is a sparse file so multi-GiB sizes cost no disk space.
    """
    (root / "boot").mkdir(parents=True, exist_ok=True)
    (root / "efi" / "boot").mkdir(parents=True, exist_ok=True)
    (root / "sources").mkdir(parents=True, exist_ok=True)
    (root / "setup.exe").write_bytes(b"MZ setup")
    (root / "bootmgr.efi").write_bytes(b"bootmgr")
    (root / "boot" / "bcd").write_bytes(b"bcd")
    (root / "efi" / "boot" / "bootx64.efi").write_bytes(b"efi")
    (root / "sources" / "boot.wim").write_bytes(b"boot wim")
    with open(root / "sources" / payload, "wb") as payload_file:
        payload_file.truncate(payload_size)


def tree_listing(root: Path) -> List[str]:
    return sorted(path.relative_to(root).as_posix() for path in root.rglob("*"))


# ==============================================================================
# Fixtures
# ==============================================================================


@pytest.fixture
def mount_root(tmp_path) -> Path:
    """Fixture providing a temporary stand-in for /Volumes."""
    root = tmp_path / "Volumes"
    root.mkdir()
    return root


@pytest.fixture
def iso_file(tmp_path) -> Path:
    """Fixture providing a file with a valid ISO9660 signature."""
    return write_iso(tmp_path / "Win11_23H2_English_x64.iso")


@pytest.fixture
def run_config(iso_file, mount_root) -> RunConfig:
    return RunConfig(
        iso_path=iso_file,
        disk_id="disk4",
        mount_root=mount_root,
        settle_seconds=0,
    )


@pytest.fixture
def fake_disks(mount_root) -> FakeDiskService:
    return FakeDiskService(mount_root)


@pytest.fixture
def fake_images(mount_root) -> FakeImageService:
    return FakeImageService(mount_root, populate_windows_tree)


@pytest.fixture
def fake_copier() -> FakeCopyService:
    return FakeCopyService()


@pytest.fixture
def fake_splitter() -> FakeSplitService:
    return FakeSplitService()


@pytest.fixture
def erase_prompt() -> ScriptedPrompt:
    return ScriptedPrompt(answers=["ERASE"])


@pytest.fixture
def services(fake_disks, fake_images, fake_copier, fake_splitter, erase_prompt) -> Services:
    """Fixture wiring every fake adapter into a Services container."""
    return Services(
        disks=fake_disks,
        images=fake_images,
        copier=fake_copier,
        splitter=fake_splitter,
        prompt=erase_prompt,
    )

