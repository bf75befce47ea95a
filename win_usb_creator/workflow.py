"""The USB creation pipeline.

Stages run strictly in order and any failure aborts the run by raising a
:class:`~win_usb_creator.storage.exceptions.UsbCreatorError`:

    validate ISO -> select + validate disk -> confirm ERASE -> erase
    -> mount ISO -> copy (+ split) -> finalize

The target disk is never touched before the operator has typed ``ERASE``.
Only the finalize steps (flush, detach, eject) are best-effort: the USB is
already written when they run, so their failures are reported as
:class:`~win_usb_creator.domain.models.StepResult` values instead.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Callable, List

from win_usb_creator.app.context import Services
from win_usb_creator.domain.models import (
    SAFETY_ATTRIBUTES,
    DiskDescriptor,
    MountPoint,
    RunConfig,
    StepResult,
)
from win_usb_creator.logging import LoggerFactory, operation_context
from win_usb_creator.storage.disks import DiskService
from win_usb_creator.storage.exceptions import (
    CommandFailedError,
    DiskSafetyError,
    EraseError,
    ExternalToolError,
    MountError,
    SplitError,
    UserAbortedError,
)
from win_usb_creator.storage.images import (
    ImageMountService,
    find_existing_mount,
    resolve_mount_path,
)
from win_usb_creator.storage.iso import IsoCheck, validate_iso
from win_usb_creator.storage.payload import (
    SOURCES_DIR,
    SWM_NAME,
    WIM_NAME,
    WIM_RELATIVE_PATH,
    locate_install_payload,
)
from win_usb_creator.storage.validation import (
    describe_disk,
    normalize_disk_id,
    validate_device_exists,
    validate_target_disk,
)
from win_usb_creator.storage.wim import ensure_split_tool, expected_part_count, list_split_parts
from win_usb_creator.ui import console

ERASE_TOKEN = "ERASE"

log = LoggerFactory.for_system()


def best_effort(name: str, action: Callable[[], None]) -> StepResult:
    """Run ``action`` and report, rather than raise, a tool failure."""
    try:
        action()
    except (ExternalToolError, OSError) as error:
        log.warning(f"{name} failed (ignored): {error}")
        return StepResult.failure(name, str(error))
    return StepResult.success(name)


def validate_input(config: RunConfig) -> IsoCheck:
    console.info("Validating ISO file...")
    with operation_context("validate", iso=str(config.iso_path)):
        check = validate_iso(config.iso_path)
    if check is IsoCheck.SIGNATURE:
        console.info("✓ ISO file signature validated")
    elif check is IsoCheck.FILE_TYPE:
        console.info("✓ ISO file type validated")
    else:
        console.info("⚠ Could not verify ISO signature, proceeding anyway...")
    return check


def select_target_disk(config: RunConfig, services: Services) -> DiskDescriptor:
    """Resolve the target disk and run the safety checks on it.

    Raises:
        ValidationError: If no usable identifier was given
        DiskSafetyError: If the disk is missing, internal, fixed or the boot disk
    """
    disk_id = config.disk_id
    if not disk_id:
        console.info("Available disks:")
        console.plain(services.disks.list_disks())
        disk_id = services.prompt.ask("Enter the identifier of your USB drive (e.g., disk2): ")

    device_path = normalize_disk_id(disk_id)
    validate_device_exists(services.disks, device_path)

    console.info(f"Validating disk {device_path}...")
    with operation_context("select", disk=device_path) as op_log:
        descriptor = describe_disk(services.disks, device_path)
        op_log.debug(
            f"removable={descriptor.is_removable} internal={descriptor.is_internal} "
            f"boot={descriptor.is_boot_disk}"
        )
        try:
            validate_target_disk(descriptor)
        except DiskSafetyError:
            console.lines(descriptor.attribute_lines(SAFETY_ATTRIBUTES))
            raise

    console.plain()
    console.plain("Disk Information:")
    console.lines(descriptor.attribute_lines())
    console.plain()
    console.info("✓ Disk validated as removable USB drive")
    return descriptor


def confirm_erase(descriptor: DiskDescriptor, services: Services) -> None:
    """Require the operator to type the exact token before anything is erased."""
    console.info(f"You selected {descriptor.device_path}.")
    console.plain(f"!!! WARNING: This will ERASE {descriptor.device_path} completely.")
    answer = services.prompt.ask(f"Type {ERASE_TOKEN} to continue: ")
    if answer != ERASE_TOKEN:
        log.info(f"Erase of {descriptor.device_path} declined")
        raise UserAbortedError()


def ensure_volume_writable(volume: Path, disks: DiskService) -> None:
    """Remount a FAT32 volume read-write when it came up read-only.

    Newer macOS releases occasionally mount a freshly erased FAT32 volume
    read-only.

    Raises:
        MountError: If the device node cannot be found or the remount fails
    """
    if disks.is_writable(volume):
        return
    console.info("Volume appears read-only, remounting FAT32 as read-write...")
    device_node = disks.device_node_for(volume)
    if not device_node:
        raise MountError(f"Could not determine device node for {volume}", path=str(volume))
    best_effort("unmount", lambda: disks.force_unmount(device_node))
    try:
        volume.mkdir(parents=True, exist_ok=True)
        disks.mount_fat_read_write(device_node, volume)
    except (CommandFailedError, OSError) as error:
        raise MountError(
            f"Failed to remount {device_node} read-write at {volume}: {error}",
            path=str(volume),
        ) from error


def prepare_disk(config: RunConfig, descriptor: DiskDescriptor, disks: DiskService) -> Path:
    """Erase the target as GPT + FAT32 and return the writable volume path.

    Raises:
        EraseError: If diskutil cannot erase the disk
        MountError: If the new volume cannot be made writable
    """
    device_path = descriptor.device_path
    with operation_context("erase", disk=device_path):
        console.info(f"Unmounting {device_path} ...")
        best_effort("unmount", lambda: disks.unmount_disk(device_path))

        console.info(f"Erasing {device_path} as GPT + FAT32 ({config.volume_name}) ...")
        try:
            disks.erase_disk(device_path, config.volume_name)
        except CommandFailedError as error:
            raise EraseError(f"Failed to erase {device_path}: {error}", device=device_path) from error

        volume = config.target_volume_path
        # Give macOS a moment to mount the new volume
        time.sleep(config.settle_seconds)
        ensure_volume_writable(volume, disks)
    return volume


def mount_source_image(config: RunConfig, images: ImageMountService) -> MountPoint:
    """Reuse an existing mount of the ISO, or attach it read-only.

    Raises:
        MountError: If attaching fails or the mount path cannot be resolved
    """
    iso_path = config.iso_path
    with operation_context("mount", iso=str(iso_path)):
        console.info("Checking if ISO is already mounted...")
        existing = find_existing_mount(images.list_attached(), iso_path)
        if existing is not None:
            console.info(f"ISO already mounted at: {existing}")
            return MountPoint(source_image_path=iso_path, mount_path=existing, pre_existing=True)

        console.info(f"Mounting ISO: {iso_path}")
        try:
            images.attach(iso_path)
        except CommandFailedError as error:
            raise MountError(f"Failed to mount ISO: {error}", path=str(iso_path)) from error

        mount_path = resolve_mount_path(config.mount_root, exclude=[config.volume_name])
        if not mount_path.is_dir():
            raise MountError("Could not locate mounted ISO volume.", path=str(mount_path))
        console.info(f"ISO mounted at: {mount_path}")
    return MountPoint(source_image_path=iso_path, mount_path=mount_path, pre_existing=False)


def copy_payload(
    config: RunConfig, mount: MountPoint, volume: Path, services: Services
) -> List[Path]:
    """Copy the ISO tree to ``volume``, splitting an oversized install.wim.

    Returns:
        The split parts that were written (empty when nothing was split)
    """
    with operation_context("copy", source=str(mount.mount_path), target=str(volume)) as op_log:
        payload = locate_install_payload(mount.mount_path)

        console.info("Copying files to USB (this may take a while)...")
        if not payload.needs_split:
            console.info("No split needed; copying entire ISO contents...")
            services.copier.copy_tree(mount.mount_path, volume, on_line=console.plain)
            return []

        console.info(f"{WIM_NAME} > 4GB; copying all except {WIM_NAME}, then splitting...")
        services.copier.copy_tree(
            mount.mount_path, volume, exclude=[WIM_RELATIVE_PATH], on_line=console.plain
        )
        ensure_split_tool(services.splitter, services.prompt, on_line=console.plain)

        sources_dir = volume / SOURCES_DIR
        try:
            sources_dir.mkdir(parents=True, exist_ok=True)
        except OSError as error:
            raise SplitError(
                f"Could not create {sources_dir}: {error}", source=str(payload.path)
            ) from error

        base = sources_dir / SWM_NAME
        console.info(
            f"Splitting {WIM_NAME} into {config.split_size_mb}MB chunks as {SWM_NAME}..."
        )
        op_log.debug(
            f"Expecting {expected_part_count(payload.size_bytes, config.split_size_mb)} parts"
        )
        services.splitter.split(payload.path, base, config.split_size_mb, on_line=console.plain)

        try:
            parts = list_split_parts(base)
        except OSError as error:
            raise SplitError(
                f"Could not list split parts in {sources_dir}: {error}", source=str(payload.path)
            ) from error
        if not parts:
            raise SplitError(f"No split parts were written to {sources_dir}", source=str(payload.path))
        console.info(f"Wrote {len(parts)} parts: {', '.join(part.name for part in parts)}")
    return parts


def finalize(descriptor: DiskDescriptor, mount: MountPoint, services: Services) -> List[StepResult]:
    """Flush, detach the ISO and eject the USB; failures are only reported."""
    results: List[StepResult] = []
    with operation_context("finalize", disk=descriptor.device_path):
        console.info("Flushing writes...")
        results.append(best_effort("flush", services.disks.flush))

        console.info("Detaching ISO...")
        results.append(best_effort("detach", lambda: services.images.detach(mount.mount_path)))

        console.info("Ejecting USB disk...")
        results.append(best_effort("eject", lambda: services.disks.eject(descriptor.device_path)))
    return results


def run(config: RunConfig, services: Services) -> List[StepResult]:
    """Run the whole pipeline for one USB drive."""
    validate_input(config)
    descriptor = select_target_disk(config, services)
    confirm_erase(descriptor, services)
    volume = prepare_disk(config, descriptor, services.disks)
    mount = mount_source_image(config, services.images)
    copy_payload(config, mount, volume, services)
    results = finalize(descriptor, mount, services)

    for result in results:
        if not result.ok:
            console.info(f"⚠ {result.name} did not complete: {result.error}")
    console.info(
        f"All done! Your GPT/FAT32 Windows USB ({config.volume_name}) is ready for UEFI boot."
    )
    return results
