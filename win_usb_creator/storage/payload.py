"""Locate and classify the Windows installation image inside a mounted ISO."""

from __future__ import annotations

from pathlib import Path

from win_usb_creator.domain.models import InstallPayload, PayloadKind
from win_usb_creator.logging import LoggerFactory
from win_usb_creator.storage.exceptions import PayloadNotFoundError, PayloadReadError

SOURCES_DIR = "sources"
WIM_NAME = "install.wim"
ESD_NAME = "install.esd"
SWM_NAME = "install.swm"

# Relative path excluded from the bulk copy when install.wim is split.
WIM_RELATIVE_PATH = f"{SOURCES_DIR}/{WIM_NAME}"

log = LoggerFactory.for_image()


def locate_install_payload(image_root: Path) -> InstallPayload:
    """Find ``sources/install.wim``, falling back to ``sources/install.esd``.

    Raises:
        PayloadNotFoundError: If neither file exists
        PayloadReadError: If the file cannot be stat'ed
    """
    sources = image_root / SOURCES_DIR
    wim_path = sources / WIM_NAME
    esd_path = sources / ESD_NAME

    if wim_path.is_file():
        path, kind = wim_path, PayloadKind.WIM
    elif esd_path.is_file():
        # Some ISOs ship install.esd instead; it stays below the FAT32 limit
        path, kind = esd_path, PayloadKind.ESD
    else:
        raise PayloadNotFoundError(str(sources))

    try:
        size_bytes = path.stat().st_size
    except OSError as error:
        raise PayloadReadError(str(path), error.strerror or str(error)) from error

    payload = InstallPayload(path=path, size_bytes=size_bytes, kind=kind)
    log.info(
        f"Found {path.name}: {payload.size_bytes} bytes "
        f"({payload.size_gb:.2f} GB), split needed: {payload.needs_split}"
    )
    return payload
