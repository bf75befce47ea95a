"""ISO image validation.

An ISO9660 image carries the standard identifier ``CD001`` right after the
type byte of the first volume descriptor, i.e. at byte offset 32769 (0x8001).
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Optional

from win_usb_creator.logging import LoggerFactory
from win_usb_creator.storage.commands import run_command, which
from win_usb_creator.storage.exceptions import CommandFailedError, IsoValidationError

ISO9660_SIGNATURE = b"CD001"
ISO9660_SIGNATURE_OFFSET = 32769
ISO_EXTENSION = ".iso"

# Keywords in `file -b` output that indicate an optical-disc image.
FILE_TYPE_KEYWORDS = ("ISO", "9660", "UDF", "boot")

log = LoggerFactory.for_image()


class IsoCheck(Enum):
    """Which content check ended up validating the image."""

    SIGNATURE = "signature"
    FILE_TYPE = "file-type"
    SKIPPED = "skipped"


def read_signature(iso_path: Path) -> Optional[bytes]:
    """Read the 5 signature bytes, or None when the file cannot be read.

    A file shorter than the signature offset yields the (short) bytes that
    exist, which simply do not match.
    """
    try:
        with open(iso_path, "rb") as iso_file:
            iso_file.seek(ISO9660_SIGNATURE_OFFSET)
            return iso_file.read(len(ISO9660_SIGNATURE))
    except OSError as error:
        log.debug(f"Could not read ISO signature from {iso_path}: {error}")
        return None


def _describe_file_type(iso_path: Path) -> Optional[str]:
    file_cmd = which("file")
    if not file_cmd:
        return None
    try:
        result = run_command([file_cmd, "-b", str(iso_path)])
    except CommandFailedError as error:
        log.debug(f"file failed for {iso_path}: {error}")
        return None
    return result.stdout.strip()


def validate_iso(iso_path: Path) -> IsoCheck:
    """Validate that ``iso_path`` looks like a genuine ISO image.

    Args:
        iso_path: Path to the ISO file

    Returns:
        The check that validated the file (``SKIPPED`` when no check was possible)

    Raises:
        IsoValidationError: If the file is missing, unreadable, misnamed or
            does not carry the ISO9660 signature
    """
    path_str = str(iso_path)
    if not iso_path.exists():
        raise IsoValidationError(path_str, "ISO not found")
    if not iso_path.is_file():
        raise IsoValidationError(path_str, "ISO path is not a regular file")
    if not os.access(iso_path, os.R_OK):
        raise IsoValidationError(path_str, "ISO file is not readable")

    if iso_path.suffix.lower() != ISO_EXTENSION:
        raise IsoValidationError(path_str, "File does not have .iso extension")

    signature = read_signature(iso_path)
    if signature is not None:
        if signature != ISO9660_SIGNATURE:
            log.debug(f"Signature bytes at {ISO9660_SIGNATURE_OFFSET}: {signature!r}")
            raise IsoValidationError(
                path_str,
                "File does not appear to be a valid ISO image "
                "(missing ISO 9660 signature)",
            )
        log.info(f"ISO9660 signature validated for {iso_path}")
        return IsoCheck.SIGNATURE

    file_type = _describe_file_type(iso_path)
    if file_type is not None:
        if not any(keyword in file_type for keyword in FILE_TYPE_KEYWORDS):
            raise IsoValidationError(path_str, "File does not appear to be a valid ISO image")
        log.info(f"ISO file type validated for {iso_path}: {file_type}")
        return IsoCheck.FILE_TYPE

    log.warning(f"Could not verify ISO signature for {iso_path}, proceeding anyway")
    return IsoCheck.SKIPPED
