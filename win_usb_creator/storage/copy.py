"""Recursive tree copy through ``rsync``."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional, Protocol, Sequence

from win_usb_creator.logging import LoggerFactory
from win_usb_creator.storage.commands import run_streaming_command
from win_usb_creator.storage.exceptions import CommandFailedError, CopyError

RSYNC = "/usr/bin/rsync"

log = LoggerFactory.for_copy()


class FileCopyService(Protocol):
    """Copy a directory tree preserving structure and metadata."""

    def copy_tree(
        self,
        source: Path,
        destination: Path,
        exclude: Sequence[str] = (),
        on_line: Optional[Callable[[str], None]] = None,
    ) -> None: ...


def build_rsync_command(
    source: Path, destination: Path, exclude: Sequence[str] = ()
) -> list[str]:
    """Build the rsync invocation copying the *contents* of ``source``."""
    command = [RSYNC, "-avh", "--progress"]
    command.extend(f"--exclude={pattern}" for pattern in exclude)
    # Trailing slash: copy what is inside source, not source itself
    command.extend([f"{source}/", str(destination)])
    return command


class RsyncService:
    """:class:`FileCopyService` backed by ``rsync -avh --progress``."""

    def copy_tree(
        self,
        source: Path,
        destination: Path,
        exclude: Sequence[str] = (),
        on_line: Optional[Callable[[str], None]] = None,
    ) -> None:
        command = build_rsync_command(source, destination, exclude)
        if exclude:
            log.info(f"Copying {source} -> {destination} excluding {', '.join(exclude)}")
        else:
            log.info(f"Copying {source} -> {destination}")
        try:
            run_streaming_command(command, on_line=on_line)
        except CommandFailedError as error:
            raise CopyError(
                f"Failed to copy files to {destination}: {error}",
                source=str(source),
                destination=str(destination),
            ) from error
