"""Splitting install.wim with ``wimlib-imagex``.

``wimlib-imagex split install.wim install.swm 3800`` writes ``install.swm``,
``install2.swm``, ``install3.swm``, ... each at most 3800 MiB. Windows Setup
picks the parts up automatically when they sit in ``sources/``.
"""

from __future__ import annotations

import math
from pathlib import Path
from typing import Callable, List, Optional, Protocol

from win_usb_creator.logging import LoggerFactory
from win_usb_creator.storage.commands import run_streaming_command, which
from win_usb_creator.storage.exceptions import (
    CommandFailedError,
    SplitError,
    ToolNotFoundError,
    UserAbortedError,
)
from win_usb_creator.ui.console import Prompt

WIMLIB_TOOL = "wimlib-imagex"
WIMLIB_PACKAGE = "wimlib"
PACKAGE_MANAGER = "brew"

BYTES_PER_MB = 1024 * 1024

log = LoggerFactory.for_copy()


class SplitService(Protocol):
    """Split one WIM file into sequentially numbered parts."""

    def is_available(self) -> bool: ...

    def can_install(self) -> bool: ...

    def install(self, on_line: Optional[Callable[[str], None]] = None) -> None: ...

    def split(
        self,
        source: Path,
        destination: Path,
        part_size_mb: int,
        on_line: Optional[Callable[[str], None]] = None,
    ) -> None: ...


class WimlibService:
    """:class:`SplitService` backed by ``wimlib-imagex``, installable via Homebrew."""

    def is_available(self) -> bool:
        return which(WIMLIB_TOOL) is not None

    def can_install(self) -> bool:
        return which(PACKAGE_MANAGER) is not None

    def install(self, on_line: Optional[Callable[[str], None]] = None) -> None:
        brew = which(PACKAGE_MANAGER) or PACKAGE_MANAGER
        run_streaming_command([brew, "install", WIMLIB_PACKAGE], on_line=on_line)

    def split(
        self,
        source: Path,
        destination: Path,
        part_size_mb: int,
        on_line: Optional[Callable[[str], None]] = None,
    ) -> None:
        # Works for both Intel (/usr/local) and Apple Silicon (/opt/homebrew) prefixes
        tool = which(WIMLIB_TOOL) or WIMLIB_TOOL
        try:
            run_streaming_command(
                [tool, "split", str(source), str(destination), str(part_size_mb)],
                on_line=on_line,
            )
        except CommandFailedError as error:
            raise SplitError(f"Failed to split {source.name}: {error}", source=str(source)) from error


def ensure_split_tool(
    service: SplitService,
    prompt: Prompt,
    on_line: Optional[Callable[[str], None]] = None,
) -> None:
    """Make sure ``wimlib-imagex`` is available, offering a Homebrew install.

    Installing is the only step of a run that touches the network.

    Raises:
        ToolNotFoundError: If the tool is missing and cannot be installed
        UserAbortedError: If the operator declines the install
    """
    if service.is_available():
        return
    log.warning(f"{WIMLIB_TOOL} not found")
    if not service.can_install():
        raise ToolNotFoundError(
            WIMLIB_TOOL,
            "wimlib is required to split install.wim >4GB. Please install "
            "Homebrew (https://brew.sh) and wimlib, then re-run.",
        )
    if not prompt.confirm(
        f"{WIMLIB_TOOL} is missing. Install {WIMLIB_PACKAGE} with Homebrew now "
        "(downloads from the network)?"
    ):
        raise UserAbortedError(f"{WIMLIB_PACKAGE} installation declined.")
    log.warning(f"Installing {WIMLIB_PACKAGE} via Homebrew (network access)")
    try:
        service.install(on_line=on_line)
    except CommandFailedError as error:
        raise ToolNotFoundError(WIMLIB_TOOL, f"Homebrew install failed: {error}") from error
    if not service.is_available():
        raise ToolNotFoundError(WIMLIB_TOOL, "still missing after Homebrew install")


def split_part_path(base: Path, index: int) -> Path:
    """Name of part ``index`` (1-based): install.swm, install2.swm, ..."""
    if index < 1:
        raise ValueError(f"Part index must be >= 1, got {index}")
    if index == 1:
        return base
    return base.with_name(f"{base.stem}{index}{base.suffix}")


def expected_part_count(size_bytes: int, part_size_mb: int) -> int:
    """Number of parts a plain split of ``size_bytes`` produces (at least one)."""
    return max(1, math.ceil(size_bytes / (part_size_mb * BYTES_PER_MB)))


def list_split_parts(base: Path) -> List[Path]:
    """Return the consecutive split parts that exist, starting at ``base``."""
    parts: List[Path] = []
    index = 1
    while split_part_path(base, index).is_file():
        parts.append(split_part_path(base, index))
        index += 1
    return parts
