"""External command execution helpers.

All utilities are invoked with argument lists (never through a shell) and
block until they exit. There are no timeouts: a hung utility hangs the run.
"""

from __future__ import annotations

import shutil
import subprocess
from typing import Callable, Optional, Sequence

from win_usb_creator.logging import LoggerFactory
from win_usb_creator.storage.exceptions import CommandFailedError, ToolNotFoundError


log = LoggerFactory.for_system()


def which(tool: str) -> Optional[str]:
    """Resolve a command through PATH."""
    return shutil.which(tool)


def run_command(command: Sequence[str], check=True, log_output=True, log_command=True):
    """Run a command, capturing stdout and stderr as text.

    Raises:
        ToolNotFoundError: If the executable does not exist
        CommandFailedError: If ``check`` is set and the command exits non-zero
    """
    command = [str(part) for part in command]
    if log_command:
        log.debug(f"Running command: {' '.join(command)}")
    try:
        result = subprocess.run(
            command, capture_output=True, text=True, encoding="utf-8", errors="replace"
        )
    except FileNotFoundError as error:
        raise ToolNotFoundError(command[0]) from error
    if result.stdout and (log_output or result.returncode != 0):
        log.debug(f"stdout: {result.stdout.strip()}")
    if result.stderr and (log_output or result.returncode != 0):
        log.debug(f"stderr: {result.stderr.strip()}")
    if log_command:
        log.debug(f"Command completed with return code {result.returncode}")
    if check and result.returncode != 0:
        stderr = (result.stderr or "").strip()
        stdout = (result.stdout or "").strip()
        raise CommandFailedError(command, result.returncode, stderr or stdout)
    return result


def run_checked_command(command: Sequence[str]) -> str:
    """Run a command and return its stdout, raising on failure."""
    return run_command(command, check=True).stdout


def run_streaming_command(
    command: Sequence[str],
    on_line: Optional[Callable[[str], None]] = None,
) -> int:
    """Run a command while forwarding each output line to ``on_line``.

    stderr is merged into stdout so tool progress and diagnostics arrive in
    order. The last lines of output are kept for the error message.

    Returns:
        The command's return code (always 0; failures raise)

    Raises:
        ToolNotFoundError: If the executable does not exist
        CommandFailedError: If the command exits non-zero
    """
    command = [str(part) for part in command]
    progress_log = LoggerFactory.for_progress()
    log.debug(f"Running command: {' '.join(command)}")
    try:
        process = subprocess.Popen(
            command,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
    except FileNotFoundError as error:
        raise ToolNotFoundError(command[0]) from error

    tail: list[str] = []
    for raw_line in process.stdout or []:
        line = raw_line.rstrip("\r\n")
        tail.append(line)
        del tail[:-5]
        progress_log.trace(line)
        if on_line:
            on_line(line)
    returncode = process.wait()
    log.debug(f"Command completed with return code {returncode}")
    if returncode != 0:
        message = "\n".join(line for line in tail if line.strip())
        raise CommandFailedError(command, returncode, message)
    return returncode
