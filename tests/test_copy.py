"""Tests for the rsync-backed copy service."""

from pathlib import Path
from unittest.mock import patch

import pytest

from win_usb_creator.storage import copy
from win_usb_creator.storage.copy import RsyncService, build_rsync_command
from win_usb_creator.storage.exceptions import CommandFailedError, CopyError


class TestBuildRsyncCommand:
    def test_copies_contents_of_source(self):
        command = build_rsync_command(Path("/Volumes/CCCOMA"), Path("/Volumes/WINDOWSUSB"))
        assert command == [
            "/usr/bin/rsync",
            "-avh",
            "--progress",
            "/Volumes/CCCOMA/",
            "/Volumes/WINDOWSUSB",
        ]

    def test_exclude_patterns(self):
        command = build_rsync_command(
            Path("/Volumes/CCCOMA"),
            Path("/Volumes/WINDOWSUSB"),
            exclude=["sources/install.wim"],
        )
        assert "--exclude=sources/install.wim" in command
        assert command.index("--exclude=sources/install.wim") < command.index("/Volumes/CCCOMA/")


class TestRsyncService:
    def test_streams_output(self):
        lines = []
        with patch.object(copy, "run_streaming_command", return_value=0) as mock_run:
            RsyncService().copy_tree(
                Path("/Volumes/CCCOMA"), Path("/Volumes/WINDOWSUSB"), on_line=lines.append
            )
        args, kwargs = mock_run.call_args
        assert args[0][-2:] == ["/Volumes/CCCOMA/", "/Volumes/WINDOWSUSB"]
        assert kwargs["on_line"] == lines.append

    def test_failure_becomes_copy_error(self):
        failure = CommandFailedError(["rsync"], 23, "No space left on device")
        with patch.object(copy, "run_streaming_command", side_effect=failure):
            with pytest.raises(CopyError) as exc_info:
                RsyncService().copy_tree(Path("/src"), Path("/dst"))
        assert "No space left on device" in str(exc_info.value)
        assert exc_info.value.source == "/src"
        assert exc_info.value.destination == "/dst"
        assert exc_info.value.__cause__ is failure
