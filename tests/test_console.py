"""Tests for terminal output and prompts."""

from unittest.mock import patch

import pytest

from win_usb_creator.ui import console
from win_usb_creator.ui.console import TerminalPrompt


def test_info_goes_to_stdout(capsys):
    console.info("Validating ISO file...")
    captured = capsys.readouterr()
    assert captured.out == "==> Validating ISO file...\n"
    assert captured.err == ""


def test_error_goes_to_stderr(capsys):
    console.error("boom")
    captured = capsys.readouterr()
    assert captured.err == "Error: boom\n"
    assert captured.out == ""


def test_lines(capsys):
    console.lines(["a", "b"])
    assert capsys.readouterr().out == "a\nb\n"


class TestTerminalPrompt:
    def test_ask_returns_raw_line(self):
        with patch("builtins.input", return_value="ERASE "):
            assert TerminalPrompt().ask("Type ERASE: ") == "ERASE "

    def test_ask_eof_is_empty(self):
        with patch("builtins.input", side_effect=EOFError):
            assert TerminalPrompt().ask("Type ERASE: ") == ""

    @pytest.mark.parametrize(
        "answer,expected",
        [("y", True), ("YES", True), (" yes ", True), ("", False), ("n", False), ("sure", False)],
    )
    def test_confirm(self, answer, expected):
        with patch("builtins.input", return_value=answer) as mock_input:
            assert TerminalPrompt().confirm("Install wimlib?") is expected
        mock_input.assert_called_once_with("Install wimlib? [y/N]: ")
