"""
Tests for clipboard access.
"""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from ghui.core.errors import ClipboardError
from ghui.utils.clipboard import clipboard_commands, copy_to_clipboard


def which_only(*names):
    return lambda name: f"/usr/bin/{name}" if name in names else None


class TestClipboardCommands:
    """Tests for clipboard_commands()."""

    @patch("ghui.utils.clipboard.sys.platform", "darwin")
    def test_macos(self) -> None:
        assert clipboard_commands() == [["pbcopy"]]

    @patch("ghui.utils.clipboard.os.name", "posix")
    @patch("ghui.utils.clipboard.sys.platform", "linux")
    def test_linux_prefers_wayland(self) -> None:
        assert clipboard_commands()[0] == ["wl-copy"]


@patch("ghui.utils.clipboard.os.name", "posix")
@patch("ghui.utils.clipboard.sys.platform", "linux")
class TestCopyToClipboard:
    """Tests for copy_to_clipboard()."""

    @patch("ghui.utils.clipboard.shutil.which", return_value=None)
    def test_no_tool_installed(self, mock_which) -> None:
        with pytest.raises(ClipboardError, match="No clipboard tool found"):
            copy_to_clipboard("text")

    @patch("ghui.utils.clipboard.subprocess.run")
    @patch("ghui.utils.clipboard.shutil.which", side_effect=which_only("xclip"))
    def test_uses_available_tool(self, mock_which, mock_run) -> None:
        mock_run.return_value = MagicMock(returncode=0, stderr="")

        copy_to_clipboard("FAILED test_x")

        mock_run.assert_called_once()
        assert mock_run.call_args[0][0] == ["xclip", "-selection", "clipboard"]
        assert mock_run.call_args[1]["input"] == "FAILED test_x"

    @patch("ghui.utils.clipboard.subprocess.run")
    @patch("ghui.utils.clipboard.shutil.which", side_effect=which_only("wl-copy", "xsel"))
    def test_falls_back_to_next_tool(self, mock_which, mock_run) -> None:
        mock_run.side_effect = [
            MagicMock(returncode=1, stderr="no wayland display"),
            MagicMock(returncode=0, stderr=""),
        ]

        copy_to_clipboard("text")

        assert [call[0][0][0] for call in mock_run.call_args_list] == ["wl-copy", "xsel"]

    @patch("ghui.utils.clipboard.subprocess.run")
    @patch("ghui.utils.clipboard.shutil.which", side_effect=which_only("wl-copy", "xclip"))
    def test_every_tool_fails(self, mock_which, mock_run) -> None:
        mock_run.side_effect = [
            MagicMock(returncode=1, stderr="no wayland display"),
            subprocess.TimeoutExpired(cmd="xclip", timeout=5),
        ]

        with pytest.raises(ClipboardError) as exc_info:
            copy_to_clipboard("text")

        message = str(exc_info.value)
        assert message.startswith("Clipboard copy failed: ")
        assert "wl-copy: no wayland display" in message
        assert "xclip:" in message
