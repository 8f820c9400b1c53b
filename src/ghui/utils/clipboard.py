"""
System clipboard access through the platform's command-line tools.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import sys

from ghui.core.errors import ClipboardError

logger = logging.getLogger(__name__)


def clipboard_commands() -> list[list[str]]:
    """Candidate clipboard commands for this platform, in preference order."""
    if sys.platform == "darwin":
        return [["pbcopy"]]
    if os.name == "nt":
        return [["clip"]]
    return [
        ["wl-copy"],
        ["xclip", "-selection", "clipboard"],
        ["xsel", "--clipboard", "--input"],
    ]


def copy_to_clipboard(text: str) -> None:
    """
    Copy text to the system clipboard.

    Tries each available clipboard tool until one succeeds.

    Raises:
        ClipboardError: If no tool is installed or every tool failed
    """
    available = [cmd for cmd in clipboard_commands() if shutil.which(cmd[0]) is not None]
    if not available:
        raise ClipboardError("No clipboard tool found (install wl-copy, xclip or xsel)")

    errors: list[str] = []
    for command in available:
        try:
            result = subprocess.run(
                command,
                input=text,
                text=True,
                capture_output=True,
                check=False,
                timeout=5,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            errors.append(f"{command[0]}: {e}")
            continue
        if result.returncode == 0:
            logger.debug("Copied %d characters with %s", len(text), command[0])
            return
        errors.append(f"{command[0]}: {result.stderr.strip() or f'exit {result.returncode}'}")

    raise ClipboardError("Clipboard copy failed: " + "; ".join(errors))
