"""
Logging setup.

The terminal belongs to the dashboard while ghui runs, so log records go to a
file under ``$XDG_STATE_HOME/ghui`` instead of stderr.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ghui.core.config.loader import get_log_path

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(debug: bool = False, log_path: Path | None = None) -> Path:
    """
    Configure logging for the ghui process.

    Args:
        debug: If True, log at DEBUG level (WARNING otherwise)
        log_path: Log file (defaults to $XDG_STATE_HOME/ghui/ghui.log)

    Returns:
        The log file path
    """
    path = log_path or get_log_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        filename=str(path),
    )
    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.DEBUG if debug else logging.WARNING)
    return path
