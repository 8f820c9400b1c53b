"""
Tokens and overrides from .env files.

GH_TOKEN, CIRCLECI_TOKEN and the GHUI_* overrides are read from the
environment. Before anything reads them, the CLI folds in two optional
dotenv files, with this precedence:

    shell environment > project .env > user .env (~/.config/ghui/.env)
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable

from dotenv import dotenv_values

from .loader import get_xdg_config_home

logger = logging.getLogger(__name__)


def read_dotenv(paths: Iterable[Path]) -> dict[str, str]:
    """Merge dotenv files in order; later files win. Missing files are skipped."""
    values: dict[str, str] = {}
    for path in paths:
        path = Path(path)
        if not path.is_file():
            continue
        parsed = {k: v for k, v in dotenv_values(path).items() if k and v is not None}
        logger.debug("Read %d variables from %s", len(parsed), path)
        values.update(parsed)
    return values


def load_layered_env(
    *,
    project_dir: Path | None = None,
    user_env_paths: Iterable[Path] | None = None,
    project_env_paths: Iterable[Path] | None = None,
) -> None:
    """
    Export dotenv values into ``os.environ`` without touching shell variables.

    Args:
        project_dir: Directory holding the project .env (defaults to cwd)
        user_env_paths: Override the user-level .env location(s)
        project_env_paths: Override the project-level .env location(s)
    """
    if user_env_paths is None:
        user_env_paths = [get_xdg_config_home() / "ghui" / ".env"]
    if project_env_paths is None:
        project_env_paths = [(project_dir or Path.cwd()) / ".env"]

    layered = read_dotenv([*user_env_paths, *project_env_paths])
    shell = set(os.environ)
    for name, value in layered.items():
        if name not in shell:
            os.environ[name] = value
