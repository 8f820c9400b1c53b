"""
ghui CLI - Main application entry point.

Running ``ghui`` inside a clone of a GitHub repository opens the dashboard.
The options manage the local cache or print the version instead.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from ghui import __version__
from ghui.core.cache.store import CacheStore
from ghui.core.config.env import load_layered_env
from ghui.core.config.loader import get_cache_path, load_config
from ghui.core.errors import CacheError, GhuiError
from ghui.core.vcs import VcsAdapter
from ghui.dashboard.runtime import build_dashboard
from ghui.utils.log import setup_logging

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="ghui",
    help="Terminal dashboard for GitHub pull requests and CI",
    no_args_is_help=False,
    invoke_without_command=True,
    add_completion=False,
    context_settings={"help_option_names": ["--help", "-h"]},
)

console = Console()
err_console = Console(stderr=True)


def version_callback(value: bool) -> None:
    if value:
        console.print(f"ghui version {__version__}")
        raise typer.Exit(0)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    clear_cache: bool = typer.Option(
        False,
        "--clear-cache",
        help="Delete cached pull requests and CI data, then exit (label filters are kept)",
    ),
    reset: bool = typer.Option(
        False,
        "--reset",
        help="Delete the cache and all label filters, then exit",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Write debug logging to $XDG_STATE_HOME/ghui/ghui.log",
    ),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """
    ghui - pull requests and CI for the repository in the current directory.

    Tabs list your open PRs, PRs awaiting your review, and PRs matching your
    label filters. Drill into a PR's description, its workflows, job logs and
    check annotations; copy failures; check out the branch.

    Press ? inside the dashboard for key bindings.
    """
    load_layered_env()
    config = load_config()

    if clear_cache or reset:
        _clear_cache(get_cache_path(config), include_labels=reset)
        raise typer.Exit(0)

    log_path = setup_logging(debug)
    logger.info("Starting ghui %s", __version__)

    repo = VcsAdapter(Path.cwd()).repo_info()
    if repo is None:
        err_console.print(
            "[red]Error:[/red] not inside a GitHub repository "
            "(no github.com remote named origin)"
        )
        raise typer.Exit(1)

    dashboard = build_dashboard(repo, config, cwd=Path.cwd(), console=console)
    try:
        dashboard.run()
    except GhuiError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        raise typer.Exit(130)

    if debug:
        console.print(f"[dim]Debug log: {log_path}[/dim]")


def _clear_cache(path: Path, include_labels: bool) -> None:
    try:
        CacheStore(path).clear_all(include_labels=include_labels)
    except CacheError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    what = "Cache and label filters" if include_labels else "Cache"
    console.print(f"[green]✓[/green] {what} cleared ({path})")


def cli_main() -> None:
    """Main CLI entry point."""
    app()


__all__ = ["app", "cli_main"]
