"""
Interactive event loop for the ghui dashboard.

One loop thread owns the Model. Each iteration it:
1. Drains result messages posted by background workers
2. Feeds a Tick with the current time
3. Renders the Model into a ``rich.live.Live`` display
4. Waits briefly for a key and feeds it to the state machine

Commands returned by the state machine are dispatched to the sync engine,
or run in the background (checkout, clipboard, browser). The editor is the
exception: it needs the terminal, so it runs on the loop thread with the
live display stopped.
"""

from __future__ import annotations

import logging
import os
import queue
import select
import shlex
import subprocess
import sys
import tempfile
import termios
import time
import tty
import webbrowser
from collections.abc import Callable, Iterable
from functools import partial
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.live import Live

from ghui.core.app.commands import (
    Checkout,
    Command,
    CopyToClipboard,
    DeleteLabel,
    Fetch,
    LoadCache,
    LoadLabels,
    OpenInEditor,
    OpenUrl,
    QuitApp,
    SaveLabel,
)
from ghui.core.app.keymap import normalize_key
from ghui.core.app.messages import (
    CheckoutCompleted,
    ClipboardResult,
    EditorClosed,
    KeyPressed,
    Message,
    Tick,
    UrlOpenFailed,
)
from ghui.core.app.model import Model
from ghui.core.app.update import init, update
from ghui.core.cache.store import CacheStore
from ghui.core.circleci.client import CircleCIClient
from ghui.core.config.loader import get_cache_path
from ghui.core.config.models import GhuiConfig
from ghui.core.errors import CheckoutError, ClipboardError, GhuiError
from ghui.core.github.client import GitHubClient
from ghui.core.github.models import RepoInfo
from ghui.core.providers import ProviderSet
from ghui.core.sync.engine import SyncEngine
from ghui.core.sync.loader import GatewayLoader
from ghui.core.vcs import VcsAdapter
from ghui.dashboard.renderer import DashboardRenderer
from ghui.utils.clipboard import copy_to_clipboard

logger = logging.getLogger(__name__)

# How long to wait for a key before ticking again.
TICK_SECONDS = 0.25
ESCAPE_TIMEOUT = 0.05


def read_key(fd: int, timeout: float) -> str | None:
    """
    Read one key press from a terminal in cbreak mode.

    Escape sequences (arrows, Shift-Tab) are read whole. A lone Escape is
    returned as ``"\\x1b"``.

    Returns:
        The raw key string, or None if nothing arrived within ``timeout``
    """
    ready, _, _ = select.select([fd], [], [], timeout)
    if not ready:
        return None

    data = os.read(fd, 1)
    if not data:
        return None
    lead = data[0]
    if lead >= 0xC0:
        # UTF-8 multi-byte character.
        extra = 1 if lead < 0xE0 else 2 if lead < 0xF0 else 3
        data += os.read(fd, extra)
    ch = data.decode("utf-8", errors="replace")

    if ch != "\x1b":
        return ch
    ready, _, _ = select.select([fd], [], [], ESCAPE_TIMEOUT)
    if not ready:
        return ch
    ch2 = os.read(fd, 1).decode("utf-8", errors="replace")
    if ch2 not in ("[", "O"):
        return ch + ch2
    ready, _, _ = select.select([fd], [], [], ESCAPE_TIMEOUT)
    if not ready:
        return ch + ch2
    return ch + ch2 + os.read(fd, 1).decode("utf-8", errors="replace")


def resolve_editor(configured: str | None = None) -> list[str]:
    """Editor command: config, then $VISUAL, then $EDITOR, then vi."""
    editor = configured or os.environ.get("VISUAL") or os.environ.get("EDITOR") or "vi"
    return shlex.split(editor)


def open_url(url: str) -> Message | None:
    """Open a URL in the browser; report failure so the URL can be shown instead."""
    try:
        opened = webbrowser.open(url)
    except webbrowser.Error as e:
        logger.info("Browser failed for %s: %s", url, e)
        opened = False
    return None if opened else UrlOpenFailed(url=url)


def copy_text(text: str, description: str) -> Message:
    try:
        copy_to_clipboard(text)
    except ClipboardError as e:
        return ClipboardResult(success=False, message=str(e))
    return ClipboardResult(success=True, message=f"Copied {description} to clipboard")


def checkout_branch(vcs: VcsAdapter, branch: str) -> Message:
    try:
        attempt = vcs.checkout(branch)
    except CheckoutError as e:
        return CheckoutCompleted(branch=branch, success=False, message=str(e))
    command = " ".join(attempt.steps[-1].command) if attempt.steps else branch
    return CheckoutCompleted(branch=branch, success=True, message=f"Checked out {branch} ({command})")


class Dashboard:
    """
    The running application: model, engine and display wired together.

    Example:
        >>> dashboard = build_dashboard(repo, config)
        >>> dashboard.run()
    """

    def __init__(
        self,
        model: Model,
        engine: SyncEngine,
        vcs: VcsAdapter,
        console: Console | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.model = model
        self.engine = engine
        self.vcs = vcs
        self.console = console or Console()
        self.renderer = DashboardRenderer(self.console)
        self.clock = clock
        self._live: Live | None = None
        self._fd: int | None = None
        self._saved_terminal: Any = None

    # ------------------------------------------------------------------
    # Message handling
    # ------------------------------------------------------------------

    def apply(self, msg: Message) -> None:
        _, commands = update(self.model, msg)
        self.dispatch(commands)

    def drain(self) -> int:
        """Apply every message waiting in the engine's outbox. Returns the count."""
        count = 0
        while True:
            try:
                msg = self.engine.outbox.get_nowait()
            except queue.Empty:
                return count
            self.apply(msg)
            count += 1

    def dispatch(self, commands: Iterable[Command]) -> None:
        for command in commands:
            logger.debug("Dispatching %s", type(command).__name__)
            if isinstance(command, Fetch):
                generation = self.engine.request(command)
                if generation != command.generation:
                    # Coalesced onto a fetch already in flight; wait for that one.
                    self.model.pending[command.key] = generation
            elif isinstance(command, LoadCache):
                self.engine.load_cached(command.keys)
            elif isinstance(command, LoadLabels):
                self.engine.load_labels()
            elif isinstance(command, SaveLabel):
                self.engine.save_label(command.label_name, command.global_scope)
            elif isinstance(command, DeleteLabel):
                self.engine.delete_label(command.label_id)
            elif isinstance(command, Checkout):
                self.engine.run_background(partial(checkout_branch, self.vcs, command.branch))
            elif isinstance(command, CopyToClipboard):
                self.engine.run_background(partial(copy_text, command.text, command.description))
            elif isinstance(command, OpenUrl):
                self.engine.run_background(partial(open_url, command.url))
            elif isinstance(command, OpenInEditor):
                self.apply(self._open_in_editor(command))
            elif isinstance(command, QuitApp):
                self.model.quitting = True

    # ------------------------------------------------------------------
    # Terminal
    # ------------------------------------------------------------------

    def run(self) -> None:
        """
        Run until the user quits.

        Raises:
            GhuiError: If stdin is not an interactive terminal
        """
        if not sys.stdin.isatty():
            raise GhuiError("ghui needs an interactive terminal")

        self.model.now = self.clock()
        self.dispatch(init(self.model))

        self._fd = sys.stdin.fileno()
        self._saved_terminal = termios.tcgetattr(self._fd)
        tty.setcbreak(self._fd)
        try:
            with Live(
                self.renderer.render(self.model),
                console=self.console,
                auto_refresh=False,
                screen=True,
            ) as live:
                self._live = live
                self._loop(live)
        finally:
            self._live = None
            termios.tcsetattr(self._fd, termios.TCSADRAIN, self._saved_terminal)
            self.engine.shutdown()

    def _loop(self, live: Live) -> None:
        assert self._fd is not None
        while not self.model.quitting:
            self.drain()
            self.apply(Tick(now=self.clock()))
            if self.model.quitting:
                break
            live.update(self.renderer.render(self.model), refresh=True)

            raw = read_key(self._fd, TICK_SECONDS)
            if raw is not None:
                key = normalize_key(raw)
                logger.debug("Key pressed: %r", key)
                self.apply(KeyPressed(key=key))

    def _open_in_editor(self, command: OpenInEditor) -> EditorClosed:
        directory = Path(tempfile.mkdtemp(prefix="ghui-"))
        path = directory / command.filename
        path.write_text(command.content, encoding="utf-8")
        editor = resolve_editor(self.model.config.ui.editor)

        self._suspend()
        try:
            result = subprocess.run([*editor, str(path)], check=False)
        except OSError as e:
            return EditorClosed(error=f"Could not start {editor[0]}: {e}")
        finally:
            self._resume()

        if result.returncode != 0:
            return EditorClosed(error=f"{editor[0]} exited with status {result.returncode}")
        return EditorClosed()

    def _suspend(self) -> None:
        if self._live is not None:
            self._live.stop()
        if self._fd is not None:
            termios.tcsetattr(self._fd, termios.TCSADRAIN, self._saved_terminal)

    def _resume(self) -> None:
        if self._fd is not None:
            tty.setcbreak(self._fd)
        if self._live is not None:
            self._live.start(refresh=True)


def build_dashboard(
    repo: RepoInfo,
    config: GhuiConfig,
    cwd: Path | None = None,
    console: Console | None = None,
) -> Dashboard:
    """Wire the gateways, cache, engine and model for one repository."""
    store = CacheStore(get_cache_path(config))
    github = GitHubClient(repo)
    providers = ProviderSet(github, CircleCIClient(repo))
    engine = SyncEngine(store, GatewayLoader(github, providers), owner=repo.owner, repo=repo.repo)
    model = Model(repo=repo, config=config)
    return Dashboard(model, engine, VcsAdapter(cwd), console=console)
