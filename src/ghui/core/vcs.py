"""
Version control adapter.

Detects whether the working copy is managed by plain git or by jujutsu
(a commit-graph VCS layered on a git backend) and checks out pull request
branches accordingly.

Checkout is an explicit sequence of attempts: git needs a single
``git switch``; jujutsu first tries to edit the existing commit for the
branch and falls back to starting a new change on the remote branch tip
(the local commit may be immutable or unknown). Only the final outcome is
reported.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from ghui.core.errors import CheckoutError
from ghui.core.github.models import RepoInfo

logger = logging.getLogger(__name__)

DAG_METADATA_DIR = ".jj"


class VcsKind(str, Enum):
    """Kind of version control system managing the working copy."""

    STANDARD = "git"
    ALTERNATE_DAG = "jj"


@dataclass
class CheckoutStep:
    """One command tried during a checkout."""

    command: list[str]
    succeeded: bool = False
    error: str | None = None


@dataclass
class CheckoutAttempt:
    """Record of a checkout: the steps tried and which one succeeded."""

    branch: str
    kind: VcsKind
    steps: list[CheckoutStep] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return any(step.succeeded for step in self.steps)

    @property
    def failures(self) -> list[str]:
        return [
            f"{' '.join(step.command[:2])}: {step.error}"
            for step in self.steps
            if not step.succeeded and step.error
        ]


def checkout_plan(kind: VcsKind, branch: str) -> list[list[str]]:
    """Commands to try, in order, to check out ``branch``."""
    if kind == VcsKind.ALTERNATE_DAG:
        return [
            ["jj", "edit", branch],
            ["jj", "new", f"{branch}@origin"],
        ]
    return [["git", "switch", branch]]


class VcsAdapter:
    """
    VCS operations for the repository in ``cwd``.

    Example:
        >>> vcs = VcsAdapter(Path.cwd())
        >>> vcs.detect()
        <VcsKind.STANDARD: 'git'>
    """

    def __init__(self, cwd: Path | None = None) -> None:
        self.cwd = cwd if cwd is not None else Path.cwd()

    def detect(self) -> VcsKind:
        """
        Detect the VCS kind by probing for jujutsu metadata.

        Looks in the working directory and each of its parents.
        """
        for directory in (self.cwd, *self.cwd.parents):
            if (directory / DAG_METADATA_DIR).is_dir():
                return VcsKind.ALTERNATE_DAG
        return VcsKind.STANDARD

    def remote_url(self) -> str | None:
        """
        Get the URL of the ``origin`` remote.

        Returns:
            Remote URL or None if there is no origin or git is unavailable
        """
        try:
            result = subprocess.run(
                ["git", "remote", "get-url", "origin"],
                cwd=self.cwd,
                capture_output=True,
                text=True,
                check=False,
            )
        except (OSError, FileNotFoundError):
            return None
        if result.returncode != 0:
            return None
        url = result.stdout.strip()
        return url or None

    def repo_info(self) -> RepoInfo | None:
        """Owner and name of the GitHub repository behind ``origin``."""
        url = self.remote_url()
        return RepoInfo.from_remote_url(url) if url else None

    def checkout(self, branch: str) -> CheckoutAttempt:
        """
        Check out a branch.

        Args:
            branch: Branch name (the PR head ref)

        Returns:
            The successful CheckoutAttempt

        Raises:
            CheckoutError: If every step of the plan failed
        """
        kind = self.detect()
        attempt = CheckoutAttempt(branch=branch, kind=kind)

        for command in checkout_plan(kind, branch):
            step = self._run_step(command)
            attempt.steps.append(step)
            if step.succeeded:
                logger.info("Checked out %s with %s", branch, " ".join(command))
                return attempt
            logger.debug("Checkout step failed: %s: %s", " ".join(command), step.error)

        raise CheckoutError(branch, attempt.failures)

    def _run_step(self, command: list[str]) -> CheckoutStep:
        step = CheckoutStep(command=command)
        try:
            result = subprocess.run(
                command,
                cwd=self.cwd,
                capture_output=True,
                text=True,
                check=False,
            )
        except (OSError, FileNotFoundError) as e:
            step.error = str(e)
            return step

        if result.returncode == 0:
            step.succeeded = True
        else:
            step.error = (result.stderr or result.stdout).strip() or f"exit code {result.returncode}"
        return step
