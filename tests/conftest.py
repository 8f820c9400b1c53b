"""
Pytest configuration and shared fixtures.

Provides sample pull requests, workflow data, a fresh Model, an isolated
XDG environment, and an executor that runs submitted work inline so the
sync engine can be tested deterministically.
"""

from concurrent.futures import Executor, Future
from typing import Any, Callable

import pytest

from ghui.core.app.model import Model
from ghui.core.config.models import GhuiConfig
from ghui.core.github.models import (
    ActionsData,
    CiStatus,
    PullRequest,
    RepoInfo,
    WorkflowConclusion,
    WorkflowJob,
    WorkflowRun,
    WorkflowStatus,
)

# ==============================================================================
# Environment Fixtures
# ==============================================================================


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Point XDG directories at tmp_path and drop tokens from the environment."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path / "state"))
    for name in (
        "GH_TOKEN",
        "GITHUB_TOKEN",
        "CIRCLECI_TOKEN",
        "GHUI_REFRESH_INTERVAL",
        "GHUI_ACTIONS_POLL_INTERVAL",
        "GHUI_EXIT_AFTER_CHECKOUT",
        "GHUI_CACHE_PATH",
    ):
        monkeypatch.delenv(name, raising=False)
    return tmp_path


# ==============================================================================
# Domain Fixtures
# ==============================================================================


@pytest.fixture
def repo():
    return RepoInfo(owner="octo", repo="hello")


def make_pr(number: int, title: str = "", **kwargs: Any) -> PullRequest:
    """Build a PullRequest for octo/hello."""
    defaults: dict[str, Any] = {
        "owner": "octo",
        "repo": "hello",
        "number": number,
        "title": title or f"Change number {number}",
        "author": "alice",
        "branch": f"feature-{number}",
        "ci_status": CiStatus.SUCCESS,
    }
    defaults.update(kwargs)
    return PullRequest(**defaults)


@pytest.fixture
def sample_prs():
    return [
        make_pr(1, "Fix login redirect", author="alice", branch="fix-login"),
        make_pr(2, "Add dark mode", author="bob", branch="dark-mode", ci_status=CiStatus.FAILURE),
        make_pr(3, "Bump dependencies", author="carol", branch="deps", ci_status=CiStatus.PENDING),
    ]


def make_actions(pr_number: int = 1, running: bool = False, annotations: int = 0) -> ActionsData:
    """ActionsData with one run holding a failed job and a passing job."""
    status = WorkflowStatus.IN_PROGRESS if running else WorkflowStatus.COMPLETED
    return ActionsData(
        pr_number=pr_number,
        workflow_runs=[
            WorkflowRun(
                id=42,
                name="CI",
                status=status,
                html_url="https://github.com/octo/hello/actions/runs/42",
                jobs=[
                    WorkflowJob(
                        id=101,
                        name="tests",
                        status=WorkflowStatus.COMPLETED,
                        conclusion=WorkflowConclusion.FAILURE,
                        details_url="https://github.com/octo/hello/runs/101",
                        annotation_count=annotations,
                    ),
                    WorkflowJob(
                        id=102,
                        name="lint",
                        status=status,
                        conclusion=None if running else WorkflowConclusion.SUCCESS,
                        details_url="https://github.com/octo/hello/runs/102",
                    ),
                ],
            )
        ],
    )


@pytest.fixture
def config():
    return GhuiConfig()


@pytest.fixture
def model(repo, config):
    return Model(repo=repo, config=config, now=1000.0)


# ==============================================================================
# Executor Fixtures
# ==============================================================================


class InlineExecutor(Executor):
    """Runs submitted callables immediately on the calling thread."""

    def __init__(self) -> None:
        self.submitted = 0

    def submit(self, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Future:
        self.submitted += 1
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


class DeferredExecutor(Executor):
    """Queues submitted callables until ``run_all`` (or ``run``) is called."""

    def __init__(self) -> None:
        self.pending: list[tuple[Callable[..., Any], tuple[Any, ...]]] = []

    def submit(self, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Future:
        self.pending.append((fn, args))
        return Future()

    def run(self, index: int) -> None:
        fn, args = self.pending.pop(index)
        fn(*args)

    def run_all(self) -> None:
        while self.pending:
            self.run(0)


@pytest.fixture
def inline_executor():
    return InlineExecutor()


@pytest.fixture
def deferred_executor():
    return DeferredExecutor()
