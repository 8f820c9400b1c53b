"""
Data models for pull requests and CI results.

Defines Pydantic models for everything ghui fetches from GitHub and CircleCI.
Payload models round-trip through JSON so they can be written to the cache
as-is (``model_dump(mode="json")`` / ``model_validate``).
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field


class Tab(str, Enum):
    """Which pull requests a tab of the main list shows."""

    MY_PRS = "MyPRs"
    REVIEW_REQUESTED = "ReviewRequested"
    LABELS = "Labels"

    @property
    def title(self) -> str:
        return {
            Tab.MY_PRS: "My PRs",
            Tab.REVIEW_REQUESTED: "Review Requested",
            Tab.LABELS: "Labels",
        }[self]


class CiStatus(str, Enum):
    """Rolled-up CI status of a pull request's head commit."""

    UNKNOWN = "unknown"
    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"

    @classmethod
    def from_rollup(cls, state: str | None) -> CiStatus:
        """Map a GitHub statusCheckRollup state to a CiStatus."""
        value = (state or "").upper()
        if value == "PENDING":
            return cls.PENDING
        if value == "SUCCESS":
            return cls.SUCCESS
        if value in ("FAILURE", "ERROR"):
            return cls.FAILURE
        return cls.UNKNOWN

    @property
    def label(self) -> str:
        return {
            CiStatus.UNKNOWN: "N/A",
            CiStatus.PENDING: "● Pending",
            CiStatus.SUCCESS: "✓ Passing",
            CiStatus.FAILURE: "✗ Failing",
        }[self]

    @property
    def style(self) -> str:
        return {
            CiStatus.UNKNOWN: "dim",
            CiStatus.PENDING: "yellow",
            CiStatus.SUCCESS: "green",
            CiStatus.FAILURE: "red",
        }[self]


class RepoInfo(BaseModel):
    """
    GitHub repository information.

    Parsed from git remote URL (SSH or HTTPS format).

    Example:
        >>> RepoInfo.from_remote_url("git@github.com:user/repo.git")
        RepoInfo(owner='user', repo='repo')
        >>> RepoInfo.from_remote_url("https://github.com/user/repo")
        RepoInfo(owner='user', repo='repo')
    """

    owner: str = Field(..., description="Repository owner (user or organization)")
    repo: str = Field(..., description="Repository name")

    @computed_field
    @property
    def full_name(self) -> str:
        """Full repository name (owner/repo)."""
        return f"{self.owner}/{self.repo}"

    @computed_field
    @property
    def url(self) -> str:
        """GitHub URL for the repository."""
        return f"https://github.com/{self.owner}/{self.repo}"

    @classmethod
    def from_remote_url(cls, remote_url: str) -> RepoInfo | None:
        """
        Parse repository info from a git remote URL.

        Handles formats:
        - git@github.com:user/repo.git
        - ssh://git@github.com/user/repo.git
        - https://github.com/user/repo.git
        - https://github.com/user/repo

        Args:
            remote_url: Git remote URL

        Returns:
            RepoInfo or None if not a GitHub URL
        """
        if not remote_url:
            return None
        remote_url = remote_url.strip()

        ssh_match = re.match(
            r"(?:ssh://)?git@github\.com[:/]([^/]+)/([^/]+?)(?:\.git)?/?$",
            remote_url,
        )
        if ssh_match:
            return cls(owner=ssh_match.group(1), repo=ssh_match.group(2))

        https_match = re.match(
            r"https?://(?:[^@/]+@)?github\.com/([^/]+)/([^/]+?)(?:\.git)?/?$",
            remote_url,
        )
        if https_match:
            return cls(owner=https_match.group(1), repo=https_match.group(2))

        return None


class PullRequest(BaseModel):
    """
    An open pull request as shown in the main list.

    Instances are frozen: a refresh replaces the whole list rather than
    patching individual fields.
    """

    model_config = ConfigDict(frozen=True)

    owner: str
    repo: str
    number: int
    title: str
    author: str = "unknown"
    branch: str = ""
    ci_status: CiStatus = CiStatus.UNKNOWN
    labels: tuple[str, ...] = ()
    updated_at: str | None = None
    head_sha: str | None = None

    @property
    def identity(self) -> tuple[str, str, int]:
        return (self.owner, self.repo, self.number)

    @property
    def url(self) -> str:
        return f"https://github.com/{self.owner}/{self.repo}/pull/{self.number}"

    @property
    def search_text(self) -> str:
        """Text the fuzzy finder matches against."""
        return f"#{self.number} {self.author} {self.title} {self.branch} {self.ci_status.label}"

    @classmethod
    def from_search_node(cls, node: dict[str, Any], owner: str, repo: str) -> PullRequest:
        """
        Create a PullRequest from a GraphQL search node.

        Args:
            node: ``PullRequest`` node from the search query
            owner: Repository owner
            repo: Repository name

        Returns:
            PullRequest instance
        """
        commits = (node.get("commits") or {}).get("nodes") or []
        commit = commits[0].get("commit", {}) if commits else {}
        rollup = commit.get("statusCheckRollup") or {}
        author = node.get("author") or {}
        label_nodes = (node.get("labels") or {}).get("nodes") or []

        return cls(
            owner=owner,
            repo=repo,
            number=int(node["number"]),
            title=str(node.get("title", "")),
            author=str(author.get("login") or "unknown"),
            branch=str(node.get("headRefName") or ""),
            ci_status=CiStatus.from_rollup(rollup.get("state")),
            labels=tuple(str(label["name"]) for label in label_nodes if label.get("name")),
            updated_at=node.get("updatedAt"),
            head_sha=commit.get("oid"),
        )


# ============================================================================
# Workflow data
# ============================================================================


class WorkflowStatus(str, Enum):
    """Execution status of a check suite, check run or CircleCI job."""

    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    WAITING = "waiting"
    REQUESTED = "requested"
    PENDING = "pending"
    UNKNOWN = "unknown"

    @classmethod
    def from_github(cls, value: str | None) -> WorkflowStatus:
        try:
            return cls((value or "").lower())
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_running(self) -> bool:
        """Whether results for this status may still change."""
        return self not in (WorkflowStatus.COMPLETED, WorkflowStatus.UNKNOWN)


class WorkflowConclusion(str, Enum):
    """Final outcome of a completed check."""

    SUCCESS = "success"
    FAILURE = "failure"
    CANCELLED = "cancelled"
    SKIPPED = "skipped"
    TIMED_OUT = "timed_out"
    ACTION_REQUIRED = "action_required"
    NEUTRAL = "neutral"
    STALE = "stale"
    STARTUP_FAILURE = "startup_failure"
    NONE = "none"

    @classmethod
    def from_github(cls, value: str | None) -> WorkflowConclusion | None:
        if value is None:
            return None
        try:
            return cls(value.lower())
        except ValueError:
            return cls.NONE

    @property
    def is_failure(self) -> bool:
        return self in (
            WorkflowConclusion.FAILURE,
            WorkflowConclusion.TIMED_OUT,
            WorkflowConclusion.STARTUP_FAILURE,
        )


class AnnotationLevel(str, Enum):
    """Severity of a check annotation."""

    NOTICE = "notice"
    WARNING = "warning"
    FAILURE = "failure"

    @classmethod
    def from_github(cls, value: str | None) -> AnnotationLevel:
        try:
            return cls((value or "").lower())
        except ValueError:
            return cls.NOTICE


class CheckAnnotation(BaseModel):
    """A file/line annotation attached to a check run."""

    path: str
    start_line: int = 0
    end_line: int = 0
    level: AnnotationLevel = AnnotationLevel.NOTICE
    message: str = ""
    title: str | None = None

    @property
    def location(self) -> str:
        if self.end_line and self.end_line != self.start_line:
            return f"{self.path}:{self.start_line}-{self.end_line}"
        return f"{self.path}:{self.start_line}"

    def format_for_copy(self) -> str:
        """Plain-text form used when copying annotations."""
        header = f"{self.location} [{self.level.value.upper()}]"
        if self.title:
            header = f"{header} {self.title}"
        return f"{header}\n{self.message}"


class WorkflowJob(BaseModel):
    """One check run (GitHub) or job (CircleCI) inside a workflow run."""

    id: int
    name: str
    status: WorkflowStatus = WorkflowStatus.UNKNOWN
    conclusion: WorkflowConclusion | None = None
    started_at: str | None = None
    completed_at: str | None = None
    details_url: str | None = None
    summary: str | None = None
    text: str | None = None
    annotation_count: int = 0

    @property
    def is_failed(self) -> bool:
        return self.conclusion is not None and self.conclusion.is_failure

    @property
    def symbol(self) -> tuple[str, str]:
        """Status glyph and rich style for the workflows view."""
        if self.status.is_running:
            return "●", "yellow"
        if self.conclusion == WorkflowConclusion.SUCCESS:
            return "✓", "green"
        if self.is_failed:
            return "✗", "red"
        if self.conclusion in (WorkflowConclusion.SKIPPED, WorkflowConclusion.NEUTRAL):
            return "○", "dim"
        if self.conclusion == WorkflowConclusion.CANCELLED:
            return "⊘", "dim"
        return "?", "dim"


class WorkflowRun(BaseModel):
    """A check suite, CircleCI workflow, or the legacy commit-status group."""

    id: int
    name: str
    status: WorkflowStatus = WorkflowStatus.UNKNOWN
    conclusion: WorkflowConclusion | None = None
    html_url: str = ""
    jobs: list[WorkflowJob] = Field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""

    @property
    def is_running(self) -> bool:
        return self.status.is_running or any(job.status.is_running for job in self.jobs)


class JobStep(BaseModel):
    """A foldable section of a job log."""

    name: str
    status: str = "unknown"
    output: str = ""
    is_failed: bool = False
    sub_steps: list[JobStep] | None = None


class JobLogs(BaseModel):
    """Log content for a single job, optionally split into steps."""

    job_id: int
    job_name: str
    content: str = ""
    steps: list[JobStep] | None = None

    @property
    def failed_steps(self) -> list[JobStep]:
        failed: list[JobStep] = []
        for step in self.steps or []:
            if step.sub_steps:
                failed.extend(sub for sub in step.sub_steps if sub.is_failed)
            elif step.is_failed:
                failed.append(step)
        return failed


class ActionsData(BaseModel):
    """All CI results for one pull request's head commit."""

    pr_number: int
    workflow_runs: list[WorkflowRun] = Field(default_factory=list)
    circleci_available: bool = True
    circleci_error: str | None = None

    @property
    def has_running_jobs(self) -> bool:
        return any(run.is_running for run in self.workflow_runs)

    def flat_jobs(self) -> list[tuple[WorkflowRun, WorkflowJob]]:
        """Jobs in display order, paired with their run."""
        return [(run, job) for run in self.workflow_runs for job in run.jobs]


# ============================================================================
# Preview data
# ============================================================================


class PrComment(BaseModel):
    """The PR description, a comment, or a review shown in the preview."""

    author: str
    body: str
    created_at: str = ""
    is_pr_body: bool = False


class PreviewData(BaseModel):
    """Description and conversation of a pull request."""

    pr_number: int
    title: str
    comments: list[PrComment] = Field(default_factory=list)

    def to_markdown(self) -> str:
        """Render the conversation as one markdown document."""
        parts = [f"# #{self.pr_number} {self.title}"]
        if not self.comments:
            parts.append("_No description provided._")
        for comment in self.comments:
            if comment.is_pr_body:
                parts.append(f"**@{comment.author}** opened this pull request\n\n{comment.body}")
            else:
                stamp = comment.created_at[:10] if comment.created_at else ""
                parts.append(f"---\n\n**@{comment.author}** {stamp}\n\n{comment.body}")
        return "\n\n".join(parts)
