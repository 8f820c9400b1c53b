"""
GitHub integration for ghui.

Pull request search, previews, checks, job logs and annotations.
"""

from ghui.core.github.client import GitHubClient, get_github_token
from ghui.core.github.models import (
    ActionsData,
    CheckAnnotation,
    CiStatus,
    JobLogs,
    JobStep,
    PreviewData,
    PullRequest,
    RepoInfo,
    Tab,
    WorkflowJob,
    WorkflowRun,
)

__all__ = [
    "ActionsData",
    "CheckAnnotation",
    "CiStatus",
    "GitHubClient",
    "JobLogs",
    "JobStep",
    "PreviewData",
    "PullRequest",
    "RepoInfo",
    "Tab",
    "WorkflowJob",
    "WorkflowRun",
    "get_github_token",
]
