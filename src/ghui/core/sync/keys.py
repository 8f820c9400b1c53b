"""
Resource keys and payload codecs.

A resource key names one cacheable unit of remote data, e.g. the PR list of a
tab or the workflows of one PR. Its string form doubles as the cache key::

    PRs:owner/repo:MyPRs
    Preview:owner/repo:42
    Workflows:owner/repo:42
    JobLogs:owner/repo:7/123456
    Annotations:owner/repo:123456
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from ghui.core.github.models import (
    ActionsData,
    CheckAnnotation,
    JobLogs,
    PreviewData,
    PullRequest,
    Tab,
)


class ResourceKind(str, Enum):
    """Kind of remote resource."""

    PRS = "PRs"
    PREVIEW = "Preview"
    WORKFLOWS = "Workflows"
    JOB_LOGS = "JobLogs"
    ANNOTATIONS = "Annotations"

    @property
    def is_persistent(self) -> bool:
        """Whether results are written to the cache database.

        Only PR lists are read back at startup; everything else lives for the
        session only.
        """
        return self == ResourceKind.PRS

    @property
    def is_pr_scoped(self) -> bool:
        return self in (ResourceKind.PREVIEW, ResourceKind.WORKFLOWS)


@dataclass(frozen=True)
class ResourceKey:
    """Identifier of a cacheable resource."""

    kind: ResourceKind
    repo: str
    scope: str

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.repo}:{self.scope}"

    @classmethod
    def parse(cls, value: str) -> ResourceKey:
        kind, repo, scope = value.split(":", 2)
        return cls(ResourceKind(kind), repo, scope)

    @classmethod
    def prs(cls, repo: str, tab: Tab) -> ResourceKey:
        return cls(ResourceKind.PRS, repo, tab.value)

    @classmethod
    def preview(cls, repo: str, pr_number: int) -> ResourceKey:
        return cls(ResourceKind.PREVIEW, repo, str(pr_number))

    @classmethod
    def workflows(cls, repo: str, pr_number: int) -> ResourceKey:
        return cls(ResourceKind.WORKFLOWS, repo, str(pr_number))

    @classmethod
    def job_logs(cls, repo: str, run_id: int, job_id: int) -> ResourceKey:
        return cls(ResourceKind.JOB_LOGS, repo, f"{run_id}/{job_id}")

    @classmethod
    def annotations(cls, repo: str, job_id: int) -> ResourceKey:
        return cls(ResourceKind.ANNOTATIONS, repo, str(job_id))

    @property
    def tab(self) -> Tab | None:
        if self.kind != ResourceKind.PRS:
            return None
        return Tab(self.scope)

    @property
    def pr_number(self) -> int | None:
        if not self.kind.is_pr_scoped:
            return None
        return int(self.scope)


def encode_payload(value: Any) -> Any:
    """Convert a fetched value to JSON-compatible data."""
    if isinstance(value, list):
        return [item.model_dump(mode="json") for item in value]
    return value.model_dump(mode="json")


def decode_payload(kind: ResourceKind, payload: Any) -> Any:
    """Rebuild the typed value for a resource kind from JSON data.

    Raises:
        pydantic.ValidationError: If the payload does not match the model
    """
    if kind == ResourceKind.PRS:
        return [PullRequest.model_validate(item) for item in payload]
    if kind == ResourceKind.PREVIEW:
        return PreviewData.model_validate(payload)
    if kind == ResourceKind.WORKFLOWS:
        return ActionsData.model_validate(payload)
    if kind == ResourceKind.JOB_LOGS:
        return JobLogs.model_validate(payload)
    return [CheckAnnotation.model_validate(item) for item in payload]
