"""
CI providers.

A closed set of providers behind one capability interface: GitHub Actions
(check runs on the PR's head commit) and CircleCI. ``ProviderSet`` merges
their workflow lists and routes each job to the provider that owns it.
CircleCI is optional; when it is unconfigured or failing, its jobs are still
listed from GitHub's check suites and the workflows view says CircleCI is
unavailable.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from ghui.core.circleci.client import CircleCIClient, extract_job_number_from_url, is_circleci_url
from ghui.core.errors import GatewayError
from ghui.core.github.client import GitHubClient
from ghui.core.github.models import (
    ActionsData,
    CheckAnnotation,
    JobLogs,
    PullRequest,
    WorkflowJob,
    WorkflowRun,
)

logger = logging.getLogger(__name__)


class CIProvider(ABC):
    """Capability interface shared by every CI provider."""

    name: str = ""

    @abstractmethod
    def handles(self, job: WorkflowJob) -> bool:
        """Whether this provider owns the job's logs."""

    @abstractmethod
    def list_jobs(self, pr: PullRequest) -> list[WorkflowRun]:
        """Workflow runs (with jobs) for the PR's head commit or branch."""

    @abstractmethod
    def fetch_job_log(self, job: WorkflowJob) -> JobLogs:
        """Log of one job."""


class GitHubActionsProvider(CIProvider):
    """Check suites and check runs reported to GitHub."""

    name = "GitHub"

    def __init__(self, client: GitHubClient) -> None:
        self.client = client

    def handles(self, job: WorkflowJob) -> bool:
        return not is_circleci_url(job.details_url)

    def list_jobs(self, pr: PullRequest) -> list[WorkflowRun]:
        return self.client.fetch_checks(pr.number).workflow_runs

    def fetch_job_log(self, job: WorkflowJob) -> JobLogs:
        return self.client.fetch_job_logs(job.id, job.name)


class CircleCIProvider(CIProvider):
    """Pipelines and job steps read directly from CircleCI."""

    name = "CircleCI"

    def __init__(self, client: CircleCIClient) -> None:
        self.client = client

    @property
    def is_configured(self) -> bool:
        return self.client.is_configured

    def handles(self, job: WorkflowJob) -> bool:
        return is_circleci_url(job.details_url)

    def list_jobs(self, pr: PullRequest) -> list[WorkflowRun]:
        return self.client.fetch_workflows_for_branch(pr.branch)

    def fetch_job_log(self, job: WorkflowJob) -> JobLogs:
        number = extract_job_number_from_url(job.details_url or "")
        if number is None:
            return JobLogs(
                job_id=job.id,
                job_name=job.name,
                content="No job number in this CircleCI link.\n\nPress 'o' to open it in your browser.",
            )
        if not self.is_configured:
            return JobLogs(
                job_id=job.id,
                job_name=job.name,
                content="CircleCI unavailable: set CIRCLECI_TOKEN to view these logs.\n\n"
                "Press 'o' to open it in your browser.",
            )
        return self.client.fetch_job_logs(number, job.name)


def _is_circleci_run(run: WorkflowRun) -> bool:
    return bool(run.jobs) and all(is_circleci_url(job.details_url) for job in run.jobs)


class ProviderSet:
    """The providers available for one repository."""

    def __init__(self, github: GitHubClient, circleci: CircleCIClient | None = None) -> None:
        self.github = GitHubActionsProvider(github)
        self.circleci = CircleCIProvider(circleci) if circleci is not None else None

    @property
    def providers(self) -> list[CIProvider]:
        providers: list[CIProvider] = []
        if self.circleci is not None:
            providers.append(self.circleci)
        providers.append(self.github)
        return providers

    def fetch_actions(self, pr: PullRequest) -> ActionsData:
        """
        Collect workflow runs from every provider.

        GitHub errors propagate. CircleCI errors only mark CircleCI as
        unavailable. When CircleCI returns workflows, they replace the
        CircleCI check suites GitHub reported.
        """
        runs = self.github.list_jobs(pr)
        data = ActionsData(pr_number=pr.number, workflow_runs=runs)

        if self.circleci is None or not self.circleci.is_configured:
            data.circleci_available = False
            data.circleci_error = "CIRCLECI_TOKEN not set"
            return data

        try:
            circle_runs = self.circleci.list_jobs(pr)
        except GatewayError as e:
            logger.warning("CircleCI unavailable for %s: %s", pr.branch, e)
            data.circleci_available = False
            data.circleci_error = e.message
            return data

        if circle_runs:
            data.workflow_runs = [run for run in runs if not _is_circleci_run(run)] + circle_runs
        return data

    def provider_for(self, job: WorkflowJob) -> CIProvider:
        for provider in self.providers:
            if provider.handles(job):
                return provider
        return self.github

    def fetch_job_log(self, job: WorkflowJob) -> JobLogs:
        return self.provider_for(job).fetch_job_log(job)

    def fetch_annotations(self, job: WorkflowJob) -> list[CheckAnnotation]:
        # Only GitHub check runs carry annotations.
        if job.id <= 0 or is_circleci_url(job.details_url):
            return []
        return self.github.client.fetch_annotations(job.id)
