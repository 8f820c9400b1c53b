"""
CircleCI gateway for ghui.

Optional: without ``CIRCLECI_TOKEN`` the client reports itself as
unconfigured and callers show CircleCI as unavailable.

Uses the v2 API for pipelines, workflows and jobs, and the v1.1 API for job
steps because only v1.1 exposes per-step output URLs.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any
from urllib.parse import quote

import httpx

from ghui.core.errors import ErrorKind, GatewayError
from ghui.core.github.logs import strip_ansi
from ghui.core.github.models import (
    JobLogs,
    JobStep,
    RepoInfo,
    WorkflowConclusion,
    WorkflowJob,
    WorkflowRun,
    WorkflowStatus,
)
from ghui.core.http import DEFAULT_TIMEOUT, request_json

logger = logging.getLogger(__name__)

CIRCLECI_API_V2_URL = "https://circleci.com/api/v2"
CIRCLECI_API_V1_URL = "https://circleci.com/api/v1.1"

FAILED_STATUSES = ("failed", "timedout", "infrastructure_fail")


def get_circleci_token() -> str | None:
    """Read the CircleCI token from the environment."""
    token = os.environ.get("CIRCLECI_TOKEN", "").strip()
    return token or None


def is_circleci_url(url: str | None) -> bool:
    return bool(url) and "circleci.com" in url


def extract_job_number_from_url(url: str) -> int | None:
    """
    Extract the CircleCI build number from a details URL.

    Handles:
    - https://circleci.com/gh/owner/repo/123 (legacy)
    - https://app.circleci.com/pipelines/gh/owner/repo/7/workflows/abc/jobs/456

    Workflow-level URLs (``/pipelines/`` without ``/jobs/``) only carry a
    pipeline number and return None.
    """
    if not is_circleci_url(url):
        return None

    path = url.split("?", 1)[0].split("#", 1)[0]

    if "/jobs/" in path:
        after = path.split("/jobs/", 1)[1]
        digits = ""
        for ch in after:
            if not ch.isdigit():
                break
            digits += ch
        if digits:
            return int(digits)

    if "/pipelines/" in path:
        return None

    for segment in reversed([s for s in path.rstrip("/").split("/") if s]):
        if segment.isdigit():
            return int(segment)
    return None


def parse_circleci_status(status: str) -> WorkflowStatus:
    value = status.lower()
    if value == "running":
        return WorkflowStatus.IN_PROGRESS
    if value in ("success", "failed", "failing", "canceled", "cancelled", "infrastructure_fail", "timedout"):
        return WorkflowStatus.COMPLETED
    if value in ("on_hold", "blocked"):
        return WorkflowStatus.WAITING
    if value in ("queued", "not_run"):
        return WorkflowStatus.QUEUED
    return WorkflowStatus.UNKNOWN


def parse_circleci_conclusion(status: str) -> WorkflowConclusion | None:
    return {
        "success": WorkflowConclusion.SUCCESS,
        "failed": WorkflowConclusion.FAILURE,
        "failing": WorkflowConclusion.FAILURE,
        "canceled": WorkflowConclusion.CANCELLED,
        "cancelled": WorkflowConclusion.CANCELLED,
        "timedout": WorkflowConclusion.TIMED_OUT,
        "infrastructure_fail": WorkflowConclusion.STARTUP_FAILURE,
        "not_run": WorkflowConclusion.SKIPPED,
    }.get(status.lower())


def decode_step_output(text: str) -> str:
    """
    Decode the body behind a step ``output_url``.

    The body is normally a JSON array of ``{"message": ...}`` objects; a
    single object or plain text is accepted too. ANSI codes are stripped.
    """
    try:
        decoded = json.loads(text)
    except ValueError:
        decoded = None

    if isinstance(decoded, list):
        joined = "".join(str(item.get("message") or "") for item in decoded if isinstance(item, dict))
        if joined:
            return strip_ansi(joined)
    elif isinstance(decoded, dict):
        message = decoded.get("message") or decoded.get("output")
        if message:
            return strip_ansi(str(message))
    elif text.strip() and not text.lstrip().startswith(("{", "[")):
        return strip_ansi(text)
    return ""


class CircleCIClient:
    """
    Client for the CircleCI API, scoped to one GitHub repository.

    Example:
        >>> client = CircleCIClient(RepoInfo(owner="octo", repo="hello"))
        >>> if client.is_configured:
        ...     runs = client.fetch_workflows_for_branch("feature-x")
    """

    def __init__(
        self,
        repo: RepoInfo,
        token: str | None = None,
        http: httpx.Client | None = None,
    ) -> None:
        self.repo = repo
        self.token = token if token is not None else get_circleci_token()
        self._http = http

    @property
    def is_configured(self) -> bool:
        return bool(self.token)

    @property
    def project_slug(self) -> str:
        return f"github/{self.repo.owner}/{self.repo.repo}"

    @property
    def http(self) -> httpx.Client:
        if not self.is_configured:
            raise GatewayError(ErrorKind.AUTH, "CIRCLECI_TOKEN environment variable not set")
        if self._http is None:
            self._http = httpx.Client(
                headers={"Circle-Token": self.token or "", "Accept": "application/json"},
                timeout=DEFAULT_TIMEOUT,
                follow_redirects=True,
            )
        return self._http

    def close(self) -> None:
        if self._http is not None:
            self._http.close()

    def _get(self, url: str, **kwargs: Any) -> Any:
        return request_json(self.http, "GET", url, service="CircleCI", **kwargs)

    # ------------------------------------------------------------------
    # Workflows
    # ------------------------------------------------------------------

    def fetch_workflows_for_branch(self, branch: str) -> list[WorkflowRun]:
        """
        Fetch workflows and jobs of the latest pipeline for a branch.

        Returns:
            One WorkflowRun per workflow; empty when the branch has no pipeline
        """
        pipelines = self._get(
            f"{CIRCLECI_API_V2_URL}/project/{self.project_slug}/pipeline",
            params={"branch": branch},
        ).get("items") or []
        if not pipelines:
            return []

        pipeline = pipelines[0]
        pipeline_number = int(pipeline.get("number") or 0)
        workflows = self._get(f"{CIRCLECI_API_V2_URL}/pipeline/{pipeline['id']}/workflow").get("items") or []

        runs: list[WorkflowRun] = []
        for workflow in workflows:
            workflow_url = (
                f"https://app.circleci.com/pipelines/gh/{self.repo.owner}/{self.repo.repo}"
                f"/{pipeline_number}/workflows/{workflow['id']}"
            )
            try:
                items = self._get(f"{CIRCLECI_API_V2_URL}/workflow/{workflow['id']}/job").get("items") or []
            except GatewayError as e:
                logger.warning("Skipping CircleCI workflow %s: %s", workflow.get("name"), e)
                continue

            jobs = []
            for item in items:
                number = item.get("job_number")
                status = str(item.get("status") or "")
                jobs.append(
                    WorkflowJob(
                        id=int(number or 0),
                        name=str(item.get("name") or "Unknown"),
                        status=parse_circleci_status(status),
                        conclusion=parse_circleci_conclusion(status),
                        started_at=item.get("started_at"),
                        completed_at=item.get("stopped_at"),
                        details_url=f"{workflow_url}/jobs/{number}" if number else None,
                    )
                )

            status = str(workflow.get("status") or "")
            runs.append(
                WorkflowRun(
                    id=pipeline_number,
                    name=f"CircleCI: {workflow.get('name', 'workflow')}",
                    status=parse_circleci_status(status),
                    conclusion=parse_circleci_conclusion(status),
                    html_url=workflow_url,
                    jobs=jobs,
                    created_at=workflow.get("created_at") or "",
                    updated_at=workflow.get("stopped_at") or "",
                )
            )
        return runs

    # ------------------------------------------------------------------
    # Job logs
    # ------------------------------------------------------------------

    def fetch_job_logs(self, job_number: int, job_name: str) -> JobLogs:
        """
        Fetch the step outputs of a job.

        Parallel jobs (several containers per step) become one top-level
        step per container with the real steps nested under it.
        """
        details = self._get(
            f"{CIRCLECI_API_V1_URL}/project/github/{quote(self.repo.owner)}/{quote(self.repo.repo)}/{job_number}"
        )
        raw_steps = details.get("steps") or []
        containers = len(raw_steps[0].get("actions") or []) if raw_steps else 1

        if containers > 1:
            steps = []
            for index in range(containers):
                sub_steps = [self._build_step(step, index) for step in raw_steps]
                failed = any(sub.is_failed for sub in sub_steps)
                steps.append(
                    JobStep(
                        name=f"Container {index}",
                        status="failed" if failed else "success",
                        is_failed=failed,
                        sub_steps=sub_steps,
                    )
                )
        else:
            steps = [self._build_step(step, 0) for step in raw_steps]

        if not steps:
            content = "No step information available.\n\nPress 'o' to open it in your browser."
        else:
            failed_count = sum(1 for step in steps if step.is_failed)
            content = (
                f"{len(steps)} steps ({len(steps) - failed_count} passed, {failed_count} failed)\n\n"
                "Use j/k to navigate, Space to expand/collapse"
            )

        return JobLogs(job_id=job_number, job_name=job_name, content=content, steps=steps or None)

    def _build_step(self, step: dict[str, Any], container: int) -> JobStep:
        actions = step.get("actions") or []
        name = str(step.get("name") or "step")
        if container >= len(actions):
            return JobStep(name=name, status="skipped", output="(No data for this container)")

        action = actions[container]
        status = str(action.get("status") or "unknown")
        exit_code = action.get("exit_code")
        failed = status.lower() in FAILED_STATUSES or (exit_code is not None and exit_code != 0)

        output = ""
        if action.get("output_url"):
            output = self._fetch_step_output(action["output_url"]).strip()
        if not output and exit_code not in (None, 0):
            output = f"Exit code: {exit_code}"
        if not output:
            output = (
                f"Step failed with status: {status}\n\nPress 'o' to view in browser for full details."
                if failed
                else "(No output)"
            )

        return JobStep(name=name, status=status, output=output, is_failed=failed)

    def _fetch_step_output(self, output_url: str) -> str:
        # Output URLs are presigned and must not receive the API token.
        try:
            response = httpx.get(output_url, timeout=DEFAULT_TIMEOUT, follow_redirects=True)
        except httpx.HTTPError as e:
            return f"(Failed to fetch output: {e})"
        if response.status_code >= 400:
            return ""
        return decode_step_output(response.text)
