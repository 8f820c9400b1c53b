"""
GitHub gateway for ghui.

Talks to the GitHub GraphQL and REST APIs with httpx, and to the ``gh`` CLI
for token discovery and job logs. Every public method returns typed models
from ``ghui.core.github.models`` or raises GatewayError.
"""

from __future__ import annotations

import logging
import os
import subprocess
import threading
from collections.abc import Iterable
from typing import Any

import httpx

from ghui.core.errors import ErrorKind, GatewayError
from ghui.core.github.logs import build_job_logs
from ghui.core.github.models import (
    ActionsData,
    AnnotationLevel,
    CheckAnnotation,
    JobLogs,
    PrComment,
    PreviewData,
    PullRequest,
    RepoInfo,
    Tab,
    WorkflowConclusion,
    WorkflowJob,
    WorkflowRun,
    WorkflowStatus,
)
from ghui.core.http import DEFAULT_TIMEOUT, request_json

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"

# Cap on accumulated search results to avoid runaway pagination.
MAX_RESULTS = 500

# Run id used for the group of legacy commit statuses.
COMMIT_STATUSES_RUN_ID = 999

NO_LOGS_MESSAGE = "No logs available for this check.\n\nPress 'o' to open it in your browser."

SEARCH_QUERY = """
query($queryString: String!, $after: String) {
  search(query: $queryString, type: ISSUE, first: 100, after: $after) {
    nodes {
      __typename
      ... on PullRequest {
        number
        title
        headRefName
        updatedAt
        author { login }
        labels(first: 20) { nodes { name } }
        commits(last: 1) {
          nodes { commit { oid statusCheckRollup { state } } }
        }
      }
    }
    pageInfo { hasNextPage endCursor }
  }
}
"""

CHECKS_QUERY = """
query($owner: String!, $repo: String!, $prNumber: Int!) {
  repository(owner: $owner, name: $repo) {
    pullRequest(number: $prNumber) {
      commits(last: 1) {
        nodes {
          commit {
            checkSuites(first: 50) {
              nodes {
                app { name }
                conclusion
                status
                url
                checkRuns(first: 50) {
                  nodes {
                    databaseId
                    name
                    conclusion
                    status
                    detailsUrl
                    startedAt
                    completedAt
                    text
                    summary
                    annotations(first: 1) { totalCount }
                  }
                }
              }
            }
            status {
              contexts { context state targetUrl createdAt }
            }
          }
        }
      }
    }
  }
}
"""

PREVIEW_QUERY = """
query($owner: String!, $repo: String!, $prNumber: Int!) {
  repository(owner: $owner, name: $repo) {
    pullRequest(number: $prNumber) {
      title
      body
      createdAt
      author { login }
      comments(first: 100) { nodes { author { login } body createdAt } }
      reviews(first: 100) { nodes { author { login } body state createdAt } }
    }
  }
}
"""

REVIEW_STATE_TITLES = {
    "APPROVED": "Approved",
    "CHANGES_REQUESTED": "Changes Requested",
    "COMMENTED": "Review",
    "DISMISSED": "Dismissed",
}


def get_github_token() -> str:
    """
    Find a GitHub token.

    Checks ``GH_TOKEN`` and ``GITHUB_TOKEN``, then asks ``gh auth token``.

    Raises:
        GatewayError: AUTH when no token can be found
    """
    for name in ("GH_TOKEN", "GITHUB_TOKEN"):
        if token := os.environ.get(name, "").strip():
            return token

    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            check=False,
        )
    except (OSError, FileNotFoundError) as e:
        raise GatewayError(
            ErrorKind.AUTH,
            "No GitHub token: set GH_TOKEN or install the GitHub CLI and run 'gh auth login'",
        ) from e

    token = result.stdout.strip()
    if result.returncode != 0 or not token:
        raise GatewayError(ErrorKind.AUTH, "Failed to get GitHub token. Run 'gh auth login' first.")
    return token


class GitHubClient:
    """
    Client for the GitHub API, scoped to one repository.

    Example:
        >>> client = GitHubClient(RepoInfo(owner="octo", repo="hello"))
        >>> prs = client.list_pull_requests(Tab.MY_PRS)
    """

    def __init__(
        self,
        repo: RepoInfo,
        token: str | None = None,
        http: httpx.Client | None = None,
        base_url: str = GITHUB_API_URL,
    ) -> None:
        """
        Initialize GitHubClient.

        Args:
            repo: Repository the client is scoped to
            token: API token (discovered lazily when omitted)
            http: Preconfigured httpx client (tests)
            base_url: API base URL
        """
        self.repo = repo
        self.base_url = base_url
        self._token = token
        self._http = http
        self._viewer_login: str | None = None
        self._lock = threading.Lock()

    @property
    def http(self) -> httpx.Client:
        with self._lock:
            if self._http is None:
                if self._token is None:
                    self._token = get_github_token()
                self._http = httpx.Client(
                    base_url=self.base_url,
                    headers={
                        "Authorization": f"Bearer {self._token}",
                        "Accept": "application/vnd.github+json",
                        "User-Agent": "ghui",
                    },
                    timeout=DEFAULT_TIMEOUT,
                )
            return self._http

    def close(self) -> None:
        if self._http is not None:
            self._http.close()

    # ------------------------------------------------------------------
    # Low-level API access
    # ------------------------------------------------------------------

    def graphql(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        """
        Run a GraphQL query.

        Returns:
            The ``data`` object of the response

        Raises:
            GatewayError: On HTTP failure or GraphQL errors
        """
        body = request_json(
            self.http,
            "POST",
            "/graphql",
            service="GitHub",
            json={"query": query, "variables": variables},
        )
        errors = body.get("errors") or []
        if errors:
            first = errors[0]
            error_type = str(first.get("type", "")).upper()
            message = str(first.get("message", "GraphQL error"))
            if error_type == "NOT_FOUND":
                raise GatewayError(ErrorKind.NOT_FOUND, message)
            if error_type == "RATE_LIMITED":
                raise GatewayError(ErrorKind.RATE_LIMIT, message)
            if error_type in ("FORBIDDEN", "UNAUTHORIZED"):
                raise GatewayError(ErrorKind.AUTH, message)
            if not body.get("data"):
                raise GatewayError(ErrorKind.NETWORK, message)
            logger.warning("GraphQL returned partial data: %s", message)
        return body.get("data") or {}

    def viewer_login(self) -> str:
        """Login of the authenticated user (cached)."""
        if self._viewer_login is None:
            data = request_json(self.http, "GET", "/user", service="GitHub")
            self._viewer_login = str(data["login"])
        return self._viewer_login

    # ------------------------------------------------------------------
    # Pull requests
    # ------------------------------------------------------------------

    def list_pull_requests(self, tab: Tab, labels: Iterable[str] = ()) -> list[PullRequest]:
        """
        List open pull requests for a tab.

        Args:
            tab: Which list to fetch
            labels: Label names for the Labels tab

        Returns:
            Pull requests in search order (Labels: sorted by number, deduplicated)
        """
        base = f"repo:{self.repo.full_name} is:pr is:open"

        if tab == Tab.LABELS:
            # Search has no OR for label qualifiers: one query per label.
            by_number: dict[int, PullRequest] = {}
            for label in labels:
                for pr in self.search_pull_requests(f'{base} label:"{label}"'):
                    by_number.setdefault(pr.number, pr)
            return [by_number[number] for number in sorted(by_number)]

        qualifier = "author" if tab == Tab.MY_PRS else "review-requested"
        return self.search_pull_requests(f"{base} {qualifier}:{self.viewer_login()}")

    def search_pull_requests(self, query_string: str) -> list[PullRequest]:
        """Run a PR search, following pagination up to MAX_RESULTS."""
        prs: list[PullRequest] = []
        after: str | None = None

        while True:
            data = self.graphql(SEARCH_QUERY, {"queryString": query_string, "after": after})
            search = data.get("search") or {}
            for node in search.get("nodes") or []:
                if node and node.get("__typename") == "PullRequest":
                    prs.append(PullRequest.from_search_node(node, self.repo.owner, self.repo.repo))

            page_info = search.get("pageInfo") or {}
            after = page_info.get("endCursor")
            if len(prs) >= MAX_RESULTS or not page_info.get("hasNextPage") or not after:
                break

        logger.debug("Search %r returned %d PRs", query_string, len(prs))
        return prs[:MAX_RESULTS]

    def fetch_preview(self, pr_number: int) -> PreviewData:
        """
        Fetch the description, comments and reviews of a pull request.

        Comments and reviews are sorted by creation time, after the body.
        Empty "COMMENTED" reviews are skipped.
        """
        data = self.graphql(
            PREVIEW_QUERY,
            {"owner": self.repo.owner, "repo": self.repo.repo, "prNumber": pr_number},
        )
        pr = (data.get("repository") or {}).get("pullRequest")
        if pr is None:
            raise GatewayError(ErrorKind.NOT_FOUND, f"Pull request #{pr_number} not found")
        return parse_preview(pr_number, pr)

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def fetch_checks(self, pr_number: int) -> ActionsData:
        """Fetch check suites, check runs and commit statuses for a PR's head commit."""
        data = self.graphql(
            CHECKS_QUERY,
            {"owner": self.repo.owner, "repo": self.repo.repo, "prNumber": pr_number},
        )
        pr = (data.get("repository") or {}).get("pullRequest")
        if pr is None:
            raise GatewayError(ErrorKind.NOT_FOUND, f"Pull request #{pr_number} not found")

        commits = (pr.get("commits") or {}).get("nodes") or []
        commit = commits[0].get("commit") if commits else None
        runs = parse_checks(commit or {})
        return ActionsData(pr_number=pr_number, workflow_runs=runs)

    def fetch_annotations(self, check_run_id: int) -> list[CheckAnnotation]:
        """Fetch all annotations of one check run."""
        annotations: list[CheckAnnotation] = []
        page = 1
        while True:
            items = request_json(
                self.http,
                "GET",
                f"/repos/{self.repo.full_name}/check-runs/{check_run_id}/annotations",
                service="GitHub",
                params={"per_page": 100, "page": page},
            )
            for item in items:
                start = int(item.get("start_line") or 0)
                annotations.append(
                    CheckAnnotation(
                        path=str(item.get("path") or ""),
                        start_line=start,
                        end_line=int(item.get("end_line") or start),
                        level=AnnotationLevel.from_github(item.get("annotation_level")),
                        message=str(item.get("message") or ""),
                        title=item.get("title") or None,
                    )
                )
            if len(items) < 100:
                return annotations
            page += 1

    def fetch_job_logs(self, job_id: int, job_name: str) -> JobLogs:
        """
        Fetch the log of a GitHub Actions job via ``gh run view --log``.

        Commit statuses have no Actions job behind them (id <= 0) and get a
        placeholder.
        """
        if job_id <= 0:
            return JobLogs(job_id=job_id, job_name=job_name, content=NO_LOGS_MESSAGE)

        try:
            result = subprocess.run(
                ["gh", "run", "view", "--repo", self.repo.full_name, "--job", str(job_id), "--log"],
                capture_output=True,
                text=True,
                check=False,
            )
        except (OSError, FileNotFoundError) as e:
            raise GatewayError(ErrorKind.NETWORK, f"Could not run gh: {e}") from e

        if result.returncode != 0:
            stderr = result.stderr.strip()
            lowered = stderr.lower()
            if "not found" in lowered or "no logs" in lowered:
                return JobLogs(
                    job_id=job_id,
                    job_name=job_name,
                    content=(
                        "No logs available for this check.\n\n"
                        "The job may not have produced logs yet, or logs may have expired."
                    ),
                )
            raise GatewayError(_classify_cli_error(lowered), f"Failed to fetch job logs: {stderr}")

        return build_job_logs(job_id, job_name, result.stdout)


def _classify_cli_error(stderr: str) -> ErrorKind:
    if "rate limit" in stderr:
        return ErrorKind.RATE_LIMIT
    if "401" in stderr or "auth" in stderr:
        return ErrorKind.AUTH
    return ErrorKind.NETWORK


# ============================================================================
# Response parsing
# ============================================================================


def parse_checks(commit: dict[str, Any]) -> list[WorkflowRun]:
    """
    Turn the ``commit`` object of the checks query into workflow runs.

    Each check suite with check runs becomes a run; legacy commit statuses
    are grouped into one "Commit Statuses" run.
    """
    runs: list[WorkflowRun] = []

    suites = (commit.get("checkSuites") or {}).get("nodes") or []
    for index, suite in enumerate(suites):
        jobs = [
            _parse_check_run(node)
            for node in (suite.get("checkRuns") or {}).get("nodes") or []
        ]
        if not jobs:
            continue
        runs.append(
            WorkflowRun(
                id=index,
                name=str((suite.get("app") or {}).get("name") or "Unknown App"),
                status=WorkflowStatus.from_github(suite.get("status") or "QUEUED"),
                conclusion=WorkflowConclusion.from_github(suite.get("conclusion")),
                html_url=str(suite.get("url") or ""),
                jobs=jobs,
            )
        )

    contexts = (commit.get("status") or {}).get("contexts") or []
    status_jobs = [_parse_status_context(index, context) for index, context in enumerate(contexts)]
    if status_jobs:
        if any(job.status.is_running for job in status_jobs):
            status, conclusion = WorkflowStatus.IN_PROGRESS, None
        elif any(job.is_failed for job in status_jobs):
            status, conclusion = WorkflowStatus.COMPLETED, WorkflowConclusion.FAILURE
        else:
            status, conclusion = WorkflowStatus.COMPLETED, WorkflowConclusion.SUCCESS
        runs.append(
            WorkflowRun(
                id=COMMIT_STATUSES_RUN_ID,
                name="Commit Statuses",
                status=status,
                conclusion=conclusion,
                jobs=status_jobs,
            )
        )

    return runs


def _parse_check_run(node: dict[str, Any]) -> WorkflowJob:
    return WorkflowJob(
        id=int(node.get("databaseId") or 0),
        name=str(node.get("name") or "Unknown"),
        status=WorkflowStatus.from_github(node.get("status") or "QUEUED"),
        conclusion=WorkflowConclusion.from_github(node.get("conclusion")),
        started_at=node.get("startedAt"),
        completed_at=node.get("completedAt"),
        details_url=node.get("detailsUrl"),
        summary=node.get("summary"),
        text=node.get("text"),
        annotation_count=int((node.get("annotations") or {}).get("totalCount") or 0),
    )


def _parse_status_context(index: int, context: dict[str, Any]) -> WorkflowJob:
    # Statuses have no database id; negative positions keep them distinct from
    # check runs and from each other.
    state = str(context.get("state") or "PENDING").upper()
    if state == "PENDING":
        status, conclusion = WorkflowStatus.PENDING, None
    elif state == "SUCCESS":
        status, conclusion = WorkflowStatus.COMPLETED, WorkflowConclusion.SUCCESS
    elif state in ("FAILURE", "ERROR"):
        status, conclusion = WorkflowStatus.COMPLETED, WorkflowConclusion.FAILURE
    else:
        status, conclusion = WorkflowStatus.UNKNOWN, None

    return WorkflowJob(
        id=-(index + 1),
        name=str(context.get("context") or "Unknown"),
        status=status,
        conclusion=conclusion,
        started_at=context.get("createdAt"),
        details_url=context.get("targetUrl"),
    )


def parse_preview(pr_number: int, pr: dict[str, Any]) -> PreviewData:
    """Build PreviewData from the ``pullRequest`` object of the preview query."""
    author = str((pr.get("author") or {}).get("login") or "unknown")
    comments: list[PrComment] = []

    body = pr.get("body") or ""
    if body:
        comments.append(
            PrComment(author=author, body=body, created_at=pr.get("createdAt") or "", is_pr_body=True)
        )

    items: list[PrComment] = []
    for node in (pr.get("comments") or {}).get("nodes") or []:
        text = node.get("body") or ""
        if text:
            items.append(
                PrComment(
                    author=str((node.get("author") or {}).get("login") or "unknown"),
                    body=text,
                    created_at=node.get("createdAt") or "",
                )
            )

    for node in (pr.get("reviews") or {}).get("nodes") or []:
        state = str(node.get("state") or "")
        text = node.get("body") or ""
        title = REVIEW_STATE_TITLES.get(state)
        if title is None or (state == "COMMENTED" and not text):
            continue
        display = f"**{title}**\n\n{text}" if text else f"_{title}_"
        items.append(
            PrComment(
                author=str((node.get("author") or {}).get("login") or "unknown"),
                body=display,
                created_at=node.get("createdAt") or "",
            )
        )

    items.sort(key=lambda item: item.created_at)
    comments.extend(items)

    return PreviewData(pr_number=pr_number, title=str(pr.get("title") or "Untitled"), comments=comments)
