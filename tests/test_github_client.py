"""
Tests for the GitHub gateway.

HTTP is served by an httpx.MockTransport; the gh CLI is patched.
"""

import json
import subprocess
from unittest.mock import MagicMock, patch

import httpx
import pytest

from ghui.core.errors import ErrorKind, GatewayError
from ghui.core.github.client import (
    COMMIT_STATUSES_RUN_ID,
    GitHubClient,
    get_github_token,
    parse_checks,
    parse_preview,
)
from ghui.core.github.models import (
    CiStatus,
    RepoInfo,
    Tab,
    WorkflowConclusion,
    WorkflowStatus,
)

REPO = RepoInfo(owner="octo", repo="hello")


def pr_node(number: int, title: str = "", state: str = "SUCCESS") -> dict:
    return {
        "__typename": "PullRequest",
        "number": number,
        "title": title or f"PR {number}",
        "headRefName": f"branch-{number}",
        "updatedAt": "2024-01-01T00:00:00Z",
        "author": {"login": "alice"},
        "labels": {"nodes": [{"name": "bug"}]},
        "commits": {"nodes": [{"commit": {"oid": "abc123", "statusCheckRollup": {"state": state}}}]},
    }


def search_response(nodes: list, has_next: bool = False, cursor: str | None = None) -> dict:
    return {
        "data": {
            "search": {
                "nodes": nodes,
                "pageInfo": {"hasNextPage": has_next, "endCursor": cursor},
            }
        }
    }


class FakeGitHub:
    """Records requests and answers them from a handler function."""

    def __init__(self, handler) -> None:
        self.handler = handler
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    def client(self) -> GitHubClient:
        http = httpx.Client(base_url="https://api.github.com", transport=httpx.MockTransport(self))
        return GitHubClient(REPO, token="t", http=http)

    def graphql_bodies(self) -> list[dict]:
        return [json.loads(request.content) for request in self.requests if request.url.path == "/graphql"]


class TestGraphQL:
    """Tests for GraphQL error mapping."""

    @pytest.mark.parametrize(
        "error_type,kind",
        [
            ("NOT_FOUND", ErrorKind.NOT_FOUND),
            ("RATE_LIMITED", ErrorKind.RATE_LIMIT),
            ("FORBIDDEN", ErrorKind.AUTH),
            ("SOMETHING_ELSE", ErrorKind.NETWORK),
        ],
    )
    def test_errors_are_classified(self, error_type, kind) -> None:
        fake = FakeGitHub(
            lambda request: httpx.Response(
                200, json={"data": None, "errors": [{"type": error_type, "message": "nope"}]}
            )
        )

        with pytest.raises(GatewayError) as exc_info:
            fake.client().graphql("query", {})

        assert exc_info.value.kind == kind
        assert exc_info.value.message == "nope"

    def test_partial_data_is_returned(self) -> None:
        fake = FakeGitHub(
            lambda request: httpx.Response(
                200, json={"data": {"x": 1}, "errors": [{"type": "OTHER", "message": "partial"}]}
            )
        )

        assert fake.client().graphql("query", {}) == {"x": 1}

    def test_unauthorized_status(self) -> None:
        fake = FakeGitHub(lambda request: httpx.Response(401, json={"message": "Bad credentials"}))

        with pytest.raises(GatewayError) as exc_info:
            fake.client().graphql("query", {})

        assert exc_info.value.kind == ErrorKind.AUTH

    @patch("ghui.core.http.time.sleep")
    def test_server_errors_are_retried(self, mock_sleep) -> None:
        responses = iter(
            [httpx.Response(502), httpx.Response(200, json={"data": {"ok": True}})]
        )
        fake = FakeGitHub(lambda request: next(responses))

        assert fake.client().graphql("query", {}) == {"ok": True}
        assert len(fake.requests) == 2
        mock_sleep.assert_called_once()


class TestListPullRequests:
    """Tests for list_pull_requests()."""

    def test_my_prs_searches_by_author(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/user":
                return httpx.Response(200, json={"login": "alice"})
            return httpx.Response(200, json=search_response([pr_node(1), pr_node(2, state="FAILURE")]))

        fake = FakeGitHub(handler)

        prs = fake.client().list_pull_requests(Tab.MY_PRS)

        assert [pr.number for pr in prs] == [1, 2]
        assert prs[1].ci_status == CiStatus.FAILURE
        assert prs[0].labels == ("bug",)
        query = fake.graphql_bodies()[0]["variables"]["queryString"]
        assert query == "repo:octo/hello is:pr is:open author:alice"

    def test_review_requested_qualifier(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/user":
                return httpx.Response(200, json={"login": "alice"})
            return httpx.Response(200, json=search_response([]))

        fake = FakeGitHub(handler)

        fake.client().list_pull_requests(Tab.REVIEW_REQUESTED)

        assert fake.graphql_bodies()[0]["variables"]["queryString"].endswith("review-requested:alice")

    def test_labels_tab_merges_and_sorts(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            query = json.loads(request.content)["variables"]["queryString"]
            if 'label:"bug"' in query:
                return httpx.Response(200, json=search_response([pr_node(7), pr_node(3)]))
            return httpx.Response(200, json=search_response([pr_node(3), pr_node(5)]))

        fake = FakeGitHub(handler)

        prs = fake.client().list_pull_requests(Tab.LABELS, ["bug", "ui"])

        assert [pr.number for pr in prs] == [3, 5, 7]
        assert len(fake.requests) == 2

    def test_labels_tab_without_labels_makes_no_requests(self) -> None:
        fake = FakeGitHub(lambda request: httpx.Response(500))

        assert fake.client().list_pull_requests(Tab.LABELS, []) == []
        assert fake.requests == []

    def test_follows_pagination(self) -> None:
        pages = iter(
            [
                search_response([pr_node(1)], has_next=True, cursor="c1"),
                search_response([pr_node(2)]),
            ]
        )
        fake = FakeGitHub(lambda request: httpx.Response(200, json=next(pages)))

        prs = fake.client().search_pull_requests("repo:octo/hello is:pr")

        assert [pr.number for pr in prs] == [1, 2]
        assert fake.graphql_bodies()[1]["variables"]["after"] == "c1"

    def test_skips_non_pull_request_nodes(self) -> None:
        nodes = [{"__typename": "Issue"}, None, pr_node(4)]
        fake = FakeGitHub(lambda request: httpx.Response(200, json=search_response(nodes)))

        prs = fake.client().search_pull_requests("q")

        assert [pr.number for pr in prs] == [4]


class TestPreview:
    """Tests for preview fetching and parsing."""

    def test_missing_pr_is_not_found(self) -> None:
        fake = FakeGitHub(
            lambda request: httpx.Response(200, json={"data": {"repository": {"pullRequest": None}}})
        )

        with pytest.raises(GatewayError) as exc_info:
            fake.client().fetch_preview(9)

        assert exc_info.value.kind == ErrorKind.NOT_FOUND

    def test_body_first_then_chronological(self) -> None:
        pr = {
            "title": "Fix login",
            "body": "Fixes the redirect.",
            "createdAt": "2024-01-01T00:00:00Z",
            "author": {"login": "alice"},
            "comments": {
                "nodes": [
                    {"author": {"login": "bob"}, "body": "Later", "createdAt": "2024-01-03T00:00:00Z"},
                    {"author": {"login": "carol"}, "body": "", "createdAt": "2024-01-02T00:00:00Z"},
                ]
            },
            "reviews": {
                "nodes": [
                    {"author": {"login": "dave"}, "body": "LGTM", "state": "APPROVED", "createdAt": "2024-01-02T00:00:00Z"},
                    {"author": {"login": "erin"}, "body": "", "state": "COMMENTED", "createdAt": "2024-01-02T12:00:00Z"},
                    {"author": {"login": "frank"}, "body": "", "state": "CHANGES_REQUESTED", "createdAt": "2024-01-04T00:00:00Z"},
                ]
            },
        }

        preview = parse_preview(12, pr)

        assert preview.title == "Fix login"
        assert [comment.author for comment in preview.comments] == ["alice", "dave", "bob", "frank"]
        assert preview.comments[0].is_pr_body
        assert preview.comments[1].body == "**Approved**\n\nLGTM"
        assert preview.comments[3].body == "_Changes Requested_"


class TestChecks:
    """Tests for check parsing."""

    COMMIT = {
        "checkSuites": {
            "nodes": [
                {
                    "app": {"name": "GitHub Actions"},
                    "status": "COMPLETED",
                    "conclusion": "FAILURE",
                    "url": "https://github.com/octo/hello/actions/runs/1",
                    "checkRuns": {
                        "nodes": [
                            {
                                "databaseId": 101,
                                "name": "tests",
                                "status": "COMPLETED",
                                "conclusion": "FAILURE",
                                "detailsUrl": "https://github.com/octo/hello/runs/101",
                                "annotations": {"totalCount": 3},
                            }
                        ]
                    },
                },
                {"app": {"name": "Empty"}, "status": "QUEUED", "checkRuns": {"nodes": []}},
            ]
        },
        "status": {
            "contexts": [
                {"context": "ci/circleci: build", "state": "SUCCESS", "targetUrl": "https://circleci.com/gh/octo/hello/55"},
                {"context": "coverage", "state": "PENDING"},
            ]
        },
    }

    def test_suites_and_statuses(self) -> None:
        runs = parse_checks(self.COMMIT)

        assert [run.name for run in runs] == ["GitHub Actions", "Commit Statuses"]
        job = runs[0].jobs[0]
        assert job.id == 101
        assert job.is_failed
        assert job.annotation_count == 3

        statuses = runs[1]
        assert statuses.id == COMMIT_STATUSES_RUN_ID
        assert statuses.status == WorkflowStatus.IN_PROGRESS
        assert statuses.conclusion is None
        assert statuses.jobs[0].conclusion == WorkflowConclusion.SUCCESS
        assert statuses.jobs[1].status == WorkflowStatus.PENDING

    def test_status_contexts_get_distinct_ids(self) -> None:
        statuses = parse_checks(self.COMMIT)[1]

        assert [job.id for job in statuses.jobs] == [-1, -2]
        assert all(job.annotation_count == 0 for job in statuses.jobs)

    def test_status_ids_are_stable_across_refreshes(self) -> None:
        first = parse_checks(self.COMMIT)[1].jobs
        second = parse_checks(self.COMMIT)[1].jobs

        assert [(job.id, job.name) for job in first] == [(job.id, job.name) for job in second]

    def test_empty_commit(self) -> None:
        assert parse_checks({}) == []

    def test_fetch_checks_wraps_runs(self) -> None:
        body = {
            "data": {
                "repository": {
                    "pullRequest": {"commits": {"nodes": [{"commit": self.COMMIT}]}}
                }
            }
        }
        fake = FakeGitHub(lambda request: httpx.Response(200, json=body))

        actions = fake.client().fetch_checks(5)

        assert actions.pr_number == 5
        assert len(actions.workflow_runs) == 2
        assert actions.has_running_jobs


class TestAnnotations:
    """Tests for fetch_annotations()."""

    def test_parses_annotations(self) -> None:
        items = [
            {
                "path": "src/app.py",
                "start_line": 10,
                "end_line": 12,
                "annotation_level": "failure",
                "message": "boom",
                "title": "Test failure",
            },
            {"path": "README.md", "start_line": 1, "annotation_level": "weird", "message": "hm"},
        ]
        fake = FakeGitHub(lambda request: httpx.Response(200, json=items))

        annotations = fake.client().fetch_annotations(101)

        assert annotations[0].location == "src/app.py:10-12"
        assert annotations[0].title == "Test failure"
        assert annotations[1].location == "README.md:1"
        assert annotations[1].level.value == "notice"
        assert fake.requests[0].url.path == "/repos/octo/hello/check-runs/101/annotations"


class TestJobLogs:
    """Tests for fetch_job_logs()."""

    @patch("ghui.core.github.client.subprocess.run")
    def test_structured_log(self, mock_run) -> None:
        mock_run.return_value = MagicMock(
            returncode=0,
            stdout="tests\tRun tests\t2024-01-01T00:00:00.0000000Z ##[error]boom\n",
            stderr="",
        )

        logs = GitHubClient(REPO, token="t").fetch_job_logs(101, "tests")

        assert mock_run.call_args[0][0] == [
            "gh", "run", "view", "--repo", "octo/hello", "--job", "101", "--log",
        ]
        assert logs.steps is not None
        assert logs.steps[0].name == "Run tests"
        assert logs.steps[0].is_failed

    @patch("ghui.core.github.client.subprocess.run")
    def test_missing_logs_are_a_placeholder(self, mock_run) -> None:
        mock_run.return_value = MagicMock(returncode=1, stdout="", stderr="HTTP 404: Not Found")

        logs = GitHubClient(REPO, token="t").fetch_job_logs(101, "tests")

        assert "No logs available" in logs.content

    @patch("ghui.core.github.client.subprocess.run")
    def test_auth_failure(self, mock_run) -> None:
        mock_run.return_value = MagicMock(returncode=1, stdout="", stderr="HTTP 401: Bad credentials")

        with pytest.raises(GatewayError) as exc_info:
            GitHubClient(REPO, token="t").fetch_job_logs(101, "tests")

        assert exc_info.value.kind == ErrorKind.AUTH

    @patch("ghui.core.github.client.subprocess.run")
    def test_status_context_has_no_logs(self, mock_run) -> None:
        logs = GitHubClient(REPO, token="t").fetch_job_logs(-2, "coverage")

        mock_run.assert_not_called()
        assert "open it in your browser" in logs.content


class TestToken:
    """Tests for get_github_token()."""

    def test_environment_wins(self, monkeypatch) -> None:
        monkeypatch.setenv("GITHUB_TOKEN", "from-env")
        assert get_github_token() == "from-env"

    @patch("ghui.core.github.client.subprocess.run")
    def test_gh_cli(self, mock_run) -> None:
        mock_run.return_value = MagicMock(returncode=0, stdout="gho_token\n", stderr="")
        assert get_github_token() == "gho_token"

    @patch("ghui.core.github.client.subprocess.run")
    def test_gh_not_logged_in(self, mock_run) -> None:
        mock_run.return_value = MagicMock(returncode=1, stdout="", stderr="not logged in")

        with pytest.raises(GatewayError) as exc_info:
            get_github_token()

        assert exc_info.value.kind == ErrorKind.AUTH

    @patch("ghui.core.github.client.subprocess.run")
    def test_gh_missing(self, mock_run) -> None:
        mock_run.side_effect = FileNotFoundError("gh")

        with pytest.raises(GatewayError) as exc_info:
            get_github_token()

        assert exc_info.value.kind == ErrorKind.AUTH
