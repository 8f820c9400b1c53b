"""
Unit tests for Pydantic models.

Tests parsing and computed properties for repository, pull request, workflow
and preview models.
"""

import pytest
from pydantic import ValidationError

from ghui.core.github.models import (
    ActionsData,
    AnnotationLevel,
    CheckAnnotation,
    CiStatus,
    JobLogs,
    JobStep,
    PrComment,
    PreviewData,
    PullRequest,
    RepoInfo,
    WorkflowConclusion,
    WorkflowJob,
    WorkflowStatus,
)
from conftest import make_actions, make_pr


class TestRepoInfo:
    """Tests for RepoInfo."""

    @pytest.mark.parametrize(
        "url",
        [
            "git@github.com:octo/hello.git",
            "ssh://git@github.com/octo/hello.git",
            "https://github.com/octo/hello.git",
            "https://github.com/octo/hello",
            "https://token@github.com/octo/hello/",
        ],
    )
    def test_from_remote_url(self, url) -> None:
        assert RepoInfo.from_remote_url(url) == RepoInfo(owner="octo", repo="hello")

    @pytest.mark.parametrize("url", ["", "git@gitlab.com:octo/hello.git", "/srv/git/hello"])
    def test_non_github_remote(self, url) -> None:
        assert RepoInfo.from_remote_url(url) is None

    def test_computed_fields(self) -> None:
        repo = RepoInfo(owner="octo", repo="hello")

        assert repo.full_name == "octo/hello"
        assert repo.url == "https://github.com/octo/hello"
        assert repo.model_dump()["full_name"] == "octo/hello"


class TestCiStatus:
    """Tests for CiStatus."""

    @pytest.mark.parametrize(
        "state,expected",
        [
            ("SUCCESS", CiStatus.SUCCESS),
            ("PENDING", CiStatus.PENDING),
            ("EXPECTED", CiStatus.UNKNOWN),
            ("FAILURE", CiStatus.FAILURE),
            ("ERROR", CiStatus.FAILURE),
            (None, CiStatus.UNKNOWN),
        ],
    )
    def test_from_rollup(self, state, expected) -> None:
        assert CiStatus.from_rollup(state) == expected


class TestPullRequest:
    """Tests for PullRequest."""

    def test_from_search_node(self) -> None:
        node = {
            "number": 7,
            "title": "Fix login redirect",
            "author": {"login": "alice"},
            "headRefName": "fix-login",
            "updatedAt": "2024-05-01T10:00:00Z",
            "labels": {"nodes": [{"name": "bug"}, {"name": ""}]},
            "commits": {"nodes": [{"commit": {"oid": "abc123", "statusCheckRollup": {"state": "FAILURE"}}}]},
        }

        pr = PullRequest.from_search_node(node, "octo", "hello")

        assert pr.number == 7
        assert pr.author == "alice"
        assert pr.branch == "fix-login"
        assert pr.ci_status == CiStatus.FAILURE
        assert pr.labels == ("bug",)
        assert pr.head_sha == "abc123"
        assert pr.url == "https://github.com/octo/hello/pull/7"

    def test_from_sparse_node(self) -> None:
        pr = PullRequest.from_search_node({"number": 3, "author": None, "commits": None}, "octo", "hello")

        assert pr.author == "unknown"
        assert pr.ci_status == CiStatus.UNKNOWN
        assert pr.head_sha is None

    def test_search_text(self) -> None:
        text = make_pr(2, "Add dark mode", author="bob", branch="dark-mode").search_text
        assert text == "#2 bob Add dark mode dark-mode ✓ Passing"

    def test_number_required(self) -> None:
        with pytest.raises(ValidationError):
            PullRequest(owner="octo", repo="hello", title="x")


class TestWorkflows:
    """Tests for workflow models."""

    @pytest.mark.parametrize(
        "status,conclusion,symbol",
        [
            (WorkflowStatus.IN_PROGRESS, None, "●"),
            (WorkflowStatus.COMPLETED, WorkflowConclusion.SUCCESS, "✓"),
            (WorkflowStatus.COMPLETED, WorkflowConclusion.TIMED_OUT, "✗"),
            (WorkflowStatus.COMPLETED, WorkflowConclusion.SKIPPED, "○"),
            (WorkflowStatus.COMPLETED, WorkflowConclusion.CANCELLED, "⊘"),
            (WorkflowStatus.UNKNOWN, None, "?"),
        ],
    )
    def test_job_symbol(self, status, conclusion, symbol) -> None:
        job = WorkflowJob(id=1, name="tests", status=status, conclusion=conclusion)
        assert job.symbol[0] == symbol

    def test_unknown_values_from_github(self) -> None:
        assert WorkflowStatus.from_github("exploded") == WorkflowStatus.UNKNOWN
        assert WorkflowConclusion.from_github("exploded") == WorkflowConclusion.NONE
        assert WorkflowConclusion.from_github(None) is None
        assert AnnotationLevel.from_github("FAILURE") == AnnotationLevel.FAILURE

    def test_running_jobs(self) -> None:
        assert make_actions(running=True).has_running_jobs
        assert not make_actions().has_running_jobs

    def test_flat_jobs(self) -> None:
        jobs = make_actions().flat_jobs()
        assert [(run.id, job.name) for run, job in jobs] == [(42, "tests"), (42, "lint")]

    def test_empty_actions(self) -> None:
        assert ActionsData(pr_number=1).flat_jobs() == []

    def test_failed_steps_include_sub_steps(self) -> None:
        logs = JobLogs(
            job_id=1,
            job_name="build",
            steps=[
                JobStep(name="checkout"),
                JobStep(name="Run tests", is_failed=True),
                JobStep(
                    name="Parallel tests",
                    sub_steps=[
                        JobStep(name="Container 0"),
                        JobStep(name="Container 1", is_failed=True),
                    ],
                ),
            ],
        )

        assert [step.name for step in logs.failed_steps] == ["Run tests", "Container 1"]


class TestAnnotations:
    """Tests for CheckAnnotation."""

    def test_location_range(self) -> None:
        annotation = CheckAnnotation(path="src/a.py", start_line=3, end_line=5)
        assert annotation.location == "src/a.py:3-5"

    def test_format_for_copy(self) -> None:
        annotation = CheckAnnotation(
            path="src/a.py",
            start_line=3,
            end_line=3,
            level=AnnotationLevel.FAILURE,
            title="AssertionError",
            message="expected 1, got 2",
        )

        assert annotation.format_for_copy() == "src/a.py:3 [FAILURE] AssertionError\nexpected 1, got 2"


class TestPreview:
    """Tests for PreviewData."""

    def test_to_markdown(self) -> None:
        preview = PreviewData(
            pr_number=7,
            title="Fix login",
            comments=[
                PrComment(author="alice", body="Fixes the redirect.", is_pr_body=True),
                PrComment(author="bob", body="LGTM", created_at="2024-05-02T09:00:00Z"),
            ],
        )

        markdown = preview.to_markdown()

        assert markdown.startswith("# #7 Fix login")
        assert "**@alice** opened this pull request\n\nFixes the redirect." in markdown
        assert "**@bob** 2024-05-02\n\nLGTM" in markdown

    def test_no_description(self) -> None:
        assert "_No description provided._" in PreviewData(pr_number=1, title="x").to_markdown()
