"""
Tests for the VCS adapter.
"""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from ghui.core.errors import CheckoutError
from ghui.core.vcs import CheckoutAttempt, VcsAdapter, VcsKind, checkout_plan


def completed(returncode: int = 0, stdout: str = "", stderr: str = "") -> MagicMock:
    result = MagicMock(spec=subprocess.CompletedProcess)
    result.returncode = returncode
    result.stdout = stdout
    result.stderr = stderr
    return result


class TestDetect:
    """Tests for VCS detection."""

    def test_plain_git(self, tmp_path) -> None:
        (tmp_path / ".git").mkdir()
        assert VcsAdapter(tmp_path).detect() == VcsKind.STANDARD

    def test_jj_in_working_directory(self, tmp_path) -> None:
        (tmp_path / ".jj").mkdir()
        assert VcsAdapter(tmp_path).detect() == VcsKind.ALTERNATE_DAG

    def test_jj_in_parent_directory(self, tmp_path) -> None:
        (tmp_path / ".jj").mkdir()
        nested = tmp_path / "src" / "pkg"
        nested.mkdir(parents=True)
        assert VcsAdapter(nested).detect() == VcsKind.ALTERNATE_DAG


class TestCheckoutPlan:
    """Tests for checkout_plan()."""

    def test_git_switch(self) -> None:
        assert checkout_plan(VcsKind.STANDARD, "feature") == [["git", "switch", "feature"]]

    def test_jj_edit_then_new(self) -> None:
        assert checkout_plan(VcsKind.ALTERNATE_DAG, "feature") == [
            ["jj", "edit", "feature"],
            ["jj", "new", "feature@origin"],
        ]


class TestCheckout:
    """Tests for VcsAdapter.checkout()."""

    @patch("ghui.core.vcs.subprocess.run")
    def test_git_success(self, mock_run, tmp_path) -> None:
        mock_run.return_value = completed(0)

        attempt = VcsAdapter(tmp_path).checkout("feature")

        assert isinstance(attempt, CheckoutAttempt)
        assert attempt.succeeded
        assert attempt.kind == VcsKind.STANDARD
        mock_run.assert_called_once()
        assert mock_run.call_args[0][0] == ["git", "switch", "feature"]
        assert mock_run.call_args[1]["cwd"] == tmp_path

    @patch("ghui.core.vcs.subprocess.run")
    def test_git_failure_raises(self, mock_run, tmp_path) -> None:
        mock_run.return_value = completed(1, stderr="fatal: invalid reference: feature")

        with pytest.raises(CheckoutError) as exc_info:
            VcsAdapter(tmp_path).checkout("feature")

        assert exc_info.value.branch == "feature"
        assert "invalid reference" in str(exc_info.value)

    @patch("ghui.core.vcs.subprocess.run")
    def test_jj_edit_fails_new_succeeds(self, mock_run, tmp_path) -> None:
        (tmp_path / ".jj").mkdir()
        mock_run.side_effect = [
            completed(1, stderr="Error: Commit is immutable"),
            completed(0),
        ]

        attempt = VcsAdapter(tmp_path).checkout("feature")

        assert attempt.succeeded
        assert [step.command for step in attempt.steps] == [
            ["jj", "edit", "feature"],
            ["jj", "new", "feature@origin"],
        ]
        assert not attempt.steps[0].succeeded
        assert attempt.steps[1].succeeded

    @patch("ghui.core.vcs.subprocess.run")
    def test_jj_edit_success_skips_new(self, mock_run, tmp_path) -> None:
        (tmp_path / ".jj").mkdir()
        mock_run.return_value = completed(0)

        attempt = VcsAdapter(tmp_path).checkout("feature")

        assert len(attempt.steps) == 1
        mock_run.assert_called_once()

    @patch("ghui.core.vcs.subprocess.run")
    def test_jj_both_fail_reports_both(self, mock_run, tmp_path) -> None:
        (tmp_path / ".jj").mkdir()
        mock_run.side_effect = [
            completed(1, stderr="Error: Commit is immutable"),
            completed(1, stderr="Error: Revision feature@origin doesn't exist"),
        ]

        with pytest.raises(CheckoutError) as exc_info:
            VcsAdapter(tmp_path).checkout("feature")

        assert len(exc_info.value.failures) == 2
        assert "immutable" in str(exc_info.value)
        assert "doesn't exist" in str(exc_info.value)

    @patch("ghui.core.vcs.subprocess.run")
    def test_missing_binary(self, mock_run, tmp_path) -> None:
        mock_run.side_effect = FileNotFoundError("git")

        with pytest.raises(CheckoutError):
            VcsAdapter(tmp_path).checkout("feature")


class TestRemote:
    """Tests for remote and repository discovery."""

    @patch("ghui.core.vcs.subprocess.run")
    def test_remote_url(self, mock_run, tmp_path) -> None:
        mock_run.return_value = completed(0, stdout="git@github.com:octo/hello.git\n")

        assert VcsAdapter(tmp_path).remote_url() == "git@github.com:octo/hello.git"

    @patch("ghui.core.vcs.subprocess.run")
    def test_no_origin(self, mock_run, tmp_path) -> None:
        mock_run.return_value = completed(2, stderr="error: No such remote 'origin'")

        assert VcsAdapter(tmp_path).remote_url() is None
        assert VcsAdapter(tmp_path).repo_info() is None

    @patch("ghui.core.vcs.subprocess.run")
    def test_repo_info(self, mock_run, tmp_path) -> None:
        mock_run.return_value = completed(0, stdout="https://github.com/octo/hello.git\n")

        repo = VcsAdapter(tmp_path).repo_info()

        assert repo is not None
        assert repo.full_name == "octo/hello"

    @patch("ghui.core.vcs.subprocess.run")
    def test_non_github_remote(self, mock_run, tmp_path) -> None:
        mock_run.return_value = completed(0, stdout="git@gitlab.com:octo/hello.git\n")

        assert VcsAdapter(tmp_path).repo_info() is None
