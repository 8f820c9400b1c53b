"""
Maps fetch commands onto gateway calls.
"""

from __future__ import annotations

from typing import Any, Protocol

from ghui.core.app.commands import Fetch
from ghui.core.errors import ErrorKind, GatewayError
from ghui.core.github.client import GitHubClient
from ghui.core.providers import ProviderSet
from ghui.core.sync.keys import ResourceKind


class ResourceLoader(Protocol):
    """Anything that can turn a Fetch into a typed value."""

    def load(self, fetch: Fetch) -> Any: ...


class GatewayLoader:
    """Loads resources from GitHub and the CI providers."""

    def __init__(self, github: GitHubClient, providers: ProviderSet) -> None:
        self.github = github
        self.providers = providers

    def load(self, fetch: Fetch) -> Any:
        """
        Run the gateway call for a fetch.

        Raises:
            GatewayError: From the gateway, or when the fetch lacks the PR/job it needs
        """
        kind = fetch.key.kind

        if kind == ResourceKind.PRS:
            tab = fetch.key.tab
            assert tab is not None
            return self.github.list_pull_requests(tab, fetch.labels)

        if kind == ResourceKind.PREVIEW:
            return self.github.fetch_preview(int(fetch.key.scope))

        if kind == ResourceKind.WORKFLOWS:
            if fetch.pr is None:
                raise GatewayError(ErrorKind.NOT_FOUND, f"No pull request for {fetch.key}")
            return self.providers.fetch_actions(fetch.pr)

        if fetch.job is None:
            raise GatewayError(ErrorKind.NOT_FOUND, f"No job for {fetch.key}")
        if kind == ResourceKind.JOB_LOGS:
            return self.providers.fetch_job_log(fetch.job)
        return self.providers.fetch_annotations(fetch.job)
