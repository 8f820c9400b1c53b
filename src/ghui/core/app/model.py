"""
Application state.

The Model is the single source of truth for the interactive view. It is
owned by the event loop thread and mutated only by ``update``.

The navigation stack always has a MainList frame at the bottom. Views that
drill down (preview, workflows, job logs, annotations) and popups (labels,
help, checkout confirmation, errors) are pushed on top of it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

from ghui.core.cache.models import LabelFilter
from ghui.core.config.models import GhuiConfig
from ghui.core.github.models import (
    ActionsData,
    CheckAnnotation,
    JobLogs,
    JobStep,
    PreviewData,
    PullRequest,
    RepoInfo,
    Tab,
    WorkflowJob,
)
from ghui.core.sync.keys import ResourceKey
from ghui.core.app.messages import FetchError

# ============================================================================
# View frames
# ============================================================================

StepPath = tuple[int, ...]


@dataclass
class MainList:
    """The tabbed PR list (always at the bottom of the stack)."""


@dataclass
class PreviewView:
    pr: PullRequest
    scroll: int = 0


@dataclass
class WorkflowsView:
    pr: PullRequest
    selected: int = 0


@dataclass
class JobLogsView:
    pr: PullRequest
    run_id: int
    job: WorkflowJob
    selected_step: int = 0
    expanded: set[StepPath] = field(default_factory=set)
    scroll: int = 0


@dataclass
class AnnotationsView:
    pr: PullRequest
    run_id: int
    job: WorkflowJob
    selected: int = 0
    marked: set[int] = field(default_factory=set)


@dataclass
class LabelsPopup:
    selected: int = 0


@dataclass
class AddLabelPopup:
    text: str = ""
    global_scope: bool = False


@dataclass
class HelpPopup:
    pass


@dataclass
class CheckoutPopup:
    branch: str


@dataclass
class ErrorPopup:
    message: str


@dataclass
class UrlPopup:
    url: str


View = Union[
    MainList,
    PreviewView,
    WorkflowsView,
    JobLogsView,
    AnnotationsView,
    LabelsPopup,
    AddLabelPopup,
    HelpPopup,
    CheckoutPopup,
    ErrorPopup,
    UrlPopup,
]

POPUP_TYPES = (LabelsPopup, AddLabelPopup, HelpPopup, CheckoutPopup, ErrorPopup, UrlPopup)


# ============================================================================
# State
# ============================================================================


@dataclass
class SearchState:
    """Fuzzy filter of the main list.

    ``results`` holds ``(candidate index, score)`` pairs, best first.
    """

    query: str = ""
    editing: bool = False
    results: list[tuple[int, int]] = field(default_factory=list)


@dataclass
class StatusMessage:
    text: str
    expires_at: float
    is_error: bool = False


@dataclass
class Model:
    """
    Entire application state.

    Attributes:
        repo: Repository being browsed
        config: Effective configuration
        now: Wall-clock time of the latest Tick
        active_tab: Tab shown in the main list
        selected: Selected row of the visible main list
        views: Navigation stack (MainList at index 0)
        search: Fuzzy filter state
        labels: Label filters for the Labels tab
        data: Latest value per resource key
        fetched_at: When each resource's value was fetched
        requested_at: When each resource was last requested
        pending: In-flight generation per resource key
        generations: Highest generation issued per resource key
        cache_loading: Keys still waiting for their cached value; not fetched yet
        errors: Last failure per resource key (data kept, shown as stale)
        auth_error: Persistent banner; suspends background refresh
        status: Transient one-line status message
        quitting: Set once the user asked to quit
    """

    repo: RepoInfo
    config: GhuiConfig = field(default_factory=GhuiConfig)
    now: float = 0.0
    active_tab: Tab = Tab.MY_PRS
    selected: int = 0
    views: list[View] = field(default_factory=lambda: [MainList()])
    search: SearchState = field(default_factory=SearchState)
    labels: list[LabelFilter] = field(default_factory=list)
    labels_loaded: bool = False
    data: dict[ResourceKey, Any] = field(default_factory=dict)
    fetched_at: dict[ResourceKey, float] = field(default_factory=dict)
    requested_at: dict[ResourceKey, float] = field(default_factory=dict)
    pending: dict[ResourceKey, int] = field(default_factory=dict)
    generations: dict[ResourceKey, int] = field(default_factory=dict)
    cache_loading: set[ResourceKey] = field(default_factory=set)
    errors: dict[ResourceKey, FetchError] = field(default_factory=dict)
    auth_error: str | None = None
    status: StatusMessage | None = None
    quitting: bool = False

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    @property
    def top(self) -> View:
        return self.views[-1]

    @property
    def has_popup(self) -> bool:
        return any(isinstance(view, POPUP_TYPES) for view in self.views)

    def push(self, view: View) -> None:
        self.views.append(view)

    def pop(self) -> View | None:
        """Pop the top view. MainList is never popped."""
        if len(self.views) <= 1:
            return None
        return self.views.pop()

    # ------------------------------------------------------------------
    # Resource keys and generations
    # ------------------------------------------------------------------

    @property
    def repo_name(self) -> str:
        return self.repo.full_name

    def prs_key(self, tab: Tab | None = None) -> ResourceKey:
        return ResourceKey.prs(self.repo_name, tab or self.active_tab)

    def next_generation(self, key: ResourceKey) -> int:
        generation = self.generations.get(key, 0) + 1
        self.generations[key] = generation
        return generation

    def is_stale(self, key: ResourceKey, interval: float) -> bool:
        """Whether a resource is missing or older than ``interval`` seconds."""
        fetched = self.fetched_at.get(key)
        return key not in self.data or fetched is None or self.now - fetched >= interval

    # ------------------------------------------------------------------
    # Data accessors
    # ------------------------------------------------------------------

    def pr_list(self, tab: Tab | None = None) -> list[PullRequest]:
        return self.data.get(self.prs_key(tab)) or []

    def visible_prs(self) -> list[PullRequest]:
        prs = self.pr_list()
        if not self.search.query:
            return prs
        limit = self.config.ui.max_search_results
        return [prs[index] for index, _ in self.search.results[:limit] if index < len(prs)]

    def selected_pr(self) -> PullRequest | None:
        visible = self.visible_prs()
        if 0 <= self.selected < len(visible):
            return visible[self.selected]
        return None

    def preview(self, pr_number: int) -> PreviewData | None:
        return self.data.get(ResourceKey.preview(self.repo_name, pr_number))

    def actions(self, pr_number: int) -> ActionsData | None:
        return self.data.get(ResourceKey.workflows(self.repo_name, pr_number))

    def job_logs(self, run_id: int, job_id: int) -> JobLogs | None:
        return self.data.get(ResourceKey.job_logs(self.repo_name, run_id, job_id))

    def annotations(self, job_id: int) -> list[CheckAnnotation] | None:
        return self.data.get(ResourceKey.annotations(self.repo_name, job_id))

    def active_label_names(self) -> tuple[str, ...]:
        return tuple(label.label_name for label in self.labels)

    def is_loading(self, key: ResourceKey) -> bool:
        return key in self.pending or key in self.cache_loading


# ============================================================================
# Job log steps
# ============================================================================


def step_rows(logs: JobLogs | None, expanded: set[StepPath]) -> list[StepPath]:
    """
    Rows of the step list in display order.

    A row is the path of a step: ``(i,)`` for a top-level step, ``(i, j)`` for
    a sub-step (a CircleCI container) of an expanded step.
    """
    rows: list[StepPath] = []
    if logs is None or not logs.steps:
        return rows
    for i, step in enumerate(logs.steps):
        rows.append((i,))
        if (i,) in expanded and step.sub_steps:
            rows.extend((i, j) for j in range(len(step.sub_steps)))
    return rows


def step_at(logs: JobLogs | None, path: StepPath) -> JobStep | None:
    if logs is None or not logs.steps or path[0] >= len(logs.steps):
        return None
    step = logs.steps[path[0]]
    if len(path) == 1:
        return step
    if not step.sub_steps or path[1] >= len(step.sub_steps):
        return None
    return step.sub_steps[path[1]]


def step_text(step: JobStep) -> str:
    """Full output of a step, including its sub-steps."""
    if not step.sub_steps:
        return step.output
    return "\n\n".join(f"== {sub.name} ==\n{sub.output}" for sub in step.sub_steps)
