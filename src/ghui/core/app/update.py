"""
Application state machine.

``update(model, message)`` is the only place the Model changes. It performs no
I/O: time arrives through ``Tick`` messages and all work is described by the
returned commands, which the event loop dispatches.

Fetch bookkeeping:
- Every Fetch carries a generation allocated from ``model.generations``.
- ``model.pending[key]`` holds the generation the model is waiting for. A
  result with any other generation is stale and dropped.
- Background refreshes are only issued when nothing is pending for the key,
  so at most one fetch per key is outstanding unless the user refreshes
  manually (which supersedes).
"""

from __future__ import annotations

import logging
import re

from ghui.core.app.commands import (
    Checkout,
    Command,
    CopyToClipboard,
    DeleteLabel,
    Fetch,
    LoadCache,
    LoadLabels,
    OpenInEditor,
    OpenUrl,
    QuitApp,
    SaveLabel,
)
from ghui.core.app.keymap import key_to_message
from ghui.core.app.messages import (
    CacheLoaded,
    CheckoutCompleted,
    ClipboardResult,
    ConfirmCheckout,
    CopyAnnotations,
    CopyStepOutput,
    CopyTestFailures,
    DeleteSelectedLabel,
    EditorClosed,
    EnterSearch,
    ExitSearch,
    FetchCompleted,
    FetchError,
    GoToBottom,
    GoToTop,
    KeyPressed,
    LabelBackspace,
    LabelInput,
    LabelOperationFailed,
    LabelsLoaded,
    Message,
    NextItem,
    OpenAddLabelPopup,
    OpenInBrowser,
    OpenJobLogsFromAnnotations,
    OpenLabelsPopup,
    OpenPreview,
    OpenSelectedJob,
    OpenStepInEditor,
    OpenWorkflows,
    PopView,
    PreviousItem,
    PromptCheckout,
    Quit,
    Refresh,
    ScrollDown,
    ScrollUp,
    SearchBackspace,
    SearchInput,
    SubmitLabel,
    SwitchTab,
    Tick,
    ToggleAnnotationSelection,
    ToggleHelp,
    ToggleLabelScope,
    ToggleStep,
    UrlOpenFailed,
)
from ghui.core.app.model import (
    AddLabelPopup,
    AnnotationsView,
    CheckoutPopup,
    ErrorPopup,
    HelpPopup,
    JobLogsView,
    LabelsPopup,
    MainList,
    Model,
    PreviewView,
    StatusMessage,
    UrlPopup,
    WorkflowsView,
    step_at,
    step_rows,
    step_text,
)
from ghui.core.errors import ErrorKind
from ghui.core.github.logs import extract_test_failures
from ghui.core.github.models import PullRequest, Tab, WorkflowJob, WorkflowRun
from ghui.core.search import search
from ghui.core.sync.keys import ResourceKey, ResourceKind

logger = logging.getLogger(__name__)

Result = tuple[Model, list[Command]]


# ============================================================================
# Entry points
# ============================================================================


def init(model: Model) -> list[Command]:
    """
    Commands to run at startup: load labels and read the cached PR lists.

    The active tab is fetched once its cached entry has been read, so new
    generations continue from the stored one.
    """
    keys = tuple(model.prs_key(tab) for tab in Tab)
    model.cache_loading.update(keys)
    return [LoadLabels(), LoadCache(keys)]


def update(model: Model, msg: Message) -> Result:
    """
    Apply a message to the model.

    Args:
        model: Current state (mutated in place)
        msg: Message to apply

    Returns:
        The model and the commands to dispatch, in order
    """
    if isinstance(msg, KeyPressed):
        mapped = key_to_message(model, msg.key)
        if mapped is None:
            return model, []
        return update(model, mapped)

    handler = _HANDLERS.get(type(msg))
    if handler is None:
        logger.debug("Unhandled message %r", msg)
        return model, []
    return model, handler(model, msg)


# ============================================================================
# Helpers
# ============================================================================


def _issue(
    model: Model,
    key: ResourceKey,
    *,
    supersede: bool = False,
    pr: PullRequest | None = None,
    job: WorkflowJob | None = None,
    labels: tuple[str, ...] = (),
) -> Fetch:
    generation = model.next_generation(key)
    model.pending[key] = generation
    model.requested_at[key] = model.now
    return Fetch(key, generation, supersede=supersede, pr=pr, job=job, labels=labels)


def _fetch_prs(model: Model, tab: Tab, supersede: bool = False) -> Fetch:
    labels = model.active_label_names() if tab == Tab.LABELS else ()
    return _issue(model, model.prs_key(tab), supersede=supersede, labels=labels)


def _fetch_preview(model: Model, pr: PullRequest, supersede: bool = False) -> Fetch:
    return _issue(model, ResourceKey.preview(model.repo_name, pr.number), supersede=supersede, pr=pr)


def _fetch_workflows(model: Model, pr: PullRequest, supersede: bool = False) -> Fetch:
    key = ResourceKey.workflows(model.repo_name, pr.number)
    return _issue(model, key, supersede=supersede, pr=pr)


def _fetch_job_logs(model: Model, view: JobLogsView, supersede: bool = False) -> Fetch:
    key = ResourceKey.job_logs(model.repo_name, view.run_id, view.job.id)
    return _issue(model, key, supersede=supersede, pr=view.pr, job=view.job)


def _fetch_annotations(model: Model, view: AnnotationsView, supersede: bool = False) -> Fetch:
    key = ResourceKey.annotations(model.repo_name, view.job.id)
    return _issue(model, key, supersede=supersede, pr=view.pr, job=view.job)


def _needs_fetch(model: Model, key: ResourceKey, interval: float | None = None) -> bool:
    if key in model.pending or key in model.cache_loading:
        return False
    if interval is None:
        return key not in model.data
    return model.is_stale(key, interval)


def _set_status(model: Model, text: str, is_error: bool = False) -> None:
    expires_at = model.now + model.config.ui.status_message_seconds
    model.status = StatusMessage(text=text, expires_at=expires_at, is_error=is_error)


def _clamp(index: int, length: int) -> int:
    if length <= 0:
        return 0
    return max(0, min(index, length - 1))


def _rescore(model: Model) -> None:
    if not model.search.query:
        model.search.results = []
        return
    candidates = [pr.search_text for pr in model.pr_list()]
    model.search.results = search(model.search.query, candidates)


def _reselect(model: Model, identity: tuple[str, str, int] | None) -> None:
    """Keep the selection on the same PR when it is still visible, else clamp."""
    visible = model.visible_prs()
    if identity is not None:
        for index, pr in enumerate(visible):
            if pr.identity == identity:
                model.selected = index
                return
    model.selected = _clamp(model.selected, len(visible))


def _selected_identity(model: Model) -> tuple[str, str, int] | None:
    pr = model.selected_pr()
    return pr.identity if pr else None


def _context_pr(model: Model) -> PullRequest | None:
    """The pull request the user is looking at, from the top-most view that has one."""
    for view in reversed(model.views):
        if isinstance(view, (PreviewView, WorkflowsView, JobLogsView, AnnotationsView)):
            return view.pr
    return model.selected_pr()


def _selected_job(model: Model, view: WorkflowsView) -> tuple[WorkflowRun, WorkflowJob] | None:
    actions = model.actions(view.pr.number)
    if actions is None:
        return None
    jobs = actions.flat_jobs()
    if 0 <= view.selected < len(jobs):
        return jobs[view.selected]
    return None


def _safe_filename(text: str) -> str:
    return re.sub(r"[^A-Za-z0-9._-]+", "-", text).strip("-") or "log"


# ============================================================================
# Tabs and main list
# ============================================================================


def _on_switch_tab(model: Model, msg: SwitchTab) -> list[Command]:
    if msg.tab == model.active_tab:
        return []
    model.active_tab = msg.tab
    model.search.query = ""
    model.search.editing = False
    model.search.results = []
    model.selected = 0

    if msg.tab == Tab.LABELS and not model.labels_loaded:
        return []
    key = model.prs_key()
    if _needs_fetch(model, key, model.config.refresh.interval_seconds):
        return [_fetch_prs(model, msg.tab)]
    return []


def _move(model: Model, delta: int) -> None:
    top = model.top
    if isinstance(top, MainList):
        model.selected = _clamp(model.selected + delta, len(model.visible_prs()))
    elif isinstance(top, PreviewView):
        _scroll_preview(model, top, delta)
    elif isinstance(top, WorkflowsView):
        actions = model.actions(top.pr.number)
        count = len(actions.flat_jobs()) if actions else 0
        top.selected = _clamp(top.selected + delta, count)
    elif isinstance(top, JobLogsView):
        logs = model.job_logs(top.run_id, top.job.id)
        if logs is not None and logs.steps:
            rows = step_rows(logs, top.expanded)
            top.selected_step = _clamp(top.selected_step + delta, len(rows))
        else:
            lines = len(logs.content.splitlines()) if logs else 0
            top.scroll = _clamp(top.scroll + delta, lines)
    elif isinstance(top, AnnotationsView):
        annotations = model.annotations(top.job.id) or []
        top.selected = _clamp(top.selected + delta, len(annotations))
    elif isinstance(top, LabelsPopup):
        top.selected = _clamp(top.selected + delta, len(model.labels))


def _scroll_preview(model: Model, view: PreviewView, delta: int) -> None:
    preview = model.preview(view.pr.number)
    lines = len(preview.to_markdown().splitlines()) if preview else 0
    view.scroll = _clamp(view.scroll + delta, lines)


def _on_next(model: Model, msg: NextItem) -> list[Command]:
    _move(model, 1)
    return []


def _on_previous(model: Model, msg: PreviousItem) -> list[Command]:
    _move(model, -1)
    return []


def _on_scroll_down(model: Model, msg: ScrollDown) -> list[Command]:
    _move(model, msg.lines)
    return []


def _on_scroll_up(model: Model, msg: ScrollUp) -> list[Command]:
    _move(model, -msg.lines)
    return []


def _on_go_to_top(model: Model, msg: GoToTop) -> list[Command]:
    # Large enough to hit either end of any list.
    _move(model, -(1 << 30))
    return []


def _on_go_to_bottom(model: Model, msg: GoToBottom) -> list[Command]:
    _move(model, 1 << 30)
    return []


# ============================================================================
# Search
# ============================================================================


def _on_enter_search(model: Model, msg: EnterSearch) -> list[Command]:
    model.search.editing = True
    return []


def _on_exit_search(model: Model, msg: ExitSearch) -> list[Command]:
    identity = _selected_identity(model)
    model.search.editing = False
    if msg.clear:
        model.search.query = ""
        model.search.results = []
        _reselect(model, identity)
    return []


def _on_search_input(model: Model, msg: SearchInput) -> list[Command]:
    model.search.query += msg.char
    _rescore(model)
    model.selected = 0
    return []


def _on_search_backspace(model: Model, msg: SearchBackspace) -> list[Command]:
    if model.search.query:
        model.search.query = model.search.query[:-1]
        _rescore(model)
        model.selected = 0
    return []


# ============================================================================
# Navigation
# ============================================================================


def _on_open_preview(model: Model, msg: OpenPreview) -> list[Command]:
    pr = _context_pr(model)
    if pr is None:
        return []
    model.push(PreviewView(pr=pr))
    key = ResourceKey.preview(model.repo_name, pr.number)
    if _needs_fetch(model, key, model.config.refresh.interval_seconds):
        return [_fetch_preview(model, pr)]
    return []


def _on_open_workflows(model: Model, msg: OpenWorkflows) -> list[Command]:
    pr = _context_pr(model)
    if pr is None:
        return []
    model.push(WorkflowsView(pr=pr))
    key = ResourceKey.workflows(model.repo_name, pr.number)
    if _needs_fetch(model, key, model.config.refresh.actions_poll_seconds):
        return [_fetch_workflows(model, pr)]
    return []


def _on_open_selected_job(model: Model, msg: OpenSelectedJob) -> list[Command]:
    top = model.top
    if not isinstance(top, WorkflowsView):
        return []
    selected = _selected_job(model, top)
    if selected is None:
        return []
    run, job = selected

    if job.annotation_count > 0:
        annotations_view = AnnotationsView(pr=top.pr, run_id=run.id, job=job)
        model.push(annotations_view)
        key = ResourceKey.annotations(model.repo_name, job.id)
        if _needs_fetch(model, key):
            return [_fetch_annotations(model, annotations_view)]
        return []
    return _push_job_logs(model, JobLogsView(pr=top.pr, run_id=run.id, job=job))


def _on_open_job_logs_from_annotations(
    model: Model, msg: OpenJobLogsFromAnnotations
) -> list[Command]:
    top = model.top
    if not isinstance(top, AnnotationsView):
        return []
    return _push_job_logs(model, JobLogsView(pr=top.pr, run_id=top.run_id, job=top.job))


def _push_job_logs(model: Model, view: JobLogsView) -> list[Command]:
    model.push(view)
    key = ResourceKey.job_logs(model.repo_name, view.run_id, view.job.id)
    if _needs_fetch(model, key):
        return [_fetch_job_logs(model, view)]
    return []


def _on_toggle_help(model: Model, msg: ToggleHelp) -> list[Command]:
    if isinstance(model.top, HelpPopup):
        model.pop()
    else:
        model.push(HelpPopup())
    return []


def _on_pop_view(model: Model, msg: PopView) -> list[Command]:
    model.pop()
    return []


def _on_quit(model: Model, msg: Quit) -> list[Command]:
    model.quitting = True
    return [QuitApp()]


# ============================================================================
# Refresh
# ============================================================================


def _on_refresh(model: Model, msg: Refresh) -> list[Command]:
    model.auth_error = None
    top = next(
        (view for view in reversed(model.views) if not isinstance(view, (HelpPopup, ErrorPopup))),
        model.views[0],
    )

    if isinstance(top, PreviewView):
        return [_fetch_preview(model, top.pr, supersede=True)]
    if isinstance(top, WorkflowsView):
        return [_fetch_workflows(model, top.pr, supersede=True)]
    if isinstance(top, JobLogsView):
        return [_fetch_job_logs(model, top, supersede=True)]
    if isinstance(top, AnnotationsView):
        return [_fetch_annotations(model, top, supersede=True)]
    if model.active_tab == Tab.LABELS and not model.labels_loaded:
        return []
    if model.prs_key() in model.cache_loading:
        # The startup fetch follows the cache read.
        return []
    _set_status(model, f"Refreshing {model.active_tab.title}...")
    return [_fetch_prs(model, model.active_tab, supersede=True)]


def _on_tick(model: Model, msg: Tick) -> list[Command]:
    model.now = msg.now
    if model.status is not None and model.now >= model.status.expires_at:
        model.status = None
    if model.auth_error is not None:
        return []

    top = model.top
    if isinstance(top, MainList):
        if model.active_tab == Tab.LABELS and not model.labels_loaded:
            return []
        key = model.prs_key()
        if _due(model, key, model.config.refresh.interval_seconds):
            return [_fetch_prs(model, model.active_tab)]
    elif isinstance(top, WorkflowsView):
        actions = model.actions(top.pr.number)
        key = ResourceKey.workflows(model.repo_name, top.pr.number)
        if (
            actions is not None
            and actions.has_running_jobs
            and _due(model, key, model.config.refresh.actions_poll_seconds)
        ):
            return [_fetch_workflows(model, top.pr)]
    return []


def _due(model: Model, key: ResourceKey, interval: float) -> bool:
    if key in model.pending or key in model.cache_loading:
        return False
    last = max(model.fetched_at.get(key, 0.0), model.requested_at.get(key, 0.0))
    return model.now - last >= interval


# ============================================================================
# Results
# ============================================================================


def _on_fetch_completed(model: Model, msg: FetchCompleted) -> list[Command]:
    key = msg.key
    if model.pending.get(key) != msg.generation:
        logger.debug("Dropping stale result for %s (generation %d)", key, msg.generation)
        return []
    del model.pending[key]

    if msg.error is not None:
        return _apply_error(model, key, msg.error)

    identity = _selected_identity(model)
    model.data[key] = msg.value
    model.fetched_at[key] = model.now
    model.errors.pop(key, None)

    if key.kind == ResourceKind.PRS and key.tab == model.active_tab:
        _rescore(model)
        _reselect(model, identity)
    _clamp_views(model)
    return []


def _apply_error(model: Model, key: ResourceKey, error: FetchError) -> list[Command]:
    model.errors[key] = error

    if error.kind == ErrorKind.AUTH:
        model.auth_error = error.message
        return []

    if error.kind == ErrorKind.NOT_FOUND and key.kind.is_pr_scoped:
        number = key.pr_number
        assert number is not None
        _evict_pr(model, number)
        _set_status(model, f"PR #{number} no longer exists", is_error=True)
        return []

    if error.kind == ErrorKind.NOT_FOUND:
        _set_status(model, error.message, is_error=True)
    return []


def _evict_pr(model: Model, number: int) -> None:
    """Drop a vanished PR from every list and close the views showing it."""
    identity = _selected_identity(model)

    for key, value in list(model.data.items()):
        if key.kind == ResourceKind.PRS:
            model.data[key] = [pr for pr in value if pr.number != number]
        elif key.kind.is_pr_scoped and key.pr_number == number:
            del model.data[key]
            model.fetched_at.pop(key, None)
            model.errors.pop(key, None)

    for index, view in enumerate(model.views):
        if isinstance(view, (PreviewView, WorkflowsView, JobLogsView, AnnotationsView)):
            if view.pr.number == number:
                del model.views[index:]
                break

    _rescore(model)
    _reselect(model, identity)


def _clamp_views(model: Model) -> None:
    for view in model.views:
        if isinstance(view, WorkflowsView):
            actions = model.actions(view.pr.number)
            view.selected = _clamp(view.selected, len(actions.flat_jobs()) if actions else 0)
        elif isinstance(view, AnnotationsView):
            annotations = model.annotations(view.job.id) or []
            view.selected = _clamp(view.selected, len(annotations))
            view.marked = {index for index in view.marked if index < len(annotations)}
        elif isinstance(view, JobLogsView):
            logs = model.job_logs(view.run_id, view.job.id)
            view.selected_step = _clamp(view.selected_step, len(step_rows(logs, view.expanded)))


def _on_cache_loaded(model: Model, msg: CacheLoaded) -> list[Command]:
    key = msg.key
    model.cache_loading.discard(key)
    if msg.generation > model.generations.get(key, 0):
        model.generations[key] = msg.generation

    if msg.value is not None and key not in model.data:
        model.data[key] = msg.value
        model.fetched_at[key] = msg.fetched_at
        if key.tab == model.active_tab:
            _rescore(model)
            _reselect(model, None)

    # The active tab is always fetched once its cached copy is on screen.
    if key != model.prs_key() or key in model.pending:
        return []
    if model.active_tab == Tab.LABELS and not model.labels_loaded:
        return []
    return [_fetch_prs(model, model.active_tab)]


# ============================================================================
# Labels
# ============================================================================


def _on_labels_loaded(model: Model, msg: LabelsLoaded) -> list[Command]:
    previous = model.active_label_names()
    first_load = not model.labels_loaded
    model.labels = list(msg.labels)
    model.labels_loaded = True

    for view in model.views:
        if isinstance(view, LabelsPopup):
            view.selected = _clamp(view.selected, len(model.labels))

    key = model.prs_key(Tab.LABELS)
    names_changed = model.active_label_names() != previous and not first_load
    if names_changed:
        # Whatever was fetched for the old label set no longer applies.
        model.fetched_at.pop(key, None)

    if model.active_tab != Tab.LABELS or key in model.cache_loading:
        return []
    if names_changed:
        return [_fetch_prs(model, Tab.LABELS, supersede=True)]
    if _needs_fetch(model, key, model.config.refresh.interval_seconds):
        return [_fetch_prs(model, Tab.LABELS)]
    return []


def _on_label_operation_failed(model: Model, msg: LabelOperationFailed) -> list[Command]:
    model.push(ErrorPopup(message=f"Label update failed: {msg.message}"))
    return []


def _on_open_labels_popup(model: Model, msg: OpenLabelsPopup) -> list[Command]:
    model.push(LabelsPopup())
    return []


def _on_open_add_label_popup(model: Model, msg: OpenAddLabelPopup) -> list[Command]:
    model.push(AddLabelPopup())
    return []


def _on_label_input(model: Model, msg: LabelInput) -> list[Command]:
    if isinstance(model.top, AddLabelPopup):
        model.top.text += msg.char
    return []


def _on_label_backspace(model: Model, msg: LabelBackspace) -> list[Command]:
    if isinstance(model.top, AddLabelPopup):
        model.top.text = model.top.text[:-1]
    return []


def _on_toggle_label_scope(model: Model, msg: ToggleLabelScope) -> list[Command]:
    if isinstance(model.top, AddLabelPopup):
        model.top.global_scope = not model.top.global_scope
    return []


def _on_submit_label(model: Model, msg: SubmitLabel) -> list[Command]:
    top = model.top
    if not isinstance(top, AddLabelPopup):
        return []
    name = top.text.strip()
    if not name:
        _set_status(model, "Label name cannot be empty", is_error=True)
        return []
    model.pop()
    return [SaveLabel(label_name=name, global_scope=top.global_scope)]


def _on_delete_selected_label(model: Model, msg: DeleteSelectedLabel) -> list[Command]:
    top = model.top
    if not isinstance(top, LabelsPopup) or not model.labels:
        return []
    label = model.labels[_clamp(top.selected, len(model.labels))]
    _set_status(model, f"Removed label {label.label_name}")
    return [DeleteLabel(label_id=label.id)]


# ============================================================================
# Job logs and annotations
# ============================================================================


def _on_toggle_step(model: Model, msg: ToggleStep) -> list[Command]:
    top = model.top
    if not isinstance(top, JobLogsView):
        return []
    rows = step_rows(model.job_logs(top.run_id, top.job.id), top.expanded)
    if not rows:
        return []
    path = rows[_clamp(top.selected_step, len(rows))]
    if path in top.expanded:
        top.expanded.discard(path)
    else:
        top.expanded.add(path)
    return []


def _on_toggle_annotation_selection(model: Model, msg: ToggleAnnotationSelection) -> list[Command]:
    top = model.top
    if not isinstance(top, AnnotationsView) or not model.annotations(top.job.id):
        return []
    if top.selected in top.marked:
        top.marked.discard(top.selected)
    else:
        top.marked.add(top.selected)
    return []


def _on_copy_test_failures(model: Model, msg: CopyTestFailures) -> list[Command]:
    top = model.top
    if not isinstance(top, JobLogsView):
        return []
    logs = model.job_logs(top.run_id, top.job.id)
    if logs is None:
        _set_status(model, "Logs are still loading")
        return []
    text = extract_test_failures(logs) or top.job.text or top.job.summary or ""
    if not text.strip():
        _set_status(model, "No test failures found")
        return []
    return [CopyToClipboard(text=text, description="test failures")]


def _selected_step_output(model: Model, view: JobLogsView) -> tuple[str, str] | None:
    """(name, text) of the selected step, or the whole log when it has no steps."""
    logs = model.job_logs(view.run_id, view.job.id)
    if logs is None:
        return None
    if not logs.steps:
        return view.job.name, logs.content
    rows = step_rows(logs, view.expanded)
    step = step_at(logs, rows[_clamp(view.selected_step, len(rows))])
    if step is None:
        return None
    return step.name, step_text(step)


def _on_copy_step_output(model: Model, msg: CopyStepOutput) -> list[Command]:
    top = model.top
    if not isinstance(top, JobLogsView):
        return []
    selected = _selected_step_output(model, top)
    if selected is None or not selected[1].strip():
        _set_status(model, "Nothing to copy")
        return []
    name, text = selected
    return [CopyToClipboard(text=text, description=f"output of {name}")]


def _on_copy_annotations(model: Model, msg: CopyAnnotations) -> list[Command]:
    top = model.top
    if not isinstance(top, AnnotationsView):
        return []
    annotations = model.annotations(top.job.id) or []
    indices = sorted(top.marked) or [top.selected]
    chosen = [annotations[index] for index in indices if index < len(annotations)]
    if not chosen:
        _set_status(model, "Nothing to copy")
        return []
    text = "\n\n".join(annotation.format_for_copy() for annotation in chosen)
    noun = "annotation" if len(chosen) == 1 else "annotations"
    return [CopyToClipboard(text=text, description=f"{len(chosen)} {noun}")]


def _on_open_step_in_editor(model: Model, msg: OpenStepInEditor) -> list[Command]:
    top = model.top
    if not isinstance(top, JobLogsView):
        return []
    selected = _selected_step_output(model, top)
    if selected is None:
        _set_status(model, "Logs are still loading")
        return []
    name, text = selected
    filename = f"{_safe_filename(top.job.name)}-{_safe_filename(name)}.log"
    return [OpenInEditor(content=text, filename=filename)]


def _on_clipboard_result(model: Model, msg: ClipboardResult) -> list[Command]:
    _set_status(model, msg.message, is_error=not msg.success)
    return []


def _on_editor_closed(model: Model, msg: EditorClosed) -> list[Command]:
    if msg.error:
        _set_status(model, msg.error, is_error=True)
    return []


# ============================================================================
# Browser
# ============================================================================


def _browser_url(model: Model) -> str | None:
    for view in reversed(model.views):
        if isinstance(view, (JobLogsView, AnnotationsView)):
            return view.job.details_url or view.pr.url
        if isinstance(view, WorkflowsView):
            selected = _selected_job(model, view)
            if selected is not None:
                run, job = selected
                return job.details_url or run.html_url or view.pr.url
            return view.pr.url
        if isinstance(view, PreviewView):
            return view.pr.url
    pr = model.selected_pr()
    return pr.url if pr else None


def _on_open_in_browser(model: Model, msg: OpenInBrowser) -> list[Command]:
    url = _browser_url(model)
    if url is None:
        return []
    return [OpenUrl(url=url)]


def _on_url_open_failed(model: Model, msg: UrlOpenFailed) -> list[Command]:
    model.push(UrlPopup(url=msg.url))
    return []


# ============================================================================
# Checkout
# ============================================================================


def _on_prompt_checkout(model: Model, msg: PromptCheckout) -> list[Command]:
    pr = _context_pr(model)
    if pr is None:
        return []
    if not pr.branch:
        _set_status(model, f"PR #{pr.number} has no branch to check out", is_error=True)
        return []
    model.push(CheckoutPopup(branch=pr.branch))
    return []


def _on_confirm_checkout(model: Model, msg: ConfirmCheckout) -> list[Command]:
    top = model.top
    if not isinstance(top, CheckoutPopup):
        return []
    model.pop()
    _set_status(model, f"Checking out {top.branch}...")
    return [Checkout(branch=top.branch)]


def _on_checkout_completed(model: Model, msg: CheckoutCompleted) -> list[Command]:
    if not msg.success:
        _set_status(model, msg.message or f"Checkout of {msg.branch} failed", is_error=True)
        return []
    _set_status(model, msg.message or f"Checked out {msg.branch}")
    if model.config.ui.exit_after_checkout:
        model.quitting = True
        return [QuitApp()]
    return []


_HANDLERS = {
    SwitchTab: _on_switch_tab,
    NextItem: _on_next,
    PreviousItem: _on_previous,
    GoToTop: _on_go_to_top,
    GoToBottom: _on_go_to_bottom,
    ScrollDown: _on_scroll_down,
    ScrollUp: _on_scroll_up,
    OpenPreview: _on_open_preview,
    OpenWorkflows: _on_open_workflows,
    OpenSelectedJob: _on_open_selected_job,
    OpenJobLogsFromAnnotations: _on_open_job_logs_from_annotations,
    OpenLabelsPopup: _on_open_labels_popup,
    OpenAddLabelPopup: _on_open_add_label_popup,
    ToggleHelp: _on_toggle_help,
    PopView: _on_pop_view,
    Quit: _on_quit,
    Refresh: _on_refresh,
    EnterSearch: _on_enter_search,
    ExitSearch: _on_exit_search,
    SearchInput: _on_search_input,
    SearchBackspace: _on_search_backspace,
    LabelInput: _on_label_input,
    LabelBackspace: _on_label_backspace,
    ToggleLabelScope: _on_toggle_label_scope,
    SubmitLabel: _on_submit_label,
    DeleteSelectedLabel: _on_delete_selected_label,
    ToggleStep: _on_toggle_step,
    ToggleAnnotationSelection: _on_toggle_annotation_selection,
    CopyTestFailures: _on_copy_test_failures,
    CopyStepOutput: _on_copy_step_output,
    CopyAnnotations: _on_copy_annotations,
    OpenStepInEditor: _on_open_step_in_editor,
    OpenInBrowser: _on_open_in_browser,
    PromptCheckout: _on_prompt_checkout,
    ConfirmCheckout: _on_confirm_checkout,
    Tick: _on_tick,
    FetchCompleted: _on_fetch_completed,
    CacheLoaded: _on_cache_loaded,
    LabelsLoaded: _on_labels_loaded,
    LabelOperationFailed: _on_label_operation_failed,
    CheckoutCompleted: _on_checkout_completed,
    ClipboardResult: _on_clipboard_result,
    UrlOpenFailed: _on_url_open_failed,
    EditorClosed: _on_editor_closed,
}
