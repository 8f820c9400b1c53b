"""
Rich-based renderer for the ghui dashboard.

Rendering is a pure function of the Model: the event loop calls
``DashboardRenderer.render(model)`` after every batch of messages and hands
the result to ``rich.live.Live``.
"""

from __future__ import annotations

from rich.align import Align
from rich.console import Console, Group, RenderableType
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ghui.core.app.model import (
    AddLabelPopup,
    AnnotationsView,
    CheckoutPopup,
    ErrorPopup,
    HelpPopup,
    JobLogsView,
    LabelsPopup,
    Model,
    POPUP_TYPES,
    PreviewView,
    UrlPopup,
    View,
    WorkflowsView,
    step_at,
    step_rows,
)
from ghui.core.circleci.client import is_circleci_url
from ghui.core.github.models import AnnotationLevel, JobLogs, Tab
from ghui.core.sync.keys import ResourceKey

# Lines used by the tab bar and the footer.
CHROME_LINES = 4
MAX_EXPANDED_OUTPUT_LINES = 40

HELP_ROWS = [
    ("Main list", ""),
    ("1 / 2 / 3", "Switch tab"),
    ("j / k, ↓ / ↑", "Move selection"),
    ("g / G", "First / last"),
    ("/", "Fuzzy search (Enter keeps, Esc clears)"),
    ("Enter / p", "Preview"),
    ("w", "Workflows"),
    ("c", "Check out branch"),
    ("o", "Open in browser"),
    ("r", "Refresh"),
    ("l", "Label filters"),
    ("q", "Quit"),
    ("Views", ""),
    ("q / Esc", "Back"),
    ("Ctrl-d / Ctrl-u", "Half page down / up"),
    ("Enter", "Open job / open step in editor"),
    ("Space", "Expand step / select annotation"),
    ("y", "Copy test failures / annotations"),
    ("x", "Copy step output"),
    ("l", "Job logs (from annotations)"),
]

FOOTER_HINTS = {
    "MainList": "1-3 tabs  / search  Enter preview  w workflows  c checkout  l labels  ? help  q quit",
    "PreviewView": "j/k scroll  Ctrl-d/u page  w workflows  o browser  q back",
    "WorkflowsView": "j/k move  Enter open job  r refresh  o browser  q back",
    "JobLogsView": "j/k move  Space expand  Enter editor  y copy failures  x copy output  q back",
    "AnnotationsView": "j/k move  v select  y copy  l logs  o browser  q back",
}


def window(selected: int, count: int, height: int) -> tuple[int, int]:
    """
    Visible slice ``[start, end)`` of a list that keeps ``selected`` in view.

    Example:
        >>> window(selected=15, count=100, height=10)
        (10, 20)
    """
    if height <= 0 or count <= height:
        return 0, count
    start = max(0, min(selected - height // 2, count - height))
    return start, start + height


class DashboardRenderer:
    """
    Render the dashboard for the current Model.

    Layout, top to bottom:
    - Tab bar with the repository name and a loading indicator
    - Auth banner, when authentication failed
    - The view on top of the navigation stack (or a popup over it)
    - Footer: transient status message, or key hints for the view

    Example:
        >>> renderer = DashboardRenderer()
        >>> renderable = renderer.render(model)
    """

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    @property
    def body_height(self) -> int:
        return max(3, self.console.size.height - CHROME_LINES)

    def render(self, model: Model) -> RenderableType:
        parts: list[RenderableType] = [self._render_tabs(model)]
        if model.auth_error:
            parts.append(self._render_auth_banner(model.auth_error))

        body_view = next(view for view in reversed(model.views) if not _is_popup(view))
        popup = model.top if _is_popup(model.top) else None

        if popup is not None:
            parts.append(self._render_popup(model, popup))
        else:
            parts.append(self._render_view(model, body_view))

        parts.append(self._render_footer(model))
        return Group(*parts)

    # ------------------------------------------------------------------
    # Chrome
    # ------------------------------------------------------------------

    def _render_tabs(self, model: Model) -> Text:
        text = Text()
        text.append(f" {model.repo.full_name} ", style="bold cyan")
        for index, tab in enumerate(Tab, start=1):
            label = f" {index} {tab.title} "
            if tab == model.active_tab:
                text.append(label, style="bold reverse")
            else:
                text.append(label, style="dim")
            count = len(model.pr_list(tab)) if model.prs_key(tab) in model.data else None
            if count is not None:
                text.append(f"({count}) ", style="dim")
        if model.pending:
            text.append(" ⟳ loading", style="yellow")
        return text

    def _render_auth_banner(self, message: str) -> Panel:
        return Panel(
            Text(f"{message}\nSet GH_TOKEN or run `gh auth login`, then press r.", style="bold"),
            title="[bold]Authentication failed[/bold]",
            border_style="red",
        )

    def _render_footer(self, model: Model) -> Text:
        if model.status is not None:
            style = "bold red" if model.status.is_error else "green"
            return Text(model.status.text, style=style)
        hint = FOOTER_HINTS.get(type(model.top).__name__, "")
        return Text(hint, style="dim")

    def _stale_note(self, model: Model, key: ResourceKey) -> Text | None:
        error = model.errors.get(key)
        if error is None:
            return None
        suffix = " (showing cached data)" if key in model.data else ""
        return Text(f"⚠ {error.kind.value}: {error.message}{suffix}", style="yellow")

    def _loading(self, model: Model, key: ResourceKey, what: str) -> RenderableType:
        note = self._stale_note(model, key)
        if note is not None and not model.is_loading(key):
            return note
        return Text(f"Loading {what}...", style="dim italic")

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def _render_view(self, model: Model, view: View) -> RenderableType:
        if isinstance(view, PreviewView):
            return self._render_preview(model, view)
        if isinstance(view, WorkflowsView):
            return self._render_workflows(model, view)
        if isinstance(view, JobLogsView):
            return self._render_job_logs(model, view)
        if isinstance(view, AnnotationsView):
            return self._render_annotations(model, view)
        return self._render_main_list(model)

    def _render_main_list(self, model: Model) -> RenderableType:
        key = model.prs_key()
        parts: list[RenderableType] = []

        if model.search.editing or model.search.query:
            cursor = "█" if model.search.editing else ""
            parts.append(Text(f"/ {model.search.query}{cursor}", style="bold yellow"))

        note = self._stale_note(model, key)
        if note is not None:
            parts.append(note)

        if key not in model.data:
            if model.active_tab == Tab.LABELS and model.labels_loaded and not model.labels:
                parts.append(Text("No label filters. Press l to add one.", style="dim italic"))
            elif note is None or model.is_loading(key):
                parts.append(Text("Loading pull requests...", style="dim italic"))
            return Group(*parts)

        prs = model.visible_prs()
        if not prs:
            empty = "No matches" if model.search.query else "No open pull requests"
            if model.active_tab == Tab.LABELS and not model.labels:
                empty = "No label filters. Press l to add one."
            parts.append(Text(empty, style="dim italic"))
            return Group(*parts)

        table = Table(expand=True, box=None, show_edge=False, header_style="bold")
        table.add_column("#", justify="right", style="cyan", no_wrap=True)
        table.add_column("Title", ratio=3, no_wrap=True)
        table.add_column("Author", ratio=1, no_wrap=True)
        table.add_column("Branch", ratio=2, no_wrap=True, style="magenta")
        table.add_column("CI", no_wrap=True)

        start, end = window(model.selected, len(prs), self.body_height - len(parts) - 1)
        for index in range(start, end):
            pr = prs[index]
            table.add_row(
                str(pr.number),
                Text(pr.title),
                Text(pr.author),
                Text(pr.branch),
                Text(pr.ci_status.label, style=pr.ci_status.style),
                style="reverse" if index == model.selected else None,
            )
        parts.append(table)
        return Group(*parts)

    def _render_preview(self, model: Model, view: PreviewView) -> RenderableType:
        key = ResourceKey.preview(model.repo_name, view.pr.number)
        preview = model.preview(view.pr.number)
        if preview is None:
            content: RenderableType = self._loading(model, key, "preview")
        else:
            lines = preview.to_markdown().splitlines()
            visible = "\n".join(lines[view.scroll : view.scroll + self.body_height])
            note = self._stale_note(model, key)
            content = Group(note, Markdown(visible)) if note else Markdown(visible)
        return Panel(
            content,
            title=f"[bold]#{view.pr.number}[/bold] {view.pr.title}",
            subtitle=f"{view.pr.author} · {view.pr.branch}",
            border_style="blue",
        )

    def _render_workflows(self, model: Model, view: WorkflowsView) -> RenderableType:
        key = ResourceKey.workflows(model.repo_name, view.pr.number)
        actions = model.actions(view.pr.number)
        title = f"[bold]Workflows[/bold] #{view.pr.number} {view.pr.title}"
        if actions is None:
            return Panel(self._loading(model, key, "workflows"), title=title, border_style="blue")

        parts: list[RenderableType] = []
        note = self._stale_note(model, key)
        if note is not None:
            parts.append(note)
        jobs = actions.flat_jobs()
        uses_circleci = any(is_circleci_url(job.details_url) for _, job in jobs)
        if not actions.circleci_available and uses_circleci:
            reason = actions.circleci_error or "set CIRCLECI_TOKEN to include CircleCI jobs"
            parts.append(Text(f"CircleCI unavailable: {reason}", style="dim"))

        if not jobs:
            parts.append(Text("No checks for this pull request", style="dim italic"))
            return Panel(Group(*parts), title=title, border_style="blue")

        table = Table(expand=True, box=None, show_edge=False, header_style="bold")
        table.add_column("", no_wrap=True)
        table.add_column("Workflow", ratio=1, no_wrap=True, style="dim")
        table.add_column("Job", ratio=2, no_wrap=True)
        table.add_column("Notes", no_wrap=True, style="dim")

        start, end = window(view.selected, len(jobs), self.body_height - len(parts) - 3)
        for index in range(start, end):
            run, job = jobs[index]
            symbol, style = job.symbol
            notes = f"{job.annotation_count} annotations" if job.annotation_count else ""
            table.add_row(
                Text(symbol, style=style),
                Text(run.name),
                Text(job.name),
                notes,
                style="reverse" if index == view.selected else None,
            )
        parts.append(table)
        if actions.has_running_jobs:
            parts.append(Text("Jobs still running; refreshing automatically", style="yellow"))
        return Panel(Group(*parts), title=title, border_style="blue")

    def _render_job_logs(self, model: Model, view: JobLogsView) -> RenderableType:
        key = ResourceKey.job_logs(model.repo_name, view.run_id, view.job.id)
        logs = model.job_logs(view.run_id, view.job.id)
        title = f"[bold]Logs[/bold] {view.job.name}"
        if logs is None:
            return Panel(self._loading(model, key, "logs"), title=title, border_style="blue")
        if logs.steps:
            content = self._render_steps(logs, view)
        else:
            lines = logs.content.splitlines()
            visible = lines[view.scroll : view.scroll + self.body_height - 2]
            content = Text("\n".join(visible) or "(empty log)")
        return Panel(content, title=title, border_style="red" if view.job.is_failed else "blue")

    def _render_steps(self, logs: JobLogs, view: JobLogsView) -> RenderableType:
        rows = step_rows(logs, view.expanded)
        start, end = window(view.selected_step, len(rows), self.body_height - 2)
        lines = Text()
        for index in range(start, end):
            path = rows[index]
            step = step_at(logs, path)
            if step is None:
                continue
            indent = "    " * (len(path) - 1)
            expanded = path in view.expanded
            marker = "▾" if expanded else "▸"
            style = "red" if step.is_failed else ""
            if index == view.selected_step:
                style = f"{style} reverse".strip()
            lines.append(f"{indent}{marker} {'✗' if step.is_failed else '✓'} {step.name}\n", style=style)
            if expanded and not step.sub_steps:
                output = step.output.splitlines()
                shown = output[:MAX_EXPANDED_OUTPUT_LINES]
                for line in shown:
                    lines.append(f"{indent}    {line}\n", style="dim")
                if len(output) > len(shown):
                    more = len(output) - len(shown)
                    lines.append(f"{indent}    ... {more} more lines (Enter opens editor)\n", style="dim italic")
        return lines

    def _render_annotations(self, model: Model, view: AnnotationsView) -> RenderableType:
        key = ResourceKey.annotations(model.repo_name, view.job.id)
        annotations = model.annotations(view.job.id)
        title = f"[bold]Annotations[/bold] {view.job.name}"
        if annotations is None:
            return Panel(self._loading(model, key, "annotations"), title=title, border_style="blue")
        if not annotations:
            return Panel(Text("No annotations", style="dim italic"), title=title, border_style="blue")

        level_styles = {
            AnnotationLevel.FAILURE: "red",
            AnnotationLevel.WARNING: "yellow",
            AnnotationLevel.NOTICE: "blue",
        }
        table = Table(expand=True, box=None, show_edge=False, show_header=False)
        table.add_column("", no_wrap=True)
        table.add_column("Level", no_wrap=True)
        table.add_column("Location", ratio=1, no_wrap=True, style="cyan")
        table.add_column("Message", ratio=2, no_wrap=True)

        start, end = window(view.selected, len(annotations), self.body_height - 2)
        for index in range(start, end):
            annotation = annotations[index]
            first_line = annotation.message.splitlines()[0] if annotation.message else ""
            message = annotation.title or first_line
            table.add_row(
                Text("[x]" if index in view.marked else "[ ]"),
                Text(annotation.level.value, style=level_styles[annotation.level]),
                Text(annotation.location),
                Text(message),
                style="reverse" if index == view.selected else None,
            )
        return Panel(table, title=title, subtitle=f"{len(view.marked)} selected", border_style="blue")

    # ------------------------------------------------------------------
    # Popups
    # ------------------------------------------------------------------

    def _render_popup(self, model: Model, popup: View) -> RenderableType:
        if isinstance(popup, HelpPopup):
            panel = self._render_help()
        elif isinstance(popup, LabelsPopup):
            panel = self._render_labels(model, popup)
        elif isinstance(popup, AddLabelPopup):
            scope = "all repositories" if popup.global_scope else model.repo.full_name
            body = Text()
            body.append(f"Label: {popup.text}█\n", style="bold")
            body.append(f"Scope: {scope}  (Tab toggles)\n", style="dim")
            body.append("Enter save  Esc cancel", style="dim")
            panel = Panel(body, title="[bold]Add label filter[/bold]", border_style="cyan")
        elif isinstance(popup, CheckoutPopup):
            body = Text(f"Check out branch {popup.branch}?\n\n", style="bold")
            body.append("y confirm  n cancel", style="dim")
            panel = Panel(body, title="[bold]Checkout[/bold]", border_style="yellow")
        elif isinstance(popup, UrlPopup):
            body = Text("Could not open a browser. Open this URL manually:\n\n")
            body.append(popup.url, style="bold underline")
            panel = Panel(body, title="[bold]Open URL[/bold]", border_style="yellow")
        elif isinstance(popup, ErrorPopup):
            panel = Panel(Text(popup.message), title="[bold]Error[/bold]", border_style="red")
        else:
            return Text("")
        return Align.center(panel, vertical="middle", height=self.body_height)

    def _render_help(self) -> Panel:
        table = Table.grid(padding=(0, 2))
        table.add_column(style="bold cyan", justify="right")
        table.add_column()
        for keys, action in HELP_ROWS:
            if not action:
                table.add_row(Text(keys, style="bold underline"), "")
            else:
                table.add_row(keys, action)
        return Panel(table, title="[bold]Keys[/bold]", subtitle="any key closes", border_style="cyan")

    def _render_labels(self, model: Model, popup: LabelsPopup) -> Panel:
        if not model.labels:
            body: RenderableType = Text("No label filters yet. Press a to add one.", style="dim italic")
        else:
            table = Table.grid(padding=(0, 2))
            table.add_column()
            table.add_column(style="dim")
            for index, label in enumerate(model.labels):
                table.add_row(
                    Text(label.label_name, style="reverse" if index == popup.selected else ""),
                    Text(label.scope),
                )
            body = table
        return Panel(
            body,
            title="[bold]Label filters[/bold]",
            subtitle="a add  d delete  Esc close",
            border_style="cyan",
        )


def _is_popup(view: View) -> bool:
    return isinstance(view, POPUP_TYPES)
