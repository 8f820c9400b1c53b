"""
Key bindings.

Raw terminal input is first normalized to a key name (``"enter"``, ``"up"``,
``"ctrl+d"``, or the character itself), then resolved to a message based on
the frame on top of the navigation stack.
"""

from __future__ import annotations

from ghui.core.app.messages import (
    ConfirmCheckout,
    CopyAnnotations,
    CopyStepOutput,
    CopyTestFailures,
    DeleteSelectedLabel,
    EnterSearch,
    ExitSearch,
    GoToBottom,
    GoToTop,
    LabelBackspace,
    LabelInput,
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
    ToggleAnnotationSelection,
    ToggleHelp,
    ToggleLabelScope,
    ToggleStep,
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
    UrlPopup,
    WorkflowsView,
)
from ghui.core.github.models import Tab

HALF_PAGE = 10

RAW_KEYS = {
    "\r": "enter",
    "\n": "enter",
    "\x1b": "esc",
    "\x7f": "backspace",
    "\x08": "backspace",
    "\t": "tab",
    " ": "space",
    "\x1b[A": "up",
    "\x1b[B": "down",
    "\x1b[C": "right",
    "\x1b[D": "left",
    "\x1bOA": "up",
    "\x1bOB": "down",
    "\x1b[Z": "backtab",
    "\x04": "ctrl+d",
    "\x15": "ctrl+u",
    "\x03": "ctrl+c",
}

TAB_KEYS = {"1": Tab.MY_PRS, "2": Tab.REVIEW_REQUESTED, "3": Tab.LABELS}


def normalize_key(raw: str) -> str:
    """Translate a raw terminal sequence into a key name."""
    return RAW_KEYS.get(raw, raw)


def is_text(key: str) -> bool:
    """Whether a key is a printable character (as opposed to a named key)."""
    return len(key) == 1 and key.isprintable()


def key_to_message(model: Model, key: str) -> Message | None:
    """
    Resolve a normalized key against the frame on top of the stack.

    Returns:
        The message to reduce, or None when the key is unbound
    """
    top = model.top

    if isinstance(top, HelpPopup):
        return ToggleHelp()
    if isinstance(top, (ErrorPopup, UrlPopup)):
        return PopView() if key in ("q", "esc", "enter") else None
    if isinstance(top, CheckoutPopup):
        if key in ("y", "enter"):
            return ConfirmCheckout()
        return PopView() if key in ("n", "q", "esc") else None
    if isinstance(top, AddLabelPopup):
        return _add_label_key(key)
    if isinstance(top, LabelsPopup):
        return _labels_key(key)
    if isinstance(top, MainList):
        if model.search.editing:
            return _search_key(key)
        return _main_list_key(model, key)

    common = _pushed_view_key(key)
    if common is not None:
        return common
    if isinstance(top, PreviewView):
        return _preview_key(key)
    if isinstance(top, WorkflowsView):
        return _workflows_key(key)
    if isinstance(top, JobLogsView):
        return _job_logs_key(key)
    if isinstance(top, AnnotationsView):
        return _annotations_key(key)
    return None


def _main_list_key(model: Model, key: str) -> Message | None:
    if key in TAB_KEYS:
        return SwitchTab(TAB_KEYS[key])
    if key == "esc":
        return ExitSearch(clear=True) if model.search.query else None
    bindings = {
        "q": Quit,
        "ctrl+c": Quit,
        "/": EnterSearch,
        "j": NextItem,
        "down": NextItem,
        "k": PreviousItem,
        "up": PreviousItem,
        "g": GoToTop,
        "G": GoToBottom,
        "o": OpenInBrowser,
        "enter": OpenPreview,
        "p": OpenPreview,
        "w": OpenWorkflows,
        "c": PromptCheckout,
        "r": Refresh,
        "?": ToggleHelp,
        "l": OpenLabelsPopup,
    }
    message = bindings.get(key)
    return message() if message else None


def _search_key(key: str) -> Message | None:
    if key == "esc":
        return ExitSearch(clear=True)
    if key == "enter":
        return ExitSearch(clear=False)
    if key == "backspace":
        return SearchBackspace()
    if key in ("down", "tab"):
        return NextItem()
    if key in ("up", "backtab"):
        return PreviousItem()
    if key == "space":
        return SearchInput(" ")
    if is_text(key):
        return SearchInput(key)
    return None


def _pushed_view_key(key: str) -> Message | None:
    """Keys shared by every drill-down view."""
    if key in ("q", "esc"):
        return PopView()
    if key == "ctrl+c":
        return Quit()
    if key == "?":
        return ToggleHelp()
    if key == "o":
        return OpenInBrowser()
    if key == "g":
        return GoToTop()
    if key == "G":
        return GoToBottom()
    return None


def _preview_key(key: str) -> Message | None:
    if key in ("j", "down"):
        return ScrollDown()
    if key in ("k", "up"):
        return ScrollUp()
    if key == "ctrl+d":
        return ScrollDown(HALF_PAGE)
    if key == "ctrl+u":
        return ScrollUp(HALF_PAGE)
    if key == "w":
        return OpenWorkflows()
    if key == "c":
        return PromptCheckout()
    return None


def _workflows_key(key: str) -> Message | None:
    bindings = {
        "j": NextItem,
        "down": NextItem,
        "k": PreviousItem,
        "up": PreviousItem,
        "r": Refresh,
        "enter": OpenSelectedJob,
        "c": PromptCheckout,
    }
    message = bindings.get(key)
    return message() if message else None


def _job_logs_key(key: str) -> Message | None:
    if key == "ctrl+d":
        return ScrollDown(HALF_PAGE)
    if key == "ctrl+u":
        return ScrollUp(HALF_PAGE)
    bindings = {
        "j": NextItem,
        "down": NextItem,
        "k": PreviousItem,
        "up": PreviousItem,
        "space": ToggleStep,
        "enter": OpenStepInEditor,
        "y": CopyTestFailures,
        "x": CopyStepOutput,
        "r": Refresh,
    }
    message = bindings.get(key)
    return message() if message else None


def _annotations_key(key: str) -> Message | None:
    bindings = {
        "j": NextItem,
        "down": NextItem,
        "k": PreviousItem,
        "up": PreviousItem,
        "v": ToggleAnnotationSelection,
        "space": ToggleAnnotationSelection,
        "y": CopyAnnotations,
        "l": OpenJobLogsFromAnnotations,
        "r": Refresh,
    }
    message = bindings.get(key)
    return message() if message else None


def _labels_key(key: str) -> Message | None:
    bindings = {
        "esc": PopView,
        "q": PopView,
        "a": OpenAddLabelPopup,
        "d": DeleteSelectedLabel,
        "backspace": DeleteSelectedLabel,
        "j": NextItem,
        "down": NextItem,
        "k": PreviousItem,
        "up": PreviousItem,
    }
    message = bindings.get(key)
    return message() if message else None


def _add_label_key(key: str) -> Message | None:
    if key == "esc":
        return PopView()
    if key == "enter":
        return SubmitLabel()
    if key == "backspace":
        return LabelBackspace()
    if key == "tab":
        return ToggleLabelScope()
    if key == "space":
        return LabelInput(" ")
    if is_text(key):
        return LabelInput(key)
    return None
