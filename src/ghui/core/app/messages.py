"""
Messages reduced by the application state machine.

Every input to ``update`` is one of these: keystrokes (already mapped to
intent messages by the keymap, or raw ``KeyPressed``), timer ticks, and
results posted back by background work.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

from ghui.core.cache.models import LabelFilter
from ghui.core.errors import ErrorKind
from ghui.core.github.models import Tab
from ghui.core.sync.keys import ResourceKey


@dataclass(frozen=True)
class FetchError:
    """Failure attached to a fetch result."""

    kind: ErrorKind
    message: str


# ============================================================================
# Input
# ============================================================================


@dataclass(frozen=True)
class KeyPressed:
    key: str


@dataclass(frozen=True)
class SwitchTab:
    tab: Tab


@dataclass(frozen=True)
class NextItem:
    pass


@dataclass(frozen=True)
class PreviousItem:
    pass


@dataclass(frozen=True)
class GoToTop:
    pass


@dataclass(frozen=True)
class GoToBottom:
    pass


@dataclass(frozen=True)
class ScrollDown:
    lines: int = 1


@dataclass(frozen=True)
class ScrollUp:
    lines: int = 1


@dataclass(frozen=True)
class OpenPreview:
    pass


@dataclass(frozen=True)
class OpenWorkflows:
    pass


@dataclass(frozen=True)
class OpenSelectedJob:
    pass


@dataclass(frozen=True)
class OpenJobLogsFromAnnotations:
    pass


@dataclass(frozen=True)
class OpenLabelsPopup:
    pass


@dataclass(frozen=True)
class OpenAddLabelPopup:
    pass


@dataclass(frozen=True)
class ToggleHelp:
    pass


@dataclass(frozen=True)
class PopView:
    pass


@dataclass(frozen=True)
class Quit:
    pass


@dataclass(frozen=True)
class Refresh:
    """Manual refresh of the resource on screen (supersedes in-flight fetches)."""


@dataclass(frozen=True)
class EnterSearch:
    pass


@dataclass(frozen=True)
class ExitSearch:
    clear: bool = False


@dataclass(frozen=True)
class SearchInput:
    char: str


@dataclass(frozen=True)
class SearchBackspace:
    pass


@dataclass(frozen=True)
class LabelInput:
    char: str


@dataclass(frozen=True)
class LabelBackspace:
    pass


@dataclass(frozen=True)
class ToggleLabelScope:
    pass


@dataclass(frozen=True)
class SubmitLabel:
    pass


@dataclass(frozen=True)
class DeleteSelectedLabel:
    pass


@dataclass(frozen=True)
class ToggleStep:
    pass


@dataclass(frozen=True)
class ToggleAnnotationSelection:
    pass


@dataclass(frozen=True)
class CopyTestFailures:
    pass


@dataclass(frozen=True)
class CopyStepOutput:
    pass


@dataclass(frozen=True)
class CopyAnnotations:
    pass


@dataclass(frozen=True)
class OpenStepInEditor:
    pass


@dataclass(frozen=True)
class OpenInBrowser:
    pass


@dataclass(frozen=True)
class PromptCheckout:
    pass


@dataclass(frozen=True)
class ConfirmCheckout:
    pass


@dataclass(frozen=True)
class Tick:
    """Wall-clock time, injected by the event loop."""

    now: float


# ============================================================================
# Results of background work
# ============================================================================


@dataclass(frozen=True)
class FetchCompleted:
    """Exactly one per issued fetch, successful or not."""

    key: ResourceKey
    generation: int
    value: Any = None
    error: FetchError | None = None


@dataclass(frozen=True)
class CacheLoaded:
    """A cached entry read at startup (``value`` is None when nothing was cached)."""

    key: ResourceKey
    value: Any = None
    fetched_at: float = 0.0
    generation: int = 0


@dataclass(frozen=True)
class LabelsLoaded:
    labels: list[LabelFilter] = field(default_factory=list)
    changed: bool = False


@dataclass(frozen=True)
class LabelOperationFailed:
    message: str


@dataclass(frozen=True)
class CheckoutCompleted:
    branch: str
    success: bool
    message: str = ""


@dataclass(frozen=True)
class ClipboardResult:
    success: bool
    message: str


@dataclass(frozen=True)
class UrlOpenFailed:
    url: str


@dataclass(frozen=True)
class EditorClosed:
    error: str | None = None


Message = Union[
    KeyPressed,
    SwitchTab,
    NextItem,
    PreviousItem,
    GoToTop,
    GoToBottom,
    ScrollDown,
    ScrollUp,
    OpenPreview,
    OpenWorkflows,
    OpenSelectedJob,
    OpenJobLogsFromAnnotations,
    OpenLabelsPopup,
    OpenAddLabelPopup,
    ToggleHelp,
    PopView,
    Quit,
    Refresh,
    EnterSearch,
    ExitSearch,
    SearchInput,
    SearchBackspace,
    LabelInput,
    LabelBackspace,
    ToggleLabelScope,
    SubmitLabel,
    DeleteSelectedLabel,
    ToggleStep,
    ToggleAnnotationSelection,
    CopyTestFailures,
    CopyStepOutput,
    CopyAnnotations,
    OpenStepInEditor,
    OpenInBrowser,
    PromptCheckout,
    ConfirmCheckout,
    Tick,
    FetchCompleted,
    CacheLoaded,
    LabelsLoaded,
    LabelOperationFailed,
    CheckoutCompleted,
    ClipboardResult,
    UrlOpenFailed,
    EditorClosed,
]
