"""
Commands returned by the state machine.

The reducer never performs I/O; it describes the work as commands and the
event loop hands them to the synchronization engine, the VCS adapter, the
clipboard, the browser or the editor.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from ghui.core.github.models import PullRequest, WorkflowJob
from ghui.core.sync.keys import ResourceKey


@dataclass(frozen=True)
class Fetch:
    """
    Fetch a resource in the background.

    Attributes:
        key: Resource to fetch
        generation: Generation tag; the result carries it back
        supersede: Issue even when a fetch for the key is in flight
        pr: Pull request the resource belongs to (PR-scoped kinds)
        job: Job the resource belongs to (job logs, annotations)
        labels: Label names (Labels tab)
    """

    key: ResourceKey
    generation: int
    supersede: bool = False
    pr: PullRequest | None = None
    job: WorkflowJob | None = None
    labels: tuple[str, ...] = ()


@dataclass(frozen=True)
class LoadCache:
    keys: tuple[ResourceKey, ...]


@dataclass(frozen=True)
class LoadLabels:
    pass


@dataclass(frozen=True)
class SaveLabel:
    label_name: str
    global_scope: bool = False


@dataclass(frozen=True)
class DeleteLabel:
    label_id: int


@dataclass(frozen=True)
class Checkout:
    branch: str


@dataclass(frozen=True)
class CopyToClipboard:
    text: str
    description: str


@dataclass(frozen=True)
class OpenUrl:
    url: str


@dataclass(frozen=True)
class OpenInEditor:
    content: str
    filename: str


@dataclass(frozen=True)
class QuitApp:
    pass


Command = Union[
    Fetch,
    LoadCache,
    LoadLabels,
    SaveLabel,
    DeleteLabel,
    Checkout,
    CopyToClipboard,
    OpenUrl,
    OpenInEditor,
    QuitApp,
]
