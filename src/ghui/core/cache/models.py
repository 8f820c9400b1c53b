"""
Records stored by the cache database.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class CacheEntry:
    """A cached resource payload.

    Attributes:
        key: Resource key string (e.g. ``PRs:owner/repo:MyPRs``)
        payload: Decoded JSON payload
        fetched_at: Unix timestamp of the fetch that produced the payload
        generation: Generation number of that fetch
    """

    key: str
    payload: Any
    fetched_at: float
    generation: int

    def age(self, now: float) -> float:
        return max(0.0, now - self.fetched_at)


@dataclass(frozen=True)
class LabelFilter:
    """A label the Labels tab filters on.

    Labels without an owner/repo apply to every repository.
    """

    id: int
    label_name: str
    repo_owner: str | None = None
    repo_name: str | None = None

    @property
    def is_global(self) -> bool:
        return self.repo_owner is None and self.repo_name is None

    @property
    def scope(self) -> str:
        if self.is_global:
            return "global"
        return f"{self.repo_owner}/{self.repo_name}"
