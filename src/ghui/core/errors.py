"""
Error taxonomy for ghui.

Every failure that can reach the application state machine is one of the
classes below. Gateway failures carry an ErrorKind so the reducer can decide
how to surface them (banner, per-resource status, or eviction) without
inspecting exception messages.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Classification of a failed remote operation."""

    AUTH = "auth"
    RATE_LIMIT = "rate_limit"
    NETWORK = "network"
    NOT_FOUND = "not_found"

    @property
    def is_retriable(self) -> bool:
        """Whether the next timer tick may retry automatically."""
        return self in (ErrorKind.NETWORK, ErrorKind.RATE_LIMIT)


class GhuiError(Exception):
    """Base class for ghui errors."""

    pass


class GatewayError(GhuiError):
    """A remote call (GitHub, CircleCI, gh CLI) failed."""

    def __init__(self, kind: ErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message

    def __repr__(self) -> str:
        return f"GatewayError(kind={self.kind.value!r}, message={self.message!r})"


class CheckoutError(GhuiError):
    """Checking out a branch failed after every attempt."""

    def __init__(self, branch: str, failures: list[str]) -> None:
        self.branch = branch
        self.failures = failures
        detail = "; ".join(failures) if failures else "unknown error"
        super().__init__(f"Failed to checkout '{branch}': {detail}")


class ClipboardError(GhuiError):
    """No clipboard tool accepted the text."""

    pass


class CacheError(GhuiError):
    """The cache database could not be opened or written."""

    pass
