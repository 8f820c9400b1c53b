"""
Data synchronization: resource keys, gateway loading and the background engine.
"""

from typing import TYPE_CHECKING, Any

from ghui.core.sync.keys import ResourceKey, ResourceKind

if TYPE_CHECKING:
    from ghui.core.sync.engine import SyncEngine
    from ghui.core.sync.loader import GatewayLoader

__all__ = ["GatewayLoader", "ResourceKey", "ResourceKind", "SyncEngine"]


def __getattr__(name: str) -> Any:
    # The engine and loader import ghui.core.app, which imports
    # ghui.core.sync.keys; loading them lazily avoids a circular import.
    if name == "SyncEngine":
        from ghui.core.sync.engine import SyncEngine

        return SyncEngine
    if name == "GatewayLoader":
        from ghui.core.sync.loader import GatewayLoader

        return GatewayLoader
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
