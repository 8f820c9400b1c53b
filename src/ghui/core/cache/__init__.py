"""
Persistent cache for ghui.

Stores the last successful payload per resource key so the UI can render
immediately at startup, and the label filters configured for the Labels tab.
"""

from ghui.core.cache.models import CacheEntry, LabelFilter
from ghui.core.cache.store import CacheStore

__all__ = ["CacheEntry", "CacheStore", "LabelFilter"]
