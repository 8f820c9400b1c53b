"""
Configuration data models for ghui.

These models define the structure of ~/.config/ghui/config.json, with
validation and type safety via Pydantic.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class RefreshConfig(BaseModel):
    """
    Background refresh timing.

    Refreshes only run for the view currently on screen.
    """

    interval_seconds: float = Field(
        default=30.0,
        ge=1.0,
        description="Refresh the visible PR list when its data is older than this",
    )
    actions_poll_seconds: float = Field(
        default=30.0,
        ge=1.0,
        description="Poll the workflows view this often while jobs are running",
    )


class UIConfig(BaseModel):
    """Interactive behavior."""

    status_message_seconds: float = Field(
        default=3.0,
        ge=0.5,
        description="How long transient status messages stay visible",
    )
    exit_after_checkout: bool = Field(
        default=False,
        description="Quit after a successful checkout",
    )
    editor: Optional[str] = Field(
        default=None,
        description="Editor command for opening logs (defaults to $VISUAL / $EDITOR)",
    )
    max_search_results: int = Field(
        default=500,
        ge=1,
        description="Maximum number of fuzzy-search matches to display",
    )


class CacheConfig(BaseModel):
    """Location of the cache database."""

    path: Optional[str] = Field(
        default=None,
        description="Path to cache.db (defaults to $XDG_CACHE_HOME/ghui/cache.db)",
    )


class GhuiConfig(BaseModel):
    """
    Top-level ghui configuration.

    Example:
        >>> config = GhuiConfig()
        >>> config.refresh.interval_seconds
        30.0
    """

    model_config = ConfigDict(extra="ignore")

    refresh: RefreshConfig = Field(default_factory=RefreshConfig)
    ui: UIConfig = Field(default_factory=UIConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
