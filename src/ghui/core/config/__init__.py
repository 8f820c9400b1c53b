"""
Configuration models and loading.

Pydantic models for ghui configuration with multi-layer merging:
defaults < user config < env vars.
"""

from .env import load_layered_env
from .loader import (
    get_cache_path,
    get_log_path,
    get_user_config_path,
    get_xdg_config_home,
    load_config,
)
from .models import CacheConfig, GhuiConfig, RefreshConfig, UIConfig

__all__ = [
    # Models
    "CacheConfig",
    "GhuiConfig",
    "RefreshConfig",
    "UIConfig",
    # Loader functions
    "get_cache_path",
    "get_log_path",
    "get_user_config_path",
    "get_xdg_config_home",
    "load_config",
    "load_layered_env",
]
