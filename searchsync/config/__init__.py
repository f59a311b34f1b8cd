"""
Configuration loading for the synchronization service.
"""

from .settings import (
    IndexerTypeSettings,
    SyncSettings,
    get_cached_settings,
    load_settings,
    reset_settings_cache,
)

__all__ = [
    "IndexerTypeSettings",
    "SyncSettings",
    "get_cached_settings",
    "load_settings",
    "reset_settings_cache",
]
