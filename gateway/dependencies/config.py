"""
FastAPI dependency utilities for injecting configuration.
"""

from functools import lru_cache
from zoneinfo import ZoneInfo

from fastapi import Depends

from gateway.core.config import AppSettings, get_settings


@lru_cache()
def _settings_singleton() -> AppSettings:
    return get_settings()


def get_app_settings() -> AppSettings:
    """FastAPI dependency returning application settings."""
    return _settings_singleton()


@lru_cache()
def get_display_timezone() -> ZoneInfo:
    """Zone used to render rotation timestamps for human callers."""
    return ZoneInfo(_settings_singleton().display_timezone)


def get_api_prefix() -> str:
    """Route prefix without a trailing slash; used to build monitor links."""
    return _settings_singleton().api_prefix.rstrip("/")


SettingsDependency = Depends(get_app_settings)

__all__ = [
    "SettingsDependency",
    "get_api_prefix",
    "get_app_settings",
    "get_display_timezone",
]
