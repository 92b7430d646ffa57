"""
FastAPI dependency for injecting configuration.

``get_settings`` already caches the settings object, so the dependency only
gives routes (and test overrides) a stable callable to hook.
"""

from fastapi import Depends

from oauth_broker.core.config import AppSettings, get_settings


def get_app_settings() -> AppSettings:
    return get_settings()


SettingsDependency = Depends(get_app_settings)

__all__ = ["SettingsDependency", "get_app_settings"]
