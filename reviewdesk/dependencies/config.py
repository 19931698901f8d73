"""
FastAPI dependency utilities for injecting configuration and the session account.
"""

from functools import lru_cache
from typing import Optional

from fastapi import Header

from reviewdesk.core.config import AppSettings, get_settings
from reviewdesk.core.errors import UnauthenticatedError


@lru_cache()
def _settings_singleton() -> AppSettings:
    """Ensure configuration is created once per process."""
    return get_settings()


def get_app_settings() -> AppSettings:
    """FastAPI dependency returning application settings."""
    return _settings_singleton()


def get_current_account_id(
    x_user_id: Optional[str] = Header(
        default=None, description="Account identifier supplied by the session layer."
    ),
) -> str:
    """Trust the upstream identity layer; reject requests that carry no account."""
    if not x_user_id:
        raise UnauthenticatedError("User not authenticated.")
    return x_user_id


__all__ = ["get_app_settings", "get_current_account_id"]
