"""Common utilities for SMS4Dev."""

from sms4dev.common.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
