"""Configuration module for workday-checkin."""

from workday_checkin.config.settings import Settings, get_settings, settings

__all__ = ["Settings", "get_settings", "settings"]
