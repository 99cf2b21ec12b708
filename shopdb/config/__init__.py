"""
shopdb Configuration Module
"""
from .settings import (
    DatabaseSettings,
    MonitoringSettings,
    SeedingSettings,
    Settings,
    StartupSettings,
    get_settings,
)

__all__ = [
    "DatabaseSettings",
    "MonitoringSettings",
    "SeedingSettings",
    "Settings",
    "StartupSettings",
    "get_settings",
]
