"""Config package exporting loader helpers."""

from .loader import CrudSettings, DatabaseConfig, LoggingConfig, Settings, load_settings

__all__ = [
    "CrudSettings",
    "DatabaseConfig",
    "LoggingConfig",
    "Settings",
    "load_settings",
]
