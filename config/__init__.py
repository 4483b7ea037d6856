"""Configuration module for loading and managing application settings"""
from typing import Dict, Any
from .lib.load_settings_conf import load_settings_conf, parse_origins, SettingsError, DEFAULTS

__all__ = ['settings_conf', 'load_settings_conf', 'parse_origins', 'is_production', 'SettingsError', 'DEFAULTS']

try:
    settings_conf: Dict[str, Any] = load_settings_conf()
except SettingsError as e:
    # Re-raise the error but provide more context
    raise SettingsError(
        f"Configuration Error\n"
        "=================\n\n"
        f"{str(e)}\n\n"
        "Please check settings.conf and the DATABASE_URL / CORS_ORIGINS / API_PORT\n"
        "environment variables. See settings.conf.example for the available keys."
    )

def is_production(settings: Dict[str, Any] = None) -> bool:
    """Whether error details should be hidden from API responses."""
    return (settings or settings_conf)['environment'] == 'production'
