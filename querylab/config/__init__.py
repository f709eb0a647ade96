"""
Configuration package.

Exports the singleton settings instance for easy importing.

Usage:
    from querylab.config import settings

    print(settings.database_url)
"""

from querylab.config.settings import Settings, settings, get_settings

__all__ = [
    "Settings",
    "settings",
    "get_settings",
]
