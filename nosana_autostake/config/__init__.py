"""
Configuration management for the auto-stake agent.

Loads settings from environment variables and an optional .env file.
Exposes a single source of truth for all service configuration.
"""

from nosana_autostake.config.settings import AutostakeSettings, get_settings  # noqa: F401

__all__ = ["AutostakeSettings", "get_settings"]
