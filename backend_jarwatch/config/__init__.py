"""
Configuration management for the JarWatch monitor.

Loads and validates settings from environment variables and an optional
.env file. Exposes a single source of truth for monitor configuration.
"""

from backend_jarwatch.config.settings import MonitoringConfig, Settings, get_settings  # noqa: F401

__all__ = ["MonitoringConfig", "Settings", "get_settings"]
